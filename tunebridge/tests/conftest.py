import os
import sys
import pytest


def _ensure_project_root_on_sys_path() -> None:
    here = os.path.dirname(__file__)
    project_root = os.path.abspath(os.path.join(here, "..", ".."))
    if project_root not in sys.path:
        sys.path.insert(0, project_root)


_ensure_project_root_on_sys_path()


CONFIG_ENV_KEYS = [
    'SPOTIFY_CLIENT_ID',
    'SPOTIFY_CLIENT_SECRET',
    'TUNEBRIDGE_HTTP_TIMEOUT',
    'TUNEBRIDGE_MAX_CANDIDATES',
    'TUNEBRIDGE_SONGS_ONLY',
    'TUNEBRIDGE_YTMUSIC_LANGUAGE',
    'TUNEBRIDGE_WORKERS',
    'TUNEBRIDGE_RUN_TIMEOUT',
    'TUNEBRIDGE_STORE',
    'TUNEBRIDGE_DB_PATH',
    'TUNEBRIDGE_DEFAULT_PLAYLIST_NAME',
    'TUNEBRIDGE_API_TOKENS',
    'TUNEBRIDGE_LOG_LEVEL',
    'TUNEBRIDGE_LOG_FILE',
]


@pytest.fixture(autouse=True)
def _clear_config_env():
    """Ensure credentials and importer settings do not leak across tests.
    A developer .env may set these variables; clear before each test and
    restore afterwards so tests explicitly setting them remain deterministic.
    """
    backup = {k: os.environ.get(k) for k in CONFIG_ENV_KEYS}
    for k in CONFIG_ENV_KEYS:
        os.environ.pop(k, None)
    try:
        yield
    finally:
        for k, v in backup.items():
            if v is None:
                os.environ.pop(k, None)
            else:
                os.environ[k] = v
