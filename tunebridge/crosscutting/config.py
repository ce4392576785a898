import os
from dataclasses import dataclass, field
from typing import Dict, Any, Optional

from dotenv import load_dotenv


MAX_WORKERS = 8


class ConfigError(Exception):
    """Configuration error."""
    pass


def _env_int(name: str, default: int, minimum: int = 0) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}")
    if value < minimum:
        raise ConfigError(f"{name} must be >= {minimum}, got {value}")
    return value


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ('1', 'true', 'yes', 'on')


def parse_api_tokens(raw: Optional[str]) -> Dict[str, str]:
    """Parse ``token:user_id`` pairs separated by commas."""
    tokens: Dict[str, str] = {}
    for pair in (raw or '').split(','):
        pair = pair.strip()
        if not pair:
            continue
        if ':' not in pair:
            raise ConfigError("TUNEBRIDGE_API_TOKENS entries must look like token:user_id")
        token, user_id = pair.split(':', 1)
        if not token.strip() or not user_id.strip():
            raise ConfigError("TUNEBRIDGE_API_TOKENS entries must look like token:user_id")
        tokens[token.strip()] = user_id.strip()
    return tokens


@dataclass
class Settings:
    """Runtime configuration of the importer."""

    spotify_client_id: Optional[str] = None
    spotify_client_secret: Optional[str] = None
    http_timeout_sec: int = 15
    max_candidates: int = 5
    songs_only: bool = True
    ytmusic_language: str = 'en'
    workers: int = 1
    run_timeout_sec: int = 600
    store_backend: str = 'sqlite'
    db_path: str = 'tunebridge.sqlite3'
    default_playlist_name: str = 'Imported from Spotify'
    api_tokens: Dict[str, str] = field(default_factory=dict)
    log_level: str = 'INFO'
    log_file: Optional[str] = None

    def summary(self) -> Dict[str, Any]:
        """Configuration summary without sensitive data."""
        return {
            'has_spotify_credentials': bool(self.spotify_client_id and self.spotify_client_secret),
            'http_timeout_sec': self.http_timeout_sec,
            'max_candidates': self.max_candidates,
            'songs_only': self.songs_only,
            'workers': self.workers,
            'run_timeout_sec': self.run_timeout_sec,
            'store_backend': self.store_backend,
            'db_path': self.db_path,
            'api_token_count': len(self.api_tokens),
            'log_level': self.log_level,
        }


def load_settings(env_file: Optional[str] = None) -> Settings:
    """Build Settings from the environment, reading ``env_file`` first if given.

    Raises:
        ConfigError: if a value is present but invalid
    """
    if env_file:
        if not os.path.exists(env_file):
            raise ConfigError(f"Env file not found: {env_file}")
        load_dotenv(env_file, override=False)

    store_backend = os.getenv('TUNEBRIDGE_STORE', 'sqlite').strip().lower()
    if store_backend not in ('sqlite', 'memory'):
        raise ConfigError(f"TUNEBRIDGE_STORE must be 'sqlite' or 'memory', got {store_backend!r}")

    log_level = os.getenv('TUNEBRIDGE_LOG_LEVEL', 'INFO').strip().upper()
    if log_level not in ('DEBUG', 'INFO', 'WARNING', 'ERROR'):
        raise ConfigError(f"TUNEBRIDGE_LOG_LEVEL is not a valid level: {log_level!r}")

    return Settings(
        spotify_client_id=os.getenv('SPOTIFY_CLIENT_ID') or None,
        spotify_client_secret=os.getenv('SPOTIFY_CLIENT_SECRET') or None,
        http_timeout_sec=_env_int('TUNEBRIDGE_HTTP_TIMEOUT', 15, minimum=1),
        max_candidates=_env_int('TUNEBRIDGE_MAX_CANDIDATES', 5, minimum=1),
        songs_only=_env_flag('TUNEBRIDGE_SONGS_ONLY', True),
        ytmusic_language=os.getenv('TUNEBRIDGE_YTMUSIC_LANGUAGE') or 'en',
        workers=min(_env_int('TUNEBRIDGE_WORKERS', 1, minimum=1), MAX_WORKERS),
        run_timeout_sec=_env_int('TUNEBRIDGE_RUN_TIMEOUT', 600, minimum=1),
        store_backend=store_backend,
        db_path=os.getenv('TUNEBRIDGE_DB_PATH') or 'tunebridge.sqlite3',
        default_playlist_name=os.getenv('TUNEBRIDGE_DEFAULT_PLAYLIST_NAME') or 'Imported from Spotify',
        api_tokens=parse_api_tokens(os.getenv('TUNEBRIDGE_API_TOKENS')),
        log_level=log_level,
        log_file=os.getenv('TUNEBRIDGE_LOG_FILE') or None,
    )
