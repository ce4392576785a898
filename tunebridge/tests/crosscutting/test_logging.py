import json
import logging
import os
import tempfile

from tunebridge.crosscutting.logging import (
    SecretMasker, StructuredFormatter, CorrelationContext,
    setup_logging, log_with_fields,
    log_import_start, log_import_complete, log_track_failure, log_error,
    import_id_var, stage_var
)


def make_record(message, **extra):
    record = logging.LogRecord('tunebridge.test', logging.INFO, __file__, 10, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestSecretMasker:
    """Tests for secret masking functionality."""

    def setup_method(self):
        """Set up test fixtures."""
        self.masker = SecretMasker()

    def test_mask_api_token(self):
        text = "API token: abc123def456ghi789"
        masked = self.masker.mask_secrets(text)
        assert masked == "API token: abc1**********i789"

    def test_mask_client_secret(self):
        text = "client_secret: my_super_secret_key_12345"
        masked = self.masker.mask_secrets(text)
        assert "my_super_secret_key_12345" not in masked
        assert masked.startswith("client_secret: my_s")

    def test_mask_bearer_credential(self):
        text = "Authorization header Bearer eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9"
        masked = self.masker.mask_secrets(text)
        assert "eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9" not in masked

    def test_plain_text_untouched(self):
        text = "Found 12 tracks from Spotify"
        assert self.masker.mask_secrets(text) == text

    def test_mask_dict(self):
        data = {
            'access_token': 'token: secret_token_12345',
            'nested': {'value': 'key=abcdefghijklmnop'},
            'items': ['secret: 1234567890abcdef', 3],
            'count': 5,
        }
        masked = self.masker.mask_dict(data)
        assert 'secret_token_12345' not in masked['access_token']
        assert 'abcdefghijklmnop' not in masked['nested']['value']
        assert '1234567890abcdef' not in masked['items'][0]
        assert masked['items'][1] == 3
        assert masked['count'] == 5


class TestStructuredFormatter:
    """Tests for JSON log formatting."""

    def setup_method(self):
        """Set up test fixtures."""
        self.formatter = StructuredFormatter()

    def test_basic_entry(self):
        entry = json.loads(self.formatter.format(make_record("hello")))

        assert entry['level'] == 'INFO'
        assert entry['logger'] == 'tunebridge.test'
        assert entry['message'] == 'hello'
        assert entry['ts'].endswith('Z')
        assert 'importId' not in entry

    def test_correlation_fields_are_included(self):
        with CorrelationContext(import_id="import_1", snapshot_hash="abc", stage="resolving"):
            entry = json.loads(self.formatter.format(make_record("working")))

        assert entry['importId'] == "import_1"
        assert entry['snapshotHash'] == "abc"
        assert entry['stage'] == "resolving"

    def test_fields_are_masked(self):
        record = make_record("msg", fields={'header': 'token: abcdefghijklmnop'})
        entry = json.loads(self.formatter.format(record))

        assert 'abcdefghijklmnop' not in entry['fields']['header']


class TestCorrelationContext:

    def test_values_are_restored_on_exit(self):
        with CorrelationContext(import_id="outer", stage="extracting"):
            with CorrelationContext(stage="resolving"):
                assert import_id_var.get() == "outer"
                assert stage_var.get() == "resolving"
            assert stage_var.get() == "extracting"
        assert import_id_var.get() is None
        assert stage_var.get() is None


class TestLoggingHelpers:
    """Tests for logger setup and structured helpers."""

    def setup_method(self):
        """Set up test fixtures."""
        self.temp_dir = tempfile.mkdtemp()
        self.log_file = os.path.join(self.temp_dir, 'tunebridge.log')
        self.logger = setup_logging('DEBUG', self.log_file)

    def teardown_method(self):
        """Clean up test fixtures."""
        for handler in list(self.logger.handlers):
            handler.close()
        self.logger.handlers.clear()
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _entries(self):
        for handler in self.logger.handlers:
            handler.flush()
        with open(self.log_file) as f:
            return [json.loads(line) for line in f if line.strip()]

    def test_setup_logging_configures_package_logger(self):
        assert self.logger.name == 'tunebridge'
        assert self.logger.level == logging.DEBUG
        assert len(self.logger.handlers) == 2

    def test_child_logger_writes_json(self):
        log_with_fields(logging.getLogger('tunebridge.app'), 'INFO', 'Test message', {'key': 'value'})

        entry = self._entries()[-1]
        assert entry['message'] == 'Test message'
        assert entry['fields'] == {'key': 'value'}

    def test_import_start_and_complete(self):
        log_import_start(self.logger, "import_1", "spotify:playlist:p1", "u1")
        log_import_complete(self.logger, "import_1", "pl1", 2, 3)

        start, complete = self._entries()[-2:]
        assert start['importId'] == "import_1"
        assert start['stage'] == "extracting"
        assert start['fields']['owner_id'] == "u1"
        assert complete['playlistId'] == "pl1"
        assert complete['stage'] == "done"
        assert complete['fields'] == {'tracks_found': 2, 'tracks_total': 3}

    def test_track_failure_is_warning(self):
        log_track_failure(self.logger, 4, "Song", "X", ValueError("boom"))

        entry = self._entries()[-1]
        assert entry['level'] == 'WARNING'
        assert entry['fields']['track_index'] == 4
        assert entry['fields']['error_type'] == 'ValueError'

    def test_log_error_includes_exception(self):
        try:
            raise RuntimeError("store down")
        except RuntimeError as e:
            log_error(self.logger, "Import failed", e)

        entry = self._entries()[-1]
        assert entry['level'] == 'ERROR'
        assert 'RuntimeError' in entry['exception']
        assert entry['fields']['error_message'] == "store down"
