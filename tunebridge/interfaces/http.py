import os
import logging
from typing import Optional, Tuple
from datetime import datetime
from flask import Flask, request, jsonify

from tunebridge.application.pipeline import ImportPipeline
from tunebridge.crosscutting.config import Settings, load_settings
from tunebridge.crosscutting.logging import log_error
from tunebridge.domain.errors import (
    CredentialError, ImporterError, InvalidReference, InvariantViolation,
    Unauthenticated, UpstreamFetchError,
)
from tunebridge.domain.ports import Authenticator
from tunebridge.infrastructure.auth import StaticTokenAuthenticator
from tunebridge.interfaces.factory import build_pipeline, create_store


CORS_HEADERS = {
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Allow-Headers': 'authorization, x-client-info, apikey, content-type',
    'Access-Control-Allow-Methods': 'GET, POST, OPTIONS',
}


def error_status(error: Exception) -> int:
    """HTTP status for an import failure."""
    if isinstance(error, InvalidReference):
        return 400
    if isinstance(error, Unauthenticated):
        return 401
    if isinstance(error, UpstreamFetchError):
        return 404 if error.status == 404 else 502
    if isinstance(error, (CredentialError, InvariantViolation)):
        return 502
    return 500


class HTTPServer:
    """HTTP binding of the playlist import with health and info endpoints."""

    def __init__(self, pipeline: ImportPipeline, authenticator: Authenticator,
                 host: str = 'localhost', port: int = 3000, debug: bool = False):
        """Initialize HTTP server."""
        self.pipeline = pipeline
        self.authenticator = authenticator
        self.host = host
        self.port = port
        self.debug = debug
        self.app = Flask(__name__)
        self.logger = logging.getLogger(__name__)

        # Version info
        self.version = "0.1.0"
        self.commit = os.getenv('GIT_COMMIT', 'unknown')

        self._setup_routes()

    def _error(self, error: Exception) -> Tuple:
        status = error_status(error)
        if status >= 500:
            log_error(self.logger, "Import request failed", error, status=status)
        else:
            self.logger.warning(f"Import request rejected ({status}): {error}")
        return jsonify({'error': str(error) or 'Unknown error occurred'}), status

    def _setup_routes(self) -> None:
        """Setup Flask routes."""

        @self.app.after_request
        def add_cors_headers(response):
            for header, value in CORS_HEADERS.items():
                response.headers[header] = value
            return response

        @self.app.route('/health', methods=['GET'])
        def health_check():
            """Health check endpoint."""
            return jsonify({
                'status': 'healthy',
                'version': self.version,
                'commit': self.commit,
                'timestamp': datetime.now().isoformat()
            }), 200

        @self.app.route('/import', methods=['POST', 'OPTIONS'])
        def import_playlist():
            """Import a Spotify playlist or track for the authenticated caller."""
            if request.method == 'OPTIONS':
                return 'ok', 200

            try:
                user_id = self.authenticator.authenticate(request.headers.get('Authorization'))

                body = request.get_json(silent=True)
                if not isinstance(body, dict):
                    raise InvalidReference("Request body must be a JSON object")
                reference = body.get('sourceReference') or body.get('spotifyUrl')
                if not reference or not isinstance(reference, str):
                    raise InvalidReference("Spotify URL is required")
                playlist_name = body.get('playlistName')
                if playlist_name is not None and not isinstance(playlist_name, str):
                    raise InvalidReference("playlistName must be a string")

                result = self.pipeline.run(
                    owner_id=user_id,
                    source_reference=reference,
                    playlist_name=playlist_name or None,
                )
            except ImporterError as e:
                return self._error(e)
            except Exception as e:
                self.logger.exception("Unexpected error during import")
                return jsonify({'error': str(e) or 'Unknown error occurred'}), 500

            return jsonify(result.to_payload()), 200

        @self.app.route('/', methods=['GET'])
        def root():
            """Root endpoint with API information."""
            return jsonify({
                'service': 'TuneBridge HTTP Interface',
                'version': self.version,
                'endpoints': {
                    'health': '/health',
                    'import': '/import'
                }
            }), 200

    def run(self) -> None:
        """Run the HTTP server."""
        self.logger.info(f"Starting TuneBridge HTTP server on {self.host}:{self.port}")
        self.app.run(
            host=self.host,
            port=self.port,
            debug=self.debug
        )


def create_server(settings: Optional[Settings] = None,
                  pipeline: Optional[ImportPipeline] = None,
                  authenticator: Optional[Authenticator] = None,
                  host: str = 'localhost', port: int = 3000, debug: bool = False) -> HTTPServer:
    """Create an HTTPServer, wiring missing collaborators from settings."""
    if pipeline is None or authenticator is None:
        settings = settings or load_settings()
    if pipeline is None:
        pipeline = build_pipeline(settings, create_store(settings))
    if authenticator is None:
        authenticator = StaticTokenAuthenticator(settings.api_tokens)
    return HTTPServer(pipeline, authenticator, host=host, port=port, debug=debug)


def create_app(settings: Optional[Settings] = None,
               pipeline: Optional[ImportPipeline] = None,
               authenticator: Optional[Authenticator] = None) -> Flask:
    """Create Flask app for testing."""
    return create_server(settings, pipeline, authenticator).app
