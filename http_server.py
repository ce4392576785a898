#!/usr/bin/env python3
"""
TuneBridge HTTP Server Runner
"""

import os

from tunebridge.crosscutting.config import load_settings
from tunebridge.crosscutting.logging import setup_logging
from tunebridge.interfaces.http import create_server


def main():
    """Run the HTTP server."""
    settings = load_settings(os.getenv('TUNEBRIDGE_ENV_FILE'))
    setup_logging(settings.log_level, settings.log_file)
    server = create_server(
        settings,
        host=os.getenv('TUNEBRIDGE_HOST', 'localhost'),
        port=int(os.getenv('TUNEBRIDGE_PORT', '3000')),
        debug=False
    )
    server.run()


if __name__ == '__main__':
    main()
