#!/usr/bin/env python3
"""
MixMate HTTP Server Runner
"""

import os

from mixmate.crosscutting.logging import setup_logging
from mixmate.interfaces.http import HTTPServer


def main():
    """Run the HTTP server."""
    setup_logging(os.getenv('MIXMATE_LOG_LEVEL', 'INFO'))
    server = HTTPServer(
        host=os.getenv('MIXMATE_HOST', 'localhost'),
        port=int(os.getenv('MIXMATE_PORT', '3000')),
        debug=os.getenv('MIXMATE_DEBUG', '0') == '1'
    )
    server.run()


if __name__ == '__main__':
    main()
