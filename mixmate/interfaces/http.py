import logging
import os
import uuid
from datetime import datetime
from typing import Optional

from flask import Flask, jsonify, request

from mixmate.application.export import song_from_dict
from mixmate.crosscutting.config import ConfigError, Settings
from mixmate.crosscutting.logging import CorrelationContext
from mixmate.crosscutting.metrics import MetricsCollector
from mixmate.interfaces.wiring import create_mapping_cache, create_search_aggregator, create_spotify_exporter

MAX_SEARCH_LIMIT = 50


class HTTPServer:
    """HTTP server exposing unified search and playlist export."""

    def __init__(self, host: str = 'localhost', port: int = 3000, debug: bool = False,
                 settings: Optional[Settings] = None):
        """Initialize HTTP server."""
        self.host = host
        self.port = port
        self.debug = debug
        self.settings = settings or Settings()
        self.app = Flask(__name__)
        self.logger = logging.getLogger(__name__)
        self.metrics = MetricsCollector()
        self._mapping_cache = None

        self.version = "0.1.0"
        self.commit = os.getenv('GIT_COMMIT', 'unknown')

        self._setup_routes()

    @property
    def mapping_cache(self):
        if self._mapping_cache is None:
            self._mapping_cache = create_mapping_cache(self.settings)
        return self._mapping_cache

    def _setup_routes(self) -> None:
        """Setup Flask routes."""

        @self.app.errorhandler(ConfigError)
        def config_error(e):
            self.logger.error(f"Configuration error: {e}")
            return jsonify({'error': 'Service not configured', 'details': str(e)}), 503

        @self.app.route('/health', methods=['GET'])
        def health_check():
            """Health check endpoint."""
            return jsonify({
                'status': 'healthy',
                'version': self.version,
                'commit': self.commit,
                'timestamp': datetime.now().isoformat()
            }), 200

        @self.app.route('/', methods=['GET'])
        def root():
            """Root endpoint with basic info."""
            return jsonify({
                'service': 'MixMate HTTP Interface',
                'version': self.version,
                'endpoints': {
                    'health': '/health',
                    'search': '/api/search?q=<query>&limit=<n>',
                    'export': '/api/export',
                    'metrics': '/api/metrics'
                }
            }), 200

        @self.app.route('/api/search', methods=['GET'])
        def search():
            """Unified search across every configured platform."""
            query = (request.args.get('q') or '').strip()
            if not query:
                return jsonify({'error': 'Missing query parameter q'}), 400
            try:
                limit = int(request.args.get('limit', self.settings.search_limit))
            except ValueError:
                return jsonify({'error': 'limit must be an integer'}), 400
            if not 1 <= limit <= MAX_SEARCH_LIMIT:
                return jsonify({'error': f'limit must be between 1 and {MAX_SEARCH_LIMIT}'}), 400

            with CorrelationContext(request_id=uuid.uuid4().hex[:12]):
                aggregator = create_search_aggregator(self.settings, metrics=self.metrics)
                result = aggregator.search_songs(query, limit)
            return jsonify(result.to_dict()), 200

        @self.app.route('/api/export', methods=['POST'])
        def export():
            """Export a playlist to Spotify."""
            payload = request.get_json(silent=True) or {}
            name = (payload.get('name') or '').strip()
            raw_songs = payload.get('songs')
            if not name:
                return jsonify({'error': 'Missing playlist name'}), 400
            if not isinstance(raw_songs, list):
                return jsonify({'error': 'songs must be a list'}), 400
            try:
                songs = [song_from_dict(item) for item in raw_songs]
            except (ValueError, TypeError, AttributeError) as e:
                return jsonify({'error': 'Invalid song entry', 'details': str(e)}), 400

            with CorrelationContext(request_id=uuid.uuid4().hex[:12], playlist=name):
                exporter = create_spotify_exporter(self.settings, metrics=self.metrics,
                                                   mapping_cache=self.mapping_cache)
                result = exporter.export_playlist(name, songs)
            return jsonify(result.to_dict()), 200 if result.success else 502

        @self.app.route('/api/metrics', methods=['GET'])
        def metrics():
            """Aggregated search and export metrics."""
            return jsonify(self.metrics.get_summary()), 200

    def run(self) -> None:
        """Run the HTTP server."""
        self.logger.info(f"Starting MixMate HTTP server on {self.host}:{self.port}")
        self.app.run(
            host=self.host,
            port=self.port,
            debug=self.debug
        )


def create_app(settings: Optional[Settings] = None) -> Flask:
    """Create Flask app for testing."""
    server = HTTPServer(settings=settings)
    return server.app


if __name__ == '__main__':
    server = HTTPServer()
    server.run()
