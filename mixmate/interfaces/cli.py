import argparse
import json
import logging
import signal
import sys
import time
from typing import List, Optional

from mixmate.application.export import song_from_dict
from mixmate.crosscutting.config import ConfigError, Settings
from mixmate.crosscutting.logging import setup_logging
from mixmate.crosscutting.metrics import MetricsCollector
from mixmate.interfaces.wiring import create_search_aggregator, create_spotify_exporter


EXIT_OK = 0
EXIT_ERROR = 1
EXIT_CONFIG = 2


class CLI:
    """Command Line Interface for MixMate."""

    def __init__(self):
        """Initialize CLI."""
        self.parser = self._create_parser()
        self._start_time = None
        self.metrics = MetricsCollector()

    def _create_parser(self) -> argparse.ArgumentParser:
        """Create argument parser."""
        parser = argparse.ArgumentParser(
            prog='mixmate',
            description='Search music across platforms and export playlists'
        )
        parser.add_argument(
            '--env-file',
            default=None,
            help='Path to .env file with credentials (default: ./.env)'
        )
        parser.add_argument(
            '--log-level',
            choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
            default='WARNING',
            help='Set logging level'
        )
        parser.add_argument(
            '--metrics-file',
            default=None,
            help='Write collected metrics as JSON to this file'
        )

        subparsers = parser.add_subparsers(dest='command', help='Available commands')

        search_parser = subparsers.add_parser('search', help='Search songs on every configured platform')
        search_parser.add_argument('query', nargs='+', help='Free-text query')
        search_parser.add_argument(
            '--limit',
            type=int,
            default=None,
            help='Maximum number of songs (default from MIXMATE_SEARCH_LIMIT or 20)'
        )
        search_parser.add_argument(
            '--json',
            action='store_true',
            help='Print the raw JSON response'
        )

        export_parser = subparsers.add_parser('export', help='Export a playlist to Spotify')
        export_parser.add_argument('--name', required=True, help='Playlist name on Spotify')
        export_parser.add_argument(
            '--songs',
            required=True,
            help='JSON file with a list of songs ({"title", "artist", ...})'
        )

        subparsers.add_parser('config', help='Show configuration summary')

        return parser

    def _setup_signal_handlers(self) -> None:
        """Setup signal handlers for graceful shutdown."""
        def signal_handler(signum, frame):
            logging.getLogger(__name__).warning(f"Received signal {signum}, shutting down...")
            sys.exit(130)

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

    def _load_songs(self, path: str) -> list:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        if isinstance(data, dict):
            data = data.get('songs', [])
        if not isinstance(data, list):
            raise ValueError(f"{path} must contain a list of songs")
        return [song_from_dict(item) for item in data]

    def _search(self, args: argparse.Namespace, settings: Settings) -> int:
        aggregator = create_search_aggregator(settings, metrics=self.metrics)
        limit = args.limit if args.limit is not None else settings.search_limit
        result = aggregator.search_songs(' '.join(args.query), limit)

        if args.json:
            print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
            return EXIT_OK

        for source, status in result.sources.items():
            if status != 'ok':
                print(f"warning: {status}", file=sys.stderr)
        if not result.songs:
            print("No songs found.")
            return EXIT_OK

        for index, song in enumerate(result.songs, 1):
            platforms = ', '.join(sorted(song.platforms))
            album = f" [{song.album}]" if song.album else ""
            print(f"{index:2d}. {song.title} - {song.artist}{album} ({platforms})")
        more = " (more available)" if result.has_more else ""
        print(f"Showing {len(result.songs)} of {result.total}{more}")
        return EXIT_OK

    def _export(self, args: argparse.Namespace, settings: Settings) -> int:
        songs = self._load_songs(args.songs)
        exporter = create_spotify_exporter(settings, metrics=self.metrics)
        result = exporter.export_playlist(args.name, songs)

        print(result.message)
        if result.playlist_url:
            print(result.playlist_url)
        for missing in result.unmatched:
            print(f"  not found: {missing}")
        return EXIT_OK if result.success else EXIT_ERROR

    def _config(self, settings: Settings) -> int:
        print(json.dumps(settings.get_config_summary(), indent=2))
        return EXIT_OK

    def run(self, argv: Optional[List[str]] = None) -> int:
        """Run the CLI and return the process exit code."""
        self._start_time = time.time()
        args = self.parser.parse_args(argv)

        if not args.command:
            self.parser.print_help()
            return EXIT_ERROR

        setup_logging(args.log_level)
        logger = logging.getLogger(__name__)

        try:
            settings = Settings(env_file=args.env_file)
            if args.command == 'search':
                code = self._search(args, settings)
            elif args.command == 'export':
                code = self._export(args, settings)
            else:
                code = self._config(settings)
        except ConfigError as e:
            print(f"Configuration error: {e}", file=sys.stderr)
            return EXIT_CONFIG
        except (OSError, ValueError) as e:
            logger.error(f"CLI error: {e}")
            print(f"Error: {e}", file=sys.stderr)
            return EXIT_ERROR
        finally:
            logger.debug(f"CLI execution time: {time.time() - self._start_time:.2f}s")

        if args.metrics_file:
            self.metrics.save_to_file(args.metrics_file)
        return code


def main():
    """Main entry point."""
    cli = CLI()
    cli._setup_signal_handlers()
    sys.exit(cli.run())


if __name__ == '__main__':
    main()
