import argparse
import json
import os
import sys
import logging
import time
from datetime import datetime, timezone
from typing import List, Optional

from tunebridge.application.matching import MatchSelector
from tunebridge.application.pipeline import ImportResult
from tunebridge.application.search import CandidateSearchClient, build_search_query
from tunebridge.crosscutting.config import MAX_WORKERS, ConfigError, Settings, load_settings
from tunebridge.crosscutting.logging import setup_logging
from tunebridge.crosscutting.metrics import MetricsCollector
from tunebridge.crosscutting.reporting import ImportReport, create_report_header
from tunebridge.domain.entities import UNKNOWN_ARTIST, TrackDescriptor
from tunebridge.domain.errors import ImporterError
from tunebridge.interfaces.factory import build_pipeline, create_store, create_target_catalog


logger = logging.getLogger(__name__)


class CLI:
    """Command Line Interface for TuneBridge."""

    def __init__(self):
        """Initialize CLI."""
        self.parser = self._create_parser()
        self._start_time = None

    def _create_parser(self) -> argparse.ArgumentParser:
        """Create argument parser."""
        parser = argparse.ArgumentParser(
            prog='tunebridge',
            description='Import Spotify playlists as YouTube Music playlists'
        )
        parser.add_argument(
            '--env-file',
            default=None,
            help='Read configuration from this .env file before the environment'
        )

        subparsers = parser.add_subparsers(dest='command', help='Available commands')

        # Import command
        import_parser = subparsers.add_parser('import', help='Import a Spotify playlist or track')
        import_parser.add_argument(
            'reference',
            help='Spotify playlist or track URL/URI'
        )
        import_parser.add_argument(
            '--user',
            required=True,
            help='Owner user id of the created playlist'
        )
        import_parser.add_argument(
            '--name',
            default=None,
            help='Name of the created playlist'
        )
        import_parser.add_argument(
            '--description',
            default=None,
            help='Description of the created playlist (default: "Imported N tracks")'
        )
        import_parser.add_argument(
            '--workers',
            type=int,
            default=None,
            help=f'Concurrent track resolutions, 1..{MAX_WORKERS} (default from env or 1)'
        )
        import_parser.add_argument(
            '--report-path',
            default=None,
            help='Directory to save the per-track report and metrics'
        )
        import_parser.add_argument(
            '--log-level',
            choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
            default=None,
            help='Set logging level (default from env or INFO)'
        )

        # Resolve command
        resolve_parser = subparsers.add_parser('resolve', help='Show the YouTube Music match for one track')
        resolve_parser.add_argument('--title', required=True, help='Track title')
        resolve_parser.add_argument('--artist', default=None, help='Primary artist')
        resolve_parser.add_argument('--album', default=None, help='Album name')
        resolve_parser.add_argument(
            '--log-level',
            choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
            default=None,
            help='Set logging level (default from env or WARNING)'
        )

        return parser

    def _cleanup_resources(self, store=None) -> None:
        """Clean up resources on exit."""
        if store is not None and hasattr(store, 'close'):
            store.close()
        if self._start_time:
            duration = time.time() - self._start_time
            logger.info(f"CLI execution time: {duration:.2f}s")

    def _validate_arguments(self, args: argparse.Namespace) -> None:
        """Validate CLI arguments."""
        workers = getattr(args, 'workers', None)
        if workers is not None and not 1 <= workers <= MAX_WORKERS:
            raise ValueError(f"--workers must be between 1 and {MAX_WORKERS}")
        if getattr(args, 'command', None) == 'resolve' and not args.title.strip():
            raise ValueError("--title must not be empty")

    def _create_import_id(self) -> str:
        """Create unique import identifier."""
        return f"import_{datetime.now().strftime('%Y%m%d_%H%M%S')}"

    def _import(self, args: argparse.Namespace, settings: Settings) -> None:
        """Import one Spotify reference."""
        if args.workers is not None:
            settings.workers = args.workers

        import_id = self._create_import_id()
        store = None
        try:
            metrics = MetricsCollector(import_id, args.reference)
            header = create_report_header(import_id, args.reference)

            try:
                store = create_store(settings)
                pipeline = build_pipeline(settings, store)
                result = pipeline.run(
                    owner_id=args.user,
                    source_reference=args.reference,
                    playlist_name=args.name,
                    description=args.description,
                    import_id=import_id,
                    metrics=metrics,
                )
            except ImporterError as e:
                print(f"Import failed: {e}", file=sys.stderr)
                sys.exit(1)

            print(json.dumps(result.to_payload(), indent=2, ensure_ascii=False))

            if args.report_path:
                header.finished_at = datetime.now(timezone.utc)
                header.snapshot_hash = result.snapshot_hash
                header.playlist_id = result.playlist.id
                self._save_reports(result, ImportReport(header=header, tracks=result.outcomes),
                                   metrics, args.report_path)
        finally:
            self._cleanup_resources(store)

    def _save_reports(self, result: ImportResult, report: ImportReport,
                      metrics: MetricsCollector, report_path: str) -> List[str]:
        """Write the per-track report and the run metrics as JSON."""
        os.makedirs(report_path, exist_ok=True)
        report_file = os.path.join(report_path, f"import_report_{result.import_id}.json")
        metrics_file = os.path.join(report_path, f"import_metrics_{result.import_id}.json")
        report.save(report_file)
        metrics.save_to_file(metrics_file)
        logger.info(f"Report saved to: {report_file}")
        return [report_file, metrics_file]

    def _resolve(self, args: argparse.Namespace, settings: Settings) -> None:
        """Search and select a match for one track without persisting anything."""
        descriptor = TrackDescriptor(
            title=args.title.strip(),
            artist=(args.artist or '').strip() or UNKNOWN_ARTIST,
            album=args.album,
        )
        target_catalog = create_target_catalog(settings)
        search_client = CandidateSearchClient(target_catalog, max_candidates=settings.max_candidates)
        selector = MatchSelector(max_candidates=settings.max_candidates)

        try:
            candidates = search_client.find_candidates(descriptor)
        except ImporterError as e:
            print(f"Search failed: {e}", file=sys.stderr)
            sys.exit(1)

        match = selector.find_best_match(descriptor, candidates)
        output = {
            'query': build_search_query(descriptor),
            'reason': match.reason,
            'candidates': len(candidates),
            'match': None,
        }
        if match.candidate is not None:
            output['match'] = {
                'externalId': match.candidate.external_id,
                'title': match.candidate.title,
                'artist': match.candidate.artist,
                'thumbnail': match.candidate.thumbnail,
                'playableUri': target_catalog.playable_uri(match.candidate.external_id),
            }
        print(json.dumps(output, indent=2, ensure_ascii=False))
        if match.candidate is None:
            sys.exit(2)

    def run(self, argv: Optional[List[str]] = None) -> None:
        """Run the CLI."""
        self._start_time = time.time()

        args = self.parser.parse_args(argv)
        if not args.command:
            self.parser.print_help()
            sys.exit(1)

        try:
            self._validate_arguments(args)
            settings = load_settings(args.env_file)
        except (ValueError, ConfigError) as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)

        default_level = 'WARNING' if args.command == 'resolve' else settings.log_level
        setup_logging(args.log_level or default_level, settings.log_file)
        logger.debug(f"Settings: {settings.summary()}")

        try:
            if args.command == 'import':
                self._import(args, settings)
            elif args.command == 'resolve':
                self._resolve(args, settings)
            else:
                self.parser.print_help()
                sys.exit(1)
        except KeyboardInterrupt:
            logger.warning("Operation cancelled by user")
            sys.exit(130)


def main():
    """Main entry point."""
    cli = CLI()
    cli.run()


if __name__ == '__main__':
    main()
