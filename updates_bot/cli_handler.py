"""
CLI handler for the Updates Bot.

Parses command-line arguments, builds the settings and runs one
orchestration pass over every configured repository target.
"""

import argparse
import asyncio
import json
import sys
from typing import List, Optional

from .classification.versions import VersionClassifier
from .config.settings import Settings, parse_targets
from .deduplication.cursor_store import CursorStore, create_backend
from .domain.outcomes import RunSummary
from .github.client import AsyncGitHubClient
from .github.fetcher import PaginatedFetcher
from .monitoring.metrics import UpdatesMetrics
from .notifications import ChangeNotifier, LoggingNotifier
from .orchestrator import ChangeOrchestrator
from .utils.exceptions import ConfigurationError, UpdatesBotError
from .utils.logger import get_logger, setup_logging


class CLIHandler:
    """
    Handles the command-line interface of the updates bot.

    This class is responsible for:
    - Parsing and validating command-line arguments
    - Merging arguments over environment settings
    - Setting up logging
    - Wiring the GitHub client, cursor store and orchestrator
    """

    def __init__(self, notifier: Optional[ChangeNotifier] = None):
        self.notifier = notifier
        self.logger = None

    def create_parser(self) -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(
            prog="updates-bot",
            description="Track Signal releases, translations and translator credits",
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog="""
Examples:
  # Check every default repository
  updates-bot

  # Only Desktop releases, without notifying or committing cursors
  updates-bot --target signalapp/Signal-Desktop@main:desktop:releases --dry-run

  # Persist cursors and print a JSON summary
  updates-bot --cursor-db cursors.sqlite3 --json-summary
            """
        )

        parser.add_argument(
            "--target",
            action="append",
            dest="targets",
            metavar="OWNER/NAME@BRANCH:PLATFORM[:KIND]",
            help="Repository target to check (repeatable, overrides UPDATES_BOT_TARGETS)"
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Classify and render changes without notifying or committing cursors"
        )
        parser.add_argument(
            "--cursor-db",
            type=str,
            help="SQLite file for cursors (default: in-memory, lost on exit)"
        )
        parser.add_argument(
            "--max-pages",
            type=int,
            help="Maximum history pages fetched per repository"
        )
        parser.add_argument(
            "--timeout",
            type=float,
            help="Run time budget in seconds"
        )
        parser.add_argument(
            "--concurrent-repositories",
            type=int,
            help="Maximum number of repositories processed concurrently"
        )
        parser.add_argument(
            "--json-summary",
            action="store_true",
            help="Print the run summary as JSON on stdout"
        )
        parser.add_argument(
            "--metrics-file",
            type=str,
            help="Write Prometheus metrics to this file after the run"
        )

        # Logging options
        parser.add_argument(
            "--log-level",
            choices=["DEBUG", "INFO", "WARNING", "ERROR"],
            help="Logging level (default: INFO)"
        )
        parser.add_argument(
            "--log-format",
            choices=["text", "json"],
            help="Log output format (default: text)"
        )
        parser.add_argument(
            "--verbose", "-v",
            action="store_true",
            help="Enable verbose logging"
        )

        return parser

    def parse_args(self, args: Optional[List[str]] = None) -> argparse.Namespace:
        """
        Parse and validate command-line arguments.

        Raises:
            ConfigurationError: If argument validation fails
        """
        parsed_args = self.create_parser().parse_args(args)
        self._validate_args(parsed_args)
        return parsed_args

    def _validate_args(self, args: argparse.Namespace) -> None:
        if args.max_pages is not None and args.max_pages < 1:
            raise ConfigurationError("Max pages must be at least 1", config_key="max_pages",
                                     config_value=str(args.max_pages))
        if args.timeout is not None and args.timeout <= 0:
            raise ConfigurationError("Timeout must be positive", config_key="run_timeout_seconds",
                                     config_value=str(args.timeout))
        if args.concurrent_repositories is not None and args.concurrent_repositories < 1:
            raise ConfigurationError("Concurrent repositories must be at least 1",
                                     config_key="max_concurrent_repositories",
                                     config_value=str(args.concurrent_repositories))

    def build_settings(self, args: argparse.Namespace) -> Settings:
        """Environment settings with command-line overrides applied."""
        targets = None
        if args.targets:
            targets = parse_targets(",".join(args.targets))

        return Settings.from_env(
            targets=targets,
            cursor_db_path=args.cursor_db,
            max_pages=args.max_pages,
            run_timeout_seconds=args.timeout,
            max_concurrent_repositories=args.concurrent_repositories,
            log_level="DEBUG" if args.verbose else args.log_level,
            log_format=args.log_format,
        )

    async def execute(self, args: Optional[List[str]] = None) -> int:
        """
        Run the bot with the provided arguments.

        Returns:
            Exit code: 0 if every repository succeeded, 1 otherwise,
            2 for configuration errors
        """
        try:
            parsed_args = self.parse_args(args)
            settings = self.build_settings(parsed_args)
        except ConfigurationError as e:
            print(f"Configuration error: {e}", file=sys.stderr)
            return 2

        setup_logging(level=settings.log_level, format_type=settings.log_format, log_file=settings.log_file)
        self.logger = get_logger("cli")
        self.logger.info(
            "Starting updates bot",
            extra={"targets": len(settings.targets), "dry_run": parsed_args.dry_run}
        )

        try:
            metrics = UpdatesMetrics()
            summary = await self.run(settings, dry_run=parsed_args.dry_run, metrics=metrics)
        except UpdatesBotError as e:
            self.logger.error(f"Updates bot error: {e}", extra={"error": e.to_dict()})
            return 1
        except Exception as e:
            self.logger.error(f"Unexpected error: {e}", exc_info=True)
            return 1

        self._report(summary, parsed_args.json_summary)
        if parsed_args.metrics_file:
            with open(parsed_args.metrics_file, "wb") as handle:
                handle.write(metrics.render_latest())

        return 0 if summary.succeeded else 1

    async def run(
        self,
        settings: Settings,
        dry_run: bool = False,
        metrics: Optional[UpdatesMetrics] = None,
    ) -> RunSummary:
        """Process every configured target once."""
        store = CursorStore(create_backend(settings.cursor_db_path), settings.seen_window_size)

        async with AsyncGitHubClient(settings, metrics=metrics) as client:
            orchestrator = ChangeOrchestrator(
                fetcher=PaginatedFetcher(client, per_page=settings.per_page, max_pages=settings.max_pages),
                store=store,
                notifier=self.notifier or LoggingNotifier(),
                run_timeout_seconds=settings.run_timeout_seconds,
                max_concurrent_repositories=settings.max_concurrent_repositories,
                seen_window_size=settings.seen_window_size,
                dry_run=dry_run,
                metrics=metrics,
                classifier=VersionClassifier(settings.release_outranks_prerelease),
            )
            return await orchestrator.run(settings.targets)

    def _report(self, summary: RunSummary, as_json: bool) -> None:
        if as_json:
            print(json.dumps(summary.to_dict(), indent=2, default=str))
            return

        for outcome in summary.outcomes:
            if outcome.succeeded:
                self.logger.info(
                    f"{outcome.target.key}: {len(outcome.changes)} change(s), "
                    f"{outcome.duplicates_suppressed} duplicate(s) suppressed",
                    extra={"skipped": len(outcome.skipped)}
                )
            else:
                self.logger.warning(
                    f"{outcome.target.key}: failed with {outcome.error_kind}",
                    extra={"error_context": outcome.error_context}
                )

        if summary.failed:
            self.logger.warning(f"{len(summary.failed)} repositories failed")


def main(args: Optional[List[str]] = None) -> int:
    """Console entry point."""
    try:
        return asyncio.run(CLIHandler().execute(args))
    except KeyboardInterrupt:
        print("\nUpdates bot interrupted by user", file=sys.stderr)
        return 130
