from __future__ import annotations

import argparse
import logging
import sys
from functools import partial
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from extaudit.adapters.csv_export import CsvResultSink
from extaudit.app import patch_missing, run_audit
from extaudit.config import (
    AuditSettings,
    ConfigurationError,
    configure_logging,
    get_audit_settings,
    get_directory_config,
)
from extaudit.domain.cancellation import CancellationToken, OperationCancelledError
from extaudit.domain.repair import RepairOptions

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from extaudit.domain.ports.events import ProgressEvent

log = logging.getLogger(__name__)

DEFAULT_OUT_DIR = "out"


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--include-inactive",
        action="store_true",
        default=None,
        help="Include inactive users (defaults to EXTAUDIT_INCLUDE_INACTIVE)",
    )
    parser.add_argument(
        "--max-full-pages",
        type=int,
        default=None,
        help="Crawl all extension pages when the registry has at most this many pages",
    )
    parser.add_argument(
        "--out-dir",
        type=str,
        default=DEFAULT_OUT_DIR,
        help="Directory for exported CSV files (default: %(default)s)",
    )
    parser.add_argument(
        "--no-export",
        action="store_true",
        help="Skip writing CSV files",
    )


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Audit and repair user extension assignments")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    audit = subparsers.add_parser("audit", help="Classify extension mismatches")
    _add_common_arguments(audit)

    patch = subparsers.add_parser("patch", help="Re-sync users with missing assignments")
    _add_common_arguments(patch)
    patch.add_argument(
        "--apply",
        action="store_true",
        help="Write patches; without this flag the run is simulated",
    )
    patch.add_argument(
        "--max-updates",
        type=int,
        default=None,
        help="Stop patching after this many updates (0 = unlimited)",
    )
    patch.add_argument(
        "--sleep-ms",
        type=int,
        default=None,
        help="Delay after each successful patch in milliseconds",
    )

    return parser.parse_args(list(argv))


def _build_settings(args: argparse.Namespace) -> AuditSettings:
    defaults = get_audit_settings()
    max_full_pages = defaults.max_full_extension_pages
    if args.max_full_pages is not None:
        if args.max_full_pages < 0:
            raise ValueError("--max-full-pages must be non-negative")
        max_full_pages = args.max_full_pages

    max_updates = defaults.max_updates
    patch_delay = defaults.patch_delay
    if args.command == "patch":
        if args.max_updates is not None:
            if args.max_updates < 0:
                raise ValueError("--max-updates must be non-negative")
            max_updates = args.max_updates
        if args.sleep_ms is not None:
            if args.sleep_ms < 0:
                raise ValueError("--sleep-ms must be non-negative")
            patch_delay = args.sleep_ms / 1000

    return AuditSettings(
        users_page_size=defaults.users_page_size,
        extensions_page_size=defaults.extensions_page_size,
        max_full_extension_pages=max_full_pages,
        targeted_lookup_delay=defaults.targeted_lookup_delay,
        patch_delay=patch_delay,
        max_updates=max_updates,
    )


def _log_progress(event: ProgressEvent) -> None:
    if event.current is None:
        log.debug("%s", event.stage)
    elif event.total is None:
        log.debug("%s (%s)", event.stage, event.current)
    else:
        log.debug("%s (%s/%s)", event.stage, event.current, event.total)


def main(
    argv: Sequence[str] | None = None,
    *,
    cancellation: CancellationToken | None = None,
) -> None:
    """Main application entry point."""
    configure_logging()
    parsed_args: argparse.Namespace
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    try:
        parsed_args = _parse_args(args_list)
        settings = _build_settings(parsed_args)
    except ValueError:
        log.exception("CLI validation error")
        sys.exit(2)

    if parsed_args.verbose:
        configure_logging(level=logging.DEBUG, force=True)

    try:
        config = get_directory_config(include_inactive=parsed_args.include_inactive)
    except ConfigurationError:
        log.exception("Configuration error")
        sys.exit(2)

    sink = None if parsed_args.no_export else CsvResultSink(Path(parsed_args.out_dir))

    try:
        if parsed_args.command == "audit":
            outcome = run_audit(
                config,
                settings,
                sink=sink,
                progress=_log_progress,
                cancellation=cancellation,
            )
            for name, path in outcome.exports.items():
                log.info("Exported %s to %s", name, path)
        elif parsed_args.command == "patch":
            result = patch_missing(
                config,
                settings,
                options=RepairOptions(
                    simulate=not parsed_args.apply,
                    max_updates=settings.max_updates,
                    sleep_between=settings.patch_delay,
                ),
                sink=sink,
                progress=_log_progress,
                cancellation=cancellation,
            ).result
            log.info(
                "Patch finished: missing=%s, updated=%s, skipped=%s, failed=%s, simulate=%s",
                result.missing_found,
                result.updated,
                result.skipped,
                result.failed,
                result.simulate,
            )
        else:
            raise ValueError(f"Unsupported command: {parsed_args.command}")  # noqa: TRY301

    except OperationCancelledError:
        log.warning("Cancelled by user")
        sys.exit(130)
    except Exception:
        log.exception("Fatal error during audit")
        sys.exit(1)


def sigint_handler(
    cancellation: CancellationToken,
    _signal_received: int,
    _frame: FrameType | None,
) -> None:
    """Handle SIGINT (Ctrl+C): cancel the running operation, exit on a second press."""
    if cancellation.cancelled:
        log.info("Closed by user (Ctrl+C)")
        sys.exit(130)
    log.info("Cancelling; press Ctrl+C again to exit immediately")
    cancellation.cancel()


def run() -> None:
    load_dotenv()
    cancellation = CancellationToken()
    signal(SIGINT, partial(sigint_handler, cancellation))
    main(cancellation=cancellation)


if __name__ == "__main__":
    run()
