"""Console entry point for the Unleash Fleet Migrator CLI."""

from __future__ import annotations

import argparse
import logging
import signal
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Tuple

from clients import KubernetesRestClient
from config import MigratorConfig, parse_duration
from directory import ReleaseChannelDirectory, UnleashDirectory
from errors import ConfigurationError, MigratorError
from log_utils import setup_logging
from models import MigrationSummary
from reconciler import ChannelMigrationReconciler, ReleaseChannelReconciler

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ISSUES = 1
EXIT_CONFIG_ERROR = 2


def _duration(value: str) -> float:
    try:
        return parse_duration(value)
    except ConfigurationError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def build_parser() -> argparse.ArgumentParser:
    """Build and return the CLI argument parser."""
    parser = argparse.ArgumentParser(
        description="Migrate Unleash instances between version sources"
    )
    parser.add_argument("--namespace", help="Namespace holding Unleash instances")
    parser.add_argument(
        "--api-server",
        default="https://kubernetes.default.svc",
        help="Kubernetes API server URL",
    )
    parser.add_argument("--ca-cert", help="CA bundle for the API server")
    parser.add_argument(
        "--migrate-to-channel",
        metavar="CHANNEL",
        help="Move instances pinned to a custom version onto this release channel",
    )
    parser.add_argument(
        "--channel-map",
        metavar="MAP",
        help="Channel-to-channel map, e.g. 'stable-v5:stable-v6,rapid-v5:rapid-v6'",
    )
    parser.add_argument(
        "--health-check-timeout", type=_duration, default=300.0, metavar="DURATION"
    )
    parser.add_argument(
        "--migration-delay", type=_duration, default=30.0, metavar="DURATION"
    )
    parser.add_argument(
        "--poll-interval", type=_duration, default=10.0, metavar="DURATION"
    )
    parser.add_argument("--dry-run", action="store_true", help="Only list candidates")
    parser.add_argument(
        "--from-env",
        action="store_true",
        help="Load configuration from BIFROST_* environment variables",
    )
    parser.add_argument(
        "--report",
        metavar="PATH",
        help="Write JSON reports, one per migration variant, suffixed with the variant name",
    )
    parser.add_argument("--log-file", metavar="PATH", help="Also write logs to this file")
    parser.add_argument("--json-logs", action="store_true")
    parser.add_argument("--verbose", action="store_true")
    return parser


def install_signal_handlers(stop_event: threading.Event) -> None:
    """Set stop_event on SIGINT/SIGTERM so running batches stop cooperatively."""

    def handler(signum, frame):
        logger.warning(f"Received signal {signum}, stopping migrations")
        stop_event.set()

    signal.signal(signal.SIGINT, handler)
    signal.signal(signal.SIGTERM, handler)


def run_reconcilers(
    reconcilers, stop_event: threading.Event
) -> Tuple[List[MigrationSummary], List[MigratorError]]:
    """
    Run enabled reconcilers concurrently, one worker thread each.

    Each batch stays sequential internally; separate variants share no state.
    A variant that aborts does not hide the other variant's summary.

    Returns:
        (summaries of the batches that ran, errors of the batches that aborted)
    """
    enabled = [r for r in reconcilers if r.enabled]
    if not enabled:
        logger.warning("No migration enabled; nothing to do")
        return [], []

    summaries: List[MigrationSummary] = []
    errors: List[MigratorError] = []
    with ThreadPoolExecutor(max_workers=len(enabled)) as pool:
        futures = [(r, pool.submit(r.run, stop_event)) for r in enabled]

    for reconciler, future in futures:
        try:
            summary = future.result()
        except MigratorError as e:
            logger.error(f"{reconciler.name} aborted: {e}")
            errors.append(e)
            continue
        if summary is not None:
            summaries.append(summary)
    return summaries, errors


def main(argv: Optional[List[str]] = None) -> int:
    """CLI main for console_scripts entry point."""
    parser = build_parser()
    args = parser.parse_args(args=argv)

    setup_logging(
        verbose=args.verbose, log_file=args.log_file, json_format=args.json_logs
    )

    try:
        config = MigratorConfig.from_env() if args.from_env else MigratorConfig.from_args(args)
    except ConfigurationError as e:
        logger.error(f"Invalid configuration: {e}")
        return EXIT_CONFIG_ERROR
    if args.from_env:
        config.dry_run = config.dry_run or args.dry_run
        config.report_path = args.report

    client = KubernetesRestClient(
        api_server=config.api_server,
        namespace=config.instance_namespace,
        ca_cert_path=config.ca_cert_path,
    )
    directory = UnleashDirectory(client)
    channels = ReleaseChannelDirectory(client)

    reconcilers = [
        ReleaseChannelReconciler(directory, channels, config),
        ChannelMigrationReconciler(directory, channels, config),
    ]

    stop_event = threading.Event()
    install_signal_handlers(stop_event)

    summaries, errors = run_reconcilers(reconcilers, stop_event)

    if any(isinstance(e, ConfigurationError) for e in errors):
        return EXIT_CONFIG_ERROR
    if errors or any(s.has_issues for s in summaries):
        return EXIT_ISSUES
    return EXIT_OK
