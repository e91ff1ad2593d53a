"""
Fleet migration reconcilers.

A reconciler discovers candidate instances, orders them by name and drives
the migration engine across them one at a time, pacing between candidates
and honouring cancellation. Two variants share the same loop:

- ReleaseChannelReconciler: custom pinned version -> release channel
- ChannelMigrationReconciler: release channel A -> release channel B
"""

import json
import logging
import os
import threading
import time
from datetime import datetime
from typing import Dict, List, Optional

from channel_map import parse_channel_migration_map
from config import MigratorConfig
from engine import MigrationEngine
from errors import ChannelMapError, DirectoryError, MigrationConfigError
from health import HealthGate
from models import (
    Instance,
    MigrationCandidate,
    MigrationStatus,
    MigrationSummary,
    VersionSource,
)
from state import StateTracker

logger = logging.getLogger(__name__)


class MigrationReconciler:
    """Generic sequential migration batch."""

    name = "Migration reconciler"
    report_tag = "migration"

    def __init__(self, directory, channels, config: MigratorConfig):
        """
        Initialize the reconciler.

        Args:
            directory: Instance directory (list/get/read_config/write_config)
            channels: Channel directory (get)
            config: Migrator configuration
        """
        self.directory = directory
        self.channels = channels
        self.config = config

        self.tracker = StateTracker()
        self.run_start_time: Optional[float] = None
        self.run_end_time: Optional[float] = None

    # Variant hooks

    @property
    def enabled(self) -> bool:
        raise NotImplementedError

    @property
    def health_timeout(self) -> float:
        raise NotImplementedError

    @property
    def delay(self) -> float:
        raise NotImplementedError

    def validate(self) -> None:
        """
        Check the variant's configuration against the channel directory.

        Raises:
            MigrationConfigError: If the batch cannot run as configured
        """
        raise NotImplementedError

    def select_candidates(self, instances: List[Instance]) -> List[MigrationCandidate]:
        raise NotImplementedError

    # Batch loop

    def run(self, stop_event: Optional[threading.Event] = None) -> Optional[MigrationSummary]:
        """
        Execute one migration batch.

        Args:
            stop_event: Cancellation signal; set it to stop the batch

        Returns:
            Summary of the batch, or None if the variant is disabled

        Raises:
            MigrationConfigError: On configuration errors, before any mutation
            DirectoryError: If instances cannot be listed
        """
        if stop_event is None:
            stop_event = threading.Event()

        if not self.enabled:
            logger.debug(f"{self.name} called but not enabled, skipping")
            return None

        logger.info(f"Starting {self.name.lower()}")
        self.validate()

        try:
            instances = self.directory.list(exclude_channel_instances=False)
        except DirectoryError as e:
            logger.error(f"Failed to list instances for {self.name.lower()}: {e}")
            raise

        candidates = sorted(
            self.select_candidates(instances), key=lambda c: c.instance_name
        )
        if not candidates:
            logger.info(f"{self.name}: no instances found to migrate")
            return MigrationSummary()

        logger.info(f"{self.name}: found {len(candidates)} instance(s) to migrate")

        if self.config.dry_run:
            for c in candidates:
                logger.info(
                    f"DRY RUN: Would migrate {c.instance_name} from {c.original} to {c.target}"
                )
            return MigrationSummary(candidates=len(candidates))

        self.tracker = StateTracker()
        self.tracker.init(candidates)
        engine = MigrationEngine(
            directory=self.directory,
            tracker=self.tracker,
            health_gate=HealthGate(self.directory, poll_interval=self.config.poll_interval),
            health_timeout=self.health_timeout,
        )

        self.run_start_time = time.time()
        interrupted = False

        for i, candidate in enumerate(candidates):
            if stop_event.is_set():
                self.log_current_state(f"{self.name} interrupted by shutdown")
                interrupted = True
                break

            engine.migrate(candidate, stop_event)

            if stop_event.is_set():
                self.log_current_state(f"{self.name} interrupted during migration")
                interrupted = True
                break

            if i < len(candidates) - 1 and self.delay > 0:
                logger.debug(f"Waiting {self.delay:g}s before next migration")
                if stop_event.wait(self.delay):
                    self.log_current_state(f"{self.name} interrupted during delay")
                    interrupted = True
                    break

        self.run_end_time = time.time()
        summary = self.tracker.summary(interrupted=interrupted)
        self.log_summary(summary)
        self._print_report()
        return summary

    def log_current_state(self, reason: str) -> None:
        """Log pending candidates and per-candidate statuses for operators."""
        logger.warning(
            f"{reason}; pending={self.tracker.pending()} states={self.tracker.snapshot()}"
        )

    def log_summary(self, summary: MigrationSummary) -> None:
        """Log the summary; severity follows the worst outcome."""
        counts = (
            f"completed={summary.completed} failed={summary.failed} "
            f"skipped={summary.skipped_unhealthy} rolled_back={summary.rolled_back} "
            f"rollback_failed={summary.rollback_failed}"
        )
        if summary.rollback_failed > 0:
            logger.error(
                f"{self.name} completed with rollback failures - manual intervention required ({counts})"
            )
        elif summary.failed > 0 or summary.rolled_back > 0:
            logger.warning(f"{self.name} completed with issues ({counts})")
        else:
            logger.info(f"{self.name} completed successfully ({counts})")

    def _format_duration(self, seconds: float) -> str:
        """Format duration in human-readable format."""
        if seconds < 60:
            return f"{seconds:.1f}s"
        elif seconds < 3600:
            mins = int(seconds // 60)
            secs = seconds % 60
            return f"{mins}m {secs:.0f}s"
        else:
            hours = int(seconds // 3600)
            mins = int((seconds % 3600) // 60)
            secs = seconds % 60
            return f"{hours}h {mins}m {secs:.0f}s"

    def _print_report(self) -> None:
        """Log a per-candidate report and optionally export it as JSON."""
        states = self.tracker.states()
        total_duration = self.run_end_time - self.run_start_time

        logger.info("")
        logger.info("=" * 70)
        logger.info(f"{self.name.upper()} REPORT")
        logger.info("=" * 70)
        logger.info(f"Total duration:  {self._format_duration(total_duration)}")
        logger.info(f"{'Instance':<25} {'Status':<18} {'Duration':<10} {'Target'}")
        logger.info("-" * 70)
        for s in states:
            duration = s.duration_seconds
            duration_str = self._format_duration(duration) if duration is not None else "N/A"
            logger.info(
                f"{s.instance_name:<25} {s.status.value:<18} {duration_str:<10} {s.target}"
            )

        unresolved = [
            s for s in states
            if s.status in (MigrationStatus.ROLLBACK_FAILED, MigrationStatus.IN_PROGRESS)
        ]
        if unresolved:
            logger.info("")
            logger.info("NEEDS OPERATOR ATTENTION")
            logger.info("-" * 40)
            for s in unresolved:
                logger.info(
                    f"  {s.instance_name}: {s.status.value} (original {s.original}, "
                    f"target {s.target}) {s.error_message or ''}".rstrip()
                )
        logger.info("=" * 70)

        if self.config.report_path:
            root, ext = os.path.splitext(self.config.report_path)
            self._export_results_json(f"{root}-{self.report_tag}{ext or '.json'}")

    def _export_results_json(self, path: str) -> None:
        """Export results to a JSON file for further processing."""
        summary = self.tracker.summary()
        report = {
            "reconciler": self.name,
            "namespace": self.config.instance_namespace,
            "start_time": datetime.fromtimestamp(self.run_start_time).isoformat(),
            "end_time": datetime.fromtimestamp(self.run_end_time).isoformat(),
            "total_duration_seconds": self.run_end_time - self.run_start_time,
            "statistics": {
                "completed": summary.completed,
                "failed": summary.failed,
                "skipped_unhealthy": summary.skipped_unhealthy,
                "rolled_back": summary.rolled_back,
                "rollback_failed": summary.rollback_failed,
            },
            "pending": self.tracker.pending(),
            "results": [
                {
                    "instance_name": s.instance_name,
                    "status": s.status.value,
                    "original": str(s.original),
                    "target": str(s.target),
                    "duration_seconds": s.duration_seconds,
                    "error_message": s.error_message,
                }
                for s in self.tracker.states()
            ],
        }
        with open(path, "w") as f:
            json.dump(report, f, indent=2)
        logger.info(f"Detailed report exported to: {path}")


class ReleaseChannelReconciler(MigrationReconciler):
    """Migrates instances pinned to a custom version onto a release channel."""

    name = "Migration reconciler"
    report_tag = "custom-to-channel"

    @property
    def enabled(self) -> bool:
        return self.config.migration_enabled

    @property
    def health_timeout(self) -> float:
        return self.config.migration_health_timeout

    @property
    def delay(self) -> float:
        return self.config.migration_delay

    @property
    def target_channel(self) -> str:
        return self.config.migration_target_channel.strip()

    def validate(self) -> None:
        if not self.target_channel:
            logger.error("Migration enabled but no target channel configured")
            raise MigrationConfigError("migration enabled but no target channel configured")

        try:
            channel = self.channels.get(self.target_channel)
        except DirectoryError as e:
            logger.error(f"Migration target channel {self.target_channel!r} not found: {e}")
            raise MigrationConfigError(
                f"migration target channel {self.target_channel!r} not found"
            ) from e

        logger.info(
            f"Validated migration target channel {channel.name} (version {channel.target_version})"
        )

    def select_candidates(self, instances: List[Instance]) -> List[MigrationCandidate]:
        target = VersionSource.channel(self.target_channel)
        return [
            MigrationCandidate(
                instance_name=inst.name,
                original=VersionSource.custom(inst.custom_version),
                target=target,
            )
            for inst in instances
            if inst.custom_version and not inst.release_channel
        ]


class ChannelMigrationReconciler(MigrationReconciler):
    """Migrates instances between release channels following a source:target map."""

    name = "Channel migration reconciler"
    report_tag = "channel-to-channel"

    def __init__(self, directory, channels, config: MigratorConfig):
        super().__init__(directory, channels, config)
        self.channel_map: Dict[str, str] = {}

    @property
    def enabled(self) -> bool:
        return self.config.channel_migration_enabled

    @property
    def health_timeout(self) -> float:
        return self.config.channel_migration_health_timeout

    @property
    def delay(self) -> float:
        return self.config.channel_migration_delay

    def validate(self) -> None:
        try:
            channel_map = parse_channel_migration_map(self.config.channel_migration_map)
        except ChannelMapError as e:
            logger.error(f"Failed to parse channel migration map: {e}")
            raise

        if not channel_map:
            logger.error("Channel migration enabled but no channel map configured")
            raise MigrationConfigError(
                "channel migration enabled but no channel map configured"
            )

        for source, target in sorted(channel_map.items()):
            for role, channel_name in (("source", source), ("target", target)):
                try:
                    channel = self.channels.get(channel_name)
                except DirectoryError as e:
                    logger.error(
                        f"Channel migration {role} channel {channel_name!r} not found: {e}"
                    )
                    raise MigrationConfigError(
                        f"channel migration {role} channel {channel_name!r} not found"
                    ) from e
            logger.info(
                f"Validated channel migration mapping {source} -> {target} "
                f"(target version {channel.target_version})"
            )

        self.channel_map = channel_map

    def select_candidates(self, instances: List[Instance]) -> List[MigrationCandidate]:
        return [
            MigrationCandidate(
                instance_name=inst.name,
                original=VersionSource.channel(inst.release_channel),
                target=VersionSource.channel(self.channel_map[inst.release_channel]),
            )
            for inst in instances
            if inst.release_channel in self.channel_map
        ]
