"""
Per-instance migration lifecycle with health verification and rollback.
"""

import logging
import threading

from errors import (
    HealthCheckTimeoutError,
    MigrationCancelled,
    RollbackError,
)
from health import HealthGate
from models import MigrationCandidate, MigrationStatus, VersionSource
from state import StateTracker

logger = logging.getLogger(__name__)


class MigrationEngine:
    """Applies one candidate's target version source and verifies it."""

    def __init__(
        self,
        directory,
        tracker: StateTracker,
        health_gate: HealthGate,
        health_timeout: float,
    ):
        """
        Initialize the migration engine.

        Args:
            directory: Instance directory (get/read_config/write_config)
            tracker: State tracker for the current batch
            health_gate: Readiness poller shared by migration and rollback
            health_timeout: Seconds to wait for readiness after each write
        """
        self.directory = directory
        self.tracker = tracker
        self.health_gate = health_gate
        self.health_timeout = health_timeout

    def migrate(
        self, candidate: MigrationCandidate, stop_event: threading.Event
    ) -> MigrationStatus:
        """
        Migrate a single candidate.

        Per-candidate failures never propagate; they end up as a status in
        the tracker and a log record. If the batch is cancelled while
        waiting for health, the candidate is left in-progress and no
        rollback is attempted.

        Returns:
            The candidate's status when this call returns
        """
        name = candidate.instance_name
        logger.info(
            f"Starting migration of {name}: {candidate.original} -> {candidate.target}"
        )

        try:
            inst = self.directory.get(name)
        except Exception as e:
            logger.error(f"Failed to get {name} before migration: {e}")
            return self._finish(name, MigrationStatus.FAILED, f"get failed: {e}")

        if not inst.is_ready:
            logger.warning(f"Skipping {name}: instance is not healthy before migration")
            return self._finish(
                name,
                MigrationStatus.SKIPPED_UNHEALTHY,
                "instance not ready before migration",
            )

        self.tracker.transition(name, MigrationStatus.IN_PROGRESS)

        try:
            self._apply(name, candidate.target)
        except Exception as e:
            logger.error(f"Failed to apply {candidate.target} to {name}: {e}")
            return self._finish(name, MigrationStatus.FAILED, str(e))

        logger.info(f"Updated {name} to {candidate.target}, waiting for health check")

        try:
            self.health_gate.wait(name, self.health_timeout, stop_event)
        except MigrationCancelled:
            logger.warning(
                f"Migration of {name} interrupted while waiting for health; "
                "instance left in-progress without rollback"
            )
            return MigrationStatus.IN_PROGRESS
        except HealthCheckTimeoutError as e:
            logger.warning(f"{name} failed health check after migration, rolling back: {e}")
            return self._rollback_after_timeout(candidate, stop_event, e)

        logger.info(f"✓ Successfully migrated {name} to {candidate.target}")
        return self._finish(name, MigrationStatus.COMPLETED)

    def rollback(
        self, name: str, original: VersionSource, stop_event: threading.Event
    ) -> None:
        """
        Restore an instance's original version source and wait for health.

        Raises:
            RollbackError: If the re-read, write or health wait fails
            MigrationCancelled: If the batch is cancelled during the health wait
        """
        logger.info(f"Rolling back {name} to {original}")

        try:
            self._apply(name, original)
        except Exception as e:
            logger.error(f"Failed to roll back {name}: {e}")
            raise RollbackError(f"rollback of {name} failed: {e}") from e

        try:
            self.health_gate.wait(name, self.health_timeout, stop_event)
        except HealthCheckTimeoutError as e:
            logger.critical(
                f"CRITICAL: {name} did not recover after rollback - manual intervention required"
            )
            raise RollbackError(f"{name} unhealthy after rollback: {e}") from e

        logger.info(f"Successfully rolled back {name} to {original}")

    def _rollback_after_timeout(
        self,
        candidate: MigrationCandidate,
        stop_event: threading.Event,
        cause: HealthCheckTimeoutError,
    ) -> MigrationStatus:
        name = candidate.instance_name
        try:
            self.rollback(name, candidate.original, stop_event)
        except MigrationCancelled:
            logger.warning(
                f"Rollback of {name} interrupted while waiting for health; "
                "instance left in-progress"
            )
            return MigrationStatus.IN_PROGRESS
        except RollbackError as e:
            logger.critical(
                f"Rollback FAILED for {name}, left pending for operator attention: {e}"
            )
            return self._finish(name, MigrationStatus.ROLLBACK_FAILED, str(e))

        return self._finish(name, MigrationStatus.ROLLED_BACK, str(cause))

    def _apply(self, name: str, version_source: VersionSource) -> None:
        """Read the current config, swap the version source, write it back."""
        current = self.directory.read_config(name)
        updated = current.with_version_source(version_source)
        updated.validate()
        self.directory.write_config(name, updated)

    def _finish(self, name: str, status: MigrationStatus, error_message=None):
        self.tracker.transition(name, status, error_message=error_message)
        return status
