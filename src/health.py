"""
Health gate: wait for an instance to report ready after a change.
"""

import logging
import threading
import time

from errors import HealthCheckTimeoutError, MigrationCancelled

logger = logging.getLogger(__name__)


class HealthGate:
    """Polls an instance's readiness until healthy, timed out or cancelled."""

    def __init__(self, directory, poll_interval: float = 10.0):
        """
        Args:
            directory: Instance directory used to fetch the instance
            poll_interval: Seconds between readiness checks
        """
        self.directory = directory
        self.poll_interval = poll_interval

    def wait(self, name: str, timeout: float, stop_event: threading.Event) -> None:
        """
        Block until the instance is ready.

        The first check happens one poll interval after the call.

        Args:
            name: Instance name
            timeout: Seconds before giving up
            stop_event: Cancellation signal for the batch

        Raises:
            HealthCheckTimeoutError: If the deadline passes first
            MigrationCancelled: If stop_event is set while waiting
        """
        interval = self.poll_interval
        if interval >= timeout:
            interval = timeout / 2
            logger.warning(
                f"Poll interval {self.poll_interval:g}s is not below health timeout "
                f"{timeout:g}s for {name}; polling every {interval:g}s"
            )

        deadline = time.monotonic() + timeout
        logger.info(f"Waiting for {name} to become ready (max {timeout:g}s)...")

        while True:
            if stop_event.wait(interval):
                raise MigrationCancelled(f"health check for {name} cancelled")

            if time.monotonic() > deadline:
                raise HealthCheckTimeoutError(name, timeout)

            try:
                inst = self.directory.get(name)
            except Exception as e:
                logger.debug(f"Health check failed to get {name}, retrying: {e}")
                continue

            if inst.is_ready:
                logger.info(f"✓ {name} is ready")
                return

            remaining = max(deadline - time.monotonic(), 0.0)
            logger.debug(
                f"  {name}: isReady={inst.is_ready} ({remaining:.0f}s remaining)"
            )
