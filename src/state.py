"""
In-memory migration state for one batch run.

The batch loop is the only writer. Reads take the same lock and return
copies so a monitoring thread can poll progress while the batch runs.
"""

import copy
import threading
import time
from typing import Dict, Iterable, List, Optional

from errors import InvalidTransitionError
from models import InstanceState, MigrationCandidate, MigrationStatus, MigrationSummary

ALLOWED_TRANSITIONS = {
    MigrationStatus.PENDING: {
        MigrationStatus.IN_PROGRESS,
        MigrationStatus.FAILED,
        MigrationStatus.SKIPPED_UNHEALTHY,
    },
    MigrationStatus.IN_PROGRESS: {
        MigrationStatus.COMPLETED,
        MigrationStatus.FAILED,
        MigrationStatus.ROLLED_BACK,
        MigrationStatus.ROLLBACK_FAILED,
    },
}

# rollback-failed stays pending until an operator resolves it
RESOLVED_STATUSES = {
    MigrationStatus.COMPLETED,
    MigrationStatus.FAILED,
    MigrationStatus.SKIPPED_UNHEALTHY,
    MigrationStatus.ROLLED_BACK,
}


class StateTracker:
    """Per-candidate state machine plus the ordered pending set."""

    def __init__(self):
        self._lock = threading.RLock()
        self._states: Dict[str, InstanceState] = {}
        self._pending: List[str] = []

    def init(self, candidates: Iterable[MigrationCandidate]) -> None:
        """
        Register candidates as pending, in the given order.

        Raises:
            ValueError: If a candidate name is registered twice
        """
        with self._lock:
            for c in candidates:
                if c.instance_name in self._states:
                    raise ValueError(f"duplicate candidate: {c.instance_name}")
                self._states[c.instance_name] = InstanceState(
                    instance_name=c.instance_name,
                    original=c.original,
                    target=c.target,
                )
                self._pending.append(c.instance_name)

    def transition(
        self,
        name: str,
        status: MigrationStatus,
        error_message: Optional[str] = None,
    ) -> None:
        """
        Move a candidate to a new status.

        Raises:
            KeyError: If the candidate is unknown
            InvalidTransitionError: If the move is not allowed from the current status
        """
        with self._lock:
            state = self._states[name]
            allowed = ALLOWED_TRANSITIONS.get(state.status, set())
            if status not in allowed:
                raise InvalidTransitionError(
                    f"{name}: cannot move from {state.status.value} to {status.value}"
                )

            now = time.time()
            if status is MigrationStatus.IN_PROGRESS:
                state.start_time = now
            if status.is_terminal:
                state.end_time = now
            state.status = status
            if error_message is not None:
                state.error_message = error_message

            if status in RESOLVED_STATUSES and name in self._pending:
                self._pending.remove(name)

    def get(self, name: str) -> InstanceState:
        with self._lock:
            return copy.copy(self._states[name])

    def pending(self) -> List[str]:
        with self._lock:
            return list(self._pending)

    def states(self) -> List[InstanceState]:
        """Copies of all states in registration order."""
        with self._lock:
            return [copy.copy(s) for s in self._states.values()]

    def snapshot(self) -> Dict[str, str]:
        """Candidate name -> status string."""
        with self._lock:
            return {name: s.status.value for name, s in self._states.items()}

    def summary(self, interrupted: bool = False) -> MigrationSummary:
        with self._lock:
            summary = MigrationSummary(
                candidates=len(self._states), interrupted=interrupted
            )
            for s in self._states.values():
                if s.status is MigrationStatus.COMPLETED:
                    summary.completed += 1
                elif s.status is MigrationStatus.FAILED:
                    summary.failed += 1
                elif s.status is MigrationStatus.SKIPPED_UNHEALTHY:
                    summary.skipped_unhealthy += 1
                elif s.status is MigrationStatus.ROLLED_BACK:
                    summary.rolled_back += 1
                elif s.status is MigrationStatus.ROLLBACK_FAILED:
                    summary.rollback_failed += 1
            return summary

    def __len__(self) -> int:
        with self._lock:
            return len(self._states)
