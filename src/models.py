"""
Data models for the Unleash Fleet Migrator.
"""

import copy
import re
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Optional

from errors import InvalidInstanceConfigError

HOSTNAME_RE = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?(\.[a-z0-9]([-a-z0-9]*[a-z0-9])?)*$")
VALID_LOG_LEVELS = {"debug", "info", "warn", "error", "fatal", "panic"}


class VersionSourceKind(Enum):
    """How an instance selects its running version."""

    CUSTOM = "custom"
    CHANNEL = "channel"
    UNSET = "unset"


@dataclass(frozen=True)
class VersionSource:
    """Either a pinned custom version, a release channel, or nothing."""

    kind: VersionSourceKind
    value: str = ""

    @classmethod
    def custom(cls, version: str) -> "VersionSource":
        return cls(VersionSourceKind.CUSTOM, version)

    @classmethod
    def channel(cls, name: str) -> "VersionSource":
        return cls(VersionSourceKind.CHANNEL, name)

    @classmethod
    def unset(cls) -> "VersionSource":
        return cls(VersionSourceKind.UNSET)

    @property
    def is_custom(self) -> bool:
        return self.kind is VersionSourceKind.CUSTOM

    @property
    def is_channel(self) -> bool:
        return self.kind is VersionSourceKind.CHANNEL

    def __str__(self) -> str:
        if self.kind is VersionSourceKind.UNSET:
            return "unset"
        return f"{self.kind.value}:{self.value}"


@dataclass
class Instance:
    """
    An Unleash server instance as observed on the platform.

    ``version_source`` is the effective selection (a custom version wins).
    ``custom_version`` and ``release_channel`` keep the raw fields, which a
    misconfigured resource may both set. When neither is given they are
    derived from ``version_source``.
    """

    name: str
    is_ready: bool
    version_source: VersionSource
    namespace: str = ""
    version: str = ""  # running version reported by the operator
    resolved_image: str = ""
    custom_version: str = ""
    release_channel: str = ""

    def __post_init__(self):
        if not self.custom_version and not self.release_channel:
            if self.version_source.is_custom:
                self.custom_version = self.version_source.value
            elif self.version_source.is_channel:
                self.release_channel = self.version_source.value


@dataclass
class Channel:
    """A release channel and the version it currently points at."""

    name: str
    target_version: str
    image: str = ""


@dataclass
class InstanceConfig:
    """
    Full configuration snapshot of an instance.

    ``raw`` holds the resource document the snapshot was loaded from so that
    writing it back preserves every field the migrator does not manage.
    """

    name: str
    version_source: VersionSource
    enable_federation: bool = False
    federation_nonce: str = ""
    allowed_teams: str = ""
    allowed_namespaces: str = ""
    allowed_clusters: str = ""
    log_level: str = "warn"
    database_pool_max: int = 3
    database_pool_idle_timeout_ms: int = 1000
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    def with_version_source(self, version_source: VersionSource) -> "InstanceConfig":
        """Return a copy with only the version source replaced."""
        return replace(
            self, version_source=version_source, raw=copy.deepcopy(self.raw)
        )

    def validate(self) -> None:
        """
        Validate the configuration.

        Raises:
            InvalidInstanceConfigError: If any field is out of range
        """
        if not HOSTNAME_RE.match(self.name or ""):
            raise InvalidInstanceConfigError(
                f"name must be a valid hostname: {self.name!r}"
            )
        if self.log_level not in VALID_LOG_LEVELS:
            raise InvalidInstanceConfigError(
                f"log level must be one of: {', '.join(sorted(VALID_LOG_LEVELS))}"
            )
        if not 1 <= self.database_pool_max <= 10:
            raise InvalidInstanceConfigError(
                "database pool max must be between 1 and 10"
            )


@dataclass(frozen=True)
class MigrationCandidate:
    """An instance selected for migration in the current batch."""

    instance_name: str
    original: VersionSource
    target: VersionSource


class MigrationStatus(Enum):
    """Per-candidate migration status."""

    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED_UNHEALTHY = "skipped-unhealthy"
    ROLLED_BACK = "rolled-back"
    ROLLBACK_FAILED = "rollback-failed"

    @property
    def is_terminal(self) -> bool:
        return self not in (MigrationStatus.PENDING, MigrationStatus.IN_PROGRESS)


@dataclass
class InstanceState:
    """Tracked migration state for one candidate."""

    instance_name: str
    original: VersionSource
    target: VersionSource
    status: MigrationStatus = MigrationStatus.PENDING
    error_message: Optional[str] = None
    start_time: Optional[float] = None
    end_time: Optional[float] = None

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.start_time is None or self.end_time is None:
            return None
        return self.end_time - self.start_time


@dataclass
class MigrationSummary:
    """Status counts for a finished or interrupted batch."""

    candidates: int = 0
    completed: int = 0
    failed: int = 0
    skipped_unhealthy: int = 0
    rolled_back: int = 0
    rollback_failed: int = 0
    interrupted: bool = False

    @property
    def has_issues(self) -> bool:
        return (
            self.failed > 0
            or self.rolled_back > 0
            or self.rollback_failed > 0
            or self.interrupted
        )
