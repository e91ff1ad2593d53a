"""
Exception hierarchy for the Unleash Fleet Migrator.
"""

from typing import Optional


class MigratorError(Exception):
    """Base class for all migrator errors."""


# Configuration errors abort a whole batch before any mutation.


class ConfigurationError(MigratorError):
    """Invalid or missing operator configuration."""


class MigrationConfigError(ConfigurationError):
    """A migration variant is enabled but cannot run as configured."""


class ChannelMapError(ConfigurationError):
    """The source:target channel migration map is malformed."""


class InvalidEntryError(ChannelMapError):
    """A map entry has no ':' separator."""


class EmptyChannelNameError(ChannelMapError):
    """A map entry has an empty source or target."""


class SelfMigrationError(ChannelMapError):
    """A map entry migrates a channel onto itself."""


class DuplicateSourceError(ChannelMapError):
    """A source channel appears more than once in the map."""


# Directory errors come from the infrastructure layer.


class DirectoryError(MigratorError):
    """Reading or writing instance/channel state failed."""


class KubernetesApiError(DirectoryError):
    """The Kubernetes API returned an unexpected response."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class InstanceNotFoundError(DirectoryError):
    """The named Unleash instance does not exist."""


class ChannelNotFoundError(DirectoryError):
    """The named release channel does not exist."""


class InvalidInstanceConfigError(MigratorError):
    """An instance configuration failed validation."""


# Per-candidate lifecycle errors.


class HealthCheckTimeoutError(MigratorError):
    """The instance did not become ready before the deadline."""

    def __init__(self, instance_name: str, timeout: float):
        super().__init__(
            f"health check timed out for instance {instance_name} after {timeout:g}s"
        )
        self.instance_name = instance_name
        self.timeout = timeout


class MigrationCancelled(MigratorError):
    """The batch was cancelled while waiting."""


class RollbackError(MigratorError):
    """Restoring an instance's original version source failed."""


class InvalidTransitionError(MigratorError):
    """A migration state transition is not allowed."""
