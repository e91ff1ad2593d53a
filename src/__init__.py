"""
Unleash Fleet Migrator.
"""

from channel_map import parse_channel_migration_map
from clients import KubernetesRestClient
from config import MigratorConfig
from directory import ReleaseChannelDirectory, UnleashDirectory
from engine import MigrationEngine
from health import HealthGate
from log_utils import setup_logging
from models import (
    Channel,
    Instance,
    InstanceConfig,
    MigrationCandidate,
    MigrationStatus,
    MigrationSummary,
    VersionSource,
)
from reconciler import ChannelMigrationReconciler, ReleaseChannelReconciler
from state import StateTracker

__all__ = [
    "parse_channel_migration_map",
    "KubernetesRestClient",
    "MigratorConfig",
    "ReleaseChannelDirectory",
    "UnleashDirectory",
    "MigrationEngine",
    "HealthGate",
    "setup_logging",
    "Channel",
    "Instance",
    "InstanceConfig",
    "MigrationCandidate",
    "MigrationStatus",
    "MigrationSummary",
    "VersionSource",
    "ChannelMigrationReconciler",
    "ReleaseChannelReconciler",
    "StateTracker",
]
