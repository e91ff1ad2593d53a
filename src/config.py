"""
Configuration management for the Unleash Fleet Migrator.
"""

import os
import re
from dataclasses import dataclass
from typing import Mapping, Optional

from errors import ConfigurationError

DURATION_PART_RE = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")
DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}

ENV_PREFIX = "BIFROST_"


def parse_duration(value: str) -> float:
    """
    Parse a duration into seconds.

    Accepts plain numbers (seconds) or unit strings such as ``300ms``,
    ``30s``, ``5m`` or ``1h30m``.

    Raises:
        ConfigurationError: If the value cannot be parsed
    """
    text = str(value).strip()
    if not text:
        raise ConfigurationError("empty duration")
    try:
        seconds = float(text)
    except ValueError:
        pass
    else:
        if seconds < 0:
            raise ConfigurationError(f"negative duration: {value!r}")
        return seconds

    pos = 0
    total = 0.0
    for match in DURATION_PART_RE.finditer(text):
        if match.start() != pos:
            break
        total += float(match.group(1)) * DURATION_UNITS[match.group(2)]
        pos = match.end()

    if pos != len(text) or pos == 0:
        raise ConfigurationError(f"invalid duration: {value!r}")
    return total


def parse_bool(value: str) -> bool:
    """Parse a boolean environment value."""
    text = str(value).strip().lower()
    if text in ("true", "1", "yes"):
        return True
    if text in ("false", "0", "no", ""):
        return False
    raise ConfigurationError(f"invalid boolean: {value!r}")


@dataclass
class MigratorConfig:
    """Configuration for fleet migration runs."""

    instance_namespace: str
    api_server: str = "https://kubernetes.default.svc"
    ca_cert_path: Optional[str] = None

    # custom version -> release channel
    migration_enabled: bool = False
    migration_target_channel: str = ""
    migration_health_timeout: float = 300.0
    migration_delay: float = 30.0

    # release channel -> release channel
    channel_migration_enabled: bool = False
    channel_migration_map: str = ""
    channel_migration_health_timeout: float = 300.0
    channel_migration_delay: float = 30.0

    poll_interval: float = 10.0
    dry_run: bool = False
    report_path: Optional[str] = None
    verbose: bool = False

    @classmethod
    def from_args(cls, args) -> "MigratorConfig":
        """
        Create configuration from command-line arguments.

        Args:
            args: Parsed argparse arguments

        Returns:
            MigratorConfig instance
        """
        if not args.namespace:
            raise ConfigurationError("--namespace is required")
        return cls(
            instance_namespace=args.namespace,
            api_server=args.api_server,
            ca_cert_path=args.ca_cert,
            migration_enabled=bool(args.migrate_to_channel),
            migration_target_channel=args.migrate_to_channel or "",
            migration_health_timeout=args.health_check_timeout,
            migration_delay=args.migration_delay,
            channel_migration_enabled=bool(args.channel_map),
            channel_migration_map=args.channel_map or "",
            channel_migration_health_timeout=args.health_check_timeout,
            channel_migration_delay=args.migration_delay,
            poll_interval=args.poll_interval,
            dry_run=args.dry_run,
            report_path=args.report,
            verbose=args.verbose,
        )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "MigratorConfig":
        """
        Create configuration from BIFROST_* environment variables.

        Args:
            environ: Environment mapping (defaults to os.environ)

        Returns:
            MigratorConfig instance

        Raises:
            ConfigurationError: If a required variable is missing or a value is invalid
        """
        env = os.environ if environ is None else environ

        def get(key: str, default: str = "") -> str:
            return env.get(ENV_PREFIX + key, default)

        namespace = get("UNLEASH_INSTANCE_NAMESPACE")
        if not namespace:
            raise ConfigurationError(
                f"{ENV_PREFIX}UNLEASH_INSTANCE_NAMESPACE is required"
            )

        return cls(
            instance_namespace=namespace,
            api_server=get("KUBERNETES_API_SERVER", cls.api_server),
            ca_cert_path=get("KUBERNETES_CA_CERT") or None,
            migration_enabled=parse_bool(get("UNLEASH_MIGRATION_ENABLED", "false")),
            migration_target_channel=get("UNLEASH_MIGRATION_TARGET_CHANNEL").strip(),
            migration_health_timeout=parse_duration(
                get("UNLEASH_MIGRATION_HEALTH_TIMEOUT", "5m")
            ),
            migration_delay=parse_duration(get("UNLEASH_MIGRATION_DELAY", "30s")),
            channel_migration_enabled=parse_bool(
                get("UNLEASH_CHANNEL_MIGRATION_ENABLED", "false")
            ),
            channel_migration_map=get("UNLEASH_CHANNEL_MIGRATION_MAP"),
            channel_migration_health_timeout=parse_duration(
                get("UNLEASH_CHANNEL_MIGRATION_HEALTH_TIMEOUT", "5m")
            ),
            channel_migration_delay=parse_duration(
                get("UNLEASH_CHANNEL_MIGRATION_DELAY", "30s")
            ),
            dry_run=parse_bool(get("UNLEASH_MIGRATION_DRY_RUN", "false")),
            verbose=parse_bool(get("DEBUG", "false")),
        )
