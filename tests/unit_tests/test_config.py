"""
Unit tests for configuration.
"""

import unittest
from argparse import Namespace

from config import MigratorConfig, parse_bool, parse_duration
from errors import ConfigurationError


class TestParseDuration(unittest.TestCase):
    """Test duration parsing."""

    def test_plain_seconds(self):
        self.assertEqual(parse_duration("300"), 300.0)
        self.assertEqual(parse_duration("0.5"), 0.5)

    def test_units(self):
        self.assertEqual(parse_duration("30s"), 30.0)
        self.assertEqual(parse_duration("5m"), 300.0)
        self.assertEqual(parse_duration("1h30m"), 5400.0)
        self.assertAlmostEqual(parse_duration("250ms"), 0.25)

    def test_invalid(self):
        for value in ("", "abc", "5 minutes", "10x", "-5"):
            with self.subTest(value=value):
                with self.assertRaises(ConfigurationError):
                    parse_duration(value)


class TestParseBool(unittest.TestCase):
    """Test boolean parsing."""

    def test_values(self):
        self.assertTrue(parse_bool("true"))
        self.assertTrue(parse_bool("TRUE"))
        self.assertTrue(parse_bool("1"))
        self.assertFalse(parse_bool("false"))
        self.assertFalse(parse_bool(""))

    def test_invalid(self):
        with self.assertRaises(ConfigurationError):
            parse_bool("maybe")


class TestMigratorConfig(unittest.TestCase):
    """Test MigratorConfig data model."""

    def test_config_defaults(self):
        """Test default configuration values."""
        config = MigratorConfig(instance_namespace="unleash")
        self.assertEqual(config.api_server, "https://kubernetes.default.svc")
        self.assertFalse(config.migration_enabled)
        self.assertFalse(config.channel_migration_enabled)
        self.assertEqual(config.migration_health_timeout, 300.0)
        self.assertEqual(config.migration_delay, 30.0)
        self.assertEqual(config.poll_interval, 10.0)
        self.assertFalse(config.dry_run)
        self.assertIsNone(config.report_path)

    def test_config_from_args(self):
        """Test creating config from command-line arguments."""
        args = Namespace(
            namespace="unleash",
            api_server="https://10.0.0.1",
            ca_cert="/ca.crt",
            migrate_to_channel="stable",
            channel_map=None,
            health_check_timeout=120.0,
            migration_delay=5.0,
            poll_interval=2.0,
            dry_run=True,
            report="report.json",
            verbose=True,
        )
        config = MigratorConfig.from_args(args)

        self.assertEqual(config.instance_namespace, "unleash")
        self.assertEqual(config.ca_cert_path, "/ca.crt")
        self.assertTrue(config.migration_enabled)
        self.assertEqual(config.migration_target_channel, "stable")
        self.assertFalse(config.channel_migration_enabled)
        self.assertEqual(config.migration_health_timeout, 120.0)
        self.assertEqual(config.channel_migration_health_timeout, 120.0)
        self.assertEqual(config.migration_delay, 5.0)
        self.assertEqual(config.poll_interval, 2.0)
        self.assertTrue(config.dry_run)
        self.assertEqual(config.report_path, "report.json")

    def test_config_from_args_requires_namespace(self):
        args = Namespace(namespace=None)
        with self.assertRaises(ConfigurationError):
            MigratorConfig.from_args(args)

    def test_config_from_env(self):
        """Test creating config from BIFROST_* variables."""
        environ = {
            "BIFROST_UNLEASH_INSTANCE_NAMESPACE": "bifrost-unleash",
            "BIFROST_UNLEASH_MIGRATION_ENABLED": "true",
            "BIFROST_UNLEASH_MIGRATION_TARGET_CHANNEL": " stable ",
            "BIFROST_UNLEASH_MIGRATION_HEALTH_TIMEOUT": "2m",
            "BIFROST_UNLEASH_CHANNEL_MIGRATION_ENABLED": "true",
            "BIFROST_UNLEASH_CHANNEL_MIGRATION_MAP": "stable-v5:stable-v6",
            "BIFROST_UNLEASH_CHANNEL_MIGRATION_DELAY": "1m",
            "BIFROST_UNLEASH_MIGRATION_DRY_RUN": "1",
        }
        config = MigratorConfig.from_env(environ)

        self.assertEqual(config.instance_namespace, "bifrost-unleash")
        self.assertTrue(config.migration_enabled)
        self.assertEqual(config.migration_target_channel, "stable")
        self.assertEqual(config.migration_health_timeout, 120.0)
        self.assertEqual(config.migration_delay, 30.0)
        self.assertTrue(config.channel_migration_enabled)
        self.assertEqual(config.channel_migration_map, "stable-v5:stable-v6")
        self.assertEqual(config.channel_migration_delay, 60.0)
        self.assertEqual(config.channel_migration_health_timeout, 300.0)
        self.assertTrue(config.dry_run)
        self.assertEqual(config.api_server, "https://kubernetes.default.svc")

    def test_config_from_env_requires_namespace(self):
        with self.assertRaises(ConfigurationError):
            MigratorConfig.from_env({})

    def test_config_from_env_invalid_duration(self):
        environ = {
            "BIFROST_UNLEASH_INSTANCE_NAMESPACE": "unleash",
            "BIFROST_UNLEASH_MIGRATION_DELAY": "soon",
        }
        with self.assertRaises(ConfigurationError):
            MigratorConfig.from_env(environ)


if __name__ == "__main__":
    unittest.main()
