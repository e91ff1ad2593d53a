"""
Unit tests for CLI module.
"""

import threading
import unittest
from unittest.mock import MagicMock, patch

from cli import EXIT_CONFIG_ERROR, EXIT_ISSUES, EXIT_OK, build_parser, main, run_reconcilers
from errors import DirectoryError, MigrationConfigError
from models import MigrationSummary


class TestCLI(unittest.TestCase):
    """Test CLI argument parsing and entry point."""

    def test_build_parser_creates_parser(self):
        """Test parser is created with expected defaults."""
        parser = build_parser()

        args = parser.parse_args(["--namespace", "unleash"])

        self.assertEqual(args.namespace, "unleash")
        self.assertEqual(args.api_server, "https://kubernetes.default.svc")
        self.assertEqual(args.health_check_timeout, 300.0)
        self.assertEqual(args.migration_delay, 30.0)
        self.assertEqual(args.poll_interval, 10.0)
        self.assertFalse(args.dry_run)
        self.assertFalse(args.from_env)

    def test_parser_with_all_options(self):
        """Test parser handles all command-line options."""
        parser = build_parser()

        args = parser.parse_args(
            [
                "--namespace",
                "unleash",
                "--api-server",
                "https://10.0.0.1",
                "--ca-cert",
                "/ca.crt",
                "--migrate-to-channel",
                "stable",
                "--channel-map",
                "stable-v5:stable-v6",
                "--health-check-timeout",
                "2m",
                "--migration-delay",
                "10s",
                "--poll-interval",
                "5",
                "--dry-run",
                "--report",
                "report.json",
                "--log-file",
                "migrator.log",
                "--json-logs",
                "--verbose",
            ]
        )

        self.assertEqual(args.migrate_to_channel, "stable")
        self.assertEqual(args.channel_map, "stable-v5:stable-v6")
        self.assertEqual(args.health_check_timeout, 120.0)
        self.assertEqual(args.migration_delay, 10.0)
        self.assertEqual(args.poll_interval, 5.0)
        self.assertTrue(args.dry_run)
        self.assertEqual(args.report, "report.json")
        self.assertEqual(args.log_file, "migrator.log")
        self.assertTrue(args.json_logs)
        self.assertTrue(args.verbose)

    def test_parser_rejects_bad_duration(self):
        """Test invalid durations are reported as usage errors."""
        parser = build_parser()

        with self.assertRaises(SystemExit):
            parser.parse_args(["--namespace", "unleash", "--migration-delay", "soon"])

    @patch("cli.setup_logging")
    def test_main_requires_namespace(self, mock_setup_logging):
        """Test main returns the configuration exit code without a namespace."""
        self.assertEqual(main(["--migrate-to-channel", "stable"]), EXIT_CONFIG_ERROR)

    @patch("cli.install_signal_handlers")
    @patch("cli.run_reconcilers")
    @patch("cli.KubernetesRestClient")
    @patch("cli.setup_logging")
    def test_main_success(
        self, mock_setup_logging, mock_client_class, mock_run, mock_signals
    ):
        """Test main wires the client and both reconcilers."""
        mock_run.return_value = ([MigrationSummary(candidates=2, completed=2)], [])

        result = main(["--namespace", "unleash", "--migrate-to-channel", "stable"])

        self.assertEqual(result, EXIT_OK)
        mock_client_class.assert_called_once_with(
            api_server="https://kubernetes.default.svc",
            namespace="unleash",
            ca_cert_path=None,
        )
        reconcilers, stop_event = mock_run.call_args[0]
        self.assertEqual(
            [type(r).__name__ for r in reconcilers],
            ["ReleaseChannelReconciler", "ChannelMigrationReconciler"],
        )
        self.assertIsInstance(stop_event, threading.Event)
        mock_signals.assert_called_once_with(stop_event)

    @patch("cli.install_signal_handlers")
    @patch("cli.run_reconcilers")
    @patch("cli.KubernetesRestClient")
    @patch("cli.setup_logging")
    def test_main_returns_issue_exit_code(
        self, mock_setup_logging, mock_client_class, mock_run, mock_signals
    ):
        """Test main returns exit code 1 when a batch had issues."""
        mock_run.return_value = (
            [MigrationSummary(candidates=2, completed=1, rolled_back=1)],
            [],
        )

        result = main(["--namespace", "unleash", "--migrate-to-channel", "stable"])

        self.assertEqual(result, EXIT_ISSUES)

    @patch("cli.install_signal_handlers")
    @patch("cli.run_reconcilers")
    @patch("cli.KubernetesRestClient")
    @patch("cli.setup_logging")
    def test_main_configuration_error_wins_over_other_summary(
        self, mock_setup_logging, mock_client_class, mock_run, mock_signals
    ):
        mock_run.return_value = (
            [MigrationSummary(candidates=1, completed=1)],
            [MigrationConfigError("bad map")],
        )

        result = main(
            ["--namespace", "unleash", "--migrate-to-channel", "stable", "--channel-map", "a:a"]
        )

        self.assertEqual(result, EXIT_CONFIG_ERROR)

    @patch("cli.install_signal_handlers")
    @patch("cli.run_reconcilers")
    @patch("cli.KubernetesRestClient")
    @patch("cli.setup_logging")
    def test_main_interrupted_is_an_issue(
        self, mock_setup_logging, mock_client_class, mock_run, mock_signals
    ):
        mock_run.return_value = ([MigrationSummary(candidates=3, completed=1, interrupted=True)], [])

        self.assertEqual(
            main(["--namespace", "unleash", "--migrate-to-channel", "stable"]), EXIT_ISSUES
        )

    @patch("cli.install_signal_handlers")
    @patch("cli.run_reconcilers")
    @patch("cli.KubernetesRestClient")
    @patch("cli.setup_logging")
    def test_main_configuration_error(
        self, mock_setup_logging, mock_client_class, mock_run, mock_signals
    ):
        """Test a rejected configuration maps to exit code 2."""
        mock_run.return_value = ([], [MigrationConfigError("target channel not found")])

        result = main(["--namespace", "unleash", "--migrate-to-channel", "nightly"])

        self.assertEqual(result, EXIT_CONFIG_ERROR)

    @patch("cli.install_signal_handlers")
    @patch("cli.run_reconcilers")
    @patch("cli.KubernetesRestClient")
    @patch("cli.setup_logging")
    def test_main_directory_error(
        self, mock_setup_logging, mock_client_class, mock_run, mock_signals
    ):
        mock_run.return_value = ([], [DirectoryError("list failed")])

        result = main(["--namespace", "unleash", "--migrate-to-channel", "stable"])

        self.assertEqual(result, EXIT_ISSUES)

    @patch("cli.install_signal_handlers")
    @patch("cli.run_reconcilers")
    @patch("cli.KubernetesRestClient")
    @patch("cli.setup_logging")
    def test_main_from_env(
        self, mock_setup_logging, mock_client_class, mock_run, mock_signals
    ):
        """Test --from-env reads BIFROST_* variables."""
        mock_run.return_value = ([], [])
        environ = {
            "BIFROST_UNLEASH_INSTANCE_NAMESPACE": "bifrost-unleash",
            "BIFROST_UNLEASH_MIGRATION_ENABLED": "true",
            "BIFROST_UNLEASH_MIGRATION_TARGET_CHANNEL": "stable",
        }

        with patch.dict("os.environ", environ, clear=True):
            result = main(["--from-env", "--dry-run"])

        self.assertEqual(result, EXIT_OK)
        reconcilers = mock_run.call_args[0][0]
        config = reconcilers[0].config
        self.assertEqual(config.instance_namespace, "bifrost-unleash")
        self.assertTrue(config.migration_enabled)
        self.assertTrue(config.dry_run)

    @patch("cli.setup_logging")
    def test_main_from_env_missing_namespace(self, mock_setup_logging):
        with patch.dict("os.environ", {}, clear=True):
            self.assertEqual(main(["--from-env"]), EXIT_CONFIG_ERROR)


class TestRunReconcilers(unittest.TestCase):
    """Test concurrent execution of enabled variants."""

    def reconciler(self, enabled, summary=None, name="Migration reconciler"):
        r = MagicMock()
        r.enabled = enabled
        r.name = name
        r.run.return_value = summary
        return r

    def test_runs_only_enabled(self):
        stop_event = threading.Event()
        first = self.reconciler(True, MigrationSummary(candidates=1, completed=1))
        second = self.reconciler(False)

        summaries, errors = run_reconcilers([first, second], stop_event)

        self.assertEqual(len(summaries), 1)
        self.assertEqual(errors, [])
        first.run.assert_called_once_with(stop_event)
        second.run.assert_not_called()

    def test_nothing_enabled(self):
        self.assertEqual(
            run_reconcilers([self.reconciler(False)], threading.Event()), ([], [])
        )

    def test_aborted_variant_keeps_other_summary(self):
        """Test one variant's configuration error does not hide the other's outcome."""
        failing = self.reconciler(True, name="Channel migration reconciler")
        failing.run.side_effect = MigrationConfigError("bad map")
        ok = self.reconciler(True, MigrationSummary(candidates=2, completed=1, rolled_back=1))

        with self.assertLogs("cli", level="ERROR") as logs:
            summaries, errors = run_reconcilers([ok, failing], threading.Event())

        self.assertEqual(len(summaries), 1)
        self.assertEqual(summaries[0].rolled_back, 1)
        self.assertEqual(len(errors), 1)
        self.assertIsInstance(errors[0], MigrationConfigError)
        self.assertTrue(any("Channel migration reconciler aborted" in line for line in logs.output))

    def test_unexpected_errors_propagate(self):
        failing = self.reconciler(True)
        failing.run.side_effect = RuntimeError("bug")

        with self.assertRaises(RuntimeError):
            run_reconcilers([failing], threading.Event())


if __name__ == "__main__":
    unittest.main()
