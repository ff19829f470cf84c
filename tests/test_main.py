# Unless explicitly stated otherwise all files in this repository are licensed under the Apache-2 License.

# This product includes software developed at Datadog (https://www.datadoghq.com/) Copyright 2025 Datadog, Inc.

import json
import os
import tempfile
from unittest import TestCase
from unittest.mock import patch as mock_patch

from az_shared.errors import AccessError, DeploymentError, MissingConfigurationError
from sentinel_connector_install.main import get_output_dir, main, parse_arguments
from sentinel_connector_install.provision import ProvisioningResult
from tests.test_data import (
    CLIENT_SECRET,
    DCR_IMMUTABLE_ID,
    FLAT_DOCUMENT,
    TENANT_ID,
    WORKSPACE_ID,
    get_test_app_registration,
    get_test_config,
    get_test_dcr,
    get_test_session,
)


class TestParseArguments(TestCase):
    def test_defaults(self):
        args = parse_arguments([])

        self.assertEqual(args.config, "sentinel_config.json")
        self.assertFalse(args.interactive)
        self.assertIsNone(args.output_dir)
        self.assertEqual(args.log_level, "INFO")

    def test_all_arguments(self):
        args = parse_arguments(["-c", "/etc/sentinel.json", "-i", "--output-dir", "/tmp/out", "--log-level", "DEBUG"])

        self.assertEqual(args.config, "/etc/sentinel.json")
        self.assertTrue(args.interactive)
        self.assertEqual(args.output_dir, "/tmp/out")
        self.assertEqual(args.log_level, "DEBUG")

    def test_invalid_log_level(self):
        with self.assertRaises(SystemExit):
            parse_arguments(["--log-level", "TRACE"])

    def test_get_output_dir(self):
        self.assertEqual(get_output_dir("/etc/sentinel/config.json", None), "/etc/sentinel")
        self.assertEqual(get_output_dir("/etc/sentinel/config.json", "/tmp/out"), "/tmp/out")


class TestMain(TestCase):
    def patch(self, path: str, **kwargs):
        """Helper method to patch and auto-cleanup"""
        patcher = mock_patch(path, **kwargs)
        self.addCleanup(patcher.stop)
        return patcher.start()

    def setUp(self) -> None:
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.tmp_dir = tmp.name
        self.config_path = os.path.join(self.tmp_dir, "sentinel_config.json")
        with open(self.config_path, "w", encoding="utf-8") as f:
            json.dump(FLAT_DOCUMENT, f)

        self.log_mock = self.patch("sentinel_connector_install.main.log")
        self.patch("sentinel_connector_install.main.log_header")
        self.patch("sentinel_connector_install.main.configure_logging")
        self.print_mock = self.patch("sentinel_connector_install.reporter.print", create=True)
        self.patch("sentinel_connector_install.reporter.log")
        self.connect_mock = self.patch("sentinel_connector_install.main.connect", return_value=get_test_session())
        self.provision_mock = self.patch(
            "sentinel_connector_install.main.provision",
            return_value=ProvisioningResult(
                tenant_id=TENANT_ID,
                workspace_id=WORKSPACE_ID,
                app_registration=get_test_app_registration(),
                tables=[],
                dcr=get_test_dcr(),
            ),
        )

    def report_files(self) -> list[str]:
        return [name for name in os.listdir(self.tmp_dir) if name.startswith("obsidian-sentinel-credentials-")]

    def test_main_success(self):
        """Test a full run prints and saves the credential report beside the configuration"""
        self.assertEqual(main(["--config", self.config_path]), 0)

        self.connect_mock.assert_called_once_with(get_test_config())
        self.provision_mock.assert_called_once_with(get_test_session(), get_test_config())
        (report_file,) = self.report_files()
        with open(os.path.join(self.tmp_dir, report_file), encoding="utf-8") as f:
            report = f.read()
        self.assertIn(CLIENT_SECRET, report)
        self.assertIn(DCR_IMMUTABLE_ID, report)
        printed = "".join(str(call.args[0]) for call in self.print_mock.call_args_list if call.args)
        self.assertIn(CLIENT_SECRET, printed)

    def test_main_output_dir(self):
        output_dir = os.path.join(self.tmp_dir, "reports")

        self.assertEqual(main(["--config", self.config_path, "--output-dir", output_dir]), 0)

        self.assertEqual(len(os.listdir(output_dir)), 1)
        self.assertEqual(self.report_files(), [])

    def test_main_missing_configuration(self):
        missing_path = os.path.join(self.tmp_dir, "missing.json")

        self.assertEqual(main(["--config", missing_path]), 1)

        self.connect_mock.assert_not_called()
        self.log_mock.error.assert_called_once_with(MissingConfigurationError(missing_path).user_action_message)

    def test_main_invalid_configuration_makes_no_azure_calls(self):
        with open(self.config_path, "w", encoding="utf-8") as f:
            json.dump({"SubscriptionId": "sub"}, f)

        self.assertEqual(main(["--config", self.config_path]), 1)

        self.connect_mock.assert_not_called()
        self.provision_mock.assert_not_called()

    def test_main_user_action_required(self):
        self.provision_mock.side_effect = AccessError("Insufficient permissions")

        self.assertEqual(main(["--config", self.config_path]), 1)

        logged = self.log_mock.error.call_args.args[0]
        self.assertIn("Application Administrator", logged)
        self.assertEqual(self.report_files(), [])

    def test_main_fatal_error(self):
        self.provision_mock.side_effect = DeploymentError("Deployment finished in state 'Failed'")

        self.assertEqual(main(["--config", self.config_path]), 1)

        self.assertIn("Failed with error", self.log_mock.error.call_args_list[0].args[0])
        self.assertEqual(self.report_files(), [])

    def test_main_interrupted(self):
        self.connect_mock.side_effect = KeyboardInterrupt()

        self.assertEqual(main(["--config", self.config_path]), 130)
