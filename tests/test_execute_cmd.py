# Unless explicitly stated otherwise all files in this repository are licensed under the Apache-2 License.

# This product includes software developed at Datadog (https://www.datadoghq.com/) Copyright 2025 Datadog, Inc.

from subprocess import CalledProcessError
from unittest import TestCase
from unittest.mock import Mock
from unittest.mock import patch as mock_patch

from az_shared.az_cmd import AzCmd
from az_shared.errors import (
    AccessError,
    AzCliNotInstalledError,
    ConflictError,
    InteractiveAuthenticationRequiredError,
    PolicyError,
    RateLimitExceededError,
    RefreshTokenError,
    ResourceNotFoundError,
    UserActionRequiredError,
)
from az_shared.execute_cmd import (
    AUTH_FAILED_ERROR,
    MAX_RETRIES,
    REFRESH_TOKEN_EXPIRED_ERROR,
    check_access_error,
    execute,
    execute_interactive,
    execute_json,
)

VERSION_INFO = "\naz version:\n{}\npython version: 3.11.9"
EXAMPLE_POLICY_ERROR = "Resource 'dcr-obsidian-sentinel' was disallowed by policy 'Allowed locations'."


def called_process_error(stderr: str, stdout: str = "") -> CalledProcessError:
    error = CalledProcessError(1, "az")
    error.stderr = stderr
    error.stdout = stdout
    return error


def completed(stdout: str) -> Mock:
    result = Mock()
    result.stdout = stdout
    result.returncode = 0
    return result


class CmdExecutionTestCase(TestCase):
    """Base class for command execution tests with common setup"""

    def patch(self, path: str, **kwargs):
        """Helper method to patch and auto-cleanup"""
        patcher = mock_patch(path, **kwargs)
        self.addCleanup(patcher.stop)
        return patcher.start()

    def setUp(self) -> None:
        self.subprocess_mock = self.patch("az_shared.execute_cmd.subprocess.run")
        self.sleep_mock = self.patch("az_shared.execute_cmd.sleep")
        self.version_mock = self.patch(
            "az_shared.execute_cmd.get_az_and_python_version", return_value=VERSION_INFO
        )
        self.cmd = AzCmd("role assignment", "create").param("--scope", "/subscriptions/x")

    def assert_has_az_version(self, exc: BaseException) -> None:
        self.assertIn("az version", exc.args[0])


class TestExecute(CmdExecutionTestCase):
    def test_execute_success(self):
        """Test successful command execution"""
        self.subprocess_mock.return_value = completed("success output")

        result = execute(self.cmd)

        self.assertEqual(result, "success output")
        self.subprocess_mock.assert_called_once_with(
            str(self.cmd), shell=True, check=True, capture_output=True, text=True
        )

    def test_execute_authorization_error(self):
        self.subprocess_mock.side_effect = called_process_error(
            f"({AUTH_FAILED_ERROR}) The client 'ops@contoso.us' with object id '0000' does not have authorization "
            "to perform action 'Microsoft.Insights/dataCollectionRules/write' over scope '/subscriptions/x' "
            "or the scope is invalid."
        )

        with self.assertRaises(AccessError) as ctx:
            execute(self.cmd)

        self.assertIsInstance(ctx.exception, UserActionRequiredError)
        self.assertIn("Microsoft.Insights/dataCollectionRules/write", str(ctx.exception))
        self.assert_has_az_version(ctx.exception)

    def test_execute_refresh_token_error(self):
        self.subprocess_mock.side_effect = called_process_error(f"{REFRESH_TOKEN_EXPIRED_ERROR}: Token expired")

        with self.assertRaises(RefreshTokenError) as ctx:
            execute(self.cmd)
        self.assert_has_az_version(ctx.exception)

    def test_execute_resource_not_found_error(self):
        self.subprocess_mock.side_effect = called_process_error("(ResourceNotFound) The resource was not found")

        with self.assertRaises(ResourceNotFoundError):
            execute(self.cmd)

    def test_execute_workspace_not_found_error(self):
        self.subprocess_mock.side_effect = called_process_error("(WorkspaceNotFound) Workspace law-x not found")

        with self.assertRaises(ResourceNotFoundError):
            execute(self.cmd)

    def test_execute_role_assignment_exists_is_conflict(self):
        self.subprocess_mock.side_effect = called_process_error(
            "(RoleAssignmentExists) The role assignment already exists."
        )

        with self.assertRaises(ConflictError):
            execute(self.cmd)

    def test_execute_conflict_even_when_can_fail(self):
        """Conflicts are typed outcomes, never swallowed by can_fail"""
        self.subprocess_mock.side_effect = called_process_error("(Conflict) already exists")

        with self.assertRaises(ConflictError):
            execute(self.cmd, can_fail=True)

    def test_execute_policy_error(self):
        self.subprocess_mock.side_effect = called_process_error(
            f"ERROR: (RequestDisallowedByPolicy) {EXAMPLE_POLICY_ERROR}"
        )

        with self.assertRaises(PolicyError) as ctx:
            execute(self.cmd)
        self.assertIn(EXAMPLE_POLICY_ERROR, str(ctx.exception))

    def test_execute_az_not_installed(self):
        self.subprocess_mock.side_effect = called_process_error("/bin/sh: 1: az: not found")

        with self.assertRaises(AzCliNotInstalledError):
            execute(self.cmd)

    def test_execute_user_action_message_carries_versions(self):
        """Test the remediation text shown to the operator includes the az and python versions"""
        self.subprocess_mock.side_effect = called_process_error(
            f"ERROR: (RequestDisallowedByPolicy) {EXAMPLE_POLICY_ERROR}"
        )

        with self.assertRaises(PolicyError) as ctx:
            execute(self.cmd)

        self.assertIn("Azure Policy", ctx.exception.user_action_message)
        self.assertTrue(ctx.exception.user_action_message.endswith(VERSION_INFO))

    def test_execute_interactive_authentication_required(self):
        self.subprocess_mock.side_effect = called_process_error(
            "Run the command below to authenticate interactively; additional arguments may be added as needed:\n"
            "az logout\n"
            "az login --tenant 1111 --scope https://graph.microsoft.us//.default\n"
        )

        with self.assertRaises(InteractiveAuthenticationRequiredError) as ctx:
            execute(self.cmd)

        self.assertEqual(
            ctx.exception.commands, ["az logout", "az login --tenant 1111 --scope https://graph.microsoft.us//.default"]
        )
        self.assertIn("az login --tenant 1111", ctx.exception.user_action_message)

    def test_execute_rate_limit_error_with_retry(self):
        """Test execute retries on rate limit errors"""
        self.subprocess_mock.side_effect = [
            called_process_error("TooManyRequests: Rate limit exceeded"),
            completed("success after retry"),
        ]

        result = execute(self.cmd)

        self.assertEqual(result, "success after retry")
        self.assertEqual(self.subprocess_mock.call_count, 2)
        self.sleep_mock.assert_called_once_with(2)

    def test_execute_rate_limit_max_retries(self):
        self.subprocess_mock.side_effect = called_process_error("TooManyRequests: Rate limit exceeded")

        with self.assertRaises(RateLimitExceededError):
            execute(self.cmd)

        self.assertEqual(self.subprocess_mock.call_count, MAX_RETRIES)
        self.assertEqual(self.sleep_mock.call_count, MAX_RETRIES - 1)

    def test_execute_unknown_error_raises_runtime_error(self):
        self.subprocess_mock.side_effect = called_process_error("something unexpected", "partial")

        with self.assertRaises(RuntimeError) as ctx:
            execute(self.cmd)

        self.assertIn("something unexpected", str(ctx.exception))
        self.assert_has_az_version(ctx.exception)

    def test_execute_unknown_error_can_fail(self):
        self.subprocess_mock.side_effect = called_process_error("Please run 'az login' to setup account.")

        self.assertEqual(execute(self.cmd, can_fail=True), "")

    def test_execute_json(self):
        self.subprocess_mock.return_value = completed('{"appId": "abc"}')

        self.assertEqual(execute_json(self.cmd), {"appId": "abc"})

    def test_execute_json_empty_output(self):
        self.subprocess_mock.return_value = completed("")

        self.assertIsNone(execute_json(self.cmd))

    def test_execute_interactive_does_not_capture_output(self):
        self.subprocess_mock.return_value = Mock(returncode=0)

        self.assertEqual(execute_interactive(AzCmd("login", "")), 0)
        self.subprocess_mock.assert_called_once_with("az login", shell=True)


class TestCheckAccessError(TestCase):
    def test_parses_client_action_and_scope(self):
        stderr = (
            "(AuthorizationFailed) The client 'ops@contoso.us' with object id '0' does not have authorization to "
            "perform action 'Microsoft.Authorization/roleAssignments/write' over scope '/subscriptions/x' or the "
            "scope is invalid."
        )

        self.assertEqual(
            check_access_error(stderr),
            "Insufficient permissions for ops@contoso.us to perform Microsoft.Authorization/roleAssignments/write "
            "on /subscriptions/x",
        )

    def test_returns_none_without_details(self):
        self.assertIsNone(check_access_error("(AuthorizationFailed) denied"))
