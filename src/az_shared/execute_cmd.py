# Unless explicitly stated otherwise all files in this repository are licensed under the Apache-2 License.

# This product includes software developed at Datadog (https://www.datadoghq.com/) Copyright 2025 Datadog, Inc.

import json
import re
import subprocess
import sys
from re import search
from time import sleep
from typing import Any, Optional

from .az_cmd import Cmd
from .errors import (
    AccessError,
    AzCliNotInstalledError,
    ConflictError,
    DisabledSubscriptionError,
    InteractiveAuthenticationRequiredError,
    PolicyError,
    RateLimitExceededError,
    RefreshTokenError,
    ResourceNotFoundError,
    UserActionRequiredError,
)
from .logs import log

AUTH_FAILED_ERROR = "AuthorizationFailed"
PERMISSION_REQUIRED_ERROR = "permission is needed"
AZURE_THROTTLING_ERRORS = ["TooManyRequests", "Too Many Requests", "ResourceCollectionRequestsThrottled"]
REFRESH_TOKEN_EXPIRED_ERROR = "AADSTS700082"
RESOURCE_NOT_FOUND_ERRORS = ["ResourceNotFound", "ResourceGroupNotFound", "WorkspaceNotFound"]
CONFLICT_ERRORS = ["RoleAssignmentExists", "(Conflict)"]
POLICY_ERROR = "RequestDisallowedByPolicy"
DISABLED_SUBSCRIPTION_ERROR = "DisabledSubscription"
AZ_NOT_INSTALLED_ERRORS = ["az: command not found", "az: not found", "'az' is not recognized"]

INITIAL_RETRY_DELAY = 2  # seconds
RETRY_DELAY_MULTIPLIER = 2
MAX_RETRIES = 7
AZ_VERS_TIMEOUT = 5  # seconds


def get_az_and_python_version(timeout: int = AZ_VERS_TIMEOUT) -> str:
    """Return the az and python versions on success, otherwise a failure string."""
    python_version = sys.version_info
    python_result = f"python version: {python_version[0]}.{python_version[1]}.{python_version[2]}"
    try:
        res = subprocess.run(
            ["az", "version", "--output", "json"],
            check=True,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
        az_result = f"az version:\n{res.stdout.strip()}"
    except FileNotFoundError:
        az_result = "Could not retrieve 'az version': 'az' executable not found"
    except subprocess.TimeoutExpired:
        az_result = f"Could not retrieve 'az version': timeout after {timeout}s"
    except Exception as e:
        az_result = f"Could not retrieve 'az version': {e}"
    return f"\n{az_result}\n{python_result}"


def check_access_error(stderr: str) -> Optional[str]:
    # Sample:
    # (AuthorizationFailed) The client 'user@contoso.us' with object id '00000000-0000-0000-0000-000000000000'
    # does not have authorization to perform action 'Microsoft.Insights/dataCollectionRules/write'
    # over scope '/subscriptions/00000000-0000-0000-0000-000000000000/resourceGroups/rg' or the scope is invalid.

    client_match = search(r"client '([^']*)'", stderr)
    action_match = search(r"action '([^']*)'", stderr)
    scope_match = search(r"scope '([^']*)'", stderr)

    if not (action_match and scope_match and client_match):
        return None

    return (
        f"Insufficient permissions for {client_match.group(1)} "
        f"to perform {action_match.group(1)} on {scope_match.group(1)}"
    )


def _raise_with_version(exc: BaseException, cause: Optional[BaseException] = None) -> None:
    """Append az and python version details to the exception message (and remediation text) and raise it."""
    args = list(exc.args)
    version = get_az_and_python_version()
    if args:
        args[0] = f"{args[0]}{version}"
    else:
        args.append(version)
    exc.args = tuple(args)
    if isinstance(exc, UserActionRequiredError):
        exc.user_action_message = f"{exc.user_action_message}{version}"
    raise exc from cause


def _classify_failure(cmd: Cmd, stderr: str, stdout: str) -> Optional[BaseException]:
    """Map Azure CLI stderr markers to a typed error, or None when the failure is unrecognized."""
    full_command = str(cmd)
    if any(text in stderr for text in AZ_NOT_INSTALLED_ERRORS):
        return AzCliNotInstalledError(f"Azure CLI not found when executing '{full_command}'")
    if any(text in stderr for text in RESOURCE_NOT_FOUND_ERRORS):
        return ResourceNotFoundError(
            f"Resource not found when executing '{full_command}'\nstdout: {stdout}\nstderr: {stderr}"
        )
    if any(text in stderr for text in CONFLICT_ERRORS):
        return ConflictError(f"Resource already exists when executing '{full_command}'\nstderr: {stderr}")
    if REFRESH_TOKEN_EXPIRED_ERROR in stderr:
        return RefreshTokenError(stderr)
    if AUTH_FAILED_ERROR in stderr:
        error_message = f"Insufficient permissions to access resource when executing '{full_command}'"
        error_details = check_access_error(stderr)
        if error_details:
            error_message = f"{error_message}: {error_details}"
        return AccessError(error_message)
    if POLICY_ERROR in stderr:
        error_before_and_after_code = stderr.split(f"({POLICY_ERROR}) ")
        policy_error_message = (
            "\n".join(error_before_and_after_code[1:]) if len(error_before_and_after_code) > 1 else stderr
        )
        return PolicyError(policy_error_message)
    if interactive_authn_command_matches := re.findall(
        r"Run the command below to authenticate interactively.*?:\s*((?:az [^\n]+\n?)+)",
        stderr,
        flags=re.MULTILINE,
    ):
        return InteractiveAuthenticationRequiredError(
            [line.strip() for line in interactive_authn_command_matches[0].splitlines() if line.strip()],
            "Interactive authentication required",
        )
    if PERMISSION_REQUIRED_ERROR in stderr:
        return AccessError(f"Insufficient permissions to execute '{full_command}'")
    if DISABLED_SUBSCRIPTION_ERROR in stderr:
        return DisabledSubscriptionError(stderr)
    return None


def execute(cmd: Cmd, can_fail: bool = False) -> str:
    """Run an Azure CLI command and return output or raise error."""

    full_command = str(cmd)
    log.debug(f"Running: {full_command}")
    delay = INITIAL_RETRY_DELAY

    for attempt in range(MAX_RETRIES):
        try:
            result = subprocess.run(full_command, shell=True, check=True, capture_output=True, text=True)
            return result.stdout
        except subprocess.CalledProcessError as e:
            stderr = str(e.stderr)
            stdout = str(e.stdout)
            if any(text in stderr for text in AZURE_THROTTLING_ERRORS):
                if attempt < MAX_RETRIES - 1:
                    log.warning(f"Azure throttling ongoing. Retrying in {delay} seconds...")
                    sleep(delay)
                    delay *= RETRY_DELAY_MULTIPLIER
                    continue
                _raise_with_version(
                    RateLimitExceededError("Rate limit exceeded. Please wait a few minutes and try again."), e
                )
            error = _classify_failure(cmd, stderr, stdout)
            if isinstance(error, (ResourceNotFoundError, ConflictError)):
                # expected outcomes of existence checks; callers decide what they mean
                raise error from e
            if error is not None:
                _raise_with_version(error, e)
            if can_fail:
                return ""
            log.error(f"Command failed: {full_command}")
            log.error(stderr)
            _raise_with_version(RuntimeError(f"Command failed: {full_command}\nstdout: {stdout}\nstderr: {stderr}"), e)

    raise SystemExit(1)  # unreachable


def execute_json(cmd: Cmd, can_fail: bool = False) -> Any:
    """Run an Azure CLI command and parse its JSON output. Empty output yields None."""
    if result := execute(cmd, can_fail=can_fail):
        return json.loads(result)
    return None


def execute_interactive(cmd: Cmd) -> int:
    """Run a command with the terminal attached so prompts (device code, browser sign-in) reach the operator."""
    full_command = str(cmd)
    log.debug(f"Running interactively: {full_command}")
    return subprocess.run(full_command, shell=True).returncode
