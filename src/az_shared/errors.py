# Unless explicitly stated otherwise all files in this repository are licensed under the Apache-2 License.

# This product includes software developed at Datadog (https://www.datadoghq.com/) Copyright 2025 Datadog, Inc.

from typing import Optional

GOV_CLOUD_LOGIN_HINT = "az cloud set --name AzureUSGovernment && az login"


def format_error_details(message: str) -> str:
    return f"\n\nError Details:\n{message}"


# Errors that prevent the installer from completing successfully
class FatalError(Exception):
    """An error that prevents the installation from completing successfully."""


class ExistenceCheckError(FatalError):
    """Error occurred while checking if a resource exists."""


class RefreshTokenError(FatalError):
    """Auth token has expired."""


class WorkspaceResolutionError(FatalError):
    """The target Log Analytics workspace could not be found."""


class AmbiguousResourceError(FatalError):
    """More than one resource matched a lookup that must be unique."""


class TableCreationError(FatalError):
    """A custom Log Analytics table could not be created."""


class DeploymentError(FatalError):
    """An ARM deployment did not reach the Succeeded provisioning state."""


# Expected Errors
class RateLimitExceededError(Exception):
    """We have exceeded the rate limit for the Azure API. Commands are retried until MAX_RETRIES are reached."""


class ResourceNotFoundError(Exception):
    """Azure resource was not found. This gets thrown during some resource existence checks."""


class ConflictError(Exception):
    """The resource (or role assignment) already exists. Steps that are idempotent treat this as success."""


# Errors users can resolve through manual action
class UserActionRequiredError(Exception):
    """An error that requires user action to resolve."""

    def __init__(self, message: str, user_action_message: Optional[str] = None):
        super().__init__(message)
        self.user_action_message = user_action_message or message


class ConfigurationError(UserActionRequiredError):
    """The configuration document is malformed or incomplete."""

    def __init__(self, message: str):
        user_action_message = "The installer configuration is invalid. Please fix the configuration file and retry."
        user_action_message += format_error_details(message)
        super().__init__(message, user_action_message)


class MissingConfigurationError(ConfigurationError):
    """The configuration file does not exist."""

    def __init__(self, path: str):
        super().__init__(
            f"Configuration file '{path}' not found. Create it, or rerun with --interactive to be prompted for values."
        )
        self.path = path


class InputParamValidationError(UserActionRequiredError):
    """Validation error in user input parameters."""

    def __init__(self, message: str):
        user_action_message = "Invalid input parameter. Please check your input(s) and try again."
        user_action_message += format_error_details(message)
        super().__init__(message, user_action_message)


class AzCliNotInstalledError(UserActionRequiredError):
    """Azure CLI is not installed."""

    def __init__(self, message: str = "Azure CLI is not installed"):
        super().__init__(
            message,
            user_action_message="Azure CLI is not installed. Please install it (https://aka.ms/azure-cli) and retry",
        )


class AzCliNotAuthenticatedError(UserActionRequiredError):
    """Azure CLI is not authenticated. User needs to run 'az login'."""

    def __init__(self, message: str = "Azure CLI is not authenticated"):
        super().__init__(
            message,
            user_action_message=f"Azure CLI is not authenticated. Please run '{GOV_CLOUD_LOGIN_HINT}' first and retry",
        )


class AzureAuthenticationError(UserActionRequiredError):
    """Sign-in against the Azure Government cloud failed."""

    def __init__(self, message: str):
        user_action_message = "Unable to sign in to Azure Government (GCCH)."
        user_action_message += f"\nAuthenticate against the government endpoint with '{GOV_CLOUD_LOGIN_HINT}' and retry."
        user_action_message += format_error_details(message)
        super().__init__(message, user_action_message)


class AccessError(UserActionRequiredError):
    """Not authorized to access the resource."""

    def __init__(self, message: str):
        user_action_message = "You don't have the necessary Azure permissions to access, create, or perform an action on a required resource."
        user_action_message += "\nCreating the connector requires Application Administrator in Entra ID and Owner (or User Access Administrator) on the resource group."
        user_action_message += format_error_details(message)
        super().__init__(message, user_action_message)


class PolicyError(UserActionRequiredError):
    """An Azure Policy disallowed the request."""

    def __init__(self, message: str):
        user_action_message = "An Azure Policy assignment blocked the deployment. Please contact your Azure administrator."
        user_action_message += format_error_details(message)
        super().__init__(message, user_action_message)


class DisabledSubscriptionError(UserActionRequiredError):
    """The subscription is disabled."""

    def __init__(self, message: str):
        user_action_message = "The target subscription is disabled. Please choose an enabled subscription."
        user_action_message += format_error_details(message)
        super().__init__(message, user_action_message)


class InteractiveAuthenticationRequiredError(UserActionRequiredError):
    """Azure CLI requires the user to re-authenticate interactively."""

    def __init__(self, commands: list[str], message: str):
        user_action_message = "Azure CLI requires you to authenticate interactively. Please run:\n"
        user_action_message += "\n".join(f"  {command}" for command in commands)
        super().__init__(message, user_action_message)
        self.commands = commands
