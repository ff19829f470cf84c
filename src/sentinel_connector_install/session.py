# Unless explicitly stated otherwise all files in this repository are licensed under the Apache-2 License.

# This product includes software developed at Datadog (https://www.datadoghq.com/) Copyright 2025 Datadog, Inc.

from dataclasses import dataclass
from typing import Optional

from az_shared.az_cmd import AzCmd
from az_shared.errors import AzCliNotAuthenticatedError, AzCliNotInstalledError, AzureAuthenticationError, FatalError
from az_shared.execute_cmd import execute, execute_interactive, execute_json
from az_shared.logs import log

from .configuration import Configuration
from .constants import GOV_CLOUD_NAME, GOV_MANAGEMENT_ENDPOINT, GOV_MANAGEMENT_RESOURCE


@dataclass
class CloudSession:
    """An authenticated Azure CLI context pinned to one sovereign cloud, tenant and subscription."""

    cloud_name: str
    subscription_id: str
    tenant_id: str = ""
    management_endpoint: str = GOV_MANAGEMENT_ENDPOINT
    management_resource: str = GOV_MANAGEMENT_RESOURCE

    def get_access_token(self, resource: Optional[str] = None) -> str:
        """Get a bearer token for the management API audience of this cloud."""
        token = execute_json(
            AzCmd("account", "get-access-token")
            .param("--resource", resource or self.management_resource)
            .param("--subscription", self.subscription_id)
            .output("json")
        )
        if not token or not token.get("accessToken"):
            raise FatalError("Azure CLI did not return a management access token")
        return token["accessToken"]

    def management_url(self, path: str) -> str:
        """Absolute management endpoint URL for a resource path."""
        return f"{self.management_endpoint.rstrip('/')}/{path.lstrip('/')}"


def validate_az_cli() -> None:
    """Ensure Azure CLI is installed."""
    try:
        execute(AzCmd("version", "").output("json"))
    except AzCliNotInstalledError:
        raise
    except Exception as e:
        raise AzCliNotInstalledError(f"Unable to run the Azure CLI: {e}") from e


def get_active_cloud() -> str:
    return execute(AzCmd("cloud", "show").query("name").output("tsv")).strip()


def has_active_account() -> bool:
    return bool(execute(AzCmd("account", "show"), can_fail=True).strip())


def login(tenant_id: str) -> None:
    """Sign in against the government cloud. Prompts from `az login` are shown to the operator."""
    cmd = AzCmd("login", "")
    if tenant_id:
        cmd.param("--tenant", tenant_id)
    log.info(f"Signing in to {GOV_CLOUD_NAME}{f' (tenant {tenant_id})' if tenant_id else ''}...")
    if execute_interactive(cmd) != 0:
        raise AzureAuthenticationError(f"'{cmd}' failed against cloud {GOV_CLOUD_NAME}")


def connect(config: Configuration) -> CloudSession:
    """Establish a session against Azure Government, re-authenticating if the CLI targets another cloud."""

    validate_az_cli()

    active_cloud = get_active_cloud()
    must_login = False
    if active_cloud != GOV_CLOUD_NAME:
        log.warning(f"Azure CLI is targeting cloud '{active_cloud}' - switching to {GOV_CLOUD_NAME}")
        execute(AzCmd("cloud", "set").param("--name", GOV_CLOUD_NAME))
        must_login = True
    elif not has_active_account():
        log.info(f"No Azure CLI session found for {GOV_CLOUD_NAME}")
        must_login = True

    if must_login:
        login(config.tenant_id)
        if not has_active_account():
            raise AzCliNotAuthenticatedError(f"No active account after signing in to {GOV_CLOUD_NAME}")
    else:
        log.debug(f"Reusing existing Azure CLI session for {GOV_CLOUD_NAME}")

    return CloudSession(cloud_name=GOV_CLOUD_NAME, subscription_id=config.subscription_id, tenant_id=config.tenant_id)


def bind_subscription(session: CloudSession) -> str:
    """Set the active subscription and read back its tenant ID."""
    log.debug(f"Setting active subscription to {session.subscription_id}")
    execute(AzCmd("account", "set").param("--subscription", session.subscription_id))

    tenant_id = execute(
        AzCmd("account", "show")
        .param("--subscription", session.subscription_id)
        .query("tenantId")
        .output("tsv")
    ).strip()
    if not tenant_id:
        raise FatalError(f"Unable to determine the tenant of subscription {session.subscription_id}")
    if session.tenant_id and session.tenant_id.lower() != tenant_id.lower():
        raise AzureAuthenticationError(
            f"Subscription {session.subscription_id} belongs to tenant {tenant_id}, "
            f"but tenant {session.tenant_id} was configured"
        )

    session.tenant_id = tenant_id
    log.info(f"Using subscription {session.subscription_id} in tenant {tenant_id}")
    return tenant_id
