# Unless explicitly stated otherwise all files in this repository are licensed under the Apache-2 License.

# This product includes software developed at Datadog (https://www.datadoghq.com/) Copyright 2025 Datadog, Inc.

from az_shared.az_cmd import AzCmd
from az_shared.errors import ResourceNotFoundError, WorkspaceResolutionError
from az_shared.execute_cmd import execute
from az_shared.logs import log

from .configuration import Configuration
from .session import CloudSession


def lookup_workspace_id(session: CloudSession, resource_group: str, workspace_name: str) -> str:
    """Look up a Log Analytics workspace resource ID by resource group and name."""
    try:
        workspace_id = execute(
            AzCmd("monitor log-analytics workspace", "show")
            .param("--subscription", session.subscription_id)
            .param("--resource-group", resource_group)
            .param("--workspace-name", workspace_name)
            .query("id")
            .output("tsv")
        ).strip()
    except ResourceNotFoundError as e:
        raise WorkspaceResolutionError(
            f"Log Analytics workspace '{workspace_name}' not found in resource group '{resource_group}'"
        ) from e

    if not workspace_id:
        raise WorkspaceResolutionError(
            f"Log Analytics workspace '{workspace_name}' in resource group '{resource_group}' has no resource ID"
        )
    return workspace_id


def resolve_workspace_id(session: CloudSession, config: Configuration) -> str:
    """Use the configured workspace resource ID verbatim, otherwise resolve it by name."""
    if config.workspace_resource_id:
        log.info(f"Using configured workspace resource ID {config.workspace_resource_id}")
        return config.workspace_resource_id

    log.info(f"Resolving Log Analytics workspace '{config.workspace_name}' in '{config.workspace_resource_group}'...")
    workspace_id = lookup_workspace_id(session, config.workspace_resource_group, config.workspace_name)
    log.info(f"Resolved workspace {workspace_id}")
    return workspace_id
