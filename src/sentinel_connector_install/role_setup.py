# Unless explicitly stated otherwise all files in this repository are licensed under the Apache-2 License.

# This product includes software developed at Datadog (https://www.datadoghq.com/) Copyright 2025 Datadog, Inc.

from az_shared.az_cmd import AzCmd
from az_shared.errors import ConflictError
from az_shared.execute_cmd import execute
from az_shared.logs import log

from .constants import MONITORING_METRICS_PUBLISHER_ID
from .session import CloudSession


def assign_role(session: CloudSession, scope: str, principal_id: str, role_id: str) -> bool:
    """Assign a role to a service principal at a given scope. Returns False when the assignment already existed."""

    log.debug(f"Assigning role {role_id} to principal {principal_id} at scope {scope}")
    try:
        execute(
            AzCmd("role assignment", "create")
            .param("--subscription", session.subscription_id)
            .param("--assignee-object-id", principal_id)
            .param("--assignee-principal-type", "ServicePrincipal")
            .param("--role", role_id)
            .param("--scope", scope)
        )
    except ConflictError:
        log.warning(f"Role assignment for role {role_id} to principal {principal_id} already exists - skipping")
        return False
    return True


def assign_publisher_role(session: CloudSession, service_principal_id: str, dcr_resource_id: str) -> bool:
    """Allow the connector's service principal to publish logs into the Data Collection Rule."""
    log.info("Assigning Monitoring Metrics Publisher role on the Data Collection Rule...")
    created = assign_role(session, dcr_resource_id, service_principal_id, MONITORING_METRICS_PUBLISHER_ID)
    if created:
        log.info("Monitoring Metrics Publisher role assigned")
    return created
