# Unless explicitly stated otherwise all files in this repository are licensed under the Apache-2 License.

# This product includes software developed at Datadog (https://www.datadoghq.com/) Copyright 2025 Datadog, Inc.

from dataclasses import dataclass

from az_shared.logs import log, log_step

from .app_registration import AppRegistration, ensure_app_registration
from .configuration import Configuration
from .dcr import DataCollectionRule, deploy_dcr
from .role_setup import assign_publisher_role
from .session import CloudSession, bind_subscription
from .tables import TableSchema, ensure_tables
from .workspace import resolve_workspace_id

PROVISIONING_STEPS = 6


@dataclass
class ProvisioningResult:
    tenant_id: str
    workspace_id: str
    app_registration: AppRegistration
    tables: list[TableSchema]
    dcr: DataCollectionRule


def provision(session: CloudSession, config: Configuration) -> ProvisioningResult:
    """Run the provisioning steps in dependency order. Any error aborts the remaining steps; nothing is rolled back."""

    log_step(1, PROVISIONING_STEPS, "Binding subscription...")
    tenant_id = bind_subscription(session)

    log_step(2, PROVISIONING_STEPS, "Resolving Log Analytics workspace...")
    workspace_id = resolve_workspace_id(session, config)

    log_step(3, PROVISIONING_STEPS, "Provisioning app registration and client secret...")
    app_registration = ensure_app_registration(session, config.app_display_name)
    log.info(f"App registration ready (appId {app_registration.app_id})")

    log_step(4, PROVISIONING_STEPS, "Provisioning custom tables...")
    tables = ensure_tables(session, workspace_id)
    log.info("Custom tables ready")

    log_step(5, PROVISIONING_STEPS, "Deploying Data Collection Rule...")
    dcr = deploy_dcr(session, config, workspace_id)

    log_step(6, PROVISIONING_STEPS, "Granting ingestion permissions...")
    assign_publisher_role(session, app_registration.service_principal_id, dcr.resource_id)

    return ProvisioningResult(
        tenant_id=tenant_id,
        workspace_id=workspace_id,
        app_registration=app_registration,
        tables=tables,
        dcr=dcr,
    )
