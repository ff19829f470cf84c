# Unless explicitly stated otherwise all files in this repository are licensed under the Apache-2 License.

# This product includes software developed at Datadog (https://www.datadoghq.com/) Copyright 2025 Datadog, Inc.

import json
import os
import tempfile
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from az_shared.az_cmd import AzCmd
from az_shared.errors import ConfigurationError, ConflictError, DeploymentError, ResourceNotFoundError
from az_shared.execute_cmd import execute_json
from az_shared.logs import log

from .configuration import Configuration
from .constants import (
    DCR_API_VERSION,
    DCR_DEPLOYMENT_NAME_PREFIX,
    DCR_DESTINATION_NAME,
    DCR_KIND,
    DCR_STREAM_DECLARATIONS_FILE,
    DEPLOYMENT_SUCCEEDED_STATE,
    STREAM_TO_TABLE,
)
from .session import CloudSession

ARM_TEMPLATE_SCHEMA = "https://schema.management.azure.com/schemas/2019-04-01/deploymentTemplate.json#"


@dataclass
class DataCollectionRule:
    """The deployed DCR as the vendor needs it for ingestion."""

    resource_id: str
    immutable_id: str
    logs_ingestion_endpoint: str


def load_stream_declarations(path: str = DCR_STREAM_DECLARATIONS_FILE) -> dict[str, Any]:
    """Read the stream declarations document. It is embedded in the DCR verbatim."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            declarations = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Invalid DCR template document '{path}': {e}") from e

    if not isinstance(declarations, dict) or set(declarations) != set(STREAM_TO_TABLE):
        raise ConfigurationError(
            f"DCR template document '{path}' must declare exactly the streams {', '.join(sorted(STREAM_TO_TABLE))}"
        )
    return declarations


def build_data_flows() -> list[dict[str, Any]]:
    return [
        {
            "streams": [stream],
            "destinations": [DCR_DESTINATION_NAME],
            "transformKql": "source",
            "outputStream": f"Custom-{table}",
        }
        for stream, table in STREAM_TO_TABLE.items()
    ]


def build_dcr_template(config: Configuration, workspace_id: str, stream_declarations: dict[str, Any]) -> dict:
    """ARM template for a Direct-kind DCR (embedded ingestion endpoint) routing both streams to the workspace."""
    dcr_ref = f"resourceId('Microsoft.Insights/dataCollectionRules', '{config.dcr_name}')"
    return {
        "$schema": ARM_TEMPLATE_SCHEMA,
        "contentVersion": "1.0.0.0",
        "resources": [
            {
                "type": "Microsoft.Insights/dataCollectionRules",
                "apiVersion": DCR_API_VERSION,
                "name": config.dcr_name,
                "location": config.location,
                "kind": DCR_KIND,
                "properties": {
                    "description": "Obsidian Security activity and threat events for Microsoft Sentinel",
                    "streamDeclarations": stream_declarations,
                    "destinations": {
                        "logAnalytics": [{"workspaceResourceId": workspace_id, "name": DCR_DESTINATION_NAME}]
                    },
                    "dataFlows": build_data_flows(),
                },
            }
        ],
        "outputs": {
            "dcrResourceId": {"type": "string", "value": f"[{dcr_ref}]"},
            "dcrImmutableId": {
                "type": "string",
                "value": f"[reference({dcr_ref}, '{DCR_API_VERSION}').immutableId]",
            },
            "logsIngestionEndpoint": {
                "type": "string",
                "value": f"[reference({dcr_ref}, '{DCR_API_VERSION}').endpoints.logsIngestion]",
            },
        },
    }


def get_deployment_name(now: Optional[datetime] = None) -> str:
    return f"{DCR_DEPLOYMENT_NAME_PREFIX}-{(now or datetime.now()).strftime('%Y%m%d%H%M%S')}"


def parse_deployment_result(deployment: Optional[dict[str, Any]], deployment_name: str) -> DataCollectionRule:
    """Accept the deployment only in the terminal Succeeded state."""
    properties = (deployment or {}).get("properties") or {}
    state = properties.get("provisioningState")
    if state != DEPLOYMENT_SUCCEEDED_STATE:
        detail = json.dumps(properties.get("error"), indent=2) if properties.get("error") else "no error details"
        raise DeploymentError(f"Deployment '{deployment_name}' finished in state '{state}': {detail}")

    outputs = properties.get("outputs") or {}
    try:
        return DataCollectionRule(
            resource_id=outputs["dcrResourceId"]["value"],
            immutable_id=outputs["dcrImmutableId"]["value"],
            logs_ingestion_endpoint=outputs["logsIngestionEndpoint"]["value"],
        )
    except (KeyError, TypeError) as e:
        raise DeploymentError(f"Deployment '{deployment_name}' succeeded but is missing output {e}") from e


def deploy_dcr(session: CloudSession, config: Configuration, workspace_id: str) -> DataCollectionRule:
    """Submit the DCR as a single ARM deployment and wait for it to reach a terminal state."""

    template = build_dcr_template(config, workspace_id, load_stream_declarations())
    deployment_name = get_deployment_name()

    with tempfile.NamedTemporaryFile("w+", delete=False, suffix=".json") as tmpfile:
        json.dump(template, tmpfile)
        tmpfile.flush()
        tmpfile_path = tmpfile.name

    log.info(f"Deploying Data Collection Rule '{config.dcr_name}' ({deployment_name}) to {config.resource_group}...")
    try:
        deployment = execute_json(
            AzCmd("deployment group", "create")
            .param("--subscription", session.subscription_id)
            .param("--resource-group", config.resource_group)
            .param("--name", deployment_name)
            .param("--template-file", tmpfile_path)
            .output("json")
        )
    except (RuntimeError, ResourceNotFoundError, ConflictError) as e:
        raise DeploymentError(f"Deployment '{deployment_name}' failed: {e}") from e
    finally:
        os.unlink(tmpfile_path)

    dcr = parse_deployment_result(deployment, deployment_name)
    log.info(f"Data Collection Rule deployed: {dcr.resource_id}")
    log.debug(f"DCR immutable ID: {dcr.immutable_id}")
    return dcr
