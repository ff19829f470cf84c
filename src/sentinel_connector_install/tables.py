# Unless explicitly stated otherwise all files in this repository are licensed under the Apache-2 License.

# This product includes software developed at Datadog (https://www.datadoghq.com/) Copyright 2025 Datadog, Inc.

"""Custom Log Analytics tables receiving the vendor's activity and threat events."""

import json
from dataclasses import dataclass
from typing import Any

from az_shared.errors import ConfigurationError, ExistenceCheckError, TableCreationError
from az_shared.logs import log
from az_shared.rest import arm_request

from .constants import (
    ACTIVITY_TABLE_SCHEMA_FILE,
    TABLE_PLAN,
    TABLE_RETENTION_DAYS,
    TABLES_API_VERSION,
    THREAT_TABLE_SCHEMA_FILE,
)
from .session import CloudSession

COLUMN_TYPES = {"string", "datetime", "int", "long", "real", "boolean", "dynamic", "guid"}

# Idempotency contract for table creation: conflict means the table already exists (or is still propagating)
TABLE_CREATE_ACCEPTED_STATUSES = frozenset({200, 201, 202})
TABLE_CREATE_IDEMPOTENT_STATUSES = frozenset({409})


@dataclass(frozen=True)
class Column:
    name: str
    type: str


@dataclass(frozen=True)
class TableSchema:
    name: str
    columns: tuple[Column, ...]
    description: str = ""

    def to_arm_columns(self) -> list[dict[str, str]]:
        return [{"name": column.name, "type": column.type} for column in self.columns]


def load_table_schema(path: str) -> TableSchema:
    """Load a table schema document: a table name and its ordered column list."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            document = json.load(f)
        name = document["name"]
        columns = tuple(Column(c["name"], c["type"]) for c in document["columns"])
    except (OSError, json.JSONDecodeError, KeyError, TypeError) as e:
        raise ConfigurationError(f"Invalid table schema document '{path}': {e}") from e

    if not name.endswith("_CL"):
        raise ConfigurationError(f"Custom table name '{name}' must end with '_CL'")
    if not columns:
        raise ConfigurationError(f"Table '{name}' has no columns")
    unknown = sorted({c.type for c in columns} - COLUMN_TYPES)
    if unknown:
        raise ConfigurationError(f"Table '{name}' uses unsupported column type(s): {', '.join(unknown)}")
    return TableSchema(name, columns, document.get("description", ""))


def load_table_schemas() -> list[TableSchema]:
    """The activity and threat table schemas, in provisioning order."""
    return [load_table_schema(ACTIVITY_TABLE_SCHEMA_FILE), load_table_schema(THREAT_TABLE_SCHEMA_FILE)]


def table_url(session: CloudSession, workspace_id: str, table_name: str) -> str:
    return session.management_url(f"{workspace_id}/tables/{table_name}?api-version={TABLES_API_VERSION}")


def build_table_body(schema: TableSchema) -> dict[str, Any]:
    return {
        "properties": {
            "schema": {
                "name": schema.name,
                "description": schema.description,
                "columns": schema.to_arm_columns(),
            },
            "retentionInDays": TABLE_RETENTION_DAYS,
            "totalRetentionInDays": TABLE_RETENTION_DAYS,
            "plan": TABLE_PLAN,
        }
    }


def table_exists(session: CloudSession, workspace_id: str, table_name: str, access_token: str) -> bool:
    """Check if a table already exists in the workspace"""
    data, status = arm_request("GET", table_url(session, workspace_id, table_name), access_token)
    if status == 200:
        return True
    if status == 404:
        return False
    raise ExistenceCheckError(f"Failed to check if table '{table_name}' exists (HTTP {status}): {data}")


def create_table(session: CloudSession, workspace_id: str, schema: TableSchema, access_token: str) -> None:
    """Submit the table definition. Accepted and conflict responses are both success."""
    log.info(f"Creating table {schema.name} ({len(schema.columns)} columns, {TABLE_RETENTION_DAYS}-day retention)")
    data, status = arm_request(
        "PUT", table_url(session, workspace_id, schema.name), access_token, build_table_body(schema)
    )
    if status in TABLE_CREATE_ACCEPTED_STATUSES:
        log.info(f"Table {schema.name} created")
        return
    if status in TABLE_CREATE_IDEMPOTENT_STATUSES:
        log.warning(f"Table {schema.name} already exists (HTTP {status}) - treating as success")
        return
    raise TableCreationError(f"Failed to create table '{schema.name}' (HTTP {status}): {data}")


def ensure_table(session: CloudSession, workspace_id: str, schema: TableSchema, access_token: str) -> bool:
    """Create the table if it does not exist. Returns whether a create request was submitted."""
    log.info(f"Checking if table '{schema.name}' already exists...")
    if table_exists(session, workspace_id, schema.name, access_token):
        log.warning(f"Table '{schema.name}' already exists - skipping creation")
        return False

    log.info(f"Table '{schema.name}' not found - creating new table")
    create_table(session, workspace_id, schema, access_token)
    return True


def ensure_tables(session: CloudSession, workspace_id: str) -> list[TableSchema]:
    """Provision the activity and threat tables."""
    schemas = load_table_schemas()
    access_token = session.get_access_token()
    for schema in schemas:
        ensure_table(session, workspace_id, schema, access_token)
    return schemas
