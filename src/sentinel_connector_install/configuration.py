# Unless explicitly stated otherwise all files in this repository are licensed under the Apache-2 License.

# This product includes software developed at Datadog (https://www.datadoghq.com/) Copyright 2025 Datadog, Inc.

import json
import os
import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Optional

from az_shared.errors import ConfigurationError, InputParamValidationError, MissingConfigurationError
from az_shared.logs import log

from .constants import DEFAULT_APP_DISPLAY_NAME, DEFAULT_DCR_NAME, DEFAULT_LOCATION

WORKSPACE_RESOURCE_ID_PATTERN = re.compile(
    r"^/subscriptions/[^/]+/resourceGroups/[^/]+/providers/Microsoft\.OperationalInsights/workspaces/[^/]+$",
    re.IGNORECASE,
)


@dataclass
class Configuration:
    """User-specified configuration parameters and derivations necessary for provisioning"""

    # Required user-specified params
    subscription_id: str
    resource_group: str
    workspace_name: str

    # Optional user-specified params with defaults
    tenant_id: str = ""
    workspace_resource_group: str = ""
    workspace_resource_id: str = ""
    location: str = DEFAULT_LOCATION
    dcr_name: str = DEFAULT_DCR_NAME
    app_display_name: str = DEFAULT_APP_DISPLAY_NAME

    def __post_init__(self):
        """Calculates derived values from user-specified params."""

        if not self.workspace_resource_group:
            self.workspace_resource_group = self.resource_group


@dataclass(frozen=True)
class ConfigField:
    """Where a Configuration field lives in the flat and the nested document layouts."""

    attribute: str
    flat_key: str
    section: str
    key: str


CONFIG_FIELDS = [
    ConfigField("tenant_id", "TenantId", "Azure", "TenantId"),
    ConfigField("subscription_id", "SubscriptionId", "Azure", "SubscriptionId"),
    ConfigField("resource_group", "ResourceGroupName", "Azure", "ResourceGroupName"),
    ConfigField("location", "Location", "Azure", "Location"),
    ConfigField("workspace_name", "WorkspaceName", "Workspace", "Name"),
    ConfigField("workspace_resource_group", "WorkspaceResourceGroup", "Workspace", "ResourceGroupName"),
    ConfigField("workspace_resource_id", "WorkspaceResourceId", "Workspace", "ResourceId"),
    ConfigField("app_display_name", "AppDisplayName", "AppRegistration", "DisplayName"),
    ConfigField("dcr_name", "DcrName", "DCR", "Name"),
]
FIELDS_BY_ATTRIBUTE = {field.attribute: field for field in CONFIG_FIELDS}
SECTIONS = ["Azure", "Workspace", "AppRegistration", "DCR"]
REQUIRED_ATTRIBUTES = ["subscription_id", "resource_group", "workspace_name"]
DEFAULTS = {
    "location": DEFAULT_LOCATION,
    "app_display_name": DEFAULT_APP_DISPLAY_NAME,
    "dcr_name": DEFAULT_DCR_NAME,
}


@dataclass(frozen=True)
class Prompt:
    attribute: str
    label: str
    default: Optional[str] = None
    required: bool = False


PROMPTS = [
    Prompt("tenant_id", "Azure Government tenant (directory) ID (blank to use the signed-in tenant)"),
    Prompt("subscription_id", "Subscription ID", required=True),
    Prompt("resource_group", "Resource group for the Data Collection Rule", required=True),
    Prompt("location", "Azure Government region", default=DEFAULT_LOCATION),
    Prompt("workspace_name", "Log Analytics workspace name", required=True),
    Prompt("workspace_resource_group", "Workspace resource group (blank to use the DCR resource group)"),
    Prompt("app_display_name", "App registration display name", default=DEFAULT_APP_DISPLAY_NAME),
    Prompt("dcr_name", "Data Collection Rule name", default=DEFAULT_DCR_NAME),
]


def is_empty_or_whitespace(s: Optional[str]) -> bool:
    """Check if a string is empty or contains only whitespace."""

    return not s or s.isspace()


def is_nested_layout(document: dict[str, Any]) -> bool:
    """Documents with any of the section objects use the nested layout; flat keys otherwise."""
    if any(isinstance(document.get(section), dict) for section in SECTIONS):
        return True
    return not any(field.flat_key in document for field in CONFIG_FIELDS)


def has_value(document: dict[str, Any], field: ConfigField) -> bool:
    if field.flat_key in document:
        return True
    section = document.get(field.section)
    return isinstance(section, dict) and field.key in section


def read_value(document: dict[str, Any], field: ConfigField) -> str:
    """Read a field from either layout. Flat keys win over nested sections."""
    if field.flat_key in document:
        value = document[field.flat_key]
        location = field.flat_key
    else:
        section = document.get(field.section)
        if section is not None and not isinstance(section, dict):
            raise ConfigurationError(f"'{field.section}' must be an object")
        value = (section or {}).get(field.key)
        location = f"{field.section}.{field.key}"

    if value is None:
        return ""
    if not isinstance(value, str):
        raise ConfigurationError(f"'{location}' must be a string, got {type(value).__name__}")
    return value.strip()


def write_value(document: dict[str, Any], field: ConfigField, value: str) -> None:
    if is_nested_layout(document):
        section = document.setdefault(field.section, {})
        if not isinstance(section, dict):
            raise ConfigurationError(f"'{field.section}' must be an object")
        section[field.key] = value
    else:
        document[field.flat_key] = value


def validate_configuration(config: Configuration) -> None:
    """Validate user-specified parameters. Raises before any Azure call is made."""

    missing = [
        FIELDS_BY_ATTRIBUTE[attribute].flat_key
        for attribute in REQUIRED_ATTRIBUTES
        if is_empty_or_whitespace(getattr(config, attribute))
    ]
    if missing:
        raise InputParamValidationError(f"Missing required configuration value(s): {', '.join(missing)}")

    if config.workspace_resource_id and not WORKSPACE_RESOURCE_ID_PATTERN.match(config.workspace_resource_id):
        raise InputParamValidationError(
            f"WorkspaceResourceId '{config.workspace_resource_id}' is not a Log Analytics workspace resource ID"
        )

    log.debug("Configuration validated")


def resolve_configuration(document: dict[str, Any], overrides: Optional[dict[str, str]] = None) -> Configuration:
    """Build a validated Configuration from a settings document, overrides and defaults."""

    overrides = overrides or {}
    values = {}
    for field in CONFIG_FIELDS:
        value = overrides.get(field.attribute) or read_value(document, field)
        if not value and field.attribute in DEFAULTS:
            value = DEFAULTS[field.attribute]
        values[field.attribute] = value

    config = Configuration(**values)
    validate_configuration(config)
    return config


def default_document() -> dict[str, Any]:
    """Skeleton used when no configuration file exists yet."""
    return {section: {} for section in SECTIONS}


def read_document(path: str) -> dict[str, Any]:
    """Read the JSON settings document at path."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            document = json.load(f)
    except FileNotFoundError as e:
        raise MissingConfigurationError(path) from e
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Configuration file '{path}' is not valid JSON: {e}") from e

    if not isinstance(document, dict):
        raise ConfigurationError(f"Configuration file '{path}' must contain a JSON object")
    return document


def save_configuration(path: str, document: dict[str, Any]) -> None:
    """Persist the settings document (pretty-printed) so reruns need no prompting."""
    with open(path, "w", encoding="utf-8") as f:
        json.dump(document, f, indent=2)
        f.write("\n")
    log.info(f"Saved configuration to {path}")


def prompt_for_missing_values(
    document: dict[str, Any], input_func: Callable[[str], str] = input
) -> dict[str, Any]:
    """Ask the operator for every absent value (and every empty required value), applying defaults."""

    for prompt in PROMPTS:
        field = FIELDS_BY_ATTRIBUTE[prompt.attribute]
        if has_value(document, field) and not (prompt.required and not read_value(document, field)):
            continue

        suffix = f" [{prompt.default}]" if prompt.default else ""
        answer = input_func(f"{prompt.label}{suffix}: ").strip()
        if not answer and prompt.default:
            answer = prompt.default
        if not answer and prompt.required:
            raise ConfigurationError(f"A value for '{field.flat_key}' is required")
        write_value(document, field, answer)

    return document


def load_configuration(
    path: str, interactive: bool = False, input_func: Callable[[str], str] = input
) -> Configuration:
    """Load, optionally complete interactively, validate, and (when prompted) persist the configuration."""

    if interactive and not os.path.exists(path):
        log.info(f"Configuration file {path} not found - starting from an empty configuration")
        document = default_document()
    else:
        document = read_document(path)

    if not interactive:
        return resolve_configuration(document)

    document = prompt_for_missing_values(document, input_func)
    config = resolve_configuration(document)
    save_configuration(path, document)
    return config
