# Unless explicitly stated otherwise all files in this repository are licensed under the Apache-2 License.

# This product includes software developed at Datadog (https://www.datadoghq.com/) Copyright 2025 Datadog, Inc.

import os

# Azure Government (GCCH)
GOV_CLOUD_NAME = "AzureUSGovernment"
GOV_MANAGEMENT_ENDPOINT = "https://management.usgovcloudapi.net"
GOV_MANAGEMENT_RESOURCE = "https://management.usgovcloudapi.net/"

# Configuration defaults
DEFAULT_CONFIG_PATH = "sentinel_config.json"
DEFAULT_LOCATION = "usgovvirginia"
DEFAULT_APP_DISPLAY_NAME = "Obsidian-Sentinel-Connector"
DEFAULT_DCR_NAME = "dcr-obsidian-sentinel"

# App registration
CLIENT_SECRET_TTL_YEARS = 2
CLIENT_SECRET_DISPLAY_NAME = "sentinel-ingestion"

# Log Analytics tables
TABLES_API_VERSION = "2022-10-01"
TABLE_RETENTION_DAYS = 90
TABLE_PLAN = "Analytics"
TEMPLATES_DIR = os.path.join(os.path.dirname(__file__), "templates")
ACTIVITY_TABLE_SCHEMA_FILE = os.path.join(TEMPLATES_DIR, "obsidian_activity_table.json")
THREAT_TABLE_SCHEMA_FILE = os.path.join(TEMPLATES_DIR, "obsidian_threat_table.json")

# Data Collection Rule
DCR_API_VERSION = "2023-03-11"
DCR_KIND = "Direct"
DCR_DESTINATION_NAME = "sentinelWorkspace"
DCR_STREAM_DECLARATIONS_FILE = os.path.join(TEMPLATES_DIR, "dcr_stream_declarations.json")
DCR_DEPLOYMENT_NAME_PREFIX = "obsidian-sentinel-dcr"
DEPLOYMENT_SUCCEEDED_STATE = "Succeeded"
ACTIVITY_STREAM_NAME = "Custom-ObsidianActivity"
THREAT_STREAM_NAME = "Custom-ObsidianThreat"
ACTIVITY_TABLE_NAME = "ObsidianActivity_CL"
THREAT_TABLE_NAME = "ObsidianThreat_CL"
STREAM_TO_TABLE = {
    ACTIVITY_STREAM_NAME: ACTIVITY_TABLE_NAME,
    THREAT_STREAM_NAME: THREAT_TABLE_NAME,
}

# Role assignment
MONITORING_METRICS_PUBLISHER_ID = "3913510d-42f4-4e42-8a64-420c390055eb"

# Credential report
REPORT_FILE_PREFIX = "obsidian-sentinel-credentials"
REPORT_FILE_MODE = 0o600
