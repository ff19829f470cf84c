# Unless explicitly stated otherwise all files in this repository are licensed under the Apache-2 License.

# This product includes software developed at Datadog (https://www.datadoghq.com/) Copyright 2025 Datadog, Inc.

"""Hand-off record of the identifiers and secret the vendor needs to push events."""

import os
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from az_shared.logs import log

from .app_registration import AppRegistration
from .constants import (
    ACTIVITY_STREAM_NAME,
    ACTIVITY_TABLE_NAME,
    REPORT_FILE_MODE,
    REPORT_FILE_PREFIX,
    THREAT_STREAM_NAME,
    THREAT_TABLE_NAME,
)
from .dcr import DataCollectionRule


@dataclass
class CredentialReport:
    tenant_id: str
    app_id: str
    client_secret: str
    secret_expiry: date
    dcr_immutable_id: str
    logs_ingestion_endpoint: str
    dcr_resource_id: str
    activity_stream: str = ACTIVITY_STREAM_NAME
    threat_stream: str = THREAT_STREAM_NAME
    activity_table: str = ACTIVITY_TABLE_NAME
    threat_table: str = THREAT_TABLE_NAME


def build_report(tenant_id: str, app_registration: AppRegistration, dcr: DataCollectionRule) -> CredentialReport:
    return CredentialReport(
        tenant_id=tenant_id,
        app_id=app_registration.app_id,
        client_secret=app_registration.client_secret,
        secret_expiry=app_registration.secret_expiry,
        dcr_immutable_id=dcr.immutable_id,
        logs_ingestion_endpoint=dcr.logs_ingestion_endpoint,
        dcr_resource_id=dcr.resource_id,
    )


def format_report(report: CredentialReport, generated_at: Optional[datetime] = None) -> str:
    generated_at = generated_at or datetime.now()
    separator = "=" * 70
    lines = [
        separator,
        "Obsidian Security -> Microsoft Sentinel (Azure Government) connector credentials",
        f"Generated: {generated_at.strftime('%Y-%m-%d %H:%M:%S')}",
        separator,
        "",
        f"Tenant ID:                {report.tenant_id}",
        f"Application (client) ID:  {report.app_id}",
        f"Client secret:            {report.client_secret}",
        f"Client secret expires:    {report.secret_expiry.isoformat()}",
        "",
        f"DCR immutable ID:         {report.dcr_immutable_id}",
        f"Logs ingestion endpoint:  {report.logs_ingestion_endpoint}",
        f"DCR resource ID:          {report.dcr_resource_id}",
        "",
        f"Activity stream:          {report.activity_stream} -> {report.activity_table}",
        f"Threat stream:            {report.threat_stream} -> {report.threat_table}",
        "",
        "The client secret cannot be retrieved again. Share it with Obsidian over a secure channel,",
        "then delete this file.",
        separator,
    ]
    return "\n".join(lines) + "\n"


def print_report(report: CredentialReport) -> None:
    print()
    print(format_report(report))


def get_report_path(output_dir: str, now: Optional[datetime] = None) -> str:
    timestamp = (now or datetime.now()).strftime("%Y%m%d-%H%M%S")
    return os.path.join(output_dir, f"{REPORT_FILE_PREFIX}-{timestamp}.txt")


def write_report(report: CredentialReport, output_dir: str, now: Optional[datetime] = None) -> Optional[str]:
    """Persist a timestamped copy of the report readable only by the owner. Failures are logged, never raised."""
    now = now or datetime.now()
    path = get_report_path(output_dir, now)
    try:
        os.makedirs(output_dir, exist_ok=True)
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, REPORT_FILE_MODE)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(format_report(report, now))
    except OSError as e:
        log.error(f"Failed to save credential report to {path}: {e}")
        log.error("Copy the credentials printed above before closing this shell")
        return None

    log.info(f"Credential report saved to {path}")
    return path
