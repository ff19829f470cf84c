# Unless explicitly stated otherwise all files in this repository are licensed under the Apache-2 License.

# This product includes software developed at Datadog (https://www.datadoghq.com/) Copyright 2025 Datadog, Inc.

from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Optional

from az_shared.az_cmd import AzCmd
from az_shared.errors import AmbiguousResourceError, FatalError
from az_shared.execute_cmd import execute_json
from az_shared.logs import log

from .constants import CLIENT_SECRET_DISPLAY_NAME, CLIENT_SECRET_TTL_YEARS
from .session import CloudSession


@dataclass
class AppRegistration:
    """An Entra ID app registration, its service principal and the client secret issued in this run."""

    tenant_id: str
    app_id: str
    object_id: str
    service_principal_id: str
    client_secret: str
    secret_expiry: date
    created: bool = False


def odata_string(value: str) -> str:
    """Quote a string literal for an OData $filter expression."""
    return "'{}'".format(value.replace("'", "''"))


def add_years(start: date, years: int) -> date:
    try:
        return start.replace(year=start.year + years)
    except ValueError:
        # Feb 29 -> Feb 28
        return start.replace(year=start.year + years, day=28)


def find_app_registration(display_name: str) -> Optional[dict[str, Any]]:
    """Find an app registration with exactly this display name."""
    apps = (
        execute_json(
            AzCmd("ad app", "list")
            .param("--filter", f"displayName eq {odata_string(display_name)}")
            .query("[].{appId:appId, id:id, displayName:displayName}")
            .output("json")
        )
        or []
    )
    if len(apps) > 1:
        raise AmbiguousResourceError(
            f"Found {len(apps)} app registrations named '{display_name}'. Delete the duplicates or choose another name."
        )
    return apps[0] if apps else None


def create_app(display_name: str) -> dict[str, Any]:
    log.info(f"Creating app registration '{display_name}'")
    app = execute_json(
        AzCmd("ad app", "create")
        .param("--display-name", display_name)
        .param("--sign-in-audience", "AzureADMyOrg")
        .output("json")
    )
    if not app or not app.get("appId"):
        raise FatalError(f"Azure CLI returned no application for '{display_name}'")
    return app


def ensure_service_principal(app_id: str) -> str:
    """Return the object ID of the app's service principal, creating it if it does not exist."""
    log.info(f"Checking if service principal for app {app_id} already exists...")
    existing = (
        execute_json(
            AzCmd("ad sp", "list")
            .param("--filter", f"appId eq {odata_string(app_id)}")
            .query("[].id")
            .output("json")
        )
        or []
    )
    if existing:
        log.info(f"Service principal for app {app_id} already exists - reusing existing service principal")
        return existing[0]

    log.info(f"Service principal for app {app_id} not found - creating new service principal")
    service_principal = execute_json(AzCmd("ad sp", "create").param("--id", app_id).output("json"))
    if not service_principal or not service_principal.get("id"):
        raise FatalError(f"Azure CLI returned no service principal for app {app_id}")
    return service_principal["id"]


def issue_client_secret(app_id: str, today: Optional[date] = None) -> tuple[str, str, date]:
    """Append a new client secret to the app. Returns (secret, tenant ID, expiry). Secrets cannot be read back later."""
    today = today or datetime.now(timezone.utc).date()
    expiry = add_years(today, CLIENT_SECRET_TTL_YEARS)
    log.info(f"Creating a new client secret for app {app_id}, valid until {expiry.isoformat()}")
    credential = execute_json(
        AzCmd("ad app", "credential reset")
        .param("--id", app_id)
        .flag("--append")
        .param("--display-name", CLIENT_SECRET_DISPLAY_NAME)
        .param("--end-date", expiry.isoformat())
        .output("json")
    )
    if not credential or not credential.get("password"):
        raise FatalError(f"Azure CLI returned no client secret for app {app_id}")
    return credential["password"], credential.get("tenant", ""), expiry


def ensure_app_registration(session: CloudSession, display_name: str) -> AppRegistration:
    """Reuse or create the app registration and its service principal, then always issue a fresh secret."""

    log.info(f"Checking if app registration '{display_name}' already exists...")
    app = find_app_registration(display_name)
    created = app is None
    if app:
        log.info(f"App registration '{display_name}' already exists (appId {app['appId']}) - reusing it")
    else:
        log.info(f"App registration '{display_name}' not found - creating new app registration")
        app = create_app(display_name)

    app_id = app["appId"]
    service_principal_id = ensure_service_principal(app_id)
    client_secret, secret_tenant_id, expiry = issue_client_secret(app_id)

    return AppRegistration(
        tenant_id=session.tenant_id or secret_tenant_id,
        app_id=app_id,
        object_id=app.get("id", ""),
        service_principal_id=service_principal_id,
        client_secret=client_secret,
        secret_expiry=expiry,
        created=created,
    )
