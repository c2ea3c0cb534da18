"""Async client for the balenaCloud OData API.

Implements the FleetDirectory protocol: device lookup, service listing and
device/service environment variables. Auth uses a static API key sent as a
bearer token (server-side only, never logged).
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..models import DeviceScope, FleetDevice, FleetService, Scope
from .errors import (
    FleetAPIError,
    FleetAuthError,
    FleetConflictError,
    FleetDeviceNotFoundError,
)

logger = logging.getLogger(__name__)

API_VERSION = "v6"


# ── OData helpers ────────────────────────────────────────────────


def odata_string(value: str) -> str:
    """Quote a string literal for an OData $filter (single quotes doubled)."""
    return "'" + value.replace("'", "''") + "'"


def _nav_id(value: Any) -> int:
    # Navigation properties come back as {"__id": n} unless expanded.
    if isinstance(value, dict):
        return int(value["__id"] if "__id" in value else value["id"])
    return int(value)


def _scope_filter(device: FleetDevice, scope: Scope, name: str) -> str:
    if isinstance(scope, DeviceScope):
        return f"device eq {device.id} and name eq {odata_string(name)}"
    return (
        f"service_install/device eq {device.id} "
        f"and service_install/installs__service eq {scope.service_id} "
        f"and name eq {odata_string(name)}"
    )


def _resource_for(scope: Scope) -> str:
    if isinstance(scope, DeviceScope):
        return "device_environment_variable"
    return "device_service_environment_variable"


# ── Client ───────────────────────────────────────────────────────


class BalenaFleetDirectory:
    """FleetDirectory backed by the balenaCloud API."""

    def __init__(
        self,
        *,
        api_key: str,
        base_url: str = "https://api.balena-cloud.com",
        http_client: httpx.AsyncClient,
        timeout_seconds: float = 30.0,
    ) -> None:
        if not api_key:
            raise ValueError("api_key is required")

        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._client = http_client
        self._timeout = float(timeout_seconds)

    def _auth_headers(self) -> dict[str, str]:
        # Never log these headers.
        return {"Authorization": f"Bearer {self._api_key}"}

    def _raise_for_status(self, resp: httpx.Response) -> None:
        if resp.status_code < 400:
            return

        body = resp.text
        message = body[:200] if body else f"HTTP {resp.status_code}"

        try:
            payload = resp.json()
            if isinstance(payload, dict):
                message = payload.get("error", payload.get("message", message))
        except ValueError:
            pass

        if resp.status_code in (401, 403):
            raise FleetAuthError(resp.status_code, message, response_body=body)
        if resp.status_code == 409:
            raise FleetConflictError(409, message, response_body=body)
        raise FleetAPIError(resp.status_code, message, response_body=body)

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, str] | None = None,
        json: Any | None = None,
    ) -> httpx.Response:
        resp = await self._client.request(
            method,
            f"{self._base_url}{path}",
            headers=self._auth_headers(),
            params=params,
            json=json,
            timeout=self._timeout,
        )
        self._raise_for_status(resp)
        return resp

    async def _select(self, resource: str, *, where: str, select: str) -> list[dict[str, Any]]:
        resp = await self._request(
            "GET",
            f"/{API_VERSION}/{resource}",
            params={"$filter": where, "$select": select},
        )
        payload = resp.json()
        rows = payload.get("d") if isinstance(payload, dict) else None
        if not isinstance(rows, list):
            raise FleetAPIError(
                status_code=0,
                message=f"Expected OData 'd' list from {resource}",
            )
        return rows

    # ── Public API ───────────────────────────────────────────────

    async def authenticate(self) -> None:
        """Verify the API key. Raises FleetAuthError if it is rejected."""
        await self._request("GET", "/user/v1/whoami")

    async def get_device(self, uuid: str) -> FleetDevice:
        rows = await self._select(
            "device",
            where=f"uuid eq {odata_string(uuid)}",
            select="id,uuid,belongs_to__application",
        )
        if not rows:
            raise FleetDeviceNotFoundError(uuid)
        row = rows[0]
        return FleetDevice(
            id=int(row["id"]),
            uuid=row["uuid"],
            application_id=_nav_id(row["belongs_to__application"]),
        )

    async def list_services(self, application_id: int) -> list[FleetService]:
        rows = await self._select(
            "service",
            where=f"application eq {int(application_id)}",
            select="id,service_name",
        )
        return [FleetService(id=int(r["id"]), name=r["service_name"]) for r in rows]

    async def _service_install_id(self, device: FleetDevice, service_id: int) -> int:
        rows = await self._select(
            "service_install",
            where=f"device eq {device.id} and installs__service eq {service_id}",
            select="id",
        )
        if not rows:
            raise FleetAPIError(
                404,
                f"Service {service_id} is not installed on device {device.uuid}",
            )
        return int(rows[0]["id"])

    async def set_config_var(
        self, device: FleetDevice, scope: Scope, name: str, value: str,
    ) -> None:
        """Create or overwrite an environment variable at the given scope."""
        resource = _resource_for(scope)
        if isinstance(scope, DeviceScope):
            body: dict[str, Any] = {"device": device.id}
        else:
            body = {"service_install": await self._service_install_id(device, scope.service_id)}
        body.update({"name": name, "value": value})

        try:
            await self._request("POST", f"/{API_VERSION}/{resource}", json=body)
        except FleetConflictError:
            await self._request(
                "PATCH",
                f"/{API_VERSION}/{resource}",
                params={"$filter": _scope_filter(device, scope, name)},
                json={"value": value},
            )

        logger.debug(
            "Config var set: name=%s device=%s scope=%s",
            name,
            device.uuid,
            scope.describe(),
            extra={"device_uuid": device.uuid, "var_name": name},
        )

    async def remove_config_var(
        self, device: FleetDevice, scope: Scope, name: str,
    ) -> None:
        """Delete an environment variable. Deleting nothing is not an error."""
        await self._request(
            "DELETE",
            f"/{API_VERSION}/{_resource_for(scope)}",
            params={"$filter": _scope_filter(device, scope, name)},
        )
