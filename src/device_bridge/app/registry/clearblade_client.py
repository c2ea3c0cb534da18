"""Async HTTP client for the ClearBlade IoT Core device manager.

Implements the DeviceRegistry protocol (create/delete device identities)
against ClearBlade's Cloud IoT compatible webhook API.

Device calls are not made with the service account directly. The service
account belongs to the admin system; each registry lives in its own regional
system. Before the first device call for a registry the client exchanges the
service account for that registry's credentials:

    POST {url}/api/v/1/code/{systemKey}/getRegistryCredentials
         {"project": ..., "region": ..., "registry": ...}
      -> {"systemKey": ..., "serviceAccountToken": ..., "url": ...}

and then calls ``{regional url}/api/v/4/webhook/execute/{regional systemKey}/
cloudiot_devices`` with ``ClearBlade-UserToken: {serviceAccountToken}``.

One instance is built at process start and shared by every request. Regional
credentials are cached on it per registry.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

import httpx

from .credentials import ServiceAccount
from .errors import (
    GRPC_ALREADY_EXISTS,
    GRPC_NOT_FOUND,
    RegistryAPIError,
    RegistryConflictError,
    RegistryNotFoundError,
)

logger = logging.getLogger(__name__)

PUBLIC_KEY_FORMAT = "ES256_PEM"


def build_registry_path(project: str, region: str, registry_id: str) -> str:
    """Resource path of a registry: projects/{p}/locations/{r}/registries/{id}."""
    for label, value in (("project", project), ("region", region), ("registry_id", registry_id)):
        if not value:
            raise ValueError(f"{label} is required to build a registry path")
    return f"projects/{project}/locations/{region}/registries/{registry_id}"


def parse_registry_path(path: str) -> tuple[str, str, str]:
    """Return (project, region, registry_id) from a registry or device path.

    Accepts ``projects/{p}/locations/{r}/registries/{id}`` optionally followed
    by ``/devices/{device}``.
    """
    parts = path.split("/")
    if (
        len(parts) not in (6, 8)
        or parts[0] != "projects"
        or parts[2] != "locations"
        or parts[4] != "registries"
        or (len(parts) == 8 and parts[6] != "devices")
        or not all(parts[1::2])
    ):
        raise ValueError(f"not a registry resource path: {path!r}")
    return parts[1], parts[3], parts[5]


@dataclass(frozen=True, slots=True)
class RegistryCredentials:
    """Regional system credentials for one registry."""

    system_key: str
    token: str
    url: str

    def __repr__(self) -> str:
        return (
            f"RegistryCredentials(system_key={self.system_key!r}, "
            f"url={self.url!r}, token=***)"
        )

    @property
    def devices_url(self) -> str:
        return f"{self.url}/api/v/4/webhook/execute/{self.system_key}/cloudiot_devices"


def _parse_error(resp: httpx.Response) -> tuple[str, int | None, str | None]:
    """Extract (message, grpc_code, status) from a Cloud IoT style error body."""
    body = resp.text
    message = body[:200] if body else f"HTTP {resp.status_code}"
    grpc_code: int | None = None
    status: str | None = None

    try:
        payload = resp.json()
    except ValueError:
        return message, grpc_code, status

    error = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(error, dict):
        message = error.get("message", message)
        status = error.get("status")
        code = error.get("code")
        # "code" is the HTTP status in Google-style bodies, the gRPC code in
        # ClearBlade's. Only small values are gRPC codes.
        if isinstance(code, int) and code < 100:
            grpc_code = code
    elif isinstance(error, str):
        message = error
    return message, grpc_code, status


class ClearBladeDeviceRegistry:
    """DeviceRegistry backed by ClearBlade IoT Core."""

    def __init__(
        self,
        service_account: ServiceAccount,
        *,
        http_client: httpx.AsyncClient,
        timeout_seconds: float = 30.0,
    ) -> None:
        self._account = service_account
        self._client = http_client
        self._timeout = float(timeout_seconds)
        # registry path -> regional credentials
        self._credentials: dict[str, RegistryCredentials] = {}
        self._credentials_lock = asyncio.Lock()

    @property
    def credentials_url(self) -> str:
        return (
            f"{self._account.url}/api/v/1/code/"
            f"{self._account.system_key}/getRegistryCredentials"
        )

    def _raise_for_status(self, resp: httpx.Response) -> None:
        if resp.status_code < 400:
            return

        message, grpc_code, status = _parse_error(resp)
        body = resp.text

        # A bare 404 (unknown webhook or system) is not a missing device.
        if status == "NOT_FOUND" or grpc_code == GRPC_NOT_FOUND:
            raise RegistryNotFoundError(message, response_body=body)
        if (
            resp.status_code == 409
            or status == "ALREADY_EXISTS"
            or grpc_code == GRPC_ALREADY_EXISTS
        ):
            raise RegistryConflictError(message, response_body=body)
        raise RegistryAPIError(
            resp.status_code,
            message,
            grpc_code=grpc_code,
            response_body=body,
        )

    async def _fetch_credentials(
        self, project: str, region: str, registry_id: str,
    ) -> RegistryCredentials:
        resp = await self._client.request(
            "POST",
            self.credentials_url,
            json={"project": project, "region": region, "registry": registry_id},
            headers={"ClearBlade-UserToken": self._account.token},
            timeout=self._timeout,
        )
        if resp.status_code >= 400:
            # Every exchange failure is fatal, including a NOT_FOUND registry.
            message, grpc_code, _ = _parse_error(resp)
            raise RegistryAPIError(
                resp.status_code,
                f"registry credentials: {message}",
                grpc_code=grpc_code,
                response_body=resp.text,
            )

        try:
            payload = resp.json()
        except ValueError:
            payload = None
        if (
            not isinstance(payload, dict)
            or not payload.get("systemKey")
            or not payload.get("serviceAccountToken")
        ):
            raise RegistryAPIError(
                resp.status_code,
                "registry credentials: response is missing systemKey or serviceAccountToken",
                response_body=resp.text[:200],
            )

        return RegistryCredentials(
            system_key=str(payload["systemKey"]),
            token=str(payload["serviceAccountToken"]),
            url=str(payload.get("url") or self._account.url).rstrip("/"),
        )

    async def _registry_credentials(self, path: str) -> RegistryCredentials:
        """Regional credentials for the registry ``path`` belongs to, fetched once."""
        project, region, registry_id = parse_registry_path(path)
        key = build_registry_path(project, region, registry_id)

        cached = self._credentials.get(key)
        if cached is not None:
            return cached

        async with self._credentials_lock:
            cached = self._credentials.get(key)
            if cached is None:
                cached = await self._fetch_credentials(project, region, registry_id)
                self._credentials[key] = cached
                logger.info("Registry credentials loaded: registry=%s", key)
        return cached

    # ── Public API ───────────────────────────────────────────────

    def registry_path(self, project: str, region: str, registry_id: str) -> str:
        return build_registry_path(project, region, registry_id)

    async def create_device(
        self, parent: str, device_id: str, public_key_pem: str,
    ) -> dict[str, Any]:
        """Register a device with a single ES256 public key credential.

        Raises RegistryConflictError if the id is already registered.
        """
        credentials = await self._registry_credentials(parent)
        payload = {
            "id": device_id,
            "credentials": [
                {"publicKey": {"format": PUBLIC_KEY_FORMAT, "key": public_key_pem}},
            ],
        }
        resp = await self._client.request(
            "POST",
            credentials.devices_url,
            params={"parent": parent},
            json=payload,
            headers={"ClearBlade-UserToken": credentials.token},
            timeout=self._timeout,
        )
        self._raise_for_status(resp)

        logger.info(
            "Registry device created: id=%s",
            device_id,
            extra={"registry_device_id": device_id},
        )
        try:
            result = resp.json()
        except ValueError:
            result = {}
        return result if isinstance(result, dict) else {}

    async def delete_device(self, name: str) -> None:
        """Delete a device by full resource name.

        Raises RegistryNotFoundError only when the registry reports the
        device itself as missing (NOT_FOUND / gRPC 5).
        """
        credentials = await self._registry_credentials(name)
        resp = await self._client.request(
            "DELETE",
            credentials.devices_url,
            params={"name": name},
            headers={"ClearBlade-UserToken": credentials.token},
            timeout=self._timeout,
        )
        self._raise_for_status(resp)
        logger.info("Registry device deleted: name=%s", name)
