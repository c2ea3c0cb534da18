"""Collaborator protocol interfaces for dependency injection.

These protocols define the contracts that concrete implementations (InMemory
for local dev, balena/ClearBlade for non-local) must satisfy. The app factory
accepts any implementation that matches these protocols.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from .models import FleetDevice, FleetService, Scope


@runtime_checkable
class FleetDirectory(Protocol):
    """Device metadata and per-device/per-service config vars (balenaCloud).

    Implementations raise ``FleetAuthError`` when credentials are rejected and
    ``FleetDeviceNotFoundError`` when ``get_device`` misses.
    """

    async def authenticate(self) -> None: ...
    async def get_device(self, uuid: str) -> FleetDevice: ...
    async def list_services(self, application_id: int) -> list[FleetService]: ...
    async def set_config_var(
        self, device: FleetDevice, scope: Scope, name: str, value: str,
    ) -> None: ...
    async def remove_config_var(
        self, device: FleetDevice, scope: Scope, name: str,
    ) -> None: ...


@runtime_checkable
class DeviceRegistry(Protocol):
    """Device identity lifecycle (ClearBlade IoT Core).

    ``create_device`` raises ``RegistryConflictError`` if the id is taken;
    ``delete_device`` raises ``RegistryNotFoundError`` if it is absent.
    """

    def registry_path(self, project: str, region: str, registry_id: str) -> str: ...
    async def create_device(
        self, parent: str, device_id: str, public_key_pem: str,
    ) -> dict: ...
    async def delete_device(self, name: str) -> None: ...
