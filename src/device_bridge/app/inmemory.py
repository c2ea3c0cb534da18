"""In-memory collaborator implementations for local development.

These are used when ENVIRONMENT=local. They satisfy the protocol interfaces
and mimic the failure modes of the real services (auth rejection, missing
device, registry conflict/not-found) but store everything in dicts.
"""

from __future__ import annotations

from typing import Any

from .fleet.errors import FleetAuthError, FleetDeviceNotFoundError
from .models import DeviceScope, FleetDevice, FleetService, Scope
from .registry.clearblade_client import PUBLIC_KEY_FORMAT, build_registry_path
from .registry.errors import RegistryConflictError, RegistryNotFoundError


def _scope_key(scope: Scope) -> str:
    if isinstance(scope, DeviceScope):
        return "device"
    return f"service:{scope.service_id}"


class InMemoryFleetDirectory:
    def __init__(self, *, authenticated: bool = True) -> None:
        self.authenticated = authenticated
        self._devices: dict[str, FleetDevice] = {}
        self._services: dict[int, list[FleetService]] = {}
        # (device uuid, scope key) -> {name: value}
        self.vars: dict[tuple[str, str], dict[str, str]] = {}
        self.calls: list[tuple[str, ...]] = []

    def add_device(
        self,
        uuid: str,
        *,
        device_id: int | None = None,
        application_id: int = 1,
        services: list[str] | None = None,
    ) -> FleetDevice:
        device = FleetDevice(
            id=device_id if device_id is not None else len(self._devices) + 1,
            uuid=uuid,
            application_id=application_id,
        )
        self._devices[uuid] = device
        if services is not None:
            self._services[application_id] = [
                FleetService(id=application_id * 100 + i, name=name)
                for i, name in enumerate(services, start=1)
            ]
        return device

    def vars_for(self, uuid: str, scope: Scope) -> dict[str, str]:
        return self.vars.get((uuid, _scope_key(scope)), {})

    async def authenticate(self) -> None:
        self.calls.append(("authenticate",))
        if not self.authenticated:
            raise FleetAuthError(401, "Unauthorized")

    async def get_device(self, uuid: str) -> FleetDevice:
        self.calls.append(("get_device", uuid))
        device = self._devices.get(uuid)
        if device is None:
            raise FleetDeviceNotFoundError(uuid)
        return device

    async def list_services(self, application_id: int) -> list[FleetService]:
        self.calls.append(("list_services", str(application_id)))
        return list(self._services.get(application_id, []))

    async def set_config_var(
        self, device: FleetDevice, scope: Scope, name: str, value: str,
    ) -> None:
        self.calls.append(("set_config_var", _scope_key(scope), name))
        self.vars.setdefault((device.uuid, _scope_key(scope)), {})[name] = value

    async def remove_config_var(
        self, device: FleetDevice, scope: Scope, name: str,
    ) -> None:
        self.calls.append(("remove_config_var", _scope_key(scope), name))
        self.vars.get((device.uuid, _scope_key(scope)), {}).pop(name, None)


class InMemoryDeviceRegistry:
    def __init__(self) -> None:
        # full device path -> device resource
        self.devices: dict[str, dict[str, Any]] = {}

    def registry_path(self, project: str, region: str, registry_id: str) -> str:
        return build_registry_path(project, region, registry_id)

    async def create_device(
        self, parent: str, device_id: str, public_key_pem: str,
    ) -> dict[str, Any]:
        name = f"{parent}/devices/{device_id}"
        if name in self.devices:
            raise RegistryConflictError(f"Device {device_id} already exists")
        device = {
            "id": device_id,
            "name": name,
            "credentials": [
                {"publicKey": {"format": PUBLIC_KEY_FORMAT, "key": public_key_pem}},
            ],
        }
        self.devices[name] = device
        return device

    async def delete_device(self, name: str) -> None:
        if self.devices.pop(name, None) is None:
            raise RegistryNotFoundError(f"Device {name} not found")
