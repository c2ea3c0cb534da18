"""Provisioning workflow: create or delete one device's registry identity.

Drives a single request start to finish as one ordered chain of calls:

  create: key pair -> registry create -> 4 config var writes
  delete: registry delete (absent is fine) -> 4 config var removals

Config var writes are sequential with no rollback. If a write fails after
the registry device was created, the device is left registered with a partial
set of vars; the failure is logged with the vars already written so an
operator can clean up (a DELETE request removes both sides).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from ..errors import (
    AuthFailure,
    DeviceNotFound,
    ProvisionError,
    RegistryFailure,
    Unexpected,
    UnsupportedOperation,
)
from ..fleet.errors import FleetAPIError, FleetAuthError, FleetDeviceNotFoundError
from ..models import ResolvedTarget
from ..protocols import DeviceRegistry, FleetDirectory
from ..registry.errors import RegistryAPIError, RegistryNotFoundError
from .config_entries import (
    CONFIG_ENTRY_NAMES,
    build_config_entries,
    registry_device_id,
    registry_device_path,
)
from .keys import generate_key_pair
from .request import Operation, ProvisionRequest
from .resolver import resolve_target

logger = logging.getLogger(__name__)

CREATED_MESSAGE = 'device created'
DELETED_MESSAGE = 'device deleted'


@dataclass(frozen=True, slots=True)
class ProvisionResult:
    status_code: int
    message: str
    registry_device_id: str


class ProvisioningWorkflow:
    """Device lifecycle transitions between balenaCloud and the registry.

    Holds only read-only collaborators and registry coordinates, so one
    instance can serve concurrent requests. Requests for the same device are
    not serialized.
    """

    def __init__(
        self,
        *,
        fleet: FleetDirectory,
        registry: DeviceRegistry,
        registry_path: str,
        project_id: str,
        device_prefix: str = 'balena-',
    ) -> None:
        self._fleet = fleet
        self._registry = registry
        self._registry_path = registry_path
        self._project_id = project_id
        self._device_prefix = device_prefix

    @property
    def registry_path(self) -> str:
        return self._registry_path

    def device_id_for(self, device_uuid: str) -> str:
        return registry_device_id(device_uuid, self._device_prefix)

    async def handle(self, request: ProvisionRequest) -> ProvisionResult:
        """Authenticate, resolve and dispatch one request.

        Raises:
            ProvisionError: One of the taxonomy classes; collaborator errors
                are translated here.
        """
        try:
            await self._fleet.authenticate()
            target = await resolve_target(self._fleet, request)

            operation = request.operation
            scope_text = target.scope.describe()
            if operation is Operation.CREATE:
                logger.info(
                    'Creating device: %s (%s)',
                    target.device.uuid,
                    scope_text,
                    extra={'device_uuid': target.device.uuid, 'scope': scope_text},
                )
                return await self.create(target)
            if operation is Operation.DELETE:
                logger.info(
                    'Deleting device: %s (%s)',
                    target.device.uuid,
                    scope_text,
                    extra={'device_uuid': target.device.uuid, 'scope': scope_text},
                )
                return await self.delete(target)
            raise UnsupportedOperation(f'method {request.method} not handled')
        except ProvisionError:
            raise
        except FleetAuthError as exc:
            raise AuthFailure(f'balena authentication failed: {exc.message}') from exc
        except FleetDeviceNotFoundError as exc:
            raise DeviceNotFound(f'device not found: {exc.uuid}') from exc
        except RegistryAPIError as exc:
            raise RegistryFailure(f'registry error: {exc.message}') from exc
        except FleetAPIError as exc:
            raise Unexpected(f'balena error {exc.status_code}: {exc.message}') from exc
        except httpx.HTTPError as exc:
            raise Unexpected(f'transport error: {type(exc).__name__}') from exc

    async def create(self, target: ResolvedTarget) -> ProvisionResult:
        """Register a new identity and write its config vars.

        No existence pre-check: a device that is already registered surfaces
        the registry's conflict error.
        """
        key_pair = generate_key_pair()
        device_id = self.device_id_for(target.device.uuid)

        await self._registry.create_device(
            self._registry_path, device_id, key_pair.public_key_pem,
        )

        entries = build_config_entries(
            registry_path=self._registry_path,
            device_id=device_id,
            key_pair=key_pair,
            project_id=self._project_id,
        )
        written: list[str] = []
        try:
            for entry in entries:
                await self._fleet.set_config_var(
                    target.device, target.scope, entry.name, entry.value,
                )
                written.append(entry.name)
        except Exception:
            logger.error(
                'Config write failed after registry create; device %s is '
                'registered with partial vars %s',
                device_id,
                written,
                extra={
                    'registry_device_id': device_id,
                    'device_uuid': target.device.uuid,
                    'written_vars': written,
                },
            )
            raise

        logger.info(
            'Created device %s',
            device_id,
            extra={'registry_device_id': device_id, 'device_uuid': target.device.uuid},
        )
        return ProvisionResult(201, CREATED_MESSAGE, device_id)

    async def delete(self, target: ResolvedTarget) -> ProvisionResult:
        """Remove the identity (if present) and all config vars."""
        device_id = self.device_id_for(target.device.uuid)

        try:
            await self._registry.delete_device(
                registry_device_path(self._registry_path, device_id),
            )
        except RegistryNotFoundError:
            logger.warning(
                'Device %s not found in registry; removing config vars anyway',
                device_id,
                extra={'registry_device_id': device_id},
            )

        for name in CONFIG_ENTRY_NAMES:
            await self._fleet.remove_config_var(target.device, target.scope, name)

        logger.info(
            'Deleted device %s',
            device_id,
            extra={'registry_device_id': device_id, 'device_uuid': target.device.uuid},
        )
        return ProvisionResult(200, DELETED_MESSAGE, device_id)
