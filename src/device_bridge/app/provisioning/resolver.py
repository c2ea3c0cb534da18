"""Resolve a request to a fleet device and config scope."""

from __future__ import annotations

import logging
from typing import Iterable

from ..errors import UNKNOWN_SERVICE_CODE, BadRequest
from ..models import DeviceScope, FleetService, ResolvedTarget, Scope, ServiceScope
from ..protocols import FleetDirectory
from .request import ProvisionRequest

logger = logging.getLogger(__name__)


def find_service(services: Iterable[FleetService], name: str) -> FleetService | None:
    """First service whose name equals ``name`` exactly, else None."""
    for service in services:
        if service.name == name:
            return service
    return None


async def resolve_target(
    fleet: FleetDirectory,
    request: ProvisionRequest,
) -> ResolvedTarget:
    """Look up the device and, if one was named, its service.

    Fleet errors (device not found, auth) propagate unchanged; the caller
    maps them to the provisioning taxonomy.

    Raises:
        BadRequest: A service name was given but the device's application
            has no service with exactly that name (an empty service list
            included). There is no fallback to device scope.
    """
    device = await fleet.get_device(request.device_uuid)

    scope: Scope = DeviceScope()
    if request.service_name:
        services = await fleet.list_services(device.application_id)
        service = find_service(services, request.service_name)
        if service is None:
            logger.info(
                'Service %r not found among %d services of application %s',
                request.service_name,
                len(services),
                device.application_id,
                extra={'device_uuid': device.uuid},
            )
            raise BadRequest(
                f'service {request.service_name!r} not found for device',
                code=UNKNOWN_SERVICE_CODE,
            )
        scope = ServiceScope(service_id=service.id, service_name=service.name)

    return ResolvedTarget(device=device, scope=scope)
