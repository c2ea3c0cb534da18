"""Value types shared by the workflow and its collaborators.

All of these are read-only snapshots that live for one request.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True, slots=True)
class FleetDevice:
    """A balena device as resolved from the fleet."""

    id: int
    uuid: str
    application_id: int


@dataclass(frozen=True, slots=True)
class FleetService:
    """A service (container) defined by a balena application release."""

    id: int
    name: str


@dataclass(frozen=True, slots=True)
class DeviceScope:
    """Config vars apply to the whole device."""

    def describe(self) -> str:
        return "device"


@dataclass(frozen=True, slots=True)
class ServiceScope:
    """Config vars apply to one service running on the device."""

    service_id: int
    service_name: str

    def describe(self) -> str:
        return f"service:{self.service_name}"


Scope = Union[DeviceScope, ServiceScope]


@dataclass(frozen=True, slots=True)
class ResolvedTarget:
    """Device plus the scope that every config var of this request uses."""

    device: FleetDevice
    scope: Scope
