"""Fleet directory (balenaCloud) collaborators."""

from .balena_client import BalenaFleetDirectory
from .errors import (
    FleetAPIError,
    FleetAuthError,
    FleetConflictError,
    FleetDeviceNotFoundError,
)

__all__ = [
    "BalenaFleetDirectory",
    "FleetAPIError",
    "FleetAuthError",
    "FleetConflictError",
    "FleetDeviceNotFoundError",
]
