"""Device registry (ClearBlade IoT Core) collaborators."""

from .clearblade_client import (
    ClearBladeDeviceRegistry,
    RegistryCredentials,
    build_registry_path,
    parse_registry_path,
)
from .credentials import ServiceAccount, ServiceAccountError, load_service_account
from .errors import RegistryAPIError, RegistryConflictError, RegistryNotFoundError

__all__ = [
    "ClearBladeDeviceRegistry",
    "RegistryAPIError",
    "RegistryConflictError",
    "RegistryCredentials",
    "RegistryNotFoundError",
    "ServiceAccount",
    "ServiceAccountError",
    "build_registry_path",
    "load_service_account",
    "parse_registry_path",
]
