"""Provisioning workflow and helpers."""

from .config_entries import (
    CONFIG_ENTRY_NAMES,
    ConfigEntry,
    build_config_entries,
    registry_device_id,
    registry_device_path,
)
from .keys import KeyPair, generate_key_pair
from .request import Operation, ProvisionRequest, parse_provision_request
from .resolver import find_service, resolve_target
from .workflow import ProvisioningWorkflow, ProvisionResult

__all__ = [
    'CONFIG_ENTRY_NAMES',
    'ConfigEntry',
    'KeyPair',
    'Operation',
    'ProvisionRequest',
    'ProvisionResult',
    'ProvisioningWorkflow',
    'build_config_entries',
    'find_service',
    'generate_key_pair',
    'parse_provision_request',
    'registry_device_id',
    'registry_device_path',
    'resolve_target',
]
