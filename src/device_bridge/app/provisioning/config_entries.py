"""Registry device ids and the config vars derived from them.

Every provisioned device (or device service) carries exactly four variables:

    GCP_PRIVATE_KEY       base64 of the PKCS8 PEM private key
    GCP_CLIENT_PATH       {registry_path}/devices/{registry_device_id}
    GCP_DATA_TOPIC_ROOT   /devices/{registry_device_id}
    GCP_PROJECT_ID        registry project id

Create writes all four, delete removes all four, in this order.
"""

from __future__ import annotations

from dataclasses import dataclass

from .keys import KeyPair

PRIVATE_KEY_VAR = 'GCP_PRIVATE_KEY'
CLIENT_PATH_VAR = 'GCP_CLIENT_PATH'
DATA_TOPIC_ROOT_VAR = 'GCP_DATA_TOPIC_ROOT'
PROJECT_ID_VAR = 'GCP_PROJECT_ID'

CONFIG_ENTRY_NAMES: tuple[str, ...] = (
    PRIVATE_KEY_VAR,
    CLIENT_PATH_VAR,
    DATA_TOPIC_ROOT_VAR,
    PROJECT_ID_VAR,
)


def registry_device_id(device_uuid: str, prefix: str = 'balena-') -> str:
    """Registry id for a balena device. Depends only on the UUID."""
    return f'{prefix}{device_uuid}'


def registry_device_path(registry_path: str, device_id: str) -> str:
    return f'{registry_path}/devices/{device_id}'


def data_topic_root(device_id: str) -> str:
    return f'/devices/{device_id}'


@dataclass(frozen=True, slots=True)
class ConfigEntry:
    name: str
    value: str

    def __repr__(self) -> str:
        shown = '***' if self.name == PRIVATE_KEY_VAR else self.value
        return f'ConfigEntry({self.name}={shown})'


def build_config_entries(
    *,
    registry_path: str,
    device_id: str,
    key_pair: KeyPair,
    project_id: str,
) -> tuple[ConfigEntry, ...]:
    """The four config vars for a freshly created registry device."""
    return (
        ConfigEntry(PRIVATE_KEY_VAR, key_pair.private_key_b64),
        ConfigEntry(CLIENT_PATH_VAR, registry_device_path(registry_path, device_id)),
        ConfigEntry(DATA_TOPIC_ROOT_VAR, data_topic_root(device_id)),
        ConfigEntry(PROJECT_ID_VAR, project_id),
    )
