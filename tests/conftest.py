"""Pytest configuration for device_bridge tests."""
import sys
from pathlib import Path

# Add src/ to path for src-layout imports
_PROJECT_ROOT = Path(__file__).parent.parent
_SRC = _PROJECT_ROOT / 'src'
if str(_SRC) not in sys.path:
    sys.path.insert(0, str(_SRC))

import pytest

from device_bridge.app.inmemory import InMemoryDeviceRegistry, InMemoryFleetDirectory
from device_bridge.app.settings import BridgeSettings


@pytest.fixture
def fleet():
    """In-memory fleet with one device (abc123) whose app has main/worker."""
    directory = InMemoryFleetDirectory()
    directory.add_device('abc123', device_id=7, application_id=3, services=['main', 'worker'])
    return directory


@pytest.fixture
def registry():
    return InMemoryDeviceRegistry()


@pytest.fixture
def settings():
    return BridgeSettings(
        environment='local',
        registry_project_id='demo-project',
        registry_region='us-central1',
        registry_id='fleet-registry',
    )
