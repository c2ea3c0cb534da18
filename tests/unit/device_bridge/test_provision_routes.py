"""HTTP contract tests for the provisioning endpoint.

Runs the full app (local mode, in-memory fleet and registry) through
TestClient:
  - POST creates, DELETE deletes, with the plain-text success bodies
  - 400 for request/device/auth problems, 500 for registry and method errors
  - error bodies carry a stable code and a detail
"""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from device_bridge.app.main import create_app
from device_bridge.app.models import DeviceScope, ServiceScope
from device_bridge.app.provisioning.config_entries import CONFIG_ENTRY_NAMES
from device_bridge.app.registry.errors import RegistryAPIError

DEVICE_PATH = (
    'projects/demo-project/locations/us-central1/registries/fleet-registry'
    '/devices/balena-abc123'
)


@pytest.fixture
def client(settings, fleet, registry):
    app = create_app(settings, fleet=fleet, registry=registry)
    return TestClient(app)


# =====================================================================
# 1. Scenarios
# =====================================================================


class TestScenarios:

    def test_post_creates_device(self, client, fleet, registry):
        resp = client.post('/', json={'device': 'abc123'})

        assert resp.status_code == 201
        assert resp.text == 'device created'
        assert DEVICE_PATH in registry.devices
        assert set(fleet.vars_for('abc123', DeviceScope())) == set(CONFIG_ENTRY_NAMES)

    def test_delete_after_external_removal_still_succeeds(self, client, fleet, registry):
        client.post('/', json={'device': 'abc123'})
        registry.devices.clear()

        resp = client.request('DELETE', '/', json={'device': 'abc123'})

        assert resp.status_code == 200
        assert resp.text == 'device deleted'
        assert fleet.vars_for('abc123', DeviceScope()) == {}

    def test_unknown_service_is_400(self, client, registry):
        resp = client.post('/', json={'device': 'abc123', 'service': 'ghost'})

        assert resp.status_code == 400
        assert resp.json()['error'] == 'provision.request.unknown-service'
        assert registry.devices == {}

    def test_service_scoped_create(self, client, fleet):
        resp = client.post('/', json={'device': 'abc123', 'service': 'main'})

        assert resp.status_code == 201
        scope = ServiceScope(service_id=301, service_name='main')
        assert set(fleet.vars_for('abc123', scope)) == set(CONFIG_ENTRY_NAMES)
        assert fleet.vars_for('abc123', DeviceScope()) == {}

    def test_legacy_body_fields(self, client, registry):
        resp = client.post('/', json={'uuid': 'abc123', 'balena_service': 'worker'})
        assert resp.status_code == 201


# =====================================================================
# 2. Error mapping
# =====================================================================


class TestErrorMapping:

    @pytest.mark.parametrize('method', ['POST', 'DELETE', 'PUT', 'PATCH', 'GET'])
    def test_body_without_device_is_400_for_every_method(self, client, method):
        resp = client.request(method, '/', json={'service': 'main'})

        assert resp.status_code == 400
        assert resp.json()['error'] == 'provision.request.bad-body'

    def test_missing_body_is_400(self, client):
        resp = client.post('/')

        assert resp.status_code == 400
        assert resp.json()['error'] == 'provision.request.no-body'

    def test_unknown_device_is_400(self, client):
        resp = client.post('/', json={'device': 'missing'})

        assert resp.status_code == 400
        assert resp.json()['error'] == 'provision.device.not-found'

    def test_rejected_fleet_credentials_are_400(self, client, fleet):
        fleet.authenticated = False

        resp = client.post('/', json={'device': 'abc123'})

        assert resp.status_code == 400
        assert resp.json()['error'] == 'provision.fleet.auth'

    def test_second_create_is_500(self, client):
        assert client.post('/', json={'device': 'abc123'}).status_code == 201

        resp = client.post('/', json={'device': 'abc123'})

        assert resp.status_code == 500
        assert resp.json()['error'] == 'provision.registry.failure'

    def test_delete_twice_is_200(self, client):
        client.post('/', json={'device': 'abc123'})

        first = client.request('DELETE', '/', json={'device': 'abc123'})
        second = client.request('DELETE', '/', json={'device': 'abc123'})

        assert first.status_code == second.status_code == 200

    def test_unsupported_method_with_valid_body_is_500(self, client):
        resp = client.put('/', json={'device': 'abc123'})

        assert resp.status_code == 500
        assert resp.json()['error'] == 'provision.request.unsupported-method'

    def test_registry_error_on_delete_is_500(self, settings, fleet):
        registry = AsyncMock()
        registry.registry_path = lambda *parts: 'projects/p/locations/r/registries/i'
        registry.delete_device = AsyncMock(side_effect=RegistryAPIError(503, 'unavailable'))
        client = TestClient(create_app(settings, fleet=fleet, registry=registry))

        resp = client.request('DELETE', '/', json={'device': 'abc123'})

        assert resp.status_code == 500
        assert resp.json()['error'] == 'provision.registry.failure'

    def test_unexpected_exception_is_500(self, settings, fleet, registry):
        fleet.list_services = AsyncMock(side_effect=RuntimeError('kaboom'))
        client = TestClient(create_app(settings, fleet=fleet, registry=registry))

        resp = client.post('/', json={'device': 'abc123', 'service': 'main'})

        assert resp.status_code == 500
        body = resp.json()
        assert body['error'] == 'provision.unexpected'
        assert 'kaboom' in body['detail']

    def test_error_body_never_contains_private_key(self, client, fleet):
        client.post('/', json={'device': 'abc123'})
        private_key = fleet.vars_for('abc123', DeviceScope())['GCP_PRIVATE_KEY']

        resp = client.post('/', json={'device': 'abc123'})

        assert private_key not in resp.text
