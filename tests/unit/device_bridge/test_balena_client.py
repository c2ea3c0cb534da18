"""Unit tests for BalenaFleetDirectory.

Tests the balenaCloud OData client with mocked httpx transport.
"""

from __future__ import annotations

import json
from typing import Any
from unittest.mock import AsyncMock

import httpx
import pytest

from device_bridge.app.fleet.balena_client import BalenaFleetDirectory, odata_string
from device_bridge.app.fleet.errors import (
    FleetAPIError,
    FleetAuthError,
    FleetDeviceNotFoundError,
)
from device_bridge.app.models import DeviceScope, FleetDevice, FleetService, ServiceScope

DEVICE = FleetDevice(id=7, uuid='abc123', application_id=3)


def _client(handler) -> tuple[BalenaFleetDirectory, httpx.AsyncClient]:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    client = BalenaFleetDirectory(
        api_key='balena-key',
        base_url='https://api.balena.test/',
        http_client=http_client,
    )
    return client, http_client


def test_api_key_required():
    with pytest.raises(ValueError):
        BalenaFleetDirectory(api_key='', http_client=AsyncMock())


def test_http_client_required():
    with pytest.raises(TypeError):
        BalenaFleetDirectory(api_key='balena-key')  # type: ignore[call-arg]


def test_odata_string_escapes_quotes():
    assert odata_string("it's") == "'it''s'"


# ── authenticate ─────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_authenticate_sends_bearer_token():
    seen: dict[str, Any] = {}

    async def handler(request: httpx.Request) -> httpx.Response:
        seen['url'] = str(request.url)
        seen['auth'] = request.headers['authorization']
        return httpx.Response(200, json={'id': 1, 'username': 'ops'})

    client, http_client = _client(handler)
    async with http_client:
        await client.authenticate()

    assert seen['url'] == 'https://api.balena.test/user/v1/whoami'
    assert seen['auth'] == 'Bearer balena-key'


@pytest.mark.asyncio
async def test_authenticate_rejected_raises_auth_error():
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, text='Unauthorized')

    client, http_client = _client(handler)
    async with http_client:
        with pytest.raises(FleetAuthError) as exc_info:
            await client.authenticate()
    assert exc_info.value.status_code == 401


# ── get_device / list_services ───────────────────────────────────


@pytest.mark.asyncio
async def test_get_device_filters_by_uuid():
    seen: dict[str, Any] = {}

    async def handler(request: httpx.Request) -> httpx.Response:
        seen['path'] = request.url.path
        seen['params'] = dict(request.url.params)
        return httpx.Response(200, json={'d': [
            {'id': 7, 'uuid': 'abc123', 'belongs_to__application': {'__id': 3}},
        ]})

    client, http_client = _client(handler)
    async with http_client:
        device = await client.get_device('abc123')

    assert device == DEVICE
    assert seen['path'] == '/v6/device'
    assert seen['params']['$filter'] == "uuid eq 'abc123'"
    assert seen['params']['$select'] == 'id,uuid,belongs_to__application'


@pytest.mark.asyncio
async def test_get_device_missing_raises_not_found():
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={'d': []})

    client, http_client = _client(handler)
    async with http_client:
        with pytest.raises(FleetDeviceNotFoundError) as exc_info:
            await client.get_device('nope')
    assert exc_info.value.uuid == 'nope'


@pytest.mark.asyncio
async def test_unexpected_payload_raises_api_error():
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=[])

    client, http_client = _client(handler)
    async with http_client:
        with pytest.raises(FleetAPIError):
            await client.get_device('abc123')


@pytest.mark.asyncio
async def test_list_services_by_application():
    seen: dict[str, Any] = {}

    async def handler(request: httpx.Request) -> httpx.Response:
        seen['path'] = request.url.path
        seen['params'] = dict(request.url.params)
        return httpx.Response(200, json={'d': [
            {'id': 301, 'service_name': 'main'},
            {'id': 302, 'service_name': 'worker'},
        ]})

    client, http_client = _client(handler)
    async with http_client:
        services = await client.list_services(3)

    assert services == [FleetService(301, 'main'), FleetService(302, 'worker')]
    assert seen['path'] == '/v6/service'
    assert seen['params']['$filter'] == 'application eq 3'


# ── set_config_var ───────────────────────────────────────────────


@pytest.mark.asyncio
async def test_set_device_var_posts_variable():
    requests: list[httpx.Request] = []

    async def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(201, json={'id': 1})

    client, http_client = _client(handler)
    async with http_client:
        await client.set_config_var(DEVICE, DeviceScope(), 'GCP_PROJECT_ID', 'demo')

    assert len(requests) == 1
    assert requests[0].method == 'POST'
    assert requests[0].url.path == '/v6/device_environment_variable'
    assert json.loads(requests[0].content) == {
        'device': 7, 'name': 'GCP_PROJECT_ID', 'value': 'demo',
    }


@pytest.mark.asyncio
async def test_set_device_var_conflict_patches_existing():
    requests: list[httpx.Request] = []

    async def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if request.method == 'POST':
            return httpx.Response(409, text='Unique key constraint violated')
        return httpx.Response(200, text='OK')

    client, http_client = _client(handler)
    async with http_client:
        await client.set_config_var(DEVICE, DeviceScope(), 'GCP_PROJECT_ID', 'demo')

    assert [r.method for r in requests] == ['POST', 'PATCH']
    assert requests[1].url.params['$filter'] == "device eq 7 and name eq 'GCP_PROJECT_ID'"


@pytest.mark.asyncio
async def test_set_service_var_resolves_service_install():
    requests: list[httpx.Request] = []

    async def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if request.url.path == '/v6/service_install':
            return httpx.Response(200, json={'d': [{'id': 55}]})
        return httpx.Response(201, json={'id': 1})

    client, http_client = _client(handler)
    scope = ServiceScope(service_id=301, service_name='main')
    async with http_client:
        await client.set_config_var(DEVICE, scope, 'GCP_PROJECT_ID', 'demo')

    assert requests[0].url.params['$filter'] == 'device eq 7 and installs__service eq 301'
    assert requests[1].url.path == '/v6/device_service_environment_variable'
    assert json.loads(requests[1].content)['service_install'] == 55


@pytest.mark.asyncio
async def test_set_service_var_without_install_raises():
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={'d': []})

    client, http_client = _client(handler)
    scope = ServiceScope(service_id=301, service_name='main')
    async with http_client:
        with pytest.raises(FleetAPIError):
            await client.set_config_var(DEVICE, scope, 'GCP_PROJECT_ID', 'demo')


# ── remove_config_var ────────────────────────────────────────────


@pytest.mark.asyncio
async def test_remove_device_var_deletes_by_filter():
    seen: dict[str, Any] = {}

    async def handler(request: httpx.Request) -> httpx.Response:
        seen['method'] = request.method
        seen['path'] = request.url.path
        seen['filter'] = request.url.params['$filter']
        return httpx.Response(200, text='OK')

    client, http_client = _client(handler)
    async with http_client:
        await client.remove_config_var(DEVICE, DeviceScope(), 'GCP_PRIVATE_KEY')

    assert seen['method'] == 'DELETE'
    assert seen['path'] == '/v6/device_environment_variable'
    assert seen['filter'] == "device eq 7 and name eq 'GCP_PRIVATE_KEY'"


@pytest.mark.asyncio
async def test_remove_service_var_filters_through_service_install():
    seen: dict[str, Any] = {}

    async def handler(request: httpx.Request) -> httpx.Response:
        seen['path'] = request.url.path
        seen['filter'] = request.url.params['$filter']
        return httpx.Response(200, text='OK')

    client, http_client = _client(handler)
    scope = ServiceScope(service_id=301, service_name='main')
    async with http_client:
        await client.remove_config_var(DEVICE, scope, 'GCP_PRIVATE_KEY')

    assert seen['path'] == '/v6/device_service_environment_variable'
    assert seen['filter'] == (
        'service_install/device eq 7 and service_install/installs__service eq 301 '
        "and name eq 'GCP_PRIVATE_KEY'"
    )


@pytest.mark.asyncio
async def test_server_error_raises_api_error():
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={'error': 'internal'})

    client, http_client = _client(handler)
    async with http_client:
        with pytest.raises(FleetAPIError) as exc_info:
            await client.remove_config_var(DEVICE, DeviceScope(), 'GCP_PRIVATE_KEY')
    assert exc_info.value.status_code == 500
    assert exc_info.value.message == 'internal'
