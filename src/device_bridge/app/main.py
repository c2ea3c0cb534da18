"""Device bridge FastAPI application factory.

The create_app() factory is the single entry point for building the ASGI
application and the composition root for its collaborators: the fleet
directory, the device registry and the provisioning workflow are built once
here and shared by every request.

Usage:
    # Local development (in-memory fleet and registry)
    from device_bridge.app import create_app, BridgeSettings
    app = create_app(BridgeSettings())

    # Non-local (balenaCloud + ClearBlade built from settings)
    app = create_app(BridgeSettings.from_env())

    # Testing (full DI control)
    app = create_app(settings, fleet=fake_fleet, registry=fake_registry)
"""

from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass

import httpx
from fastapi import FastAPI, Request
from starlette.middleware.base import BaseHTTPMiddleware

from .observability.logging import configure_logging, request_id_ctx
from .protocols import DeviceRegistry, FleetDirectory
from .provisioning.workflow import ProvisioningWorkflow
from .settings import BridgeSettings

logger = logging.getLogger(__name__)

# Registry coordinates used in local mode when none are configured.
LOCAL_PROJECT_ID = "local-project"
LOCAL_REGION = "local"
LOCAL_REGISTRY_ID = "local-registry"


@dataclass(frozen=True)
class AppDependencies:
    """Container for the injected collaborators.

    Stored on ``app.state.deps`` so route handlers and tests can reach them.
    """

    fleet: FleetDirectory
    registry: DeviceRegistry
    workflow: ProvisioningWorkflow


def _build_remote_collaborators(
    settings: BridgeSettings,
    http_client: httpx.AsyncClient,
) -> tuple[FleetDirectory, DeviceRegistry]:
    """Construct the balenaCloud and ClearBlade clients from settings."""
    from .fleet.balena_client import BalenaFleetDirectory
    from .registry.clearblade_client import ClearBladeDeviceRegistry
    from .registry.credentials import load_service_account

    fleet = BalenaFleetDirectory(
        api_key=settings.balena_api_key,
        base_url=settings.balena_api_url,
        http_client=http_client,
        timeout_seconds=settings.http_timeout_seconds,
    )
    registry = ClearBladeDeviceRegistry(
        load_service_account(settings.registry_service_account),
        http_client=http_client,
        timeout_seconds=settings.http_timeout_seconds,
    )
    return fleet, registry


# ── Middleware ──────────────────────────────────────────────────────


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Generate or propagate X-Request-ID on every request."""

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = request_id
        token = request_id_ctx.set(request_id)
        try:
            response = await call_next(request)
        finally:
            request_id_ctx.reset(token)
        response.headers["X-Request-ID"] = request_id
        return response


# ── Factory ─────────────────────────────────────────────────────────


def create_app(
    settings: BridgeSettings | None = None,
    *,
    fleet: FleetDirectory | None = None,
    registry: DeviceRegistry | None = None,
) -> FastAPI:
    """Create a configured device bridge FastAPI application.

    Args:
        settings: Application settings. Defaults to local-dev settings.
        fleet, registry: Collaborator overrides. When None, local mode uses
            InMemory implementations and non-local mode builds the balenaCloud
            and ClearBlade clients from settings.

    Returns:
        Configured FastAPI application ready for uvicorn.run().

    Raises:
        ValueError: If settings validation fails (non-local without required config).
        ServiceAccountError: If the registry service account cannot be decoded.
    """
    if settings is None:
        settings = BridgeSettings()

    errors = settings.validate()
    if errors:
        raise ValueError(
            "Device bridge settings validation failed:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )

    http_client: httpx.AsyncClient | None = None
    if settings.is_local:
        from .inmemory import InMemoryDeviceRegistry, InMemoryFleetDirectory

        fleet = fleet or InMemoryFleetDirectory()
        registry = registry or InMemoryDeviceRegistry()
        project_id = settings.registry_project_id or LOCAL_PROJECT_ID
        region = settings.registry_region or LOCAL_REGION
        registry_id = settings.registry_id or LOCAL_REGISTRY_ID
    else:
        if fleet is None or registry is None:
            http_client = httpx.AsyncClient()
            remote_fleet, remote_registry = _build_remote_collaborators(settings, http_client)
            fleet = fleet or remote_fleet
            registry = registry or remote_registry
        project_id = settings.registry_project_id
        region = settings.registry_region
        registry_id = settings.registry_id

    workflow = ProvisioningWorkflow(
        fleet=fleet,
        registry=registry,
        registry_path=registry.registry_path(project_id, region, registry_id),
        project_id=project_id,
        device_prefix=settings.registry_device_prefix,
    )
    deps = AppDependencies(fleet=fleet, registry=registry, workflow=workflow)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging()
        logger.info(
            "Device bridge startup (environment=%s, registry=%s)",
            settings.environment,
            workflow.registry_path,
        )
        yield
        if http_client is not None:
            await http_client.aclose()
        logger.info("Device bridge shutdown")

    app = FastAPI(
        title="Device Bridge",
        description="Provisions balena devices into the ClearBlade IoT Core registry",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.deps = deps
    app.state.settings = settings

    app.add_middleware(RequestIDMiddleware)

    @app.get("/health")
    async def health():
        return {
            "status": "ok",
            "environment": settings.environment,
        }

    from .routes.provision import create_provision_router
    app.include_router(create_provision_router(workflow))

    return app


def create_app_from_env() -> FastAPI:
    """Build the app from environment variables (deployments)."""
    return create_app(BridgeSettings.from_env())


# For uvicorn, use --factory flag:
#   uvicorn device_bridge.app.main:create_app_from_env --factory
# This avoids executing create_app() at import time.
