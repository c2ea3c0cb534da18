"""Modal deployment entrypoint for the device bridge.

Canonical deploy:
  modal deploy src/device_bridge/modal/modal_app.py

Provisioning requests are short and independent; the function scales to zero.
"""

from __future__ import annotations

import os

import modal


APP_NAME = "device-bridge"
BRIDGE_SECRET_NAME = "device-bridge"

# Deployment sizing.
MIN_CONTAINERS = 0
MAX_CONTAINERS = 4
TIMEOUT_SECONDS = 120

# Env vars expected inside the Modal container via Modal Secret.
REQUIRED_ENV_VARS: tuple[str, ...] = (
    "BALENA_API_KEY",
    "GCP_PROJECT_ID",
    "GCP_REGION",
    "GCP_REGISTRY_ID",
    "CB_SERVICE_ACCOUNT",
)


def _build_bridge_app():
    """Build the FastAPI app for Modal ASGI serving.

    Import inside function so `modal deploy` can analyze the module without
    importing app code at build time.
    """
    from device_bridge.app.main import create_app
    from device_bridge.app.settings import BridgeSettings

    # A deployed function always talks to the real services.
    env = dict(os.environ)
    env.setdefault("ENVIRONMENT", "production")
    return create_app(BridgeSettings.from_env(env))


IMAGE_PIP_DEPS: tuple[str, ...] = (
    "fastapi>=0.100.0",
    "httpx>=0.24.0",
    "pydantic>=2.0",
    "structlog>=23.1.0",
    "cryptography>=41.0.0",
    "modal>=1.0.0",
)

_image = (
    modal.Image.debian_slim(python_version="3.11")
    .pip_install(*IMAGE_PIP_DEPS)
    .add_local_python_source("device_bridge")
)

_secrets = [modal.Secret.from_name(BRIDGE_SECRET_NAME)]

app = modal.App(APP_NAME)


@app.function(
    image=_image,
    secrets=_secrets,
    min_containers=MIN_CONTAINERS,
    max_containers=MAX_CONTAINERS,
    timeout=TIMEOUT_SECONDS,
)
@modal.asgi_app()
def fastapi_app():
    return _build_bridge_app()
