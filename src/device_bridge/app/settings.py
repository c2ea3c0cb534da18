"""Device bridge configuration settings.

BridgeSettings is the single configuration object accepted by create_app().
It is intentionally a plain dataclass (not env-coupled) so tests can inject config
without touching os.environ.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_BALENA_API_URL = "https://api.balena-cloud.com"
DEFAULT_REGISTRY_DEVICE_PREFIX = "balena-"


@dataclass(frozen=True, slots=True)
class BridgeSettings:
    """Configuration for the device bridge FastAPI application.

    All fields have sensible defaults for local development, where the
    fleet and registry are replaced by in-memory fakes. Non-local
    environments must supply real credentials and registry identifiers.
    """

    # ── Environment ────────────────────────────────────────────────
    environment: str = "local"
    """One of: local, dev, staging, production."""

    # ── balenaCloud (fleet) ────────────────────────────────────────
    balena_api_key: str = ""
    """balenaCloud API key. Never log this."""

    balena_api_url: str = DEFAULT_BALENA_API_URL

    # ── ClearBlade IoT Core (registry) ─────────────────────────────
    registry_project_id: str = ""
    """Project id; also written to devices as GCP_PROJECT_ID."""

    registry_region: str = ""
    registry_id: str = ""

    registry_service_account: str = ""
    """Base64-encoded ClearBlade service account JSON. Never log this."""

    registry_device_prefix: str = DEFAULT_REGISTRY_DEVICE_PREFIX
    """Prefix joined to the balena UUID to form the registry device id."""

    # ── HTTP ───────────────────────────────────────────────────────
    http_timeout_seconds: float = 30.0

    @property
    def is_local(self) -> bool:
        return self.environment == "local"

    def validate(self) -> list[str]:
        """Return a list of configuration errors. Empty means valid."""
        errors: list[str] = []
        if not self.registry_device_prefix:
            errors.append("registry_device_prefix must not be empty")
        if self.http_timeout_seconds <= 0:
            errors.append("http_timeout_seconds must be positive")
        if not self.is_local:
            required = {
                "balena_api_key": self.balena_api_key,
                "registry_project_id": self.registry_project_id,
                "registry_region": self.registry_region,
                "registry_id": self.registry_id,
                "registry_service_account": self.registry_service_account,
            }
            for name, value in required.items():
                if not value:
                    errors.append(f"{self.environment}: {name} is required")
        return errors

    @classmethod
    def from_env(cls, env: dict[str, str] | None = None) -> BridgeSettings:
        """Build settings from environment variables.

        This is a convenience factory for production use. Tests should
        construct BridgeSettings directly.
        """
        if env is None:
            env = dict(os.environ)

        timeout_raw = env.get("HTTP_TIMEOUT_SECONDS", "").strip()
        try:
            timeout = float(timeout_raw) if timeout_raw else 30.0
        except ValueError:
            raise ValueError(
                f"HTTP_TIMEOUT_SECONDS must be a number, got {timeout_raw!r}"
            ) from None

        return cls(
            environment=env.get("ENVIRONMENT", "local"),
            balena_api_key=env.get("BALENA_API_KEY", ""),
            balena_api_url=env.get("BALENA_API_URL", "") or DEFAULT_BALENA_API_URL,
            registry_project_id=env.get("GCP_PROJECT_ID", ""),
            registry_region=env.get("GCP_REGION", ""),
            registry_id=env.get("GCP_REGISTRY_ID", ""),
            registry_service_account=env.get("CB_SERVICE_ACCOUNT", ""),
            registry_device_prefix=(
                env.get("REGISTRY_DEVICE_PREFIX", "") or DEFAULT_REGISTRY_DEVICE_PREFIX
            ),
            http_timeout_seconds=timeout,
        )
