"""balenaCloud API error hierarchy.

Kept small and dependency-free so callers can match on them without leaking
httpx.Response objects (or the API key) upward.
"""

from __future__ import annotations


class FleetAPIError(Exception):
    """Base exception for balenaCloud API errors."""

    def __init__(
        self,
        status_code: int,
        message: str = "",
        *,
        response_body: str = "",
    ) -> None:
        self.status_code = status_code
        self.message = message
        self.response_body = response_body
        super().__init__(f"balena API error {status_code}: {message}")


class FleetAuthError(FleetAPIError):
    """401/403: the API key was rejected."""


class FleetDeviceNotFoundError(FleetAPIError):
    """No device matches the requested UUID."""

    def __init__(self, uuid: str) -> None:
        self.uuid = uuid
        super().__init__(404, f"Device not found: {uuid}")


class FleetConflictError(FleetAPIError):
    """409: unique constraint violated (e.g. the variable already exists)."""
