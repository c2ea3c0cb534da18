"""Provisioning error taxonomy.

Every failure the workflow can report is one of the classes below. Each carries
a stable ``code`` (safe to return to callers) and the HTTP status it maps to.
The status is only read at the HTTP boundary (``routes/provision.py``); the
workflow itself never deals in status codes.
"""

from __future__ import annotations


class ProvisionError(Exception):
    """Base class for all provisioning failures."""

    code: str = "provision.error"
    status_code: int = 500

    def __init__(self, detail: str = "", *, code: str | None = None) -> None:
        if code is not None:
            self.code = code
        self.detail = detail or self.code
        super().__init__(self.detail)

    def to_payload(self) -> dict[str, str]:
        return {"error": self.code, "detail": self.detail}


class BadRequest(ProvisionError):
    """Missing/invalid request shape, or an unresolvable service name."""

    code = "provision.request.bad-body"
    status_code = 400


class DeviceNotFound(ProvisionError):
    """The fleet has no device with the requested UUID."""

    code = "provision.device.not-found"
    status_code = 400


class AuthFailure(ProvisionError):
    """The fleet rejected our API key."""

    code = "provision.fleet.auth"
    status_code = 400


class RegistryFailure(ProvisionError):
    """Any registry error other than not-found during delete."""

    code = "provision.registry.failure"
    status_code = 500


class UnsupportedOperation(ProvisionError):
    code = "provision.request.unsupported-method"
    status_code = 500


class Unexpected(ProvisionError):
    """Anything else, including transport errors."""

    code = "provision.unexpected"
    status_code = 500


NO_BODY_CODE = "provision.request.no-body"
UNKNOWN_SERVICE_CODE = "provision.request.unknown-service"
