"""ClearBlade service account loading.

The registry credential arrives as a single environment value: the service
account JSON downloaded from the ClearBlade IoT Core console, base64-encoded
so it survives secret stores that mangle newlines. Expected keys:

    {"systemKey": "...", "token": "...", "url": "https://...", "project": "..."}

``project`` is optional.
"""

from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass


class ServiceAccountError(ValueError):
    """Raised when the service account blob cannot be decoded."""


@dataclass(frozen=True, slots=True)
class ServiceAccount:
    system_key: str
    token: str
    url: str
    project: str = ""

    def __repr__(self) -> str:
        # Keep the token out of logs and tracebacks.
        return (
            f"ServiceAccount(system_key={self.system_key!r}, url={self.url!r}, "
            f"project={self.project!r}, token=***)"
        )


def load_service_account(encoded: str) -> ServiceAccount:
    """Decode a base64 service account blob.

    Raises:
        ServiceAccountError: If the blob is empty, not base64, not JSON, or
            missing ``systemKey``/``token``/``url``.
    """
    if not encoded or not encoded.strip():
        raise ServiceAccountError("registry service account is empty")

    try:
        raw = base64.b64decode(encoded.strip(), validate=True)
        payload = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ServiceAccountError(
            f"registry service account is not base64-encoded JSON: {type(exc).__name__}"
        ) from exc

    if not isinstance(payload, dict):
        raise ServiceAccountError("registry service account must be a JSON object")

    missing = [k for k in ("systemKey", "token", "url") if not payload.get(k)]
    if missing:
        raise ServiceAccountError(
            f"registry service account is missing: {', '.join(missing)}"
        )

    return ServiceAccount(
        system_key=str(payload["systemKey"]),
        token=str(payload["token"]),
        url=str(payload["url"]).rstrip("/"),
        project=str(payload.get("project", "")),
    )
