"""Provisioning request parsing and validation.

A request is one HTTP call: the method picks the operation and the JSON body
names the balena device (and optionally one of its services)::

    POST   {"device": "<uuid>", "service": "main"}   -> create
    DELETE {"device": "<uuid>"}                       -> delete

The legacy field names ``uuid`` and ``balena_service`` are still accepted.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from ..errors import NO_BODY_CODE, BadRequest


class Operation(str, enum.Enum):
    CREATE = 'create'
    DELETE = 'delete'


METHOD_OPERATIONS: dict[str, Operation] = {
    'POST': Operation.CREATE,
    'DELETE': Operation.DELETE,
}


class ProvisionBody(BaseModel):
    model_config = ConfigDict(extra='ignore', str_strip_whitespace=True)

    device: str | None = Field(
        default=None,
        validation_alias=AliasChoices('device', 'uuid'),
    )
    service: str | None = Field(
        default=None,
        validation_alias=AliasChoices('service', 'balena_service'),
    )


@dataclass(frozen=True, slots=True)
class ProvisionRequest:
    """One validated lifecycle request. Never persisted."""

    method: str
    device_uuid: str
    service_name: str | None = None

    def __post_init__(self) -> None:
        if not self.device_uuid:
            raise BadRequest('device is required')

    @property
    def operation(self) -> Operation | None:
        """The requested operation, or None for an unsupported method."""
        return METHOD_OPERATIONS.get(self.method.upper())


def parse_provision_request(method: str, body: bytes | None) -> ProvisionRequest:
    """Validate a raw request into a ProvisionRequest.

    The method is not checked here: an unsupported method is reported by the
    dispatcher only after the device resolves.

    Raises:
        BadRequest: ``provision.request.no-body`` when the body is missing or
            not JSON, ``provision.request.bad-body`` when it has no device.
    """
    if not body or not body.strip():
        raise BadRequest('request body is required', code=NO_BODY_CODE)

    try:
        parsed = ProvisionBody.model_validate_json(body)
    except ValidationError as exc:
        error_types = {err['type'] for err in exc.errors()}
        if 'json_invalid' in error_types:
            raise BadRequest('request body must be JSON', code=NO_BODY_CODE) from None
        if 'model_type' in error_types:
            raise BadRequest('request body must be a JSON object') from None
        fields = ', '.join(
            '.'.join(str(p) for p in err['loc']) for err in exc.errors()
        )
        raise BadRequest(f'invalid request fields: {fields}') from None

    if not parsed.device:
        raise BadRequest('device is required')

    return ProvisionRequest(
        method=method.upper(),
        device_uuid=parsed.device,
        service_name=parsed.service or None,
    )
