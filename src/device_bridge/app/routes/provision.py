"""Provisioning HTTP endpoint.

  POST   /  {"device": uuid, "service"?: name}  -> 201 "device created"
  DELETE /  {"device": uuid, "service"?: name}  -> 200 "device deleted"

Other methods are accepted by the router so that request validation runs
first; they then fail as an unsupported operation.

Error responses carry ``{"error": <code>, "detail": <message>}`` with 400 for
request/device/auth problems and 500 for everything else. This module is the
only place provisioning errors become status codes.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from ..errors import ProvisionError, Unexpected
from ..provisioning.request import parse_provision_request
from ..provisioning.workflow import ProvisioningWorkflow

logger = logging.getLogger(__name__)

PROVISION_METHODS = ['POST', 'DELETE', 'GET', 'PUT', 'PATCH']


def _error_response(exc: ProvisionError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


def create_provision_router(workflow: ProvisioningWorkflow) -> APIRouter:
    """Create the provisioning router.

    Args:
        workflow: Shared workflow built once by the app factory.
    """
    router = APIRouter(tags=['provisioning'])

    @router.api_route('/', methods=PROVISION_METHODS)
    async def provision(request: Request) -> Response:
        """Create or delete the registry identity for one balena device."""
        try:
            body = await request.body()
            provision_request = parse_provision_request(request.method, body)
            result = await workflow.handle(provision_request)
        except ProvisionError as exc:
            logger.warning(
                'Provisioning failed: %s (%s)',
                exc.code,
                exc.detail,
            )
            return _error_response(exc)
        except Exception as exc:
            logger.exception('Unexpected provisioning failure')
            return _error_response(Unexpected(f'{type(exc).__name__}: {exc}'))

        return PlainTextResponse(result.message, status_code=result.status_code)

    return router
