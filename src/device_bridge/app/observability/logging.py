"""Structured log rendering for the device bridge.

The bridge only logs through stdlib loggers (``logging.getLogger(__name__)``
with ``extra=`` fields). structlog is used as the root handler's formatter:
each record becomes one JSON (or console) line carrying the request id and
the provisioning fields below.

Usage::

    from device_bridge.app.observability.logging import configure_logging

    configure_logging()  # Call once at app startup
"""

from __future__ import annotations

import logging
import os
import sys
from contextvars import ContextVar

import structlog

# Context variable for request-scoped correlation ID.
request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)

# Fields callers pass via ``extra=`` that should appear in the rendered line.
_EXTRA_FIELDS = (
    "device_uuid",
    "registry_device_id",
    "scope",
    "var_name",
    "written_vars",
)

_configured = False


def _add_request_id(
    logger: logging.Logger,
    method_name: str,
    event_dict: dict,
) -> dict:
    """Inject the current request_id from context into every log entry."""
    rid = request_id_ctx.get()
    if rid is not None:
        event_dict["request_id"] = rid
    return event_dict


def _add_record_extras(
    logger: logging.Logger,
    method_name: str,
    event_dict: dict,
) -> dict:
    """Copy known ``extra=`` attributes from a stdlib LogRecord."""
    record = event_dict.get("_record")
    if record is not None:
        for name in _EXTRA_FIELDS:
            if hasattr(record, name):
                event_dict.setdefault(name, getattr(record, name))
    return event_dict

def build_formatter(json_output: bool) -> logging.Formatter:
    """Formatter that renders stdlib records through structlog processors."""
    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer()
    )
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=[
            _add_record_extras,
            _add_request_id,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
        ],
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )


def configure_logging(
    *,
    level: str | None = None,
    json_output: bool | None = None,
) -> None:
    """Route the root logger through structlog rendering. Runs once.

    Args:
        level: Log level name. Defaults to LOG_LEVEL env var or INFO.
        json_output: JSON lines when True, console output when False.
            Defaults to LOG_FORMAT env var == "json" (the default).
    """
    global _configured
    if _configured:
        return
    _configured = True

    level = level or os.environ.get("LOG_LEVEL", "INFO")
    if json_output is None:
        json_output = os.environ.get("LOG_FORMAT", "json") == "json"

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(build_formatter(json_output))

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def _reset_for_tests() -> None:
    global _configured
    _configured = False
