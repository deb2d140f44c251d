"""structlog setup for the gateway.

Per-request context (the request id) lives in structlog's contextvars and is
merged into every event, so handlers log with plain keyword arguments.
"""

import logging
import sys
import uuid
from typing import Optional

import structlog


def bind_request_id(request_id: Optional[str] = None) -> str:
    """Bind the request id to the current log context and return it."""
    rid = request_id or uuid.uuid4().hex
    structlog.contextvars.bind_contextvars(request_id=rid)
    return rid


def configure_logging(service_name: str, log_level: str = "INFO", json_format: bool = True) -> None:
    renderer = structlog.processors.JSONRenderer() if json_format else structlog.dev.ConsoleRenderer()
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )
    structlog.contextvars.bind_contextvars(service=service_name)


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
