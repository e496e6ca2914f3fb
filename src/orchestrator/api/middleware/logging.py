"""Log setup shared by the server and the CLI, plus per-request access logs.

configure_structlog() routes structlog through stdlib logging: JSON lines
in production, coloured console output elsewhere. The CLI calls it too, so
a cron-driven approval pass writes the same records as the server.

AccessLogMiddleware writes one ``http.request`` record per request. A
caller-supplied X-Request-ID is kept (so a Fireflies redelivery can be
matched to the first attempt), otherwise a fresh one is minted. Either way
it is echoed on the response.
"""

from __future__ import annotations

import logging
import time
import uuid

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from src.orchestrator.config import Environment, get_settings

logger = structlog.get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

# Hit by health checks and Prometheus scrapes every few seconds; logged at debug.
QUIET_PATHS = frozenset({"/api/v1/health", "/metrics"})


def configure_structlog() -> None:
    settings = get_settings()

    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    )

    processors: list = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if settings.ENVIRONMENT == Environment.production:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def _elapsed_ms(started: float) -> float:
    return round((time.monotonic() - started) * 1000, 2)


class AccessLogMiddleware(BaseHTTPMiddleware):
    """Access log with request id, status and latency."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        path = request.url.path
        started = time.monotonic()

        try:
            response = await call_next(request)
        except Exception:
            logger.error(
                "http.request_crashed",
                method=request.method,
                path=path,
                duration_ms=_elapsed_ms(started),
                request_id=request_id,
            )
            raise

        response.headers[REQUEST_ID_HEADER] = request_id

        if response.status_code >= 500:
            emit = logger.error
        elif response.status_code >= 400:
            emit = logger.warning
        elif path in QUIET_PATHS:
            emit = logger.debug
        else:
            emit = logger.info

        emit(
            "http.request",
            method=request.method,
            path=path,
            status_code=response.status_code,
            duration_ms=_elapsed_ms(started),
            request_id=request_id,
        )
        return response
