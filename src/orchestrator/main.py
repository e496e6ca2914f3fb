"""FastAPI application factory.

Creates the webhook server with logging middleware, metrics middleware,
Sentry, a lifespan that owns the external service clients and the
workflow, and the v1 API router.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.requests import Request
from fastapi.responses import Response

from src.orchestrator.api.middleware.logging import AccessLogMiddleware, configure_structlog
from src.orchestrator.api.v1.router import router as v1_router
from src.orchestrator.config import get_settings
from src.orchestrator.core.clients import ServiceClients
from src.orchestrator.core.monitoring import MetricsMiddleware, get_metrics_response, init_sentry
from src.orchestrator.wiring import build_workflow


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: open clients and wire the workflow on startup, close on shutdown."""
    log = structlog.get_logger(__name__)
    settings = get_settings()
    configure_structlog()

    if settings.SENTRY_DSN:
        init_sentry(dsn=settings.SENTRY_DSN, environment=settings.ENVIRONMENT.value)

    clients = ServiceClients(settings)
    await clients.open()
    app.state.clients = clients

    # A wiring failure leaves the server up; workflow routes answer 503.
    try:
        app.state.workflow = build_workflow(settings, clients)
        log.info("startup.workflow_ready", port=settings.WEBHOOK_PORT)
    except Exception:
        log.error("startup.workflow_init_failed", exc_info=True)
        app.state.workflow = None

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    await clients.aclose()
    log.info("shutdown.complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Meeting Task Approval Orchestrator",
        version="0.1.0",
        description="Extracts meeting tasks, collects approvals in Teams, commits them to ClickUp",
        lifespan=lifespan,
    )

    # Middleware is added in reverse order (last added = outermost)

    # Logging middleware (logs every request with timing)
    app.add_middleware(AccessLogMiddleware)

    # Metrics middleware (outermost -- records Prometheus metrics for all requests)
    app.add_middleware(MetricsMiddleware)

    app.include_router(v1_router)

    # Prometheus metrics endpoint (infrastructure route, outside v1 router)
    @app.get("/metrics", include_in_schema=False)
    async def metrics(request: Request) -> Response:
        """Prometheus metrics endpoint."""
        return get_metrics_response()

    return app


# Module-level app for uvicorn
app = create_app()
