"""Prometheus metrics, Sentry integration, and LLM call tracking.

Provides:
- MetricsMiddleware: ASGI middleware for HTTP request metrics
- Pipeline counters: meetings processed, tasks posted/approved/committed,
  adapter failures
- track_llm_call(): Context manager for LLM call metrics
- init_sentry(): Initialize Sentry for the webhook server
- get_metrics_response(): Prometheus exposition for /metrics
"""

from __future__ import annotations

import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import sentry_sdk
from prometheus_client import REGISTRY, Counter, Histogram, generate_latest
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# ── HTTP Metrics ─────────────────────────────────────────────────────────────

http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# ── Pipeline Metrics ─────────────────────────────────────────────────────────

meetings_processed_total = Counter(
    "meetings_processed_total",
    "Meetings offered to the workflow, by terminal outcome",
    ["outcome"],
)

tasks_posted_total = Counter(
    "tasks_posted_total",
    "Tasks posted to the approval channel",
)

tasks_undelivered_total = Counter(
    "tasks_undelivered_total",
    "Candidate tasks that could not be drafted or posted",
)

tasks_approved_total = Counter(
    "tasks_approved_total",
    "Tasks transitioned to approved by the reaction resolver",
)

tasks_committed_total = Counter(
    "tasks_committed_total",
    "Tasks created on the board",
)

adapter_errors_total = Counter(
    "adapter_errors_total",
    "Failed external service calls after retries",
    ["service", "operation"],
)

# ── LLM Metrics ──────────────────────────────────────────────────────────────

llm_requests_total = Counter(
    "llm_requests_total",
    "Total LLM API requests",
    ["model", "status"],
)

llm_request_duration_seconds = Histogram(
    "llm_request_duration_seconds",
    "LLM API request duration in seconds",
    ["model"],
    buckets=(0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
)


# ── Metrics Middleware ───────────────────────────────────────────────────────


class MetricsMiddleware(BaseHTTPMiddleware):
    """ASGI middleware that records Prometheus metrics for every HTTP request.

    Skips the /metrics endpoint itself to avoid self-referential counting.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path == "/metrics":
            return await call_next(request)

        endpoint = request.url.path

        start_time = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start_time

        http_requests_total.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=str(response.status_code),
        ).inc()

        http_request_duration_seconds.labels(
            method=request.method,
            endpoint=endpoint,
        ).observe(duration)

        return response


# ── LLM Metrics Helper ──────────────────────────────────────────────────────


@asynccontextmanager
async def track_llm_call(model: str) -> AsyncGenerator[None, None]:
    """Context manager that tracks LLM call count and duration.

    Usage:
        async with track_llm_call(model):
            result = await call_llm(...)
    """
    start_time = time.perf_counter()
    status = "success"

    try:
        yield
    except Exception:
        status = "error"
        raise
    finally:
        llm_requests_total.labels(model=model, status=status).inc()
        llm_request_duration_seconds.labels(model=model).observe(
            time.perf_counter() - start_time
        )


# ── Sentry Integration ───────────────────────────────────────────────────────


def init_sentry(dsn: str, environment: str) -> None:
    """Initialize Sentry SDK.

    Args:
        dsn: Sentry DSN string.
        environment: Deployment environment (development, staging, production).
    """
    traces_sample_rate = 0.1 if environment == "production" else 1.0

    sentry_sdk.init(
        dsn=dsn,
        environment=environment,
        traces_sample_rate=traces_sample_rate,
        integrations=[
            StarletteIntegration(),
            FastApiIntegration(),
        ],
    )


# ── Metrics Endpoint ─────────────────────────────────────────────────────────


def get_metrics_response() -> Response:
    """Generate Prometheus exposition format response."""
    return Response(
        content=generate_latest(REGISTRY),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
