"""Health check endpoint.

Liveness only: reports whether the process is up and whether the workflow
was wired at startup. No external service is contacted.
"""

from __future__ import annotations

from fastapi import APIRouter, Request

from src.orchestrator.config import get_settings

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(request: Request):
    """Basic liveness check."""
    settings = get_settings()
    workflow_ready = getattr(request.app.state, "workflow", None) is not None
    return {
        "status": "ok",
        "environment": settings.ENVIRONMENT.value,
        "workflow": "ready" if workflow_ready else "unavailable",
    }
