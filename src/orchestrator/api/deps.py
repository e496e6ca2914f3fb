"""FastAPI dependency helpers for the orchestrator routes."""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from src.orchestrator.approvals.workflow import MeetingWorkflow


def get_workflow(request: Request) -> MeetingWorkflow:
    """Retrieve the MeetingWorkflow from app.state, 503 if not available."""
    workflow = getattr(request.app.state, "workflow", None)
    if workflow is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Meeting workflow not initialized",
        )
    return workflow
