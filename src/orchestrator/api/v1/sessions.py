"""Approval session inspection and on-demand approval passes."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from src.orchestrator.api.deps import get_workflow
from src.orchestrator.approvals.workflow import MeetingWorkflow
from src.orchestrator.errors import SessionNotFoundError
from src.orchestrator.state.schemas import ApprovalPassResult, ApprovalSession

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["sessions"])


class SessionSummary(BaseModel):
    session_id: str
    meeting_id: str
    meeting_title: str
    task_count: int
    pending: int
    approved: int
    committed: int
    undelivered: int
    complete: bool


class ApprovalCheckRequest(BaseModel):
    session_id: str | None = None
    all_open: bool = False


def _summarize(session: ApprovalSession) -> SessionSummary:
    return SessionSummary(
        session_id=session.session_id,
        meeting_id=session.meeting_id,
        meeting_title=session.meeting_title,
        task_count=len(session.tasks),
        pending=len(session.pending_tasks),
        approved=len(session.approved_tasks),
        committed=len(session.committed_tasks),
        undelivered=len(session.undelivered),
        complete=session.is_complete,
    )


@router.get("/sessions", response_model=list[SessionSummary])
async def list_sessions(workflow: MeetingWorkflow = Depends(get_workflow)):
    """All approval sessions, oldest first."""
    return [_summarize(s) for s in await workflow.sessions.list_sessions()]


@router.get("/sessions/latest", response_model=ApprovalSession)
async def get_latest_session(workflow: MeetingWorkflow = Depends(get_workflow)):
    session = await workflow.sessions.get_latest_session()
    if session is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No sessions yet")
    return session


@router.get("/sessions/{session_id}", response_model=ApprovalSession)
async def get_session(session_id: str, workflow: MeetingWorkflow = Depends(get_workflow)):
    try:
        return await workflow.sessions.get_session(session_id)
    except SessionNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Session {session_id} not found",
        )


@router.post("/approvals/check", response_model=list[ApprovalPassResult])
async def check_approvals(
    body: ApprovalCheckRequest | None = None,
    workflow: MeetingWorkflow = Depends(get_workflow),
):
    """Run one approval pass now and return its results."""
    body = body or ApprovalCheckRequest()
    try:
        return await workflow.check_approvals(session_id=body.session_id, all_open=body.all_open)
    except SessionNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Session {body.session_id} not found",
        )
