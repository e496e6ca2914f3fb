"""Meeting ingress endpoints.

Two ways to hand a meeting to the workflow:

- POST /webhooks/transcripts -- Fireflies "transcription completed" webhook.
- POST /meetings/{meeting_id}/process -- manual trigger.

Processing runs in a FastAPI background task after the response is sent.
A meeting already in the processed set (or currently being processed)
gets 200 already_processed; otherwise 202 accepted. The webhook never
answers with an error status for a bad payload or a processing failure,
so the notifier has no reason to retry.
"""

from __future__ import annotations

import hashlib
import hmac

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, ValidationError

from src.orchestrator.api.deps import get_workflow
from src.orchestrator.approvals.workflow import MeetingWorkflow
from src.orchestrator.config import get_settings
from src.orchestrator.errors import OrchestratorError

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["meetings"])

SIGNATURE_HEADER = "x-hub-signature"


# ── Request Models ───────────────────────────────────────────────────────────


class TranscriptWebhookPayload(BaseModel):
    """Fireflies webhook body."""

    meeting_id: str = Field(alias="meetingId", min_length=1)
    event_type: str | None = Field(default=None, alias="eventType")
    title: str | None = None


class ProcessMeetingRequest(BaseModel):
    title: str | None = None


# ── Helpers ──────────────────────────────────────────────────────────────────


def verify_signature(secret: str, body: bytes, signature: str) -> bool:
    """Check a hex HMAC-SHA256 signature of the raw body.

    A leading ``sha256=`` on the header value is accepted.
    """
    if signature.startswith("sha256="):
        signature = signature[len("sha256="):]
    expected = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature)


async def _run_processing(workflow: MeetingWorkflow, meeting_id: str, title: str | None) -> None:
    """Background task body. Never raises."""
    try:
        await workflow.process_meeting(meeting_id, title=title)
    except Exception:
        logger.error("meetings.processing_crashed", meeting_id=meeting_id, exc_info=True)


async def _accept(
    workflow: MeetingWorkflow,
    background_tasks: BackgroundTasks,
    meeting_id: str,
    title: str | None,
) -> JSONResponse:
    guard = workflow.guard
    try:
        seen = guard.is_in_flight(meeting_id) or await guard.is_processed(meeting_id)
    except OrchestratorError as exc:
        logger.error(
            "meetings.state_unavailable",
            meeting_id=meeting_id,
            error=str(exc),
            error_type=type(exc).__name__,
        )
        return _ignored("state_unavailable")

    if seen:
        logger.info("meetings.already_processed", meeting_id=meeting_id)
        return JSONResponse(
            status_code=status.HTTP_200_OK,
            content={"status": "already_processed", "meeting_id": meeting_id},
        )

    background_tasks.add_task(_run_processing, workflow, meeting_id, title)
    logger.info("meetings.accepted", meeting_id=meeting_id)
    return JSONResponse(
        status_code=status.HTTP_202_ACCEPTED,
        content={"status": "accepted", "meeting_id": meeting_id},
    )


def _ignored(reason: str) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_200_OK, content={"status": "ignored", "reason": reason})


# ── Endpoints ────────────────────────────────────────────────────────────────


@router.post("/webhooks/transcripts")
async def receive_transcript_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    workflow: MeetingWorkflow = Depends(get_workflow),
) -> JSONResponse:
    """Fireflies webhook receiver.

    Returns 200 for every payload it does not act on, so Fireflies does not
    keep redelivering it.
    """
    body = await request.body()

    secret = get_settings().FIREFLIES_WEBHOOK_SECRET
    if secret:
        signature = request.headers.get(SIGNATURE_HEADER, "")
        if not verify_signature(secret, body, signature):
            logger.warning("webhook.invalid_signature")
            return _ignored("invalid_signature")

    try:
        payload = TranscriptWebhookPayload.model_validate_json(body)
    except ValidationError as exc:
        logger.warning("webhook.malformed_payload", errors=exc.error_count())
        return _ignored("malformed_payload")

    logger.info(
        "webhook.received",
        meeting_id=payload.meeting_id,
        event_type=payload.event_type,
    )
    return await _accept(workflow, background_tasks, payload.meeting_id, payload.title)


@router.post("/meetings/{meeting_id}/process")
async def process_meeting(
    meeting_id: str,
    background_tasks: BackgroundTasks,
    body: ProcessMeetingRequest | None = None,
    workflow: MeetingWorkflow = Depends(get_workflow),
) -> JSONResponse:
    """Manually queue a meeting for processing."""
    title = body.title if body else None
    return await _accept(workflow, background_tasks, meeting_id, title)
