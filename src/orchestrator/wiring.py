"""Builds the MeetingWorkflow object graph from settings and open clients.

Used by the FastAPI lifespan and by every CLI command, so both entry points
run exactly the same components.
"""

from __future__ import annotations

import structlog

from src.orchestrator.adapters import (
    ClickUpBoardAdapter,
    FirefliesTranscriptSource,
    LLMTaskExtractor,
    PlannerAdapter,
    TeamsMessagingAdapter,
)
from src.orchestrator.approvals import (
    ApprovalSessionManager,
    DownstreamTaskCommitter,
    IngressGuard,
    MeetingWorkflow,
    ReactionResolver,
)
from src.orchestrator.config import Settings
from src.orchestrator.core.clients import ServiceClients
from src.orchestrator.state import ChannelRef, StateStore

logger = structlog.get_logger(__name__)


def build_store(settings: Settings) -> StateStore:
    return StateStore(
        settings.STATE_DIR,
        reset_on_schema_mismatch=settings.STATE_RESET_ON_SCHEMA_MISMATCH,
    )


def build_workflow(settings: Settings, clients: ServiceClients) -> MeetingWorkflow:
    """Wire adapters, approval components and the state store together.

    Args:
        settings: Application settings.
        clients: Open ServiceClients; adapters keep references to its handles.

    Raises:
        ValueError: If no approving reaction is configured.
        RuntimeError: If clients is not open.
    """
    store = build_store(settings)
    sessions = ApprovalSessionManager(store)
    attempts = settings.EXTERNAL_CALL_MAX_ATTEMPTS

    approving = settings.get_approval_reactions()
    hint = next(
        (s.strip() for s in settings.APPROVAL_REACTIONS.split(",") if s.strip()),
        "👍",
    )

    messaging = TeamsMessagingAdapter(clients.graph, max_attempts=attempts, approval_hint=hint)
    workflow = MeetingWorkflow(
        guard=IngressGuard(store),
        sessions=sessions,
        transcripts=FirefliesTranscriptSource(
            clients.fireflies, api_url=settings.FIREFLIES_API_URL, max_attempts=attempts
        ),
        extractor=LLMTaskExtractor(model=settings.LLM_MODEL),
        planning=PlannerAdapter(
            clients.graph, max_attempts=attempts, bucket_id=settings.PLANNER_BUCKET_ID
        ),
        messaging=messaging,
        resolver=ReactionResolver(sessions, messaging, approving),
        committer=DownstreamTaskCommitter(
            sessions,
            ClickUpBoardAdapter(clients.clickup, max_attempts=attempts),
            list_ref=settings.CLICKUP_LIST_ID,
        ),
        channel_ref=ChannelRef(
            team_id=settings.TEAMS_TEAM_ID, channel_id=settings.TEAMS_CHANNEL_ID
        ),
        plan_ref=settings.PLANNER_PLAN_ID,
    )

    logger.info(
        "wiring.workflow_built",
        state_dir=settings.STATE_DIR,
        channel_id=settings.TEAMS_CHANNEL_ID,
        list_id=settings.CLICKUP_LIST_ID,
        approving_reactions=sorted(approving),
    )
    return workflow
