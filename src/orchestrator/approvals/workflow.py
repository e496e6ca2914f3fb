"""MeetingWorkflow -- composes the approval components into the two run paths.

Ingress path (webhook or manual trigger):
    admit -> fetch transcript -> extract tasks -> open session
          -> for each task: draft in Planner, post to Teams, track as posted

Approval path (scheduled, separate process lifetime):
    for each session: resolve reactions -> commit approved tasks

The two paths share no in-memory state; they only meet in the state store.
"""

from __future__ import annotations

import structlog

from src.orchestrator.adapters.base import (
    MessagingAdapter,
    PlanningAdapter,
    TaskExtractor,
    TranscriptSource,
)
from src.orchestrator.approvals.committer import DownstreamTaskCommitter
from src.orchestrator.approvals.ingress import IngressGuard
from src.orchestrator.approvals.resolver import ReactionResolver
from src.orchestrator.approvals.sessions import ApprovalSessionManager
from src.orchestrator.core.monitoring import (
    meetings_processed_total,
    tasks_posted_total,
    tasks_undelivered_total,
)
from src.orchestrator.errors import AdapterError, ExtractionError, OrchestratorError
from src.orchestrator.state.schemas import (
    ApprovalPassResult,
    CandidateTask,
    ChannelRef,
    ProcessingOutcome,
    ProcessingResult,
)

logger = structlog.get_logger(__name__)


class MeetingWorkflow:
    """Runs meetings through extraction and approval.

    Args:
        guard: Ingress guard for at-most-once admission.
        sessions: Approval session manager.
        transcripts: Source of meeting transcripts.
        extractor: Candidate task extractor.
        planning: Planning adapter for draft tasks.
        messaging: Messaging adapter for approval posts.
        resolver: Reaction resolver.
        committer: Downstream task committer.
        channel_ref: Approval channel for new sessions.
        plan_ref: Plan that drafts are created in.
    """

    def __init__(
        self,
        guard: IngressGuard,
        sessions: ApprovalSessionManager,
        transcripts: TranscriptSource,
        extractor: TaskExtractor,
        planning: PlanningAdapter,
        messaging: MessagingAdapter,
        resolver: ReactionResolver,
        committer: DownstreamTaskCommitter,
        channel_ref: ChannelRef,
        plan_ref: str,
    ) -> None:
        self._guard = guard
        self._sessions = sessions
        self._transcripts = transcripts
        self._extractor = extractor
        self._planning = planning
        self._messaging = messaging
        self._resolver = resolver
        self._committer = committer
        self._channel_ref = channel_ref
        self._plan_ref = plan_ref

    @property
    def guard(self) -> IngressGuard:
        return self._guard

    @property
    def sessions(self) -> ApprovalSessionManager:
        return self._sessions

    # ── Ingress path ────────────────────────────────────────────────────

    async def process_meeting(self, meeting_id: str, title: str | None = None) -> ProcessingResult:
        """Process a meeting once: extract tasks and post them for approval.

        Transcript and extraction failures are terminal for the meeting and
        are reported in the result rather than raised. The meeting is
        marked processed on every path once admitted.
        """
        async with self._guard.admit(meeting_id) as admission:
            if admission.admitted:
                result = await self._process_admitted(meeting_id, title)
            else:
                result = ProcessingResult(
                    meeting_id=meeting_id,
                    admitted=False,
                    outcome=ProcessingOutcome.DUPLICATE,
                )

        meetings_processed_total.labels(outcome=result.outcome.value).inc()
        logger.info(
            "workflow.meeting_processed",
            meeting_id=meeting_id,
            outcome=result.outcome.value,
            session_id=result.session_id,
            posted=len(result.posted),
            undelivered=len(result.undelivered),
        )
        return result

    async def _process_admitted(self, meeting_id: str, title: str | None) -> ProcessingResult:
        try:
            transcript = await self._transcripts.fetch_transcript(meeting_id)
        except AdapterError as exc:
            logger.error("workflow.transcript_failed", meeting_id=meeting_id, error=str(exc))
            return ProcessingResult(
                meeting_id=meeting_id,
                admitted=True,
                outcome=ProcessingOutcome.TRANSCRIPT_FAILED,
                error=str(exc),
            )

        try:
            candidates = await self._extractor.extract_tasks(transcript.content)
        except ExtractionError as exc:
            logger.error("workflow.extraction_failed", meeting_id=meeting_id, error=str(exc))
            return ProcessingResult(
                meeting_id=meeting_id,
                admitted=True,
                outcome=ProcessingOutcome.EXTRACTION_FAILED,
                error=str(exc),
            )

        if not candidates:
            return ProcessingResult(
                meeting_id=meeting_id,
                admitted=True,
                outcome=ProcessingOutcome.NO_TASKS,
            )

        meeting_title = title or transcript.title or meeting_id
        session_id = await self._sessions.create_session(
            meeting_id, meeting_title, self._channel_ref
        )

        posted: list[str] = []
        undelivered: list[str] = []
        for candidate in candidates:
            draft_id = await self._deliver(session_id, meeting_title, candidate)
            if draft_id is None:
                undelivered.append(candidate.title)
            else:
                posted.append(draft_id)

        return ProcessingResult(
            meeting_id=meeting_id,
            admitted=True,
            outcome=ProcessingOutcome.POSTED,
            session_id=session_id,
            posted=posted,
            undelivered=undelivered,
        )

    async def _deliver(
        self,
        session_id: str,
        meeting_title: str,
        candidate: CandidateTask,
    ) -> str | None:
        """Draft and post one task. Returns the draft id, or None if undelivered."""
        try:
            draft_id = await self._planning.create_draft_task(self._plan_ref, candidate)
            message_ref = await self._messaging.post_message(
                self._channel_ref, candidate, draft_id, meeting_title
            )
        except AdapterError as exc:
            logger.error(
                "workflow.task_delivery_failed",
                session_id=session_id,
                title=candidate.title,
                service=exc.service,
                operation=exc.operation,
                error=str(exc),
            )
            await self._sessions.record_undelivered(session_id, candidate)
            tasks_undelivered_total.inc()
            return None

        await self._sessions.add_task(session_id, candidate, message_ref, draft_id)
        tasks_posted_total.inc()
        return draft_id

    # ── Approval path ───────────────────────────────────────────────────

    async def check_approvals(
        self,
        session_id: str | None = None,
        all_open: bool = False,
    ) -> list[ApprovalPassResult]:
        """Run one approval pass.

        Args:
            session_id: Session to check. Errors for this session propagate.
            all_open: With no session_id, check every incomplete session
                (a failing session is logged and skipped). Otherwise only
                the latest session is checked.

        Returns:
            One result per session checked.
        """
        if session_id is not None:
            return [await self.run_approval_pass(session_id)]

        if not all_open:
            latest = await self._sessions.get_latest_session()
            if latest is None:
                logger.info("workflow.no_sessions")
                return []
            return [await self.run_approval_pass(latest.session_id)]

        results: list[ApprovalPassResult] = []
        for session in await self._sessions.list_open_sessions():
            try:
                results.append(await self.run_approval_pass(session.session_id))
            except OrchestratorError as exc:
                logger.error(
                    "workflow.approval_pass_failed",
                    session_id=session.session_id,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
        return results

    async def run_approval_pass(self, session_id: str) -> ApprovalPassResult:
        """Resolve reactions, then commit approved tasks, for one session."""
        approved = await self._resolver.resolve_approvals(session_id)
        committed = await self._committer.commit(session_id)
        session = await self._sessions.get_session(session_id)

        result = ApprovalPassResult(
            session_id=session_id,
            approved=approved,
            committed=committed,
            pending=len(session.tasks) - len(session.committed_tasks),
            complete=session.is_complete,
        )
        logger.info(
            "workflow.approval_pass_complete",
            session_id=session_id,
            approved=len(result.approved),
            committed=len(result.committed),
            pending=result.pending,
            complete=result.complete,
        )
        return result
