"""Approval session manager -- owner of session records and the task state machine.

Provides ApprovalSessionManager, the only component that mutates approval
sessions. Every mutation is load -> validate -> mutate -> save, and the save
carries the session's version token so a write based on an outdated read is
rejected by the store (StaleSessionError) instead of silently overwriting.

Task status transitions are validated against VALID_TRANSITIONS:

    posted -> approved -> committed

There is no transition out of committed, no backwards move, and no
same-status "transition". A task nobody approves simply stays posted.
"""

from __future__ import annotations

from datetime import datetime, timezone

import structlog

from src.orchestrator.errors import (
    InvalidTaskTransitionError,
    SessionNotFoundError,
    TaskNotFoundError,
)
from src.orchestrator.state.schemas import (
    ApprovalSession,
    CandidateTask,
    ChannelRef,
    TaskStatus,
    TrackedTask,
    make_session_id,
)
from src.orchestrator.state.store import StateStore

logger = structlog.get_logger(__name__)

# ── Task Status Transition Rules ─────────────────────────────────────────────

# Maps each status to the set of statuses it can transition TO.
VALID_TRANSITIONS: dict[TaskStatus, set[TaskStatus]] = {
    TaskStatus.POSTED: {TaskStatus.APPROVED},
    TaskStatus.APPROVED: {TaskStatus.COMMITTED},
    TaskStatus.COMMITTED: set(),  # Terminal
}


def validate_task_transition(task: TrackedTask, to_status: TaskStatus) -> None:
    """Validate that a task may move to ``to_status``.

    Raises:
        InvalidTaskTransitionError: If the transition is not allowed.
    """
    if to_status not in VALID_TRANSITIONS.get(task.status, set()):
        raise InvalidTaskTransitionError(task.board_draft_id, task.status, to_status)


# ── Manager ──────────────────────────────────────────────────────────────────


class ApprovalSessionManager:
    """Creates approval sessions and drives their tasks through the state machine.

    Args:
        store: Durable state store holding the session records.
    """

    def __init__(self, store: StateStore) -> None:
        self._store = store

    # ── Reads ───────────────────────────────────────────────────────────

    async def get_session(self, session_id: str) -> ApprovalSession:
        """Load a session by id.

        Raises:
            SessionNotFoundError: If no such session exists.
        """
        session = await self._store.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    async def list_sessions(self) -> list[ApprovalSession]:
        """All sessions, oldest first."""
        return await self._store.list_sessions()

    async def list_open_sessions(self) -> list[ApprovalSession]:
        """Sessions that still have tasks waiting for approval or commit.

        A session whose every candidate went undelivered has nothing to
        poll and is left out, even though it never becomes complete.
        """
        return [
            s
            for s in await self._store.list_sessions()
            if not s.is_complete and not (s.undelivered and not s.tasks)
        ]

    async def get_latest_session(self) -> ApprovalSession | None:
        """Most recently created session, or None if there are none."""
        sessions = await self._store.list_sessions()
        if not sessions:
            return None
        return max(sessions, key=lambda s: (s.created_at, s.session_id))

    # ── Session lifecycle ───────────────────────────────────────────────

    async def create_session(
        self,
        meeting_id: str,
        title: str,
        channel_ref: ChannelRef,
    ) -> str:
        """Allocate a new session with an empty task map.

        Returns:
            The new session id.
        """
        created_at = datetime.now(timezone.utc)
        session = ApprovalSession(
            session_id=make_session_id(meeting_id, created_at),
            meeting_id=meeting_id,
            meeting_title=title,
            created_at=created_at,
            channel_ref=channel_ref,
        )
        stored = await self._store.insert_session(session)
        logger.info(
            "sessions.created",
            session_id=stored.session_id,
            meeting_id=meeting_id,
            channel_id=channel_ref.channel_id,
        )
        return stored.session_id

    async def add_task(
        self,
        session_id: str,
        candidate: CandidateTask,
        message_ref: str,
        board_draft_id: str,
    ) -> TrackedTask:
        """Track a task whose approval message was just delivered.

        The task enters the state machine in ``posted``.

        Raises:
            SessionNotFoundError: If the session was never created.
            ValueError: If the draft id is already tracked by this session.
        """
        session = await self.get_session(session_id)
        if board_draft_id in session.tasks:
            raise ValueError(f"Task {board_draft_id} already tracked in session {session_id}")

        task = TrackedTask(
            board_draft_id=board_draft_id,
            message_ref=message_ref,
            title=candidate.title,
            description=candidate.description,
            priority=candidate.priority,
            due_at=candidate.due_at,
            status=TaskStatus.POSTED,
        )
        session.tasks[board_draft_id] = task
        await self._store.save_session(session)

        logger.info(
            "sessions.task_posted",
            session_id=session_id,
            board_draft_id=board_draft_id,
            message_ref=message_ref,
        )
        return task

    async def record_undelivered(self, session_id: str, candidate: CandidateTask) -> None:
        """Keep an audit record of a candidate that never reached the channel."""
        session = await self.get_session(session_id)
        session.undelivered.append(candidate)
        await self._store.save_session(session)
        logger.warning(
            "sessions.task_undelivered",
            session_id=session_id,
            title=candidate.title,
            description=candidate.description,
            priority=candidate.priority.value,
            due_at=candidate.due_at.isoformat() if candidate.due_at else None,
        )

    # ── Transitions ─────────────────────────────────────────────────────

    async def record_approval_count(
        self,
        session_id: str,
        board_draft_id: str,
        approval_count: int,
    ) -> TrackedTask:
        """Refresh the observed approval tally without changing status."""
        session = await self.get_session(session_id)
        task = _get_task(session, board_draft_id)
        if task.approval_count == approval_count:
            return task
        task.approval_count = approval_count
        await self._store.save_session(session)
        return task

    async def mark_approved(
        self,
        session_id: str,
        board_draft_id: str,
        approval_count: int,
    ) -> TrackedTask:
        """Transition a posted task to approved.

        Raises:
            InvalidTaskTransitionError: If the task is not posted.
        """
        session = await self.get_session(session_id)
        task = _get_task(session, board_draft_id)
        validate_task_transition(task, TaskStatus.APPROVED)

        task.status = TaskStatus.APPROVED
        task.approval_count = approval_count
        task.approved_at = datetime.now(timezone.utc)
        await self._store.save_session(session)

        logger.info(
            "sessions.task_approved",
            session_id=session_id,
            board_draft_id=board_draft_id,
            approval_count=approval_count,
        )
        return task

    async def mark_committed(
        self,
        session_id: str,
        board_draft_id: str,
        committed_task_id: str,
    ) -> TrackedTask:
        """Transition an approved task to committed, recording the board id.

        Status and committed_task_id are written in the same save, so no
        task is ever committed without a downstream id.

        Raises:
            ValueError: If committed_task_id is empty.
            InvalidTaskTransitionError: If the task is not approved.
        """
        if not committed_task_id:
            raise ValueError("committed_task_id must not be empty")

        session = await self.get_session(session_id)
        task = _get_task(session, board_draft_id)
        validate_task_transition(task, TaskStatus.COMMITTED)

        task.status = TaskStatus.COMMITTED
        task.committed_task_id = committed_task_id
        task.processed_at = datetime.now(timezone.utc)
        await self._store.save_session(session)

        logger.info(
            "sessions.task_committed",
            session_id=session_id,
            board_draft_id=board_draft_id,
            committed_task_id=committed_task_id,
        )
        return task


def _get_task(session: ApprovalSession, board_draft_id: str) -> TrackedTask:
    task = session.tasks.get(board_draft_id)
    if task is None:
        raise TaskNotFoundError(session.session_id, board_draft_id)
    return task
