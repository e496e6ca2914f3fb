"""DownstreamTaskCommitter -- creates approved tasks on the board exactly once.

Approved tasks are sent to the board one at a time, in posting order. The
sequential loop is the rate limit: throughput is capped at roughly one
task per board round trip, which keeps a large approval batch from tripping
ClickUp's per-token limits.

A task only leaves ``approved`` through mark_committed, which records the
board id in the same write. Committed tasks are never sent again.
"""

from __future__ import annotations

import structlog

from src.orchestrator.adapters.base import BoardAdapter
from src.orchestrator.approvals.sessions import ApprovalSessionManager
from src.orchestrator.core.monitoring import tasks_committed_total
from src.orchestrator.errors import AdapterError, OrchestratorError
from src.orchestrator.state.schemas import CommittedTask

logger = structlog.get_logger(__name__)


class DownstreamTaskCommitter:
    """Creates board tasks for approved session tasks.

    Args:
        sessions: Session manager (the only writer of session state).
        board: Board adapter.
        list_ref: Board list the tasks are created in.
    """

    def __init__(
        self,
        sessions: ApprovalSessionManager,
        board: BoardAdapter,
        list_ref: str,
    ) -> None:
        self._sessions = sessions
        self._board = board
        self._list_ref = list_ref

    async def commit(self, session_id: str) -> list[CommittedTask]:
        """Create every approved task of the session on the board.

        Board failures leave the task approved for the next pass. A
        non-retryable rejection (a 4xx from the board) is logged as
        ``committer.board_rejected_task`` so it can be fixed by hand; it is
        still attempted again on later passes. If the board call succeeds
        but recording it fails (stale session, or another pass already
        moved the task), the board id is logged so the commit can be
        replayed by hand.

        Returns:
            Tasks committed during this call.
        """
        session = await self._sessions.get_session(session_id)
        approved = sorted(session.approved_tasks, key=lambda t: t.posted_at)
        committed: list[CommittedTask] = []

        for task in approved:
            try:
                committed_task_id = await self._board.create_task(self._list_ref, task)
            except AdapterError as exc:
                logger.error(
                    "committer.board_create_failed"
                    if exc.retryable
                    else "committer.board_rejected_task",
                    session_id=session_id,
                    board_draft_id=task.board_draft_id,
                    title=task.title,
                    error=str(exc),
                    retryable=exc.retryable,
                )
                continue

            try:
                await self._sessions.mark_committed(
                    session_id, task.board_draft_id, committed_task_id
                )
            except OrchestratorError as exc:
                logger.error(
                    "committer.commit_not_recorded",
                    session_id=session_id,
                    board_draft_id=task.board_draft_id,
                    committed_task_id=committed_task_id,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                continue

            tasks_committed_total.inc()
            committed.append(
                CommittedTask(
                    board_draft_id=task.board_draft_id,
                    committed_task_id=committed_task_id,
                    title=task.title,
                )
            )

        logger.info(
            "committer.pass_complete",
            session_id=session_id,
            approved=len(approved),
            committed=len(committed),
        )
        return committed
