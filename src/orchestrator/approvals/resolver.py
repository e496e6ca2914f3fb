"""ReactionResolver -- turns reactions on approval messages into approvals.

For every task still ``posted`` in a session, reads the reactions on its
Teams message and approves the task when at least one reaction is one of
the configured approving symbols. Symbols are compared literally; there is
no quorum and no notion of an explicit decline, so a task with no (or only
non-approving) reactions stays posted and is looked at again next pass.
"""

from __future__ import annotations

from collections.abc import Iterable

import structlog

from src.orchestrator.adapters.base import MessagingAdapter
from src.orchestrator.approvals.sessions import ApprovalSessionManager
from src.orchestrator.core.monitoring import tasks_approved_total
from src.orchestrator.errors import AdapterError, OrchestratorError

logger = structlog.get_logger(__name__)


def count_approvals(reactions: Iterable[str], approving: frozenset[str]) -> int:
    """Number of reactions whose symbol is in the approving set."""
    return sum(1 for reaction in reactions if reaction in approving)


class ReactionResolver:
    """Polls the approval channel and approves tasks with an approving reaction.

    Args:
        sessions: Session manager (the only writer of session state).
        messaging: Messaging adapter used to read reactions.
        approving_reactions: Literal reaction symbols that count as approval.
    """

    def __init__(
        self,
        sessions: ApprovalSessionManager,
        messaging: MessagingAdapter,
        approving_reactions: frozenset[str],
    ) -> None:
        if not approving_reactions:
            raise ValueError("approving_reactions must contain at least one symbol")
        self._sessions = sessions
        self._messaging = messaging
        self._approving = approving_reactions

    async def resolve_approvals(self, session_id: str) -> list[str]:
        """Approve every posted task in the session that has an approving reaction.

        A failure reading one message, or recording its result, is logged
        and does not affect the other tasks; that task is simply
        re-evaluated on the next pass.

        Returns:
            Draft ids of tasks newly transitioned to approved.
        """
        session = await self._sessions.get_session(session_id)
        newly_approved: list[str] = []

        for task in session.pending_tasks:
            try:
                reactions = await self._messaging.get_reactions(
                    session.channel_ref, task.message_ref
                )
            except AdapterError as exc:
                logger.error(
                    "resolver.reactions_unavailable",
                    session_id=session_id,
                    board_draft_id=task.board_draft_id,
                    message_ref=task.message_ref,
                    error=str(exc),
                )
                continue

            approvals = count_approvals(reactions, self._approving)

            try:
                if approvals >= 1:
                    await self._sessions.mark_approved(
                        session_id, task.board_draft_id, approvals
                    )
                    newly_approved.append(task.board_draft_id)
                    tasks_approved_total.inc()
                else:
                    await self._sessions.record_approval_count(
                        session_id, task.board_draft_id, approvals
                    )
            except OrchestratorError as exc:
                # Another pass got here first (stale version, task already
                # moved on, or gone). Leave it to the next pass.
                logger.warning(
                    "resolver.task_update_skipped",
                    session_id=session_id,
                    board_draft_id=task.board_draft_id,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )

        logger.info(
            "resolver.pass_complete",
            session_id=session_id,
            checked=len(session.pending_tasks),
            approved=len(newly_approved),
        )
        return newly_approved
