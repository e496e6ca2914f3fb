"""Tests for ReactionResolver and DownstreamTaskCommitter.

Both run against the real session manager over a temp-dir store, with the
Teams and ClickUp sides replaced by in-memory doubles.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.orchestrator.approvals import DownstreamTaskCommitter, ReactionResolver, count_approvals
import src.orchestrator.approvals.committer as committer_module
from src.orchestrator.errors import AdapterError, StaleSessionError
from src.orchestrator.state import CandidateTask, ChannelRef, TaskStatus

CHANNEL = ChannelRef(team_id="T1", channel_id="C1")


async def _post(sessions, messaging, session_id: str, *titles: str) -> dict[str, str]:
    """Track one posted task per title; returns title -> draft id."""
    drafts = {}
    for index, title in enumerate(titles, start=1):
        candidate = CandidateTask(title=title)
        draft_id = f"draft-{index}"
        message_ref = await messaging.post_message(CHANNEL, candidate, draft_id)
        await sessions.add_task(session_id, candidate, message_ref, draft_id)
        drafts[title] = draft_id
    return drafts


class TestCountApprovals:
    def test_counts_only_approving_symbols(self):
        assert count_approvals(["👍", "❤️", "like", "👍"], frozenset({"👍", "like"})) == 3

    def test_comparison_is_literal(self):
        assert count_approvals(["Like", "thumbsup"], frozenset({"like", "👍"})) == 0

    def test_empty(self):
        assert count_approvals([], frozenset({"👍"})) == 0


# ── Resolver ─────────────────────────────────────────────────────────────────


class TestReactionResolver:
    def test_requires_an_approving_symbol(self, sessions, messaging):
        with pytest.raises(ValueError):
            ReactionResolver(sessions, messaging, frozenset())

    async def test_zero_reactions_stays_posted(self, sessions, messaging, resolver):
        session_id = await sessions.create_session("M1", "Sync", CHANNEL)
        await _post(sessions, messaging, session_id, "Send contract")

        approved = await resolver.resolve_approvals(session_id)

        assert approved == []
        task = (await sessions.get_session(session_id)).tasks["draft-1"]
        assert task.status == TaskStatus.POSTED
        assert task.approval_count == 0

    async def test_one_reaction_approves_only_that_task(self, sessions, messaging, resolver):
        session_id = await sessions.create_session("M1", "Sync", CHANNEL)
        drafts = await _post(sessions, messaging, session_id, "Send contract", "Book venue")
        messaging.react("Send contract", "👍")

        approved = await resolver.resolve_approvals(session_id)

        assert approved == [drafts["Send contract"]]
        session = await sessions.get_session(session_id)
        assert session.tasks[drafts["Send contract"]].status == TaskStatus.APPROVED
        assert session.tasks[drafts["Send contract"]].approval_count == 1
        assert session.tasks[drafts["Book venue"]].status == TaskStatus.POSTED

    async def test_non_approving_reaction_ignored(self, sessions, messaging, resolver):
        session_id = await sessions.create_session("M1", "Sync", CHANNEL)
        await _post(sessions, messaging, session_id, "Send contract")
        messaging.react("Send contract", "😂", "heart")

        assert await resolver.resolve_approvals(session_id) == []

    async def test_already_approved_tasks_not_polled(self, sessions, messaging, resolver):
        session_id = await sessions.create_session("M1", "Sync", CHANNEL)
        await _post(sessions, messaging, session_id, "Send contract")
        messaging.react("Send contract", "like")
        await resolver.resolve_approvals(session_id)
        messaging.reaction_reads.clear()

        assert await resolver.resolve_approvals(session_id) == []
        assert messaging.reaction_reads == []

    async def test_unreadable_message_does_not_block_siblings(self, sessions, messaging, resolver):
        session_id = await sessions.create_session("M1", "Sync", CHANNEL)
        drafts = await _post(sessions, messaging, session_id, "Send contract", "Book venue")
        messaging.unreadable.add("msg-1")
        messaging.react("Book venue", "👍")

        approved = await resolver.resolve_approvals(session_id)

        assert approved == [drafts["Book venue"]]
        session = await sessions.get_session(session_id)
        assert session.tasks[drafts["Send contract"]].status == TaskStatus.POSTED

    async def test_stale_write_logged_and_skipped(self, sessions, messaging):
        session_id = await sessions.create_session("M1", "Sync", CHANNEL)
        await _post(sessions, messaging, session_id, "Send contract")
        messaging.react("Send contract", "👍")

        racing = MagicMock()
        racing.get_session = sessions.get_session
        racing.mark_approved = AsyncMock(side_effect=StaleSessionError(session_id, 2, 3))
        resolver = ReactionResolver(racing, messaging, frozenset({"👍"}))

        assert await resolver.resolve_approvals(session_id) == []

    async def test_task_moved_by_overlapping_pass_does_not_block_siblings(
        self, sessions, messaging, resolver
    ):
        session_id = await sessions.create_session("M1", "Sync", CHANNEL)
        drafts = await _post(sessions, messaging, session_id, "Send contract", "Book venue")
        messaging.react("Send contract", "👍")
        messaging.react("Book venue", "👍")
        read_reactions = messaging.get_reactions

        async def approved_elsewhere(channel_ref, message_ref):
            if message_ref == "msg-1":
                await sessions.mark_approved(session_id, drafts["Send contract"], 1)
            return await read_reactions(channel_ref, message_ref)

        messaging.get_reactions = approved_elsewhere

        approved = await resolver.resolve_approvals(session_id)

        assert approved == [drafts["Book venue"]]
        session = await sessions.get_session(session_id)
        assert session.tasks[drafts["Send contract"]].status == TaskStatus.APPROVED
        assert session.tasks[drafts["Book venue"]].status == TaskStatus.APPROVED


# ── Committer ────────────────────────────────────────────────────────────────


class TestDownstreamTaskCommitter:
    async def test_commits_approved_only(self, sessions, messaging, board, committer):
        session_id = await sessions.create_session("M1", "Sync", CHANNEL)
        drafts = await _post(sessions, messaging, session_id, "Send contract", "Book venue")
        await sessions.mark_approved(session_id, drafts["Send contract"], 1)

        committed = await committer.commit(session_id)

        assert [c.board_draft_id for c in committed] == [drafts["Send contract"]]
        assert committed[0].committed_task_id == "cu-1"
        assert [task.title for _, task in board.created] == ["Send contract"]
        assert board.created[0][0] == "list-1"

        session = await sessions.get_session(session_id)
        assert session.tasks[drafts["Send contract"]].status == TaskStatus.COMMITTED
        assert session.tasks[drafts["Send contract"]].committed_task_id == "cu-1"
        assert session.tasks[drafts["Book venue"]].status == TaskStatus.POSTED

    async def test_rerun_makes_no_new_board_calls(self, sessions, messaging, board, committer):
        session_id = await sessions.create_session("M1", "Sync", CHANNEL)
        drafts = await _post(sessions, messaging, session_id, "Send contract")
        await sessions.mark_approved(session_id, drafts["Send contract"], 1)

        await committer.commit(session_id)
        second = await committer.commit(session_id)

        assert second == []
        assert len(board.created) == 1

    async def test_board_failure_leaves_task_approved(self, sessions, messaging, board, committer):
        session_id = await sessions.create_session("M1", "Sync", CHANNEL)
        drafts = await _post(sessions, messaging, session_id, "Send contract", "Book venue")
        for draft_id in drafts.values():
            await sessions.mark_approved(session_id, draft_id, 1)
        board.fail_drafts.add(drafts["Send contract"])

        committed = await committer.commit(session_id)

        assert [c.title for c in committed] == ["Book venue"]
        session = await sessions.get_session(session_id)
        assert session.tasks[drafts["Send contract"]].status == TaskStatus.APPROVED
        assert session.tasks[drafts["Send contract"]].committed_task_id is None

        board.fail_drafts.clear()
        retried = await committer.commit(session_id)
        assert [c.title for c in retried] == ["Send contract"]
        assert (await sessions.get_session(session_id)).is_complete

    async def test_commits_in_posting_order(self, store, sessions, board):
        session_id = await sessions.create_session("M1", "Sync", CHANNEL)
        base = datetime(2026, 3, 2, 10, 0, tzinfo=timezone.utc)
        for offset, title in [(2, "third"), (0, "first"), (1, "second")]:
            task = await sessions.add_task(session_id, CandidateTask(title=title), f"m-{title}", title)
            session = await sessions.get_session(session_id)
            session.tasks[task.board_draft_id].posted_at = base + timedelta(minutes=offset)
            await store.save_session(session)
            await sessions.mark_approved(session_id, title, 1)

        committer = DownstreamTaskCommitter(sessions, board, "list-1")
        await committer.commit(session_id)

        assert [task.title for _, task in board.created] == ["first", "second", "third"]

    async def test_commit_recorded_elsewhere_is_logged_and_siblings_continue(
        self, sessions, messaging, board, committer, monkeypatch
    ):
        session_id = await sessions.create_session("M1", "Sync", CHANNEL)
        drafts = await _post(sessions, messaging, session_id, "Send contract", "Book venue")
        for draft_id in drafts.values():
            await sessions.mark_approved(session_id, draft_id, 1)
        create_on_board = board.create_task

        async def committed_elsewhere(list_ref, task):
            committed_task_id = await create_on_board(list_ref, task)
            if task.board_draft_id == drafts["Send contract"]:
                await sessions.mark_committed(session_id, task.board_draft_id, "cu-other")
            return committed_task_id

        board.create_task = committed_elsewhere
        log = MagicMock()
        monkeypatch.setattr(committer_module, "logger", log)

        committed = await committer.commit(session_id)

        assert [c.board_draft_id for c in committed] == [drafts["Book venue"]]
        session = await sessions.get_session(session_id)
        assert session.tasks[drafts["Book venue"]].committed_task_id == "cu-2"
        assert session.tasks[drafts["Send contract"]].committed_task_id == "cu-other"

        event, fields = log.error.call_args_list[0].args[0], log.error.call_args_list[0].kwargs
        assert event == "committer.commit_not_recorded"
        assert fields["committed_task_id"] == "cu-1"
        assert fields["error_type"] == "InvalidTaskTransitionError"

    async def test_rejected_task_logged_distinctly(
        self, sessions, messaging, board, committer, monkeypatch
    ):
        session_id = await sessions.create_session("M1", "Sync", CHANNEL)
        drafts = await _post(sessions, messaging, session_id, "Send contract")
        await sessions.mark_approved(session_id, drafts["Send contract"], 1)
        board.create_task = AsyncMock(
            side_effect=AdapterError("clickup", "create_task", "HTTP 400", retryable=False)
        )
        log = MagicMock()
        monkeypatch.setattr(committer_module, "logger", log)

        assert await committer.commit(session_id) == []

        assert log.error.call_args.args[0] == "committer.board_rejected_task"
        assert log.error.call_args.kwargs["retryable"] is False
        task = (await sessions.get_session(session_id)).tasks[drafts["Send contract"]]
        assert task.status == TaskStatus.APPROVED
