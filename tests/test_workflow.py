"""End-to-end tests for MeetingWorkflow over in-memory adapters.

Exercises the ingress path (admit, extract, post) and the approval path
(resolve, commit) together, including the two-task meeting scenario and
re-admission of a processed meeting.
"""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from src.orchestrator.errors import SessionNotFoundError
from src.orchestrator.state import CandidateTask, Priority, ProcessingOutcome, TaskStatus

TRANSCRIPT = "Alice: I'll send the contract by Friday.\nBob: Someone needs to book the venue."


@pytest.fixture
def two_task_meeting(transcripts, extractor):
    transcripts.add("M1", TRANSCRIPT, title="Offsite planning")
    extractor.results[TRANSCRIPT] = [
        CandidateTask(title="Send contract", priority=Priority.HIGH),
        CandidateTask(title="Book venue", priority=Priority.NORMAL),
    ]


# ── Ingress path ─────────────────────────────────────────────────────────────


class TestProcessMeeting:
    async def test_posts_every_task_to_channel(self, workflow, messaging, planner, two_task_meeting):
        result = await workflow.process_meeting("M1")

        assert result.admitted is True
        assert result.outcome == ProcessingOutcome.POSTED
        assert result.session_id is not None
        assert len(result.posted) == 2
        assert result.undelivered == []

        assert [p["title"] for p in messaging.posts.values()] == ["Send contract", "Book venue"]
        assert {p["channel"].channel_id for p in messaging.posts.values()} == {"C1"}
        assert {p["meeting_title"] for p in messaging.posts.values()} == {"Offsite planning"}
        assert set(planner.drafts) == set(result.posted)

        session = await workflow.sessions.get_session(result.session_id)
        assert session.meeting_id == "M1"
        assert {t.status for t in session.tasks.values()} == {TaskStatus.POSTED}

    async def test_title_override(self, workflow, messaging, two_task_meeting):
        result = await workflow.process_meeting("M1", title="Q3 offsite")

        session = await workflow.sessions.get_session(result.session_id)
        assert session.meeting_title == "Q3 offsite"

    async def test_second_admission_is_noop(self, workflow, transcripts, messaging, two_task_meeting):
        await workflow.process_meeting("M1")

        again = await workflow.process_meeting("M1")

        assert again.admitted is False
        assert again.outcome == ProcessingOutcome.DUPLICATE
        assert transcripts.calls == ["M1"]
        assert len(messaging.posts) == 2
        assert len(await workflow.sessions.list_sessions()) == 1

    async def test_zero_tasks_marks_processed_without_session(self, workflow, transcripts, store):
        transcripts.add("M1", "Alice: thanks everyone.")

        result = await workflow.process_meeting("M1")

        assert result.outcome == ProcessingOutcome.NO_TASKS
        assert result.session_id is None
        assert await store.is_processed("M1")
        assert await workflow.sessions.list_sessions() == []

        again = await workflow.process_meeting("M1")
        assert again.admitted is False

    async def test_extraction_failure_is_terminal(self, workflow, transcripts, extractor, store):
        transcripts.add("M1", TRANSCRIPT)
        extractor.fail = True

        result = await workflow.process_meeting("M1")

        assert result.outcome == ProcessingOutcome.EXTRACTION_FAILED
        assert "garbage" in result.error
        assert await store.is_processed("M1")
        assert await workflow.sessions.list_sessions() == []

    async def test_transcript_failure_is_terminal(self, workflow, store):
        result = await workflow.process_meeting("M-unknown")

        assert result.outcome == ProcessingOutcome.TRANSCRIPT_FAILED
        assert await store.is_processed("M-unknown")

    async def test_post_failure_does_not_block_siblings(
        self, workflow, messaging, two_task_meeting
    ):
        messaging.fail_titles.add("Send contract")

        result = await workflow.process_meeting("M1")

        assert result.outcome == ProcessingOutcome.POSTED
        assert result.undelivered == ["Send contract"]
        assert len(result.posted) == 1

        session = await workflow.sessions.get_session(result.session_id)
        assert [t.title for t in session.tasks.values()] == ["Book venue"]
        assert [c.title for c in session.undelivered] == ["Send contract"]

    async def test_draft_failure_skips_posting(self, workflow, planner, messaging, two_task_meeting):
        planner.fail_titles.add("Book venue")

        result = await workflow.process_meeting("M1")

        assert result.undelivered == ["Book venue"]
        assert [p["title"] for p in messaging.posts.values()] == ["Send contract"]

    async def test_unexpected_error_still_marks_processed(self, workflow, extractor, transcripts, store):
        transcripts.add("M1", TRANSCRIPT)
        extractor.extract_tasks = AsyncMock(side_effect=RuntimeError("bug"))

        with pytest.raises(RuntimeError):
            await workflow.process_meeting("M1")

        assert await store.is_processed("M1")


# ── Approval path ────────────────────────────────────────────────────────────


class TestCheckApprovals:
    async def test_two_task_scenario(self, workflow, messaging, board, two_task_meeting):
        processed = await workflow.process_meeting("M1")
        messaging.react("Send contract", "👍")

        resolved = await workflow._resolver.resolve_approvals(processed.session_id)
        session = await workflow.sessions.get_session(processed.session_id)
        by_title = {t.title: t for t in session.tasks.values()}
        assert len(resolved) == 1
        assert by_title["Send contract"].status == TaskStatus.APPROVED
        assert by_title["Book venue"].status == TaskStatus.POSTED

        await workflow._committer.commit(processed.session_id)
        session = await workflow.sessions.get_session(processed.session_id)
        by_title = {t.title: t for t in session.tasks.values()}
        assert by_title["Send contract"].status == TaskStatus.COMMITTED
        assert by_title["Send contract"].committed_task_id
        assert by_title["Book venue"].status == TaskStatus.POSTED
        assert by_title["Book venue"].committed_task_id is None
        assert [task.title for _, task in board.created] == ["Send contract"]

    async def test_check_latest_session(self, workflow, messaging, board, two_task_meeting):
        processed = await workflow.process_meeting("M1")
        messaging.react("Send contract", "like")

        results = await workflow.check_approvals()

        assert len(results) == 1
        result = results[0]
        assert result.session_id == processed.session_id
        assert len(result.approved) == 1
        assert [c.title for c in result.committed] == ["Send contract"]
        assert result.pending == 1
        assert result.complete is False

    async def test_repeat_pass_is_idempotent(self, workflow, messaging, board, two_task_meeting):
        await workflow.process_meeting("M1")
        messaging.react("Send contract", "👍")
        messaging.react("Book venue", "👍")

        first = await workflow.check_approvals()
        second = await workflow.check_approvals()

        assert first[0].complete is True
        assert second[0].approved == []
        assert second[0].committed == []
        assert len(board.created) == 2

    async def test_no_sessions(self, workflow):
        assert await workflow.check_approvals() == []
        assert await workflow.check_approvals(all_open=True) == []

    async def test_unknown_session_raises(self, workflow):
        with pytest.raises(SessionNotFoundError):
            await workflow.check_approvals(session_id="missing")

    async def test_all_open_sessions(self, workflow, transcripts, extractor, messaging, board):
        for meeting_id in ("M1", "M2"):
            content = f"{meeting_id} transcript"
            transcripts.add(meeting_id, content)
            extractor.results[content] = [CandidateTask(title=f"Task from {meeting_id}")]
            await workflow.process_meeting(meeting_id)
        messaging.react("Task from M1", "👍")
        messaging.react("Task from M2", "👍")

        latest_only = await workflow.check_approvals()
        assert len(latest_only) == 1
        assert latest_only[0].committed[0].title == "Task from M2"

        everything = await workflow.check_approvals(all_open=True)
        assert [r.committed[0].title for r in everything] == ["Task from M1"]
        assert len(board.created) == 2
