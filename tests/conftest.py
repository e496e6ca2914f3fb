"""Shared test fixtures for the approval orchestrator.

Provides:
- A file-backed StateStore in a per-test temp directory
- In-memory doubles for every external adapter (transcripts, extraction,
  Planner, Teams, ClickUp)
- A fully wired MeetingWorkflow over those doubles

No network access and no real LLM calls.
"""

from __future__ import annotations

import pytest

from src.orchestrator.adapters.base import (
    BoardAdapter,
    MeetingTranscript,
    MessagingAdapter,
    PlanningAdapter,
    TaskExtractor,
    TranscriptSource,
)
from src.orchestrator.approvals import (
    ApprovalSessionManager,
    DownstreamTaskCommitter,
    IngressGuard,
    MeetingWorkflow,
    ReactionResolver,
)
from src.orchestrator.errors import AdapterError, ExtractionError
from src.orchestrator.state import CandidateTask, ChannelRef, StateStore, TrackedTask

CHANNEL = ChannelRef(team_id="T1", channel_id="C1")
PLAN_ID = "plan-1"
LIST_ID = "list-1"
APPROVING = frozenset({"👍", "like"})


# ── In-memory adapter doubles ────────────────────────────────────────────────


class FakeTranscriptSource(TranscriptSource):
    def __init__(self) -> None:
        self.transcripts: dict[str, MeetingTranscript] = {}
        self.fail = False
        self.calls: list[str] = []

    def add(self, meeting_id: str, content: str, title: str = "") -> None:
        self.transcripts[meeting_id] = MeetingTranscript(
            meeting_id=meeting_id, title=title, content=content
        )

    async def fetch_transcript(self, meeting_id: str) -> MeetingTranscript:
        self.calls.append(meeting_id)
        if self.fail or meeting_id not in self.transcripts:
            raise AdapterError("fireflies", "fetch_transcript", "not found", retryable=False)
        return self.transcripts[meeting_id]


class FakeExtractor(TaskExtractor):
    """Returns the tasks registered for a transcript's content."""

    def __init__(self) -> None:
        self.results: dict[str, list[CandidateTask]] = {}
        self.fail = False

    async def extract_tasks(self, content: str) -> list[CandidateTask]:
        if self.fail:
            raise ExtractionError("model returned garbage")
        return list(self.results.get(content, []))


class FakePlanner(PlanningAdapter):
    def __init__(self) -> None:
        self.drafts: dict[str, CandidateTask] = {}
        self.fail_titles: set[str] = set()

    async def create_draft_task(self, plan_ref: str, candidate: CandidateTask) -> str:
        if candidate.title in self.fail_titles:
            raise AdapterError("planner", "create_draft_task", "HTTP 503")
        draft_id = f"draft-{len(self.drafts) + 1}"
        self.drafts[draft_id] = candidate
        return draft_id


class FakeMessaging(MessagingAdapter):
    """Records posted messages and serves reactions per message."""

    def __init__(self) -> None:
        self.posts: dict[str, dict] = {}
        self.reactions: dict[str, list[str]] = {}
        self.fail_titles: set[str] = set()
        self.unreadable: set[str] = set()
        self.reaction_reads: list[str] = []

    async def post_message(
        self,
        channel_ref: ChannelRef,
        task: CandidateTask,
        board_draft_id: str,
        meeting_title: str = "",
    ) -> str:
        if task.title in self.fail_titles:
            raise AdapterError("teams", "post_message", "HTTP 429")
        message_ref = f"msg-{len(self.posts) + 1}"
        self.posts[message_ref] = {
            "channel": channel_ref,
            "title": task.title,
            "board_draft_id": board_draft_id,
            "meeting_title": meeting_title,
        }
        return message_ref

    async def get_reactions(self, channel_ref: ChannelRef, message_ref: str) -> list[str]:
        self.reaction_reads.append(message_ref)
        if message_ref in self.unreadable:
            raise AdapterError("teams", "get_reactions", "HTTP 502")
        return list(self.reactions.get(message_ref, []))

    def react(self, title: str, *symbols: str) -> None:
        """Add reactions to the message that carries the given task title."""
        for message_ref, post in self.posts.items():
            if post["title"] == title:
                self.reactions.setdefault(message_ref, []).extend(symbols)
                return
        raise KeyError(title)


class FakeBoard(BoardAdapter):
    def __init__(self) -> None:
        self.created: list[tuple[str, TrackedTask]] = []
        self.fail_drafts: set[str] = set()

    async def create_task(self, list_ref: str, task: TrackedTask) -> str:
        if task.board_draft_id in self.fail_drafts:
            raise AdapterError("clickup", "create_task", "HTTP 500")
        self.created.append((list_ref, task))
        return f"cu-{len(self.created)}"


# ── Fixtures ─────────────────────────────────────────────────────────────────


@pytest.fixture
def store(tmp_path) -> StateStore:
    return StateStore(str(tmp_path / "state"))


@pytest.fixture
def sessions(store) -> ApprovalSessionManager:
    return ApprovalSessionManager(store)


@pytest.fixture
def transcripts() -> FakeTranscriptSource:
    return FakeTranscriptSource()


@pytest.fixture
def extractor() -> FakeExtractor:
    return FakeExtractor()


@pytest.fixture
def planner() -> FakePlanner:
    return FakePlanner()


@pytest.fixture
def messaging() -> FakeMessaging:
    return FakeMessaging()


@pytest.fixture
def board() -> FakeBoard:
    return FakeBoard()


@pytest.fixture
def resolver(sessions, messaging) -> ReactionResolver:
    return ReactionResolver(sessions, messaging, APPROVING)


@pytest.fixture
def committer(sessions, board) -> DownstreamTaskCommitter:
    return DownstreamTaskCommitter(sessions, board, LIST_ID)


@pytest.fixture
def workflow(
    store, sessions, transcripts, extractor, planner, messaging, resolver, committer
) -> MeetingWorkflow:
    return MeetingWorkflow(
        guard=IngressGuard(store),
        sessions=sessions,
        transcripts=transcripts,
        extractor=extractor,
        planning=planner,
        messaging=messaging,
        resolver=resolver,
        committer=committer,
        channel_ref=CHANNEL,
        plan_ref=PLAN_ID,
    )
