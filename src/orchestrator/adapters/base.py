"""Adapter abstract base classes -- the narrow interfaces the core depends on.

Every external system the orchestrator talks to sits behind one of these
ABCs. The session manager, resolver and committer only ever see these
interfaces, so tests substitute in-memory fakes and production wires the
Teams / Planner / ClickUp / Fireflies / LLM implementations.

Failures crossing these interfaces are normalised:
- TaskExtractor raises ExtractionError.
- Every other adapter raises AdapterError.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from pydantic import BaseModel

from src.orchestrator.state.schemas import CandidateTask, ChannelRef, TrackedTask


class MeetingTranscript(BaseModel):
    """Transcript content for one meeting, as fetched from the notetaker."""

    meeting_id: str
    title: str = ""
    content: str = ""


class TranscriptSource(ABC):
    """Source of finished meeting transcripts."""

    @abstractmethod
    async def fetch_transcript(self, meeting_id: str) -> MeetingTranscript:
        """Fetch the transcript for a meeting id."""
        ...


class TaskExtractor(ABC):
    """Turns free-text transcript content into candidate tasks."""

    @abstractmethod
    async def extract_tasks(self, content: str) -> list[CandidateTask]:
        """Extract candidate tasks. An empty list is a valid result."""
        ...


class PlanningAdapter(ABC):
    """Intermediate planning system where tasks are drafted before approval."""

    @abstractmethod
    async def create_draft_task(self, plan_ref: str, candidate: CandidateTask) -> str:
        """Create a draft task, return its id (the session's task key)."""
        ...


class MessagingAdapter(ABC):
    """Approval channel: one message per task, approval via reactions."""

    @abstractmethod
    async def post_message(
        self,
        channel_ref: ChannelRef,
        task: CandidateTask,
        board_draft_id: str,
        meeting_title: str = "",
    ) -> str:
        """Post an approval request for a task, return the message id."""
        ...

    @abstractmethod
    async def get_reactions(self, channel_ref: ChannelRef, message_ref: str) -> list[str]:
        """Return the literal reaction symbols currently on a message."""
        ...


class BoardAdapter(ABC):
    """Board of record where approved tasks are created."""

    @abstractmethod
    async def create_task(self, list_ref: str, task: TrackedTask) -> str:
        """Create a board task, return its id."""
        ...
