"""Pydantic v2 schemas for approval sessions and their tracked tasks.

Defines the data contracts shared by the state store, the session manager,
the resolver/committer pipeline and the external adapters.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field


# ── Enums ────────────────────────────────────────────────────────────────────


class Priority(str, Enum):
    """Task priority as proposed by extraction, ordered most to least urgent."""

    URGENT = "urgent"
    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"


class TaskStatus(str, Enum):
    """Lifecycle status of a tracked task.

    posted -> approved -> committed. There is no declined state: a task
    nobody approves stays posted and is re-polled.
    """

    POSTED = "posted"
    APPROVED = "approved"
    COMMITTED = "committed"


# ── Task Models ──────────────────────────────────────────────────────────────


class CandidateTask(BaseModel):
    """A task proposed by extraction, not yet posted anywhere."""

    title: str = Field(description="Short imperative task title")
    description: str = Field(default="", description="What needs to be done and why")
    priority: Priority = Priority.NORMAL
    due_at: datetime | None = None


class ChannelRef(BaseModel):
    """Locator of the approval channel: a team plus a channel within it."""

    team_id: str
    channel_id: str


class TrackedTask(BaseModel):
    """A task posted for approval and under session management."""

    board_draft_id: str
    message_ref: str
    title: str
    description: str = ""
    priority: Priority = Priority.NORMAL
    due_at: datetime | None = None
    status: TaskStatus = TaskStatus.POSTED
    approval_count: int | None = None
    committed_task_id: str | None = None
    posted_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    approved_at: datetime | None = None
    processed_at: datetime | None = None


class CommittedTask(BaseModel):
    """Result of creating an approved task on the board."""

    board_draft_id: str
    committed_task_id: str
    title: str


# ── Session Model ────────────────────────────────────────────────────────────


class ApprovalSession(BaseModel):
    """One meeting's batch of tasks awaiting human approval.

    Completion is derived, never stored: a session is complete once it has
    at least one task and every task is committed.
    """

    session_id: str
    meeting_id: str
    meeting_title: str
    created_at: datetime
    channel_ref: ChannelRef
    tasks: dict[str, TrackedTask] = Field(default_factory=dict)
    undelivered: list[CandidateTask] = Field(default_factory=list)
    version: int = 0

    def tasks_with_status(self, status: TaskStatus) -> list[TrackedTask]:
        return [task for task in self.tasks.values() if task.status == status]

    @property
    def pending_tasks(self) -> list[TrackedTask]:
        return self.tasks_with_status(TaskStatus.POSTED)

    @property
    def approved_tasks(self) -> list[TrackedTask]:
        return self.tasks_with_status(TaskStatus.APPROVED)

    @property
    def committed_tasks(self) -> list[TrackedTask]:
        return self.tasks_with_status(TaskStatus.COMMITTED)

    @property
    def is_complete(self) -> bool:
        return bool(self.tasks) and all(
            task.status == TaskStatus.COMMITTED for task in self.tasks.values()
        )


def make_session_id(meeting_id: str, created_at: datetime) -> str:
    """Build a session id that sorts lexically in creation order."""
    stamp = created_at.astimezone(timezone.utc).strftime("%Y%m%dT%H%M%S%f")
    return f"{stamp}_{meeting_id}"


# ── Workflow Results ─────────────────────────────────────────────────────────


class ProcessingOutcome(str, Enum):
    """Terminal outcome of processing one meeting."""

    DUPLICATE = "duplicate"
    NO_TASKS = "no_tasks"
    POSTED = "posted"
    TRANSCRIPT_FAILED = "transcript_failed"
    EXTRACTION_FAILED = "extraction_failed"


class ProcessingResult(BaseModel):
    """What happened when a meeting was offered to the workflow."""

    meeting_id: str
    admitted: bool
    outcome: ProcessingOutcome
    session_id: str | None = None
    posted: list[str] = Field(default_factory=list)
    undelivered: list[str] = Field(default_factory=list)
    error: str | None = None


class ApprovalPassResult(BaseModel):
    """Summary of one resolver + committer pass over a session."""

    session_id: str
    approved: list[str] = Field(default_factory=list)
    committed: list[CommittedTask] = Field(default_factory=list)
    pending: int = 0
    complete: bool = False
