"""Durable state: approval session schemas and the file-backed store.

Exports:
    StateStore: Processed-meeting set + approval session persistence.
    ApprovalSession, TrackedTask, CandidateTask, ChannelRef, CommittedTask:
        Session record models.
    Priority, TaskStatus: Enumerations used across the pipeline.
"""

from src.orchestrator.state.schemas import (
    ApprovalPassResult,
    ApprovalSession,
    CandidateTask,
    ChannelRef,
    CommittedTask,
    Priority,
    ProcessingOutcome,
    ProcessingResult,
    TaskStatus,
    TrackedTask,
    make_session_id,
)
from src.orchestrator.state.store import SCHEMA_VERSION, StateStore

__all__ = [
    "SCHEMA_VERSION",
    "ApprovalPassResult",
    "ApprovalSession",
    "CandidateTask",
    "ChannelRef",
    "CommittedTask",
    "Priority",
    "ProcessingOutcome",
    "ProcessingResult",
    "StateStore",
    "TaskStatus",
    "TrackedTask",
    "make_session_id",
]
