"""Approval pipeline: ingress, sessions, reaction resolution, commit, scheduling."""

from src.orchestrator.approvals.committer import DownstreamTaskCommitter
from src.orchestrator.approvals.ingress import Admission, AdmissionReason, IngressGuard
from src.orchestrator.approvals.resolver import ReactionResolver, count_approvals
from src.orchestrator.approvals.scheduler import ApprovalScheduler
from src.orchestrator.approvals.sessions import (
    VALID_TRANSITIONS,
    ApprovalSessionManager,
    validate_task_transition,
)
from src.orchestrator.approvals.workflow import MeetingWorkflow

__all__ = [
    "Admission",
    "AdmissionReason",
    "ApprovalScheduler",
    "ApprovalSessionManager",
    "DownstreamTaskCommitter",
    "IngressGuard",
    "MeetingWorkflow",
    "ReactionResolver",
    "VALID_TRANSITIONS",
    "count_approvals",
    "validate_task_transition",
]
