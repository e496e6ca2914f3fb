"""Exception hierarchy for the approval orchestrator.

Three families with different retry semantics:

- ExtractionError: the transcript could not be turned into tasks. Terminal
  for the meeting (it is still marked processed).
- AdapterError: a call to Teams, Planner, ClickUp or Fireflies failed.
  Retryable on the next scheduled pass.
- SessionNotFoundError, SchemaVersionMismatchError,
  InvalidTaskTransitionError, StaleSessionError: programming or data
  integrity faults. Fatal to the current operation, never retried in place.
"""

from __future__ import annotations


class OrchestratorError(Exception):
    """Base class for all orchestrator errors."""


class ExtractionError(OrchestratorError):
    """Raised when task extraction fails (bad model output or transport failure)."""


class AdapterError(OrchestratorError):
    """Raised when an external service call fails.

    Carries the service and operation names so the failure can be logged
    with enough context to replay it.
    """

    def __init__(
        self,
        service: str,
        operation: str,
        detail: str,
        retryable: bool = True,
    ) -> None:
        self.service = service
        self.operation = operation
        self.detail = detail
        self.retryable = retryable
        super().__init__(f"{service}.{operation} failed: {detail}")


class SessionNotFoundError(OrchestratorError):
    """Raised when an approval session id does not exist in the store."""

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"Approval session not found: {session_id}")


class TaskNotFoundError(OrchestratorError):
    """Raised when a draft id is not tracked by the given session."""

    def __init__(self, session_id: str, board_draft_id: str) -> None:
        self.session_id = session_id
        self.board_draft_id = board_draft_id
        super().__init__(f"Task {board_draft_id} not found in session {session_id}")


class SchemaVersionMismatchError(OrchestratorError):
    """Raised when a persisted state file has an unsupported schema version."""

    def __init__(self, path: str, found: object, expected: int) -> None:
        self.path = path
        self.found = found
        self.expected = expected
        super().__init__(
            f"State file {path} has schema_version={found!r}, expected {expected}"
        )


class StaleSessionError(OrchestratorError):
    """Raised when a session save is based on an outdated version token."""

    def __init__(self, session_id: str, expected: int, actual: int) -> None:
        self.session_id = session_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Stale write for session {session_id}: "
            f"based on version {expected}, store has version {actual}"
        )


class InvalidTaskTransitionError(OrchestratorError, ValueError):
    """Raised when a task status transition violates the approval state machine."""

    def __init__(self, board_draft_id: str, from_status: object, to_status: object) -> None:
        self.board_draft_id = board_draft_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Invalid status transition for task {board_draft_id}: "
            f"{getattr(from_status, 'value', from_status)} -> "
            f"{getattr(to_status, 'value', to_status)}"
        )
