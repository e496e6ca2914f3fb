"""File-backed durable state for processed meetings and approval sessions.

Two independent collections live side by side in the state directory, each
in its own JSON document tagged with a schema version:

    processed_meetings.json  {"schema_version": 1, "meetings": [...]}
    sessions.json            {"schema_version": 1, "sessions": {id: {...}}}

Writes go to a temp file followed by os.replace so a reader never sees a
half-written document. Read-modify-write cycles are serialised per process
with an asyncio.Lock; across processes the session version token rejects
writes based on a stale read. A document with an unknown schema version (or
one that no longer parses) is never migrated in place: it is either moved
aside to ``<name>.bak-<timestamp>`` with a warning, or rejected with
SchemaVersionMismatchError, depending on ``reset_on_schema_mismatch``.

All file I/O runs in a worker thread via asyncio.to_thread so the event
loop is never blocked.
"""

from __future__ import annotations

import asyncio
import json
import os
from datetime import datetime, timezone
from typing import Any

import structlog
from pydantic import ValidationError

from src.orchestrator.errors import (
    SchemaVersionMismatchError,
    SessionNotFoundError,
    StaleSessionError,
)
from src.orchestrator.state.schemas import ApprovalSession

logger = structlog.get_logger(__name__)

SCHEMA_VERSION = 1
PROCESSED_MEETINGS_FILE = "processed_meetings.json"
SESSIONS_FILE = "sessions.json"


class StateStore:
    """Durable key-value store for the two orchestrator record families.

    Args:
        state_dir: Directory holding the state documents. Created on demand.
        reset_on_schema_mismatch: If True, incompatible documents are backed
            up and reset with a warning. If False, SchemaVersionMismatchError
            is raised instead.
    """

    def __init__(self, state_dir: str, reset_on_schema_mismatch: bool = True) -> None:
        self._state_dir = state_dir
        self._reset_on_mismatch = reset_on_schema_mismatch
        self._lock = asyncio.Lock()

    @property
    def state_dir(self) -> str:
        return self._state_dir

    # ── Processed meetings ──────────────────────────────────────────────

    async def is_processed(self, meeting_id: str) -> bool:
        """Return True if the meeting id is in the processed set."""
        async with self._lock:
            meetings = await asyncio.to_thread(self._read_processed)
        return meeting_id in meetings

    async def list_processed(self) -> set[str]:
        async with self._lock:
            return await asyncio.to_thread(self._read_processed)

    async def add_processed(self, meeting_id: str) -> bool:
        """Add a meeting id to the processed set.

        Membership is monotonic; nothing in this module removes ids.

        Returns:
            True if the id was newly added, False if it was already present.
        """
        async with self._lock:
            return await asyncio.to_thread(self._add_processed_sync, meeting_id)

    def _add_processed_sync(self, meeting_id: str) -> bool:
        meetings = self._read_processed()
        if meeting_id in meetings:
            return False
        meetings.add(meeting_id)
        self._write_document(
            PROCESSED_MEETINGS_FILE,
            {"schema_version": SCHEMA_VERSION, "meetings": sorted(meetings)},
        )
        logger.info("state.meeting_marked_processed", meeting_id=meeting_id)
        return True

    def _read_processed(self) -> set[str]:
        document = self._read_document(PROCESSED_MEETINGS_FILE)
        if document is None:
            return set()
        meetings = document.get("meetings", [])
        if not isinstance(meetings, list):
            self._handle_incompatible(PROCESSED_MEETINGS_FILE, document.get("schema_version"))
            return set()
        return {str(m) for m in meetings}

    # ── Sessions ────────────────────────────────────────────────────────

    async def get_session(self, session_id: str) -> ApprovalSession | None:
        async with self._lock:
            sessions = await asyncio.to_thread(self._read_sessions)
        return sessions.get(session_id)

    async def list_sessions(self) -> list[ApprovalSession]:
        """Return all sessions ordered by creation time."""
        async with self._lock:
            sessions = await asyncio.to_thread(self._read_sessions)
        return sorted(sessions.values(), key=lambda s: (s.created_at, s.session_id))

    async def insert_session(self, session: ApprovalSession) -> ApprovalSession:
        """Persist a brand-new session at version 1.

        Raises:
            ValueError: If a session with the same id already exists.
        """
        async with self._lock:
            return await asyncio.to_thread(self._insert_session_sync, session)

    def _insert_session_sync(self, session: ApprovalSession) -> ApprovalSession:
        sessions = self._read_sessions()
        if session.session_id in sessions:
            raise ValueError(f"Approval session already exists: {session.session_id}")
        stored = session.model_copy(update={"version": 1})
        sessions[stored.session_id] = stored
        self._write_sessions(sessions)
        return stored

    async def save_session(self, session: ApprovalSession) -> ApprovalSession:
        """Persist an updated session if its version token is current.

        Returns:
            The stored session with its version incremented.

        Raises:
            SessionNotFoundError: If the session was never inserted.
            StaleSessionError: If the store holds a newer version.
        """
        async with self._lock:
            return await asyncio.to_thread(self._save_session_sync, session)

    def _save_session_sync(self, session: ApprovalSession) -> ApprovalSession:
        sessions = self._read_sessions()
        current = sessions.get(session.session_id)
        if current is None:
            raise SessionNotFoundError(session.session_id)
        if current.version != session.version:
            raise StaleSessionError(session.session_id, session.version, current.version)
        stored = session.model_copy(update={"version": session.version + 1})
        sessions[stored.session_id] = stored
        self._write_sessions(sessions)
        return stored

    def _read_sessions(self) -> dict[str, ApprovalSession]:
        document = self._read_document(SESSIONS_FILE)
        if document is None:
            return {}
        raw = document.get("sessions", {})
        try:
            if not isinstance(raw, dict):
                raise TypeError("sessions must be a mapping")
            return {
                session_id: ApprovalSession.model_validate(data)
                for session_id, data in raw.items()
            }
        except (TypeError, ValidationError) as exc:
            logger.warning("state.sessions_unparseable", error=str(exc))
            self._handle_incompatible(SESSIONS_FILE, document.get("schema_version"))
            return {}

    def _write_sessions(self, sessions: dict[str, ApprovalSession]) -> None:
        self._write_document(
            SESSIONS_FILE,
            {
                "schema_version": SCHEMA_VERSION,
                "sessions": {
                    session_id: session.model_dump(mode="json")
                    for session_id, session in sessions.items()
                },
            },
        )

    # ── Document I/O ────────────────────────────────────────────────────

    def _path(self, name: str) -> str:
        return os.path.join(self._state_dir, name)

    def _read_document(self, name: str) -> dict[str, Any] | None:
        """Load a state document, or None if it does not exist (or was reset)."""
        path = self._path(name)
        if not os.path.exists(path):
            return None
        try:
            with open(path, encoding="utf-8") as f:
                document = json.load(f)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            logger.warning("state.document_corrupt", path=path, error=str(exc))
            self._handle_incompatible(name, None)
            return None

        version = document.get("schema_version") if isinstance(document, dict) else None
        if version != SCHEMA_VERSION:
            self._handle_incompatible(name, version)
            return None
        return document

    def _write_document(self, name: str, document: dict[str, Any]) -> None:
        os.makedirs(self._state_dir, exist_ok=True)
        path = self._path(name)
        temp_path = f"{path}.tmp"
        with open(temp_path, "w", encoding="utf-8") as f:
            json.dump(document, f, indent=2, ensure_ascii=False)
            f.flush()
            os.fsync(f.fileno())
        os.replace(temp_path, path)

    def _handle_incompatible(self, name: str, found: object) -> None:
        """Back up and reset an incompatible document, or raise."""
        path = self._path(name)
        if not self._reset_on_mismatch:
            raise SchemaVersionMismatchError(path, found, SCHEMA_VERSION)

        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%f")
        backup_path = f"{path}.bak-{stamp}"
        os.replace(path, backup_path)
        logger.warning(
            "state.schema_mismatch_reset",
            path=path,
            backup_path=backup_path,
            found_version=found,
            expected_version=SCHEMA_VERSION,
        )
