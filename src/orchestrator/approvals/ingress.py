"""IngressGuard -- at-most-once admission of meetings for processing.

A meeting is admitted only if it is not already in the processed set. Once
admitted, the meeting is written to the processed set when the admission
scope exits, whatever the outcome: tasks posted, zero tasks, extraction
failure, or cancellation. An upstream notifier that keeps retrying the same
meeting therefore gets at most one processing attempt.

Within one process, a meeting that is still being processed is also
refused (reason ``in_flight``). Two processes admitting the same meeting
before either has written the processed set are not prevented here.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from enum import Enum

import structlog
from pydantic import BaseModel

from src.orchestrator.state.store import StateStore

logger = structlog.get_logger(__name__)


class AdmissionReason(str, Enum):
    ADMITTED = "admitted"
    ALREADY_PROCESSED = "already_processed"
    IN_FLIGHT = "in_flight"


class Admission(BaseModel):
    """Result of offering a meeting to the guard."""

    meeting_id: str
    admitted: bool
    reason: AdmissionReason


class IngressGuard:
    """Deduplicates meeting processing requests against the processed set.

    Args:
        store: Durable state store holding the processed-meeting set.
    """

    def __init__(self, store: StateStore) -> None:
        self._store = store
        self._in_flight: set[str] = set()

    async def is_processed(self, meeting_id: str) -> bool:
        return await self._store.is_processed(meeting_id)

    def is_in_flight(self, meeting_id: str) -> bool:
        return meeting_id in self._in_flight

    @asynccontextmanager
    async def admit(self, meeting_id: str) -> AsyncIterator[Admission]:
        """Admission scope for one meeting.

        Usage:
            async with guard.admit(meeting_id) as admission:
                if admission.admitted:
                    ...  # process the meeting

        When admitted, the meeting is marked processed on exit even if the
        body raises.
        """
        if meeting_id in self._in_flight:
            logger.info("ingress.rejected", meeting_id=meeting_id, reason="in_flight")
            yield Admission(
                meeting_id=meeting_id, admitted=False, reason=AdmissionReason.IN_FLIGHT
            )
            return

        # Claimed before the first await so a concurrent admit sees it.
        self._in_flight.add(meeting_id)
        try:
            if await self._store.is_processed(meeting_id):
                logger.info("ingress.rejected", meeting_id=meeting_id, reason="already_processed")
                yield Admission(
                    meeting_id=meeting_id,
                    admitted=False,
                    reason=AdmissionReason.ALREADY_PROCESSED,
                )
                return

            logger.info("ingress.admitted", meeting_id=meeting_id)
            try:
                yield Admission(
                    meeting_id=meeting_id, admitted=True, reason=AdmissionReason.ADMITTED
                )
            finally:
                await self._store.add_processed(meeting_id)
        finally:
            self._in_flight.discard(meeting_id)
