"""Fireflies transcript source via the Fireflies GraphQL API."""

from __future__ import annotations

import structlog

from src.orchestrator.adapters.base import MeetingTranscript, TranscriptSource
from src.orchestrator.adapters.http import HttpAdapter

logger = structlog.get_logger(__name__)

TRANSCRIPT_QUERY = """
query Transcript($transcriptId: String!) {
  transcript(id: $transcriptId) {
    id
    title
    sentences {
      speaker_name
      text
    }
  }
}
"""


class FirefliesTranscriptSource(HttpAdapter, TranscriptSource):
    """Fetches a finished transcript and flattens it to speaker-prefixed lines.

    Args:
        client: httpx client carrying the Fireflies bearer token.
        api_url: GraphQL endpoint URL.
        max_attempts: Attempts per call, including the first.
    """

    service_name = "fireflies"

    def __init__(self, client, api_url: str, max_attempts: int = 3) -> None:
        super().__init__(client, max_attempts=max_attempts)
        self._api_url = api_url

    async def fetch_transcript(self, meeting_id: str) -> MeetingTranscript:
        response = await self._request(
            "fetch_transcript",
            "POST",
            self._api_url,
            json={"query": TRANSCRIPT_QUERY, "variables": {"transcriptId": meeting_id}},
        )
        payload = self._json("fetch_transcript", response)

        if payload.get("errors"):
            messages = "; ".join(
                str(error.get("message", error)) if isinstance(error, dict) else str(error)
                for error in payload["errors"]
            )
            raise self._fail("fetch_transcript", f"GraphQL errors: {messages}", retryable=False)

        transcript = (payload.get("data") or {}).get("transcript")
        if not transcript:
            raise self._fail(
                "fetch_transcript", f"transcript {meeting_id} not found", retryable=False
            )

        lines = [
            f"{sentence.get('speaker_name') or 'Unknown'}: {sentence.get('text', '')}"
            for sentence in transcript.get("sentences") or []
        ]

        logger.info(
            "fireflies.transcript_fetched",
            meeting_id=meeting_id,
            sentence_count=len(lines),
        )
        return MeetingTranscript(
            meeting_id=meeting_id,
            title=transcript.get("title") or "",
            content="\n".join(lines),
        )
