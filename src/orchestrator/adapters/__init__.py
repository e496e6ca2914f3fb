"""External system adapters -- pluggable implementations behind narrow ABCs.

Provides abstract interfaces with concrete implementations:
- TranscriptSource: FirefliesTranscriptSource
- TaskExtractor: LLMTaskExtractor (instructor + LiteLLM)
- PlanningAdapter: PlannerAdapter (Microsoft Graph)
- MessagingAdapter: TeamsMessagingAdapter (Microsoft Graph)
- BoardAdapter: ClickUpBoardAdapter

HTTP adapters share retry and error normalisation through HttpAdapter.
"""

from src.orchestrator.adapters.base import (
    BoardAdapter,
    MeetingTranscript,
    MessagingAdapter,
    PlanningAdapter,
    TaskExtractor,
    TranscriptSource,
)
from src.orchestrator.adapters.clickup import ClickUpBoardAdapter
from src.orchestrator.adapters.extraction import LLMTaskExtractor
from src.orchestrator.adapters.fireflies import FirefliesTranscriptSource
from src.orchestrator.adapters.planner import PlannerAdapter
from src.orchestrator.adapters.teams import TeamsMessagingAdapter

__all__ = [
    "BoardAdapter",
    "ClickUpBoardAdapter",
    "FirefliesTranscriptSource",
    "LLMTaskExtractor",
    "MeetingTranscript",
    "MessagingAdapter",
    "PlannerAdapter",
    "PlanningAdapter",
    "TaskExtractor",
    "TeamsMessagingAdapter",
    "TranscriptSource",
]
