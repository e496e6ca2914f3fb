"""LLMTaskExtractor -- candidate task extraction from meeting transcripts.

Uses the instructor + litellm pattern for structured LLM extraction: the
model is asked for an ExtractedTaskList and instructor validates (and
re-asks on) malformed output. Unlike the fail-open detectors elsewhere,
extraction failure is reported as ExtractionError so the workflow can
record the meeting as processed-with-failure.

Exports:
    LLMTaskExtractor: TaskExtractor backed by LiteLLM.
    ExtractedTaskList: Pydantic response model for instructor.
"""

from __future__ import annotations

import instructor
import litellm
import structlog
from pydantic import BaseModel, Field

from src.orchestrator.adapters.base import TaskExtractor
from src.orchestrator.core.monitoring import track_llm_call
from src.orchestrator.errors import ExtractionError
from src.orchestrator.state.schemas import CandidateTask

logger = structlog.get_logger(__name__)


class ExtractedTaskList(BaseModel):
    """All actionable tasks found in a meeting transcript."""

    tasks: list[CandidateTask] = Field(
        default_factory=list,
        description="Concrete follow-up tasks agreed in the meeting; empty if none",
    )


EXTRACTION_SYSTEM_PROMPT = (
    "You are reviewing a meeting transcript to find follow-up tasks. "
    "Return only concrete, actionable tasks that someone committed to or that "
    "the group agreed must happen. For each task give:\n"
    "1) A short imperative title\n"
    "2) A description with the relevant context from the meeting\n"
    "3) A priority: urgent, high, normal or low\n"
    "4) A due date in ISO 8601 if one was stated, otherwise null\n\n"
    "Do not invent tasks. If nothing actionable was agreed, return an empty list."
)


class LLMTaskExtractor(TaskExtractor):
    """Extracts CandidateTasks from transcript text with a single LLM call.

    Args:
        model: LiteLLM model name.
        max_retries: Instructor re-asks on validation failure.
    """

    def __init__(self, model: str, max_retries: int = 2) -> None:
        self._model = model
        self._max_retries = max_retries

    async def extract_tasks(self, content: str) -> list[CandidateTask]:
        if not content.strip():
            logger.info("extraction.empty_transcript")
            return []

        client = instructor.from_litellm(litellm.acompletion)

        try:
            async with track_llm_call(self._model):
                extracted = await client.chat.completions.create(
                    model=self._model,
                    response_model=ExtractedTaskList,
                    messages=[
                        {"role": "system", "content": EXTRACTION_SYSTEM_PROMPT},
                        {"role": "user", "content": f"Transcript:\n{content}"},
                    ],
                    max_tokens=4096,
                    temperature=0.1,
                    max_retries=self._max_retries,
                )
        except Exception as exc:
            logger.warning(
                "extraction.failed",
                model=self._model,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            raise ExtractionError(f"Task extraction failed: {type(exc).__name__}: {exc}") from exc

        tasks = [task for task in extracted.tasks if task.title.strip()]
        logger.info("extraction.tasks_extracted", model=self._model, task_count=len(tasks))
        return tasks
