"""ClickUp board adapter -- creates approved tasks in a ClickUp list."""

from __future__ import annotations

import structlog

from src.orchestrator.adapters.base import BoardAdapter
from src.orchestrator.adapters.http import HttpAdapter
from src.orchestrator.state.schemas import Priority, TrackedTask

logger = structlog.get_logger(__name__)

# ClickUp priorities: 1 urgent, 2 high, 3 normal, 4 low.
CLICKUP_PRIORITY: dict[Priority, int] = {
    Priority.URGENT: 1,
    Priority.HIGH: 2,
    Priority.NORMAL: 3,
    Priority.LOW: 4,
}


class ClickUpBoardAdapter(HttpAdapter, BoardAdapter):
    """Creates tasks via ClickUp API v2 (POST /list/{list_id}/task)."""

    service_name = "clickup"

    async def create_task(self, list_ref: str, task: TrackedTask) -> str:
        body: dict = {
            "name": task.title,
            "description": task.description,
            "priority": CLICKUP_PRIORITY[task.priority],
        }
        if task.due_at:
            body["due_date"] = int(task.due_at.timestamp() * 1000)
            body["due_date_time"] = True

        response = await self._request("create_task", "POST", f"/list/{list_ref}/task", json=body)
        data = self._json("create_task", response)
        task_id = data.get("id")
        if not task_id:
            raise self._fail("create_task", "response has no task id", retryable=False)

        logger.info(
            "clickup.task_created",
            committed_task_id=task_id,
            board_draft_id=task.board_draft_id,
            list_id=list_ref,
        )
        return str(task_id)
