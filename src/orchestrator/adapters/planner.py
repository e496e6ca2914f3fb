"""Microsoft Planner drafts via the Graph API.

Every candidate task is drafted in Planner before it is posted for approval;
the Planner task id becomes the key of the task inside its approval session.
Planner keeps the description on a separate details resource that needs an
ETag, so it is written in a second, best-effort call.
"""

from __future__ import annotations

import structlog

from src.orchestrator.adapters.base import PlanningAdapter
from src.orchestrator.adapters.http import HttpAdapter
from src.orchestrator.errors import AdapterError
from src.orchestrator.state.schemas import CandidateTask, Priority

logger = structlog.get_logger(__name__)

# Planner stores priority as 0-10; these are the values its UI uses.
PLANNER_PRIORITY: dict[Priority, int] = {
    Priority.URGENT: 1,
    Priority.HIGH: 3,
    Priority.NORMAL: 5,
    Priority.LOW: 9,
}


class PlannerAdapter(HttpAdapter, PlanningAdapter):
    """Creates draft tasks in a Planner plan.

    Args:
        client: httpx client with base_url set to the Graph API root.
        max_attempts: Attempts per call, including the first.
        bucket_id: Optional bucket to file drafts under.
    """

    service_name = "planner"

    def __init__(self, client, max_attempts: int = 3, bucket_id: str = "") -> None:
        super().__init__(client, max_attempts=max_attempts)
        self._bucket_id = bucket_id

    async def create_draft_task(self, plan_ref: str, candidate: CandidateTask) -> str:
        body: dict = {
            "planId": plan_ref,
            "title": candidate.title,
            "priority": PLANNER_PRIORITY[candidate.priority],
        }
        if self._bucket_id:
            body["bucketId"] = self._bucket_id
        if candidate.due_at:
            body["dueDateTime"] = candidate.due_at.isoformat()

        response = await self._request("create_draft_task", "POST", "/planner/tasks", json=body)
        data = self._json("create_draft_task", response)
        draft_id = data.get("id")
        if not draft_id:
            raise self._fail("create_draft_task", "response has no task id", retryable=False)

        logger.info("planner.draft_created", board_draft_id=draft_id, plan_id=plan_ref)

        if candidate.description:
            try:
                await self._set_description(str(draft_id), candidate.description)
            except AdapterError:
                logger.warning(
                    "planner.description_skipped",
                    board_draft_id=draft_id,
                    exc_info=True,
                )

        return str(draft_id)

    async def _set_description(self, task_id: str, description: str) -> None:
        """Write the task description onto the Planner details resource."""
        path = f"/planner/tasks/{task_id}/details"
        response = await self._request("get_task_details", "GET", path)
        etag = self._json("get_task_details", response).get("@odata.etag", "")

        await self._request(
            "update_task_details",
            "PATCH",
            path,
            json={"description": description},
            headers={"If-Match": etag},
        )
