"""Approval check scheduler.

Provides a lightweight APScheduler wrapper that runs the approval pass on a
cron schedule (every 30 minutes by default), independently of the ingress
path.

Exports:
    ApprovalScheduler: Async scheduler for periodic approval passes.
"""

from __future__ import annotations

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
import structlog

from src.orchestrator.approvals.workflow import MeetingWorkflow
from src.orchestrator.errors import OrchestratorError

logger = structlog.get_logger(__name__)


class ApprovalScheduler:
    """Runs MeetingWorkflow.check_approvals on a crontab schedule.

    A pass that is still running when the next one is due is not started
    twice (max_instances=1), and missed runs collapse into one.

    Args:
        workflow: Workflow whose approval path is run.
        cron: Five-field crontab expression.
        all_open: Check every incomplete session instead of only the latest.
    """

    def __init__(
        self,
        workflow: MeetingWorkflow,
        cron: str = "*/30 * * * *",
        all_open: bool = True,
    ) -> None:
        self._workflow = workflow
        self._cron = cron
        self._all_open = all_open
        self._scheduler: AsyncIOScheduler | None = None
        self._started = False

    @property
    def running(self) -> bool:
        return self._started

    def start(self) -> None:
        """Start the scheduler on the running event loop.

        Raises:
            ValueError: If the cron expression is invalid.
        """
        if self._started:
            return

        trigger = CronTrigger.from_crontab(self._cron)
        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            self.run_once,
            trigger=trigger,
            id="check_approvals",
            name="Check approval reactions and commit approved tasks",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=300,
        )
        self._scheduler.start()
        self._started = True
        logger.info("scheduler.started", job="check_approvals", schedule=self._cron)

    async def run_once(self) -> None:
        """One scheduled approval pass. Errors are logged, never raised."""
        logger.info("scheduler.pass_triggered", all_open=self._all_open)
        try:
            results = await self._workflow.check_approvals(all_open=self._all_open)
        except OrchestratorError as exc:
            logger.error(
                "scheduler.pass_failed",
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return

        logger.info(
            "scheduler.pass_complete",
            sessions=len(results),
            committed=sum(len(r.committed) for r in results),
        )

    def stop(self) -> None:
        """Shut down the scheduler."""
        if self._scheduler and self._started:
            self._scheduler.shutdown(wait=False)
            self._started = False
            logger.info("scheduler.stopped")


__all__ = ["ApprovalScheduler"]
