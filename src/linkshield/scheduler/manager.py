"""APScheduler job keeping the blocklist index fresh."""

from datetime import datetime
from typing import Optional

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED
from apscheduler.executors.asyncio import AsyncIOExecutor
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from ..config.settings import SchedulerSettings
from ..scanner.blocklist import BlocklistAggregator
from ..utils.async_utils import AsyncContextManager
from ..utils.logging import get_structured_logger
from .types import RefreshRun, SchedulerError

logger = get_structured_logger(__name__)

REFRESH_JOB_ID = "blocklist_refresh"


class BlocklistRefreshScheduler(AsyncContextManager):
    """Runs ``ensure_ready`` on the aggregator on a cron schedule."""

    def __init__(self, blocklist: BlocklistAggregator, settings: Optional[SchedulerSettings] = None):
        self.blocklist = blocklist
        self.settings = settings or SchedulerSettings()
        self.scheduler: Optional[AsyncIOScheduler] = None
        self.is_running = False
        self.history: list[RefreshRun] = []

    async def setup(self) -> None:
        """Start the scheduler and register the refresh job."""
        if self.is_running:
            return
        if not self.settings.enabled:
            logger.info("Blocklist refresh scheduling disabled")
            return

        try:
            trigger = CronTrigger.from_crontab(self.settings.refresh_cron)
            self.scheduler = AsyncIOScheduler(
                executors={"default": AsyncIOExecutor()},
                job_defaults={"coalesce": True, "max_instances": 1, "misfire_grace_time": 3600},
            )
            self.scheduler.add_listener(self._on_job_event, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR)
            self.scheduler.add_job(
                self.run_refresh,
                trigger=trigger,
                id=REFRESH_JOB_ID,
                name="Daily blocklist refresh",
                replace_existing=True,
            )
            self.scheduler.start()
            self.is_running = True
        except Exception as e:
            logger.error("Failed to start scheduler", error=str(e))
            raise SchedulerError(f"Scheduler startup failed: {str(e)}") from e

        logger.info("Blocklist refresh scheduled", cron=self.settings.refresh_cron)

    async def cleanup(self) -> None:
        if self.scheduler and self.is_running:
            self.scheduler.shutdown(wait=False)
            logger.info("Blocklist refresh scheduler stopped")
        self.scheduler = None
        self.is_running = False

    def next_run_time(self) -> Optional[datetime]:
        if not self.scheduler:
            return None
        job = self.scheduler.get_job(REFRESH_JOB_ID)
        return job.next_run_time if job else None

    async def run_refresh(self) -> bool:
        """Refresh the blocklist if it is stale; used by the scheduled job."""
        run = RefreshRun(started_at=datetime.utcnow())
        self.history.append(run)
        del self.history[:-20]

        try:
            run.success = await self.blocklist.ensure_ready()
        except Exception as e:
            run.success = False
            run.error_message = str(e)
            logger.exception("Scheduled blocklist refresh failed", error=str(e))
        finally:
            run.completed_at = datetime.utcnow()

        logger.info("Scheduled blocklist refresh finished", success=run.success)
        return bool(run.success)

    def _on_job_event(self, event) -> None:
        if event.exception:
            logger.error("Scheduler job error", job_id=event.job_id, error=str(event.exception))
        else:
            logger.debug("Scheduler job executed", job_id=event.job_id)
