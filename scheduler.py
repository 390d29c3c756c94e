import logging
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from archive import ArchiveSweep
from config import get_settings
from database import session_scope


logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class SchedulerManager:
    def __init__(self, sweep: Optional[ArchiveSweep] = None) -> None:
        settings = get_settings()
        self.scheduler = BackgroundScheduler(timezone=settings.timezone)
        self.sweep = sweep or ArchiveSweep(session_scope)

    def _run_job(self, source: str = "manual") -> None:
        self.sweep.run(source)

    def start(self) -> None:
        trigger = CronTrigger(day=1, hour=2, minute=0, timezone=self.scheduler.timezone)
        self.scheduler.add_job(
            self._run_job,
            trigger,
            args=["monthly_02:00"],
            id="archive_monthly",
            replace_existing=True,
            misfire_grace_time=3600,
            max_instances=1,
        )

        self.scheduler.start()
        logger.info("Scheduler started with monthly archive sweep on day 1 at 02:00")

    def stop(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")
