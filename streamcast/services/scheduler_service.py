import logging
from datetime import datetime
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from streamcast.config import settings
from streamcast.services.guide_cache import GuideCache
from streamcast.services.kiosk_queue import KioskCommandQueue


logger = logging.getLogger(__name__)

SWEEP_JOB_ID = "guide_staleness_sweep"
PURGE_JOB_ID = "kiosk_command_purge"


class GuideScheduler:
    """Scheduler for the guide staleness sweep and kiosk command expiry"""

    def __init__(self, guide_cache: GuideCache, kiosk_queue: KioskCommandQueue):
        self._guide_cache = guide_cache
        self._kiosk_queue = kiosk_queue
        self.scheduler: AsyncIOScheduler | None = None

    async def _sweep_job(self) -> None:
        """Background job that refreshes stale guides"""
        logger.info("Scheduled guide staleness sweep triggered")
        try:
            await self._guide_cache.refresh_stale()
        except Exception as e:
            logger.error(f"Exception in guide staleness sweep: {e}", exc_info=True)

    async def _purge_job(self) -> None:
        await self._kiosk_queue.purge_expired()

    @property
    def running(self) -> bool:
        return bool(self.scheduler and self.scheduler.running)

    def start(self) -> None:
        """Start the scheduler with the sweep and purge jobs"""
        if self.running:
            logger.warning("Scheduler already running")
            return

        try:
            trigger = CronTrigger.from_crontab(settings.guide_sweep_cron)
        except (ValueError, KeyError) as exc:
            logger.error("Invalid cron expression '%s': %s", settings.guide_sweep_cron, exc)
            raise

        self.scheduler = AsyncIOScheduler(timezone='UTC')
        self.scheduler.add_job(
            self._sweep_job,
            trigger=trigger,
            id=SWEEP_JOB_ID,
            max_instances=1,
            coalesce=True,
            misfire_grace_time=settings.guide_sweep_misfire_grace_sec
        )
        self.scheduler.add_job(
            self._purge_job,
            trigger=IntervalTrigger(seconds=settings.kiosk_purge_interval_sec),
            id=PURGE_JOB_ID,
            max_instances=1,
            coalesce=True,
        )

        self.scheduler.start()
        next_time = self.get_next_run_time()
        logger.info(
            "Scheduler started. Next guide sweep: %s",
            next_time.isoformat() if next_time else "unknown"
        )

    def shutdown(self) -> None:
        """Shutdown the scheduler"""
        if self.running:
            self.scheduler.shutdown()
            logger.info("Scheduler stopped")
        self.scheduler = None

    def get_next_run_time(self) -> datetime | None:
        """Get next scheduled sweep time"""
        if not self.scheduler:
            return None
        job = self.scheduler.get_job(SWEEP_JOB_ID)
        return job.next_run_time if job else None
