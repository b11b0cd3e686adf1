from streamcast.services.kiosk_queue import KioskCommandQueue
from streamcast.services.scheduler_service import PURGE_JOB_ID, SWEEP_JOB_ID, GuideScheduler


class ExplodingCache:
    def __init__(self):
        self.calls = 0

    async def refresh_stale(self):
        self.calls += 1
        raise RuntimeError("database locked")


class TestGuideScheduler:
    async def test_start_registers_jobs_and_shutdown_stops(self):
        scheduler = GuideScheduler(ExplodingCache(), KioskCommandQueue(ttl_seconds=60))

        scheduler.start()
        try:
            assert scheduler.running
            assert scheduler.scheduler.get_job(SWEEP_JOB_ID) is not None
            assert scheduler.scheduler.get_job(PURGE_JOB_ID) is not None
            assert scheduler.get_next_run_time() is not None
        finally:
            scheduler.shutdown()

        assert not scheduler.running
        assert scheduler.get_next_run_time() is None

    async def test_sweep_job_logs_instead_of_raising(self):
        cache = ExplodingCache()
        scheduler = GuideScheduler(cache, KioskCommandQueue(ttl_seconds=60))

        await scheduler._sweep_job()

        assert cache.calls == 1

    async def test_sweep_job_refreshes_stale_guides(self, services, provider):
        await services.scheduler._sweep_job()

        assert services.guide_cache.get("u1").cached is True
        assert provider.calls["get_live_streams"] == 1
