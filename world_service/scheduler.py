"""
Tick Scheduler
Drives the periodic world ticks with APScheduler interval jobs:
- Expired world event sweep
- Market price update
- Economic index recompute
"""

from typing import Awaitable, Callable, Dict, List, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from loguru import logger
from prometheus_client import Counter

from .config import Settings, settings as default_settings

tick_runs = Counter(
    "world_tick_runs_total",
    "Scheduled tick executions",
    ["job", "outcome"]
)

EVENT_SWEEP_JOB = "world_event_sweep"
PRICE_UPDATE_JOB = "market_price_update"
ECONOMY_RECOMPUTE_JOB = "economy_recompute"


class TickScheduler:
    """
    Owns the interval jobs of one simulation

    start() and stop() are idempotent; stop() before start() is a no-op.
    """

    def __init__(
        self,
        sweep_events: Callable[[], Awaitable],
        update_prices: Callable[[], Awaitable],
        recompute_economy: Callable[[], Awaitable],
        config: Optional[Settings] = None,
    ):
        self.config = config or default_settings
        self.scheduler: Optional[AsyncIOScheduler] = None
        self._running = False
        self._ticks: Dict[str, Callable[[], Awaitable]] = {
            EVENT_SWEEP_JOB: sweep_events,
            PRICE_UPDATE_JOB: update_prices,
            ECONOMY_RECOMPUTE_JOB: recompute_economy,
        }
        self._intervals: Dict[str, int] = {
            EVENT_SWEEP_JOB: self.config.world_event_sweep_interval,
            PRICE_UPDATE_JOB: self.config.market_price_update_interval,
            ECONOMY_RECOMPUTE_JOB: self.config.economy_recompute_interval,
        }

    def start(self):
        """Schedule every tick; must be called from a running event loop"""
        if self._running:
            logger.warning("Tick scheduler already running")
            return

        # Fresh scheduler per start so a stopped simulation can be restarted
        self.scheduler = AsyncIOScheduler()
        for job_id, interval in self._intervals.items():
            self.scheduler.add_job(
                self.run_tick,
                trigger=IntervalTrigger(seconds=interval),
                args=[job_id],
                id=job_id,
                name=job_id.replace("_", " ").title(),
                replace_existing=True,
                max_instances=1,
                coalesce=True,
            )
            logger.info(f"✓ Scheduled: {job_id} every {interval}s")

        self.scheduler.start()
        self._running = True
        logger.info("Tick scheduler started")

    def stop(self):
        """Cancel all jobs"""
        if not self._running:
            return

        self.scheduler.remove_all_jobs()
        self.scheduler.shutdown(wait=False)
        self.scheduler = None
        self._running = False
        logger.info("✓ Tick scheduler stopped")

    def is_running(self) -> bool:
        return self._running

    def get_jobs(self) -> List:
        if self.scheduler is None:
            return []
        return self.scheduler.get_jobs()

    async def run_tick(self, job_id: str):
        """
        Run one tick by name

        Errors are logged and counted; a failing tick never stops the
        scheduler.
        """
        tick = self._ticks[job_id]
        try:
            logger.debug(f"🕐 Executing scheduled tick: {job_id}")
            await tick()
            tick_runs.labels(job=job_id, outcome="success").inc()
        except Exception as e:
            tick_runs.labels(job=job_id, outcome="failed").inc()
            logger.exception(f"Scheduled tick {job_id} failed: {e}")
