"""
APScheduler job that sweeps expired cache entries.

Runs CacheStore.sweep() on a fixed interval on the application's event
loop, so it shares the loop with foreground reads and writes.
"""

import logging
from datetime import datetime
from typing import Any, Optional

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED, JobExecutionEvent
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from gandalf.data.cache.cache_store import CacheStore, SweepResult

logger = logging.getLogger(__name__)

SWEEP_JOB_ID = "cache_sweep"


class CacheSweeper:
    """
    Owns the scheduler that periodically sweeps a CacheStore.

    Example:
        >>> sweeper = CacheSweeper(store, interval_seconds=300)
        >>> sweeper.start()      # inside a running event loop
        >>> # ... application runs ...
        >>> sweeper.stop()
    """

    def __init__(self, store: CacheStore, interval_seconds: int = 300):
        """
        Initialize the sweeper.

        Args:
            store: Cache to sweep
            interval_seconds: Seconds between sweeps
        """
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")

        self.store = store
        self.interval_seconds = interval_seconds

        self.scheduler = AsyncIOScheduler(
            timezone="UTC",
            job_defaults={
                "coalesce": True,  # Combine missed runs into one
                "max_instances": 1,  # Never overlap sweeps
                "misfire_grace_time": 60,
            },
        )
        self.scheduler.add_listener(self._on_job_executed, EVENT_JOB_EXECUTED)
        self.scheduler.add_listener(self._on_job_error, EVENT_JOB_ERROR)

        self._status: dict[str, Any] = {
            "last_run": None,
            "last_status": "pending",
            "last_error": None,
            "run_count": 0,
        }
        self._last_result: Optional[SweepResult] = None
        self._is_running = False

    @classmethod
    def from_settings(cls, settings, store: CacheStore) -> "CacheSweeper":
        return cls(store, interval_seconds=settings.cache.sweep_interval_seconds)

    @property
    def is_running(self) -> bool:
        return self._is_running

    def start(self) -> None:
        """Start sweeping. Must be called with a running event loop."""
        if self._is_running:
            logger.warning("Cache sweeper already running")
            return

        self.scheduler.add_job(
            self._sweep_job,
            trigger=IntervalTrigger(seconds=self.interval_seconds),
            id=SWEEP_JOB_ID,
            name="Sweep expired cache entries",
            replace_existing=True,
        )
        self.scheduler.start()
        self._is_running = True
        logger.info(f"Cache sweeper started (every {self.interval_seconds}s)")

    def stop(self) -> None:
        """Stop the scheduler without waiting for a running sweep."""
        if not self._is_running:
            return

        self.scheduler.shutdown(wait=False)
        self._is_running = False
        logger.info("Cache sweeper stopped")

    async def _sweep_job(self) -> None:
        self._last_result = await self.store.sweep()
        logger.debug(f"Sweep finished: {self._last_result}")

    async def run_now(self) -> SweepResult:
        """Sweep immediately, outside the schedule."""
        result = await self.store.sweep()
        self._last_result = result
        return result

    def _on_job_executed(self, event: JobExecutionEvent) -> None:
        """Handle successful job execution."""
        self._status["last_run"] = datetime.now()
        self._status["last_status"] = "success"
        self._status["last_error"] = None
        self._status["run_count"] += 1

    def _on_job_error(self, event: JobExecutionEvent) -> None:
        """Handle job execution error."""
        self._status["last_run"] = datetime.now()
        self._status["last_status"] = "error"
        self._status["last_error"] = str(event.exception)
        self._status["run_count"] += 1
        logger.error(f"Job {event.job_id} failed: {event.exception}")

    def get_status(self) -> dict[str, Any]:
        """Get sweeper status."""
        job = self.scheduler.get_job(SWEEP_JOB_ID) if self._is_running else None
        return {
            "running": self._is_running,
            "interval_seconds": self.interval_seconds,
            "next_run": job.next_run_time if job else None,
            "last_result": self._last_result,
            **self._status,
        }
