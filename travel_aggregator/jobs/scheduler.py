"""Daily maintenance scheduler running inside the application event loop."""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy.orm import Session as DBSession

from travel_aggregator.errors import CacheError
from travel_aggregator.jobs.dedup import DedupReport, EventDeduplicator
from travel_aggregator.repositories.cache import CacheRepository

logger = logging.getLogger(__name__)


def seconds_until_next_run(now: datetime, hour: int) -> float:
    """Seconds from ``now`` until the next ``hour``:00. A run due exactly now is scheduled a day later."""
    next_run = now.replace(hour=hour, minute=0, second=0, microsecond=0)
    if next_run <= now:
        next_run += timedelta(days=1)
    return (next_run - now).total_seconds()


class DailyScheduler:
    """Runs event deduplication and the expired-cache purge once a day."""

    def __init__(self, session_factory: Callable[[], DBSession], run_hour: int = 3):
        self.session_factory = session_factory
        self.run_hour = run_hour
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def run_once(self) -> DedupReport:
        """Run the daily maintenance jobs now."""
        db = self.session_factory()
        try:
            report = EventDeduplicator(db).run()
            try:
                CacheRepository(db).clear_expired()
            except CacheError as e:
                logger.error(f"Expired cache purge failed: {e.message}")
            return report
        finally:
            db.close()

    async def _loop(self) -> None:
        while True:
            delay = seconds_until_next_run(datetime.utcnow(), self.run_hour)
            logger.info(f"Next event deduplication in {delay / 3600:.1f} hours")
            await asyncio.sleep(delay)

            logger.info("Running scheduled event deduplication")
            try:
                report = self.run_once()
                logger.info(f"Scheduled deduplication removed {report.deleted_count} events")
            except Exception as e:
                # Keep the schedule alive; the next run retries
                logger.error(f"Scheduled deduplication failed: {type(e).__name__}: {e}")

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop())
        logger.info(f"Daily scheduler started (runs at {self.run_hour:02d}:00 UTC)")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Daily scheduler stopped")
