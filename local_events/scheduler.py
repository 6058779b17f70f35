from __future__ import annotations

import asyncio
from datetime import datetime, timedelta

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from local_events import db
from local_events.collector import EventCollector
from local_events.config import settings
from local_events.dates import CITY_TZ
from local_events.errors import CollectionInProgressError
from local_events.log import get_logger
from local_events.models import CycleSummary, EventSource, SourceStatus
from local_events.notify.alerts import send_alert, send_source_alert

logger = get_logger("scheduler")


class CollectionScheduler:
    """Continuous loop over sources that are due, one at a time.

    A source is due when it is active and was never scraped or was last
    scraped more than ``staleness_hours`` ago.
    """

    def __init__(
        self,
        collector: EventCollector | None = None,
        *,
        inter_source_delay: float | None = None,
        run_once_delay: float | None = None,
        cycle_interval: float | None = None,
        error_backoff: float | None = None,
    ) -> None:
        self.collector = collector or EventCollector()
        self.inter_source_delay = (
            settings.inter_source_delay_seconds if inter_source_delay is None else inter_source_delay
        )
        self.run_once_delay = (
            settings.run_once_delay_seconds if run_once_delay is None else run_once_delay
        )
        self.cycle_interval = (
            settings.cycle_interval_seconds if cycle_interval is None else cycle_interval
        )
        self.error_backoff = (
            settings.error_backoff_seconds if error_backoff is None else error_backoff
        )
        self._running = False
        self._wake = asyncio.Event()

    @property
    def is_running(self) -> bool:
        return self._running

    def get_due_sources(self) -> list[EventSource]:
        stale_before = datetime.now(CITY_TZ) - timedelta(hours=settings.staleness_hours)
        return db.get_sources_due_for_scraping(stale_before, limit=settings.batch_size)

    async def start(self) -> None:
        """Run cycles until stop(). A second call while running is a no-op."""
        if self._running:
            logger.warning("collection_loop_already_running")
            return
        self._running = True
        self._wake.clear()
        logger.info("collection_loop_started")

        while self._running:
            try:
                await self._run_cycle(self.inter_source_delay, stop_when_halted=True)
                await self._sleep(self.cycle_interval)
            except Exception as e:
                logger.error("collection_loop_failed", error=str(e))
                await send_alert("scheduler", f"Collection loop failed: {e}")
                await self._sleep(self.error_backoff)

        logger.info("collection_loop_stopped")

    def stop(self) -> None:
        """Halt the loop; the attempt in flight finishes, no new one starts."""
        if not self._running:
            return
        self._running = False
        self._wake.set()
        logger.info("collection_loop_stopping")

    async def run_once(self) -> CycleSummary:
        """One pass over due sources, independent of the loop. Query errors propagate."""
        logger.info("run_once_start")
        summary = await self._run_cycle(self.run_once_delay, stop_when_halted=False)
        logger.info("run_once_done", **summary.model_dump())
        return summary

    async def _run_cycle(self, delay: float, *, stop_when_halted: bool) -> CycleSummary:
        sources = self.get_due_sources()
        summary = CycleSummary(sources=len(sources))
        if not sources:
            logger.debug("no_sources_due")
            return summary

        logger.info("sources_due", count=len(sources))
        for i, source in enumerate(sources):
            if stop_when_halted and not self._running:
                break
            await self._collect_one(source, summary)
            if i < len(sources) - 1:
                await self._sleep(delay)
        return summary

    async def _collect_one(self, source: EventSource, summary: CycleSummary) -> None:
        try:
            result = await self.collector.collect_from_source(source)
        except CollectionInProgressError:
            logger.warning("collection_in_progress", source=source.name)
            summary.failed += 1
            return
        except Exception as e:
            logger.error("collection_error", source=source.name, error=str(e))
            self.collector.log_collection_error(source, e)
            summary.failed += 1
            return

        if result.success:
            summary.succeeded += 1
        else:
            summary.failed += 1
        summary.events_found += len(result.events)
        summary.events_stored += result.events_stored

        if result.source_status is SourceStatus.ERROR:
            await send_source_alert(source, result)

    async def _sleep(self, seconds: float) -> None:
        """Sleep that stop() cuts short."""
        if seconds <= 0:
            await asyncio.sleep(0)
            return
        try:
            await asyncio.wait_for(self._wake.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass


async def job_purge_old_events() -> None:
    """Delete events that started more than ``purge_days`` ago (midnight)."""
    logger.info("job_purge_start")
    try:
        cutoff = datetime.now(CITY_TZ) - timedelta(days=settings.purge_days)
        count = db.delete_events_before(cutoff)
        logger.info("job_purge_done", deleted=count, cutoff=cutoff.isoformat())
    except Exception as e:
        logger.error("job_purge_failed", error=str(e))
        await send_alert("maintenance", f"Event purge failed: {e}")


def create_maintenance_scheduler() -> AsyncIOScheduler:
    """APScheduler for housekeeping jobs that run on the clock, not per source."""
    scheduler = AsyncIOScheduler(job_defaults={
        'misfire_grace_time': 300,
        'coalesce': True,
        'max_instances': 1,
    })
    scheduler.add_job(
        job_purge_old_events, "cron", hour=0, minute=0, timezone=settings.city_timezone
    )
    return scheduler
