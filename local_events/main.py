from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from local_events.collector import EventCollector
from local_events.config import settings
from local_events.log import get_logger
from local_events.scheduler import CollectionScheduler, create_maintenance_scheduler
from local_events.scrapers.venues import list_configured_venues

logger = get_logger("main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    runner = CollectionScheduler(EventCollector())
    app.state.runner = runner
    loop_task = asyncio.create_task(runner.start())
    logger.info("collection_started", city=settings.city_name)

    maintenance = create_maintenance_scheduler()
    maintenance.start()
    logger.info("maintenance_scheduler_started")

    yield

    # Shutdown: let the attempt in flight finish
    runner.stop()
    await loop_task
    maintenance.shutdown()
    logger.info("shutdown_complete")


app = FastAPI(title="local-events", lifespan=lifespan)


@app.get("/health")
async def health():
    runner: CollectionScheduler | None = getattr(app.state, "runner", None)
    return {
        "status": "ok",
        "city": settings.city_name,
        "collecting": bool(runner and runner.is_running),
        "active_sources": sorted(runner.collector.active_sources) if runner else [],
        "configured_venues": len(list_configured_venues()),
    }


def main():
    logger.info("starting", city=settings.city_name, log_level=settings.log_level)
    uvicorn.run(
        "local_events.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
