"""Shared fakes: an in-memory event store and a scripted browser page."""
from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime

import pytest

from local_events.dates import CITY_TZ
from local_events.models import Event, EventSource, ScrapingLog

NOW = datetime(2025, 6, 1, 10, 0, tzinfo=CITY_TZ)


class FakeStore:
    """Stands in for local_events.db with the same call signatures."""

    def __init__(self, sources: list[EventSource] | None = None) -> None:
        self.sources = {s.id: s for s in sources or []}
        self.events: list[Event] = []
        self.logs: dict[str, ScrapingLog] = {}
        self.due: list[EventSource] = list(sources or [])

    # sources
    def get_sources_due_for_scraping(self, stale_before, limit):
        return self.due[:limit]

    def get_source(self, source_id):
        source = self.sources.get(source_id)
        return source.model_copy() if source else None

    def update_source_stats(
        self, source_id, *, last_scraped_at, total_attempts, successful_attempts, success_rate, status
    ):
        self.sources[source_id] = self.sources[source_id].model_copy(
            update={
                "last_scraped_at": last_scraped_at,
                "total_attempts": total_attempts,
                "successful_attempts": successful_attempts,
                "success_rate": success_rate,
                "status": status,
            }
        )

    # events
    def find_existing_event(self, title, start_datetime, *, venue_id=None, custom_location=None):
        for e in self.events:
            if (
                e.title == title
                and e.start_datetime == start_datetime
                and e.venue_id == venue_id
                and e.custom_location == custom_location
            ):
                return {"id": e.id}
        return None

    def create_event(self, event):
        stored = event.model_copy(update={"id": f"ev-{len(self.events) + 1}"})
        self.events.append(stored)
        return stored.id

    # logs
    def create_scraping_log(self, log):
        stored = log.model_copy(update={"id": f"log-{len(self.logs) + 1}"})
        self.logs[stored.id] = stored
        return stored

    def complete_scraping_log(self, log):
        self.logs[log.id] = log


class FakeResponse:
    def __init__(self, status: int = 200, status_text: str = "OK") -> None:
        self.status = status
        self.status_text = status_text

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class FakePage:
    """Enough of a Playwright page for the collector."""

    def __init__(self, html: str = "<html></html>", status: int = 200, status_text: str = "OK") -> None:
        self.html = html
        self.response = FakeResponse(status, status_text)
        self.visited: list[str] = []
        self.waits: list[int] = []

    async def goto(self, url, wait_until=None, timeout=None):
        self.visited.append(url)
        return self.response

    async def wait_for_timeout(self, ms):
        self.waits.append(ms)

    async def wait_for_selector(self, selector, timeout=None):
        return None

    async def click(self, selector, timeout=None):
        return None

    async def query_selector(self, selector):
        return None

    async def content(self):
        return self.html


def page_factory(page: FakePage):
    @asynccontextmanager
    async def factory():
        yield page

    return factory


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def source() -> EventSource:
    return EventSource(id="src-1", name="Madison Events Calendar", url="https://example.com/events")
