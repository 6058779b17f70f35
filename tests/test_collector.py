"""Collector: one attempt per source, failures recorded, storage idempotent."""
from __future__ import annotations

import asyncio
import json
from contextlib import asynccontextmanager
from unittest.mock import patch

import pytest

from conftest import NOW, FakePage, FakeStore, page_factory
from local_events.collector import (
    EventCollector,
    compute_source_status,
    compute_success_rate,
)
from local_events.errors import CollectionInProgressError
from local_events.models import EventSource, LogStatus, SourceStatus, Venue

JAZZ = {"@type": "Event", "name": "Jazz Night", "startDate": "2025-07-01T20:00:00-05:00"}


def _jsonld_page(*nodes) -> str:
    return (
        '<html><head><script type="application/ld+json">'
        f"{json.dumps(list(nodes))}</script></head><body></body></html>"
    )


def _collector(page: FakePage) -> EventCollector:
    return EventCollector(page_factory=page_factory(page), clock=lambda: NOW)


@pytest.mark.asyncio
async def test_http_error_is_recorded_as_failure(source):
    store = FakeStore([source])
    page = FakePage(status=500, status_text="Internal Server Error")
    with patch("local_events.collector.db", store):
        result = await _collector(page).collect_from_source(source)

    assert result.success is False
    assert result.error == "HTTP 500: Internal Server Error"
    assert result.status_code == 500
    assert result.source_status is SourceStatus.ERROR
    assert result.success_rate == 0.0

    (log,) = store.logs.values()
    assert log.status is LogStatus.FAILED
    assert log.error == "HTTP 500: Internal Server Error"
    assert log.source_id == source.id
    assert log.started_at == NOW
    assert log.events_found == 0

    updated = store.sources[source.id]
    assert updated.total_attempts == 1
    assert updated.successful_attempts == 0
    assert updated.success_rate == 0.0
    assert updated.status is SourceStatus.ERROR
    assert updated.last_scraped_at == NOW


@pytest.mark.asyncio
async def test_duplicate_jsonld_stores_one_event(source):
    store = FakeStore([source])
    page = FakePage(_jsonld_page(JAZZ, dict(JAZZ)))
    with patch("local_events.collector.db", store):
        result = await _collector(page).collect_from_source(source)

    assert result.success is True
    assert len(result.events) == 1
    assert result.events_stored == 1
    assert len(store.events) == 1
    stored = store.events[0]
    assert stored.title == "Jazz Night"
    assert stored.source_id == source.id
    assert stored.venue_id is None
    # no venue and no location in the markup: falls back to the source name
    assert stored.custom_location == source.name

    (log,) = store.logs.values()
    assert log.status is LogStatus.COMPLETED
    assert log.events_found == 1
    assert log.metadata["status_code"] == 200
    assert len(log.metadata["content_hash"]) == 64


@pytest.mark.asyncio
async def test_second_run_stores_nothing_new(source):
    store = FakeStore([source])
    page = FakePage(_jsonld_page(JAZZ))
    with patch("local_events.collector.db", store):
        collector = _collector(page)
        first = await collector.collect_from_source(source)
        second = await collector.collect_from_source(source)

    assert first.events_stored == 1
    assert second.events_stored == 0
    assert second.duplicates_skipped == 1
    assert len(store.events) == 1
    assert store.sources[source.id].total_attempts == 2
    assert store.sources[source.id].success_rate == 100.0


@pytest.mark.asyncio
async def test_venue_source_stores_venue_id():
    venue_source = EventSource(
        id="src-2",
        name="Majestic Theatre",
        url="https://majesticmadison.com/events",
        venue=Venue(id="venue-9", name="Majestic Theatre", location="115 King St"),
    )
    store = FakeStore([venue_source])
    html = """
    <div class="event-listing">
      <h3 class="event-title">Big Band Jazz Night</h3>
      <span class="event-date">July 20, 2025 8:00 PM</span>
    </div>
    """
    with patch("local_events.collector.db", store):
        result = await _collector(FakePage(html)).collect_from_source(venue_source)

    # no stored rules: the registry recipe for the venue is used
    assert result.events_stored == 1
    assert store.events[0].venue_id == "venue-9"
    assert store.events[0].custom_location is None
    assert store.events[0].category == "music"


@pytest.mark.asyncio
async def test_registry_wait_time_applied():
    sylvee = EventSource(id="src-3", name="The Sylvee", url="https://thesylvee.com/events/")
    store = FakeStore([sylvee])
    page = FakePage("<html></html>")
    with patch("local_events.collector.db", store):
        await _collector(page).collect_from_source(sylvee)
    assert page.waits == [5000]


@pytest.mark.asyncio
async def test_concurrent_attempt_rejected(source):
    store = FakeStore([source])
    gate = asyncio.Event()
    page = FakePage(_jsonld_page(JAZZ))

    @asynccontextmanager
    async def slow_factory():
        await gate.wait()
        yield page

    collector = EventCollector(page_factory=slow_factory, clock=lambda: NOW)
    with patch("local_events.collector.db", store):
        first = asyncio.create_task(collector.collect_from_source(source))
        await asyncio.sleep(0)
        assert source.id in collector.active_sources
        with pytest.raises(CollectionInProgressError):
            await collector.collect_from_source(source)
        gate.set()
        result = await first

    assert result.success is True
    assert collector.active_sources == frozenset()
    # the rejected call left no trace
    assert len(store.logs) == 1
    assert store.sources[source.id].total_attempts == 1


@pytest.mark.asyncio
async def test_cancelled_attempt_still_completes_log(source):
    store = FakeStore([source])
    gate = asyncio.Event()

    @asynccontextmanager
    async def hanging_factory():
        await gate.wait()
        yield FakePage()

    collector = EventCollector(page_factory=hanging_factory, clock=lambda: NOW)
    with patch("local_events.collector.db", store):
        task = asyncio.create_task(collector.collect_from_source(source))
        await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    (log,) = store.logs.values()
    assert log.status is LogStatus.FAILED
    assert log.error == "Collection cancelled"
    assert log.completed_at == NOW
    assert store.sources[source.id].total_attempts == 1
    assert store.sources[source.id].successful_attempts == 0
    assert collector.active_sources == frozenset()


@pytest.mark.asyncio
async def test_store_failure_does_not_fail_attempt(source):
    store = FakeStore([source])

    def broken_create(event):
        raise RuntimeError("insert failed")

    store.create_event = broken_create
    with patch("local_events.collector.db", store):
        result = await _collector(FakePage(_jsonld_page(JAZZ))).collect_from_source(source)

    assert result.success is True
    assert result.events_stored == 0
    assert store.sources[source.id].successful_attempts == 1


def test_log_collection_error_counts_failed_attempt(source):
    store = FakeStore([source])
    with patch("local_events.collector.db", store):
        _collector(FakePage()).log_collection_error(source, RuntimeError("boom"))

    (log,) = store.logs.values()
    assert log.status is LogStatus.FAILED
    assert log.error == "boom"
    assert store.sources[source.id].total_attempts == 1


def test_success_rate_bounds():
    assert compute_success_rate(0, 0) == 0.0
    assert compute_success_rate(3, 4) == 75.0
    assert compute_success_rate(5, 4) == 100.0


@pytest.mark.parametrize(
    ("success", "rate", "expected"),
    [
        (True, 100.0, SourceStatus.ACTIVE),
        (True, 75.0, SourceStatus.ACTIVE),
        (True, 60.0, SourceStatus.WARNING),
        (False, 90.0, SourceStatus.WARNING),
        (True, 49.9, SourceStatus.ERROR),
        (False, 0.0, SourceStatus.ERROR),
    ],
)
def test_source_status(success, rate, expected):
    assert compute_source_status(success, rate, 50.0, 75.0) is expected
