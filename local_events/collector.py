from __future__ import annotations

import asyncio
import hashlib
import time as time_mod
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from datetime import datetime

from playwright.async_api import Page

from local_events import db
from local_events.config import settings
from local_events.dates import CITY_TZ
from local_events.errors import CollectionInProgressError
from local_events.log import get_logger, source_context
from local_events.models import (
    CandidateEvent,
    CollectionResult,
    Event,
    EventSource,
    IntelligentExtraction,
    LogStatus,
    ScrapingLog,
    SelectorExtraction,
    SourceStatus,
    SpecialHandling,
    VenueScrapingConfig,
)
from local_events.normalize import normalize_url
from local_events.scrapers import venues
from local_events.scrapers.base import ExtractionContext
from local_events.scrapers.browser import apply_special_handling, navigate, open_page
from local_events.scrapers.extractor import ContentExtractor
from local_events.scrapers.selectors import FALLBACK_SELECTORS

logger = get_logger("collector")

PageFactory = Callable[[], AbstractAsyncContextManager[Page]]


def compute_success_rate(successful: int, total: int) -> float:
    """Percentage of successful attempts, clamped to 0..100."""
    if total <= 0:
        return 0.0
    return min(100.0, max(0.0, successful / total * 100.0))


def compute_source_status(
    success: bool,
    success_rate: float,
    error_threshold: float | None = None,
    warning_threshold: float | None = None,
) -> SourceStatus:
    """Health after an attempt: a low rate is an error, a failed attempt a warning."""
    if error_threshold is None:
        error_threshold = settings.source_error_threshold
    if warning_threshold is None:
        warning_threshold = settings.source_warning_threshold
    if success_rate < error_threshold:
        return SourceStatus.ERROR
    if not success or success_rate < warning_threshold:
        return SourceStatus.WARNING
    return SourceStatus.ACTIVE


def content_hash(html: str) -> str:
    return hashlib.sha256(html.encode("utf-8")).hexdigest()


class EventCollector:
    """Runs one collection attempt per source: render, extract, store, account.

    At most one attempt per source id runs at a time within this collector.
    """

    def __init__(
        self,
        page_factory: PageFactory = open_page,
        extractor: ContentExtractor | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._open_page = page_factory
        self.extractor = extractor or ContentExtractor()
        self._now = clock or (lambda: datetime.now(CITY_TZ))
        self._active: set[str] = set()

    @property
    def active_sources(self) -> frozenset[str]:
        return frozenset(self._active)

    async def collect_from_source(self, source: EventSource) -> CollectionResult:
        """Collect events from one source.

        Navigation and extraction failures are reported in the result, never
        raised. Raises CollectionInProgressError if this source is already
        being collected.
        """
        if source.id in self._active:
            raise CollectionInProgressError(source.id)
        self._active.add(source.id)
        try:
            with source_context(source.id, source.name):
                return await self._run_attempt(source)
        finally:
            self._active.discard(source.id)

    async def _run_attempt(self, source: EventSource) -> CollectionResult:
        start = time_mod.monotonic()
        logger.info("collection_start", source=source.name, url=source.url)
        log = self._start_log(source)
        # recorded as-is if the attempt is cancelled mid-scrape
        result = CollectionResult(source_id=source.id, success=False, error="Collection cancelled")

        try:
            result = await self._scrape(source)
        except asyncio.CancelledError:
            logger.warning("collection_cancelled", source=source.name)
            raise
        except Exception as e:
            result = CollectionResult(
                source_id=source.id,
                success=False,
                error=str(e) or e.__class__.__name__,
                status_code=getattr(e, "status_code", None),
            )
            logger.error("collection_failed", source=source.name, error=result.error)
        else:
            if result.events:
                result.events_stored, result.duplicates_skipped = self._store_events(
                    result.events, source
                )
        finally:
            result.duration_seconds = time_mod.monotonic() - start
            self._update_source_stats(source, result)
            self._complete_log(log, result)

        logger.info(
            "collection_complete",
            source=source.name,
            success=result.success,
            found=len(result.events),
            stored=result.events_stored,
            duplicates=result.duplicates_skipped,
            duration=round(result.duration_seconds, 2),
        )
        return result

    # --- Fetch + extract ---

    def _resolve_extraction(
        self, source: EventSource, recipe: VenueScrapingConfig | None
    ) -> SelectorExtraction | IntelligentExtraction:
        if isinstance(source.extraction, SelectorExtraction):
            return source.extraction
        if recipe is not None:
            return SelectorExtraction(selectors=recipe.selectors)
        return source.extraction

    async def _load_page(
        self,
        url: str,
        handling: SpecialHandling | None,
        container: str | None,
        wait_ms: int,
    ) -> tuple[str, str, int]:
        """Render ``url``; returns (extraction html, full page html, status)."""
        async with self._open_page() as page:
            response = await navigate(page, url)
            target = await apply_special_handling(page, handling, container)
            await page.wait_for_timeout(wait_ms)
            html = await target.content()
            page_html = html if target is page else await page.content()
            return html, page_html, response.status

    async def _scrape(self, source: EventSource) -> CollectionResult:
        recipe = venues.get_config(source.name)
        if recipe is None and source.venue is not None:
            recipe = venues.get_config(source.venue.name)

        extraction = self._resolve_extraction(source, recipe)
        wait_ms = (
            source.scraping.wait_time_ms
            or (recipe.wait_time_ms if recipe else None)
            or settings.default_wait_time_ms
        )
        handling = source.scraping.special_handling or (
            recipe.special_handling if recipe else None
        )
        container = (
            extraction.selectors.container
            if isinstance(extraction, SelectorExtraction)
            else None
        ) or FALLBACK_SELECTORS.container

        if source.scraping.method != "playwright":
            logger.debug("scrape_method_overridden", source=source.name, method=source.scraping.method)

        html, page_html, status = await self._load_page(source.url, handling, container, wait_ms)

        venue_name = source.venue.name if source.venue else (recipe.venue if recipe else None)
        context = ExtractionContext(
            page_url=normalize_url(source.url) or source.url,
            extracted_at=self._now(),
            source_type=source.source_type,
            venue_name=venue_name,
            default_category=recipe.category if recipe else None,
        )
        events = self.extractor.extract_html(html, extraction, context)
        return CollectionResult(
            source_id=source.id,
            success=True,
            events=events,
            content_hash=content_hash(page_html),
            status_code=status,
        )

    async def scrape_venue(self, recipe: VenueScrapingConfig) -> list[CandidateEvent]:
        """Dry run of a venue recipe: extract without storing or accounting."""
        extraction = SelectorExtraction(selectors=recipe.selectors)
        html, _, _ = await self._load_page(
            recipe.url,
            recipe.special_handling,
            recipe.selectors.container or FALLBACK_SELECTORS.container,
            recipe.wait_time_ms or settings.default_wait_time_ms,
        )
        context = ExtractionContext(
            page_url=recipe.url,
            extracted_at=self._now(),
            venue_name=recipe.venue,
            default_category=recipe.category,
        )
        return self.extractor.extract_html(html, extraction, context)

    # --- Persistence ---

    def _store_events(
        self, events: list[CandidateEvent], source: EventSource
    ) -> tuple[int, int]:
        """Insert events not already stored. Returns (stored, duplicates)."""
        venue_id = source.venue.id if source.venue else None
        stored = 0
        skipped = 0
        for candidate in events:
            title = candidate.title.strip()
            custom_location = None if venue_id else (candidate.location or source.name)
            try:
                existing = db.find_existing_event(
                    title,
                    candidate.start_datetime,
                    venue_id=venue_id,
                    custom_location=custom_location,
                )
                if existing:
                    skipped += 1
                    logger.debug("duplicate_skipped", source=source.name, title=title)
                    continue
                db.create_event(
                    Event(
                        title=title,
                        description=candidate.description,
                        start_datetime=candidate.start_datetime,
                        end_datetime=candidate.end_datetime,
                        category=candidate.category,
                        price=candidate.price,
                        image_url=candidate.image_url,
                        source_url=candidate.source_url,
                        tags=",".join(candidate.tags),
                        venue_id=venue_id,
                        custom_location=custom_location,
                        source_id=source.id,
                    )
                )
                stored += 1
            except Exception as e:
                logger.error("event_store_failed", source=source.name, title=title, error=str(e))
        return stored, skipped

    def _update_source_stats(self, source: EventSource, result: CollectionResult) -> None:
        """Re-read counters, bump them, write back health and copy it onto ``result``."""
        try:
            current = db.get_source(source.id)
            if current is None:
                logger.warning("source_missing_for_stats", source_id=source.id)
                return
            total = current.total_attempts + 1
            successful = current.successful_attempts + (1 if result.success else 0)
            rate = compute_success_rate(successful, total)
            status = compute_source_status(result.success, rate)
            db.update_source_stats(
                source.id,
                last_scraped_at=self._now(),
                total_attempts=total,
                successful_attempts=successful,
                success_rate=rate,
                status=status,
            )
            result.source_status = status
            result.success_rate = rate
        except Exception as e:
            logger.error("source_stats_update_failed", source=source.name, error=str(e))

    def _start_log(self, source: EventSource) -> ScrapingLog | None:
        try:
            return db.create_scraping_log(ScrapingLog(source_id=source.id, started_at=self._now()))
        except Exception as e:
            logger.error("scraping_log_create_failed", source=source.name, error=str(e))
            return None

    def _complete_log(self, log: ScrapingLog | None, result: CollectionResult) -> None:
        if log is None:
            return
        done = log.model_copy(
            update={
                "status": LogStatus.COMPLETED if result.success else LogStatus.FAILED,
                "completed_at": self._now(),
                "events_found": len(result.events),
                "error": result.error,
                "metadata": result.log_metadata(),
            }
        )
        try:
            db.complete_scraping_log(done)
        except Exception as e:
            logger.error("scraping_log_update_failed", log_id=log.id, error=str(e))

    def log_collection_error(self, source: EventSource, error: BaseException) -> None:
        """Record a failure that escaped collect_from_source as a failed attempt."""
        result = CollectionResult(source_id=source.id, success=False, error=str(error))
        log = self._start_log(source)
        self._update_source_stats(source, result)
        self._complete_log(log, result)
