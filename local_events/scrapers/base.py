from __future__ import annotations

import abc
from datetime import datetime

from bs4 import BeautifulSoup, Tag
from pydantic import BaseModel
from soupsieve import SelectorSyntaxError

from local_events.log import get_logger
from local_events.models import CandidateEvent, ParsedDate, SourceType
from local_events.normalize import categorize_event, clean_text, extract_tags

logger = get_logger("extractor")

MIN_TITLE_LENGTH = 4


class ExtractionContext(BaseModel):
    """What a strategy knows about the page it is reading."""

    page_url: str
    extracted_at: datetime
    source_type: SourceType = SourceType.OTHER
    venue_name: str | None = None
    default_category: str | None = None


class ExtractionStrategy(abc.ABC):
    """One way of pulling candidate events out of a rendered page."""

    name: str = "base"

    @abc.abstractmethod
    def extract(self, soup: BeautifulSoup, context: ExtractionContext) -> list[CandidateEvent]:
        ...


def select_text(el: Tag, selector: str | None) -> str | None:
    if not selector:
        return None
    try:
        found = el.select_one(selector)
    except SelectorSyntaxError:
        logger.warning("bad_selector", selector=selector)
        return None
    return clean_text(found.get_text(" ", strip=True)) if found else None


def select_attr(el: Tag, selector: str | None, attr: str) -> str | None:
    if not selector:
        return None
    try:
        found = el.select_one(selector)
    except SelectorSyntaxError:
        logger.warning("bad_selector", selector=selector)
        return None
    if not found:
        return None
    value = found.get(attr)
    if isinstance(value, list):
        value = " ".join(value)
    return clean_text(value)


def build_candidate(
    context: ExtractionContext,
    *,
    title: str,
    parsed: ParsedDate | None,
    description: str | None = None,
    end_datetime: datetime | None = None,
    location: str | None = None,
    price: str | None = None,
    image_url: str | None = None,
    source_url: str | None = None,
) -> CandidateEvent:
    title = clean_text(title) or ""
    description = clean_text(description)
    return CandidateEvent(
        title=title,
        description=description,
        start_datetime=parsed.timestamp if parsed else None,
        end_datetime=end_datetime,
        location=clean_text(location),
        category=categorize_event(
            title, description, context.source_type, context.default_category
        ),
        price=price,
        image_url=image_url,
        source_url=source_url or context.page_url,
        tags=extract_tags(title, description),
        date_confidence=parsed.confidence if parsed else None,
    )


def is_valid_candidate(event: CandidateEvent, now: datetime) -> bool:
    """Title of 4+ chars and a start strictly after ``now``."""
    return bool(
        event.title
        and len(event.title.strip()) >= MIN_TITLE_LENGTH
        and event.start_datetime is not None
        and event.start_datetime > now
    )


def dedupe_candidates(events: list[CandidateEvent]) -> list[CandidateEvent]:
    """Drop repeats of (title, start, location), keeping the first seen."""
    seen: set[tuple[str, str, str]] = set()
    unique = []
    for e in events:
        key = e.dedup_key()
        if key in seen:
            continue
        seen.add(key)
        unique.append(e)
    return unique
