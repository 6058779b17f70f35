from __future__ import annotations

import re
from itertools import islice

from bs4 import BeautifulSoup, Tag

from local_events.dates import get_best_date
from local_events.log import get_logger
from local_events.models import CandidateEvent
from local_events.normalize import clean_price, clean_text, is_generic_content, resolve_url
from local_events.scrapers.base import ExtractionContext, ExtractionStrategy, build_candidate

logger = get_logger("patterns")

_EVENT_ITEMTYPE = re.compile(r"schema\.org/\w*Event\b")
_HEADINGS = ["h1", "h2", "h3", "h4"]
_LOCATION_SELECTOR = ".location, .venue, .address"

# How far up from a <time> tag to look for the event's heading.
_MAX_ANCESTORS = 3


def _prop(scope: Tag, name: str) -> Tag | None:
    """First itemprop ``name`` that belongs to ``scope`` itself, not a nested item."""
    for found in scope.select(f'[itemprop~="{name}"]'):
        if found.find_parent(attrs={"itemtype": True}) is scope:
            return found
    return None


def _prop_value(el: Tag | None, *attrs: str) -> str | None:
    if el is None:
        return None
    for attr in attrs or ("content",):
        if el.get(attr):
            return clean_text(el[attr])
    return clean_text(el.get_text(" ", strip=True))


class HeuristicStrategy(ExtractionStrategy):
    """Best-effort scan for microdata events and headed <time> blocks.

    Many pages have neither; an empty result is normal.
    """

    name = "patterns"

    def extract(self, soup: BeautifulSoup, context: ExtractionContext) -> list[CandidateEvent]:
        events = []
        for scope in soup.find_all(attrs={"itemtype": _EVENT_ITEMTYPE}):
            try:
                event = self._parse_microdata(scope, context)
            except Exception as e:
                logger.warning("microdata_event_failed", error=str(e))
                continue
            if event:
                events.append(event)

        for time_el in soup.select("time[datetime]"):
            if time_el.find_parent(attrs={"itemtype": _EVENT_ITEMTYPE}):
                continue
            try:
                event = self._parse_time_block(time_el, context)
            except Exception as e:
                logger.warning("time_block_failed", error=str(e))
                continue
            if event:
                events.append(event)
        return events

    def _parse_microdata(self, scope: Tag, context: ExtractionContext) -> CandidateEvent | None:
        title = _prop_value(_prop(scope, "name"))
        start = _prop_value(_prop(scope, "startDate"), "content", "datetime")
        if not title or not start:
            return None

        location_el = _prop(scope, "location")
        location = None
        if location_el is not None:
            location = _prop_value(_prop(location_el, "name")) or _prop_value(location_el)

        url = _prop_value(_prop(scope, "url"), "href", "content")
        return build_candidate(
            context,
            title=title,
            parsed=get_best_date([start], context.extracted_at),
            description=_prop_value(_prop(scope, "description")),
            location=location or context.venue_name,
            price=clean_price(_prop_value(_prop(scope, "price"))),
            image_url=resolve_url(_prop_value(_prop(scope, "image"), "src", "content"), context.page_url),
            source_url=resolve_url(url, context.page_url),
        )

    def _parse_time_block(self, time_el: Tag, context: ExtractionContext) -> CandidateEvent | None:
        block = None
        heading = None
        for ancestor in islice(time_el.parents, _MAX_ANCESTORS):
            heading = ancestor.find(_HEADINGS)
            if heading:
                block = ancestor
                break
        if block is None or heading is None:
            return None

        title = clean_text(heading.get_text(" ", strip=True))
        if not title or is_generic_content(title):
            return None

        fragments = [time_el["datetime"], time_el.get_text(" ", strip=True)]
        location_el = block.select_one(_LOCATION_SELECTOR)
        location = clean_text(location_el.get_text(" ", strip=True)) if location_el else None

        return build_candidate(
            context,
            title=title,
            parsed=get_best_date(fragments, context.extracted_at),
            location=location or context.venue_name,
        )
