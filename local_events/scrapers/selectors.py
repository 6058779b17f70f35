from __future__ import annotations

from bs4 import BeautifulSoup, Tag
from soupsieve import SelectorSyntaxError

from local_events.dates import get_best_date
from local_events.log import get_logger
from local_events.models import CandidateEvent, SelectorMap
from local_events.normalize import clean_price, is_generic_content, resolve_url
from local_events.scrapers.base import (
    ExtractionContext,
    ExtractionStrategy,
    build_candidate,
    select_attr,
    select_text,
)

logger = get_logger("selectors")

# Generic selectors used for any field the config leaves unset.
FALLBACK_SELECTORS = SelectorMap(
    container=".event, .event-item, article",
    title="h1, h2, h3, .title, .event-title",
    date=".date, .event-date, time",
    description=".description, .event-description, p",
    location=".location, .venue, .address",
    price=".price, .cost, .ticket-price",
    image="img",
)


class SelectorStrategy(ExtractionStrategy):
    """Read events from repeated containers using CSS selectors."""

    name = "selectors"

    def __init__(self, selectors: SelectorMap | None = None) -> None:
        self.selectors = selectors or SelectorMap()

    def _pick(self, field: str) -> str | None:
        return getattr(self.selectors, field) or getattr(FALLBACK_SELECTORS, field)

    def extract(self, soup: BeautifulSoup, context: ExtractionContext) -> list[CandidateEvent]:
        container = self._pick("container")
        try:
            elements = soup.select(container)
        except SelectorSyntaxError:
            logger.warning("bad_container_selector", selector=container)
            return []

        logger.debug("containers_found", selector=container, count=len(elements))
        events = []
        for el in elements:
            try:
                event = self._parse_container(el, context)
            except Exception as e:
                logger.warning("container_extract_failed", error=str(e))
                continue
            if event:
                events.append(event)
        return events

    def _parse_container(self, el: Tag, context: ExtractionContext) -> CandidateEvent | None:
        title = select_text(el, self._pick("title"))
        if not title or is_generic_content(title):
            return None

        date_sel = self._pick("date")
        date_text = select_text(el, date_sel)
        date_attr = select_attr(el, date_sel, "datetime")
        time_text = select_text(el, self.selectors.time)

        fragments = []
        if date_attr:
            fragments.append(date_attr)
        if date_text and time_text:
            fragments.append(f"{date_text} {time_text}")
        if date_text:
            fragments.append(date_text)
        parsed = get_best_date(fragments, context.extracted_at)

        image = select_attr(el, self._pick("image"), "src") or select_attr(
            el, self._pick("image"), "data-src"
        )

        return build_candidate(
            context,
            title=title,
            parsed=parsed,
            description=select_text(el, self._pick("description")),
            location=select_text(el, self._pick("location")) or context.venue_name,
            price=clean_price(select_text(el, self._pick("price"))),
            image_url=resolve_url(image, context.page_url),
            source_url=self._link(el, context),
        )

    @staticmethod
    def _link(el: Tag, context: ExtractionContext) -> str | None:
        """Event detail link, when the card has one."""
        anchor = el if el.name == "a" else el.select_one("a[href]")
        href = anchor.get("href") if anchor else None
        if not href or href.startswith(("#", "javascript:", "mailto:")):
            return None
        return resolve_url(href, context.page_url)
