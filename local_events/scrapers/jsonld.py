from __future__ import annotations

import json
from collections.abc import Iterator
from typing import Any

from bs4 import BeautifulSoup

from local_events.dates import parse_event_date
from local_events.log import get_logger
from local_events.models import CandidateEvent
from local_events.normalize import clean_price, resolve_url
from local_events.scrapers.base import ExtractionContext, ExtractionStrategy, build_candidate

logger = get_logger("jsonld")


def iter_jsonld_blocks(soup: BeautifulSoup) -> Iterator[Any]:
    """Yield every parseable JSON-LD block; malformed blocks are skipped."""
    for script in soup.select('script[type="application/ld+json"]'):
        raw = script.string or script.get_text()
        try:
            yield json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            logger.debug("jsonld_parse_failed", size=len(raw or ""))
            continue


def _is_event_type(value: Any) -> bool:
    if isinstance(value, str):
        return value == "Event" or value.endswith("Event")
    if isinstance(value, list):
        return any(_is_event_type(v) for v in value)
    return False


def find_event_nodes(data: Any) -> list[dict]:
    """Walk nested JSON-LD (lists, @graph, wrappers) collecting Event nodes."""
    if isinstance(data, dict):
        if _is_event_type(data.get("@type")):
            return [data]
        found = []
        for value in data.values():
            if isinstance(value, (dict, list)):
                found.extend(find_event_nodes(value))
        return found
    if isinstance(data, list):
        found = []
        for item in data:
            found.extend(find_event_nodes(item))
        return found
    return []


def _first(value: Any) -> Any:
    if isinstance(value, list):
        return value[0] if value else None
    return value


def _location_text(location: Any) -> str | None:
    location = _first(location)
    if isinstance(location, str):
        return location
    if not isinstance(location, dict):
        return None
    if location.get("name"):
        return str(location["name"])
    address = location.get("address")
    if isinstance(address, dict):
        return address.get("streetAddress")
    if isinstance(address, str):
        return address
    return None


def _price_text(offers: Any) -> str | None:
    offers = _first(offers)
    if not isinstance(offers, dict):
        return None
    price = offers.get("price", offers.get("lowPrice"))
    if price is None or price == "":
        return None
    return clean_price(str(price))


def _image_url(image: Any) -> str | None:
    image = _first(image)
    if isinstance(image, dict):
        image = image.get("url")
    return image if isinstance(image, str) else None


class StructuredDataStrategy(ExtractionStrategy):
    """Events described by schema.org JSON-LD embedded in the page."""

    name = "jsonld"

    def extract(self, soup: BeautifulSoup, context: ExtractionContext) -> list[CandidateEvent]:
        events = []
        for block in iter_jsonld_blocks(soup):
            for node in find_event_nodes(block):
                try:
                    event = self._parse_node(node, context)
                except Exception as e:
                    logger.warning("jsonld_event_failed", error=str(e))
                    continue
                if event:
                    events.append(event)
        return events

    def _parse_node(self, node: dict, context: ExtractionContext) -> CandidateEvent | None:
        title = node.get("name")
        start = node.get("startDate")
        if not isinstance(title, str) or not title.strip() or not start:
            return None

        parsed = parse_event_date(str(start), context.extracted_at)
        end = node.get("endDate")
        end_parsed = parse_event_date(str(end), context.extracted_at) if end else None
        description = node.get("description")
        url = node.get("url")

        return build_candidate(
            context,
            title=title,
            parsed=parsed,
            description=description if isinstance(description, str) else None,
            end_datetime=end_parsed.timestamp if end_parsed else None,
            location=_location_text(node.get("location")) or context.venue_name,
            price=_price_text(node.get("offers")),
            image_url=resolve_url(_image_url(node.get("image")), context.page_url),
            source_url=resolve_url(url, context.page_url) if isinstance(url, str) else None,
        )
