from __future__ import annotations

from bs4 import BeautifulSoup

from local_events.log import get_logger
from local_events.models import (
    CandidateEvent,
    IntelligentExtraction,
    SelectorExtraction,
)
from local_events.scrapers.base import (
    ExtractionContext,
    ExtractionStrategy,
    dedupe_candidates,
    is_valid_candidate,
)
from local_events.scrapers.jsonld import StructuredDataStrategy
from local_events.scrapers.patterns import HeuristicStrategy
from local_events.scrapers.selectors import SelectorStrategy

logger = get_logger("extractor")


def strategies_for(
    extraction: SelectorExtraction | IntelligentExtraction,
) -> list[ExtractionStrategy]:
    """Ordered strategies for a config.

    Configured selectors are trusted on their own; without them the page is
    read for JSON-LD and common markup patterns, and both results are kept.
    """
    if isinstance(extraction, SelectorExtraction):
        return [SelectorStrategy(extraction.selectors)]
    return [StructuredDataStrategy(), HeuristicStrategy()]


def parse_html(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "lxml")


class ContentExtractor:
    """Turn a rendered page into validated, batch-deduplicated candidates."""

    def extract(
        self,
        soup: BeautifulSoup,
        extraction: SelectorExtraction | IntelligentExtraction,
        context: ExtractionContext,
    ) -> list[CandidateEvent]:
        found: list[CandidateEvent] = []
        for strategy in strategies_for(extraction):
            try:
                events = strategy.extract(soup, context)
            except Exception as e:
                logger.error(
                    "strategy_failed", strategy=strategy.name, url=context.page_url, error=str(e)
                )
                continue
            logger.debug("strategy_done", strategy=strategy.name, count=len(events))
            found.extend(events)

        valid = [e for e in found if is_valid_candidate(e, context.extracted_at)]
        unique = dedupe_candidates(valid)
        logger.info(
            "extraction_complete",
            url=context.page_url,
            mode=extraction.mode,
            raw=len(found),
            valid=len(valid),
            unique=len(unique),
        )
        return unique

    def extract_html(
        self,
        html: str,
        extraction: SelectorExtraction | IntelligentExtraction,
        context: ExtractionContext,
    ) -> list[CandidateEvent]:
        return self.extract(parse_html(html), extraction, context)
