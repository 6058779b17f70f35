"""Scraping recipes for the city's known venues.

Static data: editing a selector means redeploying. A source whose stored
extraction rules are empty picks up the recipe here by matching venue name.
"""

from __future__ import annotations

import re

from local_events.models import SelectorMap, SpecialHandling, VenueScrapingConfig

VENUE_CONFIGS: tuple[VenueScrapingConfig, ...] = (
    # Music venues
    VenueScrapingConfig(
        venue="The Sylvee",
        url="https://thesylvee.com/events/",
        selectors=SelectorMap(
            container=".event-card, .upcoming-event",
            title=".event-title, .event-name, h3, h4",
            date=".event-date, .date",
            time=".event-time, .time",
            description=".event-description, .description",
            price=".ticket-price, .price",
            image="img",
        ),
        wait_time_ms=5000,
        special_handling=SpecialHandling.SPA,
        category="music",
    ),
    VenueScrapingConfig(
        venue="Overture Center",
        url="https://overture.org/events",
        selectors=SelectorMap(
            container=".event-item, .performance-item",
            title=".event-title, h3",
            date=".performance-date, .event-date",
            description=".event-summary, .description",
            price=".price-range",
            image=".event-image img, .performance-image img",
        ),
        wait_time_ms=4000,
        category="theater",
    ),
    VenueScrapingConfig(
        venue="Majestic Theatre",
        url="https://majesticmadison.com/events",
        selectors=SelectorMap(
            container=".event-listing, .show-listing",
            title=".event-title, .show-title",
            date=".event-date, .show-date",
            description=".event-description",
            price=".ticket-info, .pricing",
        ),
        category="music",
    ),
    VenueScrapingConfig(
        venue="High Noon Saloon",
        url="https://high-noon.com/calendar",
        selectors=SelectorMap(
            container=".event, .show",
            title=".event-title, .band-name",
            date=".date",
            time=".time, .doors",
            description=".event-info",
            price=".cover, .admission",
        ),
        category="music",
    ),
    # Breweries & restaurants
    VenueScrapingConfig(
        venue="Great Dane Pub",
        url="https://greatdanepub.com/events/",
        selectors=SelectorMap(
            container=".event-item, .upcoming-event",
            title=".event-title, h3",
            date=".event-date",
            time=".event-time",
            description=".event-description",
            location=".location",  # several pub locations
        ),
        category="food",
    ),
    VenueScrapingConfig(
        venue="Karben4 Brewing",
        url="https://karben4.com/events",
        selectors=SelectorMap(
            container=".event, .calendar-event",
            title=".event-name, .title",
            date=".event-date, .date",
            description=".event-details",
        ),
        category="food",
    ),
    VenueScrapingConfig(
        venue="Ale Asylum",
        url="https://aleasylum.com/events",
        selectors=SelectorMap(
            container=".event-card",
            title=".event-title",
            date=".event-date",
            description=".event-description",
        ),
        category="food",
    ),
    VenueScrapingConfig(
        venue="Working Draft Beer Company",
        url="https://workingdraftbeer.com/events",
        selectors=SelectorMap(
            container=".event-listing",
            title=".event-title",
            date=".date",
            description=".description",
        ),
        category="food",
    ),
    # Cultural venues
    VenueScrapingConfig(
        venue="Madison Museum of Contemporary Art",
        url="https://mmoca.org/events",
        selectors=SelectorMap(
            container=".event-item",
            title=".event-title",
            date=".event-date",
            description=".event-excerpt",
            image=".event-image img",
        ),
        category="art",
    ),
    VenueScrapingConfig(
        venue="Chazen Museum of Art",
        url="https://chazen.wisc.edu/events",
        selectors=SelectorMap(
            container=".event-listing",
            title=".event-title",
            date=".event-date",
            description=".event-description",
        ),
        category="art",
    ),
    # Restaurants with events
    VenueScrapingConfig(
        venue="L'Etoile Restaurant",
        url="https://letoile-restaurant.com/events",
        selectors=SelectorMap(
            container=".event-item",
            title=".event-title",
            date=".event-date",
            description=".event-description",
            price=".event-price",
        ),
        category="food",
    ),
    VenueScrapingConfig(
        venue="Graze",
        url="https://grazemadison.com/events",
        selectors=SelectorMap(
            container=".event",
            title=".event-title",
            date=".date",
            description=".description",
        ),
        category="food",
    ),
    # Community venues
    VenueScrapingConfig(
        venue="Memorial Union",
        url="https://union.wisc.edu/events-and-activities/event-calendar/",
        selectors=SelectorMap(
            container=".event-item, .calendar-event",
            title=".event-title, .title",
            date=".event-date, .date",
            time=".event-time, .time",
            description=".event-description",
            location=".event-location, .location",
        ),
        wait_time_ms=6000,
        special_handling=SpecialHandling.CALENDAR,
        category="community",
    ),
    VenueScrapingConfig(
        venue="Monona Terrace",
        url="https://mononaterrace.com/events",
        selectors=SelectorMap(
            container=".event-listing",
            title=".event-name",
            date=".event-date",
            description=".event-summary",
        ),
        category="community",
    ),
)


def _key(name: str) -> str:
    return re.sub(r"\s+", " ", name).strip().lower()


_BY_NAME: dict[str, VenueScrapingConfig] = {_key(c.venue): c for c in VENUE_CONFIGS}


def get_config(name: str | None) -> VenueScrapingConfig | None:
    """Look up a venue recipe by name, ignoring case and spacing."""
    if not name:
        return None
    return _BY_NAME.get(_key(name))


def list_configured_venues() -> list[str]:
    return [c.venue for c in VENUE_CONFIGS]
