"""Text cleanup and classification shared by every extraction strategy.

Centralizes categorization, tagging, and price/URL cleanup so events look
the same whether they came from CSS selectors, JSON-LD, or page heuristics.
"""

from __future__ import annotations

import re
from urllib.parse import parse_qsl, urlencode, urljoin, urlsplit, urlunsplit

from local_events.models import SourceType

# ── Category table: first match wins, order matters ──────────────
CATEGORY_PATTERNS: list[tuple[str, re.Pattern[str]]] = [
    ("music", re.compile(r"music|concert|band|singer|dj|acoustic|jazz|rock|country|pop|classical")),
    ("food", re.compile(r"food|dinner|lunch|brunch|cooking|chef|tasting|wine|beer|cocktail|menu")),
    ("culture", re.compile(r"culture|art|gallery|museum|theater|performance|dance|cultural")),
    ("festival", re.compile(r"festival|fest|celebration|fair")),
    ("market", re.compile(r"market|farmers|vendor|craft|artisan")),
    ("nightlife", re.compile(r"night|bar|club|happy hour|late")),
    ("family", re.compile(r"family|kids|children|all ages")),
    ("education", re.compile(r"workshop|class|seminar|lecture|learning|course")),
]

SOURCE_TYPE_CATEGORIES: dict[SourceType, str] = {
    SourceType.RESTAURANT: "food",
    SourceType.BREWERY: "food",
    SourceType.VENUE: "music",
    SourceType.CULTURAL: "culture",
    SourceType.COMMUNITY: "community",
}

# ── Tag table: every match applies ───────────────────────────────
TAG_PATTERNS: list[tuple[str, re.Pattern[str]]] = [
    ("live-music", re.compile(r"live music|live band|acoustic|performance")),
    ("free", re.compile(r"free|no cost|complimentary")),
    ("21+", re.compile(r"21\+|adults only|over 21")),
    ("family-friendly", re.compile(r"family|kids|all ages|children")),
    ("outdoor", re.compile(r"outdoor|patio|terrace|garden")),
    ("special-event", re.compile(r"special|limited|exclusive|one night")),
]

# Navigation blocks that venue pages mark up like event cards.
_GENERIC_TITLES = re.compile(
    r"^(menu|hours|contact|about|location|home|welcome|news|gallery|photos|videos)$",
    re.IGNORECASE,
)

_TRACKING_PARAMS = frozenset(
    {
        "utm_source", "utm_medium", "utm_campaign", "utm_term", "utm_content",
        "gclid", "fbclid", "mc_cid", "mc_eid", "ref", "igshid",
    }
)


def clean_text(s: str | None) -> str | None:
    """Collapse whitespace; empty strings become None."""
    if s is None:
        return None
    s = re.sub(r"\s+", " ", s).strip()
    return s or None


def categorize_event(
    title: str,
    description: str | None = None,
    source_type: SourceType | str | None = None,
    default_category: str | None = None,
) -> str:
    """Pick a category from title + description.

    Falls back to the venue's own category, then the source type's default,
    then "other".
    """
    text = f"{title} {description or ''}".lower()
    for category, pattern in CATEGORY_PATTERNS:
        if pattern.search(text):
            return category

    if default_category:
        return default_category

    try:
        source_type = SourceType(source_type) if source_type else None
    except ValueError:
        source_type = None
    return SOURCE_TYPE_CATEGORIES.get(source_type, "other")


def extract_tags(title: str, description: str | None = None) -> list[str]:
    text = f"{title} {description or ''}".lower()
    return [tag for tag, pattern in TAG_PATTERNS if pattern.search(text)]


def clean_price(price: str | None) -> str | None:
    """Reduce scraped price text to digits and currency marks ("$15 - $20")."""
    if not price:
        return None
    if re.search(r"\bfree\b", price, re.IGNORECASE):
        return "Free"
    cleaned = re.sub(r"[^\d$.,\-\s]", " ", price)
    cleaned = re.sub(r"\s+", " ", cleaned).strip(" ,.-")
    if not re.search(r"\d", cleaned):
        return None
    if cleaned in ("$0", "0", "$0.00"):
        return "Free"
    return cleaned


def resolve_url(url: str | None, base_url: str) -> str | None:
    """Make a scraped href/src absolute against the page it came from."""
    if not url:
        return None
    url = url.strip()
    if url.startswith(("http://", "https://", "data:")):
        return url
    try:
        return urljoin(base_url, url)
    except ValueError:
        return None


def normalize_url(url: str | None) -> str | None:
    """Strip tracking params and prefer https so the same page compares equal."""
    if not url:
        return None
    try:
        parts = urlsplit(url.strip())
    except ValueError:
        return url
    if not parts.scheme or not parts.netloc:
        return url
    scheme = "https" if parts.scheme == "http" else parts.scheme
    query = urlencode(
        [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k not in _TRACKING_PARAMS]
    )
    return urlunsplit((scheme, parts.netloc, parts.path or "/", query, parts.fragment))


def is_generic_content(title: str) -> bool:
    return bool(_GENERIC_TITLES.match(title.strip()))
