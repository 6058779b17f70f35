"""Free-text event date parsing.

Scraped pages describe dates every which way: ISO stamps in ``<time>`` tags,
"tonight", "this Friday", "Jan 10, 2025 @ 7pm", or just "8:00 PM". Each
strategy below turns one family of phrasings into a timezone-aware datetime
in the city's zone, tagged with a confidence score. Strategies run in a fixed
priority order and the first sane result wins.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable
from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from local_events.config import settings
from local_events.models import ParsedDate

CITY_TZ = ZoneInfo(settings.city_timezone)

# Events listed without a time are assumed to start in the evening.
DEFAULT_EVENT_TIME = time(19, 0)

_MIN_DATE = datetime(2000, 1, 1, tzinfo=CITY_TZ)
_MAX_DATE = datetime(2031, 1, 1, tzinfo=CITY_TZ)

_ISO_DATETIME = re.compile(
    r"(\d{4}-\d{2}-\d{2}T\d{2}:\d{2}(?::\d{2}(?:\.\d{3}(?:\d{3})?)?)?)(Z|[+-]\d{2}:?\d{2})?(?!\d)"
)
_ISO_DATE = re.compile(r"(?<!\d)(\d{4})-(\d{2})-(\d{2})(?!\d)")
_US_DATE = re.compile(r"(?<!\d)(\d{1,2})[/-](\d{1,2})[/-](\d{4})(?!\d)")
_MONTH_DAY_YEAR = re.compile(
    r"([A-Za-z]+)\.?\s+(\d{1,2})(?:st|nd|rd|th)?,?\s+(\d{4})(?!\d)"
)
_DAY_MONTH_YEAR = re.compile(
    r"(?<!\d)(\d{1,2})(?:st|nd|rd|th)?\s+([A-Za-z]+)\.?,?\s+(\d{4})(?!\d)"
)
_MONTH_DAY = re.compile(r"\b([A-Za-z]+)\.?\s+(\d{1,2})(?:st|nd|rd|th)?\b")

_TODAY = re.compile(r"\b(today|tonight)\b")
_TOMORROW = re.compile(r"\btomorrow\b")
_THIS_NEXT_DAY = re.compile(
    r"\b(this|next)\s+(monday|tuesday|wednesday|thursday|friday|saturday|sunday)\b"
)
_THIS_WEEKEND = re.compile(r"\bthis\s+weekend\b")
_NEXT_WEEK = re.compile(r"\bnext\s+week\b")

_TIME_12H = re.compile(r"(\d{1,2}):(\d{2})\s*([ap])\.?m\b", re.IGNORECASE)
_TIME_24H = re.compile(r"(?<!\d)(\d{1,2}):(\d{2})(?!\d)")
_TIME_HOUR_ONLY = re.compile(r"\b(\d{1,2})\s*([ap])\.?m\b", re.IGNORECASE)

_MONTHS = {
    "january": 1, "jan": 1,
    "february": 2, "feb": 2,
    "march": 3, "mar": 3,
    "april": 4, "apr": 4,
    "may": 5,
    "june": 6, "jun": 6,
    "july": 7, "jul": 7,
    "august": 8, "aug": 8,
    "september": 9, "sep": 9, "sept": 9,
    "october": 10, "oct": 10,
    "november": 11, "nov": 11,
    "december": 12, "dec": 12,
}

_WEEKDAYS = {
    "monday": 0,
    "tuesday": 1,
    "wednesday": 2,
    "thursday": 3,
    "friday": 4,
    "saturday": 5,
    "sunday": 6,
}


def extract_time(text: str) -> time | None:
    """Find a time of day in text: '7:30 PM', '7:30 p.m.', '19:30' or '7pm'.

    12pm is noon and 12am is midnight.
    """
    for m in _TIME_12H.finditer(text):
        hour, minute = int(m.group(1)), int(m.group(2))
        if 1 <= hour <= 12 and minute <= 59:
            return time(_to_24h(hour, m.group(3)), minute)

    for m in _TIME_24H.finditer(text):
        hour, minute = int(m.group(1)), int(m.group(2))
        if hour <= 23 and minute <= 59:
            return time(hour, minute)

    for m in _TIME_HOUR_ONLY.finditer(text):
        hour = int(m.group(1))
        if 1 <= hour <= 12:
            return time(_to_24h(hour, m.group(2)), 0)

    return None


def _to_24h(hour: int, meridiem: str) -> int:
    meridiem = meridiem[0].lower()
    if meridiem == "p" and hour != 12:
        return hour + 12
    if meridiem == "a" and hour == 12:
        return 0
    return hour


def _at(day: date, t: time) -> datetime:
    return datetime(day.year, day.month, day.day, t.hour, t.minute, tzinfo=CITY_TZ)


def _local(reference: datetime) -> datetime:
    if reference.tzinfo is None:
        return reference.replace(tzinfo=CITY_TZ)
    return reference.astimezone(CITY_TZ)


# --- Strategies, highest priority first ---


def _parse_iso(text: str, now: datetime) -> ParsedDate | None:
    m = _ISO_DATETIME.search(text)
    if m:
        offset = m.group(2) or ""
        if offset == "Z":
            offset = "+00:00"
        elif offset and ":" not in offset:
            offset = f"{offset[:3]}:{offset[3:]}"
        dt = datetime.fromisoformat(m.group(1) + offset)
        dt = dt.replace(tzinfo=CITY_TZ) if dt.tzinfo is None else dt.astimezone(CITY_TZ)
        return ParsedDate(timestamp=dt, confidence=0.95, strategy="ISO Format")

    m = _ISO_DATE.search(text)
    if m:
        day = date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
        t = extract_time(text[m.end():])
        return ParsedDate(
            timestamp=_at(day, t or DEFAULT_EVENT_TIME),
            confidence=0.90,
            strategy="ISO Date",
            is_all_day=t is None,
        )
    return None


def _parse_relative(text: str, now: datetime) -> ParsedDate | None:
    clean = text.lower()

    if _TODAY.search(clean):
        t = extract_time(clean)
        return ParsedDate(
            timestamp=_at(now.date(), t or DEFAULT_EVENT_TIME),
            confidence=0.85,
            strategy="Today/Tonight",
            is_all_day=t is None,
        )

    if _TOMORROW.search(clean):
        t = extract_time(clean)
        return ParsedDate(
            timestamp=_at(now.date() + timedelta(days=1), t or DEFAULT_EVENT_TIME),
            confidence=0.85,
            strategy="Tomorrow",
            is_all_day=t is None,
        )

    m = _THIS_NEXT_DAY.search(clean)
    if m:
        which, day_name = m.group(1), m.group(2)
        days_ahead = _WEEKDAYS[day_name] - now.weekday()
        if which == "next" or days_ahead <= 0:
            days_ahead += 7
        t = extract_time(clean)
        return ParsedDate(
            timestamp=_at(now.date() + timedelta(days=days_ahead), t or DEFAULT_EVENT_TIME),
            confidence=0.75,
            strategy=f"{which} {day_name}",
            is_all_day=t is None,
        )

    return None


def _parse_standard(text: str, now: datetime) -> ParsedDate | None:
    m = _US_DATE.search(text)
    if m:
        day = date(int(m.group(3)), int(m.group(1)), int(m.group(2)))
        return _with_time(day, text, 0.80, "US Date Format")

    for m in _MONTH_DAY_YEAR.finditer(text):
        month = _MONTHS.get(m.group(1).lower())
        if month:
            day = date(int(m.group(3)), month, int(m.group(2)))
            return _with_time(day, text, 0.85, "Month Name Format")

    for m in _DAY_MONTH_YEAR.finditer(text):
        month = _MONTHS.get(m.group(2).lower())
        if month:
            day = date(int(m.group(3)), month, int(m.group(1)))
            return _with_time(day, text, 0.80, "Day Month Year")

    # "Jan 10 @ 7pm": no year, so take the next occurrence of that date.
    for m in _MONTH_DAY.finditer(text):
        month = _MONTHS.get(m.group(1).lower())
        if month:
            day = date(now.year, month, int(m.group(2)))
            if day < now.date():
                day = day.replace(year=now.year + 1)
            return _with_time(day, text[m.end():], 0.70, "Month Day")

    return None


def _with_time(day: date, text: str, confidence: float, strategy: str) -> ParsedDate:
    t = extract_time(text)
    return ParsedDate(
        timestamp=_at(day, t or time(0, 0)),
        confidence=confidence,
        strategy=strategy,
        is_all_day=t is None,
    )


def _parse_natural(text: str, now: datetime) -> ParsedDate | None:
    clean = text.lower()

    if _THIS_WEEKEND.search(clean):
        saturday = now.date() + timedelta(days=(5 - now.weekday()) % 7)
        return ParsedDate(
            timestamp=_at(saturday, DEFAULT_EVENT_TIME),
            confidence=0.60,
            strategy="This Weekend",
            is_all_day=True,
        )

    if _NEXT_WEEK.search(clean):
        return ParsedDate(
            timestamp=_at(now.date() + timedelta(days=7), DEFAULT_EVENT_TIME),
            confidence=0.50,
            strategy="Next Week",
            is_all_day=True,
        )

    return None


def _parse_time_only(text: str, now: datetime) -> ParsedDate | None:
    t = extract_time(text)
    if t is None:
        return None
    dt = _at(now.date(), t)
    if dt <= now:
        dt = _at(now.date() + timedelta(days=1), t)
    return ParsedDate(timestamp=dt, confidence=0.40, strategy="Time Only")


_STRATEGIES: list[Callable[[str, datetime], ParsedDate | None]] = [
    _parse_iso,
    _parse_relative,
    _parse_standard,
    _parse_natural,
    _parse_time_only,
]


def _is_sane(dt: datetime) -> bool:
    return _MIN_DATE < dt < _MAX_DATE


def _parse_ranked(text: str, reference: datetime) -> tuple[int, ParsedDate] | None:
    if not text or not isinstance(text, str) or not text.strip():
        return None
    now = _local(reference)
    cleaned = text.strip()
    for rank, strategy in enumerate(_STRATEGIES):
        try:
            result = strategy(cleaned, now)
        except (ValueError, OverflowError):
            # Impossible calendar values (Feb 30, hour 25) fall through.
            continue
        if result is not None and _is_sane(result.timestamp):
            return rank, result
    return None


def parse_event_date(text: str | None, reference: datetime | None = None) -> ParsedDate | None:
    """Parse a scraped date/time fragment relative to ``reference`` (default: now).

    Returns None when nothing recognizable is found; never raises.
    """
    if reference is None:
        reference = datetime.now(CITY_TZ)
    ranked = _parse_ranked(text, reference)
    return ranked[1] if ranked else None


def parse_multiple_dates(
    texts: Iterable[str | None], reference: datetime | None = None
) -> list[ParsedDate]:
    """Parse several fragments, best first.

    Ordered by confidence, then strategy priority, then input order.
    """
    if reference is None:
        reference = datetime.now(CITY_TZ)
    ranked = []
    for index, text in enumerate(texts):
        parsed = _parse_ranked(text, reference)
        if parsed:
            rank, result = parsed
            ranked.append((-result.confidence, rank, index, result))
    ranked.sort(key=lambda r: r[:3])
    return [r[3] for r in ranked]


def get_best_date(
    texts: Iterable[str | None], reference: datetime | None = None
) -> ParsedDate | None:
    parsed = parse_multiple_dates(texts, reference)
    return parsed[0] if parsed else None
