from __future__ import annotations

import json
from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    Field,
    TypeAdapter,
    ValidationError,
    model_validator,
)


class SourceType(str, Enum):
    GOVERNMENT = "government"
    LOCAL_MEDIA = "local_media"
    MEDIA = "media"
    VENUE = "venue"
    RESTAURANT = "restaurant"
    BREWERY = "brewery"
    CULTURAL = "cultural"
    UNIVERSITY = "university"
    COMMUNITY = "community"
    CUSTOM = "custom"
    SOCIAL_MEDIA = "social_media"
    API_FEED = "api_feed"
    OTHER = "other"


class SourceStatus(str, Enum):
    ACTIVE = "active"
    WARNING = "warning"
    ERROR = "error"


class LogStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class SpecialHandling(str, Enum):
    SPA = "spa"
    CALENDAR = "calendar"
    IFRAME = "iframe"
    AJAX = "ajax"


# --- Extraction / scraping configuration ---


class SelectorMap(BaseModel):
    """CSS selectors for one event listing. Unset fields use generic fallbacks."""

    model_config = {"frozen": True, "extra": "ignore"}

    container: str | None = None
    title: str | None = None
    date: str | None = None
    time: str | None = None
    description: str | None = None
    price: str | None = None
    image: str | None = None
    location: str | None = None


class SelectorExtraction(BaseModel):
    mode: Literal["selectors"] = "selectors"
    selectors: SelectorMap


class IntelligentExtraction(BaseModel):
    mode: Literal["intelligent"] = "intelligent"


ExtractionConfig = Annotated[
    Union[SelectorExtraction, IntelligentExtraction], Field(discriminator="mode")
]

_extraction_adapter: TypeAdapter = TypeAdapter(ExtractionConfig)


class ScrapingConfig(BaseModel):
    model_config = {"extra": "ignore", "populate_by_name": True}

    method: str = "playwright"
    wait_time_ms: int | None = Field(
        default=None, validation_alias=AliasChoices("wait_time_ms", "waitTime")
    )
    special_handling: SpecialHandling | None = Field(
        default=None,
        validation_alias=AliasChoices("special_handling", "specialHandling"),
    )
    date_format: str | None = Field(
        default=None, validation_alias=AliasChoices("date_format", "dateFormat")
    )


def _json_blob(value: Any) -> dict:
    """Decode a config column that may be a JSON string, a dict, or empty."""
    if not value:
        return {}
    if isinstance(value, dict):
        return value
    try:
        decoded = json.loads(value)
    except (json.JSONDecodeError, TypeError):
        return {}
    return decoded if isinstance(decoded, dict) else {}


def extraction_from_blob(value: Any) -> SelectorExtraction | IntelligentExtraction:
    """Load the stored extraction rules into a tagged config.

    A blob carrying a ``selectors`` object becomes a selector config; anything
    else (empty, malformed, unknown shape) falls back to intelligent detection.
    """
    blob = _json_blob(value)
    if "mode" in blob:
        try:
            return _extraction_adapter.validate_python(blob)
        except ValidationError:
            return IntelligentExtraction()
    if isinstance(blob.get("selectors"), dict):
        try:
            return SelectorExtraction(selectors=SelectorMap.model_validate(blob["selectors"]))
        except ValidationError:
            return IntelligentExtraction()
    return IntelligentExtraction()


def scraping_from_blob(value: Any) -> ScrapingConfig:
    try:
        return ScrapingConfig.model_validate(_json_blob(value))
    except ValidationError:
        return ScrapingConfig()


class VenueScrapingConfig(BaseModel):
    """Static scraping recipe for one known venue."""

    model_config = {"frozen": True}

    venue: str
    url: str
    selectors: SelectorMap
    wait_time_ms: int | None = None
    special_handling: SpecialHandling | None = None
    date_format: str | None = None
    category: str | None = None


# --- Sources ---


class Venue(BaseModel):
    id: str
    name: str
    location: str


class EventSource(BaseModel):
    """A third-party website polled for events."""

    id: str
    name: str
    url: str
    source_type: SourceType = SourceType.OTHER
    extraction: ExtractionConfig = Field(default_factory=IntelligentExtraction)
    scraping: ScrapingConfig = Field(default_factory=ScrapingConfig)
    is_active: bool = True
    status: SourceStatus = SourceStatus.ACTIVE
    last_scraped_at: datetime | None = None
    total_attempts: int = 0
    successful_attempts: int = 0
    success_rate: float = 0.0
    venue: Venue | None = None


# --- Events ---


class CandidateEvent(BaseModel):
    """Event scraped from one page, before validation and dedup."""

    title: str
    description: str | None = None
    start_datetime: datetime | None = None
    end_datetime: datetime | None = None
    location: str | None = None
    category: str = "other"
    price: str | None = None
    image_url: str | None = None
    source_url: str | None = None
    tags: list[str] = Field(default_factory=list)
    date_confidence: float | None = None

    def dedup_key(self) -> tuple[str, str, str]:
        start = self.start_datetime.isoformat() if self.start_datetime else ""
        return (self.title.strip(), start, (self.location or "").strip())


class Event(BaseModel):
    """Validated, deduplicated event stored in DB."""

    id: str | None = None
    title: str
    description: str | None = None
    start_datetime: datetime
    end_datetime: datetime | None = None
    category: str = "other"
    price: str | None = None
    image_url: str | None = None
    source_url: str | None = None
    tags: str = ""
    venue_id: str | None = None
    custom_location: str | None = None
    source_id: str | None = None
    status: str = "published"

    @model_validator(mode="after")
    def _one_location(self) -> Event:
        if (self.venue_id is None) == (self.custom_location is None):
            raise ValueError("event needs exactly one of venue_id or custom_location")
        return self


class ScrapingLog(BaseModel):
    id: str | None = None
    source_id: str
    status: LogStatus = LogStatus.RUNNING
    started_at: datetime
    completed_at: datetime | None = None
    events_found: int = 0
    error: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


# --- Pipeline results ---


class ParsedDate(BaseModel):
    timestamp: datetime
    confidence: float = Field(ge=0.0, le=1.0)
    strategy: str
    is_all_day: bool = False


class CollectionResult(BaseModel):
    """Outcome of one collection attempt against one source."""

    source_id: str
    success: bool
    events: list[CandidateEvent] = Field(default_factory=list)
    error: str | None = None
    duration_seconds: float = 0.0
    content_hash: str | None = None
    status_code: int | None = None
    events_stored: int = 0
    duplicates_skipped: int = 0
    source_status: SourceStatus | None = None
    success_rate: float | None = None

    def log_metadata(self) -> dict[str, Any]:
        return {
            "duration_seconds": round(self.duration_seconds, 3),
            "content_hash": self.content_hash,
            "status_code": self.status_code,
            "events_stored": self.events_stored,
            "duplicates_skipped": self.duplicates_skipped,
        }


class CycleSummary(BaseModel):
    """Totals for one pass over the sources that were due."""

    sources: int = 0
    succeeded: int = 0
    failed: int = 0
    events_found: int = 0
    events_stored: int = 0
