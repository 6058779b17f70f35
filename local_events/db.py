from __future__ import annotations

import json
from datetime import datetime, timezone

from pydantic import ValidationError
from supabase import create_client

from local_events.config import settings
from local_events.log import get_logger
from local_events.models import (
    Event,
    EventSource,
    ScrapingLog,
    SourceStatus,
    Venue,
    extraction_from_blob,
    scraping_from_blob,
)

logger = get_logger("db")

_client = None

_SOURCE_COLUMNS = "*, venues(id, name, address)"


def get_client():
    global _client
    if _client is None:
        _client = create_client(settings.supabase_url, settings.supabase_key)
    return _client


def _ts(dt: datetime) -> str:
    """UTC timestamp for PostgREST filters ('+' in offsets breaks query strings)."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def _parse_ts(v: str | None) -> datetime | None:
    if not v:
        return None
    try:
        return datetime.fromisoformat(v.replace("Z", "+00:00"))
    except (ValueError, TypeError):
        return None


def _source_from_row(row: dict) -> EventSource:
    venue = None
    v = row.get("venues")
    if isinstance(v, dict) and v.get("id"):
        venue = Venue(
            id=str(v["id"]),
            name=v.get("name") or "",
            location=v.get("address") or v.get("name") or "",
        )
    return EventSource(
        id=str(row["id"]),
        name=row.get("name") or "",
        url=row["url"],
        source_type=row.get("source_type") or "other",
        extraction=extraction_from_blob(row.get("extraction_rules")),
        scraping=scraping_from_blob(row.get("scraping_config")),
        is_active=row.get("is_active", True),
        status=row.get("status") or SourceStatus.ACTIVE,
        last_scraped_at=_parse_ts(row.get("last_scraped_at")),
        total_attempts=row.get("total_attempts") or 0,
        successful_attempts=row.get("successful_attempts") or 0,
        success_rate=row.get("success_rate") or 0.0,
        venue=venue,
    )


# --- Sources ---


def get_sources_due_for_scraping(stale_before: datetime, limit: int) -> list[EventSource]:
    """Active sources never scraped or last scraped before ``stale_before``, oldest first."""
    result = (
        get_client()
        .table("event_sources")
        .select(_SOURCE_COLUMNS)
        .eq("is_active", True)
        .or_(f"last_scraped_at.is.null,last_scraped_at.lt.{_ts(stale_before)}")
        .order("last_scraped_at", desc=False, nullsfirst=True)
        .limit(limit)
        .execute()
    )
    sources = []
    for row in result.data:
        try:
            sources.append(_source_from_row(row))
        except (ValidationError, KeyError) as e:
            logger.warning("source_row_invalid", source_id=row.get("id"), error=str(e))
    return sources


def get_source(source_id: str) -> EventSource | None:
    result = (
        get_client()
        .table("event_sources")
        .select(_SOURCE_COLUMNS)
        .eq("id", source_id)
        .limit(1)
        .execute()
    )
    return _source_from_row(result.data[0]) if result.data else None


def update_source_stats(
    source_id: str,
    *,
    last_scraped_at: datetime,
    total_attempts: int,
    successful_attempts: int,
    success_rate: float,
    status: SourceStatus,
) -> None:
    get_client().table("event_sources").update(
        {
            "last_scraped_at": _ts(last_scraped_at),
            "total_attempts": total_attempts,
            "successful_attempts": successful_attempts,
            "success_rate": round(success_rate, 2),
            "status": status.value,
        }
    ).eq("id", source_id).execute()


# --- Events ---


def find_existing_event(
    title: str,
    start_datetime: datetime,
    *,
    venue_id: str | None = None,
    custom_location: str | None = None,
) -> dict | None:
    """Stored event with the same title, start, and location, if any."""
    q = (
        get_client()
        .table("events")
        .select("id")
        .eq("title", title)
        .eq("start_datetime", _ts(start_datetime))
    )
    if venue_id:
        q = q.eq("venue_id", venue_id)
    elif custom_location:
        q = q.eq("custom_location", custom_location)
    else:
        q = q.is_("custom_location", "null")
    result = q.limit(1).execute()
    return result.data[0] if result.data else None


def create_event(event: Event) -> str:
    row = event.model_dump(exclude={"id"})
    row["start_datetime"] = _ts(event.start_datetime)
    row["end_datetime"] = _ts(event.end_datetime) if event.end_datetime else None
    result = get_client().table("events").insert(row).execute()
    return result.data[0]["id"]


def delete_events_before(cutoff: datetime) -> int:
    """Delete events that started before ``cutoff``. Returns count deleted."""
    result = (
        get_client()
        .table("events")
        .delete()
        .lt("start_datetime", _ts(cutoff))
        .execute()
    )
    return len(result.data)


# --- Scraping logs ---


def create_scraping_log(log: ScrapingLog) -> ScrapingLog:
    """Insert a log row for an attempt; returns the log with its row id."""
    result = (
        get_client()
        .table("scraping_logs")
        .insert(
            {
                "source_id": log.source_id,
                "status": log.status.value,
                "started_at": _ts(log.started_at),
            }
        )
        .execute()
    )
    return log.model_copy(update={"id": str(result.data[0]["id"])})


def complete_scraping_log(log: ScrapingLog) -> None:
    if log.id is None:
        raise ValueError("scraping log has no id")
    get_client().table("scraping_logs").update(
        {
            "status": log.status.value,
            "completed_at": _ts(log.completed_at) if log.completed_at else None,
            "events_found": log.events_found,
            "error": log.error,
            "metadata": json.dumps(log.metadata),
        }
    ).eq("id", log.id).execute()



# --- Alert log ---


def should_alert(source: str) -> bool:
    """Check if we should send an alert (rate limit: 1 per source per hour)."""
    result = (
        get_client()
        .table("alert_log")
        .select("created_at")
        .eq("source", source)
        .order("created_at", desc=True)
        .limit(1)
        .execute()
    )
    if not result.data:
        return True
    last = datetime.fromisoformat(result.data[0]["created_at"].replace("Z", "+00:00"))
    return (datetime.now(last.tzinfo) - last).total_seconds() > 3600


def log_alert(source: str, message: str) -> None:
    get_client().table("alert_log").insert(
        {"source": source, "message": message}
    ).execute()
