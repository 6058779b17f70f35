from __future__ import annotations

import httpx

from local_events import db
from local_events.config import settings
from local_events.log import get_logger
from local_events.models import CollectionResult, EventSource

logger = get_logger("alerts")


def format_source_alert(source: EventSource, result: CollectionResult) -> str:
    """Operator text for a source whose health dropped to error."""
    if result.success:
        detail = f"last attempt succeeded with {len(result.events)} found"
    else:
        detail = result.error or "last attempt failed"

    health = [f"status {result.source_status.value if result.source_status else 'unknown'}"]
    if result.success_rate is not None:
        health.append(f"success rate {result.success_rate:.0f}%")
    if result.status_code is not None and not result.success:
        health.append(f"HTTP {result.status_code}")

    return f"Source unhealthy: {detail} ({', '.join(health)})\n{source.url}"


async def send_source_alert(source: EventSource, result: CollectionResult) -> None:
    await send_alert(source.name, format_source_alert(source, result))


async def send_alert(source: str, message: str) -> None:
    """Send an operator alert via Telegram (rate-limited per source)."""
    if not settings.telegram_bot_token or not settings.telegram_chat_id:
        logger.warning("alert_skipped_no_telegram", source=source, message=message)
        return

    text = f"[local-events {settings.city_name}] {source}: {message}"

    try:
        if not db.should_alert(source):
            logger.debug("alert_rate_limited", source=source)
            return
        async with httpx.AsyncClient(timeout=10.0) as client:
            resp = await client.post(
                f"https://api.telegram.org/bot{settings.telegram_bot_token}/sendMessage",
                json={
                    "chat_id": settings.telegram_chat_id,
                    "text": text,
                    "disable_web_page_preview": True,
                },
            )
            resp.raise_for_status()
        db.log_alert(source, message)
        logger.info("alert_sent", source=source)
    except Exception as e:
        logger.error("alert_send_failed", source=source, error=str(e))
