from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from local_events.models import CandidateEvent, CollectionResult, EventSource, SourceStatus
from local_events.notify.alerts import format_source_alert, send_alert, send_source_alert

SYLVEE = EventSource(id="src-3", name="The Sylvee", url="https://thesylvee.com/events/")


@pytest.mark.asyncio
@patch("local_events.notify.alerts.db")
@patch("local_events.notify.alerts.settings")
async def test_alert_skipped_without_telegram(mock_settings: MagicMock, mock_db: MagicMock) -> None:
    mock_settings.telegram_bot_token = ""
    mock_settings.telegram_chat_id = ""
    await send_alert("scheduler", "boom")
    mock_db.should_alert.assert_not_called()


@pytest.mark.asyncio
@patch("local_events.notify.alerts.httpx.AsyncClient")
@patch("local_events.notify.alerts.db")
@patch("local_events.notify.alerts.settings")
async def test_alert_rate_limited(
    mock_settings: MagicMock, mock_db: MagicMock, mock_client: MagicMock
) -> None:
    mock_settings.telegram_bot_token = "token"
    mock_settings.telegram_chat_id = "42"
    mock_db.should_alert.return_value = False
    await send_alert("The Sylvee", "Source unhealthy")
    mock_client.assert_not_called()
    mock_db.log_alert.assert_not_called()


@pytest.mark.asyncio
@patch("local_events.notify.alerts.httpx.AsyncClient")
@patch("local_events.notify.alerts.db")
@patch("local_events.notify.alerts.settings")
async def test_alert_sent_and_logged(
    mock_settings: MagicMock, mock_db: MagicMock, mock_client: MagicMock
) -> None:
    mock_settings.telegram_bot_token = "token"
    mock_settings.telegram_chat_id = "42"
    mock_settings.city_name = "madison"
    mock_db.should_alert.return_value = True
    client = AsyncMock()
    client.post.return_value = MagicMock()
    mock_client.return_value.__aenter__.return_value = client

    await send_alert("The Sylvee", "Source unhealthy")

    client.post.assert_awaited_once()
    assert client.post.call_args.kwargs["json"]["text"] == "[local-events madison] The Sylvee: Source unhealthy"
    mock_db.log_alert.assert_called_once_with("The Sylvee", "Source unhealthy")


@pytest.mark.asyncio
@patch("local_events.notify.alerts.db")
@patch("local_events.notify.alerts.settings")
async def test_alert_failure_is_swallowed(mock_settings: MagicMock, mock_db: MagicMock) -> None:
    mock_settings.telegram_bot_token = "token"
    mock_settings.telegram_chat_id = "42"
    mock_db.should_alert.side_effect = RuntimeError("db down")
    await send_alert("scheduler", "boom")
    mock_db.log_alert.assert_not_called()


def test_source_alert_describes_failed_attempt() -> None:
    result = CollectionResult(
        source_id="src-3",
        success=False,
        error="HTTP 503: Service Unavailable",
        status_code=503,
        source_status=SourceStatus.ERROR,
        success_rate=33.333,
    )
    assert format_source_alert(SYLVEE, result) == (
        "Source unhealthy: HTTP 503: Service Unavailable (status error, success rate 33%, HTTP 503)\n"
        "https://thesylvee.com/events/"
    )


def test_source_alert_for_successful_attempt_with_low_rate() -> None:
    event = CandidateEvent(
        title="Jazz Night",
        start_datetime="2025-07-01T20:00:00-05:00",
        source_url="https://thesylvee.com/events/",
    )
    result = CollectionResult(
        source_id="src-3",
        success=True,
        events=[event],
        status_code=200,
        source_status=SourceStatus.ERROR,
        success_rate=40.0,
    )
    assert format_source_alert(SYLVEE, result) == (
        "Source unhealthy: last attempt succeeded with 1 found (status error, success rate 40%)\n"
        "https://thesylvee.com/events/"
    )


@pytest.mark.asyncio
@patch("local_events.notify.alerts.send_alert", new_callable=AsyncMock)
async def test_send_source_alert_keys_on_source_name(mock_send: AsyncMock) -> None:
    result = CollectionResult(source_id="src-3", success=False, error="timeout")
    await send_source_alert(SYLVEE, result)
    mock_send.assert_awaited_once_with(
        "The Sylvee", "Source unhealthy: timeout (status unknown)\nhttps://thesylvee.com/events/"
    )
