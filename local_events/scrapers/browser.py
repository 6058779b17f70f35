from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Frame, Page, Response, async_playwright
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from local_events.config import settings
from local_events.errors import NavigationError
from local_events.log import get_logger
from local_events.models import SpecialHandling

logger = get_logger("browser")

BROWSER_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
VIEWPORT = {"width": 1200, "height": 800}

SPA_WAIT_MS = 10_000
CALENDAR_WAIT_MS = 5_000
CLICK_TIMEOUT_MS = 3_000
AJAX_SETTLE_MS = 2_000


@asynccontextmanager
async def open_page() -> AsyncIterator[Page]:
    """Launch a headless Chromium with an isolated context; always closed on exit."""
    async with async_playwright() as pw:
        browser = await pw.chromium.launch(
            headless=True, timeout=settings.browser_launch_timeout_ms
        )
        try:
            context = await browser.new_context(user_agent=BROWSER_UA, viewport=VIEWPORT)
            try:
                yield await context.new_page()
            finally:
                await context.close()
        finally:
            await browser.close()


@retry(
    retry=retry_if_exception_type(PlaywrightTimeoutError),
    stop=stop_after_attempt(2),
    wait=wait_exponential(min=1, max=5),
    reraise=True,
)
async def navigate(page: Page, url: str, timeout_ms: int | None = None) -> Response:
    """Load ``url``; a missing response or non-2xx status is a NavigationError."""
    response = await page.goto(
        url,
        wait_until="networkidle",
        timeout=timeout_ms or settings.navigation_timeout_ms,
    )
    if response is None:
        raise NavigationError(f"No response from {url}")
    if not response.ok:
        raise NavigationError(
            f"HTTP {response.status}: {response.status_text}", status_code=response.status
        )
    return response


async def _try_wait(page: Page, selector: str, timeout_ms: int) -> None:
    try:
        await page.wait_for_selector(selector, timeout=timeout_ms)
    except PlaywrightError:
        logger.debug("selector_wait_timed_out", selector=selector)


async def _try_click(page: Page, selector: str) -> None:
    try:
        await page.click(selector, timeout=CLICK_TIMEOUT_MS)
    except PlaywrightError:
        logger.debug("optional_click_skipped", selector=selector)


async def apply_special_handling(
    page: Page,
    handling: SpecialHandling | None,
    container_selector: str | None = None,
) -> Page | Frame:
    """Prepare awkward pages before extraction; returns what to read HTML from."""
    if handling is SpecialHandling.SPA:
        if container_selector:
            await _try_wait(page, container_selector, SPA_WAIT_MS)
    elif handling is SpecialHandling.CALENDAR:
        await _try_wait(page, ".calendar, .event-calendar", CALENDAR_WAIT_MS)
        await _try_click(page, '.upcoming-events, .list-view, [data-view="list"]')
    elif handling is SpecialHandling.IFRAME:
        handle = await page.query_selector("iframe")
        frame = await handle.content_frame() if handle else None
        if frame is not None:
            return frame
        logger.warning("iframe_not_found", url=page.url)
    elif handling is SpecialHandling.AJAX:
        await _try_click(page, ".load-more, .show-more")
        await page.wait_for_timeout(AJAX_SETTLE_MS)
    return page
