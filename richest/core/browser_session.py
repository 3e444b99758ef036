"""
Browser Session

Owns one Playwright browser and its pages for the lifetime of one
connection:
- lazy browser launch (at most once per successful start)
- lazy default page plus a named-page table
- retry-on-next-request after a failed launch
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from playwright.async_api import Browser, Page, Playwright, async_playwright

from richest.config import settings
from richest.core.errors import SessionError

logger = logging.getLogger(__name__)

DEFAULT_PAGE_NAME = "default"

# Returns the driver (or None) and a launched browser.
BrowserLauncher = Callable[[], Awaitable[tuple[Optional[Playwright], Browser]]]


class SessionState(str, Enum):
    UNINITIALIZED = "uninitialized"
    BROWSER_STARTED = "browser_started"
    PAGE_READY = "page_ready"
    CLOSED = "closed"


async def launch_browser() -> tuple[Optional[Playwright], Browser]:
    """Start a Playwright driver and launch the configured browser."""
    playwright = await async_playwright().start()
    try:
        browser_type = getattr(playwright, settings.BROWSER_TYPE)
        browser = await browser_type.launch(headless=settings.BROWSER_HEADLESS)
    except Exception:
        await playwright.stop()
        raise
    return playwright, browser


class BrowserSession:
    """Per-connection browser handle with lazily created pages."""

    def __init__(self, launcher: Optional[BrowserLauncher] = None) -> None:
        self._launcher = launcher or launch_browser
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._default_page: Optional[Page] = None
        self._pages: dict[str, Page] = {}
        self._lock = asyncio.Lock()
        self.state = SessionState.UNINITIALIZED
        self.launch_failures = 0

    @property
    def is_closed(self) -> bool:
        return self.state == SessionState.CLOSED

    @property
    def page_names(self) -> list[str]:
        return list(self._pages)

    def _ensure_open(self) -> None:
        if self.state == SessionState.CLOSED:
            raise SessionError("Browser session is closed")

    async def ensure_started(self) -> Browser:
        """Launch the browser on first use and return it."""
        async with self._lock:
            self._ensure_open()
            if self._browser is not None:
                return self._browser

            logger.info("Launching %s browser", settings.BROWSER_TYPE)
            try:
                playwright, browser = await self._launcher()
            except Exception as e:
                self.launch_failures += 1
                if self.state != SessionState.CLOSED:
                    self.state = SessionState.UNINITIALIZED
                if self.launch_failures > 1:
                    logger.warning(
                        "Browser launch failed %d times in a row: %s",
                        self.launch_failures,
                        e,
                    )
                else:
                    logger.error("Browser launch failed: %s", e)
                raise SessionError(
                    f"Failed to launch browser (attempt {self.launch_failures}): {e}"
                ) from e

            if self.state == SessionState.CLOSED:
                # Connection closed while the launch was in flight.
                await self._shutdown(playwright, browser)
                raise SessionError("Browser session is closed")

            self._playwright = playwright
            self._browser = browser
            self.launch_failures = 0
            self.state = SessionState.BROWSER_STARTED
            return browser

    async def default_page(self) -> Page:
        """Return the shared default page, creating it on first use."""
        browser = await self.ensure_started()
        async with self._lock:
            self._ensure_open()
            if self._default_page is None:
                try:
                    self._default_page = await browser.new_page()
                except Exception as e:
                    raise SessionError(f"Failed to open page: {e}") from e
                self.state = SessionState.PAGE_READY
            return self._default_page

    async def page(self, name: str) -> Page:
        """Return the page registered under ``name``, creating it on first use."""
        if name == DEFAULT_PAGE_NAME:
            return await self.default_page()
        browser = await self.ensure_started()
        async with self._lock:
            self._ensure_open()
            existing = self._pages.get(name)
            if existing is not None:
                return existing
            try:
                created = await browser.new_page()
            except Exception as e:
                raise SessionError(f"Failed to open page '{name}': {e}") from e
            self._pages[name] = created
            return created

    async def close(self) -> None:
        """Close the browser (and with it every page). Safe to call twice."""
        if self.state == SessionState.CLOSED:
            return
        self.state = SessionState.CLOSED
        playwright, browser = self._playwright, self._browser
        self._playwright = None
        self._browser = None
        self._default_page = None
        self._pages.clear()
        await self._shutdown(playwright, browser)

    @staticmethod
    async def _shutdown(playwright: Any, browser: Any) -> None:
        if browser is not None:
            try:
                await browser.close()
            except Exception as e:
                logger.warning("Failed to close browser: %s", e)
        if playwright is not None:
            try:
                await playwright.stop()
            except Exception as e:
                logger.debug("Failed to stop Playwright driver: %s", e)
