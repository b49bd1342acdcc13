"""
Shared Playwright browser session.

One headless Chromium instance is launched lazily and reused by every crawl
and detail fetch in the process. Each unit of work opens its own page.
"""
import logging
import asyncio
from typing import Optional

from playwright.async_api import async_playwright, Browser, Page, Playwright

from core.errors import BrowserUnavailableError

logger = logging.getLogger(__name__)

LAUNCH_ARGS = ['--no-sandbox', '--disable-setuid-sandbox']


class BrowserSession:
    """Owned handle for the process-wide browser."""

    def __init__(self, headless: bool = True):
        self.headless = headless
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._lock = asyncio.Lock()

    @property
    def is_connected(self) -> bool:
        return self._browser is not None and self._browser.is_connected()

    async def acquire(self) -> Browser:
        """
        Return the live browser, launching (or relaunching after a disconnect)
        when needed.

        Raises:
            BrowserUnavailableError: Chromium could not be started
        """
        async with self._lock:
            if self.is_connected:
                return self._browser

            if self._browser is not None:
                logger.warning("[browser] Browser disconnected, launching a new instance")
                await self._dispose()

            logger.info("[browser] Initializing new browser instance...")
            try:
                if self._playwright is None:
                    self._playwright = await async_playwright().start()
                self._browser = await self._playwright.chromium.launch(
                    headless=self.headless,
                    args=LAUNCH_ARGS,
                )
            except Exception as e:
                logger.error(f"[browser] Failed to launch browser: {e}")
                await self._dispose()
                raise BrowserUnavailableError(str(e)) from e

            return self._browser

    async def new_page(self, **kwargs) -> Page:
        """Open an isolated page. Caller must close it."""
        browser = await self.acquire()
        return await browser.new_page(**kwargs)

    async def close(self):
        async with self._lock:
            if self._browser is not None or self._playwright is not None:
                logger.info("[browser] Closing browser instance...")
            await self._dispose()

    async def _dispose(self):
        if self._browser is not None:
            try:
                await self._browser.close()
            except Exception as e:
                logger.debug(f"[browser] Error closing browser: {e}")
            self._browser = None
        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except Exception as e:
                logger.debug(f"[browser] Error stopping playwright: {e}")
            self._playwright = None
