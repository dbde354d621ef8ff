# ===== IMPORTS & DEPENDENCIES =====
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from playwright.async_api import async_playwright, Error as PlaywrightError, Page, TimeoutError

from freegames.config import (
    BROWSER_ARGS, BROWSER_HEADLESS, BROWSER_USER_AGENT, BROWSER_VIEWPORT,
    CHILD_PAGE_SETTLE_S, NAVIGATION_TIMEOUT_MS, RENDER_TIMEOUT_S
)
from freegames.core.errors import RenderTimeoutError

# ===== CONFIGURATION & CONSTANTS =====
logger = logging.getLogger(__name__)


# ===== CORE BUSINESS LOGIC =====
class PageHandle:
    """
    The browser capability scrapers are written against: navigate, wait for
    content, snapshot HTML, scroll, click and visit child pages. Tests supply
    a fake with the same methods.
    """

    def __init__(self, page: Page):
        self._page = page

    @property
    def url(self) -> str:
        return self._page.url

    async def goto(self, url: str) -> None:
        logger.info(f"🚀 [{self.__class__.__name__}] Navigating to {url}")
        try:
            await self._page.goto(url, wait_until='domcontentloaded', timeout=NAVIGATION_TIMEOUT_MS)
        except TimeoutError as e:
            raise RenderTimeoutError('document', NAVIGATION_TIMEOUT_MS / 1000, url) from e

    async def wait_for(self, selector: str, timeout: float = RENDER_TIMEOUT_S) -> None:
        """Waits until `selector` is attached, raising RenderTimeoutError after `timeout` seconds."""
        try:
            await self._page.wait_for_selector(selector, state='attached', timeout=timeout * 1000)
        except TimeoutError as e:
            raise RenderTimeoutError(selector, timeout, self._page.url) from e

    async def content(self) -> str:
        return await self._page.content()

    async def scroll_height(self) -> int:
        return await self._page.evaluate("() => document.documentElement.scrollHeight")

    async def scroll_to_bottom(self) -> int:
        """Scrolls to the bottom of the document and returns the scroll height afterwards."""
        await self._page.evaluate("() => window.scrollTo(0, document.documentElement.scrollHeight)")
        return await self.scroll_height()

    async def click(self, selector: str) -> bool:
        """Clicks the first element matching `selector`; False when it is absent or disabled."""
        locator = self._page.locator(selector).first
        try:
            if await locator.count() == 0:
                return False
            if await locator.is_disabled():
                return False
            classes = await locator.get_attribute('class') or ''
            if 'disabled' in classes:
                return False
            await locator.scroll_into_view_if_needed(timeout=5000)
            await locator.click(timeout=5000)
            return True
        except (TimeoutError, PlaywrightError) as e:
            logger.warning(f"⚠️ [{self.__class__.__name__}] Could not click '{selector}': {e}")
            return False

    async def pause(self, seconds: float) -> None:
        await asyncio.sleep(seconds)

    @asynccontextmanager
    async def child_page(self, url: str, settle: float = CHILD_PAGE_SETTLE_S) -> AsyncIterator["PageHandle"]:
        """Opens `url` in a new tab of the same context and always closes it again."""
        child = await self._page.context.new_page()
        try:
            handle = PageHandle(child)
            await handle.goto(url)
            await handle.pause(settle)
            yield handle
        finally:
            await child.close()
            logger.debug(f"[{self.__class__.__name__}] Closed child page {url}")


class BrowserSession:
    """
    Owns one headless Chromium for the duration of a platform scrape.
    Use as ``async with BrowserSession() as browser: browser.page...``; the
    browser and the Playwright driver are released on every exit path.
    """

    def __init__(self, headless: bool = BROWSER_HEADLESS, user_agent: str = BROWSER_USER_AGENT):
        self.headless = headless
        self.user_agent = user_agent
        self._playwright = None
        self._browser = None
        self._context = None
        self.page: Optional[PageHandle] = None

    async def __aenter__(self) -> "BrowserSession":
        self._playwright = await async_playwright().start()
        try:
            self._browser = await self._playwright.chromium.launch(headless=self.headless, args=BROWSER_ARGS)
            self._context = await self._browser.new_context(user_agent=self.user_agent, viewport=BROWSER_VIEWPORT)
            self.page = PageHandle(await self._context.new_page())
        except BaseException:
            await self.close()
            raise
        logger.debug(f"[{self.__class__.__name__}] Browser launched (headless={self.headless}).")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        if self._context is not None:
            try:
                await self._context.close()
            except PlaywrightError as e:
                logger.warning(f"⚠️ [{self.__class__.__name__}] Error closing browser context: {e}")
            self._context = None
        if self._browser is not None:
            try:
                await self._browser.close()
            except PlaywrightError as e:
                logger.warning(f"⚠️ [{self.__class__.__name__}] Error closing browser: {e}")
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None
            logger.debug(f"[{self.__class__.__name__}] Playwright browser closed.")
        self.page = None
