"""
Playwright browser owner for live page customization.

One browser and one context are shared by every page the server opens.
Only the page being customized stays open: opening another URL closes it.
"""

from typing import Optional

from playwright.async_api import (
    async_playwright,
    Browser,
    BrowserContext,
    Page,
    Playwright,
    Error as PlaywrightError,
    TimeoutError as PlaywrightTimeoutError,
)

from .config import settings
from .document import PlaywrightDocument
from .utils.logger import get_logger


logger = get_logger(__name__)


class BrowserController:
    """Lazily launched Chromium that hands out PlaywrightDocuments."""

    def __init__(self, headless: Optional[bool] = None, timeout_ms: Optional[int] = None):
        """
        Args:
            headless:   launch without a window (defaults to BROWSER_HEADLESS)
            timeout_ms: default navigation/evaluation timeout (defaults to BROWSER_TIMEOUT_MS)
        """
        self.headless = settings.BROWSER_HEADLESS if headless is None else headless
        self.timeout_ms = timeout_ms or settings.BROWSER_TIMEOUT_MS
        self._playwright: Optional[Playwright] = None
        self.browser: Optional[Browser] = None
        self.context: Optional[BrowserContext] = None
        self.page: Optional[Page] = None

    @property
    def running(self) -> bool:
        return self.browser is not None

    async def start(self) -> None:
        if self.running:
            return
        self._playwright = await async_playwright().start()
        try:
            self.browser = await self._playwright.chromium.launch(headless=self.headless)
            self.context = await self.browser.new_context()
        except PlaywrightError as e:
            logger.error(f"[Browser] Launch failed: {e}")
            await self._playwright.stop()
            self._playwright = None
            self.browser = None
            raise
        logger.info(f"[Browser] Chromium launched (headless={self.headless}, timeout={self.timeout_ms}ms)")

    async def stop(self) -> None:
        """Close the page, context, browser and driver; errors are logged."""
        for name, resource in (("page", self.page), ("context", self.context), ("browser", self.browser)):
            if resource is None:
                continue
            try:
                await resource.close()
            except PlaywrightError as e:
                logger.warning(f"[Browser] Closing {name} failed: {e}")
        if self._playwright is not None:
            await self._playwright.stop()

        self.page = self.context = self.browser = None
        self._playwright = None
        logger.info("[Browser] Stopped")

    async def ensure_started(self) -> None:
        if not self.running:
            logger.info("[Browser] First page requested; launching")
            await self.start()

    async def open_page(self, url: str) -> PlaywrightDocument:
        """
        Load *url* in a fresh page, closing the one customized before.

        A bare host gets an ``https://`` scheme.

        Returns:
            PlaywrightDocument bound to the loaded page

        Raises:
            playwright TimeoutError / Error: if navigation fails
        """
        await self.ensure_started()
        if "://" not in url:
            url = f"https://{url}"

        if self.page is not None and not self.page.is_closed():
            await self.page.close()
        self.page = await self.context.new_page()
        self.page.set_default_timeout(self.timeout_ms)

        logger.info(f"[Browser] Navigating to {url}")
        try:
            await self.page.goto(url, wait_until="domcontentloaded")
        except PlaywrightTimeoutError:
            logger.error(f"[Browser] Timed out after {self.timeout_ms}ms loading {url}")
            raise
        except PlaywrightError as e:
            logger.error(f"[Browser] Navigation to {url} failed: {e}")
            raise

        return PlaywrightDocument(self.page)
