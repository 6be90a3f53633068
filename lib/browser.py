"""Browser utilities for Playwright scraping.

Provides a shared browser that hands each harvest session its own context.
"""

from typing import List, Optional

from loguru import logger
from playwright.async_api import async_playwright, Browser, Playwright
from playwright.async_api import Error as PlaywrightError

from lib.harvest.config import HarvestConfig
from lib.harvest.port import PlaywrightPort, PortError


class BrowserPool:
    """One Chromium process, one isolated context + page per session."""

    def __init__(
        self,
        headless: bool = False,
        viewport_width: int = 1920,
        viewport_height: int = 1080,
        locale: str = "en-US",
    ):
        self.headless = headless
        self.viewport = {"width": viewport_width, "height": viewport_height}
        self.locale = locale
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._ports: List[PlaywrightPort] = []

    @classmethod
    def from_config(cls, config: HarvestConfig) -> "BrowserPool":
        return cls(
            headless=config.headless,
            viewport_width=config.viewport_width,
            viewport_height=config.viewport_height,
        )

    async def __aenter__(self):
        """Start Playwright and launch the browser."""
        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(headless=self.headless)
        logger.info(f"Browser launched (headless={self.headless})")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Close any ports still open, then the browser."""
        for port in self._ports:
            await port.close()
        self._ports = []
        if self._browser is not None:
            await self._browser.close()
        if self._playwright is not None:
            await self._playwright.stop()
        self._browser = None
        self._playwright = None

    @property
    def ports(self) -> List[PlaywrightPort]:
        """Ports handed out so far that are still open."""
        return [port for port in self._ports if not port.closed]

    async def open_port(self) -> PlaywrightPort:
        """Create a fresh context and page wrapped in a port."""
        if self._browser is None:
            raise RuntimeError("BrowserPool is not started; use 'async with BrowserPool()'")
        try:
            ctx = await self._browser.new_context(viewport=self.viewport, locale=self.locale)
            page = await ctx.new_page()
        except PlaywrightError as e:
            raise PortError(f"could not open browser page: {e}") from e

        port = PlaywrightPort(page, ctx)
        self._ports = [p for p in self._ports if not p.closed]
        self._ports.append(port)
        return port
