"""Page interaction port.

The harvest core only talks to the page through ``IPageInteractionPort``.
``PlaywrightPort`` is the production adapter over a Playwright page that
owns its own browser context.
"""

from typing import Any, List, Optional, Protocol, Union, runtime_checkable

from loguru import logger
from playwright.async_api import BrowserContext, ElementHandle, Page
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError


class PortError(Exception):
    """A page interaction failed (transport, rendering, missing element)."""


class PortTimeoutError(PortError):
    """A page interaction did not complete within its timeout."""


@runtime_checkable
class IPageInteractionPort(Protocol):
    """Page interaction interface, owned by exactly one session."""
    async def navigate(self, url: str, timeout_ms: int) -> None: ...
    async def wait_for_visible(self, locator: str, timeout_ms: int) -> None: ...
    async def wait_for_hidden(self, locator: str, timeout_ms: int) -> None: ...
    async def click(self, locator: str, timeout_ms: int) -> None: ...
    async def query_all(self, locator: str, within: Optional[Any] = None) -> List[Any]: ...
    async def text_of(self, target: Union[str, Any]) -> Optional[str]: ...
    async def attribute_of(self, handle: Any, name: str) -> Optional[str]: ...
    async def screenshot(self, path: str) -> None: ...
    async def wait_for_network_idle(self, timeout_ms: int) -> None: ...
    async def close(self) -> None: ...


def _translate(exc: PlaywrightError) -> PortError:
    if isinstance(exc, PlaywrightTimeoutError):
        return PortTimeoutError(str(exc))
    return PortError(str(exc))


class PlaywrightPort(IPageInteractionPort):
    """Playwright implementation of the page interaction port."""

    def __init__(self, page: Page, context: Optional[BrowserContext] = None):
        self._page = page
        self._context = context
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def navigate(self, url: str, timeout_ms: int) -> None:
        try:
            await self._page.goto(url, wait_until="networkidle", timeout=timeout_ms)
        except PlaywrightError as e:
            raise _translate(e) from e

    async def wait_for_visible(self, locator: str, timeout_ms: int) -> None:
        try:
            await self._page.wait_for_selector(locator, state="visible", timeout=timeout_ms)
        except PlaywrightError as e:
            raise _translate(e) from e

    async def wait_for_hidden(self, locator: str, timeout_ms: int) -> None:
        try:
            await self._page.wait_for_selector(locator, state="hidden", timeout=timeout_ms)
        except PlaywrightError as e:
            raise _translate(e) from e

    async def click(self, locator: str, timeout_ms: int) -> None:
        try:
            await self._page.click(locator, timeout=timeout_ms)
        except PlaywrightError as e:
            raise _translate(e) from e

    async def query_all(self, locator: str, within: Optional[ElementHandle] = None) -> List[ElementHandle]:
        root = within if within is not None else self._page
        try:
            return await root.query_selector_all(locator)
        except PlaywrightError as e:
            raise _translate(e) from e

    async def text_of(self, target: Union[str, ElementHandle]) -> Optional[str]:
        try:
            if isinstance(target, str):
                return await self._page.inner_text(target)
            return await target.text_content()
        except PlaywrightError as e:
            raise _translate(e) from e

    async def attribute_of(self, handle: ElementHandle, name: str) -> Optional[str]:
        try:
            return await handle.get_attribute(name)
        except PlaywrightError as e:
            raise _translate(e) from e

    async def screenshot(self, path: str) -> None:
        try:
            await self._page.screenshot(path=path, full_page=True)
        except PlaywrightError as e:
            raise _translate(e) from e

    async def wait_for_network_idle(self, timeout_ms: int) -> None:
        try:
            await self._page.wait_for_load_state("networkidle", timeout=timeout_ms)
        except PlaywrightError as e:
            raise _translate(e) from e

    async def close(self) -> None:
        """Close the page and its context. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        try:
            await self._page.close()
        except PlaywrightError as e:
            logger.debug(f"Error closing page: {e}")
        if self._context is not None:
            try:
                await self._context.close()
            except PlaywrightError as e:
                logger.debug(f"Error closing browser context: {e}")
