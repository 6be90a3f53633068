"""Shared fixtures for harvest tests: a scriptable page port and a fake clock."""

import asyncio
from typing import Any, Dict, List, Optional, Set

import pytest

from lib.harvest.config import BOOKING_LOCATORS, HarvestConfig
from lib.harvest.port import IPageInteractionPort, PortError, PortTimeoutError


class FakeElement:
    """Stand-in for an element handle."""

    def __init__(
        self,
        text: Optional[str] = None,
        attrs: Optional[Dict[str, str]] = None,
        children: Optional[Dict[str, List["FakeElement"]]] = None,
    ):
        self.text = text
        self.attrs = attrs or {}
        self.children = children or {}


class FakePort(IPageInteractionPort):
    """Scriptable page port.

    - ``visible``: locators that wait_for_visible finds; others time out.
    - ``hidden_timeouts``: locators whose wait_for_hidden times out.
    - ``click_budget``: successful clicks left per locator; others time out.
    - ``elements``: page-level query_all results per locator. A list of
      lists is consumed one entry per call, the last entry repeating.
    - ``texts``: page-level text_of results per locator, same consumption.
    - ``navigate_failures``: number of navigate calls that fail first.
    - ``navigate_blocks``: navigate never returns (until cancelled).
    """

    def __init__(self):
        self.visible: Set[str] = set()
        self.hidden_timeouts: Set[str] = set()
        self.click_budget: Dict[str, int] = {}
        self.elements: Dict[str, List[List[Any]]] = {}
        self.texts: Dict[str, List[Optional[str]]] = {}
        self.query_errors: Set[str] = set()
        self.navigate_failures = 0
        self.navigate_blocks = False
        self.screenshot_error: Optional[Exception] = None

        self.calls: List[tuple] = []
        self.clicks: List[str] = []
        self.screenshots: List[str] = []
        self.close_count = 0

    @property
    def closed(self) -> bool:
        return self.close_count > 0

    def set_cards(self, *pages: List[Any]) -> None:
        self.elements[BOOKING_LOCATORS.card] = list(pages)

    @staticmethod
    def _next(script: List[Any]) -> Any:
        if len(script) > 1:
            return script.pop(0)
        return script[0]

    async def navigate(self, url: str, timeout_ms: int) -> None:
        self.calls.append(("navigate", url))
        if self.navigate_blocks:
            await asyncio.Event().wait()
        if self.navigate_failures > 0:
            self.navigate_failures -= 1
            raise PortTimeoutError(f"timeout navigating to {url}")

    async def wait_for_visible(self, locator: str, timeout_ms: int) -> None:
        self.calls.append(("wait_for_visible", locator))
        if locator not in self.visible:
            raise PortTimeoutError(f"{locator} not visible")

    async def wait_for_hidden(self, locator: str, timeout_ms: int) -> None:
        self.calls.append(("wait_for_hidden", locator))
        if locator in self.hidden_timeouts:
            raise PortTimeoutError(f"{locator} still visible")

    async def click(self, locator: str, timeout_ms: int) -> None:
        self.calls.append(("click", locator))
        remaining = self.click_budget.get(locator, 0)
        if remaining <= 0:
            raise PortTimeoutError(f"{locator} not clickable")
        self.click_budget[locator] = remaining - 1
        self.clicks.append(locator)

    async def query_all(self, locator: str, within: Optional[Any] = None) -> List[Any]:
        if within is not None:
            if locator in self.query_errors:
                raise PortError(f"query failed: {locator}")
            return list(within.children.get(locator, []))
        self.calls.append(("query_all", locator))
        if locator in self.query_errors:
            raise PortError(f"query failed: {locator}")
        script = self.elements.get(locator)
        if not script:
            return []
        return list(self._next(script))

    async def text_of(self, target: Any) -> Optional[str]:
        if isinstance(target, FakeElement):
            return target.text
        script = self.texts.get(target)
        if not script:
            raise PortTimeoutError(f"{target} not found")
        return self._next(script)

    async def attribute_of(self, handle: Any, name: str) -> Optional[str]:
        return handle.attrs.get(name)

    async def screenshot(self, path: str) -> None:
        if self.screenshot_error:
            raise self.screenshot_error
        self.screenshots.append(path)

    async def wait_for_network_idle(self, timeout_ms: int) -> None:
        self.calls.append(("wait_for_network_idle", None))

    async def close(self) -> None:
        self.close_count += 1


class FakeClock:
    """Monotonic clock whose sleep advances time instantly."""

    def __init__(self, start: float = 0.0):
        self.now = start
        self.sleeps: List[float] = []

    def time(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


def make_card(
    name: str = "Hotel",
    price: Optional[str] = "$100",
    extra: Optional[Dict[str, List[FakeElement]]] = None,
) -> FakeElement:
    """Card with a title and optional price, plus any extra child locators."""
    fields = BOOKING_LOCATORS.fields
    children = {fields["name"].locator: [FakeElement(text=name)]}
    if price is not None:
        children[fields["price"].locator] = [FakeElement(text=price)]
    children.update(extra or {})
    return FakeElement(children=children)


@pytest.fixture
def fake_port() -> FakePort:
    return FakePort()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fast_config(tmp_path) -> HarvestConfig:
    """Config with output under tmp_path and no real waiting."""
    return HarvestConfig(
        rate_interval_seconds=0,
        heartbeat_interval_seconds=3600,
        settle_seconds=(0.0, 0.0),
        navigation_backoff_seconds=(0.0, 0.0),
        output_dir=str(tmp_path / "data"),
        screenshot_dir=str(tmp_path / "screenshots"),
        log_dir=None,
    )


@pytest.fixture
def element_factory():
    return FakeElement


@pytest.fixture
def card_factory():
    return make_card


@pytest.fixture
def port_maker():
    return FakePort
