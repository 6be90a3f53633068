"""Pagination driver.

Clicks "load more" until the loaded card count reaches the page's declared
total, or the control disappears. The declared total is untrusted: the
loaded card count is what the driver tracks.
"""

import asyncio
import random
import re
from typing import Awaitable, Callable, Optional, Tuple

from loguru import logger
from pydantic import BaseModel

from lib.harvest.config import SiteLocators
from lib.harvest.errors import ExtractionStructuralFailure, PaginationExhausted
from lib.harvest.port import IPageInteractionPort, PortError
from lib.harvest.rate_limiter import RateLimiter


MAX_ITERATIONS = 700
LOAD_MORE_TIMEOUT_MS = 5000
SETTLE_SECONDS = (2.0, 5.0)
NETWORK_IDLE_TIMEOUT_MS = 30000

_COUNT_RE = re.compile(r"\d{1,3}(?:[,.]\d{3})+(?!\d)|\d+")


class StopReason:
    TOTAL_REACHED = "total_reached"
    LOAD_MORE_UNAVAILABLE = "load_more_unavailable"


class PaginationResult(BaseModel):
    """Where pagination stopped."""
    expected: int
    loaded: int
    declared_total: Optional[int] = None
    iterations: int
    load_more_clicks: int = 0
    reason: str


def parse_declared_total(text: Optional[str]) -> Optional[int]:
    """Parse the first count in a header like "Houston: 1,234 properties found".

    Returns ``None`` when no number is present.
    """
    if not text:
        return None
    match = _COUNT_RE.search(text)
    if not match:
        return None
    digits = re.sub(r"\D", "", match.group(0))
    return int(digits) if digits else None


class PaginationDriver:
    """Convergence loop over (loaded, declared_total, attempt)."""

    def __init__(
        self,
        port: IPageInteractionPort,
        limiter: RateLimiter,
        locators: SiteLocators,
        max_iterations: int = MAX_ITERATIONS,
        click_timeout_ms: int = LOAD_MORE_TIMEOUT_MS,
        settle_seconds: Tuple[float, float] = SETTLE_SECONDS,
        idle_timeout_ms: int = NETWORK_IDLE_TIMEOUT_MS,
        rng: Optional[random.Random] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        label: str = "",
    ):
        self._port = port
        self._limiter = limiter
        self._locators = locators
        self.max_iterations = max_iterations
        self.click_timeout_ms = click_timeout_ms
        self.settle_seconds = settle_seconds
        self.idle_timeout_ms = idle_timeout_ms
        self._rng = rng or random.Random()
        self._sleep = sleep
        self._label = label
        self._prefix = f"[{label}] " if label else ""

    async def run(self) -> PaginationResult:
        declared: Optional[int] = None
        loaded = 0
        clicks = 0

        for attempt in range(1, self.max_iterations + 1):
            await self._limiter.wait()

            declared = await self._read_declared_total(declared)
            loaded = await self._count_loaded(loaded)
            logger.info(f"{self._prefix}Loaded {loaded} out of {declared if declared is not None else '?'} properties")

            if declared is not None and loaded >= declared:
                logger.info(f"{self._prefix}All {declared} properties loaded")
                return PaginationResult(
                    expected=declared,
                    loaded=loaded,
                    declared_total=declared,
                    iterations=attempt,
                    load_more_clicks=clicks,
                    reason=StopReason.TOTAL_REACHED,
                )

            try:
                await self._port.click(self._locators.load_more, self.click_timeout_ms)
            except PortError:
                logger.info(f"{self._prefix}No more 'load more' control after {attempt} attempts")
                if declared is not None and loaded < declared:
                    logger.warning(
                        f"{self._prefix}Discrepancy: page declared {declared} properties "
                        f"but only {loaded} could be loaded"
                    )
                return PaginationResult(
                    expected=loaded,
                    loaded=loaded,
                    declared_total=declared,
                    iterations=attempt,
                    load_more_clicks=clicks,
                    reason=StopReason.LOAD_MORE_UNAVAILABLE,
                )

            clicks += 1
            logger.debug(f"{self._prefix}Clicked 'load more' (attempt {attempt})")
            await self._settle()

        raise PaginationExhausted(self.max_iterations, loaded, declared, query=self._label or None)

    async def _read_declared_total(self, previous: Optional[int]) -> Optional[int]:
        """Best-effort header parse; keeps ``previous`` on any failure."""
        try:
            text = await self._port.text_of(self._locators.total_header)
        except PortError as e:
            logger.debug(f"{self._prefix}Could not read result header: {e}")
            return previous
        total = parse_declared_total(text)
        if total is None:
            logger.debug(f"{self._prefix}Could not parse result header: {text!r}")
            return previous
        return total

    async def _count_loaded(self, previous: int) -> int:
        """Count cards; the result never drops below ``previous``."""
        try:
            cards = await self._port.query_all(self._locators.card)
        except PortError as e:
            raise ExtractionStructuralFailure(
                f"could not count result cards: {e}", query=self._label or None
            ) from e
        count = len(cards)
        if count < previous:
            logger.warning(f"{self._prefix}Card count went down ({previous} -> {count}), keeping {previous}")
            return previous
        return count

    async def _settle(self) -> None:
        low, high = self.settle_seconds
        await self._sleep(self._rng.uniform(low, high))
        try:
            await self._port.wait_for_network_idle(self.idle_timeout_ms)
        except PortError as e:
            logger.warning(f"{self._prefix}Error waiting for network idle: {e}")
