"""Overlay dismissal and challenge resolution."""

import asyncio
from typing import Awaitable, Callable, Sequence

from loguru import logger

from lib.harvest.errors import ChallengeTimeout
from lib.harvest.port import IPageInteractionPort, PortError


OVERLAY_CLICK_TIMEOUT_MS = 5000
OVERLAY_SETTLE_SECONDS = 1.0
CHALLENGE_DETECT_TIMEOUT_MS = 5000
CHALLENGE_SOLVE_TIMEOUT_MS = 300000  # 5 minutes for a human to solve it


async def dismiss_overlays(
    port: IPageInteractionPort,
    locators: Sequence[str],
    click_timeout_ms: int = OVERLAY_CLICK_TIMEOUT_MS,
    settle_seconds: float = OVERLAY_SETTLE_SECONDS,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    label: str = "",
) -> int:
    """Best-effort click on each known overlay locator, in order.

    Missing overlays are the common case, so click failures are absorbed.
    Returns the number of overlays dismissed.
    """
    prefix = f"[{label}] " if label else ""
    dismissed = 0
    for locator in locators:
        try:
            await port.click(locator, click_timeout_ms)
        except PortError as e:
            logger.debug(f"{prefix}No overlay at {locator}: {e}")
            continue
        dismissed += 1
        logger.info(f"{prefix}Overlay dismissed: {locator}")
        await sleep(settle_seconds)
    return dismissed


async def resolve_challenge(
    port: IPageInteractionPort,
    indicator: str,
    resolved: str,
    detect_timeout_ms: int = CHALLENGE_DETECT_TIMEOUT_MS,
    solve_timeout_ms: int = CHALLENGE_SOLVE_TIMEOUT_MS,
    label: str = "",
) -> bool:
    """Wait for a human to solve a challenge if one is showing.

    Returns ``False`` when no challenge is detected, ``True`` once one is
    solved. Raises ``ChallengeTimeout`` when the solve window expires.
    """
    prefix = f"[{label}] " if label else ""
    try:
        await port.wait_for_visible(indicator, detect_timeout_ms)
    except PortError:
        return False

    logger.warning(f"{prefix}Challenge detected. Waiting up to {solve_timeout_ms // 1000}s for manual solve...")
    try:
        await port.wait_for_hidden(resolved, solve_timeout_ms)
    except PortError as e:
        raise ChallengeTimeout(solve_timeout_ms, query=label or None) from e

    logger.info(f"{prefix}Challenge solved")
    return True
