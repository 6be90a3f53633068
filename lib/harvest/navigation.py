"""Rate-limited navigation with retry."""

import asyncio
from typing import Awaitable, Callable, Optional

from loguru import logger

from lib.harvest.errors import NavigationFailed
from lib.harvest.port import IPageInteractionPort, PortError
from lib.harvest.rate_limiter import RateLimiter
from lib.harvest.retry import RetryPolicy


NAVIGATION_TIMEOUT_MS = 30000


async def navigate_with_retry(
    port: IPageInteractionPort,
    url: str,
    limiter: RateLimiter,
    policy: Optional[RetryPolicy] = None,
    timeout_ms: int = NAVIGATION_TIMEOUT_MS,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    label: str = "",
) -> None:
    """Navigate to ``url``, retrying port failures up to the policy bound.

    Every attempt waits for a rate limiter permit first. Port errors are the
    only failures retried; exhausting the attempts raises ``NavigationFailed``
    carrying the last cause.
    """
    policy = policy or RetryPolicy()
    prefix = f"[{label}] " if label else ""
    last_error: Optional[PortError] = None

    for attempt in policy.attempts():
        await limiter.wait()
        try:
            await port.navigate(url, timeout_ms)
            if attempt > 1:
                logger.info(f"{prefix}Navigation succeeded on attempt {attempt}")
            return
        except PortError as e:
            last_error = e
            logger.warning(f"{prefix}Navigation attempt {attempt}/{policy.max_attempts} failed: {e}")

        if policy.should_retry(attempt):
            delay = policy.backoff()
            logger.debug(f"{prefix}Retrying navigation in {delay:.1f}s")
            await sleep(delay)

    raise NavigationFailed(url, policy.max_attempts, last_error, query=label or None) from last_error
