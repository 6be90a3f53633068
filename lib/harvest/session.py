"""Session runner.

Runs the fixed stage sequence for one query: build URL, acquire port,
navigate, wait for results, dismiss overlays, resolve challenge, paginate,
extract, export. Emits a checkpoint at every stage boundary, keeps a
heartbeat going and enforces the session deadline.
"""

import asyncio
import random
from datetime import date, datetime
from typing import Awaitable, Callable, Optional
from urllib.parse import urlencode

from loguru import logger

from lib.harvest.checkpoints import CheckpointStream, heartbeat
from lib.harvest.config import HarvestConfig, SiteLocators, load_locators
from lib.harvest.errors import DeadlineExceeded, ElementWaitTimeout, HarvestError, PortAcquisitionFailed
from lib.harvest.extractor import Extractor
from lib.harvest.interruptions import dismiss_overlays, resolve_challenge
from lib.harvest.models import DateWindow, Query, SessionOutcome, SessionStatus, Stage
from lib.harvest.navigation import navigate_with_retry
from lib.harvest.pagination import PaginationDriver
from lib.harvest.port import IPageInteractionPort, PortError
from lib.harvest.rate_limiter import RateLimiter
from lib.harvest.retry import RetryPolicy
from lib.harvest.sink import ISink, screenshot_path


PortFactory = Callable[[], Awaitable[IPageInteractionPort]]


def build_search_url(config: HarvestConfig, query: Query, window: DateWindow) -> str:
    """Search results URL for a query and date window."""
    params = {
        "ss": query.name,
        "checkin": window.check_in_str,
        "checkout": window.check_out_str,
        "group_adults": config.adults,
        "no_rooms": config.rooms,
        "group_children": config.children,
    }
    return f"{config.search_base_url}?{urlencode(params)}"


class SessionRunner:
    """Runs one query end to end.

    Usage:
        runner = SessionRunner(config, limiter, pool.open_port, CsvSink("data"))
        outcome = await runner.run(Query(name="Houston"))

    Stage failures raise a ``HarvestError`` tagged with the query. The
    session's port is closed on every exit path.
    """

    def __init__(
        self,
        config: HarvestConfig,
        limiter: RateLimiter,
        port_factory: PortFactory,
        sink: ISink,
        checkpoints: Optional[CheckpointStream] = None,
        locators: Optional[SiteLocators] = None,
        today: Callable[[], date] = date.today,
        clock: Callable[[], datetime] = datetime.now,
        rng: Optional[random.Random] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.config = config
        self.limiter = limiter
        self.checkpoints = checkpoints if checkpoints is not None else CheckpointStream(config.checkpoint_capacity)
        self.locators = locators if locators is not None else load_locators()
        self._port_factory = port_factory
        self._sink = sink
        self._today = today
        self._clock = clock
        self._rng = rng or random.Random()
        self._sleep = sleep

    async def run(self, query: Query) -> SessionOutcome:
        """Run every stage for ``query`` under the session deadline."""
        started_at = self._clock()
        self.checkpoints.emit(query.name, Stage.STARTING)
        logger.info(f"[{query.name}] Scraping started at: {started_at.isoformat()}")

        timeout = self.config.session_timeout_seconds
        try:
            return await asyncio.wait_for(self._run_stages(query, started_at), timeout=timeout)
        except asyncio.TimeoutError as e:
            error = DeadlineExceeded(timeout, query=query.name)
            self._record_failure(query, error)
            raise error from e
        except HarvestError as e:
            if e.query is None:
                e.query = query.name
            self._record_failure(query, e)
            raise
        except asyncio.CancelledError:
            logger.warning(f"[{query.name}] Session cancelled")
            raise

    async def _run_stages(self, query: Query, started_at: datetime) -> SessionOutcome:
        config = self.config
        locators = self.locators
        label = query.name

        window = DateWindow.starting(self._today(), config.checkin_offset_days, config.nights)
        url = build_search_url(config, query, window)
        logger.info(f"[{label}] Search URL: {url}")
        self.checkpoints.emit(label, Stage.URL_CONSTRUCTED)

        try:
            port = await self._port_factory()
        except PortError as e:
            raise PortAcquisitionFailed(str(e), query=label) from e
        try:
            self.checkpoints.emit(label, Stage.PORT_ACQUIRED)

            async with heartbeat(label, config.heartbeat_interval_seconds):
                policy = RetryPolicy(
                    max_attempts=config.navigation_attempts,
                    backoff_min=config.navigation_backoff_seconds[0],
                    backoff_max=config.navigation_backoff_seconds[1],
                    rng=self._rng,
                )
                await navigate_with_retry(
                    port, url, self.limiter, policy,
                    timeout_ms=config.navigation_timeout_ms,
                    sleep=self._sleep,
                    label=label,
                )
                self.checkpoints.emit(label, Stage.NAVIGATED)

                self.checkpoints.emit(label, Stage.WAITING_FOR_RESULTS)
                try:
                    await port.wait_for_visible(locators.card, config.results_timeout_ms)
                except PortError as e:
                    raise ElementWaitTimeout(locators.card, config.results_timeout_ms, query=label) from e
                await self._screenshot(port, query, "after_load")

                self.checkpoints.emit(label, Stage.DISMISSING_OVERLAYS)
                await dismiss_overlays(
                    port, locators.overlays,
                    click_timeout_ms=config.overlay_click_timeout_ms,
                    settle_seconds=config.overlay_settle_seconds,
                    sleep=self._sleep,
                    label=label,
                )

                self.checkpoints.emit(label, Stage.RESOLVING_CHALLENGE)
                await resolve_challenge(
                    port, locators.challenge_indicator, locators.challenge_resolved,
                    detect_timeout_ms=config.challenge_detect_timeout_ms,
                    solve_timeout_ms=config.challenge_solve_timeout_ms,
                    label=label,
                )

                self.checkpoints.emit(label, Stage.PAGINATING)
                pagination = await PaginationDriver(
                    port, self.limiter, locators,
                    max_iterations=config.max_pagination_iterations,
                    click_timeout_ms=config.load_more_timeout_ms,
                    settle_seconds=config.settle_seconds,
                    idle_timeout_ms=config.network_idle_timeout_ms,
                    rng=self._rng,
                    sleep=self._sleep,
                    label=label,
                ).run()
                await self._screenshot(port, query, "after_load_more")

                self.checkpoints.emit(label, Stage.EXTRACTING)
                records = await Extractor(port, locators, label=label).extract(window)
                logger.info(f"[{label}] Extracted {len(records)} hotels out of {pagination.expected} total properties")
                if len(records) < pagination.expected:
                    logger.warning(
                        f"[{label}] Not all properties were extracted. "
                        f"Expected {pagination.expected}, got {len(records)}"
                    )

                self.checkpoints.emit(label, Stage.EXPORTING)
                output_path = await asyncio.to_thread(self._sink.write, query, records)
        finally:
            await port.close()

        finished_at = self._clock()
        logger.success(f"[{label}] Scraping completed. Results saved to {output_path}")
        logger.info(f"[{label}] Scraping ended at: {finished_at.isoformat()}. Duration: {finished_at - started_at}")
        self.checkpoints.emit(label, Stage.COMPLETED)

        return SessionOutcome(
            query=label,
            status=SessionStatus.SUCCEEDED,
            records=len(records),
            expected=pagination.expected,
            output_path=str(output_path),
            started_at=started_at,
            finished_at=finished_at,
        )

    async def _screenshot(self, port: IPageInteractionPort, query: Query, label: str) -> None:
        """Best-effort full-page screenshot."""
        if not self.config.screenshots_enabled:
            return
        try:
            path = screenshot_path(self.config.screenshot_dir, query, label, self._clock())
            await port.screenshot(str(path))
            logger.debug(f"[{query.name}] Screenshot saved: {path}")
        except (PortError, OSError) as e:
            logger.warning(f"[{query.name}] Could not capture screenshot {label}: {e}")

    def _record_failure(self, query: Query, error: HarvestError) -> None:
        self.checkpoints.emit(query.name, Stage.FAILED)
        logger.error(f"[{query.name}] Session failed ({error.kind}): {error.message}")
