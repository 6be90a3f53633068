"""Orchestrator - run many query sessions with bounded concurrency."""

import asyncio
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional

from loguru import logger

from lib.harvest.errors import ErrorKind, HarvestError
from lib.harvest.models import Query, RunSummary, SessionOutcome, SessionStatus
from lib.harvest.session import SessionRunner


DEFAULT_CONCURRENCY = 3


class FailurePolicy:
    """How one session's failure affects its siblings."""

    # Session errors are recorded; only unexpected faults cancel siblings.
    ISOLATE = "isolate"
    # First failure of any kind cancels every sibling.
    CANCEL_ON_ERROR = "cancel_on_error"


class Orchestrator:
    """
    Fans queries out to sessions, at most ``concurrency`` at a time.

    Usage:
        orchestrator = Orchestrator(runner, concurrency=3)
        summary = await orchestrator.run([Query(name="Houston"), Query(name="Dallas")])

        # from a signal handler
        orchestrator.request_shutdown()
    """

    def __init__(
        self,
        runner: SessionRunner,
        concurrency: int = DEFAULT_CONCURRENCY,
        policy: str = FailurePolicy.ISOLATE,
        clock: Callable[[], datetime] = datetime.now,
    ):
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        if policy not in (FailurePolicy.ISOLATE, FailurePolicy.CANCEL_ON_ERROR):
            raise ValueError(f"unknown failure policy: {policy}")
        self.runner = runner
        self.concurrency = concurrency
        self.policy = policy
        self._clock = clock

        self._tasks: List[asyncio.Task] = []
        self._fault: Optional[str] = None
        self._shutdown_requested = False
        self.active = 0
        self.peak_active = 0

    @property
    def shutdown_requested(self) -> bool:
        return self._shutdown_requested

    async def run(self, queries: Iterable[Query]) -> RunSummary:
        """Run every query and wait for all sessions to finish.

        Cancelled sessions are reported with status ``cancelled``. If the
        calling task is cancelled, every session is cancelled and the
        cancellation propagates.
        """
        queries = list(queries)
        semaphore = asyncio.Semaphore(self.concurrency)
        outcomes: Dict[int, SessionOutcome] = {}

        self._fault = None
        self._shutdown_requested = False
        self.active = 0
        self.peak_active = 0

        logger.info(f"Starting {len(queries)} sessions (concurrency={self.concurrency}, policy={self.policy})")

        self._tasks = [
            asyncio.create_task(
                self._run_session(index, query, semaphore, outcomes),
                name=f"session:{query.name}",
            )
            for index, query in enumerate(queries)
        ]

        try:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        except asyncio.CancelledError:
            logger.warning("Harvest run cancelled, stopping all sessions")
            self._cancel_pending()
            await asyncio.gather(*self._tasks, return_exceptions=True)
            raise
        finally:
            self._tasks = []

        # A task cancelled before its first step never records an outcome.
        for index, query in enumerate(queries):
            if index not in outcomes:
                outcomes[index] = self._outcome(
                    query, SessionStatus.CANCELLED, self._clock(), ErrorKind.CANCELLED, "session cancelled"
                )

        summary = RunSummary(
            outcomes=[outcomes[index] for index in range(len(queries))],
            fault=self._fault,
        )
        logger.info(
            f"Harvest finished: {len(summary.succeeded)} succeeded, "
            f"{len(summary.failed)} failed, {len(summary.cancelled)} cancelled"
        )
        return summary

    def request_shutdown(self) -> None:
        """Cancel every in-flight and queued session."""
        if self._shutdown_requested:
            return
        self._shutdown_requested = True
        logger.warning("Shutdown requested, cancelling sessions")
        self._cancel_pending()

    async def _run_session(
        self,
        index: int,
        query: Query,
        semaphore: asyncio.Semaphore,
        outcomes: Dict[int, SessionOutcome],
    ) -> None:
        started_at = self._clock()
        try:
            async with semaphore:
                self.active += 1
                self.peak_active = max(self.peak_active, self.active)
                try:
                    outcomes[index] = await self.runner.run(query)
                finally:
                    self.active -= 1
        except asyncio.CancelledError:
            outcomes[index] = self._outcome(
                query, SessionStatus.CANCELLED, started_at, ErrorKind.CANCELLED, "session cancelled"
            )
            raise
        except HarvestError as e:
            outcomes[index] = self._outcome(
                query, SessionStatus.FAILED, started_at, e.kind, e.message, expected_error=e.expected
            )
            if self.policy == FailurePolicy.CANCEL_ON_ERROR:
                self._abort(query, e)
        except Exception as e:
            logger.exception(f"[{query.name}] Unexpected error: {e}")
            outcomes[index] = self._outcome(query, SessionStatus.FAILED, started_at, ErrorKind.UNEXPECTED, str(e))
            self._abort(query, e)

    def _abort(self, query: Query, error: Exception) -> None:
        """Record the first fault and cancel every other session."""
        if self._fault is None:
            self._fault = f"[{query.name}] {type(error).__name__}: {getattr(error, 'message', error)}"
            logger.error(f"Cancelling remaining sessions after failure in {query.name}")
        self._cancel_pending()

    def _cancel_pending(self) -> None:
        current = asyncio.current_task()
        for task in self._tasks:
            if task is not current and not task.done():
                task.cancel()

    def _outcome(
        self,
        query: Query,
        status: str,
        started_at: datetime,
        error_kind: str,
        error_message: str,
        expected_error: bool = False,
    ) -> SessionOutcome:
        if status == SessionStatus.FAILED:
            level = "WARNING" if expected_error else "ERROR"
            logger.log(level, f"[{query.name}] Session {status}: {error_kind}")
        return SessionOutcome(
            query=query.name,
            status=status,
            error_kind=error_kind,
            error_message=error_message,
            started_at=started_at,
            finished_at=self._clock(),
        )
