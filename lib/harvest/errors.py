"""Harvest error taxonomy.

Every stage failure of a session is raised as one of these. ``kind`` is the
stable identifier used in logs, outcomes and the run summary. ``expected``
marks operational outcomes (slow site, unsolved challenge, endless
pagination) as opposed to something being broken.
"""

from typing import Optional


class ErrorKind:
    """Stable error identifiers."""

    PORT_ACQUISITION_FAILED = "port_acquisition_failed"
    NAVIGATION_FAILED = "navigation_failed"
    ELEMENT_WAIT_TIMEOUT = "element_wait_timeout"
    CHALLENGE_TIMEOUT = "challenge_timeout"
    PAGINATION_EXHAUSTED = "pagination_exhausted"
    EXTRACTION_STRUCTURAL_FAILURE = "extraction_structural_failure"
    SINK_FAILURE = "sink_failure"
    DEADLINE_EXCEEDED = "deadline_exceeded"
    CANCELLED = "cancelled"
    UNEXPECTED = "unexpected"


class HarvestError(Exception):
    """Base class for session stage failures."""

    kind: str = ErrorKind.UNEXPECTED
    expected: bool = False

    def __init__(self, message: str, *, query: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.query = query

    def __str__(self) -> str:
        if self.query:
            return f"[{self.query}] {self.message}"
        return self.message


class PortAcquisitionFailed(HarvestError):
    """No page could be opened for the session."""

    kind = ErrorKind.PORT_ACQUISITION_FAILED


class NavigationFailed(HarvestError):
    """Navigation retries exhausted."""

    kind = ErrorKind.NAVIGATION_FAILED

    def __init__(
        self,
        url: str,
        attempts: int,
        cause: Optional[BaseException] = None,
        *,
        query: Optional[str] = None,
    ):
        detail = f": {cause}" if cause else ""
        super().__init__(f"navigation to {url} failed after {attempts} attempts{detail}", query=query)
        self.url = url
        self.attempts = attempts
        self.cause = cause


class ElementWaitTimeout(HarvestError):
    """A required element never became visible."""

    kind = ErrorKind.ELEMENT_WAIT_TIMEOUT

    def __init__(self, locator: str, timeout_ms: int, *, query: Optional[str] = None):
        super().__init__(f"{locator} not visible after {timeout_ms}ms", query=query)
        self.locator = locator
        self.timeout_ms = timeout_ms


class ChallengeTimeout(HarvestError):
    """Human-gated challenge was not resolved in time. Never retried."""

    kind = ErrorKind.CHALLENGE_TIMEOUT
    expected = True

    def __init__(self, timeout_ms: int, *, query: Optional[str] = None):
        super().__init__(f"challenge not solved within {timeout_ms}ms", query=query)
        self.timeout_ms = timeout_ms


class PaginationExhausted(HarvestError):
    """Iteration ceiling reached without convergence."""

    kind = ErrorKind.PAGINATION_EXHAUSTED
    expected = True

    def __init__(
        self,
        iterations: int,
        loaded: int,
        declared_total: Optional[int],
        *,
        query: Optional[str] = None,
    ):
        super().__init__(
            f"reached {iterations} iterations without loading all properties "
            f"(loaded={loaded}, declared={declared_total})",
            query=query,
        )
        self.iterations = iterations
        self.loaded = loaded
        self.declared_total = declared_total


class ExtractionStructuralFailure(HarvestError):
    """Result cards could not be enumerated at all."""

    kind = ErrorKind.EXTRACTION_STRUCTURAL_FAILURE


class SinkFailure(HarvestError):
    """Persisting the records failed."""

    kind = ErrorKind.SINK_FAILURE


class DeadlineExceeded(HarvestError):
    """The session ran past its deadline."""

    kind = ErrorKind.DEADLINE_EXCEEDED
    expected = True

    def __init__(self, timeout_seconds: float, *, query: Optional[str] = None):
        super().__init__(f"session timed out after {timeout_seconds:g}s", query=query)
        self.timeout_seconds = timeout_seconds


__all__ = [
    "ErrorKind",
    "HarvestError",
    "PortAcquisitionFailed",
    "NavigationFailed",
    "ElementWaitTimeout",
    "ChallengeTimeout",
    "PaginationExhausted",
    "ExtractionStructuralFailure",
    "SinkFailure",
    "DeadlineExceeded",
]
