"""Harvest shared library.

Rate-limited, concurrent collection of hotel search results: session
runner, orchestrator, pagination, extraction and CSV export.
"""

from lib.harvest.models import (
    Query,
    DateWindow,
    Checkpoint,
    HotelRecord,
    SessionOutcome,
    RunSummary,
    Stage,
    SessionStatus,
    CSV_HEADER,
    UNAVAILABLE,
)
from lib.harvest.errors import (
    ErrorKind,
    HarvestError,
    PortAcquisitionFailed,
    NavigationFailed,
    ElementWaitTimeout,
    ChallengeTimeout,
    PaginationExhausted,
    ExtractionStructuralFailure,
    SinkFailure,
    DeadlineExceeded,
)
from lib.harvest.config import (
    HarvestConfig,
    SiteLocators,
    FieldLocator,
    BOOKING_LOCATORS,
    DEFAULT_CITIES,
    load_locators,
)
from lib.harvest.port import IPageInteractionPort, PlaywrightPort, PortError, PortTimeoutError
from lib.harvest.rate_limiter import RateLimiter
from lib.harvest.retry import RetryPolicy
from lib.harvest.checkpoints import CheckpointStream, heartbeat
from lib.harvest.pagination import PaginationDriver, PaginationResult, parse_declared_total
from lib.harvest.extractor import Extractor
from lib.harvest.sink import ISink, CsvSink
from lib.harvest.session import SessionRunner, build_search_url
from lib.harvest.orchestrator import Orchestrator, FailurePolicy
from lib.harvest.run_log import RunLogger

__all__ = [
    # Models
    "Query",
    "DateWindow",
    "Checkpoint",
    "HotelRecord",
    "SessionOutcome",
    "RunSummary",
    "Stage",
    "SessionStatus",
    "CSV_HEADER",
    "UNAVAILABLE",
    # Errors
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
    # Config
    "HarvestConfig",
    "SiteLocators",
    "FieldLocator",
    "BOOKING_LOCATORS",
    "DEFAULT_CITIES",
    "load_locators",
    # Page interaction
    "IPageInteractionPort",
    "PlaywrightPort",
    "PortError",
    "PortTimeoutError",
    # Session machinery
    "RateLimiter",
    "RetryPolicy",
    "CheckpointStream",
    "heartbeat",
    "PaginationDriver",
    "PaginationResult",
    "parse_declared_total",
    "Extractor",
    "ISink",
    "CsvSink",
    "SessionRunner",
    "build_search_url",
    "Orchestrator",
    "FailurePolicy",
    "RunLogger",
]
