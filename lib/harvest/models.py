"""Harvest Pydantic models."""

from datetime import date, datetime, timedelta
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


UNAVAILABLE = "N/A"
MULTI_VALUE_SEPARATOR = ", "

# (CSV header, record field) in output order.
CSV_COLUMNS = [
    ("Name", "name"),
    ("Price", "price"),
    ("CheckIn", "check_in"),
    ("CheckOut", "check_out"),
    ("Rating", "rating"),
    ("NumReviews", "num_reviews"),
    ("Address", "address"),
    ("Amenities", "amenities"),
    ("RoomType", "room_type"),
    ("Cancellation", "cancellation"),
    ("Distance", "distance"),
    ("PropertyType", "property_type"),
    ("StarRating", "star_rating"),
    ("BookingURL", "booking_url"),
    ("Photos", "photos"),
    ("GuestScoreBreak", "guest_score_break"),
    ("Description", "description"),
]
CSV_HEADER = [header for header, _ in CSV_COLUMNS]

# Fields filled from the session, not from the page.
CONTEXT_FIELDS = {"check_in", "check_out"}
MULTI_VALUE_FIELDS = {"amenities", "photos"}


class Stage:
    """Checkpoint stage names, in session order."""

    STARTING = "starting"
    URL_CONSTRUCTED = "url_constructed"
    PORT_ACQUIRED = "port_acquired"
    NAVIGATED = "navigated"
    WAITING_FOR_RESULTS = "waiting_for_results"
    DISMISSING_OVERLAYS = "dismissing_overlays"
    RESOLVING_CHALLENGE = "resolving_challenge"
    PAGINATING = "paginating"
    EXTRACTING = "extracting"
    EXPORTING = "exporting"
    COMPLETED = "completed"
    FAILED = "failed"


class SessionStatus:
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


class Query(BaseModel):
    """One harvesting target (a city)."""
    model_config = ConfigDict(frozen=True)

    name: str

    @property
    def slug(self) -> str:
        """File-name friendly form of the query."""
        return self.name.strip().replace(" ", "_")


class DateWindow(BaseModel):
    """Check-in/check-out dates for a session."""
    model_config = ConfigDict(frozen=True)

    check_in: date
    check_out: date

    @classmethod
    def starting(cls, today: date, offset_days: int = 1, nights: int = 1) -> "DateWindow":
        check_in = today + timedelta(days=offset_days)
        return cls(check_in=check_in, check_out=check_in + timedelta(days=nights))

    @property
    def check_in_str(self) -> str:
        return self.check_in.isoformat()

    @property
    def check_out_str(self) -> str:
        return self.check_out.isoformat()


class Checkpoint(BaseModel):
    """Stage marker emitted to the observability stream."""
    model_config = ConfigDict(frozen=True)

    query: str
    stage: str
    timestamp: datetime


class HotelRecord(BaseModel):
    """One harvested listing."""

    name: str = UNAVAILABLE
    price: str = UNAVAILABLE
    check_in: str = UNAVAILABLE
    check_out: str = UNAVAILABLE
    rating: str = UNAVAILABLE
    num_reviews: str = UNAVAILABLE
    address: str = UNAVAILABLE
    amenities: List[str] = Field(default_factory=list)
    room_type: str = UNAVAILABLE
    cancellation: str = UNAVAILABLE
    distance: str = UNAVAILABLE
    property_type: str = UNAVAILABLE
    star_rating: str = UNAVAILABLE
    booking_url: str = UNAVAILABLE
    photos: List[str] = Field(default_factory=list)
    guest_score_break: str = UNAVAILABLE
    description: str = UNAVAILABLE

    def to_row(self) -> List[str]:
        """Flatten to CSV cells in header order. Lists are joined here only."""
        row = []
        for _, field_name in CSV_COLUMNS:
            value = getattr(self, field_name)
            if isinstance(value, list):
                value = MULTI_VALUE_SEPARATOR.join(value)
            row.append(value)
        return row


class SessionOutcome(BaseModel):
    """Final result of one session."""

    query: str
    status: str
    error_kind: Optional[str] = None
    error_message: Optional[str] = None
    records: int = 0
    expected: Optional[int] = None
    output_path: Optional[str] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.started_at is None or self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds()


class RunSummary(BaseModel):
    """Aggregate of all session outcomes for one run."""

    outcomes: List[SessionOutcome] = Field(default_factory=list)
    fault: Optional[str] = None

    def _with_status(self, status: str) -> List[SessionOutcome]:
        return [o for o in self.outcomes if o.status == status]

    @property
    def succeeded(self) -> List[SessionOutcome]:
        return self._with_status(SessionStatus.SUCCEEDED)

    @property
    def failed(self) -> List[SessionOutcome]:
        return self._with_status(SessionStatus.FAILED)

    @property
    def cancelled(self) -> List[SessionOutcome]:
        return self._with_status(SessionStatus.CANCELLED)

    @property
    def ok(self) -> bool:
        return self.fault is None and len(self.succeeded) == len(self.outcomes)

    def get(self, query: str) -> Optional[SessionOutcome]:
        return next((o for o in self.outcomes if o.query == query), None)
