"""
Harvest configuration models.

Everything tunable lives here: timeouts, concurrency, rate limit, output
locations and the page locators. Values come from defaults, ``HARVEST_*``
environment variables (``.env`` is loaded) or a JSON locator file.
"""

import json
import os
from typing import Dict, List, Optional, Tuple

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator, model_validator

from lib.harvest.models import CONTEXT_FIELDS, MULTI_VALUE_FIELDS, HotelRecord


DEFAULT_CITIES = [
    "Houston", "San Antonio", "Dallas", "Austin", "Fort Worth",
    "El Paso", "Arlington", "Corpus Christi", "Plano", "Laredo",
]


class FieldLocator(BaseModel):
    """How to read one record field from a result card."""

    # Locator relative to the card
    locator: str

    # Read this attribute instead of the text content
    attribute: Optional[str] = None

    # Collect every match instead of the first one
    multiple: bool = False


class SiteLocators(BaseModel):
    """Page locators for one search results site."""

    card: str = Field(..., description="One result card")
    total_header: str = Field(..., description="Header carrying the declared result count")
    load_more: str = Field(..., description="Control that loads more results")
    overlays: List[str] = Field(default_factory=list, description="Dismissable overlays, tried in order")
    challenge_indicator: str = Field(..., description="Visible while a challenge is shown")
    challenge_resolved: str = Field(..., description="Hidden once the challenge is solved")
    fields: Dict[str, FieldLocator] = Field(default_factory=dict, description="Record field -> locator")

    @field_validator("fields")
    @classmethod
    def _known_fields(cls, fields: Dict[str, FieldLocator]) -> Dict[str, FieldLocator]:
        known = set(HotelRecord.model_fields) - CONTEXT_FIELDS
        unknown = sorted(set(fields) - known)
        if unknown:
            raise ValueError(f"unknown record fields: {', '.join(unknown)}")
        for name, field_locator in fields.items():
            if name in MULTI_VALUE_FIELDS and not field_locator.multiple:
                raise ValueError(f"{name} must be a multiple locator")
            if name not in MULTI_VALUE_FIELDS and field_locator.multiple:
                raise ValueError(f"{name} is a single-valued field")
        return fields

    @classmethod
    def from_file(cls, path: str) -> "SiteLocators":
        """Load locators from a JSON file."""
        with open(path, "r", encoding="utf-8") as f:
            return cls.model_validate(json.load(f))


BOOKING_LOCATORS = SiteLocators(
    card='div[data-testid="property-card"]',
    total_header='h1[data-testid="header-title"]',
    load_more='button[data-testid="load-more-results-button"]',
    overlays=[
        'button[aria-label="Dismiss sign-in info."]',
        'button[aria-label="Close"]',
        "#onetrust-accept-btn-handler",
    ],
    challenge_indicator='iframe[src*="recaptcha"]',
    challenge_resolved="#recaptcha-verify-button",
    fields={
        "name": FieldLocator(locator='div[data-testid="title"]'),
        "price": FieldLocator(locator='span[data-testid="price-and-discounted-price"]'),
        "rating": FieldLocator(locator='div[data-testid="review-score"]'),
        "num_reviews": FieldLocator(locator='div[data-testid="review-score"] ~ div'),
        "address": FieldLocator(locator='span[data-testid="address"]'),
        "room_type": FieldLocator(locator='span[data-testid="room-info"]'),
        "cancellation": FieldLocator(locator='span[data-testid="cancellation-policy"]'),
        "distance": FieldLocator(locator='span[data-testid="distance"]'),
        "property_type": FieldLocator(locator='span[data-testid="property-type-badge"]'),
        "star_rating": FieldLocator(locator='div[data-testid="rating-stars"]'),
        "guest_score_break": FieldLocator(locator='div[data-testid="review-score-breakdown"]'),
        "description": FieldLocator(locator='div[data-testid="property-card-description"]'),
        "booking_url": FieldLocator(locator='a[data-testid="title-link"]', attribute="href"),
        "amenities": FieldLocator(locator='div[data-testid="facility-badge"]', multiple=True),
        "photos": FieldLocator(locator='img[data-testid="image"]', attribute="src", multiple=True),
    },
)


def load_locators(path: Optional[str] = None) -> SiteLocators:
    """Locators from ``path`` or ``HARVEST_LOCATORS_FILE``, else the built-in set."""
    path = path or os.getenv("HARVEST_LOCATORS_FILE")
    if path:
        return SiteLocators.from_file(path)
    return BOOKING_LOCATORS


class HarvestConfig(BaseModel):
    """Runtime configuration for a harvest run."""

    # Orchestration
    concurrency: int = Field(default=3, ge=1, description="Max parallel sessions")
    rate_interval_seconds: float = Field(default=5.0, ge=0, description="Seconds between permits")
    session_timeout_seconds: float = Field(default=1800.0, gt=0, description="Per-session deadline")
    heartbeat_interval_seconds: float = Field(default=30.0, gt=0)
    checkpoint_capacity: int = Field(default=100, ge=1)

    # Navigation
    search_base_url: str = "https://www.booking.com/searchresults.html"
    adults: int = 2
    rooms: int = 1
    children: int = 0
    checkin_offset_days: int = Field(default=1, ge=0)
    nights: int = Field(default=1, ge=1)
    navigation_attempts: int = Field(default=3, ge=1)
    navigation_backoff_seconds: Tuple[float, float] = (1.0, 5.0)
    navigation_timeout_ms: int = 30000
    results_timeout_ms: int = 30000

    # Interruptions
    overlay_click_timeout_ms: int = 5000
    overlay_settle_seconds: float = 1.0
    challenge_detect_timeout_ms: int = 5000
    challenge_solve_timeout_ms: int = 300000

    # Pagination
    max_pagination_iterations: int = Field(default=700, ge=1)
    load_more_timeout_ms: int = 5000
    settle_seconds: Tuple[float, float] = (2.0, 5.0)
    network_idle_timeout_ms: int = 30000

    # Output
    output_dir: str = "data"
    screenshot_dir: str = "screenshots"
    log_dir: Optional[str] = "logs"
    screenshots_enabled: bool = True

    # Browser
    headless: bool = Field(default=False, description="Visible by default so challenges can be solved")
    viewport_width: int = 1920
    viewport_height: int = 1080

    @model_validator(mode="after")
    def _check_ranges(self) -> "HarvestConfig":
        for name in ("navigation_backoff_seconds", "settle_seconds"):
            low, high = getattr(self, name)
            if low < 0 or high < low:
                raise ValueError(f"{name} must be a (min, max) range with 0 <= min <= max")
        return self

    @classmethod
    def from_env(cls, **overrides) -> "HarvestConfig":
        """Build config from ``HARVEST_*`` environment variables."""
        load_dotenv()
        values = {}
        for name, field in cls.model_fields.items():
            raw = os.getenv(f"HARVEST_{name.upper()}")
            if raw is None:
                continue
            if field.annotation in (Tuple[float, float],):
                low, _, high = raw.partition(",")
                values[name] = (float(low), float(high or low))
            else:
                values[name] = raw
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls.model_validate(values)
