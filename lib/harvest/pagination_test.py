"""Tests for the pagination driver."""

import pytest

from lib.harvest.config import BOOKING_LOCATORS
from lib.harvest.errors import ExtractionStructuralFailure, PaginationExhausted
from lib.harvest.pagination import PaginationDriver, StopReason, parse_declared_total
from lib.harvest.rate_limiter import RateLimiter


HEADER = BOOKING_LOCATORS.total_header
LOAD_MORE = BOOKING_LOCATORS.load_more
CARD = object()


class TestParseDeclaredTotal:
    """Tests for parse_declared_total()."""

    @pytest.mark.parametrize("text,expected", [
        ("Houston: 587 properties found", 587),
        ("San Antonio: 1,234 properties found", 1234),
        ("1.234 Unterkünfte gefunden", 1234),
        ("2024 results", 2024),
        ("No properties found", None),
        ("", None),
        (None, None),
    ])
    def test_parses_first_count(self, text, expected):
        assert parse_declared_total(text) == expected


class TestPaginationDriver:
    """Convergence loop."""

    @pytest.fixture
    def limiter(self, fake_clock):
        return RateLimiter(5.0, clock=fake_clock.time, sleep=fake_clock.sleep)

    @pytest.fixture
    def make_driver(self, fake_port, limiter, fake_clock):
        def _make(**kwargs):
            kwargs.setdefault("settle_seconds", (0.0, 0.0))
            return PaginationDriver(fake_port, limiter, BOOKING_LOCATORS, sleep=fake_clock.sleep, label="Houston", **kwargs)
        return _make

    @pytest.mark.asyncio
    async def test_stops_when_declared_total_reached(self, fake_port, limiter, make_driver):
        """Counts 20, 35, 50 of 50: third iteration, two load-more clicks."""
        fake_port.texts[HEADER] = ["Houston: 50 properties found"]
        fake_port.set_cards([CARD] * 20, [CARD] * 35, [CARD] * 50)
        fake_port.click_budget[LOAD_MORE] = 10

        result = await make_driver().run()

        assert result.reason == StopReason.TOTAL_REACHED
        assert result.expected == 50
        assert result.loaded == 50
        assert result.iterations == 3
        assert result.load_more_clicks == 2
        assert fake_port.clicks == [LOAD_MORE, LOAD_MORE]
        assert limiter.permits_issued == 3

    @pytest.mark.asyncio
    async def test_load_more_unavailable_logs_discrepancy(self, fake_port, make_driver, log_messages):
        """20 of 50 with no load-more control: expected 20 and a discrepancy warning."""
        fake_port.texts[HEADER] = ["Houston: 50 properties found"]
        fake_port.set_cards([CARD] * 20)

        result = await make_driver().run()

        assert result.reason == StopReason.LOAD_MORE_UNAVAILABLE
        assert result.expected == 20
        assert result.declared_total == 50
        assert result.load_more_clicks == 0
        assert any(m.startswith("WARNING") and "Discrepancy" in m for m in log_messages)

    @pytest.mark.asyncio
    async def test_unknown_total_stops_on_missing_control(self, fake_port, make_driver):
        fake_port.set_cards([CARD] * 12)

        result = await make_driver().run()

        assert result.declared_total is None
        assert result.expected == 12
        assert result.reason == StopReason.LOAD_MORE_UNAVAILABLE

    @pytest.mark.asyncio
    async def test_unparseable_header_keeps_previous_total(self, fake_port, make_driver):
        fake_port.texts[HEADER] = ["Houston: 50 properties found", "Loading..."]
        fake_port.set_cards([CARD] * 10, [CARD] * 50)
        fake_port.click_budget[LOAD_MORE] = 10

        result = await make_driver().run()

        assert result.reason == StopReason.TOTAL_REACHED
        assert result.declared_total == 50
        assert result.iterations == 2

    @pytest.mark.asyncio
    async def test_loaded_count_never_decreases(self, fake_port, make_driver, log_messages):
        fake_port.texts[HEADER] = ["Houston: 40 properties found"]
        fake_port.set_cards([CARD] * 30, [CARD] * 20)
        fake_port.click_budget[LOAD_MORE] = 1

        result = await make_driver().run()

        assert result.loaded == 30
        assert result.expected == 30
        assert any("Card count went down" in m for m in log_messages)

    @pytest.mark.asyncio
    async def test_raises_when_ceiling_reached(self, fake_port, make_driver):
        fake_port.texts[HEADER] = ["Houston: 100 properties found"]
        fake_port.set_cards([CARD] * 10)
        fake_port.click_budget[LOAD_MORE] = 100

        with pytest.raises(PaginationExhausted) as exc_info:
            await make_driver(max_iterations=3).run()

        error = exc_info.value
        assert error.iterations == 3
        assert error.loaded == 10
        assert error.declared_total == 100
        assert error.query == "Houston"

    @pytest.mark.asyncio
    async def test_card_count_failure_is_structural(self, fake_port, make_driver):
        fake_port.query_errors.add(BOOKING_LOCATORS.card)

        with pytest.raises(ExtractionStructuralFailure):
            await make_driver().run()

    @pytest.mark.asyncio
    async def test_settles_after_each_click(self, fake_port, make_driver, fake_clock):
        fake_port.texts[HEADER] = ["Houston: 30 properties found"]
        fake_port.set_cards([CARD] * 10, [CARD] * 20, [CARD] * 30)
        fake_port.click_budget[LOAD_MORE] = 10

        await make_driver(settle_seconds=(2.0, 5.0)).run()

        settles = [s for s in fake_clock.sleeps if 2.0 <= s <= 5.0]
        assert len(settles) >= 2
        assert len([c for c in fake_port.calls if c[0] == "wait_for_network_idle"]) == 2
