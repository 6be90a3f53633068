"""Tests for Browser utilities."""

import pytest
from unittest.mock import AsyncMock, patch

from lib.browser import BrowserPool
from lib.harvest.config import HarvestConfig
from lib.harvest.port import PlaywrightPort, PortError


@pytest.fixture
def mock_playwright_setup():
    """Create properly mocked playwright setup."""
    mock_browser = AsyncMock()
    mock_context = AsyncMock()
    mock_page = AsyncMock()
    mock_pw_instance = AsyncMock()

    mock_pw_instance.chromium.launch = AsyncMock(return_value=mock_browser)
    mock_pw_instance.stop = AsyncMock()

    mock_browser.new_context = AsyncMock(return_value=mock_context)
    mock_browser.close = AsyncMock()
    mock_context.new_page = AsyncMock(return_value=mock_page)
    mock_context.close = AsyncMock()
    mock_page.close = AsyncMock()

    return mock_pw_instance, mock_browser, mock_context, mock_page


class TestBrowserPool:
    """Tests for BrowserPool class."""

    @pytest.mark.asyncio
    async def test_launches_with_headless_flag(self, mock_playwright_setup):
        """Should launch chromium with the configured headless flag."""
        mock_pw_instance, mock_browser, _, _ = mock_playwright_setup

        with patch('lib.browser.async_playwright') as mock_playwright:
            mock_playwright.return_value.start = AsyncMock(return_value=mock_pw_instance)

            async with BrowserPool(headless=True):
                pass

            mock_pw_instance.chromium.launch.assert_awaited_once_with(headless=True)
            mock_browser.close.assert_awaited_once()
            mock_pw_instance.stop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_open_port_creates_context_per_session(self, mock_playwright_setup):
        """Each port should get its own context with the configured viewport."""
        mock_pw_instance, mock_browser, _, _ = mock_playwright_setup

        with patch('lib.browser.async_playwright') as mock_playwright:
            mock_playwright.return_value.start = AsyncMock(return_value=mock_pw_instance)

            async with BrowserPool(viewport_width=1920, viewport_height=1080) as pool:
                first = await pool.open_port()
                second = await pool.open_port()

                assert isinstance(first, PlaywrightPort)
                assert first is not second
                assert mock_browser.new_context.call_count == 2
                kwargs = mock_browser.new_context.call_args.kwargs
                assert kwargs["viewport"] == {"width": 1920, "height": 1080}
                assert len(pool.ports) == 2

    @pytest.mark.asyncio
    async def test_exit_closes_open_ports(self, mock_playwright_setup):
        """Ports still open at exit should be closed with the browser."""
        mock_pw_instance, _, mock_context, mock_page = mock_playwright_setup

        with patch('lib.browser.async_playwright') as mock_playwright:
            mock_playwright.return_value.start = AsyncMock(return_value=mock_pw_instance)

            pool = BrowserPool()
            await pool.__aenter__()
            port = await pool.open_port()
            await pool.__aexit__(None, None, None)

            assert port.closed
            mock_page.close.assert_awaited_once()
            mock_context.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_closed_ports_are_not_listed(self, mock_playwright_setup):
        """Ports closed by their session should drop out of the pool."""
        mock_pw_instance, _, _, _ = mock_playwright_setup

        with patch('lib.browser.async_playwright') as mock_playwright:
            mock_playwright.return_value.start = AsyncMock(return_value=mock_pw_instance)

            async with BrowserPool() as pool:
                port = await pool.open_port()
                await port.close()
                assert pool.ports == []

    @pytest.mark.asyncio
    async def test_open_port_translates_playwright_errors(self, mock_playwright_setup):
        """A failing context should surface as PortError."""
        from playwright.async_api import Error as PlaywrightError

        mock_pw_instance, mock_browser, _, _ = mock_playwright_setup
        mock_browser.new_context = AsyncMock(side_effect=PlaywrightError("browser crashed"))

        with patch('lib.browser.async_playwright') as mock_playwright:
            mock_playwright.return_value.start = AsyncMock(return_value=mock_pw_instance)

            async with BrowserPool() as pool:
                with pytest.raises(PortError):
                    await pool.open_port()

    @pytest.mark.asyncio
    async def test_open_port_requires_started_pool(self):
        """open_port outside the context manager is a programming error."""
        with pytest.raises(RuntimeError):
            await BrowserPool().open_port()

    def test_from_config(self):
        """Should pick up headless and viewport from HarvestConfig."""
        config = HarvestConfig(headless=True, viewport_width=800, viewport_height=600)
        pool = BrowserPool.from_config(config)

        assert pool.headless is True
        assert pool.viewport == {"width": 800, "height": 600}


@pytest.mark.online
class TestBrowserPoolIntegration:
    """Integration tests with real browser."""

    @pytest.mark.asyncio
    async def test_real_browser_port(self):
        """Should open a real page and read its heading."""
        async with BrowserPool(headless=True) as pool:
            port = await pool.open_port()
            try:
                await port.navigate("https://example.com", timeout_ms=10000)
                text = await port.text_of("h1")
                assert "Example" in text
            finally:
                await port.close()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
