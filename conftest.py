"""Pytest configuration and shared fixtures."""

import pytest
from loguru import logger


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: mark test as integration test (drives a real browser)")
    config.addinivalue_line("markers", "online: mark test as online test (hits external sites)")


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def log_messages():
    """Capture loguru output as a list of "LEVEL message" lines."""
    messages = []
    handler_id = logger.add(
        lambda message: messages.append(f"{message.record['level'].name} {message.record['message']}"),
        level="DEBUG",
    )
    yield messages
    logger.remove(handler_id)
