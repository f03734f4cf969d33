"""
Pytest fixtures for PDF agent tests.
"""

import os
from unittest.mock import patch, AsyncMock, MagicMock

# IMPORTANT: Set environment variables BEFORE any imports from latex_pdf_agent
# so Settings is configured correctly when first loaded.
os.environ["ENVIRONMENT"] = "development"
os.environ["VALIDATE_BROWSER_ON_STARTUP"] = "false"
os.environ["SETTLE_DELAY_MS"] = "0"
os.environ["MAX_CONCURRENT_RENDERS"] = "2"
os.environ["CORS_ORIGINS"] = "*"

import pytest
from fastapi.testclient import TestClient

FAKE_PDF = b"%PDF-1.4 fake pdf content"


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "browser: Mark test as needing a real Chromium install"
    )


@pytest.fixture
def client():
    """FastAPI test client fixture (startup probe disabled via env)."""
    from latex_pdf_agent.app import app
    return TestClient(app)


@pytest.fixture
def mock_page():
    """Playwright page mock returning a small fake PDF."""
    page = AsyncMock()
    page.pdf = AsyncMock(return_value=FAKE_PDF)
    page.evaluate = AsyncMock(return_value=True)
    return page


@pytest.fixture
def mock_browser(mock_page):
    browser = AsyncMock()
    browser.new_page = AsyncMock(return_value=mock_page)
    browser.close = AsyncMock()
    return browser


@pytest.fixture
def mock_playwright(mock_browser):
    """
    Patch async_playwright so no Chromium process is ever launched.

    Yields the patched factory; the launched browser is reachable through
    the mock_browser fixture.
    """
    with patch("playwright.async_api.async_playwright") as factory:
        factory.return_value.__aenter__ = AsyncMock(
            return_value=MagicMock(
                chromium=MagicMock(
                    launch=AsyncMock(return_value=mock_browser)
                )
            )
        )
        factory.return_value.__aexit__ = AsyncMock(return_value=False)
        yield factory


@pytest.fixture
def launch(mock_playwright):
    """The chromium.launch mock used by the patched Playwright."""
    return mock_playwright.return_value.__aenter__.return_value.chromium.launch
