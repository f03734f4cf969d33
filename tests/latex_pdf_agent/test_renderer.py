"""
Unit tests for the browser session lifecycle and render driver.

Playwright is mocked; no Chromium process is launched.
"""

import asyncio
from unittest.mock import AsyncMock, call, patch

import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from latex_pdf_agent.config import Settings
from latex_pdf_agent.errors import RenderFailure, RenderTimeout
from latex_pdf_agent.renderer import (
    CHROMIUM_ARGS,
    PageLayout,
    active_sessions,
    browser_session,
    check_browser,
    launch_args,
    render_pdf,
)


@pytest.fixture
def settings():
    return Settings(settle_delay_ms=0, validate_browser_on_startup=False)


class TestPageLayout:
    """Tests for PageLayout.to_pdf_options."""

    def test_defaults(self):
        assert PageLayout().to_pdf_options() == {
            "format": "A4",
            "landscape": False,
            "print_background": True,
            "prefer_css_page_size": False,
        }

    def test_margin_included_when_set(self):
        options = PageLayout(margin={"top": "1in"}).to_pdf_options()
        assert options["margin"] == {"top": "1in"}


class TestLaunchArgs:

    def test_container_flags(self, settings):
        assert launch_args(settings) == CHROMIUM_ARGS

    def test_extra_flags_appended_once(self):
        settings = Settings(browser_extra_args="--font-render-hinting=none, --no-sandbox")
        args = launch_args(settings)
        assert args[-1] == "--font-render-hinting=none"
        assert args.count("--no-sandbox") == 1


class TestBrowserSession:
    """Tests for browser_session scoped acquisition."""

    @pytest.mark.asyncio
    async def test_yields_page_and_closes(self, settings, mock_playwright, mock_browser, mock_page):
        async with browser_session(settings) as session:
            assert session.page is mock_page
            assert session.browser is mock_browser
            assert active_sessions() == 1

        mock_browser.close.assert_awaited_once()
        assert active_sessions() == 0

    @pytest.mark.asyncio
    async def test_closes_on_error(self, settings, mock_playwright, mock_browser):
        with pytest.raises(ValueError):
            async with browser_session(settings):
                raise ValueError("boom")

        mock_browser.close.assert_awaited_once()
        assert active_sessions() == 0

    @pytest.mark.asyncio
    async def test_close_failure_does_not_mask_error(self, settings, mock_playwright, mock_browser):
        mock_browser.close = AsyncMock(side_effect=Exception("Target closed"))

        with pytest.raises(ValueError, match="boom"):
            async with browser_session(settings):
                raise ValueError("boom")

        assert active_sessions() == 0

    @pytest.mark.asyncio
    async def test_session_counted_until_close_finishes(self, settings, mock_playwright, mock_browser):
        seen_during_close = []

        async def close():
            seen_during_close.append(active_sessions())

        mock_browser.close = AsyncMock(side_effect=close)

        async with browser_session(settings):
            pass

        assert seen_during_close == [1]
        assert active_sessions() == 0

    @pytest.mark.asyncio
    async def test_closes_when_new_page_fails(self, settings, mock_playwright, mock_browser):
        mock_browser.new_page = AsyncMock(side_effect=Exception("Browser crashed"))

        with pytest.raises(Exception, match="Browser crashed"):
            async with browser_session(settings):
                pass

        mock_browser.close.assert_awaited_once()
        assert active_sessions() == 0

    @pytest.mark.asyncio
    async def test_launch_options(self, settings, mock_playwright, launch):
        async with browser_session(settings):
            pass

        launch.assert_awaited_once_with(headless=True, args=CHROMIUM_ARGS)


class TestRenderPDF:
    """Tests for render_pdf."""

    @pytest.mark.asyncio
    async def test_returns_result(self, settings, mock_playwright):
        result = await render_pdf("<html></html>", PageLayout(), "out.pdf", settings)

        assert result.pdf_bytes.startswith(b"%PDF-")
        assert result.filename == "out.pdf"
        assert result.content_length == len(result.pdf_bytes)

    @pytest.mark.asyncio
    async def test_steps_run_in_order(self, settings, mock_playwright, mock_page):
        await render_pdf("<html></html>", PageLayout(landscape=True), "out.pdf", settings)

        names = [c[0] for c in mock_page.mock_calls]
        assert names.index("set_content") < names.index("wait_for_load_state")
        assert names.index("wait_for_load_state") < names.index("wait_for_function")
        assert names.index("wait_for_function") < names.index("evaluate")
        assert names.index("evaluate") < names.index("pdf")

        assert mock_page.set_content.call_args == call(
            "<html></html>", wait_until="networkidle", timeout=30000
        )
        mock_page.wait_for_load_state.assert_awaited_once_with("domcontentloaded")
        assert "document.fonts.ready" in mock_page.evaluate.call_args.args[0]
        assert mock_page.pdf.call_args.kwargs["landscape"] is True

    @pytest.mark.asyncio
    async def test_settle_delay(self, mock_playwright):
        settings = Settings(settle_delay_ms=500)

        with patch("asyncio.sleep", new=AsyncMock()) as sleep:
            await render_pdf("<html></html>", PageLayout(), "out.pdf", settings)

        sleep.assert_awaited_once_with(0.5)

    @pytest.mark.asyncio
    async def test_typeset_timeout(self, settings, mock_playwright, mock_page, mock_browser):
        mock_page.wait_for_function = AsyncMock(
            side_effect=PlaywrightTimeoutError("Timeout 10000ms exceeded.")
        )

        with pytest.raises(RenderTimeout) as exc_info:
            await render_pdf("<html></html>", PageLayout(), "out.pdf", settings)

        assert exc_info.value.timeout_ms == 10000
        assert exc_info.value.status_code == 500
        mock_page.pdf.assert_not_called()
        mock_browser.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_font_wait_timeout(self, mock_playwright, mock_page, mock_browser):
        settings = Settings(settle_delay_ms=0, navigation_timeout_ms=1000)

        async def fonts_never_ready(expression):
            if "document.fonts.ready" in expression:
                await asyncio.sleep(5)
            return None

        mock_page.evaluate = AsyncMock(side_effect=fonts_never_ready)

        with pytest.raises(RenderFailure, match="timed out"):
            await render_pdf("<html></html>", PageLayout(), "out.pdf", settings)

        mock_browser.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_typeset_error_is_failure(self, settings, mock_playwright, mock_page, mock_browser):
        """KaTeX missing from the page must fail the render, not print raw LaTeX."""
        async def evaluate(expression):
            if "latexRenderError" in expression:
                return "renderMathInElement is not defined"
            return True

        mock_page.evaluate = AsyncMock(side_effect=evaluate)

        with pytest.raises(RenderFailure) as exc_info:
            await render_pdf("<html></html>", PageLayout(), "out.pdf", settings)

        assert exc_info.value.message == (
            "LaTeX rendering failed: renderMathInElement is not defined"
        )
        assert not isinstance(exc_info.value, RenderTimeout)
        mock_page.pdf.assert_not_called()
        mock_browser.close.assert_awaited_once()
        assert active_sessions() == 0

    @pytest.mark.asyncio
    async def test_waits_for_either_flag(self, settings, mock_playwright, mock_page):
        await render_pdf("<html></html>", PageLayout(), "out.pdf", settings)

        expression = mock_page.wait_for_function.call_args.args[0]
        assert "window.latexRenderComplete === true" in expression
        assert "window.latexRenderError !== undefined" in expression

    @pytest.mark.asyncio
    async def test_navigation_failure(self, settings, mock_playwright, mock_page, mock_browser):
        mock_page.set_content = AsyncMock(side_effect=Exception("net::ERR_NAME_NOT_RESOLVED"))

        with pytest.raises(RenderFailure) as exc_info:
            await render_pdf("<html></html>", PageLayout(), "out.pdf", settings)

        assert exc_info.value.message == "net::ERR_NAME_NOT_RESOLVED"
        assert not isinstance(exc_info.value, RenderTimeout)
        mock_browser.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_empty_pdf_is_failure(self, settings, mock_playwright, mock_page):
        mock_page.pdf = AsyncMock(return_value=b"")

        with pytest.raises(RenderFailure, match="empty PDF"):
            await render_pdf("<html></html>", PageLayout(), "out.pdf", settings)

    @pytest.mark.asyncio
    async def test_each_render_launches_its_own_browser(self, settings, mock_playwright, launch):
        await render_pdf("<html></html>", PageLayout(), "a.pdf", settings)
        await render_pdf("<html></html>", PageLayout(), "b.pdf", settings)

        assert launch.await_count == 2
        assert active_sessions() == 0


class TestCheckBrowser:

    @pytest.mark.asyncio
    async def test_returns_probe_size(self, settings, mock_playwright):
        assert await check_browser(settings) == len(b"%PDF-1.4 fake pdf content")

    @pytest.mark.asyncio
    async def test_launch_failure(self, settings, mock_playwright, launch):
        launch.side_effect = Exception("Executable doesn't exist")

        with pytest.raises(RenderFailure, match="Executable doesn't exist"):
            await check_browser(settings)
