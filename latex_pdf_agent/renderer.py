"""
Browser session lifecycle and PDF rendering via Playwright/Chromium.

Every render gets its own Chromium process and page. Sessions are never
pooled or reused; the browser is closed on every exit path, including
render failures, timeouts and cancellation.
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional, Union

from .config import Settings, get_settings
from .errors import RenderFailure, RenderTimeout
from .templates import RENDER_COMPLETE_FLAG, RENDER_ERROR_FLAG

logger = logging.getLogger(__name__)

# Needed in containers: no setuid sandbox, and /dev/shm is usually tiny
CHROMIUM_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
]

DEFAULT_MARGIN = "20mm"

_active_sessions = 0


@dataclass
class PageLayout:
    """Page layout options passed to page.pdf()."""

    format: str = "A4"
    landscape: bool = False
    margin: Optional[Dict[str, Union[str, float]]] = None
    print_background: bool = True
    # Explicit format/margins always win over @page rules in the content
    prefer_css_page_size: bool = False

    def to_pdf_options(self) -> Dict[str, Any]:
        options: Dict[str, Any] = {
            "format": self.format,
            "landscape": self.landscape,
            "print_background": self.print_background,
            "prefer_css_page_size": self.prefer_css_page_size,
        }
        if self.margin:
            options["margin"] = dict(self.margin)
        return options


@dataclass
class RenderResult:
    """PDF bytes plus the filename they should be served under."""

    pdf_bytes: bytes
    filename: str
    duration_ms: float = field(default=0.0)

    @property
    def content_length(self) -> int:
        return len(self.pdf_bytes)


@dataclass
class BrowserSession:
    """One Chromium process and its single page, owned by one request."""

    browser: Any
    page: Any


def active_sessions() -> int:
    """Number of browser sessions currently open in this process."""
    return _active_sessions


def launch_args(settings: Settings) -> List[str]:
    args = list(CHROMIUM_ARGS)
    for arg in settings.browser_extra_args_list:
        if arg not in args:
            args.append(arg)
    return args


@asynccontextmanager
async def browser_session(settings: Optional[Settings] = None) -> AsyncIterator[BrowserSession]:
    """
    Launch an isolated Chromium process with one page and close it on exit.

    Args:
        settings: Service settings (headless mode, extra flags)

    Yields:
        BrowserSession owned by the caller until the context exits
    """
    global _active_sessions
    settings = settings or get_settings()

    # Import here to avoid loading Playwright on startup
    from playwright.async_api import async_playwright

    async with async_playwright() as p:
        browser = await p.chromium.launch(
            headless=settings.browser_headless,
            args=launch_args(settings),
        )
        _active_sessions += 1
        logger.debug(f"Browser launched ({_active_sessions} active)")
        try:
            page = await browser.new_page()
            yield BrowserSession(browser=browser, page=page)
        finally:
            try:
                await browser.close()
            except Exception as e:
                # Closing must not mask the error that ended the render
                logger.warning(f"Failed to close browser cleanly: {e}")
            finally:
                _active_sessions -= 1
            logger.debug(f"Browser closed ({_active_sessions} active)")


async def _load_and_settle(page: Any, html: str, settings: Settings) -> None:
    """
    Load HTML and wait until math, fonts and layout are done.

    Raises RenderTimeout when the bootstrap script never reports back, and
    RenderFailure when it reports that typesetting threw.
    """
    from playwright.async_api import TimeoutError as PlaywrightTimeoutError

    await page.set_content(
        html,
        wait_until="networkidle",
        timeout=settings.navigation_timeout_ms,
    )
    await page.wait_for_load_state("domcontentloaded")

    try:
        await page.wait_for_function(
            f"() => window.{RENDER_COMPLETE_FLAG} === true"
            f" || window.{RENDER_ERROR_FLAG} !== undefined",
            timeout=settings.render_complete_timeout_ms,
        )
    except PlaywrightTimeoutError as e:
        raise RenderTimeout(settings.render_complete_timeout_ms) from e

    render_error = await page.evaluate(f"() => window.{RENDER_ERROR_FLAG} || null")
    if isinstance(render_error, str) and render_error:
        raise RenderFailure(message=f"LaTeX rendering failed: {render_error}")

    await asyncio.wait_for(
        page.evaluate("() => document.fonts.ready.then(() => true)"),
        timeout=settings.navigation_timeout_ms / 1000,
    )

    if settings.settle_delay_ms > 0:
        await asyncio.sleep(settings.settle_delay_ms / 1000)


async def render_pdf(
    html: str,
    layout: PageLayout,
    filename: str,
    settings: Optional[Settings] = None,
) -> RenderResult:
    """
    Render a complete HTML document to PDF in a fresh browser session.

    Args:
        html: Complete HTML document (see templates.py)
        layout: Page format, orientation and margins
        filename: Name the PDF is served under
        settings: Service settings (timeouts, settle delay)

    Returns:
        RenderResult with the PDF bytes

    Raises:
        RenderTimeout: math typesetting never signalled completion
        RenderFailure: launch, navigation or export failed
    """
    settings = settings or get_settings()
    started = time.monotonic()

    try:
        async with browser_session(settings) as session:
            await _load_and_settle(session.page, html, settings)
            pdf_bytes = await session.page.pdf(**layout.to_pdf_options())
    except RenderFailure:
        raise
    except asyncio.TimeoutError as e:
        raise RenderFailure(
            message=f"Rendering timed out after {settings.navigation_timeout_ms}ms"
        ) from e
    except Exception as e:
        raise RenderFailure(message=str(e) or e.__class__.__name__) from e

    if not pdf_bytes:
        raise RenderFailure(message="Browser returned an empty PDF")

    duration_ms = (time.monotonic() - started) * 1000
    return RenderResult(pdf_bytes=pdf_bytes, filename=filename, duration_ms=duration_ms)


async def check_browser(settings: Optional[Settings] = None) -> int:
    """
    Render a trivial page to PDF to prove Chromium is installed and working.

    Returns:
        Size of the probe PDF in bytes

    Raises:
        RenderFailure: Chromium could not launch or print
    """
    settings = settings or get_settings()
    try:
        async with browser_session(settings) as session:
            await session.page.set_content("<html><body><h1>Test</h1></body></html>")
            probe = await session.page.pdf(format="A4")
    except Exception as e:
        raise RenderFailure(message=str(e) or e.__class__.__name__) from e

    if not probe:
        raise RenderFailure(message="Probe PDF generation returned empty result")
    return len(probe)
