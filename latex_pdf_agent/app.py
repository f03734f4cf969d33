"""
LaTeX PDF Agent - FastAPI application for PDF generation.

Provides endpoints for converting HTML with LaTeX math to PDF using
Playwright/Chromium, either as one document or as a multi-page deck.
Concurrent renders are capped by an asyncio semaphore; each render owns
its own browser process.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__
from .config import validate_config_on_startup
from .errors import (
    InvalidField,
    InvalidMethod,
    MissingField,
    PayloadTooLarge,
    PDFAgentError,
    RenderFailure,
    ServiceOverloaded,
)
from .models import (
    GeneratePDFRequest,
    HealthResponse,
    MultiPagePDFRequest,
    PDFOptions,
    content_disposition,
)
from .renderer import (
    DEFAULT_MARGIN,
    PageLayout,
    RenderResult,
    active_sessions,
    check_browser,
    render_pdf,
)
from .templates import build_document_html, build_multi_page_html

# Validate configuration at import so a bad environment fails fast
settings = validate_config_on_startup()

# Configure logging
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)
logger = logging.getLogger(__name__)

DEFAULT_FORMAT = "A4"
DEFAULT_FILENAME = "document.pdf"
DEFAULT_SLIDES_FILENAME = "slides.pdf"

# Semaphore gating concurrent renders
_render_slots = asyncio.Semaphore(settings.max_concurrent_renders)

# Browser readiness state (set by the startup probe)
_browser_ready: Optional[bool] = None
_browser_error: Optional[str] = None


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Validate Playwright/Chromium is installed on startup.

    The result is reported by /health; a failed probe does not stop the
    service, since the next render launches a fresh browser anyway.
    """
    global _browser_ready, _browser_error

    logger.info(f"{settings.service_name} {__version__} starting on port {settings.port}")

    if settings.validate_browser_on_startup:
        logger.info("Validating Playwright installation...")
        try:
            size = await check_browser(settings)
            _browser_ready = True
            _browser_error = None
            logger.info(f"Playwright validation successful - generated {size} byte test PDF")
        except RenderFailure as e:
            _browser_ready = False
            _browser_error = e.message
            logger.error(f"Playwright validation failed: {e.message}")
            logger.error("PDF generation will fail until this is resolved.")

    yield

    logger.info(f"{settings.service_name} shutting down")


app = FastAPI(
    title="LaTeX PDF Agent",
    version=__version__,
    description="HTML and LaTeX math to PDF generation using Playwright/Chromium",
    lifespan=lifespan,
)

if settings.cors_origins_list:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition"],
    )


# ============================================================================
# Error Handling
# ============================================================================

@app.exception_handler(PDFAgentError)
async def pdf_agent_error_handler(request: Request, exc: PDFAgentError) -> JSONResponse:
    return exc.to_response()


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render routing errors (404, 405) in the same {error} shape."""
    if exc.status_code == 405:
        response = InvalidMethod().to_response()
    else:
        response = JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})
    if exc.headers:
        response.headers.update(exc.headers)
    return response


# A JSON body that is not an object carries none of the required fields
_MISSING_BODY_ERRORS = {
    "/api/generate-pdf": lambda: MissingField("html"),
    "/api/generate-multi-page-pdf": lambda: InvalidField("pages"),
}


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed JSON or wrongly typed options are client errors, not 422s."""
    logger.warning(f"Rejected malformed request to {request.url.path}: {exc.errors()}")

    missing_body = _MISSING_BODY_ERRORS.get(request.url.path)
    if missing_body and any(
        tuple(error.get("loc", ())) == ("body",) and error.get("type") != "json_invalid"
        for error in exc.errors()
    ):
        return missing_body().to_response()

    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        messages.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request body", "message": "; ".join(messages)},
    )


@app.middleware("http")
async def limit_body_size(request: Request, call_next):
    """
    Reject bodies over the configured limit.

    Declared sizes are checked from Content-Length. Bodies without one
    (chunked uploads) are read up to the limit and cut off there.
    """
    too_large = PayloadTooLarge(message=f"Request body exceeds {settings.max_body_bytes} bytes")

    content_length = request.headers.get("content-length")
    if content_length is not None:
        if content_length.isdigit() and int(content_length) > settings.max_body_bytes:
            logger.warning(f"Rejected {content_length} byte body on {request.url.path}")
            return too_large.to_response()
    elif request.method in ("POST", "PUT", "PATCH"):
        chunks = []
        received = 0
        async for chunk in request.stream():
            received += len(chunk)
            if received > settings.max_body_bytes:
                logger.warning(
                    f"Rejected streamed body over {settings.max_body_bytes} bytes "
                    f"on {request.url.path}"
                )
                return too_large.to_response()
            chunks.append(chunk)
        # Same cache Request.body() fills; the route reads the body from it
        request._body = b"".join(chunks)

    return await call_next(request)


# ============================================================================
# Helpers
# ============================================================================

def _single_page_layout(options: PDFOptions) -> PageLayout:
    """Resolve single-page options; each missing margin side defaults to 20mm."""
    margin = options.margin
    return PageLayout(
        format=options.format or DEFAULT_FORMAT,
        landscape=options.is_landscape(default=False),
        margin={
            side: (getattr(margin, side) if margin and getattr(margin, side) is not None
                   else DEFAULT_MARGIN)
            for side in ("top", "right", "bottom", "left")
        },
    )


def _multi_page_layout(options: PDFOptions) -> PageLayout:
    """Resolve multi-page options; margins are not configurable in this mode."""
    return PageLayout(
        format=options.format or DEFAULT_FORMAT,
        landscape=options.is_landscape(default=True),
    )


def _pdf_response(result: RenderResult) -> Response:
    """Return PDF bytes as an attachment; Content-Length is set from the body."""
    return Response(
        content=result.pdf_bytes,
        media_type="application/pdf",
        headers={
            "Content-Disposition": content_disposition(result.filename),
        },
    )


async def _render_gated(html: str, layout: PageLayout, filename: str) -> RenderResult:
    """Run one render inside a concurrency slot, failing fast when none is free."""
    if _render_slots.locked():
        logger.warning("PDF agent overloaded, rejecting request")
        raise ServiceOverloaded(
            message=f"At most {settings.max_concurrent_renders} renders may run at once"
        )

    async with _render_slots:
        return await render_pdf(html, layout, filename, settings)


# ============================================================================
# Health Check Endpoint
# ============================================================================

@app.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """
    Health check endpoint for container orchestration.

    Always returns 200; browser readiness from the startup probe is
    reported for information only.
    """
    return HealthResponse(
        status="ok",
        service=settings.service_name,
        version=__version__,
        timestamp=datetime.now(timezone.utc),
        active_renders=active_sessions(),
        max_concurrent=settings.max_concurrent_renders,
        browser_ready=_browser_ready,
        browser_error=_browser_error,
    )


# ============================================================================
# PDF Generation Endpoints
# ============================================================================

@app.post("/api/generate-pdf")
async def generate_pdf(request: Optional[GeneratePDFRequest] = None) -> Response:
    """
    Convert one HTML document (with optional LaTeX math) to PDF.

    Args:
        request: HTML content and layout options

    Returns:
        PDF attachment with Content-Length

    Raises:
        MissingField: 400 when html is absent or empty
        ServiceOverloaded: 429 when all render slots are busy
        RenderFailure: 500 when the browser fails or math never completes
    """
    request = request or GeneratePDFRequest()
    if not isinstance(request.html, str) or not request.html.strip():
        logger.warning("Rejected generate-pdf request without html")
        raise MissingField("html")

    options = request.options
    layout = _single_page_layout(options)
    filename = options.filename or DEFAULT_FILENAME

    logger.info(
        f"Starting PDF render (format={layout.format}, landscape={layout.landscape}, "
        f"filename={filename})"
    )
    try:
        result = await _render_gated(build_document_html(request.html), layout, filename)
    except RenderFailure as e:
        logger.error(f"PDF generation failed: {e.message}")
        raise

    logger.info(
        f"PDF render completed: {filename} ({result.content_length} bytes, "
        f"{result.duration_ms:.0f}ms)"
    )
    return _pdf_response(result)


@app.post("/api/generate-multi-page-pdf")
async def generate_multi_page_pdf(request: Optional[MultiPagePDFRequest] = None) -> Response:
    """
    Convert an ordered list of HTML fragments to a PDF with one page each.

    Args:
        request: Page fragments and layout options

    Returns:
        PDF attachment with Content-Length

    Raises:
        InvalidField: 400 when pages is absent, not a list of strings, or empty
        ServiceOverloaded: 429 when all render slots are busy
        RenderFailure: 500 when the browser fails or math never completes
    """
    request = request or MultiPagePDFRequest()
    pages = request.pages
    if (
        not isinstance(pages, list)
        or not pages
        or not all(isinstance(page, str) for page in pages)
    ):
        logger.warning("Rejected generate-multi-page-pdf request with invalid pages")
        raise InvalidField("pages")

    options = request.options
    layout = _multi_page_layout(options)
    filename = options.filename or DEFAULT_SLIDES_FILENAME

    logger.info(
        f"Starting multi-page PDF render ({len(pages)} pages, format={layout.format}, "
        f"landscape={layout.landscape})"
    )
    try:
        result = await _render_gated(build_multi_page_html(pages), layout, filename)
    except RenderFailure as e:
        logger.error(f"Multi-page PDF generation failed: {e.message}")
        raise RenderFailure(error="Failed to generate multi-page PDF", message=e.message) from e

    logger.info(
        f"Multi-page PDF render completed: {filename} ({result.content_length} bytes, "
        f"{result.duration_ms:.0f}ms)"
    )
    return _pdf_response(result)
