"""
Pydantic models for the PDF agent API.

Request fields that the handlers validate themselves (html, pages) are typed
loosely so a missing or malformed value reaches the handler and is reported
with the documented 400 message instead of a generic validation error.
"""

import re
from datetime import datetime
from typing import Any, Optional, Union
from urllib.parse import quote

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Characters that would break out of the quoted Content-Disposition filename
_UNSAFE_FILENAME_CHARS = re.compile(r'["\\\x00-\x1f\x7f]')


def sanitize_filename(filename: str) -> str:
    """
    Make a caller-supplied filename safe for a Content-Disposition header.

    Removes quotes, backslashes and control characters; everything else is
    kept as given.

    Example:
        >>> sanitize_filename('report "final".pdf')
        'report final.pdf'
    """
    return _UNSAFE_FILENAME_CHARS.sub("", filename).strip()


def content_disposition(filename: str) -> str:
    """
    Build an attachment Content-Disposition header (RFC 6266).

    Header values must be Latin-1, so non-ASCII names get an ASCII fallback
    in filename= plus the UTF-8 name percent-encoded in filename*=.

    Example:
        "数学.pdf" becomes
        attachment; filename="__.pdf"; filename*=UTF-8''%E6%95%B0%E5%AD%A6.pdf
    """
    ascii_name = "".join(c if ord(c) < 128 else "_" for c in filename)
    header = f'attachment; filename="{ascii_name}"'
    if ascii_name != filename:
        header += f"; filename*=UTF-8''{quote(filename, safe='')}"
    return header


class MarginOptions(BaseModel):
    """Per-side page margins as CSS lengths ('20mm', '1in') or pixel numbers."""

    model_config = ConfigDict(extra="ignore")

    top: Optional[Union[str, float]] = None
    right: Optional[Union[str, float]] = None
    bottom: Optional[Union[str, float]] = None
    left: Optional[Union[str, float]] = None


class PDFOptions(BaseModel):
    """Layout options shared by both generate endpoints."""

    model_config = ConfigDict(extra="ignore")

    format: Optional[str] = Field(None, description="Paper format, e.g. 'A4' or 'Letter'")
    orientation: Optional[str] = Field(None, description="'portrait' or 'landscape'")
    landscape: Optional[bool] = Field(None, description="Overrides orientation when set")
    margin: Optional[MarginOptions] = Field(None, description="Single-page margins")
    filename: Optional[str] = Field(None, description="Download filename")

    @field_validator("filename")
    @classmethod
    def clean_filename(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return sanitize_filename(v) or None

    def is_landscape(self, default: bool) -> bool:
        """Resolve orientation; an explicit landscape flag wins."""
        if self.landscape is not None:
            return self.landscape
        if self.orientation:
            return self.orientation.lower() == "landscape"
        return default


class GeneratePDFRequest(BaseModel):
    """Single-document request: {html, options}."""

    html: Any = Field(None, description="HTML content to render")
    options: PDFOptions = Field(default_factory=PDFOptions)


class MultiPagePDFRequest(BaseModel):
    """Multi-page request: {pages, options}. Each page becomes one PDF page."""

    pages: Any = Field(None, description="Ordered HTML fragments, one per page")
    options: PDFOptions = Field(default_factory=PDFOptions)


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    service: str
    version: str
    timestamp: datetime
    active_renders: int
    max_concurrent: int
    browser_ready: Optional[bool] = None
    browser_error: Optional[str] = None
