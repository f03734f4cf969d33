"""
Error taxonomy for the PDF agent.

Every error raised on the request path derives from PDFAgentError and
carries the HTTP status it maps to, so handlers only need to raise.
"""

from typing import Any, Dict, Optional

from fastapi.responses import JSONResponse


class PDFAgentError(Exception):
    """Base error with an HTTP status and a short machine-oriented summary."""

    status_code: int = 500
    error: str = "Internal server error"

    def __init__(self, error: Optional[str] = None, message: Optional[str] = None):
        if error is not None:
            self.error = error
        self.message = message
        super().__init__(message or self.error)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.error}
        if self.message is not None:
            body["message"] = self.message
        return body

    def to_response(self) -> JSONResponse:
        return JSONResponse(status_code=self.status_code, content=self.to_dict())


class InvalidMethod(PDFAgentError):
    """Non-POST request on a POST-only route."""

    status_code = 405
    error = "Method not allowed"


class MissingField(PDFAgentError):
    """Required body field is absent."""

    status_code = 400

    def __init__(self, field: str):
        self.field = field
        super().__init__(error=f"Missing required field: {field}")


class InvalidField(PDFAgentError):
    """Required body field is absent or has the wrong shape."""

    status_code = 400

    def __init__(self, field: str):
        self.field = field
        super().__init__(error=f"Missing or invalid required field: {field}")


class PayloadTooLarge(PDFAgentError):
    status_code = 413
    error = "Request body too large"


class ServiceOverloaded(PDFAgentError):
    """All render slots are busy."""

    status_code = 429
    error = "Too many concurrent renders"


class RenderFailure(PDFAgentError):
    """
    Browser launch, navigation or PDF export failed.

    The message echoes whatever the rendering layer reported.
    """

    status_code = 500
    error = "Failed to generate PDF"


class RenderTimeout(RenderFailure):
    """Math typesetting did not signal completion in time."""

    def __init__(self, timeout_ms: int):
        self.timeout_ms = timeout_ms
        super().__init__(
            message=f"Timed out after {timeout_ms}ms waiting for LaTeX rendering to complete"
        )
