"""
LaTeX PDF Agent entrypoint - runs uvicorn server.
"""

import uvicorn

from .config import get_settings


def main() -> None:
    """Run the PDF agent server."""
    settings = get_settings()

    uvicorn.run(
        "latex_pdf_agent.app:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
