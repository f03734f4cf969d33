"""
LaTeX PDF Agent - HTML and LaTeX math to PDF service.

This service provides endpoints for converting caller-supplied HTML,
optionally containing LaTeX math, to PDF using Playwright/Chromium.
Math is typeset in the page by KaTeX before the page is printed.
"""

__version__ = "0.1.0"
