"""
Setup script for latex-pdf-agent.

Allows development installation with `pip install -e .`
"""

from setuptools import setup, find_packages

setup(
    name="latex-pdf-agent",
    version="0.1.0",
    description="HTML and LaTeX math to PDF service using Playwright/Chromium",
    packages=find_packages(include=["latex_pdf_agent", "latex_pdf_agent.*"]),
    python_requires=">=3.11",
    install_requires=[
        "fastapi>=0.110",
        "uvicorn[standard]>=0.27",
        "pydantic>=2.5",
        "pydantic-settings>=2.1",
        "playwright>=1.40",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
            "pytest-asyncio>=0.23",
            "httpx>=0.26",
        ],
    },
    entry_points={
        "console_scripts": [
            "latex-pdf-agent=latex_pdf_agent.main:main",
        ],
    },
)
