"""
HTML document assembly for PDF rendering.

Wraps caller content in a complete HTML document that loads KaTeX and
Tailwind from CDNs and typesets LaTeX math once the DOM is ready.

Caller HTML is inserted verbatim. It is neither escaped nor sanitized:
the service trusts its callers and is meant to run behind an internal or
authenticated boundary.
"""

from typing import Sequence

KATEX_VERSION = "0.16.9"
KATEX_CDN = f"https://cdn.jsdelivr.net/npm/katex@{KATEX_VERSION}/dist"
TAILWIND_CDN = "https://cdn.tailwindcss.com"

# Global set by the bootstrap script; the renderer polls for it
RENDER_COMPLETE_FLAG = "latexRenderComplete"
# Set instead of the completion flag when typesetting throws
RENDER_ERROR_FLAG = "latexRenderError"

MATH_DELIMITERS = (
    ("$$", "$$", True),
    ("\\[", "\\]", True),
    ("\\(", "\\)", False),
)

_HEAD_ASSETS = f"""
    <link rel="stylesheet" href="{KATEX_CDN}/katex.min.css"
          integrity="sha384-n8MVd4RsNIU0tAv4ct0nTaAbDJwPJzDEaqSD1odI+WdtXRGWt2kTvGFasHpSy3SV"
          crossorigin="anonymous">
    <script src="{TAILWIND_CDN}"></script>"""

_BODY_SCRIPTS = f"""
    <script src="{KATEX_CDN}/katex.min.js"
            integrity="sha384-XjKyOOlVwcGFnYCjpxdxCJiEu+AVHqnCxf8/uUOzMY2Qo2AH0+fpcGavD62pTAmz"
            crossorigin="anonymous"></script>
    <script src="{KATEX_CDN}/contrib/auto-render.min.js"
            integrity="sha384-+VBxd3r6XgURPl3key1J56HPvjNWmaM8vanysM+r/_i5stD1/5fFpY/5/P3e2s6E"
            crossorigin="anonymous"></script>"""


def _js_string(value: str) -> str:
    """Quote a Python string as a single-quoted JavaScript literal."""
    return "'" + value.replace("\\", "\\\\").replace("'", "\\'") + "'"


def build_render_script() -> str:
    """
    Build the bootstrap script that typesets math and raises the completion flag.

    renderMathInElement walks the DOM synchronously, so the flag is set only
    after the typesetting pass has returned. If the call throws (KaTeX failed
    to load, or broke on the document) the completion flag stays unset and
    the error message is stored in the error global instead.
    """
    delimiters = ",\n".join(
        f"                    {{ left: {_js_string(left)}, right: {_js_string(right)}, "
        f"display: {'true' if display else 'false'} }}"
        for left, right, display in MATH_DELIMITERS
    )
    return f"""
    <script>
        document.addEventListener('DOMContentLoaded', function() {{
            try {{
                renderMathInElement(document.body, {{
                    delimiters: [
{delimiters}
                    ],
                    throwOnError: false
                }});
                window.{RENDER_COMPLETE_FLAG} = true;
            }} catch (error) {{
                window.{RENDER_ERROR_FLAG} = String((error && error.message) || error);
            }}
        }});
    </script>"""


def build_document_html(html: str) -> str:
    """
    Build a complete HTML document for single-document PDF generation.

    Args:
        html: Caller HTML, inserted verbatim into the body

    Returns:
        Complete HTML document string
    """
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">{_HEAD_ASSETS}
    <style>
        body {{
            font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', 'Roboto', 'Oxygen',
                'Ubuntu', 'Cantarell', 'Fira Sans', 'Droid Sans', 'Helvetica Neue', sans-serif;
            -webkit-font-smoothing: antialiased;
            -moz-osx-font-smoothing: grayscale;
        }}
        .katex {{ font-size: 1.05em; }}
        .katex-display {{ font-size: 1.1em; margin: 1em 0; }}
        .page-break {{ page-break-after: always; }}
        .avoid-break {{ page-break-inside: avoid; }}
    </style>
</head>
<body>
{html}
{_BODY_SCRIPTS}{build_render_script()}
</body>
</html>
"""


def wrap_pages(pages: Sequence[str]) -> str:
    """
    Wrap each fragment in a full-viewport block.

    A page-break marker follows every block except the last, so N fragments
    produce exactly N pages.
    """
    blocks = []
    last = len(pages) - 1
    for index, page_html in enumerate(pages):
        blocks.append(
            '<div class="page-content" style="min-height: 100vh; display: flex; '
            'align-items: center; justify-content: center;">\n'
            f"{page_html}\n"
            "</div>"
        )
        if index < last:
            blocks.append('<div class="page-break"></div>')
    return "\n".join(blocks)


def build_multi_page_html(pages: Sequence[str]) -> str:
    """
    Build a complete HTML document for multi-page (slide deck) generation.

    Args:
        pages: Ordered HTML fragments, one per output page

    Returns:
        Complete HTML document string
    """
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">{_HEAD_ASSETS}
    <style>
        body {{ margin: 0; padding: 0; }}
        .katex {{ font-size: 1.05em; }}
        .katex-display {{ font-size: 1.1em; margin: 1em 0; }}
        .page-break {{ page-break-after: always; }}
        .page-content {{ page-break-inside: avoid; }}
    </style>
</head>
<body>
{wrap_pages(pages)}
{_BODY_SCRIPTS}{build_render_script()}
</body>
</html>
"""
