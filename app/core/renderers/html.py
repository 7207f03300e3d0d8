"""Markdown/HTML helpers shared by the markup and image renderers."""

import html as html_lib

from markdown_it import MarkdownIt

from app.core.renderers.tables import looks_like_html

DOCUMENT_CSS = """
body { font-family: -apple-system, "Segoe UI", Helvetica, Arial, sans-serif; line-height: 1.55;
       color: #1f2328; max-width: 960px; margin: 32px auto; padding: 0 24px; background: #ffffff; }
h1, h2, h3 { line-height: 1.25; margin-top: 1.4em; }
table { border-collapse: collapse; margin: 1em 0; width: 100%; }
th, td { border: 1px solid #d0d7de; padding: 6px 12px; text-align: left; vertical-align: top; }
th { background: #4472c4; color: #ffffff; }
code, pre { font-family: SFMono-Regular, Consolas, monospace; background: #f6f8fa; }
pre { padding: 12px; overflow-x: auto; }
"""

_md = MarkdownIt("commonmark", {"html": True, "typographer": True}).enable("table").enable(
    "strikethrough"
)


def markdown_to_html(content: str) -> str:
    """Body HTML for markdown or plain content; HTML input passes through."""
    if looks_like_html(content):
        return content
    return _md.render(content)


def html_document(content: str, title: str) -> str:
    """Full standalone HTML page for the content."""
    body = markdown_to_html(content)
    if "<html" in body.lower():
        return body
    return (
        "<!DOCTYPE html>\n"
        '<html lang="en">\n<head>\n<meta charset="utf-8">\n'
        f"<title>{html_lib.escape(title)}</title>\n"
        f"<style>{DOCUMENT_CSS}</style>\n"
        f"</head>\n<body>\n{body}\n</body>\n</html>\n"
    )
