"""Markup renderer for txt, md, html and xml."""

import re
from datetime import datetime, timezone

from lxml import etree
from markdownify import markdownify

from app.core.renderers.base import BaseRenderer, RendererRegistry
from app.core.renderers.html import html_document
from app.core.renderers.tables import is_separator_row, looks_like_html, split_pipe_row
from app.core.schemas_export import RenderFamily

HEADING_RE = re.compile(r"^(#{1,6})\s+(.*)$")
BULLET_RE = re.compile(r"^\s*[-*+•]\s+(.*)$")
NUMBERED_RE = re.compile(r"^\s*\d+[.)]\s+(.*)$")
FENCE_RE = re.compile(r"^\s*```")
LINK_RE = re.compile(r"\[([^\]]+)\]\(([^)]+)\)")
EMPHASIS_RE = re.compile(r"(\*\*|__)(.+?)\1|(?<![\w*])\*(?!\s)(.+?)(?<!\s)\*(?![\w*])")


def to_markdown(content: str) -> str:
    if looks_like_html(content):
        return markdownify(content, heading_style="ATX", strip=["script", "style"]).strip()
    return content


def strip_inline(text: str) -> str:
    text = LINK_RE.sub(lambda m: f"{m.group(1)} ({m.group(2)})", text)
    text = EMPHASIS_RE.sub(lambda m: m.group(2) or m.group(3) or "", text)
    return text.replace("`", "")


def markdown_to_plain(content: str) -> str:
    """Plain text with markdown markers removed and bullets drawn as '•'."""
    if looks_like_html(content):
        content = to_markdown(content)
    lines: list[str] = []
    for line in content.splitlines():
        if FENCE_RE.match(line):
            continue
        heading = HEADING_RE.match(line)
        bullet = BULLET_RE.match(line)
        if heading:
            lines.append(strip_inline(heading.group(2)).strip())
        elif bullet:
            lines.append(f"• {strip_inline(bullet.group(1))}")
        elif line.strip().startswith("|"):
            cells = split_pipe_row(line)
            if not is_separator_row(cells):
                lines.append(" | ".join(strip_inline(c) for c in cells))
        else:
            lines.append(strip_inline(line))
    text = "\n".join(lines)
    return re.sub(r"\n{3,}", "\n\n", text).strip() + "\n"


def markdown_to_xml(content: str, title: str) -> bytes:
    """Structured XML: document/metadata/content with heading, list, item, table and paragraph."""
    root = etree.Element("document")
    metadata = etree.SubElement(root, "metadata")
    etree.SubElement(metadata, "title").text = title
    etree.SubElement(metadata, "created").text = datetime.now(timezone.utc).isoformat()
    body = etree.SubElement(root, "content")

    current_list = None
    current_table = None
    paragraph: list[str] = []

    def flush_paragraph() -> None:
        if paragraph:
            etree.SubElement(body, "paragraph").text = " ".join(paragraph)
            paragraph.clear()

    for line in to_markdown(content).splitlines():
        stripped = line.strip()
        if FENCE_RE.match(line):
            continue
        heading = HEADING_RE.match(stripped)
        bullet = BULLET_RE.match(line)
        numbered = NUMBERED_RE.match(line)

        if not stripped:
            flush_paragraph()
            current_list = current_table = None
        elif heading:
            flush_paragraph()
            current_list = current_table = None
            el = etree.SubElement(body, "heading", level=str(len(heading.group(1))))
            el.text = strip_inline(heading.group(2))
        elif bullet or numbered:
            flush_paragraph()
            current_table = None
            kind = "bullet" if bullet else "numbered"
            if current_list is None or current_list.get("type") != kind:
                current_list = etree.SubElement(body, "list", type=kind)
            etree.SubElement(current_list, "item").text = strip_inline((bullet or numbered).group(1))
        elif stripped.startswith("|") and stripped.count("|") >= 2:
            flush_paragraph()
            current_list = None
            cells = split_pipe_row(stripped)
            if is_separator_row(cells):
                continue
            if current_table is None:
                current_table = etree.SubElement(body, "table")
            row = etree.SubElement(current_table, "row")
            for cell in cells:
                etree.SubElement(row, "cell").text = strip_inline(cell)
        else:
            current_list = current_table = None
            paragraph.append(strip_inline(stripped))
    flush_paragraph()

    return etree.tostring(root, xml_declaration=True, encoding="UTF-8", pretty_print=True)


class MarkupRenderer(BaseRenderer):
    family = RenderFamily.MARKUP

    async def render(self, content, descriptor, title, output_path) -> list[str]:
        if descriptor.id == "txt":
            output_path.write_text(markdown_to_plain(content), encoding="utf-8")
        elif descriptor.id == "md":
            output_path.write_text(to_markdown(content).rstrip() + "\n", encoding="utf-8")
        elif descriptor.id == "html":
            output_path.write_text(html_document(content, title), encoding="utf-8")
        elif descriptor.id == "xml":
            output_path.write_bytes(markdown_to_xml(content, title))
        else:
            raise ValueError(f"No markup writer for {descriptor.id}")
        return []


RendererRegistry.register(MarkupRenderer())
