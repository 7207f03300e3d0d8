"""Choosing and cleaning the text that goes into an exported file.

Assistant replies carry chat furniture (apologies, "would you like..."
offers, download links from earlier exports) that must not end up in a
document. Everything here is pure string work over conversation messages.
"""

import re
from typing import Iterable

from app.core.schemas_export import ExportScope, SessionMessage

MIN_SECTION_CHARS = 80
MAX_SECTIONS = 10
SECTION_SEPARATOR = "\n\n---\n\n"

# Whole lines of assistant boilerplate
_BOILERPLATE_LINE_RE = re.compile(
    r"^\s*(?:as an ai|i'?m (?:an )?ai|i cannot|i can't|i'?m sorry|i apologi[sz]e"
    r"|ai generated|this is ai generated|language model"
    r"|you can now download"
    r"|here(?:'?s| is) (?:the )?(?:content|updated|final|rewritten|clean) version"
    r"|feel free to (?:edit|modify|customi[sz]e)).*$",
    re.IGNORECASE | re.MULTILINE,
)
_SAVE_HINT_RE = re.compile(
    r"^to (?:download|export|save).*(?:pdf|word|excel|file|document).*$",
    re.IGNORECASE | re.MULTILINE,
)
# A closing "Would you like..." paragraph
_OFFER_TAIL_RE = re.compile(r"(?:^|\n)[ \t]*would you like[^\n]*(?:\n[^\n]+)*\s*$", re.IGNORECASE)
_BOLD_RE = re.compile(r"\*\*(.+?)\*\*")
_ITALIC_RE = re.compile(r"(?<![\w*])\*(?!\s)(.+?)(?<!\s)\*(?![\w*])")
_FENCE_RE = re.compile(r"^```.*$", re.MULTILINE)
_BLANK_RUN_RE = re.compile(r"\n{3,}")

_DOWNLOAD_LINK_RES = [
    re.compile(
        r"\[([^\]]*?(?:Download|Export|Save|PDF|Word|Docx?|Excel|Sandbox)[^\]]*?)\]\([^)]+?\)",
        re.IGNORECASE,
    ),
    re.compile(
        r"(?:^|\n)[ \t]*(?:📄)?[ \t]*Download(?: your)?(?: PDF| Word| Excel| Docx)?(?: here|:)?[^\n]*\n?",
        re.IGNORECASE,
    ),
    re.compile(
        r"(?:^|\n)[ \t]*(?:Click here to download|Download as PDF|Download as Word"
        r"|Download as Excel|Here['’]?s your download link)[^\n]*\n?",
        re.IGNORECASE,
    ),
    re.compile(r"Click (?:to )?Download [^.\n]*\.", re.IGNORECASE),
    re.compile(r"(?:sandbox:|file:)?/mnt/data[^\s)]+"),
    re.compile(r"<a\s[^>]*href=[\"'][^\"']*/uploads/[^\"']*[\"'][^>]*>.*?</a>", re.IGNORECASE | re.DOTALL),
]

_EXPORT_LINK_PHRASES = (
    "download your pdf",
    "download your word document",
    "download your excel file",
    "download the file",
    "i created your file",
)
_MARKDOWN_DOWNLOAD_LINK_RE = re.compile(r"\[.*download.*\]\(https?://", re.IGNORECASE)


def clean_export_content(content: str | None) -> str:
    """Strip assistant boilerplate and chat formatting from content."""
    text = content or ""
    text = _BOILERPLATE_LINE_RE.sub("", text)
    text = _SAVE_HINT_RE.sub("", text)
    text = _OFFER_TAIL_RE.sub("", text)
    text = _BOLD_RE.sub(r"\1", text)
    text = _ITALIC_RE.sub(r"\1", text)
    text = _FENCE_RE.sub("", text)
    text = _BLANK_RUN_RE.sub("\n\n", text)
    return text.strip()


def strip_download_links(content: str | None) -> str:
    """Remove links and lines pointing at previously exported files."""
    text = content or ""
    for pattern in _DOWNLOAD_LINK_RES:
        text = pattern.sub("", text)
    return text.strip()


def looks_like_export_link(text: str | None) -> bool:
    """True for assistant messages that only announce a download."""
    lower = (text or "").lower()
    if not lower:
        return False
    if any(phrase in lower for phrase in _EXPORT_LINK_PHRASES):
        return True
    return bool(_MARKDOWN_DOWNLOAD_LINK_RE.search(text or ""))


def _substantial_bot_replies(messages: Iterable[SessionMessage]) -> list[str]:
    replies = []
    for m in messages:
        if m.sender != "bot":
            continue
        text = (m.message or "").strip()
        if len(text) < MIN_SECTION_CHARS or looks_like_export_link(text):
            continue
        replies.append(text)
    return replies


def build_aggregated_assistant_content(messages: Iterable[SessionMessage]) -> str:
    """Join the last substantial assistant replies into one report."""
    sections = _substantial_bot_replies(messages)
    return SECTION_SEPARATOR.join(sections[-MAX_SECTIONS:])


def build_transcript(messages: Iterable[SessionMessage], assistant_label: str = "Assistant") -> str:
    """Markdown transcript of a conversation, used for whole-conversation snapshots."""
    parts = []
    for m in messages:
        if m.sender == "bot" and looks_like_export_link(m.message):
            continue
        speaker = "User" if m.sender == "user" else assistant_label
        text = clean_export_content(strip_download_links(m.message))
        if text:
            parts.append(f"### {speaker}\n\n{text}")
    return "\n\n".join(parts)


def pick_content_for_export(
    scope: ExportScope,
    messages: list[SessionMessage],
    is_pure_export: bool,
    new_output: str = "",
) -> str:
    """
    Decide which text an export turn should render.

    Args:
        scope: Which part of the conversation the user asked for
        messages: Conversation history, oldest first
        is_pure_export: True when the user asked only for a file
        new_output: Freshly generated content, if any

    Returns:
        The content to export ('' when nothing exportable exists)
    """
    if not is_pure_export:
        return new_output or ""

    if scope == ExportScope.ALL:
        return build_aggregated_assistant_content(messages) or new_output or ""

    replies = _substantial_bot_replies(messages)
    if replies:
        return replies[-1]
    return new_output or ""


def rows_to_markdown(rows: list[list[str]]) -> str:
    """Render tabular rows as a pipe table; the first row is the header."""
    if not rows:
        return ""
    width = max(len(r) for r in rows)

    def line(cells: list[str]) -> str:
        padded = [str(c).replace("|", "\\|").replace("\n", " ") for c in cells]
        padded += [""] * (width - len(cells))
        return "| " + " | ".join(padded) + " |"

    out = [line(rows[0]), "| " + " | ".join(["---"] * width) + " |"]
    out.extend(line(r) for r in rows[1:])
    return "\n".join(out)
