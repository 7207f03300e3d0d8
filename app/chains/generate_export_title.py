"""Generate a short, human-friendly title for an exported file."""

import logging
import re

from app.core.config import get_settings
from app.core.oracle import ModelTier, OracleError, call_oracle
from app.core.schemas_export import SessionMessage

logger = logging.getLogger(__name__)

MAX_TITLE_WORDS = 7
CONTENT_SAMPLE_CHARS = 800
HISTORY_WINDOW = 10

TITLE_SYSTEM = """You generate short, professional file titles for exported documents and conversations.
Return a Title Case title of at most 7 words for the content below.
No file extensions, no quotes, and no mention of PDF, Word, Export or Download.
Respond with the title only."""

_DISALLOWED_RE = re.compile(r"[^A-Za-z0-9\-\s']")
_FORMAT_WORD_RE = re.compile(r"\b(?:pdf|word|docx?|export(?:ed)?|download)\b", re.IGNORECASE)


def tidy_title(raw: str | None, fallback: str) -> str:
    """Reduce oracle output to at most seven Title Case words."""
    text = _DISALLOWED_RE.sub("", raw or "")
    text = _FORMAT_WORD_RE.sub("", text)
    words = text.split()[:MAX_TITLE_WORDS]
    title = " ".join(w if w.isupper() else w[:1].upper() + w[1:] for w in words).rstrip(". ")
    if len(title) < 3:
        return fallback
    return title


async def generate_export_title(
    content: str = "",
    messages: list[SessionMessage] | None = None,
    conversation_id: str | None = None,
) -> str:
    """
    Title for an export, from its content or else the recent conversation.

    Never raises; returns DEFAULT_EXPORT_TITLE when the oracle is unavailable.
    """
    fallback = get_settings().DEFAULT_EXPORT_TITLE
    recent = (messages or [])[-HISTORY_WINDOW:]
    sample = (content or "\n".join(m.message for m in recent))[:CONTENT_SAMPLE_CHARS]
    if not sample.strip():
        return fallback

    try:
        raw = await call_oracle(
            [
                {"role": "system", "content": TITLE_SYSTEM},
                {"role": "user", "content": f"Content:\n{sample}"},
            ],
            tier=ModelTier.FAST,
            temperature=0.2,
            max_tokens=16,
            chain="generate_export_title",
            conversation_id=conversation_id,
        )
    except OracleError as e:
        logger.warning(f"Title generation failed, using fallback: {e}")
        return fallback

    return tidy_title(raw, fallback)
