"""Full-document rewrite for formats that cannot be edited in place.

PDF, PPTX and ODT are re-rendered from text, so instead of find/replace
pairs the oracle returns the whole revised body. Long documents are sent
in sections; the plan holds one instruction per revised section.
"""

import asyncio
import logging
import re

from app.chains.plan_modifications import format_session_context
from app.core.config import get_settings
from app.core.export_errors import NoValidChanges
from app.core.oracle import ModelTier, OracleError, call_oracle
from app.core.schemas_export import (
    ChangeInstruction,
    ExtractedDocument,
    ModificationPlan,
    SessionMessage,
)

logger = logging.getLogger(__name__)

REWRITE_SYSTEM = """You revise documents. Apply the user's instruction to the document and return the COMPLETE revised document in Markdown.
- Keep every part the instruction does not touch.
- Use Markdown headings, lists and pipe tables to preserve structure.
- If the instruction does not concern the text you were given, return it unchanged.
- Return only the document body: no preamble, no commentary, no code fences."""

REWRITE_USER = """{part}Document:
<<<DOCUMENT
{document}
DOCUMENT>>>

Recent conversation:
{context}

Instruction: {instruction}"""

SECTION_NOTE = (
    "This is section {index} of {total} of a longer document. "
    "Return only this section, revised.\n\n"
)

_FENCE_RE = re.compile(r"^```[a-zA-Z]*\s*\n(.*?)\n```\s*$", re.DOTALL)


def split_for_rewrite(text: str, limit: int) -> list[str]:
    """
    Cut text into consecutive sections of at most ``limit`` characters.

    Cuts prefer paragraph breaks, then line breaks, then spaces. Sections are
    stripped, so each one is a literal substring of ``text`` and the
    whitespace between sections stays in the document.
    """
    sections: list[str] = []
    start = 0
    while len(text) - start > limit:
        window = text[start : start + limit]
        cut = -1
        for separator in ("\n\n", "\n", " "):
            cut = window.rfind(separator)
            if cut > 0:
                break
        if cut <= 0:
            cut = limit
        sections.append(text[start : start + cut].strip())
        start += cut
    sections.append(text[start:].strip())
    return [s for s in sections if s]


async def _rewrite_section(
    section: str,
    part: str,
    user_instruction: str,
    context: str,
    conversation_id: str | None,
) -> str:
    messages = [
        {"role": "system", "content": REWRITE_SYSTEM},
        {
            "role": "user",
            "content": REWRITE_USER.format(
                part=part,
                document=section,
                context=context,
                instruction=user_instruction.strip(),
            ),
        },
    ]
    raw = await call_oracle(
        messages,
        tier=ModelTier.STANDARD,
        temperature=0.2,
        max_tokens=8000,
        chain="rewrite_document",
        conversation_id=conversation_id,
    )
    body = raw.strip()
    fence = _FENCE_RE.match(body)
    if fence:
        body = fence.group(1).strip()
    return body


async def rewrite_document(
    extracted: ExtractedDocument,
    user_instruction: str,
    session_context: list[SessionMessage] | tuple[SessionMessage, ...] = (),
    conversation_id: str | None = None,
) -> ModificationPlan:
    """
    Produce a full-body rewrite plan.

    Documents longer than MAX_PLAN_INPUT_CHARS are revised section by
    section; each instruction replaces exactly the section the oracle saw.

    Raises:
        NoValidChanges: If the oracle fails on any section or changes nothing
    """
    settings = get_settings()
    if not extracted.plain_text.strip():
        raise NoValidChanges("The document has no text to revise.")

    window = settings.SESSION_CONTEXT_WINDOW
    recent = list(session_context)[-window:] if window > 0 else []
    context = format_session_context(recent)
    sections = split_for_rewrite(extracted.plain_text, settings.MAX_PLAN_INPUT_CHARS)
    total = len(sections)

    try:
        bodies = await asyncio.gather(
            *(
                _rewrite_section(
                    section,
                    SECTION_NOTE.format(index=i, total=total) if total > 1 else "",
                    user_instruction,
                    context,
                    conversation_id,
                )
                for i, section in enumerate(sections, start=1)
            )
        )
    except OracleError as e:
        logger.warning(f"Document rewrite failed: {e}")
        raise NoValidChanges("The document could not be revised right now.") from e

    instructions = [
        ChangeInstruction(find_text=section, replace_text=body, reason="full rewrite")
        for section, body in zip(sections, bodies)
        if body and body != section
    ]
    if not instructions:
        raise NoValidChanges()
    if total > 1:
        logger.info(f"Rewrote {len(instructions)} of {total} sections")

    return ModificationPlan(
        instructions=instructions,
        explanation="Revised the document and re-rendered it.",
    )
