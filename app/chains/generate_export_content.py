"""Generate new content for combined "create X and export it as Y" requests."""

import logging

from app.chains.plan_modifications import format_session_context
from app.core.config import get_settings
from app.core.formats import describe
from app.core.intent_rules import strip_export_instructions
from app.core.oracle import ModelTier, OracleError, call_oracle, call_oracle_json
from app.core.schemas_export import SessionMessage, Strategy

logger = logging.getLogger(__name__)


# =============================================================================
# Prompts
# =============================================================================

CONTENT_REQUEST_SYSTEM = """You remove export and download instructions from user messages in any language.

Return ONLY JSON: {"contentRequest": "<the request without export instructions>"}

Rules:
- Remove phrases about exporting, downloading, saving, converting or file formats.
- Keep the original language; do not translate or rephrase.
- If the message is only about exporting, return an empty string.

Examples:
"Explain JWT and export as PDF" -> {"contentRequest": "Explain JWT"}
"Crear un informe y descargar en Word" -> {"contentRequest": "Crear un informe"}"""

CONTENT_SYSTEM = """You write complete documents that will be saved as {label} files.
- Write the finished document, not a chat reply: no greeting, no offer of further help, no download links.
- Use Markdown headings, bullet lists and pipe tables for structure.
{format_rules}"""

TABULAR_RULES = "- The file is a spreadsheet: put the data in ONE pipe table with a header row."
SLIDE_RULES = "- The file is a presentation: start each slide with a level-2 heading."

CONTENT_USER = """Recent conversation:
{context}

{document_block}Request: {request}"""


# =============================================================================
# Chains
# =============================================================================


async def extract_content_request(message: str, conversation_id: str | None = None) -> str:
    """
    The content half of a combined request.

    Uses the oracle for multilingual messages; falls back to the
    deterministic stripper on any failure.
    """
    fallback = strip_export_instructions(message)
    try:
        data = await call_oracle_json(
            [
                {"role": "system", "content": CONTENT_REQUEST_SYSTEM},
                {"role": "user", "content": message},
            ],
            tier=ModelTier.FAST,
            temperature=0.0,
            max_tokens=300,
            chain="extract_content_request",
            conversation_id=conversation_id,
        )
    except OracleError as e:
        logger.warning(f"Content request extraction failed, using rules: {e}")
        return fallback

    request = data.get("contentRequest")
    if not isinstance(request, str):
        return fallback
    return request.strip()


async def generate_export_content(
    content_request: str,
    target_format: str,
    session_context: list[SessionMessage] | tuple[SessionMessage, ...] = (),
    document_text: str | None = None,
    conversation_id: str | None = None,
) -> str:
    """
    Write the content a combined request asks for, shaped for the target format.

    Raises:
        OracleError: If the oracle fails or returns nothing
    """
    settings = get_settings()
    descriptor = describe(target_format)

    if descriptor.strategy == Strategy.TABULAR or descriptor.id in ("xls", "ods"):
        format_rules = TABULAR_RULES
    elif descriptor.id in ("pptx", "ppt", "odp"):
        format_rules = SLIDE_RULES
    else:
        format_rules = ""

    window = settings.SESSION_CONTEXT_WINDOW
    recent = list(session_context)[-window:] if window > 0 else []
    document_block = ""
    if document_text:
        document_block = (
            "Reference document:\n<<<DOCUMENT\n"
            f"{document_text[: settings.MAX_PLAN_INPUT_CHARS]}\nDOCUMENT>>>\n\n"
        )

    content = await call_oracle(
        [
            {
                "role": "system",
                "content": CONTENT_SYSTEM.format(
                    label=descriptor.display_label, format_rules=format_rules
                ).rstrip(),
            },
            {
                "role": "user",
                "content": CONTENT_USER.format(
                    context=format_session_context(recent),
                    document_block=document_block,
                    request=content_request.strip(),
                ),
            },
        ],
        tier=ModelTier.STANDARD,
        temperature=0.4,
        max_tokens=4000,
        chain="generate_export_content",
        conversation_id=conversation_id,
    )
    logger.info(f"Generated {len(content)} chars of {descriptor.id} content")
    return content
