"""Classify chat messages for export and document intent.

Deterministic rules run first; the oracle is consulted only when they are
silent. Any oracle failure resolves to a safe default and never raises.
"""

import json
import logging

from app.core.formats import describe, is_registered, list_formats, normalize_format_id
from app.core.intent_rules import (
    detect_scope,
    has_content_request,
    has_export_keyword,
    has_file_request,
    is_howto_question,
    match_document_intent,
    match_format,
)
from app.core.oracle import ModelTier, OracleError, call_oracle_json
from app.core.schemas_export import DocumentIntent, ExportIntent

logger = logging.getLogger(__name__)

__all__ = ["classify_export_intent", "classify_document_intent", "detect_scope"]

_CONFIDENCES = ("high", "medium", "low", "none")


# =============================================================================
# Prompts
# =============================================================================

EXPORT_INTENT_SYSTEM = """You classify chat messages for a document assistant.
Decide whether the user wants a downloadable file, and whether they also want new content written.

Return ONLY a JSON object:
{
  "isExport": true|false,
  "isPureExport": true|false,
  "hasContentRequest": true|false,
  "exportType": "<one of: {format_ids}>",
  "confidence": "high"|"medium"|"low"
}

Rules:
- isPureExport means the user only wants existing content turned into a file.
- hasContentRequest means the user asks for something new to be written first.
- isPureExport and hasContentRequest are never both true.
- Questions about how to do something in a format ("how do I center text in html?") are not exports.
- If no format is named, use "docx"."""

DOCUMENT_INTENT_SYSTEM = """The user has attached a document and sent a message about it.
Decide what they want:
- "analyze": questions, summaries, explanations about the document
- "modify": change the document's content and get an edited file back
- "export": convert the document or its content to another file format

Return ONLY a JSON object: {"intent": "analyze"|"modify"|"export", "confidence": "high"|"medium"|"low", "reason": "<short>"}"""


# =============================================================================
# Export intent
# =============================================================================


def _safe_default() -> ExportIntent:
    return ExportIntent(
        is_export=False,
        is_pure_export=False,
        has_content_request=True,
        export_type="docx",
        confidence="none",
    )


def _resolve_export_type(raw: object) -> str:
    """Map an oracle-proposed format onto a registered, exportable id."""
    format_id = normalize_format_id(str(raw or ""))
    if is_registered(format_id) and describe(format_id).exportable:
        return format_id
    return "docx"


def _merge_oracle_intent(data: dict, deterministic_content: bool) -> ExportIntent:
    confidence = str(data.get("confidence", "low")).lower()
    if confidence not in _CONFIDENCES:
        confidence = "low"

    if not bool(data.get("isExport")) or confidence in ("low", "none"):
        return ExportIntent(
            is_export=False,
            is_pure_export=False,
            has_content_request=True,
            export_type=_resolve_export_type(data.get("exportType")),
            confidence=confidence,
        )

    # Deterministic verb detection wins; the oracle may only add a content
    # request when it is confident about it.
    content = deterministic_content or (
        bool(data.get("hasContentRequest")) and confidence == "high"
    )
    return ExportIntent(
        is_export=True,
        is_pure_export=not content,
        has_content_request=content,
        export_type=_resolve_export_type(data.get("exportType")),
        confidence=confidence,
    )


async def classify_export_intent(
    message: str,
    conversation_id: str | None = None,
) -> ExportIntent:
    """
    Decide whether a chat message asks for an exported file.

    Args:
        message: Raw user message
        conversation_id: For usage logging only

    Returns:
        ExportIntent. Never raises; failures yield the "no export" default.
    """
    if not isinstance(message, str) or not message.strip():
        return _safe_default()

    text = message.strip()
    format_id = match_format(text)
    export_signal = has_export_keyword(text) or has_file_request(text)
    content = has_content_request(text)
    question = is_howto_question(text)

    if format_id and export_signal and not question:
        return ExportIntent(
            is_export=True,
            is_pure_export=not content,
            has_content_request=content,
            export_type=format_id,
            confidence="high",
        )

    # A format named without any request for a file ("center text in html")
    # or a how-to question goes to the oracle, which may decline.
    if not export_signal and not format_id:
        return ExportIntent(
            is_export=False,
            is_pure_export=False,
            has_content_request=True,
            export_type="docx",
            confidence="high",
        )

    format_ids = ", ".join(d.id for d in list_formats(exportable_only=True))
    messages = [
        {"role": "system", "content": EXPORT_INTENT_SYSTEM.replace("{format_ids}", format_ids)},
        {"role": "user", "content": json.dumps({"message": text[:2000]})},
    ]

    try:
        data = await call_oracle_json(
            messages,
            tier=ModelTier.FAST,
            max_tokens=200,
            chain="classify_export_intent",
            conversation_id=conversation_id,
        )
    except OracleError as e:
        logger.warning(f"Export intent classification failed, using default: {e}")
        return _safe_default()

    intent = _merge_oracle_intent(data, content)
    logger.info(
        f"Export intent via oracle: export={intent.is_export} "
        f"type={intent.export_type} confidence={intent.confidence}"
    )
    return intent


# =============================================================================
# Document intent
# =============================================================================


async def classify_document_intent(
    message: str,
    conversation_id: str | None = None,
) -> DocumentIntent:
    """Decide whether a message about an attached file asks to analyze, modify or export it.

    Never returns "modify" on failure: an uncertain edit would touch the user's file.
    """
    if not isinstance(message, str) or not message.strip():
        return DocumentIntent(intent="analyze", confidence="low", reason="empty message")

    fast = match_document_intent(message)
    if fast:
        return DocumentIntent(intent=fast, confidence="high", reason="rule match")

    messages = [
        {"role": "system", "content": DOCUMENT_INTENT_SYSTEM},
        {"role": "user", "content": message.strip()[:2000]},
    ]
    try:
        data = await call_oracle_json(
            messages,
            tier=ModelTier.FAST,
            max_tokens=150,
            chain="classify_document_intent",
            conversation_id=conversation_id,
        )
    except OracleError as e:
        logger.warning(f"Document intent classification failed, defaulting to analyze: {e}")
        return DocumentIntent(intent="analyze", confidence="low", reason="classifier unavailable")

    intent = str(data.get("intent", "analyze")).lower()
    if intent not in ("analyze", "modify", "export"):
        intent = "analyze"
    confidence = str(data.get("confidence", "low")).lower()
    if confidence not in _CONFIDENCES:
        confidence = "low"
    return DocumentIntent(
        intent=intent,
        confidence=confidence,
        reason=str(data.get("reason", ""))[:200],
    )
