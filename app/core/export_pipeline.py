"""Chat-turn entry points for document export and modification.

Every public coroutine here returns a PipelineResult (or None when the turn
is not an export/modification at all). Pipeline errors are converted to
``PipelineResult(success=False, error=<code>)``; nothing raises across a
chat turn except cancellation.
"""

import logging
from pathlib import Path

from app.chains.classify_export_intent import classify_document_intent, classify_export_intent
from app.chains.generate_export_content import extract_content_request, generate_export_content
from app.chains.generate_export_title import generate_export_title
from app.chains.plan_modifications import plan_modifications
from app.chains.rewrite_document import rewrite_document
from app.core.appliers import apply_plan, unsupported_modification
from app.core.artifact_storage import upload_title
from app.core.config import get_settings
from app.core.document_processing import extract
from app.core.export_content import (
    clean_export_content,
    pick_content_for_export,
    rows_to_markdown,
    strip_download_links,
)
from app.core.export_errors import ExportPipelineError
from app.core.export_snapshot import get_or_create_export_snapshot, record_message
from app.core.formats import describe
from app.core.intent_rules import detect_scope, has_content_request, match_format
from app.core.logging import get_logger, log_with_context
from app.core.oracle import OracleError
from app.core.renderers import render
from app.core.schemas_export import (
    ExportArtifact,
    ModificationRequest,
    PipelineResult,
    Strategy,
)
from app.db import conversations as conversations_db

logger = get_logger(__name__)

# Combined "create X and export it" requests need at least this many words
MIN_COMBINED_REQUEST_WORDS = 5


# =============================================================================
# Result helpers
# =============================================================================


def failure(error: ExportPipelineError) -> PipelineResult:
    return PipelineResult(
        success=False,
        error=error.code,
        message=error.message,
        recommendation=error.recommendation,
    )


def generation_failed() -> PipelineResult:
    return PipelineResult(
        success=False,
        error="content_generation_failed",
        message="I couldn't write that content right now.",
        recommendation="Please try again in a moment.",
    )


def unexpected_failure(e: Exception) -> PipelineResult:
    logger.error(f"Unexpected pipeline error: {e}", exc_info=True)
    return PipelineResult(
        success=False,
        error="export_failed",
        message="Something went wrong while preparing your file.",
        recommendation="Please try again in a moment.",
    )


def artifact_reply(artifact: ExportArtifact) -> str:
    """Chat reply announcing an artifact (recognized later as an export link)."""
    reply = f"I created your file: [{artifact.file_name}]({artifact.download_url})"
    if artifact.notes:
        reply += "\n\n" + "\n".join(f"Note: {note}" for note in artifact.notes)
    return reply


# =============================================================================
# Modification
# =============================================================================


async def modify_document(request: ModificationRequest) -> PipelineResult:
    """
    Modify an existing document and return the edited copy.

    Flow: describe -> strategy check -> extract -> plan (or rewrite) -> apply.
    The source file is never written.
    """
    try:
        descriptor = describe(request.declared_format)
        if not descriptor.modifiable:
            raise unsupported_modification(descriptor)

        extracted = await extract(request.source_file_path, descriptor.id)

        if descriptor.strategy == Strategy.EXTRACT_MODIFY_EXPORT:
            plan = await rewrite_document(
                extracted,
                request.user_instruction,
                request.session_context,
                conversation_id=request.conversation_id,
            )
        else:
            plan = await plan_modifications(
                extracted,
                request.user_instruction,
                request.session_context,
                conversation_id=request.conversation_id,
            )

        artifact = await apply_plan(request.source_file_path, descriptor, plan, extracted)
    except ExportPipelineError as e:
        log_with_context(
            logger,
            logging.WARNING,
            f"Modification failed: {e.code}: {e.message}",
            conversation_id=request.conversation_id,
            format_id=request.declared_format,
        )
        return failure(e)
    except Exception as e:
        return unexpected_failure(e)

    log_with_context(
        logger,
        logging.INFO,
        f"Modified document -> {artifact.file_name} ({artifact.preservation_level.value})",
        conversation_id=request.conversation_id,
        format_id=descriptor.id,
    )
    return PipelineResult(
        success=True,
        artifact=artifact,
        message=f"Your edited {descriptor.display_label} is ready.",
        plan_explanation=plan.explanation or None,
    )


# =============================================================================
# Export
# =============================================================================


async def export_content(
    content: str,
    target_format: str,
    title: str | None = None,
    conversation_id: str | None = None,
) -> PipelineResult:
    """Clean content and render it to a new file."""
    try:
        cleaned = clean_export_content(strip_download_links(content))
        if not cleaned:
            return PipelineResult(
                success=False,
                error="no_exportable_content",
                message="There is no content to export yet.",
                recommendation="Generate some content first, then ask for the file.",
            )

        if not title:
            title = await generate_export_title(cleaned, conversation_id=conversation_id)
        artifact = await render(cleaned, target_format, title=title)
    except ExportPipelineError as e:
        log_with_context(
            logger,
            logging.WARNING,
            f"Export failed: {e.code}: {e.message}",
            conversation_id=conversation_id,
            format_id=target_format,
        )
        return failure(e)
    except Exception as e:
        return unexpected_failure(e)

    log_with_context(
        logger,
        logging.INFO,
        f"Exported {artifact.file_name}",
        conversation_id=conversation_id,
        format_id=artifact.format,
    )
    return PipelineResult(
        success=True,
        artifact=artifact,
        message=f"Your {artifact.label} is ready.",
    )


async def export_conversation(
    conversation_id: str,
    target_format: str,
    title: str | None = None,
) -> PipelineResult:
    """Export the conversation snapshot; unchanged conversations reuse it."""
    try:
        snapshot = get_or_create_export_snapshot(conversation_id)
    except Exception as e:
        return unexpected_failure(e)
    return await export_content(
        snapshot, target_format, title=title, conversation_id=conversation_id
    )


async def handle_export_turn(conversation_id: str, message: str) -> PipelineResult | None:
    """
    Handle one chat message: record it and, if it asks for a file, produce one.

    Returns:
        None when the message is not an export request (normal chat continues);
        otherwise the PipelineResult, whose reply is also recorded as a bot message.
    """
    record_message(conversation_id, "user", message)

    intent = await classify_export_intent(message, conversation_id=conversation_id)
    if not intent.is_export:
        return None

    messages = conversations_db.get_messages(conversation_id, order="asc")
    word_count = len(message.split())
    combined = (
        intent.has_content_request
        and not intent.is_pure_export
        and word_count >= MIN_COMBINED_REQUEST_WORDS
    )
    log_with_context(
        logger,
        logging.INFO,
        f"Export turn: combined={combined} pure={intent.is_pure_export} "
        f"confidence={intent.confidence}",
        conversation_id=conversation_id,
        format_id=intent.export_type,
    )

    if combined:
        request = await extract_content_request(message, conversation_id=conversation_id)
        if not request:
            return PipelineResult(
                success=False,
                error="no_content_request",
                message="Please tell me what content you want to generate.",
            )
        try:
            content = await generate_export_content(
                request,
                intent.export_type,
                session_context=messages[:-1],
                conversation_id=conversation_id,
            )
        except OracleError as e:
            logger.warning(f"Content generation failed: {e}")
            return generation_failed()
        # Generated content is part of the conversation
        record_message(conversation_id, "bot", content)
    else:
        scope = detect_scope(message)
        content = pick_content_for_export(scope, messages, is_pure_export=True)

    result = await export_content(content, intent.export_type, conversation_id=conversation_id)
    if result.success and result.artifact:
        record_message(conversation_id, "bot", artifact_reply(result.artifact))
    return result


async def handle_document_turn(
    conversation_id: str | None,
    message: str,
    file_path: str | Path,
    format_id: str,
) -> PipelineResult | None:
    """
    Handle a message sent with an attached document.

    Returns:
        None for analysis questions (answered by normal chat), otherwise the
        modification or export result.
    """
    intent = await classify_document_intent(message, conversation_id=conversation_id)
    log_with_context(
        logger,
        logging.INFO,
        f"Document turn intent={intent.intent} confidence={intent.confidence}",
        conversation_id=conversation_id,
        format_id=format_id,
    )

    session_context = []
    if conversation_id:
        session_context = conversations_db.get_messages(conversation_id, order="asc")

    if intent.intent == "modify":
        request = ModificationRequest.build(
            source_file_path=str(file_path),
            declared_format=format_id,
            user_instruction=message,
            session_context=session_context,
            window=get_settings().SESSION_CONTEXT_WINDOW,
            conversation_id=conversation_id,
        )
        return await modify_document(request)

    if intent.intent == "export":
        target = match_format(message) or "docx"
        try:
            extracted = await extract(file_path, format_id)
        except ExportPipelineError as e:
            return failure(e)
        if extracted.is_tabular:
            content = rows_to_markdown(extracted.tabular_rows)
        else:
            content = extracted.plain_text

        # "summarize this report as a pdf" writes new content from the upload
        if (
            has_content_request(message)
            and len(message.split()) >= MIN_COMBINED_REQUEST_WORDS
        ):
            request = await extract_content_request(message, conversation_id=conversation_id)
            if request:
                try:
                    content = await generate_export_content(
                        request,
                        target,
                        session_context=session_context,
                        document_text=extracted.plain_text,
                        conversation_id=conversation_id,
                    )
                except OracleError as e:
                    logger.warning(f"Content generation from upload failed: {e}")
                    return generation_failed()
        return await export_content(
            content, target, title=upload_title(file_path), conversation_id=conversation_id
        )

    return None
