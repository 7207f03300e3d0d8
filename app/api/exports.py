"""API endpoints for chat turns and conversation exports."""

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from app.core.export_errors import UnknownFormat
from app.core.export_pipeline import export_conversation, handle_export_turn
from app.core.formats import describe
from app.core.logging import get_logger
from app.core.schemas_export import PipelineResult

logger = get_logger(__name__)

router = APIRouter()


class MessageRequest(BaseModel):
    """A user chat message."""

    message: str = Field(..., min_length=1)


class TurnResponse(BaseModel):
    """Outcome of a chat turn. ``handled`` is False when normal chat should answer."""

    handled: bool
    result: PipelineResult | None = None


class ConversationExportRequest(BaseModel):
    """Request to export a whole conversation."""

    format: str = "docx"
    title: str | None = None


def require_exportable(format_id: str) -> None:
    """Reject unknown or non-exportable formats with 400."""
    try:
        descriptor = describe(format_id)
    except UnknownFormat as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    if not descriptor.exportable:
        raise HTTPException(
            status_code=400,
            detail=f"{descriptor.display_label} is not an export format",
        )


@router.post("/conversations/{conversation_id}/messages")
async def post_message(conversation_id: str, request: MessageRequest) -> TurnResponse:
    """Record a chat message and produce a file if it asks for one.

    Args:
        conversation_id: Conversation UUID
        request: The user's message

    Returns:
        TurnResponse; failures are reported inside ``result``, not as HTTP errors
    """
    result = await handle_export_turn(conversation_id, request.message)
    return TurnResponse(handled=result is not None, result=result)


@router.post("/conversations/{conversation_id}/export")
async def export_conversation_endpoint(
    conversation_id: str,
    request: ConversationExportRequest,
) -> PipelineResult:
    """Export the conversation snapshot to a file.

    Raises:
        HTTPException 400: If the format is unknown or not exportable
    """
    require_exportable(request.format)
    logger.info(f"Exporting conversation {conversation_id} as {request.format}")
    return await export_conversation(conversation_id, request.format, title=request.title)
