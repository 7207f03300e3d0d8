"""API endpoints for modifying uploaded documents."""

from fastapi import APIRouter, File, Form, HTTPException, UploadFile

from app.api.exports import TurnResponse
from app.core.artifact_storage import store_upload
from app.core.config import get_settings
from app.core.export_errors import UnknownFormat
from app.core.export_pipeline import handle_document_turn, modify_document
from app.core.formats import describe, format_for_path
from app.core.logging import get_logger
from app.core.schemas_export import FormatDescriptor, ModificationRequest, PipelineResult
from app.db import conversations as conversations_db

logger = get_logger(__name__)

router = APIRouter()


async def _receive_upload(file: UploadFile, format_id: str | None) -> tuple[bytes, FormatDescriptor]:
    """Read an upload and resolve its format.

    Raises:
        HTTPException 400: Empty file or unknown format
        HTTPException 413: File larger than MAX_UPLOAD_BYTES
    """
    max_bytes = get_settings().MAX_UPLOAD_BYTES
    data = await file.read(max_bytes + 1)
    if not data:
        raise HTTPException(status_code=400, detail="Empty file")
    if len(data) > max_bytes:
        raise HTTPException(status_code=413, detail=f"File exceeds {max_bytes} bytes")

    try:
        descriptor = describe(format_id) if format_id else format_for_path(file.filename or "")
    except UnknownFormat as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return data, descriptor


@router.post("/documents/modify")
async def modify_uploaded_document(
    file: UploadFile = File(...),
    instruction: str = Form(...),
    format: str | None = Form(default=None),
    conversation_id: str | None = Form(default=None),
) -> PipelineResult:
    """Apply an instruction to an uploaded document and return the edited copy.

    Args:
        file: Source document (never modified)
        instruction: What to change
        format: Format id; defaults to the file extension
        conversation_id: Optional conversation whose recent messages give context

    Returns:
        PipelineResult with the artifact, or the error code and recommendation

    Raises:
        HTTPException 400: If the file is empty or its format unknown
        HTTPException 413: If the file is too large
    """
    data, descriptor = await _receive_upload(file, format)
    source_path = store_upload(data, file.filename, descriptor)

    settings = get_settings()
    session_context = []
    if conversation_id:
        session_context = conversations_db.get_messages(conversation_id, order="asc")

    request = ModificationRequest.build(
        source_file_path=str(source_path),
        declared_format=descriptor.id,
        user_instruction=instruction,
        session_context=session_context,
        window=settings.SESSION_CONTEXT_WINDOW,
        conversation_id=conversation_id,
    )
    logger.info(f"Modify request for {file.filename} ({descriptor.id})")
    return await modify_document(request)


@router.post("/conversations/{conversation_id}/documents")
async def post_document_message(
    conversation_id: str,
    file: UploadFile = File(...),
    message: str = Form(...),
    format: str | None = Form(default=None),
) -> TurnResponse:
    """Chat message with an attached document: modify, export or (unhandled) analyze."""
    data, descriptor = await _receive_upload(file, format)
    source_path = store_upload(data, file.filename, descriptor)

    result = await handle_document_turn(conversation_id, message, source_path, descriptor.id)
    return TurnResponse(handled=result is not None, result=result)
