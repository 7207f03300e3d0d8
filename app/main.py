"""FastAPI application entry point."""

from fastapi import FastAPI, HTTPException
from fastapi.responses import FileResponse, JSONResponse

from app.api import router as api_router
from app.core.artifact_storage import uploads_dir
from app.core.export_errors import UnknownFormat
from app.core.formats import format_for_path

app = FastAPI(
    title="Chat Export Engine",
    description="Document export and modification pipeline for a chat assistant",
    version="0.1.0",
)


@app.get("/health")
async def health_check() -> JSONResponse:
    """Health check endpoint."""
    return JSONResponse(content={"status": "ok"}, status_code=200)


@app.get("/uploads/{file_name}")
async def download_artifact(file_name: str) -> FileResponse:
    """Serve a generated file, always as an attachment.

    Raises:
        HTTPException 404: For unknown files, hidden/staged files or any path outside uploads
    """
    if not file_name or file_name.startswith(".") or "/" in file_name or "\\" in file_name:
        raise HTTPException(status_code=404, detail="File not found")

    root = uploads_dir()
    path = (root / file_name).resolve()
    if path.parent != root or not path.is_file():
        raise HTTPException(status_code=404, detail="File not found")

    try:
        media_type = format_for_path(path).mime_type
    except UnknownFormat:
        media_type = "application/octet-stream"

    return FileResponse(
        path,
        media_type=media_type,
        filename=file_name,
        content_disposition_type="attachment",
    )


# Include v1 API router
app.include_router(api_router, prefix="/v1", tags=["v1"])
