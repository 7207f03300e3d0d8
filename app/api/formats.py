"""API endpoint listing supported file formats."""

from fastapi import APIRouter, Query
from pydantic import BaseModel

from app.core.formats import list_formats

router = APIRouter()


class FormatInfo(BaseModel):
    """One supported format as exposed to clients."""

    id: str
    extension: str
    label: str
    strategy: str
    modifiable: bool
    exportable: bool
    mime_type: str


class FormatListResponse(BaseModel):
    formats: list[FormatInfo]
    total: int


@router.get("/formats")
async def get_formats(
    exportable_only: bool = Query(default=False, description="Only formats that can be exported to"),
) -> FormatListResponse:
    """List registered formats with their modification strategy."""
    formats = [
        FormatInfo(
            id=d.id,
            extension=d.file_extension,
            label=d.display_label,
            strategy=d.strategy.value,
            modifiable=d.modifiable,
            exportable=d.exportable,
            mime_type=d.mime_type,
        )
        for d in list_formats(exportable_only=exportable_only)
    ]
    return FormatListResponse(formats=formats, total=len(formats))
