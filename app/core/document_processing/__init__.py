"""Document text extraction for the modification pipeline.

Usage:
    from app.core.document_processing import extract

    doc = await extract("/path/report.docx", "docx")
"""

from pathlib import Path

from app.core.config import get_settings
from app.core.document_processing.base import (
    BaseExtractor,
    ExtractorRegistry,
    decode_bytes,
    detect_structure,
)
from app.core.export_errors import ExtractionFailed
from app.core.formats import describe
from app.core.logging import get_logger
from app.core.schemas_export import ExtractedDocument

# Import extractors to register them
from app.core.document_processing import docx_extractor  # noqa: F401
from app.core.document_processing import pdf_extractor  # noqa: F401
from app.core.document_processing import pptx_extractor  # noqa: F401
from app.core.document_processing import spreadsheet_extractor  # noqa: F401
from app.core.document_processing import text_extractor  # noqa: F401
from app.core.document_processing import image_extractor  # noqa: F401
from app.core.document_processing import archive_extractor  # noqa: F401

logger = get_logger(__name__)


async def extract(file_path: str | Path, format_id: str) -> ExtractedDocument:
    """
    Extract plain text and structure from a file.

    Args:
        file_path: Path to the source file (never modified)
        format_id: Registered format id (aliases accepted)

    Returns:
        ExtractedDocument, with text capped at MAX_EXTRACT_CHARS

    Raises:
        UnknownFormat: If format_id is not registered
        ExtractionFailed: If the file is missing, unreadable or has no extractor
    """
    descriptor = describe(format_id)
    path = Path(file_path)
    if not path.is_file():
        raise ExtractionFailed(f"File not found: {path.name}")

    extractor = ExtractorRegistry.get_extractor(descriptor)
    if extractor is None:
        raise ExtractionFailed(f"No text extractor for {descriptor.display_label}")

    document = await extractor.extract(path, descriptor)

    max_chars = get_settings().MAX_EXTRACT_CHARS
    if len(document.plain_text) > max_chars:
        logger.warning(f"Extracted text truncated from {len(document.plain_text)} to {max_chars}")
        document = document.model_copy(
            update={
                "plain_text": document.plain_text[:max_chars],
                "warnings": [*document.warnings, f"Text truncated to {max_chars} characters"],
            }
        )
    return document


__all__ = [
    "BaseExtractor",
    "ExtractorRegistry",
    "decode_bytes",
    "detect_structure",
    "extract",
]
