"""Image extractor using Tesseract OCR via pytesseract.

An image without recognisable text is a valid, empty extraction.
"""

import asyncio
from pathlib import Path

from app.core.config import get_settings
from app.core.document_processing.base import BaseExtractor, ExtractorRegistry, detect_structure
from app.core.logging import get_logger
from app.core.schemas_export import ExtractedDocument, FormatDescriptor, RenderFamily

logger = get_logger(__name__)


class ImageExtractor(BaseExtractor):
    """OCR extractor for raster images."""

    name = "image"

    def can_handle(self, descriptor: FormatDescriptor) -> bool:
        return descriptor.render_family == RenderFamily.IMAGE

    async def extract(self, path: Path, descriptor: FormatDescriptor) -> ExtractedDocument:
        return await asyncio.to_thread(self._extract_sync, path, descriptor)

    def _extract_sync(self, path: Path, descriptor: FormatDescriptor) -> ExtractedDocument:
        try:
            import pytesseract
            from PIL import Image
        except ImportError:
            raise self.fail("pytesseract and Pillow are required for image OCR")

        settings = get_settings()
        try:
            with Image.open(path) as img:
                if getattr(img, "n_frames", 1) > 1:
                    img.seek(0)
                text = pytesseract.image_to_string(img.convert("RGB"), lang=settings.OCR_LANGUAGE)
        except pytesseract.TesseractNotFoundError as e:
            raise self.fail(f"Tesseract is not installed: {e}")
        except Exception as e:
            raise self.fail(f"Failed to OCR image: {e}")

        text = text.strip()
        warnings = [] if text else ["No text recognised in image"]
        logger.debug(f"Image OCR extracted {len(text)} chars from {path.name}")
        return ExtractedDocument(
            format_id=descriptor.id,
            plain_text=text,
            structural_metadata=detect_structure(text, has_images=True),
            extraction_method="ocr",
            warnings=warnings,
        )


ExtractorRegistry.register(ImageExtractor())
