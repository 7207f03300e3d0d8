"""PDF extractor using PyMuPDF (fitz).

Only the native text layer is read. A PDF without one (scanned pages)
fails extraction instead of returning an empty document, so no edit is
ever planned against nothing.
"""

import asyncio
from pathlib import Path

from app.core.document_processing.base import BaseExtractor, ExtractorRegistry, detect_structure
from app.core.logging import get_logger
from app.core.schemas_export import ExtractedDocument, FormatDescriptor

logger = get_logger(__name__)

# Lazy import to avoid loading heavy libraries at module load
fitz = None


def _get_fitz():
    """Lazy load PyMuPDF."""
    global fitz
    if fitz is None:
        try:
            import fitz as _fitz
            fitz = _fitz
        except ImportError:
            raise ImportError(
                "PyMuPDF (fitz) is required for PDF extraction. "
                "Install with: pip install pymupdf"
            )
    return fitz


class PDFExtractor(BaseExtractor):
    """PDF text-layer extractor."""

    name = "pdf"

    def can_handle(self, descriptor: FormatDescriptor) -> bool:
        return descriptor.id == "pdf"

    async def extract(self, path: Path, descriptor: FormatDescriptor) -> ExtractedDocument:
        return await asyncio.to_thread(self._extract_sync, path, descriptor)

    def _extract_sync(self, path: Path, descriptor: FormatDescriptor) -> ExtractedDocument:
        try:
            pymupdf = _get_fitz()
        except ImportError as e:
            raise self.fail(str(e))

        try:
            doc = pymupdf.open(str(path))
        except Exception as e:
            raise self.fail(f"Failed to open PDF: {e}")

        try:
            if doc.needs_pass:
                raise self.fail("PDF is password-protected")

            pages: list[str] = []
            has_images = False
            for page in doc:
                pages.append(page.get_text("text").rstrip())
                if page.get_images(full=False):
                    has_images = True
            page_count = len(pages)
        finally:
            doc.close()

        text = "\n\n".join(p for p in pages if p.strip())
        if not text.strip():
            raise self.fail(
                "PDF has no extractable text layer (it may be a scanned document)",
                recoverable=False,
            )

        logger.debug(f"PDF extracted: {page_count} pages, {len(text)} chars")
        return ExtractedDocument(
            format_id=descriptor.id,
            plain_text=text,
            structural_metadata=detect_structure(text, has_images=has_images),
            extraction_method="native",
        )


ExtractorRegistry.register(PDFExtractor())
