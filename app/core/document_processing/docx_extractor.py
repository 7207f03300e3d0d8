"""DOCX extractor using python-docx."""

import asyncio
from pathlib import Path

from app.core.document_processing.base import BaseExtractor, ExtractorRegistry, detect_structure
from app.core.logging import get_logger
from app.core.schemas_export import ExtractedDocument, FormatDescriptor

logger = get_logger(__name__)


class DOCXExtractor(BaseExtractor):
    """Word document extractor.

    Paragraph text is kept verbatim, one paragraph per line, so planner
    find strings can be matched back against the document XML. Tables are
    appended as pipe-delimited rows.
    """

    name = "docx"

    def can_handle(self, descriptor: FormatDescriptor) -> bool:
        return descriptor.id == "docx"

    async def extract(self, path: Path, descriptor: FormatDescriptor) -> ExtractedDocument:
        return await asyncio.to_thread(self._extract_sync, path, descriptor)

    def _extract_sync(self, path: Path, descriptor: FormatDescriptor) -> ExtractedDocument:
        try:
            from docx import Document
        except ImportError:
            raise self.fail("python-docx not installed")

        try:
            doc = Document(str(path))
        except Exception as e:
            raise self.fail(f"Failed to open DOCX: {e}")

        lines: list[str] = []
        has_headings = False
        has_lists = False
        for para in doc.paragraphs:
            style_name = (para.style.name or "").lower() if para.style else ""
            if "heading" in style_name and para.text.strip():
                has_headings = True
            p_pr = para._p.pPr
            if "list" in style_name or (p_pr is not None and p_pr.numPr is not None):
                has_lists = True
            lines.append(para.text)

        table_rows = 0
        for table in doc.tables:
            for row in table.rows:
                lines.append(" | ".join(cell.text.strip() for cell in row.cells))
                table_rows += 1

        text = "\n".join(lines).strip("\n")
        has_images = len(doc.inline_shapes) > 0

        logger.debug(
            f"DOCX extracted: {len(doc.paragraphs)} paragraphs, {table_rows} table rows"
        )
        return ExtractedDocument(
            format_id=descriptor.id,
            plain_text=text,
            structural_metadata=detect_structure(
                text,
                has_tables=table_rows > 0,
                has_lists=has_lists,
                has_headings=has_headings,
                has_images=has_images,
            ),
            extraction_method="native",
        )


ExtractorRegistry.register(DOCXExtractor())
