"""PPTX extractor using python-pptx.

Reads slide text frames, tables and speaker notes in slide order.
"""

import asyncio
from pathlib import Path

from app.core.document_processing.base import BaseExtractor, ExtractorRegistry, detect_structure
from app.core.logging import get_logger
from app.core.schemas_export import ExtractedDocument, FormatDescriptor

logger = get_logger(__name__)

# Lazy imports
pptx_module = None


def _get_pptx():
    """Lazy load python-pptx."""
    global pptx_module
    if pptx_module is None:
        try:
            import pptx as _pptx

            pptx_module = _pptx
        except ImportError:
            raise ImportError(
                "python-pptx is required for PPTX extraction. "
                "Install with: pip install python-pptx"
            )
    return pptx_module


class PPTXExtractor(BaseExtractor):
    """PowerPoint extractor."""

    name = "pptx"

    def can_handle(self, descriptor: FormatDescriptor) -> bool:
        return descriptor.id == "pptx"

    async def extract(self, path: Path, descriptor: FormatDescriptor) -> ExtractedDocument:
        return await asyncio.to_thread(self._extract_sync, path, descriptor)

    def _extract_sync(self, path: Path, descriptor: FormatDescriptor) -> ExtractedDocument:
        try:
            pptx_lib = _get_pptx()
            from pptx.enum.shapes import MSO_SHAPE_TYPE
        except ImportError as e:
            raise self.fail(str(e))

        try:
            prs = pptx_lib.Presentation(str(path))
        except Exception as e:
            raise self.fail(f"Failed to open PPTX: {e}")

        blocks: list[str] = []
        has_tables = False
        has_images = False
        for slide in prs.slides:
            lines: list[str] = []
            for shape in slide.shapes:
                if shape.has_text_frame:
                    for paragraph in shape.text_frame.paragraphs:
                        text = "".join(run.text for run in paragraph.runs).strip()
                        if text:
                            lines.append(text)
                if getattr(shape, "has_table", False) and shape.has_table:
                    has_tables = True
                    lines.append(self._extract_table(shape.table))
                if shape.shape_type == MSO_SHAPE_TYPE.PICTURE:
                    has_images = True

            if slide.has_notes_slide and slide.notes_slide.notes_text_frame:
                notes = slide.notes_slide.notes_text_frame.text.strip()
                if notes:
                    lines.append(f"Notes: {notes}")

            if lines:
                blocks.append("\n".join(lines))

        text = "\n\n".join(blocks)
        logger.debug(f"PPTX extracted: {len(prs.slides)} slides, {len(text)} chars")
        return ExtractedDocument(
            format_id=descriptor.id,
            plain_text=text,
            structural_metadata=detect_structure(
                text, has_tables=has_tables, has_images=has_images
            ),
            extraction_method="native",
        )

    def _extract_table(self, table) -> str:
        """Convert a PPTX table to markdown rows."""
        rows = []
        for row_idx, row in enumerate(table.rows):
            cells = [cell.text.strip() for cell in row.cells]
            rows.append("| " + " | ".join(cells) + " |")
            if row_idx == 0:
                rows.append("| " + " | ".join(["---"] * len(cells)) + " |")
        return "\n".join(rows)


ExtractorRegistry.register(PPTXExtractor())
