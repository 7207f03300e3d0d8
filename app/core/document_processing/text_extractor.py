"""Extractors for text-based formats and ODT.

Text formats are returned verbatim (markup included) so find/replace
validation sees exactly the bytes the text applier will edit.
"""

import asyncio
from pathlib import Path

from app.core.document_processing.base import (
    BaseExtractor,
    ExtractorRegistry,
    decode_bytes,
    detect_structure,
)
from app.core.logging import get_logger
from app.core.schemas_export import ExtractedDocument, FormatDescriptor, Strategy

logger = get_logger(__name__)


class TextExtractor(BaseExtractor):
    """Raw-text extractor for txt, md, html, xml, rtf, ics, vcf, eml and mbox."""

    name = "text"

    def can_handle(self, descriptor: FormatDescriptor) -> bool:
        return descriptor.strategy == Strategy.TEXT_BASED

    async def extract(self, path: Path, descriptor: FormatDescriptor) -> ExtractedDocument:
        try:
            data = await asyncio.to_thread(path.read_bytes)
        except OSError as e:
            raise self.fail(f"Failed to read file: {e}")

        text, encoding = decode_bytes(data)
        warnings = [] if encoding != "latin-1" else ["Decoded as latin-1"]
        return ExtractedDocument(
            format_id=descriptor.id,
            plain_text=text,
            structural_metadata=detect_structure(text),
            extraction_method="native",
            warnings=warnings,
        )


class ODTExtractor(BaseExtractor):
    """OpenDocument text extractor via pandoc."""

    name = "odt"

    def can_handle(self, descriptor: FormatDescriptor) -> bool:
        return descriptor.id == "odt"

    async def extract(self, path: Path, descriptor: FormatDescriptor) -> ExtractedDocument:
        return await asyncio.to_thread(self._extract_sync, path, descriptor)

    def _extract_sync(self, path: Path, descriptor: FormatDescriptor) -> ExtractedDocument:
        try:
            import pypandoc
        except ImportError:
            raise self.fail("pypandoc not installed")

        try:
            text = pypandoc.convert_file(
                str(path), to="markdown", format="odt", extra_args=["--wrap=none"]
            )
        except (RuntimeError, OSError) as e:
            raise self.fail(f"Failed to convert ODT: {e}")

        text = text.strip()
        logger.debug(f"ODT extracted {len(text)} chars via pandoc")
        return ExtractedDocument(
            format_id=descriptor.id,
            plain_text=text,
            structural_metadata=detect_structure(text),
            extraction_method="pandoc",
        )


ExtractorRegistry.register(TextExtractor())
ExtractorRegistry.register(ODTExtractor())
