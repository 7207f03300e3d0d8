"""Base extractor interface and registry for document text extraction.

Defines the contract every extractor implements, a registry that picks the
extractor for a format, and the structure heuristics shared by all of them.
"""

import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from app.core.export_errors import ExtractionFailed
from app.core.schemas_export import ExtractedDocument, FormatDescriptor, StructuralMetadata

# Structure detection patterns, applied line by line
TABLE_ROW_RE = re.compile(r"^\s*\|.*\|\s*$|^[^\t\n]+\t[^\t\n]+")
LIST_ITEM_RE = re.compile(r"^\s*(?:[•\-*]\s+|\d+[.)]\s+)")
HEADING_RE = re.compile(r"^\s*#{1,6}\s+\S|<h[1-6][\s>]", re.IGNORECASE)
EMPHASIS_RE = re.compile(r"\*\*[^*\n]+\*\*|__[^_\n]+__|<(?:b|strong|em|i)>", re.IGNORECASE)
HTML_TABLE_RE = re.compile(r"<table[\s>]", re.IGNORECASE)
HTML_LIST_RE = re.compile(r"<(?:ul|ol)[\s>]", re.IGNORECASE)


def detect_structure(
    text: str,
    has_tables: bool = False,
    has_lists: bool = False,
    has_headings: bool = False,
    has_images: bool = False,
) -> StructuralMetadata:
    """Combine regex checks over ``text`` with flags an extractor already knows."""
    lines = text.splitlines()
    return StructuralMetadata(
        has_tables=has_tables
        or bool(HTML_TABLE_RE.search(text))
        or sum(1 for line in lines if TABLE_ROW_RE.match(line)) >= 2,
        has_lists=has_lists
        or bool(HTML_LIST_RE.search(text))
        or any(LIST_ITEM_RE.match(line) for line in lines),
        has_headings=has_headings or any(HEADING_RE.search(line) for line in lines),
        has_images=has_images,
        has_emphasis=bool(EMPHASIS_RE.search(text)),
    )


def decode_bytes(data: bytes) -> tuple[str, str]:
    """Decode file bytes, returning (text, encoding used)."""
    for encoding in ("utf-8-sig", "utf-8"):
        try:
            return data.decode(encoding), encoding
        except UnicodeDecodeError:
            continue
    return data.decode("latin-1"), "latin-1"


class BaseExtractor(ABC):
    """Base class for format extractors."""

    name: str = "base"

    @abstractmethod
    def can_handle(self, descriptor: FormatDescriptor) -> bool:
        """Check if this extractor reads the given format."""

    @abstractmethod
    async def extract(self, path: Path, descriptor: FormatDescriptor) -> ExtractedDocument:
        """Extract text and structure from the file at ``path``.

        Raises:
            ExtractionFailed: If the file cannot be opened or yields no usable text
        """

    def fail(self, reason: str, recoverable: bool = False) -> ExtractionFailed:
        return ExtractionFailed(reason, extractor=self.name, recoverable=recoverable)


class ExtractorRegistry:
    """Registry for extractors, consulted in registration order."""

    _extractors: list[BaseExtractor] = []

    @classmethod
    def register(cls, extractor: BaseExtractor) -> None:
        cls._extractors.append(extractor)

    @classmethod
    def get_extractor(cls, descriptor: FormatDescriptor) -> Optional[BaseExtractor]:
        for extractor in cls._extractors:
            if extractor.can_handle(descriptor):
                return extractor
        return None
