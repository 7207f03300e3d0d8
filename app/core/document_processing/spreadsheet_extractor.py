"""Spreadsheet extractors: XLSX via openpyxl, CSV/TSV via the csv module."""

import asyncio
import csv
import io
from pathlib import Path

from app.core.document_processing.base import (
    BaseExtractor,
    ExtractorRegistry,
    decode_bytes,
    detect_structure,
)
from app.core.logging import get_logger
from app.core.schemas_export import ExtractedDocument, FormatDescriptor

logger = get_logger(__name__)

DELIMITERS = {"csv": ",", "tsv": "\t"}


def _cell_text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def rows_to_text(rows: list[list[str]]) -> str:
    return "\n".join(" | ".join(row) for row in rows)


class XLSXExtractor(BaseExtractor):
    """Excel workbook extractor.

    All sheets are read in order; ``tabular_rows`` holds the flattened rows
    of every sheet and ``sheet_dimensions`` each sheet's (rows, columns).
    """

    name = "xlsx"

    def can_handle(self, descriptor: FormatDescriptor) -> bool:
        return descriptor.id == "xlsx"

    async def extract(self, path: Path, descriptor: FormatDescriptor) -> ExtractedDocument:
        return await asyncio.to_thread(self._extract_sync, path, descriptor)

    def _extract_sync(self, path: Path, descriptor: FormatDescriptor) -> ExtractedDocument:
        try:
            from openpyxl import load_workbook
        except ImportError:
            raise self.fail("openpyxl not installed")

        try:
            wb = load_workbook(str(path), data_only=True)
        except Exception as e:
            raise self.fail(f"Failed to open workbook: {e}")

        all_rows: list[list[str]] = []
        dimensions: dict[str, tuple[int, int]] = {}
        sections: list[str] = []
        try:
            for ws in wb.worksheets:
                rows = [
                    [_cell_text(v) for v in row]
                    for row in ws.iter_rows(values_only=True)
                ]
                # Trailing empty rows are noise from formatting
                while rows and not any(cell for cell in rows[-1]):
                    rows.pop()
                width = max((len(r) for r in rows), default=0)
                dimensions[ws.title] = (len(rows), width)
                all_rows.extend(rows)
                sections.append(f"=== Sheet: {ws.title} ===\n{rows_to_text(rows)}")
        finally:
            wb.close()

        text = "\n\n".join(sections)
        logger.debug(f"XLSX extracted: {len(dimensions)} sheets, {len(all_rows)} rows")
        return ExtractedDocument(
            format_id=descriptor.id,
            plain_text=text,
            tabular_rows=all_rows,
            sheet_dimensions=dimensions,
            row_count=len(all_rows),
            column_count=max((c for _, c in dimensions.values()), default=0),
            structural_metadata=detect_structure(text, has_tables=bool(all_rows)),
            extraction_method="native",
        )


class DelimitedExtractor(BaseExtractor):
    """CSV and TSV extractor."""

    name = "delimited"

    def can_handle(self, descriptor: FormatDescriptor) -> bool:
        return descriptor.id in DELIMITERS

    async def extract(self, path: Path, descriptor: FormatDescriptor) -> ExtractedDocument:
        try:
            data = await asyncio.to_thread(path.read_bytes)
        except OSError as e:
            raise self.fail(f"Failed to read file: {e}")

        text, _ = decode_bytes(data)
        rows = read_delimited(text, DELIMITERS[descriptor.id])
        width = max((len(r) for r in rows), default=0)
        return ExtractedDocument(
            format_id=descriptor.id,
            plain_text=rows_to_text(rows),
            tabular_rows=rows,
            sheet_dimensions={descriptor.id: (len(rows), width)},
            row_count=len(rows),
            column_count=width,
            structural_metadata=detect_structure(text, has_tables=bool(rows)),
            extraction_method="native",
        )


def read_delimited(text: str, delimiter: str) -> list[list[str]]:
    reader = csv.reader(io.StringIO(text), delimiter=delimiter)
    return [row for row in reader if row]


ExtractorRegistry.register(XLSXExtractor())
ExtractorRegistry.register(DelimitedExtractor())
