"""Spreadsheet renderer: xlsx via openpyxl, csv/tsv via the csv module."""

import asyncio
import csv
from pathlib import Path

from app.core.formats import describe
from app.core.renderers.base import BaseRenderer, RendererRegistry
from app.core.renderers.tables import content_to_rows
from app.core.schemas_export import FormatDescriptor, RenderFamily

HEADER_FILL = "4472C4"
HEADER_FONT = "FFFFFF"
MIN_COLUMN_WIDTH = 15
MAX_COLUMN_WIDTH = 50
DELIMITERS = {"csv": ",", "tsv": "\t"}


def write_workbook(rows: list[list[str]], path: Path, sheet_title: str = "Sheet1") -> None:
    """Write rows to an xlsx workbook with a styled header row."""
    from openpyxl import Workbook
    from openpyxl.styles import Alignment, Font, PatternFill
    from openpyxl.utils import get_column_letter

    wb = Workbook()
    ws = wb.active
    ws.title = "".join(c for c in sheet_title if c.isalnum() or c in (" ", "-", "_")).strip()[:31] or "Sheet1"

    for row in rows:
        ws.append(row)

    if rows:
        for cell in ws[1]:
            cell.font = Font(bold=True, color=HEADER_FONT)
            cell.fill = PatternFill(start_color=HEADER_FILL, end_color=HEADER_FILL, fill_type="solid")
            cell.alignment = Alignment(vertical="center", wrap_text=True)
        ws.freeze_panes = "A2"

        width = max(len(r) for r in rows)
        for c in range(width):
            longest = max((len(str(r[c])) for r in rows if c < len(r)), default=0)
            ws.column_dimensions[get_column_letter(c + 1)].width = min(
                max(longest + 2, MIN_COLUMN_WIDTH), MAX_COLUMN_WIDTH
            )

    wb.save(str(path))


class SpreadsheetRenderer(BaseRenderer):
    family = RenderFamily.SPREADSHEET

    def effective_format(self, descriptor: FormatDescriptor) -> FormatDescriptor:
        if descriptor.id in ("xls", "ods"):
            return describe("xlsx")
        return descriptor

    async def render(self, content, descriptor, title, output_path) -> list[str]:
        rows = content_to_rows(content)
        if descriptor.id in DELIMITERS:
            await asyncio.to_thread(self._write_delimited, rows, output_path, DELIMITERS[descriptor.id])
        else:
            await asyncio.to_thread(write_workbook, rows, output_path, title or "Sheet1")
        return []

    @staticmethod
    def _write_delimited(rows: list[list[str]], path: Path, delimiter: str) -> None:
        with open(path, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f, delimiter=delimiter, lineterminator="\n")
            writer.writerows(rows)


RendererRegistry.register(SpreadsheetRenderer())
