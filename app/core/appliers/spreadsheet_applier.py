"""Tabular applier: cell writes, in-cell text replacement and added columns.

XLSX goes through openpyxl so formulas and styling in untouched cells
survive; CSV/TSV round-trip through the csv module.
"""

import asyncio
import csv
import re
from pathlib import Path

from app.core.appliers.base import ApplierRegistry, BaseApplier
from app.core.artifact_storage import build_artifact, derive_output_path, staged_output
from app.core.document_processing.base import decode_bytes
from app.core.document_processing.spreadsheet_extractor import DELIMITERS, read_delimited
from app.core.export_errors import NoValidChanges
from app.core.logging import get_logger
from app.core.schemas_export import (
    ChangeInstruction,
    ColumnAddition,
    ExportArtifact,
    PreservationLevel,
    Strategy,
)

logger = get_logger(__name__)

_NUMBER_RE = re.compile(r"^-?\d+(?:\.\d+)?$")


def apply_tabular_changes(
    rows: list[list[str]],
    instructions: list[ChangeInstruction],
    added_columns: list[ColumnAddition] | None = None,
) -> tuple[list[list[str]], int]:
    """
    Apply a plan to a single table of string cells.

    Cell edits never change the table's dimensions; added columns widen
    every row by one.

    Returns:
        (new rows, number of instructions or columns that changed something)
    """
    table = [list(row) for row in rows]
    applied = 0

    for instruction in instructions:
        if instruction.is_cell_change:
            row, column = instruction.row, instruction.column
            if 0 <= row < len(table) and 0 <= column < len(table[row]):
                table[row][column] = instruction.replace_text
                applied += 1
            continue

        find = instruction.find_text
        if not find:
            continue
        hit = False
        for r, row in enumerate(table):
            for c, cell in enumerate(row):
                if find in cell:
                    table[r][c] = cell.replace(find, instruction.replace_text)
                    hit = True
        applied += int(hit)

    for addition in added_columns or []:
        for r, row in enumerate(table):
            row.append(addition.header if r == 0 else addition.default_value)
        applied += 1

    return table, applied


def _coerce(value: str):
    """Store numeric-looking values as numbers so spreadsheet maths keeps working."""
    stripped = value.strip()
    # Leading zeros are identifiers (zip codes, account numbers), not numbers
    if _NUMBER_RE.match(stripped) and not re.match(r"^-?0\d", stripped):
        number = float(stripped)
        return int(number) if number.is_integer() and "." not in stripped else number
    return value


class SpreadsheetApplier(BaseApplier):
    """Applier for xlsx, csv and tsv."""

    strategies = frozenset({Strategy.TABULAR})

    async def apply(self, source_path, descriptor, plan, extracted) -> ExportArtifact:
        source_path = Path(source_path)
        if descriptor.id in DELIMITERS:
            return await asyncio.to_thread(self._apply_delimited, source_path, descriptor, plan)
        return await asyncio.to_thread(self._apply_workbook, source_path, descriptor, plan)

    def _apply_delimited(self, source_path: Path, descriptor, plan) -> ExportArtifact:
        text, encoding = decode_bytes(source_path.read_bytes())
        delimiter = DELIMITERS[descriptor.id]
        rows = read_delimited(text, delimiter)

        new_rows, applied = apply_tabular_changes(rows, plan.instructions, plan.added_columns)
        if applied == 0:
            raise NoValidChanges()

        output_path = derive_output_path(source_path, descriptor)
        with staged_output(output_path) as tmp_path:
            with open(tmp_path, "w", newline="", encoding=encoding) as f:
                writer = csv.writer(f, delimiter=delimiter, lineterminator="\n")
                writer.writerows(new_rows)

        logger.info(f"{descriptor.id.upper()} applier: {applied} changes -> {output_path.name}")
        return build_artifact(output_path, descriptor, PreservationLevel.FULL)

    def _apply_workbook(self, source_path: Path, descriptor, plan) -> ExportArtifact:
        from openpyxl import load_workbook

        wb = load_workbook(str(source_path))
        applied = 0
        try:
            default_sheet = wb.worksheets[0]

            for instruction in plan.instructions:
                if instruction.is_cell_change:
                    ws = wb[instruction.sheet] if instruction.sheet in wb.sheetnames else default_sheet
                    ws.cell(
                        row=instruction.row + 1,
                        column=instruction.column + 1,
                        value=_coerce(instruction.replace_text),
                    )
                    applied += 1
                    continue

                find = instruction.find_text
                if not find:
                    continue
                hit = False
                for ws in wb.worksheets:
                    for row in ws.iter_rows():
                        for cell in row:
                            if isinstance(cell.value, str) and find in cell.value:
                                cell.value = cell.value.replace(find, instruction.replace_text)
                                hit = True
                applied += int(hit)

            for addition in plan.added_columns:
                ws = wb[addition.sheet] if addition.sheet in wb.sheetnames else default_sheet
                column = ws.max_column + 1
                ws.cell(row=1, column=column, value=addition.header)
                for row_idx in range(2, ws.max_row + 1):
                    ws.cell(row=row_idx, column=column, value=_coerce(addition.default_value))
                applied += 1

            if applied == 0:
                raise NoValidChanges()

            dimensions = {ws.title: ws.calculate_dimension() for ws in wb.worksheets}
            output_path = derive_output_path(source_path, descriptor)
            with staged_output(output_path) as tmp_path:
                wb.save(str(tmp_path))
        finally:
            wb.close()

        logger.info(f"XLSX applier: {applied} changes -> {output_path.name} ranges={dimensions}")
        return build_artifact(output_path, descriptor, PreservationLevel.FULL)


ApplierRegistry.register(SpreadsheetApplier())
