"""Tests for document text extraction."""

import pytest

from app.core.config import get_settings
from app.core.document_processing import detect_structure, extract
from app.core.document_processing.base import decode_bytes
from app.core.document_processing.spreadsheet_extractor import read_delimited
from app.core.export_errors import ExtractionFailed, UnknownFormat


def _make_docx(path, paragraphs, table=None):
    from docx import Document

    doc = Document()
    doc.add_heading("Quarterly Plan", level=1)
    for text in paragraphs:
        doc.add_paragraph(text)
    if table:
        t = doc.add_table(rows=len(table), cols=len(table[0]))
        for r, row in enumerate(table):
            for c, value in enumerate(row):
                t.cell(r, c).text = value
    doc.save(str(path))
    return path


class TestStructureDetection:
    def test_markdown_structure(self):
        text = "# Title\n\n- one\n- two\n\n| a | b |\n| 1 | 2 |\n\nSome **bold** text"
        meta = detect_structure(text)
        assert meta.has_headings
        assert meta.has_lists
        assert meta.has_tables
        assert meta.has_emphasis
        assert not meta.has_images

    def test_plain_prose(self):
        meta = detect_structure("Just a sentence.\nAnother one.")
        assert not any(
            [meta.has_headings, meta.has_lists, meta.has_tables, meta.has_emphasis]
        )

    def test_known_flags_win(self):
        assert detect_structure("plain", has_images=True).has_images

    def test_decode_bytes_falls_back_to_latin1(self):
        text, encoding = decode_bytes("café".encode("latin-1"))
        assert text == "café"
        assert encoding == "latin-1"

    def test_decode_bytes_strips_bom(self):
        text, encoding = decode_bytes("﻿hello".encode("utf-8"))
        assert text == "hello"
        assert encoding == "utf-8-sig"


class TestTextExtraction:
    @pytest.mark.asyncio
    async def test_text_is_verbatim(self, tmp_path):
        path = tmp_path / "notes.md"
        path.write_text("# Notes\n\nThe **budget** is 100.", encoding="utf-8")

        doc = await extract(path, "markdown")

        assert doc.format_id == "md"
        assert doc.plain_text == "# Notes\n\nThe **budget** is 100."
        assert doc.structural_metadata.has_headings
        assert not doc.is_tabular

    @pytest.mark.asyncio
    async def test_truncates_to_limit(self, tmp_path, monkeypatch):
        monkeypatch.setenv("MAX_EXTRACT_CHARS", "10")
        get_settings.cache_clear()
        path = tmp_path / "long.txt"
        path.write_text("x" * 50, encoding="utf-8")

        doc = await extract(path, "txt")

        assert len(doc.plain_text) == 10
        assert any("truncated" in w for w in doc.warnings)

    @pytest.mark.asyncio
    async def test_missing_file(self, tmp_path):
        with pytest.raises(ExtractionFailed) as exc_info:
            await extract(tmp_path / "nope.txt", "txt")
        assert exc_info.value.code == "extraction_failed"

    @pytest.mark.asyncio
    async def test_unknown_format(self, tmp_path):
        path = tmp_path / "a.txt"
        path.write_text("hi", encoding="utf-8")
        with pytest.raises(UnknownFormat):
            await extract(path, "xyz")

    @pytest.mark.asyncio
    async def test_no_extractor_for_media(self, tmp_path):
        path = tmp_path / "song.mp3"
        path.write_bytes(b"ID3")
        with pytest.raises(ExtractionFailed):
            await extract(path, "mp3")


class TestDocxExtraction:
    @pytest.mark.asyncio
    async def test_paragraphs_and_tables(self, tmp_path):
        path = _make_docx(
            tmp_path / "plan.docx",
            ["The launch is in March.", "Owner: Dana"],
            table=[["Item", "Cost"], ["Ads", "500"]],
        )

        doc = await extract(path, "docx")

        assert "The launch is in March." in doc.plain_text
        assert "Item | Cost" in doc.plain_text
        assert "Ads | 500" in doc.plain_text
        assert doc.structural_metadata.has_headings
        assert doc.structural_metadata.has_tables

    @pytest.mark.asyncio
    async def test_corrupt_docx(self, tmp_path):
        path = tmp_path / "broken.docx"
        path.write_bytes(b"not a zip")
        with pytest.raises(ExtractionFailed) as exc_info:
            await extract(path, "docx")
        assert exc_info.value.extractor == "docx"


class TestSpreadsheetExtraction:
    @pytest.mark.asyncio
    async def test_csv_rows(self, tmp_path):
        path = tmp_path / "people.csv"
        path.write_text('name,age\nAlice,30\n"Smith, Bob",25\n', encoding="utf-8")

        doc = await extract(path, "csv")

        assert doc.is_tabular
        assert doc.tabular_rows == [["name", "age"], ["Alice", "30"], ["Smith, Bob", "25"]]
        assert doc.row_count == 3
        assert doc.column_count == 2

    @pytest.mark.asyncio
    async def test_xlsx_all_sheets(self, tmp_path):
        from openpyxl import Workbook

        wb = Workbook()
        ws = wb.active
        ws.title = "Budget"
        ws.append(["Item", "Cost"])
        ws.append(["Ads", 500.0])
        other = wb.create_sheet("Team")
        other.append(["Name"])
        other.append(["Dana"])
        path = tmp_path / "budget.xlsx"
        wb.save(str(path))

        doc = await extract(path, "xlsx")

        assert doc.tabular_rows == [["Item", "Cost"], ["Ads", "500"], ["Name"], ["Dana"]]
        assert doc.sheet_dimensions == {"Budget": (2, 2), "Team": (2, 1)}
        assert "=== Sheet: Team ===" in doc.plain_text

    def test_read_delimited_skips_blank_rows(self):
        assert read_delimited("a\tb\n\nc\td\n", "\t") == [["a", "b"], ["c", "d"]]


class TestPdfExtraction:
    @pytest.mark.asyncio
    async def test_text_layer(self, tmp_path):
        import fitz

        path = tmp_path / "memo.pdf"
        pdf = fitz.open()
        page = pdf.new_page()
        page.insert_text((72, 72), "Quarterly revenue grew.")
        pdf.save(str(path))
        pdf.close()

        doc = await extract(path, "pdf")

        assert "Quarterly revenue grew." in doc.plain_text
        assert doc.extraction_method == "native"

    @pytest.mark.asyncio
    async def test_no_text_layer_fails(self, tmp_path):
        import fitz

        path = tmp_path / "scan.pdf"
        pdf = fitz.open()
        pdf.new_page()
        pdf.save(str(path))
        pdf.close()

        with pytest.raises(ExtractionFailed) as exc_info:
            await extract(path, "pdf")
        assert "text layer" in exc_info.value.reason
        assert exc_info.value.recoverable is False


class TestArchiveExtraction:
    @pytest.mark.asyncio
    async def test_zip_members_become_sections(self, tmp_path):
        import zipfile

        path = tmp_path / "bundle.zip"
        with zipfile.ZipFile(path, "w") as archive:
            archive.writestr("notes.txt", "Launch is in March.")
            archive.writestr("data/people.csv", "name,age\nAlice,30\n")

        doc = await extract(path, "zip")

        assert doc.format_id == "zip"
        assert doc.extraction_method == "archive"
        assert "=== File: data/people.csv ===\nname | age\nAlice | 30" in doc.plain_text
        assert "=== File: notes.txt ===\nLaunch is in March." in doc.plain_text
        assert doc.plain_text.index("data/people.csv") < doc.plain_text.index("notes.txt")

    @pytest.mark.asyncio
    async def test_unreadable_members_are_warnings(self, tmp_path):
        import zipfile

        path = tmp_path / "mixed.zip"
        with zipfile.ZipFile(path, "w") as archive:
            archive.writestr("readme.md", "# Readme")
            archive.writestr("song.mp3", b"ID3")
            archive.writestr("blob.xyz", b"\x00\x01")

        doc = await extract(path, "zip")

        assert "=== File: readme.md ===" in doc.plain_text
        assert "song.mp3" not in doc.plain_text
        assert any("blob.xyz" in w for w in doc.warnings)
        assert any("song.mp3" in w for w in doc.warnings)

    @pytest.mark.asyncio
    async def test_only_unsupported_members_fails(self, tmp_path):
        import zipfile

        path = tmp_path / "media.zip"
        with zipfile.ZipFile(path, "w") as archive:
            archive.writestr("song.mp3", b"ID3")

        with pytest.raises(ExtractionFailed) as exc_info:
            await extract(path, "zip")
        assert exc_info.value.extractor == "archive"

    @pytest.mark.asyncio
    async def test_tarball(self, tmp_path):
        import io
        import tarfile

        path = tmp_path / "docs.tar.gz"
        data = b"Owner: Dana"
        with tarfile.open(path, "w:gz") as archive:
            info = tarfile.TarInfo("docs/team.txt")
            info.size = len(data)
            archive.addfile(info, io.BytesIO(data))

        doc = await extract(path, "tar.gz")

        assert doc.plain_text == "=== File: docs/team.txt ===\nOwner: Dana"

    @pytest.mark.asyncio
    async def test_member_outside_root_is_skipped(self, tmp_path):
        import zipfile

        path = tmp_path / "sneaky.zip"
        with zipfile.ZipFile(path, "w") as archive:
            archive.writestr("../escaped.txt", "outside")
            archive.writestr("inside.txt", "inside")

        doc = await extract(path, "zip")

        assert "outside" not in doc.plain_text
        assert "=== File: inside.txt ===\ninside" in doc.plain_text

    @pytest.mark.asyncio
    async def test_corrupt_archive(self, tmp_path):
        path = tmp_path / "broken.zip"
        path.write_bytes(b"not a zip")
        with pytest.raises(ExtractionFailed, match="Failed to open archive"):
            await extract(path, "zip")
