"""Tests for the re-exporter and its renderers.

Pandoc and Chromium are mocked; everything else writes real files.
"""

import asyncio
import csv
import email
import mailbox
import tarfile
import zipfile
from unittest.mock import AsyncMock, patch

import py7zr
import pytest
from lxml import etree

from app.core.export_errors import RenderFailed, UnknownFormat
from app.core.renderers import render
from app.core.renderers.base import run_to_completion
from app.core.renderers.envelope_renderer import escape_ical_text, fold_line
from app.core.renderers.markup_renderer import markdown_to_plain
from app.core.renderers.tables import content_to_rows
from app.core.schemas_export import PreservationLevel

REPORT = """# Quarterly Report

Revenue grew **12%** this quarter.

- North region
- South region

| Region | Revenue |
|--------|---------|
| North  | 100     |
| South  | 80      |
"""


def _fake_pandoc(content, to, format, outputfile, extra_args):
    with open(outputfile, "wb") as f:
        f.write(f"{to}:{format}".encode())
    return ""


async def _fake_screenshot(html, output_path, image_type):
    from PIL import Image

    Image.new("RGB", (20, 10), "white").save(output_path, format="PNG" if image_type == "png" else "JPEG")


def _listing(directory):
    return sorted(p.name for p in directory.iterdir() if p.is_file()) if directory.exists() else []


class TestTables:
    def test_pipe_table_rows(self):
        assert content_to_rows(REPORT) == [["Region", "Revenue"], ["North", "100"], ["South", "80"]]

    def test_html_table_rows(self):
        html = "<table><tr><th>A</th><th>B</th></tr><tr><td>1</td><td>2</td></tr></table>"
        assert content_to_rows(html) == [["A", "B"], ["1", "2"]]

    def test_no_table_one_row_per_line(self):
        assert content_to_rows("first\n\nsecond") == [["first"], ["second"]]

    def test_tab_separated(self):
        assert content_to_rows("a\tb\n1\t2") == [["a", "b"], ["1", "2"]]


class TestSpreadsheetRender:
    @pytest.mark.asyncio
    async def test_csv(self, uploads_dir):
        artifact = await render(REPORT, "csv", title="Quarterly Report")

        assert artifact.format == "csv"
        assert artifact.preservation_level == PreservationLevel.FULL
        assert artifact.file_name.startswith("Quarterly Report - ")
        assert artifact.file_name.endswith(".csv")
        with open(uploads_dir / artifact.file_name, newline="", encoding="utf-8") as f:
            assert list(csv.reader(f)) == [["Region", "Revenue"], ["North", "100"], ["South", "80"]]

    @pytest.mark.asyncio
    async def test_xlsx_header_row(self, uploads_dir):
        from openpyxl import load_workbook

        artifact = await render(REPORT, "excel", title="Quarterly Report")

        ws = load_workbook(str(uploads_dir / artifact.file_name)).active
        assert ws.title == "Quarterly Report"
        assert ws["A1"].value == "Region"
        assert ws["A1"].font.bold
        assert ws["B3"].value == "80"
        assert ws.freeze_panes == "A2"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("format_id", ["xls", "ods"])
    async def test_legacy_spreadsheets_fall_back_to_xlsx(self, uploads_dir, format_id):
        artifact = await render(REPORT, format_id, title="Report")

        assert artifact.format == "xlsx"
        assert artifact.file_name.endswith(".xlsx")
        assert artifact.preservation_level == PreservationLevel.PARTIAL
        assert "Excel Workbook" in artifact.notes[0]


class TestMarkupRender:
    def test_plain_text(self):
        plain = markdown_to_plain(REPORT)
        assert plain.startswith("Quarterly Report\n")
        assert "Revenue grew 12% this quarter." in plain
        assert "• North region" in plain
        assert "North | 100" in plain
        assert "---" not in plain
        assert plain.endswith("\n")

    @pytest.mark.asyncio
    async def test_txt_and_md(self, uploads_dir):
        txt = await render(REPORT, "txt", title="Report")
        md = await render(REPORT, "markdown", title="Report")

        assert "**" not in (uploads_dir / txt.file_name).read_text(encoding="utf-8")
        assert (uploads_dir / md.file_name).read_text(encoding="utf-8") == REPORT

    @pytest.mark.asyncio
    async def test_html_document(self, uploads_dir):
        artifact = await render(REPORT, "html", title="Q3 <Report>")

        page = (uploads_dir / artifact.file_name).read_text(encoding="utf-8")
        assert page.startswith("<!DOCTYPE html>")
        assert "<title>Q3 &lt;Report&gt;</title>" in page
        assert "<table>" in page
        assert "<strong>12%</strong>" in page

    @pytest.mark.asyncio
    async def test_xml_structure(self, uploads_dir):
        artifact = await render(REPORT, "xml", title="Quarterly Report")

        root = etree.parse(str(uploads_dir / artifact.file_name)).getroot()
        assert root.tag == "document"
        assert root.findtext("metadata/title") == "Quarterly Report"
        content = root.find("content")
        assert content.find("heading").get("level") == "1"
        assert [i.text for i in content.find("list").findall("item")] == ["North region", "South region"]
        assert content.find("list").get("type") == "bullet"
        rows = content.find("table").findall("row")
        assert [c.text for c in rows[1].findall("cell")] == ["North", "100"]
        assert content.findtext("paragraph") == "Revenue grew 12% this quarter."


class TestEnvelopeRender:
    def test_escape_and_fold(self):
        assert escape_ical_text("a,b;c\\d\ne") == "a\\,b\\;c\\\\d\\ne"
        folded = fold_line("DESCRIPTION:" + "x" * 200)
        parts = folded.split("\r\n")
        assert all(len(p.encode()) <= 75 for p in parts)
        assert all(p.startswith(" ") for p in parts[1:])

    @pytest.mark.asyncio
    async def test_ics(self, uploads_dir):
        artifact = await render("Team offsite, day one", "ics", title="Offsite")

        data = (uploads_dir / artifact.file_name).read_bytes().decode("utf-8")
        assert data.startswith("BEGIN:VCALENDAR\r\n")
        assert "SUMMARY:Offsite\r\n" in data
        assert "DESCRIPTION:Team offsite\\, day one\\n" in data
        assert data.endswith("END:VCALENDAR\r\n")

    @pytest.mark.asyncio
    async def test_vcf(self, uploads_dir):
        artifact = await render("Call after 5pm", "vcard", title="Dana Lee")

        data = (uploads_dir / artifact.file_name).read_text(encoding="utf-8")
        assert "VERSION:3.0" in data
        assert "FN:Dana Lee" in data
        assert "NOTE:Call after 5pm" in data

    @pytest.mark.asyncio
    async def test_eml(self, uploads_dir):
        artifact = await render(REPORT, "eml", title="Quarterly Report")

        message = email.message_from_bytes((uploads_dir / artifact.file_name).read_bytes())
        assert message["Subject"] == "Quarterly Report"
        assert "• North region" in message.get_payload(decode=True).decode("utf-8")

    @pytest.mark.asyncio
    async def test_mbox(self, uploads_dir):
        artifact = await render(REPORT, "mbox", title="Quarterly Report")

        box = mailbox.mbox(str(uploads_dir / artifact.file_name), create=False)
        try:
            messages = list(box)
        finally:
            box.close()
        assert len(messages) == 1
        assert messages[0]["Subject"] == "Quarterly Report"

    @pytest.mark.asyncio
    async def test_msg_is_degraded(self, uploads_dir):
        artifact = await render(REPORT, "msg", title="Quarterly Report")

        assert artifact.format == "msg"
        assert artifact.preservation_level == PreservationLevel.PARTIAL
        assert "RFC 822" in artifact.notes[0]


class TestArchiveRender:
    @pytest.mark.asyncio
    async def test_zip(self, uploads_dir):
        artifact = await render(REPORT, "zip", title="Quarterly Report")

        with zipfile.ZipFile(uploads_dir / artifact.file_name) as zf:
            assert zf.namelist() == ["Quarterly Report.md"]
            assert zf.read("Quarterly Report.md").decode("utf-8") == REPORT

    @pytest.mark.asyncio
    async def test_rar_falls_back_to_zip(self, uploads_dir):
        artifact = await render(REPORT, "rar", title="Report")

        assert artifact.format == "zip"
        assert artifact.file_name.endswith(".zip")
        assert zipfile.is_zipfile(uploads_dir / artifact.file_name)
        assert artifact.notes

    @pytest.mark.asyncio
    async def test_7z(self, uploads_dir):
        artifact = await render(REPORT, "7z", title="Report")

        with py7zr.SevenZipFile(uploads_dir / artifact.file_name, mode="r") as archive:
            assert archive.getnames() == ["Report.md"]

    @pytest.mark.asyncio
    async def test_tar_gz(self, uploads_dir):
        artifact = await render(REPORT, "tgz", title="Report")

        assert artifact.file_name.endswith(".tar.gz")
        with tarfile.open(uploads_dir / artifact.file_name, "r:gz") as tar:
            assert tar.getnames() == ["Report.md"]


class TestPandocRender:
    @pytest.mark.asyncio
    async def test_pdf_uses_engine_and_title(self, uploads_dir):
        with patch("pypandoc.convert_text", side_effect=_fake_pandoc) as mock_convert:
            artifact = await render(REPORT, "pdf", title="Quarterly Report")

        kwargs = mock_convert.call_args.kwargs
        assert kwargs["to"] == "pdf"
        assert kwargs["format"].startswith("markdown")
        assert "--pdf-engine=xelatex" in kwargs["extra_args"]
        assert (uploads_dir / artifact.file_name).read_bytes().startswith(b"pdf:")
        assert artifact.preservation_level == PreservationLevel.FULL

    @pytest.mark.asyncio
    async def test_html_input_is_detected(self, uploads_dir):
        with patch("pypandoc.convert_text", side_effect=_fake_pandoc) as mock_convert:
            await render("<h1>Title</h1><p>Body</p>", "docx", title="Doc")

        assert mock_convert.call_args.kwargs["format"] == "html"

    @pytest.mark.asyncio
    async def test_legacy_writer_adds_note(self, uploads_dir):
        with patch("pypandoc.convert_text", side_effect=_fake_pandoc) as mock_convert:
            artifact = await render(REPORT, "doc", title="Report")

        assert mock_convert.call_args.kwargs["to"] == "docx"
        assert artifact.format == "doc"
        assert artifact.file_name.endswith(".doc")
        assert artifact.preservation_level == PreservationLevel.PARTIAL

    @pytest.mark.asyncio
    async def test_converter_failure_leaves_no_file(self, uploads_dir):
        def broken(content, to, format, outputfile, extra_args):
            with open(outputfile, "wb") as f:
                f.write(b"half")
            raise RuntimeError("pandoc died")

        with patch("pypandoc.convert_text", side_effect=broken):
            with pytest.raises(RenderFailed) as exc_info:
                await render(REPORT, "pdf", title="Report")

        assert exc_info.value.code == "render_failed"
        assert "pandoc died" in exc_info.value.cause
        assert _listing(uploads_dir) == []


class TestImageRender:
    @pytest.mark.asyncio
    async def test_png(self, uploads_dir):
        with patch(
            "app.core.renderers.image_renderer.screenshot_html",
            AsyncMock(side_effect=_fake_screenshot),
        ) as mock_shot:
            artifact = await render(REPORT, "png", title="Report")

        html, _, image_type = mock_shot.await_args.args
        assert "<table>" in html
        assert image_type == "png"
        assert (uploads_dir / artifact.file_name).read_bytes().startswith(b"\x89PNG")

    @pytest.mark.asyncio
    async def test_bmp_is_transcoded(self, uploads_dir):
        from PIL import Image

        with patch(
            "app.core.renderers.image_renderer.screenshot_html",
            AsyncMock(side_effect=_fake_screenshot),
        ):
            artifact = await render(REPORT, "bmp", title="Report")

        with Image.open(uploads_dir / artifact.file_name) as img:
            assert img.format == "BMP"
        assert _listing(uploads_dir) == [artifact.file_name]


class TestRenderErrors:
    @pytest.mark.asyncio
    async def test_media_is_not_an_export_target(self, uploads_dir):
        with pytest.raises(RenderFailed):
            await render(REPORT, "mp3")
        assert _listing(uploads_dir) == []

    @pytest.mark.asyncio
    async def test_unknown_format(self):
        with pytest.raises(UnknownFormat):
            await render(REPORT, "xyz")

    @pytest.mark.asyncio
    async def test_missing_title_uses_default(self, uploads_dir):
        artifact = await render(REPORT, "txt")
        assert artifact.file_name.startswith("Document - ")


class TestRunToCompletion:
    @pytest.mark.asyncio
    async def test_cancellation_waits_for_work(self):
        finished = []

        async def work():
            await asyncio.sleep(0.05)
            finished.append(True)
            return "done"

        task = asyncio.create_task(run_to_completion(work()))
        await asyncio.sleep(0.01)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert finished == [True]
