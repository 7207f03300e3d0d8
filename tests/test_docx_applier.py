"""Tests for the DOCX direct editor."""

from unittest.mock import patch

import pytest
from docx import Document
from lxml import etree

from app.core.appliers import apply_plan
from app.core.appliers.docx_applier import (
    W,
    is_list_text,
    line_matches,
    parse_list_text,
    replace_in_runs,
)
from app.core.export_errors import DirectEditFailed, NoValidChanges
from app.core.formats import describe
from app.core.schemas_export import ChangeInstruction, ExtractedDocument, ModificationPlan, PreservationLevel


def _paragraph(*runs):
    p = etree.Element(f"{W}p")
    for text in runs:
        r = etree.SubElement(p, f"{W}r")
        t = etree.SubElement(r, f"{W}t")
        t.text = text
    return p


def _texts(p):
    return [t.text for t in p.iter(f"{W}t")]


@pytest.fixture
def source_docx(tmp_path):
    doc = Document()
    doc.add_heading("Launch Plan", level=1)
    owner = doc.add_paragraph()
    owner.add_run("Owner: ").bold = True
    owner.add_run("Dana")
    doc.add_paragraph("Tasks for this week")
    doc.add_paragraph("Budget is 500 dollars. The budget covers ads.")
    path = tmp_path / "plan.docx"
    doc.save(str(path))
    return path


def _plan(*pairs):
    return ModificationPlan(
        instructions=[ChangeInstruction(find_text=f, replace_text=r) for f, r in pairs]
    )


EXTRACTED = ExtractedDocument(format_id="docx", plain_text="")


class TestRunReplacement:
    def test_within_one_run(self):
        p = _paragraph("Hello Dana, bye Dana")
        assert replace_in_runs(p, "Dana", "Lee") == 2
        assert _texts(p) == ["Hello Lee, bye Lee"]

    def test_spanning_runs_keeps_first_run(self):
        p = _paragraph("Owner: Da", "na", " (lead)")
        assert replace_in_runs(p, "Dana", "Lee") == 1
        assert _texts(p) == ["Owner: Lee", "", " (lead)"]

    def test_no_match(self):
        p = _paragraph("Nothing here")
        assert replace_in_runs(p, "Dana", "Lee") == 0
        assert _texts(p) == ["Nothing here"]


class TestListText:
    def test_detects_lists(self):
        assert is_list_text("Tasks:\n- one\n- two")
        assert is_list_text("1. first\n2. second")
        assert not is_list_text("Just a sentence")

    def test_parse(self):
        lines = parse_list_text("## Tasks\n- Buy ads\n2) Call Dana\n")
        assert [(line.kind, line.text) for line in lines] == [
            ("heading", "Tasks"),
            ("bullet", "Buy ads"),
            ("number", "Call Dana"),
        ]

    def test_short_sentence_is_not_a_heading(self):
        lines = parse_list_text("Next steps:\n- Book venue\nThanks for reading.")
        assert [line.kind for line in lines] == ["heading", "bullet", "plain"]

    def test_line_matches_ignores_punctuation_and_case(self):
        assert line_matches("Tasks for this week:", "tasks for this week")
        assert not line_matches("Budget", "Tasks for this week")


class TestDocxApplier:
    @pytest.mark.asyncio
    async def test_inline_edit_keeps_formatting(self, source_docx, uploads_dir):
        original = source_docx.read_bytes()

        artifact = await apply_plan(
            source_docx, describe("docx"), _plan(("Owner: Dana", "Owner: Lee")), EXTRACTED
        )

        assert artifact.preservation_level == PreservationLevel.FULL
        assert source_docx.read_bytes() == original
        doc = Document(str(uploads_dir / artifact.file_name))
        owner = doc.paragraphs[1]
        assert owner.text == "Owner: Lee"
        assert owner.runs[0].bold is True

    @pytest.mark.asyncio
    async def test_every_occurrence_replaced(self, source_docx, uploads_dir):
        artifact = await apply_plan(
            source_docx, describe("docx"), _plan(("udget", "udget (USD)")), EXTRACTED
        )
        doc = Document(str(uploads_dir / artifact.file_name))
        assert doc.paragraphs[3].text == "Budget (USD) is 500 dollars. The budget (USD) covers ads."

    @pytest.mark.asyncio
    async def test_list_replacement_creates_numbered_paragraphs(self, source_docx, uploads_dir):
        artifact = await apply_plan(
            source_docx,
            describe("docx"),
            _plan(("Tasks for this week", "Tasks for this week:\n- Book venue\n- Send invites")),
            EXTRACTED,
        )

        doc = Document(str(uploads_dir / artifact.file_name))
        texts = [p.text for p in doc.paragraphs]
        assert "Book venue" in texts
        assert "Send invites" in texts
        assert not any(t.startswith("- ") for t in texts)

        items = [p for p in doc.paragraphs if p.text in ("Book venue", "Send invites")]
        for item in items:
            assert item._p.pPr.numPr is not None
        num_ids = {item._p.pPr.numPr.numId.val for item in items}
        assert len(num_ids) == 1

    @pytest.mark.asyncio
    async def test_closing_line_in_list_block_stays_normal(self, source_docx, uploads_dir):
        artifact = await apply_plan(
            source_docx,
            describe("docx"),
            _plan(("Tasks for this week", "Tasks for this week:\n- Book venue\nThanks for reading.")),
            EXTRACTED,
        )

        doc = Document(str(uploads_dir / artifact.file_name))
        by_text = {p.text: p for p in doc.paragraphs}
        assert by_text["Tasks for this week:"].style.name == "Heading 3"
        assert by_text["Thanks for reading."].style.name == "Normal"
        assert by_text["Thanks for reading."]._p.pPr.numPr is None

    @pytest.mark.asyncio
    async def test_no_match_leaves_nothing(self, source_docx, uploads_dir):
        original = source_docx.read_bytes()

        with pytest.raises(NoValidChanges):
            await apply_plan(source_docx, describe("docx"), _plan(("Absent text", "x")), EXTRACTED)

        assert source_docx.read_bytes() == original
        remaining = [p.name for p in uploads_dir.iterdir()] if uploads_dir.exists() else []
        assert remaining == []

    @pytest.mark.asyncio
    async def test_falls_back_to_paragraph_edit(self, source_docx, uploads_dir):
        with patch(
            "app.core.appliers.docx_applier.edit_package",
            side_effect=ValueError("bad xml"),
        ):
            artifact = await apply_plan(
                source_docx, describe("docx"), _plan(("Dana", "Lee")), EXTRACTED
            )

        assert artifact.preservation_level == PreservationLevel.PARTIAL
        assert artifact.notes
        doc = Document(str(uploads_dir / artifact.file_name))
        assert doc.paragraphs[1].text == "Owner: Lee"

    @pytest.mark.asyncio
    async def test_both_tiers_failing(self, source_docx):
        with patch(
            "app.core.appliers.docx_applier.edit_package", side_effect=ValueError("bad xml")
        ), patch(
            "app.core.appliers.docx_applier.edit_paragraphs", side_effect=KeyError("broken")
        ):
            with pytest.raises(DirectEditFailed) as exc_info:
                await apply_plan(source_docx, describe("docx"), _plan(("Dana", "Lee")), EXTRACTED)

        assert exc_info.value.code == "direct_edit_failed"
