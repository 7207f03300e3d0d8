"""Tests for export content selection and cleaning."""

from app.core.export_content import (
    build_aggregated_assistant_content,
    build_transcript,
    clean_export_content,
    looks_like_export_link,
    pick_content_for_export,
    rows_to_markdown,
    strip_download_links,
)
from app.core.schemas_export import ExportScope, SessionMessage

LONG_A = "Section A explains the rollout plan in detail, covering regions, owners and the timeline."
LONG_B = "Section B lists the budget for each quarter together with the assumptions behind every line."


def _msgs(*pairs):
    return [SessionMessage(sender=s, message=m) for s, m in pairs]


class TestCleanExportContent:
    def test_strips_boilerplate_and_markers(self):
        raw = (
            "I'm sorry for the confusion earlier.\n"
            "## Plan\n\n"
            "The **launch** is in *March*.\n\n"
            "```\ncode\n```\n\n"
            "Would you like me to add a timeline?\n"
            "I can also add owners."
        )
        cleaned = clean_export_content(raw)

        assert cleaned == "## Plan\n\nThe launch is in March.\n\ncode"

    def test_offer_in_the_middle_is_kept(self):
        raw = "Intro.\n\nWould you like to know more? Here is more.\n\nFinal paragraph."
        assert clean_export_content(raw) == raw

    def test_save_hint_line_removed(self):
        assert clean_export_content("Body\nTo download this as a PDF, click the button.") == "Body"

    def test_none(self):
        assert clean_export_content(None) == ""


class TestDownloadLinks:
    def test_strip_links_and_sandbox_paths(self):
        raw = (
            "Here is the plan.\n"
            "[Download your PDF](https://example.com/uploads/plan.pdf)\n"
            "See sandbox:/mnt/data/plan.docx for details."
        )
        cleaned = strip_download_links(raw)
        assert "example.com" not in cleaned
        assert "/mnt/data" not in cleaned
        assert cleaned.startswith("Here is the plan.")

    def test_looks_like_export_link(self):
        assert looks_like_export_link("I created your file: [Plan.pdf](http://x/uploads/Plan.pdf)")
        assert looks_like_export_link("[Click to download](https://example.com/a.docx)")
        assert not looks_like_export_link(LONG_A)
        assert not looks_like_export_link(None)


class TestPickContent:
    def test_pure_export_uses_last_substantial_reply(self):
        messages = _msgs(
            ("user", "write A"),
            ("bot", LONG_A),
            ("user", "write B"),
            ("bot", LONG_B),
            ("bot", "I created your file: [B.pdf](http://x/uploads/B.pdf)"),
            ("bot", "Ok!"),
        )
        content = pick_content_for_export(ExportScope.CURRENT, messages, is_pure_export=True)
        assert content == LONG_B

    def test_scope_all_aggregates(self):
        messages = _msgs(("bot", LONG_A), ("user", "next"), ("bot", LONG_B))
        content = pick_content_for_export(ExportScope.ALL, messages, is_pure_export=True)
        assert content == f"{LONG_A}\n\n---\n\n{LONG_B}"

    def test_aggregate_keeps_last_ten(self):
        messages = _msgs(*[("bot", f"{i:02d} {LONG_A}") for i in range(12)])
        sections = build_aggregated_assistant_content(messages).split("\n\n---\n\n")
        assert len(sections) == 10
        assert sections[0].startswith("02 ")

    def test_combined_uses_new_output(self):
        messages = _msgs(("bot", LONG_A))
        content = pick_content_for_export(
            ExportScope.CURRENT, messages, is_pure_export=False, new_output="Fresh content"
        )
        assert content == "Fresh content"

    def test_nothing_exportable(self):
        messages = _msgs(("user", "hi"), ("bot", "Hello!"))
        assert pick_content_for_export(ExportScope.PREVIOUS, messages, is_pure_export=True) == ""


class TestTranscript:
    def test_sections_and_skipped_links(self):
        messages = _msgs(
            ("user", "Plan the launch"),
            ("bot", "**Step one**: book the venue.\n\nWould you like more detail?"),
            ("bot", "I created your file: [Plan.pdf](http://x/uploads/Plan.pdf)"),
        )
        transcript = build_transcript(messages)
        assert transcript == (
            "### User\n\nPlan the launch\n\n### Assistant\n\nStep one: book the venue."
        )

    def test_custom_label(self):
        transcript = build_transcript(_msgs(("bot", "Hello there")), assistant_label="Bot")
        assert transcript.startswith("### Bot")


class TestRowsToMarkdown:
    def test_pipe_table(self):
        md = rows_to_markdown([["Name", "Note"], ["Dana", "a|b"], ["Lee"]])
        assert md.splitlines() == [
            "| Name | Note |",
            "| --- | --- |",
            "| Dana | a\\|b |",
            "| Lee |  |",
        ]

    def test_empty(self):
        assert rows_to_markdown([]) == ""
