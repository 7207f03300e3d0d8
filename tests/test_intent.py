"""Tests for export/document intent rules and the classifier chains.

Oracle calls are mocked at the chain module boundary.
"""

from unittest.mock import AsyncMock, patch

import pytest

from app.chains.classify_export_intent import classify_document_intent, classify_export_intent
from app.core.intent_rules import (
    detect_scope,
    has_content_request,
    match_document_intent,
    match_format,
    strip_export_instructions,
)
from app.core.oracle import OracleError, OracleTimeout
from app.core.schemas_export import ExportScope

ORACLE = "app.chains.classify_export_intent.call_oracle_json"


# =============================================================================
# Deterministic rules
# =============================================================================


class TestMatchFormat:
    @pytest.mark.parametrize(
        "message,expected",
        [
            ("export this as PDF", "pdf"),
            ("save it as an xlsx please", "xlsx"),
            ("give me a word document", "docx"),
            ("can I get this as a spreadsheet", "xlsx"),
            ("bundle it into a tar.gz", "tar.gz"),
            ("download as 7z", "7z"),
            ("put the contacts in a vcard", "vcf"),
        ],
    )
    def test_formats(self, message, expected):
        assert match_format(message) == expected

    def test_specific_beats_generic(self):
        assert match_format("export the spreadsheet as csv") == "csv"

    def test_target_position_beats_mention(self):
        assert match_format("convert the pdf to word") == "docx"

    def test_no_format(self):
        assert match_format("tell me a joke") is None

    def test_bare_doc_is_legacy_word(self):
        assert match_format("export as doc") == "doc"
        assert match_format("save it as a .doc") == "doc"
        assert match_format("give me a word doc") == "docx"


class TestContentRequest:
    def test_pure_export_phrase_is_not_content(self):
        assert not has_content_request("make a pdf of this")
        assert not has_content_request("export this as PDF")

    def test_content_verb_is_content(self):
        assert has_content_request("create a quarterly report and export it as rtf")

    @pytest.mark.parametrize(
        "message",
        [
            "make me a pdf of this",
            "give me a word document of that",
            "export the list as pdf",
            "download this plan as excel",
            "export the design notes to word",
        ],
    )
    def test_file_requests_and_nouns_are_not_content(self, message):
        assert not has_content_request(message)

    def test_leading_noun_verb_is_content(self):
        assert has_content_request("list the regions and export to csv")
        assert has_content_request("please outline the rollout and download it as pdf")

    def test_file_with_topic_is_content(self):
        assert has_content_request("give me a pdf about tides")
        assert has_content_request("make a word document explaining the budget")


class TestStripExportInstructions:
    @pytest.mark.parametrize(
        "message,expected",
        [
            ("write a budget and export it as pdf", "write a budget"),
            ("explain quantum physics in docx format", "explain quantum physics"),
            ("draft a memo, then download it as word", "draft a memo"),
            ("summarize this document", "summarize this document"),
        ],
    )
    def test_strips(self, message, expected):
        assert strip_export_instructions(message) == expected


class TestDetectScope:
    def test_whole_conversation(self):
        assert detect_scope("export the entire conversation to pdf") == ExportScope.ALL

    def test_previous_answer(self):
        assert detect_scope("download the previous answer as a word file") == ExportScope.PREVIOUS

    def test_default_current(self):
        assert detect_scope("export as pdf") == ExportScope.CURRENT
        assert detect_scope("hello there") == ExportScope.CURRENT


class TestDocumentIntentRules:
    def test_export(self):
        assert match_document_intent("convert this to pdf") == "export"

    def test_modify(self):
        assert match_document_intent("Change the title to Q3 Plan") == "modify"

    def test_analyze(self):
        assert match_document_intent("What is the total budget?") == "analyze"

    def test_format_question_is_not_export(self):
        assert match_document_intent("How do I convert pdf to word?") == "analyze"

    def test_unknown(self):
        assert match_document_intent("the second table") is None


# =============================================================================
# Export intent chain
# =============================================================================


class TestClassifyExportIntent:
    @pytest.mark.asyncio
    async def test_pure_export(self):
        with patch(ORACLE, new_callable=AsyncMock) as mock_oracle:
            intent = await classify_export_intent("export this as PDF")

        assert intent.is_export is True
        assert intent.is_pure_export is True
        assert intent.has_content_request is False
        assert intent.export_type == "pdf"
        assert intent.confidence == "high"
        mock_oracle.assert_not_called()

    @pytest.mark.asyncio
    async def test_combined_request(self):
        with patch(ORACLE, new_callable=AsyncMock) as mock_oracle:
            intent = await classify_export_intent(
                "create a quarterly report with tables and export it as rtf"
            )

        assert intent.is_export is True
        assert intent.is_pure_export is False
        assert intent.has_content_request is True
        assert intent.export_type == "rtf"
        mock_oracle.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("message", ["", "   ", None, 42])
    async def test_empty_or_non_string_is_safe_default(self, message):
        with patch(ORACLE, new_callable=AsyncMock) as mock_oracle:
            intent = await classify_export_intent(message)

        assert intent.is_export is False
        assert intent.has_content_request is True
        assert intent.export_type == "docx"
        assert intent.confidence == "none"
        mock_oracle.assert_not_called()

    @pytest.mark.asyncio
    async def test_no_export_keyword_skips_oracle(self):
        with patch(ORACLE, new_callable=AsyncMock) as mock_oracle:
            intent = await classify_export_intent("what is the capital of France?")

        assert intent.is_export is False
        mock_oracle.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "message",
        [
            "How do I center text in html?",
            "what's the best font to use in word?",
            "How do I convert pdf to word?",
        ],
    )
    async def test_format_question_is_left_to_oracle(self, message):
        oracle = AsyncMock(return_value={"isExport": False, "confidence": "high"})
        with patch(ORACLE, oracle) as mock_oracle:
            intent = await classify_export_intent(message)

        assert intent.is_export is False
        mock_oracle.assert_awaited_once()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "message,expected",
        [
            ("make me a pdf of this", "pdf"),
            ("give me a word document of that", "docx"),
            ("export the list as pdf", "pdf"),
            ("download this plan as excel", "xlsx"),
            ("export the design notes to word", "docx"),
            ("export as doc", "doc"),
        ],
    )
    async def test_file_request_is_pure_export(self, message, expected):
        with patch(ORACLE, new_callable=AsyncMock) as mock_oracle:
            intent = await classify_export_intent(message)

        assert intent.is_export is True
        assert intent.is_pure_export is True
        assert intent.export_type == expected
        mock_oracle.assert_not_called()

    @pytest.mark.asyncio
    async def test_file_with_topic_is_combined(self):
        with patch(ORACLE, new_callable=AsyncMock) as mock_oracle:
            intent = await classify_export_intent("give me a pdf about the tides of the Bay of Fundy")

        assert intent.is_export is True
        assert intent.has_content_request is True
        assert intent.export_type == "pdf"
        mock_oracle.assert_not_called()

    @pytest.mark.asyncio
    async def test_oracle_resolves_format(self):
        oracle = AsyncMock(
            return_value={
                "isExport": True,
                "isPureExport": True,
                "hasContentRequest": False,
                "exportType": "odt",
                "confidence": "high",
            }
        )
        with patch(ORACLE, oracle):
            intent = await classify_export_intent("please export everything for me")

        assert intent.is_export is True
        assert intent.export_type == "odt"
        oracle.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unregistered_oracle_format_falls_back_to_docx(self):
        oracle = AsyncMock(
            return_value={"isExport": True, "exportType": "pages", "confidence": "medium"}
        )
        with patch(ORACLE, oracle):
            intent = await classify_export_intent("please export this for me")

        assert intent.export_type == "docx"

    @pytest.mark.asyncio
    async def test_oracle_cannot_force_content_at_medium_confidence(self):
        oracle = AsyncMock(
            return_value={
                "isExport": True,
                "isPureExport": True,
                "hasContentRequest": True,
                "exportType": "pdf",
                "confidence": "medium",
            }
        )
        with patch(ORACLE, oracle):
            intent = await classify_export_intent("please export this for me")

        assert intent.has_content_request is False
        assert intent.is_pure_export is True

    @pytest.mark.asyncio
    async def test_both_flags_resolve_to_content_request(self):
        oracle = AsyncMock(
            return_value={
                "isExport": True,
                "isPureExport": True,
                "hasContentRequest": True,
                "exportType": "pdf",
                "confidence": "high",
            }
        )
        with patch(ORACLE, oracle):
            intent = await classify_export_intent("please export this for me")

        assert intent.has_content_request is True
        assert intent.is_pure_export is False

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [OracleError("boom"), OracleTimeout("slow")])
    async def test_oracle_failure_is_absorbed(self, error):
        with patch(ORACLE, AsyncMock(side_effect=error)):
            intent = await classify_export_intent("please export this for me")

        assert intent.is_export is False
        assert intent.confidence == "none"


class TestClassifyDocumentIntent:
    @pytest.mark.asyncio
    async def test_fast_path(self):
        with patch(ORACLE, new_callable=AsyncMock) as mock_oracle:
            intent = await classify_document_intent("Replace 'Acme' with 'Globex'")

        assert intent.intent == "modify"
        mock_oracle.assert_not_called()

    @pytest.mark.asyncio
    async def test_oracle_path(self):
        oracle = AsyncMock(return_value={"intent": "MODIFY", "confidence": "medium", "reason": "edit"})
        with patch(ORACLE, oracle):
            intent = await classify_document_intent("the intro paragraph needs more punch")

        assert intent.intent == "modify"
        assert intent.confidence == "medium"

    @pytest.mark.asyncio
    async def test_failure_never_modifies(self):
        with patch(ORACLE, AsyncMock(side_effect=OracleTimeout("slow"))):
            intent = await classify_document_intent("the intro paragraph needs more punch")

        assert intent.intent == "analyze"
        assert intent.confidence == "low"
