"""Pydantic models for the export and modification pipeline.

Flow:
  message -> ExportIntent / DocumentIntent
  file    -> ExtractedDocument -> ModificationPlan -> ExportArtifact
  content -> ExportArtifact
Every chat-facing entry point returns a PipelineResult.
"""

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Enums
# =============================================================================


class Strategy(str, Enum):
    """How a source file of a given format is modified."""

    DIRECT_BINARY = "direct_binary"  # Edit the package in place (DOCX)
    TABULAR = "tabular"  # Cell-coordinate edits (XLSX, CSV, TSV)
    TEXT_BASED = "text_based"  # Literal find/replace on raw text
    EXTRACT_MODIFY_EXPORT = "extract_modify_export"  # Rewrite then re-render
    IMAGE_ONLY = "image_only"  # Rendered output only
    ARCHIVE_ONLY = "archive_only"  # Container formats
    NOT_MODIFIABLE = "not_modifiable"  # Legacy binaries and media


MODIFIABLE_STRATEGIES = frozenset(
    {
        Strategy.DIRECT_BINARY,
        Strategy.TABULAR,
        Strategy.TEXT_BASED,
        Strategy.EXTRACT_MODIFY_EXPORT,
    }
)


class RenderFamily(str, Enum):
    """Which encoder the re-exporter uses for a format."""

    PANDOC = "pandoc"
    SPREADSHEET = "spreadsheet"
    IMAGE = "image"
    MARKUP = "markup"
    ENVELOPE = "envelope"
    ARCHIVE = "archive"
    NONE = "none"


class PreservationLevel(str, Enum):
    """How much of the source's structure survived a modification."""

    FULL = "full"
    PARTIAL = "partial"
    NONE = "none"


class ExportScope(str, Enum):
    """Which part of the conversation an export covers."""

    CURRENT = "current"
    PREVIOUS = "previous"
    ALL = "all"


Confidence = Literal["high", "medium", "low", "none"]


# =============================================================================
# Registry
# =============================================================================


class FormatDescriptor(BaseModel):
    """One registered file format."""

    model_config = ConfigDict(frozen=True)

    id: str
    file_extension: str
    display_label: str
    strategy: Strategy
    render_family: RenderFamily
    mime_type: str = "application/octet-stream"
    pandoc_writer: str | None = None
    pandoc_args: tuple[str, ...] = ()

    @property
    def modifiable(self) -> bool:
        return self.strategy in MODIFIABLE_STRATEGIES

    @property
    def exportable(self) -> bool:
        return self.render_family != RenderFamily.NONE


# =============================================================================
# Requests and extraction
# =============================================================================


class SessionMessage(BaseModel):
    """A prior conversation message used to resolve references."""

    model_config = ConfigDict(frozen=True)

    sender: Literal["user", "bot"]
    message: str


class ModificationRequest(BaseModel):
    """A request to modify an existing document."""

    model_config = ConfigDict(frozen=True)

    source_file_path: str
    declared_format: str
    user_instruction: str
    session_context: tuple[SessionMessage, ...] = ()
    conversation_id: str | None = None

    @classmethod
    def build(
        cls,
        source_file_path: str,
        declared_format: str,
        user_instruction: str,
        session_context: list[SessionMessage] | None = None,
        window: int = 10,
        conversation_id: str | None = None,
    ) -> "ModificationRequest":
        """Construct a request keeping only the last ``window`` context messages."""
        recent = list(session_context or [])[-window:] if window > 0 else []
        return cls(
            source_file_path=source_file_path,
            declared_format=declared_format,
            user_instruction=user_instruction,
            session_context=tuple(recent),
            conversation_id=conversation_id,
        )


class StructuralMetadata(BaseModel):
    """Lightweight structure flags detected in extracted text."""

    model_config = ConfigDict(frozen=True)

    has_tables: bool = False
    has_lists: bool = False
    has_headings: bool = False
    has_images: bool = False
    has_emphasis: bool = False


class ExtractedDocument(BaseModel):
    """Text and structure pulled from a source file. Re-derived per request."""

    model_config = ConfigDict(frozen=True)

    format_id: str
    plain_text: str
    tabular_rows: list[list[str]] | None = None
    structural_metadata: StructuralMetadata = Field(default_factory=StructuralMetadata)
    sheet_dimensions: dict[str, tuple[int, int]] = Field(default_factory=dict)
    row_count: int = 0
    column_count: int = 0
    extraction_method: str = "native"
    warnings: list[str] = Field(default_factory=list)

    @property
    def is_tabular(self) -> bool:
        return self.tabular_rows is not None


# =============================================================================
# Planning
# =============================================================================


class ChangeInstruction(BaseModel):
    """One find/replace or cell edit proposed by the planner."""

    model_config = ConfigDict(frozen=True)

    find_text: str | None = None
    replace_text: str = ""
    row: int | None = None
    column: int | None = None
    sheet: str | None = None
    reason: str = ""

    @property
    def is_cell_change(self) -> bool:
        return self.row is not None and self.column is not None


class ColumnAddition(BaseModel):
    """A column appended to every row of a tabular document."""

    model_config = ConfigDict(frozen=True)

    header: str
    default_value: str = ""
    sheet: str | None = None


class RejectedInstruction(BaseModel):
    """An instruction rejected during local validation."""

    instruction: ChangeInstruction
    error: str


class ModificationPlan(BaseModel):
    """Ordered, validated instructions. Later instructions see earlier results."""

    instructions: list[ChangeInstruction] = Field(default_factory=list)
    added_columns: list[ColumnAddition] = Field(default_factory=list)
    explanation: str = ""
    validation_errors: list[RejectedInstruction] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.instructions and not self.added_columns


# =============================================================================
# Outputs
# =============================================================================


class ExportArtifact(BaseModel):
    """A file produced by an applier or the re-exporter."""

    model_config = ConfigDict(frozen=True)

    output_path: str
    file_name: str
    format: str
    preservation_level: PreservationLevel
    label: str
    download_url: str = ""
    notes: list[str] = Field(default_factory=list)


class ExportIntent(BaseModel):
    """Result of classifying a chat message for export."""

    model_config = ConfigDict(frozen=True)

    is_export: bool = False
    is_pure_export: bool = False
    has_content_request: bool = True
    export_type: str = "docx"
    confidence: Confidence = "none"


class DocumentIntent(BaseModel):
    """What the user wants done with an attached document."""

    model_config = ConfigDict(frozen=True)

    intent: Literal["analyze", "modify", "export"] = "analyze"
    confidence: Confidence = "low"
    reason: str = ""


class PipelineResult(BaseModel):
    """Structured outcome of a chat-driven export or modification."""

    success: bool
    artifact: ExportArtifact | None = None
    error: str | None = None
    message: str = ""
    recommendation: str | None = None
    plan_explanation: str | None = None
