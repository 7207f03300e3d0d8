"""Error taxonomy for the export and modification pipeline.

Every error carries a stable ``code`` that the pipeline boundary copies
into ``PipelineResult.error`` so callers never see a raw exception.
"""


class ExportPipelineError(Exception):
    """Base class for pipeline failures."""

    code = "export_failed"

    def __init__(self, message: str, recommendation: str | None = None):
        super().__init__(message)
        self.message = message
        self.recommendation = recommendation


class UnknownFormat(ExportPipelineError):
    """Raised when a format id is not in the registry."""

    code = "unknown_format"

    def __init__(self, format_id: str):
        super().__init__(f"Unknown format: {format_id!r}")
        self.format_id = format_id


class ExtractionFailed(ExportPipelineError):
    """Raised when text cannot be pulled out of a source file."""

    code = "extraction_failed"

    def __init__(self, reason: str, extractor: str | None = None, recoverable: bool = False):
        super().__init__(reason)
        self.reason = reason
        self.extractor = extractor
        self.recoverable = recoverable


class NoValidChanges(ExportPipelineError):
    """Raised when a plan has nothing applicable. Recoverable: ask the user to rephrase."""

    code = "no_valid_changes"

    def __init__(self, message: str = "No applicable changes were found in the document."):
        super().__init__(
            message,
            recommendation="Quote the exact text you want changed, or describe the edit more specifically.",
        )


class DirectEditFailed(ExportPipelineError):
    """Raised when both tiers of the DOCX editor fail."""

    code = "direct_edit_failed"


class UnsupportedModification(ExportPipelineError):
    """Raised for formats that cannot be edited in place."""

    code = "unsupported_modification"


class RenderFailed(ExportPipelineError):
    """Raised when an encoder cannot produce the target format."""

    code = "render_failed"

    def __init__(self, format_id: str, cause: str):
        super().__init__(f"Could not render {format_id}: {cause}")
        self.format_id = format_id
        self.cause = cause
