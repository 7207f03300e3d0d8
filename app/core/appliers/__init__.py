"""Format-specific appliers, selected by the source format's strategy.

Usage:
    from app.core.appliers import apply_plan

    artifact = await apply_plan(path, describe("docx"), plan, extracted)
"""

from pathlib import Path

from app.core.appliers.base import (
    ApplierRegistry,
    BaseApplier,
    UnsupportedApplier,
    unsupported_modification,
)
from app.core.logging import get_logger
from app.core.schemas_export import (
    ExportArtifact,
    ExtractedDocument,
    FormatDescriptor,
    ModificationPlan,
)

# Import appliers to register them
from app.core.appliers import docx_applier  # noqa: F401
from app.core.appliers import rewrite_applier  # noqa: F401
from app.core.appliers import spreadsheet_applier  # noqa: F401
from app.core.appliers import text_applier  # noqa: F401

logger = get_logger(__name__)


async def apply_plan(
    source_path: str | Path,
    descriptor: FormatDescriptor,
    plan: ModificationPlan,
    extracted: ExtractedDocument,
) -> ExportArtifact:
    """
    Apply a validated plan to a copy of the source file.

    Raises:
        UnsupportedModification: If the format cannot be modified
        NoValidChanges: If nothing in the plan could be applied
        DirectEditFailed: If DOCX editing failed on both tiers
        RenderFailed: If an extract-modify-export re-render failed
    """
    applier = ApplierRegistry.get_applier(descriptor.strategy)
    if applier is None:
        raise unsupported_modification(descriptor)

    logger.info(f"Applying {len(plan.instructions)} changes with {type(applier).__name__}")
    return await applier.apply(Path(source_path), descriptor, plan, extracted)


__all__ = [
    "ApplierRegistry",
    "BaseApplier",
    "UnsupportedApplier",
    "apply_plan",
    "unsupported_modification",
]
