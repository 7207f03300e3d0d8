"""Extract-modify-export applier for pdf, odt and pptx.

These formats cannot be patched safely in place, so the changes are applied
to the extracted text and the result is rendered back into the source
format. Layout is regenerated, not preserved.
"""

from pathlib import Path

from app.core.appliers.base import ApplierRegistry, BaseApplier
from app.core.appliers.text_applier import apply_text_changes
from app.core.artifact_storage import build_artifact, derive_output_path
from app.core.export_errors import NoValidChanges
from app.core.logging import get_logger
from app.core.renderers import render_to_path
from app.core.schemas_export import ExportArtifact, PreservationLevel, Strategy

logger = get_logger(__name__)


class RewriteApplier(BaseApplier):
    strategies = frozenset({Strategy.EXTRACT_MODIFY_EXPORT})

    async def apply(self, source_path, descriptor, plan, extracted) -> ExportArtifact:
        source_path = Path(source_path)
        new_text, applied = apply_text_changes(extracted.plain_text, plan.instructions)
        if applied == 0:
            raise NoValidChanges()

        output_path = derive_output_path(source_path, descriptor)
        notes = await render_to_path(new_text, descriptor, source_path.stem, output_path)

        if descriptor.id == "pdf":
            preservation = PreservationLevel.NONE
            notes.insert(
                0, "The PDF was regenerated from its text; original layout and images are not kept."
            )
        else:
            preservation = PreservationLevel.PARTIAL
            notes.insert(
                0, f"The {descriptor.display_label} was rebuilt from its text; styling may differ."
            )

        logger.info(f"Rewrite applier: {applied}/{len(plan.instructions)} changes -> {output_path.name}")
        return build_artifact(output_path, descriptor, preservation, notes)


ApplierRegistry.register(RewriteApplier())
