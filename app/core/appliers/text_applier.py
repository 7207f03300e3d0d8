"""Literal find/replace for text-based formats (txt, md, html, xml, rtf, ics, vcf, eml, mbox)."""

import asyncio
from pathlib import Path

from app.core.appliers.base import ApplierRegistry, BaseApplier
from app.core.artifact_storage import build_artifact, derive_output_path, staged_output
from app.core.document_processing.base import decode_bytes
from app.core.export_errors import NoValidChanges
from app.core.logging import get_logger
from app.core.schemas_export import (
    ChangeInstruction,
    ExportArtifact,
    PreservationLevel,
    Strategy,
)

logger = get_logger(__name__)


def apply_text_changes(text: str, instructions: list[ChangeInstruction]) -> tuple[str, int]:
    """Apply instructions in order; each replaces every occurrence of its find text.

    Returns:
        (new text, number of instructions that changed something)
    """
    applied = 0
    for instruction in instructions:
        find = instruction.find_text
        if instruction.is_cell_change or not find:
            continue
        if find in text:
            text = text.replace(find, instruction.replace_text)
            applied += 1
        else:
            logger.debug(f"Find text no longer present after earlier changes: {find[:60]!r}")
    return text, applied


class TextApplier(BaseApplier):
    """Raw-text applier. Output keeps the source encoding."""

    strategies = frozenset({Strategy.TEXT_BASED})

    async def apply(self, source_path, descriptor, plan, extracted) -> ExportArtifact:
        return await asyncio.to_thread(self._apply_sync, Path(source_path), descriptor, plan)

    def _apply_sync(self, source_path: Path, descriptor, plan) -> ExportArtifact:
        text, encoding = decode_bytes(source_path.read_bytes())
        new_text, applied = apply_text_changes(text, plan.instructions)
        if applied == 0:
            raise NoValidChanges()

        output_path = derive_output_path(source_path, descriptor)
        with staged_output(output_path) as tmp_path:
            tmp_path.write_bytes(new_text.encode(encoding, errors="replace"))

        logger.info(f"Text applier: {applied}/{len(plan.instructions)} changes -> {output_path.name}")
        return build_artifact(output_path, descriptor, PreservationLevel.FULL)


ApplierRegistry.register(TextApplier())
