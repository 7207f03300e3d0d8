"""Applier interface and the strategy-to-applier registry.

An applier turns a validated ModificationPlan into a new file. It reads the
source, never writes to it, and stages its output inside the uploads
directory so only complete artifacts ever appear.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from app.core.export_errors import UnsupportedModification
from app.core.schemas_export import (
    ExportArtifact,
    ExtractedDocument,
    FormatDescriptor,
    ModificationPlan,
    Strategy,
)

MODIFIABLE_ALTERNATIVES = "DOCX, TXT or CSV"


class BaseApplier(ABC):
    """Base class for format-specific appliers."""

    strategies: frozenset[Strategy] = frozenset()

    def can_handle(self, strategy: Strategy) -> bool:
        return strategy in self.strategies

    @abstractmethod
    async def apply(
        self,
        source_path: Path,
        descriptor: FormatDescriptor,
        plan: ModificationPlan,
        extracted: ExtractedDocument,
    ) -> ExportArtifact:
        """Write a modified copy of ``source_path``.

        Raises:
            NoValidChanges: If no instruction could be applied (nothing is written)
        """


class UnsupportedApplier(BaseApplier):
    """Fails fast for formats that cannot be edited in place."""

    strategies = frozenset({Strategy.IMAGE_ONLY, Strategy.ARCHIVE_ONLY, Strategy.NOT_MODIFIABLE})

    async def apply(self, source_path, descriptor, plan, extracted) -> ExportArtifact:
        raise unsupported_modification(descriptor)


def unsupported_modification(descriptor: FormatDescriptor) -> UnsupportedModification:
    if descriptor.strategy == Strategy.IMAGE_ONLY:
        reason = f"{descriptor.display_label} files are images and cannot be edited as text."
        recommendation = (
            f"Ask me to export the content to a modifiable format such as {MODIFIABLE_ALTERNATIVES}, "
            "edit it there, then export it back to an image."
        )
    elif descriptor.strategy == Strategy.ARCHIVE_ONLY:
        reason = f"{descriptor.display_label} files are containers and cannot be edited directly."
        recommendation = (
            f"Extract the file you want to change and upload it as {MODIFIABLE_ALTERNATIVES} "
            "or another editable format."
        )
    else:
        reason = f"{descriptor.display_label} files cannot be modified in place."
        recommendation = (
            f"Convert the file to a modifiable format such as {MODIFIABLE_ALTERNATIVES} "
            "(or the modern equivalent of this format) and try again."
        )
    return UnsupportedModification(reason, recommendation=recommendation)


class ApplierRegistry:
    """Registry mapping strategies to appliers."""

    _appliers: list[BaseApplier] = []

    @classmethod
    def register(cls, applier: BaseApplier) -> None:
        cls._appliers.append(applier)

    @classmethod
    def get_applier(cls, strategy: Strategy) -> Optional[BaseApplier]:
        for applier in cls._appliers:
            if applier.can_handle(strategy):
                return applier
        return None


ApplierRegistry.register(UnsupportedApplier())
