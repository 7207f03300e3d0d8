"""Archive extractor for zip, tar.gz and 7z uploads.

Members are unpacked into a temporary directory and each one is read by
the extractor registered for its own format. The result is one
``=== File: <name> ===`` section per readable member.
"""

import asyncio
import tarfile
import tempfile
import zipfile
from pathlib import Path

import py7zr

from app.core.document_processing.base import BaseExtractor, ExtractorRegistry, detect_structure
from app.core.export_errors import ExtractionFailed, UnknownFormat
from app.core.formats import format_for_path
from app.core.logging import get_logger
from app.core.schemas_export import ExtractedDocument, FormatDescriptor

logger = get_logger(__name__)

MAX_ARCHIVE_MEMBERS = 50


def _safe_target(root: Path, name: str) -> Path | None:
    """Destination for a member, or None when it would land outside ``root``."""
    target = (root / name).resolve()
    if not target.is_relative_to(root.resolve()):
        return None
    return target


def _write_member(root: Path, name: str, data: bytes) -> None:
    target = _safe_target(root, name)
    if target is None:
        logger.warning(f"Skipped archive member outside extraction root: {name}")
        return
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(data)


def unpack_archive(path: Path, format_id: str, root: Path) -> list[Path]:
    """Unpack regular files into ``root`` and return them in name order."""
    if format_id == "zip":
        with zipfile.ZipFile(path) as archive:
            for info in archive.infolist():
                if not info.is_dir():
                    _write_member(root, info.filename, archive.read(info))
    elif format_id == "tar.gz":
        with tarfile.open(path, mode="r:*") as archive:
            for member in archive.getmembers():
                if not member.isfile():
                    continue
                handle = archive.extractfile(member)
                if handle is not None:
                    _write_member(root, member.name, handle.read())
    elif format_id == "7z":
        with py7zr.SevenZipFile(path, mode="r") as archive:
            archive.extractall(path=root)
    else:
        raise ValueError(f"Not an archive format: {format_id}")

    return sorted(
        p
        for p in root.rglob("*")
        if p.is_file() and "__MACOSX" not in p.parts and not p.name.startswith(".")
    )


class ArchiveExtractor(BaseExtractor):
    """Reads every supported file inside an archive."""

    name = "archive"
    formats = frozenset({"zip", "tar.gz", "7z"})

    def can_handle(self, descriptor: FormatDescriptor) -> bool:
        return descriptor.id in self.formats

    async def extract(self, path: Path, descriptor: FormatDescriptor) -> ExtractedDocument:
        sections: list[str] = []
        warnings: list[str] = []

        with tempfile.TemporaryDirectory(prefix="archive-") as tmp:
            root = Path(tmp)
            try:
                members = await asyncio.to_thread(unpack_archive, path, descriptor.id, root)
            except (zipfile.BadZipFile, tarfile.TarError, py7zr.Bad7zFile, OSError) as e:
                raise self.fail(f"Failed to open archive: {e}")

            if len(members) > MAX_ARCHIVE_MEMBERS:
                warnings.append(
                    f"Only the first {MAX_ARCHIVE_MEMBERS} of {len(members)} files were read"
                )

            for member in members[:MAX_ARCHIVE_MEMBERS]:
                name = member.relative_to(root).as_posix()
                text = await self._extract_member(member, name, warnings)
                if text:
                    sections.append(f"=== File: {name} ===\n{text}")

        if not sections:
            raise self.fail("No readable files in the archive")

        text = "\n\n".join(sections)
        logger.debug(f"Archive extracted {len(sections)} files, {len(text)} chars")
        return ExtractedDocument(
            format_id=descriptor.id,
            plain_text=text,
            structural_metadata=detect_structure(text),
            extraction_method="archive",
            warnings=warnings,
        )

    async def _extract_member(self, member: Path, name: str, warnings: list[str]) -> str | None:
        try:
            descriptor = format_for_path(member)
        except UnknownFormat:
            warnings.append(f"Skipped {name}: unknown format")
            return None

        extractor = ExtractorRegistry.get_extractor(descriptor)
        if extractor is None or extractor is self:
            warnings.append(f"Skipped {name}: no text extractor for {descriptor.display_label}")
            return None

        try:
            document = await extractor.extract(member, descriptor)
        except ExtractionFailed as e:
            logger.warning(f"Archive member {name} failed: {e.reason}")
            warnings.append(f"Skipped {name}: {e.reason}")
            return None

        return document.plain_text.strip() or None


ExtractorRegistry.register(ArchiveExtractor())
