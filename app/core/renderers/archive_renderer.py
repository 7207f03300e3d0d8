"""Archive renderer: the content as a Markdown file inside zip, 7z or tar.gz."""

import asyncio
import tarfile
import tempfile
import zipfile
from pathlib import Path

import py7zr

from app.core.artifact_storage import sanitize_title
from app.core.formats import describe
from app.core.logging import get_logger
from app.core.renderers.base import BaseRenderer, RendererRegistry
from app.core.renderers.markup_renderer import to_markdown
from app.core.schemas_export import FormatDescriptor, RenderFamily

logger = get_logger(__name__)


def write_archive(member: Path, arcname: str, output_path: Path, format_id: str) -> None:
    if format_id == "7z":
        with py7zr.SevenZipFile(output_path, mode="w") as archive:
            archive.write(member, arcname)
    elif format_id == "tar.gz":
        with tarfile.open(output_path, "w:gz") as tar:
            tar.add(member, arcname=arcname)
    else:
        with zipfile.ZipFile(output_path, "w", compression=zipfile.ZIP_DEFLATED) as zipf:
            zipf.write(member, arcname)


class ArchiveRenderer(BaseRenderer):
    family = RenderFamily.ARCHIVE

    def effective_format(self, descriptor: FormatDescriptor) -> FormatDescriptor:
        # RAR creation needs the proprietary rar tool
        if descriptor.id == "rar":
            return describe("zip")
        return descriptor

    async def render(self, content, descriptor, title, output_path) -> list[str]:
        arcname = f"{sanitize_title(title)}.md"
        body = to_markdown(content).rstrip() + "\n"

        with tempfile.TemporaryDirectory() as tmp:
            member = Path(tmp) / arcname
            member.write_text(body, encoding="utf-8")
            await asyncio.to_thread(write_archive, member, arcname, output_path, descriptor.id)

        logger.debug(f"Archived {arcname} into {output_path.name}")
        return []


RendererRegistry.register(ArchiveRenderer())
