"""Pandoc-backed renderer for pdf, docx, doc, rtf, odt, pptx, ppt and odp."""

import asyncio
from pathlib import Path

from app.core.config import get_settings
from app.core.logging import get_logger
from app.core.renderers.base import BaseRenderer, RendererRegistry
from app.core.renderers.tables import looks_like_html
from app.core.schemas_export import FormatDescriptor, RenderFamily

logger = get_logger(__name__)

# Formats written with the nearest modern writer
DEGRADED_WRITERS = {"doc", "ppt", "odp"}

MARKDOWN_INPUT = "markdown+pipe_tables+grid_tables+fenced_code_blocks+raw_html"


class PandocRenderer(BaseRenderer):
    family = RenderFamily.PANDOC

    async def render(self, content, descriptor, title, output_path) -> list[str]:
        return await asyncio.to_thread(self._render_sync, content, descriptor, title, output_path)

    def _render_sync(
        self, content: str, descriptor: FormatDescriptor, title: str, output_path: Path
    ) -> list[str]:
        import pypandoc

        source_format = "html" if looks_like_html(content) else MARKDOWN_INPUT
        extra_args = list(descriptor.pandoc_args)
        if descriptor.id == "pdf":
            extra_args.append(f"--pdf-engine={get_settings().PDF_ENGINE}")
        if title:
            extra_args.extend(["--metadata", f"pagetitle={title}"])

        pypandoc.convert_text(
            content,
            to=descriptor.pandoc_writer,
            format=source_format,
            outputfile=str(output_path),
            extra_args=extra_args,
        )

        notes: list[str] = []
        if descriptor.id in DEGRADED_WRITERS:
            note = (
                f"{descriptor.display_label} was written with the {descriptor.pandoc_writer.upper()} "
                "layout; open and re-save it in your office suite for full compatibility."
            )
            logger.info(note)
            notes.append(note)
        return notes


RendererRegistry.register(PandocRenderer())
