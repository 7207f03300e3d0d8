"""Re-exporter: encode text content into any exportable format.

Usage:
    from app.core.renderers import render

    artifact = await render("# Plan\\n\\n- Step one", "pdf", title="Launch Plan")
"""

import asyncio
from pathlib import Path

from app.core.artifact_storage import (
    build_artifact,
    make_file_name,
    sanitize_title,
    staged_output,
    uploads_dir,
)
from app.core.export_errors import ExportPipelineError, RenderFailed
from app.core.formats import describe
from app.core.logging import get_logger
from app.core.renderers.base import BaseRenderer, RendererRegistry, run_to_completion
from app.core.schemas_export import ExportArtifact, FormatDescriptor, PreservationLevel

# Import renderers to register them
from app.core.renderers import archive_renderer  # noqa: F401
from app.core.renderers import envelope_renderer  # noqa: F401
from app.core.renderers import image_renderer  # noqa: F401
from app.core.renderers import markup_renderer  # noqa: F401
from app.core.renderers import pandoc_renderer  # noqa: F401
from app.core.renderers import spreadsheet_renderer  # noqa: F401

logger = get_logger(__name__)


def renderer_for(descriptor: FormatDescriptor) -> BaseRenderer:
    renderer = RendererRegistry.get_renderer(descriptor.render_family)
    if renderer is None:
        raise RenderFailed(descriptor.id, f"{descriptor.display_label} is not an export target")
    return renderer


async def render_to_path(
    content: str,
    descriptor: FormatDescriptor,
    title: str,
    final_path: Path,
) -> list[str]:
    """
    Encode ``content`` as ``descriptor`` at ``final_path``.

    The file appears only once complete. Cancellation lets an in-flight
    converter finish, discards its output and re-raises.

    Returns:
        Degraded-fidelity notes from the renderer

    Raises:
        RenderFailed: If the encoder fails (no file is left behind)
    """
    renderer = renderer_for(descriptor)
    try:
        with staged_output(final_path) as tmp_path:
            return await run_to_completion(renderer.render(content, descriptor, title, tmp_path))
    except (asyncio.CancelledError, ExportPipelineError):
        raise
    except Exception as e:
        logger.error(f"Render to {descriptor.id} failed: {e}", exc_info=True)
        raise RenderFailed(descriptor.id, str(e)) from e


async def render(content: str, target_format: str, title: str | None = None) -> ExportArtifact:
    """
    Render content to a new file in the uploads directory.

    Args:
        content: Markdown, plain text or HTML
        target_format: Registered format id (aliases accepted)
        title: Human title used for the file name and document metadata

    Returns:
        ExportArtifact. ``format`` is the format actually written, which
        differs from ``target_format`` when a fallback writer was used.

    Raises:
        UnknownFormat: If target_format is not registered
        RenderFailed: If the format is not an export target or encoding fails
    """
    requested = describe(target_format)
    renderer = renderer_for(requested)
    effective = renderer.effective_format(requested)

    notes: list[str] = []
    if effective.id != requested.id:
        notes.append(
            f"{requested.display_label} cannot be written here; exported as "
            f"{effective.display_label} instead."
        )
        logger.info(f"Export fallback {requested.id} -> {effective.id}")

    file_name = make_file_name(title, effective)
    final_path = uploads_dir() / file_name
    notes.extend(await render_to_path(content, effective, title or sanitize_title(None), final_path))

    preservation = PreservationLevel.PARTIAL if notes else PreservationLevel.FULL
    logger.info(f"Rendered {effective.id} -> {file_name}")
    return build_artifact(final_path, effective, preservation, notes)


__all__ = ["BaseRenderer", "RendererRegistry", "render", "render_to_path", "renderer_for"]
