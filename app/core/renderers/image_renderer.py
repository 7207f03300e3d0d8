"""Image renderer: HTML page screenshotted by headless Chromium (Playwright).

Chromium writes png and jpeg natively; bmp, tiff and gif are rendered to
png first and transcoded with Pillow.
"""

import asyncio
import os
from pathlib import Path

from app.core.artifact_storage import discard
from app.core.config import get_settings
from app.core.logging import get_logger
from app.core.renderers.base import BaseRenderer, RendererRegistry
from app.core.renderers.html import html_document
from app.core.schemas_export import RenderFamily

logger = get_logger(__name__)

NATIVE_TYPES = {"png": "png", "jpg": "jpeg"}
PILLOW_FORMATS = {"bmp": "BMP", "tiff": "TIFF", "gif": "GIF"}


async def screenshot_html(html: str, output_path: Path, image_type: str) -> None:
    """Render an HTML string to a full-page screenshot."""
    from playwright.async_api import async_playwright

    settings = get_settings()
    async with async_playwright() as p:
        browser = await p.chromium.launch()
        try:
            page = await browser.new_page(
                viewport={"width": settings.IMAGE_RENDER_WIDTH, "height": 800}
            )
            await page.set_content(html, wait_until="load")
            options = {"path": str(output_path), "full_page": True, "type": image_type}
            if image_type == "jpeg":
                options["quality"] = 90
            await page.screenshot(**options)
        finally:
            await browser.close()


def transcode(source: Path, target: Path, pillow_format: str) -> None:
    from PIL import Image

    with Image.open(source) as img:
        if pillow_format == "BMP":
            img = img.convert("RGB")
        elif pillow_format == "GIF":
            img = img.convert("P", palette=Image.Palette.ADAPTIVE)
        img.save(target, format=pillow_format)


class ImageRenderer(BaseRenderer):
    family = RenderFamily.IMAGE

    async def render(self, content, descriptor, title, output_path) -> list[str]:
        page = html_document(content, title)

        if descriptor.id in NATIVE_TYPES:
            await screenshot_html(page, output_path, NATIVE_TYPES[descriptor.id])
            return []

        intermediate = output_path.with_name(output_path.name + ".render.png")
        try:
            await screenshot_html(page, intermediate, "png")
            try:
                await asyncio.to_thread(transcode, intermediate, output_path, PILLOW_FORMATS[descriptor.id])
            except (OSError, ValueError) as e:
                note = (
                    f"Could not convert the rendered image to {descriptor.display_label}; "
                    "the file contains PNG data."
                )
                logger.warning(f"{note} ({e})")
                os.replace(intermediate, output_path)
                return [note]
        finally:
            discard(intermediate)
        return []


RendererRegistry.register(ImageRenderer())
