"""Renderer interface and registry, keyed by render family."""

import asyncio
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Awaitable, Optional

from app.core.logging import get_logger
from app.core.schemas_export import FormatDescriptor, RenderFamily

logger = get_logger(__name__)


class BaseRenderer(ABC):
    """Encodes text content into one family of formats."""

    family: RenderFamily

    def effective_format(self, descriptor: FormatDescriptor) -> FormatDescriptor:
        """The format actually written (differs when a writer is unavailable)."""
        return descriptor

    @abstractmethod
    async def render(
        self,
        content: str,
        descriptor: FormatDescriptor,
        title: str,
        output_path: Path,
    ) -> list[str]:
        """Write ``content`` to ``output_path``; return degraded-fidelity notes."""


class RendererRegistry:
    """Registry mapping render families to renderers."""

    _renderers: dict[RenderFamily, BaseRenderer] = {}

    @classmethod
    def register(cls, renderer: BaseRenderer) -> None:
        cls._renderers[renderer.family] = renderer

    @classmethod
    def get_renderer(cls, family: RenderFamily) -> Optional[BaseRenderer]:
        return cls._renderers.get(family)


async def run_to_completion(awaitable: Awaitable[Any]) -> Any:
    """
    Await work that drives an external process, surviving cancellation.

    If the caller is cancelled, the process is allowed to finish (its result
    is discarded) before CancelledError propagates, so no half-written file
    is left behind by a killed converter.
    """
    task = asyncio.ensure_future(awaitable)
    try:
        return await asyncio.shield(task)
    except asyncio.CancelledError:
        try:
            await asyncio.shield(task)
        except Exception as e:
            logger.debug(f"Abandoned render finished with error: {e}")
        raise
