"""Render a template session to PNG files (and optionally a PDF)."""

from __future__ import annotations

import logging
import os
import re
from typing import Dict, List, Optional, Set

from .compositor import CLEAN, CardCompositor
from .pdf_exporter import export_pdf_from_list
from .renderer import CardRenderer, PillowTextMeasurer

logger = logging.getLogger(__name__)


WINDOWS_FORBIDDEN = set('<>:"/\\|?*')


def slugify_card_name(name: str) -> str:
    """Return a filesystem-safe slug for the given template name."""

    if not name:
        return "card"

    slug = "".join("_" if ch in WINDOWS_FORBIDDEN else ch for ch in name)
    slug = re.sub(r"[^A-Za-z0-9._-]+", "_", slug)
    slug = re.sub(r"_+", "_", slug).strip("._- ")
    return slug.lower() or "card"


class CardExporter:
    def __init__(self, compositor: CardCompositor, renderer: Optional[CardRenderer] = None):
        self.compositor = compositor
        if renderer is None:
            measurer = compositor.measure if isinstance(compositor.measure, PillowTextMeasurer) else None
            renderer = CardRenderer(compositor.settings, measurer, pixel_scale=2.0)
        self.renderer = renderer
        # text must be fitted with the font it is drawn with
        if compositor.measure is not renderer.measurer:
            compositor.set_measure(renderer.measurer)

    def export_card(
        self,
        export_dir: str,
        mode: str = CLEAN,
        pdf_path: Optional[str] = None,
    ) -> Dict[str, str]:
        """Write one PNG per active face; returns face -> written path."""
        os.makedirs(export_dir, exist_ok=True)
        template = self.compositor.session.template
        safe_name = slugify_card_name(template.name)

        used_paths: Set[str] = set()
        written: Dict[str, str] = {}
        images: List = []
        for face, composed in self.compositor.compose_card(mode).items():
            image = self.renderer.render(composed)
            out_path = self._build_unique_path(export_dir, safe_name, face, used_paths)
            image.save(out_path, "PNG")
            written[face] = out_path
            images.append(image)
            logger.info("Exported %s face to %s", face, out_path)

        if pdf_path:
            export_pdf_from_list(images, pdf_path, self.compositor.settings)
        return written

    async def export_card_async(self, export_dir: str, mode: str = CLEAN, pdf_path: Optional[str] = None):
        """Settle pending asset queries first so criteria images are included."""
        await self.compositor.compose_card_async(mode)
        return self.export_card(export_dir, mode, pdf_path)

    # ------------------------------------------------------------------
    def _build_unique_path(
        self,
        export_dir: str,
        safe_name: str,
        suffix: Optional[str],
        used_paths: Set[str],
    ) -> str:
        stem = safe_name
        if suffix:
            stem = f"{safe_name}-{suffix}"

        candidate = stem
        counter = 1
        path = os.path.join(export_dir, f"{candidate}.png")
        while path in used_paths or os.path.exists(path):
            candidate = f"{stem}-{counter}"
            path = os.path.join(export_dir, f"{candidate}.png")
            counter += 1
        used_paths.add(path)
        return path
