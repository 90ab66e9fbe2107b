import glob
import logging
import os
from typing import Dict, Optional

from PIL import Image, ImageDraw, ImageFont

from .compositor import (
    KIND_IMAGE,
    KIND_PLACEHOLDER,
    KIND_TEXT,
    ZONES,
    Box,
    ComposedFace,
    ComposedZone,
)
from .image_loader import ImageLoader
from .models import zone_color
from .paths import FONTS_DIR
from .settings import DEFAULT_SETTINGS, CanvasSettings

logger = logging.getLogger(__name__)

LINE_HEIGHT = 1.2
PLACEHOLDER_FONT_SIZE = 10


def default_font_path() -> Optional[str]:
    """First TrueType font shipped in ``assets/fonts``, if any."""
    fonts = sorted(glob.glob(os.path.join(FONTS_DIR, "*.ttf")))
    return fonts[0] if fonts else None


class PillowTextMeasurer:
    """
    Measures and supplies fonts through Pillow.
    Callable as ``measurer(text, font_size)`` so it plugs into the auto-fit code.
    """

    def __init__(self, font_path: Optional[str] = None):
        self.font_path = font_path
        self._fonts: Dict[float, ImageFont.ImageFont] = {}

    def font(self, size: float):
        size = max(1.0, round(size * 2) / 2)
        font = self._fonts.get(size)
        if font is None:
            if self.font_path:
                font = ImageFont.truetype(self.font_path, size)
            else:
                font = ImageFont.load_default(size)
            self._fonts[size] = font
        return font

    def measure(self, text: str, font_size: float) -> float:
        return self.font(font_size).getlength(text)

    def __call__(self, text: str, font_size: float) -> float:
        return self.measure(text, font_size)


class CardRenderer:
    """
    Rasterises a ComposedFace.
    Zones are drawn onto their own layer, so text and images never leave the zone.
    """

    def __init__(
        self,
        settings: CanvasSettings = DEFAULT_SETTINGS,
        measurer: Optional[PillowTextMeasurer] = None,
        image_loader: Optional[ImageLoader] = None,
        pixel_scale: float = 1.0,
    ):
        if pixel_scale <= 0:
            raise ValueError(f"Pixel scale must be positive, got {pixel_scale}")
        self.settings = settings
        self.measurer = measurer or PillowTextMeasurer(default_font_path())
        self.image_loader = image_loader or ImageLoader()
        self.pixel_scale = pixel_scale

    # -------------------------------------------------
    # main render
    # -------------------------------------------------
    def render(self, composed: ComposedFace) -> Image.Image:
        W = max(1, round(composed.width * self.pixel_scale))
        H = max(1, round(composed.height * self.pixel_scale))
        card = Image.new("RGBA", (W, H), self.settings.background)

        for index, zone in enumerate(composed.zones):
            if not zone.visible:
                continue
            x, y, w, h = self._get_area(zone.box)
            if w <= 0 or h <= 0:
                continue

            layer = Image.new("RGBA", (w, h), (0, 0, 0, 0))
            if zone.kind == KIND_TEXT:
                self._draw_text(layer, zone)
            elif zone.kind == KIND_IMAGE:
                self._draw_image(layer, zone)
            elif zone.kind == KIND_PLACEHOLDER:
                self._draw_placeholder(layer, zone, zone_color(index))
            card.alpha_composite(layer, (x, y))

            if composed.mode == ZONES and zone.kind != KIND_PLACEHOLDER:
                ImageDraw.Draw(card).rectangle(
                    (x, y, x + w - 1, y + h - 1), outline=zone_color(index), width=1
                )

        return card

    def render_card(self, faces: Dict[str, ComposedFace]) -> Dict[str, Image.Image]:
        return {face: self.render(composed) for face, composed in faces.items()}

    # -------------------------------------------------
    # zone content
    # -------------------------------------------------
    def _draw_text(self, layer: Image.Image, zone: ComposedZone):
        s = self.pixel_scale
        padding = self.settings.zone_padding * s
        font = self.measurer.font(zone.font_size * s)
        draw = ImageDraw.Draw(layer)

        inner_w = layer.width - 2 * padding
        inner_h = layer.height - 2 * padding
        line_h = zone.font_size * s * LINE_HEIGHT
        total_h = line_h * len(zone.lines)

        fy = {"top": 0.0, "middle": 0.5, "bottom": 1.0}[zone.vertical_alignment]
        fx = {"left": 0.0, "center": 0.5, "right": 1.0}[zone.alignment]
        top = padding + (inner_h - total_h) * fy

        for i, line in enumerate(zone.lines):
            width = font.getlength(line)
            left = padding + (inner_w - width) * fx
            draw.text((left, top + i * line_h), line, font=font, fill=self.settings.text_color)

    def _draw_image(self, layer: Image.Image, zone: ComposedZone):
        image_box = zone.image_box or zone.box
        _, _, w, h = self._get_area(image_box)
        img = self.image_loader.load_contained(zone.image_url, w, h)
        if img is None:
            return

        # contain-fit inside the scaled box, then position per alignment
        fx = {"left": 0.0, "center": 0.5, "right": 1.0}[zone.alignment]
        fy = {"top": 0.0, "middle": 0.5, "bottom": 1.0}[zone.vertical_alignment]
        s = self.pixel_scale
        dx = round((image_box.x - zone.box.x) * s + (w - img.width) * fx)
        dy = round((image_box.y - zone.box.y) * s + (h - img.height) * fy)
        layer.paste(img, (dx, dy), img)

    def _draw_placeholder(self, layer: Image.Image, zone: ComposedZone, color: str):
        draw = ImageDraw.Draw(layer)
        draw.rectangle((0, 0, layer.width - 1, layer.height - 1), outline=color, width=max(1, round(self.pixel_scale)))
        if not zone.text:
            return
        font = self.measurer.font(PLACEHOLDER_FONT_SIZE * self.pixel_scale)
        width = font.getlength(zone.text)
        height = PLACEHOLDER_FONT_SIZE * self.pixel_scale
        draw.text(((layer.width - width) / 2, (layer.height - height) / 2), zone.text, font=font, fill=color)

    # -------------------------------------------------
    # helper: box in output pixels
    # -------------------------------------------------
    def _get_area(self, box: Box):
        s = self.pixel_scale
        x = round(box.x * s)
        y = round(box.y * s)
        return (x, y, round(box.right * s) - x, round(box.bottom * s) - y)
