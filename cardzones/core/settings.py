"""Canvas constants and editor configuration."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, fields, replace
from typing import Dict, Optional

from .paths import DEFAULT_SETTINGS_PATH

logger = logging.getLogger(__name__)

CARD_WIDTH = 340
CARD_HEIGHT = 214
GRID_SIZE = 8
MIN_ZONE_SIZE = 5.0
SCALE_MIN = 0.5
SCALE_MAX = 2.0

# layout "meta" keys -> CanvasSettings fields
_META_ALIASES = {
    "width": "card_width",
    "height": "card_height",
    "grid": "grid_size",
    "min_zone": "min_zone_size",
}


@dataclass(frozen=True)
class CanvasSettings:
    card_width: int = CARD_WIDTH
    card_height: int = CARD_HEIGHT
    grid_size: int = GRID_SIZE
    min_zone_size: float = MIN_ZONE_SIZE
    scale_min: float = SCALE_MIN
    scale_max: float = SCALE_MAX

    # editing surface
    editor_scale: float = 1.5
    handle_size: int = 10

    # text layout
    base_font_size: float = 14.0
    min_font_size: float = 8.0
    zone_padding: float = 4.0

    # raster output
    background: str = "#1E3A5F"
    text_color: str = "#FFFFFF"

    def __post_init__(self):
        if self.card_width <= 0 or self.card_height <= 0:
            raise ValueError("Card dimensions must be positive")
        if self.grid_size <= 0:
            raise ValueError(f"Grid size must be positive, got {self.grid_size}")
        if not 0 < self.min_zone_size <= 100:
            raise ValueError(f"Minimum zone size out of range: {self.min_zone_size}")
        if not 0 < self.scale_min <= self.scale_max:
            raise ValueError(f"Invalid scale bounds: [{self.scale_min}, {self.scale_max}]")

    @property
    def editor_width(self) -> float:
        return self.card_width * self.editor_scale

    @property
    def editor_height(self) -> float:
        return self.card_height * self.editor_scale

    @property
    def grid_step(self) -> float:
        return 100.0 / self.grid_size

    def with_overrides(self, **changes) -> "CanvasSettings":
        return replace(self, **changes)

    @classmethod
    def from_dict(cls, meta: Optional[Dict]) -> "CanvasSettings":
        """Build settings from a layout ``meta`` block, ignoring unknown keys."""
        if not meta:
            return cls()
        known = {f.name for f in fields(cls)}
        values = {}
        for key, value in meta.items():
            name = _META_ALIASES.get(key, key)
            if name in known:
                values[name] = value
        return cls(**values)

    def to_dict(self) -> Dict:
        return asdict(self)


def load_settings(path: Optional[str] = None) -> CanvasSettings:
    """Read settings from JSON. A missing file yields the defaults."""
    path = path or DEFAULT_SETTINGS_PATH
    if not os.path.exists(path):
        logger.debug("No canvas settings at %s, using defaults", path)
        return CanvasSettings()

    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    return CanvasSettings.from_dict(data.get("meta", data))


DEFAULT_SETTINGS = CanvasSettings()
