"""Pure rectangle helpers over percent-based zone positions."""

from __future__ import annotations

import math
from typing import Iterable, Optional, Tuple

from .models import Zone, ZonePosition
from .settings import GRID_SIZE, MIN_ZONE_SIZE

# tolerance for float edges produced by grid arithmetic
EPSILON = 1e-9


def clamp(v, lo, hi):
    return max(lo, min(hi, v))


def overlaps(a: ZonePosition, b: ZonePosition) -> bool:
    """True when the rectangles share a positive area. Touching edges do not count."""
    return (
        a.x < b.right - EPSILON
        and b.x < a.right - EPSILON
        and a.y < b.bottom - EPSILON
        and b.y < a.bottom - EPSILON
    )


def overlaps_any(position: ZonePosition, zones: Iterable[Zone], exclude_id: Optional[str] = None) -> bool:
    return any(overlaps(position, z.position) for z in zones if z.id != exclude_id)


def snap(value: float, grid_size: int = GRID_SIZE) -> float:
    """Round a percentage to the nearest grid line (half rounds up)."""
    step = 100.0 / grid_size
    return math.floor(value / step + 0.5) * step


def clamp_to_canvas(position: ZonePosition) -> ZonePosition:
    """Clip a rectangle to the [0, 100] canvas instead of rejecting it."""
    x = clamp(position.x, 0.0, 100.0)
    y = clamp(position.y, 0.0, 100.0)
    width = clamp(position.width, 0.0, 100.0 - x)
    height = clamp(position.height, 0.0, 100.0 - y)
    return ZonePosition(x=x, y=y, width=width, height=height)


def meets_minimum(position: ZonePosition, min_size: float = MIN_ZONE_SIZE) -> bool:
    return position.width >= min_size - EPSILON and position.height >= min_size - EPSILON


def is_within_canvas(position: ZonePosition) -> bool:
    return (
        position.x >= -EPSILON
        and position.y >= -EPSILON
        and position.right <= 100.0 + EPSILON
        and position.bottom <= 100.0 + EPSILON
    )


def contains_point(position: ZonePosition, x: float, y: float) -> bool:
    """Point test in percent coordinates, edges included."""
    return position.x <= x <= position.right and position.y <= y <= position.bottom


# ─────────────────────────────────────────────
# pixel <-> percent
# ─────────────────────────────────────────────

def pixel_to_percent(px: float, extent: float) -> float:
    return (px / extent) * 100.0


def percent_to_pixel(percent: float, extent: float) -> float:
    return (percent / 100.0) * extent


def to_pixels(position: ZonePosition, width: float, height: float) -> Tuple[float, float, float, float]:
    return (
        percent_to_pixel(position.x, width),
        percent_to_pixel(position.y, height),
        percent_to_pixel(position.width, width),
        percent_to_pixel(position.height, height),
    )
