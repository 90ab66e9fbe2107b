"""
Gesture state machine for creating, moving and resizing zones.

Pointer coordinates are pixels on the editing canvas
(``card_width * editor_scale`` by ``card_height * editor_scale``); every
candidate geometry is converted to percent, snapped and clamped, then
checked against the other zones of the active face before it is applied.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from .geometry import (
    clamp_to_canvas,
    meets_minimum,
    overlaps_any,
    pixel_to_percent,
    snap,
    to_pixels,
)
from .models import FRONT, Zone, ZonePosition, check_face
from .settings import CanvasSettings
from .template_store import TemplateSession

logger = logging.getLogger(__name__)

Point = Tuple[float, float]

IDLE = "idle"
CREATING = "creating"
MOVING = "moving"
RESIZING = "resizing"

CREATE = "create"
MOVE = "move"
RESIZE = "resize"
GESTURES = (CREATE, MOVE, RESIZE)

HANDLES = ("n", "s", "e", "w", "ne", "nw", "se", "sw")

_STATE_BY_GESTURE = {CREATE: CREATING, MOVE: MOVING, RESIZE: RESIZING}


@dataclass
class DragState:
    gesture: str
    start_x: float
    start_y: float
    zone_id: Optional[str] = None
    initial_position: Optional[ZonePosition] = None
    handle: Optional[str] = None


class ZoneEditStateMachine:
    """One gesture at a time over the zones of the active face."""

    def __init__(
        self,
        session: TemplateSession,
        face: str = FRONT,
        settings: Optional[CanvasSettings] = None,
        canvas_size: Optional[Tuple[float, float]] = None,
    ):
        self.session = session
        self.settings = settings or session.settings
        if canvas_size is None:
            canvas_size = (self.settings.editor_width, self.settings.editor_height)
        self.canvas_width, self.canvas_height = canvas_size
        self.face = check_face(face)
        self.selected_zone_id: Optional[str] = None
        self.candidate: Optional[ZonePosition] = None
        self._drag: Optional[DragState] = None

    # ─────────────────────────────────────────────
    # state
    # ─────────────────────────────────────────────
    @property
    def state(self) -> str:
        if self._drag is None:
            return IDLE
        return _STATE_BY_GESTURE[self._drag.gesture]

    @property
    def handle(self) -> Optional[str]:
        return self._drag.handle if self._drag else None

    @property
    def is_active(self) -> bool:
        return self._drag is not None

    @property
    def candidate_overlaps(self) -> bool:
        if self.candidate is None:
            return False
        return overlaps_any(self.candidate, self.session.template.face(self.face))

    def set_face(self, face: str) -> bool:
        check_face(face)
        if self.is_active:
            return False
        self.face = face
        self.selected_zone_id = None
        return True

    def select(self, zone_id: Optional[str]) -> bool:
        if zone_id is not None and self.session.find_zone(self.face, zone_id) is None:
            return False
        self.selected_zone_id = zone_id
        return True

    # ─────────────────────────────────────────────
    # gesture protocol
    # ─────────────────────────────────────────────
    def begin(
        self,
        gesture: str,
        origin: Point,
        zone_id: Optional[str] = None,
        handle: Optional[str] = None,
    ) -> bool:
        if gesture not in GESTURES:
            raise ValueError(f"Unknown gesture: {gesture!r}")
        if gesture == RESIZE and handle not in HANDLES:
            raise ValueError(f"Unknown resize handle: {handle!r}")
        if self.is_active:
            return False

        x, y = origin
        if gesture == CREATE:
            self._drag = DragState(CREATE, x, y)
            self.selected_zone_id = None
            self.candidate = None
            return True

        zone = self.session.find_zone(self.face, zone_id)
        if zone is None:
            return False
        self._drag = DragState(
            gesture,
            x,
            y,
            zone_id=zone.id,
            initial_position=zone.position,
            handle=handle if gesture == RESIZE else None,
        )
        self.selected_zone_id = zone.id
        return True

    def update(self, pointer: Point) -> bool:
        """Process one pointer move. Returns True when something visible changed."""
        drag = self._drag
        if drag is None:
            return False
        if drag.gesture == CREATE:
            return self._update_create(drag, pointer)
        zone = self.session.find_zone(self.face, drag.zone_id)
        if zone is None:
            return False
        if drag.gesture == MOVE:
            candidate = self._move_candidate(drag, zone, pointer)
        else:
            candidate = self._resize_candidate(drag, pointer)
        if candidate == zone.position:
            return False
        applied = self.session.set_zone_position(self.face, zone.id, candidate)
        if not applied:
            logger.debug("Rejected %s frame for %s at %s", drag.gesture, zone.name, candidate)
        return applied

    def end(self) -> Optional[Zone]:
        """Finish the gesture. Returns the created zone for a committed create."""
        drag = self._drag
        if drag is None:
            return None
        self._drag = None
        created = None
        if drag.gesture == CREATE:
            candidate = self.candidate
            self.candidate = None
            if candidate is not None and meets_minimum(candidate, self.settings.min_zone_size):
                created = self.session.add_zone(self.face, candidate)
            if created is not None:
                self.selected_zone_id = created.id
        return created

    def cancel(self):
        """Abort the gesture, restoring a moved or resized zone to where it started."""
        drag = self._drag
        if drag is None:
            return
        self._drag = None
        self.candidate = None
        if drag.gesture != CREATE and drag.initial_position is not None:
            zone = self.session.find_zone(self.face, drag.zone_id)
            if zone is not None and zone.position != drag.initial_position:
                self.session.set_zone_position(self.face, zone.id, drag.initial_position)

    # ─────────────────────────────────────────────
    # pointer front-end
    # ─────────────────────────────────────────────
    def hit_test(self, point: Point) -> Tuple[Optional[str], Optional[str]]:
        """Return ``(zone_id, handle)`` under a canvas pixel, handles first."""
        px, py = point
        selected = self.session.find_zone(self.face, self.selected_zone_id)
        if selected is not None:
            half = self.settings.handle_size / 2.0
            for handle, (hx, hy) in self.handle_points(selected).items():
                if abs(px - hx) <= half and abs(py - hy) <= half:
                    return selected.id, handle

        for zone in reversed(self.session.zones(self.face)):
            x, y, w, h = to_pixels(zone.position, self.canvas_width, self.canvas_height)
            if x <= px <= x + w and y <= py <= y + h:
                return zone.id, None
        return None, None

    def pointer_down(self, point: Point) -> bool:
        if self.is_active:
            return False
        zone_id, handle = self.hit_test(point)
        if handle is not None:
            return self.begin(RESIZE, point, zone_id=zone_id, handle=handle)
        if zone_id is not None:
            return self.begin(MOVE, point, zone_id=zone_id)
        return self.begin(CREATE, point)

    def pointer_move(self, point: Point) -> bool:
        return self.update(point)

    def pointer_up(self) -> Optional[Zone]:
        return self.end()

    # ─────────────────────────────────────────────
    # candidates
    # ─────────────────────────────────────────────
    def _pct_x(self, px: float) -> float:
        return pixel_to_percent(px, self.canvas_width)

    def _pct_y(self, px: float) -> float:
        return pixel_to_percent(px, self.canvas_height)

    def _snap(self, value: float) -> float:
        return snap(value, self.settings.grid_size)

    def _update_create(self, drag: DragState, pointer: Point) -> bool:
        start_x, start_y = self._pct_x(drag.start_x), self._pct_y(drag.start_y)
        cur_x, cur_y = self._pct_x(pointer[0]), self._pct_y(pointer[1])

        x = self._snap(max(0.0, min(start_x, cur_x)))
        y = self._snap(max(0.0, min(start_y, cur_y)))
        width = self._snap(abs(cur_x - start_x))
        height = self._snap(abs(cur_y - start_y))

        candidate = clamp_to_canvas(ZonePosition(x, y, width, height))
        if candidate == self.candidate:
            return False
        self.candidate = candidate
        return True

    def _move_candidate(self, drag: DragState, zone: Zone, pointer: Point) -> ZonePosition:
        dx = self._pct_x(pointer[0] - drag.start_x)
        dy = self._pct_y(pointer[1] - drag.start_y)
        initial = drag.initial_position
        width, height = zone.position.width, zone.position.height

        new_x = self._edge_or_snap(initial.x + dx, width)
        new_y = self._edge_or_snap(initial.y + dy, height)
        return zone.position.moved_to(new_x, new_y)

    def _edge_or_snap(self, start: float, extent: float) -> float:
        # the canvas edge wins over the grid
        if start < 0:
            return 0.0
        if start + extent > 100:
            return 100.0 - extent
        snapped = self._snap(start)
        if snapped + extent > 100:
            return 100.0 - extent
        return snapped

    def _resize_candidate(self, drag: DragState, pointer: Point) -> ZonePosition:
        dx = self._pct_x(pointer[0] - drag.start_x)
        dy = self._pct_y(pointer[1] - drag.start_y)
        initial = drag.initial_position
        x, y, width, height = initial.x, initial.y, initial.width, initial.height
        handle = drag.handle
        min_size = self.settings.min_zone_size

        if "w" in handle:
            new_x = x + dx
            new_width = width - dx
            if new_x < 0:
                new_width = width + x
                new_x = 0.0
            else:
                new_x = self._snap(new_x)
                new_width = self._snap(new_width)
            if new_width >= min_size:
                x, width = new_x, new_width

        if "e" in handle:
            new_width = width + dx
            if x + new_width > 100:
                new_width = 100.0 - x
            else:
                new_width = min(self._snap(new_width), 100.0 - x)
            if new_width >= min_size:
                width = new_width

        if "n" in handle:
            new_y = y + dy
            new_height = height - dy
            if new_y < 0:
                new_height = height + y
                new_y = 0.0
            else:
                new_y = self._snap(new_y)
                new_height = self._snap(new_height)
            if new_height >= min_size:
                y, height = new_y, new_height

        if "s" in handle:
            new_height = height + dy
            if y + new_height > 100:
                new_height = 100.0 - y
            else:
                new_height = min(self._snap(new_height), 100.0 - y)
            if new_height >= min_size:
                height = new_height

        return ZonePosition(x, y, width, height)

    def handle_points(self, zone: Zone):
        x, y, w, h = to_pixels(zone.position, self.canvas_width, self.canvas_height)
        cx, cy = x + w / 2.0, y + h / 2.0
        return {
            "nw": (x, y),
            "ne": (x + w, y),
            "sw": (x, y + h),
            "se": (x + w, y + h),
            "n": (cx, y),
            "s": (cx, y + h),
            "w": (x, cy),
            "e": (x + w, cy),
        }
