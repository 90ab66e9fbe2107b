"""
Composition of a template face into positioned, resolved zones.

The result is a plain visual tree in card pixels (``card_width`` by
``card_height``) that any surface can paint: the Pillow renderer, the Qt
canvas or a test.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .autofit import AutoFitText, Measure, average_char_width_measure, wrap_lines
from .bindings import BindingResolver
from .geometry import clamp, to_pixels
from .models import IMAGE, DynamicCardElement, Zone, check_face
from .settings import CanvasSettings
from .template_store import TemplateSession

logger = logging.getLogger(__name__)

CLEAN = "clean"
LABELS = "labels"
ZONES = "zones"
VISIBILITY_MODES = (CLEAN, LABELS, ZONES)

KIND_TEXT = "text"
KIND_IMAGE = "image"
KIND_PLACEHOLDER = "placeholder"
KIND_EMPTY = "empty"

# box-alignment keywords per binding alignment
JUSTIFY_CONTENT = {"left": "flex-start", "center": "center", "right": "flex-end"}
ALIGN_ITEMS = {"top": "flex-start", "middle": "center", "bottom": "flex-end"}
_FRACTION_X = {"left": 0.0, "center": 0.5, "right": 1.0}
_FRACTION_Y = {"top": 0.0, "middle": 0.5, "bottom": 1.0}
_ORIGIN_Y = {"top": "top", "middle": "center", "bottom": "bottom"}


@dataclass(frozen=True)
class Box:
    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    def inset(self, amount: float) -> "Box":
        width = max(0.0, self.width - 2 * amount)
        height = max(0.0, self.height - 2 * amount)
        return Box(self.x + amount, self.y + amount, width, height)

    def contains(self, x: float, y: float) -> bool:
        return self.x <= x <= self.right and self.y <= y <= self.bottom


def align_box(container: Box, width: float, height: float, alignment: str, vertical_alignment: str) -> Box:
    """Place a ``width`` x ``height`` box inside ``container`` per the 3x3 alignment grid."""
    fx = _FRACTION_X[alignment]
    fy = _FRACTION_Y[vertical_alignment]
    return Box(
        container.x + (container.width - width) * fx,
        container.y + (container.height - height) * fy,
        width,
        height,
    )


def transform_origin(alignment: str, vertical_alignment: str) -> str:
    return f"{alignment} {_ORIGIN_Y[vertical_alignment]}"


@dataclass
class ComposedZone:
    zone_id: str
    name: str
    box: Box
    content_type: str
    kind: str
    alignment: str = "center"
    vertical_alignment: str = "middle"
    scale: float = 1.0
    text: Optional[str] = None
    font_size: Optional[float] = None
    wrap: bool = False
    lines: List[str] = field(default_factory=list)
    image_url: Optional[str] = None
    image_box: Optional[Box] = None
    pending: bool = False
    hit_region: Optional[Box] = None

    @property
    def visible(self) -> bool:
        return self.kind != KIND_EMPTY

    @property
    def justify_content(self) -> str:
        return JUSTIFY_CONTENT[self.alignment]

    @property
    def align_items(self) -> str:
        return ALIGN_ITEMS[self.vertical_alignment]

    @property
    def text_align(self) -> str:
        return self.alignment

    @property
    def transform_origin(self) -> str:
        return transform_origin(self.alignment, self.vertical_alignment)


@dataclass
class ComposedFace:
    face: str
    width: float
    height: float
    mode: str
    zones: List[ComposedZone] = field(default_factory=list)

    def zone(self, zone_id: str) -> Optional[ComposedZone]:
        for zone in self.zones:
            if zone.zone_id == zone_id:
                return zone
        return None

    @property
    def hit_regions(self) -> List[Tuple[str, Box]]:
        return [(z.zone_id, z.hit_region) for z in self.zones if z.hit_region is not None]


@dataclass(frozen=True)
class PendingReset:
    face: str
    zone_id: str


class CardCompositor:
    def __init__(
        self,
        session: TemplateSession,
        resolver: Optional[BindingResolver] = None,
        measure: Optional[Measure] = None,
        settings: Optional[CanvasSettings] = None,
    ):
        self.session = session
        self.resolver = resolver or BindingResolver()
        self.measure = measure or average_char_width_measure()
        self.settings = settings or session.settings
        self.pending_reset: Optional[PendingReset] = None
        self._fitters: Dict[Tuple[str, str], AutoFitText] = {}

    def set_measure(self, measure: Measure):
        """Swap the text measurer; fitted sizes from the old one are dropped."""
        self.measure = measure
        self._fitters.clear()

    # ─────────────────────────────────────────────
    # composition
    # ─────────────────────────────────────────────
    def compose_face(self, face: str, mode: str = LABELS) -> ComposedFace:
        if mode not in VISIBILITY_MODES:
            raise ValueError(f"Unknown visibility mode: {mode!r}")
        composed = ComposedFace(
            face=check_face(face),
            width=self.settings.card_width,
            height=self.settings.card_height,
            mode=mode,
        )
        for zone in self.session.zones(face):
            composed.zones.append(self._compose_zone(face, zone, mode))
        return composed

    def compose_card(self, mode: str = LABELS) -> Dict[str, ComposedFace]:
        return {face: self.compose_face(face, mode) for face in self.session.template.active_faces()}

    async def compose_face_async(self, face: str, mode: str = LABELS) -> ComposedFace:
        """Wait for this face's asset queries, then compose."""
        await self.resolver.resolve_all(self._elements(face))
        return self.compose_face(face, mode)

    async def compose_card_async(self, mode: str = LABELS) -> Dict[str, ComposedFace]:
        elements = []
        for face in self.session.template.active_faces():
            elements.extend(self._elements(face))
        await self.resolver.resolve_all(elements)
        return self.compose_card(mode)

    def hit_test(self, composed: ComposedFace, x: float, y: float) -> Optional[str]:
        for zone_id, region in reversed(composed.hit_regions):
            if region.contains(x, y):
                return zone_id
        return None

    def _elements(self, face: str) -> List[DynamicCardElement]:
        return [self._element_for(zone) for zone in self.session.zones(face)]

    def _element_for(self, zone: Zone) -> DynamicCardElement:
        element = self.session.bindings.get(zone.id)
        if element is None:
            return DynamicCardElement.default(zone.id, zone.content_type)
        return element

    def _compose_zone(self, face: str, zone: Zone, mode: str) -> ComposedZone:
        element = self._element_for(zone)
        settings = self.settings
        box = Box(*to_pixels(zone.position, settings.card_width, settings.card_height))
        scale = clamp(element.scale, settings.scale_min, settings.scale_max)
        composed = ComposedZone(
            zone_id=zone.id,
            name=zone.name,
            box=box,
            content_type=element.content_type,
            kind=KIND_EMPTY,
            alignment=element.alignment,
            vertical_alignment=element.vertical_alignment,
            scale=scale,
            hit_region=box if mode == ZONES else None,
        )

        resolved = self.resolver.resolve(element)
        composed.pending = resolved.pending
        if resolved.is_empty:
            if mode in (LABELS, ZONES):
                composed.kind = KIND_PLACEHOLDER
                composed.text = zone.name
            return composed

        if element.content_type == IMAGE:
            composed.kind = KIND_IMAGE
            composed.image_url = resolved.value
            composed.image_box = align_box(
                box, box.width * scale, box.height * scale, element.alignment, element.vertical_alignment
            )
            return composed

        composed.kind = KIND_TEXT
        composed.text = resolved.value
        self._layout_text(face, composed, element)
        return composed

    def _layout_text(self, face: str, composed: ComposedZone, element: DynamicCardElement):
        settings = self.settings
        inner = composed.box.inset(settings.zone_padding)
        max_size = settings.base_font_size * composed.scale
        min_size = min(settings.min_font_size, max_size)

        fitter = self._fitters.get((face, composed.zone_id))
        if fitter is None:
            fitter = AutoFitText(self.measure)
            self._fitters[(face, composed.zone_id)] = fitter
        fit = fitter.fit(composed.text, max_size, min_size, inner.width, element.text_wrap)

        composed.font_size = fit.font_size
        composed.wrap = fit.wrap
        if fit.wrap:
            composed.lines = wrap_lines(composed.text, fit.font_size, inner.width, self.measure)
        else:
            composed.lines = [composed.text]

    # ─────────────────────────────────────────────
    # reset protocol
    # ─────────────────────────────────────────────
    def request_reset(self, face: str, zone_id: str) -> PendingReset:
        """Record which zone should be reset. Nothing changes until confirmed."""
        self.session.zone(face, zone_id)
        self.pending_reset = PendingReset(face, zone_id)
        return self.pending_reset

    def confirm_reset(self) -> Optional[DynamicCardElement]:
        pending = self.pending_reset
        if pending is None:
            return None
        self.pending_reset = None
        if self.session.find_zone(pending.face, pending.zone_id) is None:
            logger.warning("Zone %s vanished before reset was confirmed", pending.zone_id)
            return None
        element = self.session.bindings.reset(pending.zone_id)
        self.resolver.invalidate(pending.zone_id)
        self.session.dirty = True
        return element

    def cancel_reset(self):
        self.pending_reset = None
