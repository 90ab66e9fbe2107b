"""Editing-session state: the template being edited and its zone bindings."""

from __future__ import annotations

import logging
import uuid
from typing import List, Optional

from .element_bindings import ElementBindings
from .geometry import is_within_canvas, meets_minimum, overlaps_any
from .models import (
    BACK,
    FRONT,
    TEXT,
    Zone,
    ZonePosition,
    ZoneTemplate,
    check_content_type,
    check_face,
)
from .settings import DEFAULT_SETTINGS, CanvasSettings

logger = logging.getLogger(__name__)


def new_template(name: str = "", front_only: bool = False) -> ZoneTemplate:
    return ZoneTemplate(id=str(uuid.uuid4()), name=name, front_only=front_only)


class TemplateSession:
    """
    Plain owned state for one template being edited.

    Geometry mutations return ``True``/``False`` (or the new zone / ``None``)
    instead of raising: a rejected change leaves the previous, valid state
    untouched. Unknown faces raise ``ValueError``; unknown zone ids on
    lookups raise ``KeyError``.
    """

    def __init__(
        self,
        template: Optional[ZoneTemplate] = None,
        bindings: Optional[ElementBindings] = None,
        settings: CanvasSettings = DEFAULT_SETTINGS,
    ):
        self.settings = settings
        self.template = template or new_template()
        self.bindings = bindings or ElementBindings(settings)
        self.dirty = False
        for face in FRONT, BACK:
            for zone in self.template.face(face):
                self.bindings.ensure(zone.id, zone.content_type)

    # ─────────────────────────────────────────────
    # queries
    # ─────────────────────────────────────────────
    def zones(self, face: str) -> List[Zone]:
        return list(self.template.face(face).zones)

    def zone(self, face: str, zone_id: str) -> Zone:
        zone = self.template.face(face).zone(zone_id)
        if zone is None:
            raise KeyError(f"No zone {zone_id!r} on {face}")
        return zone

    def find_zone(self, face: str, zone_id: Optional[str]) -> Optional[Zone]:
        if zone_id is None:
            return None
        return self.template.face(face).zone(zone_id)

    def can_place(self, face: str, position: ZonePosition, exclude_id: Optional[str] = None) -> bool:
        return (
            is_within_canvas(position)
            and meets_minimum(position, self.settings.min_zone_size)
            and not overlaps_any(position, self.template.face(face), exclude_id)
        )

    # ─────────────────────────────────────────────
    # zone mutations
    # ─────────────────────────────────────────────
    def add_zone(
        self,
        face: str,
        position: ZonePosition,
        name: Optional[str] = None,
        content_type: str = TEXT,
        zone_id: Optional[str] = None,
    ) -> Optional[Zone]:
        check_content_type(content_type)
        if not self.can_place(face, position):
            logger.debug("Rejected new zone on %s at %s", face, position)
            return None

        zones = self.template.face(face).zones
        zone = Zone(
            id=zone_id or str(uuid.uuid4()),
            name=name or f"Zone {len(zones) + 1}",
            position=position,
            content_type=content_type,
        )
        zones.append(zone)
        self.bindings.ensure(zone.id, content_type)
        self.dirty = True
        logger.info("Created %s on %s at %s", zone.name, face, position)
        return zone

    def set_zone_position(self, face: str, zone_id: str, position: ZonePosition) -> bool:
        zone = self.zone(face, zone_id)
        if not self.can_place(face, position, exclude_id=zone_id):
            return False
        zone.position = position
        self.dirty = True
        return True

    def rename_zone(self, face: str, zone_id: str, name: str) -> bool:
        zone = self.find_zone(face, zone_id)
        if zone is None:
            return False
        zone.name = name
        self.dirty = True
        return True

    def set_zone_content_type(self, face: str, zone_id: str, content_type: str) -> bool:
        zone = self.find_zone(face, zone_id)
        if zone is None:
            return False
        check_content_type(content_type)
        zone.content_type = content_type
        self.bindings.ensure(zone_id, content_type)
        self.bindings.set_content_type(zone_id, content_type)
        self.dirty = True
        return True

    def delete_zone(self, face: str, zone_id: str) -> bool:
        zones = self.template.face(face).zones
        idx = self.template.face(face).index_of(zone_id)
        if idx < 0:
            return False
        removed = zones.pop(idx)
        other = BACK if check_face(face) == FRONT else FRONT
        # copied faces share zone ids and therefore bindings
        if self.template.face(other).zone(zone_id) is None:
            self.bindings.remove(zone_id)
        self.dirty = True
        logger.info("Deleted %s from %s", removed.name, face)
        return True

    # ─────────────────────────────────────────────
    # face operations
    # ─────────────────────────────────────────────
    def copy_front_to_back(self):
        self._copy_face(FRONT, BACK)

    def copy_back_to_front(self):
        self._copy_face(BACK, FRONT)

    def _copy_face(self, source: str, destination: str):
        src = self.template.face(source)
        dst = self.template.face(destination)
        replaced = {z.id for z in dst} - {z.id for z in src}
        dst.zones = src.clone().zones
        for zone_id in replaced:
            self.bindings.remove(zone_id)
        for zone in dst:
            self.bindings.ensure(zone.id, zone.content_type)
        self.dirty = True
        logger.info("Copied %d zones from %s to %s", len(dst), source, destination)

    # ─────────────────────────────────────────────
    # template attributes
    # ─────────────────────────────────────────────
    def set_name(self, name: str):
        self.template.name = name
        self.dirty = True

    def set_front_only(self, front_only: bool):
        self.template.front_only = bool(front_only)
        self.dirty = True

    def mark_saved(self):
        self.dirty = False
