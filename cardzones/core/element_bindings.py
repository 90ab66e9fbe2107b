"""Zone bindings keyed by zone id, with mutually exclusive sources."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, Iterator, List, Optional

from .models import (
    H_ALIGNMENTS,
    IMAGE,
    TEXT,
    V_ALIGNMENTS,
    AssetCriteria,
    DynamicCardElement,
    check_content_type,
)
from .settings import DEFAULT_SETTINGS, CanvasSettings

logger = logging.getLogger(__name__)


class ElementBindings:
    """
    Owns the DynamicCardElement of every zone.

    Every setter that activates a source clears the competing one in the
    same call, so a text binding never holds both ``claim_path`` and
    ``static_value`` and an image binding never holds both ``logo_uri``
    and ``asset_criteria``.
    """

    def __init__(self, settings: CanvasSettings = DEFAULT_SETTINGS):
        self.settings = settings
        self._elements: Dict[str, DynamicCardElement] = {}

    # ─────────────────────────────────────────────
    # lookup
    # ─────────────────────────────────────────────
    def element(self, zone_id: str) -> DynamicCardElement:
        try:
            return self._elements[zone_id]
        except KeyError:
            raise KeyError(f"No binding for zone {zone_id!r}") from None

    def get(self, zone_id: str) -> Optional[DynamicCardElement]:
        return self._elements.get(zone_id)

    def ensure(self, zone_id: str, content_type: str = TEXT) -> DynamicCardElement:
        if zone_id not in self._elements:
            self._elements[zone_id] = DynamicCardElement.default(zone_id, content_type)
        return self._elements[zone_id]

    def remove(self, zone_id: str) -> bool:
        return self._elements.pop(zone_id, None) is not None

    def load(self, elements: Iterable[DynamicCardElement]):
        self._elements = {e.zone_id: e for e in elements}

    def elements(self) -> List[DynamicCardElement]:
        return list(self._elements.values())

    def __contains__(self, zone_id) -> bool:
        return zone_id in self._elements

    def __iter__(self) -> Iterator[DynamicCardElement]:
        return iter(self._elements.values())

    def __len__(self) -> int:
        return len(self._elements)

    # ─────────────────────────────────────────────
    # source mutations
    # ─────────────────────────────────────────────
    def set_content_type(self, zone_id: str, content_type: str) -> DynamicCardElement:
        element = self.element(zone_id)
        check_content_type(content_type)
        if element.content_type != content_type:
            element.content_type = content_type
            element.claim_path = None
            element.static_value = None
            element.label = None
            element.logo_uri = None
            element.asset_criteria = None
        return element

    def set_claim_path(self, zone_id: str, claim_path: Optional[str]) -> DynamicCardElement:
        element = self._require(zone_id, TEXT)
        element.claim_path = claim_path or None
        element.static_value = None
        return element

    def set_static_value(self, zone_id: str, value: Optional[str]) -> DynamicCardElement:
        element = self._require(zone_id, TEXT)
        element.static_value = value
        element.claim_path = None
        element.label = None
        return element

    def set_label(self, zone_id: str, label: Optional[str]) -> DynamicCardElement:
        element = self._require(zone_id, TEXT)
        element.label = label or None
        return element

    def set_logo_uri(self, zone_id: str, uri: Optional[str]) -> DynamicCardElement:
        element = self._require(zone_id, IMAGE)
        element.logo_uri = uri or None
        element.asset_criteria = None
        return element

    def set_asset_criteria(self, zone_id: str, criteria: Optional[AssetCriteria]) -> DynamicCardElement:
        element = self._require(zone_id, IMAGE)
        element.asset_criteria = criteria
        element.logo_uri = None
        return element

    # ─────────────────────────────────────────────
    # presentation mutations
    # ─────────────────────────────────────────────
    def set_alignment(self, zone_id: str, alignment: str) -> DynamicCardElement:
        if alignment not in H_ALIGNMENTS:
            raise ValueError(f"Unknown alignment: {alignment!r}")
        element = self.element(zone_id)
        element.alignment = alignment
        return element

    def set_vertical_alignment(self, zone_id: str, alignment: str) -> DynamicCardElement:
        if alignment not in V_ALIGNMENTS:
            raise ValueError(f"Unknown vertical alignment: {alignment!r}")
        element = self.element(zone_id)
        element.vertical_alignment = alignment
        return element

    def set_scale(self, zone_id: str, scale: float) -> DynamicCardElement:
        if not self.settings.scale_min <= scale <= self.settings.scale_max:
            raise ValueError(
                f"Scale {scale} outside [{self.settings.scale_min}, {self.settings.scale_max}]"
            )
        element = self.element(zone_id)
        element.scale = float(scale)
        return element

    def set_text_wrap(self, zone_id: str, wrap: bool) -> DynamicCardElement:
        element = self.element(zone_id)
        element.text_wrap = bool(wrap)
        return element

    # ─────────────────────────────────────────────
    def reset(self, zone_id: str) -> DynamicCardElement:
        """Overwrite a binding with the all-default text binding."""
        if zone_id not in self._elements:
            raise KeyError(f"No binding for zone {zone_id!r}")
        element = DynamicCardElement.default(zone_id)
        self._elements[zone_id] = element
        logger.info("Binding for zone %s reset to defaults", zone_id)
        return element

    def _require(self, zone_id: str, content_type: str) -> DynamicCardElement:
        element = self.element(zone_id)
        if element.content_type != content_type:
            raise ValueError(
                f"Zone {zone_id!r} is bound as {element.content_type}, not {content_type}"
            )
        return element
