"""Dataclasses that describe zone templates, zones and their bindings."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field, replace
from typing import Dict, Iterator, List, Optional

FRONT = "front"
BACK = "back"
FACES = (FRONT, BACK)

TEXT = "text"
IMAGE = "image"
CONTENT_TYPES = (TEXT, IMAGE)

H_ALIGNMENTS = ("left", "center", "right")
V_ALIGNMENTS = ("top", "middle", "bottom")


def check_face(face: str) -> str:
    if face not in FACES:
        raise ValueError(f"Unknown face: {face!r}")
    return face


def check_content_type(content_type: str) -> str:
    if content_type not in CONTENT_TYPES:
        raise ValueError(f"Unknown content type: {content_type!r}")
    return content_type


@dataclass(frozen=True)
class ZonePosition:
    """Rectangle in percent of the card canvas."""

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

    def moved_to(self, x: float, y: float) -> "ZonePosition":
        return replace(self, x=x, y=y)

    def to_dict(self) -> Dict:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}

    @classmethod
    def from_dict(cls, data: Dict) -> "ZonePosition":
        return cls(
            x=float(data["x"]),
            y=float(data["y"]),
            width=float(data["width"]),
            height=float(data["height"]),
        )


@dataclass
class Zone:
    id: str
    name: str
    position: ZonePosition
    content_type: str = TEXT

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "name": self.name,
            "position": self.position.to_dict(),
            "content_type": self.content_type,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "Zone":
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            position=ZonePosition.from_dict(data["position"]),
            content_type=check_content_type(data.get("content_type", TEXT)),
        )


@dataclass
class Face:
    zones: List[Zone] = field(default_factory=list)

    def zone(self, zone_id: str) -> Optional[Zone]:
        for zone in self.zones:
            if zone.id == zone_id:
                return zone
        return None

    def index_of(self, zone_id: str) -> int:
        for idx, zone in enumerate(self.zones):
            if zone.id == zone_id:
                return idx
        return -1

    def clone(self) -> "Face":
        return Face(zones=copy.deepcopy(self.zones))

    def __iter__(self) -> Iterator[Zone]:
        return iter(self.zones)

    def __len__(self) -> int:
        return len(self.zones)


@dataclass
class ZoneTemplate:
    id: str
    name: str
    front_only: bool = False
    front: Face = field(default_factory=Face)
    back: Face = field(default_factory=Face)

    def face(self, name: str) -> Face:
        return self.front if check_face(name) == FRONT else self.back

    def active_faces(self) -> List[str]:
        return [FRONT] if self.front_only else [FRONT, BACK]

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "name": self.name,
            "frontOnly": self.front_only,
            "front": {"zones": [z.to_dict() for z in self.front]},
            "back": {"zones": [z.to_dict() for z in self.back]},
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "ZoneTemplate":
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            front_only=bool(data.get("frontOnly", False)),
            front=Face([Zone.from_dict(z) for z in (data.get("front") or {}).get("zones", [])]),
            back=Face([Zone.from_dict(z) for z in (data.get("back") or {}).get("zones", [])]),
        )


@dataclass(frozen=True)
class AssetCriteria:
    entity_role: str
    asset_type: str
    data_provider_type: Optional[str] = None

    def to_dict(self) -> Dict:
        data = {"entityRole": self.entity_role, "assetType": self.asset_type}
        if self.data_provider_type is not None:
            data["dataProviderType"] = self.data_provider_type
        return data

    @classmethod
    def from_dict(cls, data: Dict) -> "AssetCriteria":
        return cls(
            entity_role=data["entityRole"],
            asset_type=data["assetType"],
            data_provider_type=data.get("dataProviderType"),
        )


@dataclass
class DynamicCardElement:
    """Binding of one zone to its displayed content."""

    zone_id: str
    content_type: str = TEXT
    claim_path: Optional[str] = None
    static_value: Optional[str] = None
    logo_uri: Optional[str] = None
    asset_criteria: Optional[AssetCriteria] = None
    label: Optional[str] = None
    alignment: str = "center"
    vertical_alignment: str = "middle"
    scale: float = 1.0
    text_wrap: bool = False

    @classmethod
    def default(cls, zone_id: str, content_type: str = TEXT) -> "DynamicCardElement":
        return cls(zone_id=zone_id, content_type=check_content_type(content_type))

    def to_dict(self) -> Dict:
        return {
            "zone_id": self.zone_id,
            "content_type": self.content_type,
            "claim_path": self.claim_path,
            "static_value": self.static_value,
            "logo_uri": self.logo_uri,
            "asset_criteria": self.asset_criteria.to_dict() if self.asset_criteria else None,
            "label": self.label,
            "alignment": self.alignment,
            "verticalAlignment": self.vertical_alignment,
            "scale": self.scale,
            "textWrap": self.text_wrap,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "DynamicCardElement":
        criteria = data.get("asset_criteria")
        alignment = data.get("alignment", "center")
        vertical = data.get("verticalAlignment", "middle")
        if alignment not in H_ALIGNMENTS:
            raise ValueError(f"Unknown alignment: {alignment!r}")
        if vertical not in V_ALIGNMENTS:
            raise ValueError(f"Unknown vertical alignment: {vertical!r}")
        return cls(
            zone_id=str(data["zone_id"]),
            content_type=check_content_type(data.get("content_type", TEXT)),
            claim_path=data.get("claim_path"),
            static_value=data.get("static_value"),
            logo_uri=data.get("logo_uri"),
            asset_criteria=AssetCriteria.from_dict(criteria) if criteria else None,
            label=data.get("label"),
            alignment=alignment,
            vertical_alignment=vertical,
            scale=float(data.get("scale", 1.0)),
            text_wrap=bool(data.get("textWrap", False)),
        )


ZONE_COLORS = (
    "#3B82F6",
    "#10B981",
    "#F59E0B",
    "#EF4444",
    "#8B5CF6",
    "#EC4899",
    "#14B8A6",
    "#F97316",
)


def zone_color(index: int) -> str:
    return ZONE_COLORS[index % len(ZONE_COLORS)]
