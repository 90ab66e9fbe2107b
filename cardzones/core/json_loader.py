import json
import logging
import os
import uuid
from typing import Dict, Iterable, List, Optional, Tuple

from .bindings import DYNAMIC_KEYS, TemplateMetadata, flatten_sample_data
from .geometry import is_within_canvas, meets_minimum, overlaps
from .models import BACK, FRONT, DynamicCardElement, ZoneTemplate
from .settings import DEFAULT_SETTINGS, CanvasSettings
from .template_store import TemplateSession

logger = logging.getLogger(__name__)


class TemplateFormatError(ValueError):
    pass


# ─────────────────────────────────────────────
# dict <-> model
# ─────────────────────────────────────────────

def migrate_legacy(data: Dict) -> Dict:
    """
    Turn the legacy shape ``{"zones": [...]}`` (zones optionally tagged with
    ``"face"``) into the front/back shape. Current keys win over legacy ones.
    """
    if "zones" not in data:
        return data

    if "front" in data or "back" in data:
        logger.warning("Template %s has both legacy 'zones' and front/back; ignoring 'zones'", data.get("id"))
        return {k: v for k, v in data.items() if k != "zones"}

    front, back = [], []
    for zone in data.get("zones") or []:
        zone = dict(zone)
        face = zone.pop("face", FRONT)
        (back if face == BACK else front).append(zone)

    migrated = {k: v for k, v in data.items() if k != "zones"}
    migrated.setdefault("id", str(uuid.uuid4()))
    migrated["front"] = {"zones": front}
    migrated["back"] = {"zones": back}
    logger.info("Migrated legacy template %s (%d front, %d back zones)", migrated["id"], len(front), len(back))
    return migrated


def template_from_dict(data: Dict) -> ZoneTemplate:
    if not isinstance(data, dict):
        raise TemplateFormatError("Template JSON must be an object")
    try:
        return ZoneTemplate.from_dict(migrate_legacy(data))
    except (KeyError, TypeError, ValueError) as e:
        raise TemplateFormatError(f"Invalid template: {e}") from e


def validate_template(template: ZoneTemplate, settings: CanvasSettings = DEFAULT_SETTINGS) -> List[str]:
    """Human readable geometry problems; an empty list means the template is valid."""
    problems = []
    for face in (FRONT, BACK):
        zones = template.face(face).zones
        for i, zone in enumerate(zones):
            if not is_within_canvas(zone.position):
                problems.append(f"{face}: {zone.name} leaves the canvas")
            if not meets_minimum(zone.position, settings.min_zone_size):
                problems.append(f"{face}: {zone.name} is below the minimum size")
            for other in zones[i + 1:]:
                if overlaps(zone.position, other.position):
                    problems.append(f"{face}: {zone.name} overlaps {other.name}")
    return problems


def import_template(text: str) -> ZoneTemplate:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise TemplateFormatError(f"Template is not valid JSON: {e}") from e
    return template_from_dict(data)


def export_template(template: ZoneTemplate) -> str:
    return json.dumps(template.to_dict(), indent=4, ensure_ascii=False)


def import_elements(text: str) -> List[DynamicCardElement]:
    try:
        data = json.loads(text)
        items = data["elements"] if isinstance(data, dict) else data
        return [DynamicCardElement.from_dict(item) for item in items]
    except json.JSONDecodeError as e:
        raise TemplateFormatError(f"Bindings are not valid JSON: {e}") from e
    except (KeyError, TypeError, ValueError) as e:
        raise TemplateFormatError(f"Invalid bindings: {e}") from e


def export_elements(elements: Iterable[DynamicCardElement]) -> str:
    return json.dumps({"elements": [e.to_dict() for e in elements]}, indent=4, ensure_ascii=False)


# ─────────────────────────────────────────────
# files
# ─────────────────────────────────────────────

def elements_path_for(template_path: str) -> str:
    """``card.json`` keeps its bindings next to it in ``card.bindings.json``."""
    stem, _ = os.path.splitext(template_path)
    return f"{stem}.bindings.json"


def load_sample_data(path: str) -> Tuple[Dict[str, str], TemplateMetadata]:
    """
    Read a sample credential for previews.

    An optional top-level ``metadata`` object fills the ``__dynamic:`` keys;
    everything else is flattened into claim path -> display string.
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"Sample data not found: {path}")
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise TemplateFormatError(f"Invalid sample data in {path}: {e}") from e
    if not isinstance(data, dict):
        raise TemplateFormatError(f"Sample data must be a JSON object: {path}")

    data = dict(data)
    meta = data.pop("metadata", None) or {}
    metadata = TemplateMetadata(**{key: meta[key] for key in DYNAMIC_KEYS if meta.get(key) is not None})
    flat = flatten_sample_data(data)
    logger.info("Loaded %d sample claims from %s", len(flat), path)
    return flat, metadata


class TemplateLoader:
    def __init__(self, template_path, elements_path=None, settings: CanvasSettings = DEFAULT_SETTINGS):
        self.template_path = template_path
        self.elements_path = elements_path or elements_path_for(template_path)
        self.settings = settings

    def load(self) -> ZoneTemplate:
        if not os.path.exists(self.template_path):
            raise FileNotFoundError(f"Zone template not found: {self.template_path}")

        with open(self.template_path, "r", encoding="utf-8") as f:
            template = import_template(f.read())

        for problem in validate_template(template, self.settings):
            logger.warning("%s: %s", self.template_path, problem)
        return template

    def load_elements(self) -> List[DynamicCardElement]:
        if not self.elements_path or not os.path.exists(self.elements_path):
            return []
        with open(self.elements_path, "r", encoding="utf-8") as f:
            return import_elements(f.read())

    def load_session(self) -> TemplateSession:
        session = TemplateSession(settings=self.settings, template=self.load())
        elements = self.load_elements()
        if elements:
            session.bindings.load(elements)
            # zones without a stored binding still get a default one
            for face in (FRONT, BACK):
                for zone in session.zones(face):
                    session.bindings.ensure(zone.id, zone.content_type)
        return session

    def save(self, template: ZoneTemplate, elements: Optional[Iterable[DynamicCardElement]] = None):
        folder = os.path.dirname(self.template_path)
        if folder:
            os.makedirs(folder, exist_ok=True)
        with open(self.template_path, "w", encoding="utf-8") as f:
            f.write(export_template(template))

        if elements is not None and self.elements_path:
            with open(self.elements_path, "w", encoding="utf-8") as f:
                f.write(export_elements(elements))
        logger.info("Saved template %s to %s", template.name or template.id, self.template_path)

    def save_session(self, session: TemplateSession):
        self.save(session.template, session.bindings.elements())
        session.mark_saved()
