"""Turn zone bindings into displayable values."""

from __future__ import annotations

import asyncio
import inspect
import logging
import re
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, Iterable, Mapping, Optional, Tuple, Union

from .models import IMAGE, TEXT, AssetCriteria, DynamicCardElement

logger = logging.getLogger(__name__)

DYNAMIC_PREFIX = "__dynamic:"
DYNAMIC_KEYS = (
    "credential_name",
    "issuer_name",
    "issuer_logo",
    "issuance_date",
    "expiration_date",
)

AssetQuery = Callable[[AssetCriteria], Union[Awaitable[Optional[str]], Optional[str]]]

_INDEX_BRACKETS = re.compile(r"\[\d+\]")


# ─────────────────────────────────────────────
# claim paths and sample data
# ─────────────────────────────────────────────

def normalize_claim_path(path: str) -> str:
    """
    ``$.credentialSubject.addresses[0].city`` -> ``addresses.city``.
    Numeric index segments are dropped in both ``[0]`` and ``.0`` forms.
    """
    path = path.strip()
    if path.startswith("$."):
        path = path[2:]
    if path.startswith("credentialSubject."):
        path = path[len("credentialSubject."):]
    path = _INDEX_BRACKETS.sub("", path)
    return ".".join(part for part in path.split(".") if part and not part.isdigit())


def flatten_sample_data(data: Mapping, prefix: str = "") -> Dict[str, str]:
    """Flatten nested sample JSON into normalized claim path -> display string."""
    flat: Dict[str, str] = {}

    def walk(value, path):
        if isinstance(value, Mapping):
            for key, child in value.items():
                walk(child, f"{path}.{key}" if path else str(key))
        elif isinstance(value, (list, tuple)):
            for child in value:
                walk(child, path)
        elif value is not None:
            key = normalize_claim_path(path)
            # first array element wins for index-stripped paths
            flat.setdefault(key, value if isinstance(value, str) else str(value))

    walk(data, prefix)
    return flat


def is_dynamic(claim_path: Optional[str]) -> bool:
    return bool(claim_path) and claim_path.startswith(DYNAMIC_PREFIX)


@dataclass
class TemplateMetadata:
    credential_name: Optional[str] = None
    issuer_name: Optional[str] = None
    issuer_logo: Optional[str] = None
    issuance_date: Optional[str] = None
    expiration_date: Optional[str] = None

    def get(self, key: str) -> Optional[str]:
        if key not in DYNAMIC_KEYS:
            logger.warning("Unknown dynamic metadata key: %s", key)
            return None
        return getattr(self, key)


@dataclass
class ResolutionContext:
    sample_data: Mapping[str, str] = field(default_factory=dict)
    metadata: TemplateMetadata = field(default_factory=TemplateMetadata)
    asset_query: Optional[AssetQuery] = None


@dataclass(frozen=True)
class ResolvedValue:
    kind: str
    value: Optional[str] = None
    pending: bool = False

    @property
    def is_empty(self) -> bool:
        return self.value is None or self.value == ""


class AssetResolutionCache:
    """
    Zone id -> resolved asset URL (``None`` records a settled miss).

    Each entry remembers the criteria it was resolved for; a lookup with
    different criteria is a miss.
    """

    def __init__(self):
        self._values: Dict[str, Tuple[Optional[AssetCriteria], Optional[str]]] = {}

    def __contains__(self, zone_id) -> bool:
        return zone_id in self._values

    def has(self, zone_id: str, criteria: Optional[AssetCriteria]) -> bool:
        entry = self._values.get(zone_id)
        return entry is not None and entry[0] == criteria

    def get(self, zone_id: str) -> Optional[str]:
        entry = self._values.get(zone_id)
        return entry[1] if entry else None

    def store(self, zone_id: str, value: Optional[str], criteria: Optional[AssetCriteria] = None):
        self._values[zone_id] = (criteria, value)

    def invalidate(self, zone_id: str):
        self._values.pop(zone_id, None)

    def clear(self):
        self._values.clear()

    def snapshot(self) -> Dict[str, Optional[str]]:
        return {zone_id: value for zone_id, (_, value) in self._values.items()}


class BindingResolver:
    def __init__(self, context: Optional[ResolutionContext] = None, cache: Optional[AssetResolutionCache] = None):
        self.context = context or ResolutionContext()
        self.cache = cache if cache is not None else AssetResolutionCache()
        self._inflight: Dict[str, Tuple[AssetCriteria, asyncio.Task]] = {}

    # ─────────────────────────────────────────────
    # synchronous resolution
    # ─────────────────────────────────────────────
    def resolve(self, element: DynamicCardElement) -> ResolvedValue:
        if element.content_type == IMAGE:
            return self.resolve_image(element)
        return ResolvedValue(TEXT, self.resolve_text(element))

    def resolve_text(self, element: DynamicCardElement) -> Optional[str]:
        claim_path = element.claim_path
        if is_dynamic(claim_path):
            return self.context.metadata.get(claim_path[len(DYNAMIC_PREFIX):])
        if claim_path:
            value = self.context.sample_data.get(normalize_claim_path(claim_path))
            if value not in (None, ""):
                return value
            return element.label or None
        return element.static_value

    def resolve_image(self, element: DynamicCardElement) -> ResolvedValue:
        """Direct logo or the cached criteria result; never waits."""
        if element.logo_uri:
            return ResolvedValue(IMAGE, element.logo_uri)
        if element.asset_criteria is None:
            return ResolvedValue(IMAGE, None)
        if self.cache.has(element.zone_id, element.asset_criteria):
            return ResolvedValue(IMAGE, self.cache.get(element.zone_id))
        return ResolvedValue(IMAGE, None, pending=True)

    # ─────────────────────────────────────────────
    # asset criteria queries
    # ─────────────────────────────────────────────
    async def resolve_asset(self, element: DynamicCardElement, refresh: bool = False) -> Optional[str]:
        if element.logo_uri:
            return element.logo_uri
        if element.asset_criteria is None:
            return None
        zone_id = element.zone_id
        if not refresh and self.cache.has(zone_id, element.asset_criteria):
            return self.cache.get(zone_id)
        return await self._task_for(zone_id, element.asset_criteria)

    def schedule(self, elements: Iterable[DynamicCardElement]) -> Dict[str, asyncio.Task]:
        """Start one query per unresolved criteria zone. Needs a running loop."""
        tasks = {}
        for element in elements:
            if element.content_type != IMAGE or element.logo_uri or element.asset_criteria is None:
                continue
            if self.cache.has(element.zone_id, element.asset_criteria):
                continue
            tasks[element.zone_id] = self._task_for(element.zone_id, element.asset_criteria)
        return tasks

    async def resolve_all(self, elements: Iterable[DynamicCardElement]) -> Dict[str, Optional[str]]:
        tasks = self.schedule(elements)
        if tasks:
            await asyncio.gather(*tasks.values())
        return {zone_id: self.cache.get(zone_id) for zone_id in tasks}

    def invalidate(self, zone_id: str):
        self.cache.invalidate(zone_id)

    def _task_for(self, zone_id: str, criteria: AssetCriteria) -> asyncio.Task:
        loop = asyncio.get_running_loop()
        inflight = self._inflight.get(zone_id)
        if inflight is not None and inflight[0] == criteria and not inflight[1].done() and inflight[1].get_loop() is loop:
            return inflight[1]
        task = loop.create_task(self._query(zone_id, criteria))
        self._inflight[zone_id] = (criteria, task)
        return task

    async def _query(self, zone_id: str, criteria: AssetCriteria) -> Optional[str]:
        query = self.context.asset_query
        result = None
        try:
            if query is None:
                logger.debug("No asset query configured, zone %s stays empty", zone_id)
            else:
                result = query(criteria)
                if inspect.isawaitable(result):
                    result = await result
        except Exception as exc:
            logger.warning("Asset query for zone %s failed: %s: %s", zone_id, type(exc).__name__, exc)
            result = None

        value = str(result) if result else None
        inflight = self._inflight.get(zone_id)
        # only the latest query for a zone may settle it
        if inflight is not None and inflight[1] is asyncio.current_task():
            del self._inflight[zone_id]
            self.cache.store(zone_id, value, criteria)
        return value
