"""Adapters that answer asset-criteria queries."""

from __future__ import annotations

import asyncio
import json
import logging
import os
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

import requests

from .models import AssetCriteria

logger = logging.getLogger(__name__)


class AssetIndexError(RuntimeError):
    pass


class AssetIndexClient:
    """
    HTTP client for an external asset index.

    ``GET {base_url}/assets/resolve`` with the criteria as query parameters
    answers ``{"uri": ...}``; 404 means no asset matches.
    """

    def __init__(self, base_url: str, timeout: float = 10, session: Optional[requests.Session] = None):
        self.api_url = base_url.rstrip("/") + "/assets/resolve"
        self.timeout = timeout
        self.session = session or requests.Session()

    def query(self, criteria: AssetCriteria) -> Optional[str]:
        try:
            response = self.session.get(
                self.api_url,
                params=criteria.to_dict(),
                timeout=self.timeout,
            )
            if response.status_code == 404:
                return None
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as e:
            raise AssetIndexError(f"Asset index unavailable: {e}") from e
        except ValueError as e:
            raise AssetIndexError(f"Invalid asset index response: {e}") from e

        if not isinstance(data, dict):
            raise AssetIndexError(f"Unexpected asset index response: {data!r}")
        return data.get("uri") or None

    async def resolve_asset_criteria(self, criteria: AssetCriteria) -> Optional[str]:
        return await asyncio.to_thread(self.query, criteria)


@dataclass(frozen=True)
class AssetRecord:
    entity_role: str
    asset_type: str
    uri: str
    data_provider_type: Optional[str] = None

    def matches(self, criteria: AssetCriteria) -> bool:
        if self.entity_role != criteria.entity_role or self.asset_type != criteria.asset_type:
            return False
        if criteria.data_provider_type is not None:
            return self.data_provider_type == criteria.data_provider_type
        return True

    @classmethod
    def from_dict(cls, data: Dict) -> "AssetRecord":
        return cls(
            entity_role=data["entityRole"],
            asset_type=data["assetType"],
            uri=data["uri"],
            data_provider_type=data.get("dataProviderType"),
        )


class InMemoryAssetIndex:
    """Local list of assets; the first matching record wins."""

    def __init__(self, records: Iterable[AssetRecord] = ()):
        self.records: List[AssetRecord] = list(records)

    def add(self, record: AssetRecord):
        self.records.append(record)

    def match(self, criteria: AssetCriteria) -> Optional[AssetRecord]:
        for record in self.records:
            if record.matches(criteria):
                return record
        return None

    async def resolve_asset_criteria(self, criteria: AssetCriteria) -> Optional[str]:
        record = self.match(criteria)
        return record.uri if record else None

    @classmethod
    def load(cls, path: str) -> "InMemoryAssetIndex":
        if not os.path.exists(path):
            raise FileNotFoundError(f"Asset index not found: {path}")
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        records = [AssetRecord.from_dict(item) for item in data.get("assets", [])]
        logger.info("Loaded %d assets from %s", len(records), path)
        return cls(records)
