import base64
import io
import logging
import os
from collections import OrderedDict
from typing import Optional

import requests
from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)


class ImageLoader:
    """Loads zone images from local paths, ``data:`` URIs or http(s) URLs."""

    def __init__(self, timeout: float = 10, session: Optional[requests.Session] = None, max_cached: int = 32):
        self.timeout = timeout
        self.session = session or requests.Session()
        self.max_cached = max_cached
        self._cache: "OrderedDict[str, Image.Image]" = OrderedDict()

    def load(self, source: Optional[str]) -> Optional[Image.Image]:
        """Load image safely. Returns None when it cannot be read."""
        if not source:
            return None
        if source in self._cache:
            self._cache.move_to_end(source)
            return self._cache[source]

        try:
            raw = self._read(source)
        except (OSError, ValueError, requests.RequestException) as e:
            logger.warning("Cannot read image %s: %s", _short(source), e)
            return None
        if raw is None:
            return None

        try:
            img = Image.open(io.BytesIO(raw))
            img.load()
        except (UnidentifiedImageError, OSError) as e:
            logger.warning("Not an image %s: %s", _short(source), e)
            return None

        img = img.convert("RGBA")
        self._cache[source] = img
        while len(self._cache) > self.max_cached:
            self._cache.popitem(last=False)
        return img

    def clear_cache(self):
        self._cache.clear()

    def load_scaled(self, source, width, height):
        """Load and resize image."""
        img = self.load(source)
        if img is None:
            return None
        return img.resize((max(1, int(width)), max(1, int(height))), Image.LANCZOS)

    def load_contained(self, source, width, height):
        """Load and scale to fit inside ``width`` x ``height`` keeping the aspect ratio."""
        img = self.load(source)
        if img is None or width <= 0 or height <= 0:
            return None
        ratio = min(width / img.width, height / img.height)
        size = (max(1, round(img.width * ratio)), max(1, round(img.height * ratio)))
        return img.resize(size, Image.LANCZOS)

    def _read(self, source: str) -> Optional[bytes]:
        if source.startswith("data:"):
            header, _, payload = source.partition(",")
            if ";base64" in header:
                return base64.b64decode(payload, validate=False)
            return payload.encode("utf-8")

        if source.startswith(("http://", "https://")):
            response = self.session.get(source, timeout=self.timeout)
            response.raise_for_status()
            return response.content

        path = source[len("file://"):] if source.startswith("file://") else source
        if not os.path.exists(path):
            logger.warning("Image file not found: %s", path)
            return None
        with open(path, "rb") as f:
            return f.read()


def _short(source: str) -> str:
    return source if len(source) <= 60 else source[:57] + "..."
