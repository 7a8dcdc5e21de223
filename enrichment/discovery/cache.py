"""
Shared response cache for external providers.

Entries live in the Django cache (Redis in production) under
`cache:<category>:<md5(normalized query)>`. Cache outages degrade to
misses; they never fail a lookup.
"""

import hashlib
import json
import logging
from typing import Any, Optional

from django.conf import settings
from django.core.cache import cache

logger = logging.getLogger(__name__)


def _default_ttls():
    return {
        "search": getattr(settings, "SEARCH_CACHE_TTL", 7 * 24 * 3600),
        "images": getattr(settings, "IMAGE_CACHE_TTL", 7 * 24 * 3600),
        "barcode": getattr(settings, "BARCODE_CACHE_TTL", 30 * 24 * 3600),
    }


def normalize_query(query: str) -> str:
    return " ".join((query or "").split()).lower()


def cache_key(category: str, query: str) -> str:
    digest = hashlib.md5(normalize_query(query).encode("utf-8")).hexdigest()
    return f"cache:{category}:{digest}"


class ProviderCache:
    """JSON values keyed by (category, query)."""

    def __init__(self, backend=None):
        self.backend = backend or cache
        self.ttls = _default_ttls()

    def get(self, category: str, query: str) -> Optional[Any]:
        key = cache_key(category, query)
        try:
            raw = self.backend.get(key)
        except Exception as e:
            logger.warning("Cache read failed for %s: %s", key, e)
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("Discarding corrupt cache entry %s", key)
            return None

    def set(self, category: str, query: str, value: Any, ttl: Optional[int] = None) -> None:
        key = cache_key(category, query)
        timeout = ttl if ttl is not None else self.ttls.get(category, 7 * 24 * 3600)
        try:
            self.backend.set(key, json.dumps(value, ensure_ascii=False), timeout)
        except Exception as e:
            logger.warning("Cache write failed for %s: %s", key, e)
