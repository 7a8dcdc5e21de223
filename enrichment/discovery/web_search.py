"""
Text search for corroborating product data.

Builds one query from the product's cleaned title (or vendor), its SKU
and any secondary code, then asks each configured provider in order
until one returns results. Non-empty answers are cached.
"""

import logging
import re
from typing import List, Optional

from enrichment.discovery.cache import ProviderCache
from enrichment.discovery.providers import SearchResult, build_text_providers

logger = logging.getLogger(__name__)

# Leading "[...]" or "(...)" blocks, e.g. "[OFERTA] (2024) Laptop ..."
_BRACKET_PREFIX_RE = re.compile(r"^\s*(?:\[[^\]]*\]|\([^)]*\))\s*")
# Marketing prefixes followed by a separator, e.g. "Nuevo - Laptop ..."
_NOISE_PREFIX_RE = re.compile(r"^\s*(?:nuevo|new|oferta)\s*[-:|]\s*", re.IGNORECASE)

QUERY_QUALIFIER = "ficha tecnica especificaciones"


def clean_title(title: str) -> str:
    """Strip bracketed prefixes and marketing noise from a title."""
    cleaned = title or ""
    while True:
        stripped = _BRACKET_PREFIX_RE.sub("", cleaned, count=1)
        stripped = _NOISE_PREFIX_RE.sub("", stripped, count=1)
        if stripped == cleaned:
            break
        cleaned = stripped
    return " ".join(cleaned.split())


def build_query(
    sku: Optional[str],
    title: str,
    vendor: str,
    secondary_code: Optional[str] = None,
) -> str:
    """
    Build the search query for a product.

    Returns:
        The query, or "" when there is nothing to search for
    """
    primary = clean_title(title)
    vendor = (vendor or "").strip()

    terms = []
    if primary:
        terms.append(primary)
        if vendor and vendor.lower() not in primary.lower():
            terms.append(vendor)
    elif vendor:
        terms.append(vendor)

    for code in (sku, secondary_code):
        code = (code or "").strip()
        if code and code not in terms:
            terms.append(code)

    if not terms:
        return ""
    return " ".join(terms + [QUERY_QUALIFIER])


class WebSearcher:
    """
    Ordered-provider text search with a shared cache.

    Usage:
        searcher = WebSearcher()
        results = searcher.search(sku, title, vendor)
    """

    CACHE_CATEGORY = "search"

    def __init__(self, providers: list = None, cache: ProviderCache = None, breaker=None):
        self.providers = providers if providers is not None else build_text_providers(breaker=breaker)
        self.cache = cache or ProviderCache()

    def search(
        self,
        sku: Optional[str],
        title: str,
        vendor: str,
        secondary_code: Optional[str] = None,
    ) -> List[SearchResult]:
        query = build_query(sku, title, vendor, secondary_code)
        if not query:
            return []

        cached = self.cache.get(self.CACHE_CATEGORY, query)
        if cached is not None:
            logger.debug("Search cache hit for %r", query)
            return [SearchResult.from_dict(entry) for entry in cached]

        for provider in self.providers:
            try:
                results = provider.search(query)
            except Exception as e:
                logger.warning("Provider %s failed for %r: %s", provider.name, query, e)
                continue

            if results:
                logger.info("Provider %s returned %d results for %r", provider.name, len(results), query)
                self.cache.set(self.CACHE_CATEGORY, query, [r.to_dict() for r in results])
                return results

        return []
