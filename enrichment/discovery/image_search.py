"""
Image search for products with too few photos.
"""

import logging
from typing import List, Optional

from enrichment.discovery.cache import ProviderCache
from enrichment.discovery.providers import GoogleImageSearchProvider, ImageResult

logger = logging.getLogger(__name__)

# Larger side must reach this many pixels
MIN_IMAGE_DIMENSION = 1024

# Search only when the product has fewer images than this
IMAGE_SEARCH_BELOW_COUNT = 3

# Most candidate images attached per product
MAX_NEW_IMAGES = 5


def meets_quality_floor(image: ImageResult, floor: int = MIN_IMAGE_DIMENSION) -> bool:
    """Images of unknown size pass; known sizes must reach the floor."""
    if image.width is None and image.height is None:
        return True
    return max(image.width or 0, image.height or 0) >= floor


def build_image_query(title: str, vendor: str, sku: Optional[str]) -> str:
    terms = [part.strip() for part in (title, vendor, sku) if part and part.strip()]
    return " ".join(terms + ["product photo official"])


class ImageSearcher:
    """Single-provider image search with a quality filter and cache."""

    CACHE_CATEGORY = "images"

    def __init__(self, provider=None, cache: ProviderCache = None, breaker=None, min_dimension: int = MIN_IMAGE_DIMENSION):
        self.provider = provider or GoogleImageSearchProvider(breaker=breaker)
        self.cache = cache or ProviderCache()
        self.min_dimension = min_dimension

    def search(self, title: str, vendor: str, sku: Optional[str]) -> List[ImageResult]:
        query = build_image_query(title, vendor, sku)

        cached = self.cache.get(self.CACHE_CATEGORY, query)
        if cached is not None:
            return [ImageResult.from_dict(entry) for entry in cached]

        try:
            results = self.provider.search(query)
        except Exception as e:
            logger.warning("Image search failed for %r: %s", query, e)
            return []

        filtered = [r for r in results if meets_quality_floor(r, self.min_dimension)]
        if filtered:
            self.cache.set(self.CACHE_CATEGORY, query, [r.to_dict() for r in filtered])

        logger.debug("Image search %r: %d of %d passed quality floor", query, len(filtered), len(results))
        return filtered
