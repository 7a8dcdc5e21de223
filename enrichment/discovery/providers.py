"""
Search provider backends.

Each provider exposes `name`, `family` and `search(query)`. They are
used as a plain ordered strategy list; the searchers stop at the first
non-empty answer. Providers never raise: network errors and non-2xx
answers become empty results, and quota answers (403/429) also trip the
family's circuit breaker.
"""

import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

import requests
from django.conf import settings

from enrichment.discovery.circuit_breaker import (
    QUOTA_STATUS_CODES,
    ProviderCircuitBreaker,
    get_circuit_breaker,
)

logger = logging.getLogger(__name__)

GOOGLE_CSE_URL = "https://www.googleapis.com/customsearch/v1"
SERPAPI_URL = "https://serpapi.com/search"


@dataclass
class SearchResult:
    title: str
    snippet: str
    link: str

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SearchResult":
        return cls(
            title=data.get("title") or "",
            snippet=data.get("snippet") or "",
            link=data.get("link") or "",
        )


@dataclass
class ImageResult:
    url: str
    width: Optional[int] = None
    height: Optional[int] = None
    title: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ImageResult":
        return cls(
            url=data["url"],
            width=data.get("width"),
            height=data.get("height"),
            title=data.get("title") or "",
        )


def fetch_json(
    family: str,
    url: str,
    params: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
    breaker: Optional[ProviderCircuitBreaker] = None,
    timeout: Optional[float] = None,
) -> Optional[Dict[str, Any]]:
    """
    GET a JSON document from a provider, absorbing every failure.

    Returns:
        Parsed body, or None if the family is disabled, the call failed
        or the answer was not a 2xx JSON object
    """
    breaker = breaker or get_circuit_breaker()
    if breaker.is_open(family):
        logger.debug("Skipping %s call, family disabled", family)
        return None

    try:
        response = requests.get(
            url,
            params=params,
            headers=headers,
            timeout=timeout or getattr(settings, "SEARCH_TIMEOUT", 10),
        )
    except requests.RequestException as e:
        logger.warning("%s request failed: %s", family, e)
        return None

    if response.status_code in QUOTA_STATUS_CODES:
        breaker.trip(family)
        return None

    if not response.ok:
        if response.status_code != 404:
            logger.warning("%s returned HTTP %d", family, response.status_code)
        return None

    try:
        body = response.json()
    except ValueError:
        logger.warning("%s returned a non-JSON body", family)
        return None

    return body if isinstance(body, dict) else None


class GoogleCustomSearchProvider:
    """Google Programmable Search (Custom Search JSON API), web results."""

    name = "google_cse"
    family = "google_cse"

    def __init__(self, api_key: str = None, cx: str = None, breaker: ProviderCircuitBreaker = None, num_results: int = 5):
        self.api_key = api_key if api_key is not None else getattr(settings, "GOOGLE_SEARCH_API_KEY", "")
        self.cx = cx if cx is not None else getattr(settings, "GOOGLE_SEARCH_CX", "")
        self.breaker = breaker
        self.num_results = num_results

    def search(self, query: str) -> List[SearchResult]:
        if not self.api_key or not self.cx:
            return []

        body = fetch_json(
            self.family,
            GOOGLE_CSE_URL,
            params={"key": self.api_key, "cx": self.cx, "q": query, "num": self.num_results},
            breaker=self.breaker,
        )
        if not body:
            return []

        return [
            SearchResult(
                title=item.get("title") or "",
                snippet=item.get("snippet") or "",
                link=item.get("link") or "",
            )
            for item in body.get("items") or []
        ]


class SerpAPISearchProvider:
    """SerpAPI Google engine, organic results."""

    name = "serpapi"
    family = "serpapi"

    def __init__(self, api_key: str = None, breaker: ProviderCircuitBreaker = None, num_results: int = 5):
        self.api_key = api_key if api_key is not None else getattr(settings, "SERPAPI_KEY", "")
        self.breaker = breaker
        self.num_results = num_results

    def search(self, query: str) -> List[SearchResult]:
        if not self.api_key:
            return []

        body = fetch_json(
            self.family,
            SERPAPI_URL,
            params={
                "engine": "google",
                "q": query,
                "num": self.num_results,
                "hl": "es",
                "gl": "cr",
                "api_key": self.api_key,
            },
            breaker=self.breaker,
        )
        if not body:
            return []

        return [
            SearchResult(
                title=item.get("title") or "",
                snippet=item.get("snippet") or "",
                link=item.get("link") or "",
            )
            for item in (body.get("organic_results") or [])[: self.num_results]
        ]


class GoogleImageSearchProvider:
    """Google Custom Search in image mode, extra-large images only."""

    name = "google_cse_images"
    family = "google_cse"

    def __init__(self, api_key: str = None, cx: str = None, breaker: ProviderCircuitBreaker = None, num_results: int = 5):
        self.api_key = api_key if api_key is not None else getattr(settings, "GOOGLE_SEARCH_API_KEY", "")
        self.cx = cx if cx is not None else getattr(settings, "GOOGLE_SEARCH_CX", "")
        self.breaker = breaker
        self.num_results = num_results

    def search(self, query: str) -> List[ImageResult]:
        if not self.api_key or not self.cx:
            return []

        body = fetch_json(
            self.family,
            GOOGLE_CSE_URL,
            params={
                "key": self.api_key,
                "cx": self.cx,
                "q": query,
                "searchType": "image",
                "imgSize": "xlarge",
                "num": self.num_results,
            },
            breaker=self.breaker,
        )
        if not body:
            return []

        results = []
        for item in body.get("items") or []:
            if not item.get("link"):
                continue
            image = item.get("image") or {}
            results.append(
                ImageResult(
                    url=item["link"],
                    width=image.get("width") or None,
                    height=image.get("height") or None,
                    title=item.get("title") or "",
                )
            )
        return results


TEXT_PROVIDER_CLASSES = {
    GoogleCustomSearchProvider.name: GoogleCustomSearchProvider,
    SerpAPISearchProvider.name: SerpAPISearchProvider,
}


def build_text_providers(names: List[str] = None, breaker: ProviderCircuitBreaker = None) -> list:
    """Instantiate text providers in the configured priority order."""
    names = names if names is not None else getattr(settings, "SEARCH_PROVIDERS", ["google_cse", "serpapi"])
    providers = []
    for name in names:
        provider_class = TEXT_PROVIDER_CLASSES.get(name.strip())
        if provider_class is None:
            logger.warning("Unknown search provider %r ignored", name)
            continue
        providers.append(provider_class(breaker=breaker))
    return providers
