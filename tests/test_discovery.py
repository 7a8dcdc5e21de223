"""
Tests for search providers, searchers, barcode lookup, the provider
cache and the circuit breaker.

HTTP is mocked with `responses`.
"""

from unittest.mock import Mock

import pytest
import requests
import responses

from enrichment.discovery.barcode_lookup import UPCITEMDB_URL, BarcodeData, BarcodeLookup
from enrichment.discovery.cache import ProviderCache, cache_key, normalize_query
from enrichment.discovery.circuit_breaker import ProviderCircuitBreaker, get_circuit_breaker
from enrichment.discovery.image_search import ImageSearcher, build_image_query, meets_quality_floor
from enrichment.discovery.providers import (
    GOOGLE_CSE_URL,
    SERPAPI_URL,
    GoogleCustomSearchProvider,
    GoogleImageSearchProvider,
    ImageResult,
    SearchResult,
    SerpAPISearchProvider,
    build_text_providers,
)
from enrichment.discovery.web_search import WebSearcher, build_query, clean_title

GOOGLE_BODY = {
    "items": [
        {"title": "ASUS Vivobook 15 X1504ZA", "snippet": "Intel Core i5-1235U, 16GB", "link": "https://www.asus.com/vivobook-15"},
        {"title": "Vivobook 15 review", "snippet": "Pantalla FHD", "link": "https://example.com/review"},
    ]
}
SERPAPI_BODY = {
    "organic_results": [
        {"title": "Vivobook 15 - ASUS", "snippet": "Laptop ligera", "link": "https://www.asus.com/cr/vivobook"},
    ]
}


@pytest.fixture
def breaker(fake_clock):
    return ProviderCircuitBreaker(cooldown_seconds=3600, clock=fake_clock)


# ============================================================
# Circuit breaker
# ============================================================

class TestCircuitBreaker:
    def test_trip_disables_family_until_cooldown_ends(self, breaker, fake_clock):
        start = fake_clock.now
        breaker.trip("google_cse")

        assert breaker.is_open("google_cse")
        assert not breaker.is_open("serpapi")
        assert breaker.disabled_until("google_cse") == start + 3600

        fake_clock.advance(3599)
        assert breaker.is_open("google_cse")
        fake_clock.advance(1)
        assert not breaker.is_open("google_cse")
        assert breaker.disabled_until("google_cse") is None

    def test_disabled_until_never_moves_backwards(self, breaker):
        first = breaker.trip("google_cse")
        breaker.cooldown_seconds = 60

        assert breaker.trip("google_cse") == first

    def test_singleton_uses_settings(self):
        assert get_circuit_breaker().cooldown_seconds == 3600
        assert get_circuit_breaker() is get_circuit_breaker()


# ============================================================
# Cache
# ============================================================

class TestProviderCache:
    def test_keys_are_normalized(self):
        assert normalize_query("  ASUS   Vivobook\t15 ") == "asus vivobook 15"
        assert cache_key("search", "ASUS Vivobook") == cache_key("search", " asus  vivobook ")
        assert cache_key("search", "x").startswith("cache:search:")
        assert cache_key("search", "x") != cache_key("images", "x")

    def test_round_trip(self):
        cache = ProviderCache()
        cache.set("search", "vivobook", [{"title": "A"}])

        assert cache.get("search", "VIVOBOOK") == [{"title": "A"}]
        assert cache.get("search", "otro") is None

    def test_backend_failures_degrade_to_miss(self):
        backend = Mock()
        backend.get.side_effect = ConnectionError("redis down")
        backend.set.side_effect = ConnectionError("redis down")
        cache = ProviderCache(backend=backend)

        assert cache.get("search", "vivobook") is None
        cache.set("search", "vivobook", [])


# ============================================================
# Providers
# ============================================================

class TestGoogleCustomSearchProvider:
    @responses.activate
    def test_parses_items(self, breaker):
        responses.get(GOOGLE_CSE_URL, json=GOOGLE_BODY)
        provider = GoogleCustomSearchProvider(api_key="k", cx="cx", breaker=breaker)

        results = provider.search("asus vivobook")

        assert results[0] == SearchResult(
            title="ASUS Vivobook 15 X1504ZA",
            snippet="Intel Core i5-1235U, 16GB",
            link="https://www.asus.com/vivobook-15",
        )
        assert len(results) == 2
        request = responses.calls[0].request
        assert "num=5" in request.url
        assert "q=asus+vivobook" in request.url

    @responses.activate
    def test_quota_response_trips_breaker_and_skips_later_calls(self, breaker, fake_clock):
        responses.get(GOOGLE_CSE_URL, status=429, json={"error": {"code": 429}})
        provider = GoogleCustomSearchProvider(api_key="k", cx="cx", breaker=breaker)

        assert provider.search("asus vivobook") == []
        assert provider.search("asus vivobook") == []
        assert len(responses.calls) == 1

        fake_clock.advance(3600)
        assert provider.search("asus vivobook") == []
        assert len(responses.calls) == 2

    @responses.activate
    def test_server_error_is_absorbed_without_tripping(self, breaker):
        responses.get(GOOGLE_CSE_URL, status=500)
        provider = GoogleCustomSearchProvider(api_key="k", cx="cx", breaker=breaker)

        assert provider.search("asus vivobook") == []
        assert not breaker.is_open("google_cse")

    @responses.activate
    def test_network_error_is_absorbed(self, breaker):
        responses.get(GOOGLE_CSE_URL, body=requests.ConnectionError("unreachable"))
        provider = GoogleCustomSearchProvider(api_key="k", cx="cx", breaker=breaker)

        assert provider.search("asus vivobook") == []

    @responses.activate
    def test_unconfigured_provider_makes_no_call(self, breaker):
        provider = GoogleCustomSearchProvider(api_key="", cx="", breaker=breaker)

        assert provider.search("asus vivobook") == []
        assert len(responses.calls) == 0


class TestSerpAPISearchProvider:
    @responses.activate
    def test_parses_organic_results(self, breaker):
        responses.get(SERPAPI_URL, json=SERPAPI_BODY)
        provider = SerpAPISearchProvider(api_key="k", breaker=breaker)

        results = provider.search("asus vivobook")

        assert results == [SearchResult(title="Vivobook 15 - ASUS", snippet="Laptop ligera", link="https://www.asus.com/cr/vivobook")]
        assert "engine=google" in responses.calls[0].request.url
        assert "gl=cr" in responses.calls[0].request.url

    @responses.activate
    def test_forbidden_trips_its_own_family(self, breaker):
        responses.get(SERPAPI_URL, status=403)
        provider = SerpAPISearchProvider(api_key="k", breaker=breaker)

        provider.search("asus vivobook")

        assert breaker.is_open("serpapi")
        assert not breaker.is_open("google_cse")


def test_build_text_providers_respects_order_and_skips_unknown(breaker):
    providers = build_text_providers(["serpapi", "bing", "google_cse"], breaker=breaker)

    assert [p.name for p in providers] == ["serpapi", "google_cse"]


# ============================================================
# Web search
# ============================================================

class TestBuildQuery:
    def test_title_vendor_and_codes(self):
        query = build_query("X1504ZA-I5", "Vivobook 15", "ASUS", "4711081000000")

        assert query == "Vivobook 15 ASUS X1504ZA-I5 4711081000000 ficha tecnica especificaciones"

    def test_vendor_already_in_title(self):
        assert build_query(None, "ASUS Vivobook 15", "asus") == "ASUS Vivobook 15 ficha tecnica especificaciones"

    def test_vendor_only(self):
        assert build_query(None, "", "ASUS") == "ASUS ficha tecnica especificaciones"

    def test_nothing_to_search(self):
        assert build_query(None, "  ", "") == ""

    def test_clean_title(self):
        assert clean_title("[OFERTA] (2024) Nuevo - ASUS  Vivobook 15") == "ASUS Vivobook 15"


class TestWebSearcher:
    def test_first_non_empty_provider_wins(self):
        empty = Mock(name="empty")
        empty.name = "google_cse"
        empty.search.return_value = []
        full = Mock()
        full.name = "serpapi"
        full.search.return_value = [SearchResult("t", "s", "l")]
        never = Mock()
        never.name = "other"

        searcher = WebSearcher(providers=[empty, full, never], cache=ProviderCache())
        results = searcher.search("SKU1", "Vivobook 15", "ASUS")

        assert results == [SearchResult("t", "s", "l")]
        never.search.assert_not_called()

    def test_results_are_cached(self):
        provider = Mock()
        provider.name = "google_cse"
        provider.search.return_value = [SearchResult("t", "s", "l")]
        searcher = WebSearcher(providers=[provider], cache=ProviderCache())

        searcher.search("SKU1", "Vivobook 15", "ASUS")
        results = searcher.search("SKU1", "vivobook   15", "ASUS")

        assert results == [SearchResult("t", "s", "l")]
        assert provider.search.call_count == 1

    def test_empty_results_are_not_cached(self):
        provider = Mock()
        provider.name = "google_cse"
        provider.search.return_value = []
        searcher = WebSearcher(providers=[provider], cache=ProviderCache())

        searcher.search("SKU1", "Vivobook 15", "ASUS")
        searcher.search("SKU1", "Vivobook 15", "ASUS")

        assert provider.search.call_count == 2

    def test_raising_provider_is_skipped(self):
        broken = Mock()
        broken.name = "google_cse"
        broken.search.side_effect = RuntimeError("boom")
        working = Mock()
        working.name = "serpapi"
        working.search.return_value = [SearchResult("t", "s", "l")]

        searcher = WebSearcher(providers=[broken, working], cache=ProviderCache())

        assert searcher.search(None, "Vivobook", "ASUS") == [SearchResult("t", "s", "l")]

    @responses.activate
    def test_falls_back_to_serpapi_when_google_is_over_quota(self, breaker):
        responses.get(GOOGLE_CSE_URL, status=429)
        responses.get(SERPAPI_URL, json=SERPAPI_BODY)
        providers = [
            GoogleCustomSearchProvider(api_key="k", cx="cx", breaker=breaker),
            SerpAPISearchProvider(api_key="k", breaker=breaker),
        ]
        searcher = WebSearcher(providers=providers, cache=ProviderCache())

        results = searcher.search("X1504ZA-I5", "Vivobook 15", "ASUS")

        assert results[0].title == "Vivobook 15 - ASUS"
        assert breaker.is_open("google_cse")


# ============================================================
# Image search
# ============================================================

class TestImageSearch:
    def test_quality_floor(self):
        assert meets_quality_floor(ImageResult(url="a", width=1200, height=800))
        assert meets_quality_floor(ImageResult(url="a", width=None, height=None))
        assert not meets_quality_floor(ImageResult(url="a", width=800, height=600))

    def test_build_image_query(self):
        assert build_image_query("Vivobook 15", "ASUS", None) == "Vivobook 15 ASUS product photo official"

    @responses.activate
    def test_filters_small_images(self, breaker):
        responses.get(GOOGLE_CSE_URL, json={"items": [
            {"link": "https://cdn.example.com/big.jpg", "title": "big", "image": {"width": 2000, "height": 1500}},
            {"link": "https://cdn.example.com/small.jpg", "title": "small", "image": {"width": 400, "height": 300}},
            {"title": "no link", "image": {"width": 2000, "height": 2000}},
        ]})
        provider = GoogleImageSearchProvider(api_key="k", cx="cx", breaker=breaker)
        searcher = ImageSearcher(provider=provider, cache=ProviderCache())

        results = searcher.search("Vivobook 15", "ASUS", "X1504ZA-I5")

        assert [r.url for r in results] == ["https://cdn.example.com/big.jpg"]
        assert "searchType=image" in responses.calls[0].request.url

        # Second call is served from cache
        assert searcher.search("Vivobook 15", "ASUS", "X1504ZA-I5") == results
        assert len(responses.calls) == 1


# ============================================================
# Barcode lookup
# ============================================================

class TestBarcodeLookup:
    @responses.activate
    def test_upcitemdb(self, breaker):
        responses.get(UPCITEMDB_URL, json={"items": [{
            "title": "ASUS Vivobook 15",
            "description": "15.6 inch laptop",
            "brand": "ASUS",
            "category": "Electronics > Computers",
            "weight": "1.7 kg",
            "model": "X1504ZA",
            "images": ["https://cdn.example.com/upc.jpg"],
        }]})
        lookup = BarcodeLookup(go_upc_key="", cache=ProviderCache(), breaker=breaker)

        data = lookup.lookup("4711081000000")

        assert data == BarcodeData(
            name="ASUS Vivobook 15",
            description="15.6 inch laptop",
            brand="ASUS",
            category="Electronics > Computers",
            image_url="https://cdn.example.com/upc.jpg",
            specs={"weight": "1.7 kg", "model": "X1504ZA"},
            source="upcitemdb",
        )
        assert "upc=4711081000000" in responses.calls[0].request.url

    @responses.activate
    def test_go_upc_first_when_configured(self, breaker):
        responses.get(
            "https://go-upc.com/api/v1/code/4711081000000",
            json={"product": {"name": "Vivobook 15", "brand": "ASUS", "imageUrl": "https://go-upc.com/i.jpg"}},
        )
        lookup = BarcodeLookup(go_upc_key="go-key", cache=ProviderCache(), breaker=breaker)

        data = lookup.lookup("4711081000000")

        assert data.source == "go-upc"
        assert data.brand == "ASUS"
        assert responses.calls[0].request.headers["Authorization"] == "Bearer go-key"
        assert len(responses.calls) == 1

    @responses.activate
    def test_miss_returns_none_and_is_not_cached(self, breaker):
        responses.get(UPCITEMDB_URL, json={"code": "OK", "items": []})
        lookup = BarcodeLookup(go_upc_key="", cache=ProviderCache(), breaker=breaker)

        assert lookup.lookup("000") is None
        assert lookup.lookup("000") is None
        assert len(responses.calls) == 2

    @responses.activate
    def test_hits_are_cached(self, breaker):
        responses.get(UPCITEMDB_URL, json={"items": [{"title": "Vivobook", "brand": "ASUS"}]})
        lookup = BarcodeLookup(go_upc_key="", cache=ProviderCache(), breaker=breaker)

        first = lookup.lookup("4711081000000")
        second = lookup.lookup("4711081000000")

        assert first == second
        assert len(responses.calls) == 1

    def test_blank_barcode(self, breaker):
        assert BarcodeLookup(go_upc_key="", cache=ProviderCache(), breaker=breaker).lookup("  ") is None
