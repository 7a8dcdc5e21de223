"""
Pytest configuration and fixtures for the enrichment test suite.
"""

import json
from typing import Any, Dict, List, Optional

import httpx
import pytest


@pytest.fixture(scope="session")
def django_db_setup(django_db_blocker):
    """Configure the test database and run migrations."""
    from django.core.management import call_command

    with django_db_blocker.unblock():
        call_command("migrate", "--run-syncdb", verbosity=0)


@pytest.fixture(autouse=True)
def reset_shared_state():
    """Clear the cache and process-wide singletons between tests."""
    from django.core.cache import cache

    from enrichment.discovery.circuit_breaker import reset_circuit_breaker
    from enrichment.services.rate_limiter import reset_rate_limiters

    cache.clear()
    reset_circuit_breaker()
    reset_rate_limiters()
    yield
    cache.clear()
    reset_circuit_breaker()
    reset_rate_limiters()


@pytest.fixture
def api_client():
    """Create a test API client carrying the internal API key."""
    from rest_framework.test import APIClient

    client = APIClient()
    client.credentials(HTTP_X_API_KEY="test-internal-key", HTTP_X_SHOP_DOMAIN=SHOP)
    return client


SHOP = "test-store.myshopify.com"


@pytest.fixture
def shop():
    return SHOP


# ============================================================
# Clock
# ============================================================

class FakeClock:
    """Manually advanced clock; also usable as a `sleep` replacement."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def fake_clock():
    return FakeClock()


# ============================================================
# Catalog items
# ============================================================

def _connection(nodes: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {"edges": [{"node": node} for node in nodes]}


@pytest.fixture
def product_node_factory():
    """
    Build a Shopify `product` GraphQL node.

    The default product scores 40: vendor, type, category, three tags,
    SKU and both SEO fields, with no description, images or metafields.
    """

    def factory(
        number: int = 1001,
        images: Optional[List[Dict[str, Any]]] = None,
        metafields: Optional[List[Dict[str, Any]]] = None,
        variants: Optional[List[Dict[str, Any]]] = None,
        **overrides,
    ) -> Dict[str, Any]:
        if variants is None:
            variants = [{
                "id": f"gid://shopify/ProductVariant/{number}1",
                "title": "Default Title",
                "sku": "X1504ZA-I5",
                "barcode": None,
                "inventoryQuantity": 5,
            }]
        node = {
            "id": f"gid://shopify/Product/{number}",
            "title": "ASUS Vivobook 15 X1504ZA",
            "handle": "asus-vivobook-15-x1504za",
            "descriptionHtml": "",
            "productType": "Laptops",
            "vendor": "ASUS",
            "tags": ["laptop", "asus", "oferta"],
            "status": "ACTIVE",
            "totalInventory": 5,
            "category": {
                "id": "gid://shopify/TaxonomyCategory/el-6-6",
                "name": "Laptops",
                "fullName": "Electronics > Computers > Laptops",
            },
            "seo": {"title": "ASUS Vivobook 15", "description": "Laptop ASUS Vivobook 15"},
            "variants": _connection(variants),
            "images": _connection(images or []),
            "metafields": _connection(metafields or []),
        }
        node.update(overrides)
        return node

    return factory


@pytest.fixture
def catalog_item_factory(product_node_factory):
    """Build a CatalogItem from the same defaults as product_node_factory."""
    from enrichment.shopify.types import CatalogItem

    def factory(**overrides):
        return CatalogItem.from_graphql(product_node_factory(**overrides))

    return factory


# ============================================================
# Generated proposals
# ============================================================

@pytest.fixture
def proposal_data():
    """A valid proposal in the model's wire format."""
    return {
        "confidence_score": 0.85,
        "description_html": (
            "<p>La <strong>ASUS Vivobook 15</strong> combina un procesador Intel Core i5 "
            "con 16 GB de memoria RAM para trabajo y estudio.</p>"
            "<ul><li>Pantalla Full HD de 15.6 pulgadas</li><li>SSD de 512 GB</li></ul>"
        ),
        "product_type": "Laptops",
        "category_suggestion": "Electronics > Computers > Laptops",
        "tags": ["laptop", "asus", "vivobook", "intel core i5"],
        "seo_title": "ASUS Vivobook 15 Intel Core i5 16GB RAM",
        "seo_description": "Laptop ASUS Vivobook 15 con Intel Core i5, 16 GB de RAM y SSD de 512 GB.",
        "metafields": {
            "custom.memoria_ram": "16 GB",
            "custom.procesador_marca": "Intel",
            "custom.peso": "1,7 kg",
        },
        "image_analysis": {
            "current_quality": "mala",
            "needs_more_images": True,
            "suggested_alt_texts": ["ASUS Vivobook 15 vista frontal"],
        },
    }


@pytest.fixture
def gemini_envelope():
    """Wrap model text in a generateContent response envelope."""

    def factory(text: str, finish_reason: str = "STOP") -> Dict[str, Any]:
        return {
            "candidates": [{
                "content": {"role": "model", "parts": [{"text": text}]},
                "finishReason": finish_reason,
            }],
            "modelVersion": "gemini-2.5-flash",
        }

    return factory


@pytest.fixture
def mock_generator(proposal_data):
    """A generator stub that returns `proposal_data` for every item."""
    from unittest.mock import Mock

    from enrichment.services.proposal import EnrichmentProposal

    generator = Mock()
    generator.model = "gemini-2.5-flash"
    generator.generate.side_effect = lambda item, results, barcode=None: (
        EnrichmentProposal.from_dict(proposal_data),
        json.dumps(proposal_data),
    )
    return generator


# ============================================================
# Fake Shopify Admin API
# ============================================================

class FakeShopify:
    """
    In-memory Admin GraphQL endpoint for httpx.MockTransport.

    Products are stored as GraphQL nodes and mutated by productUpdate,
    metafieldsSet and productCreateMedia.
    """

    def __init__(self, nodes: Optional[List[Dict[str, Any]]] = None, page_size: int = 50):
        self.products: Dict[str, Dict[str, Any]] = {}
        for node in nodes or []:
            self.add(node)
        self.page_size = page_size
        self.requests: List[Dict[str, Any]] = []
        self.fail_listing = False
        self.fail_product_update = False
        self.fail_metafield_keys = set()
        self.fail_image_urls = set()

    def add(self, node: Dict[str, Any]) -> None:
        self.products[node["id"]] = node

    def operations(self, name: str) -> List[Dict[str, Any]]:
        return [r["variables"] for r in self.requests if name in r["query"]]

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.requests.append(body)
        query = body["query"]
        variables = body.get("variables") or {}

        if "GetProductsForEnrichment" in query:
            if self.fail_listing:
                return httpx.Response(500, text="Internal Server Error")
            return httpx.Response(200, json=self._list(variables))
        if "GetProduct" in query:
            return httpx.Response(200, json={"data": {"product": self.products.get(variables["id"])}})
        if "productUpdate" in query:
            return httpx.Response(200, json=self._update(variables["input"]))
        if "metafieldsSet" in query:
            return httpx.Response(200, json=self._set_metafields(variables["metafields"]))
        if "productCreateMedia" in query:
            return httpx.Response(200, json=self._create_media(variables["productId"], variables["media"]))
        return httpx.Response(400, json={"errors": [{"message": "Unknown operation"}]})

    def _list(self, variables):
        nodes = [n for n in self.products.values() if n.get("status") == "ACTIVE"]
        nodes.sort(key=lambda n: int(n["id"].rsplit("/", 1)[-1]), reverse=True)
        start = int(variables.get("cursor") or 0)
        first = variables.get("first") or self.page_size
        page = nodes[start:start + first]
        has_next = start + first < len(nodes)
        return {
            "data": {
                "products": {
                    "edges": [{"node": node} for node in page],
                    "pageInfo": {"hasNextPage": has_next, "endCursor": str(start + first) if has_next else None},
                }
            }
        }

    def _update(self, product_input):
        if self.fail_product_update:
            return {"data": {"productUpdate": {
                "product": None,
                "userErrors": [{"field": ["descriptionHtml"], "message": "is invalid"}],
            }}}
        node = self.products[product_input["id"]]
        for key in ("descriptionHtml", "productType", "tags"):
            if key in product_input:
                node[key] = product_input[key]
        if "seo" in product_input:
            node["seo"] = {**(node.get("seo") or {}), **product_input["seo"]}
        return {"data": {"productUpdate": {"product": {"id": node["id"]}, "userErrors": []}}}

    def _set_metafields(self, metafields):
        errors = [
            {"field": ["metafields", str(i), "value"], "message": f"{m['key']} is invalid"}
            for i, m in enumerate(metafields)
            if f"{m['namespace']}.{m['key']}" in self.fail_metafield_keys
        ]
        if errors:
            return {"data": {"metafieldsSet": {"metafields": None, "userErrors": errors}}}
        for m in metafields:
            edges = self.products[m["ownerId"]]["metafields"]["edges"]
            edges.append({"node": {
                "id": None,
                "namespace": m["namespace"],
                "key": m["key"],
                "value": m["value"],
                "type": m["type"],
            }})
        return {"data": {"metafieldsSet": {"metafields": [], "userErrors": []}}}

    def _create_media(self, product_id, media):
        errors = [
            {"field": ["media", str(i), "originalSource"], "message": "Image could not be downloaded"}
            for i, m in enumerate(media)
            if m["originalSource"] in self.fail_image_urls
        ]
        if errors:
            return {"data": {"productCreateMedia": {"media": [], "mediaUserErrors": errors}}}
        edges = self.products[product_id]["images"]["edges"]
        for m in media:
            edges.append({"node": {"id": None, "url": m["originalSource"], "altText": m["alt"], "width": None, "height": None}})
        return {"data": {"productCreateMedia": {"media": [], "mediaUserErrors": []}}}


@pytest.fixture
def fake_shopify():
    return FakeShopify()


@pytest.fixture
def shopify_client(fake_shopify, shop):
    """ShopifyAdminClient wired to the in-memory fake."""
    from enrichment.shopify.client import ShopifyAdminClient

    http_client = httpx.Client(transport=httpx.MockTransport(fake_shopify.handler))
    client = ShopifyAdminClient(shop, "shpat_test", http_client=http_client)
    yield client
    http_client.close()
