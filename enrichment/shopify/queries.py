"""
Read queries against the Shopify Admin API.

Price, compareAtPrice and cost are never selected.
"""

import logging
from typing import Optional

from enrichment.shopify.client import ShopifyAdminClient, ShopifyAPIError
from enrichment.shopify.types import CatalogItem, ProductPage

logger = logging.getLogger(__name__)

PAGE_SIZE = 50

PRODUCT_FIELDS = """
  id
  title
  handle
  descriptionHtml
  productType
  vendor
  tags
  status
  totalInventory
  category {
    id
    name
    fullName
  }
  seo {
    title
    description
  }
  variants(first: 10) {
    edges {
      node {
        id
        title
        sku
        barcode
        inventoryQuantity
      }
    }
  }
  images(first: 10) {
    edges {
      node {
        id
        url
        altText
        width
        height
      }
    }
  }
  metafields(first: 30) {
    edges {
      node {
        id
        namespace
        key
        value
        type
      }
    }
  }
"""

PRODUCTS_FOR_ENRICHMENT_QUERY = """
query GetProductsForEnrichment($cursor: String, $query: String, $first: Int!) {
  products(first: $first, after: $cursor, query: $query, sortKey: CREATED_AT, reverse: true) {
    edges {
      node {%s}
    }
    pageInfo {
      hasNextPage
      endCursor
    }
  }
}
""" % PRODUCT_FIELDS

SINGLE_PRODUCT_QUERY = """
query GetProduct($id: ID!) {
  product(id: $id) {%s}
}
""" % PRODUCT_FIELDS


def fetch_products_page(
    client: ShopifyAdminClient,
    cursor: Optional[str] = None,
    search: str = "status:active",
    page_size: int = PAGE_SIZE,
) -> ProductPage:
    """
    Fetch one page of products, newest first.

    Raises:
        ShopifyAPIError: If the response carries no data
    """
    body = client.execute(
        PRODUCTS_FOR_ENRICHMENT_QUERY,
        {"cursor": cursor, "query": search, "first": page_size},
    )
    data = body.get("data")
    if not data or data.get("products") is None:
        raise ShopifyAPIError(f"Failed to fetch products: {body.get('errors') or 'no data returned'}")

    products = data["products"]
    page_info = products.get("pageInfo") or {}
    items = [CatalogItem.from_graphql(edge["node"]) for edge in products.get("edges", [])]

    logger.debug("Fetched %d products from %s (cursor=%s)", len(items), client.shop, cursor)

    return ProductPage(
        items=items,
        has_next_page=bool(page_info.get("hasNextPage")),
        end_cursor=page_info.get("endCursor"),
    )


def fetch_product(client: ShopifyAdminClient, product_id: str) -> Optional[CatalogItem]:
    """
    Fetch a single product by GID.

    Returns:
        CatalogItem, or None if the product does not exist

    Raises:
        ShopifyAPIError: If the response carries no data
    """
    body = client.execute(SINGLE_PRODUCT_QUERY, {"id": product_id})
    data = body.get("data")
    if data is None:
        raise ShopifyAPIError(f"Failed to fetch product {product_id}: {body.get('errors') or 'no data returned'}")

    node = data.get("product")
    if not node:
        return None
    return CatalogItem.from_graphql(node)
