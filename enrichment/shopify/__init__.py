"""
Shopify Admin GraphQL access for the enrichment pipeline.

Reads return CatalogItem dataclasses; writes return MutationResult and
never raise for user errors. Pricing fields are never read or written.
"""

from enrichment.shopify.client import ShopifyAdminClient, ShopifyAPIError
from enrichment.shopify.types import (
    CatalogImage,
    CatalogItem,
    CatalogMetafield,
    CatalogVariant,
    ProductPage,
)

__all__ = [
    "ShopifyAdminClient",
    "ShopifyAPIError",
    "CatalogImage",
    "CatalogItem",
    "CatalogMetafield",
    "CatalogVariant",
    "ProductPage",
]
