"""
Write mutations against the Shopify Admin API.

Every mutation returns a MutationResult. User errors and transport
failures are reported as errors on the result, never raised, so the
catalog updater can fall back to per-item retries.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

from enrichment.shopify.client import ShopifyAdminClient, ShopifyAPIError

logger = logging.getLogger(__name__)

# Keys that must never reach productUpdate
FORBIDDEN_PRODUCT_KEYS = ("variants", "price", "compareAtPrice", "cost")

UPDATE_PRODUCT_MUTATION = """
mutation UpdateProduct($input: ProductInput!) {
  productUpdate(input: $input) {
    product {
      id
      title
      descriptionHtml
      productType
      tags
    }
    userErrors {
      field
      message
    }
  }
}
"""

SET_METAFIELDS_MUTATION = """
mutation MetafieldsSet($metafields: [MetafieldsSetInput!]!) {
  metafieldsSet(metafields: $metafields) {
    metafields {
      id
      namespace
      key
      value
    }
    userErrors {
      field
      message
    }
  }
}
"""

CREATE_MEDIA_MUTATION = """
mutation ProductCreateMedia($productId: ID!, $media: [CreateMediaInput!]!) {
  productCreateMedia(productId: $productId, media: $media) {
    media {
      ... on MediaImage {
        id
        image {
          url
          altText
        }
      }
    }
    mediaUserErrors {
      field
      message
    }
  }
}
"""


@dataclass
class MutationResult:
    success: bool
    errors: List[str] = field(default_factory=list)


def _format_user_errors(errors: List[Dict[str, Any]]) -> List[str]:
    formatted = []
    for error in errors:
        error_field = error.get("field")
        if isinstance(error_field, list):
            error_field = ".".join(str(part) for part in error_field)
        formatted.append(f"{error_field}: {error.get('message')}")
    return formatted


def _run(
    client: ShopifyAdminClient,
    document: str,
    variables: Dict[str, Any],
    root: str,
    errors_key: str = "userErrors",
) -> MutationResult:
    try:
        body = client.execute(document, variables)
    except ShopifyAPIError as e:
        logger.warning("%s failed on %s: %s", root, client.shop, e)
        return MutationResult(success=False, errors=[str(e)])

    data = body.get("data")
    if not data or data.get(root) is None:
        gql_errors = body.get("errors") or "No data returned"
        return MutationResult(
            success=False,
            errors=[f"Shopify GraphQL error: {json.dumps(gql_errors, ensure_ascii=False)}"],
        )

    user_errors = data[root].get(errors_key) or []
    return MutationResult(success=not user_errors, errors=_format_user_errors(user_errors))


def update_product(client: ShopifyAdminClient, product_input: Dict[str, Any]) -> MutationResult:
    """Update text fields of a product. Pricing keys are stripped first."""
    safe_input = {
        key: value for key, value in product_input.items()
        if key not in FORBIDDEN_PRODUCT_KEYS
    }
    return _run(client, UPDATE_PRODUCT_MUTATION, {"input": safe_input}, "productUpdate")


def set_metafields(client: ShopifyAdminClient, metafields: List[Dict[str, Any]]) -> MutationResult:
    """Set a batch of metafields in one call."""
    return _run(client, SET_METAFIELDS_MUTATION, {"metafields": metafields}, "metafieldsSet")


def add_product_images(
    client: ShopifyAdminClient,
    product_id: str,
    images: List[Dict[str, str]],
) -> MutationResult:
    """
    Attach images to a product.

    Args:
        images: Dicts with `originalSource` and `alt`
    """
    media = [
        {
            "originalSource": image["originalSource"],
            "alt": image.get("alt", ""),
            "mediaContentType": "IMAGE",
        }
        for image in images
    ]
    return _run(
        client,
        CREATE_MEDIA_MUTATION,
        {"productId": product_id, "media": media},
        "productCreateMedia",
        errors_key="mediaUserErrors",
    )
