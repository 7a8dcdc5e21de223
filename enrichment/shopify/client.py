"""
Shopify Admin GraphQL client.

A thin synchronous wrapper over httpx that posts queries to a shop's
Admin API endpoint with its offline access token. Transport failures,
non-2xx responses and non-JSON bodies raise ShopifyAPIError; GraphQL
`errors` are returned to the caller in the parsed body.
"""

import logging
from typing import Any, Dict, Optional

import httpx
from django.conf import settings

logger = logging.getLogger(__name__)


class ShopifyAPIError(Exception):
    """Raised when the Admin API cannot be reached or answers garbage."""


class ShopifyAdminClient:
    """
    Admin API client bound to one shop.

    Usage:
        client = ShopifyAdminClient("store.myshopify.com", token)
        body = client.execute(QUERY, {"id": product_id})
    """

    def __init__(
        self,
        shop: str,
        access_token: str,
        api_version: Optional[str] = None,
        timeout: Optional[float] = None,
        http_client: Optional[httpx.Client] = None,
    ):
        self.shop = shop
        self.access_token = access_token
        self.api_version = api_version or getattr(settings, "SHOPIFY_API_VERSION", "2025-01")
        self.timeout = timeout or getattr(settings, "SHOPIFY_TIMEOUT", 30)
        self._http = http_client or httpx.Client(timeout=self.timeout)
        self._owns_http = http_client is None

    @property
    def endpoint(self) -> str:
        return f"https://{self.shop}/admin/api/{self.api_version}/graphql.json"

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "X-Shopify-Access-Token": self.access_token,
        }

    def execute(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Execute a GraphQL document.

        Args:
            query: GraphQL query or mutation
            variables: Variables for the document

        Returns:
            Parsed response body (with `data` and possibly `errors`)

        Raises:
            ShopifyAPIError: On transport errors, non-2xx status or non-JSON body
        """
        try:
            response = self._http.post(
                self.endpoint,
                json={"query": query, "variables": variables or {}},
                headers=self._get_headers(),
            )
        except httpx.HTTPError as e:
            raise ShopifyAPIError(f"Shopify request to {self.shop} failed: {e}") from e

        if response.status_code >= 400:
            raise ShopifyAPIError(
                f"Shopify GraphQL HTTP error {response.status_code}: {response.text[:300]}"
            )

        try:
            body = response.json()
        except ValueError as e:
            raise ShopifyAPIError(
                f"Shopify returned non-JSON response: {response.text[:300]}"
            ) from e

        if body.get("errors"):
            logger.warning("GraphQL errors for %s: %s", self.shop, body["errors"])

        return body

    def close(self):
        if self._owns_http:
            self._http.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()
