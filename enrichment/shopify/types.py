"""
Data types for catalog items read from the Shopify Admin API.

Parsed from GraphQL nodes (edges/node connections are flattened). Price
and cost fields are never requested, so they never appear here.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional


def _edges(connection: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Flatten a GraphQL connection into its list of nodes."""
    if not connection:
        return []
    return [edge["node"] for edge in connection.get("edges", []) if edge.get("node")]


@dataclass
class CatalogVariant:
    id: str
    title: str = ""
    sku: Optional[str] = None
    barcode: Optional[str] = None
    inventory_quantity: int = 0


@dataclass
class CatalogImage:
    url: str
    id: Optional[str] = None
    alt_text: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None


@dataclass
class CatalogMetafield:
    namespace: str
    key: str
    value: Optional[str]
    type: str = "single_line_text_field"
    id: Optional[str] = None


@dataclass
class CatalogItem:
    """
    A product as the enrichment pipeline sees it.

    Read-only to the pipeline; the catalog is the owner of this data.
    """

    id: str
    title: str = ""
    handle: str = ""
    description_html: str = ""
    product_type: str = ""
    vendor: str = ""
    tags: List[str] = field(default_factory=list)
    status: str = "ACTIVE"
    total_inventory: int = 0
    category: Optional[str] = None
    seo_title: Optional[str] = None
    seo_description: Optional[str] = None
    variants: List[CatalogVariant] = field(default_factory=list)
    images: List[CatalogImage] = field(default_factory=list)
    metafields: List[CatalogMetafield] = field(default_factory=list)

    @classmethod
    def from_graphql(cls, node: Dict[str, Any]) -> "CatalogItem":
        """Build a CatalogItem from a `product` GraphQL node."""
        category = node.get("category") or {}
        seo = node.get("seo") or {}

        return cls(
            id=node["id"],
            title=node.get("title") or "",
            handle=node.get("handle") or "",
            description_html=node.get("descriptionHtml") or "",
            product_type=node.get("productType") or "",
            vendor=node.get("vendor") or "",
            tags=list(node.get("tags") or []),
            status=node.get("status") or "",
            total_inventory=node.get("totalInventory") or 0,
            category=category.get("fullName") or category.get("name"),
            seo_title=seo.get("title"),
            seo_description=seo.get("description"),
            variants=[
                CatalogVariant(
                    id=v["id"],
                    title=v.get("title") or "",
                    sku=v.get("sku") or None,
                    barcode=v.get("barcode") or None,
                    inventory_quantity=v.get("inventoryQuantity") or 0,
                )
                for v in _edges(node.get("variants"))
            ],
            images=[
                CatalogImage(
                    url=i["url"],
                    id=i.get("id"),
                    alt_text=i.get("altText"),
                    width=i.get("width"),
                    height=i.get("height"),
                )
                for i in _edges(node.get("images"))
            ],
            metafields=[
                CatalogMetafield(
                    namespace=m["namespace"],
                    key=m["key"],
                    value=m.get("value"),
                    type=m.get("type") or "single_line_text_field",
                    id=m.get("id"),
                )
                for m in _edges(node.get("metafields"))
            ],
        )

    @property
    def is_active(self) -> bool:
        return self.status.upper() == "ACTIVE"

    @property
    def sku(self) -> Optional[str]:
        """SKU of the first variant."""
        return self.variants[0].sku if self.variants else None

    @property
    def barcode(self) -> Optional[str]:
        """Barcode of the first variant."""
        return self.variants[0].barcode if self.variants else None

    def custom_metafields(self) -> Dict[str, Optional[str]]:
        """Metafields in the `custom` namespace, keyed by bare key."""
        return {m.key: m.value for m in self.metafields if m.namespace == "custom"}

    def with_changes(self, **changes) -> "CatalogItem":
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)

    def snapshot(self) -> Dict[str, Any]:
        """JSON-safe snapshot stored on the log as the original data."""
        return {
            "id": self.id,
            "title": self.title,
            "descriptionHtml": self.description_html,
            "productType": self.product_type,
            "vendor": self.vendor,
            "tags": list(self.tags),
            "category": self.category,
            "seo": {"title": self.seo_title, "description": self.seo_description},
            "imageCount": len(self.images),
            "metafields": self.custom_metafields(),
        }


@dataclass
class ProductPage:
    """One page of the active-product listing."""

    items: List[CatalogItem]
    has_next_page: bool = False
    end_cursor: Optional[str] = None
