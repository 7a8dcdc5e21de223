"""
Barcode lookup against public UPC databases.

Tries Go-UPC (when a key is configured), then the UPCitemdb trial API.
Hits are cached for 30 days. Misses and failures return None.
"""

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional
from urllib.parse import quote

from django.conf import settings

from enrichment.discovery.cache import ProviderCache
from enrichment.discovery.providers import fetch_json

logger = logging.getLogger(__name__)

GO_UPC_URL = "https://go-upc.com/api/v1/code/{code}"
UPCITEMDB_URL = "https://api.upcitemdb.com/prod/trial/lookup"


@dataclass
class BarcodeData:
    name: str = ""
    description: str = ""
    brand: str = ""
    category: str = ""
    image_url: Optional[str] = None
    specs: Dict[str, str] = field(default_factory=dict)
    source: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BarcodeData":
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


class BarcodeLookup:
    CACHE_CATEGORY = "barcode"

    def __init__(self, go_upc_key: str = None, cache: ProviderCache = None, breaker=None):
        self.go_upc_key = go_upc_key if go_upc_key is not None else getattr(settings, "GO_UPC_API_KEY", "")
        self.cache = cache or ProviderCache()
        self.breaker = breaker

    def lookup(self, barcode: str) -> Optional[BarcodeData]:
        barcode = (barcode or "").strip()
        if not barcode:
            return None

        cached = self.cache.get(self.CACHE_CATEGORY, barcode)
        if cached is not None:
            return BarcodeData.from_dict(cached)

        data = self._go_upc(barcode) or self._upcitemdb(barcode)
        if data:
            self.cache.set(self.CACHE_CATEGORY, barcode, data.to_dict())
        return data

    def _go_upc(self, barcode: str) -> Optional[BarcodeData]:
        if not self.go_upc_key:
            return None

        body = fetch_json(
            "go_upc",
            GO_UPC_URL.format(code=quote(barcode, safe="")),
            headers={"Authorization": f"Bearer {self.go_upc_key}"},
            breaker=self.breaker,
        )
        product = (body or {}).get("product")
        if not product:
            return None

        return BarcodeData(
            name=product.get("name") or "",
            description=product.get("description") or "",
            brand=product.get("brand") or "",
            category=product.get("category") or "",
            image_url=product.get("imageUrl") or None,
            specs=product.get("specs") or {},
            source="go-upc",
        )

    def _upcitemdb(self, barcode: str) -> Optional[BarcodeData]:
        body = fetch_json(
            "upcitemdb",
            UPCITEMDB_URL,
            params={"upc": barcode},
            breaker=self.breaker,
        )
        items = (body or {}).get("items") or []
        if not items:
            return None

        item = items[0]
        specs = {
            name: item[source_key]
            for name, source_key in (("dimensions", "dimension"), ("weight", "weight"), ("model", "model"))
            if item.get(source_key)
        }
        images = item.get("images") or []

        return BarcodeData(
            name=item.get("title") or "",
            description=item.get("description") or "",
            brand=item.get("brand") or "",
            category=item.get("category") or "",
            image_url=images[0] if images else None,
            specs=specs,
            source="upcitemdb",
        )
