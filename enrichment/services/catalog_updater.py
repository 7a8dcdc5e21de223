"""
Applies accepted enrichment proposals to the Shopify catalog.

Rules:
- Vendor, variants, prices and cost are never written
- Description HTML is sanitized to a small allowlist of tags
- Tags are merged case-insensitively; existing tags are never replaced
- Metafields and images go as one batch first, then one by one if the
  batch is rejected, so one bad member does not block the rest
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from bs4 import BeautifulSoup, Comment

from enrichment.services.metafields import NAMESPACE, metafield_type
from enrichment.services.proposal import EnrichmentProposal
from enrichment.shopify import mutations
from enrichment.shopify.client import ShopifyAdminClient
from enrichment.shopify.mutations import MutationResult

logger = logging.getLogger(__name__)

ALLOWED_HTML_TAGS = {
    "p", "br", "strong", "em", "ul", "ol", "li", "h2", "h3", "h4",
    "span", "div", "table", "tr", "td", "th", "thead", "tbody",
}
ALLOWED_ATTRIBUTES = {
    "span": {"class"},
    "div": {"class"},
}
# Removed along with everything inside them
DROPPED_WITH_CONTENT = {"script", "style", "iframe", "object", "embed", "noscript", "textarea", "template"}

DECIMAL_METAFIELD_TYPE = "number_decimal"

_NUMBER_RE = re.compile(r"\d+(?:[.,]\d+)?")
_GRAMS_RE = re.compile(r"\d\s*(?:g|gr|gramos|grams)\b", re.IGNORECASE)


@dataclass
class UpdateResult:
    product_updated: bool = False
    metafields_updated: bool = False
    images_added: bool = False
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    applied: Dict[str, Any] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return not self.errors


def sanitize_html(html: str) -> str:
    """Reduce HTML to the allowed tags and attributes."""
    soup = BeautifulSoup(html or "", "html.parser")

    for comment in soup.find_all(string=lambda text: isinstance(text, Comment)):
        comment.extract()

    for tag in soup.find_all(sorted(DROPPED_WITH_CONTENT)):
        tag.decompose()

    for tag in soup.find_all(True):
        if tag.name not in ALLOWED_HTML_TAGS:
            tag.unwrap()
            continue
        allowed = ALLOWED_ATTRIBUTES.get(tag.name, set())
        tag.attrs = {name: value for name, value in tag.attrs.items() if name in allowed}

    return str(soup).strip()


def merge_tags(existing: List[str], proposed: List[str]) -> List[str]:
    """Keep existing tags verbatim and append only genuinely new ones."""
    seen = {tag.lower() for tag in existing}
    merged = list(existing)
    for tag in proposed:
        tag = tag.strip()
        if tag and tag.lower() not in seen:
            seen.add(tag.lower())
            merged.append(tag)
    return merged


def parse_decimal(value: str) -> Optional[str]:
    """
    Extract a decimal weight in kilograms from free text.

    "1,5 kg" -> "1.5"; "850 g" -> "0.85"; "ligero" -> None
    """
    match = _NUMBER_RE.search(value or "")
    if not match:
        return None
    number = float(match.group(0).replace(",", "."))
    if _GRAMS_RE.search(value):
        number = number / 1000
    return f"{number:.3f}".rstrip("0").rstrip(".")


def build_metafield_inputs(owner_id: str, metafields: Dict[str, Optional[str]], warnings: List[str]) -> List[Dict[str, str]]:
    inputs = []
    for full_key, value in metafields.items():
        if value is None or not str(value).strip():
            continue

        namespace, _, key = full_key.partition(".")
        if not key:
            namespace, key = NAMESPACE, full_key

        value_type = metafield_type(key)
        value = str(value).strip()
        if value_type == DECIMAL_METAFIELD_TYPE:
            parsed = parse_decimal(value)
            if parsed is None:
                warnings.append(f"Skipped {full_key}: cannot parse {value!r} as a number")
                continue
            value = parsed

        inputs.append({
            "ownerId": owner_id,
            "namespace": namespace,
            "key": key,
            "value": value,
            "type": value_type,
        })
    return inputs


def build_image_inputs(proposal: EnrichmentProposal, image_urls: List[str]) -> List[Dict[str, str]]:
    alt_texts = proposal.image_analysis.suggested_alt_texts
    fallback = proposal.product_type or "Producto"
    return [
        {
            "originalSource": url,
            "alt": (alt_texts[i] if i < len(alt_texts) and alt_texts[i] else f"{fallback} - imagen {i + 1}"),
        }
        for i, url in enumerate(image_urls)
    ]


class CatalogUpdater:
    """
    Writes one proposal to one product.

    Usage:
        updater = CatalogUpdater(client)
        result = updater.apply(product_id, proposal, item.tags, image_urls)
    """

    def __init__(self, client: ShopifyAdminClient):
        self.client = client

    def apply(
        self,
        product_id: str,
        proposal: EnrichmentProposal,
        existing_tags: List[str],
        image_urls: Optional[List[str]] = None,
    ) -> UpdateResult:
        result = UpdateResult()

        self._update_product(product_id, proposal, existing_tags, result)

        metafield_inputs = build_metafield_inputs(product_id, proposal.metafields, result.warnings)
        if metafield_inputs:
            applied = self._apply_with_fallback(
                "metafields",
                metafield_inputs,
                lambda batch: mutations.set_metafields(self.client, batch),
                result,
            )
            result.metafields_updated = bool(applied)
            result.applied["metafields"] = {
                f"{entry['namespace']}.{entry['key']}": entry["value"] for entry in applied
            }

        if image_urls:
            applied = self._apply_with_fallback(
                "images",
                build_image_inputs(proposal, image_urls),
                lambda batch: mutations.add_product_images(self.client, product_id, batch),
                result,
            )
            result.images_added = bool(applied)
            result.applied["images"] = [entry["originalSource"] for entry in applied]

        logger.info(
            "Applied enrichment to %s (product: %s, metafields: %s, images: %s, errors: %d, warnings: %d)",
            product_id,
            result.product_updated,
            result.metafields_updated,
            result.images_added,
            len(result.errors),
            len(result.warnings),
        )
        return result

    def _update_product(
        self,
        product_id: str,
        proposal: EnrichmentProposal,
        existing_tags: List[str],
        result: UpdateResult,
    ) -> None:
        product_input: Dict[str, Any] = {"id": product_id}

        description = sanitize_html(proposal.description_html)
        if description:
            product_input["descriptionHtml"] = description
        if proposal.product_type:
            product_input["productType"] = proposal.product_type

        tags = merge_tags(existing_tags, proposal.tags)
        product_input["tags"] = tags
        logger.debug(
            "Tags for %s: %d existing + %d new",
            product_id,
            len(existing_tags),
            len(tags) - len(existing_tags),
        )

        seo = {}
        if proposal.seo_title:
            seo["title"] = proposal.seo_title
        if proposal.seo_description:
            seo["description"] = proposal.seo_description
        if seo:
            product_input["seo"] = seo

        outcome = mutations.update_product(self.client, product_input)
        if outcome.success:
            result.product_updated = True
            result.applied.update({k: v for k, v in product_input.items() if k != "id"})
        else:
            result.errors.extend(outcome.errors)

    def _apply_with_fallback(
        self,
        label: str,
        entries: List[Dict[str, str]],
        send: Callable[[List[Dict[str, str]]], MutationResult],
        result: UpdateResult,
    ) -> List[Dict[str, str]]:
        """
        Send the whole batch; on failure retry each entry on its own.

        Returns:
            Entries that were written
        """
        outcome = send(entries)
        if outcome.success:
            return list(entries)

        if len(entries) == 1:
            result.errors.extend(f"{label}: {error}" for error in outcome.errors)
            return []

        logger.warning("Batch %s update failed (%s), retrying individually", label, "; ".join(outcome.errors))

        written = []
        failures = []
        for entry in entries:
            single = send([entry])
            if single.success:
                written.append(entry)
            else:
                failures.extend(single.errors)

        if written:
            result.warnings.extend(f"{label}: {error}" for error in failures)
        else:
            result.errors.extend(f"{label}: {error}" for error in failures or outcome.errors)
        return written
