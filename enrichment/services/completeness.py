"""
Completeness Scoring Service

This module scores how complete a catalog item is and lists the field
categories that need enrichment. Pure functions, no I/O.

Field weights sum to 100 and reflect how much each field matters for
search visibility and conversion.
"""

import re
from dataclasses import dataclass, field
from typing import List

from enrichment.services.metafields import METAFIELD_KEYS, NAMESPACE
from enrichment.shopify.types import CatalogItem

# ============================================================
# Field Weights Configuration
# ============================================================

FIELD_WEIGHTS = {
    "description": 20,
    "images": 15,
    "productType": 5,
    "category": 5,
    "vendor": 3,
    "tags": 7,
    "sku": 5,
    "seoTitle": 8,
    "seoDescription": 7,
    "metafields": 25,
}

MAX_SCORE = sum(FIELD_WEIGHTS.values())

# Description gets partial credit above this many characters of text
DESCRIPTION_MIN_LENGTH = 50
# and full credit at this length
DESCRIPTION_FULL_LENGTH = 300

MAX_SCORED_IMAGES = 5
POINTS_PER_IMAGE = 2
ALT_TEXT_POINTS = 5

MIN_TAGS = 3

DEFAULT_ENRICH_THRESHOLD = 80

_TAG_RE = re.compile(r"<[^>]*>")


@dataclass
class CompletenessAnalysis:
    """Per-field completeness of one item plus its overall score."""

    has_description: bool = False
    description_length: int = 0
    has_images: bool = False
    image_count: int = 0
    images_have_alt_text: bool = False
    has_product_type: bool = False
    has_category: bool = False
    has_vendor: bool = False
    has_tags: bool = False
    has_sku: bool = False
    has_barcode: bool = False
    has_seo_title: bool = False
    has_seo_description: bool = False
    metafields_filled: int = 0
    metafields_total: int = 0
    completeness_score: int = 0
    fields_to_enrich: List[str] = field(default_factory=list)


def strip_html(html: str) -> str:
    return _TAG_RE.sub("", html or "").strip()


def _round_half_up(value: float) -> int:
    return int(value + 0.5)


def _present(value) -> bool:
    return bool(value and str(value).strip())


# ============================================================
# Completeness Calculation
# ============================================================

def analyze(item: CatalogItem) -> CompletenessAnalysis:
    """
    Score the completeness of a catalog item.

    Args:
        item: CatalogItem to analyze

    Returns:
        CompletenessAnalysis with a score in [0, 100]
    """
    result = CompletenessAnalysis()
    fields_to_enrich = result.fields_to_enrich
    score = 0

    # Description: linear ramp up to full credit
    text = strip_html(item.description_html)
    result.description_length = len(text)
    result.has_description = result.description_length > DESCRIPTION_MIN_LENGTH
    if result.has_description:
        if result.description_length >= DESCRIPTION_FULL_LENGTH:
            score += FIELD_WEIGHTS["description"]
        else:
            score += _round_half_up(
                result.description_length / DESCRIPTION_FULL_LENGTH * FIELD_WEIGHTS["description"]
            )
    else:
        fields_to_enrich.append("description")

    # Images: quantity plus alt text coverage
    result.image_count = len(item.images)
    result.has_images = result.image_count > 0
    result.images_have_alt_text = result.has_images and all(
        _present(image.alt_text) for image in item.images
    )
    if result.has_images:
        image_score = min(result.image_count, MAX_SCORED_IMAGES) * POINTS_PER_IMAGE
        if result.images_have_alt_text:
            image_score += ALT_TEXT_POINTS
        score += min(image_score, FIELD_WEIGHTS["images"])
        if not result.images_have_alt_text:
            fields_to_enrich.append("imageAltText")
    else:
        fields_to_enrich.append("images")

    result.has_product_type = _present(item.product_type)
    if result.has_product_type:
        score += FIELD_WEIGHTS["productType"]
    else:
        fields_to_enrich.append("productType")

    result.has_category = _present(item.category)
    if result.has_category:
        score += FIELD_WEIGHTS["category"]
    else:
        fields_to_enrich.append("category")

    result.has_vendor = _present(item.vendor)
    if result.has_vendor:
        score += FIELD_WEIGHTS["vendor"]
    else:
        fields_to_enrich.append("vendor")

    result.has_tags = len(item.tags) >= MIN_TAGS
    if result.has_tags:
        score += FIELD_WEIGHTS["tags"]
    else:
        fields_to_enrich.append("tags")

    # SKU is scored but cannot be generated; barcode is informational only
    result.has_sku = _present(item.sku)
    if result.has_sku:
        score += FIELD_WEIGHTS["sku"]
    result.has_barcode = _present(item.barcode)

    result.has_seo_title = _present(item.seo_title)
    if result.has_seo_title:
        score += FIELD_WEIGHTS["seoTitle"]
    else:
        fields_to_enrich.append("seoTitle")

    result.has_seo_description = _present(item.seo_description)
    if result.has_seo_description:
        score += FIELD_WEIGHTS["seoDescription"]
    else:
        fields_to_enrich.append("seoDescription")

    # Metafields: share of the checklist filled under the custom namespace
    filled_keys = {
        m.key for m in item.metafields
        if m.namespace == NAMESPACE and _present(m.value)
    }
    result.metafields_total = len(METAFIELD_KEYS)
    result.metafields_filled = sum(1 for key in METAFIELD_KEYS if key in filled_keys)
    if result.metafields_total:
        score += _round_half_up(
            result.metafields_filled / result.metafields_total * FIELD_WEIGHTS["metafields"]
        )
    if result.metafields_filled < result.metafields_total:
        fields_to_enrich.append("metafields")

    result.completeness_score = max(0, min(MAX_SCORE, score))
    return result


def should_enrich(analysis: CompletenessAnalysis, threshold: int = DEFAULT_ENRICH_THRESHOLD) -> bool:
    """True when the item scores below the threshold."""
    return analysis.completeness_score < threshold
