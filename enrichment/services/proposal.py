"""
Structured enrichment proposal returned by the generative model.

Stored on logs using the model's own key names so that a reviewer sees,
and an approval applies, exactly what the model produced.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

IMAGE_QUALITY_TIERS = ("buena", "regular", "mala")


def coerce_confidence(value: Any) -> Optional[float]:
    """Numbers and numeric strings become floats; anything else is None."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _metafield_value(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (dict, list)):
        return None
    if isinstance(value, str):
        return value
    return str(value)


@dataclass
class ImageAnalysis:
    current_quality: str = "regular"
    needs_more_images: bool = False
    suggested_alt_texts: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> "ImageAnalysis":
        if not isinstance(data, dict):
            return cls()
        quality = data.get("current_quality")
        alt_texts = data.get("suggested_alt_texts")
        return cls(
            current_quality=quality if quality in IMAGE_QUALITY_TIERS else "regular",
            needs_more_images=bool(data.get("needs_more_images")),
            suggested_alt_texts=[t for t in alt_texts if isinstance(t, str)] if isinstance(alt_texts, list) else [],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "current_quality": self.current_quality,
            "needs_more_images": self.needs_more_images,
            "suggested_alt_texts": list(self.suggested_alt_texts),
        }


@dataclass
class EnrichmentProposal:
    """Content the model proposes for one product."""

    confidence_score: Optional[float] = None
    description_html: str = ""
    product_type: str = ""
    category_suggestion: str = ""
    tags: List[str] = field(default_factory=list)
    seo_title: str = ""
    seo_description: str = ""
    metafields: Dict[str, Optional[str]] = field(default_factory=dict)
    image_analysis: ImageAnalysis = field(default_factory=ImageAnalysis)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EnrichmentProposal":
        tags = data.get("tags")
        metafields = data.get("metafields")
        return cls(
            confidence_score=coerce_confidence(data.get("confidence_score")),
            description_html=_text(data.get("description_html")),
            product_type=_text(data.get("product_type")),
            category_suggestion=_text(data.get("category_suggestion")),
            tags=[t.strip() for t in tags if isinstance(t, str) and t.strip()] if isinstance(tags, list) else [],
            seo_title=_text(data.get("seo_title")),
            seo_description=_text(data.get("seo_description")),
            metafields=(
                {str(k): _metafield_value(v) for k, v in metafields.items()}
                if isinstance(metafields, dict) else {}
            ),
            image_analysis=ImageAnalysis.from_dict(data.get("image_analysis")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "confidence_score": self.confidence_score,
            "description_html": self.description_html,
            "product_type": self.product_type,
            "category_suggestion": self.category_suggestion,
            "tags": list(self.tags),
            "seo_title": self.seo_title,
            "seo_description": self.seo_description,
            "metafields": dict(self.metafields),
            "image_analysis": self.image_analysis.to_dict(),
        }
