"""
Static validation of enrichment proposals.

A proposal must pass every rule before it can be applied or queued for
approval. The only corrections made here are truncations of over-long
SEO fields; everything else is reported as an error.
"""

import json
import re
from typing import List, Tuple

from enrichment.services.metafields import VALID_METAFIELD_KEYS
from enrichment.services.proposal import EnrichmentProposal

SEO_TITLE_MAX = 70
SEO_DESCRIPTION_MAX = 160

# Monetary terms in Spanish and English. Word boundaries keep
# "Costa Rica" and "costoso" out.
FORBIDDEN_TERMS = [
    r"\bprecios?\b",
    r"\bcostos?\b",
    r"\bcosts?\b",
    r"\bprices?\b",
    r"\bcolones\b",
    r"\bd[oó]lares\b",
    r"\busd\b",
    r"₡",
    r"[$€₡]\s*\d",
]
FORBIDDEN_RE = re.compile("|".join(FORBIDDEN_TERMS), re.IGNORECASE)

SCRIPT_RE = re.compile(r"<\s*script", re.IGNORECASE)
UNSAFE_HTML_PATTERNS = [
    re.compile(r"<\s*style", re.IGNORECASE),
    re.compile(r"<[^>]*\son[a-z]+\s*=", re.IGNORECASE),
    re.compile(r"javascript\s*:", re.IGNORECASE),
]

CRITICAL_PREFIX = "CRITICAL:"


def contains_forbidden_terms(text: str) -> bool:
    return bool(FORBIDDEN_RE.search(text or ""))


def validate(proposal: EnrichmentProposal) -> Tuple[bool, List[str]]:
    """
    Validate a proposal, truncating over-long SEO fields in place.

    Returns:
        (valid, errors); errors starting with "CRITICAL:" block apply
        regardless of confidence
    """
    errors: List[str] = []

    confidence = proposal.confidence_score
    if not isinstance(confidence, float) or not 0.0 <= confidence <= 1.0:
        errors.append("confidence_score must be a number between 0 and 1")

    description = proposal.description_html or ""
    if not description.strip():
        errors.append("description_html is empty")
    elif SCRIPT_RE.search(description):
        errors.append("description_html contains script tags")

    if description and any(pattern.search(description) for pattern in UNSAFE_HTML_PATTERNS):
        errors.append("description_html contains unsafe content")

    if not proposal.tags:
        errors.append("tags must be a non-empty array")

    for key in proposal.metafields:
        if key not in VALID_METAFIELD_KEYS:
            errors.append(f"Invalid metafield key: {key}")

    if len(proposal.seo_title) > SEO_TITLE_MAX:
        proposal.seo_title = proposal.seo_title[:SEO_TITLE_MAX]
    if len(proposal.seo_description) > SEO_DESCRIPTION_MAX:
        proposal.seo_description = proposal.seo_description[:SEO_DESCRIPTION_MAX]

    serialized = json.dumps(proposal.to_dict(), ensure_ascii=False)
    if contains_forbidden_terms(serialized):
        errors.append(f"{CRITICAL_PREFIX} Response contains price/cost information")

    return not errors, errors
