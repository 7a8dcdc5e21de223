"""
Sentry error tracking for the enrichment pipeline.

- Adds breadcrumbs for pipeline steps (shop, product, run)
- Filters sensitive data (tokens, API keys, secrets)
- Captures per-product exceptions with their pipeline context

Usage:
    from enrichment.monitoring import capture_pipeline_error

    try:
        pipeline.process_item(run, item, ...)
    except Exception as e:
        capture_pipeline_error(e, shop=shop, product_id=item.id, run_id=run.id)
"""

import logging
from typing import Any, Dict, Optional

import sentry_sdk

logger = logging.getLogger(__name__)

# Sensitive fields to filter from Sentry events
SENSITIVE_FIELDS = {
    "access_token",
    "api_key",
    "apikey",
    "api-key",
    "authorization",
    "password",
    "secret",
    "token",
    "x-api-key",
    "x-shopify-access-token",
}


def _filter_sensitive_data(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Filter sensitive data from a dictionary.

    Replaces values for keys that match sensitive field names.
    """
    if not isinstance(data, dict):
        return data

    filtered = {}
    for key, value in data.items():
        key_lower = str(key).lower()

        if any(sensitive in key_lower for sensitive in SENSITIVE_FIELDS):
            filtered[key] = "[Filtered]"
        elif isinstance(value, dict):
            filtered[key] = _filter_sensitive_data(value)
        else:
            filtered[key] = value

    return filtered


def add_pipeline_breadcrumb(
    shop: str,
    message: str,
    product_id: Optional[str] = None,
    run_id: Optional[str] = None,
    level: str = "info",
    extra_data: Optional[Dict[str, Any]] = None,
) -> None:
    """Add a breadcrumb to Sentry for pipeline context."""
    data = {"shop": shop}
    if product_id:
        data["product_id"] = product_id
    if run_id:
        data["run_id"] = str(run_id)
    if extra_data:
        data.update(_filter_sensitive_data(extra_data))

    try:
        sentry_sdk.add_breadcrumb(
            category="enrichment",
            message=message,
            level=level,
            data=data,
        )
    except Exception as e:
        logger.warning(f"Failed to add Sentry breadcrumb: {e}")


def capture_pipeline_error(
    error: Exception,
    shop: str,
    product_id: Optional[str] = None,
    run_id: Optional[str] = None,
    extra_context: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Capture a pipeline error to Sentry with full context.

    Args:
        error: The exception that occurred
        shop: Shop domain
        product_id: Product GID being processed
        run_id: EnrichmentRun ID
        extra_context: Additional context (will be filtered for sensitive data)
    """
    add_pipeline_breadcrumb(
        shop=shop,
        message=f"Error: {type(error).__name__}",
        product_id=product_id,
        run_id=run_id,
        level="error",
    )

    try:
        with sentry_sdk.new_scope() as scope:
            scope.set_tag("enrichment.shop", shop)
            if product_id:
                scope.set_extra("product_id", product_id)
            if run_id:
                scope.set_extra("run_id", str(run_id))
            if extra_context:
                scope.set_extra("pipeline_context", _filter_sensitive_data(extra_context))

            sentry_sdk.capture_exception(error)

    except Exception as e:
        logger.warning(f"Failed to capture exception to Sentry: {e}")
