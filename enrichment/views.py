"""
Service-level views.

- Health check for monitoring and load balancer checks
- Shopify webhook receiver
"""

import base64
import hashlib
import hmac
import json
import logging

from django.conf import settings
from django.core.cache import cache
from django.db import connection
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from enrichment.models import TriggerType
from enrichment.queue import enqueue_enrichment

logger = logging.getLogger(__name__)

HEALTH_CACHE_KEY = "health:ping"
PRODUCT_GID_PREFIX = "gid://shopify/Product/"


@require_GET
def health_check(request):
    """
    Health check endpoint for the enrichment service.

    Endpoint: GET /api/health/
    No authentication required (for load balancer checks).

    Response fields:
        - status: "healthy" or "degraded"
        - database: "connected" or "error"
        - cache: "connected" or "error"

    Returns:
        JsonResponse: HTTP 200 for healthy, HTTP 503 for degraded
    """
    database_status = "connected"
    try:
        connection.ensure_connection()
    except Exception as e:
        logger.error(f"Health check: database unavailable: {e}")
        database_status = "error"

    cache_status = "connected"
    try:
        cache.set(HEALTH_CACHE_KEY, "ok", 10)
        if cache.get(HEALTH_CACHE_KEY) != "ok":
            cache_status = "error"
    except Exception as e:
        logger.error(f"Health check: cache unavailable: {e}")
        cache_status = "error"

    healthy = database_status == "connected" and cache_status == "connected"
    return JsonResponse(
        {
            "status": "healthy" if healthy else "degraded",
            "database": database_status,
            "cache": cache_status,
        },
        status=200 if healthy else 503,
    )


def verify_webhook_signature(body: bytes, signature: str, secret: str) -> bool:
    """Check the base64 HMAC-SHA256 of the raw body against the header."""
    if not secret or not signature:
        return False
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).digest()
    expected = base64.b64encode(digest).decode("ascii")
    return hmac.compare_digest(expected, signature)


@csrf_exempt
@require_POST
def shopify_webhook(request):
    """
    Receive Shopify product webhooks.

    products/create queues a single-product run. products/update is only
    logged; our own writes would otherwise trigger it again.
    """
    signature = request.headers.get("X-Shopify-Hmac-Sha256", "")
    if not verify_webhook_signature(request.body, signature, getattr(settings, "SHOPIFY_API_SECRET", "")):
        logger.warning("Rejected webhook with invalid signature")
        return JsonResponse({"error": "Invalid signature"}, status=401)

    topic = request.headers.get("X-Shopify-Topic", "")
    shop = request.headers.get("X-Shopify-Shop-Domain", "")

    try:
        payload = json.loads(request.body or b"{}")
    except ValueError:
        return JsonResponse({"error": "Invalid JSON"}, status=400)
    if not isinstance(payload, dict):
        return JsonResponse({"error": "Payload must be a JSON object"}, status=400)

    if topic == "products/create":
        product_id = payload.get("admin_graphql_api_id")
        if not product_id and payload.get("id"):
            product_id = f"{PRODUCT_GID_PREFIX}{payload['id']}"
        if not shop or not product_id:
            return JsonResponse({"error": "Missing shop or product id"}, status=400)

        job_id = enqueue_enrichment(shop, TriggerType.WEBHOOK, product_id=product_id)
        return JsonResponse({"received": True, "job_id": job_id})

    if topic == "products/update":
        logger.info(f"Product update webhook for {shop}: {payload.get('id')} (not enqueued)")
    else:
        logger.info(f"Ignoring webhook topic {topic!r} from {shop}")

    return JsonResponse({"received": True})
