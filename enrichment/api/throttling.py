"""
Throttle classes for the enrichment API.
"""

from rest_framework.throttling import BaseThrottle

from enrichment.services.rate_limiter import get_trigger_rate_limiter


def get_shop(request):
    """Shop domain from the `X-Shop-Domain` header, the body or the query string."""
    shop = request.headers.get("X-Shop-Domain")
    if not shop and hasattr(request.data, "get"):
        shop = request.data.get("shop")
    if not shop:
        shop = request.query_params.get("shop")
    return (shop or "").strip() or None


class BatchTriggerThrottle(BaseThrottle):
    """
    Per-shop limit on manual batch triggers.

    Rate: TRIGGER_RATE_LIMIT per rolling TRIGGER_RATE_WINDOW seconds.
    Applied to: POST /api/v1/enrich/
    """

    def __init__(self):
        self.limiter = get_trigger_rate_limiter()
        self.shop = None

    def allow_request(self, request, view):
        if request.method != "POST":
            return True
        self.shop = get_shop(request)
        if self.shop is None:
            # The view rejects the request
            return True
        return self.limiter.allow(self.shop)

    def wait(self):
        if self.shop is None:
            return None
        return self.limiter.retry_after(self.shop)
