"""
URL routes for the SmartEnrich service.

Internal API under /api/v1/, the Shopify webhook receiver, the health
probe and the OpenAPI docs.
"""

from django.contrib import admin
from django.urls import path, include
from drf_spectacular.views import (
    SpectacularAPIView,
    SpectacularRedocView,
    SpectacularSwaggerView,
)

from enrichment.views import health_check, shopify_webhook

urlpatterns = [
    # Django Admin
    path("admin/", admin.site.urls),

    # OpenAPI schema and browsable docs
    path("api/schema/", SpectacularAPIView.as_view(), name="schema"),
    path(
        "api/docs/",
        SpectacularSwaggerView.as_view(url_name="schema"),
        name="swagger-ui",
    ),
    path(
        "api/redoc/",
        SpectacularRedocView.as_view(url_name="schema"),
        name="redoc",
    ),

    # Load balancer probe, unauthenticated
    path("api/health/", health_check, name="health-check"),

    # Shopify webhooks authenticate with an HMAC signature
    path("webhooks/shopify/", shopify_webhook, name="shopify-webhook"),

    # Enrichment API
    path("api/v1/", include("enrichment.api.urls")),
]
