"""
URL patterns for the enrichment REST API.

Endpoints:
- POST /api/v1/enrich/               - Trigger a batch run
- GET  /api/v1/enrich/               - Latest run and its logs
- POST /api/v1/enrich/<product_id>/  - Trigger a single-product run
- POST /api/v1/approve/              - Approve or reject a pending log
- PUT  /api/v1/schedule/             - Update settings and schedule
"""

from django.urls import path

from enrichment.api.views import approve, enrich, enrich_product, schedule

app_name = "enrichment_api"

urlpatterns = [
    path("enrich/", enrich, name="enrich"),
    path("enrich/<path:product_id>/", enrich_product, name="enrich_product"),
    path("approve/", approve, name="approve"),
    path("schedule/", schedule, name="schedule"),
]
