"""
Enrichment API views.

Thin endpoints that validate input and translate it into queue,
schedule and approval operations. Nothing here runs the pipeline.
"""

import logging
from typing import Any, Dict, Optional

from django.core.exceptions import PermissionDenied, ValidationError
from django.db import transaction
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status
from rest_framework.decorators import api_view, throttle_classes
from rest_framework.response import Response

from enrichment.api.throttling import BatchTriggerThrottle, get_shop
from enrichment.models import EnrichmentLog, EnrichmentRun, StoreConfig, TriggerType
from enrichment.queue import compute_next_run, enqueue_enrichment, register_schedule, remove_schedule
from enrichment.services.approval import InvalidTransition, approve_log, reject_log
from enrichment.tasks import MissingCredentialError, build_client

logger = logging.getLogger(__name__)

MIN_PRODUCTS_PER_RUN = 1
MAX_PRODUCTS_PER_RUN = 200
RECENT_LOGS_LIMIT = 20
PRODUCT_GID_PREFIX = "gid://shopify/Product/"

SHOP_HEADER = OpenApiParameter(
    name="X-Shop-Domain",
    location=OpenApiParameter.HEADER,
    required=False,
    description="Shop domain; may also be sent as `shop` in the body",
)


def normalize_product_id(product_id: str) -> str:
    """Accept a numeric id or a full product GID."""
    product_id = product_id.strip()
    if product_id.isdigit():
        return f"{PRODUCT_GID_PREFIX}{product_id}"
    return product_id


def _bad_request(message: str) -> Response:
    return Response({"error": message}, status=status.HTTP_400_BAD_REQUEST)


def _parse_bool(value: Any, name: str) -> Optional[bool]:
    if value is None:
        return None
    if not isinstance(value, bool):
        raise ValueError(f"{name} must be a boolean")
    return value


def _parse_max_products(value: Any) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError("max_products must be an integer")
    if not MIN_PRODUCTS_PER_RUN <= value <= MAX_PRODUCTS_PER_RUN:
        raise ValueError(f"max_products must be between {MIN_PRODUCTS_PER_RUN} and {MAX_PRODUCTS_PER_RUN}")
    return value


def _parse_confidence(value: Any) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError("min_confidence must be a number")
    if not 0.0 <= value <= 1.0:
        raise ValueError("min_confidence must be between 0 and 1")
    return float(value)


def serialize_run(run: EnrichmentRun) -> Dict[str, Any]:
    return {
        "id": str(run.id),
        "shop": run.shop,
        "triggered_by": run.triggered_by,
        "status": run.status,
        "started_at": run.started_at.isoformat() if run.started_at else None,
        "completed_at": run.completed_at.isoformat() if run.completed_at else None,
        "duration_seconds": run.duration_seconds,
        "total_products": run.total_products,
        "enriched_count": run.enriched_count,
        "pending_count": run.pending_count,
        "skipped_count": run.skipped_count,
        "failed_count": run.failed_count,
        "error_message": run.error_message,
    }


def serialize_log(log: EnrichmentLog) -> Dict[str, Any]:
    return {
        "id": str(log.id),
        "product_id": log.product_id,
        "product_title": log.product_title,
        "status": log.status,
        "score_before": log.score_before,
        "score_after": log.score_after,
        "confidence": log.confidence,
        "proposed_changes": log.proposed_changes,
        "applied_changes": log.applied_changes,
        "error_message": log.error_message,
        "processed_at": log.processed_at.isoformat() if log.processed_at else None,
    }


def serialize_config(config: StoreConfig) -> Dict[str, Any]:
    return {
        "shop": config.shop,
        "cron_schedule": config.cron_schedule,
        "cron_enabled": config.cron_enabled,
        "auto_apply": config.auto_apply,
        "max_products_per_run": config.max_products_per_run,
        "min_confidence": config.min_confidence,
    }


# ============================================================
# Trigger Endpoints
# ============================================================

@extend_schema(
    tags=["Enrichment"],
    summary="Trigger a batch enrichment run or read the latest run",
    parameters=[SHOP_HEADER],
    request={
        "application/json": {
            "type": "object",
            "properties": {
                "shop": {"type": "string"},
                "max_products": {"type": "integer", "minimum": 1, "maximum": 200},
                "auto_apply": {"type": "boolean"},
                "min_confidence": {"type": "number", "minimum": 0, "maximum": 1},
            },
        }
    },
    responses={
        200: {"description": "Latest run with its most recent logs"},
        202: {"description": "Job queued"},
        400: {"description": "Invalid parameters"},
        429: {"description": "Too many triggers for this shop"},
    },
)
@api_view(["GET", "POST"])
@throttle_classes([BatchTriggerThrottle])
def enrich(request):
    """
    POST queues a manual batch run; GET returns the latest run.

    Request body (POST):
    {
        "max_products": 50,
        "auto_apply": false,
        "min_confidence": 0.7
    }

    Omitted fields fall back to the shop's StoreConfig.
    """
    shop = get_shop(request)
    if not shop:
        return _bad_request("shop is required")

    if request.method == "GET":
        run = EnrichmentRun.objects.filter(shop=shop).order_by("-started_at").first()
        if run is None:
            return Response({"run": None, "logs": []})
        logs = run.logs.order_by("-processed_at")[:RECENT_LOGS_LIMIT]
        return Response({
            "run": serialize_run(run),
            "logs": [serialize_log(log) for log in logs],
        })

    try:
        max_products = _parse_max_products(request.data.get("max_products"))
        auto_apply = _parse_bool(request.data.get("auto_apply"), "auto_apply")
        min_confidence = _parse_confidence(request.data.get("min_confidence"))
    except ValueError as e:
        return _bad_request(str(e))

    job_id = enqueue_enrichment(
        shop,
        TriggerType.MANUAL,
        max_products=max_products,
        auto_apply=auto_apply,
        min_confidence=min_confidence,
    )

    return Response({
        "success": True,
        "job_id": job_id,
        "shop": shop,
        "status": "queued",
    }, status=status.HTTP_202_ACCEPTED)


@extend_schema(
    tags=["Enrichment"],
    summary="Trigger enrichment of a single product",
    parameters=[SHOP_HEADER],
    request=None,
    responses={202: {"description": "Job queued"}, 400: {"description": "Missing shop"}},
)
@api_view(["POST"])
def enrich_product(request, product_id: str):
    """Queue a manual single-product run. Numeric ids are expanded to GIDs."""
    shop = get_shop(request)
    if not shop:
        return _bad_request("shop is required")

    product_gid = normalize_product_id(product_id)
    try:
        auto_apply = _parse_bool(request.data.get("auto_apply"), "auto_apply")
    except ValueError as e:
        return _bad_request(str(e))

    job_id = enqueue_enrichment(shop, TriggerType.MANUAL, product_id=product_gid, auto_apply=auto_apply)

    return Response({
        "success": True,
        "job_id": job_id,
        "shop": shop,
        "product_id": product_gid,
        "status": "queued",
    }, status=status.HTTP_202_ACCEPTED)


# ============================================================
# Approval Endpoint
# ============================================================

@extend_schema(
    tags=["Approval"],
    summary="Approve or reject a pending proposal",
    parameters=[SHOP_HEADER],
    request={
        "application/json": {
            "type": "object",
            "properties": {
                "log_id": {"type": "string", "format": "uuid"},
                "action": {"type": "string", "enum": ["approve", "reject"]},
            },
            "required": ["log_id", "action"],
        }
    },
    responses={
        200: {"description": "Log after the transition"},
        400: {"description": "Invalid request"},
        403: {"description": "Log belongs to another shop"},
        404: {"description": "Unknown log"},
        409: {"description": "Log is not pending"},
    },
)
@api_view(["POST"])
def approve(request):
    shop = get_shop(request)
    if not shop:
        return _bad_request("shop is required")

    log_id = request.data.get("log_id")
    action = request.data.get("action")
    if not log_id:
        return _bad_request("log_id is required")
    if action not in ("approve", "reject"):
        return _bad_request("action must be 'approve' or 'reject'")

    try:
        if action == "reject":
            log = reject_log(log_id, shop)
        else:
            client = build_client(shop)
            try:
                log = approve_log(log_id, shop, client)
            finally:
                client.close()
    except (EnrichmentLog.DoesNotExist, ValidationError):
        return Response({"error": "Log not found"}, status=status.HTTP_404_NOT_FOUND)
    except PermissionDenied as e:
        return Response({"error": str(e)}, status=status.HTTP_403_FORBIDDEN)
    except InvalidTransition as e:
        return Response({"error": str(e)}, status=status.HTTP_409_CONFLICT)
    except MissingCredentialError as e:
        return _bad_request(str(e))

    return Response({"success": log.status != "failed", "log": serialize_log(log)})


# ============================================================
# Schedule Endpoint
# ============================================================

@extend_schema(
    tags=["Schedule"],
    summary="Update the shop's enrichment settings and recurring schedule",
    parameters=[SHOP_HEADER],
    request={
        "application/json": {
            "type": "object",
            "properties": {
                "cron_schedule": {"type": "string", "example": "0 2 * * *"},
                "cron_enabled": {"type": "boolean"},
                "auto_apply": {"type": "boolean"},
                "max_products_per_run": {"type": "integer", "minimum": 1, "maximum": 200},
                "min_confidence": {"type": "number", "minimum": 0, "maximum": 1},
            },
            "required": ["cron_schedule", "cron_enabled"],
        }
    },
    responses={200: {"description": "Updated configuration"}, 400: {"description": "Invalid parameters"}},
)
@api_view(["PUT"])
def schedule(request):
    shop = get_shop(request)
    if not shop:
        return _bad_request("shop is required")

    cron_schedule = request.data.get("cron_schedule")
    if not isinstance(cron_schedule, str) or not cron_schedule.strip():
        return _bad_request("cron_schedule is required")
    cron_schedule = " ".join(cron_schedule.split())

    try:
        compute_next_run(cron_schedule)
        cron_enabled = _parse_bool(request.data.get("cron_enabled"), "cron_enabled")
        if cron_enabled is None:
            raise ValueError("cron_enabled is required")
        auto_apply = _parse_bool(request.data.get("auto_apply"), "auto_apply")
        max_products = _parse_max_products(request.data.get("max_products_per_run"))
        min_confidence = _parse_confidence(request.data.get("min_confidence"))
    except ValueError as e:
        return _bad_request(str(e))

    defaults = {"cron_schedule": cron_schedule, "cron_enabled": cron_enabled}
    if auto_apply is not None:
        defaults["auto_apply"] = auto_apply
    if max_products is not None:
        defaults["max_products_per_run"] = max_products
    if min_confidence is not None:
        defaults["min_confidence"] = min_confidence

    # Config and registration change together or not at all
    try:
        with transaction.atomic():
            config, _ = StoreConfig.objects.update_or_create(shop=shop, defaults=defaults)
            if config.cron_enabled:
                registration = register_schedule(shop, config.cron_schedule)
                next_run_at = registration.next_run_at.isoformat()
            else:
                remove_schedule(shop)
                next_run_at = None
    except ValueError as e:
        return _bad_request(str(e))

    return Response({
        "success": True,
        "config": serialize_config(config),
        "next_run_at": next_run_at,
    })
