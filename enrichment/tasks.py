"""
Celery tasks for product enrichment.

- run_enrichment_job: Worker task that runs the pipeline for one shop
- check_due_schedules: Periodic task that dispatches due scheduled runs
"""

import logging
from typing import Any, Dict, Optional

from celery import shared_task
from django.conf import settings
from django.utils import timezone

from enrichment.models import EnrichmentSchedule, StoreConfig, StoreCredential, TriggerType
from enrichment.queue import compute_next_run, enqueue_enrichment
from enrichment.services.pipeline import (
    DEFAULT_MAX_PRODUCTS,
    DEFAULT_MIN_CONFIDENCE,
    EnrichmentPipeline,
)
from enrichment.shopify.client import ShopifyAdminClient

logger = logging.getLogger(__name__)

AUTOMATED_TRIGGERS = (TriggerType.SCHEDULED, TriggerType.WEBHOOK)
RETRY_BASE_DELAY = 5


class MissingCredentialError(Exception):
    """Raised when a shop has no stored Admin API credential."""


def resolve_job_options(
    shop: str,
    trigger: str,
    max_products: Optional[int] = None,
    auto_apply: Optional[bool] = None,
    min_confidence: Optional[float] = None,
) -> Dict[str, Any]:
    """
    Merge explicit overrides with the shop's StoreConfig.

    Automated triggers always auto-apply when
    ENRICHMENT_FORCE_AUTO_APPLY_AUTOMATED is set.
    """
    config = StoreConfig.objects.filter(shop=shop).first()

    options = {
        "max_products": config.max_products_per_run if config else DEFAULT_MAX_PRODUCTS,
        "auto_apply": config.auto_apply if config else False,
        "min_confidence": config.min_confidence if config else DEFAULT_MIN_CONFIDENCE,
    }
    if max_products is not None:
        options["max_products"] = max_products
    if auto_apply is not None:
        options["auto_apply"] = auto_apply
    if min_confidence is not None:
        options["min_confidence"] = min_confidence

    force_automated = getattr(settings, "ENRICHMENT_FORCE_AUTO_APPLY_AUTOMATED", True)
    if force_automated and trigger in AUTOMATED_TRIGGERS:
        options["auto_apply"] = True

    return options


def build_client(shop: str) -> ShopifyAdminClient:
    """
    Build an Admin API client from the shop's stored credential.

    Raises:
        MissingCredentialError: If the shop has no credential
    """
    credential = StoreCredential.objects.filter(shop=shop).first()
    if credential is None:
        raise MissingCredentialError(f"No Admin API credential stored for {shop}")
    return ShopifyAdminClient(shop=shop, access_token=credential.access_token)


@shared_task(name="enrichment.tasks.run_enrichment_job", bind=True, max_retries=3)
def run_enrichment_job(
    self,
    shop: str,
    trigger: str = TriggerType.MANUAL,
    product_id: Optional[str] = None,
    max_products: Optional[int] = None,
    auto_apply: Optional[bool] = None,
    min_confidence: Optional[float] = None,
) -> Dict[str, Any]:
    """
    Run the enrichment pipeline for a shop.

    A missing credential fails the job without creating a run. A failed
    candidate fetch is retried with exponential backoff (5s, 10s, 20s).

    Returns:
        Dict with the run id, status and counters
    """
    logger.info(f"Starting enrichment job for {shop} (trigger={trigger}, product={product_id})")

    client = build_client(shop)
    options = resolve_job_options(shop, trigger, max_products, auto_apply, min_confidence)

    try:
        pipeline = EnrichmentPipeline(shop, client)
        try:
            run = pipeline.run(triggered_by=trigger, product_id=product_id, **options)
        except Exception as e:
            countdown = RETRY_BASE_DELAY * 2 ** self.request.retries
            logger.warning(f"Enrichment job for {shop} failed, retrying in {countdown}s: {e}")
            raise self.retry(exc=e, countdown=countdown)
    finally:
        client.close()

    return {
        "run_id": str(run.id),
        "shop": shop,
        "status": run.status,
        "total": run.total_products,
        "enriched": run.enriched_count,
        "pending": run.pending_count,
        "skipped": run.skipped_count,
        "failed": run.failed_count,
    }


@shared_task(name="enrichment.tasks.check_due_schedules")
def check_due_schedules() -> Dict[str, Any]:
    """
    Periodic task to dispatch scheduled runs that are due.

    Runs every minute via Celery Beat. Each due registration is queued
    once and its next_run_at is advanced past now.

    Returns:
        Dict with the shops dispatched
    """
    now = timezone.now()
    dispatched = []

    for schedule in EnrichmentSchedule.objects.filter(next_run_at__lte=now):
        try:
            next_run_at = compute_next_run(schedule.cron_expression, after=now)
        except ValueError as e:
            logger.error(f"Schedule for {schedule.shop} is invalid, removing it: {e}")
            schedule.delete()
            continue

        # Advance first so a slow broker cannot cause a double dispatch
        updated = EnrichmentSchedule.objects.filter(
            id=schedule.id,
            next_run_at=schedule.next_run_at,
        ).update(next_run_at=next_run_at, last_run_at=now)
        if not updated:
            continue

        try:
            enqueue_enrichment(schedule.shop, TriggerType.SCHEDULED)
            dispatched.append(schedule.shop)
        except Exception as e:
            logger.error(f"Failed to dispatch scheduled run for {schedule.shop}: {e}")
            continue

    if dispatched:
        logger.info(f"Dispatched {len(dispatched)} scheduled enrichment runs")

    return {
        "checked": True,
        "dispatched": dispatched,
        "timestamp": now.isoformat(),
    }
