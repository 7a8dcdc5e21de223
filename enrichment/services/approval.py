"""
Manual approval of pending enrichment proposals.

Both transitions are only valid from PENDING and are claimed with a
conditional UPDATE, so two reviewers acting at once cannot both win.
"""

import logging
from typing import Optional

from django.core.exceptions import PermissionDenied
from django.utils import timezone

from enrichment.models import EnrichmentLog, LogStatus
from enrichment.monitoring import capture_pipeline_error
from enrichment.services.catalog_updater import CatalogUpdater, UpdateResult
from enrichment.services.proposal import EnrichmentProposal
from enrichment.shopify.client import ShopifyAdminClient, ShopifyAPIError
from enrichment.shopify.queries import fetch_product

logger = logging.getLogger(__name__)


class InvalidTransition(Exception):
    """Raised when a log is not in a state that allows the transition."""


def _load_log(log_id, shop: str) -> EnrichmentLog:
    log = EnrichmentLog.objects.get(id=log_id)
    if log.shop != shop:
        raise PermissionDenied(f"Log {log_id} does not belong to {shop}")
    if log.status != LogStatus.PENDING:
        raise InvalidTransition(f"Log {log_id} is {log.status}, expected {LogStatus.PENDING}")
    return log


def reject_log(log_id, shop: str) -> EnrichmentLog:
    """
    Move a pending log to REJECTED.

    Raises:
        EnrichmentLog.DoesNotExist: Unknown log
        PermissionDenied: Log belongs to another shop
        InvalidTransition: Log is not pending
    """
    log = _load_log(log_id, shop)

    updated = EnrichmentLog.objects.filter(
        id=log.id,
        status=LogStatus.PENDING,
        approved_at__isnull=True,
    ).update(status=LogStatus.REJECTED)
    if not updated:
        raise InvalidTransition(f"Log {log_id} changed state concurrently")

    log.refresh_from_db()
    logger.info("Rejected enrichment log %s for %s", log.id, log.product_id)
    return log


def approve_log(
    log_id,
    shop: str,
    client: ShopifyAdminClient,
    updater: Optional[CatalogUpdater] = None,
) -> EnrichmentLog:
    """
    Apply a pending proposal to the catalog.

    The stored proposal is applied as reviewed, merged with the product's
    current tags and the candidate images recorded at generation time.

    Returns:
        The log, now APPLIED or FAILED

    Raises:
        EnrichmentLog.DoesNotExist: Unknown log
        PermissionDenied: Log belongs to another shop
        InvalidTransition: Log is not pending or was claimed by another reviewer
    """
    log = _load_log(log_id, shop)

    now = timezone.now()
    claimed = EnrichmentLog.objects.filter(
        id=log.id,
        status=LogStatus.PENDING,
        approved_at__isnull=True,
    ).update(approved_at=now)
    if not claimed:
        raise InvalidTransition(f"Log {log_id} is already being approved")
    log.approved_at = now

    updater = updater or CatalogUpdater(client)

    try:
        proposal = EnrichmentProposal.from_dict(log.proposed_changes or {})
        item = fetch_product(client, log.product_id)
        if item is None:
            result = UpdateResult(errors=[f"Product {log.product_id} no longer exists"])
        else:
            result = updater.apply(log.product_id, proposal, item.tags, log.image_data or None)
    except ShopifyAPIError as e:
        logger.error("Approval of %s failed: %s", log.id, e)
        result = UpdateResult(errors=[str(e)])
    except Exception as e:
        # The claim is held, so the log must still reach a terminal state
        logger.exception("Approval of %s raised", log.id)
        capture_pipeline_error(e, shop=log.shop, product_id=log.product_id, run_id=log.run_id)
        result = UpdateResult(errors=[f"Apply failed: {e}"])

    if result.success:
        log.status = LogStatus.APPLIED
        log.applied_changes = result.applied
        log.applied_at = timezone.now()
        log.error_message = "; ".join(result.warnings)[:2000]
    else:
        log.status = LogStatus.FAILED
        log.error_message = "; ".join(result.errors + result.warnings)[:2000]

    log.save(update_fields=["status", "applied_changes", "applied_at", "error_message"])
    logger.info("Approved enrichment log %s for %s: %s", log.id, log.product_id, log.status)
    return log
