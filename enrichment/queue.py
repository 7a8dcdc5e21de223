"""
Job queue operations for enrichment.

Jobs are Celery tasks on the `enrichment` queue. Single-product jobs get
a higher priority than batch jobs. Recurring runs are registered per shop
as EnrichmentSchedule rows and dispatched by the `check_due_schedules`
beat task.
"""

import logging
from datetime import datetime, timedelta, timezone as dt_timezone
from typing import Optional

from celery.schedules import ParseException, crontab
from django.db import transaction
from django.utils import timezone

from enrichment.models import EnrichmentSchedule, TriggerType

logger = logging.getLogger(__name__)

ENRICHMENT_QUEUE = "enrichment"
SINGLE_PRODUCT_PRIORITY = 1
BATCH_PRIORITY = 5

# Upper bound for the next-run search
MAX_SCHEDULE_LOOKAHEAD = timedelta(days=366 * 4)


def enqueue_enrichment(
    shop: str,
    trigger: str = TriggerType.MANUAL,
    product_id: Optional[str] = None,
    max_products: Optional[int] = None,
    auto_apply: Optional[bool] = None,
    min_confidence: Optional[float] = None,
) -> str:
    """
    Queue an enrichment job.

    Args:
        shop: Shop domain
        trigger: What started the job (TriggerType)
        product_id: Enrich a single product instead of a batch
        max_products, auto_apply, min_confidence: Overrides for the shop's
            StoreConfig; None uses the stored value

    Returns:
        The Celery task id
    """
    from enrichment.tasks import run_enrichment_job

    priority = SINGLE_PRODUCT_PRIORITY if product_id else BATCH_PRIORITY
    result = run_enrichment_job.apply_async(
        kwargs={
            "shop": shop,
            "trigger": str(trigger),
            "product_id": product_id,
            "max_products": max_products,
            "auto_apply": auto_apply,
            "min_confidence": min_confidence,
        },
        queue=ENRICHMENT_QUEUE,
        priority=priority,
    )
    logger.info(
        "Queued %s enrichment job %s for %s%s",
        trigger, result.id, shop, f" (product {product_id})" if product_id else "",
    )
    return result.id


# ============================================================
# Cron schedules
# ============================================================

def parse_cron(expression: str) -> crontab:
    """
    Parse a five-field cron expression.

    Raises:
        ValueError: If the expression is malformed
    """
    fields = (expression or "").split()
    if len(fields) != 5:
        raise ValueError(f"Cron expression must have 5 fields: {expression!r}")

    minute, hour, day_of_month, month_of_year, day_of_week = fields
    try:
        return crontab(
            minute=minute,
            hour=hour,
            day_of_month=day_of_month,
            month_of_year=month_of_year,
            day_of_week=day_of_week,
        )
    except (ParseException, ValueError) as e:
        raise ValueError(f"Invalid cron expression {expression!r}: {e}") from e


def _matches_day(schedule: crontab, moment: datetime, either_day: bool) -> bool:
    if moment.month not in schedule.month_of_year:
        return False
    day_match = moment.day in schedule.day_of_month
    # crontab numbers weekdays from Sunday = 0
    weekday_match = moment.isoweekday() % 7 in schedule.day_of_week
    if either_day:
        return day_match or weekday_match
    return day_match and weekday_match


def compute_next_run(expression: str, after: Optional[datetime] = None) -> datetime:
    """
    First time strictly after `after` (default now) that matches the
    expression, evaluated in UTC.

    Raises:
        ValueError: If the expression is malformed or never fires
    """
    schedule = parse_cron(expression)
    fields = expression.split()
    # Standard cron: when both day fields are restricted, either may match
    either_day = not fields[2].startswith("*") and not fields[4].startswith("*")
    after = after or timezone.now()
    moment = after.astimezone(dt_timezone.utc).replace(second=0, microsecond=0) + timedelta(minutes=1)
    limit = moment + MAX_SCHEDULE_LOOKAHEAD

    while moment < limit:
        if not _matches_day(schedule, moment, either_day):
            moment = (moment + timedelta(days=1)).replace(hour=0, minute=0)
            continue
        if moment.hour not in schedule.hour:
            moment = (moment + timedelta(hours=1)).replace(minute=0)
            continue
        if moment.minute not in schedule.minute:
            moment += timedelta(minutes=1)
            continue
        return moment

    raise ValueError(f"Cron expression {expression!r} never fires")


def register_schedule(shop: str, cron_expression: str) -> EnrichmentSchedule:
    """
    Replace the shop's recurring registration.

    Raises:
        ValueError: If the cron expression is invalid; the existing
            registration is left untouched
    """
    next_run_at = compute_next_run(cron_expression)

    with transaction.atomic():
        EnrichmentSchedule.objects.filter(shop=shop).delete()
        schedule = EnrichmentSchedule.objects.create(
            shop=shop,
            cron_expression=cron_expression,
            next_run_at=next_run_at,
        )

    logger.info("Registered schedule for %s: %s (next run %s)", shop, cron_expression, next_run_at.isoformat())
    return schedule


def remove_schedule(shop: str) -> bool:
    """Remove the shop's registration. Returns True if one existed."""
    deleted, _ = EnrichmentSchedule.objects.filter(shop=shop).delete()
    if deleted:
        logger.info("Removed schedule for %s", shop)
    return bool(deleted)
