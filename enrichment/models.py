"""
Django models for the enrichment service.

A run is one pass of the pipeline over a batch of products for a shop.
Every product the pipeline touches gets exactly one log row in that run,
and at most one pending or applied log may exist per (shop, product).
"""

import uuid

from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.db.models import Q
from django.utils import timezone


class RunStatus(models.TextChoices):
    """Lifecycle status of an enrichment run."""

    RUNNING = "running", "Running"
    COMPLETED = "completed", "Completed"
    FAILED = "failed", "Failed"


class TriggerType(models.TextChoices):
    """What started a run."""

    SCHEDULED = "scheduled", "Scheduled"
    MANUAL = "manual", "Manual"
    WEBHOOK = "webhook", "Webhook"


class LogStatus(models.TextChoices):
    """Outcome of enriching a single product."""

    PENDING = "pending", "Pending Approval"
    APPROVED = "approved", "Approved"
    APPLIED = "applied", "Applied"
    REJECTED = "rejected", "Rejected"
    FAILED = "failed", "Failed"
    SKIPPED = "skipped", "Skipped"


# Statuses that block a product from being enriched again
BLOCKING_LOG_STATUSES = (LogStatus.PENDING, LogStatus.APPLIED)


class RunAlreadyFinished(Exception):
    """Raised when a terminal run is asked to change."""


class EnrichmentRun(models.Model):
    """
    Tracks one execution of the enrichment pipeline for a shop.

    Counters are written after every product so dashboards can show
    live progress. Once the run reaches a terminal status it is frozen.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    shop = models.CharField(max_length=255, db_index=True)
    triggered_by = models.CharField(
        max_length=20, choices=TriggerType.choices, default=TriggerType.MANUAL
    )

    # Status
    status = models.CharField(
        max_length=20, choices=RunStatus.choices, default=RunStatus.RUNNING
    )

    # Timing
    started_at = models.DateTimeField(default=timezone.now)
    completed_at = models.DateTimeField(null=True, blank=True)

    # Metrics
    total_products = models.IntegerField(default=0)
    enriched_count = models.IntegerField(default=0)
    failed_count = models.IntegerField(default=0)
    skipped_count = models.IntegerField(default=0)
    pending_count = models.IntegerField(default=0)

    # Error Details
    error_message = models.TextField(blank=True)

    class Meta:
        db_table = "enrichment_runs"
        ordering = ["-started_at"]
        indexes = [
            models.Index(fields=["shop", "started_at"], name="enrichment__shop_0c1f2a_idx"),
            models.Index(fields=["status", "started_at"], name="enrichment__status_5d7e31_idx"),
        ]

    def __str__(self):
        return f"Run {self.id} - {self.shop} ({self.status})"

    @property
    def is_terminal(self) -> bool:
        return self.status in (RunStatus.COMPLETED, RunStatus.FAILED)

    @property
    def duration_seconds(self):
        """Calculate run duration."""
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    def _ensure_running(self):
        if self.is_terminal:
            raise RunAlreadyFinished(f"Run {self.id} is already {self.status}")

    def record_progress(self, enriched: int, failed: int, skipped: int, pending: int, total: int = None):
        """Persist the current counters."""
        self._ensure_running()
        self.enriched_count = enriched
        self.failed_count = failed
        self.skipped_count = skipped
        self.pending_count = pending
        fields = ["enriched_count", "failed_count", "skipped_count", "pending_count"]
        if total is not None:
            self.total_products = total
            fields.append("total_products")
        self.save(update_fields=fields)

    def complete(self):
        """Mark run as completed."""
        self._ensure_running()
        self.status = RunStatus.COMPLETED
        self.completed_at = timezone.now()
        self.save(update_fields=["status", "completed_at"])

    def fail(self, error_message: str):
        """Mark run as failed."""
        self._ensure_running()
        self.status = RunStatus.FAILED
        self.completed_at = timezone.now()
        self.error_message = error_message[:2000]
        self.save(update_fields=["status", "completed_at", "error_message"])


class EnrichmentLog(models.Model):
    """
    Outcome record for one product in one run.

    Proposed changes are stored using the model's wire format so that an
    approval later in time can apply exactly what was reviewed.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    run = models.ForeignKey(
        EnrichmentRun, on_delete=models.CASCADE, related_name="logs"
    )
    shop = models.CharField(max_length=255)
    product_id = models.CharField(max_length=255)
    product_title = models.CharField(max_length=500, blank=True)

    # Scoring
    score_before = models.IntegerField(default=0)
    score_after = models.IntegerField(null=True, blank=True)
    confidence = models.FloatField(null=True, blank=True)

    status = models.CharField(max_length=20, choices=LogStatus.choices)

    # Payloads
    original_data = models.JSONField(default=dict, blank=True)
    proposed_changes = models.JSONField(null=True, blank=True)
    applied_changes = models.JSONField(null=True, blank=True)
    ai_model = models.CharField(max_length=100, blank=True)
    ai_response_raw = models.TextField(blank=True)

    # Gathered external data
    search_data = models.JSONField(null=True, blank=True)
    image_data = models.JSONField(null=True, blank=True)
    barcode_data = models.JSONField(null=True, blank=True)

    error_message = models.TextField(blank=True)

    # Timing
    processed_at = models.DateTimeField(default=timezone.now)
    approved_at = models.DateTimeField(null=True, blank=True)
    applied_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "enrichment_logs"
        ordering = ["-processed_at"]
        indexes = [
            models.Index(fields=["shop", "product_id"], name="enrichment__shop_9a4b6c_idx"),
            models.Index(fields=["shop", "status"], name="enrichment__shop_e2f813_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["shop", "product_id"],
                condition=Q(status__in=["pending", "applied"]),
                name="uniq_active_enrichment_per_product",
            ),
        ]

    def __str__(self):
        return f"{self.product_title or self.product_id} ({self.status})"


class StoreConfig(models.Model):
    """Per-shop enrichment settings."""

    shop = models.CharField(max_length=255, unique=True)
    cron_schedule = models.CharField(max_length=100, default="0 2 * * *")
    cron_enabled = models.BooleanField(default=False)
    auto_apply = models.BooleanField(default=False)
    max_products_per_run = models.IntegerField(
        default=50, validators=[MinValueValidator(1), MaxValueValidator(200)]
    )
    min_confidence = models.FloatField(
        default=0.7, validators=[MinValueValidator(0.0), MaxValueValidator(1.0)]
    )
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "store_configs"

    def __str__(self):
        return f"Config for {self.shop}"


class StoreCredential(models.Model):
    """
    Long-lived Admin API token for a shop.

    Issued by the app installation flow; the worker only reads it.
    """

    shop = models.CharField(max_length=255, unique=True)
    access_token = models.CharField(max_length=255)
    scope = models.CharField(max_length=500, blank=True)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = "store_credentials"

    def __str__(self):
        return f"Credential for {self.shop}"


class EnrichmentSchedule(models.Model):
    """Recurring scheduled-run registration, one per shop."""

    shop = models.CharField(max_length=255, unique=True)
    cron_expression = models.CharField(max_length=100)
    next_run_at = models.DateTimeField(db_index=True)
    last_run_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = "enrichment_schedules"
        ordering = ["next_run_at"]

    def __str__(self):
        return f"{self.shop} @ {self.cron_expression}"
