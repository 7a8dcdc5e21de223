"""
Django admin configuration for enrichment models.

Runs and logs are read-only records; store configuration and
credentials are editable by staff.
"""

from django.contrib import admin, messages
from django.utils.html import format_html

from enrichment.models import (
    EnrichmentLog,
    EnrichmentRun,
    EnrichmentSchedule,
    LogStatus,
    RunStatus,
    StoreConfig,
    StoreCredential,
    TriggerType,
)
from enrichment.queue import enqueue_enrichment
from enrichment.services.approval import InvalidTransition, reject_log

STATUS_COLORS = {
    RunStatus.RUNNING: "#17a2b8",
    RunStatus.COMPLETED: "#28a745",
    LogStatus.APPLIED: "#28a745",
    LogStatus.PENDING: "#ffc107",
    LogStatus.APPROVED: "#17a2b8",
    LogStatus.REJECTED: "#6c757d",
    LogStatus.SKIPPED: "#6c757d",
    LogStatus.FAILED: "#dc3545",
}


def status_badge(value: str, label: str):
    color = STATUS_COLORS.get(value, "#6c757d")
    return format_html(
        '<span style="background-color: {}; color: white; padding: 3px 8px; border-radius: 3px;">{}</span>',
        color,
        label,
    )


class EnrichmentLogInline(admin.TabularInline):
    model = EnrichmentLog
    extra = 0
    can_delete = False
    fields = ["product_title", "status", "score_before", "score_after", "confidence", "error_message"]
    readonly_fields = fields
    show_change_link = True


@admin.register(EnrichmentRun)
class EnrichmentRunAdmin(admin.ModelAdmin):
    list_display = [
        "id",
        "shop",
        "triggered_by",
        "status_badge",
        "total_products",
        "enriched_count",
        "pending_count",
        "skipped_count",
        "failed_count",
        "started_at",
    ]
    list_filter = ["status", "triggered_by", "shop"]
    search_fields = ["shop", "error_message"]
    ordering = ["-started_at"]
    readonly_fields = [f.name for f in EnrichmentRun._meta.fields]
    inlines = [EnrichmentLogInline]

    @admin.display(description="Status")
    def status_badge(self, obj):
        return status_badge(obj.status, obj.get_status_display())


@admin.register(EnrichmentLog)
class EnrichmentLogAdmin(admin.ModelAdmin):
    list_display = [
        "product_title",
        "shop",
        "status_badge",
        "score_before",
        "score_after",
        "confidence",
        "processed_at",
    ]
    list_filter = ["status", "shop"]
    search_fields = ["product_title", "product_id", "shop"]
    ordering = ["-processed_at"]
    readonly_fields = [f.name for f in EnrichmentLog._meta.fields]
    actions = ["reject_selected"]

    @admin.display(description="Status")
    def status_badge(self, obj):
        return status_badge(obj.status, obj.get_status_display())

    @admin.action(description="Reject selected pending proposals")
    def reject_selected(self, request, queryset):
        """Reject pending logs; other statuses are left alone."""
        count = 0
        for log in queryset.filter(status=LogStatus.PENDING):
            try:
                reject_log(log.id, log.shop)
            except InvalidTransition:
                continue
            count += 1
        self.message_user(request, f"Rejected {count} proposal(s).")


@admin.register(StoreConfig)
class StoreConfigAdmin(admin.ModelAdmin):
    list_display = ["shop", "cron_schedule", "cron_enabled", "auto_apply", "max_products_per_run", "min_confidence", "updated_at"]
    list_filter = ["cron_enabled", "auto_apply"]
    search_fields = ["shop"]
    actions = ["trigger_enrichment"]

    @admin.action(description="Trigger enrichment run now")
    def trigger_enrichment(self, request, queryset):
        """Queue a manual batch run for each selected shop."""
        count = 0
        for config in queryset:
            try:
                enqueue_enrichment(config.shop, TriggerType.MANUAL)
            except Exception as e:
                self.message_user(request, f"{config.shop}: {e}", level=messages.ERROR)
                continue
            count += 1
        self.message_user(
            request,
            f"Queued enrichment for {count} shop(s). Jobs will be processed shortly."
        )


@admin.register(StoreCredential)
class StoreCredentialAdmin(admin.ModelAdmin):
    list_display = ["shop", "scope", "created_at"]
    search_fields = ["shop"]


@admin.register(EnrichmentSchedule)
class EnrichmentScheduleAdmin(admin.ModelAdmin):
    list_display = ["shop", "cron_expression", "next_run_at", "last_run_at"]
    search_fields = ["shop"]
    ordering = ["next_run_at"]
