"""
Migration: Initial enrichment schema.

Creates runs, per-product logs (with the one-active-log-per-product
constraint), store configuration, store credentials and schedules.
"""

import uuid
import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="EnrichmentRun",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("shop", models.CharField(db_index=True, max_length=255)),
                (
                    "triggered_by",
                    models.CharField(
                        choices=[
                            ("scheduled", "Scheduled"),
                            ("manual", "Manual"),
                            ("webhook", "Webhook"),
                        ],
                        default="manual",
                        max_length=20,
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("running", "Running"),
                            ("completed", "Completed"),
                            ("failed", "Failed"),
                        ],
                        default="running",
                        max_length=20,
                    ),
                ),
                ("started_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("total_products", models.IntegerField(default=0)),
                ("enriched_count", models.IntegerField(default=0)),
                ("failed_count", models.IntegerField(default=0)),
                ("skipped_count", models.IntegerField(default=0)),
                ("pending_count", models.IntegerField(default=0)),
                ("error_message", models.TextField(blank=True)),
            ],
            options={
                "db_table": "enrichment_runs",
                "ordering": ["-started_at"],
            },
        ),
        migrations.CreateModel(
            name="EnrichmentLog",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("shop", models.CharField(max_length=255)),
                ("product_id", models.CharField(max_length=255)),
                ("product_title", models.CharField(blank=True, max_length=500)),
                ("score_before", models.IntegerField(default=0)),
                ("score_after", models.IntegerField(blank=True, null=True)),
                ("confidence", models.FloatField(blank=True, null=True)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending Approval"),
                            ("approved", "Approved"),
                            ("applied", "Applied"),
                            ("rejected", "Rejected"),
                            ("failed", "Failed"),
                            ("skipped", "Skipped"),
                        ],
                        max_length=20,
                    ),
                ),
                ("original_data", models.JSONField(blank=True, default=dict)),
                ("proposed_changes", models.JSONField(blank=True, null=True)),
                ("applied_changes", models.JSONField(blank=True, null=True)),
                ("ai_model", models.CharField(blank=True, max_length=100)),
                ("ai_response_raw", models.TextField(blank=True)),
                ("search_data", models.JSONField(blank=True, null=True)),
                ("image_data", models.JSONField(blank=True, null=True)),
                ("barcode_data", models.JSONField(blank=True, null=True)),
                ("error_message", models.TextField(blank=True)),
                ("processed_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("approved_at", models.DateTimeField(blank=True, null=True)),
                ("applied_at", models.DateTimeField(blank=True, null=True)),
                (
                    "run",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="logs",
                        to="enrichment.enrichmentrun",
                    ),
                ),
            ],
            options={
                "db_table": "enrichment_logs",
                "ordering": ["-processed_at"],
            },
        ),
        migrations.CreateModel(
            name="StoreConfig",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("shop", models.CharField(max_length=255, unique=True)),
                ("cron_schedule", models.CharField(default="0 2 * * *", max_length=100)),
                ("cron_enabled", models.BooleanField(default=False)),
                ("auto_apply", models.BooleanField(default=False)),
                (
                    "max_products_per_run",
                    models.IntegerField(
                        default=50,
                        validators=[
                            django.core.validators.MinValueValidator(1),
                            django.core.validators.MaxValueValidator(200),
                        ],
                    ),
                ),
                (
                    "min_confidence",
                    models.FloatField(
                        default=0.7,
                        validators=[
                            django.core.validators.MinValueValidator(0.0),
                            django.core.validators.MaxValueValidator(1.0),
                        ],
                    ),
                ),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "db_table": "store_configs",
            },
        ),
        migrations.CreateModel(
            name="StoreCredential",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("shop", models.CharField(max_length=255, unique=True)),
                ("access_token", models.CharField(max_length=255)),
                ("scope", models.CharField(blank=True, max_length=500)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
            ],
            options={
                "db_table": "store_credentials",
            },
        ),
        migrations.CreateModel(
            name="EnrichmentSchedule",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("shop", models.CharField(max_length=255, unique=True)),
                ("cron_expression", models.CharField(max_length=100)),
                ("next_run_at", models.DateTimeField(db_index=True)),
                ("last_run_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
            ],
            options={
                "db_table": "enrichment_schedules",
                "ordering": ["next_run_at"],
            },
        ),
        migrations.AddIndex(
            model_name="enrichmentrun",
            index=models.Index(fields=["shop", "started_at"], name="enrichment__shop_0c1f2a_idx"),
        ),
        migrations.AddIndex(
            model_name="enrichmentrun",
            index=models.Index(fields=["status", "started_at"], name="enrichment__status_5d7e31_idx"),
        ),
        migrations.AddIndex(
            model_name="enrichmentlog",
            index=models.Index(fields=["shop", "product_id"], name="enrichment__shop_9a4b6c_idx"),
        ),
        migrations.AddIndex(
            model_name="enrichmentlog",
            index=models.Index(fields=["shop", "status"], name="enrichment__shop_e2f813_idx"),
        ),
        migrations.AddConstraint(
            model_name="enrichmentlog",
            constraint=models.UniqueConstraint(
                condition=models.Q(("status__in", ["pending", "applied"])),
                fields=("shop", "product_id"),
                name="uniq_active_enrichment_per_product",
            ),
        ),
    ]
