"""
Tests for the enrichment management commands.
"""

from io import StringIO
from unittest.mock import patch

import pytest
from django.core.management import call_command
from django.core.management.base import CommandError

from enrichment.models import EnrichmentRun, EnrichmentSchedule, StoreConfig, StoreCredential, TriggerType

pytestmark = pytest.mark.django_db


class TestSetupSchedules:
    def test_registers_default_shop_without_configs(self, settings):
        settings.ENRICHMENT_DEFAULT_SHOP = "default-store.myshopify.com"
        settings.ENRICHMENT_DEFAULT_CRON = "0 4 * * *"
        out = StringIO()

        call_command("setup_schedules", stdout=out)

        schedule = EnrichmentSchedule.objects.get()
        assert schedule.shop == "default-store.myshopify.com"
        assert schedule.cron_expression == "0 4 * * *"
        assert "default-store.myshopify.com" in out.getvalue()

    def test_warns_without_default_shop(self):
        out = StringIO()

        call_command("setup_schedules", stdout=out)

        assert not EnrichmentSchedule.objects.exists()
        assert "ENRICHMENT_DEFAULT_SHOP" in out.getvalue()

    def test_registers_enabled_and_removes_disabled(self):
        StoreConfig.objects.create(shop="on.myshopify.com", cron_enabled=True, cron_schedule="0 1 * * *")
        StoreConfig.objects.create(shop="off.myshopify.com", cron_enabled=False)
        EnrichmentSchedule.objects.create(
            shop="off.myshopify.com", cron_expression="0 2 * * *", next_run_at="2026-01-01T02:00:00Z"
        )

        call_command("setup_schedules", stdout=StringIO())

        assert list(EnrichmentSchedule.objects.values_list("shop", flat=True)) == ["on.myshopify.com"]

    def test_reports_invalid_cron(self):
        StoreConfig.objects.create(shop="bad.myshopify.com", cron_enabled=True, cron_schedule="whenever")
        out = StringIO()

        call_command("setup_schedules", stdout=out)

        assert "bad.myshopify.com" in out.getvalue()
        assert "Registered 0 schedules" in out.getvalue()


class TestRunEnrichment:
    def test_requires_credential(self, shop):
        with pytest.raises(CommandError, match="credential"):
            call_command("run_enrichment", shop=shop, stdout=StringIO())

    def test_rejects_out_of_range_max_products(self, shop):
        with pytest.raises(CommandError, match="between 1 and 200"):
            call_command("run_enrichment", shop=shop, max_products=500, stdout=StringIO())

    def test_runs_pipeline_in_foreground(self, shop):
        StoreCredential.objects.create(shop=shop, access_token="shpat_test")
        run = EnrichmentRun.objects.create(shop=shop, total_products=1, pending_count=1)
        out = StringIO()

        with patch("enrichment.management.commands.run_enrichment.EnrichmentPipeline") as pipeline_class:
            pipeline_class.return_value.run.return_value = run
            call_command("run_enrichment", shop=shop, product_id="123", max_products=5, stdout=out)

        pipeline_class.return_value.run.assert_called_once_with(
            triggered_by=TriggerType.MANUAL,
            product_id="gid://shopify/Product/123",
            max_products=5,
            auto_apply=False,
            min_confidence=0.5,
        )
        assert f"Run {run.id}" in out.getvalue()
        assert "1 pending" in out.getvalue()

    def test_run_failure_becomes_command_error(self, shop):
        StoreCredential.objects.create(shop=shop, access_token="shpat_test")

        with patch("enrichment.management.commands.run_enrichment.EnrichmentPipeline") as pipeline_class:
            pipeline_class.return_value.run.side_effect = RuntimeError("listing failed")
            with pytest.raises(CommandError, match="listing failed"):
                call_command("run_enrichment", shop=shop, stdout=StringIO())
