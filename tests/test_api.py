"""
Tests for the enrichment REST API.

The job queue is patched at the view module; nothing is dispatched.
"""

import uuid
from unittest.mock import Mock, patch

import pytest
from rest_framework.test import APIClient

from enrichment.models import (
    EnrichmentLog,
    EnrichmentRun,
    EnrichmentSchedule,
    LogStatus,
    RunStatus,
    StoreConfig,
    TriggerType,
)

pytestmark = pytest.mark.django_db

ENRICH_URL = "/api/v1/enrich/"
APPROVE_URL = "/api/v1/approve/"
SCHEDULE_URL = "/api/v1/schedule/"


@pytest.fixture
def enqueue():
    with patch("enrichment.api.views.enqueue_enrichment", return_value="job-123") as mock_enqueue:
        yield mock_enqueue


@pytest.fixture
def pending_log(shop, proposal_data):
    run = EnrichmentRun.objects.create(shop=shop)
    return EnrichmentLog.objects.create(
        run=run,
        shop=shop,
        product_id="gid://shopify/Product/1001",
        product_title="ASUS Vivobook 15 X1504ZA",
        status=LogStatus.PENDING,
        proposed_changes=proposal_data,
        confidence=0.85,
    )


# ============================================================
# Authentication
# ============================================================

class TestAuthentication:
    def test_missing_api_key(self, enqueue):
        client = APIClient()

        response = client.post(ENRICH_URL, {"shop": "a.myshopify.com"}, format="json")

        assert response.status_code == 403
        enqueue.assert_not_called()

    def test_wrong_api_key(self, enqueue):
        client = APIClient()
        client.credentials(HTTP_X_API_KEY="wrong")

        response = client.get(ENRICH_URL, {"shop": "a.myshopify.com"})

        assert response.status_code == 403

    def test_empty_configured_key_denies_everything(self, api_client, settings):
        settings.INTERNAL_API_KEY = ""

        assert api_client.get(ENRICH_URL).status_code == 403


# ============================================================
# Trigger
# ============================================================

class TestEnrich:
    def test_queues_batch_run(self, api_client, enqueue, shop):
        response = api_client.post(
            ENRICH_URL,
            {"max_products": 10, "auto_apply": True, "min_confidence": 0.6},
            format="json",
        )

        assert response.status_code == 202
        assert response.json() == {"success": True, "job_id": "job-123", "shop": shop, "status": "queued"}
        enqueue.assert_called_once_with(
            shop, TriggerType.MANUAL, max_products=10, auto_apply=True, min_confidence=0.6
        )

    def test_omitted_fields_are_left_to_store_config(self, api_client, enqueue, shop):
        api_client.post(ENRICH_URL, {}, format="json")

        enqueue.assert_called_once_with(
            shop, TriggerType.MANUAL, max_products=None, auto_apply=None, min_confidence=None
        )

    def test_shop_in_body(self, enqueue):
        client = APIClient()
        client.credentials(HTTP_X_API_KEY="test-internal-key")

        response = client.post(ENRICH_URL, {"shop": "body-store.myshopify.com"}, format="json")

        assert response.status_code == 202
        assert enqueue.call_args[0][0] == "body-store.myshopify.com"

    def test_missing_shop(self, enqueue):
        client = APIClient()
        client.credentials(HTTP_X_API_KEY="test-internal-key")

        response = client.post(ENRICH_URL, {}, format="json")

        assert response.status_code == 400
        assert response.json()["error"] == "shop is required"

    @pytest.mark.parametrize("body", [
        {"max_products": 0},
        {"max_products": 201},
        {"max_products": "10"},
        {"max_products": True},
        {"auto_apply": "yes"},
        {"min_confidence": 1.5},
        {"min_confidence": "high"},
    ])
    def test_invalid_parameters(self, api_client, enqueue, body):
        response = api_client.post(ENRICH_URL, body, format="json")

        assert response.status_code == 400
        enqueue.assert_not_called()

    def test_boundaries_are_accepted(self, api_client, enqueue):
        assert api_client.post(ENRICH_URL, {"max_products": 1, "min_confidence": 0}, format="json").status_code == 202
        assert api_client.post(ENRICH_URL, {"max_products": 200, "min_confidence": 1}, format="json").status_code == 202

    def test_fourth_trigger_in_window_is_throttled(self, api_client, enqueue):
        for _ in range(3):
            assert api_client.post(ENRICH_URL, {}, format="json").status_code == 202

        response = api_client.post(ENRICH_URL, {}, format="json")

        assert response.status_code == 429
        assert int(response["Retry-After"]) > 0
        assert enqueue.call_count == 3

    def test_throttle_is_per_shop(self, api_client, enqueue):
        for _ in range(3):
            api_client.post(ENRICH_URL, {}, format="json")

        other = APIClient()
        other.credentials(HTTP_X_API_KEY="test-internal-key", HTTP_X_SHOP_DOMAIN="other-store.myshopify.com")

        assert other.post(ENRICH_URL, {}, format="json").status_code == 202

    def test_reads_are_not_throttled(self, api_client):
        for _ in range(5):
            assert api_client.get(ENRICH_URL).status_code == 200


class TestLatestRun:
    def test_no_runs(self, api_client):
        response = api_client.get(ENRICH_URL)

        assert response.status_code == 200
        assert response.json() == {"run": None, "logs": []}

    def test_latest_run_with_logs(self, api_client, shop):
        from django.utils import timezone
        from datetime import timedelta

        EnrichmentRun.objects.create(shop=shop, started_at=timezone.now() - timedelta(days=1))
        latest = EnrichmentRun.objects.create(shop=shop, total_products=25)
        EnrichmentRun.objects.create(shop="other-store.myshopify.com")
        for i in range(25):
            EnrichmentLog.objects.create(
                run=latest,
                shop=shop,
                product_id=f"gid://shopify/Product/{i}",
                status=LogStatus.SKIPPED,
            )
        latest.complete()

        body = api_client.get(ENRICH_URL).json()

        assert body["run"]["id"] == str(latest.id)
        assert body["run"]["status"] == RunStatus.COMPLETED
        assert body["run"]["total_products"] == 25
        assert len(body["logs"]) == 20
        assert body["logs"][0]["status"] == "skipped"


class TestEnrichProduct:
    def test_numeric_id_is_expanded(self, api_client, enqueue, shop):
        response = api_client.post(f"{ENRICH_URL}8012345678/", {}, format="json")

        assert response.status_code == 202
        assert response.json()["product_id"] == "gid://shopify/Product/8012345678"
        enqueue.assert_called_once_with(
            shop, TriggerType.MANUAL, product_id="gid://shopify/Product/8012345678", auto_apply=None
        )

    def test_full_gid(self, api_client, enqueue):
        response = api_client.post(f"{ENRICH_URL}gid://shopify/Product/42/", {}, format="json")

        assert response.status_code == 202
        assert response.json()["product_id"] == "gid://shopify/Product/42"

    def test_single_product_trigger_is_not_throttled(self, api_client, enqueue):
        for _ in range(5):
            assert api_client.post(f"{ENRICH_URL}1/", {}, format="json").status_code == 202


# ============================================================
# Approval
# ============================================================

class TestApprove:
    def test_reject(self, api_client, pending_log):
        response = api_client.post(APPROVE_URL, {"log_id": str(pending_log.id), "action": "reject"}, format="json")

        assert response.status_code == 200
        assert response.json()["log"]["status"] == "rejected"
        pending_log.refresh_from_db()
        assert pending_log.status == LogStatus.REJECTED

    def test_approve(self, api_client, pending_log, shop):
        client = Mock()
        pending_log.status = LogStatus.APPLIED

        with patch("enrichment.api.views.build_client", return_value=client), \
                patch("enrichment.api.views.approve_log", return_value=pending_log) as mock_approve:
            response = api_client.post(APPROVE_URL, {"log_id": str(pending_log.id), "action": "approve"}, format="json")

        assert response.status_code == 200
        assert response.json()["success"] is True
        mock_approve.assert_called_once_with(str(pending_log.id), shop, client)
        client.close.assert_called_once()

    def test_failed_apply_reports_failure(self, api_client, pending_log):
        pending_log.status = LogStatus.FAILED
        pending_log.error_message = "Product gone"

        with patch("enrichment.api.views.build_client", return_value=Mock()), \
                patch("enrichment.api.views.approve_log", return_value=pending_log):
            response = api_client.post(APPROVE_URL, {"log_id": str(pending_log.id), "action": "approve"}, format="json")

        assert response.status_code == 200
        assert response.json()["success"] is False
        assert response.json()["log"]["error_message"] == "Product gone"

    def test_approve_without_credential(self, api_client, pending_log):
        response = api_client.post(APPROVE_URL, {"log_id": str(pending_log.id), "action": "approve"}, format="json")

        assert response.status_code == 400
        assert "credential" in response.json()["error"]

    @pytest.mark.parametrize("log_id", [str(uuid.uuid4()), "not-a-uuid"])
    def test_unknown_log(self, api_client, log_id):
        response = api_client.post(APPROVE_URL, {"log_id": log_id, "action": "reject"}, format="json")

        assert response.status_code == 404

    def test_other_shop(self, pending_log, enqueue):
        client = APIClient()
        client.credentials(HTTP_X_API_KEY="test-internal-key", HTTP_X_SHOP_DOMAIN="other-store.myshopify.com")

        response = client.post(APPROVE_URL, {"log_id": str(pending_log.id), "action": "reject"}, format="json")

        assert response.status_code == 403

    def test_not_pending(self, api_client, pending_log):
        pending_log.status = LogStatus.APPLIED
        pending_log.save()

        response = api_client.post(APPROVE_URL, {"log_id": str(pending_log.id), "action": "reject"}, format="json")

        assert response.status_code == 409

    @pytest.mark.parametrize("body", [{"action": "reject"}, {"log_id": "x", "action": "delete"}])
    def test_bad_request(self, api_client, body):
        assert api_client.post(APPROVE_URL, body, format="json").status_code == 400


# ============================================================
# Schedule
# ============================================================

class TestSchedule:
    def test_enable_schedule(self, api_client, shop):
        response = api_client.put(
            SCHEDULE_URL,
            {"cron_schedule": "0  3 * * *", "cron_enabled": True, "auto_apply": True, "max_products_per_run": 25},
            format="json",
        )

        assert response.status_code == 200
        body = response.json()
        assert body["config"]["cron_schedule"] == "0 3 * * *"
        assert body["config"]["max_products_per_run"] == 25
        assert body["next_run_at"] is not None

        config = StoreConfig.objects.get(shop=shop)
        assert config.auto_apply is True
        assert EnrichmentSchedule.objects.get(shop=shop).cron_expression == "0 3 * * *"

    def test_disable_schedule(self, api_client, shop):
        api_client.put(SCHEDULE_URL, {"cron_schedule": "0 3 * * *", "cron_enabled": True}, format="json")

        response = api_client.put(SCHEDULE_URL, {"cron_schedule": "0 3 * * *", "cron_enabled": False}, format="json")

        assert response.status_code == 200
        assert response.json()["next_run_at"] is None
        assert not EnrichmentSchedule.objects.filter(shop=shop).exists()
        assert StoreConfig.objects.get(shop=shop).cron_enabled is False

    def test_update_keeps_unspecified_settings(self, api_client, shop):
        StoreConfig.objects.create(shop=shop, min_confidence=0.9, max_products_per_run=10)

        api_client.put(SCHEDULE_URL, {"cron_schedule": "0 3 * * *", "cron_enabled": False}, format="json")

        config = StoreConfig.objects.get(shop=shop)
        assert config.min_confidence == 0.9
        assert config.max_products_per_run == 10

    @pytest.mark.parametrize("body", [
        {"cron_schedule": "every day", "cron_enabled": True},
        {"cron_schedule": "", "cron_enabled": True},
        {"cron_schedule": "0 3 * * *"},
        {"cron_schedule": "0 3 * * *", "cron_enabled": "yes"},
        {"cron_schedule": "0 3 * * *", "cron_enabled": True, "max_products_per_run": 500},
        {"cron_schedule": "0 3 * * *", "cron_enabled": True, "min_confidence": -0.1},
    ])
    def test_invalid(self, api_client, shop, body):
        response = api_client.put(SCHEDULE_URL, body, format="json")

        assert response.status_code == 400
        assert not StoreConfig.objects.filter(shop=shop).exists()
        assert not EnrichmentSchedule.objects.exists()

    def test_cron_that_never_fires_keeps_previous_schedule(self, api_client, shop):
        api_client.put(SCHEDULE_URL, {"cron_schedule": "0 3 * * *", "cron_enabled": True}, format="json")

        response = api_client.put(SCHEDULE_URL, {"cron_schedule": "0 0 31 2 *", "cron_enabled": True}, format="json")

        assert response.status_code == 400
        assert "never fires" in response.json()["error"]
        assert StoreConfig.objects.get(shop=shop).cron_schedule == "0 3 * * *"
        assert EnrichmentSchedule.objects.get(shop=shop).cron_expression == "0 3 * * *"

    def test_failed_registration_rolls_back_config(self, api_client, shop):
        with patch("enrichment.api.views.register_schedule", side_effect=ValueError("never fires")):
            response = api_client.put(SCHEDULE_URL, {"cron_schedule": "0 3 * * *", "cron_enabled": True}, format="json")

        assert response.status_code == 400
        assert not StoreConfig.objects.filter(shop=shop).exists()

    def test_method_not_allowed(self, api_client):
        assert api_client.post(SCHEDULE_URL, {}, format="json").status_code == 405
