"""
Tests for Sentry error capture in the enrichment pipeline.
"""

from unittest.mock import MagicMock, Mock, patch

from enrichment.monitoring import (
    _filter_sensitive_data,
    add_pipeline_breadcrumb,
    capture_pipeline_error,
)


class TestSentryErrorCapture:
    """Test Sentry error capture with pipeline context."""

    def test_capture_pipeline_error_with_breadcrumbs(self):
        """Pipeline errors are captured with a breadcrumb and scope tags."""
        mock_sentry = MagicMock()
        scope = MagicMock()
        mock_sentry.new_scope.return_value.__enter__.return_value = scope

        with patch("enrichment.monitoring.sentry_sdk", mock_sentry):
            error = ValueError("Gemini returned garbage")
            capture_pipeline_error(
                error,
                shop="test-store.myshopify.com",
                product_id="gid://shopify/Product/1",
                run_id="run-1",
            )

        breadcrumb_kwargs = mock_sentry.add_breadcrumb.call_args[1]
        assert breadcrumb_kwargs["category"] == "enrichment"
        assert breadcrumb_kwargs["level"] == "error"
        assert breadcrumb_kwargs["data"] == {
            "shop": "test-store.myshopify.com",
            "product_id": "gid://shopify/Product/1",
            "run_id": "run-1",
        }

        scope.set_tag.assert_called_with("enrichment.shop", "test-store.myshopify.com")
        mock_sentry.capture_exception.assert_called_once_with(error)

    def test_capture_error_filters_sensitive_data(self):
        """Tokens and keys in extra context never reach Sentry."""
        mock_sentry = MagicMock()
        scope = MagicMock()
        mock_sentry.new_scope.return_value.__enter__.return_value = scope

        with patch("enrichment.monitoring.sentry_sdk", mock_sentry):
            capture_pipeline_error(
                RuntimeError("boom"),
                shop="test-store.myshopify.com",
                extra_context={
                    "headers": {"X-Shopify-Access-Token": "shpat_secret"},
                    "api_key": "AIza-secret",
                    "query": "asus vivobook",
                },
            )

        scope.set_extra.assert_called_once_with("pipeline_context", {
            "headers": {"X-Shopify-Access-Token": "[Filtered]"},
            "api_key": "[Filtered]",
            "query": "asus vivobook",
        })

    def test_sentry_failures_are_swallowed(self):
        """A broken Sentry client never breaks the pipeline."""
        mock_sentry = Mock()
        mock_sentry.add_breadcrumb.side_effect = RuntimeError("sentry down")
        mock_sentry.new_scope.side_effect = RuntimeError("sentry down")

        with patch("enrichment.monitoring.sentry_sdk", mock_sentry):
            add_pipeline_breadcrumb("test-store.myshopify.com", "step")
            capture_pipeline_error(ValueError("x"), shop="test-store.myshopify.com")


def test_filter_sensitive_data_passes_non_dicts_through():
    assert _filter_sensitive_data("plain") == "plain"
    assert _filter_sensitive_data({"password": "x", "n": 1}) == {"password": "[Filtered]", "n": 1}
