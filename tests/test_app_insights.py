"""Tests for Application Insights trace telemetry."""

from busworq import app_insights
from busworq.schemas import Settings


class TestTelemetryDisabled:
    def test_setup_without_key(self):
        assert app_insights.setup(Settings()) is False
        assert app_insights.default_client is None

    def test_log_trace_message_noop(self):
        # Should not raise
        app_insights.log_trace_message("orders-receiver")

    def test_flush_noop(self):
        app_insights.flush()
        app_insights.shutdown()


class TestTelemetryEnabled:
    def test_setup_creates_default_client(self, traces):
        enabled = app_insights.setup(
            Settings(appinsights_key="ikey", cloud_role_name="orders-worker")
        )

        assert enabled is True
        assert app_insights.default_client.key == "ikey"
        assert app_insights.default_client.context.cloud.role == "orders-worker"

    def test_log_trace_message_tracks(self, traces):
        app_insights.log_trace_message("orders-receiver", {"message_id": "1"})
        assert traces == [
            {"name": "orders-receiver", "properties": {"message_id": "1"}},
        ]

    def test_shutdown_flushes_and_clears(self, traces):
        client = app_insights.default_client
        app_insights.shutdown()

        assert client.flushed == 1
        assert app_insights.default_client is None
