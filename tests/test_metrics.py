"""Tests for the CloudWatch metrics client."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from linear_agent.services.metrics import MetricsClient


def _make_client(*, enabled: bool = False) -> MetricsClient:
    with patch.dict("os.environ", {"METRICS_ENABLED": str(enabled).lower()}):
        return MetricsClient()


def _names(client: MetricsClient) -> set[str]:
    return {m["MetricName"] for m in client._buffer}


def _dims(metric: dict) -> dict[str, str]:
    return {d["Name"]: d["Value"] for d in metric["Dimensions"]}


class TestMetricsRecording:
    """Verify that record_success / record_failure buffer the right data."""

    def test_record_success_appends_count_and_latency(self):
        client = _make_client()
        client.record_success("linear", "issueUpdate", latency_ms=123.4)
        assert _names(client) == {"ExternalAPI/RequestCount", "ExternalAPI/Latency"}
        count = next(m for m in client._buffer if m["MetricName"] == "ExternalAPI/RequestCount")
        assert _dims(count) == {"Service": "linear", "Status": "success"}

    def test_record_failure_without_latency(self):
        client = _make_client()
        client.record_failure("anthropic", "llm_invoke", error_type="APITimeoutError")
        assert _names(client) == {"ExternalAPI/RequestCount", "ExternalAPI/ErrorCount"}
        error = next(m for m in client._buffer if m["MetricName"] == "ExternalAPI/ErrorCount")
        assert _dims(error)["ErrorType"] == "APITimeoutError"

    def test_record_failure_with_latency(self):
        client = _make_client()
        client.record_failure("telegram", "sendMessage", error_type="ConnectError", latency_ms=500.0)
        assert len(client._buffer) == 3


class TestTimed:
    def test_success_recorded(self):
        client = _make_client()
        with client.timed("linear", "issues"):
            pass
        latency = next(m for m in client._buffer if m["MetricName"] == "ExternalAPI/Latency")
        assert _dims(latency) == {"Service": "linear", "Operation": "issues"}

    def test_failure_recorded_and_reraised(self):
        client = _make_client()
        with pytest.raises(KeyError):
            with client.timed("linear", "issues"):
                raise KeyError("boom")
        error = next(m for m in client._buffer if m["MetricName"] == "ExternalAPI/ErrorCount")
        assert _dims(error)["ErrorType"] == "KeyError"


class TestMetricsFlush:
    """Verify flush behaviour with and without CloudWatch enabled."""

    def test_flush_when_disabled_sends_nothing_and_clears(self):
        client = _make_client()
        client.record_success("linear", "issues", latency_ms=100.0)
        assert client.flush() == 0
        assert client._buffer == []

    def test_flush_when_enabled_calls_put_metric_data(self):
        client = _make_client(enabled=True)
        mock_cw = MagicMock()
        client._cw_client = mock_cw

        client.record_success("linear", "issues", latency_ms=100.0)
        sent = client.flush()

        assert sent == 2
        kwargs = mock_cw.put_metric_data.call_args.kwargs
        assert kwargs["Namespace"] == "LinearAgent"
        assert len(kwargs["MetricData"]) == 2

    def test_flush_failure_is_logged_not_raised(self):
        client = _make_client(enabled=True)
        client._cw_client = MagicMock()
        client._cw_client.put_metric_data.side_effect = RuntimeError("throttled")
        client.record_success("linear", "issues", latency_ms=1.0)
        assert client.flush() == 0

    def test_flush_empty_buffer_returns_zero(self):
        assert _make_client(enabled=True).flush() == 0
