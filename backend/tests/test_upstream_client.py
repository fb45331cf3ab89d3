"""
Tests for the management API client, served by an in-memory httpx transport.
"""
import json

import httpx
import pytest

from usage_monitor.core.errors import UpstreamError
from usage_monitor.services.ingestion import CLIProxyClient


def make_client(handler, base_url="proxy.test"):
    return CLIProxyClient(base_url, "secret", timeout=5, transport=httpx.MockTransport(handler))


class TestCLIProxyClient:
    def test_fetch_usage(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"usage": {"apis": {}}})

        assert make_client(handler).fetch_usage() == {"usage": {"apis": {}}}
        assert str(seen[0].url) == "https://proxy.test/v0/management/usage"
        assert seen[0].headers["authorization"] == "Bearer secret"

    def test_toggle_usage_statistics(self):
        bodies = []

        def handler(request):
            if request.method == "PUT":
                bodies.append(json.loads(request.content))
                return httpx.Response(200, json={"status": "ok"})
            return httpx.Response(200, json={"usage-statistics-enabled": True})

        client = make_client(handler)
        assert client.get_usage_statistics_enabled() is True
        assert client.set_usage_statistics_enabled(False) is False
        assert bodies == [{"value": False}]

    def test_http_error_status(self):
        client = make_client(lambda request: httpx.Response(503, text="unavailable"))
        with pytest.raises(UpstreamError) as exc_info:
            client.fetch_usage()
        assert exc_info.value.status_code == 503

    def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(UpstreamError, match="timed out"):
            make_client(handler).fetch_usage()

    def test_invalid_payloads(self):
        with pytest.raises(UpstreamError):
            make_client(lambda request: httpx.Response(200, text="not json")).fetch_usage()
        with pytest.raises(UpstreamError):
            make_client(lambda request: httpx.Response(200, json=[1, 2])).fetch_usage()
        with pytest.raises(UpstreamError):
            make_client(lambda request: httpx.Response(200, json={})).get_usage_statistics_enabled()

    def test_fetch_logs_passes_after(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"lines": ["a"], "line-count": 1, "latest-timestamp": 42})

        client = make_client(handler)
        assert client.fetch_logs(after=1_750_000_000)["latest-timestamp"] == 42
        assert seen[0].url.path == "/v0/management/logs"
        assert seen[0].url.params["after"] == "1750000000"
        client.fetch_logs()
        assert "after" not in seen[1].url.params

    def test_upstream_error_message_is_kept(self):
        client = make_client(lambda request: httpx.Response(400, json={"error": "logging to file disabled"}))
        with pytest.raises(UpstreamError, match="logging to file disabled") as exc_info:
            client.fetch_logs()
        assert exc_info.value.status_code == 400

    def test_request_error_logs(self):
        seen = []

        def handler(request):
            seen.append(request)
            if request.url.path.endswith("/request-error-logs"):
                return httpx.Response(200, json={"files": [{"name": "a.log", "size": 3}, {"size": 1}, "junk"]})
            return httpx.Response(200, text="raw log body")

        client = make_client(handler)
        assert client.list_request_error_logs() == [{"name": "a.log", "size": 3}]
        assert client.get_request_error_log("error 1.log") == "raw log body"
        assert seen[1].url.raw_path == b"/v0/management/request-error-logs/error%201.log"
