"""
Tests for the periodic sync job.
"""
from apscheduler.triggers.cron import CronTrigger

from conftest import StubUpstreamClient, usage_detail, usage_payload
from usage_monitor.core.errors import UpstreamError
from usage_monitor.models.usage_record import UsageRecord
from usage_monitor.services.scheduler import build_trigger, run_scheduled_sync


class TestBuildTrigger:
    def test_valid_expression(self):
        assert isinstance(build_trigger("*/5 * * * *"), CronTrigger)

    def test_invalid_expression(self):
        assert build_trigger("every five minutes") is None
        assert build_trigger("61 * * * *") is None


class TestRunScheduledSync:
    def test_inserts_rows(self, session_factory, db, cache):
        stub = StubUpstreamClient(usage_payload(("key-1", "gpt-4o", [usage_detail("2025-06-10T08:00:00Z")])))
        cache.set("k", "v")
        run_scheduled_sync(session_factory, lambda: stub, cache)
        assert db.query(UsageRecord).count() == 1
        assert len(cache) == 0

    def test_upstream_failure_is_swallowed(self, session_factory, db):
        stub = StubUpstreamClient(error=UpstreamError("Upstream returned HTTP 500", 500))
        run_scheduled_sync(session_factory, lambda: stub, None)
        assert stub.fetch_calls == 1
        assert db.query(UsageRecord).count() == 0
