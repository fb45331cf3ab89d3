"""
Tests for upstream payload parsing and idempotent ingestion.
"""
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import text

from conftest import StubUpstreamClient, make_event, usage_detail, usage_payload
from usage_monitor.core.errors import StorageError, UpstreamError
from usage_monitor.models.usage_record import UsageRecord
from usage_monitor.services.ingestion import ingest_events, parse_usage_payload, reset_usage, sync_from_upstream

BASE = datetime(2025, 6, 10, 8, 0, tzinfo=timezone.utc)


class TestParseUsagePayload:
    def test_each_detail_becomes_one_request(self):
        payload = usage_payload(
            ("key-1", "gpt-4o", [usage_detail("2025-06-10T08:00:00Z"), usage_detail("2025-06-10T08:01:00Z", failed=True)]),
            ("key-2", "gemini-2.5-pro", [usage_detail("2025-06-10T09:00:00+08:00", reasoning_tokens=7)]),
        )
        parsed = parse_usage_payload(payload)
        assert parsed.skipped == 0
        assert len(parsed.events) == 3

        failed = [e for e in parsed.events if e.is_error]
        assert len(failed) == 1
        assert failed[0].failure_count == 1 and failed[0].success_count == 0
        assert all(e.total_requests == 1 for e in parsed.events)

        gemini = next(e for e in parsed.events if e.model == "gemini-2.5-pro")
        assert gemini.occurred_at == datetime(2025, 6, 10, 1, 0, tzinfo=timezone.utc)
        assert gemini.route == "key-2"
        assert gemini.reasoning_tokens == 7
        assert gemini.raw["route"] == "key-2"

    def test_missing_total_is_derived(self):
        detail = usage_detail("2025-06-10T08:00:00Z", input_tokens=10, output_tokens=5, reasoning_tokens=2)
        detail["tokens"]["total_tokens"] = 0
        parsed = parse_usage_payload(usage_payload(("k", "m", [detail])))
        assert parsed.events[0].total_tokens == 17

    def test_malformed_details_are_skipped(self):
        bad_timestamp = usage_detail("not-a-date")
        negative = usage_detail("2025-06-10T08:00:00Z", input_tokens=-1)
        payload = usage_payload(
            ("k", "m", [bad_timestamp, negative, "garbage", usage_detail("2025-06-10T08:00:00Z")]),
            (" ", "m", [usage_detail("2025-06-10T08:00:00Z")]),
        )
        parsed = parse_usage_payload(payload)
        assert len(parsed.events) == 1
        assert parsed.skipped == 4

    def test_payload_without_usage(self):
        parsed = parse_usage_payload({"unexpected": True})
        assert parsed.events == []
        assert parsed.skipped == 0


class TestIngestEvents:
    def test_second_ingest_is_a_noop(self, db):
        events = [make_event(BASE + timedelta(minutes=i)) for i in range(5)]
        first = ingest_events(db, events)
        second = ingest_events(db, events)
        assert (first.attempted, first.inserted) == (5, 5)
        assert (second.attempted, second.inserted) == (5, 0)
        assert db.query(UsageRecord).count() == 5

    def test_duplicates_within_batch(self, db):
        events = [
            make_event(BASE, route="r", model="m"),
            make_event(BASE, route="r", model="m", input_tokens=999),
            make_event(BASE, route="r", model="other"),
            make_event(BASE, route="r2", model="m"),
        ]
        result = ingest_events(db, events)
        assert result.inserted == 3
        kept = db.query(UsageRecord).filter(UsageRecord.route == "r", UsageRecord.model == "m").one()
        assert kept.input_tokens == 100

    def test_overlapping_batches(self, db):
        ingest_events(db, [make_event(BASE + timedelta(minutes=i)) for i in range(0, 6)])
        result = ingest_events(db, [make_event(BASE + timedelta(minutes=i)) for i in range(3, 10)])
        assert result.inserted == 4
        assert db.query(UsageRecord).count() == 10

    def test_stored_timestamps_are_utc(self, db):
        ingest_events(db, [make_event(datetime(2025, 6, 10, 16, 0, tzinfo=timezone(timedelta(hours=8))))])
        record = db.query(UsageRecord).one()
        assert record.occurred_at == datetime(2025, 6, 10, 8, 0, tzinfo=timezone.utc)
        assert record.occurred_at.tzinfo is not None

    def test_cache_cleared_only_when_rows_inserted(self, db, cache):
        events = [make_event(BASE)]
        cache.set("k", "v")
        ingest_events(db, events, cache=cache)
        assert len(cache) == 0

        cache.set("k", "v")
        ingest_events(db, events, cache=cache)
        assert cache.get("k") == "v"

    def test_storage_failure_raises(self, db, cache):
        db.execute(text("DROP TABLE usage_records"))
        db.commit()
        cache.set("k", "v")
        with pytest.raises(StorageError):
            ingest_events(db, [make_event(BASE)], cache=cache)
        assert cache.get("k") == "v"

    def test_empty_batch(self, db):
        result = ingest_events(db, [])
        assert (result.attempted, result.inserted) == (0, 0)


class TestSyncFromUpstream:
    def test_duplicate_sync(self, db):
        payload = usage_payload(("key-1", "gpt-4o", [usage_detail(f"2025-06-10T08:0{i}:00Z") for i in range(4)]))
        client = StubUpstreamClient(payload)
        first = sync_from_upstream(db, client)
        second = sync_from_upstream(db, client)
        assert (first.attempted, first.inserted) == (4, 4)
        assert (second.attempted, second.inserted) == (4, 0)

    def test_skipped_details_reported(self, db):
        payload = usage_payload(("k", "m", [usage_detail("bad"), usage_detail("2025-06-10T08:00:00Z")]))
        result = sync_from_upstream(db, StubUpstreamClient(payload))
        assert (result.attempted, result.inserted, result.skipped) == (1, 1, 1)

    def test_upstream_failure_writes_nothing(self, db):
        client = StubUpstreamClient(error=UpstreamError("timed out"))
        with pytest.raises(UpstreamError):
            sync_from_upstream(db, client)
        assert db.query(UsageRecord).count() == 0


class TestResetUsage:
    def test_reset_deletes_everything_and_clears_cache(self, db, cache):
        ingest_events(db, [make_event(BASE + timedelta(minutes=i)) for i in range(3)])
        cache.set("k", "v")
        assert reset_usage(db, cache=cache) == 3
        assert db.query(UsageRecord).count() == 0
        assert len(cache) == 0
