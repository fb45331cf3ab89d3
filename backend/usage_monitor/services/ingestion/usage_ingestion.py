"""
Idempotent ingestion of usage events.

The unique key (occurred_at, route, model) is the only consistency mechanism:
conflicting inserts are skipped by the database, so overlapping or repeated
syncs never duplicate or update rows. A batch is written in one transaction and
either lands whole or not at all.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Optional

from sqlalchemy import delete
from sqlalchemy.dialects import mysql, postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from usage_monitor.core.errors import StorageError
from usage_monitor.models.usage_record import UsageRecord
from usage_monitor.services.cache import ResponseCache, safe_clear
from usage_monitor.services.ingestion.upstream_client import CLIProxyClient
from usage_monitor.services.ingestion.usage_parser import UsageEvent, parse_usage_payload

logger = logging.getLogger(__name__)


@dataclass
class IngestResult:
    attempted: int
    inserted: int


@dataclass
class SyncResult:
    attempted: int
    inserted: int
    skipped: int


def _insert_ignoring_duplicates(dialect_name: str):
    table = UsageRecord.__table__
    if dialect_name == "sqlite":
        return sqlite.insert(table).on_conflict_do_nothing()
    if dialect_name == "postgresql":
        return postgresql.insert(table).on_conflict_do_nothing()
    if dialect_name in ("mysql", "mariadb"):
        return mysql.insert(table).prefix_with("IGNORE")
    raise NotImplementedError(f"Idempotent insert is not implemented for dialect '{dialect_name}'")


def ingest_events(
    db: Session,
    events: Iterable[UsageEvent],
    cache: Optional[ResponseCache] = None,
) -> IngestResult:
    """
    Insert events, skipping ones whose unique key already exists.

    Raises StorageError (after rolling back the whole batch) on any database failure.
    Clears the response cache when at least one row was inserted.
    """
    events = list(events)
    if not events:
        return IngestResult(attempted=0, inserted=0)

    synced_at = datetime.now(timezone.utc)
    inserted = 0
    try:
        statement = _insert_ignoring_duplicates(db.get_bind().dialect.name)
        for event in events:
            row = event.to_row()
            row["synced_at"] = synced_at
            result = db.execute(statement.values(**row))
            inserted += max(result.rowcount or 0, 0)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Ingestion of {len(events)} events failed, batch rolled back: {e}", exc_info=True)
        raise StorageError(f"Failed to store usage events: {e}") from e

    if inserted:
        safe_clear(cache)
    logger.info(f"Ingested usage events: inserted={inserted} attempted={len(events)}")
    return IngestResult(attempted=len(events), inserted=inserted)


def sync_from_upstream(
    db: Session,
    client: CLIProxyClient,
    cache: Optional[ResponseCache] = None,
) -> SyncResult:
    """Fetch usage from the upstream proxy and ingest it. UpstreamError propagates before any write."""
    logger.info("Starting usage sync from upstream")
    payload = client.fetch_usage()
    parsed = parse_usage_payload(payload)
    result = ingest_events(db, parsed.events, cache=cache)
    logger.info(
        f"✅ Usage sync finished: inserted={result.inserted} attempted={result.attempted} skipped={parsed.skipped}"
    )
    return SyncResult(attempted=result.attempted, inserted=result.inserted, skipped=parsed.skipped)


def reset_usage(db: Session, cache: Optional[ResponseCache] = None) -> int:
    """Delete every usage event. Returns the number of rows removed."""
    try:
        result = db.execute(delete(UsageRecord))
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Usage reset failed: {e}", exc_info=True)
        raise StorageError(f"Failed to reset usage records: {e}") from e

    deleted = max(result.rowcount or 0, 0)
    safe_clear(cache)
    logger.warning(f"Reset usage records: deleted={deleted}")
    return deleted
