"""
Ingestion of upstream usage telemetry.
"""
from usage_monitor.services.ingestion.upstream_client import CLIProxyClient
from usage_monitor.services.ingestion.usage_ingestion import (
    IngestResult,
    SyncResult,
    ingest_events,
    reset_usage,
    sync_from_upstream,
)
from usage_monitor.services.ingestion.usage_parser import ParsedUsage, UsageEvent, parse_usage_payload

__all__ = [
    "CLIProxyClient",
    "IngestResult",
    "SyncResult",
    "ingest_events",
    "reset_usage",
    "sync_from_upstream",
    "ParsedUsage",
    "UsageEvent",
    "parse_usage_payload",
]
