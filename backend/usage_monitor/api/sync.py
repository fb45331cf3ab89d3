"""
Upstream sync API endpoints.

POST is the interactive trigger from the dashboard (short upstream timeout);
GET is for external cron callers (long timeout, Bearer cron secret accepted).
"""
import logging
from typing import Callable

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from usage_monitor.api.dependencies import get_response_cache, get_upstream_client_factory
from usage_monitor.api.schemas import SyncResponse
from usage_monitor.core.auth import get_app_settings, require_dashboard_access
from usage_monitor.core.database import get_db
from usage_monitor.services.ingestion import CLIProxyClient, sync_from_upstream

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(require_dashboard_access)])


def _run_sync(db: Session, client_factory: Callable[[float], CLIProxyClient], timeout: float, cache) -> SyncResponse:
    result = sync_from_upstream(db, client_factory(timeout), cache=cache)
    return SyncResponse(attempted=result.attempted, inserted=result.inserted, skipped=result.skipped)


@router.post("", response_model=SyncResponse)
def trigger_sync(
    request: Request,
    db: Session = Depends(get_db),
    client_factory=Depends(get_upstream_client_factory),
    cache=Depends(get_response_cache),
):
    """Manual sync from the dashboard."""
    timeout = get_app_settings(request).sync_timeout_manual_seconds
    return _run_sync(db, client_factory, timeout, cache)


@router.get("", response_model=SyncResponse)
def cron_sync(
    request: Request,
    db: Session = Depends(get_db),
    client_factory=Depends(get_upstream_client_factory),
    cache=Depends(get_response_cache),
):
    """Sync triggered by an external scheduler."""
    timeout = get_app_settings(request).sync_timeout_scheduled_seconds
    return _run_sync(db, client_factory, timeout, cache)
