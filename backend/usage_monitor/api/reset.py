"""
Usage reset API endpoint.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from usage_monitor.api.dependencies import get_response_cache
from usage_monitor.api.schemas import ResetResponse
from usage_monitor.core.auth import require_dashboard_access
from usage_monitor.core.database import get_db
from usage_monitor.services.ingestion import reset_usage

router = APIRouter()


@router.post("", response_model=ResetResponse, dependencies=[Depends(require_dashboard_access)])
def reset_usage_endpoint(
    db: Session = Depends(get_db),
    cache=Depends(get_response_cache),
):
    """Delete every stored usage event."""
    deleted = reset_usage(db, cache=cache)
    return ResetResponse(success=True, deleted=deleted)
