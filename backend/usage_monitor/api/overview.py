"""
Usage overview API endpoint.

Query parameters are taken as raw strings and clamped by the service, so
malformed values fall back to defaults instead of failing validation.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query

from usage_monitor.api.dependencies import get_query_service
from usage_monitor.api.schemas import OverviewResponse
from usage_monitor.core.auth import require_dashboard_access
from usage_monitor.services.usage import UsageQueryService

router = APIRouter()


@router.get("", response_model=OverviewResponse, dependencies=[Depends(require_dashboard_access)])
def get_overview_endpoint(
    days: Optional[str] = Query(None, description="Relative window in days (1-90, default 14)"),
    start: Optional[str] = Query(None, description="Explicit start date (YYYY-MM-DD or ISO)"),
    end: Optional[str] = Query(None, description="Explicit end date (YYYY-MM-DD or ISO)"),
    model: Optional[str] = Query(None, description="Filter by exact model name"),
    route: Optional[str] = Query(None, description="Filter by exact route"),
    page: Optional[str] = Query(None, description="Model breakdown page (>= 1)"),
    page_size: Optional[str] = Query(None, alias="pageSize", description="Model breakdown page size (5-500)"),
    service: UsageQueryService = Depends(get_query_service),
):
    """Aggregated usage for the resolved window."""
    result = service.get_overview(
        days=days,
        start=start,
        end=end,
        model=model,
        route=route,
        page=page,
        page_size=page_size,
    )
    return OverviewResponse.model_validate(result)
