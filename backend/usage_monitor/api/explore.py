"""
Point-level exploration API endpoint.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query

from usage_monitor.api.dependencies import get_query_service
from usage_monitor.api.schemas import ExploreResponse
from usage_monitor.core.auth import require_dashboard_access
from usage_monitor.services.usage import UsageQueryService

router = APIRouter()


@router.get("", response_model=ExploreResponse, dependencies=[Depends(require_dashboard_access)])
def get_explore_endpoint(
    days: Optional[str] = Query(None),
    start: Optional[str] = Query(None),
    end: Optional[str] = Query(None),
    max_points: Optional[str] = Query(None, alias="maxPoints", description="Point budget (1000-100000)"),
    service: UsageQueryService = Depends(get_query_service),
):
    """Deterministically sampled single-request events."""
    result = service.get_explore(days=days, start=start, end=end, max_points=max_points)
    return ExploreResponse.model_validate(result)
