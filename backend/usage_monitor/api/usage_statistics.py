"""
Proxy for the upstream usage-statistics toggle.
"""
from fastapi import APIRouter, Depends, Request

from usage_monitor.api.dependencies import get_upstream_client_factory
from usage_monitor.api.schemas import UsageStatisticsRequest, UsageStatisticsResponse
from usage_monitor.core.auth import get_app_settings, require_dashboard_access

router = APIRouter(dependencies=[Depends(require_dashboard_access)])


@router.get("", response_model=UsageStatisticsResponse)
def get_usage_statistics(request: Request, client_factory=Depends(get_upstream_client_factory)):
    client = client_factory(get_app_settings(request).sync_timeout_manual_seconds)
    return UsageStatisticsResponse(enabled=client.get_usage_statistics_enabled())


@router.put("", response_model=UsageStatisticsResponse)
@router.patch("", response_model=UsageStatisticsResponse)
def set_usage_statistics(
    payload: UsageStatisticsRequest,
    request: Request,
    client_factory=Depends(get_upstream_client_factory),
):
    client = client_factory(get_app_settings(request).sync_timeout_manual_seconds)
    return UsageStatisticsResponse(enabled=client.set_usage_statistics_enabled(payload.value))
