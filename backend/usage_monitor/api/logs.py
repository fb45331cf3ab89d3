"""
Proxies for the upstream log viewer: recent log lines, request error log files
and the management panel link.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import PlainTextResponse

from usage_monitor.api.dependencies import get_upstream_client_factory
from usage_monitor.api.schemas import ErrorLogListResponse, LogsResponse, ManagementUrlResponse
from usage_monitor.core.auth import get_app_settings, require_dashboard_access
from usage_monitor.core.config import management_panel_url
from usage_monitor.services.usage.window import parse_int

router = APIRouter(dependencies=[Depends(require_dashboard_access)])


def _client(request: Request, client_factory):
    return client_factory(get_app_settings(request).sync_timeout_manual_seconds)


@router.get("/logs", response_model=LogsResponse)
def get_logs(
    request: Request,
    after: Optional[str] = Query(None, description="Only lines newer than this epoch second"),
    client_factory=Depends(get_upstream_client_factory),
):
    since = parse_int(after)
    payload = _client(request, client_factory).fetch_logs(since if since and since > 0 else None)
    return LogsResponse.model_validate(payload)


@router.get("/request-error-logs", response_model=ErrorLogListResponse)
def get_request_error_logs(
    request: Request,
    name: Optional[str] = Query(None, description="Return this file's content instead of the listing"),
    client_factory=Depends(get_upstream_client_factory),
):
    client = _client(request, client_factory)
    if name:
        return PlainTextResponse(client.get_request_error_log(name))
    return ErrorLogListResponse(files=client.list_request_error_logs())


@router.get("/management-url", response_model=ManagementUrlResponse)
def get_management_url(request: Request):
    return ManagementUrlResponse(url=management_panel_url(get_app_settings(request).cliproxy_api_base_url))
