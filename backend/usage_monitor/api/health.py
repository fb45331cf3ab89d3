"""
Health check endpoint.
"""
from fastapi import APIRouter, Request

from usage_monitor.api.schemas import HealthResponse
from usage_monitor.core.auth import get_app_settings

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health(request: Request):
    return HealthResponse(status="ok", timezone=get_app_settings(request).timezone)
