"""
Dependencies resolving the per-app components created in main.create_app.
"""
from typing import Callable, Optional

from fastapi import Request

from usage_monitor.services.auth import LoginRateLimiter
from usage_monitor.services.cache import ResponseCache
from usage_monitor.services.ingestion import CLIProxyClient
from usage_monitor.services.usage import UsageQueryService


def get_query_service(request: Request) -> UsageQueryService:
    return request.app.state.query_service


def get_response_cache(request: Request) -> Optional[ResponseCache]:
    return request.app.state.cache


def get_rate_limiter(request: Request) -> LoginRateLimiter:
    return request.app.state.rate_limiter


def get_upstream_client_factory(request: Request) -> Callable[[float], CLIProxyClient]:
    """Factory taking a timeout in seconds."""
    return request.app.state.upstream_client_factory
