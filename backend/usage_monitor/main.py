"""
FastAPI application entry point.
"""
import logging
from datetime import datetime
from typing import Callable, Optional

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from usage_monitor.api import auth, explore, health, logs, overview, prices, reset, sync, usage_statistics
from usage_monitor.core.config import assert_upstream_configured, get_settings
from usage_monitor.core.database import SessionLocal, init_db
from usage_monitor.core.errors import ConfigurationError, StorageError, UpstreamError
from usage_monitor.services.auth import LoginRateLimiter
from usage_monitor.services.cache import ResponseCache
from usage_monitor.services.ingestion import CLIProxyClient
from usage_monitor.services.scheduler import start_scheduler, stop_scheduler
from usage_monitor.services.usage import UsageQueryService

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(request: Request, exc: ConfigurationError):
        return JSONResponse({"error": str(exc)}, status_code=status.HTTP_501_NOT_IMPLEMENTED)

    @app.exception_handler(UpstreamError)
    async def upstream_error_handler(request: Request, exc: UpstreamError):
        return JSONResponse({"error": str(exc)}, status_code=status.HTTP_502_BAD_GATEWAY)

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError):
        logger.error(f"Storage error on {request.method} {request.url.path}: {exc}")
        return JSONResponse({"error": "Internal Server Error"}, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)


def create_app(
    settings=None,
    session_factory: Optional[Callable[[], Session]] = None,
    cache: Optional[ResponseCache] = None,
    upstream_client_factory: Optional[Callable[[float], CLIProxyClient]] = None,
    rate_limiter: Optional[LoginRateLimiter] = None,
    enable_scheduler: Optional[bool] = None,
    create_tables: bool = True,
    clock: Optional[Callable[[], datetime]] = None,
) -> FastAPI:
    """Build the app with its process-lifetime components; tests inject their own."""
    settings = settings or get_settings()
    session_factory = session_factory or SessionLocal
    if cache is None:
        cache = ResponseCache(ttl_seconds=settings.cache_ttl_seconds, max_entries=settings.cache_max_entries)
    if enable_scheduler is None:
        enable_scheduler = settings.sync_enabled

    if upstream_client_factory is None:
        def upstream_client_factory(timeout: float) -> CLIProxyClient:
            assert_upstream_configured(settings)
            return CLIProxyClient(settings.cliproxy_api_base_url, settings.cliproxy_secret_key, timeout=timeout)

    app = FastAPI(
        title="Usage Monitor API",
        description="Usage analytics for an upstream API proxy",
        version="0.1.0",
    )

    app.state.settings = settings
    app.state.session_factory = session_factory
    app.state.cache = cache
    app.state.upstream_client_factory = upstream_client_factory
    app.state.rate_limiter = rate_limiter or LoginRateLimiter()
    app.state.query_service = UsageQueryService(
        session_factory,
        settings.timezone,
        cache=cache,
        max_workers=settings.query_workers,
        clock=clock,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_error_handlers(app)

    # Include routers
    app.include_router(health.router, tags=["health"])
    app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
    app.include_router(overview.router, prefix="/api/overview", tags=["overview"])
    app.include_router(explore.router, prefix="/api/explore", tags=["explore"])
    app.include_router(sync.router, prefix="/api/sync", tags=["sync"])
    app.include_router(prices.router, prefix="/api/prices", tags=["prices"])
    app.include_router(reset.router, prefix="/api/reset", tags=["reset"])
    app.include_router(usage_statistics.router, prefix="/api/usage-statistics-enabled", tags=["settings"])
    app.include_router(logs.router, prefix="/api", tags=["logs"])

    @app.on_event("startup")
    async def startup_event():
        """Initialize storage and the sync job on startup."""
        if create_tables:
            init_db(getattr(session_factory, "kw", {}).get("bind"))
        logger.info(f"Usage monitor starting (timezone={settings.timezone})")
        if enable_scheduler:
            start_scheduler(
                session_factory,
                lambda: upstream_client_factory(settings.sync_timeout_scheduled_seconds),
                settings.sync_cron,
                cache=cache,
            )

    @app.on_event("shutdown")
    async def shutdown_event():
        """Cleanup on shutdown."""
        if enable_scheduler:
            stop_scheduler()
        app.state.query_service.close()

    return app


app = create_app()
