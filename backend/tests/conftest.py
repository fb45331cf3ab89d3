"""
Shared fixtures: an isolated SQLite file per test, a fresh response cache and a
TestClient over create_app() with injected components. Nothing touches the network.
"""
from datetime import datetime, timezone
from typing import Optional

import pytest
from fastapi.testclient import TestClient

from usage_monitor.core.config import get_settings
from usage_monitor.core.database import create_db_engine, create_session_factory, init_db
from usage_monitor.main import create_app
from usage_monitor.services.auth import LoginRateLimiter
from usage_monitor.services.cache import ResponseCache
from usage_monitor.services.ingestion import UsageEvent

FIXED_NOW = datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)


def make_settings(**overrides):
    """Settings object with test defaults; keyword arguments override attributes."""
    settings = get_settings()
    defaults = {
        "timezone": "UTC",
        "dashboard_password": "",
        "cron_secret": "",
        "cliproxy_api_base_url": "https://proxy.test/v0/management",
        "cliproxy_secret_key": "upstream-key",
        "sync_enabled": False,
        "query_workers": 4,
        "cors_origins": ["http://localhost:3000"],
    }
    defaults.update(overrides)
    for name, value in defaults.items():
        setattr(settings, name, value)
    return settings


def make_event(
    occurred_at: datetime,
    route: str = "route-a",
    model: str = "gpt-4o",
    input_tokens: int = 100,
    output_tokens: int = 50,
    cached_tokens: int = 0,
    reasoning_tokens: int = 0,
    total_requests: int = 1,
    failed: bool = False,
    total_tokens: Optional[int] = None,
) -> UsageEvent:
    return UsageEvent(
        occurred_at=occurred_at,
        route=route,
        model=model,
        total_tokens=total_tokens if total_tokens is not None else input_tokens + output_tokens + reasoning_tokens,
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        reasoning_tokens=reasoning_tokens,
        cached_tokens=cached_tokens,
        total_requests=total_requests,
        success_count=0 if failed else total_requests,
        failure_count=total_requests if failed else 0,
        is_error=failed,
    )


def usage_payload(*details_by_key):
    """Build an upstream usage document from (route, model, [detail, ...]) tuples."""
    apis = {}
    for route, model, details in details_by_key:
        apis.setdefault(route, {"models": {}})["models"][model] = {"details": list(details)}
    return {"usage": {"apis": apis}}


def usage_detail(timestamp: str, input_tokens=100, output_tokens=50, cached_tokens=0, reasoning_tokens=0, failed=False):
    return {
        "timestamp": timestamp,
        "tokens": {
            "input_tokens": input_tokens,
            "output_tokens": output_tokens,
            "reasoning_tokens": reasoning_tokens,
            "cached_tokens": cached_tokens,
            "total_tokens": input_tokens + output_tokens + reasoning_tokens,
        },
        "failed": failed,
    }


class StubUpstreamClient:
    """Stands in for CLIProxyClient."""

    def __init__(self, payload=None, error: Optional[Exception] = None, statistics_enabled: bool = True):
        self.payload = payload if payload is not None else {"usage": {"apis": {}}}
        self.error = error
        self.statistics_enabled = statistics_enabled
        self.fetch_calls = 0
        self.timeouts = []
        self.log_requests = []

    def fetch_usage(self):
        self.fetch_calls += 1
        if self.error is not None:
            raise self.error
        return self.payload

    def get_usage_statistics_enabled(self) -> bool:
        if self.error is not None:
            raise self.error
        return self.statistics_enabled

    def set_usage_statistics_enabled(self, enabled: bool) -> bool:
        if self.error is not None:
            raise self.error
        self.statistics_enabled = enabled
        return enabled

    def fetch_logs(self, after=None):
        if self.error is not None:
            raise self.error
        self.log_requests.append(after)
        return {"lines": ["line one", "line two"], "line-count": 2, "latest-timestamp": 1_750_000_000}

    def list_request_error_logs(self):
        if self.error is not None:
            raise self.error
        return [{"name": "error-1.log", "size": 12, "modified": 1_750_000_000}]

    def get_request_error_log(self, name):
        if self.error is not None:
            raise self.error
        return f"contents of {name}"


@pytest.fixture
def engine(tmp_path):
    engine = create_db_engine(f"sqlite:///{tmp_path / 'usage.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def cache():
    return ResponseCache(ttl_seconds=30, max_entries=100)


@pytest.fixture
def upstream():
    return StubUpstreamClient()


@pytest.fixture
def build_client(session_factory, cache, upstream):
    """Factory for a TestClient; keyword arguments override settings."""
    clients = []

    def _build(upstream_client=None, rate_limiter=None, client_factory=..., **settings_overrides):
        stub = upstream_client or upstream

        def stub_factory(timeout):
            stub.timeouts.append(timeout)
            return stub

        app = create_app(
            settings=make_settings(**settings_overrides),
            session_factory=session_factory,
            cache=cache,
            upstream_client_factory=stub_factory if client_factory is ... else client_factory,
            rate_limiter=LoginRateLimiter() if rate_limiter is None else rate_limiter,
            enable_scheduler=False,
            create_tables=False,
            clock=lambda: FIXED_NOW,
        )
        client = TestClient(app)
        client.__enter__()
        clients.append(client)
        return client

    yield _build
    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture
def client(build_client):
    return build_client()
