"""
Authentication utilities and dependencies.

The dashboard is gated by one shared password. A browser proves it with the
dashboard_auth cookie (sha256 of the password); scripts and cron callers send
the password or the cron secret as a Bearer token.
"""
import hashlib
import hmac
from typing import Optional

from fastapi import Cookie, HTTPException, Request, status

COOKIE_NAME = "dashboard_auth"
COOKIE_MAX_AGE = 30 * 24 * 60 * 60  # 30 days

__all__ = ['COOKIE_NAME', 'COOKIE_MAX_AGE', 'hash_password', 'get_client_ip', 'get_app_settings', 'require_dashboard_access']


def hash_password(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def get_client_ip(request: Request) -> str:
    """First X-Forwarded-For hop, then X-Real-IP, else "unknown"."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return request.headers.get("x-real-ip") or "unknown"


def get_app_settings(request: Request):
    return request.app.state.settings


def _matches(provided: str, expected: str) -> bool:
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


def _bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("authorization") or ""
    if header.startswith("Bearer "):
        return header[7:].strip() or None
    return None


def require_dashboard_access(
    request: Request,
    dashboard_auth: Optional[str] = Cookie(None),
) -> None:
    """Dependency gating every /api data endpoint."""
    settings = get_app_settings(request)
    password = settings.dashboard_password
    if not password:
        return

    if dashboard_auth and _matches(dashboard_auth, hash_password(password)):
        return

    token = _bearer_token(request)
    if token:
        if _matches(token, password):
            return
        if settings.cron_secret and _matches(token, settings.cron_secret):
            return

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Not authenticated"
    )
