"""
Dashboard login endpoints.
"""
import base64
import binascii
import logging
import math

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from usage_monitor.api.dependencies import get_rate_limiter
from usage_monitor.core.auth import (
    COOKIE_MAX_AGE,
    COOKIE_NAME,
    get_app_settings,
    get_client_ip,
    hash_password,
)
from usage_monitor.services.auth import LoginRateLimiter

logger = logging.getLogger(__name__)

router = APIRouter()


def _format_remaining(seconds: int) -> str:
    minutes, seconds = divmod(seconds, 60)
    return f"{minutes}min {seconds}sec" if minutes > 0 else f"{seconds}sec"


def _decode_basic_password(header: str) -> str:
    decoded = base64.b64decode(header[6:], validate=True).decode("utf-8")
    _, _, password = decoded.partition(":")
    return password


@router.post("/verify")
def verify(request: Request, limiter: LoginRateLimiter = Depends(get_rate_limiter)):
    """Check the dashboard password (HTTP Basic) and set the session cookie."""
    settings = get_app_settings(request)
    if not settings.dashboard_password:
        logger.error("Login attempted but no dashboard password is configured")
        return JSONResponse({"error": "Internal Server Error"}, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)

    client_ip = get_client_ip(request)
    locked_until = limiter.locked_until(client_ip)
    if locked_until is not None:
        remaining = math.ceil(locked_until - limiter.now())
        return JSONResponse(
            {
                "error": f"Account locked, please try again after {_format_remaining(max(remaining, 0))}",
                "lockoutUntil": int(locked_until * 1000),
                "isLocked": True,
            },
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        )

    header = request.headers.get("authorization")
    if not header or not header.startswith("Basic "):
        return JSONResponse({"error": "Missing authorization"}, status_code=status.HTTP_401_UNAUTHORIZED)

    try:
        provided = _decode_basic_password(header)
    except (binascii.Error, UnicodeDecodeError, ValueError):
        return JSONResponse({"error": "Invalid credentials format"}, status_code=status.HTTP_400_BAD_REQUEST)

    token = hash_password(provided)
    if token == hash_password(settings.dashboard_password):
        limiter.record_success(client_ip)
        response = JSONResponse({"success": True})
        response.set_cookie(
            key=COOKIE_NAME,
            value=token,
            max_age=COOKIE_MAX_AGE,
            httponly=True,
            samesite="lax",
            secure=request.url.scheme == "https",
            path="/",
        )
        return response

    outcome = limiter.record_failure(client_ip)
    if outcome.locked:
        return JSONResponse(
            {
                "error": f"{limiter.attempts_per_lockout} consecutive errors, account locked for {outcome.lockout_minutes} minutes",
                "lockoutUntil": int(outcome.lockout_until * 1000),
                "isLocked": True,
                "totalAttempts": outcome.total_attempts,
            },
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        )
    return JSONResponse(
        {
            "error": "Wrong password",
            "remainingAttempts": outcome.remaining_attempts,
            "totalAttempts": outcome.total_attempts,
        },
        status_code=status.HTTP_401_UNAUTHORIZED,
    )


@router.post("/logout")
def logout():
    response = JSONResponse({"success": True})
    response.delete_cookie(key=COOKIE_NAME, path="/")
    return response
