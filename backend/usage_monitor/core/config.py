"""
Configuration management.
Loads from config_local.py (gitignored) for secrets, then environment variables, then defaults.
"""
import os
import re
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from usage_monitor.core.errors import ConfigurationError

DEFAULT_TIMEZONE = "Asia/Shanghai"
UPSTREAM_MANAGEMENT_SUFFIX = "/v0/management"

# Only letters, digits, underscores, slashes, plus and minus (e.g. Asia/Ho_Chi_Minh, Etc/GMT+5)
_VALID_TZ_RE = re.compile(r"^[A-Za-z0-9_/+\-]+$")


def _env(name: str, default=None):
    value = os.environ.get(name)
    if value is None or value.strip() == "":
        return default
    return value.strip()


def _env_bool(name: str, default: bool) -> bool:
    value = _env(name)
    if value is None:
        return default
    return value.lower() not in ("0", "false", "no", "off")


def _env_int(name: str, default: int) -> int:
    value = _env(name)
    try:
        return int(value) if value is not None else default
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    value = _env(name)
    try:
        return float(value) if value is not None else default
    except ValueError:
        return default


def normalize_base_url(raw: Optional[str]) -> str:
    """Normalize the upstream base URL to end with the management API prefix."""
    value = (raw or "").strip()
    if not value:
        return ""
    if not re.match(r"^https?://", value, re.IGNORECASE):
        value = f"https://{value}"
    value = value.rstrip("/")
    if value.endswith(UPSTREAM_MANAGEMENT_SUFFIX):
        return value
    return f"{value}{UPSTREAM_MANAGEMENT_SUFFIX}"


def management_panel_url(raw: Optional[str]) -> Optional[str]:
    """Browser URL of the upstream management panel, or None when no upstream is configured."""
    base = normalize_base_url(raw)
    if not base:
        return None
    return f"{base[:-len(UPSTREAM_MANAGEMENT_SUFFIX)]}/management.html"


def validate_timezone(tz: Optional[str]) -> str:
    """Return tz when it is a safe, loadable IANA name, otherwise the default zone."""
    if not tz or not _VALID_TZ_RE.match(tz):
        return DEFAULT_TIMEZONE
    try:
        ZoneInfo(tz)
    except (ZoneInfoNotFoundError, ValueError):
        return DEFAULT_TIMEZONE
    return tz


# Try to import local config (gitignored)
try:
    from usage_monitor import config_local as _local
except ImportError:
    _local = None


def _setting(name: str, env_name: Optional[str] = None, default=None):
    if _local is not None and hasattr(_local, name):
        return getattr(_local, name)
    return _env(env_name or name, default)


DATABASE_URL: str = _setting("DATABASE_URL", default="sqlite:///./usage_monitor.db")
CLIPROXY_API_BASE_URL: str = normalize_base_url(_setting("CLIPROXY_API_BASE_URL"))
CLIPROXY_SECRET_KEY: str = _setting("CLIPROXY_SECRET_KEY", default="") or ""
DASHBOARD_PASSWORD: str = _setting("DASHBOARD_PASSWORD", "PASSWORD", default="") or CLIPROXY_SECRET_KEY
CRON_SECRET: str = _setting("CRON_SECRET", default="") or ""
TIMEZONE: str = validate_timezone(_setting("TIMEZONE", default=DEFAULT_TIMEZONE))

if _local is not None:
    SYNC_ENABLED: bool = bool(getattr(_local, "SYNC_ENABLED", True))
    SYNC_CRON: str = getattr(_local, "SYNC_CRON", "0 21 * * *")
    SYNC_TIMEOUT_MANUAL_SECONDS: float = float(getattr(_local, "SYNC_TIMEOUT_MANUAL_SECONDS", 15.0))
    SYNC_TIMEOUT_SCHEDULED_SECONDS: float = float(getattr(_local, "SYNC_TIMEOUT_SCHEDULED_SECONDS", 60.0))
    CACHE_TTL_SECONDS: float = float(getattr(_local, "CACHE_TTL_SECONDS", 30.0))
    CACHE_MAX_ENTRIES: int = int(getattr(_local, "CACHE_MAX_ENTRIES", 100))
    QUERY_WORKERS: int = int(getattr(_local, "QUERY_WORKERS", 8))
    CORS_ORIGINS: list[str] = list(getattr(_local, "CORS_ORIGINS", ["http://localhost:3000"]))
else:
    SYNC_ENABLED: bool = _env_bool("CRON_ENABLED", True)
    SYNC_CRON: str = _env("CRON_SCHEDULE", "0 21 * * *")
    SYNC_TIMEOUT_MANUAL_SECONDS: float = _env_float("SYNC_TIMEOUT_MANUAL_SECONDS", 15.0)
    SYNC_TIMEOUT_SCHEDULED_SECONDS: float = _env_float("SYNC_TIMEOUT_SCHEDULED_SECONDS", 60.0)
    CACHE_TTL_SECONDS: float = _env_float("CACHE_TTL_SECONDS", 30.0)
    CACHE_MAX_ENTRIES: int = _env_int("CACHE_MAX_ENTRIES", 100)
    QUERY_WORKERS: int = _env_int("QUERY_WORKERS", 8)
    CORS_ORIGINS: list[str] = [
        origin.strip()
        for origin in _env("CORS_ORIGINS", "http://localhost:3000").split(",")
        if origin.strip()
    ]


def get_settings():
    """Return settings object (for FastAPI dependency injection if needed)."""
    return type("Settings", (), {
        "database_url": DATABASE_URL,
        "cliproxy_api_base_url": CLIPROXY_API_BASE_URL,
        "cliproxy_secret_key": CLIPROXY_SECRET_KEY,
        "dashboard_password": DASHBOARD_PASSWORD,
        "cron_secret": CRON_SECRET,
        "timezone": TIMEZONE,
        "sync_enabled": SYNC_ENABLED,
        "sync_cron": SYNC_CRON,
        "sync_timeout_manual_seconds": SYNC_TIMEOUT_MANUAL_SECONDS,
        "sync_timeout_scheduled_seconds": SYNC_TIMEOUT_SCHEDULED_SECONDS,
        "cache_ttl_seconds": CACHE_TTL_SECONDS,
        "cache_max_entries": CACHE_MAX_ENTRIES,
        "query_workers": QUERY_WORKERS,
        "cors_origins": CORS_ORIGINS,
    })()


def assert_upstream_configured(settings=None) -> None:
    """Raise ConfigurationError when the upstream proxy cannot be reached."""
    settings = settings or get_settings()
    if not settings.cliproxy_secret_key:
        raise ConfigurationError("CLIPROXY_SECRET_KEY is missing")
    if not settings.cliproxy_api_base_url:
        raise ConfigurationError("CLIPROXY_API_BASE_URL is missing")
