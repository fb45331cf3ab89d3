"""
Error types shared by services and API routers.
"""


class UsageMonitorError(Exception):
    """Base error for the usage monitor."""


class ConfigurationError(UsageMonitorError):
    """Required settings are missing."""


class UpstreamError(UsageMonitorError):
    """The upstream proxy failed: timeout, transport error, non-2xx or bad payload."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class StorageError(UsageMonitorError):
    """The local database failed while reading or writing."""
