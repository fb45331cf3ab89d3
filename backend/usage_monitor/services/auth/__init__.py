"""
Dashboard login rate limiting.
"""
from usage_monitor.services.auth.rate_limiter import FailureOutcome, LoginRateLimiter

__all__ = ["FailureOutcome", "LoginRateLimiter"]
