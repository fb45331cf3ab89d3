"""
Response cache in front of the aggregation and sampling engines.
"""
from usage_monitor.services.cache.response_cache import ResponseCache, get_or_compute, safe_clear

__all__ = [
    "ResponseCache",
    "get_or_compute",
    "safe_clear",
]
