"""
Usage aggregation and sampling services.
"""
from usage_monitor.services.usage.explore_service import ExploreEngine, sampling_step
from usage_monitor.services.usage.overview_service import OverviewEngine
from usage_monitor.services.usage.query_service import UsageQueryService
from usage_monitor.services.usage.usage_models import (
    ExplorePoint,
    ExploreResult,
    OverviewFilters,
    OverviewResult,
    Pagination,
)
from usage_monitor.services.usage.window import UsageWindow, resolve_window

__all__ = [
    "ExploreEngine",
    "sampling_step",
    "OverviewEngine",
    "UsageQueryService",
    "ExplorePoint",
    "ExploreResult",
    "OverviewFilters",
    "OverviewResult",
    "Pagination",
    "UsageWindow",
    "resolve_window",
]
