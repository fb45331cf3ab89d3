"""
Result classes for usage aggregation and sampling.
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

from usage_monitor.services.usage.window import MAX_PAGE


@dataclass(frozen=True)
class OverviewFilters:
    """Exact-match filters applied to every grouped query."""
    model: Optional[str] = None
    route: Optional[str] = None


@dataclass(frozen=True)
class Pagination:
    """Pagination for the per-model breakdown."""
    page: int = 1
    page_size: int = 100

    @property
    def offset(self) -> int:
        return (min(self.page, MAX_PAGE) - 1) * self.page_size


@dataclass
class ModelUsage:
    model: str
    requests: int
    tokens: int
    input_tokens: int
    output_tokens: int
    cached_tokens: int
    cost: float


@dataclass
class RouteUsage:
    route: str
    requests: int
    tokens: int
    input_tokens: int
    output_tokens: int
    cached_tokens: int
    cost: float


@dataclass
class DayPoint:
    """Daily bucket. label is the local calendar date (YYYY-MM-DD)."""
    label: str
    requests: int = 0
    tokens: int = 0
    cost: float = 0.0


@dataclass
class HourPoint:
    """Hourly bucket. label is local "MM-DD HH", timestamp is the UTC hour start."""
    label: str
    timestamp: str
    requests: int = 0
    tokens: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    reasoning_tokens: int = 0
    cached_tokens: int = 0


@dataclass
class UsageOverview:
    total_requests: int
    total_tokens: int
    total_input_tokens: int
    total_output_tokens: int
    total_reasoning_tokens: int
    total_cached_tokens: int
    success_count: int
    failure_count: int
    success_rate: float
    total_cost: float
    models: List[ModelUsage] = field(default_factory=list)
    by_day: List[DayPoint] = field(default_factory=list)
    by_hour: List[HourPoint] = field(default_factory=list)


@dataclass
class OverviewMeta:
    page: int
    page_size: int
    total_models: int
    total_pages: int


@dataclass
class FilterOptions:
    models: List[str] = field(default_factory=list)
    routes: List[str] = field(default_factory=list)


# {"label": "...", "<route>": tokens, ..., "Other": tokens}
RouteSeriesPoint = Dict[str, Union[str, int]]


@dataclass
class RouteTokenSeries:
    routes: List[str] = field(default_factory=list)
    by_day: List[RouteSeriesPoint] = field(default_factory=list)
    by_hour: List[RouteSeriesPoint] = field(default_factory=list)


@dataclass
class OverviewResult:
    overview: UsageOverview
    empty: bool
    days: int
    meta: OverviewMeta
    filters: FilterOptions
    top_routes: List[RouteUsage]
    tokens_by_route: RouteTokenSeries
    timezone: str


@dataclass
class ExplorePoint:
    ts: int  # epoch milliseconds
    tokens: int
    input_tokens: int
    output_tokens: int
    reasoning_tokens: int
    cached_tokens: int
    model: str


@dataclass
class ExploreResult:
    days: int
    total: int
    returned: int
    step: int
    points: List[ExplorePoint] = field(default_factory=list)
