"""
Query facade: resolves raw parameters, then serves results through the response cache.
"""
import logging
from dataclasses import asdict
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.orm import Session

from usage_monitor.services.cache import ResponseCache, get_or_compute
from usage_monitor.services.usage.explore_service import ExploreEngine
from usage_monitor.services.usage.overview_service import OverviewEngine
from usage_monitor.services.usage.usage_models import ExploreResult, OverviewFilters, OverviewResult, Pagination
from usage_monitor.services.usage.window import (
    normalize_max_points,
    normalize_page,
    normalize_page_size,
    resolve_window,
    sanitize_filter,
)

logger = logging.getLogger(__name__)


class UsageQueryService:
    """Owns the engines for one process; construct one per app and close it on shutdown."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        timezone_name: str,
        cache: Optional[ResponseCache] = None,
        max_workers: int = 8,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.timezone = timezone_name
        self.cache = cache
        self.overview_engine = OverviewEngine(session_factory, timezone_name, max_workers=max_workers)
        self.explore_engine = ExploreEngine(session_factory)
        self._clock = clock

    def close(self) -> None:
        self.overview_engine.close()

    def _now(self) -> Optional[datetime]:
        return self._clock() if self._clock else None

    def get_overview(
        self,
        days=None,
        start=None,
        end=None,
        model=None,
        route=None,
        page=None,
        page_size=None,
    ) -> OverviewResult:
        now = self._now()
        window = resolve_window(days=days, start=start, end=end, tz=self.timezone, now=now)
        filters = OverviewFilters(model=sanitize_filter(model), route=sanitize_filter(route))
        pagination = Pagination(page=normalize_page(page), page_size=normalize_page_size(page_size))

        key = ResponseCache.make_key("overview", {
            **window.cache_key_parts(),
            **asdict(filters),
            **asdict(pagination),
        })
        return get_or_compute(
            self.cache,
            key,
            lambda: self.overview_engine.compute_overview(window, filters, pagination, now=now),
        )

    def get_explore(self, days=None, start=None, end=None, max_points=None) -> ExploreResult:
        window = resolve_window(days=days, start=start, end=end, tz=self.timezone, now=self._now())
        points = normalize_max_points(max_points)

        key = ResponseCache.make_key("explore", {**window.cache_key_parts(), "max_points": points})
        return get_or_compute(
            self.cache,
            key,
            lambda: self.explore_engine.compute_explore_points(window, points),
        )
