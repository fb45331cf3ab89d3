"""
Aggregation engine for the usage overview.

One overview is assembled from independent read-only sub-queries over the same
window (totals, per-model page, day x model slots, hour slots, top routes, filter
values, distinct model count, route slots and the price table). They are issued
concurrently on a thread pool, each with its own session, so latency is bounded
by the slowest query rather than their sum.

The database groups by 15-minute UTC slot; folding slots into local days and
hours, gap-filling and pricing happen here in Python.
"""
import logging
import math
from collections import OrderedDict, defaultdict
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from sqlalchemy import distinct, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from usage_monitor.core.errors import StorageError
from usage_monitor.models.usage_record import UsageRecord
from usage_monitor.services.pricing import PriceTable, TokenCounts, calculate_cost, estimate_cost, load_price_table
from usage_monitor.services.usage.usage_models import (
    DayPoint,
    FilterOptions,
    HourPoint,
    ModelUsage,
    OverviewFilters,
    OverviewMeta,
    OverviewResult,
    Pagination,
    RouteTokenSeries,
    RouteUsage,
    UsageOverview,
)
from usage_monitor.services.usage.usage_queries import slot_column, total, window_conditions
from usage_monitor.services.usage.window import UsageWindow, hour_label, local_date, local_hour_start, slot_to_datetime

logger = logging.getLogger(__name__)

TOP_ROUTES_LIMIT = 10
ROUTE_SERIES_LIMIT = 5
OTHER_ROUTE = "Other"


def _query_totals(db: Session, conditions) -> dict:
    row = db.execute(
        select(
            total(UsageRecord.total_requests).label("requests"),
            total(UsageRecord.total_tokens).label("tokens"),
            total(UsageRecord.input_tokens).label("input_tokens"),
            total(UsageRecord.output_tokens).label("output_tokens"),
            total(UsageRecord.reasoning_tokens).label("reasoning_tokens"),
            total(UsageRecord.cached_tokens).label("cached_tokens"),
            total(UsageRecord.success_count).label("success_count"),
            total(UsageRecord.failure_count).label("failure_count"),
        ).where(*conditions)
    ).one()
    return {key: int(value or 0) for key, value in row._mapping.items()}


def _query_models_page(db: Session, conditions, pagination: Pagination) -> list:
    return db.execute(
        select(
            UsageRecord.model,
            total(UsageRecord.total_requests).label("requests"),
            total(UsageRecord.total_tokens).label("tokens"),
            total(UsageRecord.input_tokens).label("input_tokens"),
            total(UsageRecord.output_tokens).label("output_tokens"),
            total(UsageRecord.cached_tokens).label("cached_tokens"),
        )
        .where(*conditions)
        .group_by(UsageRecord.model)
        .order_by(UsageRecord.model)
        .limit(pagination.page_size)
        .offset(pagination.offset)
    ).all()


def _query_day_model_slots(db: Session, conditions) -> list:
    slot = slot_column(db)
    return db.execute(
        select(
            slot.label("slot"),
            UsageRecord.model,
            total(UsageRecord.total_requests).label("requests"),
            total(UsageRecord.total_tokens).label("tokens"),
            total(UsageRecord.input_tokens).label("input_tokens"),
            total(UsageRecord.output_tokens).label("output_tokens"),
            total(UsageRecord.cached_tokens).label("cached_tokens"),
        )
        .where(*conditions)
        .group_by(slot, UsageRecord.model)
    ).all()


def _query_hour_slots(db: Session, conditions) -> list:
    slot = slot_column(db)
    return db.execute(
        select(
            slot.label("slot"),
            total(UsageRecord.total_requests).label("requests"),
            total(UsageRecord.total_tokens).label("tokens"),
            total(UsageRecord.input_tokens).label("input_tokens"),
            total(UsageRecord.output_tokens).label("output_tokens"),
            total(UsageRecord.reasoning_tokens).label("reasoning_tokens"),
            total(UsageRecord.cached_tokens).label("cached_tokens"),
        )
        .where(*conditions)
        .group_by(slot)
    ).all()


def _query_top_routes(db: Session, conditions, limit: int) -> list:
    requests = total(UsageRecord.total_requests)
    return db.execute(
        select(
            UsageRecord.route,
            requests.label("requests"),
            total(UsageRecord.total_tokens).label("tokens"),
            total(UsageRecord.input_tokens).label("input_tokens"),
            total(UsageRecord.output_tokens).label("output_tokens"),
            total(UsageRecord.cached_tokens).label("cached_tokens"),
        )
        .where(*conditions)
        .group_by(UsageRecord.route)
        .order_by(requests.desc(), UsageRecord.route)
        .limit(limit)
    ).all()


def _query_filter_values(db: Session, conditions) -> FilterOptions:
    models = db.execute(
        select(distinct(UsageRecord.model)).where(*conditions).order_by(UsageRecord.model)
    ).scalars().all()
    routes = db.execute(
        select(distinct(UsageRecord.route)).where(*conditions).order_by(UsageRecord.route)
    ).scalars().all()
    return FilterOptions(models=list(models), routes=list(routes))


def _query_model_count(db: Session, conditions) -> int:
    count = db.execute(
        select(func.count(distinct(UsageRecord.model))).where(*conditions)
    ).scalar()
    return int(count or 0)


def _query_route_slots(db: Session, conditions) -> list:
    slot = slot_column(db)
    return db.execute(
        select(
            slot.label("slot"),
            UsageRecord.route,
            total(UsageRecord.total_tokens).label("tokens"),
        )
        .where(*conditions)
        .group_by(slot, UsageRecord.route)
    ).all()


def _utc_iso(instant: datetime) -> str:
    return instant.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.000Z")


class OverviewEngine:
    """
    Computes overview aggregates for a resolved window.

    session_factory must hand out independent sessions; one is opened per
    sub-query and closed when it finishes.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        timezone_name: str,
        max_workers: int = 8,
        top_routes_limit: int = TOP_ROUTES_LIMIT,
        route_series_limit: int = ROUTE_SERIES_LIMIT,
    ):
        self.session_factory = session_factory
        self.timezone = timezone_name
        self.top_routes_limit = top_routes_limit
        self.route_series_limit = route_series_limit
        self._executor = (
            ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="overview-query")
            if max_workers > 1 else None
        )

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=False)

    def _run(self, query: Callable, *args):
        db = self.session_factory()
        try:
            return query(db, *args)
        except SQLAlchemyError as e:
            raise StorageError(f"Overview query {query.__name__} failed: {e}") from e
        finally:
            db.close()

    def _gather(self, queries: Dict[str, tuple]) -> dict:
        """Run all queries; if any fails, wait for the rest and raise the first error."""
        if self._executor is None:
            return {name: self._run(*call) for name, call in queries.items()}

        futures = {name: self._executor.submit(self._run, *call) for name, call in queries.items()}
        results = {}
        error = None
        for name, future in futures.items():
            try:
                results[name] = future.result()
            except Exception as e:
                if error is None:
                    error = e
                logger.error(f"Overview sub-query '{name}' failed: {e}")
        if error is not None:
            raise error
        return results

    def compute_overview(
        self,
        window: UsageWindow,
        filters: Optional[OverviewFilters] = None,
        pagination: Optional[Pagination] = None,
        now: Optional[datetime] = None,
    ) -> OverviewResult:
        filters = filters or OverviewFilters()
        pagination = pagination or Pagination()
        now = now or datetime.now(timezone.utc)
        conditions = window_conditions(window, filters)

        results = self._gather({
            "totals": (_query_totals, conditions),
            "models": (_query_models_page, conditions, pagination),
            "day_slots": (_query_day_model_slots, conditions),
            "hour_slots": (_query_hour_slots, conditions),
            "top_routes": (_query_top_routes, conditions, self.top_routes_limit),
            # Unfiltered so the filter dropdowns never restrict themselves
            "filter_values": (_query_filter_values, window_conditions(window)),
            "model_count": (_query_model_count, conditions),
            "route_slots": (_query_route_slots, conditions),
            "prices": (load_price_table,),
        })

        price_table: PriceTable = results["prices"]
        totals = results["totals"]
        by_day, total_cost = self._build_days(window, results["day_slots"], price_table)
        hour_starts = window.hour_buckets(now)

        overview = UsageOverview(
            total_requests=totals["requests"],
            total_tokens=totals["tokens"],
            total_input_tokens=totals["input_tokens"],
            total_output_tokens=totals["output_tokens"],
            total_reasoning_tokens=totals["reasoning_tokens"],
            total_cached_tokens=totals["cached_tokens"],
            success_count=totals["success_count"],
            failure_count=totals["failure_count"],
            success_rate=(totals["success_count"] / totals["requests"]) if totals["requests"] else 1.0,
            total_cost=total_cost,
            models=self._build_models(results["models"], price_table),
            by_day=by_day,
            by_hour=self._build_hours(hour_starts, results["hour_slots"]),
        )

        total_models = results["model_count"]
        meta = OverviewMeta(
            page=pagination.page,
            page_size=pagination.page_size,
            total_models=total_models,
            total_pages=max(1, math.ceil(total_models / pagination.page_size)),
        )

        return OverviewResult(
            overview=overview,
            empty=totals["requests"] == 0,
            days=window.days,
            meta=meta,
            filters=results["filter_values"],
            top_routes=self._build_top_routes(results["top_routes"], price_table),
            tokens_by_route=self._build_route_series(window, hour_starts, results["route_slots"]),
            timezone=self.timezone,
        )

    def _build_models(self, rows, price_table: PriceTable) -> List[ModelUsage]:
        models = []
        for row in rows:
            tokens = TokenCounts(
                input_tokens=int(row.input_tokens),
                output_tokens=int(row.output_tokens),
                cached_tokens=int(row.cached_tokens),
            )
            models.append(ModelUsage(
                model=row.model,
                requests=int(row.requests),
                tokens=int(row.tokens),
                input_tokens=tokens.input_tokens,
                output_tokens=tokens.output_tokens,
                cached_tokens=tokens.cached_tokens,
                cost=round(estimate_cost(tokens, row.model, price_table), 6),
            ))
        return models

    def _build_days(self, window: UsageWindow, rows, price_table: PriceTable):
        """Gap-filled daily series; cost is priced per (day, model) before summing."""
        days = OrderedDict((day.isoformat(), DayPoint(label=day.isoformat())) for day in window.day_buckets())
        day_model_tokens = defaultdict(lambda: [0, 0, 0])

        for row in rows:
            label = local_date(slot_to_datetime(row.slot), self.timezone).isoformat()
            point = days.get(label)
            if point is None:
                continue
            point.requests += int(row.requests)
            point.tokens += int(row.tokens)
            acc = day_model_tokens[(label, row.model)]
            acc[0] += int(row.input_tokens)
            acc[1] += int(row.output_tokens)
            acc[2] += int(row.cached_tokens)

        total_cost = 0.0
        for (label, model), (input_tokens, output_tokens, cached_tokens) in day_model_tokens.items():
            cost = estimate_cost(
                TokenCounts(input_tokens=input_tokens, output_tokens=output_tokens, cached_tokens=cached_tokens),
                model,
                price_table,
            )
            days[label].cost += cost
            total_cost += cost

        for point in days.values():
            point.cost = round(point.cost, 6)
        return list(days.values()), round(total_cost, 4)

    def _build_hours(self, hour_starts: List[datetime], rows) -> List[HourPoint]:
        hours = OrderedDict(
            (start, HourPoint(label=hour_label(start, self.timezone), timestamp=_utc_iso(start)))
            for start in hour_starts
        )
        for row in rows:
            point = hours.get(local_hour_start(slot_to_datetime(row.slot), self.timezone))
            if point is None:
                continue
            point.requests += int(row.requests)
            point.tokens += int(row.tokens)
            point.input_tokens += int(row.input_tokens)
            point.output_tokens += int(row.output_tokens)
            point.reasoning_tokens += int(row.reasoning_tokens)
            point.cached_tokens += int(row.cached_tokens)
        return list(hours.values())

    def _build_top_routes(self, rows, price_table: PriceTable) -> List[RouteUsage]:
        # Routes mix models, so they are priced at the average configured rate
        average_rate = price_table.average_rate()
        routes = []
        for row in rows:
            tokens = TokenCounts(
                input_tokens=int(row.input_tokens),
                output_tokens=int(row.output_tokens),
                cached_tokens=int(row.cached_tokens),
            )
            routes.append(RouteUsage(
                route=row.route,
                requests=int(row.requests),
                tokens=int(row.tokens),
                input_tokens=tokens.input_tokens,
                output_tokens=tokens.output_tokens,
                cached_tokens=tokens.cached_tokens,
                cost=round(calculate_cost(tokens, average_rate), 4),
            ))
        return routes

    def _build_route_series(self, window: UsageWindow, hour_starts: List[datetime], rows) -> RouteTokenSeries:
        route_totals = defaultdict(int)
        for row in rows:
            route_totals[row.route] += int(row.tokens)
        ranked = sorted(route_totals.items(), key=lambda item: (-item[1], item[0]))
        top = [route for route, _ in ranked[:self.route_series_limit]]
        top_set = set(top)

        def empty_point(label: str) -> dict:
            point = {"label": label}
            point.update({route: 0 for route in top})
            point[OTHER_ROUTE] = 0
            return point

        by_day = OrderedDict((day.isoformat(), empty_point(day.isoformat())) for day in window.day_buckets())
        by_hour = OrderedDict((start, empty_point(hour_label(start, self.timezone))) for start in hour_starts)

        for row in rows:
            instant = slot_to_datetime(row.slot)
            key = row.route if row.route in top_set else OTHER_ROUTE
            tokens = int(row.tokens)
            day_point = by_day.get(local_date(instant, self.timezone).isoformat())
            if day_point is not None:
                day_point[key] += tokens
            hour_point = by_hour.get(local_hour_start(instant, self.timezone))
            if hour_point is not None:
                hour_point[key] += tokens

        return RouteTokenSeries(routes=top, by_day=list(by_day.values()), by_hour=list(by_hour.values()))
