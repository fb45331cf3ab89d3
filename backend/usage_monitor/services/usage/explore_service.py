"""
Sampling engine for point-level exploration.

Only single-request rows (total_requests == 1) are sampled; a pre-aggregated
batch row has no meaningful point position. Rows are ranked by
(occurred_at, id) and every step-th rank is kept, so an unchanged window always
yields the same points.
"""
import logging
import math
from typing import Callable

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from usage_monitor.core.errors import StorageError
from usage_monitor.models.usage_record import UsageRecord
from usage_monitor.services.usage.usage_models import ExplorePoint, ExploreResult
from usage_monitor.services.usage.usage_queries import window_conditions
from usage_monitor.services.usage.window import UsageWindow

logger = logging.getLogger(__name__)


def sampling_step(total: int, max_points: int) -> int:
    """
    Smallest step that keeps at most max_points ranks.

    This is floor(total / max_points), bumped by one when the floor would still
    leave more than max_points multiples (i.e. ceil). step * kept always lands
    in [total - step, total].
    """
    if total <= 0 or max_points <= 0:
        return 1
    step = max(1, total // max_points)
    if total // step > max_points:
        step += 1
    return step


class ExploreEngine:
    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def compute_explore_points(self, window: UsageWindow, max_points: int) -> ExploreResult:
        db = self.session_factory()
        try:
            return self._sample(db, window, max_points)
        except SQLAlchemyError as e:
            raise StorageError(f"Explore query failed: {e}") from e
        finally:
            db.close()

    def _sample(self, db: Session, window: UsageWindow, max_points: int) -> ExploreResult:
        conditions = window_conditions(window) + [UsageRecord.total_requests == 1]

        total = int(db.execute(select(func.count(UsageRecord.id)).where(*conditions)).scalar() or 0)
        if total == 0:
            return ExploreResult(days=window.days, total=0, returned=0, step=1, points=[])

        step = sampling_step(total, max_points)
        ranked = (
            select(
                UsageRecord.occurred_at,
                UsageRecord.total_tokens,
                UsageRecord.input_tokens,
                UsageRecord.output_tokens,
                UsageRecord.reasoning_tokens,
                UsageRecord.cached_tokens,
                UsageRecord.model,
                func.row_number().over(order_by=(UsageRecord.occurred_at, UsageRecord.id)).label("rn"),
            )
            .where(*conditions)
            .subquery()
        )
        rows = db.execute(
            select(ranked)
            .where(ranked.c.rn % step == 0)
            .order_by(ranked.c.rn)
            .limit(max_points)
        ).all()

        points = [
            ExplorePoint(
                ts=int(math.floor(row.occurred_at.timestamp() * 1000)),
                tokens=int(row.total_tokens),
                input_tokens=int(row.input_tokens),
                output_tokens=int(row.output_tokens),
                reasoning_tokens=int(row.reasoning_tokens),
                cached_tokens=int(row.cached_tokens),
                model=row.model,
            )
            for row in rows
        ]
        logger.debug(f"Sampled {len(points)} of {total} points (step={step})")
        return ExploreResult(days=window.days, total=total, returned=len(points), step=step, points=points)
