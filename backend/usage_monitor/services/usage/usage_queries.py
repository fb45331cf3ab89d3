"""
SQL building blocks shared by the aggregation and sampling engines.
"""
from typing import List, Optional

from sqlalchemy import func, literal_column
from sqlalchemy.orm import Session

from usage_monitor.models.usage_record import UsageRecord
from usage_monitor.services.usage.usage_models import OverviewFilters
from usage_monitor.services.usage.window import SLOT_SECONDS, UsageWindow

_OCCURRED_AT = f"{UsageRecord.__tablename__}.occurred_at"

# occurred_at is stored as naive UTC, so each expression yields floor(epoch_seconds / 900)
_SLOT_SQL = {
    "sqlite": f"CAST(strftime('%s', {_OCCURRED_AT}) AS INTEGER) / {SLOT_SECONDS}",
    "postgresql": f"FLOOR(EXTRACT(EPOCH FROM {_OCCURRED_AT}) / {SLOT_SECONDS})",
    "mysql": f"FLOOR(TIMESTAMPDIFF(SECOND, '1970-01-01 00:00:00', {_OCCURRED_AT}) / {SLOT_SECONDS})",
    "mariadb": f"FLOOR(TIMESTAMPDIFF(SECOND, '1970-01-01 00:00:00', {_OCCURRED_AT}) / {SLOT_SECONDS})",
}


def slot_column(db: Session):
    """15-minute UTC slot number of occurred_at for the session's dialect."""
    dialect = db.get_bind().dialect.name
    try:
        sql = _SLOT_SQL[dialect]
    except KeyError:
        raise NotImplementedError(f"Time bucketing is not implemented for dialect '{dialect}'")
    return literal_column(sql)


def total(column):
    return func.coalesce(func.sum(column), 0)


def window_conditions(window: UsageWindow, filters: Optional[OverviewFilters] = None) -> List:
    conditions = [
        UsageRecord.occurred_at >= window.since,
        UsageRecord.occurred_at <= window.until,
    ]
    if filters is not None:
        if filters.model:
            conditions.append(UsageRecord.model == filters.model)
        if filters.route:
            conditions.append(UsageRecord.route == filters.route)
    return conditions
