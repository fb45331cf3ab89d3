"""
Query window resolution and time bucketing helpers.

All calendar math happens in the configured IANA timezone, never in the host's
local time. Every real-world UTC offset is a multiple of 15 minutes, so a
15-minute UTC slot always falls inside exactly one local hour and one local day;
the aggregation queries group by slot and the helpers below fold slots into
local buckets.
"""
import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Union
from zoneinfo import ZoneInfo

MIN_DAYS = 1
MAX_DAYS = 90
DEFAULT_DAYS = 14

MAX_PAGE = 1_000_000

MIN_PAGE_SIZE = 5
MAX_PAGE_SIZE = 500
DEFAULT_PAGE_SIZE = 100

MIN_POINTS = 1_000
MAX_POINTS = 100_000
DEFAULT_POINTS = 20_000

FILTER_MAX_LENGTH = 500

SLOT_SECONDS = 15 * 60

_INT_PREFIX_RE = re.compile(r"^\s*([+-]?\d+)")

DateInput = Union[str, date, datetime, None]


def parse_int(value) -> Optional[int]:
    """Parse a leading integer the way a lenient query parser would ("14d" -> 14, "abc" -> None)."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value == value and value not in (float("inf"), float("-inf")) else None
    match = _INT_PREFIX_RE.match(str(value))
    return int(match.group(1)) if match else None


def _clamp(value: Optional[int], low: int, high: int, fallback: int) -> int:
    if value is None:
        return fallback
    return min(max(value, low), high)


def normalize_days(days) -> int:
    return _clamp(parse_int(days), MIN_DAYS, MAX_DAYS, DEFAULT_DAYS)


def normalize_page(page) -> int:
    return _clamp(parse_int(page), 1, MAX_PAGE, 1)


def normalize_page_size(page_size) -> int:
    return _clamp(parse_int(page_size), MIN_PAGE_SIZE, MAX_PAGE_SIZE, DEFAULT_PAGE_SIZE)


def normalize_max_points(max_points) -> int:
    return _clamp(parse_int(max_points), MIN_POINTS, MAX_POINTS, DEFAULT_POINTS)


def sanitize_filter(value) -> Optional[str]:
    """Cap filter strings; empty or non-string values mean "no filter"."""
    if not value or not isinstance(value, str):
        return None
    return value[:FILTER_MAX_LENGTH]


def parse_date_input(value: DateInput, tz: str) -> Optional[date]:
    """Turn a date, datetime or ISO string into a calendar date in tz; None when unparseable."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        return value
    else:
        text = str(value).strip()
        try:
            if len(text) == 10:
                return date.fromisoformat(text)
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            return None
    if parsed.tzinfo is None:
        return parsed.date()
    try:
        return parsed.astimezone(ZoneInfo(tz)).date()
    except OverflowError:
        return None


def day_start(day: date, tz: str) -> datetime:
    """UTC instant of local midnight at the start of day."""
    return datetime.combine(day, time.min, tzinfo=ZoneInfo(tz)).astimezone(timezone.utc)


def day_end(day: date, tz: str) -> datetime:
    """UTC instant of the last microsecond of day (inclusive), correct on 23h/25h DST days."""
    return day_start(day + timedelta(days=1), tz) - timedelta(microseconds=1)


def local_date(instant: datetime, tz: str) -> date:
    return instant.astimezone(ZoneInfo(tz)).date()


def local_hour_start(instant: datetime, tz: str) -> datetime:
    """UTC instant at which the local hour containing instant begins."""
    local = instant.astimezone(ZoneInfo(tz))
    offset_into_hour = timedelta(minutes=local.minute, seconds=local.second, microseconds=local.microsecond)
    return (instant - offset_into_hour).astimezone(timezone.utc)


def hour_label(hour_start: datetime, tz: str) -> str:
    return hour_start.astimezone(ZoneInfo(tz)).strftime("%m-%d %H")


def slot_to_datetime(slot: int) -> datetime:
    return datetime.fromtimestamp(int(slot) * SLOT_SECONDS, tz=timezone.utc)


@dataclass(frozen=True)
class UsageWindow:
    """Resolved query window: inclusive local calendar dates plus their UTC bounds."""
    start_date: date
    end_date: date
    days: int
    since: datetime
    until: datetime
    timezone: str
    is_custom: bool

    def cache_key_parts(self) -> dict:
        # Relative and explicit windows covering the same dates resolve to the same key
        return {
            "start": self.start_date.isoformat(),
            "end": self.end_date.isoformat(),
            "tz": self.timezone,
        }

    def day_buckets(self) -> list[date]:
        return [self.start_date + timedelta(days=i) for i in range(self.days)]

    def hour_buckets(self, now: Optional[datetime] = None) -> list[datetime]:
        """Local hour starts (as UTC instants) from the window start to its end, clipped at now."""
        now = now or datetime.now(timezone.utc)
        last = min(self.until, now)
        hours = []
        current = self.since
        while current <= last:
            hours.append(current)
            current += timedelta(hours=1)
        return hours


def resolve_window(
    days=None,
    start: DateInput = None,
    end: DateInput = None,
    tz: str = "UTC",
    now: Optional[datetime] = None,
) -> UsageWindow:
    """
    Resolve raw window parameters.

    An explicit start/end pair wins when both parse and end >= start; its span is
    capped at 90 days by moving start forward. Otherwise the relative day count
    (clamped to 1-90, default 14) covers today and the preceding days. A one-day
    relative window is "today". Dates at the edge of the calendar whose UTC bounds
    cannot be represented count as no custom range.
    """
    now = now or datetime.now(timezone.utc)
    start_date = parse_date_input(start, tz)
    end_date = parse_date_input(end, tz)

    if start_date and end_date and end_date >= start_date:
        try:
            start_date = max(start_date, end_date - timedelta(days=MAX_DAYS - 1))
            return UsageWindow(
                start_date=start_date,
                end_date=end_date,
                days=(end_date - start_date).days + 1,
                since=day_start(start_date, tz),
                until=day_end(end_date, tz),
                timezone=tz,
                is_custom=True,
            )
        except OverflowError:
            pass

    span = normalize_days(days)
    today = local_date(now, tz)
    first = today - timedelta(days=span - 1)
    return UsageWindow(
        start_date=first,
        end_date=today,
        days=span,
        since=day_start(first, tz),
        until=day_end(today, tz),
        timezone=tz,
        is_custom=False,
    )
