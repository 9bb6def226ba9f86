from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Literal, Optional, Tuple

import pandas as pd

from parcelboard.models import DateRange

TimeFilter = Literal["today", "week", "month", "custom"]

TIME_FILTERS: Tuple[str, ...] = ("today", "week", "month", "custom")
DEFAULT_TIME_FILTER = "week"
DEFAULT_DELAY_HOURS = 48.0
DEFAULT_ROW_LIMIT = 100


@dataclass(frozen=True)
class DashboardFilters:
    time_filter: str = DEFAULT_TIME_FILTER
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    delay_hours: float = DEFAULT_DELAY_HOURS
    row_limit: int = DEFAULT_ROW_LIMIT

    def date_range(self, now: Optional[datetime] = None) -> DateRange:
        return calculate_date_range(self.time_filter, now=now, start=self.start_date, end=self.end_date)


def _local_now() -> datetime:
    return datetime.now().astimezone()


def _as_datetime(value: object) -> Optional[datetime]:
    """Parse ISO strings, datetimes and unix seconds into an aware local datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        ts = pd.to_datetime(value, unit="s", utc=True, errors="coerce")
    else:
        ts = pd.to_datetime(value, errors="coerce")
    if ts is None or pd.isna(ts):
        return None
    # naive values are taken as local time
    return ts.to_pydatetime().astimezone()


def calculate_date_range(
    time_filter: str,
    now: Optional[datetime] = None,
    *,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> DateRange:
    """Resolve a named filter to a concrete range ending at ``now``.

    ``today`` starts at local midnight, ``week`` seven days back, ``month`` one
    calendar month back. ``custom`` uses ``start``/``end`` when both are given and
    otherwise behaves like ``month``.
    """
    now = now or _local_now()
    if time_filter == "custom" and start is not None and end is not None:
        lo, hi = (start, end) if start <= end else (end, start)
        return DateRange(start=lo, end=hi)

    if time_filter == "today":
        begin = now.replace(hour=0, minute=0, second=0, microsecond=0)
    elif time_filter == "week":
        begin = now - timedelta(days=7)
    else:
        begin = (pd.Timestamp(now) - pd.DateOffset(months=1)).to_pydatetime()
    return DateRange(start=begin, end=now)


def normalize_filters(
    raw: dict,
    *,
    default_delay_hours: float = DEFAULT_DELAY_HOURS,
    default_row_limit: int = DEFAULT_ROW_LIMIT,
) -> DashboardFilters:
    time_filter = str(raw.get("time_filter") or DEFAULT_TIME_FILTER).strip().lower()
    if time_filter not in TIME_FILTERS:
        time_filter = DEFAULT_TIME_FILTER

    start_date = _as_datetime(raw.get("start_date"))
    end_date = _as_datetime(raw.get("end_date"))

    delay_hours = raw.get("delay_hours")
    try:
        delay_hours = float(delay_hours) if delay_hours is not None else default_delay_hours
    except Exception:
        delay_hours = default_delay_hours
    delay_hours = max(0.0, delay_hours)

    row_limit = raw.get("row_limit", default_row_limit)
    try:
        row_limit = int(row_limit)
    except Exception:
        row_limit = default_row_limit
    row_limit = max(1, min(1000, row_limit))

    return DashboardFilters(
        time_filter=time_filter,
        start_date=start_date,
        end_date=end_date,
        delay_hours=delay_hours,
        row_limit=row_limit,
    )
