from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Any, Dict, List, Optional, Tuple, Union

from .models import BucketWindow, Granularity

PERIODS = ("week", "month", "year")
DEFAULT_PERIOD = "month"

WindowPolicy = Dict[str, Tuple[Granularity, int]]

# User growth and revenue charts.
SERIES_WINDOWS: WindowPolicy = {
    "week": (Granularity.DAY, 7),
    "month": (Granularity.DAY, 30),
    "year": (Granularity.MONTH, 12),
}

# Asset usage charts render "month" as the last six calendar months.
USAGE_WINDOWS: WindowPolicy = {
    "week": (Granularity.DAY, 7),
    "month": (Granularity.MONTH, 6),
    "year": (Granularity.MONTH, 12),
}


def parse_period(raw: Optional[str]) -> str:
    """
    Normalise a ``period`` query value, falling back to ``month`` for anything
    that is not one of ``week``/``month``/``year``.
    """

    if raw is None:
        return DEFAULT_PERIOD
    value = str(raw).strip().lower()
    return value if value in PERIODS else DEFAULT_PERIOD


def parse_limit(raw: Any, default: int, maximum: int) -> int:
    """
    Normalise a ``limit`` query value.

    Non-integers and values below 1 fall back to ``default``; values above
    ``maximum`` are clamped.
    """

    try:
        value = int(str(raw).strip())
    except (TypeError, ValueError):
        return default
    if value < 1:
        return default
    return min(value, maximum)


def bucket_key(ts: Union[date, datetime], granularity: Granularity) -> str:
    if granularity is Granularity.MONTH:
        return ts.strftime("%Y-%m")
    return ts.strftime("%Y-%m-%d")


def bucket_label(bucket_start: date, granularity: Granularity) -> str:
    if granularity is Granularity.MONTH:
        return bucket_start.strftime("%b %Y")
    return f"{bucket_start:%b} {bucket_start.day}"


def _shift_month(year: int, month: int, offset: int) -> Tuple[int, int]:
    index = year * 12 + (month - 1) + offset
    shifted_year, shifted_month = divmod(index, 12)
    return shifted_year, shifted_month + 1


def generate_buckets(
    granularity: Granularity,
    count: int,
    today: Union[date, datetime],
) -> BucketWindow:
    """
    Build ``count`` consecutive buckets ending with the bucket containing
    ``today``, oldest first.

    The axis is generated from the calendar, not from the data, so it has no
    gaps however sparse the underlying events are.
    """

    if count < 1:
        raise ValueError("count must be at least 1")
    if isinstance(today, datetime):
        today = today.date()

    starts: List[date]
    if granularity is Granularity.MONTH:
        starts = [
            date(*_shift_month(today.year, today.month, -offset), 1)
            for offset in range(count - 1, -1, -1)
        ]
    else:
        starts = [today - timedelta(days=offset) for offset in range(count - 1, -1, -1)]

    return BucketWindow(
        granularity=granularity,
        keys=tuple(bucket_key(start, granularity) for start in starts),
        labels=tuple(bucket_label(start, granularity) for start in starts),
        start=datetime.combine(starts[0], time.min),
    )


def window_for(
    period: str,
    today: Union[date, datetime],
    policy: Optional[WindowPolicy] = None,
) -> BucketWindow:
    policy = policy or SERIES_WINDOWS
    granularity, count = policy.get(period, policy[DEFAULT_PERIOD])
    return generate_buckets(granularity, count, today)
