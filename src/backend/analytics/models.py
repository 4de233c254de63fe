from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Iterable, Literal, Optional, Sequence, Tuple

from .activities import Activity


class Granularity(str, Enum):
    DAY = "day"
    MONTH = "month"


@dataclass(frozen=True)
class BucketValue:
    """
    One row of a sparse aggregate: the truncated bucket key and its count/sum.
    """

    key: str
    value: float


@dataclass(frozen=True)
class BucketWindow:
    """
    Dense, chronologically ordered bucket axis for a chart.

    ``keys`` are the storage-side bucket keys (``2024-03-07`` / ``2024-03``)
    and ``labels`` their display form. ``start`` is the first instant covered
    by the oldest bucket and is used as the lower bound of the fetch queries.
    """

    granularity: Granularity
    keys: Tuple[str, ...]
    labels: Tuple[str, ...]
    start: datetime

    def __len__(self) -> int:
        return len(self.keys)


@dataclass(frozen=True)
class SeriesDataset:
    label: str
    data: Sequence[float]
    border_color: Optional[str] = None
    background_color: Optional[str] = None
    fill: Optional[bool] = None


@dataclass(frozen=True)
class TimeSeriesChart:
    labels: Sequence[str]
    datasets: Sequence[SeriesDataset]
    total_revenue: Optional[float] = None


@dataclass(frozen=True)
class ComparativeStat:
    """
    Current vs previous window value of a dashboard card.

    ``unit`` selects the wire keys: ``count``/``previousCount`` for entity
    counts and ``amount``/``previousAmount`` for money.
    """

    current: float
    previous: float
    percent_change: float
    unit: Literal["count", "amount"] = "count"


@dataclass(frozen=True)
class DashboardStats:
    students: ComparativeStat
    tutors: ComparativeStat
    assets: ComparativeStat
    revenue: ComparativeStat


@dataclass(frozen=True)
class RankedItem:
    entity_id: Any
    label: str
    value: float


@dataclass(frozen=True)
class CategoricalChart:
    labels: Sequence[str] = field(default_factory=list)
    values: Sequence[float] = field(default_factory=list)
    colors: Sequence[str] = field(default_factory=list)


def serialize(obj: Any) -> Any:
    """
    Convert analytics results into the JSON structures the admin panel expects.
    """

    if isinstance(obj, DashboardStats):
        return {
            "students": serialize(obj.students),
            "tutors": serialize(obj.tutors),
            "assets": serialize(obj.assets),
            "revenue": serialize(obj.revenue),
        }
    if isinstance(obj, ComparativeStat):
        if obj.unit == "amount":
            return {
                "amount": obj.current,
                "previousAmount": obj.previous,
                "percentChange": obj.percent_change,
            }
        return {
            "count": obj.current,
            "previousCount": obj.previous,
            "percentChange": obj.percent_change,
        }
    if isinstance(obj, TimeSeriesChart):
        payload = {
            "labels": list(obj.labels),
            "datasets": [serialize(dataset) for dataset in obj.datasets],
        }
        if obj.total_revenue is not None:
            payload["totalRevenue"] = obj.total_revenue
        return payload
    if isinstance(obj, SeriesDataset):
        payload = {"label": obj.label, "data": list(obj.data)}
        if obj.border_color is not None:
            payload["borderColor"] = obj.border_color
        if obj.background_color is not None:
            payload["backgroundColor"] = obj.background_color
        if obj.fill is not None:
            payload["fill"] = obj.fill
        return payload
    if isinstance(obj, CategoricalChart):
        return {
            "labels": list(obj.labels),
            "values": list(obj.values),
            "colors": list(obj.colors),
        }
    if isinstance(obj, Activity):
        return obj.as_dict()
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, Iterable) and not isinstance(obj, (str, bytes, dict)):
        return [serialize(item) for item in obj]
    return obj
