from __future__ import annotations

from itertools import cycle, islice
from typing import Iterable, List, Literal, Optional, Sequence

from .models import CategoricalChart, ComparativeStat, RankedItem

PALETTE = ("#4F46E5", "#10B981", "#F59E0B", "#EC4899", "#3B82F6")


def percent_change(previous: float, current: float) -> float:
    """
    Relative change from ``previous`` to ``current`` in percent.

    A zero baseline yields 0 when nothing happened and 100 when something did;
    otherwise the signed, unclamped ratio is returned.
    """

    previous = previous or 0
    current = current or 0
    if previous == 0:
        return 100 if current > 0 else 0
    return (current - previous) / previous * 100


def compare(
    current: float,
    previous: float,
    unit: Literal["count", "amount"] = "count",
) -> ComparativeStat:
    current = current or 0
    previous = previous or 0
    return ComparativeStat(
        current=current,
        previous=previous,
        percent_change=percent_change(previous, current),
        unit=unit,
    )


def palette_colors(count: int, palette: Sequence[str] = PALETTE) -> List[str]:
    if count <= 0 or not palette:
        return []
    return list(islice(cycle(palette), count))


def rank_top(
    items: Iterable[RankedItem],
    limit: int,
    palette: Optional[Sequence[str]] = None,
) -> CategoricalChart:
    """
    Sort ``items`` by value (descending) and keep the first ``limit``.

    ``sorted`` is stable, so ties keep the order the storage layer returned
    them in.
    """

    ranked = sorted(items, key=lambda item: item.value, reverse=True)[: max(limit, 0)]
    return CategoricalChart(
        labels=[item.label for item in ranked],
        values=[item.value for item in ranked],
        colors=palette_colors(len(ranked), palette or PALETTE),
    )
