from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Sequence, Union

from .models import BucketValue, BucketWindow, SeriesDataset

Number = Union[int, float]


def _as_number(value: float) -> Number:
    numeric = float(value or 0)
    return int(numeric) if numeric.is_integer() else numeric


def align_series(window: BucketWindow, sparse: Iterable[BucketValue]) -> List[Number]:
    """
    Project a sparse ``(bucket_key, value)`` result onto the dense window axis.

    Values are matched by key, never by position: storage may return rows in
    any order and may skip empty buckets. Keys outside the window are dropped.
    """

    positions: Dict[str, int] = {key: index for index, key in enumerate(window.keys)}
    aligned: List[Number] = [0] * len(window.keys)
    for row in sparse:
        index = positions.get(row.key)
        if index is None:
            continue
        aligned[index] = _as_number(row.value)
    return aligned


def align_many(window: BucketWindow, *sparse_results: Iterable[BucketValue]) -> List[List[Number]]:
    return [align_series(window, sparse) for sparse in sparse_results]


def build_dataset(
    label: str,
    data: Sequence[Number],
    border_color: Optional[str] = None,
    background_color: Optional[str] = None,
    fill: Optional[bool] = None,
) -> SeriesDataset:
    return SeriesDataset(
        label=label,
        data=list(data),
        border_color=border_color,
        background_color=background_color,
        fill=fill,
    )
