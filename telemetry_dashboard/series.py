"""Gap-aware per-parameter series built from ordered telemetry samples."""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Iterable, Mapping, Optional, Sequence, Tuple


@dataclass(frozen=True)
class Sample:
    """One telemetry record as received from the data source."""

    timestamp: datetime
    values: Mapping[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class SeriesPoint:
    time: datetime
    # None marks a gap: the renderer must not join points across it.
    value: Optional[float]

    @property
    def is_gap(self) -> bool:
        return self.value is None


GappedSeries = Tuple[SeriesPoint, ...]


def gap_threshold(refresh: timedelta, factor: float = 2) -> timedelta:
    return refresh * factor


def _value_of(sample: Sample, key: str) -> Optional[float]:
    v = sample.values.get(key)
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        return None
    v = float(v)
    return v if math.isfinite(v) else None


def build_series(samples: Iterable[Sample], key: str, threshold: timedelta) -> GappedSeries:
    """Series for ``key`` with gap markers.

    A gap marker is placed halfway between two consecutive samples further
    apart than ``threshold``. A sample without a usable value for ``key`` is
    kept as a gap marker at its own timestamp.
    """
    points = []
    prev: Optional[datetime] = None
    for s in samples:
        if prev is not None and s.timestamp - prev > threshold:
            points.append(SeriesPoint(prev + (s.timestamp - prev) / 2, None))
        points.append(SeriesPoint(s.timestamp, _value_of(s, key)))
        prev = s.timestamp
    return tuple(points)


def build_all(samples: Sequence[Sample], keys: Iterable[str], threshold: timedelta) -> Dict[str, GappedSeries]:
    return {k: build_series(samples, k, threshold) for k in keys}
