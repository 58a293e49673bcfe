from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from telemetry_dashboard.errors import InvalidWindow


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def minutes(n: float) -> timedelta:
    return timedelta(minutes=n)


@dataclass(frozen=True)
class TimeWindow:
    """Displayed time range ``[start, end)``."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.start >= self.end:
            raise InvalidWindow(f"window start {self.start} is not before end {self.end}")

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def contains(self, ts: datetime) -> bool:
        return self.start <= ts < self.end


def shift_by(window: TimeWindow, delta: timedelta) -> TimeWindow:
    return TimeWindow(start=window.start + delta, end=window.end + delta)


def from_offset(now: datetime, offset: timedelta, interval_length: timedelta) -> TimeWindow:
    """Window of ``interval_length`` ending ``offset`` before ``now``."""
    if interval_length <= timedelta(0):
        raise InvalidWindow(f"interval length must be positive, got {interval_length}")
    end = now - offset
    return TimeWindow(start=end - interval_length, end=end)
