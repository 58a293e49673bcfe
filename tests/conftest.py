from __future__ import annotations

from concurrent.futures import Executor, Future
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Tuple

import pytest

from telemetry_dashboard.errors import DataUnavailable
from telemetry_dashboard.series import Sample

T0 = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class InlineExecutor(Executor):
    """Runs submitted calls immediately."""

    def submit(self, fn: Callable, *args, **kwargs) -> Future:
        fut: Future = Future()
        try:
            fut.set_result(fn(*args, **kwargs))
        except Exception as e:
            fut.set_exception(e)
        return fut


class ManualExecutor(Executor):
    """Holds submitted calls until the test starts or runs them."""

    def __init__(self) -> None:
        self.jobs: List[Tuple[Future, Callable, tuple]] = []

    def submit(self, fn: Callable, *args, **kwargs) -> Future:
        fut: Future = Future()
        self.jobs.append((fut, fn, args))
        return fut

    def start(self, index: int = 0) -> Future:
        """Mark a job as running; running jobs can no longer be cancelled."""
        fut = self.jobs[index][0]
        fut.set_running_or_notify_cancel()
        return fut

    def run(self, index: int = 0) -> Future:
        fut, fn, args = self.jobs.pop(index)
        if not fut.running() and not fut.set_running_or_notify_cancel():
            return fut
        try:
            fut.set_result(fn(*args))
        except Exception as e:
            fut.set_exception(e)
        return fut

    def run_all(self) -> None:
        while self.jobs:
            self.run()


class FakeSource:
    """Returns one sample per call just before the window end; can be told to fail."""

    def __init__(self) -> None:
        self.calls: List[Tuple[str, datetime, datetime, str]] = []
        self.fail = False
        self.closed = False

    def fetch(self, url: str, start: datetime, end: datetime, data_key: str) -> List[Sample]:
        self.calls.append((url, start, end, data_key))
        if self.fail:
            raise DataUnavailable("host unreachable")
        return [Sample(timestamp=end - timedelta(seconds=1), values={"p1": float(len(self.calls))})]

    def sample_step(self, start: datetime, end: datetime) -> Optional[timedelta]:
        return None

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def source() -> FakeSource:
    return FakeSource()
