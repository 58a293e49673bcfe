from __future__ import annotations

import logging
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass, replace
from datetime import datetime
from typing import List, Optional, Tuple

from telemetry_dashboard.data_sources import DataSource
from telemetry_dashboard.errors import DataUnavailable, ErrorKind
from telemetry_dashboard.live_follow import LiveFollowController
from telemetry_dashboard.series import Sample
from telemetry_dashboard.time_window import TimeWindow

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class DisplayState:
    """What the chart currently shows: the last good sample set and an error flag."""

    samples: Tuple[Sample, ...] = ()
    window: Optional[TimeWindow] = None
    error: Optional[ErrorKind] = None
    updated_at: Optional[datetime] = None


@dataclass
class _InFlight:
    generation: int
    window: TimeWindow
    future: Future
    seq: int


class RefreshScheduler:
    """Requests samples for the controller's window and applies the answers.

    Fetches run on ``executor`` so navigation never waits for the network.
    ``collect()`` runs on the host thread. Samples are applied only if the
    window generation they were fetched for is still current; a failure is
    shown whatever window it was for, unless a newer answer already landed.
    """

    def __init__(
        self,
        controller: LiveFollowController,
        source: DataSource,
        url: str,
        data_key: str,
        executor: Optional[Executor] = None,
    ) -> None:
        self.controller = controller
        self.source = source
        self.url = url
        self.data_key = data_key
        self._own_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=2, thread_name_prefix=f"fetch-{data_key}")
        self._in_flight: List[_InFlight] = []
        self._seq = 0
        self._applied_seq = 0
        self.display = DisplayState()
        self.stale_discarded = 0

    @property
    def pending(self) -> int:
        return len(self._in_flight)

    def refresh(self, now: datetime) -> Future:
        """Periodic step: advance a following window, then fetch it."""
        if self.controller.is_following:
            self.controller.tick(now)
        return self.request()

    def request(self) -> Future:
        """Fetch the current window.

        A fetch still outstanding for the current window is reused, and queued
        fetches for older windows are cancelled, so a slow source never builds
        up a backlog.
        """
        state = self.controller.state
        kept = []
        for job in self._in_flight:
            if job.generation == state.generation and not job.future.done():
                return job.future
            if job.generation != state.generation and job.future.cancel():
                continue
            kept.append(job)
        self._in_flight = kept

        w = state.window
        self._seq += 1
        fut = self._executor.submit(self.source.fetch, self.url, w.start, w.end, self.data_key)
        self._in_flight.append(_InFlight(generation=state.generation, window=w, future=fut, seq=self._seq))
        return fut

    def collect(self, now: Optional[datetime] = None) -> bool:
        """Apply finished fetches; returns True when the display changed."""
        changed = False
        still_running = []
        for job in self._in_flight:
            if not job.future.done():
                still_running.append(job)
                continue
            if job.future.cancelled():
                continue
            if job.seq < self._applied_seq:
                # A newer answer is already on screen.
                self.stale_discarded += 1
                continue
            if job.future.exception() is None and job.generation != self.controller.state.generation:
                self.stale_discarded += 1
                log.debug("Discarding response for stale window %s - %s", job.window.start, job.window.end)
                continue
            changed = self._apply(job, now) or changed
        self._in_flight = still_running
        return changed

    def _apply(self, job: _InFlight, now: Optional[datetime]) -> bool:
        self._applied_seq = job.seq
        exc = job.future.exception()
        if exc is None:
            self.display = DisplayState(
                samples=tuple(job.future.result()),
                window=job.window,
                error=None,
                updated_at=now,
            )
            return True
        if isinstance(exc, DataUnavailable):
            log.warning("Data unavailable for %s: %s", self.url, exc)
        else:
            log.error("Fetch for %s failed", self.url, exc_info=exc)
        # Keep the previous samples on screen.
        self.display = replace(self.display, error=ErrorKind.DATA_UNAVAILABLE)
        return True

    def close(self) -> None:
        for job in self._in_flight:
            job.future.cancel()
        self._in_flight = []
        if self._own_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)
