"""
One chart on the page: wires the live-follow controller, inactivity monitor
and refresh scheduler to a task loop and to the shared interval selector.

The host calls ``pump()`` regularly (the Streamlit page does it on every
autorefresh rerun) and renders ``view()``. All state changes happen inside
these calls or the four user actions, on the host thread.
"""
from __future__ import annotations

import logging
from concurrent.futures import Executor
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

from telemetry_dashboard import dashboard_config as cfg
from telemetry_dashboard.dashboard_config import ChartSpec
from telemetry_dashboard.data_sources import DataSource
from telemetry_dashboard.errors import ErrorKind
from telemetry_dashboard.inactivity import InactivityMonitor
from telemetry_dashboard.interval import SelectedInterval
from telemetry_dashboard.live_follow import LiveFollowController
from telemetry_dashboard.refresh import RefreshScheduler
from telemetry_dashboard.scheduler import TaskLoop
from telemetry_dashboard.series import GappedSeries, build_all, gap_threshold
from telemetry_dashboard.time_window import TimeWindow, utc_now

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChartView:
    """Render model handed to the charting layer."""

    series: Dict[str, GappedSeries]
    window: TimeWindow
    is_following: bool
    offset: timedelta
    error: Optional[ErrorKind]
    all_hidden: bool


class ChartWidget:
    def __init__(
        self,
        spec: ChartSpec,
        source: DataSource,
        selected: SelectedInterval,
        clock: Callable[[], datetime] = utc_now,
        executor: Optional[Executor] = None,
        refresh_every: timedelta = timedelta(milliseconds=cfg.REFRESH_MS),
        inactivity_every: timedelta = timedelta(milliseconds=cfg.INACTIVITY_CHECK_MS),
        inactivity_threshold: timedelta = timedelta(seconds=cfg.INACTIVITY_TIMEOUT_S),
        gap_factor: float = cfg.GAP_FACTOR,
    ) -> None:
        self.spec = spec
        self.source = source
        self._clock = clock
        now = clock()
        self.controller = LiveFollowController(selected.length, clock=clock)
        self.monitor = InactivityMonitor(self.controller, inactivity_threshold)
        self.refresher = RefreshScheduler(self.controller, source, spec.api_url, spec.data_key, executor=executor)
        self.gap_threshold = gap_threshold(refresh_every, gap_factor)
        self.gap_factor = gap_factor
        self.all_hidden = False

        self._loop = TaskLoop()
        self._loop.register("refresh", refresh_every, self.refresher.refresh, now)
        self._loop.register("inactivity", inactivity_every, self._check_inactivity, now)
        self._unsubscribe = selected.subscribe(self._on_interval_changed)

        self.refresher.request()

    # ----------------------------- user actions ----------------------------- #

    def step_backward(self) -> None:
        self.controller.step_backward()
        self.refresher.request()

    def step_forward(self) -> None:
        self.controller.step_forward()
        self.refresher.request()

    def return_to_live(self) -> None:
        self.controller.return_to_live()
        self.refresher.request()

    def toggle_all(self) -> None:
        self.all_hidden = not self.all_hidden

    # ----------------------------- host loop ----------------------------- #

    def _check_inactivity(self, now: datetime) -> None:
        if self.monitor.check(now):
            self.refresher.request()

    def _on_interval_changed(self, length: timedelta) -> None:
        self.controller.on_interval_length_changed(length)
        self.refresher.request()

    def pump(self, now: Optional[datetime] = None) -> List[str]:
        """Run due periodic tasks and apply finished fetches."""
        now = now if now is not None else self._clock()
        ran = self._loop.run_pending(now)
        self.refresher.collect(now)
        return ran

    def threshold_for(self, window: TimeWindow) -> timedelta:
        """Gap threshold, widened when the source thins samples for long windows."""
        step = self.source.sample_step(window.start, window.end)
        if step is None:
            return self.gap_threshold
        return max(self.gap_threshold, gap_threshold(step, self.gap_factor))

    def view(self) -> ChartView:
        window = self.controller.window
        display = self.refresher.display
        # Samples from the previous window stay hidden until the new fetch lands.
        samples = [s for s in display.samples if window.contains(s.timestamp)]
        return ChartView(
            series=build_all(samples, [p.key for p in self.spec.params], self.threshold_for(window)),
            window=window,
            is_following=self.controller.is_following,
            offset=self.controller.offset,
            error=display.error,
            all_hidden=self.all_hidden,
        )

    # ----------------------------- teardown ----------------------------- #

    @property
    def closed(self) -> bool:
        return self._loop.closed

    def close(self) -> None:
        if self._loop.closed:
            return
        self._unsubscribe()
        self._loop.close()
        self.refresher.close()
        log.debug("Chart %s closed", self.spec.id)

    def __enter__(self) -> "ChartWidget":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
