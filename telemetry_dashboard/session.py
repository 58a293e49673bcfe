"""
Per-browser-session dashboard state: the data source, the shared interval,
the page clock and one ``ChartWidget`` per configured chart.

Streamlit gives no callback when a browser session goes away; it drops the
session state and the objects in it get collected. The release step is a
``weakref.finalize`` over the owned parts, so a collected (or never closed)
session still stops its source and its widgets, at the latest on interpreter
exit.
"""
from __future__ import annotations

import logging
import weakref
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Sequence

from telemetry_dashboard import dashboard_config as cfg
from telemetry_dashboard.dashboard_config import ChartSpec
from telemetry_dashboard.data_sources import DataSource
from telemetry_dashboard.interval import SelectedInterval
from telemetry_dashboard.scheduler import TaskLoop
from telemetry_dashboard.time_window import utc_now
from telemetry_dashboard.widget import ChartWidget

log = logging.getLogger(__name__)


class PageClock:
    """Header clock, advanced by the page task loop."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def tick(self, now: datetime) -> None:
        self.now = now


def _release(source: DataSource, widgets: Dict[str, ChartWidget], loop: TaskLoop) -> None:
    for widget in widgets.values():
        widget.close()
    widgets.clear()
    loop.close()
    source.close()
    log.info("Dashboard session closed")


class DashboardSession:
    def __init__(
        self,
        source: DataSource,
        selected: SelectedInterval,
        clock: Callable[[], datetime] = utc_now,
        clock_every: timedelta = timedelta(milliseconds=cfg.CLOCK_MS),
        **widget_options: Any,
    ) -> None:
        self.source = source
        self.selected = selected
        self._clock = clock
        self._widget_options = widget_options
        self.widgets: Dict[str, ChartWidget] = {}

        now = clock()
        self.page_clock = PageClock(now)
        self._loop = TaskLoop()
        self._loop.register("clock", clock_every, self.page_clock.tick, now)
        # The finalizer must not reference self, or the session is never collected.
        self._finalizer = weakref.finalize(self, _release, source, self.widgets, self._loop)

    @property
    def clock_now(self) -> datetime:
        return self.page_clock.now

    @property
    def closed(self) -> bool:
        return not self._finalizer.alive

    def sync_widgets(self, specs: Optional[Sequence[ChartSpec]] = None) -> List[ChartWidget]:
        """Create widgets for configured charts and close ones no longer configured."""
        if self.closed:
            raise RuntimeError("dashboard session is closed")
        specs = list(specs) if specs is not None else cfg.chart_specs()
        wanted = {s.id for s in specs}
        for chart_id in list(self.widgets):
            if chart_id not in wanted:
                self.widgets.pop(chart_id).close()
        for spec in specs:
            if spec.id not in self.widgets:
                self.widgets[spec.id] = ChartWidget(
                    spec, self.source, self.selected, clock=self._clock, **self._widget_options
                )
        return [self.widgets[s.id] for s in specs]

    def pump(self, now: Optional[datetime] = None) -> None:
        now = now if now is not None else self._clock()
        self._loop.run_pending(now)
        for widget in list(self.widgets.values()):
            widget.pump(now)

    def close(self) -> None:
        self._finalizer()

    def __enter__(self) -> "DashboardSession":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
