from __future__ import annotations

from datetime import timedelta

import math

from telemetry_dashboard.charting import COLORS, build_figure, series_frame, trace_name
from telemetry_dashboard.dashboard_config import ChartSpec, Parameter
from telemetry_dashboard.series import SeriesPoint
from telemetry_dashboard.time_window import TimeWindow, minutes
from telemetry_dashboard.widget import ChartView

from conftest import T0

SPEC = ChartSpec(
    id="pressure",
    title="Pressure",
    api_url="http://bench/api/pressure",
    data_key="pressure",
    params=(Parameter("p1", "Inlet", "bar"), Parameter("p2", "Outlet")),
    y_min=0,
    y_max=250,
)


def _view(**kw) -> ChartView:
    base = dict(
        series={
            "p1": (
                SeriesPoint(T0 - timedelta(seconds=30), 1.0),
                SeriesPoint(T0 - timedelta(seconds=20), None),
                SeriesPoint(T0 - timedelta(seconds=5), 2.0),
            ),
        },
        window=TimeWindow(T0 - minutes(15), T0),
        is_following=True,
        offset=timedelta(0),
        error=None,
        all_hidden=False,
    )
    base.update(kw)
    return ChartView(**base)


def test_gaps_break_the_line() -> None:
    fig = build_figure(SPEC, _view())
    trace = fig.data[0]
    assert trace.connectgaps is False
    assert math.isnan(trace.y[1])
    assert trace.name == "Inlet, bar"
    assert len(fig.data) == 2
    assert len(fig.data[1].x) == 0


def test_axes_follow_window_and_limits() -> None:
    fig = build_figure(SPEC, _view())
    assert list(fig.layout.yaxis.range) == [0, 250]
    start, end = fig.layout.xaxis.range
    assert str(start).startswith("2024-05-01 11:45") or str(start).startswith("2024-05-01T11:45")
    assert fig.layout.title.text == "Pressure"


def test_paused_title_and_hidden_traces() -> None:
    fig = build_figure(SPEC, _view(is_following=False, all_hidden=True))
    assert fig.layout.title.text == "Pressure (paused)"
    assert all(t.visible == "legendonly" for t in fig.data)


def test_series_frame_and_names() -> None:
    df = series_frame(())
    assert list(df.columns) == ["time", "value"]
    assert df.empty
    assert trace_name(Parameter("p2", "Outlet")) == "Outlet"


def test_zoom_resets_when_window_moves() -> None:
    live = build_figure(SPEC, _view())
    same = build_figure(SPEC, _view())
    moved = TimeWindow(T0 - minutes(15) + timedelta(seconds=5), T0 + timedelta(seconds=5))
    later = build_figure(SPEC, _view(window=moved))
    assert live.layout.xaxis.uirevision == same.layout.xaxis.uirevision
    assert live.layout.xaxis.uirevision != later.layout.xaxis.uirevision
    # Legend state is tied to the chart, not to the window.
    assert live.layout.uirevision == later.layout.uirevision


def test_traces_cycle_palette() -> None:
    fig = build_figure(SPEC, _view())
    assert [t.line.color for t in fig.data] == COLORS[:2]
