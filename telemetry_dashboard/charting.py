from __future__ import annotations

from typing import List

import pandas as pd
import plotly.graph_objects as go

from telemetry_dashboard.dashboard_config import ChartSpec, Parameter
from telemetry_dashboard.series import GappedSeries
from telemetry_dashboard.widget import ChartView

COLORS: List[str] = [
    "#1f77b4",
    "#ff7f0e",
    "#2ca02c",
    "#d62728",
    "#9467bd",
    "#8c564b",
    "#e377c2",
    "#17becf",
]


def series_frame(series: GappedSeries) -> pd.DataFrame:
    # Gap markers become NaN so plotly breaks the line there.
    return pd.DataFrame(
        {
            "time": [p.time for p in series],
            "value": [p.value for p in series],
        },
        columns=["time", "value"],
    )


def trace_name(param: Parameter) -> str:
    return f"{param.label}, {param.unit}" if param.unit else param.label


def build_figure(spec: ChartSpec, view: ChartView) -> go.Figure:
    fig = go.Figure()
    for i, param in enumerate(spec.params):
        df = series_frame(view.series.get(param.key, ()))
        fig.add_trace(
            go.Scatter(
                x=df["time"],
                y=df["value"],
                name=trace_name(param),
                mode="lines+markers",
                marker=dict(size=3),
                line=dict(color=COLORS[i % len(COLORS)], width=2),
                connectgaps=False,
                visible="legendonly" if view.all_hidden else True,
            )
        )

    y_range = None
    if spec.y_min is not None and spec.y_max is not None:
        y_range = [spec.y_min, spec.y_max]

    title = spec.title if view.is_following else f"{spec.title} (paused)"
    fig.update_layout(
        title=title,
        height=spec.height,
        xaxis=dict(
            type="date",
            range=[view.window.start, view.window.end],
            showgrid=True,
            # A moved window drops any zoom; a paused one keeps it.
            uirevision=view.window.start.isoformat(),
        ),
        yaxis=dict(type="linear", range=y_range, showgrid=True, zeroline=True),
        hovermode="x unified",
        legend=dict(orientation="h"),
        # Legend clicks survive reruns until "Hide all" / "Show all" is pressed.
        uirevision=f"{spec.id}:{view.all_hidden}",
        margin=dict(l=40, r=20, t=50, b=40),
    )
    return fig
