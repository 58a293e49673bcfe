"""
Streamlit live telemetry dashboard for the hydraulic test bench.

Features
- One live chart per entry in ``dashboard_config.CHARTS``
- Shared interval selector (5 min ... 1 day); changing it keeps each chart's
  position in history
- Back / Forward page through history one interval at a time, "Return to live"
  resumes following; a paused chart returns to live after a minute idle
- Missing samples are drawn as gaps, never interpolated
- Data from the Mock generator, an HTTP API or a WebSocket stream

Run locally
  pip install -e .
  streamlit run dashboard.py
"""
from __future__ import annotations

import logging

import streamlit as st
import streamlit.components.v1 as components
from streamlit_autorefresh import st_autorefresh

from telemetry_dashboard import dashboard_config as cfg
from telemetry_dashboard.charting import build_figure
from telemetry_dashboard.data_sources import make_source
from telemetry_dashboard.interval import SelectedInterval, interval_label
from telemetry_dashboard.logging_setup import setup_logging
from telemetry_dashboard.session import DashboardSession
from telemetry_dashboard.time_window import utc_now

setup_logging(cfg.LOG_DIR, getattr(logging, cfg.LOG_LEVEL, logging.INFO))

st.set_page_config(page_title=cfg.PAGE_TITLE, layout="wide")

# Preserve scroll position across the once-per-second reruns
components.html(
    """
<script>
(function() {
  const key = 'st-scroll-pos:' + (window.location.pathname || 'root');
  const y = parseInt(sessionStorage.getItem(key) || '0', 10) || 0;
  try { history.scrollRestoration = 'manual'; } catch (e) {}
  [0, 150, 600].forEach(t => setTimeout(() => window.scrollTo(0, y), t));
  document.addEventListener('scroll', () => {
    try { sessionStorage.setItem(key, String(window.scrollY || 0)); } catch (e) {}
  }, { passive: true });
})();
</script>
    """,
    height=0,
)

# Session state bootstrap. The session releases its source and widgets when
# Streamlit drops this browser session.
ss = st.session_state
if ss.get("session") is None:
    ss.session = DashboardSession(
        make_source(cfg.DATA_SOURCE),
        SelectedInterval(cfg.DEFAULT_INTERVAL_MIN, cfg.INTERVAL_OPTIONS_MIN),
    )
session: DashboardSession = ss.session

# Drives the clock, refresh and inactivity tasks
st_autorefresh(interval=min(cfg.CLOCK_MS, cfg.INACTIVITY_CHECK_MS), key="_autorefresh")

widgets = session.sync_widgets()
session.pump(utc_now())

# ----------------------------- Header ----------------------------- #

head_cols = st.columns([3, 1])
with head_cols[0]:
    st.title(cfg.PAGE_TITLE)
with head_cols[1]:
    local_now = session.clock_now.astimezone()
    st.metric(local_now.strftime("%d.%m.%Y"), local_now.strftime("%H:%M:%S"))


def _on_interval_change() -> None:
    ss.session.selected.set(ss.interval_min)


st.radio(
    "Interval",
    cfg.INTERVAL_OPTIONS_MIN,
    index=cfg.INTERVAL_OPTIONS_MIN.index(session.selected.minutes),
    format_func=interval_label,
    horizontal=True,
    key="interval_min",
    on_change=_on_interval_change,
)

# ----------------------------- Charts ----------------------------- #

for w in widgets:
    view = w.view()
    with st.container():
        if view.error:
            st.error(
                f"{w.spec.title}: failed to load data. "
                "No connection to the server/equipment."
            )
        else:
            st.plotly_chart(build_figure(w.spec, view), use_container_width=True, key=f"chart_{w.spec.id}")

        if view.is_following:
            st.caption("Live")
        else:
            back = int(view.offset.total_seconds() // 60)
            st.caption(f"Paused, {back} min behind live" if back else "Paused")

        btn_cols = st.columns(4)
        with btn_cols[0]:
            st.button("Back", key=f"back_{w.spec.id}", on_click=w.step_backward, use_container_width=True)
        with btn_cols[1]:
            st.button("Forward", key=f"fwd_{w.spec.id}", on_click=w.step_forward, use_container_width=True)
        with btn_cols[2]:
            st.button(
                "Show all" if view.all_hidden else "Hide all",
                key=f"toggle_{w.spec.id}",
                on_click=w.toggle_all,
                use_container_width=True,
            )
        with btn_cols[3]:
            st.button("Return to live", key=f"live_{w.spec.id}", on_click=w.return_to_live, use_container_width=True)
