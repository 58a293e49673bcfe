# Central configuration for the dashboard
# Adjust these settings as needed; the page only exposes the interval selector.
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

# Data source: "Mock", "HTTP" or "WebSocket"
DATA_SOURCE = "Mock"

# Base URL of the telemetry API used when DATA_SOURCE == "HTTP"
API_URL = "http://localhost:8000/api"

# WebSocket URL used when DATA_SOURCE == "WebSocket"
WS_URL = "ws://localhost:8000/stream"

# HTTP client settings
HTTP_TIMEOUT_S = 8.0
HTTP_RETRIES = 2
HTTP_BACKOFF_S = 0.5

# Data refresh cadence in milliseconds
REFRESH_MS = 5000

# How often the inactivity check runs (milliseconds)
INACTIVITY_CHECK_MS = 1000

# Header clock tick (milliseconds)
CLOCK_MS = 1000

# Idle time after which a paused chart returns to live (seconds)
INACTIVITY_TIMEOUT_S = 60

# Consecutive samples further apart than GAP_FACTOR * refresh cadence are not joined
GAP_FACTOR = 2

# Selectable chart intervals in minutes
INTERVAL_OPTIONS_MIN: Tuple[int, ...] = (5, 15, 30, 60, 180, 360, 720, 1440)
DEFAULT_INTERVAL_MIN = 15

# Live window size in seconds for the in-memory WebSocket buffer
BUFFER_SECONDS = 24 * 60 * 60  # 1 day

# Maximum number of rows kept in the WebSocket buffer
MAX_ROWS = 20000

# Page title shown in the header
PAGE_TITLE = "Hydraulic test bench"

# Logging: directory for dated log files (None = console only)
LOG_DIR = None
LOG_LEVEL = "INFO"

# Probability of a simulated outage per mock fetch (0 disables)
MOCK_FAILURE_RATE = 0.0

# Charts shown on the page. "data_key" selects the nested object of each record.
CHARTS: List[Dict[str, Any]] = [
    {
        "id": "pressure",
        "title": "Pressure",
        "endpoint": "/pressure",
        "data_key": "pressure",
        "params": [
            {"key": "p_inlet", "label": "Inlet pressure", "unit": "bar"},
            {"key": "p_outlet", "label": "Outlet pressure", "unit": "bar"},
            {"key": "p_return", "label": "Return line", "unit": "bar"},
        ],
        "y_min": 0,
        "y_max": 250,
    },
    {
        "id": "flow",
        "title": "Flow and temperature",
        "endpoint": "/flow",
        "data_key": "flow",
        "params": [
            {"key": "flow_rate", "label": "Flow rate", "unit": "l/min"},
            {"key": "oil_temp", "label": "Oil temperature", "unit": "°C"},
        ],
    },
]


@dataclass(frozen=True)
class Parameter:
    key: str
    label: str
    unit: str = ""


@dataclass(frozen=True)
class ChartSpec:
    id: str
    title: str
    api_url: str
    data_key: str
    params: Tuple[Parameter, ...]
    y_min: Optional[float] = None
    y_max: Optional[float] = None
    height: int = 400


def chart_specs(charts: Optional[List[Dict[str, Any]]] = None) -> List[ChartSpec]:
    """Build ChartSpec objects from the CHARTS table."""
    specs = []
    for c in charts if charts is not None else CHARTS:
        specs.append(
            ChartSpec(
                id=str(c["id"]),
                title=str(c.get("title", c["id"])),
                api_url=API_URL.rstrip("/") + str(c.get("endpoint", "")),
                data_key=str(c.get("data_key", c["id"])),
                params=tuple(Parameter(**p) for p in c.get("params", [])),
                y_min=c.get("y_min"),
                y_max=c.get("y_max"),
                height=int(c.get("height", 400)),
            )
        )
    return specs
