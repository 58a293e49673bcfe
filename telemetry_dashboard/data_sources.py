"""
Telemetry data sources.

Every source answers ``fetch(url, start, end, data_key)`` with the samples of
one chart inside ``[start, end)`` or raises ``DataUnavailable``. Retry and
reconnect policy live here, out of the windowing core.

Record shape (HTTP responses and WebSocket messages alike)::

    {"lastUpdated": "2024-05-01T10:00:05+00:00",
     "pressure": {"p_inlet": 181.2, "p_outlet": 175.0}}
"""
from __future__ import annotations

import json
import logging
import math
import random
import threading
import time
from collections import deque
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Deque, Dict, Iterable, List, Optional, Protocol, Tuple

import pandas as pd
import requests
from websocket import WebSocketApp

from telemetry_dashboard import dashboard_config as cfg
from telemetry_dashboard.errors import DataUnavailable
from telemetry_dashboard.series import Sample
from telemetry_dashboard.time_window import utc_now

log = logging.getLogger(__name__)

TIME_KEY = "lastUpdated"


class DataSource(Protocol):
    def fetch(self, url: str, start: datetime, end: datetime, data_key: str) -> List[Sample]:
        ...

    def sample_step(self, start: datetime, end: datetime) -> Optional[timedelta]:
        """Spacing the source thins samples to for this window, if it does."""
        ...

    def close(self) -> None:
        ...


# ----------------------------- Utilities ----------------------------- #

def parse_timestamp(raw: Any) -> Optional[datetime]:
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        ts = pd.to_datetime(raw, unit="s", utc=True, errors="coerce")
    else:
        ts = pd.to_datetime(raw, utc=True, errors="coerce")
    if pd.isna(ts):
        return None
    return ts.to_pydatetime()


def _numeric_values(block: Any) -> Dict[str, float]:
    if not isinstance(block, dict):
        return {}
    out = {}
    for k, v in block.items():
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            continue
        out[str(k)] = float(v)
    return out


def parse_records(records: Iterable[Dict[str, Any]], data_key: str) -> List[Sample]:
    """Convert raw records to samples, keeping arrival order.

    Records without a parseable timestamp are dropped. A record without
    ``data_key`` still yields a sample (with no values) so the chart shows a
    gap at its time.
    """
    samples = []
    for rec in records:
        if not isinstance(rec, dict):
            continue
        ts = parse_timestamp(rec.get(TIME_KEY))
        if ts is None:
            continue
        samples.append(Sample(timestamp=ts, values=_numeric_values(rec.get(data_key))))
    return samples


def _iso(ts: datetime) -> str:
    return ts.astimezone(timezone.utc).isoformat(timespec="milliseconds")


# ----------------------------- Mock data generator ----------------------------- #

# data_key -> param -> (baseline, swing, noise)
MOCK_PROFILES: Dict[str, Dict[str, Tuple[float, float, float]]] = {
    "pressure": {
        "p_inlet": (180.0, 25.0, 1.5),
        "p_outlet": (172.0, 24.0, 1.5),
        "p_return": (6.0, 1.5, 0.3),
    },
    "flow": {
        "flow_rate": (42.0, 8.0, 0.8),
        "oil_temp": (48.0, 4.0, 0.2),
    },
}


class MockDataSource:
    """Deterministic synthetic test-bench telemetry.

    The same window always yields the same samples. Every 17th minute is a
    dropout with no records, and a few records miss single parameters, so the
    charts show gaps the way a flaky controller would.
    """

    def __init__(
        self,
        profiles: Optional[Dict[str, Dict[str, Tuple[float, float, float]]]] = None,
        step: timedelta = timedelta(milliseconds=cfg.REFRESH_MS),
        max_points: int = 720,
        failure_rate: float = 0.0,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.profiles = profiles if profiles is not None else MOCK_PROFILES
        self.step = step
        self.max_points = max_points
        self.failure_rate = failure_rate
        self._clock = clock
        self._rng = random.Random()

    def sample_step(self, start: datetime, end: datetime) -> Optional[timedelta]:
        # Coarser spacing for long windows keeps the point count bounded.
        step_s = self.step.total_seconds()
        span_s = (end - start).total_seconds()
        return timedelta(seconds=max(step_s, math.ceil(span_s / self.max_points / step_s) * step_s))

    def mock_payload(self, ts: datetime, data_key: str) -> Optional[Dict[str, Any]]:
        epoch = ts.timestamp()
        if int(epoch // 60) % 17 == 0:
            return None
        rng = random.Random(int(epoch))

        def jitt(v: float, spread: float) -> float:
            return v + rng.uniform(-spread, spread)

        block = {}
        for i, (param, (base, swing, noise)) in enumerate(self.profiles.get(data_key, {}).items()):
            if rng.random() < 0.02:
                continue
            wave = swing * math.sin(2 * math.pi * epoch / 1800.0 + i)
            block[param] = round(jitt(base + wave, noise), 2)
        return {TIME_KEY: _iso(ts), data_key: block}

    def records(self, start: datetime, end: datetime, data_key: str) -> List[Dict[str, Any]]:
        end = min(end, self._clock())
        if end <= start:
            return []
        step = self.sample_step(start, end)
        step_s = step.total_seconds()
        first = math.ceil(start.timestamp() / step_s) * step_s
        ts = datetime.fromtimestamp(first, tz=timezone.utc)
        out = []
        while ts < end:
            payload = self.mock_payload(ts, data_key)
            if payload is not None:
                out.append(payload)
            ts += step
        return out

    def fetch(self, url: str, start: datetime, end: datetime, data_key: str) -> List[Sample]:
        if self.failure_rate and self._rng.random() < self.failure_rate:
            raise DataUnavailable(f"mock outage for {url}")
        return parse_records(self.records(start, end, data_key), data_key)

    def close(self) -> None:
        pass


# ----------------------------- HTTP ----------------------------- #

class HttpDataSource:
    """GET ``url?startTime=..&endTime=..`` with retry and backoff."""

    def __init__(
        self,
        timeout_seconds: float = cfg.HTTP_TIMEOUT_S,
        retries: int = cfg.HTTP_RETRIES,
        backoff_base_seconds: float = cfg.HTTP_BACKOFF_S,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        self.retries = max(1, int(retries))
        self.backoff_base_seconds = backoff_base_seconds
        self._sess = session or requests.Session()

    def get_json(self, url: str, params: Dict[str, Any]) -> Any:
        last_err: Optional[BaseException] = None
        for attempt in range(1, self.retries + 1):
            try:
                r = self._sess.get(url, params=params, timeout=self.timeout_seconds)
                r.raise_for_status()
                return r.json()
            except (requests.RequestException, ValueError) as e:
                last_err = e
                if attempt < self.retries:
                    time.sleep(self.backoff_base_seconds * (2 ** (attempt - 1)))
        raise DataUnavailable(f"{url}: {last_err}") from last_err

    def fetch(self, url: str, start: datetime, end: datetime, data_key: str) -> List[Sample]:
        data = self.get_json(url, {"startTime": _iso(start), "endTime": _iso(end)})
        if isinstance(data, dict):
            data = data.get("data", [])
        if not isinstance(data, list):
            raise DataUnavailable(f"{url}: unexpected response of type {type(data).__name__}")
        return parse_records(data, data_key)

    def sample_step(self, start: datetime, end: datetime) -> Optional[timedelta]:
        return None

    def close(self) -> None:
        self._sess.close()


# ----------------------------- WebSocket ----------------------------- #

class WebSocketDataSource:
    """Buffers streamed records and answers fetches from the buffer."""

    def __init__(
        self,
        url: str = cfg.WS_URL,
        max_rows: int = cfg.MAX_ROWS,
        buffer_seconds: float = cfg.BUFFER_SECONDS,
    ) -> None:
        self.url = url
        self.buffer_seconds = buffer_seconds
        self._rows: Deque[Tuple[datetime, Dict[str, Any]]] = deque(maxlen=max_rows)
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._connected = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._ws: Optional[WebSocketApp] = None

    @property
    def connected(self) -> bool:
        return self._connected.is_set()

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="WebSocketDataSource", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        ws = self._ws
        if ws is not None:
            ws.close()

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread:
            self._thread.join(timeout=timeout)

    def close(self) -> None:
        self.stop()
        self.join(timeout=5.0)

    def ingest(self, message: str) -> None:
        try:
            data = json.loads(message)
        except ValueError:
            log.warning("Dropping malformed stream message: %.80s", message)
            return
        if not isinstance(data, dict):
            return
        ts = parse_timestamp(data.get(TIME_KEY)) or utc_now()
        data[TIME_KEY] = _iso(ts)
        cutoff = ts - timedelta(seconds=self.buffer_seconds)
        with self._lock:
            self._rows.append((ts, data))
            while self._rows and self._rows[0][0] < cutoff:
                self._rows.popleft()

    def _on_open(self, _ws) -> None:
        self._connected.set()
        log.info("Stream connected: %s", self.url)

    def _on_message(self, _ws, message: str) -> None:
        self.ingest(message)

    def _on_close(self, _ws, *_args) -> None:
        self._connected.clear()

    def _run(self) -> None:
        while not self._stop.is_set():
            self._ws = WebSocketApp(
                self.url,
                on_open=self._on_open,
                on_message=self._on_message,
                on_close=self._on_close,
            )
            # stop() may have run before the new app was visible to it.
            if self._stop.is_set():
                self._ws = None
                break
            try:
                self._ws.run_forever(ping_interval=20, ping_timeout=10)
            finally:
                self._connected.clear()
                self._ws = None
            if self._stop.wait(1.0):
                break
            log.warning("Stream %s dropped, reconnecting", self.url)

    def fetch(self, url: str, start: datetime, end: datetime, data_key: str) -> List[Sample]:
        with self._lock:
            rows = [rec for ts, rec in self._rows if start <= ts < end]
            empty = not self._rows
        if empty and not self.connected:
            raise DataUnavailable(f"stream {self.url} is not connected")
        return parse_records(rows, data_key)

    def sample_step(self, start: datetime, end: datetime) -> Optional[timedelta]:
        return None


def make_source(kind: str = cfg.DATA_SOURCE) -> DataSource:
    if kind == "Mock":
        return MockDataSource(failure_rate=cfg.MOCK_FAILURE_RATE)
    if kind == "HTTP":
        return HttpDataSource()
    if kind == "WebSocket":
        source = WebSocketDataSource()
        source.start()
        return source
    raise ValueError(f"unknown data source {kind!r}")
