from __future__ import annotations

from enum import Enum


class DashboardError(Exception):
    """Base class for dashboard errors."""


class DataUnavailable(DashboardError):
    """The data source call failed or the host is unreachable."""


class InvalidWindow(DashboardError, ValueError):
    """A time window would violate start < end."""


class ErrorKind(str, Enum):
    # Surfaced to the rendering layer instead of raising.
    DATA_UNAVAILABLE = "data_unavailable"
