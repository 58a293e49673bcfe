"""Live telemetry chart widget: time window, live-follow and gap-aware series."""

__version__ = "0.3.0"
