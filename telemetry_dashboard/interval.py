from __future__ import annotations

import logging
from datetime import timedelta
from typing import Callable, List, Sequence

log = logging.getLogger(__name__)

IntervalListener = Callable[[timedelta], None]


def interval_label(minutes: int) -> str:
    if minutes % 1440 == 0:
        days = minutes // 1440
        return f"{days} day" if days == 1 else f"{days} days"
    if minutes % 60 == 0:
        hours = minutes // 60
        return f"{hours} hour" if hours == 1 else f"{hours} hours"
    return f"{minutes} min"


class SelectedInterval:
    """Interval (minutes) shared by every chart on the page.

    Listeners are told about changes only; setting the current value again
    does nothing.
    """

    def __init__(self, minutes: int, options: Sequence[int]) -> None:
        self.options = tuple(options)
        self._check(minutes)
        self._minutes = int(minutes)
        self._listeners: List[IntervalListener] = []

    def _check(self, minutes: int) -> None:
        if minutes not in self.options:
            raise ValueError(f"interval {minutes} min is not one of {self.options}")

    @property
    def minutes(self) -> int:
        return self._minutes

    @property
    def length(self) -> timedelta:
        return timedelta(minutes=self._minutes)

    def set(self, minutes: int) -> None:
        self._check(minutes)
        if int(minutes) == self._minutes:
            return
        self._minutes = int(minutes)
        log.info("Selected interval: %s", interval_label(self._minutes))
        for listener in list(self._listeners):
            listener(self.length)

    def subscribe(self, listener: IntervalListener) -> Callable[[], None]:
        """Register ``listener``; the returned callable unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe
