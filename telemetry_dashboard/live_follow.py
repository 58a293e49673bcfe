"""
Live-follow state machine for a chart's visible time window.

The chart is either FOLLOWING (the window end tracks "now") or PAUSED (the
window is frozen at an explicit position in the past). Navigation is offset
arithmetic: one step always moves the window by one full interval.

``ViewState`` is immutable and every transition below is a pure function
returning a new state. ``LiveFollowController`` only keeps the latest state
and supplies "now" from its clock, so the transitions can be tested without
timers.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Optional

from telemetry_dashboard.time_window import TimeWindow, from_offset, shift_by, utc_now

log = logging.getLogger(__name__)

ZERO = timedelta(0)


class FollowState(str, Enum):
    FOLLOWING = "following"
    PAUSED = "paused"


@dataclass(frozen=True)
class ViewState:
    window: TimeWindow
    interval: timedelta
    offset: timedelta = ZERO
    mode: FollowState = FollowState.FOLLOWING
    last_interaction: Optional[datetime] = None
    # Bumped whenever the window changes; in-flight fetches compare against it.
    generation: int = 0

    @property
    def is_following(self) -> bool:
        return self.mode is FollowState.FOLLOWING


def initial_state(now: datetime, interval: timedelta) -> ViewState:
    return ViewState(window=from_offset(now, ZERO, interval), interval=interval)


def _touch(state: ViewState, now: datetime) -> Optional[datetime]:
    # Interaction clock never goes backwards.
    if state.last_interaction is None or now > state.last_interaction:
        return now
    return state.last_interaction


def _with_window(state: ViewState, window: TimeWindow, **changes) -> ViewState:
    generation = state.generation if window == state.window else state.generation + 1
    return replace(state, window=window, generation=generation, **changes)


def step_backward(state: ViewState, now: datetime) -> ViewState:
    return _with_window(
        state,
        shift_by(state.window, -state.interval),
        offset=state.offset + state.interval,
        mode=FollowState.PAUSED,
        last_interaction=_touch(state, now),
    )


def step_forward(state: ViewState, now: datetime) -> ViewState:
    # Reaching offset 0 by stepping does not resume following.
    return _with_window(
        state,
        shift_by(state.window, state.interval),
        offset=max(ZERO, state.offset - state.interval),
        mode=FollowState.PAUSED,
        last_interaction=_touch(state, now),
    )


def return_to_live(state: ViewState, now: datetime) -> ViewState:
    return _with_window(
        state,
        from_offset(now, ZERO, state.interval),
        offset=ZERO,
        mode=FollowState.FOLLOWING,
        last_interaction=_touch(state, now),
    )


def tick(state: ViewState, now: datetime) -> ViewState:
    if not state.is_following:
        return state
    return _with_window(state, from_offset(now, state.offset, state.interval))


def change_interval(state: ViewState, interval: timedelta, now: datetime) -> ViewState:
    """Re-centre the window for a new interval length, keeping offset and mode."""
    return _with_window(state, from_offset(now, state.offset, interval), interval=interval)


class LiveFollowController:
    """Holds the current ViewState and applies transitions with the clock's "now"."""

    def __init__(
        self,
        interval: timedelta,
        clock: Callable[[], datetime] = utc_now,
        on_change: Optional[Callable[[ViewState], None]] = None,
    ) -> None:
        self._clock = clock
        self._on_change = on_change
        self._state = initial_state(clock(), interval)

    @property
    def state(self) -> ViewState:
        return self._state

    @property
    def window(self) -> TimeWindow:
        return self._state.window

    @property
    def offset(self) -> timedelta:
        return self._state.offset

    @property
    def is_following(self) -> bool:
        return self._state.is_following

    @property
    def last_interaction(self) -> Optional[datetime]:
        return self._state.last_interaction

    def _apply(self, new_state: ViewState) -> ViewState:
        changed = new_state != self._state
        self._state = new_state
        if changed and self._on_change is not None:
            self._on_change(new_state)
        return new_state

    def step_backward(self) -> ViewState:
        return self._apply(step_backward(self._state, self._clock()))

    def step_forward(self) -> ViewState:
        return self._apply(step_forward(self._state, self._clock()))

    def return_to_live(self) -> ViewState:
        return self._apply(return_to_live(self._state, self._clock()))

    def tick(self, now: Optional[datetime] = None) -> ViewState:
        return self._apply(tick(self._state, now if now is not None else self._clock()))

    def on_interval_length_changed(self, interval: timedelta) -> ViewState:
        log.debug("Interval changed to %s (offset %s, %s)", interval, self._state.offset, self._state.mode.value)
        return self._apply(change_interval(self._state, interval, self._clock()))
