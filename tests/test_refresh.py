from __future__ import annotations

from datetime import timedelta

from telemetry_dashboard.errors import ErrorKind
from telemetry_dashboard.live_follow import LiveFollowController
from telemetry_dashboard.refresh import RefreshScheduler
from telemetry_dashboard.time_window import minutes

from conftest import FakeClock, FakeSource, InlineExecutor, ManualExecutor

URL = "http://bench/api/pressure"


def _scheduler(clock: FakeClock, source: FakeSource, executor) -> RefreshScheduler:
    c = LiveFollowController(minutes(15), clock=clock)
    return RefreshScheduler(c, source, URL, "pressure", executor=executor)


def test_refresh_ticks_before_fetching_when_following(clock: FakeClock, source: FakeSource) -> None:
    r = _scheduler(clock, source, InlineExecutor())
    now = clock.advance(seconds=5)
    r.refresh(now)
    assert source.calls == [(URL, now - minutes(15), now, "pressure")]
    assert r.collect(now)
    assert r.display.window == r.controller.window
    assert r.display.error is None
    assert len(r.display.samples) == 1


def test_refresh_keeps_paused_window(clock: FakeClock, source: FakeSource) -> None:
    r = _scheduler(clock, source, InlineExecutor())
    r.controller.step_backward()
    window = r.controller.window
    r.refresh(clock.advance(seconds=5))
    assert r.controller.window == window
    assert source.calls[-1][1:3] == (window.start, window.end)


def test_success_replaces_sample_set(clock: FakeClock, source: FakeSource) -> None:
    r = _scheduler(clock, source, InlineExecutor())
    r.refresh(clock.advance(seconds=5))
    r.collect()
    r.refresh(clock.advance(seconds=5))
    r.collect()
    assert [s.values["p1"] for s in r.display.samples] == [2.0]


def test_failure_keeps_previous_samples_and_flags_error(clock: FakeClock, source: FakeSource) -> None:
    r = _scheduler(clock, source, InlineExecutor())
    r.refresh(clock.advance(seconds=5))
    r.collect()
    good = r.display.samples

    source.fail = True
    r.refresh(clock.advance(seconds=5))
    r.collect()
    assert r.display.samples == good
    assert r.display.error is ErrorKind.DATA_UNAVAILABLE

    source.fail = False
    r.refresh(clock.advance(seconds=5))
    r.collect()
    assert r.display.error is None


def test_late_response_for_old_window_is_discarded(clock: FakeClock, source: FakeSource) -> None:
    ex = ManualExecutor()
    r = _scheduler(clock, source, ex)
    r.request()
    ex.start(0)
    # User pages back while the first fetch is still running.
    r.controller.step_backward()
    r.request()
    assert r.pending == 2

    ex.run(0)
    assert not r.collect()
    assert r.stale_discarded == 1
    assert r.display.samples == ()

    ex.run(0)
    assert r.collect()
    assert r.display.window == r.controller.window
    assert r.pending == 0


def test_slow_failures_still_raise_error_flag(clock: FakeClock, source: FakeSource) -> None:
    ex = ManualExecutor()
    r = _scheduler(clock, source, ex)
    r.request()
    ex.run_all()
    r.collect()
    source.fail = True
    for _ in range(6):
        # The window moves on before the previous fetch gives up.
        r.refresh(clock.advance(seconds=5))
        while len(ex.jobs) > 1:
            ex.run(0)
        ex.start(0)
        r.collect()
        assert r.pending <= 2
    assert r.display.error is ErrorKind.DATA_UNAVAILABLE
    assert len(r.display.samples) == 1


def test_failure_older_than_shown_answer_is_ignored(clock: FakeClock, source: FakeSource) -> None:
    ex = ManualExecutor()
    r = _scheduler(clock, source, ex)
    r.request()
    ex.start(0)
    r.controller.step_backward()
    r.request()
    ex.run(1)
    assert r.collect()
    source.fail = True
    ex.run(0)
    assert not r.collect()
    assert r.display.error is None
    assert r.display.window == r.controller.window


def test_queued_fetches_for_old_windows_are_cancelled(clock: FakeClock, source: FakeSource) -> None:
    ex = ManualExecutor()
    r = _scheduler(clock, source, ex)
    first = r.request()
    for _ in range(5):
        r.controller.step_backward()
        r.request()
    assert first.cancelled()
    assert r.pending == 1
    ex.run_all()
    assert len(source.calls) == 1
    assert r.collect()
    assert r.display.window == r.controller.window


def test_navigation_does_not_wait_for_fetch(clock: FakeClock, source: FakeSource) -> None:
    ex = ManualExecutor()
    r = _scheduler(clock, source, ex)
    r.refresh(clock.advance(seconds=5))
    r.controller.step_backward()
    r.controller.step_backward()
    assert r.controller.offset == minutes(30)
    assert r.collect() is False


def test_close_cancels_in_flight(clock: FakeClock, source: FakeSource) -> None:
    ex = ManualExecutor()
    r = _scheduler(clock, source, ex)
    fut = r.request()
    r.close()
    assert fut.cancelled()
    assert r.pending == 0


def test_default_executor_runs_fetch_off_thread(clock: FakeClock, source: FakeSource) -> None:
    c = LiveFollowController(minutes(15), clock=clock)
    r = RefreshScheduler(c, source, URL, "pressure")
    try:
        r.request().result(timeout=5)
        assert r.collect()
        assert r.display.window == c.window
    finally:
        r.close()


def test_repeated_refresh_reuses_outstanding_fetch(clock: FakeClock, source: FakeSource) -> None:
    ex = ManualExecutor()
    r = _scheduler(clock, source, ex)
    ex.run_all()
    r.controller.step_backward()
    a = r.refresh(clock.advance(seconds=5))
    b = r.refresh(clock.advance(seconds=5))
    assert a is b
    assert len(ex.jobs) == 1
    ex.run_all()
    assert r.collect()
    assert r.stale_discarded == 0
    assert r.display.window == r.controller.window
    assert r.controller.offset == timedelta(minutes=15)
