"""
Cooperative periodic tasks driven by the host loop.

Nothing here sleeps or starts threads: the host calls ``run_pending(now)``
(in the Streamlit page, once per autorefresh rerun) and every task whose
cadence has elapsed runs on the caller's thread. Each task is registered
separately and can be cancelled on its own.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, List

log = logging.getLogger(__name__)

TaskCallback = Callable[[datetime], None]


@dataclass
class PeriodicTask:
    name: str
    cadence: timedelta
    callback: TaskCallback
    next_due: datetime
    cancelled: bool = False


class TaskHandle:
    def __init__(self, loop: "TaskLoop", task: PeriodicTask) -> None:
        self._loop = loop
        self._task = task

    @property
    def name(self) -> str:
        return self._task.name

    @property
    def cancelled(self) -> bool:
        return self._task.cancelled

    def cancel(self) -> None:
        self._loop._remove(self._task)


class TaskLoop:
    def __init__(self) -> None:
        self._tasks: Dict[str, PeriodicTask] = {}
        self._closed = False

    def register(self, name: str, cadence: timedelta, callback: TaskCallback, now: datetime) -> TaskHandle:
        if self._closed:
            raise RuntimeError("task loop is closed")
        if cadence <= timedelta(0):
            raise ValueError(f"cadence must be positive, got {cadence}")
        if name in self._tasks:
            raise ValueError(f"task {name!r} already registered")
        task = PeriodicTask(name=name, cadence=cadence, callback=callback, next_due=now + cadence)
        self._tasks[name] = task
        return TaskHandle(self, task)

    def _remove(self, task: PeriodicTask) -> None:
        task.cancelled = True
        if self._tasks.get(task.name) is task:
            del self._tasks[task.name]

    @property
    def task_names(self) -> List[str]:
        return list(self._tasks)

    def run_pending(self, now: datetime) -> List[str]:
        """Run every due task once; returns the names that ran."""
        ran = []
        for task in list(self._tasks.values()):
            if task.cancelled or now < task.next_due:
                continue
            task.callback(now)
            ran.append(task.name)
            task.next_due += task.cadence
            # After a stall, resync instead of firing a backlog of catch-up runs.
            if task.next_due <= now:
                task.next_due = now + task.cadence
        return ran

    def close(self) -> None:
        for task in list(self._tasks.values()):
            self._remove(task)
        self._closed = True
        log.debug("Task loop closed")

    @property
    def closed(self) -> bool:
        return self._closed

    def __enter__(self) -> "TaskLoop":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
