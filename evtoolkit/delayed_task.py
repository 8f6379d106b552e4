"""Posts a function to a thread loop after a delay, once or repeatedly."""

from __future__ import annotations

import threading
import weakref
from datetime import timedelta
from typing import TYPE_CHECKING, Callable, Union

from evtoolkit.worker_thread import WorkerThread

if TYPE_CHECKING:
    from evtoolkit.thread_loop import ThreadLoop

Delay = Union[float, int, timedelta]


class DelayedTask:
    """Waits on its own thread, then posts a function to a target loop.

    The loop is held weakly: if it has been discarded when the delay ends,
    nothing is posted.
    """

    def __init__(
        self,
        function: Callable[[], object],
        target: ThreadLoop,
        delay: Delay,
        repeat: bool = False,
    ) -> None:
        seconds = delay.total_seconds() if isinstance(delay, timedelta) else float(delay)
        if seconds < 0:
            raise ValueError("delay must not be negative")
        self._function = function
        self._target = weakref.ref(target)
        self._delay = seconds
        self._repeat = repeat
        self._cancelled = threading.Event()
        self._thread = WorkerThread()

    @classmethod
    def create(
        cls,
        function: Callable[[], object],
        target: ThreadLoop,
        delay: Delay,
        repeat: bool = False,
    ) -> DelayedTask:
        """Create a task and start waiting for its first delay."""
        task = cls(function, target, delay, repeat)
        task._thread.run(task._on_thread_started)
        return task

    def __repr__(self) -> str:
        return f"DelayedTask(delay={self._delay}, repeat={self._repeat})"

    @property
    def delay(self) -> float:
        return self._delay

    @property
    def repeat(self) -> bool:
        return self._repeat

    def cancel(self) -> None:
        """Stop the task; a pending post is dropped."""
        self._thread.stop()
        self._cancelled.set()

    def _on_thread_started(self, _thread_id: int) -> None:
        if not self._thread.should_run() or self._cancelled.is_set():
            return
        while True:
            if self._cancelled.wait(self._delay):
                return
            target = self._target()
            if target is not None and not self._cancelled.is_set():
                target.post(self._function)
            del target
            if not (self._repeat and self._thread.should_run()):
                return