"""A thread that runs posted callables one after another."""

from __future__ import annotations

import logging
import queue
import threading
from typing import Callable

from evtoolkit.delayed_task import Delay, DelayedTask
from evtoolkit.worker_thread import WorkerThread

logger = logging.getLogger(__name__)

_STOP = object()


class ThreadLoop:
    """Executes posted requests in order on a dedicated thread.

    Requests may be posted before :meth:`start`; they run once it starts.
    """

    def __init__(self) -> None:
        self._thread = WorkerThread()
        self._queue: queue.SimpleQueue[object] = queue.SimpleQueue()

    def __repr__(self) -> str:
        return f"ThreadLoop(running={self._thread.is_running})"

    @property
    def is_running(self) -> bool:
        return self._thread.is_running

    def start(self) -> None:
        """Start running posted requests."""
        self._thread.run(self._on_thread_started)

    def post(self, request: Callable[[], object]) -> None:
        """Queue ``request`` to run on the loop thread."""
        if not callable(request):
            raise TypeError("request must be callable")
        self._queue.put(request)

    def post_delayed(
        self, request: Callable[[], object], delay: Delay, repeat: bool = False
    ) -> DelayedTask:
        """Post ``request`` after ``delay`` seconds, repeatedly if asked."""
        return DelayedTask.create(request, self, delay, repeat)

    def on_different_thread(self) -> bool:
        return not self._thread.on_same_thread()

    def stop(self) -> None:
        """End the loop after the requests already queued.

        Waits for the loop thread unless called from it.
        """
        self._queue.put(_STOP)
        if not self._thread.on_same_thread():
            self._thread.join()
        self._thread.stop()

    def _on_thread_started(self, _thread_id: int) -> None:
        while self._thread.should_run():
            request = self._queue.get()
            if request is _STOP:
                return
            try:
                request()
            except Exception:
                logger.exception("posted request failed")