"""Runs a function once on its own thread."""

from __future__ import annotations

import threading
from typing import Callable, Optional

from evtoolkit.worker_thread import WorkerThread


class AsyncTask:
    """A function run on a separate thread; cancelling before it starts skips it."""

    def __init__(self, function: Callable[[], object]) -> None:
        self._function = function
        self._thread = WorkerThread()
        self._cancelled = threading.Event()
        self._done = threading.Event()

    @classmethod
    def create(cls, function: Callable[[], object]) -> AsyncTask:
        """Start ``function`` on a new thread and return its task."""
        task = cls(function)
        task._thread.run(task._on_thread_started)
        return task

    def __repr__(self) -> str:
        return f"AsyncTask(done={self._done.is_set()})"

    def cancel(self) -> None:
        """Skip the function if it has not started yet."""
        self._thread.stop()
        self._cancelled.set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Wait for the task to end; True if it has."""
        return self._done.wait(timeout)

    def _on_thread_started(self, _thread_id: int) -> None:
        try:
            if not self._thread.should_run() or self._cancelled.is_set():
                return
            self._function()
        finally:
            self._done.set()