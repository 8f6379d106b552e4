"""A restartable worker thread with a cooperative stop flag."""

from __future__ import annotations

import threading
from typing import Callable, Optional


class ThreadAlreadyRunningError(RuntimeError):
    """Raised when a worker thread is started while it is still running."""


class WorkerThread:
    """Runs one target at a time on its own daemon thread.

    The target is called with the thread id given to :meth:`run`. It can
    poll :meth:`should_run` to find out whether :meth:`stop` was requested.
    """

    def __init__(self) -> None:
        self._thread: Optional[threading.Thread] = None
        self._id = 0
        self._lock = threading.Lock()
        self._running = threading.Event()
        self._should_run = threading.Event()

    def __repr__(self) -> str:
        return f"WorkerThread(id={self._id}, running={self.is_running})"

    @property
    def thread_id(self) -> int:
        return self._id

    @property
    def is_running(self) -> bool:
        return self._running.is_set()

    def run(self, target: Callable[[int], object], thread_id: int = 0) -> None:
        """Start ``target(thread_id)`` on a new thread.

        Raises ThreadAlreadyRunningError if a previous target is still running.
        """
        with self._lock:
            if self._running.is_set():
                raise ThreadAlreadyRunningError(f"thread already runs: {thread_id}")
            self._id = thread_id
            self._running.set()
            self._should_run.set()
            self._thread = threading.Thread(
                target=self._main,
                args=(target, thread_id),
                name=f"worker-{thread_id}",
                daemon=True,
            )
            try:
                self._thread.start()
            except RuntimeError:
                self._running.clear()
                self._should_run.clear()
                raise

    def _main(self, target: Callable[[int], object], thread_id: int) -> None:
        try:
            target(thread_id)
        finally:
            self._should_run.clear()
            self._running.clear()

    def on_same_thread(self) -> bool:
        """True when called from the running worker thread itself."""
        thread = self._thread
        if not self._running.is_set() or thread is None:
            return False
        return thread.ident == threading.get_ident()

    def stop(self) -> None:
        """Ask the target to finish; it has to notice via :meth:`should_run`."""
        self._should_run.clear()

    def should_run(self) -> bool:
        return self._should_run.is_set()

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the target to return; True if the thread has finished."""
        thread = self._thread
        if thread is None:
            return True
        if thread.ident != threading.get_ident():
            thread.join(timeout)
        return not thread.is_alive()