"""An event pool that watches file descriptors on its own thread."""

from __future__ import annotations

import functools
import logging
import os
import selectors
import threading
import weakref
from abc import ABC, abstractmethod
from contextlib import suppress
from dataclasses import dataclass
from typing import Callable, Optional

from evtoolkit.thread_loop import ThreadLoop

logger = logging.getLogger(__name__)

READ = selectors.EVENT_READ
WRITE = selectors.EVENT_WRITE


class FdListener(ABC):
    """Something with a file descriptor that wants readiness notifications."""

    @abstractmethod
    def fileno(self) -> int:
        """Return the watched file descriptor."""

    @abstractmethod
    def on_fd_read_ready(self) -> None:
        """Called once when the descriptor becomes readable."""

    @abstractmethod
    def on_fd_write_ready(self) -> None:
        """Called once when the descriptor becomes writable."""

    @abstractmethod
    def on_fd_operation_error(self, is_pool_error: bool) -> None:
        """Called when the pool cannot watch the descriptor."""


@dataclass
class _ListenerEntry:
    listener: "weakref.ReferenceType[FdListener]"
    flags: int = 0


class EventPool:
    """Watches descriptors and calls their listeners on one loop thread.

    Events are one-shot: once an event has been reported, a listener has to
    ask for it again. Listeners are held weakly; a listener that has been
    discarded has its descriptor removed and closed at its next event.
    Calls made from other threads are handed over to the loop thread.
    """

    _instance_ref: Optional["weakref.ReferenceType[EventPool]"] = None
    _instance_lock = threading.Lock()

    def __init__(self) -> None:
        self._listeners: dict[int, _ListenerEntry] = {}
        self._closed = False
        self._selector = selectors.DefaultSelector()
        try:
            self._wake_r, self._wake_w = os.pipe()
        except OSError:
            self._selector.close()
            raise
        try:
            os.set_blocking(self._wake_r, False)
            os.set_blocking(self._wake_w, False)
            self._selector.register(self._wake_r, READ)
        except (OSError, ValueError):
            self._selector.close()
            os.close(self._wake_r)
            os.close(self._wake_w)
            raise
        self._loop = ThreadLoop()
        self._loop.start()
        self._loop.post(self._wait_for_events)

    @classmethod
    def get_instance(cls) -> EventPool:
        """Return the shared pool, creating it if there is none open."""
        with cls._instance_lock:
            instance = cls._instance_ref() if cls._instance_ref is not None else None
            if instance is None or instance.closed:
                instance = cls()
                cls._instance_ref = weakref.ref(instance)
            return instance

    def __repr__(self) -> str:
        return f"EventPool(listeners={len(self._listeners)}, closed={self._closed})"

    def __enter__(self) -> EventPool:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        return self._closed

    def _on_loop(self, method: Callable[..., object], *args: object) -> bool:
        """Hand the call to the loop thread when called from elsewhere."""
        if self._loop.on_different_thread():
            self._loop.post(functools.partial(method, *args))
            self._wake()
            return True
        return False

    def _wake(self) -> None:
        try:
            os.write(self._wake_w, b"\x01")
        except BlockingIOError:
            pass
        except OSError:
            logger.error("wake failed")

    def _clear_wake(self) -> None:
        try:
            os.read(self._wake_r, 4096)
        except BlockingIOError:
            pass
        except OSError:
            logger.error("clear wake failed")

    def add_listener(self, listener: FdListener, wait_for_read: bool = False) -> None:
        """Start watching ``listener``'s descriptor, for reading if asked."""
        if self._closed:
            raise RuntimeError("event pool is closed")
        if self._on_loop(self.add_listener, listener, wait_for_read):
            return

        fd = listener.fileno()
        if fd in self._listeners:
            logger.error("add_listener failed, already exists: %s", fd)
            self._notify_error(listener, False)
            return
        try:
            os.fstat(fd)
        except (OSError, ValueError):
            logger.error("add_listener failed, invalid descriptor: %s", fd)
            self._notify_error(listener, True)
            return

        self._listeners[fd] = _ListenerEntry(weakref.ref(listener))
        if wait_for_read:
            self.set_observed_event(fd, READ, True)

    def remove_listener(self, fd: int) -> None:
        """Stop watching ``fd`` and close it."""
        if self._closed:
            with suppress(OSError):
                os.close(fd)
            return
        if self._on_loop(self.remove_listener, fd):
            return

        self._listeners.pop(fd, None)
        if fd in self._selector.get_map():
            with suppress(KeyError, ValueError, OSError):
                self._selector.unregister(fd)
        with suppress(OSError):
            os.close(fd)

    def set_listener_awaiting_read(self, listener: FdListener, waiting_for_read: bool) -> None:
        self.set_observed_event(listener.fileno(), READ, waiting_for_read)

    def set_listener_awaiting_write(self, listener: FdListener, waiting_for_write: bool) -> None:
        self.set_observed_event(listener.fileno(), WRITE, waiting_for_write)

    def set_listener_awaiting_flags(
        self, listener: FdListener, waiting_for_read: bool, waiting_for_write: bool
    ) -> None:
        if self._closed:
            return
        if self._on_loop(
            self.set_listener_awaiting_flags, listener, waiting_for_read, waiting_for_write
        ):
            return
        self.set_listener_awaiting_read(listener, waiting_for_read)
        self.set_listener_awaiting_write(listener, waiting_for_write)

    def set_observed_event(self, fd: int, event_flag: int, enabled: bool) -> None:
        """Turn watching of ``event_flag`` on ``fd`` on or off."""
        if self._closed:
            return
        if self._on_loop(self.set_observed_event, fd, event_flag, enabled):
            return

        entry = self._listeners.get(fd)
        if entry is None:
            logger.warning("set_observed_event, listener not found: %s", fd)
            return

        current = entry.flags
        new_flags = current | event_flag if enabled else current & ~event_flag
        entry.flags = new_flags
        try:
            registered = fd in self._selector.get_map()
            if new_flags:
                if registered:
                    self._selector.modify(fd, new_flags)
                else:
                    self._selector.register(fd, new_flags)
            elif registered:
                self._selector.unregister(fd)
        except (OSError, ValueError, KeyError):
            logger.error("changing watched events failed: %s : %s : %s", fd, current, new_flags)
            self._notify_error_by_fd(fd, True)
            self._listeners.pop(fd, None)
            if fd in self._selector.get_map():
                with suppress(KeyError, ValueError, OSError):
                    self._selector.unregister(fd)

    def _wait_for_events(self) -> None:
        if self._closed:
            return
        try:
            ready = self._selector.select()
        except (OSError, ValueError):
            if not self._closed:
                logger.exception("waiting for events failed")
            return

        for key, mask in ready:
            if key.fd == self._wake_r:
                self._clear_wake()
                continue
            self.set_observed_event(key.fd, mask, False)
            self._handle_fd_event(key.fd, mask)

        if not self._closed:
            self._loop.post(self._wait_for_events)

    def _handle_fd_event(self, fd: int, mask: int) -> None:
        entry = self._listeners.get(fd)
        if entry is None:
            logger.warning("handle_fd_event, listener not found: %s", fd)
            return
        listener = entry.listener()
        if listener is None:
            logger.warning("handle_fd_event, listener already released: %s", fd)
            self.remove_listener(fd)
            return
        if mask & READ:
            self._call(listener.on_fd_read_ready)
        if mask & WRITE:
            self._call(listener.on_fd_write_ready)

    def _notify_error_by_fd(self, fd: int, is_pool_error: bool) -> None:
        entry = self._listeners.get(fd)
        if entry is None:
            logger.warning("notify error, listener not found: %s", fd)
            return
        listener = entry.listener()
        if listener is None:
            logger.warning("notify error, listener already released: %s", fd)
            self.remove_listener(fd)
            return
        self._notify_error(listener, is_pool_error)

    def _notify_error(self, listener: FdListener, is_pool_error: bool) -> None:
        self._call(listener.on_fd_operation_error, is_pool_error)

    @staticmethod
    def _call(callback: Callable[..., object], *args: object) -> None:
        try:
            callback(*args)
        except Exception:
            logger.exception("listener callback failed")

    def close(self) -> None:
        """Stop the loop thread and release the pool's own descriptors."""
        if self._closed:
            return
        self._closed = True
        self._wake()
        self._loop.stop()
        self._listeners.clear()
        self._selector.close()
        for fd in (self._wake_r, self._wake_w):
            with suppress(OSError):
                os.close(fd)