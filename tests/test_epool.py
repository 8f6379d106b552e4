import gc
import os
import socket
import threading
import time

import pytest

from evtoolkit.epool import EventPool, FdListener


def _wait_until(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def _fd_closed(fd):
    try:
        os.fstat(fd)
    except OSError:
        return True
    return False


class _Listener(FdListener):
    def __init__(self, fd, fail_on_read=False):
        self.fd = fd
        self.fail_on_read = fail_on_read
        self.reads = 0
        self.writes = 0
        self.errors = []
        self.read_event = threading.Event()
        self.write_event = threading.Event()
        self.error_event = threading.Event()

    def fileno(self):
        return self.fd

    def on_fd_read_ready(self):
        self.reads += 1
        self.read_event.set()
        if self.fail_on_read:
            raise RuntimeError("listener failure")

    def on_fd_write_ready(self):
        self.writes += 1
        self.write_event.set()

    def on_fd_operation_error(self, is_pool_error):
        self.errors.append(is_pool_error)
        self.error_event.set()


@pytest.fixture
def sockets():
    left, right = socket.socketpair()
    yield left, right
    left.close()
    right.close()


@pytest.fixture
def pool():
    event_pool = EventPool()
    yield event_pool
    event_pool.close()


def test_read_ready_is_reported(sockets, pool):
    left, right = sockets
    listener = _Listener(left.fileno())
    pool.add_listener(listener, True)
    right.send(b"ping")
    assert listener.read_event.wait(5)
    assert left.recv(16) == b"ping"


def test_read_event_is_one_shot_until_rearmed(sockets, pool):
    left, right = sockets
    listener = _Listener(left.fileno())
    pool.add_listener(listener, True)
    right.send(b"x")
    assert listener.read_event.wait(5)
    time.sleep(0.2)
    assert listener.reads == 1
    pool.set_listener_awaiting_read(listener, True)
    assert _wait_until(lambda: listener.reads == 2)


def test_disabled_read_is_not_reported(sockets, pool):
    left, right = sockets
    listener = _Listener(left.fileno())
    pool.add_listener(listener, True)
    pool.set_listener_awaiting_read(listener, False)
    right.send(b"x")
    time.sleep(0.2)
    assert listener.reads == 0
    pool.set_listener_awaiting_read(listener, True)
    assert listener.read_event.wait(5)


def test_write_ready_is_reported(sockets, pool):
    left, _right = sockets
    listener = _Listener(left.fileno())
    pool.add_listener(listener)
    pool.set_listener_awaiting_write(listener, True)
    assert listener.write_event.wait(5)
    assert listener.reads == 0


def test_awaiting_flags_reports_both(sockets, pool):
    left, right = sockets
    listener = _Listener(left.fileno())
    pool.add_listener(listener)
    right.send(b"x")
    pool.set_listener_awaiting_flags(listener, True, True)
    assert listener.read_event.wait(5)
    assert listener.write_event.wait(5)


def test_duplicate_listener_reports_error(sockets, pool):
    left, _right = sockets
    listener = _Listener(left.fileno())
    pool.add_listener(listener)
    pool.add_listener(listener)
    assert listener.error_event.wait(5)
    assert listener.errors == [False]


def test_invalid_descriptor_reports_pool_error(pool):
    read_fd, write_fd = os.pipe()
    os.close(read_fd)
    os.close(write_fd)
    listener = _Listener(read_fd)
    pool.add_listener(listener, True)
    assert listener.error_event.wait(5)
    assert listener.errors == [True]


def test_released_listener_is_removed_on_event(pool):
    left, right = socket.socketpair()
    fd = left.detach()
    new_left, new_right = socket.socketpair()
    try:
        listener = _Listener(fd)
        pool.add_listener(listener, True)
        time.sleep(0.1)
        del listener
        gc.collect()
        right.send(b"x")
        assert _wait_until(lambda: _fd_closed(fd))

        # Reuse the same descriptor number: the pool must accept it afresh.
        os.dup2(new_left.fileno(), fd)
        replacement = _Listener(fd)
        pool.add_listener(replacement, True)
        new_right.send(b"y")
        assert replacement.read_event.wait(5)
        assert replacement.errors == []
        assert replacement.reads == 1
        pool.remove_listener(fd)
        assert _wait_until(lambda: _fd_closed(fd))
    finally:
        right.close()
        new_left.close()
        new_right.close()


def test_failing_listener_does_not_stop_pool(pool):
    first_left, first_right = socket.socketpair()
    second_left, second_right = socket.socketpair()
    try:
        failing = _Listener(first_left.fileno(), fail_on_read=True)
        healthy = _Listener(second_left.fileno())
        pool.add_listener(failing, True)
        first_right.send(b"x")
        assert failing.read_event.wait(5)
        pool.add_listener(healthy, True)
        second_right.send(b"y")
        assert healthy.read_event.wait(5)
    finally:
        pool.close()
        for sock in (first_left, first_right, second_left, second_right):
            sock.close()


def test_get_instance_is_shared_until_closed():
    first = EventPool.get_instance()
    second = EventPool.get_instance()
    try:
        assert first is second
        first.close()
        assert first.closed
        third = EventPool.get_instance()
        assert third is not first
        assert not third.closed
    finally:
        EventPool.get_instance().close()


def test_add_listener_after_close_raises(sockets):
    left, _right = sockets
    event_pool = EventPool()
    event_pool.close()
    with pytest.raises(RuntimeError):
        event_pool.add_listener(_Listener(left.fileno()), True)