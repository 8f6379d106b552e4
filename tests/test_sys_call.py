import threading
import time
from unittest import mock

import pytest

from evtoolkit.epool import EventPool
from evtoolkit.sys_call import SysCall, SysCallManager


def _wait_until(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class _Manager(SysCallManager):
    def __init__(self):
        self.lock = threading.Lock()
        self.reads = []
        self.finished = []
        self.finished_event = threading.Event()

    def on_sys_read(self, syscall, msg):
        with self.lock:
            self.reads.append(msg)

    def on_sys_finished(self, syscall, success):
        self.finished.append(success)
        self.finished_event.set()

    def output(self):
        with self.lock:
            return "".join(self.reads)


@pytest.fixture
def pool():
    event_pool = EventPool()
    yield event_pool
    event_pool.close()


def test_echo_output_and_success(pool):
    manager = _Manager()
    call = SysCall(manager, pool)
    try:
        call.run("echo hello")
        assert manager.finished_event.wait(5)
        assert manager.output() == "hello\n"
        assert manager.finished == [True]
    finally:
        call.close()


def test_command_is_kept(pool):
    manager = _Manager()
    call = SysCall(manager, pool)
    try:
        call.run("true")
        assert call.command == "true"
        assert manager.finished_event.wait(5)
    finally:
        call.close()


def test_exit_code_does_not_change_success(pool):
    manager = _Manager()
    call = SysCall(manager, pool)
    try:
        call.run("exit 3")
        assert manager.finished_event.wait(5)
        assert manager.finished == [True]
        assert manager.output() == ""
    finally:
        call.close()


def test_long_output_arrives_in_pieces(pool):
    manager = _Manager()
    call = SysCall(manager, pool)
    try:
        call.run("head -c 1000 /dev/zero | tr '\\0' x")
        assert manager.finished_event.wait(5)
        assert manager.output() == "x" * 1000
        assert len(manager.reads) > 1
    finally:
        call.close()


def test_write_reaches_command(pool):
    manager = _Manager()
    call = SysCall(manager, pool)
    try:
        call.run("cat")
        assert call.command == "cat"
        call.write("abc\n")
        _wait_until(lambda: manager.output() == "abc\n")
        assert manager.output() == "abc\n"
        call.write(b"def\n")
        _wait_until(lambda: manager.output() == "abc\ndef\n")
        assert manager.output() == "abc\ndef\n"
        assert manager.finished == []
    finally:
        call.close()


def test_write_before_run_raises():
    call = SysCall(_Manager())
    with pytest.raises(RuntimeError):
        call.write("data")


def test_fileno_before_run_raises():
    call = SysCall(_Manager())
    with pytest.raises(ValueError):
        call.fileno()


def test_run_twice_raises(pool):
    manager = _Manager()
    call = SysCall(manager, pool)
    try:
        call.run("cat")
        with pytest.raises(RuntimeError):
            call.run("cat")
    finally:
        call.close()


def test_operation_error_reports_failure():
    manager = _Manager()
    call = SysCall(manager)
    call.on_fd_operation_error(True)
    assert manager.finished == [False]


def test_start_failure_reports_failure(pool):
    manager = _Manager()
    call = SysCall(manager, pool)
    with mock.patch("subprocess.Popen", side_effect=OSError("no shell")):
        call.run("echo hello")
    assert manager.finished == [False]
    with pytest.raises(RuntimeError):
        call.write("data")


def test_close_stops_running_command(pool):
    manager = _Manager()
    call = SysCall(manager, pool)
    call.run("cat")
    fd = call.fileno()
    call.close()
    with pytest.raises(ValueError):
        call.fileno()
    with pytest.raises(RuntimeError):
        call.write("data")
    assert fd >= 0