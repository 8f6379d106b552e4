import fcntl
import struct
import termios
import threading
import time

import pytest

from evtoolkit.data import Data
from evtoolkit.epool import EventPool
from evtoolkit.terminal import READ_BUFF_SIZE, Terminal, TerminalListener


class Recorder(TerminalListener):
    def __init__(self):
        self._cond = threading.Condition()
        self.chunks = []
        self.terminals = []
        self.ended = threading.Event()

    def on_terminal_read(self, terminal, output):
        with self._cond:
            self.terminals.append(terminal)
            self.chunks.append(output)
            self._cond.notify_all()

    def on_terminal_end(self, terminal):
        self.terminals.append(terminal)
        self.ended.set()

    @property
    def output(self):
        with self._cond:
            return "".join(chunk.to_string() for chunk in self.chunks)

    def clear(self):
        with self._cond:
            self.chunks.clear()

    def wait_for(self, text, timeout=5.0):
        deadline = time.monotonic() + timeout
        with self._cond:
            while True:
                joined = "".join(chunk.to_string() for chunk in self.chunks)
                if text in joined:
                    return True
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                self._cond.wait(remaining)


@pytest.fixture
def pool():
    event_pool = EventPool()
    yield event_pool
    event_pool.close()


@pytest.fixture
def make_terminal(pool):
    created = []

    def factory(terminal_id=1, listener=None):
        listener = listener or Recorder()
        terminal = Terminal(terminal_id, listener, pool)
        created.append(terminal)
        return terminal, listener

    yield factory
    for terminal in created:
        terminal.close()


def test_id_is_kept(make_terminal):
    terminal, _ = make_terminal(terminal_id=42)
    assert terminal.id == 42


def test_fileno_before_start_raises(make_terminal):
    terminal, _ = make_terminal()
    with pytest.raises(ValueError):
        terminal.fileno()


def test_write_before_start_raises(make_terminal):
    terminal, _ = make_terminal()
    with pytest.raises(RuntimeError):
        terminal.write("abc")


def test_resize_before_start_raises(make_terminal):
    terminal, _ = make_terminal()
    with pytest.raises(RuntimeError):
        terminal.resize(80, 24)


@pytest.mark.parametrize("command", ["", "echo one two"])
def test_invalid_command_raises(make_terminal, command):
    terminal, _ = make_terminal()
    with pytest.raises(ValueError):
        terminal.start(command)
    with pytest.raises(ValueError):
        terminal.fileno()


def test_missing_program_raises(make_terminal):
    terminal, _ = make_terminal()
    with pytest.raises(FileNotFoundError):
        terminal.start("no-such-program-for-terminal-test")
    with pytest.raises(ValueError):
        terminal.fileno()


def test_command_output_and_end(make_terminal):
    terminal, listener = make_terminal()
    terminal.start("echo hello")
    assert listener.wait_for("hello")
    assert listener.ended.wait(5)
    assert all(isinstance(chunk, Data) for chunk in listener.chunks)
    assert all(len(chunk) <= READ_BUFF_SIZE for chunk in listener.chunks)
    assert all(item is terminal for item in listener.terminals)


def test_output_has_terminal_line_endings(make_terminal):
    terminal, listener = make_terminal()
    terminal.start("echo hello")
    assert listener.wait_for("hello\r\n")


def test_write_is_echoed_back(make_terminal):
    terminal, listener = make_terminal()
    terminal.start("cat")
    terminal.write("abc\n")
    assert listener.wait_for("abc")


def test_write_bytes(make_terminal):
    terminal, listener = make_terminal()
    terminal.start("cat")
    terminal.write(b"xyz\n")
    assert listener.wait_for("xyz")


def test_starting_twice_raises(make_terminal):
    terminal, _ = make_terminal()
    terminal.start("cat")
    with pytest.raises(RuntimeError):
        terminal.start("cat")


def test_resize_sets_window_size(make_terminal):
    terminal, _ = make_terminal()
    terminal.start("cat")
    terminal.resize(80, 24)
    raw = fcntl.ioctl(terminal.fileno(), termios.TIOCGWINSZ, b"\0" * 8)
    rows, cols, _, _ = struct.unpack("HHHH", raw)
    assert (rows, cols) == (24, 80)


@pytest.mark.parametrize("width, height", [(-1, 24), (80, 70000)])
def test_resize_out_of_range_raises(make_terminal, width, height):
    terminal, _ = make_terminal()
    terminal.start("cat")
    with pytest.raises(ValueError):
        terminal.resize(width, height)


def test_enable_read_pauses_and_resumes(make_terminal):
    terminal, listener = make_terminal()
    terminal.start("cat")
    time.sleep(0.2)
    terminal.enable_read(False)
    time.sleep(0.2)
    listener.clear()
    terminal.write("paused\n")
    assert not listener.wait_for("paused", timeout=0.5)
    terminal.enable_read(True)
    assert listener.wait_for("paused")


def test_close_kills_command_and_releases_fd(make_terminal):
    terminal, _ = make_terminal()
    terminal.start("cat")
    assert terminal.pid is not None
    terminal.close()
    assert terminal.pid is None
    with pytest.raises(ValueError):
        terminal.fileno()
    with pytest.raises(RuntimeError):
        terminal.write("abc")


def test_context_manager_closes(pool):
    listener = Recorder()
    with Terminal(7, listener, pool) as terminal:
        terminal.start("cat")
        terminal.write("ctx\n")
        assert listener.wait_for("ctx")
    with pytest.raises(ValueError):
        terminal.fileno()