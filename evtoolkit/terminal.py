"""A shell command run on a pseudo-terminal, read through an event pool."""

from __future__ import annotations

import fcntl
import logging
import os
import struct
import subprocess
import termios
import weakref
from abc import ABC, abstractmethod
from contextlib import suppress
from typing import Optional, Union

from evtoolkit.async_task import AsyncTask
from evtoolkit.data import Data
from evtoolkit.epool import EventPool, FdListener
from evtoolkit.string_utils import split

logger = logging.getLogger(__name__)

READ_BUFF_SIZE = 1024
_MAX_WINDOW_DIMENSION = 0xFFFF

# Control characters of a classic pseudo-terminal, applied when the master
# side reports no local flags at all.
_CONTROL_CHARS = {
    "VINTR": 3,
    "VQUIT": 28,
    "VERASE": 127,
    "VKILL": 21,
    "VEOF": 4,
    "VTIME": 0,
    "VMIN": 1,
    "VSWTC": 0,
    "VSTART": 17,
    "VSTOP": 19,
    "VSUSP": 26,
    "VEOL": 0,
    "VREPRINT": 18,
    "VDISCARD": 15,
    "VWERASE": 23,
    "VLNEXT": 22,
}


class TerminalListener(ABC):
    """Receives what a terminal prints and learns when it ends."""

    @abstractmethod
    def on_terminal_read(self, terminal: Terminal, output: Data) -> None:
        """Called with each piece of output read from the terminal."""

    @abstractmethod
    def on_terminal_end(self, terminal: Terminal) -> None:
        """Called when the output ends or the command exits."""


def _make_controlling_terminal() -> None:
    """Run in the child after it has started a new session."""
    if hasattr(termios, "TIOCSCTTY"):
        fcntl.ioctl(0, termios.TIOCSCTTY, 0)


def _wait_for_child_end(
    process: subprocess.Popen, owner: "weakref.ReferenceType[Terminal]"
) -> None:
    process.wait()
    terminal = owner()
    if terminal is not None:
        terminal._on_child_process_ended(process)


def _command_arguments(shell_cmd: str) -> list[str]:
    if not shell_cmd:
        raise ValueError("command must not be empty")
    parts = split(shell_cmd, " ", 2)
    if len(parts) > 2:
        raise ValueError(
            f"command takes at most one argument string: {shell_cmd!r}"
        )
    return parts


class Terminal(FdListener):
    """Runs a command with a pseudo-terminal as its standard streams.

    The command is given as a program, optionally followed by a single
    argument after the first space. Output is delivered to the listener
    from the event pool's thread.
    """

    def __init__(
        self,
        terminal_id: int,
        listener: TerminalListener,
        pool: Optional[EventPool] = None,
    ) -> None:
        self._id = terminal_id
        self._listener = listener
        self._pool = pool
        self._master_fd: Optional[int] = None
        self._process: Optional[subprocess.Popen] = None
        self._registered = False
        self._read_enabled = True
        self._waiter: Optional[AsyncTask] = None

    def __repr__(self) -> str:
        return f"Terminal(id={self._id}, running={self._process is not None})"

    def __enter__(self) -> Terminal:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    @property
    def id(self) -> int:
        return self._id

    @property
    def pid(self) -> Optional[int]:
        """Process id of the running command, or None."""
        process = self._process
        return process.pid if process is not None else None

    def _event_pool(self) -> EventPool:
        if self._pool is None:
            self._pool = EventPool.get_instance()
        return self._pool

    def start(self, shell_cmd: str) -> None:
        """Start ``shell_cmd`` on a new pseudo-terminal.

        Raises ValueError for an empty command or one with more than one
        argument, and OSError when the command cannot be started.
        """
        if self._master_fd is not None:
            raise RuntimeError("terminal already started")
        args = _command_arguments(shell_cmd)

        master_fd, slave_fd = os.openpty()
        try:
            process = subprocess.Popen(
                args,
                stdin=slave_fd,
                stdout=slave_fd,
                stderr=slave_fd,
                start_new_session=True,
                preexec_fn=_make_controlling_terminal,
            )
        except BaseException:
            os.close(master_fd)
            os.close(slave_fd)
            raise
        os.close(slave_fd)

        self._master_fd = master_fd
        self._process = process
        self._set_term_attributes()
        os.set_blocking(master_fd, False)
        self._event_pool().add_listener(self, True)
        self._registered = True
        self._waiter = AsyncTask.create(
            lambda: _wait_for_child_end(process, weakref.ref(self))
        )

    def _set_term_attributes(self) -> None:
        try:
            attrs = termios.tcgetattr(self._master_fd)
        except termios.error:
            return
        if attrs[3] != 0:
            return

        attrs[0] = termios.IXON | termios.ICRNL
        attrs[1] = termios.OPOST | termios.ONLCR
        attrs[2] = 0o277
        lflag = (
            termios.ISIG
            | termios.ICANON
            | termios.ECHO
            | termios.ECHOE
            | termios.ECHOK
            | termios.IEXTEN
        )
        for optional in ("ECHOKE", "ECHOCTL"):
            lflag |= getattr(termios, optional, 0)
        attrs[3] = lflag

        control_chars = list(attrs[6])
        for name, value in _CONTROL_CHARS.items():
            index = getattr(termios, name, None)
            if index is None or index >= len(control_chars):
                continue
            current = control_chars[index]
            control_chars[index] = bytes([value]) if isinstance(current, bytes) else value
        attrs[6] = control_chars

        with suppress(termios.error):
            termios.tcsetattr(self._master_fd, termios.TCSANOW, attrs)

    def _on_child_process_ended(self, process: subprocess.Popen) -> None:
        if self._process is not process:
            return
        self._process = None
        self._listener.on_terminal_end(self)

    def write(self, data: Union[str, bytes]) -> None:
        """Send input to the command; raises OSError on a short write."""
        if self._master_fd is None:
            raise RuntimeError("terminal is not started")
        payload = data.encode("utf-8") if isinstance(data, str) else bytes(data)
        written = os.write(self._master_fd, payload)
        if written != len(payload):
            raise OSError(f"wrote {written} of {len(payload)} bytes")

    def resize(self, width: int, height: int) -> None:
        """Set the window size in columns and rows."""
        if self._master_fd is None:
            raise RuntimeError("terminal is not started")
        for name, value in (("width", width), ("height", height)):
            if not 0 <= value <= _MAX_WINDOW_DIMENSION:
                raise ValueError(f"{name} out of range: {value}")
        win_size = struct.pack("HHHH", height, width, 0, 0)
        fcntl.ioctl(self._master_fd, termios.TIOCSWINSZ, win_size)

    def enable_read(self, enable: bool) -> None:
        """Pause or resume delivering output to the listener."""
        self._read_enabled = enable
        self._event_pool().set_listener_awaiting_read(self, enable)

    def fileno(self) -> int:
        if self._master_fd is None:
            raise ValueError("terminal is not started")
        return self._master_fd

    def on_fd_read_ready(self) -> None:
        master_fd = self._master_fd
        if master_fd is None:
            return
        try:
            chunk = os.read(master_fd, READ_BUFF_SIZE)
        except OSError:
            chunk = b""
        if not chunk:
            self._listener.on_terminal_end(self)
            return

        self._listener.on_terminal_read(self, Data(chunk))
        if self._read_enabled:
            self._event_pool().set_listener_awaiting_read(self, True)

    def on_fd_write_ready(self) -> None:
        """Writes are done directly, so stop watching for write readiness."""
        if self._registered and self._master_fd is not None:
            self._event_pool().set_listener_awaiting_write(self, False)

    def on_fd_operation_error(self, is_pool_error: bool) -> None:
        """Pool errors are not acted on; the command's exit ends the terminal."""

    def close(self) -> None:
        """Stop watching the terminal, close it and kill the command."""
        process, self._process = self._process, None
        master_fd, self._master_fd = self._master_fd, None
        if master_fd is not None:
            if self._registered:
                self._event_pool().remove_listener(master_fd)
            else:
                with suppress(OSError):
                    os.close(master_fd)
        self._registered = False
        if process is None:
            return
        if process.poll() is None:
            process.kill()
        process.wait()