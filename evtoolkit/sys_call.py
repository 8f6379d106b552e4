"""Runs a shell command and reports its output through an event pool."""

from __future__ import annotations

import codecs
import logging
import os
import subprocess
from contextlib import suppress
from typing import Optional, Union

from evtoolkit.epool import EventPool, FdListener

logger = logging.getLogger(__name__)

READ_BUFF_SIZE = 256
SHELL = "/bin/sh"


class SysCallManager:
    """Receives a command's output and its end.

    The default keeps every piece of output in ``received`` and the outcome
    in ``result``; subclasses override the callbacks to act on them instead.
    """

    def __init__(self) -> None:
        self.received: list[str] = []
        self.result: Optional[bool] = None

    def on_sys_read(self, syscall: SysCall, msg: str) -> None:
        """Called with each piece of the command's standard output."""
        self.received.append(msg)

    def on_sys_finished(self, syscall: SysCall, success: bool) -> None:
        """Called once the output ends (success) or reading fails."""
        self.result = success


class SysCall(FdListener):
    """A command run by the shell with piped standard input and output."""

    def __init__(self, manager: SysCallManager, pool: Optional[EventPool] = None) -> None:
        self._manager = manager
        self._pool = pool
        self._command = ""
        self._process: Optional[subprocess.Popen] = None
        self._read_fd: Optional[int] = None
        self._registered = False
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def __repr__(self) -> str:
        return f"SysCall(command={self._command!r}, running={self._process is not None})"

    def __enter__(self) -> SysCall:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    @property
    def command(self) -> str:
        return self._command

    def _event_pool(self) -> EventPool:
        if self._pool is None:
            self._pool = EventPool.get_instance()
        return self._pool

    def run(self, command: str) -> None:
        """Start ``command``; a failure to start is reported as an unsuccessful end."""
        if self._process is not None:
            raise RuntimeError("command already started")
        self._command = command
        try:
            process = subprocess.Popen(
                [SHELL, "-c", command], stdin=subprocess.PIPE, stdout=subprocess.PIPE
            )
        except OSError:
            logger.error("failed to start command: %s", command)
            self._manager.on_sys_finished(self, False)
            return
        try:
            read_fd = os.dup(process.stdout.fileno())
            os.set_blocking(read_fd, False)
        except OSError:
            logger.error("failed to set up output pipe: %s", command)
            process.kill()
            process.wait()
            self._manager.on_sys_finished(self, False)
            return

        self._process = process
        self._read_fd = read_fd
        self._event_pool().add_listener(self, True)
        self._registered = True

    def write(self, msg: Union[str, bytes]) -> None:
        """Write to the command's standard input; raises OSError on a short write."""
        if self._process is None:
            raise RuntimeError("command is not running")
        payload = msg.encode("utf-8") if isinstance(msg, str) else bytes(msg)
        written = os.write(self._process.stdin.fileno(), payload)
        if written != len(payload):
            raise OSError(f"wrote {written} of {len(payload)} bytes")

    def fileno(self) -> int:
        if self._read_fd is None:
            raise ValueError("command is not running")
        return self._read_fd

    def on_fd_read_ready(self) -> None:
        if self._read_fd is None:
            self._manager.on_sys_finished(self, False)
            return
        try:
            chunk = os.read(self._read_fd, READ_BUFF_SIZE)
        except OSError:
            self._manager.on_sys_finished(self, False)
            return

        if chunk:
            text = self._decoder.decode(chunk)
            if text:
                self._manager.on_sys_read(self, text)
            self._event_pool().set_listener_awaiting_read(self, True)
            return

        tail = self._decoder.decode(b"", final=True)
        if tail:
            self._manager.on_sys_read(self, tail)
        self._manager.on_sys_finished(self, True)

    def on_fd_write_ready(self) -> None:
        """Writes are done directly, so stop watching for write readiness."""
        if self._registered and self._read_fd is not None:
            self._event_pool().set_listener_awaiting_write(self, False)

    def on_fd_operation_error(self, is_pool_error: bool) -> None:
        self._manager.on_sys_finished(self, False)

    def close(self) -> None:
        """Stop watching the output, close the pipes and kill the command."""
        process, self._process = self._process, None
        read_fd, self._read_fd = self._read_fd, None
        if read_fd is not None:
            if self._registered:
                self._event_pool().remove_listener(read_fd)
            else:
                with suppress(OSError):
                    os.close(read_fd)
        self._registered = False
        if process is None:
            return
        for stream in (process.stdin, process.stdout):
            with suppress(OSError):
                stream.close()
        if process.poll() is None:
            process.kill()
        process.wait()