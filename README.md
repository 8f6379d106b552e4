# evtoolkit

Small building blocks for event-driven programs on POSIX systems. It has no
dependencies beyond the standard library.

## What is inside

- `evtoolkit.data`: `Data`, a byte buffer with a read offset and a used size.
  It grows when bytes are added with `add`, and `shallow_copy` / `swap` share
  storage between buffers. Offsets and sizes that do not fit raise `DataError`
  (a `ValueError`).
- `evtoolkit.string_utils`: `lowercase`, `uppercase` (ASCII only),
  `trim_whitespace`, `split` (drops empty pieces, optional `max_splits`),
  `replace` (optional `max_replacements`), `to_int` (parses a leading 32-bit
  integer, raises `ValueError`), `parse_url` (returns a `ParsedUrl` with
  `protocol`, `host`, `target` and `port`), `url_encode`, `url_decode` and
  `timestamp_to_string` (local time, default format `%Y-%m-%d %H:%M:%S`).
- `evtoolkit.file_utils`: `file_exists`, `read_file`, `read_text`,
  `save_file`, `delete_file`, `copy_file`, `move_file` (falls back to copy and
  delete) and `create_temp_file_name`.
- `evtoolkit.data_resource`: `DataResource`, a growing blob kept in memory up
  to 4 MiB (`MAX_MEM_CACHE_SIZE`) that moves to a temporary file when it gets
  larger. With `enable_drive_cache=False`, data past that limit is counted but
  not stored. It supports `add_data`, `add_resource`, `read`, `save_to_file`,
  `from_file` and is a context manager; `close` deletes the temporary file.
- `evtoolkit.directory_listing`: `serialize_directory` encodes a directory's
  entries (directories first, each group sorted) as little-endian records of
  name length, name, size, modification time and a directory flag;
  `deserialize_directory` reads them back as `FileInfo` records, and
  `path_to_file_info` describes a list of paths.
- `evtoolkit.tape_cutter`: `TapeCutter`, an abstract base that cuts a byte
  stream into pieces. Subclasses implement `find_cut_header`,
  `find_cut_footer` and `add_data_to_current_cut`. If no header is found in
  8 KiB, `add_data` resets and raises `DataError`.
- `evtoolkit.worker_thread`: `WorkerThread`, a restartable daemon thread with
  a cooperative stop flag (`stop`, `should_run`); starting it twice raises
  `ThreadAlreadyRunningError`.
- `evtoolkit.thread_loop`: `ThreadLoop` runs posted callables in order on its
  own thread; `post_delayed` returns a `DelayedTask`.
- `evtoolkit.delayed_task`: `DelayedTask` posts a function to a loop after a
  delay (seconds or `timedelta`), once or repeatedly, until `cancel`.
- `evtoolkit.async_task`: `AsyncTask.create` runs a function once on its own
  thread; `wait` blocks until it has ended.
- `evtoolkit.collector`: `Collector` gathers items from many threads;
  `collect` returns them oldest first, `close` refuses further items.
- `evtoolkit.epool`: `EventPool` watches file descriptors with the standard
  `selectors` module on a loop thread and calls `FdListener` objects.
  Events are one-shot and listeners are held weakly. `EventPool.get_instance`
  returns a shared pool.
- `evtoolkit.sys_call`: `SysCall` runs a command with `/bin/sh -c` through
  pipes and reports its standard output to a `SysCallManager`. The default
  manager keeps output in `received` and the outcome in `result`.
- `evtoolkit.terminal`: `Terminal` runs a program, optionally followed by one
  argument string, on a pseudo-terminal and reports its output to a
  `TerminalListener`. It supports `write`, `resize` and `enable_read`.

## Installing

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Examples

Posting work to a loop thread:

```python
from evtoolkit.thread_loop import ThreadLoop

loop = ThreadLoop()
loop.start()
loop.post(lambda: print("runs on the loop thread"))
task = loop.post_delayed(lambda: print("every half second"), 0.5, repeat=True)
# later
task.cancel()
loop.stop()
```

Working with buffers:

```python
from evtoolkit.data import Data

buf = Data(b"hello ")
buf.add(Data(b"world"))
buf.add_offset(6)
assert buf.to_string() == "world"
```

Running a command; callbacks arrive on the event pool's thread:

```python
import threading

from evtoolkit.sys_call import SysCall, SysCallManager

class Printer(SysCallManager):
    def __init__(self):
        super().__init__()
        self.done = threading.Event()

    def on_sys_read(self, syscall, msg):
        print(msg, end="")

    def on_sys_finished(self, syscall, success):
        print("done:", success)
        self.done.set()

manager = Printer()
with SysCall(manager) as call:
    call.run("echo hello")
    manager.done.wait(5)
```

## What it does not do

The package offers building blocks only. It has no networking layer (no
servers, clients, proxies or connection monitoring) and no command-line
program. `Terminal` and `SysCall` need a POSIX system with `/bin/sh` and
pseudo-terminal support.