"""Small file-system helpers."""

from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path
from typing import Union

from evtoolkit.data import Data

PathLike = Union[str, "os.PathLike[str]"]

TEMP_FILE_PREFIX = "dbp_common_"


def file_exists(path: PathLike) -> bool:
    return os.path.exists(path)


def read_file(path: PathLike) -> bytes:
    """Return the whole content of a file."""
    return Path(path).read_bytes()


def read_text(path: PathLike) -> str:
    """Return the whole content of a file decoded as UTF-8."""
    return read_file(path).decode("utf-8", errors="replace")


def save_file(path: PathLike, data: Data | bytes | bytearray | memoryview) -> None:
    """Write bytes, or the current bytes of a Data, replacing the file."""
    payload = data.current_bytes() if isinstance(data, Data) else bytes(data)
    Path(path).write_bytes(payload)


def delete_file(path: PathLike) -> bool:
    """Remove a file or empty directory; return False if it did not exist."""
    target = Path(path)
    try:
        if target.is_dir() and not target.is_symlink():
            target.rmdir()
        else:
            target.unlink()
    except FileNotFoundError:
        return False
    return True


def copy_file(src: PathLike, dst: PathLike) -> None:
    """Copy a file, overwriting the destination."""
    shutil.copyfile(src, dst)


def move_file(src: PathLike, dst: PathLike) -> None:
    """Rename a file, falling back to copy and delete across file systems."""
    try:
        os.replace(src, dst)
    except OSError:
        copy_file(src, dst)
        os.remove(src)


def create_temp_file_name(directory: PathLike | None = None) -> str:
    """Create an empty, uniquely named file and return its path."""
    fd, name = tempfile.mkstemp(prefix=TEMP_FILE_PREFIX, dir=directory)
    os.close(fd)
    return name