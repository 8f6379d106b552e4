"""Binary listing of a directory's entries with sizes and modification times."""

from __future__ import annotations

import os
import stat
import struct
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Union

from evtoolkit.data import Data

_NAME_LENGTH = struct.Struct("<H")
_TAIL = struct.Struct("<Qq?")


@dataclass
class FileInfo:
    """One directory entry; ``last_modified`` is in seconds since the epoch."""

    name: str
    size: int = 0
    last_modified: int = 0
    is_directory: bool = False


def _directory_last_modified(path: Path) -> int:
    """Newest of the directory's change time and its regular files' mtimes."""
    try:
        newest = int(path.stat().st_ctime)
    except OSError:
        newest = 0
    try:
        entries = list(os.scandir(path))
    except OSError:
        return newest
    for entry in entries:
        try:
            if not entry.is_file():
                continue
            newest = max(newest, int(entry.stat().st_mtime))
        except OSError:
            continue
    return newest


def path_to_file_info(paths: Iterable[Union[str, "os.PathLike[str]"]]) -> list[FileInfo]:
    """Describe each path; paths that cannot be inspected are left out."""
    result: list[FileInfo] = []
    for raw in paths:
        path = Path(raw)
        try:
            info = path.stat()
        except FileNotFoundError:
            info = None
        except OSError:
            continue

        if info is not None and stat.S_ISDIR(info.st_mode):
            result.append(FileInfo(path.name, 0, _directory_last_modified(path), True))
        elif info is not None and stat.S_ISREG(info.st_mode):
            result.append(FileInfo(path.name, info.st_size, int(info.st_mtime), False))
        else:
            result.append(FileInfo(path.name))
    return result


def serialize_directory(dir_path: Union[str, "os.PathLike[str]"]) -> Data:
    """Encode a directory's entries, directories first, each group sorted by name."""
    directories: list[Path] = []
    files: list[Path] = []
    with os.scandir(dir_path) as entries:
        for entry in entries:
            try:
                is_dir = entry.is_dir()
            except OSError:
                continue
            (directories if is_dir else files).append(Path(entry.path))

    infos = path_to_file_info(sorted(directories)) + path_to_file_info(sorted(files))
    payload = bytearray()
    for info in infos:
        name = os.fsencode(info.name)
        payload += _NAME_LENGTH.pack(len(name))
        payload += name
        payload += _TAIL.pack(info.size, info.last_modified, info.is_directory)
    return Data(bytes(payload))


def deserialize_directory(data: Data | bytes) -> list[FileInfo]:
    """Decode entries written by :func:`serialize_directory`.

    A Data argument is consumed: its offset advances past what was read.
    Raises DataError if the data ends in the middle of an entry.
    """
    if not isinstance(data, Data):
        data = Data(data)
    result: list[FileInfo] = []
    while data.current_size:
        (name_length,) = _NAME_LENGTH.unpack(data.copy_to(0, _NAME_LENGTH.size))
        data.add_offset(_NAME_LENGTH.size)
        name = os.fsdecode(data.copy_to(0, name_length))
        data.add_offset(name_length)
        size, last_modified, is_directory = _TAIL.unpack(data.copy_to(0, _TAIL.size))
        data.add_offset(_TAIL.size)
        result.append(FileInfo(name, size, last_modified, is_directory))
    return result