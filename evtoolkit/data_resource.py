"""A byte resource kept in memory that moves to a temporary file when it grows large."""

from __future__ import annotations

import os
import shutil
from typing import BinaryIO

from evtoolkit.data import Data
from evtoolkit.file_utils import (
    PathLike,
    create_temp_file_name,
    delete_file,
    file_exists,
    move_file,
    save_file,
)

MAX_MEM_CACHE_SIZE = 4 * 1024 * 1024
_COPY_CHUNK_SIZE = 64 * 1024


class DataResource:
    """Collects received bytes, in memory first and on disk past a size limit.

    Once the in-memory cache would exceed ``MAX_MEM_CACHE_SIZE`` the content
    is moved to a temporary file, unless drive caching is disabled, in which
    case further oversized data is counted but not stored.
    """

    def __init__(self, data: Data | None = None, enable_drive_cache: bool = True) -> None:
        self._enable_drive_cache = enable_drive_cache
        self._mem_cache = data if data is not None else Data()
        self._loaded_size = self._mem_cache.current_size
        self._expected_size = self._mem_cache.current_size
        self._last_received: Data | None = None
        self._drive_file: BinaryIO | None = None
        self._cache_file_name = ""

    @classmethod
    def from_file(cls, file_name: PathLike) -> DataResource:
        """Open an existing file as a complete, drive-backed resource."""
        stream = open(file_name, "rb")
        resource = cls()
        resource._drive_file = stream
        size = stream.seek(0, os.SEEK_END)
        stream.seek(0)
        resource._set_completed_size(size)
        return resource

    def __enter__(self) -> DataResource:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def __repr__(self) -> str:
        return (
            f"DataResource(size={self._loaded_size}, expected_size={self._expected_size}, "
            f"drive={self.uses_drive_cache})"
        )

    @property
    def size(self) -> int:
        """Number of bytes received so far."""
        return self._loaded_size

    @property
    def expected_size(self) -> int:
        return self._expected_size

    @expected_size.setter
    def expected_size(self, value: int) -> None:
        self._expected_size = value

    @property
    def uses_drive_cache(self) -> bool:
        return self._drive_file is not None and not self._drive_file.closed

    @property
    def mem_cache(self) -> Data:
        return self._mem_cache

    @property
    def last_received_data(self) -> Data | None:
        return self._last_received

    @property
    def drive_cache_file_name(self) -> str:
        return self._cache_file_name

    def _set_completed_size(self, size: int) -> None:
        self._loaded_size = self._expected_size = size

    def is_completed(self) -> bool:
        return self._loaded_size == self._expected_size

    def _start_drive_cache(self) -> None:
        self._cache_file_name = create_temp_file_name()

    def _write_to_drive(self, data: Data) -> None:
        if not self.uses_drive_cache:
            self._drive_file = open(self._cache_file_name, "w+b")
        self._drive_file.seek(0, os.SEEK_END)
        self._drive_file.write(data.current_bytes())

    def add_data(self, data: Data) -> None:
        """Append received bytes, switching to the drive cache when needed."""
        self._last_received = data.shallow_copy()
        self._loaded_size += data.current_size

        if self.uses_drive_cache:
            self._write_to_drive(data)
        elif self._mem_cache.current_size + data.current_size > MAX_MEM_CACHE_SIZE:
            if not self._enable_drive_cache:
                return
            self._start_drive_cache()
            if self._mem_cache.current_size:
                self._write_to_drive(self._mem_cache)
                self._mem_cache = Data()
            self._write_to_drive(data)
        else:
            self._mem_cache.add(data)

    def add_resource(self, resource: DataResource) -> None:
        """Append the whole content of another resource."""
        if not resource.uses_drive_cache:
            self.add_data(resource.mem_cache)
            return

        if not self.uses_drive_cache:
            self._start_drive_cache()
            self._write_to_drive(self._mem_cache)
            self._mem_cache = Data()

        self._loaded_size += resource.size
        source = resource._drive_file
        source.seek(0)
        self._drive_file.seek(0, os.SEEK_END)
        while chunk := source.read(_COPY_CHUNK_SIZE):
            self._drive_file.write(chunk)

    def save_to_file(self, path: PathLike) -> None:
        """Store the content at ``path``; a drive cache file is moved there."""
        if not self.uses_drive_cache:
            save_file(path, self._mem_cache)
            return
        self._drive_file.flush()
        if self._cache_file_name:
            move_file(self._cache_file_name, path)
        else:
            self._drive_file.seek(0)
            with open(path, "wb") as target:
                shutil.copyfileobj(self._drive_file, target, _COPY_CHUNK_SIZE)

    def read(self, size: int, offset: int = 0) -> bytes:
        """Return up to ``size`` bytes starting at ``offset``."""
        if self.uses_drive_cache:
            self._drive_file.seek(offset)
            return self._drive_file.read(size)
        return self._mem_cache.copy_to(offset, size)

    def close(self) -> None:
        """Close the drive cache and delete its temporary file."""
        if self._drive_file is not None:
            self._drive_file.close()
        if self._cache_file_name and file_exists(self._cache_file_name):
            delete_file(self._cache_file_name)