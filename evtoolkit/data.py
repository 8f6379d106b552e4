"""A growable byte buffer with a read offset and a used size."""

from __future__ import annotations

from typing import Union

BytesLike = Union[bytes, bytearray, memoryview]


class DataError(ValueError):
    """Raised when an offset or size does not fit the buffer."""


class Data:
    """Byte buffer tracking allocated capacity, used size and a read offset.

    Shallow copies share the underlying storage until one of them has to
    grow, which mirrors how the buffer is passed between readers.
    """

    __slots__ = ("_buffer", "_used", "_offset")

    def __init__(self, content: BytesLike | str | None = None, capacity: int | None = None) -> None:
        if capacity is not None and capacity < 0:
            raise ValueError("capacity must not be negative")
        if isinstance(content, str):
            content = content.encode("utf-8")
        payload = bytes(content) if content is not None else b""
        size = max(len(payload), capacity or 0)
        self._buffer = bytearray(size)
        self._buffer[: len(payload)] = payload
        self._used = len(payload)
        self._offset = 0

    def __repr__(self) -> str:
        return (
            f"Data(capacity={self.capacity}, total_size={self._used}, "
            f"offset={self._offset})"
        )

    def __len__(self) -> int:
        return self.current_size

    def __bytes__(self) -> bytes:
        return self.current_bytes()

    @property
    def capacity(self) -> int:
        """Number of bytes allocated."""
        return len(self._buffer)

    @property
    def total_size(self) -> int:
        """Number of used bytes, counted from the start of the buffer."""
        return self._used

    @property
    def current_size(self) -> int:
        """Number of used bytes after the offset."""
        return self._used - self._offset

    @property
    def offset(self) -> int:
        return self._offset

    def swap(self, other: Data) -> None:
        """Take over the state of ``other``, sharing its storage."""
        self._buffer = other._buffer
        self._used = other._used
        self._offset = other._offset

    def shallow_copy(self) -> Data:
        """Return a new Data sharing this one's storage and positions."""
        copy = Data()
        copy.swap(self)
        return copy

    def add(self, other: Data | BytesLike | None) -> None:
        """Append the current bytes of ``other``, growing the buffer if needed."""
        if other is None:
            return
        payload = other.current_bytes() if isinstance(other, Data) else bytes(other)
        new_size = self._used + len(payload)
        if not new_size:
            return
        if new_size > len(self._buffer):
            grown = bytearray(new_size)
            grown[: self._used] = self._buffer[: self._used]
            self._buffer = grown
        self._buffer[self._used:new_size] = payload
        self._used = new_size

    def add_offset(self, offset: int) -> None:
        """Move the read offset forward by ``offset`` bytes."""
        self.set_offset(self._offset + offset)

    def set_offset(self, offset: int) -> None:
        if offset < 0 or offset > self._used:
            raise DataError("trying to set offset larger than data size")
        self._offset = offset

    def set_current_size(self, size: int) -> None:
        """Set how many bytes after the offset are in use."""
        if size < 0 or size + self._offset > len(self._buffer):
            raise DataError("trying to set size larger than allocated size")
        self._used = size + self._offset

    def writable_view(self) -> memoryview:
        """Return a writable view of the storage from the offset to capacity."""
        return memoryview(self._buffer)[self._offset:]

    def current_bytes(self) -> bytes:
        """Return the bytes between the offset and the used size."""
        return bytes(self._buffer[self._offset:self._used])

    def copy_to(self, offset: int, size: int) -> bytes:
        """Return ``size`` bytes starting ``offset`` bytes past the read offset."""
        if offset < 0 or size < 0 or self.current_size < size + offset:
            raise DataError("trying to copy more data than currently available")
        start = self._offset + offset
        return bytes(self._buffer[start:start + size])

    def to_string(self) -> str:
        """Return the current bytes decoded as UTF-8."""
        return self.current_bytes().decode("utf-8", errors="replace")