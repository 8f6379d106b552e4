"""Splits a byte stream into pieces framed by a header and an optional footer."""

from __future__ import annotations

from abc import ABC, abstractmethod

from evtoolkit.data import Data, DataError

MAX_HEADER_LENGTH = 8 * 1024


class TapeCutter(ABC):
    """Base for stream framers.

    Subclasses find a header announcing the length of the next piece,
    receive the piece's bytes, and handle whatever follows a finished piece.
    """

    def __init__(self) -> None:
        self._unfinished_header = Data()
        self._expected_cut_size = 0
        self._current_cut_size = 0
        self._header_found = False

    @property
    def expected_cut_size(self) -> int:
        return self._expected_cut_size

    @property
    def current_cut_size(self) -> int:
        return self._current_cut_size

    @abstractmethod
    def find_cut_header(self, data: Data) -> int | None:
        """Return the length of the next piece, moving ``data``'s offset past
        the header, or None if no complete header is there yet."""

    @abstractmethod
    def find_cut_footer(self, data: Data) -> None:
        """Called when a piece is complete; may consume a footer from ``data``."""

    @abstractmethod
    def add_data_to_current_cut(self, data: Data) -> int:
        """Take bytes of the current piece and return its total size so far."""

    def reset(self) -> None:
        self._unfinished_header = Data()
        self._expected_cut_size = 0
        self._current_cut_size = 0
        self._header_found = False

    def _on_end_found(self, data: Data) -> None:
        self.reset()
        self.find_cut_footer(data)

    def add_data(self, data: Data) -> None:
        """Feed bytes from the stream.

        Raises DataError, after resetting, when no header is found within
        ``MAX_HEADER_LENGTH`` bytes.
        """
        while True:
            if not self._header_found:
                self._unfinished_header.add(data)
                expected = self.find_cut_header(self._unfinished_header)
                if expected is None:
                    if self._unfinished_header.current_size > MAX_HEADER_LENGTH:
                        self.reset()
                        raise DataError("cut header exceeds maximum length")
                    data.swap(self._unfinished_header)
                    return
                self._header_found = True
                self._expected_cut_size = expected
                data.swap(self._unfinished_header)

            if not self._expected_cut_size:
                self._on_end_found(data)
                if not data.current_size:
                    return
                continue

            repeat = False
            if self._current_cut_size + data.current_size > self._expected_cut_size:
                repeat = True
                available = self._expected_cut_size - self._current_cut_size
            else:
                available = data.current_size

            piece = data.shallow_copy()
            piece.set_current_size(available)
            self._current_cut_size = self.add_data_to_current_cut(piece)

            if self._current_cut_size == self._expected_cut_size:
                data.add_offset(available)
                self._on_end_found(data)
                repeat = True

            if not repeat or not data.current_size:
                return