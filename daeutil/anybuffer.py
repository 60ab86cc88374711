"""Growable buffer of unsigned integers with separate length and capacity."""

from __future__ import annotations

import sys
from collections.abc import Iterable, Iterator

_SMALL_BUFFER_SIZE = 16
_DEFAULT_BUFFER_SIZE = 64
_MAX_INT = sys.maxsize


class BufferTooLargeError(MemoryError):
    """Raised when the buffer cannot grow to the requested size."""

    def __init__(self) -> None:
        super().__init__("buffer too large")


def _make_storage(n: int) -> list[int]:
    try:
        return [0] * n
    except (MemoryError, OverflowError):
        raise BufferTooLargeError() from None


class Buffer:
    """Variable-sized buffer whose storage is kept across resets."""

    def __init__(self, size: int = 0) -> None:
        if size == 0:
            size = _DEFAULT_BUFFER_SIZE
        self._data = _make_storage(size)
        self._len = 0

    @classmethod
    def from_sequence(cls, data: Iterable[int]) -> "Buffer":
        """A buffer whose contents and capacity are exactly ``data``."""
        buf = cls.__new__(cls)
        buf._data = list(data)
        buf._len = len(buf._data)
        return buf

    def slice(self) -> list[int]:
        """Copy of the live contents."""
        return self._data[: self._len]

    def __len__(self) -> int:
        return self._len

    def __iter__(self) -> Iterator[int]:
        return iter(self._data[: self._len])

    def __getitem__(self, index: int) -> int:
        return self._data[self._index(index)]

    def __setitem__(self, index: int, value: int) -> None:
        if value < 0:
            raise ValueError("buffer holds unsigned values")
        self._data[self._index(index)] = value

    def _index(self, index: int) -> int:
        if index < 0:
            index += self._len
        if not 0 <= index < self._len:
            raise IndexError("buffer index out of range")
        return index

    def cap(self) -> int:
        """Total space allocated for the buffer's data."""
        return len(self._data)

    def truncate(self, n: int) -> None:
        """Keep only the first ``n`` values, retaining storage."""
        if n == 0:
            self.reset()
            return
        if n < 0 or n > self._len:
            raise ValueError("truncation out of range")
        self._len = n

    def reset(self) -> None:
        """Empty the buffer, retaining storage."""
        self._len = 0

    def _try_grow_by_reslice(self, n: int) -> int | None:
        length = self._len
        if n <= self.cap() - length:
            self._len = length + n
            return length
        return None

    def _grow(self, n: int) -> int:
        m = self._len
        i = self._try_grow_by_reslice(n)
        if i is not None:
            return i
        c = self.cap()
        if c == 0 and n <= _SMALL_BUFFER_SIZE:
            self._data = _make_storage(_SMALL_BUFFER_SIZE)
            self._len = n
            return 0
        if n <= c // 2 - m:
            pass  # Room enough already; contents always start at zero.
        elif c > _MAX_INT - c - n:
            raise BufferTooLargeError()
        else:
            storage = _make_storage(2 * c + n)
            storage[:m] = self._data[:m]
            self._data = storage
        self._len = m + n
        return m

    def grow(self, n: int) -> None:
        """Ensure room for ``n`` more values without changing the length."""
        if n < 0:
            raise ValueError("negative count")
        self._len = self._grow(n)

    def extend(self, n: int) -> None:
        """Lengthen the buffer by ``n`` values, growing storage if needed."""
        if self._len + n < 0:
            raise ValueError("extension out of range")
        if self._try_grow_by_reslice(n) is None:
            self._grow(n)