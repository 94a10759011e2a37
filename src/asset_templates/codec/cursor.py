"""Byte cursor and sink the codec reads from and writes to.

The cursor walks a finite, already-decompressed region. Offsets reported in
errors are absolute within the buffer the outermost cursor was created over,
including for sub-cursors carved out for length-prefixed entries.
"""

import struct
from collections.abc import Sequence

from asset_templates.codec.errors import UnexpectedEndError

_UNSIGNED = {1: "B", 2: "H", 4: "I", 8: "Q"}


def unsigned_format(byte_order: str, width: int) -> str:
    return f"{byte_order}{_UNSIGNED[width]}"


class ByteCursor:
    """Read position over a bounded byte region."""

    def __init__(
        self,
        data: bytes | bytearray | memoryview,
        offset: int = 0,
        end: int | None = None,
    ):
        view = memoryview(data)
        self._view = view if view.format == "B" else view.cast("B")
        self._end = len(self._view) if end is None else end
        if not 0 <= offset <= self._end <= len(self._view):
            raise ValueError(
                f"Invalid cursor bounds {offset}..{self._end} for {len(self._view)} bytes"
            )
        self._pos = offset

    @property
    def offset(self) -> int:
        return self._pos

    @property
    def remaining(self) -> int:
        return self._end - self._pos

    def at_end(self) -> bool:
        return self._pos >= self._end

    def read(self, size: int, path: Sequence[str] = ()) -> bytes:
        """Consume exactly ``size`` bytes.

        Raises:
            UnexpectedEndError: If fewer than ``size`` bytes remain.
        """
        if size > self.remaining:
            raise UnexpectedEndError(self._pos, size, self.remaining, path)
        start = self._pos
        self._pos += size
        return bytes(self._view[start : self._pos])

    def read_unsigned(self, width: int, byte_order: str, path: Sequence[str] = ()) -> int:
        (value,) = struct.unpack(unsigned_format(byte_order, width), self.read(width, path))
        return value

    def slice(self, size: int, path: Sequence[str] = ()) -> "ByteCursor":
        """Carve the next ``size`` bytes into a sub-cursor and skip past them."""
        if size > self.remaining:
            raise UnexpectedEndError(self._pos, size, self.remaining, path)
        sub = ByteCursor(self._view, self._pos, self._pos + size)
        self._pos += size
        return sub


class ByteSink:
    """Append-only output buffer."""

    def __init__(self, buffer: bytearray | None = None):
        self._buffer = buffer if buffer is not None else bytearray()

    @property
    def position(self) -> int:
        return len(self._buffer)

    def write(self, data: bytes | bytearray) -> None:
        self._buffer += data

    def getvalue(self) -> bytes:
        return bytes(self._buffer)
