"""String pool collaborator interface.

Pooled strings refer to a string table owned by the surrounding archive, either
by index or by an (offset, length) byte slice. The slice layout can also carry
the text inline. The codec never parses the table; it asks a pool object
supplied per call to resolve references (decode) and, for edited text, to
intern new strings (encode).
"""

from dataclasses import dataclass
from typing import Optional, Protocol, runtime_checkable


@runtime_checkable
class StringPool(Protocol):
    """Resolves pooled string indices supplied by the archive layer."""

    def resolve_pooled_string(self, index: int) -> str: ...


@runtime_checkable
class InterningStringPool(StringPool, Protocol):
    """A pool that can also assign indices to new text."""

    def intern_pooled_string(self, text: str) -> int: ...


@runtime_checkable
class SliceStringPool(Protocol):
    """Resolves (offset, length) byte slices of a UTF-8 string table."""

    def resolve_pooled_slice(self, offset: int, length: int) -> str: ...


@dataclass(frozen=True)
class PooledString:
    """Decoded pooled string.

    ``index`` is the pool index, or the byte offset of a pool slice when
    ``length`` is set. It is None when the text was stored inline. ``text`` is
    the resolved text, if a pool was given or the text was inline.
    """

    index: Optional[int]
    text: Optional[str] = None
    length: Optional[int] = None

    @property
    def inline(self) -> bool:
        return self.index is None

    def __str__(self) -> str:
        return self.text if self.text is not None else f"<pooled string #{self.index}>"


class ListStringPool:
    """In-memory pool over a list of strings. Interning appends new text."""

    def __init__(self, strings: Optional[list[str]] = None):
        self.strings: list[str] = list(strings or [])
        self._indices = {text: index for index, text in reversed(list(enumerate(self.strings)))}

    def resolve_pooled_string(self, index: int) -> str:
        if not 0 <= index < len(self.strings):
            raise IndexError(index)
        return self.strings[index]

    def intern_pooled_string(self, text: str) -> int:
        index = self._indices.get(text)
        if index is None:
            index = len(self.strings)
            self.strings.append(text)
            self._indices[text] = index
        return index


class BytesStringPool:
    """Pool over the raw bytes of a string table, addressed by byte slices."""

    def __init__(self, data: bytes):
        self.data = bytes(data)

    def resolve_pooled_slice(self, offset: int, length: int) -> str:
        if offset + length > len(self.data):
            raise IndexError(offset)
        return self.data[offset : offset + length].decode("utf-8")
