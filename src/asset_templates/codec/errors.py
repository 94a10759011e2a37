"""
Exceptions raised while decoding or encoding one asset.

Every error is fatal to the asset being processed and carries where it
happened: the byte offset (decode) and the schema path of the value.
"""

from collections.abc import Sequence


def format_path(path: Sequence[str]) -> str:
    """Join path segments: names are dotted, indices and keys are bracketed."""
    text = ""
    for segment in path:
        if segment.startswith("[") or not text:
            text += segment
        else:
            text += f".{segment}"
    return text or "<root>"


class CodecError(Exception):
    """Base exception for all decode/encode errors."""

    pass


class DecodeError(CodecError):
    """Raised when a byte stream does not match its descriptor."""

    def __init__(self, message: str, offset: int, path: Sequence[str] = ()):
        self.message = message
        self.offset = offset
        self.path = tuple(path)
        super().__init__(f"{message} at offset {offset:#x} ({format_path(self.path)})")


class UnexpectedEndError(DecodeError):
    """Raised when the stream ends before a value is complete.

    Attributes:
        element_index: Index of the innermost struct element being decoded, if any
    """

    def __init__(
        self,
        offset: int,
        needed: int,
        available: int,
        path: Sequence[str] = (),
        element_index: int | None = None,
    ):
        self.needed = needed
        self.available = available
        self.element_index = element_index
        message = f"Unexpected end of data: needed {needed} bytes, {available} available"
        if element_index is not None:
            message += f" in element {element_index}"
        super().__init__(message, offset, path)

    def with_element_index(self, element_index: int) -> "UnexpectedEndError":
        return UnexpectedEndError(
            self.offset, self.needed, self.available, self.path, element_index
        )


class InvalidBoolError(DecodeError):
    """Raised when a bool byte is neither 0 nor 1."""

    def __init__(self, value: int, offset: int, path: Sequence[str] = ()):
        self.value = value
        super().__init__(f"Invalid bool value {value:#04x}", offset, path)


class UnknownEnumValueError(DecodeError):
    """Raised when an enum token matches no declared value."""

    def __init__(self, enum_name: str, value: int, offset: int, path: Sequence[str] = ()):
        self.enum_name = enum_name
        self.value = value
        super().__init__(f"Unknown value {value:#010x} for enum {enum_name}", offset, path)


class UnknownKeyNoLengthError(DecodeError):
    """Raised for an undeclared property key when entries carry no length."""

    def __init__(self, key: int, offset: int, path: Sequence[str] = ()):
        self.key = key
        super().__init__(
            f"Undeclared property key {key:#010X} and no entry length to skip it", offset, path
        )


class InvalidDiscriminatorError(DecodeError):
    """Raised when a typedef token selects no supported type."""

    def __init__(self, token: int, offset: int, path: Sequence[str] = (), reason: str = ""):
        self.token = token
        detail = f": {reason}" if reason else ""
        super().__init__(f"Invalid typedef discriminator {token:#x}{detail}", offset, path)


class TrailingDataError(DecodeError):
    """Raised when bytes remain after the top-level value."""

    def __init__(self, remaining: int, offset: int, path: Sequence[str] = ()):
        self.remaining = remaining
        super().__init__(f"{remaining} trailing bytes after value", offset, path)


class PropertyLengthMismatchError(DecodeError):
    """Raised when a declared property does not fill its length-prefixed entry."""

    def __init__(self, key: int, declared: int, consumed: int, offset: int, path: Sequence[str] = ()):
        self.key = key
        self.declared = declared
        self.consumed = consumed
        super().__init__(
            f"Property {key:#010X} declares {declared} bytes but its value uses {consumed}",
            offset,
            path,
        )


class TypedefLengthMismatchError(DecodeError):
    """Raised when a typedef value does not fill its length-prefixed payload."""

    def __init__(
        self, token: int, declared: int, consumed: int, offset: int, path: Sequence[str] = ()
    ):
        self.token = token
        self.declared = declared
        self.consumed = consumed
        super().__init__(
            f"Typedef {token:#x} declares {declared} payload bytes but its value uses {consumed}",
            offset,
            path,
        )


class DuplicateKeyError(DecodeError):
    """Raised when a property list repeats a key."""

    def __init__(self, key: int, offset: int, path: Sequence[str] = ()):
        self.key = key
        super().__init__(f"Duplicate property key {key:#010X}", offset, path)


class UnsizedValueError(DecodeError):
    """Raised when a value of unknown type appears where no length frames it."""

    def __init__(self, offset: int, path: Sequence[str] = ()):
        super().__init__("Value of unknown type has no length to decode it by", offset, path)


class InvalidStringIndexError(DecodeError):
    """Raised when the string pool cannot resolve an index."""

    def __init__(self, index: int, offset: int, path: Sequence[str] = ()):
        self.index = index
        super().__init__(f"String pool has no entry {index}", offset, path)


class InvalidStringDataError(DecodeError):
    """Raised when pooled string bytes are not valid UTF-8."""

    def __init__(self, offset: int, path: Sequence[str] = ()):
        super().__init__("Pooled string is not valid UTF-8", offset, path)


class NestingTooDeepError(DecodeError):
    """Raised when values nest deeper than the configured limit."""

    def __init__(self, max_depth: int, offset: int, path: Sequence[str] = ()):
        self.max_depth = max_depth
        super().__init__(f"Values nest deeper than {max_depth} levels", offset, path)


class EncodeError(CodecError):
    """Raised when a value tree cannot be encoded against its descriptor."""

    def __init__(self, message: str, path: Sequence[str] = ()):
        self.message = message
        self.path = tuple(path)
        super().__init__(f"{message} ({format_path(self.path)})")


class ShapeMismatchError(EncodeError):
    """Raised when a value's shape does not match its descriptor."""

    pass


class ValueRangeError(EncodeError):
    """Raised when a value does not fit its fixed wire width."""

    pass


class UnpooledStringError(EncodeError):
    """Raised when edited text has no pool index and no pool can intern it."""

    pass


class ValueTooDeepError(EncodeError):
    """Raised when a value tree nests deeper than the configured limit."""

    def __init__(self, max_depth: int, path: Sequence[str] = ()):
        self.max_depth = max_depth
        super().__init__(f"Value nests deeper than {max_depth} levels", path)
