"""Hashed property keys and type ids.

Property keys, hashed enum values and type ids are 32-bit hashes written in
templates as ``0x`` followed by exactly eight hex digits. They are always
rendered back in the canonical ``0xDEADBEEF`` form.
"""

import re

HEX_KEY_PATTERN = re.compile(r"^0x[0-9a-f]{8}$", re.IGNORECASE)

MAX_KEY = 0xFFFFFFFF


def is_hex_key(text: str) -> bool:
    """True if text is a well-formed 8-digit hashed key."""
    return bool(HEX_KEY_PATTERN.match(text))


def parse_hex_key(value: object) -> int:
    """Parse a hashed key from its ``0x`` form.

    Raises:
        ValueError: If value is not a string matching the 8-hex-digit pattern.
    """
    if not isinstance(value, str):
        raise ValueError(f"expected a hashed key string like 0xDEADBEEF, got {value!r}")
    if not is_hex_key(value):
        raise ValueError(f"'{value}' is not 0x followed by exactly 8 hex digits")
    return int(value[2:], 16)


def format_hex_key(value: int) -> str:
    """Render a 32-bit key as ``0x`` + 8 uppercase hex digits."""
    return f"0x{value:08X}"


def coerce_key(key: int | str) -> int:
    """Accept either an integer key or its ``0x`` form (used by value accessors)."""
    if isinstance(key, bool):
        raise TypeError("property keys are 32-bit integers, not booleans")
    if isinstance(key, int):
        if not 0 <= key <= MAX_KEY:
            raise ValueError(f"property key {key} does not fit in 32 bits")
        return key
    return parse_hex_key(key)
