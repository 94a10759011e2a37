"""Binary property codec.

Decodes asset bytes into value trees and encodes them back, driven by the
descriptors a SchemaRegistry resolves.
"""

from asset_templates.codec.codec import KEY_WIDTH, PropertyCodec
from asset_templates.codec.cursor import ByteCursor, ByteSink
from asset_templates.codec.errors import (
    CodecError,
    DecodeError,
    DuplicateKeyError,
    EncodeError,
    InvalidBoolError,
    InvalidDiscriminatorError,
    InvalidStringDataError,
    InvalidStringIndexError,
    NestingTooDeepError,
    PropertyLengthMismatchError,
    ShapeMismatchError,
    TrailingDataError,
    TypedefLengthMismatchError,
    UnexpectedEndError,
    UnknownEnumValueError,
    UnknownKeyNoLengthError,
    UnpooledStringError,
    UnsizedValueError,
    ValueRangeError,
    ValueTooDeepError,
    format_path,
)
from asset_templates.codec.strings import (
    BytesStringPool,
    InterningStringPool,
    ListStringPool,
    PooledString,
    SliceStringPool,
    StringPool,
)
from asset_templates.codec.values import (
    MAX_SHAPE_DEPTH,
    EnumValue,
    IdValue,
    ListValue,
    PropertyListValue,
    PropertyValue,
    RawValue,
    ScalarValue,
    StructValue,
    TypedefValue,
    check_shape,
)

__all__ = [
    # Codec
    "KEY_WIDTH",
    "PropertyCodec",
    "ByteCursor",
    "ByteSink",
    # Errors
    "CodecError",
    "DecodeError",
    "DuplicateKeyError",
    "EncodeError",
    "InvalidBoolError",
    "InvalidDiscriminatorError",
    "InvalidStringDataError",
    "InvalidStringIndexError",
    "NestingTooDeepError",
    "PropertyLengthMismatchError",
    "ShapeMismatchError",
    "TrailingDataError",
    "TypedefLengthMismatchError",
    "UnexpectedEndError",
    "UnknownEnumValueError",
    "UnknownKeyNoLengthError",
    "UnpooledStringError",
    "UnsizedValueError",
    "ValueRangeError",
    "ValueTooDeepError",
    "format_path",
    # Strings
    "BytesStringPool",
    "InterningStringPool",
    "ListStringPool",
    "PooledString",
    "SliceStringPool",
    "StringPool",
    # Values
    "MAX_SHAPE_DEPTH",
    "EnumValue",
    "IdValue",
    "ListValue",
    "PropertyListValue",
    "PropertyValue",
    "RawValue",
    "ScalarValue",
    "StructValue",
    "TypedefValue",
    "check_shape",
]
