"""Property codec: schema-driven decode and encode.

Given a descriptor and a byte cursor, ``decode`` produces a value tree; given a
descriptor and a value tree, ``encode`` produces bytes. For any bytes that
decode without error, encoding the unmodified result reproduces them exactly.

Wire layout by descriptor kind (widths and byte order come from CodecConfig):

  scalar         fixed width; bool is one byte restricted to 0/1;
                 vector is 3 x f32, color is 4 x f32
  pooled_string  string pool index; or (offset, length) into the pool, where
                 an all-ones offset means length bytes of inline UTF-8 follow
  id             id_width opaque bytes
  list           count, then each element
  struct         each element in declared order, no presence flags
  property_list  count, then (u32 key, [length], value) per entry
  enum           value token
  typedef        discriminator token, [payload length], then the selected
                 candidate's value

A codec holds only the registry and its config. Both are immutable, so one
codec can serve concurrent calls on independent assets.
"""

import struct
from collections.abc import Sequence
from typing import Optional, TypeAlias

from loguru import logger

from asset_templates.codec.cursor import ByteCursor, ByteSink, unsigned_format
from asset_templates.codec.errors import (
    DuplicateKeyError,
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
)
from asset_templates.codec.strings import (
    InterningStringPool,
    PooledString,
    SliceStringPool,
    StringPool,
)
from asset_templates.codec.values import (
    EnumValue,
    IdValue,
    ListValue,
    PropertyListValue,
    PropertyValue,
    RawValue,
    ScalarValue,
    StructValue,
    TypedefValue,
)
from asset_templates.config import CodecConfig
from asset_templates.schema.keys import format_hex_key
from asset_templates.schema.registry import SchemaRegistry
from asset_templates.schema.resolver import (
    EnumDescriptor,
    IdDescriptor,
    ListDescriptor,
    PropertyListDescriptor,
    RawDescriptor,
    ScalarDescriptor,
    StructDescriptor,
    TypeDescriptor,
    TypedefDescriptor,
    TypeKind,
    dereference,
)

# Property keys are 32-bit hashes regardless of target format
KEY_WIDTH = 4

_SCALAR_FORMATS = {
    TypeKind.U8: "B",
    TypeKind.U16: "H",
    TypeKind.U32: "I",
    TypeKind.U64: "Q",
    TypeKind.I8: "b",
    TypeKind.I16: "h",
    TypeKind.I32: "i",
    TypeKind.I64: "q",
    TypeKind.F32: "f",
    TypeKind.F64: "d",
    TypeKind.VECTOR: "3f",
    TypeKind.COLOR: "4f",
}

_TUPLE_KINDS = frozenset({TypeKind.VECTOR, TypeKind.COLOR})

# Descriptors whose values contain other values
_NESTED = (ListDescriptor, StructDescriptor, PropertyListDescriptor, TypedefDescriptor)

SchemaPath: TypeAlias = tuple[str, ...]


def _segment(descriptor: PropertyListDescriptor, key: int) -> str:
    """Path segment for a property entry: its declared name, else its bracketed key."""
    declared = descriptor.properties.get(key)
    if declared is not None and declared.name:
        return declared.name
    return f"[{format_hex_key(key)}]"


def _all_ones(width: int) -> int:
    return (1 << (8 * width)) - 1


class PropertyCodec:
    """Decodes and encodes value trees for one registry and wire configuration."""

    def __init__(self, registry: SchemaRegistry, config: CodecConfig):
        self.registry = registry
        self.config = config
        byte_order = config.byte_order
        self._scalars = {
            kind: struct.Struct(f"{byte_order}{fmt}") for kind, fmt in _SCALAR_FORMATS.items()
        }
        self._key = struct.Struct(unsigned_format(byte_order, KEY_WIDTH))

    # --- Public API ---

    def decode(
        self,
        descriptor: TypeDescriptor | str,
        data: bytes | bytearray | memoryview | ByteCursor,
        strings: Optional[StringPool] = None,
    ) -> PropertyValue:
        """Decode one value.

        Args:
            descriptor: A descriptor, or the name of a schema in the registry.
            data: The bytes of exactly one value, or a cursor positioned at one.
                With a cursor, decoding stops after the value and the cursor is
                left there; with bytes, leftover data is an error.
            strings: Pool resolving pooled string references for this asset.

        Raises:
            DecodeError: Any decode failure, with offset and schema path.
            UnknownSchemaError: If a schema name is not in the registry.
        """
        descriptor = self._lookup(descriptor)
        path = self._root_path(descriptor)
        if isinstance(data, ByteCursor):
            return self._decode(descriptor, data, path, strings)

        cursor = ByteCursor(data)
        logger.debug(f"Decoding {cursor.remaining} bytes as {path[0]}")
        value = self._decode(descriptor, cursor, path, strings)
        if not cursor.at_end():
            raise TrailingDataError(cursor.remaining, cursor.offset, path)
        return value

    def encode(
        self,
        descriptor: TypeDescriptor | str,
        value: PropertyValue,
        sink: Optional[ByteSink] = None,
        strings: Optional[StringPool] = None,
    ) -> bytes:
        """Encode one value.

        Args:
            descriptor: A descriptor, or the name of a schema in the registry.
            value: The value tree to encode.
            sink: Optional sink to append to; a fresh one is used otherwise.
            strings: Pool used to intern pooled strings whose text was edited.

        Returns:
            The bytes written for this value.

        Raises:
            EncodeError: ShapeMismatchError, ValueRangeError or UnpooledStringError.
            UnknownSchemaError: If a schema name is not in the registry.
        """
        descriptor = self._lookup(descriptor)
        path = self._root_path(descriptor)
        out = sink if sink is not None else ByteSink()
        start = out.position
        self._encode(descriptor, value, out, path, strings)
        logger.debug(f"Encoded {path[0]} to {out.position - start} bytes")
        return out.getvalue()[start:]

    def _lookup(self, descriptor: TypeDescriptor | str) -> TypeDescriptor:
        if isinstance(descriptor, str):
            return self.registry.resolve_descriptor(descriptor)
        return descriptor

    @staticmethod
    def _root_path(descriptor: TypeDescriptor) -> SchemaPath:
        target = dereference(descriptor)
        name = getattr(target, "name", None)
        return (name if name else target.kind.value,)

    # --- Decode ---

    def _decode(
        self,
        descriptor: TypeDescriptor,
        cursor: ByteCursor,
        path: SchemaPath,
        strings: Optional[StringPool],
    ) -> PropertyValue:
        descriptor = dereference(descriptor)
        if isinstance(descriptor, _NESTED) and len(path) > self.config.max_depth:
            raise NestingTooDeepError(self.config.max_depth, cursor.offset, path)

        if isinstance(descriptor, ScalarDescriptor):
            return self._decode_scalar(descriptor, cursor, path, strings)

        if isinstance(descriptor, IdDescriptor):
            return IdValue(cursor.read(self.config.id_width, path), descriptor=descriptor)

        if isinstance(descriptor, RawDescriptor):
            raise UnsizedValueError(cursor.offset, path)

        if isinstance(descriptor, ListDescriptor):
            return self._decode_list(descriptor, cursor, path, strings)

        if isinstance(descriptor, StructDescriptor):
            return self._decode_struct(descriptor, cursor, path, strings)

        if isinstance(descriptor, PropertyListDescriptor):
            return self._decode_property_list(descriptor, cursor, path, strings)

        if isinstance(descriptor, EnumDescriptor):
            offset = cursor.offset
            token = cursor.read_unsigned(self.config.enum_width, self.config.byte_order, path)
            definition = descriptor.by_value.get(token)
            if definition is None:
                raise UnknownEnumValueError(descriptor.name, token, offset, path)
            return EnumValue(definition, descriptor=descriptor)

        if isinstance(descriptor, TypedefDescriptor):
            return self._decode_typedef(descriptor, cursor, path, strings)

        raise TypeError(f"Unsupported descriptor: {descriptor!r}")  # pragma: no cover

    def _decode_scalar(
        self,
        descriptor: ScalarDescriptor,
        cursor: ByteCursor,
        path: SchemaPath,
        strings: Optional[StringPool],
    ) -> ScalarValue:
        kind = descriptor.kind
        offset = cursor.offset

        if kind is TypeKind.BOOL:
            raw = cursor.read(1, path)
            if raw[0] > 1:
                raise InvalidBoolError(raw[0], offset, path)
            return ScalarValue(kind, raw[0] == 1, raw, descriptor)

        if kind is TypeKind.POOLED_STRING:
            native, raw = self._decode_pooled_string(cursor, path, strings)
            return ScalarValue(kind, native, raw, descriptor)

        packer = self._scalars[kind]
        raw = cursor.read(packer.size, path)
        unpacked = packer.unpack(raw)
        native = unpacked if kind in _TUPLE_KINDS else unpacked[0]
        return ScalarValue(kind, native, raw, descriptor)

    def _decode_pooled_string(
        self, cursor: ByteCursor, path: SchemaPath, strings: Optional[StringPool]
    ) -> tuple[PooledString, bytes]:
        width = self.config.string_index_width
        offset = cursor.offset

        if self.config.pooled_string_layout == "index":
            raw = cursor.read(width, path)
            index = self._unpack_unsigned(raw)
            text = None
            if strings is not None:
                try:
                    text = strings.resolve_pooled_string(index)
                except (IndexError, KeyError) as e:
                    raise InvalidStringIndexError(index, offset, path) from e
            return PooledString(index, text), raw

        head = cursor.read(width, path)
        tail = cursor.read(width, path)
        start, length = self._unpack_unsigned(head), self._unpack_unsigned(tail)

        if start == _all_ones(width):
            data = cursor.read(length, path)
            try:
                text = data.decode("utf-8")
            except UnicodeDecodeError as e:
                raise InvalidStringDataError(offset, path) from e
            return PooledString(None, text, length), head + tail + data

        text = None
        if isinstance(strings, SliceStringPool):
            try:
                text = strings.resolve_pooled_slice(start, length)
            except UnicodeDecodeError as e:
                raise InvalidStringDataError(offset, path) from e
            except (IndexError, KeyError) as e:
                raise InvalidStringIndexError(start, offset, path) from e
        return PooledString(start, text, length), head + tail

    def _decode_list(
        self,
        descriptor: ListDescriptor,
        cursor: ByteCursor,
        path: SchemaPath,
        strings: Optional[StringPool],
    ) -> ListValue:
        offset = cursor.offset
        count = cursor.read_unsigned(self.config.list_count_width, self.config.byte_order, path)

        # Reject counts the remaining bytes cannot hold
        minimum = self.min_size(descriptor.element)
        if minimum and count * minimum > cursor.remaining:
            raise UnexpectedEndError(offset, count * minimum, cursor.remaining, path)

        items = [
            self._decode(descriptor.element, cursor, path + (f"[{index}]",), strings)
            for index in range(count)
        ]
        return ListValue(items, descriptor=descriptor)

    def _decode_struct(
        self,
        descriptor: StructDescriptor,
        cursor: ByteCursor,
        path: SchemaPath,
        strings: Optional[StringPool],
    ) -> StructValue:
        fields: dict[str, PropertyValue] = {}
        for index, element in enumerate(descriptor.elements):
            try:
                fields[element.name] = self._decode(
                    element.descriptor, cursor, path + (element.name,), strings
                )
            except UnexpectedEndError as e:
                if e.element_index is not None:
                    raise
                raise e.with_element_index(index) from None
        return StructValue(fields, descriptor=descriptor)

    def _decode_property_list(
        self,
        descriptor: PropertyListDescriptor,
        cursor: ByteCursor,
        path: SchemaPath,
        strings: Optional[StringPool],
    ) -> PropertyListValue:
        byte_order = self.config.byte_order
        length_width = self.config.property_length_width
        count = cursor.read_unsigned(self.config.property_count_width, byte_order, path)

        entries: dict[int, PropertyValue] = {}
        for _ in range(count):
            entry_offset = cursor.offset
            key = cursor.read_unsigned(KEY_WIDTH, byte_order, path)
            entry_path = path + (_segment(descriptor, key),)
            if key in entries:
                raise DuplicateKeyError(key, entry_offset, entry_path)
            declared = descriptor.properties.get(key)

            # --- Unframed entries ---
            # Trigger: the wire carries no per-entry length
            # Outcome: declared keys decode inline; undeclared keys cannot be skipped
            if length_width is None:
                if declared is None:
                    raise UnknownKeyNoLengthError(key, entry_offset, entry_path)
                entries[key] = self._decode(declared.descriptor, cursor, entry_path, strings)
                continue

            # --- Length-prefixed entries ---
            # Trigger: each entry states its byte length
            # Outcome: undeclared and unknown-typed entries are kept as raw bytes;
            #          declared entries must fill their length exactly
            length = cursor.read_unsigned(length_width, byte_order, entry_path)
            payload = cursor.slice(length, entry_path)
            if declared is None or isinstance(dereference(declared.descriptor), RawDescriptor):
                entries[key] = RawValue(
                    payload.read(length, entry_path),
                    descriptor=declared.descriptor if declared is not None else None,
                )
                continue

            entries[key] = self._decode(declared.descriptor, payload, entry_path, strings)
            if not payload.at_end():
                raise PropertyLengthMismatchError(
                    key, length, length - payload.remaining, payload.offset, entry_path
                )

        return PropertyListValue(entries, descriptor=descriptor)

    def _decode_typedef(
        self,
        descriptor: TypedefDescriptor,
        cursor: ByteCursor,
        path: SchemaPath,
        strings: Optional[StringPool],
    ) -> TypedefValue:
        offset = cursor.offset
        token = cursor.read_unsigned(
            self.config.typedef_discriminator_width, self.config.byte_order, path
        )
        index, reason = self._select_candidate(descriptor, token)
        if index is None:
            raise InvalidDiscriminatorError(token, offset, path, reason)
        candidate = descriptor.candidates[index]
        inner_path = path + (f"<{candidate.name}>",)
        length_width = self.config.typedef_length_width
        if length_width is None:
            inner = self._decode(candidate.descriptor, cursor, inner_path, strings)
            return TypedefValue(candidate.name, inner, token, descriptor=descriptor)

        # --- Length-prefixed payload ---
        # Outcome: an unknown-typed candidate keeps the payload as raw bytes;
        #          any other candidate must fill the payload exactly
        length = cursor.read_unsigned(length_width, self.config.byte_order, path)
        payload = cursor.slice(length, inner_path)
        if isinstance(dereference(candidate.descriptor), RawDescriptor):
            inner = RawValue(payload.read(length, inner_path), descriptor=candidate.descriptor)
        else:
            inner = self._decode(candidate.descriptor, payload, inner_path, strings)
            if not payload.at_end():
                raise TypedefLengthMismatchError(
                    token, length, length - payload.remaining, payload.offset, inner_path
                )
        return TypedefValue(candidate.name, inner, token, descriptor=descriptor)

    def _select_candidate(
        self, descriptor: TypedefDescriptor, token: int
    ) -> tuple[Optional[int], str]:
        """Candidate index a discriminator token selects, or None with the reason."""
        if self.config.typedef_discriminator == "index":
            if token < len(descriptor.candidates):
                return token, ""
            return None, f"index out of range for {len(descriptor.candidates)} supported types"

        type_name = self.registry.type_name_for_id(token)
        if type_name is None:
            return None, "no type has this id"
        index = descriptor.candidate_index(type_name)
        if index is None:
            return None, f"type {type_name} is not a supported type here"
        return index, ""

    def min_size(self, descriptor: TypeDescriptor) -> int:
        """Smallest number of bytes a value of this type can occupy."""
        descriptor = dereference(descriptor)
        config = self.config
        if isinstance(descriptor, ScalarDescriptor):
            if descriptor.kind is TypeKind.BOOL:
                return 1
            if descriptor.kind is TypeKind.POOLED_STRING:
                if config.pooled_string_layout == "slice":
                    return 2 * config.string_index_width
                return config.string_index_width
            return self._scalars[descriptor.kind].size
        if isinstance(descriptor, IdDescriptor):
            return config.id_width
        if isinstance(descriptor, RawDescriptor):
            return 0
        if isinstance(descriptor, ListDescriptor):
            return config.list_count_width
        if isinstance(descriptor, PropertyListDescriptor):
            return config.property_count_width
        if isinstance(descriptor, EnumDescriptor):
            return config.enum_width
        if isinstance(descriptor, TypedefDescriptor):
            return config.typedef_discriminator_width + (config.typedef_length_width or 0)
        return sum(self.min_size(element.descriptor) for element in descriptor.elements)

    # --- Encode ---

    def _encode(
        self,
        descriptor: TypeDescriptor,
        value: PropertyValue,
        sink: ByteSink,
        path: SchemaPath,
        strings: Optional[StringPool],
    ) -> None:
        descriptor = dereference(descriptor)
        if isinstance(descriptor, _NESTED) and len(path) > self.config.max_depth:
            raise ValueTooDeepError(self.config.max_depth, path)

        if isinstance(descriptor, ScalarDescriptor):
            if not isinstance(value, ScalarValue) or value.kind is not descriptor.kind:
                raise self._mismatch(f"{descriptor.kind.value} scalar", value, path)
            sink.write(self._encode_scalar(value, path, strings))
            return

        if isinstance(descriptor, IdDescriptor):
            if not isinstance(value, IdValue):
                raise self._mismatch("id", value, path)
            if len(value.data) != self.config.id_width:
                raise ValueRangeError(
                    f"Id is {len(value.data)} bytes, expected {self.config.id_width}", path
                )
            sink.write(value.data)
            return

        if isinstance(descriptor, RawDescriptor):
            raise ShapeMismatchError(
                "Value of unknown type can only be written inside a length-prefixed entry", path
            )

        if isinstance(descriptor, ListDescriptor):
            if not isinstance(value, ListValue):
                raise self._mismatch("list", value, path)
            sink.write(self._pack_unsigned(len(value.items), self.config.list_count_width, path))
            for index, item in enumerate(value.items):
                self._encode(descriptor.element, item, sink, path + (f"[{index}]",), strings)
            return

        if isinstance(descriptor, StructDescriptor):
            self._encode_struct(descriptor, value, sink, path, strings)
            return

        if isinstance(descriptor, PropertyListDescriptor):
            self._encode_property_list(descriptor, value, sink, path, strings)
            return

        if isinstance(descriptor, EnumDescriptor):
            if not isinstance(value, EnumValue):
                raise self._mismatch(f"enum {descriptor.name}", value, path)
            if descriptor.by_value.get(value.definition.value) != value.definition:
                raise ShapeMismatchError(
                    f"'{value.definition.name}' is not a value of enum {descriptor.name}", path
                )
            sink.write(self._pack_unsigned(value.definition.value, self.config.enum_width, path))
            return

        if isinstance(descriptor, TypedefDescriptor):
            self._encode_typedef(descriptor, value, sink, path, strings)
            return

        raise TypeError(f"Unsupported descriptor: {descriptor!r}")  # pragma: no cover

    def _encode_scalar(
        self, value: ScalarValue, path: SchemaPath, strings: Optional[StringPool]
    ) -> bytes:
        kind = value.kind
        if value.raw is not None and self._raw_fits(kind, value.raw):
            return value.raw

        native = value.value
        if kind is TypeKind.BOOL:
            if not isinstance(native, bool):
                raise ValueRangeError(f"Expected a bool, got {native!r}", path)
            return b"\x01" if native else b"\x00"

        if kind is TypeKind.POOLED_STRING:
            return self._encode_pooled_string(native, path, strings)

        packer = self._scalars[kind]
        try:
            return packer.pack(*native) if kind in _TUPLE_KINDS else packer.pack(native)
        except (struct.error, OverflowError, TypeError) as e:
            raise ValueRangeError(f"Cannot encode {native!r} as {kind.value}: {e}", path) from e

    def _raw_fits(self, kind: TypeKind, raw: bytes) -> bool:
        """Whether captured bytes have the size this codec writes for the kind."""
        if kind is TypeKind.BOOL:
            return len(raw) == 1
        if kind is TypeKind.POOLED_STRING:
            width = self.config.string_index_width
            if self.config.pooled_string_layout == "slice":
                return len(raw) >= 2 * width
            return len(raw) == width
        return len(raw) == self._scalars[kind].size

    def _encode_pooled_string(
        self, native: object, path: SchemaPath, strings: Optional[StringPool]
    ) -> bytes:
        width = self.config.string_index_width
        if self.config.pooled_string_layout == "index":
            return self._pack_unsigned(self._string_index(native, path, strings), width, path)

        if isinstance(native, PooledString) and not native.inline:
            if native.length is None:
                raise ValueRangeError(f"Pooled string slice at {native.index} has no length", path)
            if native.index == _all_ones(width):
                raise ValueRangeError(f"Slice offset {native.index:#x} marks inline text", path)
            return self._pack_unsigned(native.index, width, path) + self._pack_unsigned(
                native.length, width, path
            )

        # Edited or inline text is written inline
        text = native.text if isinstance(native, PooledString) else native
        if not isinstance(text, str):
            raise ValueRangeError(f"Expected a pooled string or text, got {native!r}", path)
        data = text.encode("utf-8")
        return (
            self._pack_unsigned(_all_ones(width), width, path)
            + self._pack_unsigned(len(data), width, path)
            + data
        )

    @staticmethod
    def _string_index(native: object, path: SchemaPath, strings: Optional[StringPool]) -> int:
        if isinstance(native, PooledString):
            if native.index is not None:
                return native.index
            native = native.text
        if isinstance(native, str):
            if isinstance(strings, InterningStringPool):
                return strings.intern_pooled_string(native)
            raise UnpooledStringError(
                f"Text {native!r} has no pool index and no interning string pool was given", path
            )
        raise ValueRangeError(f"Expected a pooled string or text, got {native!r}", path)

    def _encode_struct(
        self,
        descriptor: StructDescriptor,
        value: PropertyValue,
        sink: ByteSink,
        path: SchemaPath,
        strings: Optional[StringPool],
    ) -> None:
        if not isinstance(value, StructValue):
            raise self._mismatch(f"struct {descriptor.name}", value, path)
        expected = descriptor.element_names()
        extra = [name for name in value.fields if name not in expected]
        if extra:
            raise ShapeMismatchError(f"Struct {descriptor.name} has no elements {extra}", path)

        # Schema order, whatever order the value's fields are in
        for element in descriptor.elements:
            element_path = path + (element.name,)
            if element.name not in value.fields:
                raise ShapeMismatchError(f"Missing struct element '{element.name}'", element_path)
            self._encode(element.descriptor, value.fields[element.name], sink, element_path, strings)

    def _encode_property_list(
        self,
        descriptor: PropertyListDescriptor,
        value: PropertyValue,
        sink: ByteSink,
        path: SchemaPath,
        strings: Optional[StringPool],
    ) -> None:
        if not isinstance(value, PropertyListValue):
            raise self._mismatch(f"property list {descriptor.name}", value, path)
        length_width = self.config.property_length_width
        sink.write(self._pack_unsigned(len(value.entries), self.config.property_count_width, path))

        for key, entry in value.entries.items():
            entry_path = path + (_segment(descriptor, key),)
            try:
                sink.write(self._key.pack(key))
            except struct.error as e:
                raise ValueRangeError(f"Property key {key!r} is not a 32-bit hash", entry_path) from e
            declared = descriptor.properties.get(key)
            raw_entry = declared is None or isinstance(dereference(declared.descriptor), RawDescriptor)

            if length_width is None:
                if declared is None:
                    raise ShapeMismatchError(
                        "Undeclared key cannot be written without entry lengths", entry_path
                    )
                self._encode(declared.descriptor, entry, sink, entry_path, strings)
                continue

            if raw_entry:
                if not isinstance(entry, RawValue):
                    raise self._mismatch("raw bytes", entry, entry_path)
                payload = entry.data
            else:
                payload = self._encode_payload(declared.descriptor, entry, entry_path, strings)
            sink.write(self._pack_unsigned(len(payload), length_width, entry_path))
            sink.write(payload)

    def _encode_payload(
        self,
        descriptor: TypeDescriptor,
        value: PropertyValue,
        path: SchemaPath,
        strings: Optional[StringPool],
    ) -> bytes:
        sub = ByteSink()
        self._encode(descriptor, value, sub, path, strings)
        return sub.getvalue()

    def _encode_typedef(
        self,
        descriptor: TypedefDescriptor,
        value: PropertyValue,
        sink: ByteSink,
        path: SchemaPath,
        strings: Optional[StringPool],
    ) -> None:
        if not isinstance(value, TypedefValue):
            raise self._mismatch("typedef", value, path)

        index: Optional[int] = None
        token = value.discriminator
        if token is not None:
            selected, _ = self._select_candidate(descriptor, token)
            if selected is not None and descriptor.candidates[selected].name == value.type_name:
                index = selected

        # Trigger: no stored token, or it no longer selects the value's type (edited)
        # Outcome: derive the token from the type name; first declared candidate wins
        if index is None:
            index = descriptor.candidate_index(value.type_name)
            if index is None:
                raise ShapeMismatchError(f"'{value.type_name}' is not a supported type", path)
            if self.config.typedef_discriminator == "index":
                token = index
            else:
                token = self.registry.type_id_for_name(value.type_name)
                if token is None:
                    raise ShapeMismatchError(f"Type {value.type_name} has no type id", path)

        candidate = descriptor.candidates[index]
        inner_path = path + (f"<{candidate.name}>",)
        sink.write(self._pack_unsigned(token, self.config.typedef_discriminator_width, path))
        length_width = self.config.typedef_length_width
        if length_width is None:
            self._encode(candidate.descriptor, value.value, sink, inner_path, strings)
            return

        if isinstance(dereference(candidate.descriptor), RawDescriptor):
            if not isinstance(value.value, RawValue):
                raise self._mismatch("raw bytes", value.value, inner_path)
            payload = value.value.data
        else:
            payload = self._encode_payload(candidate.descriptor, value.value, inner_path, strings)
        sink.write(self._pack_unsigned(len(payload), length_width, path))
        sink.write(payload)

    # --- Helpers ---

    def _unpack_unsigned(self, raw: bytes) -> int:
        (number,) = struct.unpack(unsigned_format(self.config.byte_order, len(raw)), raw)
        return number

    def _pack_unsigned(self, number: int, width: int, path: Sequence[str]) -> bytes:
        try:
            return struct.pack(unsigned_format(self.config.byte_order, width), number)
        except struct.error as e:
            raise ValueRangeError(f"{number!r} does not fit in {width} unsigned bytes", path) from e

    @staticmethod
    def _mismatch(expected: str, value: object, path: Sequence[str]) -> ShapeMismatchError:
        return ShapeMismatchError(f"Expected {expected}, got {type(value).__name__}", path)


__all__ = [
    "KEY_WIDTH",
    "PropertyCodec",
]
