"""Property value model.

Decoded assets are trees of these values. They mirror the descriptor shapes:

  ScalarValue        numbers, bools, vectors, colors, pooled strings
  IdValue            opaque fixed-width asset id
  RawValue           bytes of an undeclared or unknown-typed property
  ListValue          ordered items
  StructValue        fields by name (encoded in schema order, not dict order)
  PropertyListValue  entries by 32-bit key, in stream order
  EnumValue          the selected enum value definition
  TypedefValue       chosen candidate type name plus the inner value

Each value may carry a ``descriptor``: a non-owning handle to the descriptor it
was decoded with. Setters use it to re-check edits against the schema.
"""

from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from asset_templates.codec.errors import ShapeMismatchError
from asset_templates.codec.strings import PooledString
from asset_templates.schema.document import EnumValueDefinition
from asset_templates.schema.keys import coerce_key, format_hex_key
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


class ScalarValue:
    """A fixed-width leaf.

    ``raw`` holds the exact bytes the value was decoded from. Assigning a new
    ``value`` drops them, so untouched scalars re-encode bit for bit (NaN
    payloads included) and edited ones are packed from the native value.
    """

    def __init__(
        self,
        kind: TypeKind,
        value: Any,
        raw: Optional[bytes] = None,
        descriptor: Optional[TypeDescriptor] = None,
    ):
        self.kind = kind
        self._value = value
        self.raw = raw
        self.descriptor = descriptor

    @property
    def value(self) -> Any:
        return self._value

    @value.setter
    def value(self, value: Any) -> None:
        self._value = value
        self.raw = None

    def to_python(self) -> Any:
        if isinstance(self._value, PooledString):
            return self._value.text if self._value.text is not None else self._value.index
        if isinstance(self._value, tuple):
            return list(self._value)
        return self._value

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ScalarValue):
            return NotImplemented
        return self.kind == other.kind and self._value == other._value

    def __repr__(self) -> str:
        return f"ScalarValue({self.kind.value}, {self._value!r})"


@dataclass(eq=True)
class IdValue:
    """Opaque asset id; never interpreted."""

    data: bytes
    descriptor: Optional[TypeDescriptor] = field(default=None, repr=False, compare=False)

    kind = TypeKind.ID

    def __str__(self) -> str:
        return self.data.hex().upper()

    def to_python(self) -> str:
        return str(self)


@dataclass(eq=True)
class RawValue:
    """Bytes kept verbatim so they survive a decode/encode cycle."""

    data: bytes
    descriptor: Optional[TypeDescriptor] = field(default=None, repr=False, compare=False)

    kind = TypeKind.RAW

    def to_python(self) -> dict:
        return {"raw": self.data.hex()}


@dataclass(eq=True)
class ListValue:
    """Ordered list of values of one element type."""

    items: list["PropertyValue"] = field(default_factory=list)
    descriptor: Optional[TypeDescriptor] = field(default=None, repr=False, compare=False)

    kind = TypeKind.LIST

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator["PropertyValue"]:
        return iter(self.items)

    def __getitem__(self, index: int) -> "PropertyValue":
        return self.items[index]

    def __setitem__(self, index: int, value: "PropertyValue") -> None:
        self._check(value, f"[{index}]")
        self.items[index] = value

    def append(self, value: "PropertyValue") -> None:
        self._check(value, f"[{len(self.items)}]")
        self.items.append(value)

    def _check(self, value: "PropertyValue", segment: str) -> None:
        descriptor = dereference(self.descriptor) if self.descriptor is not None else None
        if isinstance(descriptor, ListDescriptor):
            check_shape(descriptor.element, value, (segment,))

    def to_python(self) -> list:
        return [item.to_python() for item in self.items]


@dataclass(eq=True)
class StructValue:
    """Struct fields by element name.

    Field order here is informational; encoding always follows the schema's
    element order.
    """

    fields: dict[str, "PropertyValue"] = field(default_factory=dict)
    descriptor: Optional[TypeDescriptor] = field(default=None, repr=False, compare=False)

    kind = TypeKind.STRUCT

    def __getitem__(self, name: str) -> "PropertyValue":
        return self.fields[name]

    def __setitem__(self, name: str, value: "PropertyValue") -> None:
        descriptor = dereference(self.descriptor) if self.descriptor is not None else None
        if isinstance(descriptor, StructDescriptor):
            element = descriptor.find(name)
            if element is None:
                raise KeyError(f"Struct {descriptor.name} has no element '{name}'")
            check_shape(element.descriptor, value, (name,))
        self.fields[name] = value

    def __contains__(self, name: object) -> bool:
        return name in self.fields

    def __iter__(self) -> Iterator[str]:
        return iter(self.fields)

    def names(self) -> list[str]:
        return list(self.fields)

    def items(self):
        return self.fields.items()

    def to_python(self) -> dict:
        return {name: value.to_python() for name, value in self.fields.items()}


@dataclass(eq=True)
class PropertyListValue:
    """Entries by 32-bit key, in the order they appeared in the stream.

    Undeclared keys hold RawValue entries and pass through re-encoding unless
    dropped with ``drop_unknown``.
    """

    entries: dict[int, "PropertyValue"] = field(default_factory=dict)
    descriptor: Optional[TypeDescriptor] = field(default=None, repr=False, compare=False)

    kind = TypeKind.PROPERTY_LIST

    def __getitem__(self, key: int | str) -> "PropertyValue":
        return self.entries[coerce_key(key)]

    def __setitem__(self, key: int | str, value: "PropertyValue") -> None:
        key = coerce_key(key)
        descriptor = dereference(self.descriptor) if self.descriptor is not None else None
        if isinstance(descriptor, PropertyListDescriptor):
            declared = descriptor.properties.get(key)
            segment = f"[{format_hex_key(key)}]"
            if declared is not None:
                check_shape(declared.descriptor, value, (segment,))
            elif not isinstance(value, RawValue):
                raise ShapeMismatchError(
                    f"Undeclared key in {descriptor.name} can only hold raw bytes, "
                    f"got {type(value).__name__}",
                    (segment,),
                )
        self.entries[key] = value

    def __delitem__(self, key: int | str) -> None:
        del self.entries[coerce_key(key)]

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, (int, str)):
            return False
        try:
            return coerce_key(key) in self.entries
        except (TypeError, ValueError):
            return False

    def __len__(self) -> int:
        return len(self.entries)

    def keys(self) -> list[int]:
        return list(self.entries)

    def items(self):
        return self.entries.items()

    def unknown_keys(self) -> list[int]:
        """Keys whose entries are passthrough raw bytes."""
        return [key for key, value in self.entries.items() if isinstance(value, RawValue)]

    def drop_unknown(self) -> list[int]:
        """Remove passthrough entries; returns the dropped keys."""
        dropped = self.unknown_keys()
        for key in dropped:
            del self.entries[key]
        return dropped

    def to_python(self) -> dict:
        return {format_hex_key(key): value.to_python() for key, value in self.entries.items()}


@dataclass(eq=True)
class EnumValue:
    """The enum value definition a token selected."""

    definition: EnumValueDefinition
    descriptor: Optional[TypeDescriptor] = field(default=None, repr=False, compare=False)

    kind = TypeKind.ENUM

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def value(self) -> int:
        return self.definition.value

    def select(self, name: str) -> None:
        """Switch to another declared value by name."""
        descriptor = dereference(self.descriptor) if self.descriptor is not None else None
        if not isinstance(descriptor, EnumDescriptor):
            raise ShapeMismatchError("Enum value has no descriptor to look names up in")
        definition = descriptor.by_name.get(name)
        if definition is None:
            raise KeyError(f"Enum {descriptor.name} has no value '{name}'")
        self.definition = definition

    def to_python(self) -> str:
        return self.definition.name


@dataclass(eq=True)
class TypedefValue:
    """A typedef's chosen candidate and its value.

    ``discriminator`` is the token read from the stream; encoding reuses it when
    it still selects ``type_name``.
    """

    type_name: str
    value: "PropertyValue"
    discriminator: Optional[int] = None
    descriptor: Optional[TypeDescriptor] = field(default=None, repr=False, compare=False)

    kind = TypeKind.TYPEDEF

    def to_python(self) -> dict:
        return {"type": self.type_name, "value": self.value.to_python()}


PropertyValue = Union[
    ScalarValue,
    IdValue,
    RawValue,
    ListValue,
    StructValue,
    PropertyListValue,
    EnumValue,
    TypedefValue,
]


# --- Shape Checking ---

# Deepest value nesting check_shape will walk
MAX_SHAPE_DEPTH = 256


def _mismatch(expected: str, value: object, path: Sequence[str]) -> ShapeMismatchError:
    return ShapeMismatchError(f"Expected {expected}, got {type(value).__name__}", path)


def check_shape(descriptor: TypeDescriptor, value: object, path: Sequence[str] = ()) -> None:
    """Check that a value tree has the shape a descriptor requires.

    Only structure is checked (value kinds, struct element names, declared
    keys, enum membership, typedef candidates); numeric ranges are checked at
    encode time against the codec's widths.

    Raises:
        ShapeMismatchError: On the first mismatch, with its path.
    """
    path = tuple(path)
    if len(path) > MAX_SHAPE_DEPTH:
        raise ShapeMismatchError(f"Value nests deeper than {MAX_SHAPE_DEPTH} levels", path)
    descriptor = dereference(descriptor)

    if isinstance(descriptor, ScalarDescriptor):
        if not isinstance(value, ScalarValue) or value.kind is not descriptor.kind:
            raise _mismatch(f"{descriptor.kind.value} scalar", value, path)
        return

    if isinstance(descriptor, IdDescriptor):
        if not isinstance(value, IdValue):
            raise _mismatch("id", value, path)
        return

    if isinstance(descriptor, RawDescriptor):
        if not isinstance(value, RawValue):
            raise _mismatch("raw bytes", value, path)
        return

    if isinstance(descriptor, ListDescriptor):
        if not isinstance(value, ListValue):
            raise _mismatch("list", value, path)
        for index, item in enumerate(value.items):
            check_shape(descriptor.element, item, path + (f"[{index}]",))
        return

    if isinstance(descriptor, StructDescriptor):
        if not isinstance(value, StructValue):
            raise _mismatch(f"struct {descriptor.name}", value, path)
        expected = descriptor.element_names()
        missing = [name for name in expected if name not in value.fields]
        extra = [name for name in value.fields if name not in expected]
        if missing or extra:
            raise ShapeMismatchError(
                f"Struct {descriptor.name} fields differ (missing {missing}, unexpected {extra})",
                path,
            )
        for element in descriptor.elements:
            check_shape(element.descriptor, value.fields[element.name], path + (element.name,))
        return

    if isinstance(descriptor, PropertyListDescriptor):
        if not isinstance(value, PropertyListValue):
            raise _mismatch(f"property list {descriptor.name}", value, path)
        for key, entry in value.entries.items():
            segment = path + (f"[{format_hex_key(key)}]",)
            declared = descriptor.properties.get(key)
            if declared is not None:
                check_shape(declared.descriptor, entry, segment)
            elif not isinstance(entry, RawValue):
                raise _mismatch("raw bytes for undeclared key", entry, segment)
        return

    if isinstance(descriptor, EnumDescriptor):
        if not isinstance(value, EnumValue):
            raise _mismatch(f"enum {descriptor.name}", value, path)
        if descriptor.by_value.get(value.definition.value) != value.definition:
            raise ShapeMismatchError(
                f"'{value.definition.name}' is not a value of enum {descriptor.name}", path
            )
        return

    if isinstance(descriptor, TypedefDescriptor):
        if not isinstance(value, TypedefValue):
            raise _mismatch("typedef", value, path)
        index = descriptor.candidate_index(value.type_name)
        if index is None:
            raise ShapeMismatchError(f"'{value.type_name}' is not a supported type", path)
        check_shape(descriptor.candidates[index].descriptor, value.value, path)
        return

    raise TypeError(f"Unsupported descriptor: {descriptor!r}")  # pragma: no cover


__all__ = [
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
