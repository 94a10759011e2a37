"""Type resolver for template schemas.

Turns schema documents into closed-form type descriptors the codec walks.
Named references (struct, enum, typedef candidates) become SchemaHandle
objects: a name plus the resolver's descriptor arena, so self-referencing
schemas resolve without recursion and every handle points at exactly one
shared descriptor.

Descriptors are built once per schema name and memoized for the lifetime of
the resolver. They are immutable and safe to share across threads.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Optional, Union

from loguru import logger

from asset_templates.schema.document import (
    PRIMITIVE_TYPES,
    EnumProperty,
    EnumSchema,
    EnumValueDefinition,
    ListProperty,
    PrimitiveProperty,
    PropertyDefinition,
    PropertyListSchema,
    SchemaDocument,
    StructProperty,
    StructSchema,
    TypedefProperty,
)
from asset_templates.schema.keys import format_hex_key

if TYPE_CHECKING:
    from asset_templates.schema.registry import SchemaRegistry


class TypeKind(Enum):
    """Every shape a descriptor (and a decoded value) can take."""

    U8 = "u8"
    U16 = "u16"
    U32 = "u32"
    U64 = "u64"
    I8 = "i8"
    I16 = "i16"
    I32 = "i32"
    I64 = "i64"
    F32 = "f32"
    F64 = "f64"
    BOOL = "bool"
    VECTOR = "vector"
    COLOR = "color"
    POOLED_STRING = "pooled_string"
    ID = "id"
    RAW = "unknown"
    LIST = "list"
    STRUCT = "struct"
    PROPERTY_LIST = "property_list"
    ENUM = "enum"
    TYPEDEF = "typedef"


# --- Descriptors ---


@dataclass(frozen=True)
class ScalarDescriptor:
    """Fixed-width leaf value."""

    kind: TypeKind


@dataclass(frozen=True)
class IdDescriptor:
    """Opaque fixed-width asset id."""

    kind: TypeKind = TypeKind.ID


@dataclass(frozen=True)
class RawDescriptor:
    """Bytes of unknown type. Only decodable where the wire carries a length."""

    kind: TypeKind = TypeKind.RAW


@dataclass(frozen=True)
class ListDescriptor:
    """Counted repetition of one element type."""

    element: "TypeDescriptor"
    kind: TypeKind = TypeKind.LIST


@dataclass(frozen=True)
class SchemaHandle:
    """Non-owning reference to a named schema's descriptor.

    The arena is the resolver's memo table; ``target`` is a plain lookup.
    """

    name: str
    kind: TypeKind
    arena: Mapping[str, "SchemaDescriptor"] = field(repr=False, compare=False)

    @property
    def target(self) -> "SchemaDescriptor":
        return self.arena[self.name]


@dataclass(frozen=True)
class FieldDescriptor:
    """A named slot in a struct or property list."""

    name: Optional[str]
    descriptor: "TypeDescriptor"
    description: Optional[str] = None


@dataclass(frozen=True)
class TypedefCandidate:
    """One entry of a typedef's supported_types, in declaration order."""

    name: str
    descriptor: "TypeDescriptor"


@dataclass(frozen=True)
class TypedefDescriptor:
    """Variant selected at runtime by a discriminator token."""

    candidates: tuple[TypedefCandidate, ...]
    kind: TypeKind = TypeKind.TYPEDEF

    def candidate_index(self, type_name: str) -> Optional[int]:
        """First candidate with this name; declaration order breaks ties."""
        for index, candidate in enumerate(self.candidates):
            if candidate.name == type_name:
                return index
        return None


@dataclass(frozen=True, eq=False)
class StructDescriptor:
    """Ordered elements; binary layout is their concatenation."""

    name: str
    elements: tuple[FieldDescriptor, ...]
    document: StructSchema = field(repr=False)
    kind: TypeKind = TypeKind.STRUCT

    def element_names(self) -> list[str]:
        return [element.name for element in self.elements if element.name is not None]

    def find(self, name: str) -> Optional[FieldDescriptor]:
        for element in self.elements:
            if element.name == name:
                return element
        return None


@dataclass(frozen=True, eq=False)
class PropertyListDescriptor:
    """Keyed properties, looked up by 32-bit hash."""

    name: str
    properties: Mapping[int, FieldDescriptor]
    document: PropertyListSchema = field(repr=False)
    kind: TypeKind = TypeKind.PROPERTY_LIST

    def property_name(self, key: int) -> str:
        """Declared name for a key, or its hex form when undeclared or unnamed."""
        declared = self.properties.get(key)
        if declared is not None and declared.name:
            return declared.name
        return format_hex_key(key)


@dataclass(frozen=True, eq=False)
class EnumDescriptor:
    """Enum values indexed by token and by name."""

    name: str
    values: tuple[EnumValueDefinition, ...]
    by_value: Mapping[int, EnumValueDefinition] = field(repr=False)
    by_name: Mapping[str, EnumValueDefinition] = field(repr=False)
    document: EnumSchema = field(repr=False)
    kind: TypeKind = TypeKind.ENUM


SchemaDescriptor = Union[StructDescriptor, PropertyListDescriptor, EnumDescriptor]

TypeDescriptor = Union[
    ScalarDescriptor,
    IdDescriptor,
    RawDescriptor,
    ListDescriptor,
    SchemaHandle,
    TypedefDescriptor,
    StructDescriptor,
    PropertyListDescriptor,
    EnumDescriptor,
]


def _primitive_descriptor(tag: str) -> TypeDescriptor:
    kind = TypeKind(tag)
    if kind is TypeKind.ID:
        return IdDescriptor()
    if kind is TypeKind.RAW:
        return RawDescriptor()
    return ScalarDescriptor(kind)


# Primitive descriptors carry no state, so one instance per tag is shared
PRIMITIVE_DESCRIPTORS: Mapping[str, TypeDescriptor] = MappingProxyType(
    {tag: _primitive_descriptor(tag) for tag in PRIMITIVE_TYPES}
)


def dereference(descriptor: TypeDescriptor) -> TypeDescriptor:
    """Follow a SchemaHandle to the schema descriptor it names."""
    if isinstance(descriptor, SchemaHandle):
        return descriptor.target
    return descriptor


# --- Resolver ---


class TypeResolver:
    """Builds and memoizes descriptors for one registry.

    The registry runs ``resolve_all`` while loading, so afterwards every
    lookup is a read of the arena and nothing is mutated.
    """

    def __init__(self, registry: "SchemaRegistry"):
        self._registry = registry
        self._arena: dict[str, SchemaDescriptor] = {}
        self._handles: dict[str, SchemaHandle] = {}

    @property
    def arena(self) -> Mapping[str, SchemaDescriptor]:
        return MappingProxyType(self._arena)

    def resolve_descriptor(self, schema_name: str) -> SchemaDescriptor:
        """Descriptor for a schema, built on first request.

        Raises:
            UnknownSchemaError: If the registry has no schema with this name.
        """
        descriptor = self._arena.get(schema_name)
        if descriptor is not None:
            return descriptor

        # Build the requested schema plus everything it reaches, so no handle dangles
        pending = [schema_name]
        while pending:
            name = pending.pop()
            if name in self._arena:
                continue
            document = self._registry.resolve(name)
            referenced: list[str] = []
            self._arena[name] = self._build_schema(document, referenced)
            pending.extend(ref for ref in referenced if ref not in self._arena)
            logger.debug(f"Resolved descriptor for schema {name}")

        return self._arena[schema_name]

    def resolve_all(self) -> None:
        for name in self._registry.names():
            self.resolve_descriptor(name)

    # --- Builders ---

    def _build_schema(self, document: SchemaDocument, referenced: list[str]) -> SchemaDescriptor:
        if isinstance(document, StructSchema):
            elements = tuple(
                self._build_field(element, referenced) for element in document.elements
            )
            return StructDescriptor(name=document.name, elements=elements, document=document)

        if isinstance(document, PropertyListSchema):
            properties = {
                key: self._build_field(definition, referenced)
                for key, definition in document.properties.items()
            }
            return PropertyListDescriptor(
                name=document.name,
                properties=MappingProxyType(properties),
                document=document,
            )

        return EnumDescriptor(
            name=document.name,
            values=document.values,
            by_value=MappingProxyType({value.value: value for value in document.values}),
            by_name=MappingProxyType({value.name: value for value in document.values}),
            document=document,
        )

    def _build_field(self, definition: PropertyDefinition, referenced: list[str]) -> FieldDescriptor:
        return FieldDescriptor(
            name=definition.name,
            descriptor=self._build_type(definition, referenced),
            description=definition.description,
        )

    def _build_type(self, definition: PropertyDefinition, referenced: list[str]) -> TypeDescriptor:
        if isinstance(definition, PrimitiveProperty):
            return PRIMITIVE_DESCRIPTORS[definition.type]

        if isinstance(definition, ListProperty):
            return ListDescriptor(element=self._build_type(definition.element, referenced))

        if isinstance(definition, StructProperty):
            return self._handle(definition.struct, referenced)

        if isinstance(definition, EnumProperty):
            return self._handle(definition.enum, referenced)

        if isinstance(definition, TypedefProperty):
            candidates = tuple(
                TypedefCandidate(name=type_name, descriptor=self._candidate(type_name, referenced))
                for type_name in definition.supported_types
            )
            return TypedefDescriptor(candidates=candidates)

        raise TypeError(f"Unsupported property definition: {definition!r}")  # pragma: no cover

    def _candidate(self, type_name: str, referenced: list[str]) -> TypeDescriptor:
        if type_name in PRIMITIVE_DESCRIPTORS:
            return PRIMITIVE_DESCRIPTORS[type_name]
        return self._handle(type_name, referenced)

    def _handle(self, name: str, referenced: list[str]) -> SchemaHandle:
        referenced.append(name)
        handle = self._handles.get(name)
        if handle is None:
            document = self._registry.resolve(name)
            handle = SchemaHandle(name=name, kind=TypeKind(document.type), arena=self._arena)
            self._handles[name] = handle
        return handle


def resolve_descriptor(registry: "SchemaRegistry", schema_name: str) -> SchemaDescriptor:
    """Descriptor for ``schema_name`` in ``registry`` (memoized by the registry)."""
    return registry.resolve_descriptor(schema_name)


__all__ = [
    "PRIMITIVE_DESCRIPTORS",
    "EnumDescriptor",
    "FieldDescriptor",
    "IdDescriptor",
    "ListDescriptor",
    "PropertyListDescriptor",
    "RawDescriptor",
    "ScalarDescriptor",
    "SchemaDescriptor",
    "SchemaHandle",
    "StructDescriptor",
    "TypeDescriptor",
    "TypeKind",
    "TypeResolver",
    "TypedefCandidate",
    "TypedefDescriptor",
    "dereference",
    "resolve_descriptor",
]
