"""Schema registry for template sets.

Loads a set of template documents and checks them as a whole:

  1. Every document parses against the grammar      -> SchemaFormatError
  2. Names are unique                                -> DuplicateSchemaError
  3. Every struct/enum/typedef reference resolves    -> DanglingReferenceError
  4. No schema contains itself without a list between -> CyclicSchemaError

A loaded registry is immutable. Descriptors for every schema are built during
``load``, so the registry can be shared by concurrent codec calls without
locking.
"""

from collections.abc import Iterable, Iterator, Mapping
from types import MappingProxyType
from typing import Optional, TypeAlias

from loguru import logger

from asset_templates.schema.document import (
    PRIMITIVE_TYPES,
    EnumProperty,
    EnumSchema,
    ListProperty,
    PropertyDefinition,
    PropertyListSchema,
    SchemaDocument,
    StructProperty,
    StructSchema,
    TemplateIndex,
    TypedefProperty,
    parse_schema_document,
)
from asset_templates.schema.errors import (
    CyclicSchemaError,
    DanglingReferenceError,
    DuplicateSchemaError,
    SchemaFormatError,
    UnknownSchemaError,
)
from asset_templates.schema.keys import format_hex_key
from asset_templates.schema.resolver import SchemaDescriptor, TypeResolver

DocumentSource: TypeAlias = SchemaDocument | dict | str | bytes


# --- Property Walking ---


def _top_level_properties(document: SchemaDocument) -> Iterator[tuple[str, PropertyDefinition]]:
    """Yield (path, definition) for each direct field of a struct or property list."""
    if isinstance(document, StructSchema):
        for index, element in enumerate(document.elements):
            yield f"elements.{index}", element
    elif isinstance(document, PropertyListSchema):
        for key, definition in document.properties.items():
            yield f"properties.{format_hex_key(key)}", definition


def _walk(definition: PropertyDefinition, path: str) -> Iterator[tuple[str, PropertyDefinition]]:
    """Yield a definition and every definition nested below it through lists."""
    yield path, definition
    if isinstance(definition, ListProperty):
        yield from _walk(definition.element, f"{path}.element")


# --- Registry ---


class SchemaRegistry:
    """Immutable, fully checked set of template schemas.

    Use ``SchemaRegistry.load`` to build one.
    """

    def __init__(
        self,
        schemas: Mapping[str, SchemaDocument],
        index: Optional[TemplateIndex] = None,
    ):
        self._schemas: Mapping[str, SchemaDocument] = MappingProxyType(dict(schemas))
        self._index = index
        self._type_names: dict[int, str] = {}
        self._type_ids: dict[str, int] = {}
        if index is not None:
            # Type ids back typedef discriminators, so typedefs win over objects
            for type_id, name in list(index.typedefs.items()) + list(index.objects.items()):
                self._type_names.setdefault(type_id, name)
                self._type_ids.setdefault(name, type_id)
        self._resolver = TypeResolver(self)

    # --- Construction ---

    @classmethod
    def load(
        cls,
        documents: Iterable[DocumentSource],
        index: Optional[TemplateIndex] = None,
    ) -> "SchemaRegistry":
        """Parse, check and resolve a schema set.

        Args:
            documents: Parsed documents, decoded JSON objects, or raw JSON text.
            index: Optional root.json index providing the type-id tables.

        Returns:
            A registry with a descriptor built for every schema.

        Raises:
            SchemaFormatError: A document does not match the grammar.
            DuplicateSchemaError: Two documents share a name.
            DanglingReferenceError: A reference names no schema of the right kind.
            CyclicSchemaError: Schemas contain each other with no list between.
        """
        schemas: dict[str, SchemaDocument] = {}
        for source in documents:
            document = source if _is_document(source) else parse_schema_document(source)
            if document.name in PRIMITIVE_TYPES:
                raise SchemaFormatError(
                    f"Schema name '{document.name}' collides with a primitive type",
                    path="name",
                    schema_name=document.name,
                )
            if document.name in schemas:
                raise DuplicateSchemaError(document.name)
            schemas[document.name] = document
            logger.debug(f"Registered {document.type} schema {document.name}")

        registry = cls(schemas, index)
        registry._check_references()
        registry._check_cycles()
        registry._resolver.resolve_all()

        logger.info(f"Loaded {len(schemas)} schemas")
        return registry

    # --- Lookup ---

    def resolve(self, name: str) -> SchemaDocument:
        """The schema document with this name.

        Raises:
            UnknownSchemaError: If no schema has this name.
        """
        document = self._schemas.get(name)
        if document is None:
            raise UnknownSchemaError(name)
        return document

    def resolve_descriptor(self, name: str) -> SchemaDescriptor:
        """The closed-form descriptor for this schema (memoized).

        Raises:
            UnknownSchemaError: If no schema has this name.
        """
        return self._resolver.resolve_descriptor(name)

    def names(self) -> list[str]:
        return list(self._schemas)

    def __contains__(self, name: object) -> bool:
        return name in self._schemas

    def __len__(self) -> int:
        return len(self._schemas)

    def __iter__(self) -> Iterator[SchemaDocument]:
        return iter(self._schemas.values())

    @property
    def index(self) -> Optional[TemplateIndex]:
        return self._index

    # --- Type Ids ---

    def find_object(self, type_id: int) -> tuple[Optional[str], Optional[SchemaDocument]]:
        """Name and document for an object type id (either may be missing)."""
        name = self._index.objects.get(type_id) if self._index else None
        return name, self._schemas.get(name) if name else None

    def find_typedef(self, type_id: int) -> tuple[Optional[str], Optional[SchemaDocument]]:
        """Name and document for a typedef type id (either may be missing)."""
        name = self._index.typedefs.get(type_id) if self._index else None
        return name, self._schemas.get(name) if name else None

    def type_name_for_id(self, type_id: int) -> Optional[str]:
        """Schema name a type id maps to; typedefs take precedence over objects."""
        return self._type_names.get(type_id)

    def type_id_for_name(self, name: str) -> Optional[int]:
        return self._type_ids.get(name)

    # --- Checks ---

    def _check_references(self) -> None:
        for document in self._schemas.values():
            for top_path, top_definition in _top_level_properties(document):
                for path, definition in _walk(top_definition, top_path):
                    self._check_reference(document.name, path, definition)

    def _check_reference(self, schema_name: str, path: str, definition: PropertyDefinition) -> None:
        if isinstance(definition, StructProperty):
            target = self._schemas.get(definition.struct)
            if not isinstance(target, (StructSchema, PropertyListSchema)):
                raise DanglingReferenceError(
                    schema_name, f"{path}.struct", definition.struct, expected="struct"
                )

        elif isinstance(definition, EnumProperty):
            target = self._schemas.get(definition.enum)
            if not isinstance(target, EnumSchema):
                raise DanglingReferenceError(
                    schema_name, f"{path}.enum", definition.enum, expected="enum"
                )

        elif isinstance(definition, TypedefProperty):
            for index, type_name in enumerate(definition.supported_types):
                if type_name not in PRIMITIVE_TYPES and type_name not in self._schemas:
                    raise DanglingReferenceError(
                        schema_name, f"{path}.supported_types.{index}", type_name
                    )

    def _containment_edges(self, document: SchemaDocument) -> list[str]:
        """Schemas a document always embeds: direct struct fields, not list elements."""
        return [
            definition.struct
            for _, definition in _top_level_properties(document)
            if isinstance(definition, StructProperty)
        ]

    def _check_cycles(self) -> None:
        """Depth-first search over containment edges.

        List elements and typedef candidates are not edges: a list may be empty
        and a typedef may select another candidate, so each recursion step
        through them consumes input.
        """
        done: set[str] = set()
        stack: list[str] = []
        on_stack: set[str] = set()

        def visit(name: str) -> None:
            stack.append(name)
            on_stack.add(name)
            for target in self._containment_edges(self._schemas[name]):
                if target in on_stack:
                    cycle = stack[stack.index(target) :] + [target]
                    logger.error(f"Cyclic schema reference: {' -> '.join(cycle)}")
                    raise CyclicSchemaError(cycle)
                if target not in done:
                    visit(target)
            stack.pop()
            on_stack.discard(name)
            done.add(name)

        for name in self._schemas:
            if name not in done:
                visit(name)


def _is_document(source: object) -> bool:
    return isinstance(source, (StructSchema, PropertyListSchema, EnumSchema))


__all__ = [
    "DocumentSource",
    "SchemaRegistry",
]
