"""Template schema document model.

Parses template JSON documents into typed, immutable pydantic models. The
grammar is closed: any key not listed here fails the load.

Document shapes (discriminated by ``type``):
  property_list  {"properties": {"0xDEADBEEF": <property>, ...}}
  struct         {"elements": [<property>, ...]}       order is binary layout
  enum           {"values": [{"name": ..., "value": 3 | "0x1234ABCD"}, ...]}

Property shapes (discriminated by ``type``):
  {"type": "struct", "struct": "OtherSchema"}
  {"type": "enum", "enum": "SomeEnum"}
  {"type": "typedef", "supported_types": ["Candidate", "u32", ...]}
  {"type": "list", "element": <property>}
  {"type": "id" | "unknown" | "u8" | ... | "pooled_string"}
"""

import json
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    PlainSerializer,
    TypeAdapter,
    ValidationError,
    field_validator,
)

from asset_templates.schema.errors import SchemaFormatError
from asset_templates.schema.keys import MAX_KEY, format_hex_key, parse_hex_key


# --- Type Tags ---

SCALAR_TYPES = (
    "u8",
    "u16",
    "u32",
    "u64",
    "i8",
    "i16",
    "i32",
    "i64",
    "f32",
    "f64",
    "bool",
    "vector",
    "color",
    "pooled_string",
)

# Leaf types that carry no reference: scalars plus opaque ids and raw bytes
PRIMITIVE_TYPES = SCALAR_TYPES + ("id", "unknown")

PROPERTY_TYPES = PRIMITIVE_TYPES + ("struct", "enum", "typedef", "list")

DOCUMENT_TYPES = ("property_list", "struct", "enum")


# --- Hashed Values ---


def _parse_enum_token(value: Any) -> int:
    """Enum values are either plain 32-bit unsigned integers or hashed 0x strings."""
    if isinstance(value, bool):
        raise ValueError("enum value must be an integer or a hashed 0x string, not a boolean")
    if isinstance(value, int):
        if not 0 <= value <= MAX_KEY:
            raise ValueError(f"enum value must fit in 32 unsigned bits, got {value}")
        return value
    return parse_hex_key(value)


HexKey = Annotated[
    int,
    BeforeValidator(parse_hex_key),
    PlainSerializer(format_hex_key, return_type=str),
]

EnumToken = Annotated[int, BeforeValidator(_parse_enum_token)]


# --- Property Definitions ---


class _Definition(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    name: Optional[str] = None
    description: Optional[str] = None


class PrimitiveProperty(_Definition):
    """A scalar leaf, an opaque id, or raw bytes of unknown type."""

    type: Literal[
        "u8",
        "u16",
        "u32",
        "u64",
        "i8",
        "i16",
        "i32",
        "i64",
        "f32",
        "f64",
        "bool",
        "vector",
        "color",
        "pooled_string",
        "id",
        "unknown",
    ]


class StructProperty(_Definition):
    """Embeds another struct or property_list schema by name."""

    type: Literal["struct"]
    struct: str = Field(min_length=1)


class EnumProperty(_Definition):
    """A value token looked up in an enum schema."""

    type: Literal["enum"]
    enum: str = Field(min_length=1)


class TypedefProperty(_Definition):
    """A variant: a discriminator token selects one of the candidate types.

    Candidates are schema names or primitive type tags, in declaration order.
    """

    type: Literal["typedef"]
    supported_types: tuple[str, ...] = ()


class ListProperty(_Definition):
    """A counted, homogeneous repetition of one element definition."""

    type: Literal["list"]
    element: "PropertyDefinition"


PropertyDefinition = Annotated[
    Union[PrimitiveProperty, StructProperty, EnumProperty, TypedefProperty, ListProperty],
    Field(discriminator="type"),
]

ListProperty.model_rebuild()


class EnumValueDefinition(BaseModel):
    """One named value of an enum schema."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str = Field(min_length=1)
    description: Optional[str] = None
    value: EnumToken


# --- Schema Documents ---


class _SchemaDocument(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    schema_uri: Optional[str] = Field(default=None, alias="$schema")
    name: str = Field(min_length=1)
    description: Optional[str] = None


class PropertyListSchema(_SchemaDocument):
    """Keyed property bag. Entries on the wire may appear in any order."""

    type: Literal["property_list"]
    properties: dict[HexKey, PropertyDefinition]

    @field_validator("properties", mode="before")
    @classmethod
    def validate_distinct_keys(cls, properties: Any) -> Any:
        """Keys differing only in hex case name the same property."""
        if not isinstance(properties, dict):
            return properties
        seen: dict[int, str] = {}
        for text in properties:
            try:
                key = parse_hex_key(text)
            except ValueError:
                # Reported by key validation
                continue
            if key in seen:
                raise ValueError(f"property key '{text}' duplicates '{seen[key]}'")
            seen[key] = text
        return properties


class StructSchema(_SchemaDocument):
    """Fixed-layout record. Elements are encoded in exactly this order."""

    type: Literal["struct"]
    elements: tuple[PropertyDefinition, ...] = Field(min_length=1)

    @field_validator("elements")
    @classmethod
    def validate_element_names(cls, elements: tuple) -> tuple:
        seen: set[str] = set()
        for index, element in enumerate(elements):
            if not element.name:
                raise ValueError(f"element {index} has no name")
            if element.name in seen:
                raise ValueError(f"duplicate element name '{element.name}' at index {index}")
            seen.add(element.name)
        return elements


class EnumSchema(_SchemaDocument):
    """Ordered list of named values."""

    type: Literal["enum"]
    values: tuple[EnumValueDefinition, ...]

    @field_validator("values")
    @classmethod
    def validate_distinct(cls, values: tuple) -> tuple:
        names: set[str] = set()
        tokens: set[int] = set()
        for index, value in enumerate(values):
            if value.name in names:
                raise ValueError(f"duplicate enum name '{value.name}' at index {index}")
            if value.value in tokens:
                raise ValueError(
                    f"duplicate enum value {format_hex_key(value.value)} at index {index}"
                )
            names.add(value.name)
            tokens.add(value.value)
        return values


SchemaDocument = Annotated[
    Union[PropertyListSchema, StructSchema, EnumSchema],
    Field(discriminator="type"),
]

_document_adapter: TypeAdapter[SchemaDocument] = TypeAdapter(SchemaDocument)


class TemplateIndex(BaseModel):
    """The root.json index of a template set.

    Maps 32-bit type ids to schema names for objects and typedefs, and lists the
    struct and enum schemas by name.
    """

    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    schema_uri: Optional[str] = Field(default=None, alias="$schema")
    name: str = Field(min_length=1)
    description: Optional[str] = None
    objects: dict[HexKey, str] = Field(default_factory=dict)
    typedefs: dict[HexKey, str] = Field(default_factory=dict)
    structs: tuple[str, ...] = ()
    enums: tuple[str, ...] = ()


# --- Parsing ---


def _format_loc(loc: tuple) -> str:
    """Render a pydantic error location as a template field path.

    Discriminated unions insert the matched tag into the location; those tags
    are dropped so the path names only real template fields.
    """
    parts: list[str] = []
    items = list(loc)
    index = 0

    # Trigger: first item is the matched document tag
    # Why: the tag is not a field of the document
    # Outcome: skip it when more location follows
    if len(items) > 1 and items[0] in DOCUMENT_TYPES:
        index = 1

    expect_tag = False
    while index < len(items):
        item = items[index]
        if expect_tag and item in PROPERTY_TYPES:
            expect_tag = False
            index += 1
            continue
        expect_tag = False
        parts.append(str(item))

        # A property definition follows an element index, a property key, or "element"
        previous = parts[-2] if len(parts) > 1 else None
        if item == "element" or previous in ("elements", "properties"):
            expect_tag = True
        index += 1

    return ".".join(parts)


def _schema_name(data: Any) -> str | None:
    if isinstance(data, dict):
        name = data.get("name")
        return name if isinstance(name, str) else None
    return None


def _load_json_object(data: dict | str | bytes, what: str) -> dict:
    if isinstance(data, (str, bytes)):
        try:
            data = json.loads(data)
        except json.JSONDecodeError as e:
            raise SchemaFormatError(f"Invalid JSON: {e.msg}", path=f"line {e.lineno}") from e

    if not isinstance(data, dict):
        raise SchemaFormatError(f"{what} must be a JSON object, got {type(data).__name__}")
    return data


def _format_error(e: ValidationError, what: str, data: dict) -> SchemaFormatError:
    errors = e.errors()
    first_path = _format_loc(errors[0]["loc"]) if errors else None
    details = "; ".join(f"{_format_loc(err['loc']) or '<document>'}: {err['msg']}" for err in errors)
    return SchemaFormatError(
        f"Invalid {what} ({details})",
        path=first_path or None,
        schema_name=_schema_name(data),
    )


def parse_schema_document(data: dict | str | bytes) -> SchemaDocument:
    """Parse one template document into its typed form.

    Args:
        data: The decoded JSON object, or raw JSON text.

    Returns:
        A PropertyListSchema, StructSchema or EnumSchema.

    Raises:
        SchemaFormatError: If the document violates the grammar. The error cites
            the first offending field path; all violations are in the message.
    """
    data = _load_json_object(data, "Schema document")
    try:
        return _document_adapter.validate_python(data)
    except ValidationError as e:
        raise _format_error(e, "schema document", data) from e


def parse_template_index(data: dict | str | bytes) -> TemplateIndex:
    """Parse a root.json template index.

    Raises:
        SchemaFormatError: If the index violates the grammar.
    """
    data = _load_json_object(data, "Template index")
    try:
        return TemplateIndex.model_validate(data)
    except ValidationError as e:
        raise _format_error(e, "template index", data) from e


def dump_schema_document(document: SchemaDocument) -> dict:
    """Render a document back to its JSON-compatible form."""
    return document.model_dump(by_alias=True, exclude_none=True)


__all__ = [
    "DOCUMENT_TYPES",
    "PRIMITIVE_TYPES",
    "PROPERTY_TYPES",
    "SCALAR_TYPES",
    "EnumProperty",
    "EnumSchema",
    "EnumValueDefinition",
    "ListProperty",
    "PrimitiveProperty",
    "PropertyDefinition",
    "PropertyListSchema",
    "SchemaDocument",
    "StructProperty",
    "StructSchema",
    "TemplateIndex",
    "TypedefProperty",
    "dump_schema_document",
    "parse_schema_document",
    "parse_template_index",
]
