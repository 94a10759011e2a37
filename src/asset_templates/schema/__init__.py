"""Template schema system.

Template documents describe asset layouts as property lists, structs and enums.
They are parsed into pydantic models, checked as a set by the registry, and
resolved into descriptors the codec consumes.
"""

from asset_templates.schema.document import (
    EnumSchema,
    EnumValueDefinition,
    PropertyDefinition,
    PropertyListSchema,
    SchemaDocument,
    StructSchema,
    TemplateIndex,
    dump_schema_document,
    parse_schema_document,
    parse_template_index,
)
from asset_templates.schema.errors import (
    CyclicSchemaError,
    DanglingReferenceError,
    DuplicateSchemaError,
    SchemaError,
    SchemaFormatError,
    UnknownSchemaError,
)
from asset_templates.schema.keys import coerce_key, format_hex_key, parse_hex_key
from asset_templates.schema.loader import load_template_directory
from asset_templates.schema.registry import SchemaRegistry
from asset_templates.schema.resolver import (
    EnumDescriptor,
    FieldDescriptor,
    IdDescriptor,
    ListDescriptor,
    PropertyListDescriptor,
    RawDescriptor,
    ScalarDescriptor,
    SchemaHandle,
    StructDescriptor,
    TypeDescriptor,
    TypedefDescriptor,
    TypeKind,
    resolve_descriptor,
)

__all__ = [
    # Document
    "EnumSchema",
    "EnumValueDefinition",
    "PropertyDefinition",
    "PropertyListSchema",
    "SchemaDocument",
    "StructSchema",
    "TemplateIndex",
    "dump_schema_document",
    "parse_schema_document",
    "parse_template_index",
    # Errors
    "CyclicSchemaError",
    "DanglingReferenceError",
    "DuplicateSchemaError",
    "SchemaError",
    "SchemaFormatError",
    "UnknownSchemaError",
    # Keys
    "coerce_key",
    "format_hex_key",
    "parse_hex_key",
    # Registry
    "SchemaRegistry",
    "load_template_directory",
    # Resolver
    "EnumDescriptor",
    "FieldDescriptor",
    "IdDescriptor",
    "ListDescriptor",
    "PropertyListDescriptor",
    "RawDescriptor",
    "ScalarDescriptor",
    "SchemaHandle",
    "StructDescriptor",
    "TypeDescriptor",
    "TypedefDescriptor",
    "TypeKind",
    "resolve_descriptor",
]
