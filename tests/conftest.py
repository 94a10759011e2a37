"""Shared fixtures: a small template set exercising every property type."""

import pytest

from asset_templates.codec import PropertyCodec
from asset_templates.config import CodecConfig
from asset_templates.schema import SchemaRegistry, parse_template_index

VEC3 = {
    "name": "Vec3Struct",
    "type": "struct",
    "elements": [
        {"name": "x", "type": "f32"},
        {"name": "y", "type": "f32"},
        {"name": "z", "type": "f32"},
    ],
}

BOX = {
    "name": "Box",
    "type": "struct",
    "elements": [
        {"name": "min", "type": "struct", "struct": "Vec3Struct"},
        {"name": "max", "type": "struct", "struct": "Vec3Struct"},
    ],
}

NODE = {
    "name": "Node",
    "type": "struct",
    "description": "Scene node; children are nodes again",
    "elements": [
        {"name": "label", "type": "pooled_string"},
        {"name": "children", "type": "list", "element": {"type": "struct", "struct": "Node"}},
    ],
}

BLEND_MODE = {
    "name": "BlendMode",
    "type": "enum",
    "values": [
        {"name": "Opaque", "value": 0},
        {"name": "Additive", "value": 1},
        {"name": "Masked", "value": "0x1234ABCD"},
    ],
}

MATERIAL = {
    "$schema": "../schemas/property_list.json",
    "name": "Material",
    "type": "property_list",
    "properties": {
        "0xDEADBEEF": {"name": "count", "type": "u32"},
        "0x00000001": {"name": "blend", "type": "enum", "enum": "BlendMode"},
        "0x00000002": {"name": "tint", "type": "struct", "struct": "Vec3Struct"},
        "0x00000003": {"name": "indices", "type": "list", "element": {"type": "u16"}},
        "0x00000004": {"name": "blob", "type": "unknown"},
        "0x00000005": {"name": "variant", "type": "typedef", "supported_types": ["Vec3Struct", "u32"]},
        "0x00000006": {"name": "texture", "type": "id"},
        "0x00000007": {"name": "visible", "type": "bool"},
        "0x00000008": {"name": "label", "type": "pooled_string"},
    },
}

MESH = {
    "name": "Mesh",
    "type": "property_list",
    "properties": {
        "0x00000010": {"name": "material", "type": "struct", "struct": "Material"},
        "0x00000011": {"name": "boxes", "type": "list", "element": {"type": "struct", "struct": "Box"}},
    },
}

INDEX = {
    "name": "test-templates",
    "objects": {"0x11111111": "Mesh", "0x22222222": "Vec3Struct"},
    "typedefs": {"0x33333333": "Material"},
    "structs": ["Box", "Node"],
    "enums": ["BlendMode"],
}

TYPE_ID_MESH = 0x11111111
TYPE_ID_VEC3 = 0x22222222
TYPE_ID_MATERIAL = 0x33333333


@pytest.fixture
def template_documents():
    return [VEC3, BOX, NODE, BLEND_MODE, MATERIAL, MESH]


@pytest.fixture
def registry(template_documents):
    return SchemaRegistry.load(template_documents, index=parse_template_index(INDEX))


@pytest.fixture
def codec_config():
    """Little-endian, 4-byte counts, length-prefixed entries, positional typedefs."""
    return CodecConfig(
        endianness="little",
        list_count_width=4,
        property_count_width=4,
        property_length_width=4,
        typedef_discriminator_width=4,
    )


@pytest.fixture
def codec(registry, codec_config):
    return PropertyCodec(registry, codec_config)


@pytest.fixture
def unframed_codec(registry, codec_config):
    """Codec whose property entries carry no length."""
    return PropertyCodec(
        registry, codec_config.model_copy(update={"property_length_width": None})
    )


@pytest.fixture
def type_id_codec(registry, codec_config):
    """Codec whose typedef tokens are registry type ids."""
    return PropertyCodec(
        registry, codec_config.model_copy(update={"typedef_discriminator": "type_id"})
    )


@pytest.fixture
def slice_codec(registry, codec_config):
    """Codec whose pooled strings are (offset, length) slices or inline text."""
    return PropertyCodec(
        registry, codec_config.model_copy(update={"pooled_string_layout": "slice"})
    )


@pytest.fixture
def framed_typedef_codec(registry, codec_config):
    """Codec whose typedef payloads carry a u16 length after the type id."""
    return PropertyCodec(
        registry,
        codec_config.model_copy(
            update={"typedef_discriminator": "type_id", "typedef_length_width": 2}
        ),
    )
