"""Tests for asset_templates.codec.values -- accessors, edits and shape checks."""

import struct

import pytest

from asset_templates.codec import (
    EnumValue,
    ListValue,
    PooledString,
    PropertyListValue,
    RawValue,
    ScalarValue,
    ShapeMismatchError,
    StructValue,
    TypedefValue,
    MAX_SHAPE_DEPTH,
    check_shape,
)
from asset_templates.schema import TypeKind


def _u32(value: int) -> bytes:
    return struct.pack("<I", value)


def _entry(key: int, payload: bytes) -> bytes:
    return _u32(key) + _u32(len(payload)) + payload


@pytest.fixture
def material(codec):
    """A decoded Material with a declared, an unknown and a list entry."""
    data = (
        _u32(3)
        + _entry(0xDEADBEEF, _u32(7))
        + _entry(0xCAFEBABE, b"\x00\x01\x02\x03")
        + _entry(3, _u32(2) + struct.pack("<2H", 10, 20))
    )
    return codec.decode("Material", data)


class TestScalarValue:
    def test_equality_ignores_raw_bytes(self):
        assert ScalarValue(TypeKind.U8, 1, b"\x01") == ScalarValue(TypeKind.U8, 1)
        assert ScalarValue(TypeKind.U8, 1) != ScalarValue(TypeKind.U16, 1)

    def test_setting_value_drops_raw(self):
        value = ScalarValue(TypeKind.U8, 1, b"\x01")
        value.value = 2
        assert value.raw is None

    def test_to_python(self):
        assert ScalarValue(TypeKind.VECTOR, (1.0, 2.0, 3.0)).to_python() == [1.0, 2.0, 3.0]
        assert ScalarValue(TypeKind.POOLED_STRING, PooledString(2, "x")).to_python() == "x"
        assert ScalarValue(TypeKind.POOLED_STRING, PooledString(2)).to_python() == 2


class TestStructValue:
    def test_set_known_element(self, codec):
        value = codec.decode("Vec3Struct", struct.pack("<3f", 1, 2, 3))

        value["y"] = ScalarValue(TypeKind.F32, 5.0)

        assert value["y"].value == 5.0
        assert "y" in value
        assert list(value) == ["x", "y", "z"]

    def test_unknown_element(self, codec):
        value = codec.decode("Vec3Struct", struct.pack("<3f", 1, 2, 3))
        with pytest.raises(KeyError):
            value["w"] = ScalarValue(TypeKind.F32, 5.0)

    def test_wrong_shape(self, codec):
        value = codec.decode("Vec3Struct", struct.pack("<3f", 1, 2, 3))
        with pytest.raises(ShapeMismatchError):
            value["x"] = ScalarValue(TypeKind.U32, 5)

    def test_without_descriptor_accepts_anything(self):
        value = StructValue()
        value["anything"] = RawValue(b"")
        assert value.names() == ["anything"]


class TestPropertyListValue:
    def test_access_by_int_or_hex(self, material):
        assert material[0xDEADBEEF] is material["0xdeadbeef"]
        assert "0xDEADBEEF" in material
        assert 0x12345678 not in material
        assert "not a key" not in material
        assert len(material) == 3

    def test_set_declared_key(self, material):
        material["0xDEADBEEF"] = ScalarValue(TypeKind.U32, 8)
        assert material[0xDEADBEEF].value == 8

    def test_declared_key_checks_shape(self, material):
        with pytest.raises(ShapeMismatchError):
            material[0xDEADBEEF] = ScalarValue(TypeKind.U8, 8)

    def test_undeclared_key_only_holds_raw(self, material):
        material[0x01020304] = RawValue(b"\xff")
        with pytest.raises(ShapeMismatchError):
            material[0x01020305] = ScalarValue(TypeKind.U8, 1)

    def test_invalid_key(self, material):
        with pytest.raises(ValueError):
            material["0x123"]

    def test_delete(self, material):
        del material[0xDEADBEEF]
        assert material.keys() == [0xCAFEBABE, 3]

    def test_drop_unknown(self, material):
        assert material.unknown_keys() == [0xCAFEBABE]

        dropped = material.drop_unknown()

        assert dropped == [0xCAFEBABE]
        assert material.keys() == [0xDEADBEEF, 3]

    def test_to_python(self, material):
        assert material.to_python() == {
            "0xDEADBEEF": 7,
            "0xCAFEBABE": {"raw": "00010203"},
            "0x00000003": [10, 20],
        }


class TestListValue:
    def test_append_checks_element(self, material):
        indices = material[3]

        indices.append(ScalarValue(TypeKind.U16, 30))

        assert [item.value for item in indices] == [10, 20, 30]
        with pytest.raises(ShapeMismatchError):
            indices.append(ScalarValue(TypeKind.U32, 40))

    def test_setitem_checks_element(self, material):
        indices = material[3]

        indices[0] = ScalarValue(TypeKind.U16, 11)

        assert indices[0].value == 11
        with pytest.raises(ShapeMismatchError):
            indices[1] = RawValue(b"\x00\x00")


class TestEnumValue:
    def test_select(self, codec, registry):
        value = codec.decode(registry.resolve_descriptor("BlendMode"), _u32(0))

        value.select("Masked")

        assert value.name == "Masked"
        assert value.value == 0x1234ABCD
        assert value.to_python() == "Masked"

    def test_select_unknown_name(self, codec, registry):
        value = codec.decode(registry.resolve_descriptor("BlendMode"), _u32(0))
        with pytest.raises(KeyError):
            value.select("Nope")

    def test_select_needs_descriptor(self, registry):
        value = EnumValue(registry.resolve_descriptor("BlendMode").values[0])
        with pytest.raises(ShapeMismatchError):
            value.select("Additive")


class TestCheckShape:
    def test_accepts_decoded_tree(self, codec, material):
        check_shape(codec.registry.resolve_descriptor("Material"), material)

    def test_struct_fields_must_match(self, registry):
        with pytest.raises(ShapeMismatchError, match="missing \\['z'\\]"):
            check_shape(
                registry.resolve_descriptor("Vec3Struct"),
                StructValue(
                    {"x": ScalarValue(TypeKind.F32, 0.0), "y": ScalarValue(TypeKind.F32, 0.0)}
                ),
            )

    def test_typedef_candidate(self, registry):
        variant = registry.resolve_descriptor("Material").properties[5].descriptor

        check_shape(variant, TypedefValue("u32", ScalarValue(TypeKind.U32, 1)))
        with pytest.raises(ShapeMismatchError):
            check_shape(variant, TypedefValue("u8", ScalarValue(TypeKind.U8, 1)))
        with pytest.raises(ShapeMismatchError):
            check_shape(variant, TypedefValue("u32", ScalarValue(TypeKind.U8, 1)))

    def test_list_items(self, registry):
        indices = registry.resolve_descriptor("Material").properties[3].descriptor
        with pytest.raises(ShapeMismatchError) as exc_info:
            check_shape(indices, ListValue([ScalarValue(TypeKind.U16, 1), RawValue(b"")]))

        assert exc_info.value.path == ("[1]",)

    def test_property_list_entries(self, registry):
        material = registry.resolve_descriptor("Material")
        with pytest.raises(ShapeMismatchError):
            check_shape(material, PropertyListValue({0xCAFEBABE: ScalarValue(TypeKind.U8, 1)}))

    def test_deep_tree_is_a_mismatch(self, registry):
        label = ScalarValue(TypeKind.POOLED_STRING, PooledString(0))
        node = StructValue({"label": label, "children": ListValue([])})
        for _ in range(300):
            label = ScalarValue(TypeKind.POOLED_STRING, PooledString(0))
            node = StructValue({"label": label, "children": ListValue([node])})

        with pytest.raises(ShapeMismatchError, match="deeper than") as exc_info:
            check_shape(registry.resolve_descriptor("Node"), node)

        assert len(exc_info.value.path) == MAX_SHAPE_DEPTH + 1
