"""Decode/encode round trips over whole assets."""

import struct
from concurrent.futures import ThreadPoolExecutor

import pytest

from asset_templates.codec import (
    BytesStringPool,
    ListStringPool,
    PooledString,
    PropertyCodec,
    RawValue,
    ScalarValue,
    StructValue,
    UnknownEnumValueError,
)
from asset_templates.config import AssetTemplatesConfig, CodecConfig
from asset_templates.schema import SchemaRegistry, TypeKind


def _u32(value: int) -> bytes:
    return struct.pack("<I", value)


def _u16(value: int) -> bytes:
    return struct.pack("<H", value)


def _entry(key: int, payload: bytes) -> bytes:
    return _u32(key) + _u32(len(payload)) + payload


def _vec3(x: float, y: float, z: float) -> bytes:
    return struct.pack("<3f", x, y, z)


def _material(*entries: bytes) -> bytes:
    return _u32(len(entries)) + b"".join(entries)


# A Material exercising every property type it declares, plus an undeclared key
FULL_MATERIAL = _material(
    _entry(0x00000008, _u32(1)),
    _entry(0xDEADBEEF, _u32(7)),
    _entry(0x00000001, _u32(0x1234ABCD)),
    _entry(0x00000002, _vec3(0.25, -1.0, 3.5)),
    _entry(0x00000003, _u32(3) + struct.pack("<3H", 1, 2, 65535)),
    _entry(0x00000004, b"\xde\xad"),
    _entry(0x00000005, _u32(0) + _vec3(9, 8, 7)),
    _entry(0x00000006, bytes(range(16))),
    _entry(0x00000007, b"\x01"),
    _entry(0x0BADF00D, b"opaque bytes"),
)


class TestScenarios:
    def test_vec3_struct(self):
        registry = SchemaRegistry.load(
            [
                {
                    "name": "Vec3Struct",
                    "type": "struct",
                    "elements": [
                        {"name": "x", "type": "f32"},
                        {"name": "y", "type": "f32"},
                        {"name": "z", "type": "f32"},
                    ],
                }
            ]
        )
        codec = PropertyCodec(
            registry,
            CodecConfig(
                endianness="little",
                list_count_width=4,
                property_count_width=4,
                typedef_discriminator_width=4,
            ),
        )
        data = struct.pack("<3f", 1.0, 2.0, 3.0)
        assert len(data) == 12

        value = codec.decode("Vec3Struct", data)

        assert isinstance(value, StructValue)
        assert value.to_python() == {"x": 1.0, "y": 2.0, "z": 3.0}
        assert codec.encode("Vec3Struct", value) == data

    def test_unknown_key_passthrough(self):
        registry = SchemaRegistry.load(
            [
                {
                    "name": "Props",
                    "type": "property_list",
                    "properties": {"0xDEADBEEF": {"type": "u32"}},
                }
            ]
        )
        codec = PropertyCodec(
            registry,
            CodecConfig(
                endianness="little",
                list_count_width=4,
                property_count_width=4,
                property_length_width=4,
                typedef_discriminator_width=4,
            ),
        )
        data = (
            _u32(2)
            + _u32(0xDEADBEEF) + _u32(4) + _u32(7)
            + _u32(0xCAFEBABE) + _u32(4) + bytes([0, 1, 2, 3])
        )

        value = codec.decode("Props", data)

        assert len(value) == 2
        assert value[0xDEADBEEF] == ScalarValue(TypeKind.U32, 7)
        assert value[0xCAFEBABE] == RawValue(bytes([0, 1, 2, 3]))
        assert codec.encode("Props", value) == data


class TestRoundTrip:
    def test_full_material(self, codec):
        pool = ListStringPool(["zero", "one"])

        value = codec.decode("Material", FULL_MATERIAL, strings=pool)

        assert codec.encode("Material", value, strings=pool) == FULL_MATERIAL

    def test_unframed(self, unframed_codec):
        data = (
            _u32(3)
            + _u32(0x00000007) + b"\x00"
            + _u32(0x00000003) + _u32(1) + b"\x05\x00"
            + _u32(0x00000005) + _u32(1) + _u32(12)
        )

        value = unframed_codec.decode("Material", data)

        assert unframed_codec.encode("Material", value) == data

    def test_nested_property_lists(self, codec):
        data = _material(
            _entry(0x00000011, _u32(1) + _vec3(0, 0, 0) + _vec3(1, 1, 1)),
            _entry(0x00000010, _material(_entry(0x00000007, b"\x00"))),
        )

        value = codec.decode("Mesh", data)

        assert codec.encode("Mesh", value) == data

    def test_self_referencing_tree(self, codec):
        leaf = _u32(2) + _u32(0)
        data = _u32(0) + _u32(2) + (_u32(1) + _u32(1) + leaf) + leaf

        assert codec.encode("Node", codec.decode("Node", data)) == data

    def test_nan_payload_survives(self, codec):
        data = struct.pack("<3I", 0x7FC00001, 0xFFFFFFFF, 0x80000000)
        assert codec.encode("Vec3Struct", codec.decode("Vec3Struct", data)) == data

    def test_type_id_mode(self, type_id_codec):
        data = _material(_entry(0x00000005, _u32(0x22222222) + _vec3(1, 2, 3)))
        value = type_id_codec.decode("Material", data)
        assert type_id_codec.encode("Material", value) == data

    def test_big_endian(self, registry, codec_config):
        codec = PropertyCodec(registry, codec_config.model_copy(update={"endianness": "big"}))
        data = struct.pack(">I", 1) + struct.pack(">II", 0xDEADBEEF, 4) + struct.pack(">I", 7)

        value = codec.decode("Material", data)

        assert value[0xDEADBEEF].value == 7
        assert codec.encode("Material", value) == data

    def test_reordered_struct_fields(self, codec):
        data = _vec3(1, 2, 3)
        value = codec.decode("Vec3Struct", data)

        value.fields = {name: value.fields[name] for name in ("z", "y", "x")}

        assert codec.encode("Vec3Struct", value) == data

    def test_edit_then_encode(self, codec):
        value = codec.decode("Material", FULL_MATERIAL)

        value[0xDEADBEEF].value = 8
        value[0x00000001].select("Opaque")
        dropped = value.drop_unknown()

        encoded = codec.encode("Material", value)
        reread = codec.decode("Material", encoded)

        assert dropped == [0x00000004, 0x0BADF00D]
        assert reread[0xDEADBEEF].value == 8
        assert reread[0x00000001].name == "Opaque"
        assert 0x0BADF00D not in reread


    def test_pooled_string_slices(self, slice_codec):
        pool = BytesStringPool(b"rootleaf")
        data = _material(
            _entry(0x00000008, _u32(0xFFFFFFFF) + _u32(5) + "caf\u00e9".encode("utf-8")),
        )
        node = _u32(4) + _u32(4) + _u32(0)

        material = slice_codec.decode("Material", data, strings=pool)
        tree = slice_codec.decode("Node", node, strings=pool)

        assert material[8].value.text == "caf\u00e9"
        assert tree["label"].value.text == "leaf"
        assert slice_codec.encode("Material", material) == data
        assert slice_codec.encode("Node", tree) == node

    def test_framed_typedef(self, framed_typedef_codec):
        data = _material(_entry(0x00000005, _u32(0x22222222) + _u16(12) + _vec3(1, 2, 3)))
        value = framed_typedef_codec.decode("Material", data)
        assert framed_typedef_codec.encode("Material", value) == data


class TestDefaultFormat:
    """Buffers in the format AssetTemplatesConfig describes out of the box."""

    @pytest.fixture
    def default_codec(self, registry, monkeypatch):
        for name in ("PROPERTY_COUNT_WIDTH", "PROPERTY_LENGTH_WIDTH", "TYPEDEF_LENGTH_WIDTH"):
            monkeypatch.delenv(f"ASSET_TEMPLATES_{name}", raising=False)
        return PropertyCodec(registry, AssetTemplatesConfig().codec_config())

    def test_material(self, default_codec):
        def entry(key: int, payload: bytes) -> bytes:
            return _u32(key) + _u16(len(payload)) + payload

        data = (
            _u16(4)
            + entry(0xDEADBEEF, _u32(7))
            + entry(0x00000003, _u32(2) + struct.pack("<2H", 10, 20))
            + entry(0x00000005, _u32(0x22222222) + _u16(12) + _vec3(1, 2, 3))
            + entry(0x00000008, _u32(0) + _u32(4))
        )

        value = default_codec.decode("Material", data)

        assert value[0xDEADBEEF].value == 7
        assert value[3].to_python() == [10, 20]
        assert value[5].type_name == "Vec3Struct"
        assert value[8].value == PooledString(0, None, 4)
        assert default_codec.encode("Material", value) == data


class TestEnumExhaustiveness:
    @pytest.mark.parametrize("token", [2, 3, 0x1234ABCC, 0xFFFFFFFF])
    def test_undeclared_tokens_fail(self, codec, token):
        with pytest.raises(UnknownEnumValueError):
            codec.decode("Material", _material(_entry(0x00000001, _u32(token))))


class TestConcurrency:
    def test_shared_codec_across_threads(self, codec):
        buffers = [
            _material(_entry(0xDEADBEEF, _u32(n)), _entry(0x00000002, _vec3(n, n, n)))
            for n in range(200)
        ]

        def round_trip(data: bytes) -> tuple[int, bool]:
            value = codec.decode("Material", data)
            return value[0xDEADBEEF].value, codec.encode("Material", value) == data

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(round_trip, buffers))

        assert results == [(n, True) for n in range(200)]
