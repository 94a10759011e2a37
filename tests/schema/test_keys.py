"""Tests for asset_templates.schema.keys -- hashed key parsing and formatting."""

import pytest

from asset_templates.schema.keys import coerce_key, format_hex_key, is_hex_key, parse_hex_key


class TestParseHexKey:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("0xDEADBEEF", 0xDEADBEEF),
            ("0xdeadbeef", 0xDEADBEEF),
            ("0XCAFEBABE", 0xCAFEBABE),
            ("0x00000000", 0),
        ],
    )
    def test_parses_eight_hex_digits(self, text, expected):
        assert parse_hex_key(text) == expected

    @pytest.mark.parametrize("text", ["0xDEADBEE", "0xDEADBEEF0", "DEADBEEF", "0xGGGGGGGG", ""])
    def test_rejects_malformed(self, text):
        assert not is_hex_key(text)
        with pytest.raises(ValueError):
            parse_hex_key(text)

    def test_rejects_non_string(self):
        with pytest.raises(ValueError, match="expected a hashed key string"):
            parse_hex_key(0xDEADBEEF)


class TestFormatHexKey:
    def test_canonical_form(self):
        assert format_hex_key(0xDEADBEEF) == "0xDEADBEEF"
        assert format_hex_key(7) == "0x00000007"


class TestCoerceKey:
    def test_accepts_int_and_hex(self):
        assert coerce_key(0xCAFEBABE) == 0xCAFEBABE
        assert coerce_key("0xcafebabe") == 0xCAFEBABE

    def test_rejects_out_of_range(self):
        with pytest.raises(ValueError):
            coerce_key(1 << 32)
        with pytest.raises(ValueError):
            coerce_key(-1)

    def test_rejects_bool(self):
        with pytest.raises(TypeError):
            coerce_key(True)
