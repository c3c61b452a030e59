"""Tests for configuration string decoding."""

import pytest

from bamfilter.core import ConfigurationError
from bamfilter.processing import config_codec as codec


class TestFields:
    """Splitting and joining of ``;``-separated fields."""

    def test_missing_configuration_is_invalid(self):
        """None is not an empty configuration."""
        with pytest.raises(ConfigurationError):
            codec.split_fields(None)

    def test_empty_configuration_has_no_fields(self):
        assert codec.split_fields("") == []
        assert codec.split_fields("   ") == []

    def test_split_and_join(self):
        fields = codec.split_fields("1;true;[2,3]")
        assert fields == ["1", "true", "[2,3]"]
        assert codec.join_fields(fields) == "1;true;[2,3]"


class TestScalars:
    """Integer, float and boolean fields."""

    def test_integers(self):
        assert codec.decode_int("12") == 12
        assert codec.decode_int(" -3 ") == -3
        assert codec.decode_int("+7") == 7

    @pytest.mark.parametrize("text", ["", "1.5", "abc", "0x10", "1 2"])
    def test_malformed_integers(self, text):
        with pytest.raises(ConfigurationError):
            codec.decode_int(text)

    def test_integer_range(self):
        assert codec.decode_int("255", 0, 255) == 255
        with pytest.raises(ConfigurationError):
            codec.decode_int("256", 0, 255)
        with pytest.raises(ConfigurationError):
            codec.decode_int("-1", 0, 255)

    def test_floats(self):
        assert codec.decode_float("2.5") == 2.5
        assert codec.decode_float("3") == 3.0

    @pytest.mark.parametrize("text", ["nan", "inf", "-inf", "two"])
    def test_non_finite_floats_are_rejected(self, text):
        with pytest.raises(ConfigurationError):
            codec.decode_float(text)

    def test_float_range(self):
        with pytest.raises(ConfigurationError):
            codec.decode_float("16.5", 0.0, 16.0)

    def test_booleans(self):
        assert codec.decode_bool("true") is True
        assert codec.decode_bool("FALSE") is False
        with pytest.raises(ConfigurationError):
            codec.decode_bool("yes")

    def test_float_encoding_round_trips(self):
        assert codec.decode_float(codec.encode_float(0.1)) == 0.1


class TestLists:
    """Bracketed list fields."""

    def test_empty_list(self):
        assert codec.decode_int_list("[]") == []
        assert codec.decode_int_list("[ ]") == []

    def test_values(self):
        assert codec.decode_int_list("[1, 2,3]") == [1, 2, 3]

    @pytest.mark.parametrize("text", ["1,2", "[1,2", "1,2]", "[1,,2]", "[a]"])
    def test_malformed_lists(self, text):
        with pytest.raises(ConfigurationError):
            codec.decode_int_list(text)

    def test_list_range_applies_to_every_item(self):
        with pytest.raises(ConfigurationError):
            codec.decode_int_list("[0,256]", 0, 255)

    def test_signed_colors_are_normalized(self):
        """Colors written as signed 32-bit integers decode to ARGB words."""
        assert codec.decode_color_list("[-1,255]") == [0xFFFFFFFF, 0xFF]

    def test_encode_list(self):
        assert codec.encode_int_list([3, 1]) == "[3,1]"
        assert codec.encode_int_list([]) == "[]"


class TestPathEscaping:
    """Free-text fields that may contain the separator."""

    def test_separator_is_escaped(self):
        escaped = codec.escape_path("dir;name%1.bam")
        assert ";" not in escaped
        assert codec.unescape_path(escaped) == "dir;name%1.bam"

    def test_plain_paths_are_unchanged(self):
        assert codec.escape_path("/tmp/a.bam") == "/tmp/a.bam"
