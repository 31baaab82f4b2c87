"""Tests for fileward.utils.formatting."""

import pytest

from fileward.utils import format_mode, format_size, parse_mode


class TestFormatSize:

    @pytest.mark.parametrize("size,expected", [
        (0, "0.0 B"),
        (512, "512.0 B"),
        (1024, "1.0 KB"),
        (1536, "1.5 KB"),
        (5 * 1024 ** 2, "5.0 MB"),
        (3 * 1024 ** 3, "3.0 GB"),
        (1024 ** 5, "1.0 PB"),
    ])
    def test_units(self, size, expected):
        assert format_size(size) == expected

    def test_negative_clamped(self):
        assert format_size(-10) == "0.0 B"


class TestModes:

    def test_format_mode_pads_to_four_digits(self):
        assert format_mode(0o755) == "0755"
        assert format_mode(0o4755) == "4755"
        assert format_mode(0o100644) == "0644"

    @pytest.mark.parametrize("value,expected", [
        ("755", 0o755),
        ("0644", 0o644),
        ("0o700", 0o700),
        (" 600 ", 0o600),
        (0o640, 0o640),
        (0, 0),
        (0o7777, 0o7777),
    ])
    def test_parse_mode(self, value, expected):
        assert parse_mode(value) == expected

    @pytest.mark.parametrize("value", ["", "abc", "789", "0o", "77777", 0o10000, -1, True, 1.5, None])
    def test_parse_mode_rejects(self, value):
        with pytest.raises(ValueError):
            parse_mode(value)
