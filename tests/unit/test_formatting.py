"""Tests for memory size formatting."""

import pytest

from quota_notifier.utils import format_mb


class TestFormatMb:
    @pytest.mark.parametrize(
        "size_mb,expected",
        [
            (0, "0M"),
            (500, "500M"),
            (1023, "1023M"),
            (1024, "1G"),
            (1025, "1G"),
            (1536, "1G"),
            (2047, "1G"),
            (2048, "2G"),
            (10240, "10G"),
        ],
    )
    def test_format_mb(self, size_mb, expected):
        assert format_mb(size_mb) == expected

    def test_truncates_instead_of_rounding(self):
        """2047 MB is reported as 1G, never 2G."""
        assert format_mb(2047) == "1G"
