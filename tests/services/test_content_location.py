"""Tests for stored value location resolution."""

import pytest

from breakpad_server.services.content_location import (
    ContentKind,
    ContentLocation,
    resolve_content_location,
)


class TestResolveContentLocation:
    """Tests for resolve_content_location()."""

    def test_short_blob_is_path(self):
        """A blob at or under the threshold is read as a relative path."""
        location = resolve_content_location(b"2026-10-16.10.00.00.42.1/upload_file_minidump")

        assert location == ContentLocation.at_path("2026-10-16.10.00.00.42.1/upload_file_minidump")

    def test_blob_at_threshold_is_path(self):
        value = b"a" * 128

        location = resolve_content_location(value)

        assert location.kind == ContentKind.PATH
        assert location.path == "a" * 128

    def test_blob_over_threshold_is_inline(self):
        value = b"MDMP" + b"\x00" * 125

        location = resolve_content_location(value)

        assert location.kind == ContentKind.INLINE
        assert location.data == value

    def test_text_is_always_path(self):
        """Text values are paths regardless of their length."""
        value = "x" * 1000

        location = resolve_content_location(value)

        assert location.kind == ContentKind.PATH
        assert location.path == value

    @pytest.mark.parametrize("value", [None, b"", ""])
    def test_missing_values_are_absent(self, value):
        assert resolve_content_location(value).kind == ContentKind.ABSENT

    def test_short_undecodable_blob_is_absent(self):
        assert resolve_content_location(b"\xff\xfe\x00").kind == ContentKind.ABSENT

    def test_memoryview_treated_as_bytes(self):
        location = resolve_content_location(memoryview(b"abc/upload_file_minidump"))

        assert location.kind == ContentKind.PATH
        assert location.path == "abc/upload_file_minidump"

    def test_custom_threshold(self):
        value = b"x" * 20

        assert resolve_content_location(value, inline_path_max_length=10).kind == ContentKind.INLINE
        assert resolve_content_location(value, inline_path_max_length=20).kind == ContentKind.PATH

    def test_zero_threshold_makes_every_blob_inline(self):
        location = resolve_content_location(b"dir/file", inline_path_max_length=0)

        assert location.kind == ContentKind.INLINE
        assert location.data == b"dir/file"
