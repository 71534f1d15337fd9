"""
Tests for validation module.
"""

import os

import pytest

from polyglot.validation import (
    ConfigurationError,
    MirrorSyncError,
    PolyglotError,
    ValidationError,
    find_containing_path,
    has_path_traversal,
    is_nested_path,
    split_path,
)


class TestValidationError:
    """Tests for ValidationError exception."""

    def test_basic_message(self):
        """Error with just a message."""
        err = ValidationError("Something went wrong")
        assert str(err) == "Something went wrong"

    def test_message_with_field(self):
        """Error with field and message."""
        err = ValidationError("is required", field="target_path")
        assert str(err) == "target_path: is required"

    def test_message_with_details(self):
        """Error with extra details."""
        err = ValidationError("failed", details={"code": 123})
        assert err.details == {"code": 123}

    def test_hierarchy(self):
        assert issubclass(ValidationError, PolyglotError)
        assert issubclass(ConfigurationError, PolyglotError)

    def test_sync_error_keeps_path(self, tmp_path):
        err = MirrorSyncError("unreadable", path=tmp_path)
        assert err.path == tmp_path
        assert str(err) == "unreadable"


class TestPathTraversal:
    """Tests for has_path_traversal."""

    @pytest.mark.parametrize("path", [
        "..",
        "../movies",
        "/media/../etc",
        "/media/pt/..",
        "C:\\media\\..\\windows",
        "/media//..//etc",
    ])
    def test_detects_parent_segments(self, path):
        assert has_path_traversal(path)

    @pytest.mark.parametrize("path", [
        "/media/pt/movies",
        "/media/Movies..PT",
        "/media/...",
        "relative/path",
        "/media/.hidden",
    ])
    def test_plain_paths(self, path):
        assert not has_path_traversal(path)

    def test_split_path_drops_empty_segments(self):
        assert split_path("/media//pt\\movies/") == ["media", "pt", "movies"]


class TestNestedPaths:
    """Tests for is_nested_path and find_containing_path."""

    def test_same_path(self, tmp_path):
        assert is_nested_path(str(tmp_path), str(tmp_path))

    def test_child(self, tmp_path):
        assert is_nested_path(str(tmp_path / "a" / "b"), str(tmp_path))

    def test_trailing_separator(self, tmp_path):
        assert is_nested_path(str(tmp_path / "a"), str(tmp_path) + os.sep)

    def test_sibling_with_common_prefix(self, tmp_path):
        assert not is_nested_path(str(tmp_path / "movies-pt"), str(tmp_path / "movies"))

    def test_parent_is_not_nested(self, tmp_path):
        assert not is_nested_path(str(tmp_path), str(tmp_path / "a"))

    def test_find_containing_path(self, tmp_path):
        candidates = [str(tmp_path / "tv"), str(tmp_path / "movies")]
        assert find_containing_path(str(tmp_path / "movies" / "pt"), candidates) == candidates[1]
        assert find_containing_path(str(tmp_path / "music"), candidates) is None
