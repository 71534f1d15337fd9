"""
Validation — Error types and path validation helpers.

Provides consistent validation patterns across the codebase. Mirror
configuration checks return ``(valid, message)`` tuples; the exceptions
below are raised for operational failures.

## Usage

    from polyglot.validation import has_path_traversal, is_nested_path

    if has_path_traversal(target_path):
        return False, "Target path contains a traversal sequence"
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Dict, Iterable, Optional

_SEPARATORS = re.compile(r"[\\/]+")


class PolyglotError(Exception):
    """Base class for all errors raised by the mirror engine."""
    pass


class ValidationError(PolyglotError):
    """Raised when validation fails."""

    def __init__(self, message: str, field: Optional[str] = None, details: Optional[Dict] = None):
        self.message = message
        self.field = field
        self.details = details or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        if self.field:
            return f"{self.field}: {self.message}"
        return self.message


class ConfigurationError(PolyglotError):
    """Raised when configuration is missing or invalid."""
    pass


class HostError(PolyglotError):
    """Raised when the host library system rejects or fails a request."""
    pass


class MirrorSyncError(PolyglotError):
    """Raised when a mirror cannot be synchronized at all (root-level I/O)."""

    def __init__(self, message: str, path: Optional[Path] = None):
        self.path = path
        super().__init__(message)


class MirrorOperationError(PolyglotError):
    """Raised when a lifecycle operation (create, delete) cannot complete."""
    pass


class MirrorBusyError(PolyglotError):
    """Raised when a mirror is already being synchronized."""
    pass


class SyncCancelled(PolyglotError):
    """Raised when a cooperative cancellation request is observed."""
    pass


def split_path(path: str) -> list:
    """Split a path on both separator styles, dropping empty segments."""
    return [part for part in _SEPARATORS.split(path) if part]


def has_path_traversal(path: str) -> bool:
    """
    Check whether a path contains a parent-directory segment.

    The check runs on the path as written: ``os.path.normpath`` silently
    collapses ``/media/../../etc`` to ``/etc``, which would hide the escape.
    """
    return ".." in split_path(path)


def normalize_path(path: str) -> str:
    """Normalize a path for comparison (absolute, collapsed, case-folded on Windows)."""
    return os.path.normcase(os.path.abspath(os.path.normpath(path)))


def is_nested_path(path: str, parent: str) -> bool:
    """Return True if ``path`` equals ``parent`` or lies beneath it."""
    child = normalize_path(path)
    base = normalize_path(parent)
    if child == base:
        return True
    return child.startswith(base.rstrip(os.sep) + os.sep)


def find_containing_path(path: str, candidates: Iterable[str]) -> Optional[str]:
    """Return the first candidate that contains ``path``, if any."""
    for candidate in candidates:
        if candidate and is_nested_path(path, candidate):
            return candidate
    return None
