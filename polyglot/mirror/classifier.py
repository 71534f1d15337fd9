"""
Path Classifier — Decide which files and directories take part in a mirror.

Exclusion-based: everything is hardlinked except language-specific
metadata (descriptor files and artwork) and a handful of cache/extra-art
directories. Unknown file types are mirrored unless explicitly excluded.
"""

from __future__ import annotations

import os
import re
from pathlib import PurePath
from typing import FrozenSet, Iterable, Optional, Union

DEFAULT_EXCLUDED_EXTENSIONS: FrozenSet[str] = frozenset({
    ".nfo",
    ".jpg",
    ".jpeg",
    ".png",
    ".gif",
    ".webp",
    ".tbn",
    ".bmp",
})

DEFAULT_EXCLUDED_DIRECTORIES: FrozenSet[str] = frozenset({
    "extrafanart",
    "extrathumbs",
    ".trickplay",
    "metadata",
    ".actors",
})

PathLike = Union[str, "os.PathLike[str]"]

_TRAILING_SEPARATORS = re.compile(r"[\\/]+$")


def _normalize_extension(ext: str) -> str:
    ext = ext.strip().lower()
    if ext and not ext.startswith("."):
        ext = "." + ext
    return ext


class PathClassifier:
    """
    Stateless include/exclude decisions for mirror content.

    Both name sets are matched case-insensitively. Passing ``None`` for
    either set selects the defaults.
    """

    def __init__(
        self,
        excluded_extensions: Optional[Iterable[str]] = None,
        excluded_directories: Optional[Iterable[str]] = None,
    ):
        if excluded_extensions is None:
            excluded_extensions = DEFAULT_EXCLUDED_EXTENSIONS
        if excluded_directories is None:
            excluded_directories = DEFAULT_EXCLUDED_DIRECTORIES

        self.excluded_extensions: FrozenSet[str] = frozenset(
            _normalize_extension(e) for e in excluded_extensions if e and e.strip()
        )
        self.excluded_directories: FrozenSet[str] = frozenset(
            d.strip().lower() for d in excluded_directories if d and d.strip()
        )

    @classmethod
    def from_config(cls, config) -> "PathClassifier":
        """Build a classifier from a PluginConfiguration."""
        return cls(config.excluded_extensions, config.excluded_directories)

    def should_hardlink(self, path: PathLike, root: Optional[PathLike] = None) -> bool:
        """
        Return True if the file at ``path`` belongs in the mirror.

        Ancestor directories are checked from the immediate parent upward.
        When ``root`` is given the walk stops there, so an excluded name in
        the library's own location (e.g. ``/srv/metadata/movies``) does not
        exclude the whole library.
        """
        if not path or not str(path).strip():
            return False

        pure = PurePath(path)
        if self._in_excluded_directory(pure, PurePath(root) if root else None):
            return False

        return pure.suffix.lower() not in self.excluded_extensions

    def should_exclude_directory(self, path: PathLike) -> bool:
        """Return True if the directory's own base name is excluded."""
        if not path or not str(path).strip():
            return False

        name = os.path.basename(_TRAILING_SEPARATORS.sub("", str(path)))
        return name.lower() in self.excluded_directories

    def _in_excluded_directory(self, path: PurePath, root: Optional[PurePath]) -> bool:
        for parent in path.parents:
            if root is not None and parent == root:
                break
            if parent.name.lower() in self.excluded_directories:
                return True
        return False
