"""
Filesystem helpers shared by the test modules.
"""

from __future__ import annotations

from pathlib import Path

SOURCE_ID = "lib-movies"
ALT_ID = "alt-pt"


def write(path: Path, content: str = "data") -> Path:
    """Create a file (and its parents) with the given content."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    return path


def listing(root: Path) -> set:
    """Every file and directory under root, as relative POSIX paths."""
    return {p.relative_to(root).as_posix() for p in root.rglob("*")}
