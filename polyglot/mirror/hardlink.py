"""
Hardlink primitives — link, compare, and remove mirror entries.

Every function here touches a single path and reports failure through its
return value, so a bad file never aborts a whole tree walk.
"""

from __future__ import annotations

import errno
import logging
import os
import shutil
from pathlib import Path

logger = logging.getLogger(__name__)


def safe_hardlink(source: Path, target: Path) -> bool:
    """Create a hardlink with proper error handling.

    Returns True on success, False on failure.
    Handles cross-device links (EXDEV) and permission errors (EACCES) gracefully.
    """
    try:
        os.link(source, target)
        return True
    except OSError as e:
        if e.errno == errno.EXDEV:
            logger.error(
                f"Cannot hardlink '{source}' -> '{target}': source and target are on different "
                "filesystems. The mirror root must live on the same filesystem as the library."
            )
        elif e.errno in (errno.EACCES, errno.EPERM):
            logger.error(
                f"Permission denied creating hardlink '{source}' -> '{target}'. "
                "Check file permissions and ownership."
            )
        elif e.errno == errno.EEXIST:
            logger.warning(f"Target file already exists: '{target}'")
        elif e.errno == errno.ENOENT:
            logger.error(f"Source file not found: '{source}'")
        else:
            logger.error(f"Failed to create hardlink '{source}' -> '{target}': {e}")
        return False


def files_match(source_stat: os.stat_result, target_stat: os.stat_result) -> bool:
    """Return True when size and modification time are identical.

    Hardlinked files share one inode and therefore always match; a touched
    or replaced source shows up as a timestamp or size difference.
    """
    return (
        source_stat.st_size == target_stat.st_size
        and source_stat.st_mtime_ns == target_stat.st_mtime_ns
    )


def relink(source: Path, target: Path) -> bool:
    """Replace an existing target entry with a fresh hardlink to source."""
    try:
        target.unlink()
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.error(f"Cannot remove outdated mirror file '{target}': {e}")
        return False
    return safe_hardlink(source, target)


def remove(path: Path) -> None:
    """Remove a file, symlink, or directory tree."""
    if path.is_symlink() or path.is_file():
        path.unlink()
    elif path.is_dir():
        shutil.rmtree(path)


def remove_empty_dir(path: Path) -> bool:
    """Remove a directory only if it is empty. Returns True if removed."""
    try:
        path.rmdir()
        return True
    except OSError as e:
        if e.errno not in (errno.ENOTEMPTY, errno.EEXIST, errno.ENOENT):
            logger.warning(f"Cannot remove empty directory '{path}': {e}")
        return False
