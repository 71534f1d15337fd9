"""
Tree Reconciler — Converge a mirror's target tree to the filtered source tree.

For every qualifying source file the target holds a hardlink at the same
relative path. Qualifying target files without a source counterpart are
removed afterwards, as are links to sources that have since become
excluded. Directories emptied by that pruning go with them.

## Usage

    reconciler = TreeReconciler(PathClassifier(), sink=MemorySink())
    outcome = reconciler.synchronize(mirror, ["/media/movies"], progress=print)
    mirror.status  # Synced or Error

Per-file failures are logged and counted; only an unreadable source root
or an uncreatable target root aborts a run.
"""

from __future__ import annotations

import logging
import os
import stat
import threading
from dataclasses import dataclass, field
from pathlib import Path, PurePath
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple

from ..models.config import LibraryMirror
from ..persistence.audit import AuditSink
from ..validation import MirrorSyncError, SyncCancelled
from . import hardlink
from .classifier import PathClassifier

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]


@dataclass
class SyncOutcome:
    """Statistics for one synchronization run."""

    files_total: int = 0
    files_linked: int = 0
    files_updated: int = 0
    files_unchanged: int = 0
    files_failed: int = 0
    files_removed: int = 0
    dirs_removed: int = 0
    error: Optional[str] = None

    @property
    def files_mirrored(self) -> int:
        """Qualifying files present in the target after the run."""
        return self.files_linked + self.files_updated + self.files_unchanged

    @property
    def ok(self) -> bool:
        return self.error is None

    def summary(self) -> str:
        return (
            f"{self.files_total} files, {self.files_linked} linked, "
            f"{self.files_updated} updated, {self.files_removed} removed, "
            f"{self.files_failed} failed"
        )


@dataclass
class _Plan:
    """Qualifying source files keyed by relative path."""

    files: List[Tuple[Path, PurePath]] = field(default_factory=list)
    seen: Set[PurePath] = field(default_factory=set)
    dirs: Set[PurePath] = field(default_factory=set)

    def add(self, source: Path, rel: PurePath) -> bool:
        if rel in self.seen:
            return False
        self.seen.add(rel)
        self.files.append((source, rel))
        for parent in rel.parents:
            if parent != PurePath("."):
                self.dirs.add(parent)
        return True


def _check_cancel(cancel: Optional[threading.Event]) -> None:
    if cancel is not None and cancel.is_set():
        raise SyncCancelled("Synchronization cancelled")


def _is_mirror_link(path: Path, rel: PurePath, source_roots: List[Path]) -> bool:
    """True if ``path`` is a hardlink to the source file at the same relative path."""
    try:
        target_stat = os.lstat(path)
    except OSError:
        return False
    if not stat.S_ISREG(target_stat.st_mode):
        return False

    counterpart_found = False
    for root in source_roots:
        try:
            source_stat = os.lstat(root / rel)
        except OSError:
            continue
        counterpart_found = True
        if (source_stat.st_ino, source_stat.st_dev) == (target_stat.st_ino, target_stat.st_dev):
            return True

    # Source moved away but the inode is still shared with it
    return not counterpart_found and target_stat.st_nlink > 1


class TreeReconciler:
    """Hardlink-based one-way tree synchronizer."""

    def __init__(self, classifier: Optional[PathClassifier] = None, sink: Optional[AuditSink] = None):
        self.classifier = classifier or PathClassifier()
        self.sink = sink

    def synchronize(
        self,
        mirror: LibraryMirror,
        source_paths: Iterable[str],
        progress: Optional[ProgressCallback] = None,
        cancel: Optional[threading.Event] = None,
    ) -> SyncOutcome:
        """
        Synchronize one mirror and record the result on it.

        The mirror moves to Syncing, then to Synced or Error. Cancellation
        marks it Error and re-raises SyncCancelled; links already made stay.
        """
        mirror.mark_syncing()
        roots = [Path(p) for p in source_paths]
        target_root = Path(mirror.target_path)

        logger.info(
            f"[mirror] Syncing '{mirror.display_name}' → {target_root}",
            extra={"mirror_id": mirror.id},
        )
        self._emit("sync_start", details={
            "mirror_id": mirror.id,
            "sources": [str(r) for r in roots],
            "target": str(target_root),
        })

        try:
            outcome = self.reconcile(roots, target_root, progress=progress, cancel=cancel)
        except SyncCancelled:
            mirror.mark_failed("Synchronization cancelled")
            logger.warning(
                f"[mirror] Sync of '{mirror.display_name}' cancelled",
                extra={"mirror_id": mirror.id},
            )
            self._emit("sync_cancelled", level="warning", details={"mirror_id": mirror.id})
            raise
        except MirrorSyncError as e:
            mirror.mark_failed(str(e))
            logger.error(
                f"[mirror] Sync of '{mirror.display_name}' failed: {e}",
                extra={"mirror_id": mirror.id},
            )
            self._emit("sync_failed", level="error", details={
                "mirror_id": mirror.id,
                "error": str(e),
            })
            return SyncOutcome(error=str(e))

        mirror.mark_synced(outcome.files_mirrored)
        logger.info(
            f"[mirror] '{mirror.display_name}' synced: {outcome.summary()}",
            extra={"mirror_id": mirror.id},
        )
        self._emit("sync_end", details={
            "mirror_id": mirror.id,
            "files_total": outcome.files_total,
            "files_linked": outcome.files_linked,
            "files_updated": outcome.files_updated,
            "files_removed": outcome.files_removed,
            "files_failed": outcome.files_failed,
        })
        return outcome

    def reconcile(
        self,
        source_roots: List[Path],
        target_root: Path,
        progress: Optional[ProgressCallback] = None,
        cancel: Optional[threading.Event] = None,
    ) -> SyncOutcome:
        """Run the walk/link/prune passes without touching mirror status."""
        if not source_roots:
            raise MirrorSyncError("Source library has no locations")

        for root in source_roots:
            if not root.is_dir():
                raise MirrorSyncError(f"Source directory '{root}' does not exist", path=root)

        try:
            target_root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise MirrorSyncError(
                f"Cannot create target directory '{target_root}': {e}", path=target_root
            ) from e

        plan = _Plan()
        for root in source_roots:
            self._collect(root, root, plan, cancel, is_root=True)

        outcome = SyncOutcome(files_total=len(plan.files))
        total = len(plan.files)

        for index, (source, rel) in enumerate(plan.files, start=1):
            _check_cancel(cancel)
            self._apply(source, target_root / rel, outcome)
            if progress is not None:
                progress(100.0 if index == total else index * 100.0 / total)

        if total == 0 and progress is not None:
            progress(100.0)

        self._remove_stray(target_root, target_root, source_roots, plan, outcome, cancel)
        return outcome

    # ─── Walk ───────────────────────────────────────────────

    def _collect(
        self,
        directory: Path,
        root: Path,
        plan: _Plan,
        cancel: Optional[threading.Event],
        is_root: bool = False,
    ) -> None:
        try:
            with os.scandir(directory) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as e:
            if is_root:
                raise MirrorSyncError(f"Cannot read source directory '{directory}': {e}", path=directory) from e
            logger.warning(f"Cannot read source directory '{directory}': {e}")
            return

        for entry in entries:
            _check_cancel(cancel)
            try:
                if entry.is_symlink():
                    logger.debug(f"Skipping symlink '{entry.path}'")
                    continue
                is_dir = entry.is_dir(follow_symlinks=False)
                is_file = entry.is_file(follow_symlinks=False)
            except OSError as e:
                logger.warning(f"Cannot inspect '{entry.path}': {e}")
                continue

            if is_dir:
                if self.classifier.should_exclude_directory(entry.path):
                    logger.debug(f"Skipping excluded directory '{entry.path}'")
                    continue
                self._collect(Path(entry.path), root, plan, cancel)
            elif is_file:
                if not self.classifier.should_hardlink(entry.path, root):
                    continue
                source = Path(entry.path)
                rel = PurePath(os.path.relpath(entry.path, root))
                if not plan.add(source, rel):
                    logger.warning(f"Duplicate relative path '{rel}' from '{root}', keeping first")

    # ─── Link ───────────────────────────────────────────────

    def _apply(self, source: Path, target: Path, outcome: SyncOutcome) -> None:
        try:
            source_stat = source.stat()
        except OSError as e:
            logger.warning(f"Cannot stat source file '{source}': {e}")
            outcome.files_failed += 1
            return

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"Cannot create directory '{target.parent}': {e}")
            outcome.files_failed += 1
            return

        try:
            target_stat = os.lstat(target)
        except FileNotFoundError:
            target_stat = None
        except OSError as e:
            logger.warning(f"Cannot stat mirror file '{target}': {e}")
            outcome.files_failed += 1
            return

        if target_stat is None:
            if hardlink.safe_hardlink(source, target):
                logger.debug(f"Linked '{target}'")
                outcome.files_linked += 1
            else:
                outcome.files_failed += 1
            return

        if stat.S_ISDIR(target_stat.st_mode):
            # A directory sits where a file belongs
            try:
                hardlink.remove(target)
            except OSError as e:
                logger.error(f"Cannot replace directory '{target}' with a file: {e}")
                outcome.files_failed += 1
                return
            if hardlink.safe_hardlink(source, target):
                outcome.files_updated += 1
            else:
                outcome.files_failed += 1
            return

        if stat.S_ISREG(target_stat.st_mode) and hardlink.files_match(source_stat, target_stat):
            outcome.files_unchanged += 1
            return

        if hardlink.relink(source, target):
            logger.debug(f"Relinked '{target}'")
            outcome.files_updated += 1
        else:
            outcome.files_failed += 1

    # ─── Prune ──────────────────────────────────────────────

    def _remove_stray(
        self,
        directory: Path,
        target_root: Path,
        source_roots: List[Path],
        plan: _Plan,
        outcome: SyncOutcome,
        cancel: Optional[threading.Event],
        excluded: bool = False,
    ) -> bool:
        """
        Prune one mirror directory. Returns True if anything beneath it was removed.

        Excluded files, and everything under excluded directories, are only
        removed when they are links an earlier run made to a source file;
        the rest is the host's own metadata.
        """
        try:
            with os.scandir(directory) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as e:
            logger.warning(f"Cannot read mirror directory '{directory}': {e}")
            return False

        removed = False
        for entry in entries:
            _check_cancel(cancel)
            path = Path(entry.path)
            rel = PurePath(os.path.relpath(entry.path, target_root))

            try:
                is_dir = entry.is_dir(follow_symlinks=False)
            except OSError:
                continue

            if is_dir:
                inside_excluded = excluded or self.classifier.should_exclude_directory(entry.path)
                emptied = self._remove_stray(
                    path, target_root, source_roots, plan, outcome, cancel, excluded=inside_excluded
                )
                if emptied and rel not in plan.dirs and hardlink.remove_empty_dir(path):
                    logger.debug(f"Removed empty directory '{path}'")
                    outcome.dirs_removed += 1
                    removed = True
                continue

            if rel in plan.seen:
                continue
            if excluded or not self.classifier.should_hardlink(entry.path, target_root):
                if not _is_mirror_link(path, rel, source_roots):
                    continue

            try:
                path.unlink()
                logger.info(f"Removed stray mirror file '{path}'")
                outcome.files_removed += 1
                removed = True
            except OSError as e:
                logger.warning(f"Cannot remove stray mirror file '{path}': {e}")

        return removed

    def _emit(self, event_type: str, level: str = "info", details: Optional[Dict] = None) -> None:
        if self.sink is not None:
            self.sink.append(event_type, level=level, details=details)
