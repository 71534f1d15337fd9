"""
Orphan Reconciler — Drop mirrors whose source or target library is gone.

Run after the host reports a library removal (or on demand from the CLI).

## Rules

| Source library | Target library | Action                                   |
|----------------|----------------|------------------------------------------|
| missing        | any            | delete target_path, remove record        |
| present        | set, missing   | remove record only, files stay           |
| present        | present/unset  | untouched                                |

Each mirror is handled on its own: a deletion failure is logged and
recorded, and the remaining mirrors are still processed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Set

from ..host.base import LibraryHost
from ..models.config import LibraryMirror
from ..persistence.audit import AuditSink
from ..persistence.config_store import ConfigStore
from ..validation import HostError
from . import hardlink

logger = logging.getLogger(__name__)


@dataclass
class CleanupResult:
    """Aggregate result of one orphan cleanup pass."""

    total_cleaned: int = 0
    cleaned_up_mirrors: List[str] = field(default_factory=list)
    sources_without_mirrors: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "total_cleaned": self.total_cleaned,
            "cleaned_up_mirrors": list(self.cleaned_up_mirrors),
            "sources_without_mirrors": list(self.sources_without_mirrors),
            "errors": list(self.errors),
        }


class OrphanReconciler:
    """Removes mirror records (and, for deleted sources, files) left behind."""

    def __init__(self, host: LibraryHost, store: ConfigStore, sink: Optional[AuditSink] = None):
        self.host = host
        self.store = store
        self.sink = sink

    def cleanup_orphaned_mirrors(self) -> CleanupResult:
        result = CleanupResult()
        try:
            existing = self.host.library_ids()
        except HostError as e:
            # Nothing is removed while the host is unreachable
            message = f"Cannot read host libraries: {e}"
            logger.error(f"[cleanup] {message}")
            result.errors.append(message)
            return result

        candidates = self.store.read(lambda c: [m for _, m in c.iter_mirrors()])
        affected_sources: Set[str] = set()

        for mirror in candidates:
            if mirror.source_library_id not in existing:
                if self._remove_source_deleted(mirror, result):
                    affected_sources.add(mirror.source_library_id)
            elif mirror.target_library_id and mirror.target_library_id not in existing:
                if self._remove_record(mirror, "mirror deleted", result):
                    affected_sources.add(mirror.source_library_id)

        remaining = self.store.read(lambda c: {m.source_library_id for _, m in c.iter_mirrors()})
        result.sources_without_mirrors = sorted(affected_sources - remaining)

        if result.total_cleaned:
            logger.info(f"[cleanup] Removed {result.total_cleaned} orphaned mirror(s)")
        else:
            logger.debug("[cleanup] No orphaned mirrors")
        return result

    def _remove_source_deleted(self, mirror: LibraryMirror, result: CleanupResult) -> bool:
        target = Path(mirror.target_path) if mirror.target_path else None
        if target is not None and target.exists():
            try:
                hardlink.remove(target)
                logger.info(f"[cleanup] Deleted mirror directory {target}")
            except OSError as e:
                message = f"{mirror.display_name}: cannot delete {target}: {e}"
                logger.error(f"[cleanup] {message}")
                result.errors.append(message)
                self._emit("cleanup_failed", level="error", details={
                    "mirror_id": mirror.id,
                    "target_path": str(target),
                    "error": str(e),
                })
                return False

        return self._remove_record(mirror, "source deleted", result)

    def _remove_record(self, mirror: LibraryMirror, reason: str, result: CleanupResult) -> bool:
        if self.store.remove_mirror(mirror.id) is None:
            # Someone else removed it between snapshot and now
            return False

        description = f"{mirror.display_name} ({reason})"
        result.total_cleaned += 1
        result.cleaned_up_mirrors.append(description)
        logger.info(f"[cleanup] Removed mirror {description}")
        self._emit("mirror_cleaned", details={
            "mirror_id": mirror.id,
            "source_library_id": mirror.source_library_id,
            "target_library_id": mirror.target_library_id,
            "reason": reason,
        })
        return True

    def _emit(self, event_type: str, level: str = "info", details: Optional[dict] = None) -> None:
        if self.sink is not None:
            self.sink.append(event_type, level=level, details=details)
