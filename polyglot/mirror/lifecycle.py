"""
Mirror Service — Validation, creation, and re-synchronization of mirrors.

This is the main entry point for mirror operations. It coordinates the
host library system, the configuration store, and the tree reconciler.

## Usage from other modules:

    from polyglot.mirror.lifecycle import MirrorService

    service = MirrorService(host, store, sink=AuditWriter(audit_path))
    ok, message = service.validate_mirror_configuration(source_id, "/media/pt/movies")
    if ok:
        service.create_mirror(alternative_id, LibraryMirror(...))
    service.sync_all_mirrors(alternative_id)

Every configuration change is a self-contained store transaction; the
service never holds a configuration object across calls.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple

from ..host.base import LibraryHost
from ..models.config import LanguageAlternative, LibraryMirror, SyncStatus
from ..models.library import LibraryOptions, RefreshOptions, RefreshPriority, VirtualLibrary
from ..persistence.audit import AuditSink
from ..persistence.config_store import ConfigStore
from ..validation import (
    HostError,
    MirrorBusyError,
    MirrorOperationError,
    SyncCancelled,
    find_containing_path,
    has_path_traversal,
    is_nested_path,
    normalize_path,
)
from . import hardlink
from .classifier import PathClassifier
from .reconciler import ProgressCallback, SyncOutcome, TreeReconciler

logger = logging.getLogger(__name__)


class SyncAllStatus(str, Enum):
    COMPLETED = "Completed"
    ALTERNATIVE_NOT_FOUND = "AlternativeNotFound"
    CANCELLED = "Cancelled"


@dataclass
class SyncAllResult:
    """Aggregate result of synchronizing every mirror of one alternative."""

    status: SyncAllStatus
    total_mirrors: int = 0
    mirrors_synced: int = 0
    mirrors_failed: int = 0


@dataclass
class MirrorHealth:
    """Point-in-time health of one configured mirror."""

    mirror_id: str
    alternative_id: str
    alternative_name: str
    source_library_name: str
    target_library_name: str
    target_path: str
    status: SyncStatus
    last_synced_at: Optional[datetime]
    file_count: Optional[int]
    source_exists: bool
    target_exists: bool
    target_path_exists: bool
    last_error: Optional[str]

    def to_dict(self) -> Dict:
        return {
            "mirror_id": self.mirror_id,
            "alternative_id": self.alternative_id,
            "alternative_name": self.alternative_name,
            "source_library_name": self.source_library_name,
            "target_library_name": self.target_library_name,
            "target_path": self.target_path,
            "status": self.status.value,
            "last_synced_at": self.last_synced_at.isoformat() if self.last_synced_at else None,
            "file_count": self.file_count,
            "source_exists": self.source_exists,
            "target_exists": self.target_exists,
            "target_path_exists": self.target_path_exists,
            "last_error": self.last_error,
        }


def _split_language_code(code: str) -> Tuple[Optional[str], Optional[str]]:
    """'pt-BR' → ('pt', 'BR'); 'de' → ('de', None)."""
    if not code:
        return None, None
    parts = code.replace("_", "-").split("-", 1)
    language = parts[0].lower() or None
    country = parts[1].upper() if len(parts) > 1 and parts[1] else None
    return language, country


class MirrorService:
    """
    Orchestrates mirror lifecycle operations.

    At most one synchronization runs per mirror id; a concurrent request
    for the same mirror is rejected with MirrorBusyError.
    """

    def __init__(
        self,
        host: LibraryHost,
        store: ConfigStore,
        sink: Optional[AuditSink] = None,
        classifier: Optional[PathClassifier] = None,
    ):
        self.host = host
        self.store = store
        self.sink = sink
        self._classifier = classifier
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    # ─── Validation ─────────────────────────────────────────

    def validate_mirror_configuration(
        self,
        source_library_id: str,
        target_path: Optional[str],
    ) -> Tuple[bool, str]:
        """
        Check that a mirror can be created. Pure; safe to call repeatedly.

        Returns (is_valid, message). An unreachable host is reported as
        invalid rather than raised.
        """
        try:
            source = self.host.get_library(source_library_id)
        except HostError as e:
            return False, f"Cannot read host libraries: {e}"
        if source is None:
            return False, f"Source library {source_library_id} not found"

        if not source.locations:
            return False, f"Source library '{source.name}' has no paths configured"

        if target_path is None or not target_path.strip():
            return False, "Target path is required"

        target_path = target_path.strip()
        if has_path_traversal(target_path):
            return False, "Target path contains a directory traversal sequence"

        overlap = find_containing_path(target_path, source.locations)
        if overlap is None:
            overlap = next((loc for loc in source.locations if is_nested_path(loc, target_path)), None)
        if overlap is not None:
            return False, f"Target path overlaps the source library location '{overlap}'"

        return True, "Configuration is valid"

    # ─── Creation ───────────────────────────────────────────

    def create_mirror(
        self,
        alternative_id: str,
        mirror: LibraryMirror,
        progress: Optional[ProgressCallback] = None,
        cancel: Optional[threading.Event] = None,
    ) -> LibraryMirror:
        """
        Create a mirror end to end.

        1. Validate
        2. Register the target library with the host
        3. Resolve the new library id
        4. Populate it with the tree reconciler
        5. Queue a full metadata and image refresh
        6. Persist the mirror into its alternative

        Raises MirrorOperationError when the mirror cannot be created.
        A mirror that gets as far as being persisted keeps its Error status
        and last_error for inspection.
        """
        alternative = self.store.get_alternative(alternative_id)
        if alternative is None:
            raise MirrorOperationError(f"Language alternative {alternative_id} not found")

        for existing in alternative.mirrored_libraries:
            if existing.source_library_id == mirror.source_library_id and existing.id != mirror.id:
                raise MirrorOperationError(
                    f"Source library {mirror.source_library_id} is already mirrored "
                    f"for '{alternative.name}'"
                )

        try:
            valid, message = self.validate_mirror_configuration(mirror.source_library_id, mirror.target_path)
            if not valid:
                raise MirrorOperationError(message)
            source = self.host.get_library(mirror.source_library_id)
        except HostError as e:
            raise MirrorOperationError(f"Cannot read host libraries: {e}") from e
        if source is None:
            raise MirrorOperationError(f"Source library {mirror.source_library_id} not found")

        mirror = mirror.model_copy(deep=True)
        mirror.target_path = mirror.target_path.strip()
        mirror.source_library_name = mirror.source_library_name or source.name
        mirror.collection_type = mirror.collection_type or source.collection_type
        mirror.target_library_name = mirror.target_library_name or f"{source.name} ({alternative.name})"
        mirror.status = SyncStatus.PENDING
        self.store.save_mirror(alternative_id, mirror)

        logger.info(
            f"[mirror] Creating '{mirror.target_library_name}' at {mirror.target_path}",
            extra={"mirror_id": mirror.id},
        )

        with self._mirror_lock(mirror.id):
            try:
                Path(mirror.target_path).mkdir(parents=True, exist_ok=True)
            except OSError as e:
                self._fail_creation(alternative_id, mirror, f"Cannot create target directory: {e}")

            if mirror.target_library_id is None:
                try:
                    self.host.add_library(
                        mirror.target_library_name,
                        mirror.collection_type,
                        [mirror.target_path],
                        options=self._library_options(alternative, source),
                    )
                except HostError as e:
                    self._fail_creation(alternative_id, mirror, f"Failed to register library: {e}")

                target_id = self._resolve_target_library_id(mirror)
                if target_id is None:
                    self._fail_creation(
                        alternative_id, mirror,
                        f"Library '{mirror.target_library_name}' was not found after registration",
                    )
                mirror.target_library_id = target_id
                self.store.save_mirror(alternative_id, mirror)

            try:
                outcome = self._reconciler().synchronize(mirror, source.locations, progress, cancel)
            except SyncCancelled:
                self.store.save_mirror(alternative_id, mirror)
                raise

            if outcome.ok:
                try:
                    self.host.queue_refresh(
                        mirror.target_library_id,
                        RefreshOptions.full(),
                        RefreshPriority.LOW,
                    )
                except HostError as e:
                    logger.warning(
                        f"[mirror] Refresh request for '{mirror.target_library_name}' failed: {e}",
                        extra={"mirror_id": mirror.id},
                    )

            self.store.save_mirror(alternative_id, mirror)

        logger.info(
            f"[mirror] Created '{mirror.target_library_name}' ({mirror.status.value})",
            extra={"mirror_id": mirror.id},
        )
        return mirror

    def _fail_creation(self, alternative_id: str, mirror: LibraryMirror, error: str) -> None:
        mirror.mark_failed(error)
        self.store.save_mirror(alternative_id, mirror)
        logger.error(
            f"[mirror] Creating '{mirror.target_library_name}' failed: {error}",
            extra={"mirror_id": mirror.id},
        )
        raise MirrorOperationError(error)

    def _library_options(self, alternative: LanguageAlternative, source: VirtualLibrary) -> LibraryOptions:
        language, country = _split_language_code(alternative.language_code)
        return LibraryOptions(
            preferred_metadata_language=alternative.metadata_language or language
            or source.options.preferred_metadata_language,
            metadata_country_code=alternative.metadata_country or country
            or source.options.metadata_country_code,
        )

    def _resolve_target_library_id(self, mirror: LibraryMirror) -> Optional[str]:
        try:
            libraries = self.host.list_libraries()
        except HostError as e:
            logger.error(f"[mirror] Cannot list libraries after registration: {e}")
            return None
        for library in libraries:
            if library.name == mirror.target_library_name:
                return library.id
        target = normalize_path(mirror.target_path)
        for library in libraries:
            if any(normalize_path(loc) == target for loc in library.locations):
                return library.id
        return None

    # ─── Synchronization ────────────────────────────────────

    def sync_mirror(
        self,
        mirror_id: str,
        progress: Optional[ProgressCallback] = None,
        cancel: Optional[threading.Event] = None,
    ) -> SyncOutcome:
        """
        Re-synchronize one stored mirror and persist its new status.

        Raises MirrorOperationError if the mirror does not exist,
        MirrorBusyError if it is already syncing, SyncCancelled on cancel.
        """
        with self._mirror_lock(mirror_id):
            mirror = self.store.get_mirror(mirror_id)
            if mirror is None:
                raise MirrorOperationError(f"Mirror {mirror_id} not found")

            try:
                source = self.host.get_library(mirror.source_library_id)
            except HostError as e:
                return self._record_failure(mirror, f"Cannot read host libraries: {e}")
            if source is None:
                return self._record_failure(
                    mirror, f"Source library '{mirror.source_library_name}' not found"
                )

            self.store.update_mirror(mirror_id, lambda m: m.mark_syncing())
            try:
                return self._reconciler().synchronize(mirror, source.locations, progress, cancel)
            finally:
                self._persist_status(mirror)

    def sync_all_mirrors(
        self,
        alternative_id: str,
        progress: Optional[ProgressCallback] = None,
        cancel: Optional[threading.Event] = None,
    ) -> SyncAllResult:
        """Synchronize every mirror of an alternative; failures stay per mirror."""
        mirror_ids = self.store.read(
            lambda c: None if c.get_alternative(alternative_id) is None
            else [m.id for m in c.get_alternative(alternative_id).mirrored_libraries]
        )
        if mirror_ids is None:
            return SyncAllResult(status=SyncAllStatus.ALTERNATIVE_NOT_FOUND)

        result = SyncAllResult(status=SyncAllStatus.COMPLETED, total_mirrors=len(mirror_ids))
        total = len(mirror_ids)

        for index, mirror_id in enumerate(mirror_ids):
            if cancel is not None and cancel.is_set():
                result.status = SyncAllStatus.CANCELLED
                break

            def _scaled(value: float, _index: int = index) -> None:
                if progress is not None:
                    progress((_index * 100.0 + value) / total)

            try:
                outcome = self.sync_mirror(mirror_id, progress=_scaled, cancel=cancel)
            except SyncCancelled:
                result.status = SyncAllStatus.CANCELLED
                break
            except MirrorBusyError:
                logger.warning(
                    f"[mirror] Mirror {mirror_id} is already syncing, skipped",
                    extra={"mirror_id": mirror_id},
                )
                result.mirrors_failed += 1
                continue
            except MirrorOperationError as e:
                logger.info(
                    f"[mirror] Mirror {mirror_id} disappeared during batch: {e}",
                    extra={"mirror_id": mirror_id},
                )
                continue

            if outcome.ok:
                result.mirrors_synced += 1
            else:
                result.mirrors_failed += 1

        if progress is not None and result.status == SyncAllStatus.COMPLETED:
            progress(100.0)

        logger.info(
            f"[mirror] Alternative {alternative_id}: "
            f"{result.mirrors_synced}/{result.total_mirrors} mirrors synced",
            extra={"alternative_id": alternative_id},
        )
        return result

    def _record_failure(self, mirror: LibraryMirror, error: str) -> SyncOutcome:
        logger.error(
            f"[mirror] Cannot sync '{mirror.display_name}': {error}",
            extra={"mirror_id": mirror.id},
        )
        mirror.mark_failed(error)
        self._persist_status(mirror)
        if self.sink is not None:
            self.sink.append("sync_failed", level="error", details={"mirror_id": mirror.id, "error": error})
        return SyncOutcome(error=error)

    def _persist_status(self, mirror: LibraryMirror) -> None:
        def _copy(stored: LibraryMirror) -> None:
            stored.status = mirror.status
            stored.last_synced_at = mirror.last_synced_at
            stored.last_sync_file_count = mirror.last_sync_file_count
            stored.last_error = mirror.last_error

        if self.store.update_mirror(mirror.id, _copy) is None:
            logger.info(
                f"[mirror] Mirror {mirror.id} was removed during sync, status not saved",
                extra={"mirror_id": mirror.id},
            )

    # ─── Removal ────────────────────────────────────────────

    def delete_mirror(self, mirror_id: str, delete_files: bool = False) -> LibraryMirror:
        """
        Remove a mirror record, optionally deleting its target tree first.

        The host library itself is left for the caller to remove.
        """
        with self._mirror_lock(mirror_id):
            mirror = self.store.get_mirror(mirror_id)
            if mirror is None:
                raise MirrorOperationError(f"Mirror {mirror_id} not found")

            if delete_files:
                target = Path(mirror.target_path)
                try:
                    hardlink.remove(target)
                except OSError as e:
                    raise MirrorOperationError(f"Cannot delete mirror files at {target}: {e}") from e
                logger.info(f"[mirror] Deleted mirror files at {target}")

            self.store.remove_mirror(mirror_id)

        logger.info(
            f"[mirror] Removed mirror '{mirror.display_name}'",
            extra={"mirror_id": mirror.id},
        )
        if self.sink is not None:
            self.sink.append("mirror_deleted", details={
                "mirror_id": mirror_id,
                "delete_files": delete_files,
            })
        return mirror

    # ─── Status ─────────────────────────────────────────────

    def mirror_health(self) -> List[MirrorHealth]:
        """Report status and existence checks for every configured mirror."""
        existing = self.host.library_ids()
        config = self.store.snapshot()
        report = []
        for alternative, mirror in config.iter_mirrors():
            report.append(MirrorHealth(
                mirror_id=mirror.id,
                alternative_id=alternative.id,
                alternative_name=alternative.name,
                source_library_name=mirror.source_library_name,
                target_library_name=mirror.target_library_name,
                target_path=mirror.target_path,
                status=mirror.status,
                last_synced_at=mirror.last_synced_at,
                file_count=mirror.last_sync_file_count,
                source_exists=mirror.source_library_id in existing,
                target_exists=mirror.target_library_id is not None and mirror.target_library_id in existing,
                target_path_exists=bool(mirror.target_path) and Path(mirror.target_path).is_dir(),
                last_error=mirror.last_error,
            ))
        return report

    # ─── Internals ──────────────────────────────────────────

    def _reconciler(self) -> TreeReconciler:
        classifier = self._classifier or self.store.read(PathClassifier.from_config)
        return TreeReconciler(classifier, sink=self.sink)

    @contextmanager
    def _mirror_lock(self, mirror_id: str) -> Iterator[None]:
        with self._locks_guard:
            lock = self._locks.setdefault(mirror_id, threading.Lock())
        if not lock.acquire(blocking=False):
            raise MirrorBusyError(f"Mirror {mirror_id} is already being synchronized")
        try:
            yield
        finally:
            lock.release()
