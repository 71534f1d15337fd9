"""
Post-scan task — Re-synchronize mirrors after the host scans its libraries.

New or removed files in a source library only reach the mirrors on the
next synchronization. The host (or a cron job via ``polyglot post-scan``)
calls this after each library scan.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import List, Optional

from ..mirror.lifecycle import MirrorService, SyncAllResult, SyncAllStatus
from ..mirror.reconciler import ProgressCallback
from ..validation import PolyglotError

logger = logging.getLogger(__name__)


@dataclass
class PostScanResult:
    skipped: bool = False
    alternatives: List[SyncAllResult] = field(default_factory=list)
    failed_alternatives: List[str] = field(default_factory=list)
    cancelled: bool = False

    @property
    def mirrors_synced(self) -> int:
        return sum(r.mirrors_synced for r in self.alternatives)

    @property
    def mirrors_failed(self) -> int:
        return sum(r.mirrors_failed for r in self.alternatives)


def run_post_scan_sync(
    service: MirrorService,
    progress: Optional[ProgressCallback] = None,
    cancel: Optional[threading.Event] = None,
) -> PostScanResult:
    """
    Sync every alternative that has mirrors, if enabled in configuration.

    Per-alternative errors are logged and collected; they never stop the
    remaining alternatives.
    """
    enabled, alternative_ids = service.store.read(lambda c: (
        c.sync_mirrors_after_library_scan,
        [a.id for a in c.language_alternatives if a.mirrored_libraries],
    ))

    result = PostScanResult()
    if not enabled:
        logger.info("[post-scan] Mirror sync after library scan is disabled")
        result.skipped = True
        if progress is not None:
            progress(100.0)
        return result

    total = len(alternative_ids)
    logger.info(f"[post-scan] Syncing mirrors for {total} language alternative(s)")

    for index, alternative_id in enumerate(alternative_ids):
        if cancel is not None and cancel.is_set():
            result.cancelled = True
            break

        def _scaled(value: float, _index: int = index) -> None:
            if progress is not None:
                progress((_index * 100.0 + value) / total)

        try:
            outcome = service.sync_all_mirrors(alternative_id, progress=_scaled, cancel=cancel)
        except PolyglotError as e:
            logger.error(f"[post-scan] Alternative {alternative_id} failed: {e}")
            result.failed_alternatives.append(alternative_id)
            continue

        result.alternatives.append(outcome)
        if outcome.status == SyncAllStatus.CANCELLED:
            result.cancelled = True
            break

    if progress is not None and not result.cancelled:
        progress(100.0)

    logger.info(
        f"[post-scan] Done: {result.mirrors_synced} synced, {result.mirrors_failed} failed"
    )
    return result
