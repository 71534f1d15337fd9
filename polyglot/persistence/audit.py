"""
Audit Ledger — Append-only sinks for mirror engine events.

The reconciler and orphan cleanup receive a sink explicitly instead of
writing to a process-wide buffer. Two implementations:

- AuditWriter: newline-delimited JSON on disk; events are never edited,
  only appended.
- MemorySink: keeps events in a list (tests, admin views).
"""

from __future__ import annotations

import json
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol
from uuid import uuid4


class AuditSink(Protocol):
    """Anything that accepts engine events."""

    def append(
        self,
        event_type: str,
        level: str = "info",
        details: Optional[Dict[str, Any]] = None,
    ) -> str:
        ...


def _build_entry(event_type: str, level: str, details: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    entry: Dict[str, Any] = {
        "ts_iso": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "event_id": f"E-{uuid4().hex[:8].upper()}",
        "level": level,
        "type": event_type,
    }
    if details is not None:
        entry["details"] = details
    return entry


class AuditWriter:
    """
    Append-only NDJSON audit ledger writer.

    Usage:
        audit = AuditWriter(Path("audit/ledger.ndjson"))
        audit.append("sync_start", details={"mirror_id": "..."})
    """

    def __init__(self, path: Path):
        self.path = path
        self._lock = threading.Lock()
        self._ensure_exists()

    def _ensure_exists(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if not self.path.exists():
            self.path.touch()

    def append(
        self,
        event_type: str,
        level: str = "info",
        details: Optional[Dict[str, Any]] = None,
    ) -> str:
        """
        Append an event.

        Args:
            event_type: Type of event (sync_start, sync_end, mirror_cleaned, etc.)
            level: Log level (info, warning, error)
            details: Additional event details

        Returns:
            Generated event_id
        """
        entry = _build_entry(event_type, level, details)
        line = json.dumps(entry, default=str) + "\n"

        with self._lock:
            with self.path.open("a", encoding="utf-8") as f:
                f.write(line)

        return entry["event_id"]

    def read_events(self) -> List[Dict[str, Any]]:
        """Read every event in the ledger."""
        events = []
        with self.path.open("r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if line:
                    events.append(json.loads(line))
        return events


class MemorySink:
    """In-memory event sink."""

    def __init__(self) -> None:
        self.events: List[Dict[str, Any]] = []
        self._lock = threading.Lock()

    def append(
        self,
        event_type: str,
        level: str = "info",
        details: Optional[Dict[str, Any]] = None,
    ) -> str:
        entry = _build_entry(event_type, level, details)
        with self._lock:
            self.events.append(entry)
        return entry["event_id"]

    def of_type(self, event_type: str) -> List[Dict[str, Any]]:
        return [e for e in self.events if e["type"] == event_type]
