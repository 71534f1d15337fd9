"""
Static Host — Library registry held in memory or in a YAML file.

Used for offline operation (a hand-maintained list of libraries) and in
tests. Refresh requests are recorded rather than executed.

## YAML format

    libraries:
      - id: 3f2a...
        name: Movies
        collection_type: movies
        locations: [/media/movies]
        options:
          preferred_metadata_language: en
          metadata_country_code: US
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional
from uuid import uuid4

import yaml

from ..models.library import LibraryOptions, RefreshOptions, RefreshPriority, VirtualLibrary
from ..validation import HostError
from .base import LibraryHost

logger = logging.getLogger(__name__)


@dataclass
class RefreshRequest:
    """A refresh the engine asked the host to perform."""

    library_id: str
    options: RefreshOptions
    priority: RefreshPriority


class StaticLibraryHost(LibraryHost):
    """
    In-process host registry.

    When ``path`` is set, the registry is loaded from and saved back to
    that YAML file.
    """

    supported_version = "static-1"

    def __init__(
        self,
        libraries: Optional[Iterable[VirtualLibrary]] = None,
        path: Optional[Path] = None,
    ):
        self.path = path
        self._lock = threading.Lock()
        self._libraries: List[VirtualLibrary] = list(libraries or [])
        self.refresh_requests: List[RefreshRequest] = []

        if path is not None and path.exists():
            self._libraries = self._read_file(path)

    @property
    def name(self) -> str:
        return "static"

    def list_libraries(self) -> List[VirtualLibrary]:
        with self._lock:
            return [library.model_copy(deep=True) for library in self._libraries]

    def add_library(
        self,
        name: str,
        collection_type: Optional[str],
        paths: Iterable[str],
        options: Optional[LibraryOptions] = None,
        refresh_library: bool = False,
    ) -> None:
        with self._lock:
            if any(library.name == name for library in self._libraries):
                raise HostError(f"A library named '{name}' already exists")
            library = VirtualLibrary(
                id=uuid4().hex,
                name=name,
                collection_type=collection_type,
                locations=list(paths),
                options=options or LibraryOptions(),
            )
            self._libraries.append(library)
            self._persist()
        logger.info(f"Registered library '{name}' ({library.id})")

    def remove_library(self, library_id: str) -> bool:
        """Drop a library, as if it had been deleted in the host UI."""
        with self._lock:
            before = len(self._libraries)
            self._libraries = [lib for lib in self._libraries if lib.id != library_id]
            removed = len(self._libraries) != before
            if removed:
                self._persist()
            return removed

    def queue_refresh(
        self,
        library_id: str,
        options: RefreshOptions,
        priority: RefreshPriority = RefreshPriority.NORMAL,
    ) -> None:
        self.refresh_requests.append(RefreshRequest(library_id, options, priority))
        logger.debug(f"Refresh queued for {library_id} ({priority.value})")

    # ─── File backing ───────────────────────────────────────

    @staticmethod
    def _read_file(path: Path) -> List[VirtualLibrary]:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        return [VirtualLibrary(**entry) for entry in data.get("libraries", [])]

    def _persist(self) -> None:
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = {"libraries": [lib.model_dump(mode="json") for lib in self._libraries]}
        self.path.write_text(
            yaml.dump(data, default_flow_style=False, sort_keys=False, allow_unicode=True),
            encoding="utf-8",
        )
