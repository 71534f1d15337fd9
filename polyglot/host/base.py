"""
Host Base Class — Interface to the media server that owns the libraries.

The mirror engine only needs three things from the host: the list of
libraries, a way to register a new one, and a way to queue a refresh.
One adapter exists per supported host API version; the registry picks
one at startup.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterable, List, Optional, Set

from ..models.library import LibraryOptions, RefreshOptions, RefreshPriority, VirtualLibrary


class LibraryHost(ABC):
    """Abstract base class for host library adapters."""

    #: Host API version this adapter was written against.
    supported_version: str = ""

    @property
    @abstractmethod
    def name(self) -> str:
        """The adapter identifier (e.g., 'static', 'jellyfin')."""

    @abstractmethod
    def list_libraries(self) -> List[VirtualLibrary]:
        """Return every library currently registered on the host."""

    @abstractmethod
    def add_library(
        self,
        name: str,
        collection_type: Optional[str],
        paths: Iterable[str],
        options: Optional[LibraryOptions] = None,
        refresh_library: bool = False,
    ) -> None:
        """Register a new library. Raises HostError on failure."""

    @abstractmethod
    def queue_refresh(
        self,
        library_id: str,
        options: RefreshOptions,
        priority: RefreshPriority = RefreshPriority.NORMAL,
    ) -> None:
        """Queue a metadata/image refresh for a library."""

    def get_library(self, library_id: str) -> Optional[VirtualLibrary]:
        for library in self.list_libraries():
            if library.id == library_id:
                return library
        return None

    def library_ids(self) -> Set[str]:
        return {library.id for library in self.list_libraries()}
