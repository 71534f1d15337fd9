"""
Configuration Models — Pydantic schemas for persisted plugin configuration.

The configuration document (state/polyglot.json by default) is the single
source of truth for language alternatives and their library mirrors.
It is only ever mutated through the configuration store's transactions.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from ..mirror.classifier import DEFAULT_EXCLUDED_DIRECTORIES, DEFAULT_EXCLUDED_EXTENSIONS


def _new_id() -> str:
    return str(uuid4())


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SyncStatus(str, Enum):
    """Synchronization state of a single mirror."""

    PENDING = "Pending"
    SYNCING = "Syncing"
    SYNCED = "Synced"
    ERROR = "Error"


class LibraryMirror(BaseModel):
    """One source-library → target-path mirroring relationship."""

    id: str = Field(default_factory=_new_id)
    source_library_id: str
    source_library_name: str = ""
    target_path: str
    target_library_id: Optional[str] = None
    target_library_name: str = ""
    collection_type: Optional[str] = None

    status: SyncStatus = SyncStatus.PENDING
    last_synced_at: Optional[datetime] = None
    last_sync_file_count: Optional[int] = None
    last_error: Optional[str] = None

    @property
    def display_name(self) -> str:
        """Human-readable name for logs and cleanup reasons."""
        return self.target_library_name or self.source_library_name or self.id

    def mark_syncing(self) -> None:
        self.status = SyncStatus.SYNCING

    def mark_synced(self, file_count: int) -> None:
        self.status = SyncStatus.SYNCED
        self.last_synced_at = utc_now()
        self.last_sync_file_count = file_count
        self.last_error = None

    def mark_failed(self, error: str) -> None:
        self.status = SyncStatus.ERROR
        self.last_error = error


class LanguageAlternative(BaseModel):
    """A named language grouping that owns a list of mirrors."""

    id: str = Field(default_factory=_new_id)
    name: str
    language_code: str = ""
    metadata_language: Optional[str] = None
    metadata_country: Optional[str] = None
    destination_base_path: Optional[str] = None
    mirrored_libraries: List[LibraryMirror] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
    modified_at: Optional[datetime] = None

    def get_mirror(self, mirror_id: str) -> Optional[LibraryMirror]:
        for mirror in self.mirrored_libraries:
            if mirror.id == mirror_id:
                return mirror
        return None

    def has_source(self, source_library_id: str) -> bool:
        return any(m.source_library_id == source_library_id for m in self.mirrored_libraries)


class UserLanguageConfig(BaseModel):
    """Per-user language assignment (maintained by an external collaborator)."""

    user_id: str
    selected_alternative_id: Optional[str] = None
    manually_set: bool = False
    set_at: Optional[datetime] = None
    set_by: Optional[str] = None


class PluginConfiguration(BaseModel):
    """
    Complete plugin configuration.

    This is the root model persisted by the configuration store.
    """

    schema_version: int = 1
    language_alternatives: List[LanguageAlternative] = Field(default_factory=list)
    user_languages: List[UserLanguageConfig] = Field(default_factory=list)
    excluded_extensions: List[str] = Field(
        default_factory=lambda: sorted(DEFAULT_EXCLUDED_EXTENSIONS)
    )
    excluded_directories: List[str] = Field(
        default_factory=lambda: sorted(DEFAULT_EXCLUDED_DIRECTORIES)
    )
    sync_mirrors_after_library_scan: bool = True

    def get_alternative(self, alternative_id: str) -> Optional[LanguageAlternative]:
        for alternative in self.language_alternatives:
            if alternative.id == alternative_id:
                return alternative
        return None

    def find_mirror(self, mirror_id: str) -> tuple:
        """Return ``(alternative, mirror)`` for a mirror id, or ``(None, None)``."""
        for alternative in self.language_alternatives:
            mirror = alternative.get_mirror(mirror_id)
            if mirror is not None:
                return alternative, mirror
        return None, None

    def iter_mirrors(self):
        """Yield ``(alternative, mirror)`` pairs across all alternatives."""
        for alternative in self.language_alternatives:
            for mirror in alternative.mirrored_libraries:
                yield alternative, mirror
