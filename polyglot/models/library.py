"""
Library Models — Schemas for libraries observed on the host media server.
"""

from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class LibraryOptions(BaseModel):
    """Per-library options exposed by the host."""

    preferred_metadata_language: Optional[str] = None
    metadata_country_code: Optional[str] = None


class VirtualLibrary(BaseModel):
    """A library as listed by the host."""

    id: str
    name: str
    collection_type: Optional[str] = None
    locations: List[str] = Field(default_factory=list)
    options: LibraryOptions = Field(default_factory=LibraryOptions)


class RefreshMode(str, Enum):
    """How thoroughly the host should refresh metadata or images."""

    NONE = "None"
    VALIDATION_ONLY = "ValidationOnly"
    DEFAULT = "Default"
    FULL_REFRESH = "FullRefresh"


class RefreshPriority(str, Enum):
    LOW = "Low"
    NORMAL = "Normal"
    HIGH = "High"


class RefreshOptions(BaseModel):
    """Options for a queued metadata/image refresh."""

    metadata_refresh_mode: RefreshMode = RefreshMode.DEFAULT
    image_refresh_mode: RefreshMode = RefreshMode.DEFAULT
    replace_all_metadata: bool = False
    replace_all_images: bool = False

    @classmethod
    def full(cls) -> "RefreshOptions":
        """Full metadata and image refresh, replacing everything."""
        return cls(
            metadata_refresh_mode=RefreshMode.FULL_REFRESH,
            image_refresh_mode=RefreshMode.FULL_REFRESH,
            replace_all_metadata=True,
            replace_all_images=True,
        )


class LibraryInfo(BaseModel):
    """Read-only projection of a host library, flagged with mirror ownership."""

    id: str
    name: str
    collection_type: Optional[str] = None
    locations: List[str] = Field(default_factory=list)
    preferred_metadata_language: Optional[str] = None
    metadata_country_code: Optional[str] = None
    is_mirror: bool = False
    language_alternative_id: Optional[str] = None
