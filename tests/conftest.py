"""
Shared fixtures for mirror engine tests.

Provides a temporary media tree, a static host with one movie library
pointing at it, an in-memory configuration store with one language
alternative, and an in-memory audit sink.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from polyglot.host.static import StaticLibraryHost
from polyglot.mirror.lifecycle import MirrorService
from polyglot.mirror.orphans import OrphanReconciler
from polyglot.models.config import LanguageAlternative, LibraryMirror, PluginConfiguration
from polyglot.models.library import LibraryOptions, VirtualLibrary
from polyglot.persistence.audit import MemorySink
from polyglot.persistence.config_store import MemoryConfigStore
from polyglot.services import Services

from tests.helpers import ALT_ID, SOURCE_ID, write


@pytest.fixture
def media_dir(tmp_path: Path) -> Path:
    """Source library location with one film and its metadata."""
    root = tmp_path / "media" / "movies"
    write(root / "Heat (1995)" / "Heat (1995).mkv", "heat-video")
    write(root / "Heat (1995)" / "Heat (1995).nfo", "<movie/>")
    write(root / "Heat (1995)" / "poster.jpg", "jpeg")
    return root


@pytest.fixture
def mirror_dir(tmp_path: Path) -> Path:
    return tmp_path / "media" / "movies-pt"


@pytest.fixture
def host(media_dir: Path) -> StaticLibraryHost:
    return StaticLibraryHost([
        VirtualLibrary(
            id=SOURCE_ID,
            name="Movies",
            collection_type="movies",
            locations=[str(media_dir)],
            options=LibraryOptions(preferred_metadata_language="en", metadata_country_code="US"),
        ),
    ])


@pytest.fixture
def alternative() -> LanguageAlternative:
    return LanguageAlternative(id=ALT_ID, name="Portuguese", language_code="pt-BR")


@pytest.fixture
def store(alternative: LanguageAlternative) -> MemoryConfigStore:
    return MemoryConfigStore(PluginConfiguration(language_alternatives=[alternative]))


@pytest.fixture
def sink() -> MemorySink:
    return MemorySink()


@pytest.fixture
def service(host, store, sink) -> MirrorService:
    return MirrorService(host, store, sink=sink)


@pytest.fixture
def orphans(host, store, sink) -> OrphanReconciler:
    return OrphanReconciler(host, store, sink=sink)


@pytest.fixture
def services(host, store, sink, service, orphans) -> Services:
    return Services(host=host, store=store, sink=sink, mirrors=service, orphans=orphans)


@pytest.fixture
def created_mirror(service: MirrorService, mirror_dir: Path) -> LibraryMirror:
    """A mirror that went through the full creation flow."""
    return service.create_mirror(
        ALT_ID,
        LibraryMirror(source_library_id=SOURCE_ID, target_path=str(mirror_dir)),
    )
