"""
Library listing — Host libraries annotated with mirror ownership.
"""

from __future__ import annotations

from typing import Dict, List

from ..host.base import LibraryHost
from ..models.library import LibraryInfo
from ..persistence.config_store import ConfigStore


def list_libraries(host: LibraryHost, store: ConfigStore) -> List[LibraryInfo]:
    """Project every host library, flagging those that are mirror targets."""
    owners: Dict[str, str] = store.read(lambda c: {
        m.target_library_id: alt.id
        for alt, m in c.iter_mirrors()
        if m.target_library_id
    })

    return [
        LibraryInfo(
            id=library.id,
            name=library.name,
            collection_type=library.collection_type,
            locations=list(library.locations),
            preferred_metadata_language=library.options.preferred_metadata_language,
            metadata_country_code=library.options.metadata_country_code,
            is_mirror=library.id in owners,
            language_alternative_id=owners.get(library.id),
        )
        for library in host.list_libraries()
    ]
