"""
Jellyfin Host — REST adapter for Jellyfin 10.9 and later.

## Endpoints used

- GET  /Library/VirtualFolders              list libraries
- POST /Library/VirtualFolders              register a library
- POST /Items/{id}/Refresh                  queue a metadata/image refresh

## Environment Variables

- JELLYFIN_URL: Base URL of the server (e.g. http://localhost:8096)
- JELLYFIN_API_KEY: API key created in the dashboard
- JELLYFIN_TIMEOUT_SECONDS: Request timeout (default: 30)

The REST API has no refresh priority; low-priority requests are sent
as-is and the server schedules them itself.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

import httpx

from ..models.library import LibraryOptions, RefreshOptions, RefreshPriority, VirtualLibrary
from ..validation import HostError
from .base import LibraryHost

logger = logging.getLogger(__name__)


class JellyfinHost(LibraryHost):
    """Host adapter speaking the Jellyfin HTTP API."""

    supported_version = "10.9"

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 30.0,
        client: Optional[httpx.Client] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.client = client or httpx.Client(base_url=self.base_url, timeout=timeout)
        self.client.headers["X-Emby-Token"] = api_key

    @property
    def name(self) -> str:
        return "jellyfin"

    def list_libraries(self) -> List[VirtualLibrary]:
        data = self._request("GET", "/Library/VirtualFolders").json() or []
        return [self._parse_folder(folder) for folder in data if folder.get("ItemId")]

    def add_library(
        self,
        name: str,
        collection_type: Optional[str],
        paths: Iterable[str],
        options: Optional[LibraryOptions] = None,
        refresh_library: bool = False,
    ) -> None:
        params: Dict[str, Any] = {
            "name": name,
            "paths": list(paths),
            "refreshLibrary": str(refresh_library).lower(),
        }
        if collection_type:
            params["collectionType"] = collection_type

        library_options: Dict[str, Any] = {}
        if options is not None:
            if options.preferred_metadata_language:
                library_options["PreferredMetadataLanguage"] = options.preferred_metadata_language
            if options.metadata_country_code:
                library_options["MetadataCountryCode"] = options.metadata_country_code

        self._request(
            "POST",
            "/Library/VirtualFolders",
            params=params,
            json={"LibraryOptions": library_options},
        )
        logger.info(f"Registered Jellyfin library '{name}'")

    def queue_refresh(
        self,
        library_id: str,
        options: RefreshOptions,
        priority: RefreshPriority = RefreshPriority.NORMAL,
    ) -> None:
        params = {
            "metadataRefreshMode": options.metadata_refresh_mode.value,
            "imageRefreshMode": options.image_refresh_mode.value,
            "replaceAllMetadata": str(options.replace_all_metadata).lower(),
            "replaceAllImages": str(options.replace_all_images).lower(),
        }
        self._request("POST", f"/Items/{library_id}/Refresh", params=params)
        logger.debug(f"Refresh queued for {library_id} ({priority.value})")

    def close(self) -> None:
        self.client.close()

    def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            response = self.client.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise HostError(
                f"Jellyfin {method} {path} failed: HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise HostError(f"Jellyfin {method} {path} failed: {e}") from e
        return response

    @staticmethod
    def _parse_folder(folder: Dict[str, Any]) -> VirtualLibrary:
        options = folder.get("LibraryOptions") or {}
        return VirtualLibrary(
            id=folder["ItemId"],
            name=folder.get("Name", ""),
            collection_type=folder.get("CollectionType"),
            locations=list(folder.get("Locations") or []),
            options=LibraryOptions(
                preferred_metadata_language=options.get("PreferredMetadataLanguage"),
                metadata_country_code=options.get("MetadataCountryCode"),
            ),
        )
