"""
Host Registry — Select the host adapter once, at startup.

The table below is the complete list of supported hosts. Unknown types
are a configuration error rather than a silent fallback.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict

from ..config.loader import Settings
from ..validation import ConfigurationError
from .base import LibraryHost
from .jellyfin import JellyfinHost
from .static import StaticLibraryHost

logger = logging.getLogger(__name__)


def _build_static(settings: Settings) -> LibraryHost:
    return StaticLibraryHost(path=settings.host_file)


def _build_jellyfin(settings: Settings) -> LibraryHost:
    if not settings.jellyfin_url or not settings.jellyfin_api_key:
        raise ConfigurationError(
            "POLYGLOT_HOST_TYPE=jellyfin requires JELLYFIN_URL and JELLYFIN_API_KEY"
        )
    return JellyfinHost(
        settings.jellyfin_url,
        settings.jellyfin_api_key,
        timeout=settings.jellyfin_timeout,
    )


HOST_FACTORIES: Dict[str, Callable[[Settings], LibraryHost]] = {
    "static": _build_static,
    "jellyfin": _build_jellyfin,
}


def create_host(settings: Settings) -> LibraryHost:
    """Build the host adapter named by ``settings.host_type``."""
    factory = HOST_FACTORIES.get(settings.host_type)
    if factory is None:
        raise ConfigurationError(
            f"Unknown host type '{settings.host_type}' "
            f"(supported: {', '.join(sorted(HOST_FACTORIES))})"
        )
    host = factory(settings)
    logger.info(f"Using {host.name} host adapter (API {host.supported_version})")
    return host
