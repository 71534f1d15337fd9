"""
Settings Loader — Runtime settings from environment variables.

## Environment Variables

- POLYGLOT_CONFIG_FILE: configuration store path (default: state/polyglot.json)
- POLYGLOT_AUDIT_FILE: audit ledger path (default: audit/ledger.ndjson)
- POLYGLOT_HOST_TYPE: host adapter, "static" or "jellyfin" (default: static)
- POLYGLOT_HOST_FILE: YAML library list for the static host (default: state/libraries.yaml)
- JELLYFIN_URL, JELLYFIN_API_KEY, JELLYFIN_TIMEOUT_SECONDS: Jellyfin adapter

Relative paths are resolved against the project root passed to
``Settings.from_env``.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


def _resolve(root: Path, value: str) -> Path:
    path = Path(value).expanduser()
    return path if path.is_absolute() else root / path


@dataclass
class Settings:
    """Where state lives and which host to talk to."""

    config_file: Path
    audit_file: Path
    host_type: str = "static"
    host_file: Optional[Path] = None
    jellyfin_url: Optional[str] = None
    jellyfin_api_key: Optional[str] = None
    jellyfin_timeout: float = 30.0

    @classmethod
    def from_env(cls, root: Optional[Path] = None) -> "Settings":
        """Parse settings from environment variables."""
        root = root or Path.cwd()

        timeout_raw = os.environ.get("JELLYFIN_TIMEOUT_SECONDS", "30")
        try:
            timeout = float(timeout_raw)
        except ValueError:
            logger.warning(f"Invalid JELLYFIN_TIMEOUT_SECONDS '{timeout_raw}', using 30")
            timeout = 30.0

        settings = cls(
            config_file=_resolve(root, os.environ.get("POLYGLOT_CONFIG_FILE", "state/polyglot.json")),
            audit_file=_resolve(root, os.environ.get("POLYGLOT_AUDIT_FILE", "audit/ledger.ndjson")),
            host_type=os.environ.get("POLYGLOT_HOST_TYPE", "static").strip().lower(),
            host_file=_resolve(root, os.environ.get("POLYGLOT_HOST_FILE", "state/libraries.yaml")),
            jellyfin_url=os.environ.get("JELLYFIN_URL") or None,
            jellyfin_api_key=os.environ.get("JELLYFIN_API_KEY") or None,
            jellyfin_timeout=timeout,
        )
        logger.debug(f"Settings loaded: host={settings.host_type}, config={settings.config_file}")
        return settings
