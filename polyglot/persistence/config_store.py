"""
Configuration Store — Transactional access to the plugin configuration.

No component keeps a live reference to the configuration document.
Reads get a private snapshot; writes are self-contained
read-modify-write transactions executed under a lock.

## Usage

    store = JsonConfigStore(Path("state/polyglot.json"))

    names = store.read(lambda c: [a.name for a in c.language_alternatives])

    def _rename(config):
        config.get_alternative(alt_id).name = "Português"
    store.update(_rename)
"""

from __future__ import annotations

import json
import logging
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Optional, TypeVar

from ..models.config import LanguageAlternative, LibraryMirror, PluginConfiguration, utc_now

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ConfigStore(ABC):
    """Read-snapshot / atomic-update port over PluginConfiguration."""

    def __init__(self) -> None:
        self._lock = threading.RLock()

    @abstractmethod
    def _load(self) -> PluginConfiguration:
        """Return the current persisted configuration."""

    @abstractmethod
    def _save(self, config: PluginConfiguration) -> None:
        """Persist a complete configuration."""

    def read(self, fn: Callable[[PluginConfiguration], T]) -> T:
        """Run ``fn`` against a deep copy of the configuration."""
        with self._lock:
            snapshot = self._load().model_copy(deep=True)
        return fn(snapshot)

    def snapshot(self) -> PluginConfiguration:
        return self.read(lambda c: c)

    def update(self, fn: Callable[[PluginConfiguration], T]) -> T:
        """
        Apply ``fn`` to a working copy and persist it atomically.

        If ``fn`` raises, nothing is written.
        """
        with self._lock:
            working = self._load().model_copy(deep=True)
            result = fn(working)
            self._save(working)
            return result

    # ─── Mirror transactions ────────────────────────────────

    def get_mirror(self, mirror_id: str) -> Optional[LibraryMirror]:
        return self.read(lambda c: c.find_mirror(mirror_id)[1])

    def get_alternative(self, alternative_id: str) -> Optional[LanguageAlternative]:
        return self.read(lambda c: c.get_alternative(alternative_id))

    def save_mirror(self, alternative_id: str, mirror: LibraryMirror) -> bool:
        """
        Insert or replace a mirror inside its alternative.

        Returns False if the alternative no longer exists.
        """
        def _apply(config: PluginConfiguration) -> bool:
            alternative = config.get_alternative(alternative_id)
            if alternative is None:
                return False
            copy = mirror.model_copy(deep=True)
            for index, existing in enumerate(alternative.mirrored_libraries):
                if existing.id == mirror.id:
                    alternative.mirrored_libraries[index] = copy
                    break
            else:
                alternative.mirrored_libraries.append(copy)
            alternative.modified_at = utc_now()
            return True

        return self.update(_apply)

    def update_mirror(self, mirror_id: str, fn: Callable[[LibraryMirror], None]) -> Optional[LibraryMirror]:
        """Mutate a stored mirror in place. Returns the updated copy, or None if gone."""
        def _apply(config: PluginConfiguration) -> Optional[LibraryMirror]:
            _, mirror = config.find_mirror(mirror_id)
            if mirror is None:
                return None
            fn(mirror)
            return mirror.model_copy(deep=True)

        return self.update(_apply)

    def remove_mirror(self, mirror_id: str) -> Optional[LibraryMirror]:
        """Remove a mirror record. Returns the removed mirror, or None."""
        def _apply(config: PluginConfiguration) -> Optional[LibraryMirror]:
            for alternative in config.language_alternatives:
                mirror = alternative.get_mirror(mirror_id)
                if mirror is not None:
                    alternative.mirrored_libraries.remove(mirror)
                    alternative.modified_at = utc_now()
                    return mirror
            return None

        return self.update(_apply)


class MemoryConfigStore(ConfigStore):
    """Configuration held in memory only."""

    def __init__(self, config: Optional[PluginConfiguration] = None):
        super().__init__()
        self._config = (config or PluginConfiguration()).model_copy(deep=True)

    def _load(self) -> PluginConfiguration:
        return self._config

    def _save(self, config: PluginConfiguration) -> None:
        self._config = config


class JsonConfigStore(ConfigStore):
    """Configuration persisted to a JSON file."""

    def __init__(self, path: Path):
        super().__init__()
        self.path = path
        self._cached: Optional[PluginConfiguration] = None

    def _load(self) -> PluginConfiguration:
        if self._cached is not None:
            return self._cached

        if not self.path.exists():
            logger.info(f"No configuration at {self.path}, starting empty")
            self._cached = PluginConfiguration()
            return self._cached

        logger.debug(f"Loading configuration from {self.path}")
        with self.path.open("r", encoding="utf-8") as f:
            data = json.load(f)
        self._cached = PluginConfiguration.model_validate(data)
        return self._cached

    def _save(self, config: PluginConfiguration) -> None:
        """
        Save configuration to the JSON file.

        Uses atomic write (write to temp, then rename) to prevent corruption.
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)

        temp_path = self.path.with_suffix(".tmp")

        with temp_path.open("w", encoding="utf-8") as f:
            json.dump(config.model_dump(mode="json"), f, indent=4)
            f.write("\n")

        temp_path.replace(self.path)
        self._cached = config
        logger.debug(f"Configuration saved → {self.path.name}")

    def reload(self) -> None:
        """Drop the cached document so the next access re-reads the file."""
        with self._lock:
            self._cached = None
