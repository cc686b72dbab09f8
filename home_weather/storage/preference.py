"""Persisted choice of the active storage backend ("local" or "remote")."""

import json
import logging
from pathlib import Path
from typing import Optional

from home_weather.config import STORAGE_BACKENDS
from home_weather.errors import ConfigError, StorageError

logger = logging.getLogger(__name__)

DEFAULT_BACKEND = "local"


class PreferenceStore:
    """
    Reads and writes {"backend": ...} to a small JSON file.

    Without a path the preference is kept in memory only.
    """

    def __init__(self, path: Optional[Path] = None, default: str = DEFAULT_BACKEND):
        if default not in STORAGE_BACKENDS:
            raise ConfigError(f"Unknown storage backend {default!r}")
        self.path = Path(path) if path else None
        self.default = default
        self._value: Optional[str] = None

    def get(self) -> str:
        if self._value is not None:
            return self._value
        if self.path is None or not self.path.exists():
            return self.default
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                value = json.load(f).get("backend")
        except (OSError, ValueError, AttributeError) as e:
            logger.warning(f"[PreferenceStore] Could not read storage preference, defaulting to {self.default}: {e}")
            return self.default

        if value not in STORAGE_BACKENDS:
            logger.warning(f"[PreferenceStore] Ignoring unknown storage preference {value!r}")
            return self.default
        self._value = value
        return value

    def set(self, backend: str) -> None:
        """
        Persist `backend` as the preference.

        Raises:
            ConfigError: unknown backend name
            StorageError: the preference file could not be written
        """
        if backend not in STORAGE_BACKENDS:
            raise ConfigError(f"Unknown storage backend {backend!r}")
        if self.path is not None:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                with open(self.path, 'w', encoding='utf-8') as f:
                    json.dump({"backend": backend}, f)
            except OSError as e:
                raise StorageError(f"Could not save storage preference: {e}") from e
        self._value = backend
        logger.info(f"[PreferenceStore] Weather storage preference set to: {backend}")
