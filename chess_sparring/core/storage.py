"""
Persistence for Chess Sparring.

Saved games and settings live in an injected key/value store. The store
only moves strings; records are JSON encoded here so the backend can be
swapped (memory for tests, a JSON file for the terminal client).
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional

from .models import Settings

logger = logging.getLogger(__name__)

SAVE_KEY = "chess-sparring-save"
SETTINGS_KEY = "chess-sparring-settings"


class LoadError(Exception):
    """A persisted record is missing required fields or cannot be decoded."""
    pass


class KeyValueStore(ABC):
    """Minimal string key/value storage boundary."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        ...


class MemoryStore(KeyValueStore):
    """In-process store, handy for tests and throwaway sessions."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStore(KeyValueStore):
    """All keys kept in one JSON object on disk."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path).expanduser()

    def _read(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable store {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring malformed store {self.path}")
            return {}
        return {k: v for k, v in data.items() if isinstance(v, str)}

    def _write(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        tmp_path.replace(self.path)

    def get(self, key: str) -> Optional[str]:
        return self._read().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def delete(self, key: str) -> None:
        data = self._read()
        if key in data:
            del data[key]
            self._write(data)


def write_record(store: KeyValueStore, key: str, record: Dict[str, Any]) -> None:
    store.set(key, json.dumps(record))


def read_record(store: KeyValueStore, key: str) -> Optional[Dict[str, Any]]:
    """
    Fetch and decode a record.

    Returns:
        The decoded record, or None when nothing is stored under the key

    Raises:
        LoadError: If the stored value is not a JSON object
    """
    raw = store.get(key)
    if raw is None:
        return None
    try:
        data = json.loads(raw)
    except ValueError as e:
        raise LoadError(f"Stored record {key!r} is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise LoadError(f"Stored record {key!r} is not an object")
    return data


def load_settings(store: KeyValueStore) -> Settings:
    """Stored settings merged over the defaults; unreadable records fall back to defaults."""
    try:
        data = read_record(store, SETTINGS_KEY)
    except LoadError as e:
        logger.warning(f"Using default settings: {e}")
        return Settings()
    return Settings.from_dict(data) if data else Settings()


def save_settings(store: KeyValueStore, settings: Settings) -> None:
    write_record(store, SETTINGS_KEY, settings.to_dict())
