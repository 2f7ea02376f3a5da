"""Key-value storage for concepts, recipes, pantry entries and shopping lists.

The engine treats persistence as an opaque key-value store of JSON-able
dicts. Two implementations are provided:

- InMemoryStore: process-local dict, used by tests and by default
- JsonFileStore: one JSON file per key under a directory, so stored state
  can be inspected and edited by hand

Keys are namespaced strings such as ``"concept/<user>/<id>"``.
"""

import json
import logging
import os
import re
import tempfile
import threading
from abc import ABC, abstractmethod
from copy import deepcopy
from pathlib import Path
from typing import Any, Dict, List, Optional


logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """Abstraction over the persistence backend."""

    @abstractmethod
    def get(self, key: str) -> Optional[Dict[str, Any]]:
        """Return the stored dict for *key*, or None if absent."""
        ...

    @abstractmethod
    def put(self, key: str, value: Dict[str, Any]) -> None:
        """Store *value* under *key*, replacing any previous value."""
        ...

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Remove *key*. Returns True if something was removed."""
        ...

    @abstractmethod
    def keys(self, prefix: str = "") -> List[str]:
        """Return all keys starting with *prefix*, sorted."""
        ...


class InMemoryStore(KeyValueStore):
    """Dict-backed store. Values are deep-copied in and out."""

    def __init__(self):
        self._data: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            value = self._data.get(key)
            return deepcopy(value) if value is not None else None

    def put(self, key: str, value: Dict[str, Any]) -> None:
        with self._lock:
            self._data[key] = deepcopy(value)

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._data.pop(key, None) is not None

    def keys(self, prefix: str = "") -> List[str]:
        with self._lock:
            return sorted(k for k in self._data if k.startswith(prefix))


class JsonFileStore(KeyValueStore):
    """Disk-backed store, one JSON file per key.

    Usage:
        store = JsonFileStore("./.athyra")
        store.put("concept/u1/c1", {...})
        store.get("concept/u1/c1")

    Each file keeps its original key inside the payload so that ``keys``
    does not depend on reversing the filename encoding. Writes go through a
    temporary file and ``os.replace`` so readers never see a half-written
    file.
    """

    DEFAULT_STORAGE_DIR = ".athyra/store"

    def __init__(self, storage_dir: Optional[str] = None):
        self.storage_dir = Path(storage_dir or self.DEFAULT_STORAGE_DIR)
        self.storage_dir.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        payload = self._read_file(self._get_file_path(key))
        if payload is None or payload.get("key") != key:
            return None
        return payload.get("value")

    def put(self, key: str, value: Dict[str, Any]) -> None:
        file_path = self._get_file_path(key)
        with self._lock:
            fd, tmp_path = tempfile.mkstemp(dir=self.storage_dir, suffix=".tmp")
            try:
                with os.fdopen(fd, "w") as f:
                    json.dump({"key": key, "value": value}, f, indent=2)
                os.replace(tmp_path, file_path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise

    def delete(self, key: str) -> bool:
        file_path = self._get_file_path(key)
        with self._lock:
            if not file_path.exists():
                return False
            file_path.unlink()
            return True

    def keys(self, prefix: str = "") -> List[str]:
        found = []
        for file_path in self.storage_dir.glob("*.json"):
            payload = self._read_file(file_path)
            if payload is None:
                continue
            key = payload.get("key", "")
            if key.startswith(prefix):
                found.append(key)
        return sorted(found)

    def _read_file(self, file_path: Path) -> Optional[Dict[str, Any]]:
        if not file_path.exists():
            return None
        try:
            with open(file_path, "r") as f:
                return json.load(f)
        except (json.JSONDecodeError, OSError):
            # Corrupted file - treat as missing
            logger.warning("Ignoring unreadable store file %s", file_path)
            return None

    def _get_file_path(self, key: str) -> Path:
        return self.storage_dir / f"{self._to_safe_filename(key)}.json"

    @staticmethod
    def _to_safe_filename(key: str) -> str:
        """Convert a key to a filesystem-safe filename (without extension).

        Unsafe characters are hex-escaped rather than collapsed so two
        distinct keys never share a file.
        """
        safe = re.sub(
            r"[^A-Za-z0-9\-]",
            lambda m: "_%02x" % ord(m.group(0)) if ord(m.group(0)) < 256 else "_u%06x" % ord(m.group(0)),
            key,
        )
        return safe or "unnamed"
