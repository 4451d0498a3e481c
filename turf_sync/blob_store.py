"""
Local Blob Store
================

Bounded Context: Local durable key -> string storage.

Contract: get / set / remove a string by key. Values are JSON documents
written by the service; reading them back goes through load_json_list(),
which discards anything that is not a JSON array (the key is removed and
an empty list returned).

Implementations:
- JsonFileBlobStore: one file per key, atomic tmp-file replace
- MemoryBlobStore: process-local dict (no storage directory configured)

Keys used by the service:
    sessions, territories, ownerId,
    pending_session_uploads, pending_territory_uploads
"""

import json
import re
from pathlib import Path
from threading import Lock
from typing import Any, Dict, List, Optional, Protocol, Union

from .logging import LogEvent, StructuredLogger

SESSIONS_KEY = "sessions"
TERRITORIES_KEY = "territories"
OWNER_ID_KEY = "ownerId"
PENDING_SESSION_KEY = "pending_session_uploads"
PENDING_TERRITORY_KEY = "pending_territory_uploads"

_SAFE_KEY = re.compile(r"^[A-Za-z0-9_.-]+$")

logger = StructuredLogger(component="blob_store")


class BlobStore(Protocol):
    """Key -> string storage."""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def remove(self, key: str) -> None:
        ...


class MemoryBlobStore:
    """In-memory BlobStore."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})
        self._lock = Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def remove(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)


class JsonFileBlobStore:
    """
    BlobStore backed by a directory, one `<key>.json` file per key.

    Writes go to `<key>.json.tmp` first and are moved into place, so a
    crash never leaves a half-written value behind.

    Args:
        directory: Storage directory (created on first write)
    """

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)
        self._lock = Lock()

    def _path(self, key: str) -> Path:
        if not _SAFE_KEY.match(key):
            raise ValueError(f"Invalid blob key: {key!r}")
        return self.directory / f"{key}.json"

    def get(self, key: str) -> Optional[str]:
        """Return the stored text; a file that is not UTF-8 is deleted and reads as missing."""
        path = self._path(key)
        with self._lock:
            if not path.exists():
                return None
            try:
                return path.read_text(encoding="utf-8")
            except UnicodeDecodeError as e:
                logger.warning(
                    event=LogEvent.STORAGE_DISCARDED,
                    message="Discarded undecodable file",
                    metadata={'key': key, 'path': str(path)},
                    exc_info=e,
                )
                path.unlink()
                return None

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        with self._lock:
            self.directory.mkdir(parents=True, exist_ok=True)
            tmp = path.with_suffix(path.suffix + ".tmp")
            tmp.write_text(value, encoding="utf-8")
            tmp.replace(path)

    def remove(self, key: str) -> None:
        path = self._path(key)
        with self._lock:
            if path.exists():
                path.unlink()


def load_json_list(store: BlobStore, key: str) -> List[Any]:
    """
    Read a JSON array stored under key.

    Malformed values (invalid JSON, or valid JSON that is not an array) are
    discarded: the key is removed and a warning logged.

    Returns:
        Parsed list (empty when missing or discarded)
    """
    raw = store.get(key)
    if raw is None or not raw.strip():
        return []

    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.warning(
            event=LogEvent.STORAGE_DISCARDED,
            message="Discarded unparseable value",
            metadata={'key': key, 'preview': raw[:50]},
            exc_info=e,
        )
        store.remove(key)
        return []

    if not isinstance(parsed, list):
        logger.warning(
            event=LogEvent.STORAGE_DISCARDED,
            message="Discarded non-array value",
            metadata={'key': key, 'type': type(parsed).__name__},
        )
        store.remove(key)
        return []

    return parsed


def save_json_list(store: BlobStore, key: str, items: List[Any]) -> None:
    store.set(key, json.dumps(items))
