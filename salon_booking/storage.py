"""Persistence port for snapshot storage.

Every entity list lives under one key as a JSON-serializable value and is
rewritten in full on each mutation (snapshot-on-write). Implementations:

- InMemoryStore: process-local dict (tests, demos)
- JsonFileStore: one ``<key>.json`` file per key
- SqlKeyValueStore: one row per key in the ``kv_snapshots`` table
"""
import copy
import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from salon_booking.api.database_models import Base, Snapshot, utc_now
from salon_booking.logging_config import get_logger

logger = get_logger(__name__)


class StorageError(Exception):
    """Raised when a storage URL cannot be resolved to a backend."""
    pass


class KeyValueStore(ABC):
    """Get/set by key with JSON-serializable values."""

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Return the stored value, or None when the key is absent."""

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Replace the value stored under key."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove key. Missing keys are ignored."""


class InMemoryStore(KeyValueStore):
    """Dict-backed store. Values are round-tripped through JSON on write."""

    def __init__(self):
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[Any]:
        raw = self._data.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = json.dumps(value, ensure_ascii=False)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStore(KeyValueStore):
    """Stores each key as a JSON file inside a directory."""

    def __init__(self, data_dir: str):
        """
        Initialize file store.

        Args:
            data_dir: Directory for snapshot files (created if missing)
        """
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)

    def _get_path(self, key: str) -> Path:
        # Sanitize key to prevent path traversal
        safe_key = key.replace("/", "_").replace("\\", "_").replace(":", "_")
        return self.data_dir / f"{safe_key}.json"

    def get(self, key: str) -> Optional[Any]:
        path = self._get_path(key)
        if not path.exists():
            return None

        with open(path, 'r', encoding='utf-8') as f:
            return json.load(f)

    def set(self, key: str, value: Any) -> None:
        path = self._get_path(key)
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(value, f, indent=2, ensure_ascii=False)

    def delete(self, key: str) -> None:
        path = self._get_path(key)
        if path.exists():
            path.unlink()


class SqlKeyValueStore(KeyValueStore):
    """
    Snapshot store backed by any SQLAlchemy database.

    Pattern: Thin wrapper around SQLAlchemy, one row per key.
    """

    def __init__(self, database_url: str):
        """
        Initialize with database connection.

        Args:
            database_url: SQLAlchemy connection string
        """
        if database_url.startswith("sqlite:///:memory:"):
            # A single shared connection keeps the in-memory database alive
            self.engine = create_engine(
                database_url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        else:
            self.engine = create_engine(database_url, pool_pre_ping=True)
        Base.metadata.create_all(self.engine)
        self.SessionLocal = sessionmaker(bind=self.engine)

    def get(self, key: str) -> Optional[Any]:
        with self.SessionLocal() as db:
            row = db.get(Snapshot, key)
            if row is None:
                return None
            return copy.deepcopy(row.value)

    def set(self, key: str, value: Any) -> None:
        with self.SessionLocal() as db:
            row = db.get(Snapshot, key)
            if row is None:
                db.add(Snapshot(key=key, value=value))
            else:
                row.value = value
                row.updated_at = utc_now()
            db.commit()

    def delete(self, key: str) -> None:
        with self.SessionLocal() as db:
            db.query(Snapshot).filter(Snapshot.key == key).delete()
            db.commit()


def create_store(url: str) -> KeyValueStore:
    """
    Build a store from a storage URL.

    Args:
        url: ``memory://``, ``file://<directory>`` or an SQLAlchemy URL

    Returns:
        KeyValueStore implementation for the URL

    Raises:
        StorageError: If the URL is empty
    """
    if not url:
        raise StorageError("Storage URL is required")

    if url.startswith("memory://"):
        store = InMemoryStore()
    elif url.startswith("file://"):
        store = JsonFileStore(url[len("file://"):])
    else:
        store = SqlKeyValueStore(url)

    logger.info("storage_initialized", backend=type(store).__name__)
    return store
