"""Key-value persistence: an in-memory store and a SQLite-backed store."""

import json
import logging
import sqlite3
import threading
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .errors import PersistenceError

log = logging.getLogger(__name__)


def _dumps(key: str, value: Any) -> str:
    try:
        return json.dumps(value)
    except (TypeError, ValueError) as e:
        raise PersistenceError(f"Value for {key!r} is not JSON serializable: {e}") from e


def _loads(key: str, raw: str) -> Any:
    try:
        return json.loads(raw)
    except ValueError as e:
        raise PersistenceError(f"Corrupt value stored under {key!r}: {e}") from e


def _expiry(ttl: Optional[float]) -> Optional[float]:
    return time.time() + ttl if ttl is not None else None


class KeyValueStore(ABC):
    """
    JSON key-value store with optional per-key TTL.

    Values are anything ``json.dumps`` accepts. Implementations raise
    PersistenceError when a read or write fails.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Return the stored value, or None when missing or expired."""

    @abstractmethod
    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """Store ``value`` under ``key``; ``ttl`` is in seconds."""

    @abstractmethod
    def remove(self, key: str) -> bool:
        """Delete ``key``. Returns True if it existed."""

    @abstractmethod
    def keys(self, prefix: str = "") -> List[str]:
        """Live keys starting with ``prefix``."""

    def purge_expired(self) -> int:
        """Drop expired entries. Returns the number removed."""
        return 0

    def close(self) -> None:
        pass


class InMemoryKeyValueStore(KeyValueStore):
    """Process-local store. Values round-trip through JSON like the SQLite store."""

    def __init__(self):
        self._data: Dict[str, Tuple[str, Optional[float]]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return None
            raw, expires_at = entry
            if expires_at is not None and expires_at <= time.time():
                del self._data[key]
                return None
        return _loads(key, raw)

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        raw = _dumps(key, value)
        with self._lock:
            self._data[key] = (raw, _expiry(ttl))

    def remove(self, key: str) -> bool:
        with self._lock:
            return self._data.pop(key, None) is not None

    def keys(self, prefix: str = "") -> List[str]:
        now = time.time()
        with self._lock:
            return [
                k for k, (_, expires_at) in self._data.items()
                if k.startswith(prefix) and (expires_at is None or expires_at > now)
            ]

    def purge_expired(self) -> int:
        now = time.time()
        with self._lock:
            expired = [k for k, (_, exp) in self._data.items() if exp is not None and exp <= now]
            for k in expired:
                del self._data[k]
        return len(expired)

    def __len__(self) -> int:
        return len(self.keys())


class SQLiteKeyValueStore(KeyValueStore):
    """Durable key-value store in a single SQLite table."""

    def __init__(self, db_path: str):
        self.db_path = Path(db_path)
        self._lock = threading.Lock()
        try:
            self.conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
            self._init_db()
        except sqlite3.Error as e:
            raise PersistenceError(f"Cannot open {self.db_path}: {e}") from e

    def _init_db(self) -> None:
        """Initialize database schema."""
        cursor = self.conn.cursor()
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS kv (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                expires_at REAL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_kv_expires_at ON kv(expires_at)")
        self.conn.commit()

    def get(self, key: str) -> Optional[Any]:
        try:
            with self._lock:
                row = self.conn.execute(
                    "SELECT value, expires_at FROM kv WHERE key = ?", (key,)
                ).fetchone()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to read {key!r}: {e}") from e
        if row is None:
            return None
        raw, expires_at = row
        if expires_at is not None and expires_at <= time.time():
            return None
        return _loads(key, raw)

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        raw = _dumps(key, value)
        try:
            with self._lock:
                self.conn.execute("""
                    INSERT INTO kv (key, value, expires_at, updated_at)
                    VALUES (?, ?, ?, CURRENT_TIMESTAMP)
                    ON CONFLICT(key) DO UPDATE SET
                        value = excluded.value,
                        expires_at = excluded.expires_at,
                        updated_at = CURRENT_TIMESTAMP
                """, (key, raw, _expiry(ttl)))
                self.conn.commit()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to write {key!r}: {e}") from e

    def remove(self, key: str) -> bool:
        try:
            with self._lock:
                cursor = self.conn.execute("DELETE FROM kv WHERE key = ?", (key,))
                self.conn.commit()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to remove {key!r}: {e}") from e
        return cursor.rowcount > 0

    def keys(self, prefix: str = "") -> List[str]:
        pattern = prefix.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_") + "%"
        try:
            with self._lock:
                rows = self.conn.execute(
                    "SELECT key FROM kv WHERE key LIKE ? ESCAPE '\\' "
                    "AND (expires_at IS NULL OR expires_at > ?) ORDER BY key",
                    (pattern, time.time()),
                ).fetchall()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to list keys: {e}") from e
        return [row[0] for row in rows]

    def purge_expired(self) -> int:
        try:
            with self._lock:
                cursor = self.conn.execute(
                    "DELETE FROM kv WHERE expires_at IS NOT NULL AND expires_at <= ?",
                    (time.time(),),
                )
                self.conn.commit()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to purge expired keys: {e}") from e
        if cursor.rowcount:
            log.debug("Purged %d expired keys from %s", cursor.rowcount, self.db_path)
        return cursor.rowcount

    def close(self) -> None:
        """Close database connection."""
        with self._lock:
            self.conn.close()


def open_store(db_path: Optional[str] = None) -> KeyValueStore:
    """SQLite store for a file path; in-memory store for None or ':memory:'."""
    if db_path is None or db_path == ":memory:":
        return InMemoryKeyValueStore()
    return SQLiteKeyValueStore(db_path)
