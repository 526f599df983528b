"""
Durable Overflow Storage for Item Caches.

Provides the durable tier that item caches spill evicted entries into:
- A result type that makes "durability is best-effort" explicit
- The abstract backend interface (lookup, list, upsert, two deletions)
- A SQLite implementation keyed by (cache name, object id)
- Serializers turning items into the stored bytes and back

Backends never raise. Every failure is returned as a failed BackendResult
carrying a BackendError, and the cache layer logs and discards it.
"""

import logging
import pickle
import sqlite3
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Generic, Iterator, List, Optional, Set, TypeVar, Union

from geohistory.data.items import Identifier
from geohistory.errors import BackendError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class BackendResult(Generic[T]):
    """
    Outcome of one durable backend operation.

    Attributes:
        ok: Whether the operation succeeded
        value: Result value when ok
        error: Failure description when not ok
    """

    ok: bool
    value: Optional[T] = None
    error: Optional[BackendError] = None

    @classmethod
    def success(cls, value: Optional[T] = None) -> "BackendResult[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: BackendError) -> "BackendResult[T]":
        return cls(ok=False, error=error)

    def unwrap_or(self, default: T) -> T:
        """Return the value if ok, else the default."""
        if self.ok and self.value is not None:
            return self.value
        return default


class ItemSerializer(ABC):
    """Turns cached items into durable bytes and back. Must round-trip exactly."""

    @abstractmethod
    def dumps(self, item: Any) -> bytes:
        pass

    @abstractmethod
    def loads(self, data: bytes) -> Any:
        pass


class PickleSerializer(ItemSerializer):
    """Default serializer using pickle."""

    def dumps(self, item: Any) -> bytes:
        return pickle.dumps(item, protocol=pickle.HIGHEST_PROTOCOL)

    def loads(self, data: bytes) -> Any:
        return pickle.loads(data)


class DurableBackend(ABC):
    """
    Abstract key-value table keyed by (cache name, object id).

    Each row stores the serialized item and its last write time (Unix
    seconds). Cache names must be unique among live caches sharing one
    backend.
    """

    @abstractmethod
    def lookup(self, cache_name: str, item_id: Identifier) -> BackendResult[Optional[bytes]]:
        """
        Point lookup.

        Returns:
            Result holding the stored bytes, or None when no row exists
        """
        pass

    @abstractmethod
    def list_ids(self, cache_name: str) -> BackendResult[Set[Identifier]]:
        """List every object id stored for a cache name."""
        pass

    @abstractmethod
    def upsert(
        self,
        cache_name: str,
        item_id: Identifier,
        data: bytes,
        written_at: float,
    ) -> BackendResult[None]:
        """Insert or replace one row."""
        pass

    @abstractmethod
    def delete_older_than(self, cache_name: str, cutoff: float) -> BackendResult[int]:
        """
        Delete rows written before a cutoff.

        Returns:
            Result holding the number of deleted rows
        """
        pass

    @abstractmethod
    def delete_beyond_newest(self, cache_name: str, keep: int) -> BackendResult[int]:
        """
        Delete all but the ``keep`` most recently written rows.

        Returns:
            Result holding the number of deleted rows
        """
        pass

    @abstractmethod
    def summary(self) -> BackendResult[List[Dict[str, Any]]]:
        """Per cache name: row count and oldest/newest write time."""
        pass


class SQLiteBackend(DurableBackend):
    """
    SQLite implementation of the durable tier.

    Uses an in-memory database when no path is given. For in-memory
    databases the connection is kept alive for the lifetime of the backend,
    because each new ":memory:" connection creates a separate database.
    """

    def __init__(self, db_path: Optional[Union[str, Path]] = None):
        """
        Initialize SQLite backend.

        Args:
            db_path: Path to SQLite database (uses memory if None)
        """
        self._db_path = Path(db_path).expanduser() if db_path is not None else None
        self._lock = threading.RLock()
        self._persistent_conn: Optional[sqlite3.Connection] = None
        if self._db_path is None:
            self._persistent_conn = sqlite3.connect(":memory:", check_same_thread=False)
            self._persistent_conn.row_factory = sqlite3.Row
        else:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_database()

        logger.info(f"SQLiteBackend initialized at {self._db_path or ':memory:'}")

    @property
    def db_path(self) -> Optional[Path]:
        return self._db_path

    def _init_database(self) -> None:
        """Initialize SQLite database schema."""
        with self._connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS durable_items (
                    cache_name TEXT NOT NULL,
                    object_id INTEGER NOT NULL,
                    data BLOB NOT NULL,
                    written_at REAL NOT NULL,
                    PRIMARY KEY (cache_name, object_id)
                )
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_durable_written
                ON durable_items(cache_name, written_at)
            """)
            conn.commit()

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection, serialized by the backend lock."""
        with self._lock:
            if self._persistent_conn is not None:
                yield self._persistent_conn
                return
            if self._db_path is None:
                raise sqlite3.ProgrammingError("Cannot operate on a closed in-memory backend")
            conn = sqlite3.connect(str(self._db_path), timeout=30.0)
            conn.row_factory = sqlite3.Row
            try:
                yield conn
            finally:
                conn.close()

    def close(self) -> None:
        """Close the persistent connection of an in-memory backend."""
        with self._lock:
            if self._persistent_conn is not None:
                self._persistent_conn.close()
                self._persistent_conn = None

    def lookup(self, cache_name: str, item_id: Identifier) -> BackendResult[Optional[bytes]]:
        try:
            with self._connection() as conn:
                row = conn.execute(
                    "SELECT data FROM durable_items WHERE cache_name = ? AND object_id = ?",
                    (cache_name, int(item_id)),
                ).fetchone()
            return BackendResult.success(bytes(row["data"]) if row is not None else None)
        except sqlite3.Error as e:
            return BackendResult.failure(BackendError("lookup", e))

    def list_ids(self, cache_name: str) -> BackendResult[Set[Identifier]]:
        try:
            with self._connection() as conn:
                rows = conn.execute(
                    "SELECT object_id FROM durable_items WHERE cache_name = ?",
                    (cache_name,),
                ).fetchall()
            return BackendResult.success({Identifier(row["object_id"]) for row in rows})
        except sqlite3.Error as e:
            return BackendResult.failure(BackendError("list_ids", e))

    def upsert(
        self,
        cache_name: str,
        item_id: Identifier,
        data: bytes,
        written_at: float,
    ) -> BackendResult[None]:
        try:
            with self._connection() as conn:
                try:
                    conn.execute(
                        """
                        INSERT OR REPLACE INTO durable_items
                        (cache_name, object_id, data, written_at)
                        VALUES (?, ?, ?, ?)
                        """,
                        (cache_name, int(item_id), sqlite3.Binary(data), written_at),
                    )
                    conn.commit()
                except sqlite3.Error:
                    conn.rollback()
                    raise
            return BackendResult.success(None)
        except sqlite3.Error as e:
            return BackendResult.failure(BackendError("upsert", e))

    def delete_older_than(self, cache_name: str, cutoff: float) -> BackendResult[int]:
        try:
            with self._connection() as conn:
                result = conn.execute(
                    "DELETE FROM durable_items WHERE cache_name = ? AND written_at < ?",
                    (cache_name, cutoff),
                )
                conn.commit()
                return BackendResult.success(result.rowcount)
        except sqlite3.Error as e:
            return BackendResult.failure(BackendError("delete_older_than", e))

    def delete_beyond_newest(self, cache_name: str, keep: int) -> BackendResult[int]:
        try:
            with self._connection() as conn:
                result = conn.execute(
                    """
                    DELETE FROM durable_items
                    WHERE cache_name = ? AND object_id NOT IN (
                        SELECT object_id FROM durable_items
                        WHERE cache_name = ?
                        ORDER BY written_at DESC, object_id DESC
                        LIMIT ?
                    )
                    """,
                    (cache_name, cache_name, keep),
                )
                conn.commit()
                return BackendResult.success(result.rowcount)
        except sqlite3.Error as e:
            return BackendResult.failure(BackendError("delete_beyond_newest", e))

    def summary(self) -> BackendResult[List[Dict[str, Any]]]:
        try:
            with self._connection() as conn:
                rows = conn.execute(
                    """
                    SELECT cache_name, COUNT(*) AS entries,
                           MIN(written_at) AS oldest, MAX(written_at) AS newest
                    FROM durable_items
                    GROUP BY cache_name
                    ORDER BY cache_name
                    """
                ).fetchall()
            return BackendResult.success(
                [
                    {
                        "cache_name": row["cache_name"],
                        "entries": row["entries"],
                        "oldest": row["oldest"],
                        "newest": row["newest"],
                    }
                    for row in rows
                ]
            )
        except sqlite3.Error as e:
            return BackendResult.failure(BackendError("summary", e))
