"""
Storage Backend Module

Record stores for loans, installments and payments: an in-memory store for
tests and a SQLite store for persistence. Records are plain JSON-compatible
dicts; money travels as Decimal strings.

Writes made inside ``atomic()`` become visible together or not at all.
Nested ``atomic()`` blocks join the outermost one, and a failure at any
depth discards the whole unit of work. A transaction holds the backend lock
until it finishes, so two transactions never interleave on one store.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Any, Union
from datetime import datetime, timezone
import copy
import sqlite3
import json
import threading
from dataclasses import dataclass
from pathlib import Path
from contextlib import contextmanager


@dataclass
class StorageRecord:
    """Identity and timestamps shared by stored entities"""
    id: str
    created_at: datetime
    updated_at: datetime

    def touch(self) -> None:
        self.updated_at = datetime.now(timezone.utc)


def _clone(record: Dict[str, Any]) -> Dict[str, Any]:
    return json.loads(json.dumps(record, default=str))


def _matches(record: Dict[str, Any], filters: Dict[str, Any]) -> bool:
    return all(key in record and record[key] == value for key, value in filters.items())


class StorageInterface(ABC):
    """Abstract interface for storage backends"""

    @abstractmethod
    def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        """Insert or replace a record"""

    @abstractmethod
    def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        """Record by id, or None"""

    @abstractmethod
    def load_all(self, table: str) -> List[Dict[str, Any]]:
        """Every record of a table in insertion order"""

    @abstractmethod
    def delete(self, table: str, record_id: str) -> bool:
        """Remove a record; False if it did not exist"""

    @abstractmethod
    def exists(self, table: str, record_id: str) -> bool:
        pass

    @abstractmethod
    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Records whose fields equal every filter value"""

    @abstractmethod
    def count(self, table: str) -> int:
        pass

    @abstractmethod
    def close(self) -> None:
        pass

    def begin_transaction(self) -> None:
        pass

    def commit(self) -> None:
        pass

    def rollback(self) -> None:
        pass

    @contextmanager
    def atomic(self):
        """Run the block as one unit of work"""
        self.begin_transaction()
        try:
            yield
        except BaseException:
            self.rollback()
            raise
        else:
            self.commit()


class TransactionalStorage(StorageInterface):
    """
    Depth-counted transactions for a single store

    Subclasses provide the three hooks: ``_start`` when the outermost
    transaction opens, ``_keep`` when it commits and ``_discard`` when it
    rolls back or when an inner block failed.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._depth = 0
        self._rollback_only = False

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0

    def begin_transaction(self) -> None:
        # Released by the matching commit() or rollback()
        self._lock.acquire()
        self._depth += 1
        if self._depth == 1:
            self._rollback_only = False
            self._start()

    def commit(self) -> None:
        self._finish(discard=False)

    def rollback(self) -> None:
        self._finish(discard=True)

    def _finish(self, discard: bool) -> None:
        with self._lock:
            if self._depth == 0:
                return
            self._depth -= 1
            self._rollback_only = self._rollback_only or discard
            if self._depth == 0:
                if self._rollback_only:
                    self._discard()
                else:
                    self._keep()
                self._rollback_only = False
            self._lock.release()

    @abstractmethod
    def _start(self) -> None:
        pass

    @abstractmethod
    def _keep(self) -> None:
        pass

    @abstractmethod
    def _discard(self) -> None:
        pass


class InMemoryStorage(TransactionalStorage):
    """In-memory storage for tests; rollback restores a snapshot"""

    def __init__(self):
        super().__init__()
        self._tables: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._snapshot: Optional[Dict[str, Dict[str, Dict[str, Any]]]] = None

    def _table(self, table: str) -> Dict[str, Dict[str, Any]]:
        return self._tables.setdefault(table, {})

    def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        with self._lock:
            # Stored as a copy so callers cannot mutate it afterwards
            self._table(table)[record_id] = _clone(data)

    def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            record = self._table(table).get(record_id)
            return _clone(record) if record is not None else None

    def load_all(self, table: str) -> List[Dict[str, Any]]:
        with self._lock:
            return [_clone(record) for record in self._table(table).values()]

    def delete(self, table: str, record_id: str) -> bool:
        with self._lock:
            return self._table(table).pop(record_id, None) is not None

    def exists(self, table: str, record_id: str) -> bool:
        with self._lock:
            return record_id in self._table(table)

    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        with self._lock:
            return [_clone(record) for record in self._table(table).values() if _matches(record, filters)]

    def count(self, table: str) -> int:
        with self._lock:
            return len(self._table(table))

    def close(self) -> None:
        pass

    def _start(self) -> None:
        self._snapshot = copy.deepcopy(self._tables)

    def _keep(self) -> None:
        self._snapshot = None

    def _discard(self) -> None:
        self._tables = self._snapshot
        self._snapshot = None


class SQLiteStorage(TransactionalStorage):
    """
    SQLite storage for persistence

    Each table keeps the record as JSON plus an indexed ``loan_id`` column,
    so the per-loan lookups the engine makes (schedule rows, payments) do
    not scan the whole table.
    """

    def __init__(self, db_path: Union[str, Path] = ":memory:"):
        super().__init__()
        self.db_path = str(db_path)
        # sqlite3 opens a transaction before the first write; it is committed
        # right away outside atomic() and at the outermost commit inside it
        self._connection = sqlite3.connect(self.db_path, check_same_thread=False, isolation_level='DEFERRED')
        self._connection.row_factory = sqlite3.Row
        self._known_tables = set()

        if self.db_path != ":memory:":
            with self._lock:
                self._connection.execute("PRAGMA journal_mode = WAL")
                self._connection.execute("PRAGMA synchronous = NORMAL")
                self._connection.commit()

    def _autocommit(self) -> None:
        if not self.in_transaction:
            self._connection.commit()

    def _ensure_table(self, table: str) -> None:
        if table in self._known_tables:
            return
        self._connection.execute(f"""
            CREATE TABLE IF NOT EXISTS {table} (
                id TEXT PRIMARY KEY,
                loan_id TEXT,
                data TEXT NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)
        self._connection.execute(f"CREATE INDEX IF NOT EXISTS idx_{table}_loan_id ON {table}(loan_id)")
        self._autocommit()
        self._known_tables.add(table)

    def _query(self, table: str, sql: str, params=()) -> sqlite3.Cursor:
        with self._lock:
            self._ensure_table(table)
            return self._connection.execute(sql.format(table=table), params)

    def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        now = datetime.now(timezone.utc).isoformat()
        with self._lock:
            self._query(table, """
                INSERT INTO {table} (id, loan_id, data, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    loan_id = excluded.loan_id,
                    data = excluded.data,
                    updated_at = excluded.updated_at
            """, (record_id, data.get('loan_id'), json.dumps(data, default=str), now, now))
            self._autocommit()

    def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            row = self._query(table, "SELECT data FROM {table} WHERE id = ?", (record_id,)).fetchone()
            return json.loads(row['data']) if row else None

    def load_all(self, table: str) -> List[Dict[str, Any]]:
        with self._lock:
            rows = self._query(table, "SELECT data FROM {table} ORDER BY rowid").fetchall()
            return [json.loads(row['data']) for row in rows]

    def delete(self, table: str, record_id: str) -> bool:
        with self._lock:
            cursor = self._query(table, "DELETE FROM {table} WHERE id = ?", (record_id,))
            self._autocommit()
            return cursor.rowcount > 0

    def exists(self, table: str, record_id: str) -> bool:
        with self._lock:
            return self._query(table, "SELECT 1 FROM {table} WHERE id = ? LIMIT 1", (record_id,)).fetchone() is not None

    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Records matching filters; a loan_id filter is answered by the index"""
        if 'loan_id' not in filters:
            return [record for record in self.load_all(table) if _matches(record, filters)]

        with self._lock:
            rows = self._query(
                table, "SELECT data FROM {table} WHERE loan_id = ? ORDER BY rowid", (filters['loan_id'],)
            ).fetchall()
        records = (json.loads(row['data']) for row in rows)
        return [record for record in records if _matches(record, filters)]

    def count(self, table: str) -> int:
        with self._lock:
            return self._query(table, "SELECT COUNT(*) AS n FROM {table}").fetchone()['n']

    def close(self) -> None:
        with self._lock:
            if self._connection:
                self._connection.close()
                self._connection = None

    def _start(self) -> None:
        pass

    def _keep(self) -> None:
        self._connection.commit()

    def _discard(self) -> None:
        self._connection.rollback()
        # Tables created inside the transaction are gone as well
        self._known_tables.clear()


def create_storage(database_url: str) -> StorageInterface:
    """
    Build a storage backend from a URL

    Supported forms: ``memory://``, ``sqlite://`` (in-memory SQLite) and
    ``sqlite:///path/to/file.db``.
    """
    if database_url.startswith("memory://"):
        return InMemoryStorage()
    if database_url.startswith("sqlite://"):
        path = database_url[len("sqlite://"):]
        if path.startswith("/"):
            path = path[1:]
        return SQLiteStorage(path or ":memory:")
    raise ValueError(f"Unsupported database URL: {database_url}")
