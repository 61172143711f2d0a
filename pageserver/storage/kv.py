"""Single-file transactional key-value store.

Backed by SQLite in WAL mode, which gives the single-writer / multi-reader
model the page store relies on: a read transaction sees the snapshot taken
when it begins and never a half-applied write, and at most one write
transaction runs at a time.

Data layout (one database file):
  buckets(name)                 namespaces that have been created
  entries(bucket, key, value)   key is the UTF-8 encoded name as a BLOB, so
                                ORDER BY key is lexicographic byte order

Every transaction gets its own connection, so one store object can be shared
by any number of request handler threads without external locking.
"""

from __future__ import annotations

import contextlib
import fcntl
import logging
import os
import sqlite3
import threading
from collections.abc import Callable, Iterator
from pathlib import Path

from .errors import (
    NameEmpty,
    NestedWriteTransaction,
    ReadOnlyTransaction,
    StorageUnavailable,
    ValidationError,
)

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "page"
FILE_MODE = 0o600

_SCHEMA = (
    "CREATE TABLE IF NOT EXISTS buckets (name TEXT PRIMARY KEY)",
    """CREATE TABLE IF NOT EXISTS entries (
        bucket TEXT NOT NULL,
        key BLOB NOT NULL,
        value BLOB NOT NULL,
        PRIMARY KEY (bucket, key)
    )""",
)


def _encode_name(name: str) -> bytes:
    if not name:
        raise NameEmpty()
    return name.encode("utf-8")


class Transaction:
    """A view of one namespace inside an open SQLite transaction.

    Only valid inside the ``with`` block of KeyValueStore.view() or
    KeyValueStore.update() that produced it.
    """

    def __init__(self, conn: sqlite3.Connection, bucket: str, writable: bool) -> None:
        self._conn = conn
        self._bucket = bucket
        self._writable = writable

    @property
    def writable(self) -> bool:
        return self._writable

    def _execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        try:
            return self._conn.execute(sql, params)
        except sqlite3.Error as e:
            raise StorageUnavailable(str(e)) from e

    def _check_writable(self) -> None:
        if not self._writable:
            raise ReadOnlyTransaction("cannot write inside a read-only transaction")

    def ensure_namespace(self) -> None:
        self._check_writable()
        self._execute("INSERT OR IGNORE INTO buckets (name) VALUES (?)", (self._bucket,))

    def get(self, name: str) -> bytes | None:
        """Return the stored value for ``name``, or None when absent."""
        if not name:
            return None
        row = self._execute(
            "SELECT value FROM entries WHERE bucket = ? AND key = ?",
            (self._bucket, name.encode("utf-8")),
        ).fetchone()
        return None if row is None else bytes(row[0])

    def put(self, name: str, value: bytes | str) -> None:
        """Insert or overwrite ``name``; a str value is stored UTF-8 encoded."""
        self._check_writable()
        key = _encode_name(name)
        if isinstance(value, str):
            value = value.encode("utf-8")
        elif not isinstance(value, (bytes, bytearray, memoryview)):
            raise ValidationError(f"value must be bytes or str, not {type(value).__name__}")
        self._execute(
            "INSERT OR REPLACE INTO entries (bucket, key, value) VALUES (?, ?, ?)",
            (self._bucket, key, bytes(value)),
        )

    def delete(self, name: str) -> None:
        """Remove ``name``; deleting an absent name is a no-op."""
        self._check_writable()
        if not name:
            return
        self._execute(
            "DELETE FROM entries WHERE bucket = ? AND key = ?",
            (self._bucket, name.encode("utf-8")),
        )

    def for_each(self, visit: Callable[[str, bytes], None]) -> None:
        """Call ``visit(name, value)`` for every entry in key order."""
        found = self._execute("SELECT 1 FROM buckets WHERE name = ?", (self._bucket,)).fetchone()
        if found is None:
            raise StorageUnavailable(f"namespace {self._bucket!r} does not exist")
        cursor = self._execute(
            "SELECT key, value FROM entries WHERE bucket = ? ORDER BY key",
            (self._bucket,),
        )
        while True:
            try:
                row = cursor.fetchone()
            except sqlite3.Error as e:
                raise StorageUnavailable(str(e)) from e
            if row is None:
                break
            visit(bytes(row[0]).decode("utf-8"), bytes(row[1]))

    def items(self) -> list[tuple[str, bytes]]:
        out: list[tuple[str, bytes]] = []
        self.for_each(lambda name, value: out.append((name, value)))
        return out


class KeyValueStore:
    """Process-wide handle to the backing file.

    Open once with KeyValueStore.open() and pass the instance to whatever
    needs storage.
    """

    def __init__(self, path: Path, namespace: str = DEFAULT_NAMESPACE, *, timeout: float = 5.0) -> None:
        self._path = Path(path)
        self._namespace = namespace
        self._timeout = timeout
        self._write_lock = threading.Lock()
        self._writer: int | None = None
        self._lock_fd: int | None = None
        self._closed = False

    @classmethod
    def open(cls, path: Path, namespace: str = DEFAULT_NAMESPACE, *, timeout: float = 5.0) -> KeyValueStore:
        """Open (creating if absent) the store at ``path``.

        The returned handle holds an exclusive lock on ``<path>.lock`` until
        close(); a second open of the same path, from this process or any
        other, fails.

        Raises StorageUnavailable when the file cannot be created, opened or
        locked, or is not a database.
        """
        store = cls(path, namespace, timeout=timeout)
        store._create_file()
        store._acquire_file_lock()
        try:
            store._init_schema()
            store.ensure_namespace()
        except BaseException:
            store._release_file_lock()
            raise
        logger.info("Store opened: %s (namespace %r)", store.path, namespace)
        return store

    @property
    def path(self) -> Path:
        return self._path

    @property
    def namespace(self) -> str:
        return self._namespace

    def _create_file(self) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(self._path, os.O_RDWR | os.O_CREAT, FILE_MODE)
        except OSError as e:
            raise StorageUnavailable(f"cannot open {self._path}: {e}") from e
        os.close(fd)

    @property
    def lock_path(self) -> Path:
        return self._path.with_name(self._path.name + ".lock")

    def _acquire_file_lock(self) -> None:
        try:
            fd = os.open(self.lock_path, os.O_RDWR | os.O_CREAT, FILE_MODE)
        except OSError as e:
            raise StorageUnavailable(f"cannot open {self.lock_path}: {e}") from e
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except OSError as e:
            os.close(fd)
            raise StorageUnavailable(f"{self._path} is locked by another store handle") from e
        self._lock_fd = fd

    def _release_file_lock(self) -> None:
        if self._lock_fd is None:
            return
        fd, self._lock_fd = self._lock_fd, None
        fcntl.flock(fd, fcntl.LOCK_UN)
        os.close(fd)

    def _connect(self) -> sqlite3.Connection:
        if self._closed:
            raise StorageUnavailable("store is closed")
        try:
            return sqlite3.connect(
                str(self._path),
                timeout=self._timeout,
                isolation_level=None,
                check_same_thread=False,
            )
        except sqlite3.Error as e:
            raise StorageUnavailable(f"cannot open {self._path}: {e}") from e

    def _init_schema(self) -> None:
        with contextlib.closing(self._connect()) as conn:
            try:
                conn.execute("PRAGMA journal_mode=WAL")
                for statement in _SCHEMA:
                    conn.execute(statement)
            except sqlite3.Error as e:
                raise StorageUnavailable(f"cannot initialize {self._path}: {e}") from e

    @staticmethod
    def _rollback(conn: sqlite3.Connection) -> None:
        try:
            conn.execute("ROLLBACK")
        except sqlite3.Error as e:
            logger.warning("Rollback failed: %s", e)

    @contextlib.contextmanager
    def _transaction(self, writable: bool) -> Iterator[Transaction]:
        if writable and self._writer == threading.get_ident():
            raise NestedWriteTransaction("a write transaction is already open on this thread")
        lock = self._write_lock if writable else contextlib.nullcontext()
        with lock, contextlib.closing(self._connect()) as conn:
            try:
                if writable:
                    conn.execute("BEGIN IMMEDIATE")
                else:
                    conn.execute("BEGIN")
                    # a deferred BEGIN takes no snapshot until something is read
                    conn.execute("SELECT 1 FROM buckets LIMIT 1").fetchall()
            except sqlite3.Error as e:
                raise StorageUnavailable(f"cannot begin transaction: {e}") from e
            if writable:
                self._writer = threading.get_ident()
            try:
                try:
                    yield Transaction(conn, self._namespace, writable)
                except BaseException:
                    self._rollback(conn)
                    raise
                try:
                    conn.execute("COMMIT")
                except sqlite3.Error as e:
                    self._rollback(conn)
                    raise StorageUnavailable(f"commit failed: {e}") from e
            finally:
                if writable:
                    self._writer = None

    def view(self) -> contextlib.AbstractContextManager[Transaction]:
        """Read-only transaction; does not block other readers or the writer.

        The snapshot is taken on entry: writes committed after that are not
        visible inside the block.
        """
        return self._transaction(writable=False)

    def update(self) -> contextlib.AbstractContextManager[Transaction]:
        """Read-write transaction; commits on success, rolls back on any exception.

        Writers are serialized. Starting another write (including the one-shot
        put/delete/ensure_namespace) on the same thread inside the block raises
        NestedWriteTransaction; use the yielded transaction instead.
        """
        return self._transaction(writable=True)

    def ensure_namespace(self) -> None:
        with self.update() as tx:
            tx.ensure_namespace()

    def get(self, name: str) -> bytes | None:
        with self.view() as tx:
            return tx.get(name)

    def put(self, name: str, value: bytes | str) -> None:
        if not name:
            raise NameEmpty()
        with self.update() as tx:
            tx.put(name, value)

    def delete(self, name: str) -> None:
        with self.update() as tx:
            tx.delete(name)

    def for_each(self, visit: Callable[[str, bytes], None]) -> None:
        with self.view() as tx:
            tx.for_each(visit)

    def items(self) -> list[tuple[str, bytes]]:
        with self.view() as tx:
            return tx.items()

    def close(self) -> None:
        """Checkpoint the WAL and refuse further transactions."""
        if self._closed:
            return
        with self._write_lock, contextlib.closing(self._connect()) as conn:
            try:
                conn.execute("PRAGMA wal_checkpoint(TRUNCATE)")
            except sqlite3.Error as e:
                logger.warning("WAL checkpoint failed on close: %s", e)
            self._closed = True
        self._release_file_lock()
        logger.info("Store closed: %s", self._path)
