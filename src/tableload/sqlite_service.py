"""SQLite implementation of DatabaseService."""

import logging
import sqlite3
import threading
from contextlib import contextmanager
from queue import Empty, Queue
from typing import Any, Iterator

from tableload.errors import (
    PoolTimeoutError,
    SchemaError,
    StoreError,
    TransientStoreError,
)
from tableload.service import (
    DEFAULT_ACQUIRE_TIMEOUT,
    DEFAULT_POOL_SIZE,
    DEFAULT_STATEMENT_TIMEOUT,
    DatabaseService,
    split_identifier,
)
from tableload.types import Params, ParamsList

logger = logging.getLogger(__name__)

_SCHEMA_MESSAGES = ("no such table", "no such column", "has no column")


def quote_identifier(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def quote_table(name: str) -> str:
    return ".".join(quote_identifier(part) for part in split_identifier(name))


def translate_error(exc: sqlite3.Error) -> StoreError:
    """Map a sqlite3 error onto the store error taxonomy."""
    message = str(exc)
    if isinstance(exc, sqlite3.OperationalError):
        if any(text in message for text in _SCHEMA_MESSAGES):
            return SchemaError(message)
        return TransientStoreError(message)
    if isinstance(exc, (sqlite3.IntegrityError, sqlite3.DataError, sqlite3.ProgrammingError)):
        return SchemaError(message)
    return StoreError(message)


class SQLiteDatabaseService(DatabaseService):
    """SQLite backend using stdlib sqlite3.

    Thread-safe via a connection pool (Queue). Each transaction() call
    acquires a dedicated connection and returns it on exit.
    """

    def __init__(
        self,
        db_path: str,
        pool_size: int = DEFAULT_POOL_SIZE,
        acquire_timeout: float = DEFAULT_ACQUIRE_TIMEOUT,
        statement_timeout: float = DEFAULT_STATEMENT_TIMEOUT,
    ):
        self._db_path = db_path
        self._pool_size = pool_size
        self._acquire_timeout = acquire_timeout
        self._statement_timeout = statement_timeout
        self._pool: Queue[sqlite3.Connection] = Queue(maxsize=pool_size)
        self._local = threading.local()

    def _open(self) -> sqlite3.Connection:
        conn = sqlite3.connect(
            self._db_path,
            timeout=self._statement_timeout,
            isolation_level="IMMEDIATE",
            check_same_thread=False,
        )
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA foreign_keys=ON")
        return conn

    def connect(self) -> None:
        try:
            for _ in range(self._pool_size):
                self._pool.put(self._open())
        except sqlite3.Error as e:
            raise translate_error(e) from e
        logger.info("Opened %d SQLite connections to %s", self._pool_size, self._db_path)

    def close(self) -> None:
        while not self._pool.empty():
            try:
                conn = self._pool.get_nowait()
                conn.close()
            except Empty:
                break

    def available(self) -> int:
        return self._pool.qsize()

    def _acquire(self) -> sqlite3.Connection:
        try:
            return self._pool.get(timeout=self._acquire_timeout)
        except Empty:
            raise PoolTimeoutError(
                f"No database connection available after {self._acquire_timeout:g}s"
            ) from None

    def _release(self, conn: sqlite3.Connection) -> None:
        self._pool.put(conn)

    def _get_conn(self) -> sqlite3.Connection:
        """Get the connection bound to the current transaction."""
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            return conn
        raise RuntimeError(
            "No active transaction. Wrap calls in a `with service.transaction():` block."
        )

    @contextmanager
    def transaction(self) -> Iterator[None]:
        conn = self._acquire()
        self._local.conn = conn
        try:
            yield
            conn.commit()
        except Exception as e:
            try:
                conn.rollback()
            except sqlite3.Error as rollback_error:
                logger.error("Rollback failed: %s", rollback_error)
            if isinstance(e, sqlite3.Error):
                raise translate_error(e) from e
            raise
        finally:
            self._local.conn = None
            self._release(conn)

    def execute(self, sql: str, params: Params | None = None) -> list[dict[str, Any]]:
        conn = self._get_conn()
        cursor = conn.execute(sql, params or ())
        if cursor.description is None:
            return []
        columns = [desc[0] for desc in cursor.description]
        return [dict(zip(columns, row)) for row in cursor.fetchall()]

    def execute_many(self, sql: str, params_list: ParamsList) -> None:
        conn = self._get_conn()
        conn.executemany(sql, params_list)

    def execute_ddl(self, sql: str) -> None:
        conn = self._acquire()
        try:
            conn.executescript(sql)
            conn.commit()
        except sqlite3.Error as e:
            raise translate_error(e) from e
        finally:
            self._release(conn)

    def truncate(self, table: str) -> None:
        # No WHERE clause, so SQLite takes its truncate fast path.
        self.execute(f"DELETE FROM {quote_table(table)}")

    def bulk_insert(self, table: str, columns: list[str], rows: list[tuple]) -> None:
        if not rows:
            return
        cols = ", ".join(quote_identifier(c) for c in columns)
        placeholders = ", ".join("?" for _ in columns)
        sql = f"INSERT INTO {quote_table(table)} ({cols}) VALUES ({placeholders})"
        self.execute_many(sql, rows)
