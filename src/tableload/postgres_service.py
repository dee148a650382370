"""PostgreSQL implementation of DatabaseService."""

import logging
import threading
from contextlib import contextmanager
from queue import Empty, Queue
from typing import Any, Iterator

import psycopg2
import psycopg2.extras
import psycopg2.sql

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


def table_identifier(name: str) -> psycopg2.sql.Identifier:
    return psycopg2.sql.Identifier(*split_identifier(name))


def translate_error(exc: psycopg2.Error) -> StoreError:
    """Map a psycopg2 error onto the store error taxonomy."""
    message = (exc.pgerror or str(exc)).strip()
    if isinstance(exc, (psycopg2.OperationalError, psycopg2.InterfaceError)):
        return TransientStoreError(message)
    if isinstance(exc, (psycopg2.DataError, psycopg2.IntegrityError, psycopg2.ProgrammingError)):
        return SchemaError(message)
    return StoreError(message)


class PostgresDatabaseService(DatabaseService):
    """PostgreSQL backend using psycopg2.

    Thread-safe via a connection pool (Queue). Each transaction() call
    acquires a dedicated connection and returns it on exit.
    """

    def __init__(
        self,
        dsn: str,
        pool_size: int = DEFAULT_POOL_SIZE,
        acquire_timeout: float = DEFAULT_ACQUIRE_TIMEOUT,
        statement_timeout: float = DEFAULT_STATEMENT_TIMEOUT,
    ):
        self._dsn = dsn
        self._pool_size = pool_size
        self._acquire_timeout = acquire_timeout
        self._statement_timeout = statement_timeout
        self._pool: Queue = Queue(maxsize=pool_size)
        self._local = threading.local()

    def _open(self):
        timeout_ms = int(self._statement_timeout * 1000)
        conn = psycopg2.connect(self._dsn, options=f"-c statement_timeout={timeout_ms}")
        conn.autocommit = False
        return conn

    def connect(self) -> None:
        try:
            for _ in range(self._pool_size):
                self._pool.put(self._open())
        except psycopg2.Error as e:
            self.close()
            raise translate_error(e) from e
        logger.info("Opened %d PostgreSQL connections", self._pool_size)

    def close(self) -> None:
        while not self._pool.empty():
            try:
                conn = self._pool.get_nowait()
                conn.close()
            except Empty:
                break

    def available(self) -> int:
        return self._pool.qsize()

    def _acquire(self):
        try:
            conn = self._pool.get(timeout=self._acquire_timeout)
        except Empty:
            raise PoolTimeoutError(
                f"No database connection available after {self._acquire_timeout:g}s"
            ) from None
        if conn.closed:
            logger.warning("Replacing closed pooled connection")
            try:
                conn = self._open()
            except psycopg2.Error as e:
                # Keep the pool at capacity; the dead handle is retried next time.
                self._release(conn)
                raise translate_error(e) from e
        return conn

    def _release(self, conn) -> None:
        self._pool.put(conn)

    def _get_conn(self):
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
            if not conn.closed:
                try:
                    conn.rollback()
                except psycopg2.Error as rollback_error:
                    logger.error("Rollback failed: %s", rollback_error)
            if isinstance(e, psycopg2.Error):
                raise translate_error(e) from e
            raise
        finally:
            self._local.conn = None
            self._release(conn)

    def execute(self, sql: str, params: Params | None = None) -> list[dict[str, Any]]:
        conn = self._get_conn()
        with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
            cur.execute(sql, params or ())
            if cur.description is None:
                return []
            return [dict(row) for row in cur.fetchall()]

    def execute_many(self, sql: str, params_list: ParamsList) -> None:
        conn = self._get_conn()
        with conn.cursor() as cur:
            cur.executemany(sql, params_list)

    def execute_ddl(self, sql: str) -> None:
        conn = self._acquire()
        try:
            with conn.cursor() as cur:
                for statement in sql.split(";"):
                    statement = statement.strip()
                    if statement:
                        cur.execute(statement)
            conn.commit()
        except psycopg2.Error as e:
            conn.rollback()
            raise translate_error(e) from e
        finally:
            self._release(conn)

    def truncate(self, table: str) -> None:
        conn = self._get_conn()
        with conn.cursor() as cur:
            cur.execute(psycopg2.sql.SQL("TRUNCATE TABLE {}").format(table_identifier(table)))

    def bulk_insert(self, table: str, columns: list[str], rows: list[tuple]) -> None:
        if not rows:
            return
        conn = self._get_conn()
        query = psycopg2.sql.SQL("INSERT INTO {} ({}) VALUES %s").format(
            table_identifier(table),
            psycopg2.sql.SQL(", ").join(psycopg2.sql.Identifier(c) for c in columns),
        )
        with conn.cursor() as cur:
            # One page covering every row keeps this a single INSERT statement.
            psycopg2.extras.execute_values(cur, query, rows, page_size=len(rows))
