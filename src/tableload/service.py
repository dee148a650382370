"""Abstract DatabaseService interface."""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Iterator

from tableload.errors import SchemaError
from tableload.types import Params, ParamsList

DEFAULT_POOL_SIZE = 10
DEFAULT_ACQUIRE_TIMEOUT = 30.0
DEFAULT_STATEMENT_TIMEOUT = 30.0


class DatabaseService(ABC):
    """Database-agnostic interface for all DB operations.

    Design principles:
    - Stateless: no mutable state beyond the connection pool
    - Thread-safe: each transaction() acquires its own connection
    - DB-agnostic: callers program against this ABC, never a concrete backend
    - Driver errors leave transaction() as tableload.errors.StoreError subclasses
    """

    @abstractmethod
    def connect(self) -> None:
        """Initialize the connection pool."""

    @abstractmethod
    def close(self) -> None:
        """Close all connections and release resources."""

    @abstractmethod
    def available(self) -> int:
        """Number of idle connections currently in the pool."""

    @abstractmethod
    def execute(self, sql: str, params: Params | None = None) -> list[dict[str, Any]]:
        """Execute a single SQL statement and return rows as dicts."""

    @abstractmethod
    def execute_many(self, sql: str, params_list: ParamsList) -> None:
        """Execute a SQL statement for each parameter set."""

    @abstractmethod
    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Context manager: acquires a connection, commits on success, rolls back on error."""

    @abstractmethod
    def execute_ddl(self, sql: str) -> None:
        """Execute DDL statements (CREATE TABLE, CREATE INDEX, etc.)."""

    @abstractmethod
    def truncate(self, table: str) -> None:
        """Remove every row of a table inside the active transaction."""

    @abstractmethod
    def bulk_insert(self, table: str, columns: list[str], rows: list[tuple]) -> None:
        """Insert all rows into a table with escaped identifiers and bound values."""


def split_identifier(name: str) -> list[str]:
    """Split a possibly schema-qualified name (``schema.table``) into parts."""
    parts = name.split(".")
    if not name or any(not part for part in parts):
        raise SchemaError(f"Invalid identifier: {name!r}")
    return parts
