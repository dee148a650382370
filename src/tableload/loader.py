"""Bulk table loader: replace a table's contents in a single transaction."""

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from tableload.errors import InputError, LoadError, SchemaError
from tableload.service import DatabaseService
from tableload.types import RowRecord

logger = logging.getLogger(__name__)

NO_DATA_MESSAGE = "No data provided to insert."
FAILURE_MESSAGE = "Failed to upload data."
RESERVED_COLUMNS = ("created_at",)


@dataclass(frozen=True)
class LoadSuccess:
    """All rows were written and committed."""

    table: str
    rows_inserted: int

    success = True

    @property
    def message(self) -> str:
        return f"Inserted {self.rows_inserted} rows into {self.table}."

    def to_dict(self) -> dict[str, Any]:
        return {"success": True, "message": self.message, "error": None}


@dataclass(frozen=True)
class LoadFailure:
    """Nothing was committed; the table still holds its previous rows."""

    message: str
    error: str | None = None
    kind: str = LoadError.kind

    success = False

    def to_dict(self) -> dict[str, Any]:
        return {"success": False, "message": self.message, "error": self.error}


LoadResult = LoadSuccess | LoadFailure


class BulkTableLoader:
    """Truncate a table and bulk insert new rows, atomically.

    The column list comes from the first row, minus reserved columns such as
    ``created_at``. With ``strict_columns`` every other row must carry the same
    keys; otherwise missing keys are inserted as NULL and extra keys ignored.

    ``load()`` never raises for bad input or database failures: rows that are
    not mappings, mismatched columns and driver errors all end in a returned
    LoadFailure.
    """

    def __init__(
        self,
        service: DatabaseService,
        *,
        strict_columns: bool = True,
        excluded_columns: Iterable[str] = RESERVED_COLUMNS,
    ):
        self._service = service
        self._strict_columns = strict_columns
        self._excluded = frozenset(excluded_columns)

    def columns_for(self, rows: Sequence[RowRecord]) -> list[str]:
        """Derive the insert column list from the first row."""
        if not isinstance(rows, Sequence) or isinstance(rows, (str, bytes)):
            raise InputError(f"Rows must be a sequence of mappings, got {type(rows).__name__}")
        for row_num, row in enumerate(rows, start=1):
            if not isinstance(row, Mapping):
                raise InputError(f"Row {row_num} is not a mapping: {type(row).__name__}")

        columns = [c for c in rows[0] if c not in self._excluded]
        if not columns:
            raise SchemaError("First row has no insertable columns")
        if not all(isinstance(c, str) and c for c in columns):
            raise SchemaError(f"Column names must be non-empty strings: {columns!r}")
        if self._strict_columns:
            expected = set(columns)
            for row_num, row in enumerate(rows[1:], start=2):
                keys = {c for c in row if c not in self._excluded}
                if keys != expected:
                    missing = sorted(expected - keys, key=str)
                    extra = sorted(keys - expected, key=str)
                    raise SchemaError(
                        f"Row {row_num} columns differ from row 1 "
                        f"(missing: {missing}, unexpected: {extra})"
                    )
        return columns

    def load(self, table_name: str, rows: Sequence[RowRecord] | None) -> LoadResult:
        if not rows:
            return LoadFailure(NO_DATA_MESSAGE, kind=InputError.kind)

        try:
            columns = self.columns_for(rows)
            values = [tuple(row.get(c) for c in columns) for row in rows]
            with self._service.transaction():
                self._service.truncate(table_name)
                logger.info("Table '%s' truncated.", table_name)
                self._service.bulk_insert(table_name, columns, values)
                logger.info("%d rows inserted into '%s'.", len(values), table_name)
        except LoadError as e:
            logger.warning("Load into '%s' failed (%s): %s", table_name, e.kind, e)
            return LoadFailure(FAILURE_MESSAGE, error=str(e), kind=e.kind)

        logger.info("Transaction committed for '%s'.", table_name)
        return LoadSuccess(table_name, len(values))
