"""Decode uploaded CSV and Excel files into row records.

Only the first worksheet of a workbook is read. The first non-empty row is
the header; every decoded record carries every header key.
"""

import csv
import io
import logging
import zipfile
import zlib
from collections.abc import Iterable
from pathlib import PurePath
from typing import Any

import openpyxl
import xlrd
from openpyxl.utils.exceptions import InvalidFileException

from tableload.types import Row

logger = logging.getLogger(__name__)


class UnsupportedFileType(ValueError):
    """The upload's extension is not one we can decode."""


class FileDecodeError(ValueError):
    """The upload could not be decoded; the message is safe to show users."""


def parse_upload(filename: str, content: bytes) -> list[Row]:
    """Dispatch on the file extension and decode ``content``."""
    extension = PurePath(filename).suffix.lower()
    if extension == ".csv":
        return parse_csv(content)
    if extension == ".xlsx":
        return parse_xlsx(content)
    if extension == ".xls":
        return parse_xls(content)
    raise UnsupportedFileType(
        "Unsupported file type. Please upload a CSV or Excel file."
    )


def parse_csv(content: bytes) -> list[Row]:
    """Parse CSV bytes into a list of dict rows; values stay strings."""
    try:
        text = content.decode("utf-8-sig")
        reader = csv.reader(io.StringIO(text, newline=""))
        first = next(reader, None)
        if first is None:
            return []
        header = _header([cell or None for cell in first])
        rows = []
        for cells in reader:
            if all(cell == "" for cell in cells):
                continue
            if len(cells) > len(header):
                raise FileDecodeError(
                    f"Error processing CSV file: line {reader.line_num} has more "
                    "fields than the header."
                )
            rows.append(dict(zip(header, _fit(cells, len(header)))))
    except (UnicodeDecodeError, csv.Error) as e:
        logger.warning("CSV decode failed: %s", e)
        raise FileDecodeError("Error processing CSV file.") from e
    return rows


def parse_xlsx(content: bytes) -> list[Row]:
    """Parse the first worksheet of an .xlsx workbook."""
    try:
        workbook = openpyxl.load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    except (
        InvalidFileException, zipfile.BadZipFile, zlib.error, SyntaxError, KeyError, OSError
    ) as e:
        logger.warning("XLSX decode failed: %s", e)
        raise FileDecodeError("Error processing Excel file.") from e
    try:
        sheet = workbook.worksheets[0]
        return records_from_grid(sheet.iter_rows(values_only=True))
    except (SyntaxError, zipfile.BadZipFile, zlib.error, KeyError, IndexError, ValueError) as e:
        # Worksheet XML is parsed lazily in read-only mode.
        logger.warning("XLSX sheet decode failed: %s", e)
        raise FileDecodeError("Error processing Excel file.") from e
    finally:
        workbook.close()


def parse_xls(content: bytes) -> list[Row]:
    """Parse the first sheet of a legacy .xls workbook."""
    try:
        book = xlrd.open_workbook(file_contents=content)
    except (xlrd.XLRDError, xlrd.compdoc.CompDocError) as e:
        logger.warning("XLS decode failed: %s", e)
        raise FileDecodeError("Error processing Excel file.") from e
    sheet = book.sheet_by_index(0)
    grid = (
        [_xls_value(cell, book.datemode) for cell in sheet.row(i)]
        for i in range(sheet.nrows)
    )
    return records_from_grid(grid)


def _xls_value(cell: xlrd.sheet.Cell, datemode: int) -> Any:
    if cell.ctype in (xlrd.XL_CELL_EMPTY, xlrd.XL_CELL_BLANK):
        return None
    if cell.ctype == xlrd.XL_CELL_DATE:
        return xlrd.xldate.xldate_as_datetime(cell.value, datemode)
    if cell.ctype == xlrd.XL_CELL_BOOLEAN:
        return bool(cell.value)
    if cell.ctype == xlrd.XL_CELL_NUMBER and float(cell.value).is_integer():
        return int(cell.value)
    if cell.ctype == xlrd.XL_CELL_ERROR:
        return None
    return cell.value


def records_from_grid(grid: Iterable[Iterable[Any]]) -> list[Row]:
    """Turn a grid of cell values into header-keyed records.

    Blank header cells become ``__EMPTY``, ``__EMPTY_1``, ...; repeated names
    get ``_1``, ``_2`` suffixes. Columns run as wide as the widest filled row,
    so data under a blank header cell is kept. Rows with no values are skipped.
    """
    header_cells: list[Any] | None = None
    body = []
    for cells in grid:
        values = [None if v == "" else v for v in cells]
        if all(v is None for v in values):
            continue
        if header_cells is None:
            header_cells = values
        else:
            body.append(values)
    if header_cells is None:
        return []

    width = max(_filled_width(values) for values in [header_cells, *body])
    header = _header(_fit(header_cells, width))
    return [dict(zip(header, _fit(values, width))) for values in body]


def _filled_width(values: list[Any]) -> int:
    for i in range(len(values), 0, -1):
        if values[i - 1] is not None:
            return i
    return 0


def _fit(values: list[Any], width: int) -> list[Any]:
    return (values + [None] * width)[:width]


def _header(values: list[Any]) -> list[str]:
    header = []
    seen: dict[str, int] = {}
    for value in values:
        name = "__EMPTY" if value is None else str(value).strip()
        count = seen.get(name, 0)
        seen[name] = count + 1
        if count:
            candidate = f"{name}_{count}"
            while candidate in seen:
                count += 1
                candidate = f"{name}_{count}"
            seen[name] = count + 1
            seen[candidate] = 1
            name = candidate
        header.append(name)
    return header
