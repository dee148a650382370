"""Tests for upload decoding."""

import io
import zipfile

import openpyxl
import pytest

from tableload.parsing import (
    FileDecodeError,
    UnsupportedFileType,
    parse_csv,
    parse_upload,
    parse_xls,
    records_from_grid,
)


def xlsx_bytes(*sheets: list[list]) -> bytes:
    workbook = openpyxl.Workbook()
    workbook.remove(workbook.active)
    for i, rows in enumerate(sheets):
        sheet = workbook.create_sheet(f"Sheet{i + 1}")
        for row in rows:
            sheet.append(row)
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


class TestCsv:
    def test_parse_basic(self):
        content = b"sku,qty\nA-1,5\nB-2,7\n"
        assert parse_csv(content) == [{"sku": "A-1", "qty": "5"}, {"sku": "B-2", "qty": "7"}]

    def test_bom_and_blank_lines(self):
        content = "\ufeffsku,qty\r\nA-1,5\r\n,\r\n\r\nB-2,7\r\n".encode("utf-8")
        rows = parse_csv(content)
        assert [r["sku"] for r in rows] == ["A-1", "B-2"]

    def test_short_rows_fill_none(self):
        assert parse_csv(b"sku,qty\nA-1\n") == [{"sku": "A-1", "qty": None}]

    def test_extra_fields_rejected(self):
        with pytest.raises(FileDecodeError, match="more fields than the header"):
            parse_csv(b"sku,qty\nA-1,5,oops\n")

    def test_not_utf8(self):
        with pytest.raises(FileDecodeError, match="Error processing CSV file"):
            parse_csv(b"sku\n\xff\xfe\xfa\n")

    def test_header_only(self):
        assert parse_csv(b"sku,qty\n") == []


class TestExcel:
    def test_first_sheet_only(self):
        content = xlsx_bytes(
            [["sku", "qty"], ["A-1", 5], ["B-2", 7]],
            [["other"], ["ignored"]],
        )
        assert parse_upload("stock.xlsx", content) == [
            {"sku": "A-1", "qty": 5},
            {"sku": "B-2", "qty": 7},
        ]

    def test_blank_cells_and_rows(self):
        content = xlsx_bytes(
            [
                [None, None],
                ["sku", None, "qty"],
                ["A-1", "x", None],
                [None, None, None],
                ["B-2", None, 3],
            ]
        )
        assert parse_upload("stock.XLSX", content) == [
            {"sku": "A-1", "__EMPTY": "x", "qty": None},
            {"sku": "B-2", "__EMPTY": None, "qty": 3},
        ]

    def test_corrupt_xlsx(self):
        with pytest.raises(FileDecodeError, match="Error processing Excel file"):
            parse_upload("broken.xlsx", b"definitely not a zip")

    def test_corrupt_xls(self):
        with pytest.raises(FileDecodeError, match="Error processing Excel file"):
            parse_xls(b"definitely not a workbook")


class TestDispatch:
    def test_unsupported_extension(self):
        with pytest.raises(UnsupportedFileType, match="Unsupported file type"):
            parse_upload("notes.txt", b"hello")

    def test_csv_extension_case_insensitive(self):
        assert parse_upload("DATA.CSV", b"a\n1\n") == [{"a": "1"}]


class TestRecordsFromGrid:
    def test_header_trailing_blanks_dropped(self):
        grid = [["a", "b", None, None], [1, 2, None, None]]
        assert records_from_grid(grid) == [{"a": 1, "b": 2}]

    def test_multiple_blank_headers(self):
        grid = [[None, "a", None], ["x", 1, "y"]]
        assert records_from_grid(grid) == [{"__EMPTY": "x", "a": 1, "__EMPTY_1": "y"}]

    def test_empty_strings_are_blank(self):
        grid = [["a", "b"], ["", ""], ["1", ""]]
        assert records_from_grid(grid) == [{"a": "1", "b": None}]

    def test_value_under_blank_last_header_kept(self):
        grid = [["a", None], [1, "kept"], [2, None]]
        assert records_from_grid(grid) == [
            {"a": 1, "__EMPTY": "kept"},
            {"a": 2, "__EMPTY": None},
        ]

    def test_duplicate_headers_suffixed(self):
        grid = [["a", "a", "a", "a_1"], [1, 2, 3, 4]]
        assert records_from_grid(grid) == [{"a": 1, "a_1": 2, "a_2": 3, "a_1_1": 4}]

    def test_empty_grid(self):
        assert records_from_grid([[None], []]) == []


class TestHeaderEdgeCases:
    def test_xlsx_blank_last_header(self):
        content = xlsx_bytes([["a", None], [1, "kept"]])
        assert parse_upload("stock.xlsx", content) == [{"a": 1, "__EMPTY": "kept"}]

    def test_xlsx_duplicate_headers(self):
        content = xlsx_bytes([["a", "a"], [1, 2]])
        assert parse_upload("stock.xlsx", content) == [{"a": 1, "a_1": 2}]

    def test_csv_duplicate_and_blank_headers(self):
        rows = parse_csv(b"a,a,\n1,2,3\n")
        assert rows == [{"a": "1", "a_1": "2", "__EMPTY": "3"}]

    def test_xlsx_corrupt_sheet_xml(self):
        original = zipfile.ZipFile(io.BytesIO(xlsx_bytes([["a"], [1]])))
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w") as damaged:
            for item in original.infolist():
                data = original.read(item.filename)
                if item.filename.startswith("xl/worksheets/"):
                    data = b"<worksheet><sheetData><row r='1'><c"
                damaged.writestr(item, data)

        with pytest.raises(FileDecodeError, match="Error processing Excel file"):
            parse_upload("stock.xlsx", buffer.getvalue())
