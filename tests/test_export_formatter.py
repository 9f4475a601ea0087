"""
Unit tests for src/export_formatter.py — packing list export.

Tests cover:
- build_rows() order, restartability, length
- serialize() header, sheet name, column widths, KIZ tokens, text barcodes
- read_rows() round trip and error cases
- persist() writes atomically and reports write failures
"""

import io
import os
from unittest.mock import patch

import openpyxl
from openpyxl.cell.cell import Cell
from openpyxl.utils.exceptions import IllegalCharacterError
import pytest

from exceptions import ExportFormatError, ExportWriteError
from export_formatter import (
    EXPORT_COLUMNS,
    SHEET_NAME,
    ExportRow,
    build_rows,
    persist,
    read_rows,
    serialize,
)
from scan_session import ProductRecord, ScanSession

# GS1 DataMatrix payload with the GS (0x1D) group separator
GS1_CODE = "0104601234567890215abcde\x1d93ABCD"


def make_snapshot():
    return {
        "WB_200": {
            "XYZ": ProductRecord("XYZ", 1, True),
        },
        "WB_100": {
            "ABC123": ProductRecord("ABC123", 2, False),
            "4601234567890": ProductRecord("4601234567890", 5, False),
        },
    }


def load_sheet(data: bytes):
    workbook = openpyxl.load_workbook(io.BytesIO(data))
    return workbook, workbook[SHEET_NAME]


class TestBuildRows:
    def test_one_row_per_box_product_pair(self):
        rows = list(build_rows(make_snapshot()))
        assert len(rows) == 3
        assert ExportRow("ABC123", 2, "WB_100", False) in rows
        assert ExportRow("XYZ", 1, "WB_200", True) in rows

    def test_sorted_by_box_then_barcode(self):
        rows = list(build_rows(make_snapshot()))
        assert [(r.box_id, r.barcode) for r in rows] == [
            ("WB_100", "4601234567890"),
            ("WB_100", "ABC123"),
            ("WB_200", "XYZ"),
        ]

    def test_restartable(self):
        rows = build_rows(make_snapshot())
        assert list(rows) == list(rows)
        assert len(rows) == 3

    def test_empty_snapshot(self):
        rows = build_rows({})
        assert list(rows) == []
        assert len(rows) == 0


class TestSerialize:
    def test_single_sheet_with_header(self):
        workbook, sheet = load_sheet(serialize(build_rows(make_snapshot())))

        assert workbook.sheetnames == [SHEET_NAME]
        header = [cell.value for cell in sheet[1]]
        assert header == EXPORT_COLUMNS == ["Barcode", "Quantity", "Box Barcode", "Has KIZ"]

    def test_row_values(self):
        _, sheet = load_sheet(serialize(build_rows(make_snapshot())))
        values = [[cell.value for cell in row] for row in sheet.iter_rows(min_row=2)]

        assert values == [
            ["4601234567890", 5, "WB_100", "нет"],
            ["ABC123", 2, "WB_100", "нет"],
            ["XYZ", 1, "WB_200", "да"],
        ]

    def test_numeric_barcode_stored_as_text(self):
        _, sheet = load_sheet(serialize([ExportRow("4601234567890", 1, "WB_1", False)]))
        assert sheet["A2"].data_type == "s"
        assert sheet["A2"].value == "4601234567890"

    def test_column_widths(self):
        _, sheet = load_sheet(serialize(build_rows(make_snapshot())))
        assert sheet.column_dimensions["A"].width == 32
        assert sheet.column_dimensions["B"].width == 10
        assert sheet.column_dimensions["C"].width == 32
        assert sheet.column_dimensions["D"].width == 10

    def test_empty_rows_still_has_header(self):
        _, sheet = load_sheet(serialize([]))
        assert sheet.max_row == 1
        assert [cell.value for cell in sheet[1]] == EXPORT_COLUMNS

    def test_gs1_separator_is_escaped_in_cell(self):
        _, sheet = load_sheet(serialize([ExportRow(GS1_CODE, 1, "WB_1", True)]))
        assert sheet["A2"].value == "0104601234567890215abcde_x001d_93ABCD"

    @pytest.mark.parametrize("code", ["=1+2", "=HYPERLINK(\"x\")", "#N/A"])
    def test_formula_like_codes_stored_as_text(self, code):
        _, sheet = load_sheet(serialize([ExportRow(code, 1, code, False)]))
        assert sheet["A2"].data_type == "s"
        assert sheet["A2"].value == code
        assert sheet["C2"].data_type == "s"

    def test_unencodable_rows_raise_export_format_error(self):
        error = IllegalCharacterError("bad cell")
        with patch.object(Cell, 'check_string', side_effect=error):
            with pytest.raises(ExportFormatError, match="bad cell"):
                serialize([ExportRow("A", 1, "WB_1", False)])


class TestReadRows:
    def test_round_trip_matches_session_records(self):
        session = ScanSession()
        for box_id, products in [("WB_100", ["ABC123", "ABC123", "0001"]), ("WB_200", ["ABC123"])]:
            session.request_new_box()
            session.on_decode(box_id)
            for code in products:
                session.request_product_scan()
                session.on_decode(code)

        rows = build_rows(session.snapshot())
        decoded = read_rows(serialize(rows))

        assert set(decoded) == set(rows)
        assert set(decoded) == {
            ExportRow("ABC123", 2, "WB_100", False),
            ExportRow("0001", 1, "WB_100", False),
            ExportRow("ABC123", 1, "WB_200", False),
        }

    def test_reads_from_path(self, tmp_path):
        path = persist(serialize(build_rows(make_snapshot())), tmp_path)
        assert len(read_rows(path)) == 3

    def test_marking_token_decoded(self):
        rows = read_rows(serialize([ExportRow("XYZ", 1, "WB_1", True)]))
        assert rows == [ExportRow("XYZ", 1, "WB_1", True)]

    @pytest.mark.parametrize("code", [
        "NA", "null", "None", "N/A", "NaN", "#N/A", "", "=1+2",
        GS1_CODE,
        "\x1d0104601234567890",
        "CODE\ttab",
        "literal_x001d_text",
    ])
    def test_round_trip_keeps_code_verbatim(self, code):
        rows = [ExportRow(code, 3, "WB_" + code, True)]
        assert read_rows(serialize(rows)) == rows

    def test_unreadable_bytes(self):
        with pytest.raises(ValueError, match="Could not read the Excel file"):
            read_rows(b"not a workbook")

    def test_missing_columns(self):
        workbook = openpyxl.Workbook()
        workbook.active.append(["Barcode", "Quantity"])
        buffer = io.BytesIO()
        workbook.save(buffer)

        with pytest.raises(ValueError, match="missing required columns: Box Barcode, Has KIZ"):
            read_rows(buffer.getvalue())


class TestPersist:
    def test_writes_file_in_cache_dir(self, tmp_path):
        cache_dir = tmp_path / "nested" / "cache"
        path = persist(b"data", cache_dir)

        assert path == cache_dir / "PackingList.xlsx"
        assert path.read_bytes() == b"data"

    def test_replaces_previous_export(self, tmp_path):
        persist(b"old", tmp_path)
        path = persist(b"new", tmp_path, "PackingList.xlsx")
        assert path.read_bytes() == b"new"

    def test_no_temp_files_left(self, tmp_path):
        persist(b"data", tmp_path, "list.xlsx")
        assert os.listdir(tmp_path) == ["list.xlsx"]

    def test_write_failure_raises_export_write_error(self, tmp_path):
        blocker = tmp_path / "not_a_dir"
        blocker.write_text("file in the way")

        with pytest.raises(ExportWriteError) as exc_info:
            persist(b"data", blocker / "cache")

        assert exc_info.value.path == str(blocker / "cache" / "PackingList.xlsx")
