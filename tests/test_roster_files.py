"""
Tests for roster parsing from CSV, Excel and pasted text.
"""

import io

import pandas as pd

from services.roster_files import (
    normalize_semester,
    parse_roster_csv,
    parse_roster_spreadsheet,
    parse_roster_text,
    safe_str,
)


def xlsx_bytes(frame: pd.DataFrame) -> bytes:
    buffer = io.BytesIO()
    frame.to_excel(buffer, index=False, engine="openpyxl")
    return buffer.getvalue()


class TestHelpers:

    def test_safe_str(self):
        assert safe_str(None) is None
        assert safe_str(float("nan")) is None
        assert safe_str("  ") is None
        assert safe_str(' "Sara" ') == "Sara"
        assert safe_str("201.0") == "201"

    def test_normalize_semester(self):
        assert normalize_semester("Even") == "Even"
        assert normalize_semester("2") == "Even"
        assert normalize_semester("odd term") == "Odd"
        assert normalize_semester(None) == "Odd"


class TestCsv:

    def test_reads_rows_with_spreadsheet_row_numbers(self):
        rows, errors = parse_roster_csv(b"adNo,name,className,semester\n201,Sara Ali,S2,Odd\n202,Omar,s1,\n")
        assert errors == []
        assert [(r.admission_no, r.name, r.class_name, r.semester, r.row_number) for r in rows] == [
            ("201", "Sara Ali", "S2", "Odd", 2),
            ("202", "Omar", "s1", None, 3),
        ]

    def test_missing_column_is_reported(self):
        rows, errors = parse_roster_csv("adNo,name,semester\n201,Sara,Odd\n")
        assert rows == []
        assert errors == ["Missing required column: className"]

    def test_header_only_is_rejected(self):
        rows, errors = parse_roster_csv("adNo,name,className,semester\n")
        assert rows == []
        assert errors


class TestSpreadsheet:

    def test_tolerant_headers(self):
        frame = pd.DataFrame({
            "Admission No": [201, 202],
            "Student Name": ["Sara Ali", "Omar"],
            "Class": ["S2", "S1"],
            "Semester": ["Even", None],
        })
        rows, errors = parse_roster_spreadsheet(xlsx_bytes(frame), "roster.xlsx")
        assert errors == []
        assert [(r.admission_no, r.name, r.class_name, r.semester) for r in rows] == [
            ("201", "Sara Ali", "S2", "Even"),
            ("202", "Omar", "S1", "Odd"),
        ]

    def test_positional_fallback(self):
        frame = pd.DataFrame({"A": ["301"], "B": ["Zainab"], "C": ["S3"], "D": ["Odd"]})
        rows, _ = parse_roster_spreadsheet(xlsx_bytes(frame), "roster.xlsx")
        assert (rows[0].admission_no, rows[0].name, rows[0].class_name) == ("301", "Zainab", "S3")

    def test_unreadable_file(self):
        rows, errors = parse_roster_spreadsheet(b"not a workbook", "roster.xlsx")
        assert rows == []
        assert errors[0].startswith("Error reading Excel file")


class TestText:

    def test_mixed_separators(self):
        rows, errors = parse_roster_text("201, Sara Ali, S2\n\n202;Omar;S1;Even\n203\tHuda\tS3")
        assert errors == []
        assert [r.admission_no for r in rows] == ["201", "202", "203"]
        assert rows[1].semester == "Even"
        assert rows[0].semester is None

    def test_short_line_is_an_error(self):
        rows, errors = parse_roster_text("201, Sara Ali")
        assert rows == []
        assert errors == ["Row 1: expected admission number, name and class"]
