import io

import pandas as pd

from conftest import FIQH, NAHW, make_student
from schemas.records import MarksEntry
from services.export import EXPORT_COLUMNS, export_csv, export_xlsx, marks_rows

SUBJECTS = {"nahw": NAHW, "fiqh": FIQH}
STUDENTS = [
    make_student("st-1", "101", "Ahmed", marks={
        "nahw": MarksEntry(ta=60, ce=25, total=85, status="Passed"),
        "fiqh": MarksEntry(ta=60, ce=12, total=72, status="Passed"),
    }),
    make_student("st-2", "102", "Bilal"),
]


def test_rows_use_stored_values():
    rows = marks_rows(STUDENTS, SUBJECTS)
    assert len(rows) == 2
    fiqh = next(r for r in rows if r["Subject"] == "Fiqh")
    assert fiqh["TA"] == 60
    assert fiqh["Total"] == 72


def test_csv_export():
    frame = pd.read_csv(io.BytesIO(export_csv(STUDENTS, SUBJECTS)), dtype={"Admission No": str})
    assert list(frame.columns) == EXPORT_COLUMNS
    assert set(frame["Admission No"]) == {"101"}


def test_xlsx_export_has_marks_sheet():
    frame = pd.read_excel(io.BytesIO(export_xlsx(STUDENTS, SUBJECTS)), sheet_name="Marks", engine="openpyxl")
    assert len(frame) == 2
    assert frame["Status"].tolist() == ["Passed", "Passed"]


def test_empty_export_keeps_header():
    frame = pd.read_csv(io.BytesIO(export_csv([], SUBJECTS)))
    assert list(frame.columns) == EXPORT_COLUMNS
    assert frame.empty
