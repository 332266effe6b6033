import io
from typing import Dict, List

import pandas as pd

from schemas.records import StudentRecord, SubjectRecord

EXPORT_COLUMNS = [
    "Student ID", "Admission No", "Student Name", "Class", "Semester",
    "Subject", "TA", "CE", "Total", "Status",
]


def marks_rows(students: List[StudentRecord], subjects: Dict[str, SubjectRecord]) -> List[dict]:
    """One row per student per recorded subject, values exactly as stored."""
    rows = []
    for student in students:
        for subject_id, entry in student.marks.items():
            subject = subjects.get(subject_id)
            rows.append({
                "Student ID": student.id,
                "Admission No": student.admission_no,
                "Student Name": student.name,
                "Class": student.class_name,
                "Semester": student.semester,
                "Subject": subject.name if subject else subject_id,
                "TA": entry.ta,
                "CE": entry.ce,
                "Total": entry.total,
                "Status": entry.status,
            })
    return rows


def marks_frame(students: List[StudentRecord], subjects: Dict[str, SubjectRecord]) -> pd.DataFrame:
    return pd.DataFrame(marks_rows(students, subjects), columns=EXPORT_COLUMNS)


def export_csv(students, subjects) -> bytes:
    return marks_frame(students, subjects).to_csv(index=False).encode("utf-8")


def export_xlsx(students, subjects) -> bytes:
    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        marks_frame(students, subjects).to_excel(writer, index=False, sheet_name="Marks")
    return buffer.getvalue()
