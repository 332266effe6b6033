"""
Student Bulk Import Router
Accepts a roster (CSV, Excel or pasted text) and merges it into the
student collection. Known admission numbers are updated in place with
their marks untouched; unknown ones are added with empty marks.
"""

from fastapi import APIRouter, Depends, HTTPException, File, UploadFile
from pydantic import BaseModel

from services.deps import get_importer
from services.errors import TransientPersistenceError
from services.roster import RosterImporter
from services.roster_files import CSV_COLUMNS, parse_roster_csv, parse_roster_spreadsheet, parse_roster_text

router = APIRouter(prefix="/bulk-import", tags=["Bulk Import"])


class RosterTextSchema(BaseModel):
    text: str


async def _run_import(importer: RosterImporter, rows, parse_errors):
    try:
        summary = await importer.import_rows(rows, parse_errors)
    except TransientPersistenceError as e:
        raise HTTPException(status_code=503, detail=f"Database error. No students were imported. Error: {e}")
    return {
        "success": not summary.failed,
        "total_rows": len(rows) + len(parse_errors),
        "added_count": summary.added_count,
        "updated_count": summary.updated_count,
        "persisted_count": summary.persisted_count,
        "error_count": len(summary.errors) + len(summary.failed),
        "errors": summary.errors,
        "failed": summary.failed,
    }


# ==========================================
#   MAIN BULK IMPORT ENDPOINTS
# ==========================================

@router.post("/students")
async def bulk_import_students(
    file: UploadFile = File(...),
    importer: RosterImporter = Depends(get_importer)
):
    """
    Bulk import students from a CSV (adNo,name,className,semester) or an
    Excel file (admission number, name, class, semester columns).
    """
    filename = (file.filename or "").lower()
    if not filename.endswith(('.csv', '.xlsx', '.xls')):
        raise HTTPException(
            status_code=400,
            detail="Invalid file format. Please upload a CSV or Excel file (.csv, .xlsx or .xls)"
        )

    contents = await file.read()
    if filename.endswith('.csv'):
        rows, parse_errors = parse_roster_csv(contents)
    else:
        rows, parse_errors = parse_roster_spreadsheet(contents, filename)

    if not rows and parse_errors:
        raise HTTPException(status_code=400, detail="; ".join(parse_errors))
    return await _run_import(importer, rows, parse_errors)


@router.post("/students/text")
async def bulk_import_students_text(payload: RosterTextSchema,
                                    importer: RosterImporter = Depends(get_importer)):
    """One student per line: admission number, name, class (optionally semester)."""
    rows, parse_errors = parse_roster_text(payload.text)
    if not rows and not parse_errors:
        raise HTTPException(status_code=400, detail="No students found in the text")
    return await _run_import(importer, rows, parse_errors)


# ==========================================
#   SAMPLE TEMPLATE
# ==========================================

@router.get("/template")
async def get_sample_template():
    return {
        "csv_columns": CSV_COLUMNS,
        "example": "adNo,name,className,semester\n201,Sara Ali,S2,Odd",
        "notes": [
            "className must match one of the configured classes (case does not matter)",
            "semester is Odd or Even, Odd when left empty",
            "existing admission numbers are updated, their marks are kept",
            "Excel files may use headers like 'Admission No', 'Student Name', 'Class', 'Semester'",
        ]
    }
