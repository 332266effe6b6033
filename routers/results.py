from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response

from services.aggregation import class_statistics, promotion_eligibility
from services.deps import get_store
from services.errors import TransientPersistenceError
from services.export import export_csv, export_xlsx
from services.thresholds import evaluate, format_mark, min_ce, min_ta, ta_to_display

router = APIRouter(prefix="/results", tags=["Results"])

EXPORT_MEDIA_TYPES = {
    "csv": "text/csv",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}


async def _fetch(awaitable):
    try:
        return await awaitable
    except TransientPersistenceError as e:
        raise HTTPException(status_code=503, detail=f"Record store unavailable: {e}")


async def _class_students(store, class_name: str):
    return await _fetch(store.list_students_by_class(class_name))


# ===========================
#   PART 1: CLASS RESULTS
# ===========================

@router.get("/class/{class_name}")
async def get_class_results(class_name: str, store=Depends(get_store)):
    """Ranked list; students without any marks have no rank and sort last."""
    students = await _class_students(store, class_name)
    ranked = sorted(students, key=lambda s: (s.rank is None, s.rank or 0))
    return [
        {
            "id": s.id,
            "adm_no": s.admission_no,
            "name": s.name,
            "grand_total": s.grand_total,
            "average": s.average,
            "rank": s.rank,
            "performance_level": s.performance_level,
            "subjects_recorded": len(s.marks),
        }
        for s in ranked
    ]


@router.get("/class/{class_name}/statistics")
async def get_class_statistics(class_name: str, store=Depends(get_store)):
    students = await _class_students(store, class_name)
    return asdict(class_statistics(students))


# ===========================
#   PART 2: STUDENT REPORT
# ===========================

@router.get("/student/{student_id}")
async def get_student_report(student_id: str, store=Depends(get_store)):
    student = await _fetch(store.get_student(student_id))
    if not student:
        raise HTTPException(status_code=404, detail="Student not found")
    subjects = await _fetch(store.list_subjects())
    by_id = {s.id: s for s in subjects}

    report = []
    for subject_id, entry in student.marks.items():
        subject = by_id.get(subject_id)
        if subject is None:
            continue
        ta = ta_to_display(subject, entry.ta)
        verdict = evaluate(subject, format_mark(ta), format_mark(entry.ce))
        report.append({
            "subject_id": subject.id,
            "subject": subject.name,
            "arabic_name": subject.arabic_name,
            "ta": ta,
            "ce": entry.ce,
            "total": verdict.total,
            "max_ta": subject.max_ta,
            "max_ce": subject.max_ce,
            "min_ta": min_ta(subject.max_ta),
            "min_ce": min_ce(subject.max_ce),
            "status": verdict.status,
            "ta_failing": verdict.ta_failing,
            "ce_failing": verdict.ce_failing,
        })

    return {
        "student": {
            "id": student.id,
            "name": student.name,
            "adm_no": student.admission_no,
            "class_name": student.class_name,
            "semester": student.semester,
        },
        "marks": report,
        "grand_total": student.grand_total,
        "average": student.average,
        "rank": student.rank,
        "performance_level": student.performance_level,
        "promotion": asdict(promotion_eligibility(student, subjects)),
    }


# ===========================
#   PART 3: EXPORT
# ===========================

@router.get("/export")
async def export_marks(format: str = "csv", class_name: Optional[str] = None, store=Depends(get_store)):
    if format not in EXPORT_MEDIA_TYPES:
        raise HTTPException(status_code=400, detail="Export format must be csv or xlsx")
    if class_name:
        students = await _class_students(store, class_name)
    else:
        students = await _fetch(store.list_students())
    subjects = await _fetch(store.subjects_by_id())

    content = export_csv(students, subjects) if format == "csv" else export_xlsx(students, subjects)
    filename = f"marks_{class_name or 'all'}.{format}"
    return Response(
        content=content,
        media_type=EXPORT_MEDIA_TYPES[format],
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )
