import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from typing import Literal, Optional

from schemas.records import StudentRecord
from services.deps import get_resolver, get_store
from services.roster import new_student_id
from services.sync import SyncResolver

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/students", tags=["Students"])

# --- SCHEMAS ---
class StudentCreateSchema(BaseModel):
    admission_no: str
    name: str
    class_name: str
    semester: Literal["Odd", "Even"] = "Odd"

class StudentUpdateSchema(BaseModel):
    admission_no: Optional[str] = None
    name: Optional[str] = None
    class_name: Optional[str] = None
    semester: Optional[Literal["Odd", "Even"]] = None


async def _canonical_class(store, class_name: str) -> str:
    classes = {c.lower(): c for c in await store.list_class_names()}
    canonical = classes.get(class_name.strip().lower())
    if canonical is None:
        raise HTTPException(status_code=400,
                            detail=f"Invalid class \"{class_name}\". Must be one of: {', '.join(classes.values())}")
    return canonical


async def _admission_taken(store, admission_no: str, exclude_id: Optional[str] = None) -> bool:
    return any(s.admission_no == admission_no and s.id != exclude_id for s in await store.list_students())


# ===============================
#   1. LIST / FILTER
# ===============================

@router.get("/")
async def filter_students(class_name: str = "", search: str = "", store=Depends(get_store)):
    if class_name and class_name != "all":
        students = await store.list_students_by_class(class_name)
    else:
        students = await store.list_students()
    if search:
        needle = search.lower()
        students = [s for s in students if needle in s.name.lower() or needle in s.admission_no.lower()]
    return students

@router.get("/{id}")
async def get_student_detail(id: str, store=Depends(get_store)):
    student = await store.get_student(id)
    if not student:
        raise HTTPException(status_code=404, detail="Student not found")
    return student

# ===============================
#   2. ADD / UPDATE / DELETE
# ===============================

@router.post("/")
async def add_student(payload: StudentCreateSchema, store=Depends(get_store),
                      resolver: SyncResolver = Depends(get_resolver)):
    admission_no, name = payload.admission_no.strip(), payload.name.strip()
    if not admission_no or not name:
        raise HTTPException(status_code=400, detail="Admission number and name are required")
    class_name = await _canonical_class(store, payload.class_name)
    if await _admission_taken(store, admission_no):
        raise HTTPException(status_code=400, detail="Admission Number already exists")

    student = StudentRecord(
        id=new_student_id(),
        admission_no=admission_no,
        name=name,
        class_name=class_name,
        semester=payload.semester,
    )
    await store.upsert_students([student])
    # A markless newcomer still shifts nobody's rank, but keeps the class consistent
    await resolver.recompute_class(class_name)
    logger.info("Student %s added to %s", admission_no, class_name)
    return {"message": "Student Added Successfully", "id": student.id}

@router.post("/{id}/update")
async def update_student_details(id: str, payload: StudentUpdateSchema, store=Depends(get_store),
                                 resolver: SyncResolver = Depends(get_resolver)):
    student = await store.get_student(id)
    if not student:
        raise HTTPException(status_code=404, detail="Student not found")

    changes = payload.model_dump(exclude_none=True)
    if "class_name" in changes:
        changes["class_name"] = await _canonical_class(store, changes["class_name"])
    if "admission_no" in changes:
        changes["admission_no"] = changes["admission_no"].strip()
        if await _admission_taken(store, changes["admission_no"], exclude_id=id):
            raise HTTPException(status_code=400, detail="Admission Number already exists")

    updated = student.model_copy(update=changes)
    await store.upsert_students([updated])
    for class_name in sorted({student.class_name, updated.class_name}):
        await resolver.recompute_class(class_name)
    return {"message": "Student Updated Successfully"}

@router.delete("/{id}")
async def delete_student(id: str, store=Depends(get_store),
                         resolver: SyncResolver = Depends(get_resolver)):
    student = await store.get_student(id)
    if not student:
        raise HTTPException(status_code=404, detail="Student not found")
    await store.delete_student(id)
    resolver.drafts.delete_for_student(id)
    await resolver.recompute_class(student.class_name)
    return {"message": "Student Deleted"}
