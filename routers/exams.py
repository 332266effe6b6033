import logging
import re

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ValidationError
from typing import List, Literal, Optional

from schemas.records import SubjectRecord
from services.deps import get_resolver, get_store
from services.errors import TransientPersistenceError
from services.sync import SyncResolver

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/exams", tags=["Exams"])

# --- SCHEMAS ---
class SubjectSchema(BaseModel):
    name: str
    arabic_name: Optional[str] = None
    max_ta: int
    max_ce: int
    passing_total: int = 0
    faculty_name: Optional[str] = None
    target_classes: List[str] = []
    subject_type: Literal["general", "elective"] = "general"
    id: Optional[str] = None

class EnrollSchema(BaseModel):
    student_ids: List[str]


def subject_slug(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "_", name.strip().lower()).strip("_")


async def _load_subject(store, subject_id: str) -> SubjectRecord:
    try:
        subject = await store.get_subject(subject_id)
    except TransientPersistenceError as e:
        raise HTTPException(status_code=503, detail=f"Record store unavailable: {e}")
    if not subject:
        raise HTTPException(status_code=404, detail="Subject not found")
    return subject


def _build_record(payload: SubjectSchema, subject_id: str, enrolled: List[str]) -> SubjectRecord:
    try:
        return SubjectRecord(
            **payload.model_dump(exclude={"id"}),
            id=subject_id,
            enrolled_students=enrolled if payload.subject_type == "elective" else [],
        )
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))


# ===========================
#        1. SUBJECT MASTER
# ===========================

@router.get("/subjects")
async def get_all_subjects(class_name: Optional[str] = None, store=Depends(get_store)):
    subjects = await store.list_subjects()
    if class_name:
        subjects = [s for s in subjects if s.applies_to_class(class_name)]
    return subjects

@router.get("/subjects/{subject_id}")
async def get_subject(subject_id: str, store=Depends(get_store)):
    return await _load_subject(store, subject_id)

@router.post("/subjects")
async def add_subject(payload: SubjectSchema, store=Depends(get_store)):
    subject_id = payload.id or subject_slug(payload.name)
    if not subject_id:
        raise HTTPException(status_code=400, detail="Subject name is required")
    if await store.get_subject(subject_id):
        raise HTTPException(status_code=400, detail="Subject might already exist")
    saved = await store.save_subject(_build_record(payload, subject_id, []))
    logger.info("Subject %s created", saved.id)
    return saved

@router.put("/subjects/{subject_id}")
async def update_subject(subject_id: str, payload: SubjectSchema, store=Depends(get_store),
                         resolver: SyncResolver = Depends(get_resolver)):
    existing = await _load_subject(store, subject_id)
    saved = await store.save_subject(_build_record(payload, subject_id, existing.enrolled_students))

    # Maxima feed the averages, so every class that has marks here needs a refresh
    if (existing.max_ta, existing.max_ce) != (saved.max_ta, saved.max_ce):
        students = await store.list_students()
        affected = sorted({s.class_name for s in students if subject_id in s.marks})
        for class_name in affected:
            await resolver.recompute_class(class_name)
    return saved

@router.delete("/subjects/{subject_id}")
async def delete_subject(subject_id: str, store=Depends(get_store),
                         resolver: SyncResolver = Depends(get_resolver)):
    await _load_subject(store, subject_id)
    students = await store.list_students()
    affected = sorted({s.class_name for s in students if subject_id in s.marks})
    await store.delete_subject(subject_id)
    for class_name in affected:
        await resolver.recompute_class(class_name)
    return {"message": f"Subject {subject_id} deleted"}

# ===========================
#    2. ELECTIVE ENROLMENT
# ===========================

@router.post("/subjects/{subject_id}/enroll")
async def enroll_students(subject_id: str, payload: EnrollSchema, store=Depends(get_store)):
    subject = await _load_subject(store, subject_id)
    if subject.subject_type != "elective":
        raise HTTPException(status_code=400, detail="Only elective subjects take enrolments")

    found = {s.id for s in await store.list_students_by_ids(payload.student_ids)}
    missing = [sid for sid in payload.student_ids if sid not in found]
    enrolled = list(subject.enrolled_students)
    count = 0
    for sid in payload.student_ids:
        if sid in found and sid not in enrolled:
            enrolled.append(sid)
            count += 1
    await store.save_subject(subject.model_copy(update={"enrolled_students": enrolled}))
    return {"message": f"{count} Students Enrolled Successfully", "not_found": missing}

@router.post("/subjects/{subject_id}/unenroll")
async def unenroll_students(subject_id: str, payload: EnrollSchema, store=Depends(get_store)):
    subject = await _load_subject(store, subject_id)
    if subject.subject_type != "elective":
        raise HTTPException(status_code=400, detail="Only elective subjects take enrolments")
    remove = set(payload.student_ids)
    enrolled = [sid for sid in subject.enrolled_students if sid not in remove]
    await store.save_subject(subject.model_copy(update={"enrolled_students": enrolled}))
    # Existing marks stay, they simply stop showing on the entry sheet
    return {"message": f"{len(subject.enrolled_students) - len(enrolled)} Students Removed"}
