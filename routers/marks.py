import logging
from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from typing import List, Optional

from services.deps import get_resolver, get_sheet, get_store
from services.errors import MarksValidationError, RecordNotFoundError, TransientPersistenceError
from services.sheet import MarksSheet
from services.sync import CommitOutcome, SyncResolver
from services.thresholds import check_entry_value, evaluate, min_ce, min_ta

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/marks", tags=["Marks Entry"])

# ===========================
#      SCHEMAS (MODELS)
# ===========================
class MarkEntrySchema(BaseModel):
    student_id: str
    ta: Optional[str] = ""
    ce: Optional[str] = ""

class MarksSubmitSchema(BaseModel):
    subject_id: str
    data: List[MarkEntrySchema]

class DraftSchema(BaseModel):
    student_id: str
    subject_id: str
    ta: Optional[str] = ""
    ce: Optional[str] = ""

class ValidateSchema(BaseModel):
    subject_id: str
    ta: Optional[str] = ""
    ce: Optional[str] = ""


async def _subject_or_404(store, subject_id: str):
    try:
        subject = await store.get_subject(subject_id)
    except TransientPersistenceError as e:
        raise HTTPException(status_code=503, detail=f"Record store unavailable: {e}")
    if not subject:
        raise HTTPException(status_code=404, detail="Subject not found")
    return subject


# ===========================
#   PART 1: ENTRY SHEET
# ===========================

@router.get("/sheet")
async def get_entry_sheet(class_name: str, subject_id: str, sheet: MarksSheet = Depends(get_sheet)):
    """Students for the selection with display-scale values, drafts filled in where nothing is saved."""
    try:
        loaded = await sheet.load(class_name, subject_id)
    except RecordNotFoundError:
        raise HTTPException(status_code=404, detail="Subject not found")
    if not loaded:
        raise HTTPException(status_code=503, detail="Could not load students, try again")

    subject = sheet.subject
    verdicts = sheet.verdicts()
    return {
        "subject": {
            "id": subject.id,
            "name": subject.name,
            "max_ta": subject.max_ta,
            "max_ce": subject.max_ce,
            "min_ta": min_ta(subject.max_ta),
            "min_ce": min_ce(subject.max_ce),
        },
        "students": [
            {
                "id": s.id,
                "name": s.name,
                "adm_no": s.admission_no,
                "class_name": s.class_name,
                "ta": sheet.values[s.id]["ta"],
                "ce": sheet.values[s.id]["ce"],
                "verdict": asdict(verdicts[s.id]),
            }
            for s in sheet.students
        ],
        "completion": sheet.completion(),
    }


@router.post("/validate")
async def validate_marks(payload: ValidateSchema, store=Depends(get_store)):
    subject = await _subject_or_404(store, payload.subject_id)
    try:
        verdict = evaluate(subject, payload.ta, payload.ce)
    except MarksValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return asdict(verdict)


# ===========================
#   PART 2: SAVE & DRAFTS
# ===========================

@router.post("/save")
async def save_marks(payload: MarksSubmitSchema, store=Depends(get_store),
                     resolver: SyncResolver = Depends(get_resolver)):
    subject = await _subject_or_404(store, payload.subject_id)
    batch = await resolver.commit_batch(
        subject, [(item.student_id, item.ta, item.ce) for item in payload.data]
    )

    if batch.offline:
        message = "Marks saved offline as drafts! They will sync when the server is reachable."
    else:
        message = "Marks Saved Successfully!"
    return {
        "message": message,
        "saved_count": batch.saved,
        "offline_count": batch.offline,
        "rejected_count": batch.rejected,
        "incomplete_count": batch.incomplete,
        "errors": batch.errors,
    }


@router.post("/save-one")
async def save_single_mark(payload: DraftSchema, store=Depends(get_store),
                           resolver: SyncResolver = Depends(get_resolver)):
    subject = await _subject_or_404(store, payload.subject_id)
    result = await resolver.commit(payload.student_id, subject, payload.ta, payload.ce)
    if result.outcome == CommitOutcome.REJECTED:
        raise HTTPException(status_code=422, detail=result.message)
    return {
        "status": result.outcome.value,
        "message": result.message,
        "entry": result.entry.model_dump() if result.entry else None,
    }


@router.post("/draft")
async def save_draft(payload: DraftSchema, store=Depends(get_store),
                     resolver: SyncResolver = Depends(get_resolver)):
    subject = await _subject_or_404(store, payload.subject_id)
    ta, ce = (payload.ta or "").strip(), (payload.ce or "").strip()
    try:
        check_entry_value(subject, "ta", ta)
        check_entry_value(subject, "ce", ce)
    except MarksValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    draft = resolver.drafts.save(payload.student_id, subject.id, ta, ce)
    return draft.model_dump()


@router.get("/drafts")
def list_drafts(subject_id: Optional[str] = None, resolver: SyncResolver = Depends(get_resolver)):
    return [d.model_dump() for d in resolver.drafts.pending(subject_id)]


@router.post("/sync-drafts")
async def sync_drafts(store=Depends(get_store), resolver: SyncResolver = Depends(get_resolver)):
    try:
        subjects = await store.subjects_by_id()
    except TransientPersistenceError as e:
        raise HTTPException(status_code=503, detail=f"Record store unavailable: {e}")
    batch = await resolver.replay_drafts(subjects)
    logger.info("Draft sync: %d saved, %d still offline, %d rejected",
                batch.saved, batch.offline, batch.rejected)
    return {
        "saved_count": batch.saved,
        "offline_count": batch.offline,
        "rejected_count": batch.rejected,
        "errors": batch.errors,
    }


# ===========================
#   PART 3: CLEAR MARKS
# ===========================

# Specific route first, otherwise "subject" is taken as a student id
@router.delete("/subject/{subject_id}")
async def clear_subject_marks(subject_id: str, class_name: str, store=Depends(get_store),
                              resolver: SyncResolver = Depends(get_resolver)):
    try:
        students = await store.list_students_by_class(class_name)
    except TransientPersistenceError as e:
        raise HTTPException(status_code=503, detail=f"Record store unavailable: {e}")
    results = await resolver.clear_batch(subject_id, [s.id for s in students])
    cleared = sum(1 for r in results if r.remote_cleared)
    return {
        "message": f"Cleared {cleared} of {len(results)} students",
        "cleared_count": cleared,
        "failed_count": len(results) - cleared,
    }


@router.delete("/{student_id}/{subject_id}")
async def clear_student_marks(student_id: str, subject_id: str,
                              resolver: SyncResolver = Depends(get_resolver)):
    result = await resolver.clear(student_id, subject_id)
    if not result.remote_cleared:
        raise HTTPException(status_code=503, detail=result.message)
    return {"message": f"Marks cleared for {student_id}", "draft_cleared": result.draft_cleared}
