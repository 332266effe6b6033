"""
The marks entry working set for one (class, subject) selection.

Each load advances the LoadEpoch. Async results (loads, saves, clears)
only touch the sheet when the epoch they captured is still the active one.
"""
import logging
from typing import Dict, List, Optional

from schemas.records import Draft, StudentRecord, SubjectRecord
from services.drafts import DraftAutoSaver
from services.epoch import LoadEpoch
from services.errors import MarksValidationError, RecordNotFoundError
from services.sync import BatchCommitResult, ClearResult, SyncResolver
from services.thresholds import Verdict, check_entry_value, evaluate, format_mark, ta_to_display

logger = logging.getLogger(__name__)

FIELDS = ("ta", "ce")


class MarksSheet:
    def __init__(self, store, resolver: SyncResolver, autosaver: Optional[DraftAutoSaver] = None):
        self._store = store
        self._resolver = resolver
        self._drafts = resolver.drafts
        self._tracker = resolver.drafts.tracker
        self._autosaver = autosaver or DraftAutoSaver(self._drafts)
        self._epoch: LoadEpoch = self._tracker.current

        self.class_name: Optional[str] = None
        self.subject: Optional[SubjectRecord] = None
        self.students: List[StudentRecord] = []
        self.values: Dict[str, Dict[str, str]] = {}

    @property
    def epoch(self) -> LoadEpoch:
        return self._epoch

    @property
    def is_loaded(self) -> bool:
        return self.subject is not None and self._tracker.is_current(self._epoch)

    # ===========================
    #          LOADING
    # ===========================

    async def load(self, class_name: str, subject_id: str) -> bool:
        """
        Switch the sheet to a new selection. Returns False when the load
        failed or was superseded by a later switch before it finished.
        """
        epoch = self._tracker.advance(class_name, subject_id)
        self._autosaver.cancel_all()
        self._epoch = epoch
        self.class_name = class_name
        self.subject = None
        self.students = []
        self.values = {}

        try:
            subject = await self._store.get_subject(subject_id)
            if subject is None:
                raise RecordNotFoundError(f"Subject {subject_id} not found")
            students = await self._students_for(subject, class_name)
        except RecordNotFoundError:
            raise
        except Exception as e:
            logger.warning("Loading %s/%s failed: %s", class_name, subject_id, e)
            return False

        if not self._tracker.is_current(epoch):
            logger.debug("Load for %s/%s superseded, discarding", class_name, subject_id)
            return False

        values = {}
        for student in students:
            stored = student.marks.get(subject.id)
            values[student.id] = {
                "ta": format_mark(ta_to_display(subject, stored.ta)) if stored else "",
                "ce": format_mark(stored.ce) if stored else "",
            }
            if not values[student.id]["ta"] and not values[student.id]["ce"]:
                draft = self._drafts.get(student.id, subject.id, epoch=epoch)
                if draft and self._usable_draft(subject, draft):
                    values[student.id] = {"ta": draft.ta, "ce": draft.ce}

        self.subject = subject
        self.students = students
        self.values = values
        return True

    def _usable_draft(self, subject: SubjectRecord, draft: Draft) -> bool:
        try:
            if evaluate(subject, draft.ta, draft.ce).exceeds:
                raise MarksValidationError("value above the subject maximum")
        except MarksValidationError as e:
            logger.warning("Dropping invalid draft for %s/%s: %s", draft.student_id, subject.id, e)
            self._drafts.delete(draft.student_id, subject.id)
            return False
        return True

    async def _students_for(self, subject: SubjectRecord, class_name: str) -> List[StudentRecord]:
        # Electives cut across classes, general subjects follow the selected class
        if subject.subject_type == "elective":
            return await self._store.list_students_by_ids(subject.enrolled_students)
        return await self._store.list_students_by_class(class_name)

    # ===========================
    #           EDITING
    # ===========================

    def set_mark(self, student_id: str, field: str, value: str) -> None:
        """Point-of-entry edit; invalid keystrokes raise and leave the sheet untouched."""
        if field not in FIELDS:
            raise MarksValidationError(f"Unknown field '{field}'")
        if not self.is_loaded:
            raise MarksValidationError("No subject loaded")
        if student_id not in self.values:
            raise MarksValidationError(f"Student {student_id} is not on this sheet")
        value = (value or "").strip()
        check_entry_value(self.subject, field, value)

        row = self.values[student_id]
        row[field] = value
        self._autosaver.schedule(student_id, self.subject.id, row["ta"], row["ce"], epoch=self._epoch)

    def verdicts(self) -> Dict[str, Verdict]:
        if self.subject is None:
            return {}
        return {sid: evaluate(self.subject, v["ta"], v["ce"]) for sid, v in self.values.items()}

    def completion(self) -> Dict[str, int]:
        total = len(self.students)
        completed = sum(1 for v in self.values.values() if v["ta"] and v["ce"])
        return {
            "completed": completed,
            "total": total,
            "percentage": round(completed / total * 100) if total else 0,
            "remaining": total - completed,
        }

    # ===========================
    #        SAVE & CLEAR
    # ===========================

    async def save(self) -> BatchCommitResult:
        if not self.is_loaded:
            raise MarksValidationError("No subject loaded")
        epoch, subject = self._epoch, self.subject
        # Pending auto-saves would otherwise re-create drafts the commit removes
        self._autosaver.cancel_all()
        rows = [(s.id, self.values[s.id]["ta"], self.values[s.id]["ce"]) for s in self.students]

        batch = await self._resolver.commit_batch(subject, rows, epoch=epoch)
        await self._refresh_students(epoch)
        return batch

    async def clear(self, student_id: str) -> ClearResult:
        if not self.is_loaded:
            raise MarksValidationError("No subject loaded")
        epoch, subject_id = self._epoch, self.subject.id
        self._autosaver.discard(student_id, subject_id)
        result = await self._resolver.clear(student_id, subject_id)
        if result.remote_cleared and self._tracker.is_current(epoch) and student_id in self.values:
            self.values[student_id] = {"ta": "", "ce": ""}
            await self._refresh_students(epoch)
        return result

    async def clear_all(self) -> List[ClearResult]:
        if not self.is_loaded:
            raise MarksValidationError("No subject loaded")
        epoch, subject_id = self._epoch, self.subject.id
        self._autosaver.cancel_all()
        results = await self._resolver.clear_batch(subject_id, [s.id for s in self.students])
        if self._tracker.is_current(epoch):
            # rows whose remote delete failed keep showing the stored marks
            for result in results:
                if result.remote_cleared and result.student_id in self.values:
                    self.values[result.student_id] = {"ta": "", "ce": ""}
            await self._refresh_students(epoch)
        return results

    async def _refresh_students(self, epoch: LoadEpoch) -> None:
        if not self._tracker.is_current(epoch):
            logger.debug("Sheet moved on, not applying results for %s", epoch)
            return
        try:
            fresh = await self._store.list_students_by_ids([s.id for s in self.students])
        except Exception as e:
            logger.warning("Could not refresh sheet students: %s", e)
            return
        if not self._tracker.is_current(epoch):
            logger.debug("Sheet moved on during refresh, discarding")
            return
        by_id = {s.id: s for s in fresh}
        self.students = [by_id.get(s.id, s) for s in self.students]
