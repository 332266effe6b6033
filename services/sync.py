"""
Synchronization Resolver.

Commits go to the record store first; when the store fails the edit is
kept as a draft and reported as saved offline. A successful write removes
the draft and refreshes the derived fields of the student's class.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

from schemas.records import MarksEntry, StudentRecord, SubjectRecord
from services.aggregation import recompute_cohort
from services.drafts import DraftBuffer
from services.epoch import LoadEpoch
from services.errors import MarksValidationError, RecordNotFoundError
from services.thresholds import Verdict, build_entry, evaluate, format_mark, parse_mark

logger = logging.getLogger(__name__)


class CommitOutcome(str, Enum):
    SAVED = "saved"
    SAVED_OFFLINE = "saved_offline"
    REJECTED = "rejected"
    INCOMPLETE = "incomplete"


@dataclass
class CommitResult:
    student_id: str
    subject_id: str
    outcome: CommitOutcome
    verdict: Optional[Verdict] = None
    entry: Optional[MarksEntry] = None
    message: str = ""
    stale: bool = False  # the caller's working set changed while this was in flight


@dataclass
class BatchCommitResult:
    saved: int = 0
    offline: int = 0
    rejected: int = 0
    incomplete: int = 0
    results: List[CommitResult] = field(default_factory=list)

    @property
    def errors(self) -> List[str]:
        return [r.message for r in self.results if r.outcome == CommitOutcome.REJECTED]

    def add(self, result: CommitResult) -> None:
        self.results.append(result)
        if result.outcome == CommitOutcome.SAVED:
            self.saved += 1
        elif result.outcome == CommitOutcome.SAVED_OFFLINE:
            self.offline += 1
        elif result.outcome == CommitOutcome.REJECTED:
            self.rejected += 1
        else:
            self.incomplete += 1


@dataclass
class ClearResult:
    student_id: str
    subject_id: str
    remote_cleared: bool
    draft_cleared: bool
    message: str = ""


class SyncResolver:
    def __init__(self, store, drafts: DraftBuffer):
        self._store = store
        self._drafts = drafts

    @property
    def drafts(self) -> DraftBuffer:
        return self._drafts

    # ===========================
    #          COMMIT
    # ===========================

    async def commit(self, student_id: str, subject: SubjectRecord, ta, ce,
                     epoch: Optional[LoadEpoch] = None, recompute: bool = True) -> CommitResult:
        result = CommitResult(student_id=student_id, subject_id=subject.id,
                              outcome=CommitOutcome.REJECTED)
        try:
            verdict = evaluate(subject, ta, ce)
        except MarksValidationError as e:
            result.message = str(e)
            return result
        result.verdict = verdict

        if verdict.exceeds:
            field_name = "TA" if verdict.ta_exceeds else "CE"
            maximum = subject.max_ta if verdict.ta_exceeds else subject.max_ce
            result.message = f"{field_name} marks for {student_id} exceed maximum ({maximum})"
            return result
        if not subject.is_enrolled(student_id):
            result.message = f"Student {student_id} is not enrolled in {subject.name}"
            return result

        ta_text, ce_text = format_mark(parse_mark(ta)), format_mark(parse_mark(ce))
        if not verdict.is_final:
            self._drafts.save(student_id, subject.id, ta_text, ce_text)
            result.outcome = CommitOutcome.INCOMPLETE
            result.message = "Both TA and CE are needed, kept as draft"
            return result

        entry = build_entry(subject, ta, ce)
        try:
            await self._store.update_marks(student_id, subject.id, entry)
        except RecordNotFoundError as e:
            result.message = str(e)
            return result
        except Exception as e:
            # Any remote failure, timeouts included, falls back to the draft
            logger.warning("Online save failed for %s/%s, saving offline: %s",
                           student_id, subject.id, e)
            self._drafts.save(student_id, subject.id, ta_text, ce_text)
            result.outcome = CommitOutcome.SAVED_OFFLINE
            result.message = "Saved offline, will sync later"
            result.stale = not self._drafts.tracker.is_current(epoch)
            return result

        self._drafts.delete(student_id, subject.id)
        result.outcome = CommitOutcome.SAVED
        result.entry = entry
        result.message = "Saved"
        if recompute:
            await self.recompute_for_students([student_id])
        result.stale = not self._drafts.tracker.is_current(epoch)
        return result

    async def commit_batch(self, subject: SubjectRecord, rows: Iterable[Tuple[str, object, object]],
                           epoch: Optional[LoadEpoch] = None) -> BatchCommitResult:
        """
        Commit a whole sheet. Each row is independent; rows with neither
        value are skipped, everything else is counted in the result.
        """
        pending = [(sid, ta, ce) for sid, ta, ce in rows
                   if not _is_blank(ta) or not _is_blank(ce)]
        results = await asyncio.gather(*[
            self.commit(sid, subject, ta, ce, epoch=epoch, recompute=False)
            for sid, ta, ce in pending
        ])

        batch = BatchCommitResult()
        for result in results:
            batch.add(result)

        saved_ids = [r.student_id for r in results if r.outcome == CommitOutcome.SAVED]
        if saved_ids:
            await self.recompute_for_students(saved_ids)
        logger.info("Batch commit for %s: %d saved, %d offline, %d rejected, %d incomplete",
                    subject.id, batch.saved, batch.offline, batch.rejected, batch.incomplete)
        return batch

    # ===========================
    #          CLEAR
    # ===========================

    async def clear(self, student_id: str, subject_id: str, recompute: bool = True) -> ClearResult:
        # Draft goes first so a failed remote delete cannot resurrect it later
        draft_cleared = self._drafts.delete(student_id, subject_id)
        result = ClearResult(student_id=student_id, subject_id=subject_id,
                             remote_cleared=False, draft_cleared=draft_cleared)
        try:
            await self._store.delete_marks(student_id, subject_id)
        except Exception as e:
            logger.warning("Remote clear failed for %s/%s: %s", student_id, subject_id, e)
            result.message = "Could not clear stored marks, try again when online"
            return result

        result.remote_cleared = True
        result.message = "Cleared"
        if recompute:
            await self.recompute_for_students([student_id])
        return result

    async def clear_batch(self, subject_id: str, student_ids: Iterable[str]) -> List[ClearResult]:
        student_ids = list(student_ids)
        results = await asyncio.gather(*[
            self.clear(sid, subject_id, recompute=False) for sid in student_ids
        ])
        cleared = [r.student_id for r in results if r.remote_cleared]
        if cleared:
            await self.recompute_for_students(cleared)
        return list(results)

    # ===========================
    #     DRAFT REPLAY & RANKS
    # ===========================

    async def replay_drafts(self, subjects: Dict[str, SubjectRecord]) -> BatchCommitResult:
        """Push every complete draft back through commit (the "sync later" path)."""
        batch = BatchCommitResult()
        by_subject: Dict[str, List[Tuple[str, str, str]]] = {}
        for draft in self._drafts.pending():
            if draft.subject_id not in subjects or not draft.ta or not draft.ce:
                continue
            by_subject.setdefault(draft.subject_id, []).append(
                (draft.student_id, draft.ta, draft.ce))

        for subject_id, rows in by_subject.items():
            partial = await self.commit_batch(subjects[subject_id], rows)
            for result in partial.results:
                batch.add(result)
                if result.outcome == CommitOutcome.REJECTED:
                    # rejections are final, the draft is dropped
                    logger.warning("Discarding draft %s/%s: %s", result.student_id, subject_id, result.message)
                    self._drafts.delete(result.student_id, subject_id)
        return batch

    async def recompute_for_students(self, student_ids: Iterable[str]) -> bool:
        try:
            students = await self._store.list_students_by_ids(student_ids)
        except Exception as e:
            logger.warning("Could not load students for recompute: %s", e)
            return False
        ok = True
        for class_name in sorted({s.class_name for s in students}):
            ok = await self.recompute_class(class_name) and ok
        return ok

    async def recompute_class(self, class_name: str) -> bool:
        """Refresh totals, averages, tiers and ranks for one class."""
        try:
            students = await self._store.list_students_by_class(class_name)
            subjects = await self._store.subjects_by_id()
            refreshed = recompute_cohort(students, subjects)
            changed = [new for old, new in zip(students, refreshed) if _derived_changed(old, new)]
            if changed:
                await self._store.upsert_students(changed)
        except Exception as e:
            # Marks are already written; derived fields catch up on the next pass
            logger.warning("Recompute failed for class %s: %s", class_name, e)
            return False
        return True


def _is_blank(value) -> bool:
    return value is None or str(value).strip() == ""


def _derived_changed(old: StudentRecord, new: StudentRecord) -> bool:
    return (old.grand_total, old.average, old.rank, old.performance_level) != \
        (new.grand_total, new.average, new.rank, new.performance_level)
