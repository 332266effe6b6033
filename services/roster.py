"""
Roster Merge Resolver.

Upserts an external (admission number, name, class) list into the student
collection. Existing students keep their marks untouched; the merge only
rewrites name and class.
"""
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional

from schemas.records import StudentRecord
from services.errors import MergeRowError

logger = logging.getLogger(__name__)

SEMESTERS = ("Odd", "Even")


@dataclass
class RosterRow:
    admission_no: Optional[str]
    name: Optional[str]
    class_name: Optional[str]
    semester: Optional[str] = None
    row_number: Optional[int] = None  # as shown to the user (header is row 1)


@dataclass
class MergeResult:
    updated_collection: List[StudentRecord]
    added_count: int = 0
    updated_count: int = 0
    errors: List[str] = field(default_factory=list)
    changed: List[StudentRecord] = field(default_factory=list)  # what the caller must persist


@dataclass
class ImportSummary:
    added_count: int = 0
    updated_count: int = 0
    errors: List[str] = field(default_factory=list)
    persisted_count: int = 0
    failed: List[str] = field(default_factory=list)


def new_student_id() -> str:
    return f"st-{uuid.uuid4().hex[:16]}"


def _clean(value) -> str:
    return "" if value is None else str(value).strip()


def merge_roster(rows: Iterable[RosterRow], current: List[StudentRecord], class_names: Iterable[str],
                 id_factory: Callable[[], str] = new_student_id,
                 import_base: Optional[int] = None) -> MergeResult:
    """
    Pure merge, no persistence. Bad rows are collected as errors and the
    rest of the batch carries on.
    """
    if import_base is None:
        import_base = int(time.time() * 1000)
    classes = {c.lower(): c for c in class_names}
    collection = list(current)
    index = {s.admission_no: i for i, s in enumerate(collection)}
    result = MergeResult(updated_collection=collection)
    seen = set()

    for position, row in enumerate(rows, start=1):
        row_no = row.row_number or position
        admission_no, name, class_name = _clean(row.admission_no), _clean(row.name), _clean(row.class_name)
        semester = _clean(row.semester)

        try:
            if not admission_no or not name or not class_name:
                raise MergeRowError(row_no, "Missing required fields (admission number, name or class)")
            canonical = classes.get(class_name.lower())
            if canonical is None:
                raise MergeRowError(row_no, f"Invalid class \"{class_name}\". Must be one of: "
                                            f"{', '.join(classes.values())}")
            if semester and semester not in SEMESTERS:
                raise MergeRowError(row_no, f"Invalid semester \"{semester}\". Must be \"Odd\" or \"Even\"")
            if admission_no in seen:
                raise MergeRowError(row_no, f"Admission number {admission_no} appears more than once")
        except MergeRowError as e:
            result.errors.append(str(e))
            continue
        seen.add(admission_no)

        if admission_no in index:
            i = index[admission_no]
            # marks, derived fields and identity stay as they are
            collection[i] = collection[i].model_copy(update={"name": name, "class_name": canonical})
            result.updated_count += 1
            result.changed.append(collection[i])
        else:
            student = StudentRecord(
                id=id_factory(),
                admission_no=admission_no,
                name=name,
                class_name=canonical,
                semester=semester or "Odd",
                marks={},
                import_row_number=import_base + position,
            )
            index[admission_no] = len(collection)
            collection.append(student)
            result.added_count += 1
            result.changed.append(student)

    logger.info("Roster merge: %d added, %d updated, %d errors",
                result.added_count, result.updated_count, len(result.errors))
    return result


class RosterImporter:
    """Runs a merge against the record store and persists the changed records one by one."""

    def __init__(self, store, resolver):
        self._store = store
        self._resolver = resolver

    async def import_rows(self, rows: Iterable[RosterRow], parse_errors: Iterable[str] = ()) -> ImportSummary:
        current = await self._store.list_students()
        class_names = await self._store.list_class_names()
        merge = merge_roster(rows, current, class_names)

        summary = ImportSummary(
            added_count=merge.added_count,
            updated_count=merge.updated_count,
            errors=list(parse_errors) + merge.errors,
        )

        previous_class = {s.id: s.class_name for s in current}
        affected = set()
        for record in merge.changed:
            try:
                await self._store.upsert_students([record])
            except Exception as e:
                logger.warning("Could not persist student %s: %s", record.admission_no, e)
                summary.failed.append(f"{record.admission_no}: {e}")
                continue
            summary.persisted_count += 1
            affected.add(record.class_name)
            if record.id in previous_class:
                affected.add(previous_class[record.id])

        for class_name in sorted(affected):
            await self._resolver.recompute_class(class_name)
        return summary
