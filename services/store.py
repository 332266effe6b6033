"""
Record store: async facade over the SQLAlchemy database.

Every public coroutine runs its query in the threadpool and is fallible;
database errors surface as TransientPersistenceError. Student upserts
never touch the student_marks table, marks only change through
update_marks/delete_marks.
"""
import logging
from typing import Dict, Iterable, List, Optional

from fastapi.concurrency import run_in_threadpool
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from database import SessionLocal
from models.exams import StudentMark, Subject
from models.masters import ClassMaster
from models.students import Student
from schemas.records import MarksEntry, StudentRecord, SubjectRecord
from services.errors import RecordNotFoundError, TransientPersistenceError

logger = logging.getLogger(__name__)

PROFILE_FIELDS = (
    "admission_no", "name", "class_name", "semester", "import_row_number",
    "grand_total", "average", "rank", "performance_level",
)


def to_student_record(student: Student) -> StudentRecord:
    return StudentRecord(
        id=student.id,
        admission_no=student.admission_no,
        name=student.name,
        class_name=student.class_name,
        semester=student.semester or "Odd",
        marks={m.subject_id: MarksEntry.model_validate(m) for m in student.marks},
        grand_total=student.grand_total or 0.0,
        average=student.average or 0.0,
        rank=student.rank,
        performance_level=student.performance_level,
        import_row_number=student.import_row_number,
    )


def _student_query(db: Session):
    return db.query(Student).options(selectinload(Student.marks))


class SqlRecordStore:
    def __init__(self, session_factory=SessionLocal):
        self._session_factory = session_factory

    async def _run(self, fn, *args):
        try:
            return await run_in_threadpool(self._in_session, fn, *args)
        except SQLAlchemyError as e:
            logger.warning("Record store call %s failed: %s", fn.__name__, e)
            raise TransientPersistenceError(str(e)) from e

    def _in_session(self, fn, *args):
        db = self._session_factory()
        try:
            result = fn(db, *args)
            db.commit()
            return result
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    # ===========================
    #          STUDENTS
    # ===========================

    async def get_student(self, student_id: str) -> Optional[StudentRecord]:
        return await self._run(_get_student, student_id)

    async def list_students(self) -> List[StudentRecord]:
        return await self._run(_list_students, None)

    async def list_students_by_class(self, class_name: str) -> List[StudentRecord]:
        return await self._run(_list_students, class_name)

    async def list_students_by_ids(self, student_ids: Iterable[str]) -> List[StudentRecord]:
        return await self._run(_list_students_by_ids, list(student_ids))

    async def upsert_students(self, records: List[StudentRecord]) -> int:
        return await self._run(_upsert_students, list(records))

    async def delete_student(self, student_id: str) -> bool:
        return await self._run(_delete_student, student_id)

    # ===========================
    #           MARKS
    # ===========================

    async def update_marks(self, student_id: str, subject_id: str, entry: MarksEntry) -> None:
        await self._run(_update_marks, student_id, subject_id, entry)

    async def delete_marks(self, student_id: str, subject_id: str) -> bool:
        return await self._run(_delete_marks, student_id, subject_id)

    # ===========================
    #      SUBJECTS & CLASSES
    # ===========================

    async def list_subjects(self) -> List[SubjectRecord]:
        return await self._run(_list_subjects)

    async def get_subject(self, subject_id: str) -> Optional[SubjectRecord]:
        return await self._run(_get_subject, subject_id)

    async def save_subject(self, subject: SubjectRecord) -> SubjectRecord:
        return await self._run(_save_subject, subject)

    async def delete_subject(self, subject_id: str) -> bool:
        return await self._run(_delete_subject, subject_id)

    async def list_class_names(self) -> List[str]:
        return await self._run(_list_class_names)

    async def add_class(self, class_name: str) -> bool:
        return await self._run(_add_class, class_name)

    async def subjects_by_id(self) -> Dict[str, SubjectRecord]:
        return {s.id: s for s in await self.list_subjects()}


# --- SESSION-BOUND HELPERS (run inside the threadpool) ---

def _get_student(db: Session, student_id: str):
    student = _student_query(db).filter(Student.id == student_id).first()
    return to_student_record(student) if student else None


def _list_students(db: Session, class_name: Optional[str]):
    query = _student_query(db)
    if class_name:
        query = query.filter(Student.class_name == class_name)
    # Import order first, students added by hand after
    students = query.order_by(Student.import_row_number.is_(None),
                              Student.import_row_number, Student.admission_no).all()
    return [to_student_record(s) for s in students]


def _list_students_by_ids(db: Session, student_ids: List[str]):
    if not student_ids:
        return []
    found = {s.id: s for s in _student_query(db).filter(Student.id.in_(student_ids)).all()}
    return [to_student_record(found[sid]) for sid in student_ids if sid in found]


def _upsert_students(db: Session, records: List[StudentRecord]):
    for record in records:
        student = db.get(Student, record.id)
        if student is None:
            student = Student(id=record.id)
            db.add(student)
        for field in PROFILE_FIELDS:
            setattr(student, field, getattr(record, field))
    return len(records)


def _delete_student(db: Session, student_id: str):
    student = db.get(Student, student_id)
    if not student:
        return False
    db.delete(student)
    return True


def _update_marks(db: Session, student_id: str, subject_id: str, entry: MarksEntry):
    if db.get(Student, student_id) is None:
        raise RecordNotFoundError(f"Student {student_id} not found")
    mark = db.query(StudentMark).filter(
        StudentMark.student_id == student_id,
        StudentMark.subject_id == subject_id,
    ).first()
    if mark is None:
        mark = StudentMark(student_id=student_id, subject_id=subject_id)
        db.add(mark)
    mark.ta = entry.ta
    mark.ce = entry.ce
    mark.total = entry.total
    mark.status = entry.status


def _delete_marks(db: Session, student_id: str, subject_id: str):
    deleted = db.query(StudentMark).filter(
        StudentMark.student_id == student_id,
        StudentMark.subject_id == subject_id,
    ).delete()
    return deleted > 0


def _list_subjects(db: Session):
    return [SubjectRecord.model_validate(s) for s in db.query(Subject).order_by(Subject.name).all()]


def _get_subject(db: Session, subject_id: str):
    subject = db.get(Subject, subject_id)
    return SubjectRecord.model_validate(subject) if subject else None


def _save_subject(db: Session, record: SubjectRecord):
    subject = db.get(Subject, record.id)
    if subject is None:
        subject = Subject(id=record.id)
        db.add(subject)
    for field, value in record.model_dump(exclude={"id"}).items():
        setattr(subject, field, value)
    db.flush()
    return SubjectRecord.model_validate(subject)


def _delete_subject(db: Session, subject_id: str):
    subject = db.get(Subject, subject_id)
    if not subject:
        return False
    db.query(StudentMark).filter(StudentMark.subject_id == subject_id).delete()
    db.delete(subject)
    return True


def _list_class_names(db: Session):
    classes = db.query(ClassMaster).filter(ClassMaster.status == True).order_by(ClassMaster.id).all()
    return [c.class_name for c in classes]


def _add_class(db: Session, class_name: str):
    if db.query(ClassMaster).filter(ClassMaster.class_name == class_name).first():
        return False
    db.add(ClassMaster(class_name=class_name))
    return True
