import asyncio
import os

# Point the app at throwaway in-memory databases before anything imports config
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["LOCAL_STORE_URL"] = "sqlite://"

import pytest
from sqlalchemy.orm import sessionmaker

from database import Base, LocalBase, make_engine
from models.drafts import LocalEntry  # noqa: F401
from models.exams import StudentMark, Subject  # noqa: F401
from models.masters import ClassMaster  # noqa: F401
from models.students import Student  # noqa: F401
from schemas.records import StudentRecord, SubjectRecord
from services.drafts import DraftBuffer
from services.epoch import EpochTracker
from services.local_store import LocalKeyValueStore
from services.store import SqlRecordStore
from services.sync import SyncResolver

CLASSES = ["S1", "S2", "S3"]

NAHW = SubjectRecord(id="nahw", name="Nahw", max_ta=70, max_ce=30, passing_total=40,
                     target_classes=CLASSES)
FIQH = SubjectRecord(id="fiqh", name="Fiqh", max_ta=35, max_ce=15, passing_total=20,
                     target_classes=CLASSES)
IT_ELECTIVE = SubjectRecord(id="it", name="IT", max_ta=70, max_ce=30, target_classes=CLASSES,
                            subject_type="elective", enrolled_students=["st-1"])


def run(coro):
    return asyncio.run(coro)


def make_student(sid, adm, name="Student", class_name="S1", **kwargs):
    return StudentRecord(id=sid, admission_no=adm, name=name, class_name=class_name, **kwargs)


class FlakyStore:
    """Record store wrapper whose mark writes can be switched off, like a dropped connection."""

    def __init__(self, inner):
        self._inner = inner
        self.offline = False
        self.calls = []

    def __getattr__(self, name):
        return getattr(self._inner, name)

    async def update_marks(self, student_id, subject_id, entry):
        self.calls.append(("update_marks", student_id, subject_id))
        if self.offline:
            raise ConnectionError("record store unreachable")
        return await self._inner.update_marks(student_id, subject_id, entry)

    async def delete_marks(self, student_id, subject_id):
        self.calls.append(("delete_marks", student_id, subject_id))
        if self.offline:
            raise ConnectionError("record store unreachable")
        return await self._inner.delete_marks(student_id, subject_id)


@pytest.fixture
def session_factory(tmp_path):
    # File backed so concurrent threadpool calls each get their own connection
    engine = make_engine(f"sqlite:///{tmp_path / 'records.db'}")
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def local_store():
    engine = make_engine("sqlite://")
    LocalBase.metadata.create_all(bind=engine)
    yield LocalKeyValueStore(sessionmaker(autocommit=False, autoflush=False, bind=engine))
    engine.dispose()


@pytest.fixture
def sql_store(session_factory):
    store = SqlRecordStore(session_factory)

    async def seed():
        for class_name in CLASSES:
            await store.add_class(class_name)
        for subject in (NAHW, FIQH, IT_ELECTIVE):
            await store.save_subject(subject)
        await store.upsert_students([
            make_student("st-1", "101", "Ahmed", import_row_number=1),
            make_student("st-2", "102", "Bilal", import_row_number=2),
            make_student("st-3", "103", "Zaid", import_row_number=3),
            make_student("st-4", "201", "Yusuf", class_name="S2", import_row_number=4),
        ])

    run(seed())
    return store


@pytest.fixture
def store(sql_store):
    return FlakyStore(sql_store)


@pytest.fixture
def drafts(local_store):
    return DraftBuffer(local_store, EpochTracker())


@pytest.fixture
def resolver(store, drafts):
    return SyncResolver(store, drafts)
