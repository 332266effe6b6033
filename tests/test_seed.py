from config import CLASS_NAMES
from models.exams import Subject
from models.masters import ClassMaster
from seed import SUBJECT_CATALOGUE, seed_data


def test_seed_is_idempotent(session_factory):
    db = session_factory()
    try:
        seed_data(db)
        seed_data(db)
        assert db.query(ClassMaster).count() == len(CLASS_NAMES)
        assert db.query(Subject).count() == len(SUBJECT_CATALOGUE)

        fiqh = db.get(Subject, "fiqh")
        assert (fiqh.max_ta, fiqh.max_ce) == (35, 15)
        assert fiqh.target_classes == CLASS_NAMES
    finally:
        db.close()
