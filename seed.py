from config import CLASS_NAMES
from database import SessionLocal, engine, Base
from models.masters import ClassMaster
from models.exams import Subject
from models.students import Student  # noqa: F401  (mapper for the marks relationship)

# --- Tables bana do agar missing hain ---
Base.metadata.create_all(bind=engine)

# (id, name, arabic name, max TA, max CE, passing total)
SUBJECT_CATALOGUE = [
    ("fiqh", "Fiqh", "الفقه الإسلامي", 35, 15, 20),
    ("hadees", "Hadees", "الحديث", 35, 15, 20),
    ("nahw", "Nahw", "النحو الواضح", 70, 30, 40),
    ("sarf", "Sarf", "الصرف", 70, 30, 40),
    ("arabic_aqeeda", "Arabic & Aqeeda", "العربية والعقيدة", 70, 30, 40),
    ("maths", "Mathematics", None, 70, 30, 35),
    ("social", "Social Science", None, 70, 30, 35),
    ("soft_skills", "Soft & Life Skill", None, 70, 30, 35),
    ("science", "Basic Sciences", None, 70, 30, 35),
    ("urdu_hindi", "Urdu & Hindi", None, 70, 30, 35),
    ("english", "English", None, 70, 30, 35),
    ("malayalam_thareekh", "Malayalam & Thareekh", None, 70, 30, 35),
    ("it", "IT", None, 70, 30, 35),
    ("thajweed", "Doura & Thajweed", None, 70, 30, 35),
]


def seed_data(db):
    print("🌱 Seeding Master Data...")

    # 1. ADD CLASSES
    for c_name in CLASS_NAMES:
        exists = db.query(ClassMaster).filter_by(class_name=c_name).first()
        if not exists:
            db.add(ClassMaster(class_name=c_name))
            print(f"✅ Added: {c_name}")
        else:
            print(f"ℹ️  Exists: {c_name}")
    db.commit()

    # 2. ADD SUBJECTS (every class takes the general catalogue)
    for sub_id, name, arabic, max_ta, max_ce, passing in SUBJECT_CATALOGUE:
        if db.get(Subject, sub_id):
            continue
        db.add(Subject(
            id=sub_id,
            name=name,
            arabic_name=arabic,
            max_ta=max_ta,
            max_ce=max_ce,
            passing_total=passing,
            target_classes=list(CLASS_NAMES),
            subject_type="general",
            enrolled_students=[],
        ))
        print(f"📚 Added Subject: {name}")
    db.commit()

    print("🎉 Seeding Complete!")


if __name__ == "__main__":
    db = SessionLocal()
    try:
        seed_data(db)
    finally:
        db.close()
