from sqlalchemy import Column, Integer, String, Float, ForeignKey, JSON, UniqueConstraint
from sqlalchemy.orm import relationship
from database import Base

# 1. SUBJECT MASTER (Fiqh, Nahw, English...)
class Subject(Base):
    __tablename__ = "subjects"
    id = Column(String(64), primary_key=True, index=True)  # slug, e.g. "nahw"
    name = Column(String(100))
    arabic_name = Column(String(100), nullable=True)

    max_ta = Column(Integer, nullable=False)
    max_ce = Column(Integer, nullable=False)
    passing_total = Column(Integer, default=0)  # informational only

    faculty_name = Column(String(100), nullable=True)
    target_classes = Column(JSON, default=list)
    subject_type = Column(String(20), default="general")  # general/elective
    enrolled_students = Column(JSON, default=list)  # elective only


# 2. STUDENT MARKS (one row per student per subject, values at rest)
class StudentMark(Base):
    __tablename__ = "student_marks"
    __table_args__ = (UniqueConstraint("student_id", "subject_id", name="uq_student_subject"),)

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(String(64), ForeignKey("students.id", ondelete="CASCADE"), index=True)
    subject_id = Column(String(64), ForeignKey("subjects.id", ondelete="CASCADE"), index=True)

    ta = Column(Float, default=0.0)  # doubled when subject max_ta == 35
    ce = Column(Float, default=0.0)
    total = Column(Float, default=0.0)
    status = Column(String(10))  # Passed/Failed

    student_val = relationship("models.students.Student", back_populates="marks")
    subject_val = relationship("Subject")
