from sqlalchemy import Column, Integer, String, Float, BigInteger
from sqlalchemy.orm import relationship
from database import Base

class Student(Base):
    __tablename__ = "students"

    id = Column(String(64), primary_key=True, index=True)
    admission_no = Column(String(50), unique=True, index=True)
    name = Column(String(100))

    # --- ACADEMIC INFO ---
    class_name = Column(String(50), index=True)
    semester = Column(String(10), default="Odd")  # Odd/Even
    import_row_number = Column(BigInteger, nullable=True)

    # --- DERIVED (written only by the aggregation pass) ---
    grand_total = Column(Float, default=0.0)
    average = Column(Float, default=0.0)
    rank = Column(Integer, nullable=True)
    performance_level = Column(String(30), nullable=True)

    # --- RELATIONSHIPS ---
    marks = relationship(
        "models.exams.StudentMark",
        back_populates="student_val",
        cascade="all, delete-orphan",
    )
