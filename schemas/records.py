from pydantic import BaseModel, Field, field_validator
from typing import Dict, List, Optional, Literal

MarkStatus = Literal["Passed", "Failed"]
PerformanceLevel = Literal["Excellent", "Good", "Average", "Needs Improvement", "Failed"]


class SubjectRecord(BaseModel):
    id: str
    name: str
    arabic_name: Optional[str] = None
    max_ta: int
    max_ce: int
    passing_total: int = 0  # informational, passing is threshold based
    faculty_name: Optional[str] = None
    target_classes: List[str] = Field(default_factory=list)
    subject_type: Literal["general", "elective"] = "general"
    enrolled_students: List[str] = Field(default_factory=list)

    class Config:
        from_attributes = True

    @field_validator("max_ta", "max_ce")
    @classmethod
    def must_be_positive(cls, v):
        if v <= 0:
            raise ValueError("maximum marks must be greater than zero")
        return v

    def applies_to_class(self, class_name: str) -> bool:
        return class_name in self.target_classes

    def is_enrolled(self, student_id: str) -> bool:
        return self.subject_type == "general" or student_id in self.enrolled_students


class MarksEntry(BaseModel):
    """Marks for one subject as stored at rest (TA possibly doubled, see services.thresholds)."""
    ta: float
    ce: float
    total: float
    status: MarkStatus

    class Config:
        from_attributes = True


class StudentRecord(BaseModel):
    id: str
    admission_no: str
    name: str
    class_name: str
    semester: Literal["Odd", "Even"] = "Odd"
    marks: Dict[str, MarksEntry] = Field(default_factory=dict)

    # Materialized view, recomputed by services.aggregation
    grand_total: float = 0.0
    average: float = 0.0
    rank: Optional[int] = None
    performance_level: Optional[PerformanceLevel] = None

    import_row_number: Optional[int] = None


class Draft(BaseModel):
    student_id: str
    subject_id: str
    ta: str = ""
    ce: str = ""
    timestamp: float
