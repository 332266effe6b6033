"""
Per-student totals, averages, performance tiers and class ranks.

All functions are pure. Derived fields on StudentRecord are only ever
produced here and written back by the sync layer after a marks change.
"""
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Optional

from schemas.records import StudentRecord, SubjectRecord
from services.thresholds import storage_max_total

PERFORMANCE_BREAKPOINTS = [
    (80, "Excellent"),
    (70, "Good"),
    (60, "Average"),
    (40, "Needs Improvement"),
]
FAILED = "Failed"
PERFORMANCE_LEVELS = [label for _, label in PERFORMANCE_BREAKPOINTS] + [FAILED]


@dataclass(frozen=True)
class Aggregate:
    grand_total: float
    average: float
    performance_level: Optional[str]


def round_half_away(value: float, places: int = 1) -> float:
    # Decimal's ROUND_HALF_UP rounds away from zero, unlike round()
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def performance_level(average: float, has_failed_subject: bool) -> str:
    # A failed subject is never hidden behind a good average
    if has_failed_subject:
        return FAILED
    for floor, label in PERFORMANCE_BREAKPOINTS:
        if average >= floor:
            return label
    return FAILED


def aggregate_student(student: StudentRecord, subjects: Dict[str, SubjectRecord]) -> Aggregate:
    entries = {sid: m for sid, m in student.marks.items() if sid in subjects}
    if not entries:
        return Aggregate(grand_total=0.0, average=0.0, performance_level=None)

    grand_total = sum(m.total for m in entries.values())
    max_total = sum(storage_max_total(subjects[sid]) for sid in entries)
    average = round_half_away(grand_total / max_total * 100) if max_total else 0.0
    has_failed = any(m.status == "Failed" for m in entries.values())

    return Aggregate(
        grand_total=float(grand_total),
        average=average,
        performance_level=performance_level(average, has_failed),
    )


def assign_ranks(students: Iterable[StudentRecord]) -> Dict[str, int]:
    """
    Competition ranking over grand_total, highest first (1, 1, 3, ...).

    The sort is stable, so tied students keep their incoming order even
    though they share a rank.
    """
    ordered = sorted(students, key=lambda s: s.grand_total, reverse=True)
    ranks: Dict[str, int] = {}
    current = 0
    previous = None
    for position, student in enumerate(ordered, start=1):
        if previous is None or student.grand_total != previous:
            current = position
            previous = student.grand_total
        ranks[student.id] = current
    return ranks


def recompute_cohort(
    students: List[StudentRecord], subjects: Dict[str, SubjectRecord]
) -> List[StudentRecord]:
    """Fresh copies of a comparison scope with every derived field recomputed."""
    refreshed = []
    for student in students:
        agg = aggregate_student(student, subjects)
        refreshed.append(student.model_copy(update={
            "grand_total": agg.grand_total,
            "average": agg.average,
            "performance_level": agg.performance_level,
        }))
    ranks = assign_ranks(refreshed)
    return [s.model_copy(update={"rank": ranks[s.id]}) for s in refreshed]


# ===========================
#   CLASS LEVEL REPORTING
# ===========================

@dataclass
class ClassStatistics:
    total_students: int = 0
    passed_students: int = 0
    failed_students: int = 0
    average_score: float = 0.0
    highest_score: float = 0.0
    lowest_score: float = 0.0
    performance_levels: Dict[str, int] = field(
        default_factory=lambda: {label: 0 for label in PERFORMANCE_LEVELS}
    )


def class_statistics(students: List[StudentRecord]) -> ClassStatistics:
    stats = ClassStatistics(total_students=len(students))
    with_marks = [s for s in students if s.marks]
    passed = [s for s in with_marks if all(m.status == "Passed" for m in s.marks.values())]
    stats.passed_students = len(passed)
    stats.failed_students = len(with_marks) - len(passed)

    scores = [s.average for s in with_marks]
    if scores:
        stats.average_score = round_half_away(sum(scores) / len(scores), 2)
        stats.highest_score = max(scores)
        stats.lowest_score = min(scores)

    for s in students:
        if s.performance_level:
            stats.performance_levels[s.performance_level] += 1
    return stats


@dataclass
class PromotionStatus:
    eligible: bool
    failed_subjects: List[str]
    supplementary_required: List[str]


def promotion_eligibility(student: StudentRecord, subjects: List[SubjectRecord]) -> PromotionStatus:
    """Failed subjects and subjects without any entry both need a supplementary exam."""
    failed, supplementary = [], []
    for subject in subjects:
        if not subject.applies_to_class(student.class_name):
            continue
        if not subject.is_enrolled(student.id):
            continue
        entry = student.marks.get(subject.id)
        if entry is None:
            supplementary.append(subject.id)
        elif entry.status == "Failed":
            failed.append(subject.id)
            supplementary.append(subject.id)
    return PromotionStatus(
        eligible=not failed and not supplementary,
        failed_subjects=failed,
        supplementary_required=supplementary,
    )
