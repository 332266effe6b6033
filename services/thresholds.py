"""
Threshold validation for TA/CE mark pairs.

Everything in here works on the *display* scale. The only place where the
stored scale shows up is the pair of conversion helpers at the bottom,
which the record store boundary and the entry sheet go through.
"""
import math
import re
from dataclasses import dataclass
from fractions import Fraction
from typing import Optional, Union

from schemas.records import MarksEntry, SubjectRecord
from services.errors import MarksValidationError

# Fixed policy, not per subject
TA_PASS_RATIO = Fraction(2, 5)
CE_PASS_RATIO = Fraction(1, 2)

# Subjects with max TA 35 keep TA on a 70 point scale at rest
DOUBLED_TA_MAX = 35
TA_STORAGE_FACTOR = 2

_NUMBER_RE = re.compile(r"^\d+(\.\d+)?$")

Number = Union[int, float]


def min_ta(max_ta: int) -> int:
    # Fraction keeps 70 * 0.4 at exactly 28
    return math.ceil(max_ta * TA_PASS_RATIO)


def min_ce(max_ce: int) -> int:
    return math.ceil(max_ce * CE_PASS_RATIO)


def parse_mark(raw) -> Optional[Number]:
    """Turn a raw field value into a number, None when empty."""
    if raw is None:
        return None
    if isinstance(raw, bool):
        raise MarksValidationError(f"'{raw}' is not a valid mark")
    if isinstance(raw, (int, float)):
        if raw < 0:
            raise MarksValidationError(f"'{raw}' is not a valid mark")
        return _normalize(raw)
    text = str(raw).strip()
    if text == "":
        return None
    if not _NUMBER_RE.match(text):
        raise MarksValidationError(f"'{raw}' is not a valid mark")
    return _normalize(float(text))


def _normalize(value: Number) -> Number:
    value = float(value)
    return int(value) if value.is_integer() else value


@dataclass(frozen=True)
class Verdict:
    ta_exceeds: bool
    ce_exceeds: bool
    ta_failing: bool
    ce_failing: bool
    total: Number
    status: str  # Passed, Failed, Pending or Invalid

    @property
    def exceeds(self) -> bool:
        return self.ta_exceeds or self.ce_exceeds

    @property
    def is_final(self) -> bool:
        return self.status in ("Passed", "Failed")


def evaluate(subject: SubjectRecord, ta, ce) -> Verdict:
    """
    Classify a display-scale (ta, ce) pair against the subject's maxima.

    Raises MarksValidationError for non-numeric input only; an exceeding
    value is reported through the verdict so callers can block the save.
    """
    ta_val = parse_mark(ta)
    ce_val = parse_mark(ce)
    floor_ta = min_ta(subject.max_ta)
    floor_ce = min_ce(subject.max_ce)

    ta_exceeds = ta_val is not None and ta_val > subject.max_ta
    ce_exceeds = ce_val is not None and ce_val > subject.max_ce
    ta_failing = ta_val is not None and 0 < ta_val < floor_ta and not ta_exceeds
    ce_failing = ce_val is not None and 0 < ce_val < floor_ce and not ce_exceeds

    total = _normalize((ta_val or 0) + (ce_val or 0))

    if ta_exceeds or ce_exceeds:
        status = "Invalid"
    elif ta_val is None or ce_val is None:
        status = "Pending"
    elif ta_val >= floor_ta and ce_val >= floor_ce:
        status = "Passed"
    else:
        status = "Failed"

    return Verdict(
        ta_exceeds=ta_exceeds,
        ce_exceeds=ce_exceeds,
        ta_failing=ta_failing,
        ce_failing=ce_failing,
        total=total,
        status=status,
    )


def check_entry_value(subject: SubjectRecord, field: str, raw: str) -> None:
    """Point-of-entry guard: digits only and never above the field's maximum."""
    if raw is None or raw == "":
        return
    if not str(raw).isdigit():
        raise MarksValidationError(f"{field.upper()} accepts digits only", field=field)
    maximum = subject.max_ta if field == "ta" else subject.max_ce
    if int(raw) > maximum:
        raise MarksValidationError(
            f"{field.upper()} cannot exceed {maximum} for {subject.name}", field=field
        )


def build_entry(subject: SubjectRecord, ta, ce) -> MarksEntry:
    """Validated at-rest MarksEntry for a display-scale pair."""
    verdict = evaluate(subject, ta, ce)
    if verdict.ta_exceeds:
        raise MarksValidationError(f"TA exceeds maximum ({subject.max_ta})", field="ta")
    if verdict.ce_exceeds:
        raise MarksValidationError(f"CE exceeds maximum ({subject.max_ce})", field="ce")
    if not verdict.is_final:
        raise MarksValidationError("Both TA and CE are required")

    stored_ta = ta_to_storage(subject, parse_mark(ta))
    stored_ce = parse_mark(ce)
    return MarksEntry(
        ta=stored_ta,
        ce=stored_ce,
        total=_normalize(stored_ta + stored_ce),
        status=verdict.status,
    )


# --- STORAGE SCALE BOUNDARY ---

def uses_doubled_ta(subject: SubjectRecord) -> bool:
    return subject.max_ta == DOUBLED_TA_MAX


def ta_to_storage(subject: SubjectRecord, ta: Number) -> Number:
    if uses_doubled_ta(subject):
        return _normalize(ta * TA_STORAGE_FACTOR)
    return ta


def ta_to_display(subject: SubjectRecord, ta: Number) -> Number:
    if uses_doubled_ta(subject):
        return _normalize(ta / TA_STORAGE_FACTOR)
    return _normalize(ta)


def storage_max_total(subject: SubjectRecord) -> int:
    return ta_to_storage(subject, subject.max_ta) + subject.max_ce


def format_mark(value: Optional[Number]) -> str:
    if value is None:
        return ""
    return str(_normalize(value))
