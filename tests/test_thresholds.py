"""
Unit tests for TA/CE threshold validation and the storage scale boundary.
"""

import pytest

from conftest import FIQH, NAHW
from services.errors import MarksValidationError
from services.thresholds import (
    build_entry,
    check_entry_value,
    evaluate,
    min_ce,
    min_ta,
    parse_mark,
    storage_max_total,
    ta_to_display,
    ta_to_storage,
)


class TestMinimums:

    @pytest.mark.parametrize("max_ta, expected", [(70, 28), (35, 14), (50, 20), (33, 14), (1, 1)])
    def test_min_ta_is_ceiling_of_forty_percent(self, max_ta, expected):
        assert min_ta(max_ta) == expected

    @pytest.mark.parametrize("max_ce, expected", [(30, 15), (15, 8), (25, 13), (1, 1)])
    def test_min_ce_is_ceiling_of_half(self, max_ce, expected):
        assert min_ce(max_ce) == expected


class TestParseMark:

    def test_empty_values_are_none(self):
        assert parse_mark("") is None
        assert parse_mark("   ") is None
        assert parse_mark(None) is None

    def test_numbers_normalize_to_int_when_whole(self):
        assert parse_mark("25") == 25
        assert isinstance(parse_mark("25.0"), int)
        assert parse_mark("12.5") == 12.5

    @pytest.mark.parametrize("raw", ["abc", "-3", "1e3", "12a", True])
    def test_rejects_non_numeric(self, raw):
        with pytest.raises(MarksValidationError):
            parse_mark(raw)


class TestEvaluate:

    def test_below_ta_threshold_fails_even_with_good_ce(self):
        verdict = evaluate(NAHW, "25", "20")
        assert verdict.total == 45
        assert verdict.status == "Failed"
        assert verdict.ta_failing is True
        assert verdict.ce_failing is False

    def test_passes_at_exact_minimums(self):
        verdict = evaluate(NAHW, "28", "15")
        assert verdict.status == "Passed"
        assert not verdict.ta_failing and not verdict.ce_failing

    @pytest.mark.parametrize("ta, ce", [(27, 30), (70, 14), (0, 0), (28, 0)])
    def test_status_passed_iff_both_minimums_met(self, ta, ce):
        verdict = evaluate(NAHW, str(ta), str(ce))
        expected = "Passed" if ta >= 28 and ce >= 15 else "Failed"
        assert verdict.status == expected

    def test_zero_is_not_flagged_as_failing(self):
        verdict = evaluate(NAHW, "0", "0")
        assert verdict.ta_failing is False
        assert verdict.ce_failing is False
        assert verdict.status == "Failed"

    def test_exceeding_value_is_invalid_not_failing(self):
        verdict = evaluate(NAHW, "75", "20")
        assert verdict.ta_exceeds is True
        assert verdict.ta_failing is False
        assert verdict.status == "Invalid"
        assert verdict.exceeds

    def test_missing_field_is_pending(self):
        verdict = evaluate(NAHW, "30", "")
        assert verdict.status == "Pending"
        assert verdict.total == 30
        assert not verdict.is_final


class TestEntryGuard:

    def test_digits_only(self):
        with pytest.raises(MarksValidationError) as exc:
            check_entry_value(NAHW, "ta", "2a")
        assert exc.value.field == "ta"

    def test_blocks_values_above_maximum(self):
        with pytest.raises(MarksValidationError, match="cannot exceed 30"):
            check_entry_value(NAHW, "ce", "31")

    def test_accepts_empty_and_maximum(self):
        check_entry_value(NAHW, "ce", "")
        check_entry_value(NAHW, "ce", "30")


class TestStorageScale:

    @pytest.mark.parametrize("x", range(0, 36))
    def test_doubled_ta_round_trip(self, x):
        assert ta_to_display(FIQH, ta_to_storage(FIQH, x)) == x

    def test_regular_subjects_are_stored_as_entered(self):
        assert ta_to_storage(NAHW, 40) == 40

    def test_storage_max_total(self):
        assert storage_max_total(FIQH) == 85
        assert storage_max_total(NAHW) == 100

    def test_build_entry_stores_doubled_ta(self):
        entry = build_entry(FIQH, "20", "10")
        assert entry.ta == 40
        assert entry.ce == 10
        assert entry.total == 50
        assert entry.status == "Passed"

    def test_build_entry_status_uses_display_scale(self):
        # 13 of 35 is below the 14 minimum even though 26 would clear it at rest
        entry = build_entry(FIQH, "13", "10")
        assert entry.ta == 26
        assert entry.status == "Failed"

    def test_build_entry_refuses_exceeding_or_incomplete(self):
        with pytest.raises(MarksValidationError):
            build_entry(NAHW, "71", "10")
        with pytest.raises(MarksValidationError):
            build_entry(NAHW, "30", "")
