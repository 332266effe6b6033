"""
Tests for the marks entry working set: loading, stale-load protection,
draft overlay and saving.
"""

import asyncio

import pytest

from conftest import FIQH, NAHW, run
from services.drafts import DraftAutoSaver
from services.errors import MarksValidationError, RecordNotFoundError
from services.sheet import MarksSheet
from services.sync import SyncResolver


class GatedStore:
    """Holds class listings for one class until the test opens the gate."""

    def __init__(self, inner, gated_class):
        self._inner = inner
        self._gated_class = gated_class
        self.gate = asyncio.Event()

    def __getattr__(self, name):
        return getattr(self._inner, name)

    async def list_students_by_class(self, class_name):
        if class_name == self._gated_class:
            await self.gate.wait()
        return await self._inner.list_students_by_class(class_name)


@pytest.fixture
def sheet(store, resolver, drafts):
    return MarksSheet(store, resolver, autosaver=DraftAutoSaver(drafts, delay_ms=10))


class TestLoad:

    def test_load_lists_class_in_import_order(self, sheet):
        assert run(sheet.load("S1", "nahw")) is True
        assert [s.id for s in sheet.students] == ["st-1", "st-2", "st-3"]
        assert sheet.values["st-1"] == {"ta": "", "ce": ""}

    def test_unknown_subject_raises(self, sheet):
        with pytest.raises(RecordNotFoundError):
            run(sheet.load("S1", "missing"))

    def test_elective_loads_enrolled_students_across_classes(self, sheet):
        run(sheet.load("S2", "it"))
        assert [s.id for s in sheet.students] == ["st-1"]

    def test_stored_doubled_ta_shows_on_display_scale(self, sheet, resolver):
        run(resolver.commit("st-1", FIQH, "30", "12"))
        run(sheet.load("S1", "fiqh"))
        assert sheet.values["st-1"] == {"ta": "30", "ce": "12"}

    def test_drafts_fill_only_empty_rows(self, sheet, resolver, drafts):
        run(resolver.commit("st-1", NAHW, "60", "25"))
        drafts.save("st-1", "nahw", "10", "10")
        drafts.save("st-2", "nahw", "44", "")
        run(sheet.load("S1", "nahw"))
        assert sheet.values["st-1"] == {"ta": "60", "ce": "25"}
        assert sheet.values["st-2"] == {"ta": "44", "ce": ""}

    def test_superseded_load_is_discarded(self, sql_store, drafts):
        gated = GatedStore(sql_store, gated_class="S1")
        sheet = MarksSheet(gated, SyncResolver(gated, drafts))

        async def scenario():
            slow = asyncio.create_task(sheet.load("S1", "nahw"))
            await asyncio.sleep(0.05)
            fast = await sheet.load("S2", "nahw")
            gated.gate.set()
            return await slow, fast

        slow_loaded, fast_loaded = run(scenario())
        assert slow_loaded is False
        assert fast_loaded is True
        assert sheet.class_name == "S2"
        assert [s.id for s in sheet.students] == ["st-4"]
        assert list(sheet.values) == ["st-4"]


class TestEditing:

    def test_invalid_keystroke_leaves_sheet_untouched(self, sheet):
        run(sheet.load("S1", "nahw"))
        with pytest.raises(MarksValidationError):
            sheet.set_mark("st-1", "ta", "71")
        with pytest.raises(MarksValidationError):
            sheet.set_mark("st-1", "ce", "x")
        assert sheet.values["st-1"] == {"ta": "", "ce": ""}

    def test_edit_is_auto_saved_as_draft(self, sheet, drafts):
        async def scenario():
            await sheet.load("S1", "nahw")
            sheet.set_mark("st-2", "ta", "25")
            await asyncio.sleep(0.05)

        run(scenario())
        assert drafts.get("st-2", "nahw").ta == "25"

    def test_switching_subject_cancels_pending_auto_save(self, sheet, drafts):
        async def scenario():
            await sheet.load("S1", "nahw")
            sheet.set_mark("st-2", "ta", "25")
            await sheet.load("S1", "fiqh")
            await asyncio.sleep(0.05)

        run(scenario())
        assert drafts.get("st-2", "nahw") is None

    def test_verdicts_and_completion(self, sheet):
        async def scenario():
            await sheet.load("S1", "nahw")
            sheet.set_mark("st-1", "ta", "25")
            sheet.set_mark("st-1", "ce", "20")
            sheet.set_mark("st-2", "ta", "40")

        run(scenario())
        verdicts = sheet.verdicts()
        assert verdicts["st-1"].status == "Failed"
        assert verdicts["st-1"].ta_failing
        assert verdicts["st-2"].status == "Pending"
        assert sheet.completion() == {"completed": 1, "total": 3, "percentage": 33, "remaining": 2}


class TestSaveAndClear:

    def test_save_commits_rows_and_refreshes_ranks(self, sheet, sql_store):
        async def scenario():
            await sheet.load("S1", "nahw")
            sheet.set_mark("st-1", "ta", "60")
            sheet.set_mark("st-1", "ce", "25")
            sheet.set_mark("st-2", "ta", "30")
            return await sheet.save()

        batch = run(scenario())
        assert batch.saved == 1
        assert batch.incomplete == 1
        assert sheet.students[0].grand_total == 85
        assert sheet.students[0].rank == 1

    def test_clear_all_empties_the_sheet(self, sheet, resolver, sql_store):
        run(resolver.commit("st-1", NAHW, "60", "25"))
        run(sheet.load("S1", "nahw"))
        results = run(sheet.clear_all())
        assert all(r.remote_cleared for r in results)
        assert sheet.values["st-1"] == {"ta": "", "ce": ""}
        assert run(sql_store.get_student("st-1")).marks == {}


class GatedWriteStore:
    """Holds every marks write until the test opens the gate."""

    def __init__(self, inner):
        self._inner = inner
        self.gate = asyncio.Event()

    def __getattr__(self, name):
        return getattr(self._inner, name)

    async def update_marks(self, student_id, subject_id, entry):
        await self.gate.wait()
        return await self._inner.update_marks(student_id, subject_id, entry)


class TestStaleResults:

    def test_commit_finishing_after_subject_switch_leaves_new_sheet_alone(self, sql_store, drafts):
        gated = GatedWriteStore(sql_store)
        sheet = MarksSheet(gated, SyncResolver(gated, drafts),
                           autosaver=DraftAutoSaver(drafts, delay_ms=10))

        async def scenario():
            await sheet.load("S1", "nahw")
            sheet.set_mark("st-1", "ta", "60")
            sheet.set_mark("st-1", "ce", "25")
            pending_save = asyncio.create_task(sheet.save())
            await asyncio.sleep(0.05)
            await sheet.load("S1", "fiqh")
            gated.gate.set()
            return await pending_save

        batch = run(scenario())
        assert batch.saved == 1
        assert sheet.subject.id == "fiqh"
        assert [s.id for s in sheet.students] == ["st-1", "st-2", "st-3"]
        assert sheet.values["st-1"] == {"ta": "", "ce": ""}
        # the refresh from the nahw save was not applied to the fiqh sheet
        assert sheet.students[0].grand_total == 0
        assert run(sql_store.get_student("st-1")).marks["nahw"].total == 85


class TestOfflineClear:

    def test_failed_clear_keeps_stored_values(self, sheet, resolver, store):
        run(resolver.commit("st-1", NAHW, "60", "25"))
        run(sheet.load("S1", "nahw"))
        store.offline = True

        result = run(sheet.clear("st-1"))
        assert result.remote_cleared is False
        assert sheet.values["st-1"] == {"ta": "60", "ce": "25"}

    def test_clear_all_only_blanks_rows_that_cleared(self, sheet, resolver, store):
        run(resolver.commit("st-1", NAHW, "60", "25"))
        run(resolver.commit("st-2", NAHW, "50", "20"))
        run(sheet.load("S1", "nahw"))
        store.offline = True

        results = run(sheet.clear_all())
        assert not any(r.remote_cleared for r in results)
        assert sheet.values["st-1"] == {"ta": "60", "ce": "25"}
        assert sheet.values["st-2"] == {"ta": "50", "ce": "20"}


class TestInvalidDrafts:

    def test_exceeding_draft_is_dropped_on_load(self, sheet, drafts):
        drafts.save("st-1", "nahw", "999", "10")
        drafts.save("st-2", "nahw", "abc", "")
        drafts.save("st-3", "nahw", "30", "")

        assert run(sheet.load("S1", "nahw")) is True
        assert sheet.values["st-1"] == {"ta": "", "ce": ""}
        assert sheet.values["st-2"] == {"ta": "", "ce": ""}
        assert sheet.values["st-3"] == {"ta": "30", "ce": ""}
        assert drafts.get("st-1", "nahw") is None
        assert drafts.get("st-2", "nahw") is None
        assert sheet.verdicts()["st-1"].status == "Pending"
