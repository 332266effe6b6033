"""
Draft Buffer: unsaved (student, subject) mark edits kept in the local store.

Keys are ``draft:{student_id}:{subject_id}`` so two pairs never contend.
Calls that carry a LoadEpoch are dropped silently once that epoch is stale.
"""
import asyncio
import logging
import time
from typing import Dict, List, Optional, Tuple

from pydantic import ValidationError

from config import DRAFT_DEBOUNCE_MS
from schemas.records import Draft
from services.epoch import EpochTracker, LoadEpoch

logger = logging.getLogger(__name__)

DRAFT_PREFIX = "draft:"


def draft_key(student_id: str, subject_id: str) -> str:
    return f"{DRAFT_PREFIX}{student_id}:{subject_id}"


class DraftBuffer:
    def __init__(self, store, tracker: Optional[EpochTracker] = None, clock=time.time):
        self._store = store
        self._tracker = tracker or EpochTracker()
        self._clock = clock

    @property
    def tracker(self) -> EpochTracker:
        return self._tracker

    def _accepts(self, epoch: Optional[LoadEpoch], action: str, key: str) -> bool:
        if self._tracker.is_current(epoch):
            return True
        logger.debug("Dropped stale draft %s for %s", action, key)
        return False

    def save(self, student_id: str, subject_id: str, ta: str, ce: str,
             epoch: Optional[LoadEpoch] = None) -> Optional[Draft]:
        key = draft_key(student_id, subject_id)
        if not self._accepts(epoch, "save", key):
            return None
        draft = Draft(
            student_id=student_id,
            subject_id=subject_id,
            ta="" if ta is None else str(ta),
            ce="" if ce is None else str(ce),
            timestamp=self._clock(),
        )
        self._store.set(key, draft.model_dump())
        return draft

    def get(self, student_id: str, subject_id: str,
            epoch: Optional[LoadEpoch] = None) -> Optional[Draft]:
        key = draft_key(student_id, subject_id)
        if not self._accepts(epoch, "read", key):
            return None
        value = self._store.get(key)
        if not value:
            return None
        try:
            return Draft.model_validate(value)
        except ValidationError as e:
            logger.error("Discarding unreadable draft %s: %s", key, e)
            self._store.delete(key)
            return None

    def delete(self, student_id: str, subject_id: str,
               epoch: Optional[LoadEpoch] = None) -> bool:
        key = draft_key(student_id, subject_id)
        if not self._accepts(epoch, "delete", key):
            return False
        self._store.delete(key)
        return True

    def delete_for_student(self, student_id: str) -> int:
        """Remove every draft held for one student, whatever the subject."""
        keys = self._store.keys(f"{DRAFT_PREFIX}{student_id}:")
        for key in keys:
            self._store.delete(key)
        return len(keys)

    def pending(self, subject_id: Optional[str] = None) -> List[Draft]:
        drafts = []
        for key in self._store.keys(DRAFT_PREFIX):
            student_id, _, key_subject = key[len(DRAFT_PREFIX):].rpartition(":")
            if subject_id and key_subject != subject_id:
                continue
            draft = self.get(student_id, key_subject)
            if draft:
                drafts.append(draft)
        return drafts


class DraftAutoSaver:
    """
    Coalesces keystrokes per (student, subject) before they hit the buffer.

    Must be driven from a running event loop; the pending save carries the
    epoch captured at the time of the edit.
    """

    def __init__(self, buffer: DraftBuffer, delay_ms: int = DRAFT_DEBOUNCE_MS):
        self._buffer = buffer
        self._delay = delay_ms / 1000
        self._pending: Dict[Tuple[str, str], Tuple[asyncio.TimerHandle, tuple]] = {}

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def schedule(self, student_id: str, subject_id: str, ta: str, ce: str,
                 epoch: Optional[LoadEpoch] = None) -> None:
        key = (student_id, subject_id)
        self._cancel(key)
        if not ta and not ce:
            return
        loop = asyncio.get_running_loop()
        handle = loop.call_later(self._delay, self._fire, key)
        self._pending[key] = (handle, (ta, ce, epoch))

    def _fire(self, key: Tuple[str, str]) -> None:
        entry = self._pending.pop(key, None)
        if entry is None:
            return
        _, (ta, ce, epoch) = entry
        self._buffer.save(key[0], key[1], ta, ce, epoch=epoch)

    def _cancel(self, key: Tuple[str, str]) -> None:
        entry = self._pending.pop(key, None)
        if entry:
            entry[0].cancel()

    def discard(self, student_id: str, subject_id: str) -> None:
        self._cancel((student_id, subject_id))

    def flush(self) -> None:
        for key in list(self._pending):
            self._pending[key][0].cancel()
            self._fire(key)

    def cancel_all(self) -> None:
        for key in list(self._pending):
            self._cancel(key)
