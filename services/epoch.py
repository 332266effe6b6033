import logging
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoadEpoch:
    """Identifies one (class, subject) working set. Compared by generation."""
    generation: int
    class_name: Optional[str] = None
    subject_id: Optional[str] = None


class EpochTracker:
    """
    Generation counter for the active working set.

    Async work captures ``current`` when it starts and checks
    ``is_current`` when it completes; a stale result is dropped.
    """

    def __init__(self):
        self._current = LoadEpoch(generation=0)

    @property
    def current(self) -> LoadEpoch:
        return self._current

    def advance(self, class_name: Optional[str] = None, subject_id: Optional[str] = None) -> LoadEpoch:
        self._current = LoadEpoch(
            generation=self._current.generation + 1,
            class_name=class_name,
            subject_id=subject_id,
        )
        logger.debug("Working set switched to %s", self._current)
        return self._current

    def is_current(self, epoch: Optional[LoadEpoch]) -> bool:
        # No captured epoch means the caller is not tied to a working set
        if epoch is None:
            return True
        return epoch.generation == self._current.generation
