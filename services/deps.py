"""FastAPI dependency providers for the marks engine."""
from functools import lru_cache

from fastapi import Depends

from services.drafts import DraftBuffer
from services.epoch import EpochTracker
from services.local_store import LocalKeyValueStore
from services.roster import RosterImporter
from services.sheet import MarksSheet
from services.store import SqlRecordStore
from services.sync import SyncResolver


@lru_cache
def get_store() -> SqlRecordStore:
    return SqlRecordStore()


@lru_cache
def get_local_store() -> LocalKeyValueStore:
    return LocalKeyValueStore()


def get_resolver(store=Depends(get_store), local=Depends(get_local_store)) -> SyncResolver:
    # Each request works against its own epoch, there is no shared "current subject"
    return SyncResolver(store, DraftBuffer(local, EpochTracker()))


def get_sheet(store=Depends(get_store), resolver: SyncResolver = Depends(get_resolver)) -> MarksSheet:
    return MarksSheet(store, resolver)


def get_importer(store=Depends(get_store), resolver: SyncResolver = Depends(get_resolver)) -> RosterImporter:
    return RosterImporter(store, resolver)
