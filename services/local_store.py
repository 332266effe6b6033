import logging
from typing import Any, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from database import LocalSession
from models.drafts import LocalEntry

logger = logging.getLogger(__name__)


class LocalKeyValueStore:
    """
    Synchronous key-value store on the local engine.

    Failures are logged and never raised: a broken local store must not
    turn into a business error for the marks entry flow.
    """

    def __init__(self, session_factory=LocalSession):
        self._session_factory = session_factory

    def get(self, key: str) -> Optional[Any]:
        db = self._session_factory()
        try:
            entry = db.get(LocalEntry, key)
            return entry.value if entry else None
        except SQLAlchemyError as e:
            logger.error("Local store read failed for %s: %s", key, e)
            return None
        finally:
            db.close()

    def set(self, key: str, value: Any) -> None:
        db = self._session_factory()
        try:
            entry = db.get(LocalEntry, key)
            if entry:
                entry.value = value
            else:
                db.add(LocalEntry(key=key, value=value))
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("Local store write failed for %s: %s", key, e)
        finally:
            db.close()

    def delete(self, key: str) -> None:
        db = self._session_factory()
        try:
            db.query(LocalEntry).filter(LocalEntry.key == key).delete()
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("Local store delete failed for %s: %s", key, e)
        finally:
            db.close()

    def keys(self, prefix: str = "") -> List[str]:
        db = self._session_factory()
        try:
            query = db.query(LocalEntry.key)
            if prefix:
                query = query.filter(LocalEntry.key.startswith(prefix, autoescape=True))
            return [row.key for row in query.order_by(LocalEntry.key).all()]
        except SQLAlchemyError as e:
            logger.error("Local store scan failed: %s", e)
            return []
        finally:
            db.close()
