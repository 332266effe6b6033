from sqlalchemy import Column, String, JSON, DateTime
from sqlalchemy.sql import func
from database import LocalBase

# Lives on the local engine, not the record store
class LocalEntry(LocalBase):
    __tablename__ = "local_entries"

    key = Column(String(255), primary_key=True)
    value = Column(JSON)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
