from sqlalchemy import Column, Integer, String, Boolean
from database import Base

# CLASS TABLE (configured class set, roster imports are checked against it)
class ClassMaster(Base):
    __tablename__ = "classes"
    id = Column(Integer, primary_key=True, index=True)
    class_name = Column(String(50), unique=True, index=True)
    status = Column(Boolean, default=True)
