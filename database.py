from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from config import DATABASE_URL, LOCAL_STORE_URL


def make_engine(url: str):
    """SQLite needs check_same_thread off because store calls run in the threadpool."""
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(url, **kwargs)
    return create_engine(url, pool_pre_ping=True)


# --- REMOTE RECORD STORE (students, subjects, marks) ---
engine = make_engine(DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()

# --- LOCAL KEY-VALUE STORE (drafts) ---
local_engine = make_engine(LOCAL_STORE_URL)
LocalSession = sessionmaker(autocommit=False, autoflush=False, bind=local_engine)
LocalBase = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
