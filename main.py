import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import CORS_ORIGINS, LOG_LEVEL
from database import engine, Base, local_engine, LocalBase

# --- IMPORT ROUTERS (APIs) ---
from routers import masters, students, results, marks, bulk_import
from routers.exams import router as exams_router

# --- IMPORT MODELS (so create_all sees every table) ---
from models.masters import ClassMaster
from models.students import Student
from models.exams import Subject, StudentMark
from models.drafts import LocalEntry

logging.basicConfig(
    level=LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# --- CREATE DATABASE TABLES ---
Base.metadata.create_all(bind=engine)
LocalBase.metadata.create_all(bind=local_engine)

app = FastAPI(title="Marks Entry & Results")

# ==========================================
# ✅ CORS MIDDLEWARE
# ==========================================
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- REGISTER ROUTERS ---
app.include_router(masters.router)
app.include_router(students.router)
app.include_router(exams_router)
app.include_router(marks.router)
app.include_router(results.router)
app.include_router(bulk_import.router)


@app.get("/health")
def health_check():
    return {"status": "ok"}


logger.info("Marks service ready, %d routes registered", len(app.routes))
