import os
from dotenv import load_dotenv

load_dotenv()

# --- DATABASES ---
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./school.db")
LOCAL_STORE_URL = os.getenv("LOCAL_STORE_URL", "sqlite:///./drafts.db")

# --- MARKS ENTRY ---
DRAFT_DEBOUNCE_MS = int(os.getenv("DRAFT_DEBOUNCE_MS", "300"))

# Seed list only, the classes table is authoritative once the app is running
CLASS_NAMES = [
    c.strip()
    for c in os.getenv("CLASS_NAMES", "S1,S2,S3,S4,S5,S6,S7,S8,S9,S10").split(",")
    if c.strip()
]

# --- HTTP ---
CORS_ORIGINS = [
    o.strip()
    for o in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")
    if o.strip()
]

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
