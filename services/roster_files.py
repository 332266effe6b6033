"""
Roster file parsing for bulk import (CSV, Excel, pasted text).

Produces RosterRow lists plus per-row parse errors; class and admission
number checks are left to the merge resolver.
"""
import io
import re
from typing import List, Optional, Tuple

import pandas as pd

from services.roster import RosterRow

CSV_COLUMNS = ["adNo", "name", "className", "semester"]

# Normalized header -> logical column
SPREADSHEET_ALIASES = {
    "admission_no": ["adno", "admissionno", "admissionnumber", "id"],
    "name": ["name", "studentname", "fullname"],
    "class_name": ["classname", "class", "grade"],
    "semester": ["semester", "term"],
}
POSITIONAL_ORDER = ["admission_no", "name", "class_name", "semester"]


def safe_str(value) -> Optional[str]:
    """Safely convert value to string, handling NaN and None"""
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return None
    text = str(value).strip().strip('"').strip()
    # Excel hands integer cells back as "201.0"
    if re.fullmatch(r"\d+\.0", text):
        text = text[:-2]
    return text or None


def normalize_header(header) -> str:
    return re.sub(r"[^a-z0-9]", "", str(header).strip().lower())


def normalize_semester(value) -> str:
    text = (safe_str(value) or "").lower()
    if "even" in text or text == "2":
        return "Even"
    return "Odd"


# ===========================
#            CSV
# ===========================

def parse_roster_csv(content) -> Tuple[List[RosterRow], List[str]]:
    """Strict CSV: header row adNo,name,className,semester then one student per row."""
    text = content.decode("utf-8-sig") if isinstance(content, bytes) else content
    errors: List[str] = []
    try:
        df = pd.read_csv(io.StringIO(text.strip()), dtype=str, keep_default_na=False,
                         skipinitialspace=True)
    except pd.errors.EmptyDataError:
        return [], ["CSV must contain at least a header row and one data row"]
    except pd.errors.ParserError as e:
        return [], [f"Could not read CSV: {e}"]

    df.columns = [str(c).strip().strip('"') for c in df.columns]
    for column in CSV_COLUMNS:
        if column not in df.columns:
            errors.append(f"Missing required column: {column}")
    if errors:
        return [], errors
    if df.empty:
        return [], ["CSV must contain at least a header row and one data row"]

    rows = []
    for idx, record in df.iterrows():
        rows.append(RosterRow(
            admission_no=safe_str(record["adNo"]),
            name=safe_str(record["name"]),
            class_name=safe_str(record["className"]),
            semester=safe_str(record["semester"]),
            row_number=idx + 2,
        ))
    return rows, errors


# ===========================
#        SPREADSHEET
# ===========================

def parse_roster_spreadsheet(content: bytes, filename: str = "roster.xlsx") -> Tuple[List[RosterRow], List[str]]:
    """First sheet, tolerant headers, first four columns as positional fallback."""
    engine = "openpyxl" if filename.lower().endswith(".xlsx") else None
    try:
        df = pd.read_excel(io.BytesIO(content), engine=engine, dtype=str)
    except Exception as e:
        return [], [f"Error reading Excel file: {e}"]
    if df.empty:
        return [], ["No data found in the Excel file"]

    headers = [normalize_header(c) for c in df.columns]
    positions = {}
    for logical, aliases in SPREADSHEET_ALIASES.items():
        match = next((headers.index(a) for a in aliases if a in headers), None)
        if match is None:
            fallback = POSITIONAL_ORDER.index(logical)
            match = fallback if fallback < len(headers) else None
        positions[logical] = match

    rows = []
    for idx, record in df.iterrows():
        if record.isna().all():
            continue
        values = {
            logical: safe_str(record.iloc[pos]) if pos is not None else None
            for logical, pos in positions.items()
        }
        rows.append(RosterRow(
            admission_no=values["admission_no"],
            name=values["name"],
            class_name=values["class_name"],
            semester=normalize_semester(values["semester"]),
            row_number=idx + 2,
        ))
    return rows, []


# ===========================
#        PASTED TEXT
# ===========================

def parse_roster_text(text: str) -> Tuple[List[RosterRow], List[str]]:
    """One student per line: adNo, name, class separated by comma, semicolon or tab."""
    rows, errors = [], []
    lines = [line for line in text.splitlines() if line.strip()]
    for number, line in enumerate(lines, start=1):
        parts = [p.strip() for p in re.split(r"[,;\t]", line)]
        if len(parts) < 3:
            errors.append(f"Row {number}: expected admission number, name and class")
            continue
        rows.append(RosterRow(
            admission_no=parts[0],
            name=parts[1],
            class_name=parts[2],
            semester=normalize_semester(parts[3]) if len(parts) > 3 and parts[3] else None,
            row_number=number,
        ))
    return rows, errors
