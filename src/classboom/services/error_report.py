"""Downloadable CSVs: the sample import template and the per-row error report"""
import csv
import io
from typing import List

from src.classboom.schemas.student_import import ImportSession


SAMPLE_HEADERS = [
    "First Name",
    "Last Name",
    "Email",
    "Phone",
    "Date of Birth",
    "Country",
    "City",
    "Skill Level",
    "Grade",
    "Parent Name",
    "Parent Email",
    "Parent Phone",
    "Emergency Contact Name",
    "Emergency Contact Phone",
    "Emergency Contact Relationship",
]

SAMPLE_ROWS = [
    [
        "John", "Smith", "john.smith@email.com", "+1234567890", "2010-05-15", "US", "New York",
        "Beginner", "7th Grade", "Jane Smith", "jane.smith@email.com", "+1234567891",
        "Jane Smith", "+1234567891", "Mother",
    ],
    [
        "Emma", "Johnson", "emma.j@email.com", "+1234567892", "2011-08-22", "US", "Los Angeles",
        "Intermediate", "6th Grade", "Robert Johnson", "robert.j@email.com", "+1234567893",
        "Robert Johnson", "+1234567893", "Father",
    ],
]

ERROR_REPORT_HEADERS = ["row", "stage", "field", "message", "student_name"]


def generate_sample_csv() -> str:
    output = io.StringIO()
    writer = csv.writer(output, lineterminator="\n")
    writer.writerow(SAMPLE_HEADERS)
    writer.writerows(SAMPLE_ROWS)
    return output.getvalue()


def _raw_name(session: ImportSession, row: int) -> str:
    """Best-effort student name for a validation error, from the mapped raw row."""
    idx = row - 2
    if idx < 0 or idx >= len(session.raw_rows):
        return ""
    raw = session.raw_rows[idx]
    parts = []
    for field_name in ("first_name", "last_name"):
        for mapping in session.mappings:
            if mapping.target_value == field_name:
                value = (raw.get(mapping.source_column) or "").strip()
                if value:
                    parts.append(value)
                break
    return " ".join(parts)


def build_error_report_rows(session: ImportSession) -> List[List[str]]:
    rows = []
    for error in sorted(session.errors, key=lambda e: e.row):
        rows.append([str(error.row), "validation", error.field or "", error.message, _raw_name(session, error.row)])

    if session.result:
        for error in session.result.errors:
            name = f"{error.data.get('first_name', '')} {error.data.get('last_name', '')}".strip()
            rows.append([str(error.row), "commit", "", error.message, name or "N/A"])
    return rows


def generate_error_report_csv(session: ImportSession) -> bytes:
    output = io.StringIO()
    writer = csv.writer(output, lineterminator="\n")
    writer.writerow(ERROR_REPORT_HEADERS)
    writer.writerows(build_error_report_rows(session))
    # UTF-8 BOM so Excel picks the right encoding
    return output.getvalue().encode("utf-8-sig")
