"""Apply column mappings to raw rows, validate and coerce them into student records"""
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import List, Dict, Optional, Iterable, Tuple

import email_validator
from email_validator import validate_email, EmailNotValidError

from src.classboom.schemas.student_import import (
    ColumnMapping,
    StudentRecord,
    ValidationError,
    TargetField,
    LIST_FIELDS,
    DEFAULT_REQUIRED_FIELDS,
)
from src.classboom.services.column_mapper import required_message

logger = logging.getLogger(__name__)

DATE_FORMATS = ["%Y/%m/%d", "%m/%d/%Y"]

# School intranet and test addresses (kid@school.local, a@b.test) are still local@domain.tld
for _reserved in ("local", "test"):
    if _reserved in email_validator.SPECIAL_USE_DOMAIN_NAMES:
        email_validator.SPECIAL_USE_DOMAIN_NAMES.remove(_reserved)

# Required fields are checked in this order so errors read first name, last name
REQUIRED_FIELD_ORDER = [f.value for f in TargetField]


@dataclass
class ValidationOutcome:
    valid_rows: List[StudentRecord] = field(default_factory=list)
    errors: List[ValidationError] = field(default_factory=list)


def is_valid_email(email: str) -> bool:
    if not email:
        return False
    try:
        validate_email(email, check_deliverability=False)
        return True
    except EmailNotValidError:
        return False


def parse_date(value: str) -> Optional[date]:
    value = value.strip()
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(value).date()
    except ValueError:
        pass
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    return None


def split_list_value(value: str) -> List[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


def map_row(row: Dict[str, str], mappings: Iterable[ColumnMapping]) -> Dict[str, str]:
    """Copy trimmed, non-empty source values onto their target fields."""
    mapped: Dict[str, str] = {}
    for mapping in mappings:
        if mapping.is_ignored:
            continue
        value = row.get(mapping.source_column)
        if value is None:
            continue
        value = str(value).strip()
        if value:
            mapped[mapping.target_value] = value
    return mapped


def _ordered_required(required_fields: Iterable[str]) -> List[str]:
    required = set(required_fields)
    ordered = [f for f in REQUIRED_FIELD_ORDER if f in required]
    return ordered + sorted(required - set(ordered))


def validate_row(
    row: Dict[str, str],
    mappings: List[ColumnMapping],
    row_num: int,
    required_fields: Iterable[str] = DEFAULT_REQUIRED_FIELDS,
) -> Tuple[Optional[StudentRecord], List[ValidationError]]:
    errors = []
    mapped = map_row(row, mappings)

    missing = [f for f in _ordered_required(required_fields) if not mapped.get(f)]
    for field_name in missing:
        errors.append(ValidationError(row=row_num, field=field_name, message=required_message(field_name)))
    if missing:
        return None, errors

    email = mapped.get(TargetField.EMAIL.value)
    if email and not is_valid_email(email):
        errors.append(ValidationError(row=row_num, field=TargetField.EMAIL.value, message="Invalid email format"))

    dob = mapped.get(TargetField.DATE_OF_BIRTH.value)
    if dob and parse_date(dob) is None:
        errors.append(ValidationError(
            row=row_num,
            field=TargetField.DATE_OF_BIRTH.value,
            message="Invalid date format (use YYYY-MM-DD)"
        ))

    values: Dict[str, object] = dict(mapped)
    for list_field in LIST_FIELDS:
        if list_field in values:
            values[list_field] = split_list_value(mapped[list_field])

    return StudentRecord(source_row=row_num, **values), errors


def validate_rows(
    raw_rows: List[Dict[str, str]],
    mappings: List[ColumnMapping],
    required_fields: Optional[Iterable[str]] = None,
) -> ValidationOutcome:
    required = list(required_fields) if required_fields is not None else list(DEFAULT_REQUIRED_FIELDS)
    outcome = ValidationOutcome()

    for idx, row in enumerate(raw_rows):
        # +2: 1-based rows and the header line
        row_num = idx + 2
        record, row_errors = validate_row(row, mappings, row_num, required)
        outcome.errors.extend(row_errors)
        if record is not None:
            outcome.valid_rows.append(record)

    logger.info(
        f"Validated {len(raw_rows)} rows: {len(outcome.valid_rows)} valid, {len(outcome.errors)} errors"
    )
    return outcome
