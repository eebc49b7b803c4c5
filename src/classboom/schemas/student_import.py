"""Student bulk import schemas: session state, mappings, row errors and results"""
import enum
import uuid
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any, Set, Union
from pydantic import BaseModel, Field, model_validator


class ImportStep(str, enum.Enum):
    UPLOAD = "upload"
    MAPPING = "mapping"
    PREVIEW = "preview"
    IMPORTING = "importing"
    COMPLETE = "complete"


class TargetField(str, enum.Enum):
    FIRST_NAME = "first_name"
    LAST_NAME = "last_name"
    EMAIL = "email"
    PHONE = "phone"
    DATE_OF_BIRTH = "date_of_birth"
    COUNTRY = "country"
    CITY = "city"
    SKILL_LEVEL = "skill_level"
    GRADE = "grade"
    NOTES = "notes"
    PARENT_NAME = "parent_name"
    PARENT_EMAIL = "parent_email"
    PARENT_PHONE = "parent_phone"
    EMERGENCY_CONTACT_NAME = "emergency_contact_name"
    EMERGENCY_CONTACT_PHONE = "emergency_contact_phone"
    EMERGENCY_CONTACT_RELATIONSHIP = "emergency_contact_relationship"
    BLOOD_TYPE = "blood_type"
    ALLERGIES = "allergies"
    MEDICATIONS = "medications"
    DOCTOR_NAME = "doctor_name"


IGNORE = "ignore"

DEFAULT_REQUIRED_FIELDS: Set[str] = {TargetField.FIRST_NAME.value, TargetField.LAST_NAME.value}

LIST_FIELDS: Set[str] = {TargetField.ALLERGIES.value, TargetField.MEDICATIONS.value}


class ColumnMapping(BaseModel):
    source_column: str
    target_field: Union[TargetField, str] = IGNORE

    @model_validator(mode="after")
    def coerce_target(self):
        if isinstance(self.target_field, TargetField):
            return self
        if self.target_field == IGNORE:
            return self
        # raises ValueError for anything outside the schema
        self.target_field = TargetField(self.target_field)
        return self

    @property
    def is_ignored(self) -> bool:
        return self.target_field == IGNORE

    @property
    def target_value(self) -> str:
        if isinstance(self.target_field, TargetField):
            return self.target_field.value
        return self.target_field


class StudentRecord(BaseModel):
    """Typed student record produced by validation.

    Every field is optional at the type level; the validator guarantees the
    required ones are present before a record is created. ``source_row`` is the
    display row number of the spreadsheet line the record came from; it travels
    with the session but is left out of ``to_data()``.
    """
    source_row: int

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    date_of_birth: Optional[str] = None
    country: Optional[str] = None
    city: Optional[str] = None
    skill_level: Optional[str] = None
    grade: Optional[str] = None
    notes: Optional[str] = None
    parent_name: Optional[str] = None
    parent_email: Optional[str] = None
    parent_phone: Optional[str] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None
    emergency_contact_relationship: Optional[str] = None
    blood_type: Optional[str] = None
    allergies: Optional[List[str]] = None
    medications: Optional[List[str]] = None
    doctor_name: Optional[str] = None

    def to_data(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True, exclude={"source_row"})

    @property
    def display_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()


class ValidationError(BaseModel):
    row: int
    field: Optional[str] = None
    message: str


class CommitError(BaseModel):
    row: int
    message: str
    data: Dict[str, Any] = Field(default_factory=dict)


class ImportResult(BaseModel):
    success: bool
    total_rows: int
    successful_rows: int
    failed_rows: int
    errors: List[CommitError] = Field(default_factory=list)
    cancelled: bool = False

    @model_validator(mode="after")
    def check_totals(self):
        if self.total_rows != self.successful_rows + self.failed_rows:
            raise ValueError("total_rows must equal successful_rows + failed_rows")
        return self


def _new_session_id() -> str:
    return uuid.uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ImportSession(BaseModel):
    id: str = Field(default_factory=_new_session_id)
    school_id: Optional[int] = None
    step: ImportStep = ImportStep.UPLOAD
    source_file_name: str = ""
    raw_rows: List[Dict[str, str]] = Field(default_factory=list)
    headers: List[str] = Field(default_factory=list)
    mappings: List[ColumnMapping] = Field(default_factory=list)
    valid_rows: List[StudentRecord] = Field(default_factory=list)
    errors: List[ValidationError] = Field(default_factory=list)
    result: Optional[ImportResult] = None
    required_fields: List[str] = Field(default_factory=lambda: sorted(DEFAULT_REQUIRED_FIELDS))
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class FieldOption(BaseModel):
    value: str
    label: str
    required: bool = False


class MappingUpdate(BaseModel):
    source_column: str
    target_field: str


class MappingUpdateRequest(BaseModel):
    mappings: List[MappingUpdate]


class SessionSnapshot(BaseModel):
    id: str
    step: ImportStep
    source_file_name: str
    headers: List[str]
    mappings: List[ColumnMapping]
    ready_to_proceed: bool
    missing_required: List[str]
    total_rows: int
    valid_row_count: int
    preview_rows: List[Dict[str, Any]]
    errors: List[ValidationError]
    result: Optional[ImportResult] = None
    error_report_available: bool = False
