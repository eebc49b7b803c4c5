"""Column name normalization and automatic mapping onto the student schema"""
import re
import unicodedata
from typing import Dict, List, Optional

from src.classboom.schemas.student_import import (
    ColumnMapping,
    FieldOption,
    TargetField,
    IGNORE,
    DEFAULT_REQUIRED_FIELDS,
)


COLUMN_ALIASES: Dict[TargetField, List[str]] = {
    TargetField.FIRST_NAME: ["first_name", "firstname", "fname", "given name", "givenname", "forename"],
    TargetField.LAST_NAME: ["last_name", "lastname", "lname", "surname", "family name", "familyname"],
    TargetField.EMAIL: ["email", "email address", "e-mail", "mail", "student email"],
    TargetField.PHONE: ["phone", "phone number", "mobile", "mobile number", "telephone", "tel", "cell"],
    TargetField.DATE_OF_BIRTH: ["date_of_birth", "date of birth", "dob", "birthdate", "birth date", "birthday"],
    TargetField.COUNTRY: ["country", "nation"],
    TargetField.CITY: ["city", "town"],
    TargetField.SKILL_LEVEL: ["skill_level", "skill level", "level"],
    TargetField.GRADE: ["grade", "class", "year group"],
    TargetField.NOTES: ["notes", "note", "comments", "remarks"],
    TargetField.PARENT_NAME: ["parent_name", "parent name", "guardian name", "guardian"],
    TargetField.PARENT_EMAIL: ["parent_email", "parent email", "guardian email"],
    TargetField.PARENT_PHONE: ["parent_phone", "parent phone", "guardian phone"],
    TargetField.EMERGENCY_CONTACT_NAME: [
        "emergency_contact_name", "emergency contact name", "emergency contact", "emergency name",
    ],
    TargetField.EMERGENCY_CONTACT_PHONE: [
        "emergency_contact_phone", "emergency contact phone", "emergency phone",
    ],
    TargetField.EMERGENCY_CONTACT_RELATIONSHIP: [
        "emergency_contact_relationship", "emergency contact relationship", "emergency relationship",
    ],
    TargetField.BLOOD_TYPE: ["blood_type", "blood type", "blood group"],
    TargetField.ALLERGIES: ["allergies", "allergy"],
    TargetField.MEDICATIONS: ["medications", "medication", "medicines"],
    TargetField.DOCTOR_NAME: ["doctor_name", "doctor name", "doctor", "physician"],
}


FIELD_LABELS: Dict[TargetField, str] = {
    TargetField.FIRST_NAME: "First Name",
    TargetField.LAST_NAME: "Last Name",
    TargetField.EMAIL: "Email",
    TargetField.PHONE: "Phone Number",
    TargetField.DATE_OF_BIRTH: "Date of Birth",
    TargetField.COUNTRY: "Country",
    TargetField.CITY: "City",
    TargetField.SKILL_LEVEL: "Skill Level",
    TargetField.GRADE: "Grade",
    TargetField.NOTES: "Notes",
    TargetField.PARENT_NAME: "Parent Name",
    TargetField.PARENT_EMAIL: "Parent Email",
    TargetField.PARENT_PHONE: "Parent Phone",
    TargetField.EMERGENCY_CONTACT_NAME: "Emergency Contact Name",
    TargetField.EMERGENCY_CONTACT_PHONE: "Emergency Contact Phone",
    TargetField.EMERGENCY_CONTACT_RELATIONSHIP: "Emergency Contact Relationship",
    TargetField.BLOOD_TYPE: "Blood Type",
    TargetField.ALLERGIES: "Allergies (comma-separated)",
    TargetField.MEDICATIONS: "Medications (comma-separated)",
    TargetField.DOCTOR_NAME: "Doctor Name",
}


def normalize_column_name(name: str) -> str:
    normalized = unicodedata.normalize("NFKC", name)
    normalized = normalized.lower()
    return re.sub(r"[^a-z0-9]", "", normalized)


def _build_alias_lookup() -> Dict[str, TargetField]:
    """Build a reverse lookup: normalized alias -> target field."""
    lookup: Dict[str, TargetField] = {}
    for target, aliases in COLUMN_ALIASES.items():
        for alias in aliases:
            lookup[normalize_column_name(alias)] = target
    return lookup


_ALIAS_LOOKUP = _build_alias_lookup()


def map_column_name(raw_name: str) -> Optional[TargetField]:
    return _ALIAS_LOOKUP.get(normalize_column_name(raw_name))


def suggest_mappings(headers: List[str]) -> List[ColumnMapping]:
    """Propose one mapping per header; unknown headers and repeat targets are ignored."""
    mappings = []
    used_fields = set()

    for header in headers:
        target = map_column_name(header)
        if target is not None and target not in used_fields:
            mappings.append(ColumnMapping(source_column=header, target_field=target))
            used_fields.add(target)
        else:
            mappings.append(ColumnMapping(source_column=header, target_field=IGNORE))

    return mappings


def required_message(field: str) -> str:
    """'first_name' -> 'First name is required'"""
    label = field.replace("_", " ")
    return f"{label[:1].upper()}{label[1:]} is required"


def target_field_options(required_fields: Optional[List[str]] = None) -> List[FieldOption]:
    required = set(required_fields) if required_fields is not None else DEFAULT_REQUIRED_FIELDS
    options = [
        FieldOption(value=target.value, label=FIELD_LABELS[target], required=target.value in required)
        for target in TargetField
    ]
    options.append(FieldOption(value=IGNORE, label="-- Ignore this column --", required=False))
    return options
