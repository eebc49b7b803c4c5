"""Student creation - the persistence side of the bulk import"""
import logging
import random
from typing import Callable, Dict, Any, Optional

from sqlalchemy.orm import Session

from src.classboom.models.school import School
from src.classboom.models.student import Student
from src.classboom.schemas.student_import import StudentRecord
from src.classboom.services.batch_commit import CreateEntity

logger = logging.getLogger(__name__)

PARENT_FIELDS = {
    "parent_name": "name",
    "parent_email": "email",
    "parent_phone": "phone",
}

EMERGENCY_FIELDS = {
    "emergency_contact_name": "name",
    "emergency_contact_phone": "phone",
    "emergency_contact_relationship": "relationship",
}

MEDICAL_FIELDS = {
    "blood_type": "blood_type",
    "allergies": "allergies",
    "medications": "medications",
    "doctor_name": "doctor_name",
}


def _nest(data: Dict[str, Any], fields: Dict[str, str]) -> Dict[str, Any]:
    return {key: data[source] for source, key in fields.items() if source in data}


def generate_student_code(school: Optional[School]) -> str:
    prefix = (school.name[:3].upper() if school and school.name else "") or "STU"
    return f"{prefix}{random.randint(0, 999999):06d}"


def create_student(db: Session, school_id: int, record: StudentRecord) -> Student:
    if not record.first_name or not record.last_name:
        raise ValueError("first_name and last_name are required")

    data = record.to_data()
    school = db.get(School, school_id)
    if school is None:
        raise ValueError(f"School {school_id} not found")

    emergency = _nest(data, EMERGENCY_FIELDS)
    student = Student(
        school_id=school_id,
        student_code=generate_student_code(school),
        full_name=f"{record.first_name} {record.last_name}".strip(),
        first_name=record.first_name,
        last_name=record.last_name,
        email=record.email,
        phone=record.phone,
        date_of_birth=record.date_of_birth,
        country=record.country,
        city=record.city,
        skill_level=record.skill_level,
        grade=record.grade,
        notes=record.notes,
        parent_info=_nest(data, PARENT_FIELDS),
        emergency_contact=emergency or None,
        medical_info=_nest(data, MEDICAL_FIELDS),
    )
    try:
        db.add(student)
        db.commit()
        db.refresh(student)
    except Exception:
        db.rollback()
        logger.exception(f"Error creating student from row {record.source_row}")
        raise
    return student


def make_student_creator(session_factory: Callable[[], Session], school_id: int) -> CreateEntity:
    """Bind create_student to a school; each call uses its own database session."""
    def create(record: StudentRecord) -> Student:
        with session_factory() as db:
            return create_student(db, school_id, record)
    return create
