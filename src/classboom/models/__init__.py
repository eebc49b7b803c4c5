"""Database models"""
from src.classboom.models.base import Base
from src.classboom.models.school import School
from src.classboom.models.student import Student
from src.classboom.models.audit_log import AuditLog

__all__ = ["Base", "School", "Student", "AuditLog"]
