"""Audit logging service"""
import json
from typing import Optional
from sqlalchemy.orm import Session

from src.classboom.models.audit_log import AuditLog


def log_action(
    db: Session,
    school_id: int,
    actor: str,
    action: str,
    target_type: str,
    target_id: Optional[int] = None,
    meta: Optional[dict] = None
) -> AuditLog:
    audit_log = AuditLog(
        school_id=school_id,
        actor=actor,
        action=action,
        target_type=target_type,
        target_id=target_id,
        meta_json=json.dumps(meta) if meta else None
    )
    db.add(audit_log)
    db.commit()
    db.refresh(audit_log)
    return audit_log
