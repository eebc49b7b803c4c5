"""API dependencies - tenant scoping, database session and import session store"""
from typing import Annotated, Callable, Optional
from fastapi import Depends, HTTPException, Header
from sqlalchemy.orm import Session

from src.classboom.database import get_db, SessionLocal
from src.classboom.models.school import School
from src.classboom.services.session_store import SessionStore, get_session_store


def get_current_school(
    db: Session = Depends(get_db),
    x_school_id: Optional[int] = Header(default=None, description="Tenant school ID")
) -> School:
    if x_school_id is None:
        raise HTTPException(status_code=400, detail="X-School-Id header is required")

    school = db.get(School, x_school_id)
    if not school:
        raise HTTPException(status_code=404, detail="School not found")

    return school


def get_actor(
    x_user_email: Optional[str] = Header(default=None, description="Acting user, for the audit log")
) -> str:
    return x_user_email or "system"


def get_session_factory() -> Callable[[], Session]:
    return SessionLocal


CurrentSchool = Annotated[School, Depends(get_current_school)]
DbSession = Annotated[Session, Depends(get_db)]
Actor = Annotated[str, Depends(get_actor)]
SessionFactory = Annotated[Callable[[], Session], Depends(get_session_factory)]
Store = Annotated[SessionStore, Depends(get_session_store)]
