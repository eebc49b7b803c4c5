"""Shared fixtures: in-memory database, a tenant school and an API client."""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from src.classboom.api.deps import get_session_factory
from src.classboom.database import get_db
from src.classboom.main import app
from src.classboom.models import Base, School
from src.classboom.services.session_store import SessionStore, get_session_store


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()

@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

@pytest.fixture
def db(session_factory) -> Session:
    with session_factory() as session:
        yield session

@pytest.fixture
def school(db: Session) -> School:
    school = School(name="Riverside Academy")
    db.add(school)
    db.commit()
    db.refresh(school)
    return school

@pytest.fixture
def other_school(db: Session) -> School:
    school = School(name="Hilltop College")
    db.add(school)
    db.commit()
    db.refresh(school)
    return school

@pytest.fixture
def store() -> SessionStore:
    return SessionStore(ttl_minutes=60)

@pytest.fixture
def client(session_factory, store):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_session_store] = lambda: store
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()

@pytest.fixture
def school_headers(school: School) -> dict:
    return {"X-School-Id": str(school.id), "X-User-Email": "registrar@riverside.edu"}
