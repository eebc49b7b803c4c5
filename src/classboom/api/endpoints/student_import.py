"""Student bulk import endpoints: upload, mapping, preview, confirm and reports"""
import logging
from typing import List

from fastapi import APIRouter, UploadFile, File, HTTPException
from fastapi.responses import Response

from src.classboom.api.deps import CurrentSchool, DbSession, Actor, SessionFactory, Store
from src.classboom.config import get_settings
from src.classboom.schemas.student_import import (
    FieldOption,
    ImportSession,
    MappingUpdateRequest,
    SessionSnapshot,
)
from src.classboom.services import import_session as flow
from src.classboom.services.audit import log_action
from src.classboom.services.column_mapper import target_field_options
from src.classboom.services.error_report import generate_sample_csv, generate_error_report_csv
from src.classboom.services.errors import (
    ParseError,
    ImportLimitError,
    InvalidTransitionError,
    MappingIncompleteError,
    MappingError,
    NoValidRowsError,
    SessionNotFoundError,
)
from src.classboom.services.student import make_student_creator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/students/import")


def build_snapshot(session: ImportSession) -> SessionSnapshot:
    preview_limit = get_settings().IMPORT_PREVIEW_LIMIT
    return SessionSnapshot(
        id=session.id,
        step=session.step,
        source_file_name=session.source_file_name,
        headers=session.headers,
        mappings=session.mappings,
        ready_to_proceed=flow.is_ready_to_proceed(session),
        missing_required=flow.missing_required_fields(session),
        total_rows=len(session.raw_rows),
        valid_row_count=len(session.valid_rows),
        preview_rows=[r.to_data() for r in session.valid_rows[:preview_limit]],
        errors=session.errors,
        result=session.result,
        error_report_available=flow.has_error_report(session),
    )


def _load(store, session_id: str, school_id: int) -> ImportSession:
    try:
        return store.get(session_id, school_id)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/template")
async def download_template():
    """Download the sample CSV with the expected headers and two example students."""
    csv_bytes = generate_sample_csv().encode("utf-8-sig")
    return Response(
        content=csv_bytes,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": 'attachment; filename="students_import_template.csv"'}
    )


@router.get("/fields", response_model=List[FieldOption])
async def list_target_fields():
    return target_field_options()


@router.post("/sessions", response_model=SessionSnapshot, status_code=201)
async def create_import_session(school: CurrentSchool, store: Store):
    store.cleanup_expired()
    session = store.add(flow.new_session(school_id=school.id))
    logger.info(f"Import session {session.id} opened for school {school.id}")
    return build_snapshot(session)


@router.get("/sessions/{session_id}", response_model=SessionSnapshot)
async def get_import_session(session_id: str, school: CurrentSchool, store: Store):
    return build_snapshot(_load(store, session_id, school.id))


@router.post("/sessions/{session_id}/upload", response_model=SessionSnapshot)
async def upload_file(
    session_id: str,
    school: CurrentSchool,
    store: Store,
    file: UploadFile = File(...)
):
    """
    Upload a CSV or Excel file.
    Parses the file, suggests column mappings and moves the session to the mapping step.
    """
    session = _load(store, session_id, school.id)
    content = await file.read()
    try:
        flow.accept_upload(session, file.filename or "", content)
    except ImportLimitError as e:
        raise HTTPException(status_code=413, detail=str(e))
    except ParseError as e:
        logger.warning(f"Import session {session_id}: could not parse {file.filename}: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    except InvalidTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return build_snapshot(session)


@router.put("/sessions/{session_id}/mappings", response_model=SessionSnapshot)
async def update_mappings(
    session_id: str,
    school: CurrentSchool,
    store: Store,
    request: MappingUpdateRequest
):
    session = _load(store, session_id, school.id)
    try:
        flow.update_mappings(session, [(u.source_column, u.target_field) for u in request.mappings])
    except MappingError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except InvalidTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return build_snapshot(session)


@router.post("/sessions/{session_id}/preview", response_model=SessionSnapshot)
async def preview_import(session_id: str, school: CurrentSchool, store: Store):
    """Validate every row against the current mappings and move to the preview step."""
    session = _load(store, session_id, school.id)
    try:
        flow.proceed_to_preview(session)
    except (MappingIncompleteError, NoValidRowsError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    except InvalidTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return build_snapshot(session)


@router.post("/sessions/{session_id}/confirm", response_model=SessionSnapshot)
def confirm_import(
    session_id: str,
    db: DbSession,
    school: CurrentSchool,
    actor: Actor,
    session_factory: SessionFactory,
    store: Store
):
    """
    Commit the validated rows.
    Individual row failures are collected in the result; the session always ends complete.
    """
    session = _load(store, session_id, school.id)
    create_entity = make_student_creator(session_factory, school.id)
    try:
        flow.confirm_import(session, create_entity)
    except InvalidTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))

    result = session.result
    log_action(
        db=db,
        school_id=school.id,
        actor=actor,
        action="STUDENTS_IMPORTED",
        target_type="student",
        meta={
            "file_name": session.source_file_name,
            "total_rows": result.total_rows,
            "successful_rows": result.successful_rows,
            "failed_rows": result.failed_rows,
            "validation_error_count": len(session.errors),
        }
    )
    return build_snapshot(session)


@router.post("/sessions/{session_id}/reset", response_model=SessionSnapshot)
async def reset_import(session_id: str, school: CurrentSchool, store: Store):
    session = _load(store, session_id, school.id)
    try:
        flow.reset(session)
    except InvalidTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return build_snapshot(session)


@router.get("/sessions/{session_id}/errors")
async def download_error_report(session_id: str, school: CurrentSchool, store: Store):
    session = _load(store, session_id, school.id)
    if not flow.has_error_report(session):
        raise HTTPException(status_code=404, detail="No errors to report for this import")

    return Response(
        content=generate_error_report_csv(session),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="import_errors_{session.id[:8]}.csv"'}
    )


@router.delete("/sessions/{session_id}", status_code=204)
async def discard_import_session(session_id: str, school: CurrentSchool, store: Store):
    try:
        store.discard(session_id, school.id)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return Response(status_code=204)
