"""Student import session state machine.

A session moves strictly forward:

    upload -> mapping -> preview -> importing -> complete

``reset`` is the only way back and is allowed from mapping, preview and
complete. Every transition function takes the session, checks the current
step, mutates the session in place and returns it.

Sessions live in a shared store and HTTP requests for the same session can
arrive on different worker threads, so starting an import claims the session
(preview -> importing) under a lock. A second confirm for the same session
then fails its step check instead of committing every row again.
"""
import logging
import threading
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Tuple

from src.classboom.config import get_settings
from src.classboom.schemas.student_import import (
    ImportSession,
    ImportStep,
    DEFAULT_REQUIRED_FIELDS,
    IGNORE,
)
from src.classboom.services.batch_commit import BatchCommitExecutor, CreateEntity, ProgressCallback
from src.classboom.services.column_mapper import suggest_mappings
from src.classboom.services.errors import (
    FileTooLargeError,
    TooManyRowsError,
    InvalidTargetFieldError,
    InvalidTransitionError,
    MappingIncompleteError,
    NoValidRowsError,
)
from src.classboom.services.mapping_editor import MappingEditor, coerce_target_field
from src.classboom.services.row_validator import validate_rows
from src.classboom.services.tabular_parser import parse_file

logger = logging.getLogger(__name__)

RESETTABLE_STEPS = {ImportStep.MAPPING, ImportStep.PREVIEW, ImportStep.COMPLETE}

_claim_lock = threading.Lock()


def _require_step(session: ImportSession, expected: ImportStep, action: str) -> None:
    if session.step != expected:
        raise InvalidTransitionError(session.step.value, action)


def _touch(session: ImportSession) -> None:
    session.updated_at = datetime.now(timezone.utc)


def _move_to(session: ImportSession, step: ImportStep) -> None:
    logger.info(f"Import session {session.id}: {session.step.value} -> {step.value}")
    session.step = step
    _touch(session)


def _editor(session: ImportSession) -> MappingEditor:
    return MappingEditor(session.mappings, session.required_fields)


def new_session(
    required_fields: Optional[Iterable[str]] = None,
    school_id: Optional[int] = None,
) -> ImportSession:
    """Start a session in the upload step.

    Raises InvalidTargetFieldError when a required field is not a student field.
    """
    if required_fields is None:
        required = sorted(DEFAULT_REQUIRED_FIELDS)
    else:
        required = sorted({_required_field(f) for f in required_fields})
    return ImportSession(required_fields=required, school_id=school_id)


def _required_field(field_name: str) -> str:
    # "ignore" is a mapping choice, not a field a row can supply
    if field_name == IGNORE:
        raise InvalidTargetFieldError(field_name)
    return coerce_target_field(field_name)


def accept_upload(session: ImportSession, filename: str, content: bytes) -> ImportSession:
    """Parse an uploaded file and advance to the mapping step.

    On any failure the session is left untouched in the upload step.
    """
    _require_step(session, ImportStep.UPLOAD, "upload a file")
    settings = get_settings()

    if len(content) > settings.import_max_upload_bytes:
        raise FileTooLargeError(len(content), settings.IMPORT_MAX_UPLOAD_MB)

    table = parse_file(filename, content)

    if table.row_count > settings.IMPORT_MAX_ROWS:
        raise TooManyRowsError(table.row_count, settings.IMPORT_MAX_ROWS)

    session.source_file_name = filename
    session.headers = table.headers
    session.raw_rows = table.raw_rows
    session.mappings = suggest_mappings(table.headers)
    _move_to(session, ImportStep.MAPPING)
    return session


def update_mapping(session: ImportSession, source_column: str, target_field: str) -> ImportSession:
    return update_mappings(session, [(source_column, target_field)])


def update_mappings(session: ImportSession, updates: Iterable[Tuple[str, str]]) -> ImportSession:
    """Apply several mapping edits as one change.

    The edits are made on a copy of the mapping table; if any of them raises a
    MappingError the session keeps its previous mappings.
    """
    _require_step(session, ImportStep.MAPPING, "edit mappings")
    editor = _editor(session)
    for source_column, target_field in updates:
        editor.update_mapping(source_column, target_field)
    session.mappings = editor.mappings
    _touch(session)
    return session


def is_ready_to_proceed(session: ImportSession) -> bool:
    return _editor(session).is_ready_to_proceed()


def missing_required_fields(session: ImportSession) -> List[str]:
    return _editor(session).missing_required_fields()


def proceed_to_preview(session: ImportSession) -> ImportSession:
    _require_step(session, ImportStep.MAPPING, "preview")
    editor = _editor(session)
    if not editor.is_ready_to_proceed():
        raise MappingIncompleteError(editor.missing_required_fields())

    outcome = validate_rows(session.raw_rows, session.mappings, session.required_fields)
    if not outcome.valid_rows:
        # Stay in mapping so the user can fix the mappings and try again
        session.errors = outcome.errors
        raise NoValidRowsError()

    session.valid_rows = outcome.valid_rows
    session.errors = outcome.errors
    _move_to(session, ImportStep.PREVIEW)
    return session


def confirm_import(
    session: ImportSession,
    create_entity: CreateEntity,
    executor: Optional[BatchCommitExecutor] = None,
    on_progress: Optional[ProgressCallback] = None,
    cancel_event: Optional[threading.Event] = None,
) -> ImportSession:
    """Commit the session's valid rows; the session always ends in the complete step."""
    if executor is None:
        settings = get_settings()
        executor = BatchCommitExecutor(
            batch_size=settings.IMPORT_BATCH_SIZE,
            max_workers=settings.IMPORT_MAX_WORKERS,
        )

    with _claim_lock:
        _require_step(session, ImportStep.PREVIEW, "start import")
        if not session.valid_rows:
            raise InvalidTransitionError(session.step.value, "start import", "no valid rows to import")
        _move_to(session, ImportStep.IMPORTING)

    session.result = executor.run(
        session.valid_rows,
        create_entity,
        on_progress=on_progress,
        cancel_event=cancel_event,
    )
    _move_to(session, ImportStep.COMPLETE)
    return session


def reset(session: ImportSession) -> ImportSession:
    if session.step not in RESETTABLE_STEPS:
        raise InvalidTransitionError(session.step.value, "reset")

    session.source_file_name = ""
    session.raw_rows = []
    session.headers = []
    session.mappings = []
    session.valid_rows = []
    session.errors = []
    session.result = None
    _move_to(session, ImportStep.UPLOAD)
    return session


def has_error_report(session: ImportSession) -> bool:
    return bool(session.errors) or bool(session.result and session.result.errors)
