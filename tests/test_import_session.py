"""Tests for the import session state machine."""
import threading
import time
from datetime import datetime, timedelta, timezone

import pytest

from src.classboom.config import settings
from src.classboom.schemas.student_import import ImportSession, ImportStep
from src.classboom.services import import_session as flow
from src.classboom.services.batch_commit import BatchCommitExecutor
from src.classboom.services.session_store import SessionStore
from src.classboom.services.errors import (
    FileTooLargeError,
    InvalidTargetFieldError,
    InvalidTransitionError,
    MappingIncompleteError,
    NoValidRowsError,
    ParseError,
    TooManyRowsError,
    UnknownColumnError,
)
from tests.helpers import make_csv

SCENARIO_CSV = make_csv(
    ["First Name", "Last Name", "Email"],
    [["Jane", "Doe", "jane@x.com"], ["", "Smith", "bad-email"]],
)


def uploaded_session(content=SCENARIO_CSV, filename="students.csv"):
    session = flow.new_session()
    flow.accept_upload(session, filename, content)
    return session


def previewed_session():
    session = uploaded_session()
    flow.proceed_to_preview(session)
    return session


def succeed(record):
    return record


class TestUploadStep:
    def test_new_session_starts_in_upload(self):
        session = flow.new_session()

        assert session.step == ImportStep.UPLOAD
        assert session.raw_rows == []
        assert session.required_fields == ["first_name", "last_name"]

    def test_accepted_upload_moves_to_mapping_with_suggestions(self):
        session = uploaded_session()

        assert session.step == ImportStep.MAPPING
        assert session.source_file_name == "students.csv"
        assert session.headers == ["First Name", "Last Name", "Email"]
        assert len(session.raw_rows) == 2
        assert [m.target_value for m in session.mappings] == ["first_name", "last_name", "email"]
        assert flow.is_ready_to_proceed(session)

    def test_parse_error_keeps_session_in_upload(self):
        session = flow.new_session()

        with pytest.raises(ParseError):
            flow.accept_upload(session, "students.csv", b"First Name,Last Name\n")

        assert session.step == ImportStep.UPLOAD
        assert session.headers == []

    def test_oversized_file_rejected_before_parsing(self, monkeypatch):
        monkeypatch.setattr(settings, "IMPORT_MAX_UPLOAD_MB", 0)
        session = flow.new_session()

        with pytest.raises(FileTooLargeError):
            flow.accept_upload(session, "students.pdf", b"x")

        assert session.step == ImportStep.UPLOAD

    def test_too_many_rows_rejected(self, monkeypatch):
        monkeypatch.setattr(settings, "IMPORT_MAX_ROWS", 1)
        session = flow.new_session()

        with pytest.raises(TooManyRowsError) as exc_info:
            flow.accept_upload(session, "students.csv", SCENARIO_CSV)

        assert exc_info.value.row_count == 2
        assert session.step == ImportStep.UPLOAD
        assert session.raw_rows == []

    def test_exactly_max_rows_accepted(self):
        rows = [[f"S{i}", "Lee"] for i in range(settings.IMPORT_MAX_ROWS)]

        session = uploaded_session(make_csv(["First Name", "Last Name"], rows))

        assert len(session.raw_rows) == settings.IMPORT_MAX_ROWS

    def test_second_upload_requires_reset(self):
        session = uploaded_session()

        with pytest.raises(InvalidTransitionError):
            flow.accept_upload(session, "students.csv", SCENARIO_CSV)


class TestMappingStep:
    def test_update_mapping_only_in_mapping_step(self):
        session = flow.new_session()

        with pytest.raises(InvalidTransitionError):
            flow.update_mapping(session, "First Name", "first_name")

    def test_gate_blocks_preview(self):
        session = uploaded_session()
        flow.update_mapping(session, "Last Name", "ignore")

        with pytest.raises(MappingIncompleteError) as exc_info:
            flow.proceed_to_preview(session)

        assert exc_info.value.missing == ["last_name"]
        assert session.step == ImportStep.MAPPING

    def test_preview_validates_rows(self):
        session = previewed_session()

        assert session.step == ImportStep.PREVIEW
        assert [r.to_data() for r in session.valid_rows] == [
            {"first_name": "Jane", "last_name": "Doe", "email": "jane@x.com"}
        ]
        assert [(e.row, e.field) for e in session.errors] == [(3, "first_name")]

    def test_no_valid_rows_stays_in_mapping(self):
        content = make_csv(["First Name", "Last Name"], [["", "Doe"], ["Jane", ""]])
        session = uploaded_session(content)

        with pytest.raises(NoValidRowsError):
            flow.proceed_to_preview(session)

        assert session.step == ImportStep.MAPPING
        assert session.valid_rows == []
        assert len(session.errors) == 2


class TestCommitStep:
    def test_confirm_runs_commit_and_completes(self):
        session = previewed_session()
        created = []

        flow.confirm_import(session, created.append)

        assert session.step == ImportStep.COMPLETE
        assert session.result.successful_rows == 1
        assert session.result.success
        assert [r.first_name for r in created] == ["Jane"]

    def test_failures_still_reach_complete(self):
        session = previewed_session()

        def fail(record):
            raise RuntimeError("database unavailable")

        flow.confirm_import(session, fail)

        assert session.step == ImportStep.COMPLETE
        assert session.result.failed_rows == 1
        assert session.result.errors[0].row == 2
        assert session.result.errors[0].message == "database unavailable"

    def test_confirm_requires_preview(self):
        session = uploaded_session()

        with pytest.raises(InvalidTransitionError):
            flow.confirm_import(session, succeed)

    def test_confirm_requires_valid_rows(self):
        session = previewed_session()
        session.valid_rows = []

        with pytest.raises(InvalidTransitionError):
            flow.confirm_import(session, succeed)

        assert session.step == ImportStep.PREVIEW

    def test_complete_is_terminal(self):
        session = previewed_session()
        flow.confirm_import(session, succeed)

        with pytest.raises(InvalidTransitionError):
            flow.confirm_import(session, succeed)
        with pytest.raises(InvalidTransitionError):
            flow.accept_upload(session, "students.csv", SCENARIO_CSV)

    def test_progress_is_forwarded(self):
        session = previewed_session()
        progress = []

        flow.confirm_import(
            session,
            succeed,
            executor=BatchCommitExecutor(batch_size=1),
            on_progress=lambda done, total: progress.append((done, total)),
        )

        assert progress == [(1, 1)]


class TestReset:
    @pytest.mark.parametrize("make", [uploaded_session, previewed_session])
    def test_reset_discards_data(self, make):
        session = make()
        session_id = session.id

        flow.reset(session)

        assert session.id == session_id
        assert session.step == ImportStep.UPLOAD
        assert session.raw_rows == []
        assert session.headers == []
        assert session.mappings == []
        assert session.valid_rows == []
        assert session.errors == []
        assert session.result is None

    def test_reset_from_complete(self):
        session = previewed_session()
        flow.confirm_import(session, succeed)

        flow.reset(session)

        assert session.step == ImportStep.UPLOAD

    def test_reset_not_allowed_from_upload(self):
        with pytest.raises(InvalidTransitionError):
            flow.reset(flow.new_session())

    def test_reupload_after_reset_is_identical(self):
        session = uploaded_session()
        first = (list(session.headers), [dict(r) for r in session.raw_rows])

        flow.reset(session)
        flow.accept_upload(session, "students.csv", SCENARIO_CSV)

        assert (session.headers, session.raw_rows) == first

    def test_error_report_flag(self):
        session = uploaded_session()
        assert not flow.has_error_report(session)

        flow.proceed_to_preview(session)
        assert flow.has_error_report(session)


class TestSerialization:
    def test_session_round_trips_through_json(self):
        session = previewed_session()
        flow.confirm_import(session, succeed)

        restored = ImportSession.model_validate_json(session.model_dump_json())

        assert restored.step == ImportStep.COMPLETE
        assert restored.headers == session.headers
        assert restored.result == session.result
        assert [m.target_value for m in restored.mappings] == ["first_name", "last_name", "email"]

    def test_custom_required_fields(self):
        content = make_csv(["Email"], [["a@school.org"]])
        session = flow.new_session(required_fields=["email"])
        flow.accept_upload(session, "emails.csv", content)

        assert flow.is_ready_to_proceed(session)
        flow.proceed_to_preview(session)
        assert session.valid_rows[0].email == "a@school.org"


class TestMappingEdits:
    def test_batch_update_applies_every_edit(self):
        session = uploaded_session()

        flow.update_mappings(session, [("Email", "ignore"), ("Last Name", "notes")])

        assert [m.target_value for m in session.mappings] == ["first_name", "notes", "ignore"]

    def test_failed_batch_leaves_mappings_unchanged(self):
        session = uploaded_session()

        with pytest.raises(UnknownColumnError):
            flow.update_mappings(session, [("First Name", "ignore"), ("Nope", "email")])

        assert [m.target_value for m in session.mappings] == ["first_name", "last_name", "email"]
        assert flow.is_ready_to_proceed(session)

    def test_editing_keeps_session_alive(self):
        session = uploaded_session()
        session.school_id = 1
        store = SessionStore(ttl_minutes=30)
        store.add(session)
        session.updated_at = datetime.now(timezone.utc) - timedelta(minutes=45)

        flow.update_mapping(session, "Email", "ignore")

        assert session.updated_at > datetime.now(timezone.utc) - timedelta(minutes=1)
        assert store.get(session.id, 1) is session


class TestRequiredFieldChoice:
    def test_unknown_required_field_rejected(self):
        with pytest.raises(InvalidTargetFieldError):
            flow.new_session(required_fields=["first_name", "shoe_size"])

    def test_ignore_is_not_a_required_field(self):
        with pytest.raises(InvalidTargetFieldError):
            flow.new_session(required_fields=["ignore"])

    def test_required_fields_are_deduplicated_and_sorted(self):
        session = flow.new_session(required_fields=["last_name", "email", "last_name"])

        assert session.required_fields == ["email", "last_name"]


class TestConcurrentConfirm:
    """Two confirm calls racing on one session commit each row once."""

    def test_second_confirm_is_rejected(self):
        content = make_csv(["First Name", "Last Name"], [["Jane", "Doe"], ["John", "Smith"]])
        session = uploaded_session(content)
        flow.proceed_to_preview(session)
        created = []
        outcomes = []
        start = threading.Barrier(2)
        lock = threading.Lock()

        def create(record):
            time.sleep(0.05)
            with lock:
                created.append(record.source_row)

        def confirm():
            start.wait()
            try:
                flow.confirm_import(session, create)
                outcome = "committed"
            except InvalidTransitionError:
                outcome = "rejected"
            with lock:
                outcomes.append(outcome)

        threads = [threading.Thread(target=confirm) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert sorted(outcomes) == ["committed", "rejected"]
        assert sorted(created) == [2, 3]
        assert session.step == ImportStep.COMPLETE
        assert session.result.successful_rows == 2
