"""
Unit tests for student applications repository layer.

These tests focus on the state machine transitions and on the SQL the
repositories emit, compiled for PostgreSQL from the statement passed to
db.execute.
"""

import re
from datetime import UTC, datetime
from unittest.mock import MagicMock
from uuid import uuid4

import pytest
from sqlalchemy.dialects import postgresql

from student_registration.modules.applications.models import ApplicationStatus, DocumentType
from student_registration.modules.applications.repository import (
    VALID_STATUS_TRANSITIONS,
    InvalidStatusTransitionError,
    delete_expired_sessions,
    detail_fields,
    get_session,
    update_if_status,
    upsert_document,
)
from student_registration.modules.students.repository import StudentRepository


def _compiled(mock_db):
    """Compile the statement most recently passed to db.execute."""
    statement = mock_db.execute.call_args.args[0]
    return statement.compile(dialect=postgresql.dialect())


class TestStatusTransitions:
    """Tests for status transition state machine."""

    def test_every_status_has_an_entry(self):
        assert set(VALID_STATUS_TRANSITIONS) == set(ApplicationStatus)

    def test_valid_transitions_from_in_progress(self):
        assert VALID_STATUS_TRANSITIONS[ApplicationStatus.IN_PROGRESS] == {
            ApplicationStatus.SUBMITTED
        }

    def test_valid_transitions_from_submitted(self):
        valid = VALID_STATUS_TRANSITIONS[ApplicationStatus.SUBMITTED]
        assert ApplicationStatus.UNDER_REVIEW in valid
        assert ApplicationStatus.APPROVED not in valid
        assert ApplicationStatus.IN_PROGRESS not in valid

    def test_valid_transitions_from_under_review(self):
        valid = VALID_STATUS_TRANSITIONS[ApplicationStatus.UNDER_REVIEW]
        assert valid == {ApplicationStatus.APPROVED, ApplicationStatus.REJECTED}

    def test_valid_transitions_from_approved(self):
        valid = VALID_STATUS_TRANSITIONS[ApplicationStatus.APPROVED]
        assert valid == {ApplicationStatus.FINAL_APPROVED, ApplicationStatus.REJECTED}

    def test_rejected_can_only_reopen(self):
        assert VALID_STATUS_TRANSITIONS[ApplicationStatus.REJECTED] == {
            ApplicationStatus.IN_PROGRESS
        }

    def test_final_approved_is_terminal(self):
        assert VALID_STATUS_TRANSITIONS[ApplicationStatus.FINAL_APPROVED] == set()


class TestInvalidStatusTransitionError:
    def test_error_message_lists_valid_transitions(self):
        error = InvalidStatusTransitionError(
            ApplicationStatus.IN_PROGRESS, ApplicationStatus.APPROVED
        )
        message = str(error)
        assert "IN_PROGRESS -> APPROVED" in message
        assert "SUBMITTED" in message


class TestUpdateIfStatus:
    """Tests for the conditional update."""

    @pytest.mark.asyncio
    async def test_returns_true_when_row_matched(self, mock_db):
        mock_db.execute.return_value = MagicMock(rowcount=1)

        updated = await update_if_status(
            mock_db,
            uuid4(),
            ApplicationStatus.IN_PROGRESS,
            status=ApplicationStatus.SUBMITTED,
        )

        assert updated is True
        mock_db.execute.assert_called_once()

    @pytest.mark.asyncio
    async def test_returns_false_when_status_changed(self, mock_db):
        mock_db.execute.return_value = MagicMock(rowcount=0)

        updated = await update_if_status(
            mock_db, uuid4(), ApplicationStatus.IN_PROGRESS, department="Physics"
        )

        assert updated is False

    @pytest.mark.asyncio
    async def test_rejects_invalid_transition_without_querying(self, mock_db):
        with pytest.raises(InvalidStatusTransitionError):
            await update_if_status(
                mock_db,
                uuid4(),
                ApplicationStatus.FINAL_APPROVED,
                status=ApplicationStatus.REJECTED,
            )

        mock_db.execute.assert_not_called()


@pytest.mark.asyncio
async def test_delete_expired_sessions_returns_rowcount(mock_db):
    mock_db.execute.return_value = MagicMock(rowcount=4)

    assert await delete_expired_sessions(mock_db, datetime.now(UTC)) == 4


def test_detail_fields(details_request):
    assert detail_fields(details_request) == {
        "department": "Computer Science",
        "year_of_study": 3,
        "semester": 5,
        "blood_group": "O+",
        "address": "12 MG Road, Bengaluru",
    }


@pytest.mark.asyncio
async def test_update_if_status_matches_expected_status(mock_db, application_id):
    mock_db.execute.return_value = MagicMock(rowcount=1)

    await update_if_status(
        mock_db, application_id, ApplicationStatus.IN_PROGRESS, status=ApplicationStatus.SUBMITTED
    )

    compiled = _compiled(mock_db)
    where = str(compiled).split("WHERE", 1)[1]
    id_param = re.search(r"student_applications\.id = %\((\w+)\)s", where).group(1)
    status_param = re.search(r"student_applications\.status = %\((\w+)\)s", where).group(1)
    assert compiled.params[id_param] == application_id
    assert compiled.params[status_param] == ApplicationStatus.IN_PROGRESS


@pytest.mark.asyncio
async def test_upsert_document_overwrites_on_conflict(mock_db, application_id):
    uploaded_at = datetime.now(UTC)

    await upsert_document(
        mock_db,
        application_id,
        DocumentType.COLLEGE_ID,
        "https://test-documents.example/RVCE/1RV21CS001/college-id",
        uploaded_at,
    )

    compiled = _compiled(mock_db)
    assert str(compiled).startswith("INSERT INTO application_documents")
    assert (
        "ON CONFLICT (application_id, document_type) DO UPDATE SET "
        "document_url = excluded.document_url, uploaded_at = excluded.uploaded_at"
    ) in str(compiled)
    assert compiled.params["document_type"] == DocumentType.COLLEGE_ID
    assert compiled.params["uploaded_at"] == uploaded_at


@pytest.mark.asyncio
async def test_get_session_is_scoped_to_student(mock_db):
    await get_session(mock_db, "a" * 64, 42)

    compiled = _compiled(mock_db)
    where = str(compiled).split("WHERE", 1)[1]
    hash_param = re.search(r"upload_sessions\.session_hash = %\((\w+)\)s", where).group(1)
    student_param = re.search(r"upload_sessions\.student_id = %\((\w+)\)s", where).group(1)
    assert compiled.params[hash_param] == "a" * 64
    assert compiled.params[student_param] == 42


class TestIncrementReapplyCount:
    """Tests for the guarded reapply counter."""

    @pytest.mark.asyncio
    async def test_guarded_by_seen_count(self, mock_db):
        mock_db.execute.return_value = MagicMock(rowcount=1)

        assert await StudentRepository.increment_reapply_count(mock_db, 42, 1) is True

        compiled = _compiled(mock_db)
        set_clause, where = str(compiled).split("WHERE", 1)
        assert set_clause.startswith("UPDATE students SET")
        assert "students.reapply_count + " in set_clause
        id_param = re.search(r"students\.id = %\((\w+)\)s", where).group(1)
        seen_param = re.search(r"students\.reapply_count = %\((\w+)\)s", where).group(1)
        assert compiled.params[id_param] == 42
        assert compiled.params[seen_param] == 1

    @pytest.mark.asyncio
    async def test_changed_count_updates_nothing(self, mock_db):
        mock_db.execute.return_value = MagicMock(rowcount=0)

        assert await StudentRepository.increment_reapply_count(mock_db, 42, 1) is False
