"""
Fixtures for student applications tests.
"""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest

from student_registration.core.auth import ReviewerUser, StudentUser, UserRole
from student_registration.core.config import Settings
from student_registration.modules.applications.models import (
    ApplicationStatus,
    StudentApplication,
    UploadSession,
)
from student_registration.modules.applications.schemas import ApplicationDetailsRequest
from student_registration.modules.applications.sessions import IssuedUploadSession
from student_registration.modules.colleges.models import College
from student_registration.modules.students.models import Student


@pytest.fixture
def mock_db():
    """Create a mock database session."""
    db = AsyncMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    db.refresh = AsyncMock()
    db.flush = AsyncMock()
    db.get = AsyncMock()
    db.execute = AsyncMock()
    db.add = MagicMock()
    return db


@pytest.fixture
def test_settings():
    """Settings isolated from the environment and any .env file."""
    return Settings(
        _env_file=None,
        python_env="test",
        storage_bucket="test-documents",
        upload_session_ttl_minutes=25,
        max_reapply_count=2,
    )


@pytest.fixture
def college():
    c = MagicMock(spec=College)
    c.id = 7
    c.college_code = "RVCE"
    c.name = "R.V. College of Engineering"
    return c


@pytest.fixture
def student_record(college):
    """Student row with its college loaded."""
    s = MagicMock(spec=Student)
    s.id = 42
    s.usn = "1RV21CS001"
    s.name = "Asha Rao"
    s.college_id = college.id
    s.college = college
    s.reapply_count = 0
    return s


@pytest.fixture
def student_user(student_record):
    """Authenticated student matching student_record."""
    return StudentUser(
        student_id=student_record.id,
        usn=student_record.usn,
        college_id=student_record.college_id,
        role=UserRole.STUDENT.value,
    )


@pytest.fixture
def college_reviewer(college):
    return ReviewerUser(id="reviewer-1", role=UserRole.COLLEGE_ADMIN.value, college_id=college.id)


@pytest.fixture
def platform_admin():
    return ReviewerUser(id="admin-1", role=UserRole.ADMIN.value, college_id=None)


@pytest.fixture
def details_request():
    return ApplicationDetailsRequest(
        address="12 MG Road, Bengaluru",
        department="Computer Science",
        year_of_study=3,
        semester=5,
        blood_group="O+",
    )


@pytest.fixture
def application_id():
    return uuid4()


def _make_application(application_id, student_record, status: ApplicationStatus):
    app = MagicMock(spec=StudentApplication)
    app.id = application_id
    app.student_id = student_record.id
    app.college_id = student_record.college_id
    app.status = status
    app.department = "Computer Science"
    app.year_of_study = 3
    app.semester = 5
    app.blood_group = "O+"
    app.address = "12 MG Road, Bengaluru"
    app.submitted_at = None
    app.reviewed_at = None
    app.reviewed_by = None
    app.decision_reason = None
    app.created_at = datetime.now(UTC) - timedelta(hours=1)
    return app


@pytest.fixture
def make_application(application_id, student_record):
    """Factory for mock application rows in a given status."""

    def factory(status: ApplicationStatus):
        return _make_application(application_id, student_record, status)

    return factory


@pytest.fixture
def in_progress_application(application_id, student_record):
    return _make_application(application_id, student_record, ApplicationStatus.IN_PROGRESS)


@pytest.fixture
def rejected_application(application_id, student_record):
    app = _make_application(application_id, student_record, ApplicationStatus.REJECTED)
    app.decision_reason = "Marksheet is illegible"
    return app


@pytest.fixture
def live_upload_session(application_id, student_record):
    """Upload session row that expires in 20 minutes."""
    s = MagicMock(spec=UploadSession)
    s.session_hash = "a" * 64
    s.student_id = student_record.id
    s.application_id = application_id
    s.expires_at = datetime.now(UTC) + timedelta(minutes=20)
    return s


@pytest.fixture
def mock_storage():
    """Storage double: every document present, deterministic URLs."""
    storage = MagicMock()
    storage.issue_write_url = MagicMock(
        side_effect=lambda key, expires_in, container=None: f"https://signed.example/{key}?X-Expires={expires_in}"
    )
    storage.exists = AsyncMock(return_value=True)
    storage.object_url = MagicMock(
        side_effect=lambda key, container=None: f"https://test-documents.example/{key}"
    )
    return storage


@pytest.fixture
def mock_sessions(application_id, live_upload_session):
    """Session manager double issuing a fixed session."""
    sessions = MagicMock()
    sessions.create_session = AsyncMock(
        return_value=IssuedUploadSession(
            session_id="plain-session-id",
            application_id=application_id,
            expires_at=datetime.now(UTC) + timedelta(minutes=25),
        )
    )
    sessions.validate_session = AsyncMock(return_value=live_upload_session)
    sessions.consume_session = AsyncMock()
    return sessions
