"""
HTTP tests for the student application endpoint.

The service, database session and rate limiter are replaced so the tests
exercise request parsing, authentication, error mapping and headers only.
"""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from student_registration.core.auth import get_current_student
from student_registration.core.config import settings
from student_registration.core.database import get_db
from student_registration.core.rate_limit import RateLimitExceeded
from student_registration.main import app
from student_registration.modules.applications.dependencies import get_submission_service
from student_registration.modules.applications.errors import (
    ActiveApplicationExistsError,
    IncompleteUploadError,
)
from student_registration.modules.applications.models import ApplicationStatus, DocumentType
from student_registration.modules.applications.schemas import (
    FinalizeSubmissionResponse,
    SaveDetailsResponse,
    UploadUrlsResponse,
)

URL = "/api/v1/student/application"

VALID_DETAILS = {
    "action": "save_details",
    "address": "12 MG Road, Bengaluru",
    "department": "Computer Science",
    "year_of_study": 3,
    "semester": 5,
    "blood_group": "O+",
}


@pytest.fixture
def submission_service():
    service = MagicMock()
    service.save_details = AsyncMock()
    service.generate_upload_urls = AsyncMock()
    service.finalize_submission = AsyncMock()
    service.get_application_status = AsyncMock()
    return service


@pytest.fixture
def rate_limiter():
    with patch(
        "student_registration.modules.applications.router.enforce_rate_limit",
        new_callable=AsyncMock,
    ) as limiter:
        yield limiter


@pytest.fixture
def client(mock_db, student_user, submission_service, rate_limiter):
    async def override_db():
        yield mock_db

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_current_student] = lambda: student_user
    app.dependency_overrides[get_submission_service] = lambda: submission_service
    yield TestClient(app)
    app.dependency_overrides.clear()


def _assert_cors(response):
    assert response.headers["access-control-allow-origin"] == "*"
    assert response.headers["access-control-allow-headers"] == "Content-Type, Authorization"
    assert "POST" in response.headers["access-control-allow-methods"]
    assert response.headers["content-type"].startswith("application/json")


class TestTransport:
    """Method handling, JSON parsing and headers."""

    def test_options_returns_empty_ok(self, client):
        response = client.options(URL)

        assert response.status_code == 200
        assert response.content == b""
        _assert_cors(response)

    def test_other_methods_not_allowed(self, client):
        response = client.get(URL)

        assert response.status_code == 405
        assert response.json()["detail"]["error"] == "METHOD_NOT_ALLOWED"
        _assert_cors(response)

    def test_invalid_json(self, client):
        response = client.post(
            URL, content=b"{not json", headers={"Content-Type": "application/json"}
        )

        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "INVALID_JSON"
        _assert_cors(response)

    def test_non_object_body(self, client):
        response = client.post(URL, json=["save_details"])

        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "INVALID_JSON"

    @pytest.mark.parametrize("body", [{}, {"action": "delete_everything"}, {"action": 3}])
    def test_invalid_action(self, client, body):
        response = client.post(URL, json=body)

        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "INVALID_ACTION"

    def test_empty_body_is_invalid_action(self, client):
        response = client.post(URL, content=b"")

        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "INVALID_ACTION"


class TestAuthentication:
    """Token checks use the real dependency."""

    @pytest.fixture
    def unauthenticated_client(self, client):
        app.dependency_overrides.pop(get_current_student)
        return client

    def test_missing_token(self, unauthenticated_client):
        response = unauthenticated_client.post(URL, json=VALID_DETAILS)

        assert response.status_code == 401
        assert response.json()["detail"]["error"] == "MISSING_TOKEN"
        _assert_cors(response)

    def test_invalid_token(self, unauthenticated_client):
        response = unauthenticated_client.post(
            URL, json=VALID_DETAILS, headers={"Authorization": "Bearer not-a-jwt"}
        )

        assert response.status_code == 401
        assert response.json()["detail"]["error"] == "INVALID_TOKEN"

    def test_wrong_role(self, unauthenticated_client):
        token = jwt.encode(
            {
                "sub": "admin-1",
                "role": "ADMIN",
                "exp": datetime.now(UTC) + timedelta(minutes=5),
            },
            settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
        )

        response = unauthenticated_client.post(
            URL, json=VALID_DETAILS, headers={"Authorization": f"Bearer {token}"}
        )

        assert response.status_code == 401
        assert response.json()["detail"]["error"] == "INVALID_ROLE"

    def test_student_token_reaches_service(self, unauthenticated_client, submission_service):
        submission_service.save_details.return_value = SaveDetailsResponse(
            application_id=uuid4(),
            status=ApplicationStatus.IN_PROGRESS,
            created=True,
            reapply_count=0,
            message="Application details saved",
        )
        token = jwt.encode(
            {"student_id": 42, "usn": "1RV21CS001", "college_id": 7, "role": "STUDENT"},
            settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
        )

        response = unauthenticated_client.post(
            URL, json=VALID_DETAILS, headers={"Authorization": f"Bearer {token}"}
        )

        assert response.status_code == 201
        student = submission_service.save_details.call_args.args[1]
        assert student.student_id == 42
        assert student.usn == "1RV21CS001"


class TestActions:
    """Dispatch and error mapping."""

    def test_save_details_created(self, client, submission_service):
        application_id = uuid4()
        submission_service.save_details.return_value = SaveDetailsResponse(
            application_id=application_id,
            status=ApplicationStatus.IN_PROGRESS,
            created=True,
            reapply_count=0,
            message="Application details saved",
        )

        response = client.post(URL, json=VALID_DETAILS)

        assert response.status_code == 201
        assert response.json()["application_id"] == str(application_id)
        _assert_cors(response)
        data = submission_service.save_details.call_args.args[2]
        assert data.year_of_study == 3
        assert data.blood_group == "O+"

    def test_save_details_updated(self, client, submission_service):
        submission_service.save_details.return_value = SaveDetailsResponse(
            application_id=uuid4(),
            status=ApplicationStatus.IN_PROGRESS,
            created=False,
            reapply_count=0,
            message="Application details updated",
        )

        response = client.post(URL, json=VALID_DETAILS)

        assert response.status_code == 200

    @pytest.mark.parametrize(
        ("field", "value"),
        [
            ("year_of_study", 5),
            ("year_of_study", "3"),
            ("semester", 0),
            ("address", "   "),
            ("blood_group", "Z+"),
        ],
    )
    def test_save_details_validation(self, client, submission_service, field, value):
        body = {**VALID_DETAILS, field: value}

        response = client.post(URL, json=body)

        assert response.status_code == 400
        detail = response.json()["detail"]
        assert detail["error"] == "VALIDATION_ERROR"
        assert field in detail["message"]
        submission_service.save_details.assert_not_called()

    def test_save_details_conflict(self, client, submission_service):
        submission_service.save_details.side_effect = ActiveApplicationExistsError()

        response = client.post(URL, json=VALID_DETAILS)

        assert response.status_code == 409
        assert response.json()["detail"]["error"] == "ACTIVE_APPLICATION_EXISTS"

    def test_generate_upload_urls(self, client, submission_service):
        submission_service.generate_upload_urls.return_value = UploadUrlsResponse(
            application_id=uuid4(),
            session_id="plain-session-id",
            expires_at=datetime.now(UTC) + timedelta(minutes=25),
            upload_urls={doc: f"https://signed.example/{doc.value}" for doc in DocumentType},
        )

        response = client.post(URL, json={"action": "generate_upload_urls"})

        assert response.status_code == 200
        body = response.json()
        assert body["session_id"] == "plain-session-id"
        assert set(body["upload_urls"]) == {"IDENTITY_PROOF", "COLLEGE_ID", "PREVIOUS_MARKSHEET"}

    def test_finalize_requires_session_id(self, client, submission_service):
        response = client.post(URL, json={"action": "finalize_submission"})

        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "VALIDATION_ERROR"
        submission_service.finalize_submission.assert_not_called()

    def test_finalize_success(self, client, submission_service):
        submission_service.finalize_submission.return_value = FinalizeSubmissionResponse(
            application_id=uuid4(),
            status=ApplicationStatus.SUBMITTED,
            submitted_at=datetime.now(UTC),
        )

        response = client.post(
            URL, json={"action": "finalize_submission", "session_id": "plain-session-id"}
        )

        assert response.status_code == 200
        assert response.json()["status"] == "SUBMITTED"
        assert submission_service.finalize_submission.call_args.args[2] == "plain-session-id"

    def test_finalize_incomplete_lists_missing_documents(self, client, submission_service):
        submission_service.finalize_submission.side_effect = IncompleteUploadError(
            [DocumentType.PREVIOUS_MARKSHEET]
        )

        response = client.post(
            URL, json={"action": "finalize_submission", "session_id": "plain-session-id"}
        )

        assert response.status_code == 400
        detail = response.json()["detail"]
        assert detail["error"] == "INCOMPLETE_UPLOAD"
        assert detail["missing_documents"] == ["PREVIOUS_MARKSHEET"]
        assert "PREVIOUS_MARKSHEET" in detail["message"]

    def test_unexpected_error_is_sanitized(self, client, submission_service):
        submission_service.get_application_status.side_effect = RuntimeError(
            "connection to db-internal:5432 refused"
        )

        response = client.post(URL, json={"action": "get_status"})

        assert response.status_code == 500
        detail = response.json()["detail"]
        assert detail["error"] == "INTERNAL_ERROR"
        assert "db-internal" not in detail["message"]
        _assert_cors(response)

    def test_rate_limited(self, client, rate_limiter, submission_service):
        rate_limiter.side_effect = RateLimitExceeded(10, 60)

        response = client.post(URL, json={"action": "generate_upload_urls"})

        assert response.status_code == 429
        assert response.json()["detail"]["error"] == "RATE_LIMIT_EXCEEDED"
        submission_service.generate_upload_urls.assert_not_called()
        assert rate_limiter.call_args.args[0] == "student:generate_upload_urls:42"
