"""
Student Applications Router

One endpoint multiplexes the student submission workflow on the JSON
"action" field:

- save_details          - create or update application details (201 on create)
- generate_upload_urls  - open an upload session and get one write URL per document
- finalize_submission   - verify uploads and submit the application
- get_status            - read the application and its documents

Security:
- Bearer JWT with role STUDENT required
- Per-student rate limiting of each action
- Unexpected failures are logged in full and returned as a generic 500
"""

import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from student_registration.core.auth import StudentUser, get_current_student
from student_registration.core.database import get_db
from student_registration.core.rate_limit import enforce_rate_limit
from student_registration.modules.applications.dependencies import get_submission_service
from student_registration.modules.applications.errors import (
    ApplicationServiceError,
    RequestValidationFailedError,
)
from student_registration.modules.applications.schemas import (
    ActionEnvelope,
    ApplicationDetailsRequest,
    FinalizeSubmissionRequest,
    SubmissionAction,
)
from student_registration.modules.applications.service import SubmissionService

logger = logging.getLogger(__name__)

router = APIRouter()

# (limit, window_seconds) per student and action
STUDENT_RATE_LIMITS: dict[SubmissionAction, tuple[int, int]] = {
    SubmissionAction.SAVE_DETAILS: (20, 60),
    SubmissionAction.GENERATE_UPLOAD_URLS: (10, 60),
    SubmissionAction.FINALIZE_SUBMISSION: (10, 60),
    SubmissionAction.GET_STATUS: (60, 60),
}


def _bad_request(error: str, message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={"error": error, "message": message},
    )


async def _read_json_object(request: Request) -> dict:
    """
    Read the request body as a JSON object. An empty body counts as {}.

    Raises:
        HTTPException 400: If the body is not valid JSON or not an object
    """
    raw = await request.body()
    try:
        body = json.loads(raw) if raw.strip() else {}
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise _bad_request("INVALID_JSON", "Request body must be valid JSON.") from e

    if not isinstance(body, dict):
        raise _bad_request("INVALID_JSON", "Request body must be a JSON object.")

    return body


def _parse_action(body: dict) -> SubmissionAction:
    try:
        return ActionEnvelope.model_validate(body).action
    except ValidationError as e:
        supported = ", ".join(action.value for action in SubmissionAction)
        raise _bad_request(
            "INVALID_ACTION", f"Missing or unsupported action. Supported actions: {supported}"
        ) from e


def _parse_fields(schema: type[BaseModel], body: dict):
    """
    Validate action fields.

    Raises:
        RequestValidationFailedError: With the first failing field in the message
    """
    try:
        return schema.model_validate(body)
    except ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first["loc"]) or "body"
        raise RequestValidationFailedError(f"{field}: {first['msg']}") from e


@router.post(
    "",
    summary="Student Application Action",
    description="""
Run one step of the application workflow selected by `action`.

**Flow:**
1. `save_details` with `address`, `department`, `year_of_study` (1-4),
   `semester` (1-8) and optional `blood_group`
2. `generate_upload_urls` - returns `session_id`, `expires_at` and one
   pre-signed PUT URL per document (IDENTITY_PROOF, COLLEGE_ID, PREVIOUS_MARKSHEET)
3. Upload each file with an HTTP PUT to its URL
4. `finalize_submission` with `session_id`

`get_status` returns the current application and its documents.
""",
    responses={
        200: {"description": "Action completed"},
        201: {"description": "Application created by save_details"},
        400: {"description": "Invalid JSON, unsupported action, invalid fields or missing uploads"},
        401: {"description": "Missing or invalid token, or not a student"},
        403: {"description": "Reapplication limit reached"},
        404: {"description": "Student, application or upload session not found"},
        409: {"description": "Active application exists or application in the wrong state"},
        429: {"description": "Rate limit exceeded"},
        500: {"description": "Unexpected error"},
    },
)
async def handle_application_action(
    request: Request,
    student: StudentUser = Depends(get_current_student),
    db: AsyncSession = Depends(get_db),
    service: SubmissionService = Depends(get_submission_service),
) -> JSONResponse:
    """
    Dispatch a student application action.

    Raises:
        HTTPException: With the status and error code of the failure
    """
    body = await _read_json_object(request)
    action = _parse_action(body)

    limit, window_seconds = STUDENT_RATE_LIMITS[action]
    await enforce_rate_limit(f"student:{action.value}:{student.student_id}", limit, window_seconds)

    status_code = status.HTTP_200_OK

    try:
        if action == SubmissionAction.SAVE_DETAILS:
            details = _parse_fields(ApplicationDetailsRequest, body)
            result = await service.save_details(db, student, details)
            if result.created:
                status_code = status.HTTP_201_CREATED

        elif action == SubmissionAction.GENERATE_UPLOAD_URLS:
            result = await service.generate_upload_urls(db, student)

        elif action == SubmissionAction.FINALIZE_SUBMISSION:
            finalize = _parse_fields(FinalizeSubmissionRequest, body)
            result = await service.finalize_submission(db, student, finalize.session_id)

        else:
            result = await service.get_application_status(db, student)

    except ApplicationServiceError as e:
        logger.warning(
            f"{action.value} rejected for student {student.student_id}: "
            f"{e.error_code} - {e.message}"
        )
        raise HTTPException(status_code=e.status_code, detail=e.to_detail()) from e
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"Unexpected error in {action.value} for student {student.student_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "error": "INTERNAL_ERROR",
                "message": "An error occurred processing your request. Please try again later.",
            },
        ) from e

    return JSONResponse(status_code=status_code, content=result.model_dump(mode="json"))


@router.options("", include_in_schema=False)
async def application_preflight() -> Response:
    """CORS preflight; the CORS headers are added by middleware."""
    return Response(status_code=status.HTTP_200_OK)


@router.api_route("", methods=["GET", "PUT", "PATCH", "DELETE"], include_in_schema=False)
async def application_method_not_allowed() -> JSONResponse:
    """Only POST (and OPTIONS) are supported."""
    return JSONResponse(
        status_code=status.HTTP_405_METHOD_NOT_ALLOWED,
        content={"detail": {"error": "METHOD_NOT_ALLOWED", "message": "Method not allowed"}},
        headers={"Allow": "POST, OPTIONS"},
    )
