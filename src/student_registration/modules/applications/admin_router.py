"""
Student Applications Admin Router

API endpoints for reviewers to work through submitted student applications.

Endpoints:
- GET /admin/applications - List applications with status filter and pagination
- POST /admin/applications/{id}/start-review - SUBMITTED -> UNDER_REVIEW
- POST /admin/applications/{id}/approve - UNDER_REVIEW -> APPROVED
- POST /admin/applications/{id}/final-approve - APPROVED -> FINAL_APPROVED (ADMIN only)
- POST /admin/applications/{id}/reject - UNDER_REVIEW/APPROVED -> REJECTED

Security:
- All endpoints require a JWT with role COLLEGE_ADMIN or ADMIN
- College admins are limited to their own college
- Rate limiting on action endpoints to prevent mass status changes
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from student_registration.core.auth import ReviewerUser, get_current_reviewer
from student_registration.core.database import get_db
from student_registration.core.rate_limit import enforce_rate_limit
from student_registration.modules.applications import admin_service
from student_registration.modules.applications.errors import ApplicationServiceError
from student_registration.modules.applications.models import ApplicationStatus, StudentApplication
from student_registration.modules.applications.schemas import (
    ApplicationListItem,
    ApplicationListResponse,
    RejectRequest,
    ReviewActionResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================
# Rate Limiting Configuration
# ============================================

RATE_LIMIT_START_REVIEW = (30, 60)  # 30 review starts per minute
RATE_LIMIT_APPROVE = (10, 60)  # 10 approvals per minute
RATE_LIMIT_FINAL_APPROVE = (10, 60)
RATE_LIMIT_REJECT = (10, 60)  # 10 rejections per minute


async def _check_reviewer_rate_limit(
    reviewer: ReviewerUser,
    action: str,
    limit: int,
    window_seconds: int,
) -> None:
    """
    Check rate limit for a reviewer action.

    Raises:
        RateLimitExceeded: If rate limit is exceeded
    """
    await enforce_rate_limit(f"reviewer:{action}:{reviewer.id}", limit, window_seconds)


def _internal_error(action: str, e: Exception) -> HTTPException:
    logger.exception(f"Error in {action}: {e}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={
            "error": "INTERNAL_ERROR",
            "message": "An unexpected error occurred.",
        },
    )


def _to_action_response(application: StudentApplication, message: str) -> ReviewActionResponse:
    return ReviewActionResponse(
        id=application.id,
        status=application.status,
        reviewed_at=application.reviewed_at,
        reviewed_by=application.reviewed_by,
        decision_reason=application.decision_reason,
        message=message,
    )


async def _run_action(action: str, call) -> StudentApplication:
    """Await a review service call, mapping its errors to HTTP responses."""
    try:
        return await call
    except ApplicationServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail()) from e
    except Exception as e:
        raise _internal_error(action, e) from e


# ============================================
# Endpoints
# ============================================


@router.get(
    "",
    response_model=ApplicationListResponse,
    summary="List Applications",
    description="""
Get a paginated list of student applications, oldest submission first.

College admins only see applications of their own college.

**Filters:**
- `status`: Filter by application status

**Pagination:**
- `skip`: Number of records to skip. Default: 0
- `limit`: Maximum records to return (1-100). Default: 20
""",
    responses={
        401: {"description": "Unauthorized - invalid or missing token"},
        403: {"description": "Forbidden - not a reviewer"},
    },
)
async def list_applications(
    status_filter: ApplicationStatus | None = Query(
        None,
        alias="status",
        description="Filter by application status",
    ),
    skip: int = Query(0, ge=0, description="Records to skip"),
    limit: int = Query(20, ge=1, le=100, description="Maximum records to return"),
    db: AsyncSession = Depends(get_db),
    reviewer: ReviewerUser = Depends(get_current_reviewer),
) -> ApplicationListResponse:
    """List applications visible to the reviewer."""
    try:
        result = await admin_service.list_applications(
            db, reviewer, status=status_filter, skip=skip, limit=limit
        )
    except Exception as e:
        raise _internal_error("list_applications", e) from e

    logger.info(
        f"Reviewer {reviewer.id} listed applications: "
        f"total={result['total']}, returned={len(result['applications'])}"
    )

    return ApplicationListResponse(
        applications=[
            ApplicationListItem.model_validate(application)
            for application in result["applications"]
        ],
        total=result["total"],
        skip=result["skip"],
        limit=result["limit"],
    )


@router.post(
    "/{application_id}/start-review",
    response_model=ReviewActionResponse,
    summary="Start Reviewing Application",
    responses={
        404: {"description": "Application not found"},
        409: {"description": "Application not in SUBMITTED status"},
        429: {"description": "Rate limit exceeded"},
    },
)
async def start_review(
    application_id: UUID,
    db: AsyncSession = Depends(get_db),
    reviewer: ReviewerUser = Depends(get_current_reviewer),
) -> ReviewActionResponse:
    await _check_reviewer_rate_limit(reviewer, "start_review", *RATE_LIMIT_START_REVIEW)

    application = await _run_action(
        "start_review", admin_service.start_review(db, application_id, reviewer)
    )
    return _to_action_response(application, "Application is now under review")


@router.post(
    "/{application_id}/approve",
    response_model=ReviewActionResponse,
    summary="Approve Application",
    responses={
        404: {"description": "Application not found"},
        409: {"description": "Application not in UNDER_REVIEW status"},
        429: {"description": "Rate limit exceeded"},
    },
)
async def approve_application(
    application_id: UUID,
    db: AsyncSession = Depends(get_db),
    reviewer: ReviewerUser = Depends(get_current_reviewer),
) -> ReviewActionResponse:
    await _check_reviewer_rate_limit(reviewer, "approve", *RATE_LIMIT_APPROVE)

    application = await _run_action(
        "approve", admin_service.approve(db, application_id, reviewer)
    )
    return _to_action_response(application, "Application approved")


@router.post(
    "/{application_id}/final-approve",
    response_model=ReviewActionResponse,
    summary="Final Approval",
    description="Grant final approval to an APPROVED application. **Access:** ADMIN only.",
    responses={
        403: {"description": "Forbidden - not a platform admin"},
        404: {"description": "Application not found"},
        409: {"description": "Application not in APPROVED status"},
        429: {"description": "Rate limit exceeded"},
    },
)
async def final_approve_application(
    application_id: UUID,
    db: AsyncSession = Depends(get_db),
    reviewer: ReviewerUser = Depends(get_current_reviewer),
) -> ReviewActionResponse:
    await _check_reviewer_rate_limit(reviewer, "final_approve", *RATE_LIMIT_FINAL_APPROVE)

    application = await _run_action(
        "final_approve", admin_service.final_approve(db, application_id, reviewer)
    )
    return _to_action_response(application, "Application finally approved")


@router.post(
    "/{application_id}/reject",
    response_model=ReviewActionResponse,
    summary="Reject Application",
    description="""
Reject an application that is UNDER_REVIEW or APPROVED.

The reason is shown to the student, who may reapply while reapplications remain.
""",
    responses={
        404: {"description": "Application not found"},
        409: {"description": "Application not in a rejectable status"},
        422: {"description": "Validation error - missing reason"},
        429: {"description": "Rate limit exceeded"},
    },
)
async def reject_application(
    application_id: UUID,
    data: RejectRequest,
    db: AsyncSession = Depends(get_db),
    reviewer: ReviewerUser = Depends(get_current_reviewer),
) -> ReviewActionResponse:
    await _check_reviewer_rate_limit(reviewer, "reject", *RATE_LIMIT_REJECT)

    application = await _run_action(
        "reject", admin_service.reject(db, application_id, reviewer, data.reason)
    )
    return _to_action_response(application, "Application rejected")
