"""
Student Applications Review Service

Reviewer-side operations on submitted applications.

Access rules:
- COLLEGE_ADMIN reviewers only see and act on applications of their college;
  other applications are reported as not found
- ADMIN reviewers act on every college and alone may grant final approval

Every status change goes through repository.update_if_status, so two
reviewers acting on the same application cannot both succeed.
"""

import logging
from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from student_registration.core.auth import ReviewerUser
from student_registration.modules.applications import repository
from student_registration.modules.applications.errors import (
    ApplicationNotFoundError,
    InvalidApplicationStateError,
    ReviewerPermissionError,
)
from student_registration.modules.applications.models import ApplicationStatus, StudentApplication

logger = logging.getLogger(__name__)

# Statuses a reviewer may reject from
REJECTABLE_STATUSES = frozenset({ApplicationStatus.UNDER_REVIEW, ApplicationStatus.APPROVED})


def _scope_college_id(reviewer: ReviewerUser) -> int | None:
    return None if reviewer.is_platform_admin else reviewer.college_id


async def _get_scoped_application(
    db: AsyncSession,
    application_id: UUID,
    reviewer: ReviewerUser,
) -> StudentApplication:
    application = await repository.get_by_id(db, application_id)

    if application is None:
        logger.warning(f"Application not found: {application_id}")
        raise ApplicationNotFoundError(application_id)

    scope = _scope_college_id(reviewer)
    if scope is not None and application.college_id != scope:
        logger.warning(
            f"Reviewer {reviewer.id} (college {scope}) denied application "
            f"{application_id} of college {application.college_id}"
        )
        raise ApplicationNotFoundError(application_id)

    return application


async def _transition(
    db: AsyncSession,
    application_id: UUID,
    reviewer: ReviewerUser,
    allowed_from: frozenset[ApplicationStatus],
    new_status: ApplicationStatus,
    **fields,
) -> StudentApplication:
    """
    Move a scoped application to new_status and record the reviewer.

    Raises:
        ApplicationNotFoundError: If missing or outside the reviewer's college
        InvalidApplicationStateError: If the current status does not allow it,
            or another request changed the status first
    """
    application = await _get_scoped_application(db, application_id, reviewer)
    current_status = application.status

    if current_status not in allowed_from:
        logger.warning(
            f"Reviewer {reviewer.id} cannot move application {application_id} "
            f"from {current_status.value} to {new_status.value}"
        )
        raise InvalidApplicationStateError(
            f"Cannot change application from {current_status.value} to {new_status.value}.",
            expected_state=" or ".join(sorted(s.value for s in allowed_from)),
        )

    updated = await repository.update_if_status(
        db,
        application_id,
        current_status,
        status=new_status,
        reviewed_at=datetime.now(UTC),
        reviewed_by=reviewer.id,
        **fields,
    )
    if not updated:
        await db.rollback()
        raise InvalidApplicationStateError(
            "Application was changed by another request. Please reload and retry."
        )
    await db.commit()

    logger.info(
        f"Reviewer {reviewer.id} moved application {application_id} "
        f"{current_status.value} -> {new_status.value}"
    )

    refreshed = await repository.get_by_id(db, application_id)
    if refreshed is None:
        raise ApplicationNotFoundError(application_id)
    return refreshed


async def list_applications(
    db: AsyncSession,
    reviewer: ReviewerUser,
    *,
    status: ApplicationStatus | None = None,
    skip: int = 0,
    limit: int = 20,
) -> dict:
    """
    Get a page of applications visible to the reviewer.

    Args:
        db: Database session
        reviewer: Authenticated reviewer; college admins only see their college
        status: Filter by application status
        skip: Records to skip for pagination
        limit: Maximum records to return (capped at 100)

    Returns:
        Dict with applications list, total count, skip, and limit
    """
    limit = min(max(1, limit), 100)
    skip = max(0, skip)

    applications, total = await repository.get_applications_for_review(
        db,
        college_id=_scope_college_id(reviewer),
        status=status,
        skip=skip,
        limit=limit,
    )

    return {
        "applications": applications,
        "total": total,
        "skip": skip,
        "limit": limit,
    }


async def start_review(
    db: AsyncSession,
    application_id: UUID,
    reviewer: ReviewerUser,
) -> StudentApplication:
    """SUBMITTED -> UNDER_REVIEW."""
    return await _transition(
        db,
        application_id,
        reviewer,
        frozenset({ApplicationStatus.SUBMITTED}),
        ApplicationStatus.UNDER_REVIEW,
    )


async def approve(
    db: AsyncSession,
    application_id: UUID,
    reviewer: ReviewerUser,
) -> StudentApplication:
    """UNDER_REVIEW -> APPROVED. Any reviewer scoped to the application's college."""
    return await _transition(
        db,
        application_id,
        reviewer,
        frozenset({ApplicationStatus.UNDER_REVIEW}),
        ApplicationStatus.APPROVED,
    )


async def final_approve(
    db: AsyncSession,
    application_id: UUID,
    reviewer: ReviewerUser,
) -> StudentApplication:
    """
    APPROVED -> FINAL_APPROVED.

    Raises:
        ReviewerPermissionError: If the reviewer is not a platform ADMIN
    """
    if not reviewer.is_platform_admin:
        logger.warning(f"Reviewer {reviewer.id} ({reviewer.role}) attempted final approval")
        raise ReviewerPermissionError()

    return await _transition(
        db,
        application_id,
        reviewer,
        frozenset({ApplicationStatus.APPROVED}),
        ApplicationStatus.FINAL_APPROVED,
    )


async def reject(
    db: AsyncSession,
    application_id: UUID,
    reviewer: ReviewerUser,
    reason: str,
) -> StudentApplication:
    """
    UNDER_REVIEW or APPROVED -> REJECTED, recording the reason.

    The student may then reapply while their reapply count is below the cap.
    """
    return await _transition(
        db,
        application_id,
        reviewer,
        REJECTABLE_STATUSES,
        ApplicationStatus.REJECTED,
        decision_reason=reason.strip(),
    )
