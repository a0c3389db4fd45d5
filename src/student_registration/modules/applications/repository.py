"""
Student Applications Repository

Database operations for applications, documents and upload sessions.
All operations are async and follow the repository pattern for clean separation
of concerns between data access and business logic.

Design Principles:
- All queries are parameterized (no SQL injection)
- Writes are flushed, never committed; the service layer owns the transaction
- Status changes go through update_if_status, a conditional UPDATE that only
  matches while the row still has the expected status (optimistic concurrency)
- Timezone-aware datetime handling (UTC)
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from .models import (
    ApplicationDocument,
    ApplicationStatus,
    DocumentType,
    StudentApplication,
    UploadSession,
)
from .schemas import ApplicationDetailsRequest

# Valid status transitions - prevents invalid state changes
VALID_STATUS_TRANSITIONS: dict[ApplicationStatus, set[ApplicationStatus]] = {
    ApplicationStatus.IN_PROGRESS: {
        ApplicationStatus.SUBMITTED,  # All documents uploaded and finalized
    },
    ApplicationStatus.SUBMITTED: {
        ApplicationStatus.UNDER_REVIEW,  # Reviewer picked it up
    },
    ApplicationStatus.UNDER_REVIEW: {
        ApplicationStatus.APPROVED,
        ApplicationStatus.REJECTED,
    },
    ApplicationStatus.APPROVED: {
        ApplicationStatus.FINAL_APPROVED,
        ApplicationStatus.REJECTED,  # Refused at final approval
    },
    ApplicationStatus.REJECTED: {
        ApplicationStatus.IN_PROGRESS,  # Reapplication
    },
    # Terminal
    ApplicationStatus.FINAL_APPROVED: set(),
}


class InvalidStatusTransitionError(ValueError):
    """Raised when an invalid status transition is attempted."""

    def __init__(
        self,
        current_status: ApplicationStatus,
        new_status: ApplicationStatus,
    ):
        self.current_status = current_status
        self.new_status = new_status
        valid_transitions = VALID_STATUS_TRANSITIONS.get(current_status, set())
        super().__init__(
            f"Invalid status transition: {current_status.value} -> {new_status.value}. "
            f"Valid transitions: {sorted(s.value for s in valid_transitions)}"
        )


# ============================================
# Application Repository
# ============================================


def detail_fields(data: ApplicationDetailsRequest) -> dict:
    """Column values for the form fields of a details request."""
    return {
        "department": data.department,
        "year_of_study": data.year_of_study,
        "semester": data.semester,
        "blood_group": data.blood_group,
        "address": data.address,
    }


async def create(
    db: AsyncSession,
    student_id: int,
    college_id: int,
    data: ApplicationDetailsRequest,
) -> StudentApplication:
    """
    Create a new IN_PROGRESS application.

    Raises:
        IntegrityError: If the student already has an application row
    """
    application = StudentApplication(
        student_id=student_id,
        college_id=college_id,
        status=ApplicationStatus.IN_PROGRESS,
        submitted_at=None,
        **detail_fields(data),
    )

    db.add(application)
    await db.flush()
    await db.refresh(application)

    return application


async def get_by_id(db: AsyncSession, id: UUID) -> StudentApplication | None:
    """Get application by ID."""
    return await db.get(StudentApplication, id, populate_existing=True)


async def get_by_student(db: AsyncSession, student_id: int) -> StudentApplication | None:
    """Get the application owned by a student."""
    result = await db.execute(
        select(StudentApplication)
        .where(StudentApplication.student_id == student_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def update_if_status(
    db: AsyncSession,
    application_id: UUID,
    expected_status: ApplicationStatus,
    **fields,
) -> bool:
    """
    Update an application only if its status still equals expected_status.

    When fields contains a new status the transition is validated against
    the state machine first.

    Args:
        db: Database session
        application_id: Application UUID
        expected_status: Status the row must currently have
        **fields: Columns to set (e.g., status, submitted_at)

    Returns:
        True if the row matched and was updated, False otherwise

    Raises:
        InvalidStatusTransitionError: If the requested status change is not allowed
    """
    new_status = fields.get("status")
    if new_status is not None and new_status != expected_status:
        if new_status not in VALID_STATUS_TRANSITIONS.get(expected_status, set()):
            raise InvalidStatusTransitionError(expected_status, new_status)

    result = await db.execute(
        update(StudentApplication)
        .where(
            StudentApplication.id == application_id,
            StudentApplication.status == expected_status,
        )
        .values(**fields)
        .execution_options(synchronize_session="fetch")
    )
    return result.rowcount == 1


async def get_applications_for_review(
    db: AsyncSession,
    *,
    college_id: int | None = None,
    status: ApplicationStatus | None = None,
    skip: int = 0,
    limit: int = 20,
) -> tuple[list[StudentApplication], int]:
    """
    Get a page of applications for reviewers, oldest submission first.

    Args:
        db: Database session
        college_id: Restrict to one college (None for all)
        status: Restrict to one status (None for all)
        skip: Records to skip
        limit: Maximum records to return

    Returns:
        Tuple of (applications, total matching count)
    """
    filters = []
    if college_id is not None:
        filters.append(StudentApplication.college_id == college_id)
    if status is not None:
        filters.append(StudentApplication.status == status)

    count_result = await db.execute(
        select(func.count()).select_from(StudentApplication).where(*filters)
    )
    total = count_result.scalar_one()

    result = await db.execute(
        select(StudentApplication)
        .where(*filters)
        .order_by(StudentApplication.submitted_at.asc().nulls_last(), StudentApplication.created_at)
        .offset(skip)
        .limit(limit)
    )
    return list(result.scalars().all()), total


# ============================================
# Document Repository
# ============================================


async def upsert_document(
    db: AsyncSession,
    application_id: UUID,
    document_type: DocumentType,
    document_url: str,
    uploaded_at: datetime,
) -> None:
    """Insert a document row or overwrite the URL and timestamp of the existing one."""
    stmt = insert(ApplicationDocument).values(
        application_id=application_id,
        document_type=document_type,
        document_url=document_url,
        uploaded_at=uploaded_at,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[ApplicationDocument.application_id, ApplicationDocument.document_type],
        set_={
            "document_url": stmt.excluded.document_url,
            "uploaded_at": stmt.excluded.uploaded_at,
        },
    )
    await db.execute(stmt)


async def get_documents(db: AsyncSession, application_id: UUID) -> list[ApplicationDocument]:
    """Get all documents recorded for an application."""
    result = await db.execute(
        select(ApplicationDocument)
        .where(ApplicationDocument.application_id == application_id)
        .order_by(ApplicationDocument.document_type)
    )
    return list(result.scalars().all())


# ============================================
# UploadSession Repository
# ============================================


async def create_session(
    db: AsyncSession,
    session_hash: str,
    student_id: int,
    application_id: UUID,
    expires_at: datetime,
) -> UploadSession:
    """Create a new upload session row."""
    upload_session = UploadSession(
        session_hash=session_hash,
        student_id=student_id,
        application_id=application_id,
        expires_at=expires_at,
    )

    db.add(upload_session)
    await db.flush()

    return upload_session


async def get_session(
    db: AsyncSession,
    session_hash: str,
    student_id: int,
) -> UploadSession | None:
    """Get an upload session by its hash, scoped to the owning student."""
    result = await db.execute(
        select(UploadSession).where(
            UploadSession.session_hash == session_hash,
            UploadSession.student_id == student_id,
        )
    )
    return result.scalar_one_or_none()


async def delete_session(db: AsyncSession, session_hash: str) -> None:
    """Delete an upload session. Deleting a missing row is a no-op."""
    await db.execute(delete(UploadSession).where(UploadSession.session_hash == session_hash))


async def delete_sessions_for_application(db: AsyncSession, application_id: UUID) -> None:
    """Delete every upload session bound to an application."""
    await db.execute(delete(UploadSession).where(UploadSession.application_id == application_id))


async def delete_expired_sessions(db: AsyncSession, now: datetime) -> int:
    """
    Delete upload sessions whose expiry has passed.

    Returns:
        Number of rows deleted
    """
    result = await db.execute(delete(UploadSession).where(UploadSession.expires_at < now))
    return result.rowcount or 0
