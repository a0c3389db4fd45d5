"""
Student Applications Service Layer

Business logic for the student application submission workflow.
Orchestrates the repository, the upload session manager and document storage.

This module implements:
1. Save Details:
   - Create the application on first save (IN_PROGRESS)
   - Overwrite details while still IN_PROGRESS
   - Reapply from REJECTED, bounded by settings.max_reapply_count
   - Refuse while an application is submitted, under review or approved

2. Generate Upload URLs:
   - Open an upload session bound to the IN_PROGRESS application
   - Issue one write-only URL per required document at a deterministic key

3. Finalize Submission:
   - Validate the session (owner + expiry)
   - Verify every required document exists in storage; after a reapplication
     an object must also be newer than the rejected submission
   - Record the documents, move the application to SUBMITTED and consume the
     session in one commit; a failed commit leaves the session usable for a
     retry

4. Status:
   - The student's application, recorded documents and remaining reapplies

The workflow is a class so its settings, storage and session manager are
injected per request; the review workflow in admin_service.py needs none and
stays module-level.

Concurrency:
- The student_id unique constraint allows one application row per student
- Status changes use update_if_status so racing requests cannot both transition
"""

import asyncio
import logging
from datetime import UTC, datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from student_registration.core.auth import StudentUser
from student_registration.core.config import Settings
from student_registration.core.storage import DocumentStorage
from student_registration.modules.applications import repository
from student_registration.modules.applications.errors import (
    ActiveApplicationExistsError,
    ApplicationNotFoundError,
    IncompleteUploadError,
    InvalidApplicationStateError,
    ReapplyLimitReachedError,
    StudentNotFoundError,
)
from student_registration.modules.applications.helpers import (
    ACTIVE_STATUSES,
    REQUIRED_DOCUMENTS,
    document_storage_key,
    reapplies_remaining,
)
from student_registration.modules.applications.models import (
    ApplicationStatus,
    DocumentType,
    StudentApplication,
)
from student_registration.modules.applications.schemas import (
    ApplicationDetailsRequest,
    ApplicationStatusResponse,
    DocumentRecord,
    FinalizeSubmissionResponse,
    SaveDetailsResponse,
    UploadUrlsResponse,
)
from student_registration.modules.applications.sessions import UploadSessionManager
from student_registration.modules.students.models import Student
from student_registration.modules.students.repository import StudentRepository

logger = logging.getLogger(__name__)

# Review fields cleared when a rejected application is reopened
_CLEARED_ON_REAPPLY = {
    "submitted_at": None,
    "reviewed_at": None,
    "reviewed_by": None,
    "decision_reason": None,
}


class SubmissionService:
    """Coordinates the save details -> upload -> finalize workflow."""

    def __init__(
        self,
        *,
        settings: Settings,
        storage: DocumentStorage,
        sessions: UploadSessionManager,
    ):
        self.settings = settings
        self.storage = storage
        self.sessions = sessions

    async def _get_student(self, db: AsyncSession, student_id: int) -> Student:
        record = await StudentRepository.get_by_id(db, student_id)
        if record is None:
            logger.warning(f"Student record missing for authenticated student {student_id}")
            raise StudentNotFoundError(student_id)
        return record

    def _document_keys(self, record: Student) -> dict[DocumentType, str]:
        return {
            document_type: document_storage_key(
                record.college.college_code, record.usn, document_type
            )
            for document_type in REQUIRED_DOCUMENTS
        }

    # ============================================
    # Save Details
    # ============================================

    async def save_details(
        self,
        db: AsyncSession,
        student: StudentUser,
        data: ApplicationDetailsRequest,
    ) -> SaveDetailsResponse:
        """
        Create or update the student's application details.

        Args:
            db: Database session
            student: Authenticated student
            data: Validated form fields

        Returns:
            SaveDetailsResponse; created is True only for a fresh insert

        Raises:
            StudentNotFoundError: If the student record is missing
            ActiveApplicationExistsError: If the application is submitted or decided
            ReapplyLimitReachedError: If a rejected student has no reapplies left
            InvalidApplicationStateError: If a concurrent request changed the status
        """
        record = await self._get_student(db, student.student_id)
        application = await repository.get_by_student(db, record.id)

        if application is None:
            try:
                application = await repository.create(db, record.id, record.college_id, data)
                await db.commit()
            except IntegrityError:
                # Another request inserted first; continue against its row
                await db.rollback()
                logger.warning(f"Concurrent application insert for student {record.id}")
                record = await self._get_student(db, student.student_id)
                application = await repository.get_by_student(db, record.id)
                if application is None:
                    raise
            else:
                logger.info(f"Created application {application.id} for student {record.id}")
                return SaveDetailsResponse(
                    application_id=application.id,
                    status=ApplicationStatus.IN_PROGRESS,
                    created=True,
                    reapply_count=record.reapply_count,
                    message="Application details saved",
                )

        return await self._update_existing(db, record, application, data)

    async def _update_existing(
        self,
        db: AsyncSession,
        record: Student,
        application: StudentApplication,
        data: ApplicationDetailsRequest,
    ) -> SaveDetailsResponse:
        current_status = application.status

        if current_status in ACTIVE_STATUSES:
            logger.warning(
                f"Save details refused for student {record.id}: "
                f"application {application.id} is {current_status.value}"
            )
            raise ActiveApplicationExistsError()

        fields = repository.detail_fields(data)

        if current_status == ApplicationStatus.IN_PROGRESS:
            updated = await repository.update_if_status(
                db, application.id, ApplicationStatus.IN_PROGRESS, **fields
            )
            if not updated:
                await db.rollback()
                raise InvalidApplicationStateError(
                    "Application changed while saving details. Please retry."
                )
            await db.commit()
            logger.info(f"Updated details of application {application.id}")
            return SaveDetailsResponse(
                application_id=application.id,
                status=ApplicationStatus.IN_PROGRESS,
                created=False,
                reapply_count=record.reapply_count,
                message="Application details updated",
            )

        # REJECTED: reapply if the cap allows it
        seen_count = record.reapply_count
        if seen_count >= self.settings.max_reapply_count:
            logger.warning(
                f"Reapply refused for student {record.id}: "
                f"reapply_count={seen_count}, max={self.settings.max_reapply_count}"
            )
            raise ReapplyLimitReachedError(self.settings.max_reapply_count)

        reopened = await repository.update_if_status(
            db,
            application.id,
            ApplicationStatus.REJECTED,
            status=ApplicationStatus.IN_PROGRESS,
            **_CLEARED_ON_REAPPLY,
            **fields,
        )
        counted = reopened and await StudentRepository.increment_reapply_count(
            db, record.id, seen_count
        )
        if not counted:
            await db.rollback()
            raise InvalidApplicationStateError(
                "Application changed while reapplying. Please retry."
            )
        await db.commit()

        logger.info(
            f"Application {application.id} reopened for reapplication "
            f"({seen_count + 1}/{self.settings.max_reapply_count})"
        )
        return SaveDetailsResponse(
            application_id=application.id,
            status=ApplicationStatus.IN_PROGRESS,
            created=False,
            reapply_count=seen_count + 1,
            message="Application reopened for reapplication",
        )

    # ============================================
    # Generate Upload URLs
    # ============================================

    async def generate_upload_urls(
        self,
        db: AsyncSession,
        student: StudentUser,
    ) -> UploadUrlsResponse:
        """
        Open an upload session and issue one write URL per required document.

        URLs expire with the session.

        Raises:
            StudentNotFoundError: If the student record is missing
            ApplicationNotFoundError: If no details have been saved yet
            InvalidApplicationStateError: If the application is not IN_PROGRESS
            StorageError: If a URL cannot be signed
        """
        record = await self._get_student(db, student.student_id)
        application = await repository.get_by_student(db, record.id)

        if application is None:
            raise ApplicationNotFoundError()

        if application.status != ApplicationStatus.IN_PROGRESS:
            logger.warning(
                f"Upload URLs refused for application {application.id}: "
                f"status={application.status.value}"
            )
            raise InvalidApplicationStateError(
                f"Cannot upload documents for an application in status "
                f"{application.status.value}.",
                expected_state=ApplicationStatus.IN_PROGRESS.value,
            )

        issued = await self.sessions.create_session(db, record.id, application.id)

        # Sign after the session exists so no URL outlives it
        expires_in = issued.seconds_remaining()
        upload_urls = {
            document_type: self.storage.issue_write_url(key, expires_in)
            for document_type, key in self._document_keys(record).items()
        }

        await db.commit()

        return UploadUrlsResponse(
            application_id=application.id,
            session_id=issued.session_id,
            expires_at=issued.expires_at,
            upload_urls=upload_urls,
        )

    # ============================================
    # Finalize Submission
    # ============================================

    async def finalize_submission(
        self,
        db: AsyncSession,
        student: StudentUser,
        session_id: str,
    ) -> FinalizeSubmissionResponse:
        """
        Submit the application bound to an upload session.

        Raises:
            UploadSessionNotFoundError: If the session is missing or not the student's
            UploadSessionExpiredError: If the session has expired
            ApplicationNotFoundError: If the bound application is missing
            InvalidApplicationStateError: If the application is not IN_PROGRESS
            IncompleteUploadError: If any required document is missing in storage
            StorageError: If storage cannot be checked
        """
        upload_session = await self.sessions.validate_session(db, session_id, student.student_id)

        application = await repository.get_by_id(db, upload_session.application_id)
        if application is None or application.student_id != student.student_id:
            raise ApplicationNotFoundError(upload_session.application_id)

        if application.status != ApplicationStatus.IN_PROGRESS:
            raise InvalidApplicationStateError(
                f"Application is already {application.status.value}.",
                expected_state=ApplicationStatus.IN_PROGRESS.value,
            )

        record = await self._get_student(db, student.student_id)
        keys = self._document_keys(record)

        # Rows left by a rejected submission; those objects must be uploaded again
        previously_recorded = {
            document.document_type: document.uploaded_at
            for document in await repository.get_documents(db, application.id)
        }

        present = await asyncio.gather(
            *(
                self.storage.exists(
                    keys[document_type],
                    modified_after=previously_recorded.get(document_type),
                )
                for document_type in REQUIRED_DOCUMENTS
            )
        )
        missing = [
            document_type
            for document_type, exists in zip(REQUIRED_DOCUMENTS, present, strict=True)
            if not exists
        ]
        if missing:
            logger.warning(
                f"Finalize refused for application {application.id}: "
                f"missing {[doc.value for doc in missing]}"
            )
            raise IncompleteUploadError(missing)

        submitted_at = datetime.now(UTC)

        for document_type in REQUIRED_DOCUMENTS:
            await repository.upsert_document(
                db,
                application.id,
                document_type,
                self.storage.object_url(keys[document_type]),
                submitted_at,
            )

        transitioned = await repository.update_if_status(
            db,
            application.id,
            ApplicationStatus.IN_PROGRESS,
            status=ApplicationStatus.SUBMITTED,
            submitted_at=submitted_at,
        )
        if not transitioned:
            await db.rollback()
            raise InvalidApplicationStateError(
                "Application was submitted by another request.",
                expected_state=ApplicationStatus.IN_PROGRESS.value,
            )

        # Same transaction as the transition: a failed commit keeps the session
        await self.sessions.consume_session(db, session_id)
        await db.commit()

        logger.info(f"Application {application.id} submitted")

        return FinalizeSubmissionResponse(
            application_id=application.id,
            status=ApplicationStatus.SUBMITTED,
            submitted_at=submitted_at,
        )

    # ============================================
    # Status
    # ============================================

    async def get_application_status(
        self,
        db: AsyncSession,
        student: StudentUser,
    ) -> ApplicationStatusResponse:
        """
        Get the student's application, its documents and remaining reapplies.

        Raises:
            StudentNotFoundError: If the student record is missing
            ApplicationNotFoundError: If no details have been saved yet
        """
        record = await self._get_student(db, student.student_id)
        application = await repository.get_by_student(db, record.id)

        if application is None:
            raise ApplicationNotFoundError()

        documents = await repository.get_documents(db, application.id)

        return ApplicationStatusResponse(
            application_id=application.id,
            status=application.status,
            department=application.department,
            year_of_study=application.year_of_study,
            semester=application.semester,
            blood_group=application.blood_group,
            address=application.address,
            submitted_at=application.submitted_at,
            decision_reason=application.decision_reason,
            documents=[DocumentRecord.model_validate(doc) for doc in documents],
            reapply_count=record.reapply_count,
            reapplies_remaining=reapplies_remaining(
                record.reapply_count, self.settings.max_reapply_count
            ),
        )
