"""
Upload Session Manager

Creates, validates and consumes the short-lived sessions that bridge
"application details saved" and "documents uploaded".

Security considerations:
- Session identifiers use secrets.token_urlsafe (256 bits of entropy)
- Only the SHA-256 hash is stored, so a database read does not reveal live sessions
- Sessions are scoped to the owning student; another student's id never matches
- Expired rows are inert: validation treats them like missing rows
- Plain session identifiers are never logged
"""

import hashlib
import logging
import secrets
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from student_registration.modules.applications import repository
from student_registration.modules.applications.errors import (
    UploadSessionExpiredError,
    UploadSessionNotFoundError,
)
from student_registration.modules.applications.models import UploadSession

logger = logging.getLogger(__name__)

SESSION_TOKEN_BYTES = 32  # 43 URL-safe characters


def hash_session_id(session_id: str) -> str:
    """Hex-encoded SHA-256 of a session identifier."""
    return hashlib.sha256(session_id.encode()).hexdigest()


def generate_session_id() -> str:
    """Generate an unguessable, fixed-length session identifier."""
    return secrets.token_urlsafe(SESSION_TOKEN_BYTES)


@dataclass
class IssuedUploadSession:
    """A freshly created session; the only place the plain identifier exists."""

    session_id: str
    application_id: UUID
    expires_at: datetime

    def seconds_remaining(self, now: datetime | None = None) -> int:
        now = now or datetime.now(UTC)
        return max(0, int((self.expires_at - now).total_seconds()))


class UploadSessionManager:
    """
    Manages upload session rows.

    Writes are flushed; the caller commits.
    """

    def __init__(self, ttl: timedelta):
        if ttl <= timedelta(0):
            raise ValueError("Upload session TTL must be positive")
        self.ttl = ttl

    async def create_session(
        self,
        db: AsyncSession,
        student_id: int,
        application_id: UUID,
    ) -> IssuedUploadSession:
        """
        Create a session bound to an application.

        Earlier sessions for the same application are deleted so only the
        newest upload attempt can be finalized.
        """
        session_id = generate_session_id()
        expires_at = datetime.now(UTC) + self.ttl

        await repository.delete_sessions_for_application(db, application_id)
        await repository.create_session(
            db,
            session_hash=hash_session_id(session_id),
            student_id=student_id,
            application_id=application_id,
            expires_at=expires_at,
        )

        logger.info(
            f"Created upload session for application {application_id} "
            f"(expires {expires_at.isoformat()})"
        )
        return IssuedUploadSession(
            session_id=session_id,
            application_id=application_id,
            expires_at=expires_at,
        )

    async def validate_session(
        self,
        db: AsyncSession,
        session_id: str,
        student_id: int,
    ) -> UploadSession:
        """
        Return the live session owned by the student.

        Raises:
            UploadSessionNotFoundError: No session matches the id and student
            UploadSessionExpiredError: The session exists but has expired
        """
        upload_session = await repository.get_session(db, hash_session_id(session_id), student_id)

        if upload_session is None:
            logger.warning(f"Upload session not found for student {student_id}")
            raise UploadSessionNotFoundError()

        if datetime.now(UTC) > upload_session.expires_at:
            logger.warning(
                f"Upload session expired for student {student_id} "
                f"(application {upload_session.application_id})"
            )
            raise UploadSessionExpiredError()

        return upload_session

    async def consume_session(self, db: AsyncSession, session_id: str) -> None:
        """Delete a session. Deleting an already-deleted session is a no-op."""
        await repository.delete_session(db, hash_session_id(session_id))

    async def purge_expired(self, db: AsyncSession, now: datetime | None = None) -> int:
        """Delete expired session rows and return how many were removed."""
        return await repository.delete_expired_sessions(db, now or datetime.now(UTC))
