"""
Authentication and Authorization Module

Provides authentication dependencies for FastAPI endpoints.
This module validates bearer JWTs using the helpers in security.py and
enforces role-based access:

- Student endpoints require role STUDENT (anything else is 401)
- Review endpoints require role COLLEGE_ADMIN or ADMIN (anything else is 403)
"""

import enum
import logging
from dataclasses import dataclass
from typing import Any

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from student_registration.core.config import Settings, get_settings
from student_registration.core.security import decode_token

logger = logging.getLogger(__name__)

# auto_error is off so missing credentials produce our own 401 body
security = HTTPBearer(
    auto_error=False,
    description="JWT Bearer token for authentication",
)


class UserRole(str, enum.Enum):
    """Roles carried in the JWT role claim."""

    STUDENT = "STUDENT"
    COLLEGE_ADMIN = "COLLEGE_ADMIN"
    ADMIN = "ADMIN"


REVIEWER_ROLES = {UserRole.COLLEGE_ADMIN.value, UserRole.ADMIN.value}


@dataclass
class StudentUser:
    """
    Represents an authenticated student.

    Populated from JWT claims after token validation.

    Attributes:
        student_id: Primary key of the student record
        usn: University seat number (registration number)
        college_id: Primary key of the student's college
        role: Always 'STUDENT'
    """

    student_id: int
    usn: str
    college_id: int
    role: str

    def __str__(self) -> str:
        return f"StudentUser(student_id={self.student_id}, usn={self.usn})"


@dataclass
class ReviewerUser:
    """
    Represents an authenticated reviewer.

    COLLEGE_ADMIN reviewers are scoped to their own college_id.
    ADMIN reviewers see every college (college_id is None).
    """

    id: str
    role: str
    college_id: int | None = None

    @property
    def is_platform_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value

    def __str__(self) -> str:
        return f"ReviewerUser(id={self.id}, role={self.role}, college_id={self.college_id})"


def _unauthorized(error: str, message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"error": error, "message": message},
        headers={"WWW-Authenticate": "Bearer"},
    )


def _decode_credentials(
    credentials: HTTPAuthorizationCredentials | None, settings: Settings
) -> dict[str, Any]:
    """
    Decode the bearer token into its claims.

    Raises:
        HTTPException 401: If the token is missing, invalid or expired
    """
    if credentials is None or not credentials.credentials:
        raise _unauthorized("MISSING_TOKEN", "Unauthorized - Missing or invalid token.")

    payload = decode_token(credentials.credentials, settings)

    if payload is None:
        logger.warning("Invalid or expired JWT token")
        raise _unauthorized("INVALID_TOKEN", "Unauthorized - Invalid token.")

    return payload


async def get_current_student(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    settings: Settings = Depends(get_settings),
) -> StudentUser:
    """
    FastAPI dependency that validates the JWT token and returns the student.

    Raises:
        HTTPException 401: If token is missing, invalid, expired, has the wrong
            role or lacks the student claims
    """
    payload = _decode_credentials(credentials, settings)

    role = payload.get("role", "")
    if role != UserRole.STUDENT.value:
        logger.warning(f"Access denied: role '{role}' used on a student endpoint")
        raise _unauthorized("INVALID_ROLE", "Unauthorized - Invalid role.")

    try:
        student = StudentUser(
            student_id=int(payload["student_id"]),
            usn=str(payload["usn"]),
            college_id=int(payload["college_id"]),
            role=role,
        )
    except (KeyError, TypeError, ValueError) as e:
        logger.warning(f"Invalid token claims: {e}")
        raise _unauthorized(
            "INVALID_TOKEN_CLAIMS", "Token contains invalid or missing claims."
        ) from e

    logger.debug(f"Authenticated {student}")
    return student


async def get_current_reviewer(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    settings: Settings = Depends(get_settings),
) -> ReviewerUser:
    """
    FastAPI dependency that validates the JWT token and returns the reviewer.

    Raises:
        HTTPException 401: If token is missing, invalid or lacks claims
        HTTPException 403: If the role is not a reviewer role
    """
    payload = _decode_credentials(credentials, settings)

    role = payload.get("role", "")
    if role not in REVIEWER_ROLES:
        logger.warning(f"Access denied: role '{role}' used on a review endpoint")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "error": "REVIEWER_ACCESS_REQUIRED",
                "message": "Reviewer access is required for this endpoint.",
            },
        )

    try:
        subject = payload["sub"]
        college_id = payload.get("college_id")
        reviewer = ReviewerUser(
            id=str(subject),
            role=role,
            college_id=int(college_id) if college_id is not None else None,
        )
    except (KeyError, TypeError, ValueError) as e:
        logger.warning(f"Invalid token claims: {e}")
        raise _unauthorized(
            "INVALID_TOKEN_CLAIMS", "Token contains invalid or missing claims."
        ) from e

    if not reviewer.is_platform_admin and reviewer.college_id is None:
        logger.warning(f"College admin {reviewer.id} has no college_id claim")
        raise _unauthorized("INVALID_TOKEN_CLAIMS", "Token contains invalid or missing claims.")

    return reviewer


__all__ = [
    "ReviewerUser",
    "StudentUser",
    "UserRole",
    "get_current_reviewer",
    "get_current_student",
]
