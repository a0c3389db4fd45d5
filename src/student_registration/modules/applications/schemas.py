"""
Student Applications Schemas

Pydantic schemas for request validation and response serialization.
"""

import enum
from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

# Re-use enums from models (they work with Pydantic too!)
from student_registration.modules.applications.models import ApplicationStatus, DocumentType

BloodGroup = Literal["A+", "A-", "B+", "B-", "AB+", "AB-", "O+", "O-"]


class SubmissionAction(str, enum.Enum):
    """Actions accepted by the student application endpoint."""

    SAVE_DETAILS = "save_details"
    GENERATE_UPLOAD_URLS = "generate_upload_urls"
    FINALIZE_SUBMISSION = "finalize_submission"
    GET_STATUS = "get_status"


class ActionEnvelope(BaseModel):
    """The action selector every request body carries."""

    model_config = ConfigDict(extra="allow")

    action: SubmissionAction


# ============================================
# Request Schemas
# ============================================


class ApplicationDetailsRequest(BaseModel):
    """Fields for the save_details action."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    address: str = Field(..., min_length=1, max_length=500)
    department: str = Field(..., min_length=1, max_length=100)
    year_of_study: int = Field(..., ge=1, le=4, strict=True)
    semester: int = Field(..., ge=1, le=8, strict=True)
    blood_group: BloodGroup | None = None


class FinalizeSubmissionRequest(BaseModel):
    """Fields for the finalize_submission action."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    session_id: str = Field(..., min_length=1, max_length=200)


class RejectRequest(BaseModel):
    """Request to reject an application."""

    model_config = ConfigDict(str_strip_whitespace=True)

    reason: str = Field(..., min_length=1, max_length=1000)


# ============================================
# Student Response Schemas
# ============================================


class SaveDetailsResponse(BaseModel):
    """Response after saving application details."""

    application_id: UUID
    status: ApplicationStatus
    created: bool
    reapply_count: int
    message: str


class UploadUrlsResponse(BaseModel):
    """Response carrying an upload session and one write URL per document."""

    application_id: UUID
    session_id: str
    expires_at: datetime
    upload_urls: dict[DocumentType, str]
    message: str = "Upload each document to its URL, then finalize the submission."


class FinalizeSubmissionResponse(BaseModel):
    """Response after a successful submission."""

    application_id: UUID
    status: ApplicationStatus
    submitted_at: datetime
    message: str = "Application submitted successfully"


class DocumentRecord(BaseModel):
    """A document recorded against an application."""

    model_config = ConfigDict(from_attributes=True)

    document_type: DocumentType
    document_url: str
    uploaded_at: datetime


class ApplicationStatusResponse(BaseModel):
    """Current state of the student's application."""

    application_id: UUID
    status: ApplicationStatus
    department: str
    year_of_study: int
    semester: int
    blood_group: str | None = None
    address: str
    submitted_at: datetime | None = None
    decision_reason: str | None = None
    documents: list[DocumentRecord] = Field(default_factory=list)
    reapply_count: int
    reapplies_remaining: int


# ============================================
# Review Schemas
# ============================================


class ApplicationListItem(BaseModel):
    """Application summary for the review queue."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    student_id: int
    college_id: int
    department: str
    year_of_study: int
    semester: int
    status: ApplicationStatus
    submitted_at: datetime | None = None
    reviewed_at: datetime | None = None
    reviewed_by: str | None = None


class ApplicationListResponse(BaseModel):
    """Paginated review queue."""

    applications: list[ApplicationListItem]
    total: int
    skip: int
    limit: int


class ReviewActionResponse(BaseModel):
    """Response after a reviewer status change."""

    id: UUID
    status: ApplicationStatus
    reviewed_at: datetime | None = None
    reviewed_by: str | None = None
    decision_reason: str | None = None
    message: str
