"""
Student Applications Models

Database models for the student registration application, its uploaded
documents and the short-lived upload sessions that bridge "details saved"
and "documents uploaded".
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from student_registration.core.database import Base


class ApplicationStatus(str, enum.Enum):
    """Status of a student application."""

    IN_PROGRESS = "IN_PROGRESS"
    SUBMITTED = "SUBMITTED"
    UNDER_REVIEW = "UNDER_REVIEW"
    APPROVED = "APPROVED"
    FINAL_APPROVED = "FINAL_APPROVED"
    REJECTED = "REJECTED"


class DocumentType(str, enum.Enum):
    """Documents every application must carry."""

    IDENTITY_PROOF = "IDENTITY_PROOF"
    COLLEGE_ID = "COLLEGE_ID"
    PREVIOUS_MARKSHEET = "PREVIOUS_MARKSHEET"


class StudentApplication(Base):
    """
    Student registration application.

    One row per student, reused when a rejected application is resubmitted.
    Rows are never hard-deleted.
    """

    __tablename__ = "student_applications"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    # Unique: a student owns at most one application row
    student_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("students.id", ondelete="RESTRICT"),
        nullable=False,
        unique=True,
    )
    college_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("colleges.id", ondelete="RESTRICT"),
        nullable=False,
    )

    # Form details
    department: Mapped[str] = mapped_column(String(100), nullable=False)
    year_of_study: Mapped[int] = mapped_column(Integer, nullable=False)
    semester: Mapped[int] = mapped_column(Integer, nullable=False)
    blood_group: Mapped[str | None] = mapped_column(String(5), nullable=True)
    address: Mapped[str] = mapped_column(String(500), nullable=False)

    # Status tracking
    status: Mapped[ApplicationStatus] = mapped_column(
        Enum(ApplicationStatus, name="application_status"),
        nullable=False,
        default=ApplicationStatus.IN_PROGRESS,
    )
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    reviewed_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    decision_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Audit timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    # Relationships
    documents: Mapped[list["ApplicationDocument"]] = relationship(
        "ApplicationDocument",
        back_populates="application",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        Index("ix_student_applications_status", "status"),
        Index("ix_student_applications_college_status", "college_id", "status"),
    )


class ApplicationDocument(Base):
    """
    Uploaded document recorded against an application.

    At most one row per (application, document type); re-uploads overwrite
    the URL and timestamp.
    """

    __tablename__ = "application_documents"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    application_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("student_applications.id", ondelete="CASCADE"),
        nullable=False,
    )
    document_type: Mapped[DocumentType] = mapped_column(
        Enum(DocumentType, name="document_type"), nullable=False
    )
    document_url: Mapped[str] = mapped_column(String(1000), nullable=False)
    uploaded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # Relationships
    application: Mapped["StudentApplication"] = relationship(
        "StudentApplication", back_populates="documents"
    )

    __table_args__ = (
        UniqueConstraint(
            "application_id", "document_type", name="uq_application_documents_application_type"
        ),
    )


class UploadSession(Base):
    """
    Window during which a student may upload documents for one application.

    Only the SHA-256 hash of the session identifier is stored.
    Rows past expires_at are inert and removed by the purge job.
    """

    __tablename__ = "upload_sessions"

    session_hash: Mapped[str] = mapped_column(String(64), primary_key=True)

    student_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("students.id", ondelete="CASCADE"),
        nullable=False,
    )
    application_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("student_applications.id", ondelete="CASCADE"),
        nullable=False,
    )

    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("ix_upload_sessions_application_id", "application_id"),
        Index("ix_upload_sessions_expires_at", "expires_at"),
    )
