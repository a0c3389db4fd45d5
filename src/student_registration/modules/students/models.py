"""
Student Models

Student identity records. Rows are created by the onboarding flow outside
this service; the submission workflow only reads them and bumps
reapply_count when a rejected application is resubmitted.
"""

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from student_registration.core.database import Base
from student_registration.modules.colleges.models import College


class Student(Base):
    """
    Registered student.

    The USN (university seat number) is the human-facing identity key and the
    second component of document storage keys.
    """

    __tablename__ = "students"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    usn: Mapped[str] = mapped_column(String(20), unique=True, index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)

    # ON DELETE RESTRICT: colleges with students cannot be removed
    college_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("colleges.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    # Number of times a rejected application has been resubmitted
    reapply_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )

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
    college: Mapped[College] = relationship("College", back_populates="students", lazy="selectin")

    __table_args__ = (CheckConstraint("reapply_count >= 0", name="ck_students_reapply_count"),)

    def __repr__(self) -> str:
        return f"<Student(id={self.id}, usn={self.usn})>"
