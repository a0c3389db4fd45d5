"""
College Models

Colleges are reference data maintained outside this service.
The college code is the first component of every document storage key.
"""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from student_registration.core.database import Base

if TYPE_CHECKING:
    from student_registration.modules.students.models import Student


class College(Base):
    """A college that students register through."""

    __tablename__ = "colleges"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    college_code: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    # Relationships
    students: Mapped[list["Student"]] = relationship("Student", back_populates="college")

    def __repr__(self) -> str:
        return f"<College(id={self.id}, code={self.college_code})>"
