"""
Student Repository

Database operations for student records.
"""

import logging

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from student_registration.modules.students.models import Student

logger = logging.getLogger(__name__)


class StudentRepository:
    """Repository for student database operations."""

    @staticmethod
    async def get_by_id(db: AsyncSession, student_id: int) -> Student | None:
        """
        Get a student by ID, with the college loaded.

        Args:
            db: Database session
            student_id: Student primary key

        Returns:
            Student instance or None if not found
        """
        result = await db.execute(select(Student).where(Student.id == student_id))
        return result.scalar_one_or_none()

    @staticmethod
    async def increment_reapply_count(db: AsyncSession, student_id: int, seen_count: int) -> bool:
        """
        Increment reapply_count if it still equals the value the caller read.

        The guard makes two concurrent reapplications count once.
        Changes are flushed, not committed.

        Args:
            db: Database session
            student_id: Student primary key
            seen_count: reapply_count observed before the increment

        Returns:
            True if the row was updated
        """
        result = await db.execute(
            update(Student)
            .where(Student.id == student_id, Student.reapply_count == seen_count)
            .values(reapply_count=Student.reapply_count + 1)
            .execution_options(synchronize_session=False)
        )
        updated = result.rowcount == 1
        if updated:
            logger.info(f"Student {student_id} reapply_count -> {seen_count + 1}")
        return updated
