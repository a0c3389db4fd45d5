"""
Students module - student identity records.
"""

from student_registration.modules.students.models import Student
from student_registration.modules.students.repository import StudentRepository

__all__ = ["Student", "StudentRepository"]
