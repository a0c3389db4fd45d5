"""
Colleges module - college reference data.
"""

from student_registration.modules.colleges.models import College

__all__ = ["College"]
