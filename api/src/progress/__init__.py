"""Enrollments, lesson completion and progress calculation.

Note: Router is imported directly in main.py to avoid circular imports.
"""

from src.progress.calculator import ProgressSnapshot, compute_progress, round_half_up
from src.progress.models import PROGRESS_TABLES_CQL, Enrollment, EnrollmentStatus


__all__ = [
    "PROGRESS_TABLES_CQL",
    "Enrollment",
    "EnrollmentStatus",
    "ProgressSnapshot",
    "compute_progress",
    "round_half_up",
]
