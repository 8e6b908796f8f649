"""Course catalog and curriculum tree."""

from .models import COURSES_TABLES_CQL, ContentStatus, Course


__all__ = [
    "COURSES_TABLES_CQL",
    "ContentStatus",
    "Course",
]
