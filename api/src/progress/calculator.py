"""Course completion percentage.

Pure functions shared by the enrollment lifecycle, the assistant snapshot
and certificate issuance. Nothing here touches storage.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING

from src.courses.curriculum import (
    LEGACY_LESSONS_PER_MODULE,
    lesson_ids,
    total_lesson_count,
)


if TYPE_CHECKING:
    from src.courses.models import Course


def round_half_up(value: Decimal | float | int) -> int:
    """Round to the nearest integer, halves away from zero (62.5 -> 63)."""
    return int(Decimal(str(value)).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def percentage_of(part: int, whole: int) -> int:
    """Integer percentage of ``part`` over ``whole`` (0 when whole is 0)."""
    if whole <= 0:
        return 0
    return round_half_up(Decimal(100) * Decimal(part) / Decimal(whole))


@dataclass(frozen=True)
class ProgressSnapshot:
    completed_count: int
    total_count: int
    percentage: int

    @property
    def is_complete(self) -> bool:
        return self.percentage == 100


def compute_progress(
    course: "Course",
    completed_ids: Iterable[str],
    strict: bool | None = None,
    lessons_per_module: int = LEGACY_LESSONS_PER_MODULE,
) -> ProgressSnapshot:
    """Compute a student's completion of ``course``.

    Args:
        course: Course with or without a curriculum tree
        completed_ids: Lesson ids the student marked complete
        strict: Count only ids that belong to the curriculum. Defaults to
            True when the course has a curriculum tree. Without a tree
            there is nothing to intersect with, so ids are trusted and the
            count is clamped to the total.
        lessons_per_module: Legacy denominator multiplier

    Returns:
        ProgressSnapshot with completed/total counts and the percentage
    """
    ids = frozenset(completed_ids)
    total = total_lesson_count(course, lessons_per_module)
    if strict is None:
        strict = course.has_curriculum

    if strict and course.has_curriculum:
        completed = len(ids & lesson_ids(course))
    else:
        completed = min(len(ids), total)

    return ProgressSnapshot(
        completed_count=completed,
        total_count=total,
        percentage=percentage_of(completed, total),
    )
