"""Read-only context for the chat assistant.

The assistant grounds its replies in the catalog and in the student's
progress. This module only assembles that snapshot; it never writes.
"""

from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from src.progress.calculator import compute_progress
from src.progress.models import EnrollmentStatus

from .schemas import AssistantSnapshot, CatalogEntry, EnrolledCourseProgress


if TYPE_CHECKING:
    from src.courses.service import CourseService
    from src.progress.service import ProgressService

logger = structlog.get_logger(__name__)


class AssistantContextService:
    """Builds progress snapshots for the assistant."""

    def __init__(self, course_service: "CourseService", progress_service: "ProgressService"):
        self.course_service = course_service
        self.progress_service = progress_service

    async def build_snapshot(self, user_id: UUID) -> AssistantSnapshot:
        catalog = await self.course_service.list_catalog()
        enrollments = await self.progress_service.list_user_enrollments(user_id)
        lessons_per_module = self.course_service.settings.legacy_lessons_per_module

        enrolled = []
        for enrollment in enrollments:
            if enrollment.status == EnrollmentStatus.CANCELLED.value:
                continue
            course = await self.course_service.get_course(enrollment.course_id)
            if course is None:
                continue
            snapshot = compute_progress(
                course,
                enrollment.completed_lesson_ids,
                lessons_per_module=lessons_per_module,
            )
            enrolled.append(
                EnrolledCourseProgress(
                    course_id=course.id,
                    title=course.title,
                    percentage_complete=snapshot.percentage,
                    status=EnrollmentStatus(enrollment.status),
                )
            )

        logger.debug(
            "assistant_snapshot_built",
            user_id=str(user_id),
            enrolled=len(enrolled),
            catalog=len(catalog),
        )

        return AssistantSnapshot(
            enrolled_courses=enrolled,
            course_catalog=[CatalogEntry.from_entity(course) for course in catalog],
        )
