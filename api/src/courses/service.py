"""Course catalog service layer.

Business logic for:
- Course creation and editing (owning instructor or admin only)
- Curriculum replacement with global lesson id claims
- Publication and catalog listing
- Notifying subscribers (enrollment progress) when the lesson set changes
"""

from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID

import structlog
from fastapi import status
from pydantic import ValidationError

from src.auth.permissions import is_admin
from src.config.settings import get_settings
from src.core.errors import DomainError

from .curriculum import Curriculum, lesson_ids, total_lesson_count
from .models import ContentStatus, Course


if TYPE_CHECKING:
    from src.auth.schemas import AuthenticatedUser
    from src.config.settings import Settings

    from .repository import CourseRepository
    from .schemas import CreateCourseRequest, UpdateCourseRequest

logger = structlog.get_logger(__name__)

LessonsChangedCallback = Callable[[Course], Awaitable[None]]


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class CourseError(DomainError):
    """Base course error."""

    def __init__(self, message: str, code: str = "course_error"):
        super().__init__(message, code)


class CourseNotFoundError(CourseError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, message: str = "Course not found"):
        super().__init__(message, "course_not_found")


class LessonNotFoundError(CourseError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, message: str = "Lesson not found in course"):
        super().__init__(message, "lesson_not_found")


class CourseEditForbiddenError(CourseError):
    """Editor is neither the owning instructor nor an admin."""

    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, message: str = "Only the course instructor can edit it"):
        super().__init__(message, "course_edit_forbidden")


class LessonIdConflictError(CourseError):
    """Curriculum reuses a lesson id owned by another course."""

    status_code = status.HTTP_409_CONFLICT

    def __init__(self, lesson_id: str):
        self.lesson_id = lesson_id
        super().__init__(
            f"Lesson id '{lesson_id}' is already used by another course",
            "lesson_id_conflict",
        )


class InvalidCurriculumError(CourseError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY

    def __init__(self, message: str = "Invalid curriculum"):
        super().__init__(message, "invalid_curriculum")


# ==============================================================================
# Course Service
# ==============================================================================


class CourseService:
    """Service for catalog and curriculum management."""

    def __init__(self, repository: "CourseRepository", settings: "Settings | None" = None):
        self.repository = repository
        self.settings = settings or get_settings()
        self._lessons_changed_callbacks: list[LessonsChangedCallback] = []

    def on_lessons_changed(self, callback: LessonsChangedCallback) -> None:
        """Register a coroutine run after an edit changes the lesson set."""
        self._lessons_changed_callbacks.append(callback)

    def total_lessons(self, course: Course) -> int:
        return total_lesson_count(course, self.settings.legacy_lessons_per_module)

    @staticmethod
    def can_edit(course: Course, user: "AuthenticatedUser") -> bool:
        return is_admin(user.role) or course.instructor_id == user.id

    # --------------------------------------------------------------------------
    # Queries
    # --------------------------------------------------------------------------

    async def get_course(self, course_id: UUID) -> Course | None:
        return await self.repository.get(course_id)

    async def require_course(self, course_id: UUID) -> Course:
        course = await self.repository.get(course_id)
        if course is None:
            raise CourseNotFoundError
        return course

    async def list_catalog(self, include_unpublished: bool = False) -> list[Course]:
        """List catalog courses, newest first.

        Args:
            include_unpublished: Also return drafts and archived courses
        """
        courses = await self.repository.list_all()
        if not include_unpublished:
            courses = [c for c in courses if c.is_published]
        return sorted(courses, key=lambda c: c.created_at, reverse=True)

    # --------------------------------------------------------------------------
    # Commands
    # --------------------------------------------------------------------------

    async def create_course(
        self, data: "CreateCourseRequest", instructor: "AuthenticatedUser"
    ) -> Course:
        course = Course(
            title=data.title,
            description=data.description,
            category=data.category,
            level=data.level.value,
            language=data.language.value,
            price=data.price,
            currency=data.currency.upper(),
            tags=data.tags,
            instructor_id=instructor.id,
            instructor_name=instructor.name,
            module_count=data.module_count,
            curriculum=data.curriculum,
        )

        if course.curriculum is not None:
            await self._claim_lessons(course.id, lesson_ids(course))

        await self.repository.save(course)

        logger.info(
            "course_created",
            course_id=str(course.id),
            instructor_id=str(instructor.id),
            has_curriculum=course.has_curriculum,
        )
        return course

    async def update_course(
        self,
        course_id: UUID,
        data: "UpdateCourseRequest",
        editor: "AuthenticatedUser",
    ) -> Course:
        course = await self._require_editable(course_id, editor)
        total_before = self.total_lessons(course)

        changes = data.model_dump(exclude_unset=True)
        for field, value in changes.items():
            if value is None:
                continue
            if field in ("level", "language", "status"):
                value = value.value
            elif field == "currency":
                value = value.upper()
            elif field == "module_count" and course.has_curriculum:
                continue
            elif field == "price":
                value = Decimal(value)
            setattr(course, field, value)
        course.updated_at = datetime.now(UTC)

        await self.repository.save(course)

        logger.info(
            "course_updated",
            course_id=str(course_id),
            fields=sorted(changes),
        )

        if self.total_lessons(course) != total_before:
            await self._lessons_changed(course)
        return course

    async def replace_curriculum(
        self,
        course_id: UUID,
        curriculum: Curriculum | dict[str, Any],
        editor: "AuthenticatedUser",
    ) -> Course:
        """Replace the whole curriculum tree.

        New lesson ids are claimed before the course row is written; ids
        dropped from the tree are released afterwards.
        """
        if not isinstance(curriculum, Curriculum):
            try:
                curriculum = Curriculum.model_validate(curriculum)
            except ValidationError as e:
                raise InvalidCurriculumError(str(e)) from e

        course = await self._require_editable(course_id, editor)

        old_ids = lesson_ids(course)
        course.curriculum = curriculum
        new_ids = lesson_ids(course)

        await self._claim_lessons(course.id, new_ids - old_ids)

        course.module_count = len(curriculum.modules)
        course.updated_at = datetime.now(UTC)
        await self.repository.save(course)

        for lesson_id in old_ids - new_ids:
            await self.repository.release_lesson(lesson_id, course.id)

        logger.info(
            "curriculum_replaced",
            course_id=str(course_id),
            modules=len(curriculum.modules),
            lessons=len(new_ids),
            released=len(old_ids - new_ids),
        )

        await self._lessons_changed(course)
        return course

    async def publish_course(self, course_id: UUID, editor: "AuthenticatedUser") -> Course:
        course = await self._require_editable(course_id, editor)
        if self.total_lessons(course) == 0:
            msg = "A course needs at least one lesson before publishing"
            raise InvalidCurriculumError(msg)

        course.status = ContentStatus.PUBLISHED.value
        course.updated_at = datetime.now(UTC)
        await self.repository.save(course)

        logger.info("course_published", course_id=str(course_id))
        return course

    # --------------------------------------------------------------------------
    # Helpers
    # --------------------------------------------------------------------------

    async def _require_editable(
        self, course_id: UUID, editor: "AuthenticatedUser"
    ) -> Course:
        course = await self.require_course(course_id)
        if not self.can_edit(course, editor):
            raise CourseEditForbiddenError
        return course

    async def _lessons_changed(self, course: Course) -> None:
        for callback in self._lessons_changed_callbacks:
            await callback(course)

    async def _claim_lessons(self, course_id: UUID, ids: frozenset[str]) -> None:
        """Claim every id or none of the newly claimed ones."""
        claimed: list[str] = []
        for lesson_id in sorted(ids):
            owner = await self.repository.claim_lesson(lesson_id, course_id)
            if owner != course_id:
                for done in claimed:
                    await self.repository.release_lesson(done, course_id)
                logger.warning(
                    "lesson_id_conflict",
                    course_id=str(course_id),
                    lesson_id=lesson_id,
                    owner_course_id=str(owner),
                )
                raise LessonIdConflictError(lesson_id)
            claimed.append(lesson_id)
