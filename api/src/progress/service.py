"""Enrollment lifecycle and lesson completion.

Business logic for:
- Enrollment (free or with a confirmed payment)
- Lesson completion toggling with compare-and-set on the enrollment row
- Automatic completed <-> active transitions at 100%
- Recomputing every enrollment of a course when its lesson set changes
- Pause, resume and cancel
- Gated lesson access
- Playback position, watch time and notes per lesson
- Progress aggregation per course and per user
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID

import structlog
from fastapi import status

from src.config.settings import get_settings
from src.core.errors import DomainError, MalformedSubmissionError, TransientStorageError
from src.courses.curriculum import find_lesson, lesson_ids
from src.courses.service import CourseNotFoundError, LessonNotFoundError
from src.notifications.models import NotificationMetadata, NotificationType

from .calculator import compute_progress, percentage_of
from .models import NOTES_MAX_LENGTH, Enrollment, EnrollmentStatus, LessonProgress
from .schemas import (
    CourseProgressResponse,
    ModuleProgressSummary,
    UserProgressSummary,
)


if TYPE_CHECKING:
    from src.auth.schemas import AuthenticatedUser
    from src.config.settings import Settings
    from src.courses.models import Course
    from src.courses.service import CourseService
    from src.notifications.service import NotificationService

    from .repository import EnrollmentRepository
    from .schemas import PaymentConfirmation

logger = structlog.get_logger(__name__)


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class ProgressError(DomainError):
    """Base progress error."""

    def __init__(self, message: str, code: str = "progress_error"):
        super().__init__(message, code)


class NotEnrolledError(ProgressError):
    """User has no enrollment granting access to the course."""

    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, message: str = "User is not enrolled in this course"):
        super().__init__(message, "not_enrolled")


class AlreadyEnrolledError(ProgressError):
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, message: str = "User is already enrolled in this course"):
        super().__init__(message, "already_enrolled")


class PaymentRequiredError(ProgressError):
    status_code = status.HTTP_402_PAYMENT_REQUIRED

    def __init__(self, message: str = "A confirmed payment is required for this course"):
        super().__init__(message, "payment_required")


class InvalidEnrollmentTransitionError(ProgressError):
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(
            f"Cannot move enrollment from {current} to {target}",
            "invalid_enrollment_transition",
        )


class ConcurrentUpdateError(ProgressError):
    """Compare-and-set kept losing against concurrent writers."""

    status_code = status.HTTP_409_CONFLICT

    def __init__(self, message: str = "Enrollment was modified concurrently, try again"):
        super().__init__(message, "concurrent_update")


# Allowed manual transitions: target -> statuses it can be reached from
MANUAL_TRANSITIONS = {
    EnrollmentStatus.PAUSED: frozenset({EnrollmentStatus.ACTIVE.value}),
    EnrollmentStatus.ACTIVE: frozenset({EnrollmentStatus.PAUSED.value}),
    EnrollmentStatus.CANCELLED: frozenset(
        {EnrollmentStatus.ACTIVE.value, EnrollmentStatus.PAUSED.value}
    ),
}


@dataclass
class ToggleResult:
    enrollment: Enrollment
    lesson_id: str
    completed: bool


# ==============================================================================
# Progress Service
# ==============================================================================


class ProgressService:
    """Service for enrollments and student progress."""

    def __init__(
        self,
        repository: "EnrollmentRepository",
        course_service: "CourseService",
        notification_service: "NotificationService | None" = None,
        settings: "Settings | None" = None,
    ):
        self.repository = repository
        self.course_service = course_service
        self.notification_service = notification_service
        self.settings = settings or get_settings()
        course_service.on_lessons_changed(self.resync_course)

    # ==========================================================================
    # Enrollment
    # ==========================================================================

    async def enroll(
        self,
        user: "AuthenticatedUser",
        course_id: UUID,
        payment: "PaymentConfirmation | None" = None,
    ) -> Enrollment:
        """Enroll a user in a published course.

        Raises:
            CourseNotFoundError: Unknown or unpublished course
            PaymentRequiredError: Priced course without a covering payment
            AlreadyEnrolledError: An enrollment row already exists
        """
        course = await self.course_service.require_course(course_id)
        if not course.is_published:
            raise CourseNotFoundError

        now = datetime.now(UTC)
        enrollment = Enrollment(
            course_id=course_id,
            user_id=user.id,
            enrolled_at=now,
            lessons_total=self.course_service.total_lessons(course),
        )

        if not course.is_free:
            self._check_payment(course, payment)
            enrollment.payment_amount = payment.amount
            enrollment.payment_currency = payment.currency.upper()
            enrollment.transaction_id = payment.transaction_id
            enrollment.payment_method = payment.payment_method
            enrollment.paid_at = now

        if not await self.repository.create(enrollment):
            raise AlreadyEnrolledError

        logger.info(
            "user_enrolled",
            user_id=str(user.id),
            course_id=str(course_id),
            paid=not course.is_free,
        )

        await self._notify(
            user.id,
            title="Enrollment confirmed",
            message=f"You are now enrolled in {course.title}.",
            notification_type=NotificationType.ENROLLMENT,
            link=f"/courses/{course.slug}",
            metadata=NotificationMetadata(course_id=course_id),
        )
        return enrollment

    @staticmethod
    def _check_payment(course: "Course", payment: "PaymentConfirmation | None") -> None:
        if payment is None or not payment.confirmed:
            raise PaymentRequiredError
        if payment.currency.upper() != course.currency.upper():
            msg = f"Payment currency must be {course.currency}"
            raise PaymentRequiredError(msg)
        if payment.amount < course.price:
            msg = "Payment amount does not cover the course price"
            raise PaymentRequiredError(msg)

    async def get_enrollment(self, user_id: UUID, course_id: UUID) -> Enrollment | None:
        return await self.repository.get(user_id, course_id)

    async def require_access(self, user_id: UUID, course_id: UUID) -> Enrollment:
        """Return an enrollment that grants access (active or completed)."""
        enrollment = await self.repository.get(user_id, course_id)
        if enrollment is None or not enrollment.grants_access:
            raise NotEnrolledError
        return enrollment

    async def list_user_enrollments(self, user_id: UUID) -> list[Enrollment]:
        enrollments = await self.repository.list_for_user(user_id)
        return sorted(enrollments, key=lambda e: e.enrolled_at, reverse=True)

    # ==========================================================================
    # Lesson Completion
    # ==========================================================================

    async def toggle_lesson_completion(
        self, user_id: UUID, course_id: UUID, lesson_id: str
    ) -> ToggleResult:
        """Flip a lesson's completion and recompute progress atomically."""
        course = await self.course_service.require_course(course_id)
        self._validate_lesson_id(course, lesson_id)

        before, enrollment = await self._update_with_retry(
            user_id,
            course_id,
            lambda e: self._apply_completion(
                e, course, lesson_id, lesson_id not in e.completed_lessons
            ),
        )
        completed = lesson_id in enrollment.completed_lessons

        logger.info(
            "lesson_toggled",
            user_id=str(user_id),
            course_id=str(course_id),
            lesson_id=lesson_id,
            completed=completed,
            progress=enrollment.progress,
        )

        await self._after_progress_change(before, enrollment, course)
        return ToggleResult(enrollment=enrollment, lesson_id=lesson_id, completed=completed)

    async def set_lesson_completion(
        self,
        user_id: UUID,
        course_id: UUID,
        lesson_id: str,
        completed: bool = True,
    ) -> Enrollment:
        """Set a lesson's completion explicitly (no write when unchanged)."""
        course = await self.course_service.require_course(course_id)
        self._validate_lesson_id(course, lesson_id)

        before, enrollment = await self._update_with_retry(
            user_id,
            course_id,
            lambda e: self._apply_completion(e, course, lesson_id, completed),
        )
        await self._after_progress_change(before, enrollment, course)
        return enrollment

    @staticmethod
    def _validate_lesson_id(course: "Course", lesson_id: str) -> None:
        if course.has_curriculum and lesson_id not in lesson_ids(course):
            msg = f"Lesson '{lesson_id}' is not part of this course"
            raise MalformedSubmissionError(msg)

    def _apply_completion(
        self,
        enrollment: Enrollment,
        course: "Course",
        lesson_id: str,
        completed: bool,
    ) -> bool:
        if not enrollment.grants_access:
            raise NotEnrolledError

        already = lesson_id in enrollment.completed_lessons
        if completed == already:
            return False

        now = datetime.now(UTC)
        if completed:
            enrollment.completed_lessons[lesson_id] = now
        else:
            del enrollment.completed_lessons[lesson_id]

        self._refresh_projection(enrollment, course, now)
        return True

    def _refresh_projection(
        self, enrollment: Enrollment, course: "Course", now: datetime
    ) -> None:
        """Recompute the cached percentage and the automatic transitions."""
        snapshot = compute_progress(
            course,
            enrollment.completed_lesson_ids,
            lessons_per_module=self.settings.legacy_lessons_per_module,
        )
        enrollment.progress = snapshot.percentage
        enrollment.lessons_completed = snapshot.completed_count
        enrollment.lessons_total = snapshot.total_count

        if snapshot.is_complete and enrollment.status == EnrollmentStatus.ACTIVE.value:
            enrollment.status = EnrollmentStatus.COMPLETED.value
            enrollment.completed_at = now
        elif not snapshot.is_complete and enrollment.is_completed:
            enrollment.status = EnrollmentStatus.ACTIVE.value
            enrollment.completed_at = None

    async def _update_with_retry(
        self,
        user_id: UUID,
        course_id: UUID,
        mutate: Callable[[Enrollment], bool],
    ) -> tuple[str, Enrollment]:
        """Read-modify-write loop over ``UPDATE ... IF version = ?``.

        ``mutate`` edits the enrollment in place and returns False when
        nothing changed, in which case no write is issued.

        Returns:
            (status before the change, updated enrollment)
        """
        attempts = max(1, self.settings.progress_cas_retries)
        for attempt in range(1, attempts + 1):
            enrollment = await self.repository.get(user_id, course_id)
            if enrollment is None:
                raise NotEnrolledError

            before = enrollment.status
            expected_version = enrollment.version
            if not mutate(enrollment):
                return before, enrollment

            enrollment.version = expected_version + 1
            if await self.repository.compare_and_set(enrollment, expected_version):
                return before, enrollment

            logger.debug(
                "enrollment_cas_conflict",
                user_id=str(user_id),
                course_id=str(course_id),
                attempt=attempt,
            )

        logger.warning(
            "enrollment_cas_exhausted",
            user_id=str(user_id),
            course_id=str(course_id),
            attempts=attempts,
        )
        raise ConcurrentUpdateError

    async def resync_course(self, course: "Course") -> int:
        """Recompute every enrollment of a course against its current lessons.

        Runs after a curriculum edit changes the denominator. Completed
        enrollments drop back to active when lessons are added, active ones
        complete when the remaining lessons are all done.

        Returns:
            Number of enrollments whose projection changed
        """
        changed = 0
        for stored in await self.repository.list_for_course(course.id):
            if stored.status == EnrollmentStatus.CANCELLED.value:
                continue
            try:
                before, enrollment = await self._update_with_retry(
                    stored.user_id,
                    course.id,
                    lambda e: self._resync_projection(e, course),
                )
            except ConcurrentUpdateError:
                logger.warning(
                    "enrollment_resync_skipped",
                    user_id=str(stored.user_id),
                    course_id=str(course.id),
                )
                continue
            if enrollment.version != stored.version:
                changed += 1
            await self._after_progress_change(before, enrollment, course)

        logger.info("course_enrollments_resynced", course_id=str(course.id), changed=changed)
        return changed

    def _resync_projection(self, enrollment: Enrollment, course: "Course") -> bool:
        projection = (
            enrollment.status,
            enrollment.progress,
            enrollment.lessons_completed,
            enrollment.lessons_total,
        )
        self._refresh_projection(enrollment, course, datetime.now(UTC))
        return projection != (
            enrollment.status,
            enrollment.progress,
            enrollment.lessons_completed,
            enrollment.lessons_total,
        )

    async def _after_progress_change(
        self, before: str, enrollment: Enrollment, course: "Course"
    ) -> None:
        if before == enrollment.status:
            return

        if enrollment.is_completed:
            logger.info(
                "course_completed",
                user_id=str(enrollment.user_id),
                course_id=str(enrollment.course_id),
            )
            await self._notify(
                enrollment.user_id,
                title="Course completed",
                message=(
                    f"Congratulations! You completed {course.title}. "
                    "You can now request your certificate."
                ),
                notification_type=NotificationType.COMPLETION,
                link=f"/courses/{course.slug}",
                metadata=NotificationMetadata(course_id=course.id),
            )
        else:
            logger.info(
                "course_completion_reverted",
                user_id=str(enrollment.user_id),
                course_id=str(enrollment.course_id),
            )

    # ==========================================================================
    # Lifecycle
    # ==========================================================================

    async def pause(self, user_id: UUID, course_id: UUID) -> Enrollment:
        return await self._transition(user_id, course_id, EnrollmentStatus.PAUSED)

    async def resume(self, user_id: UUID, course_id: UUID) -> Enrollment:
        """Resume a paused enrollment.

        Progress is recomputed on the way back, so an enrollment whose
        remaining lessons were removed while paused resumes as completed.
        """
        course = await self.course_service.require_course(course_id)
        return await self._transition(user_id, course_id, EnrollmentStatus.ACTIVE, course)

    async def cancel(self, user_id: UUID, course_id: UUID) -> Enrollment:
        return await self._transition(user_id, course_id, EnrollmentStatus.CANCELLED)

    async def _transition(
        self,
        user_id: UUID,
        course_id: UUID,
        target: EnrollmentStatus,
        course: "Course | None" = None,
    ) -> Enrollment:
        def mutate(enrollment: Enrollment) -> bool:
            if enrollment.status not in MANUAL_TRANSITIONS[target]:
                raise InvalidEnrollmentTransitionError(enrollment.status, target.value)
            enrollment.status = target.value
            if course is not None:
                self._refresh_projection(enrollment, course, datetime.now(UTC))
            return True

        before, enrollment = await self._update_with_retry(user_id, course_id, mutate)
        logger.info(
            "enrollment_status_changed",
            user_id=str(user_id),
            course_id=str(course_id),
            from_status=before,
            to_status=enrollment.status,
        )
        if course is not None and enrollment.is_completed:
            await self._after_progress_change(before, enrollment, course)
        return enrollment

    # ==========================================================================
    # Lesson Access
    # ==========================================================================

    async def access(self, user_id: UUID, course_id: UUID, lesson_id: str):
        """Return (enrollment, module, lesson) for an enrolled user.

        Raises:
            NotEnrolledError: No active or completed enrollment
            LessonNotFoundError: Lesson is not in the course curriculum
        """
        course = await self.course_service.require_course(course_id)
        enrollment = await self.require_access(user_id, course_id)

        found = find_lesson(course, lesson_id)
        if found is None:
            raise LessonNotFoundError
        module, lesson = found

        now = datetime.now(UTC)
        await self.repository.touch(user_id, course_id, lesson_id, now)
        enrollment.last_accessed_at = now
        enrollment.last_lesson_id = lesson_id
        return enrollment, module, lesson

    async def update_lesson_progress(
        self,
        user_id: UUID,
        course_id: UUID,
        lesson_id: str,
        position_seconds: int | None = None,
        duration_seconds: int | None = None,
        notes: str | None = None,
    ) -> LessonProgress:
        """Record playback position and notes for a lesson.

        Watch time accumulates the distance between successive positions.
        Completion is unaffected; it only changes through the completion
        operations.

        Raises:
            MalformedSubmissionError: Notes longer than NOTES_MAX_LENGTH
            NotEnrolledError: No active or completed enrollment
            LessonNotFoundError: Lesson is not in the course curriculum
        """
        if notes is not None and len(notes) > NOTES_MAX_LENGTH:
            msg = f"Notes cannot exceed {NOTES_MAX_LENGTH} characters"
            raise MalformedSubmissionError(msg)

        _, module, lesson = await self.access(user_id, course_id, lesson_id)

        now = datetime.now(UTC)
        progress = await self.repository.get_lesson_progress(user_id, course_id, lesson_id)
        if progress is None:
            progress = LessonProgress(
                user_id=user_id,
                course_id=course_id,
                lesson_id=lesson_id,
                module_id=module.id,
                duration_seconds=lesson.duration_seconds or None,
                started_at=now,
            )

        if duration_seconds is not None:
            progress.duration_seconds = duration_seconds
        if position_seconds is not None:
            if progress.duration_seconds:
                position_seconds = min(position_seconds, progress.duration_seconds)
            progress.watch_time_seconds += abs(
                position_seconds - progress.last_position_seconds
            )
            progress.last_position_seconds = position_seconds
        if notes is not None:
            progress.notes = notes or None
        progress.last_accessed_at = now

        await self.repository.save_lesson_progress(progress)

        logger.debug(
            "lesson_progress_updated",
            user_id=str(user_id),
            course_id=str(course_id),
            lesson_id=lesson_id,
            position=progress.last_position_seconds,
        )
        return progress

    async def get_lesson_progress(
        self, user_id: UUID, course_id: UUID, lesson_id: str
    ) -> LessonProgress | None:
        return await self.repository.get_lesson_progress(user_id, course_id, lesson_id)

    # ==========================================================================
    # Aggregation
    # ==========================================================================

    async def get_course_progress(
        self, user_id: UUID, course_id: UUID
    ) -> CourseProgressResponse:
        enrollment = await self.repository.get(user_id, course_id)
        if enrollment is None:
            raise NotEnrolledError
        course = await self.course_service.require_course(course_id)

        done = enrollment.completed_lesson_ids
        snapshot = compute_progress(
            course, done, lessons_per_module=self.settings.legacy_lessons_per_module
        )

        modules = []
        resume_lesson_id = enrollment.last_lesson_id
        if course.curriculum is not None:
            for module in course.curriculum.modules:
                module_ids = [lesson.id for lesson in module.lessons]
                completed = sum(1 for lid in module_ids if lid in done)
                modules.append(
                    ModuleProgressSummary(
                        module_id=module.id,
                        title=module.title,
                        lessons_completed=completed,
                        lessons_total=len(module_ids),
                        percentage=percentage_of(completed, len(module_ids)),
                    )
                )
            if resume_lesson_id is None:
                resume_lesson_id = next(
                    (
                        lesson.id
                        for _, lesson in course.curriculum.iter_lessons()
                        if lesson.id not in done
                    ),
                    None,
                )

        lesson_rows = {
            row.lesson_id: row
            for row in await self.repository.list_lesson_progress(user_id, course_id)
        }
        resume_row = lesson_rows.get(resume_lesson_id) if resume_lesson_id else None

        return CourseProgressResponse(
            course_id=course_id,
            course_title=course.title,
            status=EnrollmentStatus(enrollment.status),
            percentage=snapshot.percentage,
            lessons_completed=snapshot.completed_count,
            lessons_total=snapshot.total_count,
            is_complete=snapshot.is_complete,
            completed_lesson_ids=sorted(done),
            modules=modules,
            resume_lesson_id=resume_lesson_id,
            resume_position_seconds=(
                resume_row.last_position_seconds if resume_row else 0
            ),
            watch_time_seconds=sum(r.watch_time_seconds for r in lesson_rows.values()),
            enrolled_at=enrollment.enrolled_at,
            completed_at=enrollment.completed_at,
            last_accessed_at=enrollment.last_accessed_at,
        )

    async def get_user_summary(self, user_id: UUID) -> UserProgressSummary:
        enrollments = [
            e
            for e in await self.repository.list_for_user(user_id)
            if e.status != EnrollmentStatus.CANCELLED.value
        ]
        completed = sum(1 for e in enrollments if e.is_completed)
        in_progress = sum(
            1
            for e in enrollments
            if e.status == EnrollmentStatus.ACTIVE.value and e.lessons_completed > 0
        )
        average = (
            percentage_of(sum(e.progress for e in enrollments), 100 * len(enrollments))
            if enrollments
            else 0
        )
        return UserProgressSummary(
            courses_enrolled=len(enrollments),
            courses_completed=completed,
            courses_in_progress=in_progress,
            lessons_completed=sum(e.lessons_completed for e in enrollments),
            lessons_total=sum(e.lessons_total for e in enrollments),
            average_progress=average,
        )

    # ==========================================================================
    # Helpers
    # ==========================================================================

    async def _notify(self, user_id: UUID, **kwargs) -> None:
        """Notify without failing the already committed operation."""
        if self.notification_service is None:
            return
        try:
            await self.notification_service.notify(user_id, **kwargs)
        except TransientStorageError:
            logger.warning(
                "notification_failed",
                user_id=str(user_id),
                type=kwargs.get("notification_type"),
            )
