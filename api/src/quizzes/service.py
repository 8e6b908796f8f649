"""Quiz attempt service layer.

Business logic for:
- Scoring submissions and recording numbered attempts
- Marking quiz lessons complete on a passing attempt
- Attempt history and best attempt lookup
"""

from collections.abc import Sequence
from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

import structlog
from fastapi import status

from src.config.settings import get_settings
from src.core.errors import DomainError, TransientStorageError
from src.courses.curriculum import QuizLesson, find_lesson
from src.courses.service import LessonNotFoundError
from src.notifications.models import (
    NotificationMetadata,
    NotificationPriority,
    NotificationType,
)

from .models import QuizAttempt
from .scoring import QuizAnswer, score_submission


if TYPE_CHECKING:
    from src.config.settings import Settings
    from src.notifications.service import NotificationService
    from src.progress.service import ProgressService

    from .repository import QuizAttemptRepository

logger = structlog.get_logger(__name__)


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class QuizError(DomainError):
    """Base quiz error."""

    def __init__(self, message: str, code: str = "quiz_error"):
        super().__init__(message, code)


class NotAQuizLessonError(QuizError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY

    def __init__(self, message: str = "Lesson has no quiz"):
        super().__init__(message, "not_a_quiz_lesson")


class DuplicateAttemptRaceError(QuizError):
    """Attempt numbering kept colliding with concurrent submissions."""

    status_code = status.HTTP_409_CONFLICT

    def __init__(self, message: str = "Concurrent quiz submissions, try again"):
        super().__init__(message, "duplicate_attempt_race")


# ==============================================================================
# Quiz Service
# ==============================================================================


class QuizService:
    """Service for quiz submissions."""

    def __init__(
        self,
        repository: "QuizAttemptRepository",
        progress_service: "ProgressService",
        notification_service: "NotificationService | None" = None,
        settings: "Settings | None" = None,
    ):
        self.repository = repository
        self.progress_service = progress_service
        self.notification_service = notification_service
        self.settings = settings or get_settings()

    async def submit(
        self,
        user_id: UUID,
        course_id: UUID,
        lesson_id: str,
        answers: Sequence[QuizAnswer],
        started_at: datetime | None = None,
    ) -> QuizAttempt:
        """Score and record a quiz submission.

        Raises:
            NotEnrolledError: No active or completed enrollment
            LessonNotFoundError: Lesson is not in the course
            NotAQuizLessonError: Lesson carries no quiz
            MalformedSubmissionError: Answers do not match the quiz
            DuplicateAttemptRaceError: Numbering retries exhausted
        """
        course = await self.progress_service.course_service.require_course(course_id)
        await self.progress_service.require_access(user_id, course_id)

        found = find_lesson(course, lesson_id)
        if found is None:
            raise LessonNotFoundError
        _, lesson = found
        if not isinstance(lesson, QuizLesson):
            raise NotAQuizLessonError

        score = score_submission(lesson.quiz, answers)
        attempt = await self._record(
            QuizAttempt.from_score(
                user_id=user_id,
                course_id=course_id,
                lesson_id=lesson_id,
                attempt_number=0,
                score=score,
                started_at=started_at,
            )
        )

        logger.info(
            "quiz_attempt_recorded",
            user_id=str(user_id),
            course_id=str(course_id),
            lesson_id=lesson_id,
            attempt_number=attempt.attempt_number,
            percentage=attempt.percentage,
            passed=attempt.passed,
        )

        if attempt.passed:
            await self.progress_service.set_lesson_completion(
                user_id, course_id, lesson_id, completed=True
            )

        await self._notify_result(attempt, lesson.quiz.title or lesson.title)
        return attempt

    async def _record(self, attempt: QuizAttempt) -> QuizAttempt:
        """Insert with the next free attempt number, retrying lost races."""
        retries = max(1, self.settings.quiz_attempt_retries)
        for retry in range(1, retries + 1):
            number = (
                await self.repository.latest_number(attempt.user_id, attempt.lesson_id) + 1
            )
            numbered = attempt.with_number(number)
            if await self.repository.insert(numbered):
                return numbered
            logger.debug(
                "quiz_attempt_number_taken",
                user_id=str(attempt.user_id),
                lesson_id=attempt.lesson_id,
                attempt_number=number,
                retry=retry,
            )

        logger.warning(
            "quiz_attempt_race_exhausted",
            user_id=str(attempt.user_id),
            lesson_id=attempt.lesson_id,
        )
        raise DuplicateAttemptRaceError

    async def _notify_result(self, attempt: QuizAttempt, quiz_title: str) -> None:
        if self.notification_service is None:
            return

        outcome = "passed" if attempt.passed else "did not pass"
        try:
            await self.notification_service.notify(
                attempt.user_id,
                title=f"Quiz result: {quiz_title}",
                message=(
                    f"You {outcome} with {attempt.percentage}% "
                    f"(passing score {attempt.passing_score}%)."
                ),
                notification_type=NotificationType.QUIZ_RESULT,
                priority=NotificationPriority.NORMAL
                if attempt.passed
                else NotificationPriority.LOW,
                metadata=NotificationMetadata(
                    course_id=attempt.course_id,
                    lesson_id=attempt.lesson_id,
                    attempt_id=attempt.attempt_id,
                ),
            )
        except TransientStorageError:
            logger.warning("notification_failed", user_id=str(attempt.user_id))

    # ==========================================================================
    # History
    # ==========================================================================

    async def list_attempts(self, user_id: UUID, lesson_id: str) -> list[QuizAttempt]:
        """Attempts for a lesson, newest first."""
        return await self.repository.list_for_lesson(user_id, lesson_id)

    async def attempt_count(self, user_id: UUID, lesson_id: str) -> int:
        return await self.repository.latest_number(user_id, lesson_id)

    async def best_attempt(self, user_id: UUID, lesson_id: str) -> QuizAttempt | None:
        """Highest percentage; the earliest attempt wins ties."""
        attempts = await self.repository.list_for_lesson(user_id, lesson_id)
        if not attempts:
            return None
        return max(attempts, key=lambda a: (a.percentage, -a.attempt_number))
