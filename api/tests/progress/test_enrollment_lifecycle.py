"""Tests for enrollment, lesson completion and status transitions."""

import asyncio
from decimal import Decimal
from uuid import uuid4

import pytest

from factories import grid_curriculum
from src.core.errors import MalformedSubmissionError
from src.courses.models import ContentStatus
from src.courses.service import CourseNotFoundError, LessonNotFoundError
from src.notifications.models import NotificationType
from src.progress.calculator import compute_progress
from src.progress.models import EnrollmentStatus
from src.progress.schemas import PaymentConfirmation
from src.progress.service import (
    AlreadyEnrolledError,
    ConcurrentUpdateError,
    InvalidEnrollmentTransitionError,
    NotEnrolledError,
    PaymentRequiredError,
)


def _payment(amount: str = "20", currency: str = "USD", confirmed: bool = True):
    return PaymentConfirmation(
        confirmed=confirmed,
        amount=Decimal(amount),
        currency=currency,
        transaction_id="tx-1001",
        payment_method="moncash",
    )


def _types(notification_repo, user_id) -> list[NotificationType]:
    return [n.type for n in notification_repo.feed(user_id)]


class TestEnroll:
    """Tests for creating enrollments."""

    @pytest.mark.asyncio
    async def test_free_course(self, progress_service, make_course, student, notification_repo):
        course = make_course(curriculum=grid_curriculum("free"))

        enrollment = await progress_service.enroll(student, course.id)

        assert enrollment.status == EnrollmentStatus.ACTIVE.value
        assert enrollment.progress == 0
        assert enrollment.lessons_total == 9
        assert enrollment.version == 0
        assert enrollment.payment_amount is None
        assert _types(notification_repo, student.id) == [NotificationType.ENROLLMENT]

    @pytest.mark.asyncio
    async def test_paid_course_records_payment(self, progress_service, make_course, student):
        course = make_course(module_count=2, price=Decimal("20"))

        enrollment = await progress_service.enroll(student, course.id, _payment(currency="usd"))

        assert enrollment.payment_amount == Decimal("20")
        assert enrollment.payment_currency == "USD"
        assert enrollment.transaction_id == "tx-1001"
        assert enrollment.paid_at is not None

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payment",
        [
            None,
            _payment(confirmed=False),
            _payment(currency="HTG"),
            _payment(amount="19.99"),
        ],
    )
    async def test_paid_course_requires_covering_payment(
        self, progress_service, make_course, student, enrollment_repo, payment
    ):
        course = make_course(module_count=2, price=Decimal("20"))

        with pytest.raises(PaymentRequiredError):
            await progress_service.enroll(student, course.id, payment)

        assert enrollment_repo.rows == {}

    @pytest.mark.asyncio
    async def test_second_enrollment_conflicts(self, progress_service, make_course, student):
        course = make_course(module_count=1)
        await progress_service.enroll(student, course.id)

        with pytest.raises(AlreadyEnrolledError):
            await progress_service.enroll(student, course.id)

    @pytest.mark.asyncio
    async def test_concurrent_enrollments_create_one_row(
        self, progress_service, make_course, student, enrollment_repo
    ):
        course = make_course(module_count=1)

        results = await asyncio.gather(
            progress_service.enroll(student, course.id),
            progress_service.enroll(student, course.id),
            return_exceptions=True,
        )

        assert sum(1 for r in results if isinstance(r, AlreadyEnrolledError)) == 1
        assert len(enrollment_repo.rows) == 1

    @pytest.mark.asyncio
    async def test_unpublished_course_is_not_found(self, progress_service, make_course, student):
        course = make_course(module_count=1, status=ContentStatus.DRAFT)

        with pytest.raises(CourseNotFoundError):
            await progress_service.enroll(student, course.id)

    @pytest.mark.asyncio
    async def test_unknown_course(self, progress_service, student):
        with pytest.raises(CourseNotFoundError):
            await progress_service.enroll(student, uuid4())


class TestToggleLessonCompletion:
    """Tests for completion toggling and the cached projection."""

    @pytest.mark.asyncio
    async def test_toggle_twice_restores_state(
        self, progress_service, make_course, student, enrollment_repo
    ):
        course = make_course(curriculum=grid_curriculum("t"))
        await progress_service.enroll(student, course.id)

        first = await progress_service.toggle_lesson_completion(student.id, course.id, "t-m1-l1")
        second = await progress_service.toggle_lesson_completion(student.id, course.id, "t-m1-l1")

        assert first.completed is True
        assert first.enrollment.progress == 11
        assert second.completed is False
        stored = enrollment_repo.stored(student.id, course.id)
        assert stored.completed_lessons == {}
        assert stored.progress == 0
        assert stored.lessons_completed == 0
        assert stored.version == 2

    @pytest.mark.asyncio
    async def test_completing_every_lesson_completes_course(
        self, progress_service, make_course, student, enrollment_repo, notification_repo
    ):
        course = make_course(curriculum=grid_curriculum("all"))
        await progress_service.enroll(student, course.id)

        for _, lesson in course.curriculum.iter_lessons():
            result = await progress_service.toggle_lesson_completion(
                student.id, course.id, lesson.id
            )
            stored = enrollment_repo.stored(student.id, course.id)
            recomputed = compute_progress(course, stored.completed_lesson_ids)
            assert stored.progress == recomputed.percentage
            assert stored.lessons_completed == recomputed.completed_count
            assert result.enrollment.progress == stored.progress

        stored = enrollment_repo.stored(student.id, course.id)
        assert stored.progress == 100
        assert stored.status == EnrollmentStatus.COMPLETED.value
        assert stored.completed_at is not None
        assert _types(notification_repo, student.id).count(NotificationType.COMPLETION) == 1

    @pytest.mark.asyncio
    async def test_three_of_nine(self, progress_service, make_course, student):
        course = make_course(curriculum=grid_curriculum("part"))
        await progress_service.enroll(student, course.id)

        for lesson_id in ("part-m1-l1", "part-m1-l2", "part-m1-l3"):
            result = await progress_service.toggle_lesson_completion(
                student.id, course.id, lesson_id
            )

        assert result.enrollment.progress == 33
        assert result.enrollment.status == EnrollmentStatus.ACTIVE.value

    @pytest.mark.asyncio
    async def test_uncompleting_reverts_to_active(
        self, progress_service, make_course, student, enrollment_repo
    ):
        course = make_course(curriculum=grid_curriculum("rev", modules=1, lessons=2))
        await progress_service.enroll(student, course.id)
        await progress_service.toggle_lesson_completion(student.id, course.id, "rev-m1-l1")
        await progress_service.toggle_lesson_completion(student.id, course.id, "rev-m1-l2")

        result = await progress_service.toggle_lesson_completion(
            student.id, course.id, "rev-m1-l2"
        )

        assert result.enrollment.status == EnrollmentStatus.ACTIVE.value
        assert result.enrollment.completed_at is None
        assert enrollment_repo.stored(student.id, course.id).progress == 50

    @pytest.mark.asyncio
    async def test_foreign_lesson_id_is_rejected(
        self, progress_service, make_course, student, enrollment_repo
    ):
        course = make_course(curriculum=grid_curriculum("own"))
        make_course(curriculum=grid_curriculum("other"))
        await progress_service.enroll(student, course.id)

        with pytest.raises(MalformedSubmissionError):
            await progress_service.toggle_lesson_completion(student.id, course.id, "other-m1-l1")

        assert enrollment_repo.stored(student.id, course.id).version == 0

    @pytest.mark.asyncio
    async def test_legacy_course_accepts_any_id_and_clamps(
        self, progress_service, make_course, student
    ):
        course = make_course(module_count=1)
        await progress_service.enroll(student, course.id)

        for n in range(5):
            result = await progress_service.toggle_lesson_completion(
                student.id, course.id, f"legacy-{n}"
            )

        assert result.enrollment.lessons_completed == 3
        assert result.enrollment.progress == 100
        assert result.enrollment.status == EnrollmentStatus.COMPLETED.value

    @pytest.mark.asyncio
    async def test_requires_enrollment(self, progress_service, make_course, student):
        course = make_course(curriculum=grid_curriculum("ne"))

        with pytest.raises(NotEnrolledError):
            await progress_service.toggle_lesson_completion(student.id, course.id, "ne-m1-l1")

    @pytest.mark.asyncio
    async def test_set_completion_is_idempotent(
        self, progress_service, make_course, student, enrollment_repo
    ):
        course = make_course(curriculum=grid_curriculum("set"))
        await progress_service.enroll(student, course.id)

        await progress_service.set_lesson_completion(student.id, course.id, "set-m1-l1")
        await progress_service.set_lesson_completion(student.id, course.id, "set-m1-l1")

        stored = enrollment_repo.stored(student.id, course.id)
        assert stored.version == 1
        assert stored.lessons_completed == 1


class TestConcurrentUpdates:
    """Compare-and-set retries on the enrollment row."""

    @pytest.mark.asyncio
    async def test_lost_round_is_retried(
        self, progress_service, make_course, student, enrollment_repo
    ):
        course = make_course(curriculum=grid_curriculum("cas"))
        await progress_service.enroll(student, course.id)
        enrollment_repo.lose_next_cas = 1

        result = await progress_service.toggle_lesson_completion(
            student.id, course.id, "cas-m1-l1"
        )

        assert result.completed
        assert enrollment_repo.cas_calls == 2
        assert enrollment_repo.stored(student.id, course.id).lessons_completed == 1

    @pytest.mark.asyncio
    async def test_exhausted_retries(
        self, progress_service, make_course, student, enrollment_repo
    ):
        course = make_course(curriculum=grid_curriculum("cas"))
        await progress_service.enroll(student, course.id)
        enrollment_repo.lose_next_cas = 3

        with pytest.raises(ConcurrentUpdateError):
            await progress_service.toggle_lesson_completion(student.id, course.id, "cas-m1-l1")

        assert enrollment_repo.cas_calls == 3
        assert enrollment_repo.stored(student.id, course.id).completed_lessons == {}

    @pytest.mark.asyncio
    async def test_concurrent_toggles_keep_every_lesson(
        self, progress_service, make_course, student, enrollment_repo
    ):
        course = make_course(curriculum=grid_curriculum("par"))
        await progress_service.enroll(student, course.id)
        lesson_ids = ["par-m1-l1", "par-m1-l2", "par-m1-l3"]

        await asyncio.gather(
            *(
                progress_service.toggle_lesson_completion(student.id, course.id, lesson_id)
                for lesson_id in lesson_ids
            )
        )

        stored = enrollment_repo.stored(student.id, course.id)
        assert sorted(stored.completed_lessons) == lesson_ids
        assert stored.lessons_completed == 3
        assert stored.progress == 33
        assert stored.version == 3


class TestTransitions:
    """Manual pause, resume and cancel."""

    @pytest.mark.asyncio
    async def test_pause_and_resume(self, progress_service, make_course, student):
        course = make_course(curriculum=grid_curriculum("pz"))
        await progress_service.enroll(student, course.id)

        paused = await progress_service.pause(student.id, course.id)
        assert paused.status == EnrollmentStatus.PAUSED.value

        with pytest.raises(NotEnrolledError):
            await progress_service.toggle_lesson_completion(student.id, course.id, "pz-m1-l1")

        resumed = await progress_service.resume(student.id, course.id)
        assert resumed.status == EnrollmentStatus.ACTIVE.value

    @pytest.mark.asyncio
    async def test_cancelled_is_terminal(self, progress_service, make_course, student):
        course = make_course(module_count=1)
        await progress_service.enroll(student, course.id)
        await progress_service.cancel(student.id, course.id)

        with pytest.raises(InvalidEnrollmentTransitionError) as exc_info:
            await progress_service.resume(student.id, course.id)

        assert exc_info.value.current == EnrollmentStatus.CANCELLED.value
        with pytest.raises(NotEnrolledError):
            await progress_service.require_access(student.id, course.id)

    @pytest.mark.asyncio
    async def test_completed_cannot_be_paused(self, progress_service, make_course, student):
        course = make_course(curriculum=grid_curriculum("done", modules=1, lessons=1))
        await progress_service.enroll(student, course.id)
        await progress_service.toggle_lesson_completion(student.id, course.id, "done-m1-l1")

        with pytest.raises(InvalidEnrollmentTransitionError):
            await progress_service.pause(student.id, course.id)

        # Completed enrollments keep access
        enrollment = await progress_service.require_access(student.id, course.id)
        assert enrollment.is_completed

    @pytest.mark.asyncio
    async def test_resume_active_enrollment(self, progress_service, make_course, student):
        course = make_course(module_count=1)
        await progress_service.enroll(student, course.id)

        with pytest.raises(InvalidEnrollmentTransitionError):
            await progress_service.resume(student.id, course.id)


class TestAccessAndAggregation:
    """Lesson access, course progress and user summaries."""

    @pytest.mark.asyncio
    async def test_access_stamps_last_lesson(
        self, progress_service, make_course, student, enrollment_repo
    ):
        course = make_course(curriculum=grid_curriculum("acc"))
        await progress_service.enroll(student, course.id)

        enrollment, module, lesson = await progress_service.access(
            student.id, course.id, "acc-m2-l3"
        )

        assert module.id == "acc-m2"
        assert lesson.id == "acc-m2-l3"
        assert enrollment.last_lesson_id == "acc-m2-l3"
        stored = enrollment_repo.stored(student.id, course.id)
        assert stored.last_lesson_id == "acc-m2-l3"
        assert stored.last_accessed_at is not None
        assert stored.version == 0

    @pytest.mark.asyncio
    async def test_access_requires_enrollment(self, progress_service, make_course, student):
        course = make_course(curriculum=grid_curriculum("gate"))

        with pytest.raises(NotEnrolledError):
            await progress_service.access(student.id, course.id, "gate-m1-l1")

    @pytest.mark.asyncio
    async def test_access_unknown_lesson(self, progress_service, make_course, student):
        course = make_course(curriculum=grid_curriculum("unk"))
        await progress_service.enroll(student, course.id)

        with pytest.raises(LessonNotFoundError):
            await progress_service.access(student.id, course.id, "nope")

    @pytest.mark.asyncio
    async def test_course_progress_breakdown(self, progress_service, make_course, student):
        course = make_course(curriculum=grid_curriculum("cp", modules=2, lessons=2))
        await progress_service.enroll(student, course.id)
        await progress_service.toggle_lesson_completion(student.id, course.id, "cp-m1-l1")

        progress = await progress_service.get_course_progress(student.id, course.id)

        assert progress.percentage == 25
        assert progress.lessons_total == 4
        assert progress.completed_lesson_ids == ["cp-m1-l1"]
        assert [m.percentage for m in progress.modules] == [50, 0]
        assert progress.resume_lesson_id == "cp-m1-l2"
        assert not progress.is_complete

    @pytest.mark.asyncio
    async def test_resume_prefers_last_accessed_lesson(
        self, progress_service, make_course, student
    ):
        course = make_course(curriculum=grid_curriculum("rs"))
        await progress_service.enroll(student, course.id)
        await progress_service.access(student.id, course.id, "rs-m3-l1")

        progress = await progress_service.get_course_progress(student.id, course.id)

        assert progress.resume_lesson_id == "rs-m3-l1"

    @pytest.mark.asyncio
    async def test_user_summary_skips_cancelled(self, progress_service, make_course, student):
        done = make_course(curriculum=grid_curriculum("s1", modules=1, lessons=1))
        half = make_course(curriculum=grid_curriculum("s2", modules=1, lessons=2))
        dropped = make_course(curriculum=grid_curriculum("s3", modules=1, lessons=2))
        for course in (done, half, dropped):
            await progress_service.enroll(student, course.id)
        await progress_service.toggle_lesson_completion(student.id, done.id, "s1-m1-l1")
        await progress_service.toggle_lesson_completion(student.id, half.id, "s2-m1-l1")
        await progress_service.cancel(student.id, dropped.id)

        summary = await progress_service.get_user_summary(student.id)

        assert summary.courses_enrolled == 2
        assert summary.courses_completed == 1
        assert summary.courses_in_progress == 1
        assert summary.lessons_completed == 2
        assert summary.lessons_total == 3
        assert summary.average_progress == 75
