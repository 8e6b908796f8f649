"""Tests for per-lesson playback position, watch time and notes."""

import pytest

from factories import grid_curriculum
from src.core.errors import MalformedSubmissionError
from src.courses.service import LessonNotFoundError
from src.progress.models import NOTES_MAX_LENGTH
from src.progress.service import NotEnrolledError


class TestUpdateLessonProgress:
    @pytest.mark.asyncio
    async def test_first_update_creates_row(
        self, progress_service, make_course, student, enrollment_repo
    ):
        course = make_course(curriculum=grid_curriculum("pos"))
        await progress_service.enroll(student, course.id)

        progress = await progress_service.update_lesson_progress(
            student.id, course.id, "pos-m2-l1", position_seconds=120
        )

        assert progress.module_id == "pos-m2"
        assert progress.last_position_seconds == 120
        assert progress.watch_time_seconds == 120
        assert progress.duration_seconds == 600
        assert progress.started_at is not None
        assert progress.last_accessed_at == progress.started_at
        stored = enrollment_repo.stored(student.id, course.id)
        assert stored.last_lesson_id == "pos-m2-l1"

    @pytest.mark.asyncio
    async def test_watch_time_accumulates_seeks(self, progress_service, make_course, student):
        course = make_course(curriculum=grid_curriculum("seek"))
        await progress_service.enroll(student, course.id)

        for position in (100, 300, 250):
            progress = await progress_service.update_lesson_progress(
                student.id, course.id, "seek-m1-l1", position_seconds=position
            )

        assert progress.last_position_seconds == 250
        assert progress.watch_time_seconds == 350

    @pytest.mark.asyncio
    async def test_position_is_clamped_to_duration(self, progress_service, make_course, student):
        course = make_course(curriculum=grid_curriculum("clamp"))
        await progress_service.enroll(student, course.id)

        progress = await progress_service.update_lesson_progress(
            student.id, course.id, "clamp-m1-l1", position_seconds=900, duration_seconds=480
        )

        assert progress.duration_seconds == 480
        assert progress.last_position_seconds == 480

    @pytest.mark.asyncio
    async def test_notes_are_kept_across_position_updates(
        self, progress_service, make_course, student
    ):
        course = make_course(curriculum=grid_curriculum("note"))
        await progress_service.enroll(student, course.id)

        await progress_service.update_lesson_progress(
            student.id, course.id, "note-m1-l2", notes="Review flexbox"
        )
        progress = await progress_service.update_lesson_progress(
            student.id, course.id, "note-m1-l2", position_seconds=30
        )

        assert progress.notes == "Review flexbox"
        assert progress.last_position_seconds == 30

    @pytest.mark.asyncio
    async def test_completion_is_unchanged(
        self, progress_service, make_course, student, enrollment_repo
    ):
        course = make_course(curriculum=grid_curriculum("watch", modules=1, lessons=1))
        await progress_service.enroll(student, course.id)

        await progress_service.update_lesson_progress(
            student.id, course.id, "watch-m1-l1", position_seconds=600
        )

        stored = enrollment_repo.stored(student.id, course.id)
        assert stored.progress == 0
        assert stored.completed_lessons == {}

    @pytest.mark.asyncio
    async def test_notes_limit(self, progress_service, make_course, student, enrollment_repo):
        course = make_course(curriculum=grid_curriculum("long"))
        await progress_service.enroll(student, course.id)

        with pytest.raises(MalformedSubmissionError):
            await progress_service.update_lesson_progress(
                student.id, course.id, "long-m1-l1", notes="x" * (NOTES_MAX_LENGTH + 1)
            )
        assert enrollment_repo.lesson_rows == {}

    @pytest.mark.asyncio
    async def test_requires_enrollment(self, progress_service, make_course, student):
        course = make_course(curriculum=grid_curriculum("anon"))

        with pytest.raises(NotEnrolledError):
            await progress_service.update_lesson_progress(
                student.id, course.id, "anon-m1-l1", position_seconds=10
            )

    @pytest.mark.asyncio
    async def test_paused_enrollment_is_rejected(self, progress_service, make_course, student):
        course = make_course(curriculum=grid_curriculum("nap"))
        await progress_service.enroll(student, course.id)
        await progress_service.pause(student.id, course.id)

        with pytest.raises(NotEnrolledError):
            await progress_service.update_lesson_progress(
                student.id, course.id, "nap-m1-l1", position_seconds=10
            )

    @pytest.mark.asyncio
    async def test_unknown_lesson(self, progress_service, make_course, student):
        course = make_course(curriculum=grid_curriculum("miss"))
        await progress_service.enroll(student, course.id)

        with pytest.raises(LessonNotFoundError):
            await progress_service.update_lesson_progress(
                student.id, course.id, "miss-m9-l9", position_seconds=10
            )


class TestCourseProgressPlayback:
    @pytest.mark.asyncio
    async def test_resume_position_and_total_watch_time(
        self, progress_service, make_course, student
    ):
        course = make_course(curriculum=grid_curriculum("play"))
        await progress_service.enroll(student, course.id)
        await progress_service.update_lesson_progress(
            student.id, course.id, "play-m1-l1", position_seconds=200
        )
        await progress_service.update_lesson_progress(
            student.id, course.id, "play-m1-l2", position_seconds=45
        )

        result = await progress_service.get_course_progress(student.id, course.id)

        assert result.resume_lesson_id == "play-m1-l2"
        assert result.resume_position_seconds == 45
        assert result.watch_time_seconds == 245

    @pytest.mark.asyncio
    async def test_defaults_without_playback(self, progress_service, make_course, student):
        course = make_course(curriculum=grid_curriculum("cold"))
        await progress_service.enroll(student, course.id)

        result = await progress_service.get_course_progress(student.id, course.id)

        assert result.resume_position_seconds == 0
        assert result.watch_time_seconds == 0
