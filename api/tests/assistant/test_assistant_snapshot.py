"""Tests for the assistant context snapshot."""

import pytest

from factories import grid_curriculum
from src.courses.models import ContentStatus
from src.progress.models import EnrollmentStatus


class TestBuildSnapshot:
    @pytest.mark.asyncio
    async def test_empty_user(self, assistant_service, make_course, student):
        make_course(title="Published", module_count=1)
        make_course(title="Hidden draft", status=ContentStatus.DRAFT)

        snapshot = await assistant_service.build_snapshot(student.id)

        assert snapshot.enrolled_courses == []
        assert [entry.title for entry in snapshot.course_catalog] == ["Published"]

    @pytest.mark.asyncio
    async def test_progress_matches_calculator(
        self, assistant_service, progress_service, make_course, student
    ):
        course = make_course(title="Python", curriculum=grid_curriculum("py"))
        dropped = make_course(title="Dropped", module_count=1)
        await progress_service.enroll(student, course.id)
        await progress_service.enroll(student, dropped.id)
        for lesson_id in ("py-m1-l1", "py-m1-l2", "py-m1-l3"):
            await progress_service.toggle_lesson_completion(student.id, course.id, lesson_id)
        await progress_service.cancel(student.id, dropped.id)

        snapshot = await assistant_service.build_snapshot(student.id)

        assert len(snapshot.enrolled_courses) == 1
        entry = snapshot.enrolled_courses[0]
        assert entry.course_id == course.id
        assert entry.percentage_complete == 33
        assert entry.status == EnrollmentStatus.ACTIVE
        assert {c.title for c in snapshot.course_catalog} == {"Python", "Dropped"}

    @pytest.mark.asyncio
    async def test_snapshot_is_per_user(
        self, assistant_service, progress_service, make_course, student, other_student
    ):
        course = make_course(curriculum=grid_curriculum("own"))
        await progress_service.enroll(student, course.id)

        snapshot = await assistant_service.build_snapshot(other_student.id)

        assert snapshot.enrolled_courses == []
