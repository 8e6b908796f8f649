"""Enrollment and progress API endpoints.

Provides routes for:
- Course enrollment (with payment confirmation for priced courses)
- Pause, resume and cancel
- Lesson completion toggling
- Gated lesson content
- Playback position and notes per lesson
- Progress queries
"""

from uuid import UUID

from fastapi import APIRouter, status

from src.auth.dependencies import CurrentUser
from src.courses.curriculum import find_lesson
from src.courses.dependencies import CourseServiceDep
from src.courses.schemas import student_lesson_view
from src.courses.service import LessonNotFoundError

from .dependencies import ProgressServiceDep
from .schemas import (
    CourseProgressResponse,
    EnrollmentListResponse,
    EnrollmentResponse,
    EnrollRequest,
    LessonContentResponse,
    LessonProgressResponse,
    LessonToggleResponse,
    UpdateLessonProgressRequest,
    UserProgressSummary,
)


router = APIRouter(prefix="/v1/progress", tags=["progress"])
enrollments_router = APIRouter(prefix="/v1/enrollments", tags=["enrollments"])


# ==============================================================================
# Enrollment Endpoints
# ==============================================================================


@enrollments_router.post(
    "",
    response_model=EnrollmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Enroll in course",
)
async def enroll_in_course(
    data: EnrollRequest,
    user: CurrentUser,
    service: ProgressServiceDep,
) -> EnrollmentResponse:
    """Enroll the current user.

    Free courses enroll immediately; priced courses need a confirmed
    payment covering the price.
    """
    enrollment = await service.enroll(user, data.course_id, data.payment)
    return EnrollmentResponse.from_entity(enrollment)


@enrollments_router.get(
    "/me",
    response_model=EnrollmentListResponse,
    summary="List my enrollments",
)
async def list_my_enrollments(
    user: CurrentUser,
    service: ProgressServiceDep,
) -> EnrollmentListResponse:
    enrollments = await service.list_user_enrollments(user.id)
    items = [EnrollmentResponse.from_entity(e) for e in enrollments]
    return EnrollmentListResponse(items=items, total=len(items))


@enrollments_router.get(
    "/summary",
    response_model=UserProgressSummary,
    summary="Progress summary across my courses",
)
async def get_my_summary(
    user: CurrentUser,
    service: ProgressServiceDep,
) -> UserProgressSummary:
    return await service.get_user_summary(user.id)


@enrollments_router.post(
    "/{course_id}/pause",
    response_model=EnrollmentResponse,
    summary="Pause enrollment",
)
async def pause_enrollment(
    course_id: UUID,
    user: CurrentUser,
    service: ProgressServiceDep,
) -> EnrollmentResponse:
    enrollment = await service.pause(user.id, course_id)
    return EnrollmentResponse.from_entity(enrollment)


@enrollments_router.post(
    "/{course_id}/resume",
    response_model=EnrollmentResponse,
    summary="Resume paused enrollment",
)
async def resume_enrollment(
    course_id: UUID,
    user: CurrentUser,
    service: ProgressServiceDep,
) -> EnrollmentResponse:
    enrollment = await service.resume(user.id, course_id)
    return EnrollmentResponse.from_entity(enrollment)


@enrollments_router.post(
    "/{course_id}/cancel",
    response_model=EnrollmentResponse,
    summary="Cancel enrollment",
)
async def cancel_enrollment(
    course_id: UUID,
    user: CurrentUser,
    service: ProgressServiceDep,
) -> EnrollmentResponse:
    enrollment = await service.cancel(user.id, course_id)
    return EnrollmentResponse.from_entity(enrollment)


# ==============================================================================
# Progress Endpoints
# ==============================================================================


@router.get(
    "/{course_id}",
    response_model=CourseProgressResponse,
    summary="Get course progress",
)
async def get_course_progress(
    course_id: UUID,
    user: CurrentUser,
    service: ProgressServiceDep,
) -> CourseProgressResponse:
    """Percentage, per-module breakdown and resume point."""
    return await service.get_course_progress(user.id, course_id)


@router.post(
    "/{course_id}/lessons/{lesson_id}/toggle",
    response_model=LessonToggleResponse,
    summary="Toggle lesson completion",
)
async def toggle_lesson(
    course_id: UUID,
    lesson_id: str,
    user: CurrentUser,
    service: ProgressServiceDep,
) -> LessonToggleResponse:
    result = await service.toggle_lesson_completion(user.id, course_id, lesson_id)
    return LessonToggleResponse(
        lesson_id=result.lesson_id,
        completed=result.completed,
        enrollment=EnrollmentResponse.from_entity(result.enrollment),
    )


@router.get(
    "/{course_id}/lessons/{lesson_id}",
    response_model=LessonContentResponse,
    summary="Get lesson content",
)
async def get_lesson_content(
    course_id: UUID,
    lesson_id: str,
    user: CurrentUser,
    service: ProgressServiceDep,
    course_service: CourseServiceDep,
) -> LessonContentResponse:
    """Lesson content for enrolled students.

    The owning instructor and admins can read lessons without enrolling.
    Quiz answer keys are never sent to students.
    """
    course = await course_service.require_course(course_id)

    if course_service.can_edit(course, user):
        found = find_lesson(course, lesson_id)
        if found is None:
            raise LessonNotFoundError
        module, lesson = found
        return LessonContentResponse(
            course_id=course_id,
            module_id=module.id,
            module_title=module.title,
            lesson=lesson.model_dump(mode="json"),
        )

    enrollment, module, lesson = await service.access(user.id, course_id, lesson_id)
    progress = await service.get_lesson_progress(user.id, course_id, lesson_id)
    return LessonContentResponse(
        course_id=course_id,
        module_id=module.id,
        module_title=module.title,
        lesson=student_lesson_view(lesson),
        completed=lesson_id in enrollment.completed_lessons,
        progress=LessonProgressResponse.from_entity(progress) if progress else None,
    )


@router.put(
    "/{course_id}/lessons/{lesson_id}",
    response_model=LessonProgressResponse,
    summary="Save playback position and notes",
)
async def update_lesson_progress(
    course_id: UUID,
    lesson_id: str,
    data: UpdateLessonProgressRequest,
    user: CurrentUser,
    service: ProgressServiceDep,
) -> LessonProgressResponse:
    """Record where the student stopped watching and their notes.

    Does not change lesson completion.
    """
    progress = await service.update_lesson_progress(
        user.id,
        course_id,
        lesson_id,
        position_seconds=data.position_seconds,
        duration_seconds=data.duration_seconds,
        notes=data.notes,
    )
    return LessonProgressResponse.from_entity(progress)
