"""Course management API endpoints.

Provides routes for:
- Course creation and editing
- Curriculum replacement
- Publication
- Catalog listing
"""

from uuid import UUID

from fastapi import APIRouter, Query, status

from src.auth.dependencies import CurrentUser, InstructorUser

from .dependencies import CourseServiceDep, can_view_course
from .schemas import (
    CourseListResponse,
    CourseResponse,
    CourseSummaryResponse,
    CreateCourseRequest,
    ReplaceCurriculumRequest,
    UpdateCourseRequest,
)
from .service import CourseNotFoundError


router = APIRouter(prefix="/v1/courses", tags=["courses"])


# ==============================================================================
# Catalog
# ==============================================================================


@router.get(
    "",
    response_model=CourseListResponse,
    summary="List catalog courses",
)
async def list_courses(
    user: CurrentUser,
    service: CourseServiceDep,
    category: str | None = Query(None, description="Filter by category"),
    language: str | None = Query(None, description="Filter by language code"),
) -> CourseListResponse:
    """List published courses, optionally filtered."""
    courses = await service.list_catalog()
    if category:
        courses = [c for c in courses if c.category == category]
    if language:
        courses = [c for c in courses if c.language == language]

    items = [
        CourseSummaryResponse.from_entity(c, service.total_lessons(c)) for c in courses
    ]
    return CourseListResponse(items=items, total=len(items))


@router.get(
    "/{course_id}",
    response_model=CourseResponse,
    summary="Get course details",
)
async def get_course(
    course_id: UUID,
    user: CurrentUser,
    service: CourseServiceDep,
) -> CourseResponse:
    course = await service.require_course(course_id)
    if not can_view_course(user, course):
        raise CourseNotFoundError
    return CourseResponse.from_entity(
        course,
        service.total_lessons(course),
        include_answers=service.can_edit(course, user),
    )


# ==============================================================================
# Editing
# ==============================================================================


@router.post(
    "",
    response_model=CourseResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create course",
)
async def create_course(
    data: CreateCourseRequest,
    user: InstructorUser,
    service: CourseServiceDep,
) -> CourseResponse:
    """Create a draft course owned by the caller (INSTRUCTOR or ADMIN)."""
    course = await service.create_course(data, user)
    return CourseResponse.from_entity(course, service.total_lessons(course))


@router.patch(
    "/{course_id}",
    response_model=CourseResponse,
    summary="Update course",
)
async def update_course(
    course_id: UUID,
    data: UpdateCourseRequest,
    user: InstructorUser,
    service: CourseServiceDep,
) -> CourseResponse:
    course = await service.update_course(course_id, data, user)
    return CourseResponse.from_entity(course, service.total_lessons(course))


@router.put(
    "/{course_id}/curriculum",
    response_model=CourseResponse,
    summary="Replace course curriculum",
)
async def replace_curriculum(
    course_id: UUID,
    data: ReplaceCurriculumRequest,
    user: InstructorUser,
    service: CourseServiceDep,
) -> CourseResponse:
    """Replace the module/lesson tree; lesson ids must be globally unique."""
    course = await service.replace_curriculum(course_id, data.to_curriculum(), user)
    return CourseResponse.from_entity(course, service.total_lessons(course))


@router.post(
    "/{course_id}/publish",
    response_model=CourseResponse,
    summary="Publish course",
)
async def publish_course(
    course_id: UUID,
    user: InstructorUser,
    service: CourseServiceDep,
) -> CourseResponse:
    course = await service.publish_course(course_id, user)
    return CourseResponse.from_entity(course, service.total_lessons(course))
