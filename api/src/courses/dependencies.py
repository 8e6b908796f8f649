"""FastAPI dependencies for course management.

Provides dependency injection for:
- Course service
- Content visibility rules
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from src.auth.permissions import is_admin
from src.auth.schemas import AuthenticatedUser

from .models import ContentStatus, Course
from .service import CourseService


async def get_course_service(request: Request) -> CourseService:
    """Get course service from app state."""
    app_state = request.app.state
    if not getattr(app_state, "course_service", None):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Course service not available",
        )
    return app_state.course_service


CourseServiceDep = Annotated[CourseService, Depends(get_course_service)]


def can_view_course(user: AuthenticatedUser, course: Course) -> bool:
    """Check if user can see a course.

    Rules:
    - Published: every authenticated user
    - Draft: owning instructor and ADMIN
    - Archived: ADMIN only
    """
    if course.status == ContentStatus.PUBLISHED.value:
        return True
    if is_admin(user.role):
        return True
    if course.status == ContentStatus.DRAFT.value:
        return course.instructor_id == user.id
    return False
