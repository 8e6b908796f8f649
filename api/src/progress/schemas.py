"""Pydantic schemas for enrollments and progress.

Request and response models for:
- Enrollment (with payment confirmation for priced courses)
- Lesson completion toggling
- Playback position and notes per lesson
- Course progress with per-module breakdown
- User-wide summary
"""

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from .models import NOTES_MAX_LENGTH, Enrollment, EnrollmentStatus, LessonProgress


# ==============================================================================
# Request Schemas
# ==============================================================================


class PaymentConfirmation(BaseModel):
    """Confirmation signal handed over by the payment collaborator."""

    confirmed: bool = Field(..., description="Payment captured by the provider")
    amount: Decimal = Field(..., ge=0)
    currency: str = Field(default="USD", min_length=3, max_length=3)
    transaction_id: str = Field(..., min_length=1, max_length=200)
    payment_method: str | None = Field(None, max_length=50)


class EnrollRequest(BaseModel):
    course_id: UUID
    payment: PaymentConfirmation | None = None


class UpdateLessonProgressRequest(BaseModel):
    """Playback position and notes for a lesson. Omitted fields are kept."""

    position_seconds: int | None = Field(None, ge=0)
    duration_seconds: int | None = Field(None, ge=0)
    notes: str | None = Field(None, max_length=NOTES_MAX_LENGTH)


# ==============================================================================
# Response Schemas
# ==============================================================================


class EnrollmentResponse(BaseModel):
    """Enrollment with its cached progress projection."""

    model_config = ConfigDict(from_attributes=True)

    course_id: UUID
    user_id: UUID
    status: EnrollmentStatus
    enrolled_at: datetime
    completed_at: datetime | None = None
    progress: int = Field(ge=0, le=100)
    lessons_completed: int
    lessons_total: int
    last_accessed_at: datetime | None = None
    last_lesson_id: str | None = None

    @classmethod
    def from_entity(cls, enrollment: Enrollment) -> "EnrollmentResponse":
        return cls(
            course_id=enrollment.course_id,
            user_id=enrollment.user_id,
            status=EnrollmentStatus(enrollment.status),
            enrolled_at=enrollment.enrolled_at,
            completed_at=enrollment.completed_at,
            progress=enrollment.progress,
            lessons_completed=enrollment.lessons_completed,
            lessons_total=enrollment.lessons_total,
            last_accessed_at=enrollment.last_accessed_at,
            last_lesson_id=enrollment.last_lesson_id,
        )


class LessonProgressResponse(BaseModel):
    lesson_id: str
    module_id: str
    last_position_seconds: int
    duration_seconds: int | None = None
    watch_time_seconds: int
    notes: str | None = None
    started_at: datetime | None = None
    last_accessed_at: datetime | None = None

    @classmethod
    def from_entity(cls, progress: LessonProgress) -> "LessonProgressResponse":
        return cls(
            lesson_id=progress.lesson_id,
            module_id=progress.module_id,
            last_position_seconds=progress.last_position_seconds,
            duration_seconds=progress.duration_seconds,
            watch_time_seconds=progress.watch_time_seconds,
            notes=progress.notes,
            started_at=progress.started_at,
            last_accessed_at=progress.last_accessed_at,
        )


class EnrollmentListResponse(BaseModel):
    items: list[EnrollmentResponse]
    total: int


class LessonToggleResponse(BaseModel):
    """Result of flipping a lesson's completion."""

    lesson_id: str
    completed: bool
    enrollment: EnrollmentResponse


class ModuleProgressSummary(BaseModel):
    module_id: str
    title: str
    lessons_completed: int
    lessons_total: int
    percentage: int


class CourseProgressResponse(BaseModel):
    """Full progress of one user in one course."""

    course_id: UUID
    course_title: str
    status: EnrollmentStatus
    percentage: int = Field(ge=0, le=100)
    lessons_completed: int
    lessons_total: int
    is_complete: bool
    completed_lesson_ids: list[str]
    modules: list[ModuleProgressSummary] = Field(default_factory=list)
    resume_lesson_id: str | None = None
    resume_position_seconds: int = 0
    watch_time_seconds: int = 0
    enrolled_at: datetime
    completed_at: datetime | None = None
    last_accessed_at: datetime | None = None


class UserProgressSummary(BaseModel):
    """Aggregate over every enrollment of a user."""

    courses_enrolled: int
    courses_completed: int
    courses_in_progress: int
    lessons_completed: int
    lessons_total: int
    average_progress: int


class LessonContentResponse(BaseModel):
    """Gated lesson content returned to enrolled students."""

    course_id: UUID
    module_id: str
    module_title: str
    lesson: dict[str, Any]
    completed: bool = False
    progress: LessonProgressResponse | None = None
