"""Pydantic schemas for course management.

Request and response models for:
- Course creation and editing
- Curriculum replacement
- Catalog listing
- Student-facing lesson content
"""

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from .curriculum import Curriculum, Module, QuizLesson
from .models import ContentStatus, Course, CourseLanguage, CourseLevel


# ==============================================================================
# Request Schemas
# ==============================================================================


class CreateCourseRequest(BaseModel):
    """Request to create a course (curriculum optional)."""

    title: str = Field(..., min_length=3, max_length=200, description="Course title")
    description: str | None = Field(None, description="Course description")
    category: str = Field(default="Other", max_length=100)
    level: CourseLevel = Field(default=CourseLevel.BEGINNER)
    language: CourseLanguage = Field(default=CourseLanguage.ENGLISH)
    price: Decimal = Field(default=Decimal(0), ge=0, description="0 = free")
    currency: str = Field(default="USD", min_length=3, max_length=3)
    tags: list[str] = Field(default_factory=list)
    module_count: int = Field(
        default=0, ge=0, description="Used only when no curriculum is supplied"
    )
    curriculum: Curriculum | None = None


class UpdateCourseRequest(BaseModel):
    """Partial course update (curriculum is replaced through its own route)."""

    title: str | None = Field(None, min_length=3, max_length=200)
    description: str | None = None
    category: str | None = Field(None, max_length=100)
    level: CourseLevel | None = None
    language: CourseLanguage | None = None
    price: Decimal | None = Field(None, ge=0)
    currency: str | None = Field(None, min_length=3, max_length=3)
    tags: list[str] | None = None
    module_count: int | None = Field(None, ge=0)
    status: ContentStatus | None = None


class ReplaceCurriculumRequest(BaseModel):
    """Full curriculum tree as produced by the editor."""

    modules: list[Module] = Field(default_factory=list)

    def to_curriculum(self) -> Curriculum:
        return Curriculum(modules=self.modules)


# ==============================================================================
# Response Schemas
# ==============================================================================


class CourseSummaryResponse(BaseModel):
    """Catalog entry without the curriculum tree."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    slug: str
    description: str | None = None
    category: str
    level: str
    language: str
    price: Decimal
    currency: str
    tags: list[str] = Field(default_factory=list)
    instructor_id: UUID | None = None
    instructor_name: str
    status: ContentStatus
    module_count: int
    total_lessons: int

    @classmethod
    def from_entity(cls, course: Course, total_lessons: int) -> "CourseSummaryResponse":
        return cls(
            id=course.id,
            title=course.title,
            slug=course.slug,
            description=course.description,
            category=course.category,
            level=course.level,
            language=course.language,
            price=course.price,
            currency=course.currency,
            tags=course.tags,
            instructor_id=course.instructor_id,
            instructor_name=course.instructor_name,
            status=ContentStatus(course.status),
            module_count=course.module_count,
            total_lessons=total_lessons,
        )


class CourseResponse(CourseSummaryResponse):
    """Full course including its curriculum.

    Quiz answer keys are only included for the owning instructor and admins.
    """

    curriculum: dict[str, Any] | None = None
    created_at: datetime
    updated_at: datetime | None = None

    @classmethod
    def from_entity(
        cls,
        course: Course,
        total_lessons: int,
        include_answers: bool = True,
    ) -> "CourseResponse":
        summary = CourseSummaryResponse.from_entity(course, total_lessons)
        return cls(
            **summary.model_dump(),
            curriculum=curriculum_view(course.curriculum, include_answers),
            created_at=course.created_at,
            updated_at=course.updated_at,
        )


class CourseListResponse(BaseModel):
    items: list[CourseSummaryResponse]
    total: int


# Answer keys removed before quiz content is shown to students
_QUIZ_ANSWER_KEYS: dict[str, Any] = {
    "quiz": {
        "questions": {
            "__all__": {
                "correct_answer": True,
                "explanation": True,
                "options": {"__all__": {"is_correct"}},
            }
        }
    }
}


def student_lesson_view(lesson: Any) -> dict[str, Any]:
    """Serialize a lesson for students, hiding quiz answer keys."""
    if isinstance(lesson, QuizLesson):
        return lesson.model_dump(mode="json", exclude=_QUIZ_ANSWER_KEYS)
    return lesson.model_dump(mode="json")


def curriculum_view(
    curriculum: Curriculum | None, include_answers: bool
) -> dict[str, Any] | None:
    if curriculum is None:
        return None
    if include_answers:
        return curriculum.model_dump(mode="json")
    return {
        "modules": [
            {
                **module.model_dump(mode="json", exclude={"lessons"}),
                "lessons": [student_lesson_view(lesson) for lesson in module.lessons],
            }
            for module in curriculum.modules
        ]
    }
