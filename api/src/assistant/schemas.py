"""Pydantic schemas for the assistant context snapshot."""

from uuid import UUID

from pydantic import BaseModel, Field

from src.courses.models import Course
from src.progress.models import EnrollmentStatus


class EnrolledCourseProgress(BaseModel):
    course_id: UUID
    title: str
    percentage_complete: int = Field(ge=0, le=100)
    status: EnrollmentStatus


class CatalogEntry(BaseModel):
    id: UUID
    title: str
    category: str
    level: str
    language: str
    instructor_name: str
    tags: list[str] = Field(default_factory=list)
    description: str | None = None

    @classmethod
    def from_entity(cls, course: Course) -> "CatalogEntry":
        return cls(
            id=course.id,
            title=course.title,
            category=course.category,
            level=course.level,
            language=course.language,
            instructor_name=course.instructor_name,
            tags=course.tags,
            description=course.description,
        )


class AssistantSnapshot(BaseModel):
    """Everything the assistant may know about the student and the catalog."""

    enrolled_courses: list[EnrolledCourseProgress] = Field(default_factory=list)
    course_catalog: list[CatalogEntry] = Field(default_factory=list)
