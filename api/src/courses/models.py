"""Database models for the course catalog.

Cassandra table definitions for:
- Courses: catalog entry with its curriculum tree stored as JSON
- Lesson owners: claims each lesson id for exactly one course

Lesson ids must be unique across the whole catalog because completion
tracking stores bare lesson ids. ``lesson_owners`` is written with
``INSERT ... IF NOT EXISTS`` so the storage layer enforces it.
"""

import re
import unicodedata
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from src.courses.curriculum import Curriculum


class ContentStatus(str, Enum):
    """Course publication status."""

    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class CourseLevel(str, Enum):
    BEGINNER = "Beginner"
    INTERMEDIATE = "Intermediate"
    ADVANCED = "Advanced"


class CourseLanguage(str, Enum):
    ENGLISH = "en"
    FRENCH = "fr"
    CREOLE = "ht"


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

COURSE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.courses (
    id UUID PRIMARY KEY,
    title TEXT,
    slug TEXT,
    description TEXT,
    category TEXT,
    level TEXT,
    language TEXT,
    price DECIMAL,
    currency TEXT,
    tags LIST<TEXT>,
    instructor_id UUID,
    instructor_name TEXT,
    status TEXT,
    module_count INT,
    curriculum TEXT,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

# Global lesson id registry
LESSON_OWNERS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.lesson_owners (
    lesson_id TEXT PRIMARY KEY,
    course_id UUID,
    claimed_at TIMESTAMP
)
"""

COURSES_TABLES_CQL = [
    COURSE_TABLE_CQL,
    LESSON_OWNERS_TABLE_CQL,
]


# ==============================================================================
# Helper Functions
# ==============================================================================


def ensure_utc_aware(dt: datetime | None) -> datetime | None:
    """Ensure datetime is UTC-aware (Cassandra returns naive datetimes)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


def generate_slug(title: str) -> str:
    """Generate URL-friendly slug from title."""
    slug = unicodedata.normalize("NFKD", title)
    slug = slug.encode("ascii", "ignore").decode("ascii")
    slug = slug.lower().strip()
    slug = re.sub(r"[^\w\s-]", "", slug)
    return re.sub(r"[-\s]+", "-", slug)


# ==============================================================================
# Entity Classes
# ==============================================================================


class Course:
    """Catalog course.

    Attributes:
        id: Unique identifier (UUID)
        title: Course title
        slug: URL-friendly identifier
        description: Course description
        category: Catalog category (Web Development, Business, ...)
        level: Beginner, Intermediate or Advanced
        language: Teaching language (en, fr, ht)
        price: Course price (0 = free)
        currency: ISO currency code
        tags: Free-form tags used for recommendations
        instructor_id: Owning instructor (reference only)
        instructor_name: Instructor display name
        status: Publication status
        module_count: Module count for courses without a curriculum tree
        curriculum: Explicit curriculum tree, if authored
        created_at: Creation timestamp
        updated_at: Last update timestamp
    """

    def __init__(
        self,
        id: UUID | None = None,
        title: str = "",
        slug: str | None = None,
        description: str | None = None,
        category: str = "Other",
        level: str = CourseLevel.BEGINNER.value,
        language: str = CourseLanguage.ENGLISH.value,
        price: Decimal = Decimal(0),
        currency: str = "USD",
        tags: list[str] | None = None,
        instructor_id: UUID | None = None,
        instructor_name: str = "",
        status: str = ContentStatus.DRAFT.value,
        module_count: int = 0,
        curriculum: Curriculum | None = None,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
    ):
        self.id = id or uuid4()
        self.title = title.strip()
        self.slug = slug or generate_slug(title)
        self.description = description
        self.category = category
        self.level = level
        self.language = language
        self.price = price if price is not None else Decimal(0)
        self.currency = currency or "USD"
        self.tags = list(tags or [])
        self.instructor_id = instructor_id
        self.instructor_name = instructor_name or ""
        self.status = status
        self.curriculum = curriculum
        self.module_count = (
            len(curriculum.modules) if curriculum is not None else module_count or 0
        )
        self.created_at = ensure_utc_aware(created_at) or datetime.now(UTC)
        self.updated_at = ensure_utc_aware(updated_at)

    @property
    def is_free(self) -> bool:
        return self.price <= 0

    @property
    def is_published(self) -> bool:
        return self.status == ContentStatus.PUBLISHED.value

    @property
    def has_curriculum(self) -> bool:
        return self.curriculum is not None

    @classmethod
    def from_row(cls, row: Any) -> "Course":
        """Create Course instance from Cassandra row."""
        curriculum = (
            Curriculum.model_validate_json(row.curriculum) if row.curriculum else None
        )
        return cls(
            id=row.id,
            title=row.title or "",
            slug=row.slug,
            description=row.description,
            category=row.category or "Other",
            level=row.level or CourseLevel.BEGINNER.value,
            language=row.language or CourseLanguage.ENGLISH.value,
            price=row.price if row.price is not None else Decimal(0),
            currency=row.currency or "USD",
            tags=row.tags,
            instructor_id=row.instructor_id,
            instructor_name=row.instructor_name or "",
            status=row.status or ContentStatus.DRAFT.value,
            module_count=row.module_count or 0,
            curriculum=curriculum,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def curriculum_json(self) -> str | None:
        return self.curriculum.model_dump_json() if self.curriculum else None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "title": self.title,
            "slug": self.slug,
            "description": self.description,
            "category": self.category,
            "level": self.level,
            "language": self.language,
            "price": self.price,
            "currency": self.currency,
            "tags": self.tags,
            "instructor_id": self.instructor_id,
            "instructor_name": self.instructor_name,
            "status": self.status,
            "module_count": self.module_count,
            "curriculum": self.curriculum,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def __repr__(self) -> str:
        return f"<Course {self.title} ({self.status})>"
