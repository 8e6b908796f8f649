"""Database models for enrollments and lesson completion.

Cassandra table definitions for:
- Enrollments: one row per (course, user) holding status, the completed
  lesson map and its cached percentage
- Enrollments by user: lookup for "which courses is this user in?"
- Lesson progress: playback position, watch time and notes per lesson

The completed lesson map lives on the enrollment row so the set and the
cached projection (progress, lessons_completed, status) change in a single
``UPDATE ... IF version = ?``.
"""

from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID


class EnrollmentStatus(str, Enum):
    """Enrollment lifecycle status."""

    ACTIVE = "active"
    COMPLETED = "completed"
    PAUSED = "paused"
    CANCELLED = "cancelled"


# Statuses that grant access to lesson content
ACCESS_STATUSES = frozenset({EnrollmentStatus.ACTIVE.value, EnrollmentStatus.COMPLETED.value})


def ensure_utc_aware(dt: datetime | None) -> datetime | None:
    """Ensure datetime is UTC-aware (Cassandra returns naive datetimes)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

# Partitioned by course_id: "who is enrolled in this course?"
ENROLLMENTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.enrollments (
    course_id UUID,
    user_id UUID,
    status TEXT,
    enrolled_at TIMESTAMP,
    completed_at TIMESTAMP,
    progress INT,
    lessons_completed INT,
    lessons_total INT,
    completed_lessons MAP<TEXT, TIMESTAMP>,
    version INT,
    last_accessed_at TIMESTAMP,
    last_lesson_id TEXT,
    payment_amount DECIMAL,
    payment_currency TEXT,
    transaction_id TEXT,
    payment_method TEXT,
    paid_at TIMESTAMP,
    PRIMARY KEY (course_id, user_id)
)
"""

# Partitioned by user_id: "which courses is this user enrolled in?"
ENROLLMENTS_BY_USER_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.enrollments_by_user (
    user_id UUID,
    course_id UUID,
    enrolled_at TIMESTAMP,
    PRIMARY KEY (user_id, course_id)
)
"""

# Partitioned by (user_id, course_id): every lesson row of one enrollment
LESSON_PROGRESS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.lesson_progress (
    user_id UUID,
    course_id UUID,
    lesson_id TEXT,
    module_id TEXT,
    last_position_seconds INT,
    duration_seconds INT,
    watch_time_seconds INT,
    notes TEXT,
    started_at TIMESTAMP,
    last_accessed_at TIMESTAMP,
    PRIMARY KEY ((user_id, course_id), lesson_id)
)
"""

PROGRESS_TABLES_CQL = [
    ENROLLMENTS_TABLE_CQL,
    ENROLLMENTS_BY_USER_TABLE_CQL,
    LESSON_PROGRESS_TABLE_CQL,
]

# Maximum length of a student's personal notes on a lesson
NOTES_MAX_LENGTH = 5000


# ==============================================================================
# Entity Classes
# ==============================================================================


class Enrollment:
    """Course enrollment entity.

    Attributes:
        course_id: Course UUID
        user_id: User UUID
        status: active, completed, paused or cancelled
        enrolled_at: Enrollment timestamp
        completed_at: Set while status is completed
        progress: Cached completion percentage (0-100)
        lessons_completed: Cached completed lesson count
        lessons_total: Lesson count at the last recomputation
        completed_lessons: lesson_id -> completion timestamp
        version: Compare-and-set counter, bumped on every state change
        last_accessed_at: Last lesson access
        last_lesson_id: Last accessed lesson (for resume)
        payment_amount: Amount paid for priced courses
        payment_currency: Currency of the payment
        transaction_id: Payment provider reference
        payment_method: Payment method label
        paid_at: Payment confirmation timestamp
    """

    def __init__(
        self,
        course_id: UUID,
        user_id: UUID,
        status: str = EnrollmentStatus.ACTIVE.value,
        enrolled_at: datetime | None = None,
        completed_at: datetime | None = None,
        progress: int = 0,
        lessons_completed: int = 0,
        lessons_total: int = 0,
        completed_lessons: dict[str, datetime] | None = None,
        version: int = 0,
        last_accessed_at: datetime | None = None,
        last_lesson_id: str | None = None,
        payment_amount: Decimal | None = None,
        payment_currency: str | None = None,
        transaction_id: str | None = None,
        payment_method: str | None = None,
        paid_at: datetime | None = None,
    ):
        self.course_id = course_id
        self.user_id = user_id
        self.status = status
        self.enrolled_at = ensure_utc_aware(enrolled_at) or datetime.now(UTC)
        self.completed_at = ensure_utc_aware(completed_at)
        self.progress = progress
        self.lessons_completed = lessons_completed
        self.lessons_total = lessons_total
        self.completed_lessons = {
            lesson_id: ensure_utc_aware(at)
            for lesson_id, at in (completed_lessons or {}).items()
        }
        self.version = version
        self.last_accessed_at = ensure_utc_aware(last_accessed_at)
        self.last_lesson_id = last_lesson_id
        self.payment_amount = payment_amount
        self.payment_currency = payment_currency
        self.transaction_id = transaction_id
        self.payment_method = payment_method
        self.paid_at = ensure_utc_aware(paid_at)

    @property
    def is_completed(self) -> bool:
        return self.status == EnrollmentStatus.COMPLETED.value

    @property
    def grants_access(self) -> bool:
        return self.status in ACCESS_STATUSES

    @property
    def completed_lesson_ids(self) -> frozenset[str]:
        return frozenset(self.completed_lessons)

    @classmethod
    def from_row(cls, row: Any) -> "Enrollment":
        """Create Enrollment instance from Cassandra row."""
        return cls(
            course_id=row.course_id,
            user_id=row.user_id,
            status=row.status or EnrollmentStatus.ACTIVE.value,
            enrolled_at=row.enrolled_at,
            completed_at=row.completed_at,
            progress=row.progress or 0,
            lessons_completed=row.lessons_completed or 0,
            lessons_total=row.lessons_total or 0,
            completed_lessons=dict(row.completed_lessons or {}),
            version=row.version or 0,
            last_accessed_at=row.last_accessed_at,
            last_lesson_id=row.last_lesson_id,
            payment_amount=row.payment_amount,
            payment_currency=row.payment_currency,
            transaction_id=row.transaction_id,
            payment_method=row.payment_method,
            paid_at=row.paid_at,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "course_id": self.course_id,
            "user_id": self.user_id,
            "status": self.status,
            "enrolled_at": self.enrolled_at,
            "completed_at": self.completed_at,
            "progress": self.progress,
            "lessons_completed": self.lessons_completed,
            "lessons_total": self.lessons_total,
            "completed_lessons": dict(self.completed_lessons),
            "version": self.version,
            "last_accessed_at": self.last_accessed_at,
            "last_lesson_id": self.last_lesson_id,
        }

    def __repr__(self) -> str:
        return f"<Enrollment user={self.user_id} course={self.course_id} ({self.status})>"


class LessonProgress:
    """Playback state of one lesson for one user.

    Completion is not derived from these values; it lives in the
    enrollment's completed lesson map.

    Attributes:
        user_id: User UUID
        course_id: Course UUID (with user_id, the partition key)
        lesson_id: Lesson id from the curriculum tree
        module_id: Module holding the lesson
        last_position_seconds: Resume position
        duration_seconds: Lesson duration as reported by the player
        watch_time_seconds: Accumulated playback (may exceed the duration)
        notes: Student notes, at most NOTES_MAX_LENGTH characters
        started_at: First update
        last_accessed_at: Last update
    """

    def __init__(
        self,
        user_id: UUID,
        course_id: UUID,
        lesson_id: str,
        module_id: str | None = None,
        last_position_seconds: int = 0,
        duration_seconds: int | None = None,
        watch_time_seconds: int = 0,
        notes: str | None = None,
        started_at: datetime | None = None,
        last_accessed_at: datetime | None = None,
    ):
        self.user_id = user_id
        self.course_id = course_id
        self.lesson_id = lesson_id
        self.module_id = module_id
        self.last_position_seconds = last_position_seconds
        self.duration_seconds = duration_seconds
        self.watch_time_seconds = watch_time_seconds
        self.notes = notes
        self.started_at = ensure_utc_aware(started_at) or datetime.now(UTC)
        self.last_accessed_at = ensure_utc_aware(last_accessed_at) or self.started_at

    @classmethod
    def from_row(cls, row: Any) -> "LessonProgress":
        """Create LessonProgress instance from Cassandra row."""
        return cls(
            user_id=row.user_id,
            course_id=row.course_id,
            lesson_id=row.lesson_id,
            module_id=row.module_id,
            last_position_seconds=row.last_position_seconds or 0,
            duration_seconds=row.duration_seconds,
            watch_time_seconds=row.watch_time_seconds or 0,
            notes=row.notes,
            started_at=row.started_at,
            last_accessed_at=row.last_accessed_at,
        )

    def __repr__(self) -> str:
        return (
            f"<LessonProgress user={self.user_id} lesson={self.lesson_id} "
            f"at {self.last_position_seconds}s>"
        )
