"""Database models for the notification feed.

Cassandra table definitions for:
- Notifications: per-user feed, newest first

Notification ids are time-based UUIDs (TIMEUUID) so the clustering order
is the creation order. Rows with an expiry are written with a TTL and also
filtered on read, since TTL removal is not instantaneous.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid1


# ==============================================================================
# Constants
# ==============================================================================

TITLE_MAX_LENGTH = 200
MESSAGE_MAX_LENGTH = 1000


class NotificationType(str, Enum):
    """Types of notifications."""

    ENROLLMENT = "enrollment"
    COMPLETION = "completion"
    CERTIFICATE = "certificate"
    QUIZ_RESULT = "quiz_result"
    REMINDER = "reminder"
    ANNOUNCEMENT = "announcement"
    ACHIEVEMENT = "achievement"
    COURSE_UPDATE = "course_update"
    SYSTEM = "system"


class NotificationPriority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"


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

# Partitioned by user_id, newest notification first
NOTIFICATION_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.notifications (
    user_id UUID,
    notification_id TIMEUUID,
    type TEXT,
    priority TEXT,
    title TEXT,
    message TEXT,
    link TEXT,
    course_id UUID,
    lesson_id TEXT,
    certificate_number TEXT,
    attempt_id UUID,
    is_read BOOLEAN,
    read_at TIMESTAMP,
    created_at TIMESTAMP,
    expires_at TIMESTAMP,
    PRIMARY KEY ((user_id), notification_id)
) WITH CLUSTERING ORDER BY (notification_id DESC)
"""

NOTIFICATIONS_TABLES_CQL = [
    NOTIFICATION_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


@dataclass
class NotificationMetadata:
    """References to the records a notification is about."""

    course_id: UUID | None = None
    lesson_id: str | None = None
    certificate_number: str | None = None
    attempt_id: UUID | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "course_id": str(self.course_id) if self.course_id else None,
            "lesson_id": self.lesson_id,
            "certificate_number": self.certificate_number,
            "attempt_id": str(self.attempt_id) if self.attempt_id else None,
        }


@dataclass
class Notification:
    """Notification entity with full details."""

    notification_id: UUID
    user_id: UUID
    type: NotificationType
    title: str
    message: str
    priority: NotificationPriority = NotificationPriority.NORMAL
    link: str | None = None
    metadata: NotificationMetadata = field(default_factory=NotificationMetadata)
    is_read: bool = False
    read_at: datetime | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    expires_at: datetime | None = None

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expires_at is None:
            return False
        return self.expires_at <= (now or datetime.now(UTC))

    def ttl_seconds(self, now: datetime | None = None) -> int:
        """Remaining lifetime for ``USING TTL`` (0 keeps the row forever)."""
        if self.expires_at is None:
            return 0
        remaining = (self.expires_at - (now or datetime.now(UTC))).total_seconds()
        return max(1, int(remaining))

    @classmethod
    def from_row(cls, row: Any) -> "Notification":
        """Create Notification from Cassandra row."""
        return cls(
            notification_id=row.notification_id,
            user_id=row.user_id,
            type=NotificationType(row.type),
            title=row.title or "",
            message=row.message or "",
            priority=NotificationPriority(row.priority or NotificationPriority.NORMAL.value),
            link=row.link,
            metadata=NotificationMetadata(
                course_id=row.course_id,
                lesson_id=row.lesson_id,
                certificate_number=row.certificate_number,
                attempt_id=row.attempt_id,
            ),
            is_read=row.is_read or False,
            read_at=ensure_utc_aware(row.read_at),
            created_at=ensure_utc_aware(row.created_at),
            expires_at=ensure_utc_aware(row.expires_at),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": str(self.notification_id),
            "user_id": str(self.user_id),
            "type": self.type.value,
            "priority": self.priority.value,
            "title": self.title,
            "message": self.message,
            "link": self.link,
            "metadata": self.metadata.to_dict(),
            "is_read": self.is_read,
            "read_at": self.read_at.isoformat() if self.read_at else None,
            "created_at": self.created_at.isoformat(),
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
        }


# ==============================================================================
# Factory Functions
# ==============================================================================


def _truncate(text: str, limit: int) -> str:
    text = text.strip()
    return text if len(text) <= limit else text[: limit - 3].rstrip() + "..."


def create_notification(
    user_id: UUID,
    notification_type: NotificationType,
    title: str,
    message: str,
    priority: NotificationPriority = NotificationPriority.NORMAL,
    link: str | None = None,
    metadata: NotificationMetadata | None = None,
    expires_at: datetime | None = None,
) -> Notification:
    """Create a new unread notification with a time-based id."""
    return Notification(
        notification_id=uuid1(),
        user_id=user_id,
        type=notification_type,
        title=_truncate(title, TITLE_MAX_LENGTH),
        message=_truncate(message, MESSAGE_MAX_LENGTH),
        priority=priority,
        link=link,
        metadata=metadata or NotificationMetadata(),
        expires_at=ensure_utc_aware(expires_at),
    )
