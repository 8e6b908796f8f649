"""Pydantic schemas for notifications.

Request and response models for notification operations.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from .models import (
    MESSAGE_MAX_LENGTH,
    TITLE_MAX_LENGTH,
    Notification,
    NotificationMetadata,
    NotificationPriority,
    NotificationType,
)


# ==============================================================================
# Response Schemas
# ==============================================================================


class NotificationMetadataResponse(BaseModel):
    course_id: UUID | None = None
    lesson_id: str | None = None
    certificate_number: str | None = None
    attempt_id: UUID | None = None


class NotificationResponse(BaseModel):
    """Single notification response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(description="Notification ID")
    type: NotificationType = Field(description="Notification type")
    priority: NotificationPriority = Field(description="Display priority")
    title: str = Field(description="Notification title")
    message: str = Field(description="Notification message")
    link: str | None = Field(None, description="Link to the related page")
    metadata: NotificationMetadataResponse = Field(
        default_factory=NotificationMetadataResponse
    )
    is_read: bool = Field(description="Whether notification was read")
    read_at: datetime | None = Field(None, description="When notification was read")
    created_at: datetime = Field(description="When notification was created")
    expires_at: datetime | None = None

    @classmethod
    def from_notification(cls, notification: Notification) -> "NotificationResponse":
        """Create response from notification entity."""
        meta = notification.metadata
        return cls(
            id=notification.notification_id,
            type=notification.type,
            priority=notification.priority,
            title=notification.title,
            message=notification.message,
            link=notification.link,
            metadata=NotificationMetadataResponse(
                course_id=meta.course_id,
                lesson_id=meta.lesson_id,
                certificate_number=meta.certificate_number,
                attempt_id=meta.attempt_id,
            ),
            is_read=notification.is_read,
            read_at=notification.read_at,
            created_at=notification.created_at,
            expires_at=notification.expires_at,
        )


class NotificationListResponse(BaseModel):
    """Notification list response."""

    items: list[NotificationResponse] = Field(description="List of notifications")
    unread_count: int = Field(description="Unread notification count")


class UnreadCountResponse(BaseModel):
    """Unread notification count response."""

    count: int = Field(description="Number of unread notifications")


class MarkReadResponse(BaseModel):
    """Response after marking notifications as read."""

    marked_count: int = Field(description="Number of notifications marked as read")
    unread_count: int = Field(description="Remaining unread count")


class ClearNotificationsResponse(BaseModel):
    deleted_count: int


# ==============================================================================
# Request Schemas
# ==============================================================================


class SystemNotificationRequest(BaseModel):
    """Request to send a notification to a user (admin only)."""

    user_id: UUID = Field(description="Recipient")
    title: str = Field(min_length=1, max_length=TITLE_MAX_LENGTH)
    message: str = Field(min_length=1, max_length=MESSAGE_MAX_LENGTH)
    type: NotificationType = Field(default=NotificationType.SYSTEM)
    priority: NotificationPriority = Field(default=NotificationPriority.NORMAL)
    link: str | None = None
    course_id: UUID | None = None
    expires_at: datetime | None = None

    def metadata(self) -> NotificationMetadata:
        return NotificationMetadata(course_id=self.course_id)
