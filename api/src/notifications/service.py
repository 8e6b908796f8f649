"""Notification service layer.

Business logic for:
- Appending notifications to a user's feed
- Listing, reading and deleting notifications
- Unread counts computed from the feed itself
- Best-effort real-time delivery over Redis Pub/Sub
"""

import json
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID

import structlog
from fastapi import status
from redis.exceptions import RedisError

from src.core.errors import DomainError
from src.core.redis import notification_channel

from .models import (
    Notification,
    NotificationMetadata,
    NotificationPriority,
    NotificationType,
    create_notification,
)


if TYPE_CHECKING:
    from redis.asyncio import Redis

    from .repository import NotificationRepository

logger = structlog.get_logger(__name__)


class NotificationNotFoundError(DomainError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, message: str = "Notification not found"):
        super().__init__(message, "notification_not_found")


class NotificationService:
    """Service for notification management."""

    def __init__(self, repository: "NotificationRepository", redis: "Redis | None" = None):
        self.repository = repository
        self.redis = redis

    # ==========================================================================
    # Notification Creation
    # ==========================================================================

    async def notify(
        self,
        user_id: UUID,
        title: str,
        message: str,
        notification_type: NotificationType = NotificationType.SYSTEM,
        link: str | None = None,
        priority: NotificationPriority = NotificationPriority.NORMAL,
        metadata: NotificationMetadata | None = None,
        expires_at: datetime | None = None,
    ) -> Notification:
        """Append an unread notification to the user's feed."""
        notification = create_notification(
            user_id=user_id,
            notification_type=notification_type,
            title=title,
            message=message,
            priority=priority,
            link=link,
            metadata=metadata,
            expires_at=expires_at,
        )
        await self.repository.insert(notification)

        logger.info(
            "notification_created",
            user_id=str(user_id),
            notification_id=str(notification.notification_id),
            type=notification_type.value,
        )

        await self._publish_notification(notification)
        return notification

    async def _publish_notification(self, notification: Notification) -> None:
        """Publish notification to Redis Pub/Sub for real-time delivery."""
        if not self.redis:
            return

        message = {"type": "notification", "data": notification.to_dict()}

        # Delivery is already guaranteed by the stored row
        try:
            await self.redis.publish(
                notification_channel(notification.user_id), json.dumps(message)
            )
        except RedisError as e:
            logger.warning(
                "notification_publish_failed",
                user_id=str(notification.user_id),
                error=str(e),
            )

    # ==========================================================================
    # Notification Reading
    # ==========================================================================

    async def _live_notifications(self, user_id: UUID) -> list[Notification]:
        now = datetime.now(UTC)
        rows = await self.repository.list_for_user(user_id)
        return [n for n in rows if not n.is_expired(now)]

    async def list_notifications(
        self,
        user_id: UUID,
        limit: int = 20,
        unread_only: bool = False,
    ) -> list[Notification]:
        """Newest-first notifications, skipping expired ones."""
        notifications = await self._live_notifications(user_id)
        if unread_only:
            notifications = [n for n in notifications if not n.is_read]
        return notifications[:limit]

    async def unread_count(self, user_id: UUID) -> int:
        notifications = await self._live_notifications(user_id)
        return sum(1 for n in notifications if not n.is_read)

    async def get_notification(self, user_id: UUID, notification_id: UUID) -> Notification:
        notification = await self.repository.get(user_id, notification_id)
        if notification is None or notification.is_expired():
            raise NotificationNotFoundError
        return notification

    # ==========================================================================
    # Mark as Read
    # ==========================================================================

    async def mark_as_read(self, user_id: UUID, notification_id: UUID) -> Notification:
        """Mark one notification as read (no-op when already read)."""
        notification = await self.get_notification(user_id, notification_id)
        if notification.is_read:
            return notification

        now = datetime.now(UTC)
        if not await self.repository.mark_read(notification, now):
            raise NotificationNotFoundError

        notification.is_read = True
        notification.read_at = now
        return notification

    async def mark_all_as_read(self, user_id: UUID) -> int:
        """Mark every unread notification as read.

        Returns count of notifications marked as read.
        """
        now = datetime.now(UTC)
        marked = 0
        for notification in await self._live_notifications(user_id):
            if notification.is_read:
                continue
            if await self.repository.mark_read(notification, now):
                marked += 1

        if marked:
            logger.info("notifications_marked_read", user_id=str(user_id), count=marked)
        return marked

    # ==========================================================================
    # Deletion
    # ==========================================================================

    async def remove(self, user_id: UUID, notification_id: UUID) -> None:
        await self.get_notification(user_id, notification_id)
        await self.repository.delete(user_id, notification_id)
        logger.info(
            "notification_deleted",
            user_id=str(user_id),
            notification_id=str(notification_id),
        )

    async def clear_all(self, user_id: UUID) -> int:
        """Permanently delete the user's feed. Returns the number removed."""
        count = len(await self._live_notifications(user_id))
        await self.repository.delete_all(user_id)
        logger.info("notifications_cleared", user_id=str(user_id), count=count)
        return count
