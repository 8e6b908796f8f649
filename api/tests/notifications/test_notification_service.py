"""Tests for the notification feed service."""

import json
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock
from uuid import uuid1, uuid4

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from src.notifications.models import (
    MESSAGE_MAX_LENGTH,
    TITLE_MAX_LENGTH,
    NotificationMetadata,
    NotificationType,
)
from src.notifications.service import NotificationNotFoundError, NotificationService


class TestNotify:
    """Tests for appending notifications."""

    @pytest.mark.asyncio
    async def test_stores_unread_notification(self, notification_service, notification_repo):
        user_id = uuid4()
        course_id = uuid4()

        notification = await notification_service.notify(
            user_id,
            title="Enrollment confirmed",
            message="You are now enrolled.",
            notification_type=NotificationType.ENROLLMENT,
            metadata=NotificationMetadata(course_id=course_id),
        )

        assert not notification.is_read
        assert notification.metadata.course_id == course_id
        assert notification_repo.feed(user_id) == [notification]

    @pytest.mark.asyncio
    async def test_truncates_long_text(self, notification_service):
        notification = await notification_service.notify(
            uuid4(), title="T" * 500, message="M" * 5000
        )

        assert len(notification.title) == TITLE_MAX_LENGTH
        assert notification.title.endswith("...")
        assert len(notification.message) == MESSAGE_MAX_LENGTH
        assert notification.type == NotificationType.SYSTEM

    @pytest.mark.asyncio
    async def test_publishes_to_user_channel(self, notification_repo):
        redis = AsyncMock()
        service = NotificationService(notification_repo, redis=redis)
        user_id = uuid4()

        notification = await service.notify(user_id, title="Hi", message="There")

        channel, payload = redis.publish.await_args.args
        assert channel == f"notifications:user:{user_id}"
        message = json.loads(payload)
        assert message["type"] == "notification"
        assert message["data"]["id"] == str(notification.notification_id)

    @pytest.mark.asyncio
    async def test_publish_failure_keeps_notification(self, notification_repo):
        redis = AsyncMock()
        redis.publish.side_effect = RedisConnectionError("down")
        service = NotificationService(notification_repo, redis=redis)
        user_id = uuid4()

        notification = await service.notify(user_id, title="Hi", message="There")

        assert notification_repo.feed(user_id) == [notification]


class TestReading:
    """Listing, counting and fetching."""

    @pytest.mark.asyncio
    async def test_newest_first_with_limit(self, notification_service):
        user_id = uuid4()
        for n in range(5):
            await notification_service.notify(user_id, title=f"#{n}", message="...")

        latest = await notification_service.list_notifications(user_id, limit=3)

        assert [n.title for n in latest] == ["#4", "#3", "#2"]

    @pytest.mark.asyncio
    async def test_expired_notifications_are_hidden(self, notification_service):
        user_id = uuid4()
        past = datetime.now(UTC) - timedelta(minutes=1)
        expired = await notification_service.notify(
            user_id, title="Old", message="...", expires_at=past
        )
        await notification_service.notify(
            user_id,
            title="Fresh",
            message="...",
            expires_at=datetime.now(UTC) + timedelta(days=1),
        )

        listed = await notification_service.list_notifications(user_id)

        assert [n.title for n in listed] == ["Fresh"]
        assert await notification_service.unread_count(user_id) == 1
        with pytest.raises(NotificationNotFoundError):
            await notification_service.get_notification(user_id, expired.notification_id)

    @pytest.mark.asyncio
    async def test_unread_only(self, notification_service):
        user_id = uuid4()
        first = await notification_service.notify(user_id, title="A", message="...")
        await notification_service.notify(user_id, title="B", message="...")
        await notification_service.mark_as_read(user_id, first.notification_id)

        unread = await notification_service.list_notifications(user_id, unread_only=True)

        assert [n.title for n in unread] == ["B"]

    @pytest.mark.asyncio
    async def test_other_users_feed_is_invisible(self, notification_service):
        owner = uuid4()
        notification = await notification_service.notify(owner, title="Mine", message="...")

        with pytest.raises(NotificationNotFoundError) as exc_info:
            await notification_service.get_notification(uuid4(), notification.notification_id)

        assert exc_info.value.code == "notification_not_found"


class TestMarkAsRead:
    @pytest.mark.asyncio
    async def test_idempotent(self, notification_service, notification_repo):
        user_id = uuid4()
        notification = await notification_service.notify(user_id, title="A", message="...")

        first = await notification_service.mark_as_read(user_id, notification.notification_id)
        second = await notification_service.mark_as_read(user_id, notification.notification_id)

        assert first.is_read and second.is_read
        assert first.read_at == second.read_at
        assert await notification_service.unread_count(user_id) == 0

    @pytest.mark.asyncio
    async def test_mark_all(self, notification_service):
        user_id = uuid4()
        first = await notification_service.notify(user_id, title="A", message="...")
        await notification_service.notify(user_id, title="B", message="...")
        await notification_service.notify(user_id, title="C", message="...")
        await notification_service.mark_as_read(user_id, first.notification_id)

        marked = await notification_service.mark_all_as_read(user_id)

        assert marked == 2
        assert await notification_service.unread_count(user_id) == 0
        assert await notification_service.mark_all_as_read(user_id) == 0

    @pytest.mark.asyncio
    async def test_unknown_notification(self, notification_service):
        with pytest.raises(NotificationNotFoundError):
            await notification_service.mark_as_read(uuid4(), uuid1())


class TestDeletion:
    @pytest.mark.asyncio
    async def test_remove(self, notification_service):
        user_id = uuid4()
        kept = await notification_service.notify(user_id, title="Keep", message="...")
        dropped = await notification_service.notify(user_id, title="Drop", message="...")

        await notification_service.remove(user_id, dropped.notification_id)

        remaining = await notification_service.list_notifications(user_id)
        assert [n.notification_id for n in remaining] == [kept.notification_id]
        with pytest.raises(NotificationNotFoundError):
            await notification_service.remove(user_id, dropped.notification_id)

    @pytest.mark.asyncio
    async def test_clear_all(self, notification_service):
        user_id = uuid4()
        for n in range(3):
            await notification_service.notify(user_id, title=f"#{n}", message="...")

        assert await notification_service.clear_all(user_id) == 3
        assert await notification_service.list_notifications(user_id) == []
        assert await notification_service.unread_count(user_id) == 0
