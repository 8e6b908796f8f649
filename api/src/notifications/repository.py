# ruff: noqa: S608 - All CQL queries use keyspace from config, not user input
"""Cassandra access for the notification feed."""

from datetime import datetime
from uuid import UUID

from src.core.database.repository import CassandraRepository

from .models import Notification


class NotificationRepository(CassandraRepository):
    """Per-user notification partitions."""

    def _prepare_statements(self) -> None:
        self._insert_notification = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.notifications
            (user_id, notification_id, type, priority, title, message, link,
             course_id, lesson_id, certificate_number, attempt_id, is_read,
             read_at, created_at, expires_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            USING TTL ?
        """)

        self._get_notification = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.notifications
            WHERE user_id = ? AND notification_id = ?
        """)

        self._list_notifications = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.notifications
            WHERE user_id = ?
        """)

        self._mark_read = self.session.prepare(f"""
            UPDATE {self.keyspace}.notifications
            USING TTL ?
            SET is_read = true, read_at = ?
            WHERE user_id = ? AND notification_id = ?
            IF EXISTS
        """)

        self._delete_notification = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.notifications
            WHERE user_id = ? AND notification_id = ?
        """)

        self._delete_all = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.notifications
            WHERE user_id = ?
        """)

    async def insert(self, notification: Notification) -> None:
        meta = notification.metadata
        await self._execute(
            self._insert_notification,
            [
                notification.user_id,
                notification.notification_id,
                notification.type.value,
                notification.priority.value,
                notification.title,
                notification.message,
                notification.link,
                meta.course_id,
                meta.lesson_id,
                meta.certificate_number,
                meta.attempt_id,
                notification.is_read,
                notification.read_at,
                notification.created_at,
                notification.expires_at,
                notification.ttl_seconds(),
            ],
            idempotent=True,
        )

    async def get(self, user_id: UUID, notification_id: UUID) -> Notification | None:
        result = await self._execute(
            self._get_notification, [user_id, notification_id], idempotent=True
        )
        row = result.one()
        return Notification.from_row(row) if row else None

    async def list_for_user(self, user_id: UUID) -> list[Notification]:
        """All stored notifications for a user, newest first."""
        rows = await self._execute(self._list_notifications, [user_id], idempotent=True)
        return [Notification.from_row(row) for row in rows]

    async def mark_read(self, notification: Notification, read_at: datetime) -> bool:
        """Flag as read, keeping the row's remaining TTL.

        Returns:
            False when the row no longer exists
        """
        result = await self._execute(
            self._mark_read,
            [
                notification.ttl_seconds(read_at),
                read_at,
                notification.user_id,
                notification.notification_id,
            ],
        )
        return self._was_applied(result)

    async def delete(self, user_id: UUID, notification_id: UUID) -> None:
        await self._execute(
            self._delete_notification, [user_id, notification_id], idempotent=True
        )

    async def delete_all(self, user_id: UUID) -> None:
        await self._execute(self._delete_all, [user_id], idempotent=True)
