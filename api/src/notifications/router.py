"""Notification API routes.

Endpoints for:
- GET /v1/notifications - List user notifications
- GET /v1/notifications/unread-count - Get unread count
- POST /v1/notifications/{id}/read - Mark one as read
- POST /v1/notifications/read-all - Mark all as read
- DELETE /v1/notifications/{id} - Delete one
- DELETE /v1/notifications - Delete all
- POST /v1/notifications/system - Send a notification (admin)
"""

from uuid import UUID

from fastapi import APIRouter, Query, status

from src.auth.dependencies import AdminUser, CurrentUser

from .dependencies import NotificationServiceDep
from .schemas import (
    ClearNotificationsResponse,
    MarkReadResponse,
    NotificationListResponse,
    NotificationResponse,
    SystemNotificationRequest,
    UnreadCountResponse,
)


router = APIRouter(
    prefix="/v1/notifications",
    tags=["notifications"],
)


@router.get(
    "",
    response_model=NotificationListResponse,
    summary="List user notifications",
)
async def list_notifications(
    current_user: CurrentUser,
    service: NotificationServiceDep,
    limit: int = Query(default=20, ge=1, le=100, description="Max items"),
    unread_only: bool = Query(default=False, description="Only show unread"),
) -> NotificationListResponse:
    """List notifications for the current user, newest first."""
    notifications = await service.list_notifications(
        user_id=current_user.id,
        limit=limit,
        unread_only=unread_only,
    )
    return NotificationListResponse(
        items=[NotificationResponse.from_notification(n) for n in notifications],
        unread_count=await service.unread_count(current_user.id),
    )


@router.get(
    "/unread-count",
    response_model=UnreadCountResponse,
    summary="Get unread notification count",
)
async def get_unread_count(
    current_user: CurrentUser,
    service: NotificationServiceDep,
) -> UnreadCountResponse:
    count = await service.unread_count(current_user.id)
    return UnreadCountResponse(count=count)


@router.post(
    "/read-all",
    response_model=MarkReadResponse,
    summary="Mark all notifications as read",
)
async def mark_all_read(
    current_user: CurrentUser,
    service: NotificationServiceDep,
) -> MarkReadResponse:
    marked_count = await service.mark_all_as_read(current_user.id)
    return MarkReadResponse(
        marked_count=marked_count,
        unread_count=await service.unread_count(current_user.id),
    )


@router.post(
    "/system",
    response_model=NotificationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Send a notification to a user (admin)",
)
async def send_system_notification(
    body: SystemNotificationRequest,
    admin: AdminUser,
    service: NotificationServiceDep,
) -> NotificationResponse:
    notification = await service.notify(
        user_id=body.user_id,
        title=body.title,
        message=body.message,
        notification_type=body.type,
        link=body.link,
        priority=body.priority,
        metadata=body.metadata(),
        expires_at=body.expires_at,
    )
    return NotificationResponse.from_notification(notification)


@router.post(
    "/{notification_id}/read",
    response_model=NotificationResponse,
    summary="Mark notification as read",
)
async def mark_read(
    notification_id: UUID,
    current_user: CurrentUser,
    service: NotificationServiceDep,
) -> NotificationResponse:
    notification = await service.mark_as_read(current_user.id, notification_id)
    return NotificationResponse.from_notification(notification)


@router.delete(
    "/{notification_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete notification",
)
async def delete_notification(
    notification_id: UUID,
    current_user: CurrentUser,
    service: NotificationServiceDep,
) -> None:
    await service.remove(current_user.id, notification_id)


@router.delete(
    "",
    response_model=ClearNotificationsResponse,
    summary="Delete all notifications",
)
async def clear_notifications(
    current_user: CurrentUser,
    service: NotificationServiceDep,
) -> ClearNotificationsResponse:
    deleted = await service.clear_all(current_user.id)
    return ClearNotificationsResponse(deleted_count=deleted)
