"""
Notifications API endpoints.

Approval workflow events are recorded as notifications for each recipient.
"""

from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status

from app.api.deps import CurrentUser, NotificationRepo
from app.models.notification import Notification

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=list[Notification])
async def list_notifications(
    user: CurrentUser,
    notification_repo: NotificationRepo,
    unread_only: bool = Query(False, description="Only return unread notifications"),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
) -> list[Notification]:
    """
    List notifications for the current user, newest first.
    """
    return await notification_repo.list(
        user_id=user.id,
        unread_only=unread_only,
        limit=limit,
        offset=offset,
    )


@router.post("/{notification_id}/read", response_model=Notification)
async def mark_as_read(
    notification_id: UUID,
    user: CurrentUser,
    notification_repo: NotificationRepo,
) -> Notification:
    """
    Mark a notification as read.
    """
    notification = await notification_repo.mark_as_read(user.id, notification_id)
    if not notification:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Notification {notification_id} not found",
        )
    return notification
