"""
Notification API endpoints.

In-app inbox of the authenticated user.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query

from crestcat.api import deps
from crestcat.schemas.notification import NotificationList, NotificationResponse
from crestcat.services.notification import NotificationService

router = APIRouter()


@router.get("", response_model=NotificationList)
async def get_notifications(
    *,
    notifier: NotificationService = Depends(deps.get_notifier),
    principal: deps.CurrentPrincipal,
    limit: int = Query(50, ge=1, le=100)
) -> NotificationList:
    """Most recent notifications with the unread count."""
    return await notifier.list_for_user(principal.user_id, limit)


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_read(
    *,
    notifier: NotificationService = Depends(deps.get_notifier),
    principal: deps.CurrentPrincipal,
    notification_id: UUID
) -> NotificationResponse:
    return await notifier.mark_read(notification_id, principal.user_id)


@router.post("/read-all")
async def mark_all_notifications_read(
    *,
    notifier: NotificationService = Depends(deps.get_notifier),
    principal: deps.CurrentPrincipal
) -> dict:
    updated = await notifier.mark_all_read(principal.user_id)
    return {"updated": updated}
