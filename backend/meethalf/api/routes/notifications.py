"""Notification Routes — the signed-in user's notification inbox."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from meethalf.api.dependencies import get_current_handle
from meethalf.infrastructure.database import get_db
from meethalf.infrastructure.realtime import RealtimeGateway, get_realtime
from meethalf.models.user import User
from meethalf.services.notification_service import NotificationService

router = APIRouter(prefix="/api/v1/notifications", tags=["notifications"])


def _service(
    db: AsyncSession = Depends(get_db),
    realtime: RealtimeGateway = Depends(get_realtime),
) -> NotificationService:
    return NotificationService(db, realtime)


@router.get("")
async def list_notifications(
    read: bool | None = Query(None),
    limit: int = Query(50, ge=1, le=100),
    user: User = Depends(get_current_handle),
    service: NotificationService = Depends(_service),
):
    notifications = await service.list_for_user(user.user_id, read=read, limit=limit)
    return {"notifications": notifications}


@router.get("/unread-count")
async def unread_count(
    user: User = Depends(get_current_handle),
    service: NotificationService = Depends(_service),
):
    return {"count": await service.unread_count(user.user_id)}


@router.put("/read-all")
async def mark_all_read(
    user: User = Depends(get_current_handle),
    service: NotificationService = Depends(_service),
):
    await service.mark_all_read(user.user_id)
    return {"success": True}


@router.put("/{notification_id}/read")
async def mark_read(
    notification_id: int,
    user: User = Depends(get_current_handle),
    service: NotificationService = Depends(_service),
):
    await service.mark_read(notification_id, user.user_id)
    return {"success": True}


@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: int,
    user: User = Depends(get_current_handle),
    service: NotificationService = Depends(_service),
):
    await service.delete(notification_id, user.user_id)
    return {"success": True}
