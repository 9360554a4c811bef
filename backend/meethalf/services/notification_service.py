"""Notification Service — persisted in-app notifications with realtime and push fan-out.

Invariants:
    - Every created notification is broadcast as new-notification on notification-{handle}
    - Push deep links depend on the type (friends page, event page, chat, inbox)
    - Listing enriches FRIEND_REQUEST / EVENT_INVITE data with the current request status
    - Mark-all-read and the unread count ignore NEW_MESSAGE (chat keeps its own badge)
    - Only the recipient may read or delete a notification

Design Decisions:
    - Broadcast and push happen after commit: a failed fan-out never loses the notification
"""

import logging
from typing import Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from meethalf.core.domain_types import NotificationType
from meethalf.core.errors import PermissionDeniedError, ResourceNotFoundError
from meethalf.infrastructure.realtime import RealtimeGateway
from meethalf.models.event_invitation import EventInvitation
from meethalf.models.friend import FriendRequest
from meethalf.models.notification import Notification
from meethalf.schemas.responses import notification_dict

logger = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 50


def push_path(notification_type: NotificationType | str, data: dict | None) -> str:
    """Frontend path a push notification opens."""
    data = data or {}
    kind = NotificationType(notification_type)
    if kind is NotificationType.FRIEND_ACCEPTED:
        return "/friends"
    if kind is NotificationType.NEW_MESSAGE:
        if data.get("groupId"):
            return f"/chat/group/{data['groupId']}"
        if data.get("senderId"):
            return f"/chat/user/{data['senderId']}"
        return "/notifications"
    if kind in (
        NotificationType.EVENT_INVITE,
        NotificationType.EVENT_UPDATE,
        NotificationType.POKE,
    ) and data.get("eventId"):
        return f"/events/{data['eventId']}"
    return "/notifications"


class NotificationService:
    def __init__(self, db: AsyncSession, realtime: RealtimeGateway):
        self.db = db
        self.realtime = realtime

    async def create(
        self,
        user_handle: str,
        notification_type: NotificationType,
        title: str,
        body: str,
        data: dict[str, Any] | None = None,
        send_push: bool = True,
    ) -> Notification:
        notification = Notification(
            user_id=user_handle,
            type=notification_type.value,
            title=title,
            body=body,
            data=data,
            read=False,
        )
        self.db.add(notification)
        await self.db.commit()
        await self.db.refresh(notification)

        await self.realtime.trigger_notification(
            user_handle, notification_dict(notification),
        )
        if send_push:
            await self.realtime.push_to_user(
                user_handle, title, body,
                {
                    "url": push_path(notification_type, data),
                    "type": notification_type.value,
                    **(data or {}),
                },
            )
        return notification

    async def list_for_user(
        self,
        user_handle: str,
        read: bool | None = None,
        limit: int = DEFAULT_LIST_LIMIT,
    ) -> list[dict]:
        query = (
            select(Notification)
            .where(Notification.user_id == user_handle)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .limit(limit)
        )
        if read is not None:
            query = query.where(Notification.read.is_(read))
        result = await self.db.execute(query)
        return [
            notification_dict(n, await self._enrich(n))
            for n in result.scalars().all()
        ]

    async def _enrich(self, notification: Notification) -> dict | None:
        """Copy of the data with the live request / invitation status attached."""
        if not isinstance(notification.data, dict):
            return notification.data
        data = dict(notification.data)
        if notification.type == NotificationType.FRIEND_REQUEST.value and "requestId" in data:
            request = await self.db.get(FriendRequest, data["requestId"])
            if request is not None:
                data["requestStatus"] = request.status
        if notification.type == NotificationType.EVENT_INVITE.value and "invitationId" in data:
            invitation = await self.db.get(EventInvitation, data["invitationId"])
            if invitation is not None:
                data["invitationStatus"] = invitation.status
        return data

    async def _get_owned(self, notification_id: int, user_handle: str) -> Notification:
        notification = await self.db.get(Notification, notification_id)
        if notification is None:
            raise ResourceNotFoundError("Notification", notification_id)
        if notification.user_id != user_handle:
            raise PermissionDeniedError("Unauthorized")
        return notification

    async def mark_read(self, notification_id: int, user_handle: str) -> None:
        notification = await self._get_owned(notification_id, user_handle)
        notification.read = True
        await self.db.commit()

    async def mark_all_read(self, user_handle: str) -> int:
        result = await self.db.execute(
            update(Notification)
            .where(Notification.user_id == user_handle)
            .where(Notification.read.is_(False))
            .where(Notification.type != NotificationType.NEW_MESSAGE.value)
            .values(read=True)
        )
        await self.db.commit()
        return result.rowcount or 0

    async def delete(self, notification_id: int, user_handle: str) -> None:
        notification = await self._get_owned(notification_id, user_handle)
        await self.db.execute(
            delete(Notification).where(Notification.id == notification.id)
        )
        await self.db.commit()

    async def unread_count(self, user_handle: str) -> int:
        result = await self.db.execute(
            select(func.count(Notification.id))
            .where(Notification.user_id == user_handle)
            .where(Notification.read.is_(False))
            .where(Notification.type != NotificationType.NEW_MESSAGE.value)
        )
        return result.scalar_one()
