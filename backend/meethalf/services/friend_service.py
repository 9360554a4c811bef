"""Friend Service — friend requests and the bidirectional friend graph.

Invariants:
    - Requests go to existing handles only (USER_NOT_FOUND) and never to oneself
    - "Already friends" and a pending request in either direction reject a new request
    - Re-requesting after a rejection or unfriend reuses the old row, reset to pending
    - Only the recipient may accept/reject, and only while pending
    - Accepting writes both friendship rows in one commit; removing deletes both
"""

import logging
from datetime import datetime

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from meethalf.core.domain_types import NotificationType, RealtimeEvent, RequestStatus
from meethalf.core.errors import (
    BusinessRuleError, PermissionDeniedError, ResourceNotFoundError,
)
from meethalf.infrastructure.realtime import RealtimeGateway, notification_channel
from meethalf.models.friend import Friend, FriendRequest
from meethalf.models.user import User
from meethalf.schemas.common import iso
from meethalf.schemas.responses import notification_dict, public_user_dict
from meethalf.services.access import get_user_by_handle
from meethalf.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

SEARCH_LIMIT = 20


def request_dict(request: FriendRequest) -> dict:
    return {
        "id": request.id,
        "fromUserId": request.from_user_id,
        "toUserId": request.to_user_id,
        "status": request.status,
        "createdAt": iso(request.created_at),
        "updatedAt": iso(request.updated_at),
    }


def friend_dict(user: User, since: datetime) -> dict:
    return {
        "userId": user.user_id,
        "name": user.name,
        "email": user.email,
        "avatar": user.avatar,
        "defaultLat": user.default_lat,
        "defaultLng": user.default_lng,
        "defaultAddress": user.default_address,
        "defaultLocationName": user.default_location_name,
        "defaultTravelMode": user.default_travel_mode,
        "createdAt": iso(since),
    }


class FriendService:
    def __init__(self, db: AsyncSession, realtime: RealtimeGateway):
        self.db = db
        self.realtime = realtime
        self.notifications = NotificationService(db, realtime)

    async def are_friends(self, user_id: str, friend_id: str) -> bool:
        result = await self.db.execute(
            select(Friend.id)
            .where(Friend.user_id == user_id)
            .where(Friend.friend_id == friend_id)
        )
        return result.scalar_one_or_none() is not None

    async def _has_pending(self, a: str, b: str) -> bool:
        result = await self.db.execute(
            select(func.count(FriendRequest.id))
            .where(FriendRequest.status == RequestStatus.PENDING.value)
            .where(or_(
                (FriendRequest.from_user_id == a) & (FriendRequest.to_user_id == b),
                (FriendRequest.from_user_id == b) & (FriendRequest.to_user_id == a),
            ))
        )
        return result.scalar_one() > 0

    # ─── Requests ────────────────────────────────────────────────

    async def send_request(self, sender: User, to_handle: str) -> FriendRequest:
        if to_handle == sender.user_id:
            raise BusinessRuleError(
                "Cannot send a friend request to yourself", "INVALID_REQUEST",
            )
        if await get_user_by_handle(self.db, to_handle) is None:
            raise ResourceNotFoundError("User", to_handle)
        if await self.are_friends(sender.user_id, to_handle):
            raise BusinessRuleError("Already friends", "INVALID_REQUEST")
        if await self._has_pending(sender.user_id, to_handle):
            raise BusinessRuleError("Friend request already exists", "INVALID_REQUEST")

        result = await self.db.execute(
            select(FriendRequest)
            .where(FriendRequest.from_user_id == sender.user_id)
            .where(FriendRequest.to_user_id == to_handle)
        )
        request = result.scalars().first()
        if request is None:
            request = FriendRequest(from_user_id=sender.user_id, to_user_id=to_handle)
            self.db.add(request)
        request.status = RequestStatus.PENDING.value
        await self.db.commit()
        await self.db.refresh(request)

        notification = await self.notifications.create(
            to_handle,
            NotificationType.FRIEND_REQUEST,
            "Friend request",
            f"{sender.name} wants to add you as a friend",
            {
                "requestId": request.id,
                "fromUserId": sender.user_id,
                "fromUserName": sender.name,
            },
        )
        await self.realtime.trigger(
            notification_channel(to_handle), RealtimeEvent.FRIEND_REQUEST, {
                "notification": notification_dict(notification),
                "request": request_dict(request),
                "fromUser": {"userId": sender.user_id, "name": sender.name},
            },
        )
        logger.info("Friend request sent", extra={"user_id": sender.user_id})
        return request

    async def list_requests(self, handle: str, kind: str = "received") -> list[dict]:
        """received: pending requests to me with fromUser; sent: all of mine with toUser."""
        query = select(FriendRequest).order_by(
            FriendRequest.created_at.desc(), FriendRequest.id.desc(),
        )
        if kind == "sent":
            query = query.where(FriendRequest.from_user_id == handle)
            other, key = "to_user_id", "toUser"
        else:
            query = (
                query.where(FriendRequest.to_user_id == handle)
                .where(FriendRequest.status == RequestStatus.PENDING.value)
            )
            other, key = "from_user_id", "fromUser"
        requests = (await self.db.execute(query)).scalars().all()

        handles = {getattr(r, other) for r in requests}
        users = {}
        if handles:
            rows = await self.db.execute(select(User).where(User.user_id.in_(handles)))
            users = {u.user_id: u for u in rows.scalars().all()}
        result = []
        for r in requests:
            user = users.get(getattr(r, other))
            result.append({
                **request_dict(r),
                key: public_user_dict(user) if user else None,
            })
        return result

    async def _get_pending_for(self, request_id: int, handle: str) -> FriendRequest:
        request = await self.db.get(FriendRequest, request_id)
        if request is None:
            raise ResourceNotFoundError("Friend request", request_id)
        if request.to_user_id != handle:
            raise PermissionDeniedError("Unauthorized")
        if request.status != RequestStatus.PENDING.value:
            raise BusinessRuleError("Friend request is not pending", "INVALID_REQUEST")
        return request

    async def accept(self, request_id: int, user: User) -> None:
        request = await self._get_pending_for(request_id, user.user_id)
        request.status = RequestStatus.ACCEPTED.value
        for a, b in (
            (request.from_user_id, request.to_user_id),
            (request.to_user_id, request.from_user_id),
        ):
            if not await self.are_friends(a, b):
                self.db.add(Friend(user_id=a, friend_id=b))
        await self.db.commit()

        notification = await self.notifications.create(
            request.from_user_id,
            NotificationType.FRIEND_ACCEPTED,
            "Friend request accepted",
            f"{user.name} accepted your friend request",
            {"friendId": user.user_id, "friendName": user.name},
        )
        await self.realtime.trigger(
            notification_channel(request.from_user_id),
            RealtimeEvent.FRIEND_ACCEPTED, {
                "notification": notification_dict(notification),
                "friend": {"userId": user.user_id, "name": user.name},
            },
        )

    async def reject(self, request_id: int, user: User) -> None:
        request = await self._get_pending_for(request_id, user.user_id)
        request.status = RequestStatus.REJECTED.value
        await self.db.commit()

    # ─── Friends ─────────────────────────────────────────────────

    async def list_friends(self, handle: str) -> list[dict]:
        rows = await self.db.execute(
            select(User, Friend.created_at)
            .join(Friend, Friend.friend_id == User.user_id)
            .where(Friend.user_id == handle)
            .order_by(Friend.created_at.desc(), Friend.id.desc())
        )
        return [friend_dict(user, since) for user, since in rows.all()]

    async def remove(self, handle: str, friend_handle: str) -> None:
        if not await self.are_friends(handle, friend_handle):
            raise BusinessRuleError("Not friends", "INVALID_REQUEST")
        await self.db.execute(
            delete(Friend).where(or_(
                (Friend.user_id == handle) & (Friend.friend_id == friend_handle),
                (Friend.user_id == friend_handle) & (Friend.friend_id == handle),
            ))
        )
        await self.db.commit()

    async def search(self, keyword: str, exclude: str | None = None) -> list[dict]:
        pattern = f"%{keyword.lower()}%"
        query = (
            select(User)
            .where(User.user_id.is_not(None))
            .where(or_(
                func.lower(User.name).like(pattern),
                func.lower(User.user_id).like(pattern),
                func.lower(User.email).like(pattern),
            ))
            .order_by(User.name)
            .limit(SEARCH_LIMIT)
        )
        if exclude:
            query = query.where(User.user_id != exclude)
        rows = await self.db.execute(query)
        return [public_user_dict(u) for u in rows.scalars().all()]
