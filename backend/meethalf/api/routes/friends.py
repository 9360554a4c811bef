"""Friend Routes — requests, friend list and user search."""

from typing import Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from meethalf.api.dependencies import get_current_handle
from meethalf.infrastructure.database import get_db
from meethalf.infrastructure.realtime import RealtimeGateway, get_realtime
from meethalf.models.user import User
from meethalf.schemas.social import FriendRequestCreate
from meethalf.services.friend_service import FriendService, request_dict

router = APIRouter(prefix="/api/v1/friends", tags=["friends"])


def _service(
    db: AsyncSession = Depends(get_db),
    realtime: RealtimeGateway = Depends(get_realtime),
) -> FriendService:
    return FriendService(db, realtime)


@router.post("/requests")
async def send_request(
    body: FriendRequestCreate,
    user: User = Depends(get_current_handle),
    service: FriendService = Depends(_service),
):
    request = await service.send_request(user, body.to_user_id)
    return {"request": request_dict(request)}


@router.get("/requests")
async def list_requests(
    kind: Literal["received", "sent"] = Query("received", alias="type"),
    user: User = Depends(get_current_handle),
    service: FriendService = Depends(_service),
):
    return {"requests": await service.list_requests(user.user_id, kind)}


@router.post("/requests/{request_id}/accept")
async def accept_request(
    request_id: int,
    user: User = Depends(get_current_handle),
    service: FriendService = Depends(_service),
):
    await service.accept(request_id, user)
    return {"success": True}


@router.post("/requests/{request_id}/reject")
async def reject_request(
    request_id: int,
    user: User = Depends(get_current_handle),
    service: FriendService = Depends(_service),
):
    await service.reject(request_id, user)
    return {"success": True}


@router.get("")
async def list_friends(
    user: User = Depends(get_current_handle),
    service: FriendService = Depends(_service),
):
    return {"friends": await service.list_friends(user.user_id)}


@router.get("/search")
async def search_users(
    q: str = Query(min_length=1, max_length=100),
    user: User = Depends(get_current_handle),
    service: FriendService = Depends(_service),
):
    return {"users": await service.search(q, exclude=user.user_id)}


@router.delete("/{friend_id}")
async def remove_friend(
    friend_id: str,
    user: User = Depends(get_current_handle),
    service: FriendService = Depends(_service),
):
    await service.remove(user.user_id, friend_id)
    return {"success": True}
