"""Event Routes — event CRUD, joining, live location, midpoints, pokes and results.

Invariants:
    - Static paths (/my-events, /calculate-midpoint) are declared before /{event_id}
    - Reading an event is public (needed to join from a share link)
    - Share tokens are visible to participants only (owner, members, guests of the event)
    - join answers 201 for a new member and 200 when the caller already belongs to the event
    - Routes never contain business logic (delegate to services)
"""

import logging
from typing import Literal

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from meethalf.api.dependencies import get_current_user, get_principal
from meethalf.core.domain_types import MidpointObjective
from meethalf.core.errors import AuthenticationError, ErrorContext, PermissionDeniedError
from meethalf.infrastructure.database import get_db
from meethalf.infrastructure.maps_client import GoogleMapsClient, get_maps_client
from meethalf.infrastructure.realtime import RealtimeGateway, get_realtime
from meethalf.models.user import User
from meethalf.schemas.event import (
    EventCreate, EventUpdate, JoinEventRequest, LocationUpdate, PokeRequest,
    TempMidpointRequest,
)
from meethalf.schemas.responses import event_dict, member_dict
from meethalf.services.access import (
    Principal, get_event_or_404, is_event_participant, list_members,
    resolve_acting_member,
)
from meethalf.services.event_service import EventService
from meethalf.services.member_service import MemberService
from meethalf.services.midpoint_service import MidpointService
from meethalf.services.poke_service import PokeService
from meethalf.services.share_token_service import ShareTokenService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/events", tags=["events"])


def _events(
    db: AsyncSession = Depends(get_db),
    realtime: RealtimeGateway = Depends(get_realtime),
    maps: GoogleMapsClient = Depends(get_maps_client),
) -> EventService:
    return EventService(db, realtime, maps)


def _members(
    db: AsyncSession = Depends(get_db),
    realtime: RealtimeGateway = Depends(get_realtime),
    maps: GoogleMapsClient = Depends(get_maps_client),
) -> MemberService:
    return MemberService(db, realtime, maps)


def _midpoints(
    db: AsyncSession = Depends(get_db),
    maps: GoogleMapsClient = Depends(get_maps_client),
) -> MidpointService:
    return MidpointService(db, maps)


async def _require_participant(
    db: AsyncSession, event_id: int, principal: Principal,
) -> None:
    if principal.user is None and principal.guest is None:
        raise AuthenticationError()
    event = await get_event_or_404(db, event_id)
    if not await is_event_participant(db, event, principal):
        raise PermissionDeniedError(
            "Only event owner or members can access share token",
            context=ErrorContext(event_id=event_id, user_id=principal.handle),
        )


# ─── Collection ──────────────────────────────────────────────────


@router.get("")
async def list_events(
    principal: Principal = Depends(get_principal),
    service: EventService = Depends(_events),
):
    """Events the signed-in user belongs to; anonymous callers get an empty list."""
    if not principal.handle:
        return {"events": []}
    events = await service.list_for_user(principal.handle)
    return {"events": [event_dict(e) for e in events]}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_event(
    body: EventCreate,
    principal: Principal = Depends(get_principal),
    service: EventService = Depends(_events),
):
    event, owner_member, guest_token = await service.create(body, principal)
    payload: dict = {"event": event_dict(event)}
    if owner_member is not None:
        payload["member"] = member_dict(owner_member)
        if guest_token:
            payload["guestToken"] = guest_token
    return payload


@router.get("/my-events")
async def my_events(
    event_status: Literal["upcoming", "ongoing", "ended", "all"] = Query(
        "all", alias="status",
    ),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: User = Depends(get_current_user),
    service: EventService = Depends(_events),
):
    if not user.user_id:
        return {"events": [], "total": 0, "hasMore": False}
    return await service.my_events(user.user_id, event_status, limit, offset)


@router.post("/calculate-midpoint")
async def calculate_midpoint(
    body: TempMidpointRequest,
    service: MidpointService = Depends(_midpoints),
):
    """Ad-hoc midpoint for locations that are not (yet) an event."""
    return await service.calculate_midpoint(body)


# ─── Single event ────────────────────────────────────────────────


@router.get("/{event_id}")
async def get_event(event_id: int, db: AsyncSession = Depends(get_db)):
    event = await get_event_or_404(db, event_id)
    return {"event": event_dict(event, await list_members(db, event_id))}


@router.patch("/{event_id}")
async def update_event(
    event_id: int,
    body: EventUpdate,
    principal: Principal = Depends(get_principal),
    service: EventService = Depends(_events),
):
    event = await service.update(event_id, body, principal)
    return {"event": event_dict(event)}


@router.delete("/{event_id}")
async def delete_event(
    event_id: int,
    principal: Principal = Depends(get_principal),
    service: EventService = Depends(_events),
):
    await service.delete(event_id, principal)
    return {"success": True}


@router.get("/{event_id}/share-token")
async def get_share_token(
    event_id: int,
    principal: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
):
    await _require_participant(db, event_id, principal)
    return {"token": await ShareTokenService(db).ensure_token(event_id)}


@router.post("/{event_id}/share-token")
async def regenerate_share_token(
    event_id: int,
    principal: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
):
    await _require_participant(db, event_id, principal)
    return {"token": await ShareTokenService(db).regenerate_token(event_id)}


# ─── Midpoints ───────────────────────────────────────────────────


@router.get("/{event_id}/midpoint")
async def geographic_midpoint(
    event_id: int,
    service: MidpointService = Depends(_midpoints),
):
    return await service.geographic_midpoint(event_id)


@router.get("/{event_id}/midpoint_by_time")
async def time_midpoint(
    event_id: int,
    objective: MidpointObjective = Query(MidpointObjective.MINIMIZE_TOTAL),
    force_recalculate: bool = Query(False, alias="forceRecalculate"),
    service: MidpointService = Depends(_midpoints),
):
    return await service.time_midpoint(event_id, objective, force=force_recalculate)


@router.get("/{event_id}/routes_to_midpoint")
async def routes_to_midpoint(
    event_id: int,
    lat: float = Query(ge=-90, le=90),
    lng: float = Query(ge=-180, le=180),
    service: MidpointService = Depends(_midpoints),
):
    return await service.routes_to_midpoint(event_id, lat, lng)


# ─── Live participation ──────────────────────────────────────────


@router.post("/{event_id}/join")
async def join_event(
    event_id: int,
    body: JoinEventRequest,
    response: Response,
    principal: Principal = Depends(get_principal),
    service: MemberService = Depends(_members),
):
    member, guest_token, created = await service.join_event(event_id, body, principal)
    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    return {"member": member_dict(member), "guestToken": guest_token}


@router.post("/{event_id}/location")
async def update_location(
    event_id: int,
    body: LocationUpdate,
    principal: Principal = Depends(get_principal),
    service: MemberService = Depends(_members),
):
    member, estimate = await service.update_location(event_id, body, principal)
    return {
        "member": member_dict(member),
        "eta": estimate.to_dict() if estimate is not None else None,
    }


@router.get("/{event_id}/members/eta")
async def member_etas(
    event_id: int,
    service: MemberService = Depends(_members),
):
    return {"members": await service.list_etas(event_id)}


@router.post("/{event_id}/arrival")
async def mark_arrival(
    event_id: int,
    principal: Principal = Depends(get_principal),
    service: MemberService = Depends(_members),
):
    return await service.mark_arrival(event_id, principal)


@router.post("/{event_id}/poke")
async def poke_member(
    event_id: int,
    body: PokeRequest,
    principal: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
    realtime: RealtimeGateway = Depends(get_realtime),
):
    await get_event_or_404(db, event_id)
    sender = await resolve_acting_member(db, event_id, principal)
    return await PokeService(db, realtime).poke(
        event_id, sender.id, body.target_member_id,
    )


@router.get("/{event_id}/pokes")
async def poke_stats(
    event_id: int,
    db: AsyncSession = Depends(get_db),
    realtime: RealtimeGateway = Depends(get_realtime),
):
    await get_event_or_404(db, event_id)
    return await PokeService(db, realtime).stats(event_id)


@router.get("/{event_id}/result")
async def event_result(
    event_id: int,
    service: EventService = Depends(_events),
):
    return {"result": await service.get_result(event_id)}
