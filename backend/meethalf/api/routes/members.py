"""Member Routes — member rows outside the in-event flow, including offline members.

Invariants:
    - Offline routes are declared before /{member_id}
    - Authorization lives in MemberService; routes only translate to HTTP
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from meethalf.api.dependencies import get_principal
from meethalf.infrastructure.database import get_db
from meethalf.infrastructure.maps_client import GoogleMapsClient, get_maps_client
from meethalf.infrastructure.realtime import RealtimeGateway, get_realtime
from meethalf.schemas.member import (
    MemberCreate, MemberLocationPatch, OfflineMemberCreate, OfflineMemberPatch,
)
from meethalf.schemas.responses import member_dict
from meethalf.services.access import Principal
from meethalf.services.member_service import MemberService

router = APIRouter(prefix="/api/v1/members", tags=["members"])


def _service(
    db: AsyncSession = Depends(get_db),
    realtime: RealtimeGateway = Depends(get_realtime),
    maps: GoogleMapsClient = Depends(get_maps_client),
) -> MemberService:
    return MemberService(db, realtime, maps)


@router.post("", status_code=status.HTTP_201_CREATED)
async def add_member(
    body: MemberCreate,
    principal: Principal = Depends(get_principal),
    service: MemberService = Depends(_service),
):
    return {"member": member_dict(await service.add_member(body, principal))}


# ─── Offline members ─────────────────────────────────────────────


@router.post("/offline", status_code=status.HTTP_201_CREATED)
async def create_offline_member(
    body: OfflineMemberCreate,
    principal: Principal = Depends(get_principal),
    service: MemberService = Depends(_service),
):
    return {"member": member_dict(await service.create_offline(body, principal))}


@router.patch("/offline/{member_id}")
async def update_offline_member(
    member_id: int,
    body: OfflineMemberPatch,
    principal: Principal = Depends(get_principal),
    service: MemberService = Depends(_service),
):
    member = await service.update_offline(member_id, body, principal)
    return {"member": member_dict(member)}


@router.delete("/offline/{member_id}")
async def delete_offline_member(
    member_id: int,
    principal: Principal = Depends(get_principal),
    service: MemberService = Depends(_service),
):
    await service.delete_offline(member_id, principal)
    return {"message": "Offline member deleted successfully"}


# ─── Single member ───────────────────────────────────────────────


@router.patch("/{member_id}")
async def update_member(
    member_id: int,
    body: MemberLocationPatch,
    principal: Principal = Depends(get_principal),
    service: MemberService = Depends(_service),
):
    member = await service.update_member_location(member_id, body, principal)
    return {"member": member_dict(member)}


@router.delete("/{member_id}")
async def remove_member(
    member_id: int,
    principal: Principal = Depends(get_principal),
    service: MemberService = Depends(_service),
):
    await service.remove_member(member_id, principal)
    return {"message": "Member removed successfully"}
