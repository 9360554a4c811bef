"""Invitation Routes — owners invite users; recipients accept or reject.

Two routers share one service:
    - event_router  /api/v1/events/{event_id}/invitations  (owner invites, scoped accept/reject)
    - router        /api/v1/invitations                    (the caller's pending inbox)
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from meethalf.api.dependencies import get_current_handle, get_principal
from meethalf.infrastructure.database import get_db
from meethalf.infrastructure.realtime import RealtimeGateway, get_realtime
from meethalf.models.user import User
from meethalf.schemas.event import InvitationCreate
from meethalf.services.access import Principal
from meethalf.services.invitation_service import InvitationService

event_router = APIRouter(prefix="/api/v1/events", tags=["invitations"])
router = APIRouter(prefix="/api/v1/invitations", tags=["invitations"])


def _service(
    db: AsyncSession = Depends(get_db),
    realtime: RealtimeGateway = Depends(get_realtime),
) -> InvitationService:
    return InvitationService(db, realtime)


# ─── Event-scoped ────────────────────────────────────────────────


@event_router.post("/{event_id}/invitations", status_code=status.HTTP_201_CREATED)
async def invite_users(
    event_id: int,
    body: InvitationCreate,
    principal: Principal = Depends(get_principal),
    service: InvitationService = Depends(_service),
):
    invitations, errors = await service.invite_as_owner(
        event_id, principal, body.invited_user_ids,
    )
    payload: dict = {"invitations": invitations}
    if errors:
        payload["errors"] = errors
    return payload


@event_router.post("/{event_id}/invitations/{invitation_id}/accept")
async def accept_event_invitation(
    event_id: int,
    invitation_id: int,
    user: User = Depends(get_current_handle),
    service: InvitationService = Depends(_service),
):
    await service.accept(invitation_id, user, event_id=event_id)
    return {"success": True}


@event_router.post("/{event_id}/invitations/{invitation_id}/reject")
async def reject_event_invitation(
    event_id: int,
    invitation_id: int,
    user: User = Depends(get_current_handle),
    service: InvitationService = Depends(_service),
):
    await service.reject(invitation_id, user, event_id=event_id)
    return {"success": True}


# ─── Inbox ───────────────────────────────────────────────────────


@router.get("")
async def pending_invitations(
    user: User = Depends(get_current_handle),
    service: InvitationService = Depends(_service),
):
    return {"invitations": await service.list_pending(user.user_id)}


@router.post("/{invitation_id}/accept")
async def accept_invitation(
    invitation_id: int,
    user: User = Depends(get_current_handle),
    service: InvitationService = Depends(_service),
):
    member = await service.accept(invitation_id, user)
    return {"success": True, "eventId": member.event_id}


@router.post("/{invitation_id}/reject")
async def reject_invitation(
    invitation_id: int,
    user: User = Depends(get_current_handle),
    service: InvitationService = Depends(_service),
):
    await service.reject(invitation_id, user)
    return {"success": True}
