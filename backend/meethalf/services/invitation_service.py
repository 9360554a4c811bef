"""Invitation Service — owners invite registered users into an event.

Invariants:
    - Only the event owner may invite; each (event, user) pair is invited at most once
    - Unknown handles and repeat invitations are reported per user, never abort the batch
    - Only the recipient may accept or reject, and only while the invitation is pending
    - Accepting creates the member (transit, sharing location, starting at the user's
      default location) unless the user is already a member

Design Decisions:
    - invite() is shared with event creation, which passes the invited friend list through
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from meethalf.core.domain_types import (
    NotificationType, RealtimeEvent, RequestStatus, TravelMode,
)
from meethalf.core.errors import (
    AuthenticationError, BusinessRuleError, ErrorContext,
    PermissionDeniedError, ResourceNotFoundError,
)
from meethalf.infrastructure.realtime import RealtimeGateway
from meethalf.models.event import Event
from meethalf.models.event_invitation import EventInvitation
from meethalf.models.member import Member
from meethalf.models.user import User
from meethalf.schemas.responses import invitation_dict, member_joined_payload
from meethalf.services.access import (
    Principal, find_member, get_event_or_404, get_user_by_handle,
)
from meethalf.services.notification_service import NotificationService

logger = logging.getLogger(__name__)


class InvitationService:
    def __init__(self, db: AsyncSession, realtime: RealtimeGateway):
        self.db = db
        self.realtime = realtime
        self.notifications = NotificationService(db, realtime)

    async def invite(
        self, event: Event, inviter: User, handles: list[str],
    ) -> tuple[list[dict], list[dict]]:
        """Invite each handle. Returns (invitations, per-user errors)."""
        invitations: list[dict] = []
        errors: list[dict] = []
        for handle in dict.fromkeys(handles):
            user = await get_user_by_handle(self.db, handle)
            if user is None:
                errors.append({"userId": handle, "error": "User not found"})
                continue
            existing = await self.db.execute(
                select(EventInvitation.id)
                .where(EventInvitation.event_id == event.id)
                .where(EventInvitation.to_user_id == handle)
            )
            if existing.scalar_one_or_none() is not None:
                errors.append({"userId": handle, "error": "Already invited"})
                continue

            invitation = EventInvitation(
                event_id=event.id,
                from_user_id=inviter.user_id,
                to_user_id=handle,
                status=RequestStatus.PENDING.value,
            )
            self.db.add(invitation)
            await self.db.commit()
            await self.db.refresh(invitation)

            await self.notifications.create(
                handle,
                NotificationType.EVENT_INVITE,
                "Event invitation",
                f'{inviter.name} invited you to "{event.name}"',
                {
                    "eventId": event.id,
                    "eventName": event.name,
                    "invitationId": invitation.id,
                    "fromUserId": inviter.user_id,
                    "fromUserName": inviter.name,
                },
            )
            invitations.append(invitation_dict(invitation))
        return invitations, errors

    async def invite_as_owner(
        self, event_id: int, principal: Principal, handles: list[str],
    ) -> tuple[list[dict], list[dict]]:
        if principal.user is None or not principal.handle:
            raise AuthenticationError()
        event = await get_event_or_404(self.db, event_id)
        if event.owner_id != principal.handle:
            raise PermissionDeniedError(
                "Only event owner can invite users",
                context=ErrorContext(event_id=event_id, user_id=principal.handle),
            )
        return await self.invite(event, principal.user, handles)

    async def list_pending(self, handle: str) -> list[dict]:
        result = await self.db.execute(
            select(EventInvitation, Event)
            .join(Event, Event.id == EventInvitation.event_id)
            .where(EventInvitation.to_user_id == handle)
            .where(EventInvitation.status == RequestStatus.PENDING.value)
            .order_by(EventInvitation.created_at.desc(), EventInvitation.id.desc())
        )
        return [invitation_dict(inv, event) for inv, event in result.all()]

    async def _get_pending_for(
        self, invitation_id: int, user: User, event_id: int | None,
    ) -> EventInvitation:
        invitation = await self.db.get(EventInvitation, invitation_id)
        if invitation is None:
            raise ResourceNotFoundError("Invitation", invitation_id)
        if event_id is not None and invitation.event_id != event_id:
            raise BusinessRuleError(
                "Invitation does not belong to this event", "INVALID_REQUEST",
            )
        if invitation.to_user_id != user.user_id:
            raise PermissionDeniedError("This invitation is not for you")
        if invitation.status != RequestStatus.PENDING.value:
            raise BusinessRuleError(
                "Invitation has already been processed", "INVALID_REQUEST",
            )
        return invitation

    async def accept(
        self, invitation_id: int, user: User, event_id: int | None = None,
    ) -> Member:
        invitation = await self._get_pending_for(invitation_id, user, event_id)
        event = await get_event_or_404(self.db, invitation.event_id)
        invitation.status = RequestStatus.ACCEPTED.value

        member = await find_member(self.db, event.id, user.user_id)
        created = member is None
        if created:
            member = Member(
                event=event,
                user_id=user.user_id,
                nickname=user.name,
                lat=user.default_lat,
                lng=user.default_lng,
                address=user.default_address,
                share_location=True,
                travel_mode=TravelMode.TRANSIT.value,
            )
            self.db.add(member)
        await self.db.commit()

        if created:
            await self.realtime.trigger_event(
                event.id, RealtimeEvent.MEMBER_JOINED, member_joined_payload(member),
            )
            if await get_user_by_handle(self.db, event.owner_id) is not None:
                await self.notifications.create(
                    event.owner_id,
                    NotificationType.EVENT_UPDATE,
                    "New member joined",
                    f'{user.name} joined "{event.name}"',
                    {
                        "eventId": event.id,
                        "eventName": event.name,
                        "memberId": member.id,
                        "memberName": user.name,
                    },
                )
        logger.info(
            "Invitation accepted",
            extra={"event_id": event.id, "user_id": user.user_id},
        )
        return member

    async def reject(
        self, invitation_id: int, user: User, event_id: int | None = None,
    ) -> None:
        invitation = await self._get_pending_for(invitation_id, user, event_id)
        invitation.status = RequestStatus.REJECTED.value
        await self.db.commit()
