"""Event Service — event CRUD, listings, status transitions and results.

Invariants:
    - New events default to start = now + 1 h, end = now + 3 h; end must be after start
    - Registered creators own the event by handle; anonymous creators must supply ownerId
    - An owner member is created only when ownerNickname is given; anonymous creators get
      a guest token for it
    - Every event gets a share token at creation (failure is logged, not fatal)
    - Updates and deletes are owner-only; updates broadcast event-updated and push to
      every registered member except the owner
    - Status only moves forward (core/arrival.next_event_status)
    - Deleting an event drops its members' ETA state through the injected EtaService

Design Decisions:
    - Friend invitations on create reuse InvitationService.invite and silently skip
      unknown handles (the dedicated invitations endpoint reports them instead)
"""

import logging
from datetime import datetime, timedelta, timezone

from pydantic.alias_generators import to_camel
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from meethalf.core.arrival import as_utc, build_event_result, next_event_status
from meethalf.core.domain_types import EventStatus, RealtimeEvent, TravelMode
from meethalf.core.errors import (
    AuthenticationError, ErrorContext, MeetHalfError,
    PermissionDeniedError, ValidationFailedError,
)
from meethalf.infrastructure.auth_tokens import create_guest_token
from meethalf.infrastructure.maps_client import GoogleMapsClient
from meethalf.infrastructure.realtime import RealtimeGateway, member_interest
from meethalf.models.event import Event
from meethalf.models.member import Member
from meethalf.models.poke_record import PokeRecord
from meethalf.models.user import User
from meethalf.schemas.event import EventCreate, EventUpdate
from meethalf.schemas.responses import event_dict, member_joined_payload
from meethalf.services.access import (
    Principal, get_event_or_404, is_event_owner, list_members,
)
from meethalf.services.eta_service import EtaService
from meethalf.services.invitation_service import InvitationService
from meethalf.services.share_token_service import ShareTokenService

logger = logging.getLogger(__name__)

DEFAULT_START_OFFSET = timedelta(hours=1)
DEFAULT_END_OFFSET = timedelta(hours=3)
NON_NULLABLE_FIELDS = {"name", "start_time", "end_time"}
TIME_FIELDS = {"start_time", "end_time"}
MEETING_POINT_FIELDS = {
    "meeting_point_lat", "meeting_point_lng",
    "meeting_point_name", "meeting_point_address",
}


def update_push_body(event_name: str, changed: set[str]) -> str:
    """Push text for an event update, most significant change first."""
    if "name" in changed:
        return f"Event name changed to {event_name}"
    if changed & TIME_FIELDS:
        return "Event time changed"
    if changed & MEETING_POINT_FIELDS:
        return "Meeting point changed"
    return "Event details updated"


class EventService:
    def __init__(
        self,
        db: AsyncSession,
        realtime: RealtimeGateway,
        maps: GoogleMapsClient | None = None,
        eta_service: EtaService | None = None,
    ):
        self.db = db
        self.realtime = realtime
        self.eta = eta_service or EtaService(realtime, maps)

    # ─── Create / Read ───────────────────────────────────────────

    async def create(
        self, body: EventCreate, principal: Principal,
    ) -> tuple[Event, Member | None, str | None]:
        """Create an event. Returns (event, owner member, guest token)."""
        now = datetime.now(timezone.utc)
        start_time = body.start_time or now + DEFAULT_START_OFFSET
        end_time = body.end_time or now + DEFAULT_END_OFFSET
        if as_utc(end_time) <= as_utc(start_time):
            raise ValidationFailedError(
                "endTime must be after startTime", field="endTime",
            )

        if principal.user is not None:
            if not principal.handle:
                raise AuthenticationError("User setup not completed")
            owner_id = principal.handle
        elif body.owner_id:
            owner_id = body.owner_id
        else:
            raise ValidationFailedError(
                "ownerId is required for anonymous users", field="ownerId",
            )

        event = Event(
            name=body.name,
            owner_id=owner_id,
            start_time=start_time,
            end_time=end_time,
            status=(body.status or EventStatus.UPCOMING).value,
            use_meet_half=body.use_meet_half,
            meeting_point_lat=body.meeting_point_lat,
            meeting_point_lng=body.meeting_point_lng,
            meeting_point_name=body.meeting_point_name,
            meeting_point_address=body.meeting_point_address,
            members=[],
        )
        self.db.add(event)

        owner_member = None
        nickname = body.owner_nickname.strip() if body.owner_nickname else ""
        if nickname:
            owner_member = Member(
                event=event,
                user_id=owner_id,
                nickname=nickname,
                travel_mode=(body.owner_travel_mode or TravelMode.DRIVING).value,
                share_location=body.owner_share_location,
            )
            self.db.add(owner_member)
        await self.db.commit()
        logger.info("Event created", extra={"event_id": event.id, "user_id": owner_id})

        try:
            await ShareTokenService(self.db).ensure_token(event.id)
        except MeetHalfError as e:
            logger.error(
                f"Share token creation failed: {e.message}",
                extra={"event_id": event.id, "error_code": e.code},
            )

        if owner_member is not None:
            await self.realtime.trigger_event(
                event.id, RealtimeEvent.MEMBER_JOINED,
                member_joined_payload(owner_member),
            )

        if principal.user is not None and body.invited_friend_ids:
            await InvitationService(self.db, self.realtime).invite(
                event, principal.user, body.invited_friend_ids,
            )

        guest_token = None
        if owner_member is not None and principal.user is None:
            guest_token = create_guest_token(owner_member.id, event.id)
        return event, owner_member, guest_token

    async def get(self, event_id: int) -> Event:
        return await get_event_or_404(self.db, event_id)

    async def list_for_user(self, handle: str) -> list[Event]:
        """Events the handle is a member of, newest first."""
        result = await self.db.execute(
            select(Event)
            .join(Member, Member.event_id == Event.id)
            .where(Member.user_id == handle)
            .order_by(Event.created_at.desc(), Event.id.desc())
        )
        return list(result.scalars().all())

    async def my_events(
        self, handle: str, status: str = "all", limit: int = 20, offset: int = 0,
    ) -> dict:
        base = (
            select(Event)
            .join(Member, Member.event_id == Event.id)
            .where(Member.user_id == handle)
        )
        if status != "all":
            base = base.where(Event.status == status)

        total = (await self.db.execute(
            select(func.count()).select_from(base.subquery())
        )).scalar_one()
        result = await self.db.execute(
            base.order_by(Event.start_time.asc(), Event.id.asc())
            .limit(limit).offset(offset)
        )
        events = result.scalars().all()
        return {
            "events": [
                {**event_dict(e), "memberCount": len(e.members)} for e in events
            ],
            "total": total,
            "hasMore": offset + limit < total,
        }

    # ─── Update / Delete ─────────────────────────────────────────

    async def update(
        self, event_id: int, body: EventUpdate, principal: Principal,
    ) -> Event:
        event = await get_event_or_404(self.db, event_id)
        context = ErrorContext(event_id=event_id, user_id=principal.handle)
        if not await is_event_owner(self.db, event, principal, body.owner_id):
            raise PermissionDeniedError(
                "Only event owner can update the event", context=context,
            )

        changes = body.changes()
        if not changes:
            raise ValidationFailedError("No fields to update", context=context)
        for name in NON_NULLABLE_FIELDS & changes.keys():
            if changes[name] is None:
                raise ValidationFailedError(
                    f"{to_camel(name)} cannot be null", field=to_camel(name),
                )
        start = changes.get("start_time", event.start_time)
        end = changes.get("end_time", event.end_time)
        if as_utc(end) <= as_utc(start):
            raise ValidationFailedError(
                "endTime must be after startTime", field="endTime",
            )

        for name, value in changes.items():
            setattr(event, name, value)
        await self.db.commit()

        changed = set(changes)
        await self.realtime.trigger_event(event.id, RealtimeEvent.EVENT_UPDATED, {
            "event": event_dict(event),
            "updatedFields": sorted(to_camel(name) for name in changed),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        })
        interests = [
            member_interest(event.id, m.id)
            for m in event.members
            if m.user_id and m.user_id != event.owner_id
        ]
        if interests:
            await self.realtime.push_to_interests(
                interests,
                "Event updated",
                update_push_body(event.name, changed),
                {
                    "eventId": event.id,
                    "url": f"/events/{event.id}",
                    "type": "event-updated",
                },
            )
        return event

    async def delete(self, event_id: int, principal: Principal) -> None:
        if principal.user is None:
            raise AuthenticationError()
        event = await get_event_or_404(self.db, event_id)
        if event.owner_id != principal.handle:
            raise PermissionDeniedError(
                "Only event owner can delete the event",
                context=ErrorContext(event_id=event_id, user_id=principal.handle),
            )
        await self.db.delete(event)
        await self.db.commit()
        self.eta.clear_event(event_id)
        logger.info("Event deleted", extra={"event_id": event_id})

    # ─── Status / Result ─────────────────────────────────────────

    async def update_statuses(self, now: datetime | None = None) -> int:
        """Advance upcoming/ongoing events by the clock. Returns how many changed."""
        now = now or datetime.now(timezone.utc)
        result = await self.db.execute(
            select(Event).where(Event.status.in_(
                [EventStatus.UPCOMING.value, EventStatus.ONGOING.value],
            ))
        )
        changed = 0
        for event in result.scalars().all():
            status = next_event_status(
                event.status, event.start_time, event.end_time, now,
            )
            if status.value != event.status:
                event.status = status.value
                changed += 1
        if changed:
            await self.db.commit()
        return changed

    async def get_result(self, event_id: int) -> dict:
        event = await get_event_or_404(self.db, event_id)
        members = await list_members(self.db, event_id)
        pokes = (await self.db.execute(
            select(PokeRecord)
            .where(PokeRecord.event_id == event_id)
            .order_by(PokeRecord.id)
        )).scalars().all()

        handles = [m.user_id for m in members if m.user_id]
        avatars: dict[str, str | None] = {}
        if handles:
            rows = await self.db.execute(
                select(User.user_id, User.avatar).where(User.user_id.in_(handles))
            )
            avatars = {handle: avatar for handle, avatar in rows.all()}
        return build_event_result(
            event.id, event.start_time, members, pokes, avatars,
        )
