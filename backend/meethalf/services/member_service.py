"""Member Service — joining, location sharing, arrival and member management.

Invariants:
    - A registered user joins an event at most once; joining again returns the existing row
    - Anonymous joiners get a guest_* id and a guest token bound to (member, event)
    - Location updates are accepted only inside the event time window (OUTSIDE_TIME_WINDOW)
    - ETA is recomputed only when the event has a meeting point and the member shares location
    - Arrival is recorded once (ALREADY_ARRIVED) and clears the member's ETA state
    - Members edit only their own row; removal is self or event owner; the owner cannot
      leave while other members remain (OWNER_CANNOT_LEAVE)
    - Offline members (user_id NULL) are managed by any participant of their event

Design Decisions:
    - Broadcasts after commit, so subscribers never see uncommitted rows
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from meethalf.core.arrival import (
    calculate_arrival_status, display_name, is_within_time_window,
)
from meethalf.core.domain_types import RealtimeEvent, TravelMode
from meethalf.core.errors import (
    AuthenticationError, BusinessRuleError, ConflictError, ErrorContext,
    PermissionDeniedError, ResourceNotFoundError, ValidationFailedError,
)
from meethalf.core.eta_tracker import EtaEstimate
from meethalf.core.identifiers import generate_guest_user_id
from meethalf.infrastructure.auth_tokens import create_guest_token
from meethalf.infrastructure.maps_client import GoogleMapsClient
from meethalf.infrastructure.realtime import RealtimeGateway
from meethalf.models.event import Event
from meethalf.models.member import Member
from meethalf.schemas.common import iso
from meethalf.schemas.event import JoinEventRequest, LocationUpdate
from meethalf.schemas.member import (
    MemberCreate, MemberLocationPatch, OfflineMemberCreate, OfflineMemberPatch,
)
from meethalf.schemas.responses import member_joined_payload
from meethalf.services.access import (
    Principal, find_member, get_event_or_404, get_member_or_404,
    get_user_by_handle, is_event_owner, is_event_participant,
    resolve_acting_member,
)
from meethalf.services.eta_service import EtaService

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _is_self(member: Member, principal: Principal) -> bool:
    if principal.user is not None:
        return bool(principal.handle) and member.user_id == principal.handle
    if principal.guest is not None:
        return member.id == principal.guest.member_id
    return False


def _apply(member: Member, fields: dict) -> None:
    for name, value in fields.items():
        if name == "travel_mode" and value is not None:
            value = TravelMode(value).value
        setattr(member, name, value)


class MemberService:
    def __init__(
        self,
        db: AsyncSession,
        realtime: RealtimeGateway,
        maps: GoogleMapsClient,
        eta_service: EtaService | None = None,
    ):
        self.db = db
        self.realtime = realtime
        self.eta = eta_service or EtaService(realtime, maps)

    async def _member_joined(self, member: Member) -> None:
        await self.realtime.trigger_event(
            member.event_id, RealtimeEvent.MEMBER_JOINED,
            member_joined_payload(member),
        )

    async def _require_participant(self, event: Event, principal: Principal) -> None:
        if principal.user is None and principal.guest is None:
            raise AuthenticationError(context=ErrorContext(event_id=event.id))
        if not await is_event_participant(self.db, event, principal):
            raise PermissionDeniedError(
                "You are not a member of this event",
                code="ACCESS_DENIED", context=ErrorContext(event_id=event.id),
            )

    # ─── In-event actions ────────────────────────────────────────

    async def join_event(
        self, event_id: int, body: JoinEventRequest, principal: Principal,
    ) -> tuple[Member, str | None, bool]:
        """Join an event. Returns (member, guest token, created)."""
        event = await get_event_or_404(self.db, event_id)

        if principal.user is not None:
            if not principal.handle:
                raise AuthenticationError("User setup not completed")
            existing = await find_member(self.db, event_id, principal.handle)
            if existing is not None:
                return existing, None, False
            user_id = principal.handle
        else:
            if principal.guest is not None and principal.guest.event_id == event_id:
                existing = await self.db.get(Member, principal.guest.member_id)
                if existing is not None and existing.event_id == event_id:
                    return existing, create_guest_token(existing.id, event_id), False
            user_id = generate_guest_user_id(int(_now().timestamp() * 1000))

        member = Member(
            event=event,
            user_id=user_id,
            nickname=body.nickname,
            share_location=body.share_location,
            travel_mode=(body.travel_mode or TravelMode.DRIVING).value,
        )
        self.db.add(member)
        await self.db.commit()
        logger.info(
            "Member joined",
            extra={"event_id": event_id, "member_id": member.id},
        )
        await self._member_joined(member)

        guest_token = None
        if principal.user is None:
            guest_token = create_guest_token(member.id, event_id)
        return member, guest_token, True

    async def update_location(
        self, event_id: int, body: LocationUpdate, principal: Principal,
    ) -> tuple[Member, EtaEstimate | None]:
        event = await get_event_or_404(self.db, event_id)
        member = await resolve_acting_member(self.db, event_id, principal)
        now = _now()
        if not is_within_time_window(event.start_time, event.end_time, now):
            raise BusinessRuleError(
                "Location updates are only allowed from 30 minutes before the "
                "start until 30 minutes after the end of the event",
                "OUTSIDE_TIME_WINDOW",
                ErrorContext(event_id=event_id, member_id=member.id),
            )

        member.lat, member.lng = body.lat, body.lng
        if body.address is not None:
            member.address = body.address
        if body.travel_mode is not None:
            member.travel_mode = body.travel_mode.value
        await self.db.commit()

        await self.realtime.trigger_event(event_id, RealtimeEvent.LOCATION_UPDATE, {
            "memberId": member.id,
            "nickname": display_name(member),
            "lat": body.lat,
            "lng": body.lng,
            "timestamp": now.isoformat(),
        })

        estimate = None
        if event.has_meeting_point and member.share_location:
            estimate = await self.eta.update_member_eta(
                event, member, body.lat, body.lng, member.travel_mode,
            )
        return member, estimate

    async def mark_arrival(self, event_id: int, principal: Principal) -> dict:
        event = await get_event_or_404(self.db, event_id)
        member = await resolve_acting_member(self.db, event_id, principal)
        if member.arrival_time is not None:
            raise BusinessRuleError(
                "Arrival already recorded", "ALREADY_ARRIVED",
                ErrorContext(event_id=event_id, member_id=member.id),
            )

        arrival_time = _now()
        member.arrival_time = arrival_time
        await self.db.commit()

        status, late_minutes = calculate_arrival_status(event.start_time, arrival_time)
        self.eta.clear_member(member.id)
        await self.realtime.trigger_event(event_id, RealtimeEvent.MEMBER_ARRIVED, {
            "memberId": member.id,
            "nickname": display_name(member),
            "arrivalTime": iso(arrival_time),
            "status": status.value,
        })
        return {
            "success": True,
            "arrivalTime": iso(arrival_time),
            "status": status.value,
            "lateMinutes": late_minutes,
        }

    async def list_etas(self, event_id: int) -> list[dict]:
        """Latest ETA of every located, sharing member who has not arrived."""
        event = await get_event_or_404(self.db, event_id)
        if not event.has_meeting_point:
            raise ValidationFailedError(
                "Event has no meeting point", context=ErrorContext(event_id=event_id),
            )
        etas = []
        for member in event.members:
            if not (member.share_location and member.has_location):
                continue
            if member.arrival_time is not None:
                continue
            snapshot = self.eta.get_member_eta(member.id)
            eta = None
            if snapshot is not None and snapshot.eta_seconds is not None:
                eta = {
                    "duration": snapshot.eta_text,
                    "durationValue": snapshot.eta_seconds,
                    "distance": snapshot.distance,
                }
            etas.append({
                "memberId": member.id,
                "nickname": display_name(member),
                "eta": eta,
                "movementStarted": snapshot.movement_started if snapshot else False,
                "isCountdown": snapshot.is_countdown if snapshot else False,
            })
        return etas

    # ─── Member management ───────────────────────────────────────

    async def add_member(self, body: MemberCreate, principal: Principal) -> Member:
        event = await get_event_or_404(self.db, body.event_id)
        adding_self = principal.is_user and principal.handle == body.username
        if not adding_self:
            await self._require_participant(event, principal)

        if await find_member(self.db, event.id, body.username) is not None:
            raise ConflictError(
                "Member already exists in this event", code="MEMBER_EXISTS",
                context=ErrorContext(event_id=event.id),
            )
        user = await get_user_by_handle(self.db, body.username)
        member = Member(
            event=event,
            user_id=body.username,
            nickname=user.name if user else None,
            lat=body.lat,
            lng=body.lng,
            address=body.address,
            travel_mode=(body.travel_mode or TravelMode.DRIVING).value,
        )
        self.db.add(member)
        await self.db.commit()
        await self._member_joined(member)
        return member

    async def update_member_location(
        self, member_id: int, body: MemberLocationPatch, principal: Principal,
    ) -> Member:
        member = await get_member_or_404(self.db, member_id)
        if principal.user is None and principal.guest is None:
            raise AuthenticationError()
        if not _is_self(member, principal):
            raise PermissionDeniedError("You can only update your own location")

        fields = body.model_dump(exclude_unset=True)
        _apply(member, fields)
        await self.db.commit()
        if "lat" in fields or "lng" in fields:
            await self.realtime.trigger_event(
                member.event_id, RealtimeEvent.LOCATION_UPDATE, {
                    "memberId": member.id,
                    "nickname": display_name(member),
                    "lat": member.lat,
                    "lng": member.lng,
                    "timestamp": _now().isoformat(),
                },
            )
        return member

    async def remove_member(self, member_id: int, principal: Principal) -> None:
        member = await get_member_or_404(self.db, member_id)
        if principal.user is None and principal.guest is None:
            raise AuthenticationError()
        event = await get_event_or_404(self.db, member.event_id)
        context = ErrorContext(event_id=event.id, member_id=member.id)
        if not (_is_self(member, principal) or await is_event_owner(self.db, event, principal)):
            raise PermissionDeniedError(
                "You can only remove yourself or members of your event",
                code="ACCESS_DENIED", context=context,
            )

        if member.user_id is not None and member.user_id == event.owner_id:
            others = (await self.db.execute(
                select(func.count(Member.id))
                .where(Member.event_id == event.id)
                .where(Member.id != member.id)
            )).scalar_one()
            if others:
                raise BusinessRuleError(
                    "Event owner cannot leave while other members remain",
                    "OWNER_CANNOT_LEAVE", context,
                )

        await self.db.delete(member)
        await self.db.commit()
        self.eta.clear_member(member_id)

    # ─── Offline members ─────────────────────────────────────────

    async def _get_offline_member(self, member_id: int) -> Member:
        member = await self.db.get(Member, member_id)
        if member is None or not member.is_offline:
            raise ResourceNotFoundError("Offline member", member_id, code="NOT_FOUND")
        return member

    async def create_offline(
        self, body: OfflineMemberCreate, principal: Principal,
    ) -> Member:
        event = await get_event_or_404(self.db, body.event_id)
        await self._require_participant(event, principal)
        member = Member(
            event=event,
            user_id=None,
            nickname=body.nickname,
            lat=body.lat,
            lng=body.lng,
            address=body.address,
            travel_mode=body.travel_mode.value,
            share_location=False,
        )
        self.db.add(member)
        await self.db.commit()
        await self._member_joined(member)
        return member

    async def update_offline(
        self, member_id: int, body: OfflineMemberPatch, principal: Principal,
    ) -> Member:
        member = await self._get_offline_member(member_id)
        event = await get_event_or_404(self.db, member.event_id)
        await self._require_participant(event, principal)

        fields = body.model_dump(exclude_unset=True)
        for name in ("nickname", "lat", "lng", "travel_mode"):
            if name in fields and fields[name] is None:
                raise ValidationFailedError(f"{name} cannot be null", field=name)
        _apply(member, fields)
        await self.db.commit()
        return member

    async def delete_offline(self, member_id: int, principal: Principal) -> None:
        member = await self._get_offline_member(member_id)
        event = await get_event_or_404(self.db, member.event_id)
        await self._require_participant(event, principal)
        await self.db.delete(member)
        await self.db.commit()
