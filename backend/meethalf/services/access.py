"""Access — caller identity and the lookups every event-scoped service needs.

Invariants:
    - A Principal is a registered user, a guest (member_id, event_id) or nothing
    - get_*_or_404 raise ResourceNotFoundError with stable codes (EVENT_NOT_FOUND, MEMBER_NOT_FOUND)
    - resolve_acting_member: users act through their member row in the event,
      guests through the member named in their token (same event only)
    - Event ownership: the owner's handle, the guest member carrying the owner id,
      or (anonymous) the owner id echoed in the request body

Design Decisions:
    - Shared module instead of a base service class: services stay flat and
      routes reuse the same lookups
"""

from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from meethalf.core.errors import (
    AuthenticationError, ErrorContext, PermissionDeniedError, ResourceNotFoundError,
)
from meethalf.infrastructure.auth_tokens import GuestClaims
from meethalf.models.event import Event
from meethalf.models.member import Member
from meethalf.models.user import User


@dataclass(frozen=True)
class Principal:
    """Who is calling. Both fields None means anonymous."""
    user: User | None = None
    guest: GuestClaims | None = None

    @property
    def handle(self) -> str | None:
        return self.user.user_id if self.user else None

    @property
    def is_user(self) -> bool:
        return self.user is not None


ANONYMOUS = Principal()


async def get_event_or_404(db: AsyncSession, event_id: int) -> Event:
    event = await db.get(Event, event_id)
    if event is None:
        raise ResourceNotFoundError(
            "Event", event_id, context=ErrorContext(event_id=event_id),
        )
    return event


async def get_member_or_404(db: AsyncSession, member_id: int) -> Member:
    member = await db.get(Member, member_id)
    if member is None:
        raise ResourceNotFoundError(
            "Member", member_id, context=ErrorContext(member_id=member_id),
        )
    return member


async def get_user_by_handle(db: AsyncSession, handle: str) -> User | None:
    result = await db.execute(select(User).where(User.user_id == handle))
    return result.scalar_one_or_none()


async def find_member(
    db: AsyncSession, event_id: int, user_id: str,
) -> Member | None:
    result = await db.execute(
        select(Member)
        .where(Member.event_id == event_id)
        .where(Member.user_id == user_id)
    )
    return result.scalar_one_or_none()


async def list_members(db: AsyncSession, event_id: int) -> list[Member]:
    result = await db.execute(
        select(Member).where(Member.event_id == event_id).order_by(Member.id)
    )
    return list(result.scalars().all())


async def resolve_acting_member(
    db: AsyncSession, event_id: int, principal: Principal,
) -> Member:
    """Member row the caller acts as inside an event."""
    context = ErrorContext(event_id=event_id)
    if principal.user is not None:
        if not principal.handle:
            raise AuthenticationError("User setup not completed", context=context)
        member = await find_member(db, event_id, principal.handle)
        if member is None:
            raise PermissionDeniedError(
                "You are not a member of this event",
                code="NOT_A_MEMBER", context=context,
            )
        return member
    if principal.guest is not None:
        if principal.guest.event_id != event_id:
            raise PermissionDeniedError(
                "Guest token does not belong to this event",
                code="NOT_A_MEMBER", context=context,
            )
        member = await db.get(Member, principal.guest.member_id)
        if member is None or member.event_id != event_id:
            raise ResourceNotFoundError(
                "Member", principal.guest.member_id, context=context,
            )
        return member
    raise AuthenticationError(context=context)


async def is_event_owner(
    db: AsyncSession,
    event: Event,
    principal: Principal,
    claimed_owner_id: str | None = None,
) -> bool:
    if principal.user is not None:
        return bool(principal.handle) and principal.handle == event.owner_id
    if principal.guest is not None and principal.guest.event_id == event.id:
        member = await db.get(Member, principal.guest.member_id)
        if member is not None and member.user_id == event.owner_id:
            return True
    return claimed_owner_id is not None and claimed_owner_id == event.owner_id


async def is_event_participant(
    db: AsyncSession, event: Event, principal: Principal,
) -> bool:
    """Owner, member (by handle) or guest of this event."""
    if principal.user is not None:
        if not principal.handle:
            return False
        if principal.handle == event.owner_id:
            return True
        return await find_member(db, event.id, principal.handle) is not None
    if principal.guest is not None:
        return principal.guest.event_id == event.id
    return False
