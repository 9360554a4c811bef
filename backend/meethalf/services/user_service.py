"""User Service — Google sign-in upsert, public handles, profile and personal stats.

Invariants:
    - Google users are matched by google_id first, then by email; a match keeps its own
      name and avatar unless Google supplies a new avatar
    - New users start with needs_setup=True and no handle; complete_setup assigns the
      handle once (SETUP_ALREADY_COMPLETED, USERID_TAKEN)
    - Suggested handles are "<email prefix>_<3 random chars>", probed up to
      MAX_HANDLE_ATTEMPTS times before falling back to a base36 timestamp suffix
    - Stats count only events the user joined under their handle
"""

import logging
import time

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from meethalf.core.arrival import calculate_arrival_status
from meethalf.core.domain_types import ArrivalStatus
from meethalf.core.errors import BusinessRuleError, ResourceNotFoundError
from meethalf.core.identifiers import handle_from_email, random_suffix
from meethalf.infrastructure.google_oauth import GoogleProfile
from meethalf.models.event import Event
from meethalf.models.member import Member
from meethalf.models.poke_record import PokeRecord
from meethalf.models.user import User
from meethalf.schemas.user import CompleteSetup, ProfileUpdate
from meethalf.services.access import get_user_by_handle

logger = logging.getLogger(__name__)

MAX_HANDLE_ATTEMPTS = 10
PROVIDER_GOOGLE = "GOOGLE"


def _base36(value: int) -> str:
    digits = "0123456789abcdefghijklmnopqrstuvwxyz"
    out = ""
    while value:
        value, rem = divmod(value, 36)
        out = digits[rem] + out
    return out or "0"


class UserService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, user_id: int) -> User:
        user = await self.db.get(User, user_id)
        if user is None:
            raise ResourceNotFoundError("User", user_id)
        return user

    async def handle_taken(self, handle: str) -> bool:
        return await get_user_by_handle(self.db, handle) is not None

    async def suggest_handle(self, email: str) -> str:
        for _ in range(MAX_HANDLE_ATTEMPTS):
            candidate = handle_from_email(email, random_suffix())
            if not await self.handle_taken(candidate):
                return candidate
        return handle_from_email(email, _base36(int(time.time() * 1000))[-3:])

    # ─── Sign-in ─────────────────────────────────────────────────

    async def upsert_google_user(self, profile: GoogleProfile) -> User:
        result = await self.db.execute(
            select(User).where(User.google_id == profile.google_id)
        )
        user = result.scalars().first()
        if user is None:
            result = await self.db.execute(
                select(User).where(User.email == profile.email)
            )
            user = result.scalars().first()

        if user is None:
            user = User(
                google_id=profile.google_id,
                email=profile.email,
                name=profile.name,
                avatar=profile.avatar,
                provider=PROVIDER_GOOGLE,
                needs_setup=True,
            )
            self.db.add(user)
            logger.info("New Google user", extra={"path": "/auth/google/callback"})
        else:
            user.google_id = profile.google_id
            user.email = profile.email
            user.name = user.name or profile.name
            user.avatar = profile.avatar or user.avatar
            user.provider = PROVIDER_GOOGLE
        await self.db.commit()
        await self.db.refresh(user)
        return user

    # ─── Profile ─────────────────────────────────────────────────

    async def update_profile(self, user_id: int, body: ProfileUpdate) -> User:
        user = await self.get(user_id)
        for name, value in body.model_dump(exclude_unset=True).items():
            if name == "default_travel_mode" and value is not None:
                value = value.value
            setattr(user, name, value)
        await self.db.commit()
        await self.db.refresh(user)
        return user

    async def check_handle(self, handle: str, email: str | None = None) -> dict:
        available = not await self.handle_taken(handle)
        suggestion = None
        if not available and email:
            suggestion = await self.suggest_handle(email)
        return {"available": available, "suggestion": suggestion}

    async def complete_setup(self, user_id: int, body: CompleteSetup) -> User:
        user = await self.get(user_id)
        if not user.needs_setup and user.user_id:
            raise BusinessRuleError(
                "User has already completed setup", "SETUP_ALREADY_COMPLETED",
            )
        if await self.handle_taken(body.user_id):
            raise BusinessRuleError("This user ID is already taken", "USERID_TAKEN")

        user.user_id = body.user_id
        user.default_lat = body.default_lat
        user.default_lng = body.default_lng
        user.default_address = body.default_address
        user.default_location_name = body.default_location_name
        user.default_travel_mode = (
            body.default_travel_mode.value if body.default_travel_mode else None
        )
        user.needs_setup = False
        await self.db.commit()
        await self.db.refresh(user)
        logger.info("User setup completed", extra={"user_id": user.user_id})
        return user

    # ─── Stats ───────────────────────────────────────────────────

    async def stats(self, user: User) -> dict:
        empty = {
            "totalEvents": 0,
            "ontimeCount": 0,
            "lateCount": 0,
            "averageLateMinutes": 0,
            "totalPokesReceived": 0,
            "totalPokesSent": 0,
        }
        if not user.user_id:
            return empty

        rows = (await self.db.execute(
            select(Member.id, Member.arrival_time, Event.start_time)
            .join(Event, Event.id == Member.event_id)
            .where(Member.user_id == user.user_id)
        )).all()
        if not rows:
            return empty

        ontime = 0
        late_minutes: list[int] = []
        for _, arrival_time, start_time in rows:
            if arrival_time is None:
                continue
            status, minutes = calculate_arrival_status(start_time, arrival_time)
            if status is ArrivalStatus.LATE:
                late_minutes.append(minutes)
            else:
                ontime += 1

        member_ids = [row[0] for row in rows]
        received = (await self.db.execute(
            select(func.count(PokeRecord.id))
            .where(PokeRecord.to_member_id.in_(member_ids))
        )).scalar_one()
        sent = (await self.db.execute(
            select(func.count(PokeRecord.id))
            .where(PokeRecord.from_member_id.in_(member_ids))
        )).scalar_one()

        average = round(sum(late_minutes) / len(late_minutes), 1) if late_minutes else 0
        return {
            "totalEvents": len(rows),
            "ontimeCount": ontime,
            "lateCount": len(late_minutes),
            "averageLateMinutes": average,
            "totalPokesReceived": received,
            "totalPokesSent": sent,
        }
