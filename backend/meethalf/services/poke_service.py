"""Poke Service — members nudging each other, with per-pair limits.

Invariants:
    - Both members must exist (404) and pass core/poke_rules.validate_poke
    - pokeCount is the number of pokes from the sender to the target, this one included
    - The poke broadcast and the web push to the target's device interest are best-effort
"""

import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from meethalf.core.arrival import display_name
from meethalf.core.domain_types import RealtimeEvent
from meethalf.core.errors import BusinessRuleError, ErrorContext
from meethalf.core.poke_rules import poke_push_body, summarize_pokes, validate_poke
from meethalf.infrastructure.realtime import RealtimeGateway, member_interest
from meethalf.models.poke_record import PokeRecord
from meethalf.services.access import (
    get_event_or_404, get_member_or_404, list_members,
)

logger = logging.getLogger(__name__)


class PokeService:
    def __init__(self, db: AsyncSession, realtime: RealtimeGateway):
        self.db = db
        self.realtime = realtime

    async def _pair_count(self, event_id: int, from_id: int, to_id: int) -> int:
        result = await self.db.execute(
            select(func.count(PokeRecord.id))
            .where(PokeRecord.event_id == event_id)
            .where(PokeRecord.from_member_id == from_id)
            .where(PokeRecord.to_member_id == to_id)
        )
        return result.scalar_one()

    async def poke(self, event_id: int, from_member_id: int, to_member_id: int) -> dict:
        from_member = await get_member_or_404(self.db, from_member_id)
        to_member = await get_member_or_404(self.db, to_member_id)

        existing = await self._pair_count(event_id, from_member_id, to_member_id)
        error = validate_poke(
            event_id, from_member_id, from_member.event_id,
            to_member_id, to_member.event_id, existing,
        )
        if error is not None:
            raise BusinessRuleError(
                error["message"], error["error_code"],
                ErrorContext(event_id=event_id, member_id=from_member_id),
            )

        self.db.add(PokeRecord(
            event_id=event_id,
            from_member_id=from_member_id,
            to_member_id=to_member_id,
        ))
        await self.db.commit()
        count = existing + 1

        from_nickname = display_name(from_member)
        await self.realtime.trigger_event(event_id, RealtimeEvent.POKE, {
            "fromMemberId": from_member_id,
            "fromNickname": from_nickname,
            "toMemberId": to_member_id,
            "toNickname": display_name(to_member),
            "count": count,
        })
        await self.realtime.push_to_interests(
            [member_interest(event_id, to_member_id)],
            "Someone poked you!",
            poke_push_body(from_nickname, count),
            {
                "eventId": str(event_id),
                "url": f"/events/{event_id}",
                "type": "poke",
                "fromNickname": from_nickname,
                "count": str(count),
            },
        )
        logger.info(
            "Poke sent",
            extra={"event_id": event_id, "member_id": from_member_id},
        )
        return {"success": True, "pokeCount": count, "totalPokes": count}

    async def stats(self, event_id: int) -> dict:
        await get_event_or_404(self.db, event_id)
        rows = (await self.db.execute(
            select(PokeRecord.from_member_id, PokeRecord.to_member_id)
            .where(PokeRecord.event_id == event_id)
            .order_by(PokeRecord.id)
        )).all()
        most_poked, most_poker, total, _ = summarize_pokes(rows)
        names = {m.id: display_name(m) for m in await list_members(self.db, event_id)}

        def tally(entry):
            if entry is None:
                return None
            return {
                "nickname": names.get(entry.member_id, "Unknown"),
                "count": entry.count,
            }

        return {
            "mostPoked": tally(most_poked),
            "mostPoker": tally(most_poker),
            "totalPokes": total,
        }
