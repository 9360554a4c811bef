"""Arrival Rules — time window, arrival status, event status transitions and result ranking.

Invariants:
    - Location updates are accepted only within [start - 30 min, end + 30 min]
    - Arrival within 5 minutes after start (inclusive) is "ontime"; before start is "early"
    - Late minutes are rounded half-up; early/ontime arrivals report 0 late minutes
    - Rankings: arrived members by arrival time ascending (rank 1..n), absent members last with rank None
    - Status only moves forward: upcoming -> ongoing -> ended

Design Decisions:
    - Pure functions over duck-typed member/poke rows: works with ORM objects and test doubles alike
    - Naive datetimes are treated as UTC (SQLite drops tzinfo on round-trip)
"""

import math
from collections.abc import Sequence
from datetime import datetime, timedelta, timezone
from typing import Protocol

from meethalf.core.domain_types import ArrivalStatus, EventStatus
from meethalf.core.poke_rules import summarize_pokes

TIME_WINDOW_BEFORE = timedelta(minutes=30)
TIME_WINDOW_AFTER = timedelta(minutes=30)
ONTIME_GRACE_MINUTES = 5
NO_ONE = {"nickname": "None", "count": 0}


class MemberRow(Protocol):
    id: int
    user_id: str | None
    nickname: str | None
    arrival_time: datetime | None


class PokeRow(Protocol):
    from_member_id: int
    to_member_id: int


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes; convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def display_name(member: MemberRow) -> str:
    """Nickname shown in rankings, pushes and broadcasts."""
    return member.nickname or member.user_id or "Unknown"


def is_within_time_window(
    start_time: datetime, end_time: datetime, now: datetime,
) -> bool:
    """True when now lies in the location-sharing window of the event."""
    window_start = as_utc(start_time) - TIME_WINDOW_BEFORE
    window_end = as_utc(end_time) + TIME_WINDOW_AFTER
    return window_start <= as_utc(now) <= window_end


def calculate_arrival_status(
    start_time: datetime, arrival_time: datetime,
) -> tuple[ArrivalStatus, int]:
    """Classify an arrival. Returns (status, late_minutes)."""
    diff_minutes = (
        as_utc(arrival_time) - as_utc(start_time)
    ).total_seconds() / 60
    if diff_minutes < 0:
        return ArrivalStatus.EARLY, 0
    if diff_minutes <= ONTIME_GRACE_MINUTES:
        return ArrivalStatus.ONTIME, 0
    return ArrivalStatus.LATE, math.floor(diff_minutes + 0.5)


def next_event_status(
    status: str, start_time: datetime, end_time: datetime, now: datetime,
) -> EventStatus:
    """Time-driven status transition (never moves backwards)."""
    current = EventStatus(status)
    start, end, now = as_utc(start_time), as_utc(end_time), as_utc(now)
    if current in (EventStatus.UPCOMING, EventStatus.ONGOING) and end < now:
        return EventStatus.ENDED
    if current is EventStatus.UPCOMING and start <= now <= end:
        return EventStatus.ONGOING
    return current


def build_event_result(
    event_id: int,
    start_time: datetime,
    members: Sequence[MemberRow],
    pokes: Sequence[PokeRow],
    avatars: dict[str, str | None] | None = None,
) -> dict:
    """Rank members by arrival and attach poke statistics."""
    avatars = avatars or {}
    most_poked, most_poker, total_pokes, received = summarize_pokes(
        (p.from_member_id, p.to_member_id) for p in pokes
    )

    arrived: list[tuple[datetime, dict]] = []
    absent: list[dict] = []
    for member in members:
        entry = {
            "memberId": member.id,
            "nickname": display_name(member),
            "userId": member.user_id,
            "avatar": avatars.get(member.user_id) if member.user_id else None,
            "arrivalTime": None,
            "status": ArrivalStatus.ABSENT.value,
            "lateMinutes": None,
            "rank": None,
            "pokeCount": received.get(member.id, 0),
        }
        if member.arrival_time is None:
            absent.append(entry)
            continue
        status, late_minutes = calculate_arrival_status(
            start_time, member.arrival_time,
        )
        entry.update(
            arrivalTime=as_utc(member.arrival_time).isoformat(),
            status=status.value,
            lateMinutes=late_minutes,
        )
        arrived.append((as_utc(member.arrival_time), entry))

    arrived.sort(key=lambda pair: pair[0])
    ranked = [entry for _, entry in arrived]
    for rank, entry in enumerate(ranked, start=1):
        entry["rank"] = rank
    rankings = ranked + absent

    names = {m.id: display_name(m) for m in members}

    def _tally(tally) -> dict:
        if tally is None:
            return dict(NO_ONE)
        return {
            "memberId": tally.member_id,
            "nickname": names.get(tally.member_id, "Unknown"),
            "count": tally.count,
        }

    return {
        "eventId": event_id,
        "rankings": rankings,
        "stats": {
            "totalMembers": len(members),
            "arrivedCount": len(arrived),
            "lateCount": sum(
                1 for r in rankings if r["status"] == ArrivalStatus.LATE.value
            ),
            "absentCount": len(absent),
            "totalPokes": total_pokes,
        },
        "pokes": {
            "mostPoked": _tally(most_poked),
            "mostPoker": _tally(most_poker),
        },
    }
