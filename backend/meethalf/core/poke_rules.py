"""Poke Rules — pure validation and statistics for member-to-member pokes.

Invariants:
    - A member may poke another member of the same event at most MAX_POKES_PER_PAIR times
    - A member can never poke themselves
    - Checks run in order: same event, not self, pair limit (first failure wins)
    - mostPoked / mostPoker pick the FIRST member reaching the strict maximum

Design Decisions:
    - Returns error dicts (not exceptions): services decide how to surface them,
      matching the enforce_* convention of returning {"status": "error", ...}
"""

from collections.abc import Iterable
from dataclasses import dataclass

MAX_POKES_PER_PAIR = 3


@dataclass(frozen=True)
class PokeTally:
    """Count attributed to a single member."""
    member_id: int
    count: int


def validate_poke(
    event_id: int,
    from_member_id: int,
    from_event_id: int,
    to_member_id: int,
    to_event_id: int,
    existing_count: int,
) -> dict | None:
    """Validate a poke. Returns an error dict or None when allowed."""
    if from_event_id != event_id or to_event_id != event_id:
        return {
            "status": "error",
            "error_code": "MEMBERS_NOT_IN_EVENT",
            "message": "Members do not belong to the same event",
        }
    if from_member_id == to_member_id:
        return {
            "status": "error",
            "error_code": "CANNOT_POKE_SELF",
            "message": "Cannot poke yourself",
        }
    if existing_count >= MAX_POKES_PER_PAIR:
        return {
            "status": "error",
            "error_code": "POKE_LIMIT_EXCEEDED",
            "message": (
                f"Poke limit exceeded (max {MAX_POKES_PER_PAIR} pokes per pair)"
            ),
        }
    return None


def _first_max(counts: dict[int, int]) -> PokeTally | None:
    best: PokeTally | None = None
    for member_id, count in counts.items():
        if best is None or count > best.count:
            best = PokeTally(member_id, count)
    return best


def summarize_pokes(
    pokes: Iterable[tuple[int, int]],
) -> tuple[PokeTally | None, PokeTally | None, int, dict[int, int]]:
    """Summarize (from_member_id, to_member_id) pairs.

    Returns (most_poked, most_poker, total, received_counts). Dicts keep
    insertion order, so ties resolve to the member first seen in the input.
    """
    received: dict[int, int] = {}
    sent: dict[int, int] = {}
    total = 0
    for from_id, to_id in pokes:
        received[to_id] = received.get(to_id, 0) + 1
        sent[from_id] = sent.get(from_id, 0) + 1
        total += 1
    return _first_max(received), _first_max(sent), total, received


def poke_push_body(from_nickname: str, count: int) -> str:
    """Push body for the poked member; shows the running count past the first poke."""
    if count > 1:
        return f"{from_nickname} poked you ({count} times)"
    return f"{from_nickname} poked you"
