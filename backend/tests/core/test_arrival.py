"""Arrival Rules — time window, arrival classification, status transitions, result ranking."""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import pytest

from meethalf.core.arrival import (
    NO_ONE, as_utc, build_event_result, calculate_arrival_status, display_name,
    is_within_time_window, next_event_status,
)
from meethalf.core.domain_types import ArrivalStatus, EventStatus

START = datetime(2026, 5, 1, 18, 0, tzinfo=timezone.utc)
END = START + timedelta(hours=2)


@dataclass
class Row:
    id: int
    user_id: str | None
    nickname: str | None
    arrival_time: datetime | None = None


@dataclass
class Poke:
    from_member_id: int
    to_member_id: int


# ─── Time window ─────────────────────────────────────────────────


@pytest.mark.parametrize("offset, inside", [
    (timedelta(minutes=-31), False),
    (timedelta(minutes=-30), True),
    (timedelta(hours=1), True),
    (timedelta(hours=2, minutes=30), True),
    (timedelta(hours=2, minutes=31), False),
])
def test_time_window_bounds(offset, inside):
    assert is_within_time_window(START, END, START + offset) is inside


def test_time_window_treats_naive_datetimes_as_utc():
    naive_start = START.replace(tzinfo=None)
    naive_end = END.replace(tzinfo=None)
    assert is_within_time_window(naive_start, naive_end, START)


def test_as_utc_converts_other_offsets():
    tokyo = timezone(timedelta(hours=9))
    assert as_utc(START.astimezone(tokyo)) == START


# ─── Arrival status ──────────────────────────────────────────────


def test_arrival_before_start_is_early():
    assert calculate_arrival_status(START, START - timedelta(minutes=1)) == (
        ArrivalStatus.EARLY, 0,
    )


def test_arrival_within_five_minutes_is_ontime():
    assert calculate_arrival_status(START, START + timedelta(minutes=5)) == (
        ArrivalStatus.ONTIME, 0,
    )


def test_late_minutes_round_half_up():
    status, late = calculate_arrival_status(
        START, START + timedelta(minutes=7, seconds=30),
    )
    assert status is ArrivalStatus.LATE
    assert late == 8


def test_late_minutes_round_down_below_half():
    _, late = calculate_arrival_status(START, START + timedelta(minutes=7, seconds=29))
    assert late == 7


# ─── Status transitions ──────────────────────────────────────────


def test_upcoming_becomes_ongoing_at_start():
    assert next_event_status("upcoming", START, END, START) is EventStatus.ONGOING


def test_upcoming_skips_to_ended_after_end():
    later = END + timedelta(seconds=1)
    assert next_event_status("upcoming", START, END, later) is EventStatus.ENDED


def test_ongoing_becomes_ended_after_end():
    later = END + timedelta(minutes=1)
    assert next_event_status("ongoing", START, END, later) is EventStatus.ENDED


def test_status_never_moves_backwards():
    before = START - timedelta(hours=1)
    assert next_event_status("ended", START, END, before) is EventStatus.ENDED
    assert next_event_status("ongoing", START, END, before) is EventStatus.ONGOING


# ─── Result ──────────────────────────────────────────────────────


def test_display_name_falls_back_to_handle_then_unknown():
    assert display_name(Row(1, "bob", None)) == "bob"
    assert display_name(Row(1, None, None)) == "Unknown"


def test_result_ranks_arrivals_and_puts_absent_last():
    members = [
        Row(1, "alice", "Alice", START + timedelta(minutes=12)),
        Row(2, "bob", "Bob"),
        Row(3, "carol", "Carol", START - timedelta(minutes=3)),
    ]
    result = build_event_result(7, START, members, [], {"alice": "a.png"})

    rankings = result["rankings"]
    assert [r["memberId"] for r in rankings] == [3, 1, 2]
    assert [r["rank"] for r in rankings] == [1, 2, None]
    assert rankings[0]["status"] == "early"
    assert rankings[1]["status"] == "late"
    assert rankings[1]["lateMinutes"] == 12
    assert rankings[1]["avatar"] == "a.png"
    assert rankings[2]["status"] == "absent"
    assert rankings[2]["lateMinutes"] is None
    assert result["stats"] == {
        "totalMembers": 3,
        "arrivedCount": 2,
        "lateCount": 1,
        "absentCount": 1,
        "totalPokes": 0,
    }


def test_result_without_pokes_reports_no_one():
    result = build_event_result(7, START, [Row(1, "alice", "Alice")], [])
    assert result["pokes"] == {"mostPoked": NO_ONE, "mostPoker": NO_ONE}


def test_result_attaches_poke_counts_and_leaders():
    members = [Row(1, "alice", "Alice"), Row(2, "bob", "Bob"), Row(3, "carol", "Carol")]
    pokes = [Poke(1, 2), Poke(3, 2), Poke(1, 3)]
    result = build_event_result(7, START, members, pokes)

    assert result["pokes"]["mostPoked"] == {"memberId": 2, "nickname": "Bob", "count": 2}
    assert result["pokes"]["mostPoker"] == {"memberId": 1, "nickname": "Alice", "count": 2}
    counts = {r["memberId"]: r["pokeCount"] for r in result["rankings"]}
    assert counts == {1: 0, 2: 2, 3: 1}
    assert result["stats"]["totalPokes"] == 3
