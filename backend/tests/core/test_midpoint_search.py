"""Midpoint Search — step direction, candidate scoring and de-duplication."""

import pytest

from meethalf.core.domain_types import MidpointObjective
from meethalf.core.midpoint import (
    MAX_CANDIDATES, STEP_DEGREES, Traveler, dedupe_places, rank_candidates,
    score_times, slowest_index, step_toward,
)


def _el(seconds, meters=1000):
    return {
        "status": "OK",
        "duration": {"value": seconds},
        "distance": {"value": meters},
    }


TRAVELERS = [
    Traveler(1, "alice", 25.0, 121.0, "driving"),
    Traveler(2, "bob", 25.1, 121.1, "transit"),
]
CANDIDATES = [
    {"place_id": "a", "name": "Cafe A", "lat": 25.05, "lng": 121.05, "address": ""},
    {"place_id": "b", "name": "Cafe B", "lat": 25.06, "lng": 121.06, "address": ""},
]


def test_score_total_and_max():
    assert score_times([300, 900], MidpointObjective.MINIMIZE_TOTAL) == 1200
    assert score_times([300, 900], MidpointObjective.MINIMIZE_MAX) == 900


def test_step_moves_exactly_one_step_toward_target():
    lat, lng = step_toward((0.0, 0.0), (1.0, 0.0))
    assert lat == pytest.approx(STEP_DEGREES)
    assert lng == pytest.approx(0.0)


def test_step_returns_none_when_target_within_one_step():
    assert step_toward((0.0, 0.0), (STEP_DEGREES / 2, 0.0)) is None


def test_slowest_index_picks_first_maximum():
    assert slowest_index([100, 400, 400]) == 1


def test_rank_orders_by_objective():
    rows = [
        [_el(600), _el(300)],
        [_el(600), _el(1200)],
    ]
    by_total = rank_candidates(CANDIDATES, rows, TRAVELERS, MidpointObjective.MINIMIZE_TOTAL)
    assert [s.candidate["place_id"] for s in by_total] == ["a", "b"]
    assert by_total[0].total_time == 1200
    assert by_total[0].max_time == 600

    by_max = rank_candidates(CANDIDATES, rows, TRAVELERS, MidpointObjective.MINIMIZE_MAX)
    assert by_max[0].candidate["place_id"] == "a"
    assert by_max[0].member_times == [
        {"memberId": 1, "username": "alice", "travelTime": 600, "distance": 1000},
        {"memberId": 2, "username": "bob", "travelTime": 600, "distance": 1000},
    ]


def test_candidate_unreachable_by_any_member_is_dropped():
    rows = [
        [_el(100), _el(300)],
        [{"status": "ZERO_RESULTS"}, _el(300)],
    ]
    scored = rank_candidates(CANDIDATES, rows, TRAVELERS, MidpointObjective.MINIMIZE_TOTAL)
    assert [s.candidate["place_id"] for s in scored] == ["b"]


def test_missing_rows_mean_no_valid_candidates():
    assert rank_candidates(CANDIDATES, [], TRAVELERS, MidpointObjective.MINIMIZE_TOTAL) == []


def test_dedupe_keeps_first_and_skips_incomplete_places():
    places = [
        {"place_id": "a", "name": "A", "geometry": {"location": {"lat": 1, "lng": 2}}, "vicinity": "x"},
        {"place_id": "a", "name": "A again", "geometry": {"location": {"lat": 3, "lng": 4}}},
        {"place_id": "b", "name": "B", "geometry": {}},
        {"name": "No id", "geometry": {"location": {"lat": 1, "lng": 1}}},
    ]
    assert dedupe_places(places) == [
        {"place_id": "a", "name": "A", "lat": 1, "lng": 2, "address": "x"},
    ]


def test_dedupe_limits_candidates():
    places = [
        {"place_id": str(i), "name": f"P{i}", "geometry": {"location": {"lat": 0, "lng": 0}}}
        for i in range(MAX_CANDIDATES + 5)
    ]
    assert len(dedupe_places(places)) == MAX_CANDIDATES
