"""Midpoint Search — pure pieces of the time-based meeting point optimizer.

Invariants:
    - The search starts at the centroid and runs at most MAX_ITERATIONS steps
    - Each step moves STEP_DEGREES toward the member with the longest travel time
    - The search stops early when that member is closer than one step
    - A candidate is scored only if EVERY member has a valid route to it
    - minimize_total scores by the sum of travel times, minimize_max by the largest one

Design Decisions:
    - Travel-time lookups stay in services/midpoint_service.py; this module only decides
      where to look next and which candidate wins (ADR: impureim sandwich)
    - Distance Matrix elements are consumed in Google's own shape
      ({"status", "duration": {"value"}, "distance": {"value"}}) to avoid a translation layer
"""

import math
from collections.abc import Sequence
from dataclasses import dataclass, field

from meethalf.core.domain_types import MidpointObjective

MAX_ITERATIONS = 5
STEP_DEGREES = 0.005
CANDIDATE_RADIUS_METERS = 1000
CANDIDATE_TYPE = "cafe"
MAX_CANDIDATES = 20


@dataclass(frozen=True)
class Traveler:
    """A located member taking part in the search."""
    member_id: int
    name: str
    lat: float
    lng: float
    travel_mode: str


@dataclass
class CandidateScore:
    candidate: dict
    score: int
    total_time: int
    max_time: int
    member_times: list[dict] = field(default_factory=list)


def score_times(times: Sequence[int], objective: MidpointObjective) -> int:
    """Objective value of a set of travel times (lower is better)."""
    if objective is MidpointObjective.MINIMIZE_MAX:
        return max(times)
    return sum(times)


def step_toward(
    current: tuple[float, float],
    target: tuple[float, float],
    step: float = STEP_DEGREES,
) -> tuple[float, float] | None:
    """Move current toward target by step degrees; None when target is within one step."""
    d_lat = target[0] - current[0]
    d_lng = target[1] - current[1]
    distance = math.sqrt(d_lat * d_lat + d_lng * d_lng)
    if distance < step:
        return None
    return (
        current[0] + d_lat / distance * step,
        current[1] + d_lng / distance * step,
    )


def slowest_index(times: Sequence[int]) -> int:
    """Index of the first maximum travel time."""
    return times.index(max(times))


def _ok(element: dict) -> bool:
    return element.get("status") == "OK" and bool(element.get("duration"))


def rank_candidates(
    candidates: Sequence[dict],
    rows: Sequence[Sequence[dict]],
    travelers: Sequence[Traveler],
    objective: MidpointObjective,
) -> list[CandidateScore]:
    """Score candidates against per-traveler Distance Matrix rows, best first.

    rows[i][j] is the element for traveler i to candidate j.
    """
    scored: list[CandidateScore] = []
    for j, candidate in enumerate(candidates):
        member_times: list[dict] = []
        times: list[int] = []
        for i, traveler in enumerate(travelers):
            row = rows[i] if i < len(rows) else []
            element = row[j] if j < len(row) else {}
            if not _ok(element):
                break
            travel_time = element["duration"]["value"]
            times.append(travel_time)
            member_times.append({
                "memberId": traveler.member_id,
                "username": traveler.name,
                "travelTime": travel_time,
                "distance": element.get("distance", {}).get("value"),
            })
        else:
            scored.append(CandidateScore(
                candidate=candidate,
                score=score_times(times, objective),
                total_time=sum(times),
                max_time=max(times),
                member_times=member_times,
            ))
    scored.sort(key=lambda s: s.score)
    return scored


def dedupe_places(places: Sequence[dict], limit: int = MAX_CANDIDATES) -> list[dict]:
    """Nearby Search results -> unique candidates keyed by place_id."""
    seen: dict[str, dict] = {}
    for place in places:
        location = (place.get("geometry") or {}).get("location")
        place_id = place.get("place_id")
        if not (place_id and place.get("name") and location):
            continue
        seen.setdefault(place_id, {
            "place_id": place_id,
            "name": place["name"],
            "lat": location["lat"],
            "lng": location["lng"],
            "address": place.get("vicinity") or place.get("formatted_address") or "",
        })
    return list(seen.values())[:limit]
