"""ETA Tracker — per-member movement detection, recalculation throttling and transit countdown.

Invariants:
    - First observation records the initial position and reports "not moving"
    - Movement starts once a position is >= MOVEMENT_THRESHOLD_METERS from the initial one
    - Changing travel mode resets movement, base ETA and last-computed time (position history kept)
    - Non-transit: a route is requested when never computed, else only if >= 30 s AND >= 50 m since the last one
    - Transit: a base ETA is requested when absent, >= 10 min old, or its countdown reached 0;
      otherwise the ETA is max(0, base - elapsed) and flagged is_countdown
    - When no route is requested (or the route call failed) the cached values are returned

Design Decisions:
    - Tracker is pure and synchronous: the service performs the Directions call in between
      needs_route() and apply_route() (ADR: impureim sandwich)
    - State lives in-process (dict keyed by member id): single-worker deployment,
      state is rebuilt from the next location update after a restart
    - Time is passed in as epoch seconds so tests never sleep
"""

import math
from dataclasses import dataclass

from meethalf.core.domain_types import TravelMode
from meethalf.core.geo import format_duration, haversine_distance

MOVEMENT_THRESHOLD_METERS = 100
MIN_RECALC_INTERVAL_SECONDS = 30
MIN_RECALC_DISTANCE_METERS = 50
TRANSIT_REFRESH_SECONDS = 10 * 60


@dataclass(frozen=True)
class RouteLeg:
    """First leg of a Directions route."""
    duration_seconds: int
    distance_text: str
    distance_meters: int


@dataclass(frozen=True)
class EtaEstimate:
    """ETA snapshot returned to clients and broadcast on eta-update."""
    member_id: int
    eta_seconds: int | None
    distance: str | None
    distance_meters: int | None
    movement_started: bool
    is_countdown: bool

    @property
    def eta_text(self) -> str | None:
        if self.eta_seconds is None:
            return None
        return format_duration(self.eta_seconds)

    def to_dict(self) -> dict:
        return {
            "memberId": self.member_id,
            "eta": self.eta_seconds,
            "etaText": self.eta_text,
            "distance": self.distance,
            "distanceValue": self.distance_meters,
            "movementStarted": self.movement_started,
            "isCountdown": self.is_countdown,
        }


@dataclass
class MemberEtaState:
    """Mutable tracking state for one member."""
    member_id: int
    event_id: int
    travel_mode: TravelMode
    initial_lat: float | None = None
    initial_lng: float | None = None
    last_lat: float | None = None
    last_lng: float | None = None
    movement_started: bool = False
    movement_started_at: float | None = None
    last_eta_computed_at: float | None = None
    base_eta_seconds: int | None = None
    base_eta_computed_at: float | None = None
    eta_seconds: int | None = None
    distance_text: str | None = None
    distance_meters: int | None = None

    @property
    def is_transit(self) -> bool:
        return self.travel_mode is TravelMode.TRANSIT

    def reset_for_mode(self, mode: TravelMode) -> None:
        self.travel_mode = mode
        self.movement_started = False
        self.movement_started_at = None
        self.base_eta_seconds = None
        self.base_eta_computed_at = None
        self.last_eta_computed_at = None


def _countdown(base_seconds: int, computed_at: float, now: float) -> int:
    return base_seconds - math.floor(now - computed_at)


class EtaTracker:
    """In-memory registry of MemberEtaState with the ETA decision rules."""

    def __init__(self):
        self._states: dict[int, MemberEtaState] = {}

    def __contains__(self, member_id: int) -> bool:
        return member_id in self._states

    def observe(
        self,
        member_id: int,
        event_id: int,
        mode: TravelMode,
        lat: float,
        lng: float,
        now: float,
    ) -> tuple[MemberEtaState, bool]:
        """Record a position. Returns (state, movement_started)."""
        state = self._states.get(member_id)
        if state is None:
            state = MemberEtaState(member_id, event_id, mode)
            self._states[member_id] = state
        elif state.travel_mode is not mode:
            state.reset_for_mode(mode)

        if state.movement_started:
            return state, True
        if state.initial_lat is None or state.initial_lng is None:
            state.initial_lat, state.initial_lng = lat, lng
            return state, False

        moved = haversine_distance(
            state.initial_lat, state.initial_lng, lat, lng,
        )
        if moved >= MOVEMENT_THRESHOLD_METERS:
            state.movement_started = True
            state.movement_started_at = now
            return state, True
        return state, False

    def needs_route(
        self, state: MemberEtaState, lat: float, lng: float, now: float,
    ) -> bool:
        """Whether a fresh Directions result should be fetched."""
        if state.is_transit:
            if state.base_eta_seconds is None or state.base_eta_computed_at is None:
                return True
            if now - state.base_eta_computed_at >= TRANSIT_REFRESH_SECONDS:
                return True
            return _countdown(
                state.base_eta_seconds, state.base_eta_computed_at, now,
            ) <= 0

        if state.last_eta_computed_at is None:
            return True
        if now - state.last_eta_computed_at < MIN_RECALC_INTERVAL_SECONDS:
            return False
        if state.last_lat is not None and state.last_lng is not None:
            moved = haversine_distance(state.last_lat, state.last_lng, lat, lng)
            if moved < MIN_RECALC_DISTANCE_METERS:
                return False
        return True

    def apply_route(
        self,
        state: MemberEtaState,
        leg: RouteLeg,
        lat: float,
        lng: float,
        now: float,
    ) -> EtaEstimate:
        """Store a fresh Directions result and return the resulting estimate."""
        if state.is_transit:
            state.base_eta_seconds = leg.duration_seconds
            state.base_eta_computed_at = now
        state.last_eta_computed_at = now
        state.last_lat, state.last_lng = lat, lng
        state.eta_seconds = leg.duration_seconds
        state.distance_text = leg.distance_text
        state.distance_meters = leg.distance_meters
        return EtaEstimate(
            member_id=state.member_id,
            eta_seconds=leg.duration_seconds,
            distance=leg.distance_text,
            distance_meters=leg.distance_meters,
            movement_started=True,
            is_countdown=state.is_transit,
        )

    def current(self, state: MemberEtaState, now: float) -> EtaEstimate:
        """Estimate without a new route: countdown for transit, cache otherwise."""
        if state.is_transit:
            if state.base_eta_seconds is None or state.base_eta_computed_at is None:
                return EtaEstimate(
                    state.member_id, None, None, None,
                    movement_started=state.movement_started, is_countdown=True,
                )
            remaining = max(0, _countdown(
                state.base_eta_seconds, state.base_eta_computed_at, now,
            ))
            return EtaEstimate(
                state.member_id, remaining,
                state.distance_text, state.distance_meters,
                movement_started=state.movement_started, is_countdown=True,
            )
        return EtaEstimate(
            state.member_id, state.eta_seconds,
            state.distance_text, state.distance_meters,
            movement_started=state.movement_started, is_countdown=False,
        )

    def snapshot(self, member_id: int, now: float) -> EtaEstimate | None:
        """Latest estimate for a member, or None when never observed."""
        state = self._states.get(member_id)
        if state is None:
            return None
        return self.current(state, now)

    def clear_member(self, member_id: int) -> None:
        self._states.pop(member_id, None)

    def clear_event(self, event_id: int) -> None:
        for member_id in [
            mid for mid, s in self._states.items() if s.event_id == event_id
        ]:
            del self._states[member_id]

    def clear(self) -> None:
        self._states.clear()


def not_moving(member_id: int) -> EtaEstimate:
    """Estimate for a member who has not left their initial position yet."""
    return EtaEstimate(member_id, None, None, None, False, False)
