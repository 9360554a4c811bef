"""ETA Service — runs the tracker against live Directions results and broadcasts eta-update.

Invariants:
    - A member who has not started moving gets the empty estimate and no broadcast
    - Directions are requested only when the tracker says a recalculation is due
    - A failed or empty Directions call falls back to the tracker's cached / countdown values
    - eta-update is broadcast on event-{id} whenever the ETA is known or movement started

Design Decisions:
    - Module-level tracker: same single-process trade-off as the in-memory state registry
      (state lost on restart, rebuilt by the next location update)
    - clock injected (epoch seconds) so tests drive countdowns without sleeping
"""

import logging
import time
from collections.abc import Callable
from datetime import datetime, timezone

from meethalf.core.arrival import display_name
from meethalf.core.domain_types import RealtimeEvent, TravelMode
from meethalf.core.errors import ErrorContext, ExternalServiceError
from meethalf.core.eta_tracker import EtaEstimate, EtaTracker, MemberEtaState, not_moving
from meethalf.infrastructure.maps_client import GoogleMapsClient, LatLng, first_leg
from meethalf.infrastructure.realtime import RealtimeGateway
from meethalf.models.event import Event
from meethalf.models.member import Member

logger = logging.getLogger(__name__)

# ADR: in-memory ETA state (not DB/Redis)
# Context: single-process uvicorn; positions arrive every few seconds
# Trade-off: state lost on restart, acceptable since it rebuilds on the next update
tracker = EtaTracker()


class EtaService:
    def __init__(
        self,
        realtime: RealtimeGateway,
        maps: GoogleMapsClient | None,
        eta_tracker: EtaTracker | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.realtime = realtime
        self.maps = maps
        self.tracker = eta_tracker or tracker
        self.clock = clock

    async def update_member_eta(
        self,
        event: Event,
        member: Member,
        lat: float,
        lng: float,
        mode: TravelMode | str,
    ) -> EtaEstimate:
        now = self.clock()
        state, moving = self.tracker.observe(
            member.id, event.id, TravelMode(mode), lat, lng, now,
        )
        if not moving:
            return not_moving(member.id)

        if self.tracker.needs_route(state, lat, lng, now):
            estimate = await self._recalculate(event, state, lat, lng, now)
        else:
            estimate = self.tracker.current(state, now)

        if estimate.eta_seconds is not None or estimate.movement_started:
            await self.realtime.trigger_event(event.id, RealtimeEvent.ETA_UPDATE, {
                **estimate.to_dict(),
                "nickname": display_name(member),
                "timestamp": datetime.now(timezone.utc).isoformat(),
            })
        return estimate

    async def _recalculate(
        self,
        event: Event,
        state: MemberEtaState,
        lat: float,
        lng: float,
        now: float,
    ) -> EtaEstimate:
        try:
            route = await self.maps.directions(
                LatLng(lat, lng),
                LatLng(event.meeting_point_lat, event.meeting_point_lng),
                state.travel_mode,
                departure_time=datetime.now(timezone.utc),
                context=ErrorContext(event_id=event.id, member_id=state.member_id),
            )
        except ExternalServiceError as e:
            logger.warning(
                f"ETA directions failed, using cached values: {e.message}",
                extra={
                    "event_id": e.context.event_id,
                    "member_id": e.context.member_id,
                    "error_code": e.code,
                },
            )
            return self.tracker.current(state, now)

        leg = first_leg(route) if route else None
        if leg is None:
            return self.tracker.current(state, now)
        return self.tracker.apply_route(state, leg, lat, lng, now)

    def get_member_eta(self, member_id: int) -> EtaEstimate | None:
        return self.tracker.snapshot(member_id, self.clock())

    def clear_member(self, member_id: int) -> None:
        self.tracker.clear_member(member_id)

    def clear_event(self, event_id: int) -> None:
        self.tracker.clear_event(event_id)
