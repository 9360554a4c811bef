"""Midpoint Service — where should the group meet?

Three flavours, all read-only and cached:
    geographic_midpoint   centroid of located members + address, nearby restaurants and
                          each member's travel time to it (5 min cache)
    time_midpoint         iterative search that balances travel times, then the best café
                          near the result by Distance Matrix (10 min cache)
    routes_to_midpoint    one Directions polyline per located member (5 min cache)
    calculate_midpoint    geographic midpoint for ad-hoc locations, no event needed

Invariants:
    - Only members with both lat and lng take part, ordered by member id
    - Fewer than 2 located members: INSUFFICIENT_LOCATIONS (geographic) or
      NOT_ENOUGH_MEMBERS (time-based), both 400
    - Cached payloads are stored with cached=False and served with cached=True
    - forceRecalculate bypasses the time-based cache read (the result is still stored)
    - Transit members whose transit lookup fails fall back to driving times

Design Decisions:
    - Enrichment calls (reverse geocode, nearby, per-member directions) degrade to
      placeholders on ExternalServiceError: the centroid alone is still useful
    - The time-based search needs real travel times, so missing candidates or routes
      surface as 422 NO_CANDIDATES / NO_VALID_ROUTES instead of a partial answer
"""

import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from meethalf.core.domain_types import MidpointObjective, TravelMode
from meethalf.core.errors import (
    BusinessRuleError, ErrorContext, ExternalServiceError, UnprocessableError,
)
from meethalf.core.geo import centroid
from meethalf.core.midpoint import (
    CANDIDATE_RADIUS_METERS, CANDIDATE_TYPE, MAX_ITERATIONS, Traveler,
    dedupe_places, rank_candidates, score_times, slowest_index, step_toward,
)
from meethalf.infrastructure.cache import (
    cache_key, midpoint_cache, routes_cache, time_midpoint_cache,
)
from meethalf.infrastructure.maps_client import GoogleMapsClient, LatLng, first_leg
from meethalf.models.member import Member
from meethalf.schemas.event import TempMidpointRequest
from meethalf.services.access import get_event_or_404

logger = logging.getLogger(__name__)

UNKNOWN_ADDRESS = "Unknown location"
NOT_AVAILABLE = "N/A"
SUGGESTION_RADIUS_METERS = 1500
SUGGESTION_TYPE = "restaurant"
EVENT_SUGGESTIONS = 3
TEMP_SUGGESTION_RADIUS_METERS = 1000
TEMP_SUGGESTIONS = 5


def _member_name(member: Member) -> str:
    return member.user_id or member.nickname or "Unknown"


def _leg_summary(route: dict | None) -> dict | None:
    """Duration/distance text and values of the first leg, or None."""
    if not route or not route.get("legs"):
        return None
    leg = route["legs"][0]
    duration = leg.get("duration") or {}
    distance = leg.get("distance") or {}
    return {
        "duration": duration.get("text", NOT_AVAILABLE),
        "durationValue": duration.get("value"),
        "distance": distance.get("text", NOT_AVAILABLE),
        "distanceValue": distance.get("value"),
    }


_NO_ROUTE = {
    "duration": NOT_AVAILABLE,
    "durationValue": None,
    "distance": NOT_AVAILABLE,
    "distanceValue": None,
}


def _element_ok(element: dict) -> bool:
    return element.get("status") == "OK" and bool(element.get("duration"))


class MidpointService:
    def __init__(self, db: AsyncSession, maps: GoogleMapsClient):
        self.db = db
        self.maps = maps

    async def _located_members(self, event_id: int) -> list[Member]:
        event = await get_event_or_404(self.db, event_id)
        return sorted(
            (m for m in event.members if m.has_location), key=lambda m: m.id,
        )

    # ─── Shared enrichment ───────────────────────────────────────

    async def _address(self, lat: float, lng: float) -> str:
        results = await self.maps.reverse_geocode(lat, lng)
        if results:
            return results[0].get("formatted_address", UNKNOWN_ADDRESS)
        return UNKNOWN_ADDRESS

    async def _travel_summary(
        self, origin: LatLng, destination: LatLng, mode: TravelMode | str,
    ) -> dict:
        try:
            route = await self.maps.directions(origin, destination, mode)
        except ExternalServiceError as e:
            logger.warning(f"Travel time lookup failed: {e.message}")
            return dict(_NO_ROUTE)
        return _leg_summary(route) or dict(_NO_ROUTE)

    async def _suggestions(
        self, lat: float, lng: float, radius: int, limit: int, with_location: bool,
    ) -> list[dict]:
        places = await self.maps.nearby(lat, lng, radius, SUGGESTION_TYPE)
        suggestions = []
        for place in places[:limit]:
            entry = {
                "name": place.get("name"),
                "address": place.get("vicinity"),
                "rating": place.get("rating"),
                "types": place.get("types", []),
                "place_id": place.get("place_id"),
            }
            if with_location:
                location = (place.get("geometry") or {}).get("location") or {}
                entry["lat"] = location.get("lat")
                entry["lng"] = location.get("lng")
            suggestions.append(entry)
        return suggestions

    # ─── Geographic midpoint ─────────────────────────────────────

    async def geographic_midpoint(self, event_id: int) -> dict:
        members = await self._located_members(event_id)
        if len(members) < 2:
            raise BusinessRuleError(
                "At least 2 members must have set their locations",
                "INSUFFICIENT_LOCATIONS", ErrorContext(event_id=event_id),
            )

        key = cache_key("midpoint", {
            "eventId": event_id,
            "locations": sorted((m.lat, m.lng, m.travel_mode) for m in members),
        })
        cached = midpoint_cache.get(key)
        if cached is not None:
            return {**cached, "cached": True}

        lat, lng = centroid([(m.lat, m.lng) for m in members])
        target = LatLng(lat, lng)
        address = UNKNOWN_ADDRESS
        places: list[dict] = []
        travel_times = [
            {
                "username": _member_name(m),
                "memberId": m.id,
                "travelMode": m.travel_mode,
                **_NO_ROUTE,
            }
            for m in members
        ]
        try:
            address = await self._address(lat, lng)
            summaries = await asyncio.gather(*(
                self._travel_summary(LatLng(m.lat, m.lng), target, m.travel_mode)
                for m in members
            ))
            for entry, summary in zip(travel_times, summaries):
                entry.update(summary)
            places = await self._suggestions(
                lat, lng, SUGGESTION_RADIUS_METERS, EVENT_SUGGESTIONS,
                with_location=False,
            )
        except ExternalServiceError as e:
            logger.warning(
                f"Midpoint enrichment failed: {e.message}",
                extra={"event_id": event_id, "error_code": e.code},
            )

        result = {
            "midpoint": {"lat": lat, "lng": lng},
            "address": address,
            "suggested_places": places,
            "member_travel_times": travel_times,
            "member_count": len(members),
            "cached": False,
        }
        midpoint_cache[key] = result
        return result

    # ─── Time-based midpoint ─────────────────────────────────────

    async def _matrix_row(
        self, traveler: Traveler, destinations: list[LatLng],
    ) -> list[dict]:
        """Distance Matrix elements for one traveler; transit falls back to driving."""
        origin = [LatLng(traveler.lat, traveler.lng)]
        empty = [{"status": "ZERO_RESULTS"} for _ in destinations]
        context = ErrorContext(member_id=traveler.member_id)
        try:
            rows = await self.maps.distance_matrix(
                origin, destinations, traveler.travel_mode, context=context,
            )
            row = rows[0] if rows else []
            if traveler.travel_mode == TravelMode.TRANSIT.value and not any(
                _element_ok(e) for e in row
            ):
                rows = await self.maps.distance_matrix(
                    origin, destinations, TravelMode.DRIVING, context=context,
                )
                row = rows[0] if rows else []
        except ExternalServiceError as e:
            logger.warning(
                f"Distance Matrix failed for member: {e.message}",
                extra={"member_id": e.context.member_id, "error_code": e.code},
            )
            return empty
        return row or empty

    async def _times_to(
        self, travelers: list[Traveler], point: tuple[float, float],
    ) -> list[int] | None:
        """Travel seconds of every traveler to point, or None if any has no route."""
        times = []
        for traveler in travelers:
            row = await self._matrix_row(traveler, [LatLng(*point)])
            element = row[0] if row else {}
            if not _element_ok(element):
                return None
            times.append(element["duration"]["value"])
        return times

    async def _search(
        self, travelers: list[Traveler], objective: MidpointObjective,
    ) -> tuple[float, float]:
        """Walk from the centroid toward the slowest traveler; return the best point seen."""
        current = centroid([(t.lat, t.lng) for t in travelers])
        best, best_score = current, None
        for _ in range(MAX_ITERATIONS):
            times = await self._times_to(travelers, current)
            if times is None:
                break
            score = score_times(times, objective)
            if best_score is None or score < best_score:
                best, best_score = current, score
            slowest = travelers[slowest_index(times)]
            current = step_toward(current, (slowest.lat, slowest.lng))
            if current is None:
                break
        return best

    async def time_midpoint(
        self,
        event_id: int,
        objective: MidpointObjective = MidpointObjective.MINIMIZE_TOTAL,
        force: bool = False,
    ) -> dict:
        members = await self._located_members(event_id)
        context = ErrorContext(event_id=event_id)
        if len(members) < 2:
            raise BusinessRuleError(
                "At least 2 members must have set their locations",
                "NOT_ENOUGH_MEMBERS", context,
            )

        travelers = [
            Traveler(m.id, _member_name(m), m.lat, m.lng, m.travel_mode)
            for m in members
        ]
        key = cache_key("midpoint_by_time", {
            "eventId": event_id,
            "objective": objective.value,
            "locations": sorted((m.lat, m.lng, m.travel_mode) for m in members),
        })
        if not force:
            cached = time_midpoint_cache.get(key)
            if cached is not None:
                return {**cached, "cached": True}

        lat, lng = await self._search(travelers, objective)
        places: list[dict] = []
        try:
            places = await self.maps.nearby(
                lat, lng, CANDIDATE_RADIUS_METERS, CANDIDATE_TYPE,
            )
        except ExternalServiceError as e:
            logger.warning(
                f"Candidate search failed: {e.message}",
                extra={"event_id": event_id, "error_code": e.code},
            )
        candidates = dedupe_places(places)
        if not candidates:
            raise UnprocessableError(
                "No suitable meeting place found near the optimal point",
                "NO_CANDIDATES", context,
            )

        destinations = [LatLng(c["lat"], c["lng"]) for c in candidates]
        rows = [await self._matrix_row(t, destinations) for t in travelers]
        scored = rank_candidates(candidates, rows, travelers, objective)
        if not scored:
            raise UnprocessableError(
                "No route reaches any candidate place; check members' travel modes "
                "and locations",
                "NO_VALID_ROUTES", context,
            )

        winner = scored[0]
        result = {
            "midpoint": {
                "name": winner.candidate["name"],
                "lat": winner.candidate["lat"],
                "lng": winner.candidate["lng"],
                "address": winner.candidate["address"],
                "place_id": winner.candidate["place_id"],
            },
            "metric": {"total": winner.total_time, "max": winner.max_time},
            "members": winner.member_times,
            "candidates_count": len(candidates),
            "cached": False,
        }
        time_midpoint_cache[key] = result
        logger.info(
            "Time-based midpoint computed",
            extra={"event_id": event_id},
        )
        return result

    # ─── Routes ──────────────────────────────────────────────────

    async def routes_to_midpoint(self, event_id: int, lat: float, lng: float) -> dict:
        members = await self._located_members(event_id)
        key = cache_key("routes", {
            "eventId": event_id, "midpointLat": lat, "midpointLng": lng,
        })
        cached = routes_cache.get(key)
        if cached is not None:
            return {**cached, "cached": True}

        routes = []
        target = LatLng(lat, lng)
        for member in members:
            try:
                route = await self.maps.directions(
                    LatLng(member.lat, member.lng), target, member.travel_mode,
                    context=ErrorContext(event_id=event_id, member_id=member.id),
                )
            except ExternalServiceError as e:
                logger.warning(
                    f"Route lookup failed: {e.message}",
                    extra={
                        "event_id": e.context.event_id,
                        "member_id": e.context.member_id,
                        "error_code": e.code,
                    },
                )
                continue
            leg = first_leg(route) if route else None
            if leg is None:
                continue
            routes.append({
                "memberId": member.id,
                "username": _member_name(member),
                "polyline": (route.get("overview_polyline") or {}).get("points", ""),
                "duration": leg.duration_seconds,
                "distance": leg.distance_meters,
            })

        result = {"routes": routes, "cached": False}
        routes_cache[key] = result
        return result

    # ─── Ad-hoc midpoint ─────────────────────────────────────────

    async def calculate_midpoint(self, body: TempMidpointRequest) -> dict:
        locations = body.locations
        if len(locations) < 2:
            raise BusinessRuleError(
                "At least 2 locations are required", "INSUFFICIENT_LOCATIONS",
            )

        key = cache_key("temp_midpoint", {
            "locations": [loc.model_dump(mode="json") for loc in locations],
            "useMeetHalf": body.use_meet_half,
        })
        cached = midpoint_cache.get(key)
        if cached is not None:
            return {**cached, "cached": True}

        lat, lng = centroid([(loc.lat, loc.lng) for loc in locations])
        target = LatLng(lat, lng)
        address = UNKNOWN_ADDRESS
        places: list[dict] = []
        travel_times = [
            {"locationIndex": i, "travelMode": loc.travel_mode.value, **_NO_ROUTE}
            for i, loc in enumerate(locations)
        ]
        try:
            address = await self._address(lat, lng)
            summaries = await asyncio.gather(*(
                self._travel_summary(LatLng(loc.lat, loc.lng), target, loc.travel_mode)
                for loc in locations
            ))
            for entry, summary in zip(travel_times, summaries):
                entry.update(summary)
            places = await self._suggestions(
                lat, lng, TEMP_SUGGESTION_RADIUS_METERS, TEMP_SUGGESTIONS,
                with_location=True,
            )
        except ExternalServiceError as e:
            logger.warning(f"Midpoint enrichment failed: {e.message}")

        result = {
            "midpoint": {"lat": lat, "lng": lng},
            "address": address,
            "suggested_places": places,
            "travel_times": travel_times,
            "location_count": len(locations),
            "cached": False,
        }
        midpoint_cache[key] = result
        return result
