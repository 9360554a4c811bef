"""Resilient Google Maps Client — wraps httpx.AsyncClient with retry, backoff, and status mapping.

Invariants:
    - Transport errors, 5xx responses and Google UNKNOWN_ERROR: retried with exponential
      backoff (max_retries, ±25% jitter), then ExternalServiceError
    - ZERO_RESULTS / NOT_FOUND: empty results, never an error
    - OVER_QUERY_LIMIT: ExternalServiceError(MAPS_RATE_LIMITED, 503), no retry
    - Any other non-OK status: ExternalServiceError(MAPS_ERROR, 502)
    - Missing API key: ExternalServiceError(MAPS_NOT_CONFIGURED, 503) before any request
    - motorcycle is sent to Google as driving

Design Decisions:
    - Plain REST over httpx instead of a Maps SDK: async, and the JSON stays in Google's
      shape so core/midpoint.py can consume Distance Matrix elements directly
    - Wrapper over raw client: isolates retry logic from services (ADR: single responsibility)
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from datetime import datetime, timezone
from functools import lru_cache

import httpx

from meethalf.config import get_settings
from meethalf.core.domain_types import TravelMode
from meethalf.core.errors import ErrorContext, ExternalServiceError
from meethalf.core.eta_tracker import RouteLeg

logger = logging.getLogger(__name__)

MAPS_BASE_URL = "https://maps.googleapis.com/maps/api"
_EMPTY_STATUSES = {"ZERO_RESULTS", "NOT_FOUND"}


class _TransientMapsError(Exception):
    """Retryable failure inside the retry loop."""


@dataclass(frozen=True)
class LatLng:
    lat: float
    lng: float

    def __str__(self) -> str:
        return f"{self.lat},{self.lng}"


def google_mode(mode: TravelMode | str) -> str:
    return TravelMode(mode).google_mode


def first_leg(route: dict) -> RouteLeg | None:
    """First leg of a Directions route as a RouteLeg (None when malformed)."""
    legs = route.get("legs") or []
    if not legs:
        return None
    leg = legs[0]
    duration = (leg.get("duration") or {}).get("value")
    if duration is None:
        return None
    distance = leg.get("distance") or {}
    return RouteLeg(
        duration_seconds=int(duration),
        distance_text=distance.get("text", ""),
        distance_meters=int(distance.get("value", 0)),
    )


class GoogleMapsClient:
    """Geocoding, Places, Directions and Distance Matrix with retry logic."""

    def __init__(
        self,
        api_key: str,
        timeout_seconds: float = 10.0,
        max_retries: int = 2,
        base_delay_ms: int = 250,
        max_delay_ms: int = 4_000,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key
        self.max_retries = max_retries
        self.base_delay_ms = base_delay_ms
        self.max_delay_ms = max_delay_ms
        self.client = httpx.AsyncClient(
            base_url=MAPS_BASE_URL,
            timeout=timeout_seconds,
            transport=transport,
        )

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def aclose(self) -> None:
        await self.client.aclose()

    # ─── Endpoints ───────────────────────────────────────────────

    async def geocode(self, address: str) -> list[dict]:
        data = await self._get("/geocode/json", {"address": address})
        return data.get("results", [])

    async def reverse_geocode(self, lat: float, lng: float) -> list[dict]:
        data = await self._get("/geocode/json", {"latlng": str(LatLng(lat, lng))})
        return data.get("results", [])

    async def nearby(
        self,
        lat: float,
        lng: float,
        radius: int,
        place_type: str | None = None,
        keyword: str | None = None,
    ) -> list[dict]:
        params = {"location": str(LatLng(lat, lng)), "radius": radius}
        if place_type:
            params["type"] = place_type
        if keyword:
            params["keyword"] = keyword
        data = await self._get("/place/nearbysearch/json", params)
        return data.get("results", [])

    async def directions(
        self,
        origin: LatLng,
        destination: LatLng,
        mode: TravelMode | str = TravelMode.DRIVING,
        departure_time: datetime | None = None,
        context: ErrorContext | None = None,
    ) -> dict | None:
        """First Directions route, or None when Google finds no route."""
        params = {
            "origin": str(origin),
            "destination": str(destination),
            "mode": google_mode(mode),
        }
        if departure_time is not None:
            params["departure_time"] = int(
                departure_time.astimezone(timezone.utc).timestamp()
            )
        data = await self._get("/directions/json", params, context)
        routes = data.get("routes") or []
        return routes[0] if routes else None

    async def distance_matrix(
        self,
        origins: list[LatLng],
        destinations: list[LatLng],
        mode: TravelMode | str = TravelMode.DRIVING,
        context: ErrorContext | None = None,
    ) -> list[list[dict]]:
        """Rows of elements: rows[i][j] is origin i to destination j."""
        data = await self._get("/distancematrix/json", {
            "origins": "|".join(str(o) for o in origins),
            "destinations": "|".join(str(d) for d in destinations),
            "mode": google_mode(mode),
        }, context)
        return [row.get("elements", []) for row in data.get("rows", [])]

    # ─── Transport ───────────────────────────────────────────────

    async def _get(
        self, path: str, params: dict, context: ErrorContext | None = None,
    ) -> dict:
        if not self.configured:
            raise ExternalServiceError(
                "Google Maps API key is not configured", "google_maps",
                code="MAPS_NOT_CONFIGURED", http_status=503, context=context,
            )
        for attempt in range(self.max_retries + 1):
            try:
                return await self._request(path, params, context)
            except _TransientMapsError as e:
                await self._handle_transient_error(e, attempt, context)
        raise AssertionError("unreachable")  # pragma: no cover

    async def _request(
        self, path: str, params: dict, context: ErrorContext | None,
    ) -> dict:
        try:
            response = await self.client.get(
                path, params={**params, "key": self.api_key},
            )
        except httpx.TransportError as e:
            raise _TransientMapsError(f"transport error: {e}") from e

        if response.status_code >= 500:
            raise _TransientMapsError(f"HTTP {response.status_code}")
        if response.status_code >= 400:
            raise ExternalServiceError(
                f"HTTP {response.status_code}", "google_maps",
                code="MAPS_ERROR", context=context,
            )

        data = response.json()
        status = data.get("status", "OK")
        if status == "OK":
            return data
        if status in _EMPTY_STATUSES:
            return {**data, "results": [], "routes": [], "rows": []}
        if status == "UNKNOWN_ERROR":
            raise _TransientMapsError("UNKNOWN_ERROR")
        if status == "OVER_QUERY_LIMIT":
            raise ExternalServiceError(
                "quota exceeded", "google_maps",
                code="MAPS_RATE_LIMITED", http_status=503, context=context,
            )
        logger.error(
            f"Google Maps returned {status}: {data.get('error_message', '')}",
            extra={"path": path},
        )
        raise ExternalServiceError(
            status, "google_maps", code="MAPS_ERROR", context=context,
        )

    async def _handle_transient_error(
        self, e: Exception, attempt: int, context: ErrorContext | None,
    ) -> None:
        """Sleep before the next attempt, or raise once retries are exhausted."""
        if attempt >= self.max_retries:
            raise ExternalServiceError(
                f"Transient failure after {self.max_retries} retries: {e}",
                "google_maps", code="MAPS_UNAVAILABLE", http_status=503,
                context=context,
            )
        delay = self._backoff(attempt)
        logger.warning(
            f"Google Maps transient error, retry after {delay}ms: {e}",
            extra={"attempt": attempt + 1},
        )
        await asyncio.sleep(delay / 1000)

    def _backoff(self, attempt: int) -> int:
        """Exponential backoff with ±25% jitter."""
        delay = min(self.max_delay_ms, (2 ** attempt) * self.base_delay_ms)
        return int(delay * random.uniform(0.75, 1.25))  # nosec B311


@lru_cache
def get_maps_client() -> GoogleMapsClient:
    """FastAPI dependency — process-wide client."""
    settings = get_settings()
    if not settings.google_maps_api_key:
        logger.warning("GOOGLE_MAPS_API_KEY missing, maps features disabled")
    return GoogleMapsClient(
        api_key=settings.google_maps_api_key,
        timeout_seconds=settings.maps_timeout_seconds,
        max_retries=settings.maps_max_retries,
    )
