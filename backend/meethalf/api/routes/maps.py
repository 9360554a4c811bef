"""Maps Proxy — Google Geocoding, Places and Directions behind the API key.

Invariants:
    - The browser never sees GOOGLE_MAPS_API_KEY; every call goes through here
    - Identical queries within 5 minutes are answered from cache with cached=true
    - Each endpoint is rate-limited per client address (slowapi)
    - No Directions route → 404 ROUTE_NOT_FOUND
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query, Request

from meethalf.api.rate_limit import MAPS_RATE_LIMIT, limiter
from meethalf.core.errors import ResourceNotFoundError
from meethalf.infrastructure.cache import (
    cache_key, directions_cache, geocode_cache, nearby_cache, reverse_cache,
)
from meethalf.infrastructure.maps_client import GoogleMapsClient, LatLng, get_maps_client
from meethalf.schemas.maps import DirectionsRequest

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/maps", tags=["maps"])


@router.get("/geocode")
@limiter.limit(MAPS_RATE_LIMIT)
async def geocode(
    request: Request,
    address: str = Query(min_length=3, max_length=500),
    maps: GoogleMapsClient = Depends(get_maps_client),
):
    key = cache_key("geocode", {"address": address})
    cached = geocode_cache.get(key)
    if cached is not None:
        return {**cached, "cached": True}

    results = await maps.geocode(address)
    result = {
        "results": [
            {
                "formatted_address": r.get("formatted_address"),
                "geometry": {"location": (r.get("geometry") or {}).get("location")},
                "place_id": r.get("place_id"),
            }
            for r in results
        ],
    }
    geocode_cache[key] = result
    return {**result, "cached": False}


@router.get("/reverse")
@limiter.limit(MAPS_RATE_LIMIT)
async def reverse_geocode(
    request: Request,
    lat: float = Query(ge=-90, le=90),
    lng: float = Query(ge=-180, le=180),
    maps: GoogleMapsClient = Depends(get_maps_client),
):
    key = cache_key("reverse", {"lat": lat, "lng": lng})
    cached = reverse_cache.get(key)
    if cached is not None:
        return {**cached, "cached": True}

    results = await maps.reverse_geocode(lat, lng)
    result = {
        "address": results[0].get("formatted_address") if results else None,
        "results": [
            {"formatted_address": r.get("formatted_address"), "place_id": r.get("place_id")}
            for r in results
        ],
    }
    reverse_cache[key] = result
    return {**result, "cached": False}


@router.get("/nearby")
@limiter.limit(MAPS_RATE_LIMIT)
async def nearby(
    request: Request,
    lat: float = Query(ge=-90, le=90),
    lng: float = Query(ge=-180, le=180),
    radius: int = Query(1500, ge=100, le=5000),
    place_type: str | None = Query(None, alias="type", max_length=50),
    keyword: str | None = Query(None, max_length=100),
    maps: GoogleMapsClient = Depends(get_maps_client),
):
    params = {"lat": lat, "lng": lng, "radius": radius, "type": place_type, "keyword": keyword}
    key = cache_key("nearby", params)
    cached = nearby_cache.get(key)
    if cached is not None:
        return {**cached, "cached": True}

    places = await maps.nearby(lat, lng, radius, place_type, keyword)
    result = {
        "results": [
            {
                "place_id": p.get("place_id"),
                "name": p.get("name"),
                "vicinity": p.get("vicinity"),
                "location": (p.get("geometry") or {}).get("location"),
                "rating": p.get("rating"),
                "user_ratings_total": p.get("user_ratings_total"),
                "types": p.get("types", []),
            }
            for p in places
        ],
    }
    nearby_cache[key] = result
    return {**result, "cached": False}


@router.post("/directions")
@limiter.limit(MAPS_RATE_LIMIT)
async def directions(
    request: Request,
    body: DirectionsRequest,
    maps: GoogleMapsClient = Depends(get_maps_client),
):
    key = cache_key("directions", body.model_dump(mode="json"))
    cached = directions_cache.get(key)
    if cached is not None:
        return {**cached, "cached": True}

    route = await maps.directions(
        LatLng(body.origin.lat, body.origin.lng),
        LatLng(body.destination.lat, body.destination.lng),
        body.mode,
        departure_time=body.departure() or datetime.now(timezone.utc),
    )
    if not route or not route.get("legs"):
        raise ResourceNotFoundError(
            "Route", f"{body.origin.lat},{body.origin.lng}", code="ROUTE_NOT_FOUND",
        )
    leg = route["legs"][0]
    result = {
        "duration": leg.get("duration"),
        "distance": leg.get("distance"),
        "overview_polyline": route.get("overview_polyline"),
    }
    directions_cache[key] = result
    return {**result, "cached": False}
