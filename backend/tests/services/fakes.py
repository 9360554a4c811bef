"""Test doubles for the two outbound integrations: Pusher and Google Maps.

Invariants:
    - FakeRealtime records every trigger and push instead of calling Pusher
    - GoogleStub answers Maps requests from canned JSON keyed by API path
    - Unconfigured paths answer ZERO_RESULTS, which the client maps to empty results
    - Header helpers mint real JWTs, so routes go through the normal auth dependencies

Design Decisions:
    - GoogleStub sits under the real GoogleMapsClient (httpx.MockTransport), so status
      mapping and parameter encoding are exercised too
"""

from typing import Any, Callable

import httpx

from meethalf.core.domain_types import RealtimeEvent
from meethalf.infrastructure.auth_tokens import create_guest_token, create_user_token
from meethalf.infrastructure.maps_client import GoogleMapsClient
from meethalf.infrastructure.realtime import RealtimeGateway
from meethalf.models.member import Member
from meethalf.models.user import User
from meethalf.services.access import Principal


class FakeRealtime(RealtimeGateway):
    def __init__(self):
        super().__init__(None, None, "http://frontend.test")
        self.triggered: list[tuple[str, str, dict]] = []
        self.pushes: list[dict] = []

    async def trigger(self, channel, event, payload):
        name = event.value if isinstance(event, RealtimeEvent) else event
        self.triggered.append((channel, name, payload))
        return True

    async def push_to_interests(self, interests, title, body, data=None):
        self.pushes.append({
            "interests": list(interests),
            "title": title,
            "body": body,
            "data": dict(data or {}),
        })
        return True

    def payloads(self, event: RealtimeEvent) -> list[dict]:
        return [p for _, name, p in self.triggered if name == event.value]

    def channels_for(self, event: RealtimeEvent) -> list[str]:
        return [c for c, name, _ in self.triggered if name == event.value]


Responder = dict[str, Any] | Callable[[httpx.Request], dict[str, Any]]


class GoogleStub:
    """Canned Google Maps Web Service answers, keyed like "/geocode/json"."""

    def __init__(self):
        self.responses: dict[str, Responder] = {}
        self.calls: list[tuple[str, dict]] = []

    def on(self, path: str, response: Responder) -> None:
        self.responses[path] = response

    def calls_to(self, path: str) -> list[dict]:
        return [params for p, params in self.calls if p == path]

    def _handle(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path.removeprefix("/maps/api")
        self.calls.append((path, dict(request.url.params)))
        response = self.responses.get(path, {"status": "ZERO_RESULTS"})
        if callable(response):
            response = response(request)
        return httpx.Response(200, json=response)

    def client(self) -> GoogleMapsClient:
        return GoogleMapsClient(
            "test-maps-key", max_retries=0,
            transport=httpx.MockTransport(self._handle),
        )


# ─── Google response builders ────────────────────────────────────


def geocode_ok(address: str, lat: float = 25.03, lng: float = 121.56) -> dict:
    return {
        "status": "OK",
        "results": [{
            "formatted_address": address,
            "geometry": {"location": {"lat": lat, "lng": lng}},
            "place_id": "geo-1",
        }],
    }


def directions_ok(
    seconds: int, meters: int = 1200, polyline: str = "abc123",
) -> dict:
    return {
        "status": "OK",
        "routes": [{
            "overview_polyline": {"points": polyline},
            "legs": [{
                "duration": {"text": f"{seconds // 60} mins", "value": seconds},
                "distance": {"text": f"{meters / 1000:.1f} km", "value": meters},
            }],
        }],
    }


def place(place_id: str, name: str, lat: float, lng: float, **extra) -> dict:
    return {
        "place_id": place_id,
        "name": name,
        "vicinity": f"{name} street",
        "geometry": {"location": {"lat": lat, "lng": lng}},
        "rating": 4.5,
        "types": ["restaurant"],
        **extra,
    }


def nearby_ok(*places: dict) -> dict:
    return {"status": "OK", "results": list(places)}


def matrix_element(seconds: int | None, meters: int = 1000) -> dict:
    if seconds is None:
        return {"status": "ZERO_RESULTS"}
    return {
        "status": "OK",
        "duration": {"text": f"{seconds // 60} mins", "value": seconds},
        "distance": {"text": f"{meters} m", "value": meters},
    }


# ─── Callers ─────────────────────────────────────────────────────


def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def user_headers(user: User) -> dict:
    return auth_headers(create_user_token(user.id))


def guest_headers(member: Member) -> dict:
    return auth_headers(create_guest_token(member.id, member.event_id))


def as_user(user: User) -> Principal:
    return Principal(user=user)
