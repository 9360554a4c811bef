"""Request schema validation — camelCase wire format and cross-field rules."""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from meethalf.core.domain_types import TravelMode
from meethalf.schemas.event import (
    EventCreate, EventUpdate, JoinEventRequest, LocationUpdate, TempMidpointRequest,
)
from meethalf.schemas.maps import DirectionsRequest
from meethalf.schemas.user import CompleteSetup, ProfileUpdate


NOW = datetime(2025, 1, 1, 12, tzinfo=timezone.utc)


# ─── Events ──────────────────────────────────────────────────────


def test_event_create_accepts_camel_case():
    body = EventCreate.model_validate({
        "name": "Dinner", "useMeetHalf": True, "ownerTravelMode": "motorcycle",
        "invitedFriendIds": ["bob"],
    })
    assert body.use_meet_half is True
    assert body.owner_travel_mode is TravelMode.MOTORCYCLE
    assert body.invited_friend_ids == ["bob"]


def test_event_create_rejects_inverted_times():
    with pytest.raises(ValidationError, match="endTime must be after startTime"):
        EventCreate(name="x", start_time=NOW, end_time=NOW - timedelta(minutes=1))


def test_event_create_name_bounds():
    with pytest.raises(ValidationError):
        EventCreate(name="")
    with pytest.raises(ValidationError):
        EventCreate(name="x" * 101)


def test_event_update_tracks_explicit_fields():
    body = EventUpdate.model_validate({"name": "New", "ownerId": "anon"})
    assert body.changes() == {"name": "New"}


def test_event_update_explicit_null_is_a_change():
    body = EventUpdate.model_validate({"meetingPointAddress": None,
                                       "meetingPointLat": 1.0, "meetingPointLng": 2.0,
                                       "meetingPointName": "Here"})
    assert body.changes()["meeting_point_address"] is None


def test_event_update_requires_complete_meeting_point():
    with pytest.raises(ValidationError, match="meetingPointName"):
        EventUpdate.model_validate({"meetingPointLat": 1.0, "meetingPointLng": 2.0})


def test_invalid_travel_mode_rejected():
    with pytest.raises(ValidationError):
        JoinEventRequest.model_validate({"nickname": "Bo", "travelMode": "teleport"})


def test_location_bounds():
    LocationUpdate(lat=-90, lng=180)
    with pytest.raises(ValidationError):
        LocationUpdate(lat=-90.1, lng=0)


def test_temp_midpoint_defaults_to_driving():
    body = TempMidpointRequest.model_validate({"locations": [{"lat": 1, "lng": 2}]})
    assert body.locations[0].travel_mode is TravelMode.DRIVING


# ─── Users / maps ────────────────────────────────────────────────


@pytest.mark.parametrize("handle", ["ab", "has space", "émile", "x" * 51])
def test_invalid_handles(handle):
    with pytest.raises(ValidationError):
        CompleteSetup(user_id=handle)


def test_profile_avatar_must_be_http():
    ProfileUpdate(avatar="https://img.example.com/a.png")
    with pytest.raises(ValidationError):
        ProfileUpdate(avatar="ftp://img.example.com/a.png")


def test_directions_departure_time():
    body = DirectionsRequest.model_validate({
        "origin": {"lat": 1, "lng": 2}, "destination": {"lat": 3, "lng": 4},
        "departureTime": "2025-01-01T12:00:00Z",
    })
    assert body.departure() == NOW
    assert DirectionsRequest.model_validate({
        "origin": {"lat": 1, "lng": 2}, "destination": {"lat": 3, "lng": 4},
    }).departure() is None


def test_directions_mode_excludes_motorcycle():
    with pytest.raises(ValidationError):
        DirectionsRequest.model_validate({
            "origin": {"lat": 1, "lng": 2}, "destination": {"lat": 3, "lng": 4},
            "mode": "motorcycle",
        })
