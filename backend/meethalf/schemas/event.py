"""Event Schemas — request models for events and in-event member actions.

Invariants:
    - EventCreate / EventUpdate: endTime must be after startTime when both are given
    - EventUpdate: a meeting point is given as a whole (lat, lng, name) or not at all
    - Coordinates are range-checked (lat -90..90, lng -180..180)
    - Nicknames and event names: 1-100 chars

Design Decisions:
    - model_fields_set decides which fields an update touches, so an explicit null
      clears a column while an omitted field leaves it alone
"""

from datetime import datetime

from pydantic import Field, field_validator, model_validator

from meethalf.core.domain_types import EventStatus, TravelMode
from meethalf.schemas.common import CamelModel

MEETING_POINT_FIELDS = (
    "meeting_point_lat", "meeting_point_lng",
    "meeting_point_name", "meeting_point_address",
)


def _check_time_order(start: datetime | None, end: datetime | None) -> None:
    if start is not None and end is not None and end <= start:
        raise ValueError("endTime must be after startTime")


class EventCreate(CamelModel):
    name: str = Field(min_length=1, max_length=100)
    start_time: datetime | None = None
    end_time: datetime | None = None
    owner_id: str | None = Field(None, min_length=1)
    use_meet_half: bool = False
    status: EventStatus | None = None
    meeting_point_lat: float | None = Field(None, ge=-90, le=90)
    meeting_point_lng: float | None = Field(None, ge=-180, le=180)
    meeting_point_name: str | None = Field(None, max_length=200)
    meeting_point_address: str | None = Field(None, max_length=500)
    owner_nickname: str | None = Field(None, min_length=1, max_length=100)
    owner_travel_mode: TravelMode | None = None
    owner_share_location: bool = False
    invited_friend_ids: list[str] | None = None

    @model_validator(mode="after")
    def check_times(self) -> "EventCreate":
        _check_time_order(self.start_time, self.end_time)
        return self


class EventUpdate(CamelModel):
    name: str | None = Field(None, min_length=1, max_length=100)
    start_time: datetime | None = None
    end_time: datetime | None = None
    meeting_point_lat: float | None = Field(None, ge=-90, le=90)
    meeting_point_lng: float | None = Field(None, ge=-180, le=180)
    meeting_point_name: str | None = Field(None, max_length=200)
    meeting_point_address: str | None = Field(None, max_length=500)
    # Anonymous owners prove ownership by echoing their owner id
    owner_id: str | None = None

    @model_validator(mode="after")
    def check_consistency(self) -> "EventUpdate":
        _check_time_order(self.start_time, self.end_time)
        touched = self.model_fields_set & set(MEETING_POINT_FIELDS)
        required = {"meeting_point_lat", "meeting_point_lng", "meeting_point_name"}
        if touched and not required <= self.model_fields_set:
            raise ValueError(
                "If providing location, meetingPointLat, meetingPointLng, "
                "and meetingPointName are required"
            )
        return self

    def changes(self) -> dict:
        """Fields explicitly present in the request, owner_id excluded."""
        return {
            name: getattr(self, name)
            for name in self.model_fields_set
            if name != "owner_id"
        }


class JoinEventRequest(CamelModel):
    nickname: str = Field(min_length=1, max_length=100)
    share_location: bool = False
    travel_mode: TravelMode | None = None

    @field_validator("nickname")
    @classmethod
    def strip_nickname(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("nickname cannot be empty or whitespace")
        return v


class LocationUpdate(CamelModel):
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)
    address: str | None = Field(None, max_length=255)
    travel_mode: TravelMode | None = None


class PokeRequest(CamelModel):
    target_member_id: int = Field(gt=0)


class InvitationCreate(CamelModel):
    invited_user_ids: list[str] = Field(min_length=1)


class TempLocation(CamelModel):
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)
    travel_mode: TravelMode = TravelMode.DRIVING


class TempMidpointRequest(CamelModel):
    locations: list[TempLocation]
    use_meet_half: bool = False
