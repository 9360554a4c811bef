"""Member Schemas — add / update / offline member request models."""

from pydantic import Field

from meethalf.core.domain_types import TravelMode
from meethalf.schemas.common import CamelModel


class MemberCreate(CamelModel):
    username: str = Field(min_length=1, max_length=255)
    event_id: int = Field(gt=0)
    lat: float | None = Field(None, ge=-90, le=90)
    lng: float | None = Field(None, ge=-180, le=180)
    address: str | None = Field(None, max_length=255)
    travel_mode: TravelMode | None = None


class MemberLocationPatch(CamelModel):
    lat: float | None = Field(None, ge=-90, le=90)
    lng: float | None = Field(None, ge=-180, le=180)
    address: str | None = Field(None, max_length=255)
    travel_mode: TravelMode | None = None


class OfflineMemberCreate(CamelModel):
    event_id: int = Field(gt=0)
    nickname: str = Field(min_length=1, max_length=100)
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)
    address: str | None = Field(None, max_length=255)
    travel_mode: TravelMode = TravelMode.DRIVING


class OfflineMemberPatch(CamelModel):
    nickname: str | None = Field(None, min_length=1, max_length=100)
    lat: float | None = Field(None, ge=-90, le=90)
    lng: float | None = Field(None, ge=-180, le=180)
    address: str | None = Field(None, max_length=255)
    travel_mode: TravelMode | None = None
