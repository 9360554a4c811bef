"""User Schemas — profile, handle availability, first-time setup, token exchange.

Invariants:
    - Public handles: 3-50 chars of letters, digits and underscores
    - Avatar must be an http(s) URL
"""

from pydantic import Field

from meethalf.core.domain_types import TravelMode
from meethalf.schemas.common import CamelModel

HANDLE_PATTERN = r"^[a-zA-Z0-9_]+$"


class ProfileUpdate(CamelModel):
    name: str | None = Field(None, min_length=1, max_length=100)
    avatar: str | None = Field(None, pattern=r"^https?://\S+$", max_length=500)
    default_lat: float | None = Field(None, ge=-90, le=90)
    default_lng: float | None = Field(None, ge=-180, le=180)
    default_address: str | None = Field(None, max_length=500)
    default_location_name: str | None = Field(None, max_length=200)
    default_travel_mode: TravelMode | None = None


class HandleCheck(CamelModel):
    user_id: str = Field(min_length=3, max_length=50, pattern=HANDLE_PATTERN)


class CompleteSetup(CamelModel):
    user_id: str = Field(min_length=3, max_length=50, pattern=HANDLE_PATTERN)
    default_lat: float | None = Field(None, ge=-90, le=90)
    default_lng: float | None = Field(None, ge=-180, le=180)
    default_address: str | None = Field(None, max_length=500)
    default_location_name: str | None = Field(None, max_length=200)
    default_travel_mode: TravelMode | None = None


class TempTokenExchange(CamelModel):
    temp_token: str = Field(min_length=1)
