"""Maps Schemas — Directions proxy body.

Invariants:
    - departureTime is "now" or an ISO 8601 datetime
    - mode excludes motorcycle (the proxy mirrors Google's own modes)
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from meethalf.schemas.common import CamelModel


class Coordinates(BaseModel):
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)


class DirectionsRequest(CamelModel):
    origin: Coordinates
    destination: Coordinates
    mode: Literal["driving", "walking", "bicycling", "transit"] = "transit"
    departure_time: str = "now"

    @field_validator("departure_time")
    @classmethod
    def check_departure_time(cls, v: str) -> str:
        if v != "now":
            datetime.fromisoformat(v.replace("Z", "+00:00"))
        return v

    def departure(self) -> datetime | None:
        """Departure as a datetime; None means now."""
        if self.departure_time == "now":
            return None
        return datetime.fromisoformat(self.departure_time.replace("Z", "+00:00"))
