"""Domain Types — rich types that replace bare primitives across the codebase.

Invariants:
    - All valid states encoded as Enums — no raw string matching
    - TravelMode.MOTORCYCLE is routed as driving by Google

Design Decisions:
    - str Enums: serialize to JSON without custom encoders
"""

from enum import Enum


# ─── Enums ───────────────────────────────────────────────────────

class EventStatus(str, Enum):
    """Event lifecycle states — maps to DB `status` column."""
    UPCOMING = "upcoming"
    ONGOING = "ongoing"
    ENDED = "ended"


class TravelMode(str, Enum):
    """How a member travels to the meeting point."""
    DRIVING = "driving"
    TRANSIT = "transit"
    WALKING = "walking"
    BICYCLING = "bicycling"
    MOTORCYCLE = "motorcycle"

    @property
    def google_mode(self) -> str:
        """Mode string understood by the Google Directions API."""
        if self is TravelMode.MOTORCYCLE:
            return TravelMode.DRIVING.value
        return self.value


class ArrivalStatus(str, Enum):
    """Arrival classification relative to the event start."""
    EARLY = "early"
    ONTIME = "ontime"
    LATE = "late"
    ABSENT = "absent"


class NotificationType(str, Enum):
    """Notification kinds — drive the push deep link."""
    FRIEND_REQUEST = "FRIEND_REQUEST"
    FRIEND_ACCEPTED = "FRIEND_ACCEPTED"
    EVENT_INVITE = "EVENT_INVITE"
    EVENT_UPDATE = "EVENT_UPDATE"
    NEW_MESSAGE = "NEW_MESSAGE"
    POKE = "POKE"


class RequestStatus(str, Enum):
    """Friend request / event invitation states."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class MidpointObjective(str, Enum):
    """What the time-based midpoint search minimizes."""
    MINIMIZE_TOTAL = "minimize_total"
    MINIMIZE_MAX = "minimize_max"


# ─── Realtime event names ────────────────────────────────────────

class RealtimeEvent(str, Enum):
    """Pusher event names published on event / notification channels."""
    MEMBER_JOINED = "member-joined"
    LOCATION_UPDATE = "location-update"
    ETA_UPDATE = "eta-update"
    MEMBER_ARRIVED = "member-arrived"
    POKE = "poke"
    EVENT_UPDATED = "event-updated"
    NEW_NOTIFICATION = "new-notification"
    FRIEND_REQUEST = "friend-request"
    FRIEND_ACCEPTED = "friend-accepted"
