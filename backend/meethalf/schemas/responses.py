"""Response Shapes — ORM rows to camelCase JSON dicts.

Invariants:
    - Every datetime leaves the API as an ISO 8601 UTC string
    - Users are exposed without google_id

Design Decisions:
    - Plain dict builders over response_model classes: routes already return dicts and
      several payloads (broadcasts, pushes) reuse the same shapes outside HTTP
"""

from meethalf.models.event import Event
from meethalf.models.event_invitation import EventInvitation
from meethalf.models.member import Member
from meethalf.models.notification import Notification
from meethalf.models.user import User
from meethalf.schemas.common import iso


def member_dict(member: Member) -> dict:
    return {
        "id": member.id,
        "eventId": member.event_id,
        "userId": member.user_id,
        "nickname": member.nickname,
        "lat": member.lat,
        "lng": member.lng,
        "address": member.address,
        "travelMode": member.travel_mode,
        "shareLocation": member.share_location,
        "arrivalTime": iso(member.arrival_time),
        "createdAt": iso(member.created_at),
        "updatedAt": iso(member.updated_at),
    }


def event_dict(event: Event, members: list[Member] | None = None) -> dict:
    """Event with its members; pass members explicitly when freshly queried."""
    if members is None:
        members = list(event.members)
    return {
        "id": event.id,
        "name": event.name,
        "ownerId": event.owner_id,
        "startTime": iso(event.start_time),
        "endTime": iso(event.end_time),
        "meetingPointLat": event.meeting_point_lat,
        "meetingPointLng": event.meeting_point_lng,
        "meetingPointName": event.meeting_point_name,
        "meetingPointAddress": event.meeting_point_address,
        "status": event.status,
        "useMeetHalf": event.use_meet_half,
        "createdAt": iso(event.created_at),
        "updatedAt": iso(event.updated_at),
        "members": [member_dict(m) for m in members],
    }


def user_dict(user: User) -> dict:
    return {
        "id": user.id,
        "userId": user.user_id,
        "email": user.email,
        "name": user.name,
        "avatar": user.avatar,
        "provider": user.provider,
        "defaultLat": user.default_lat,
        "defaultLng": user.default_lng,
        "defaultAddress": user.default_address,
        "defaultLocationName": user.default_location_name,
        "defaultTravelMode": user.default_travel_mode,
        "needsSetup": user.needs_setup,
        "createdAt": iso(user.created_at),
        "updatedAt": iso(user.updated_at),
    }


def public_user_dict(user: User) -> dict:
    """Subset shown to other users (search, friend requests)."""
    return {
        "userId": user.user_id,
        "name": user.name,
        "email": user.email,
        "avatar": user.avatar,
    }


def notification_dict(notification: Notification, data: dict | None = None) -> dict:
    return {
        "id": notification.id,
        "userId": notification.user_id,
        "type": notification.type,
        "title": notification.title,
        "body": notification.body,
        "data": data if data is not None else notification.data,
        "read": notification.read,
        "createdAt": iso(notification.created_at),
    }


def member_joined_payload(member: Member) -> dict:
    """Broadcast body for member-joined."""
    return {
        "memberId": member.id,
        "nickname": member.nickname,
        "userId": member.user_id,
        "shareLocation": member.share_location,
        "travelMode": member.travel_mode,
        "createdAt": iso(member.created_at),
    }


def invitation_dict(invitation: EventInvitation, event: Event | None = None) -> dict:
    data = {
        "id": invitation.id,
        "eventId": invitation.event_id,
        "fromUserId": invitation.from_user_id,
        "toUserId": invitation.to_user_id,
        "status": invitation.status,
        "createdAt": iso(invitation.created_at),
        "updatedAt": iso(invitation.updated_at),
    }
    if event is not None:
        data["event"] = {
            "id": event.id,
            "name": event.name,
            "startTime": iso(event.start_time),
            "endTime": iso(event.end_time),
            "ownerId": event.owner_id,
        }
    return data
