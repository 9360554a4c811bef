"""Auth Tokens — signed JWTs for users, guests and one-time OAuth hand-off.

Invariants:
    - User tokens carry {"userId": int, "type": "user"} and live user_token_days
    - Guest tokens carry {"memberId": int, "eventId": int, "type": "guest"} and live guest_token_hours
    - Temp-auth tokens carry {"userId": int, "type": "temp_auth"} and live temp_token_minutes
    - A token of one type never decodes as another type
    - Invalid, expired or mistyped tokens raise AuthenticationError

Design Decisions:
    - PyJWT with a shared HS256 secret: stateless, no token table
    - Explicit "type" claim instead of guessing the payload shape from its keys
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt

from meethalf.config import get_settings
from meethalf.core.errors import AuthenticationError

USER_TOKEN = "user"
GUEST_TOKEN = "guest"
TEMP_AUTH_TOKEN = "temp_auth"


@dataclass(frozen=True)
class GuestClaims:
    member_id: int
    event_id: int


def _encode(claims: dict, lifetime: timedelta) -> str:
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload = {**claims, "iat": now, "exp": now + lifetime}
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def _decode(token: str, expected_type: str) -> dict:
    settings = get_settings()
    try:
        payload = jwt.decode(
            token, settings.jwt_secret, algorithms=[settings.jwt_algorithm],
        )
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Token expired", code="TOKEN_EXPIRED")
    except jwt.InvalidTokenError:
        raise AuthenticationError("Invalid or expired token", code="INVALID_TOKEN")
    if payload.get("type") != expected_type:
        raise AuthenticationError("Invalid or expired token", code="INVALID_TOKEN")
    return payload


# ─── Encode ──────────────────────────────────────────────────────

def create_user_token(user_id: int) -> str:
    return _encode(
        {"userId": user_id, "type": USER_TOKEN},
        timedelta(days=get_settings().user_token_days),
    )


def create_guest_token(member_id: int, event_id: int) -> str:
    return _encode(
        {"memberId": member_id, "eventId": event_id, "type": GUEST_TOKEN},
        timedelta(hours=get_settings().guest_token_hours),
    )


def create_temp_auth_token(user_id: int) -> str:
    """Short-lived token for browsers that drop the cross-site cookie."""
    return _encode(
        {"userId": user_id, "type": TEMP_AUTH_TOKEN},
        timedelta(minutes=get_settings().temp_token_minutes),
    )


# ─── Decode ──────────────────────────────────────────────────────

def decode_user_token(token: str) -> int:
    payload = _decode(token, USER_TOKEN)
    user_id = payload.get("userId")
    if not isinstance(user_id, int):
        raise AuthenticationError("Invalid or expired token", code="INVALID_TOKEN")
    return user_id


def decode_guest_token(token: str) -> GuestClaims:
    payload = _decode(token, GUEST_TOKEN)
    member_id, event_id = payload.get("memberId"), payload.get("eventId")
    if not isinstance(member_id, int) or not isinstance(event_id, int):
        raise AuthenticationError("Invalid guest token", code="INVALID_TOKEN")
    return GuestClaims(member_id=member_id, event_id=event_id)


def decode_temp_auth_token(token: str) -> int:
    payload = _decode(token, TEMP_AUTH_TOKEN)
    user_id = payload.get("userId")
    if not isinstance(user_id, int):
        raise AuthenticationError("Invalid temp auth token", code="INVALID_TOKEN")
    return user_id
