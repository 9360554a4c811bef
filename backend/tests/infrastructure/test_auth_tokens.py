"""Auth Tokens — user, guest and temp-auth JWTs are distinct and tamper-evident."""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from meethalf.config import get_settings
from meethalf.core.errors import AuthenticationError
from meethalf.infrastructure.auth_tokens import (
    GuestClaims, create_guest_token, create_temp_auth_token, create_user_token,
    decode_guest_token, decode_temp_auth_token, decode_user_token,
)


def test_user_token_round_trip():
    assert decode_user_token(create_user_token(42)) == 42


def test_guest_token_carries_member_and_event():
    claims = decode_guest_token(create_guest_token(5, 9))
    assert claims == GuestClaims(member_id=5, event_id=9)


def test_temp_token_round_trip():
    assert decode_temp_auth_token(create_temp_auth_token(3)) == 3


def test_token_types_are_not_interchangeable():
    with pytest.raises(AuthenticationError) as exc:
        decode_user_token(create_guest_token(5, 9))
    assert exc.value.code == "INVALID_TOKEN"
    with pytest.raises(AuthenticationError):
        decode_user_token(create_temp_auth_token(3))
    with pytest.raises(AuthenticationError):
        decode_guest_token(create_user_token(42))


def test_wrong_signature_rejected():
    forged = jwt.encode({"userId": 1, "type": "user"}, "not-the-secret", algorithm="HS256")
    with pytest.raises(AuthenticationError) as exc:
        decode_user_token(forged)
    assert exc.value.http_status == 401


def test_expired_token_reports_token_expired():
    settings = get_settings()
    past = datetime.now(timezone.utc) - timedelta(hours=1)
    expired = jwt.encode(
        {"userId": 1, "type": "user", "iat": past, "exp": past + timedelta(minutes=1)},
        settings.jwt_secret, algorithm=settings.jwt_algorithm,
    )
    with pytest.raises(AuthenticationError) as exc:
        decode_user_token(expired)
    assert exc.value.code == "TOKEN_EXPIRED"


def test_garbage_rejected():
    with pytest.raises(AuthenticationError):
        decode_user_token("not-a-jwt")
