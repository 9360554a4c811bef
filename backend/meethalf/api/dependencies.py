"""API Dependencies — who is calling, resolved from a bearer token or the auth cookie.

Invariants:
    - The token comes from `Authorization: Bearer <token>` first, else the `token` cookie
    - A token is tried as a user token, then as a guest token
    - get_principal never fails: missing, invalid or expired tokens mean anonymous
    - get_current_user fails with 401 unless a valid user token names an existing user
    - get_current_handle additionally requires a completed setup (a public handle)
"""

import logging

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from meethalf.core.errors import AuthenticationError
from meethalf.infrastructure.auth_tokens import decode_guest_token, decode_user_token
from meethalf.infrastructure.database import get_db
from meethalf.models.user import User
from meethalf.services.access import ANONYMOUS, Principal

logger = logging.getLogger(__name__)

AUTH_COOKIE = "token"
bearer_scheme = HTTPBearer(auto_error=False)


def extract_token(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> str | None:
    if credentials is not None and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(AUTH_COOKIE) or None


async def _load_user(db: AsyncSession, token: str) -> User | None:
    try:
        user_id = decode_user_token(token)
    except AuthenticationError:
        return None
    return await db.get(User, user_id)


async def get_principal(
    token: str | None = Depends(extract_token),
    db: AsyncSession = Depends(get_db),
) -> Principal:
    """Optional auth: a user, a guest, or ANONYMOUS."""
    if not token:
        return ANONYMOUS
    user = await _load_user(db, token)
    if user is not None:
        return Principal(user=user)
    try:
        return Principal(guest=decode_guest_token(token))
    except AuthenticationError:
        logger.debug("Ignoring unusable token")
        return ANONYMOUS


async def get_current_user(
    token: str | None = Depends(extract_token),
    db: AsyncSession = Depends(get_db),
) -> User:
    if not token:
        raise AuthenticationError()
    user = await db.get(User, decode_user_token(token))
    if user is None:
        raise AuthenticationError("User not found")
    return user


async def get_current_handle(user: User = Depends(get_current_user)) -> User:
    """A signed-in user who has picked a public handle."""
    if not user.user_id:
        raise AuthenticationError("User setup not completed", code="SETUP_REQUIRED")
    return user
