"""Auth Routes — Google sign-in, session cookie, temp-token exchange.

Invariants:
    - /google sets a short-lived oauth_state cookie; the callback rejects a missing or
      mismatched state
    - Every callback failure redirects to {frontend}/login?error=auth_failed, never a 500
    - A successful sign-in sets the httpOnly `token` cookie (7 days) and redirects to
      /first-time-setup or /events with an auth_temp token for cookie-less browsers
    - /me answers {"user": null} for anonymous callers instead of 401

Design Decisions:
    - SameSite=None only with Secure cookies (cross-site frontend in production);
      local development falls back to Lax
"""

import logging
import secrets
from urllib.parse import quote

from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from meethalf.api.dependencies import AUTH_COOKIE, get_principal
from meethalf.config import get_settings
from meethalf.core.errors import MeetHalfError, ResourceNotFoundError
from meethalf.infrastructure.auth_tokens import (
    create_temp_auth_token, create_user_token, decode_temp_auth_token,
)
from meethalf.infrastructure.database import get_db
from meethalf.infrastructure.google_oauth import GoogleOAuthClient, get_google_oauth
from meethalf.models.user import User
from meethalf.schemas.responses import user_dict
from meethalf.schemas.user import TempTokenExchange
from meethalf.services.access import Principal
from meethalf.services.user_service import UserService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/auth", tags=["auth"])

STATE_COOKIE = "oauth_state"
STATE_MAX_AGE = 10 * 60


def _cookie_options() -> dict:
    secure = get_settings().cookie_secure
    return {
        "httponly": True,
        "secure": secure,
        "samesite": "none" if secure else "lax",
        "path": "/",
    }


def set_auth_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        AUTH_COOKIE, token,
        max_age=get_settings().user_token_days * 24 * 60 * 60,
        **_cookie_options(),
    )


def _login_failed() -> RedirectResponse:
    return RedirectResponse(f"{get_settings().frontend_url}/login?error=auth_failed")


@router.get("/google")
async def google_login(oauth: GoogleOAuthClient = Depends(get_google_oauth)):
    """Redirect to Google's consent screen."""
    state = secrets.token_urlsafe(24)
    response = RedirectResponse(oauth.authorization_url(state))
    response.set_cookie(STATE_COOKIE, state, max_age=STATE_MAX_AGE, **_cookie_options())
    return response


@router.get("/google/callback")
async def google_callback(
    request: Request,
    code: str | None = Query(None),
    state: str | None = Query(None),
    error: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
    oauth: GoogleOAuthClient = Depends(get_google_oauth),
):
    expected = request.cookies.get(STATE_COOKIE)
    state_ok = bool(state and expected and secrets.compare_digest(state, expected))
    if error or not code or not state_ok:
        logger.warning("OAuth callback rejected", extra={"path": request.url.path})
        return _login_failed()

    try:
        access_token = await oauth.exchange_code(code)
        profile = await oauth.fetch_profile(access_token)
    except MeetHalfError as e:
        logger.error(
            f"Google sign-in failed: {e.message}",
            extra={"error_code": e.code, "path": request.url.path},
        )
        return _login_failed()

    user = await UserService(db).upsert_google_user(profile)
    target = "first-time-setup" if user.needs_setup else "events"
    temp_token = quote(create_temp_auth_token(user.id), safe="")
    response = RedirectResponse(
        f"{get_settings().frontend_url}/{target}?auth_temp={temp_token}",
    )
    set_auth_cookie(response, create_user_token(user.id))
    response.delete_cookie(STATE_COOKIE, path="/")
    return response


@router.post("/exchange-temp-token")
async def exchange_temp_token(
    body: TempTokenExchange,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    user_id = decode_temp_auth_token(body.temp_token)
    user = await db.get(User, user_id)
    if user is None:
        raise ResourceNotFoundError("User", user_id)
    token = create_user_token(user.id)
    set_auth_cookie(response, token)
    return {"token": token, "user": user_dict(user)}


@router.get("/me")
async def me(principal: Principal = Depends(get_principal)):
    if principal.user is None:
        return {"user": None}
    return {"user": user_dict(principal.user)}


@router.post("/logout")
async def logout(response: Response):
    options = _cookie_options()
    response.delete_cookie(
        AUTH_COOKIE, path=options["path"], secure=options["secure"],
        httponly=True, samesite=options["samesite"],
    )
    return {"message": "Logout successful"}
