"""Invite Links — resolve a share token to its event id (public)."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from meethalf.core.errors import ResourceNotFoundError
from meethalf.infrastructure.database import get_db
from meethalf.services.share_token_service import ShareTokenService

router = APIRouter(prefix="/api/v1/invite", tags=["invite"])


@router.get("/{token}")
async def resolve_invite(token: str, db: AsyncSession = Depends(get_db)):
    event_id = await ShareTokenService(db).get_event_id(token)
    if event_id is None:
        raise ResourceNotFoundError("Invite token", token, code="TOKEN_NOT_FOUND")
    return {"eventId": event_id}
