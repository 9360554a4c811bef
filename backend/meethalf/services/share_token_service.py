"""Share Token Service — one shareable invite code per event.

Invariants:
    - At most one token per event (unique event_id)
    - Tokens are 32-char URL-safe strings, unique across all events
    - regenerate_token() invalidates the previous token before issuing a new one
    - Token generation gives up after MAX_ATTEMPTS collisions
"""

import logging

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from meethalf.core.errors import ErrorCategory, ErrorContext, ErrorSeverity, MeetHalfError
from meethalf.core.identifiers import generate_token
from meethalf.models.share_token import ShareToken

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 10


class ShareTokenService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_token(self, event_id: int) -> str | None:
        result = await self.db.execute(
            select(ShareToken.id).where(ShareToken.event_id == event_id)
        )
        return result.scalar_one_or_none()

    async def get_event_id(self, token: str) -> int | None:
        share_token = await self.db.get(ShareToken, token)
        return share_token.event_id if share_token else None

    async def ensure_token(self, event_id: int) -> str:
        """Existing token for the event, or a newly created one."""
        existing = await self.get_token(event_id)
        if existing:
            return existing
        return await self._create(event_id)

    async def regenerate_token(self, event_id: int) -> str:
        await self.db.execute(
            delete(ShareToken).where(ShareToken.event_id == event_id)
        )
        return await self._create(event_id)

    async def _create(self, event_id: int) -> str:
        token = await self._unique_token(event_id)
        self.db.add(ShareToken(id=token, event_id=event_id))
        await self.db.commit()
        logger.info("Share token issued", extra={"event_id": event_id})
        return token

    async def _unique_token(self, event_id: int) -> str:
        for _ in range(MAX_ATTEMPTS):
            token = generate_token()
            if await self.db.get(ShareToken, token) is None:
                return token
        raise MeetHalfError(
            "Failed to generate a unique share token",
            "TOKEN_GENERATION_FAILED",
            ErrorCategory.INTERNAL,
            ErrorSeverity.CRITICAL,
            ErrorContext(event_id=event_id),
        )
