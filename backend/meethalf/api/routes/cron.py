"""Cron Routes — scheduler entry point for event reminders.

Invariants:
    - When CRON_SECRET is set, the caller must send it as `Bearer <secret>` or the raw
      secret, in Authorization or x-vercel-cron-secret; otherwise 401
    - When CRON_SECRET is empty the endpoint is open (local development)
    - GET and POST behave identically
"""

import logging
import secrets

from fastapi import APIRouter, Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from meethalf.config import get_settings
from meethalf.core.errors import AuthenticationError
from meethalf.infrastructure.database import get_db
from meethalf.infrastructure.realtime import RealtimeGateway, get_realtime
from meethalf.services.reminder_service import ReminderService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/cron", tags=["cron"])


def verify_cron_secret(
    authorization: str | None = Header(None),
    x_vercel_cron_secret: str | None = Header(None),
) -> None:
    expected = get_settings().cron_secret
    if not expected:
        return
    provided = x_vercel_cron_secret or authorization or ""
    if provided.startswith("Bearer "):
        provided = provided[len("Bearer "):]
    if not secrets.compare_digest(provided.encode(), expected.encode()):
        logger.warning("Rejected cron request with invalid secret")
        raise AuthenticationError("Invalid cron secret")


@router.api_route(
    "/event-reminders",
    methods=["GET", "POST"],
    dependencies=[Depends(verify_cron_secret)],
)
async def event_reminders(
    db: AsyncSession = Depends(get_db),
    realtime: RealtimeGateway = Depends(get_realtime),
):
    return await ReminderService(db, realtime).send_event_reminders()
