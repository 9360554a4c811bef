"""Reminder Service — cron-driven "starts in 30 minutes" notifications.

Invariants:
    - Statuses are advanced first; a failure there is logged and does not stop reminders
    - Only upcoming events starting within [now + 29 min, now + 31 min] are considered
    - Only registered members (a handle, not a guest id) are reminded
    - A member already holding a 30min reminder for the event from the last hour is skipped
    - One member's failure is logged and counted out; the batch continues
"""

import logging
import time
from datetime import datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from meethalf.core.domain_types import EventStatus, NotificationType
from meethalf.core.errors import MeetHalfError
from meethalf.core.identifiers import is_guest_user_id
from meethalf.infrastructure.realtime import RealtimeGateway
from meethalf.models.event import Event
from meethalf.models.notification import Notification
from meethalf.services.event_service import EventService
from meethalf.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

WINDOW_START = timedelta(minutes=29)
WINDOW_END = timedelta(minutes=31)
DEDUP_WINDOW = timedelta(hours=1)
REMINDER_TYPE = "30min"


class ReminderService:
    def __init__(self, db: AsyncSession, realtime: RealtimeGateway):
        self.db = db
        self.notifications = NotificationService(db, realtime)
        self.events = EventService(db, realtime)

    async def _already_reminded(self, handle: str, event_id: int, now: datetime) -> bool:
        result = await self.db.execute(
            select(Notification.data)
            .where(Notification.user_id == handle)
            .where(Notification.type == NotificationType.EVENT_UPDATE.value)
            .where(Notification.created_at >= now - DEDUP_WINDOW)
        )
        for data in result.scalars().all():
            if (
                isinstance(data, dict)
                and data.get("eventId") == event_id
                and data.get("reminderType") == REMINDER_TYPE
            ):
                return True
        return False

    async def send_event_reminders(self, now: datetime | None = None) -> dict:
        started = time.perf_counter()
        now = now or datetime.now(timezone.utc)

        try:
            await self.events.update_statuses(now)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Status update failed: {e}")

        result = await self.db.execute(
            select(Event)
            .where(Event.status == EventStatus.UPCOMING.value)
            .where(Event.start_time >= now + WINDOW_START)
            .where(Event.start_time <= now + WINDOW_END)
            .order_by(Event.start_time)
        )
        # snapshot before the loop: a rollback expires loaded rows
        events = [
            (event.id, event.name, [
                (m.id, m.user_id) for m in event.members
                if m.user_id and not is_guest_user_id(m.user_id)
            ])
            for event in result.scalars().all()
        ]

        sent = skipped = 0
        for event_id, event_name, recipients in events:
            for member_id, handle in recipients:
                try:
                    if await self._already_reminded(handle, event_id, now):
                        skipped += 1
                        continue
                    await self.notifications.create(
                        handle,
                        NotificationType.EVENT_UPDATE,
                        "Event reminder",
                        f'"{event_name}" starts in 30 minutes',
                        {
                            "eventId": event_id,
                            "eventName": event_name,
                            "reminderType": REMINDER_TYPE,
                        },
                    )
                    sent += 1
                except (MeetHalfError, SQLAlchemyError) as e:
                    await self.db.rollback()
                    logger.error(
                        f"Reminder failed: {e}",
                        extra={"event_id": event_id, "member_id": member_id},
                    )

        duration_ms = int((time.perf_counter() - started) * 1000)
        logger.info(
            f"Event reminders: {sent} sent, {skipped} skipped",
            extra={"path": "/cron/event-reminders"},
        )
        return {
            "success": True,
            "timestamp": now.isoformat(),
            "eventsChecked": len(events),
            "remindersSent": sent,
            "remindersSkipped": skipped,
            "duration": f"{duration_ms}ms",
        }
