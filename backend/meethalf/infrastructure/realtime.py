"""Realtime Gateway — Pusher Channels fan-out and Pusher Beams web push.

Invariants:
    - Broadcasts are best-effort: a failed trigger/push is logged, never raised
      (the DB write that caused it has already committed)
    - Event channels are `event-{id}`, notification channels `notification-{handle}`
    - Beams interests: `user-{handle}` for users, `event-{id}-member-{member_id}` for devices
    - Push deep links and icons are absolute URLs rooted at settings.frontend_url
    - Missing credentials disable the matching client (calls become logged no-ops)

Design Decisions:
    - Both SDKs are synchronous HTTP clients: calls run in a worker thread via
      asyncio.to_thread so the event loop never blocks on Pusher latency
    - One gateway per process (get_realtime, lru_cache); tests override the dependency
"""

import asyncio
import logging
from functools import lru_cache
from typing import Any

import pusher
from pusher_push_notifications import PushNotifications

from meethalf.config import get_settings
from meethalf.core.domain_types import RealtimeEvent

logger = logging.getLogger(__name__)


def event_channel(event_id: int) -> str:
    return f"event-{event_id}"


def notification_channel(user_handle: str) -> str:
    return f"notification-{user_handle}"


def user_interest(user_handle: str) -> str:
    return f"user-{user_handle}"


def member_interest(event_id: int, member_id: int) -> str:
    return f"event-{event_id}-member-{member_id}"


class RealtimeGateway:
    """Publishes realtime events and web pushes."""

    def __init__(
        self,
        channels: pusher.Pusher | None,
        beams: PushNotifications | None,
        frontend_url: str,
    ):
        self.channels = channels
        self.beams = beams
        self.frontend_url = frontend_url.rstrip("/")

    # ─── Channels ────────────────────────────────────────────────

    async def trigger(
        self, channel: str, event: RealtimeEvent | str, payload: dict[str, Any],
    ) -> bool:
        """Trigger one event on one channel. Returns False when skipped or failed."""
        name = event.value if isinstance(event, RealtimeEvent) else event
        if self.channels is None:
            logger.debug(
                "Pusher not configured, skipping trigger",
                extra={"channel": channel, "realtime_event": name},
            )
            return False
        try:
            await asyncio.to_thread(self.channels.trigger, channel, name, payload)
            return True
        except Exception as e:
            logger.error(
                f"Pusher trigger failed: {e}",
                extra={"channel": channel, "realtime_event": name},
            )
            return False

    async def trigger_event(
        self, event_id: int, event: RealtimeEvent, payload: dict[str, Any],
    ) -> bool:
        return await self.trigger(event_channel(event_id), event, payload)

    async def trigger_notification(
        self, user_handle: str, payload: dict[str, Any],
    ) -> bool:
        return await self.trigger(
            notification_channel(user_handle),
            RealtimeEvent.NEW_NOTIFICATION, payload,
        )

    # ─── Beams ───────────────────────────────────────────────────

    def _absolute(self, path: str) -> str:
        if path.startswith("http"):
            return path
        return f"{self.frontend_url}{path}"

    def build_push_body(
        self, title: str, body: str, data: dict[str, Any] | None = None,
    ) -> dict:
        """Beams publish body with absolute deep link and icon."""
        data = dict(data or {})
        path = data.get("url") or (
            f"/events/{data['eventId']}" if data.get("eventId") else "/"
        )
        return {
            "web": {
                "notification": {
                    "title": title,
                    "body": body,
                    "icon": self._absolute("/favicon.ico"),
                    "deep_link": self._absolute(path),
                },
                "data": {
                    **data,
                    "eventId": data.get("eventId") or "",
                    "url": path,
                },
            },
        }

    async def push_to_interests(
        self,
        interests: list[str],
        title: str,
        body: str,
        data: dict[str, Any] | None = None,
    ) -> bool:
        """Publish a web push to device interests. Returns False when skipped or failed."""
        if self.beams is None or not interests:
            return False
        publish_body = self.build_push_body(title, body, data)
        try:
            await asyncio.to_thread(
                self.beams.publish_to_interests,
                interests=interests,
                publish_body=publish_body,
            )
            return True
        except Exception as e:
            logger.error(f"Beams publish failed: {e}", extra={"channel": interests[0]})
            return False

    async def push_to_user(
        self,
        user_handle: str,
        title: str,
        body: str,
        data: dict[str, Any] | None = None,
    ) -> bool:
        return await self.push_to_interests(
            [user_interest(user_handle)], title, body, data,
        )


def build_gateway() -> RealtimeGateway:
    """Construct the gateway from settings; empty credentials disable a client."""
    settings = get_settings()
    channels = None
    if settings.pusher_app_id and settings.pusher_key and settings.pusher_secret:
        channels = pusher.Pusher(
            app_id=settings.pusher_app_id,
            key=settings.pusher_key,
            secret=settings.pusher_secret,
            cluster=settings.pusher_cluster,
            ssl=True,
        )
    else:
        logger.warning("Pusher credentials missing, realtime broadcasts disabled")

    beams = None
    if settings.pusher_beams_instance_id and settings.pusher_beams_secret_key:
        beams = PushNotifications(
            instance_id=settings.pusher_beams_instance_id,
            secret_key=settings.pusher_beams_secret_key,
        )
    else:
        logger.warning("Beams credentials missing, web push disabled")

    return RealtimeGateway(channels, beams, settings.frontend_url)


@lru_cache
def get_realtime() -> RealtimeGateway:
    """FastAPI dependency — process-wide gateway."""
    return build_gateway()
