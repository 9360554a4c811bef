"""Event reminders — the cron endpoint, its secret and reminder deduplication."""

from datetime import timedelta

from sqlalchemy import select

from meethalf.config import get_settings
from meethalf.models.event import Event
from meethalf.models.notification import Notification


async def test_reminds_registered_members_once(client, make_event, make_member, test_db, realtime):
    soon = await make_event(name="Soon", start_offset=timedelta(minutes=30))
    await make_member(soon, "alice")
    await make_member(soon, "guest_1a2b3c")
    await make_member(soon, None, nickname="Offline")
    later = await make_event(name="Later", start_offset=timedelta(hours=3))
    await make_member(later, "alice")

    first = (await client.get("/api/v1/cron/event-reminders")).json()
    assert first["success"] is True
    assert first["eventsChecked"] == 1
    assert first["remindersSent"] == 1
    assert first["remindersSkipped"] == 0

    note = (await test_db.execute(select(Notification))).scalar_one()
    assert note.user_id == "alice"
    assert note.body == '"Soon" starts in 30 minutes'
    assert note.data["reminderType"] == "30min"
    assert realtime.pushes[0]["interests"] == ["user-alice"]

    second = (await client.post("/api/v1/cron/event-reminders")).json()
    assert second["remindersSent"] == 0
    assert second["remindersSkipped"] == 1


async def test_cron_advances_statuses(client, make_event, test_db):
    running = await make_event(start_offset=timedelta(minutes=-10))
    await client.get("/api/v1/cron/event-reminders")
    status = (await test_db.execute(
        select(Event.status).where(Event.id == running.id)
    )).scalar_one()
    assert status == "ongoing"


async def test_cron_secret_enforced(client, monkeypatch):
    monkeypatch.setattr(get_settings(), "cron_secret", "s3cret")
    url = "/api/v1/cron/event-reminders"
    assert (await client.get(url)).status_code == 401
    assert (await client.get(url, headers={"Authorization": "Bearer nope"})).status_code == 401
    assert (await client.get(url, headers={"Authorization": "Bearer s3cret"})).status_code == 200
    assert (await client.get(url, headers={"x-vercel-cron-secret": "s3cret"})).status_code == 200
