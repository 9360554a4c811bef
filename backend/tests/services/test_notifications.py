"""Notifications — inbox listing, read state, deletion and push deep links."""

import pytest

from meethalf.core.domain_types import NotificationType
from meethalf.services.notification_service import NotificationService, push_path
from tests.services.fakes import user_headers


@pytest.fixture
def notify(test_db, realtime):
    service = NotificationService(test_db, realtime)

    async def _notify(handle, kind=NotificationType.EVENT_UPDATE, title="t", **data):
        return await service.create(handle, kind, title, "body", data or None)

    return _notify


async def test_create_broadcasts_and_pushes(notify, realtime):
    notification = await notify("alice", NotificationType.POKE, eventId=7)
    channel, name, payload = realtime.triggered[0]
    assert (channel, name) == ("notification-alice", "new-notification")
    assert payload["id"] == notification.id
    assert realtime.pushes[0]["data"]["url"] == "/events/7"
    assert realtime.pushes[0]["data"]["type"] == "POKE"


async def test_list_newest_first_and_filter(client, make_user, notify):
    alice = await make_user("alice")
    first = await notify("alice", title="first")
    await notify("alice", title="second")
    await notify("bob", title="not mine")

    listing = (await client.get(
        "/api/v1/notifications", headers=user_headers(alice),
    )).json()["notifications"]
    assert [n["title"] for n in listing] == ["second", "first"]

    await client.put(
        f"/api/v1/notifications/{first.id}/read", headers=user_headers(alice),
    )
    unread = (await client.get(
        "/api/v1/notifications", params={"read": "false"}, headers=user_headers(alice),
    )).json()["notifications"]
    assert [n["title"] for n in unread] == ["second"]


async def test_unread_count_ignores_chat(client, make_user, notify):
    alice = await make_user("alice")
    await notify("alice")
    await notify("alice", NotificationType.NEW_MESSAGE, senderId="bob")
    response = await client.get(
        "/api/v1/notifications/unread-count", headers=user_headers(alice),
    )
    assert response.json() == {"count": 1}

    await client.put("/api/v1/notifications/read-all", headers=user_headers(alice))
    listing = (await client.get(
        "/api/v1/notifications", headers=user_headers(alice),
    )).json()["notifications"]
    read_by_type = {n["type"]: n["read"] for n in listing}
    assert read_by_type == {"EVENT_UPDATE": True, "NEW_MESSAGE": False}


async def test_cannot_touch_others_notifications(client, make_user, notify):
    alice = await make_user("alice")
    bobs = await notify("bob")
    response = await client.put(
        f"/api/v1/notifications/{bobs.id}/read", headers=user_headers(alice),
    )
    assert response.status_code == 403
    missing = await client.delete(
        "/api/v1/notifications/999", headers=user_headers(alice),
    )
    assert missing.status_code == 404


async def test_delete_notification(client, make_user, notify):
    alice = await make_user("alice")
    note = await notify("alice")
    response = await client.delete(
        f"/api/v1/notifications/{note.id}", headers=user_headers(alice),
    )
    assert response.json() == {"success": True}
    listing = (await client.get(
        "/api/v1/notifications", headers=user_headers(alice),
    )).json()
    assert listing == {"notifications": []}


async def test_invite_notification_shows_invitation_status(client, make_user, make_event):
    alice = await make_user("alice")
    bob = await make_user("bob")
    event = await make_event()
    invitation = (await client.post(
        f"/api/v1/events/{event.id}/invitations",
        json={"invitedUserIds": ["bob"]}, headers=user_headers(alice),
    )).json()["invitations"][0]
    await client.post(
        f"/api/v1/invitations/{invitation['id']}/reject", headers=user_headers(bob),
    )
    listing = (await client.get(
        "/api/v1/notifications", headers=user_headers(bob),
    )).json()["notifications"]
    assert listing[0]["data"]["invitationStatus"] == "rejected"


async def test_inbox_requires_login(client):
    assert (await client.get("/api/v1/notifications")).status_code == 401


def test_push_paths():
    assert push_path(NotificationType.FRIEND_ACCEPTED, {}) == "/friends"
    assert push_path(NotificationType.NEW_MESSAGE, {"groupId": 3}) == "/chat/group/3"
    assert push_path(NotificationType.NEW_MESSAGE, {"senderId": "bob"}) == "/chat/user/bob"
    assert push_path(NotificationType.EVENT_INVITE, {"eventId": 5}) == "/events/5"
    assert push_path(NotificationType.EVENT_INVITE, {}) == "/notifications"
    assert push_path(NotificationType.FRIEND_REQUEST, None) == "/notifications"
