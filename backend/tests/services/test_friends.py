"""Friends — requests, acceptance, the friend list and user search."""

from sqlalchemy import select

from meethalf.core.domain_types import RealtimeEvent
from meethalf.models.friend import Friend
from meethalf.models.notification import Notification
from tests.services.fakes import user_headers


async def _request(client, sender, to_handle):
    return await client.post(
        "/api/v1/friends/requests", json={"toUserId": to_handle},
        headers=user_headers(sender),
    )


# ─── Requests ────────────────────────────────────────────────────


async def test_send_request_notifies_recipient(client, make_user, realtime, test_db):
    alice = await make_user("alice", name="Alice")
    await make_user("bob")
    response = await _request(client, alice, "bob")
    assert response.status_code == 200
    request = response.json()["request"]
    assert (request["fromUserId"], request["toUserId"], request["status"]) == (
        "alice", "bob", "pending",
    )

    note = (await test_db.execute(
        select(Notification).where(Notification.user_id == "bob")
    )).scalar_one()
    assert note.type == "FRIEND_REQUEST"
    assert note.data["requestId"] == request["id"]
    event = realtime.payloads(RealtimeEvent.FRIEND_REQUEST)[0]
    assert event["fromUser"] == {"userId": "alice", "name": "Alice"}
    assert realtime.channels_for(RealtimeEvent.FRIEND_REQUEST) == ["notification-bob"]


async def test_invalid_requests(client, make_user):
    alice = await make_user("alice")
    bob = await make_user("bob")
    assert (await _request(client, alice, "alice")).status_code == 400
    missing = await _request(client, alice, "ghost")
    assert missing.status_code == 404
    assert missing.json()["error"]["code"] == "USER_NOT_FOUND"

    await _request(client, alice, "bob")
    duplicate = await _request(client, alice, "bob")
    reverse = await _request(client, bob, "alice")
    assert duplicate.json()["error"]["message"] == "Friend request already exists"
    assert reverse.status_code == 400


async def test_list_received_and_sent(client, make_user):
    alice = await make_user("alice")
    bob = await make_user("bob", name="Bob")
    await _request(client, alice, "bob")

    received = (await client.get(
        "/api/v1/friends/requests", headers=user_headers(bob),
    )).json()["requests"]
    assert received[0]["fromUser"]["userId"] == "alice"

    sent = (await client.get(
        "/api/v1/friends/requests", params={"type": "sent"}, headers=user_headers(alice),
    )).json()["requests"]
    assert sent[0]["toUser"]["name"] == "Bob"


# ─── Accept / reject ─────────────────────────────────────────────


async def test_accept_creates_both_directions(client, make_user, realtime, test_db):
    alice = await make_user("alice")
    bob = await make_user("bob", name="Bob")
    request_id = (await _request(client, alice, "bob")).json()["request"]["id"]

    response = await client.post(
        f"/api/v1/friends/requests/{request_id}/accept", headers=user_headers(bob),
    )
    assert response.json() == {"success": True}

    pairs = set((await test_db.execute(
        select(Friend.user_id, Friend.friend_id)
    )).all())
    assert pairs == {("alice", "bob"), ("bob", "alice")}
    accepted = realtime.payloads(RealtimeEvent.FRIEND_ACCEPTED)[0]
    assert accepted["friend"] == {"userId": "bob", "name": "Bob"}

    friends = (await client.get(
        "/api/v1/friends", headers=user_headers(alice),
    )).json()["friends"]
    assert [f["userId"] for f in friends] == ["bob"]

    again = await client.post(
        f"/api/v1/friends/requests/{request_id}/accept", headers=user_headers(bob),
    )
    assert again.status_code == 400


async def test_sender_cannot_accept_own_request(client, make_user):
    alice = await make_user("alice")
    await make_user("bob")
    request_id = (await _request(client, alice, "bob")).json()["request"]["id"]
    response = await client.post(
        f"/api/v1/friends/requests/{request_id}/accept", headers=user_headers(alice),
    )
    assert response.status_code == 403


async def test_rerequest_after_reject_reuses_row(client, make_user):
    alice = await make_user("alice")
    bob = await make_user("bob")
    first = (await _request(client, alice, "bob")).json()["request"]
    await client.post(
        f"/api/v1/friends/requests/{first['id']}/reject", headers=user_headers(bob),
    )
    second = (await _request(client, alice, "bob")).json()["request"]
    assert second["id"] == first["id"]
    assert second["status"] == "pending"


# ─── Friends / search ────────────────────────────────────────────


async def test_remove_friend(client, make_user, test_db):
    alice = await make_user("alice")
    bob = await make_user("bob")
    request_id = (await _request(client, alice, "bob")).json()["request"]["id"]
    await client.post(
        f"/api/v1/friends/requests/{request_id}/accept", headers=user_headers(bob),
    )

    response = await client.delete("/api/v1/friends/bob", headers=user_headers(alice))
    assert response.json() == {"success": True}
    assert (await test_db.execute(select(Friend))).scalars().all() == []

    again = await client.delete("/api/v1/friends/bob", headers=user_headers(alice))
    assert again.status_code == 400


async def test_search_matches_name_handle_and_email(client, make_user):
    alice = await make_user("alice")
    await make_user("bobby", name="Robert", email="rob@example.com")
    await make_user("carol", name="Carol Bobson")
    await make_user(None, name="Bob Without Handle")

    response = await client.get(
        "/api/v1/friends/search", params={"q": "BOB"}, headers=user_headers(alice),
    )
    users = response.json()["users"]
    assert [u["userId"] for u in users] == ["carol", "bobby"]

    by_email = (await client.get(
        "/api/v1/friends/search", params={"q": "rob@"}, headers=user_headers(alice),
    )).json()["users"]
    assert [u["userId"] for u in by_email] == ["bobby"]


async def test_search_excludes_self(client, make_user):
    alice = await make_user("alice")
    response = await client.get(
        "/api/v1/friends/search", params={"q": "alice"}, headers=user_headers(alice),
    )
    assert response.json() == {"users": []}
