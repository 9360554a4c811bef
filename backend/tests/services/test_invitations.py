"""Event invitations — owner invites, recipient inbox, accept and reject; invite links."""

from sqlalchemy import select

from meethalf.models.event_invitation import EventInvitation
from meethalf.models.member import Member
from meethalf.models.notification import Notification
from tests.services.fakes import user_headers


async def _invite(client, event_id, owner, handles):
    return await client.post(
        f"/api/v1/events/{event_id}/invitations",
        json={"invitedUserIds": handles}, headers=user_headers(owner),
    )


# ─── Inviting ────────────────────────────────────────────────────


async def test_owner_invites_and_recipient_is_notified(
    client, make_user, make_event, realtime, test_db,
):
    alice = await make_user("alice", name="Alice")
    await make_user("bob")
    event = await make_event(name="Hotpot")

    response = await _invite(client, event.id, alice, ["bob", "ghost", "bob"])
    assert response.status_code == 201
    data = response.json()
    assert [i["toUserId"] for i in data["invitations"]] == ["bob"]
    assert data["invitations"][0]["status"] == "pending"
    assert data["errors"] == [{"userId": "ghost", "error": "User not found"}]

    notification = (await test_db.execute(
        select(Notification).where(Notification.user_id == "bob")
    )).scalar_one()
    assert notification.type == "EVENT_INVITE"
    assert notification.body == 'Alice invited you to "Hotpot"'
    assert realtime.triggered[0][0] == "notification-bob"
    assert realtime.pushes[0]["interests"] == ["user-bob"]
    assert realtime.pushes[0]["data"]["url"] == f"/events/{event.id}"


async def test_repeat_invitation_reported(client, make_user, make_event):
    alice = await make_user("alice")
    await make_user("bob")
    event = await make_event()
    await _invite(client, event.id, alice, ["bob"])
    again = await _invite(client, event.id, alice, ["bob"])
    assert again.json() == {
        "invitations": [], "errors": [{"userId": "bob", "error": "Already invited"}],
    }


async def test_only_owner_invites(client, make_user, make_event):
    bob = await make_user("bob")
    event = await make_event(owner="alice")
    assert (await _invite(client, event.id, bob, ["carol"])).status_code == 403
    anonymous = await client.post(
        f"/api/v1/events/{event.id}/invitations", json={"invitedUserIds": ["x"]},
    )
    assert anonymous.status_code == 401


async def test_empty_invite_list_rejected(client, make_user, make_event):
    alice = await make_user("alice")
    event = await make_event()
    assert (await _invite(client, event.id, alice, [])).status_code == 400


async def test_event_creation_invites_friends(client, make_user, test_db):
    alice = await make_user("alice")
    await make_user("bob")
    response = await client.post("/api/v1/events", json={
        "name": "Trip", "invitedFriendIds": ["bob", "nobody"],
    }, headers=user_headers(alice))
    assert response.status_code == 201
    invitations = (await test_db.execute(select(EventInvitation))).scalars().all()
    assert [i.to_user_id for i in invitations] == ["bob"]


# ─── Inbox ───────────────────────────────────────────────────────


async def test_inbox_accept_creates_transit_member(
    client, make_user, make_event, test_db,
):
    alice = await make_user("alice")
    bob = await make_user(
        "bob", name="Bob", default_lat=25.0, default_lng=121.5, default_address="Home",
    )
    event = await make_event(name="Hotpot")
    await _invite(client, event.id, alice, ["bob"])

    inbox = (await client.get("/api/v1/invitations", headers=user_headers(bob))).json()
    invitation = inbox["invitations"][0]
    assert invitation["event"]["name"] == "Hotpot"

    response = await client.post(
        f"/api/v1/invitations/{invitation['id']}/accept", headers=user_headers(bob),
    )
    assert response.json() == {"success": True, "eventId": event.id}

    member = (await test_db.execute(
        select(Member).where(Member.user_id == "bob")
    )).scalar_one()
    assert member.travel_mode == "transit"
    assert member.share_location is True
    assert (member.lat, member.lng, member.address) == (25.0, 121.5, "Home")

    owner_note = (await test_db.execute(
        select(Notification).where(Notification.user_id == "alice")
    )).scalar_one()
    assert owner_note.type == "EVENT_UPDATE"
    assert owner_note.body == 'Bob joined "Hotpot"'

    empty = (await client.get("/api/v1/invitations", headers=user_headers(bob))).json()
    assert empty == {"invitations": []}


async def test_accept_twice_rejected(client, make_user, make_event, test_db):
    alice = await make_user("alice")
    bob = await make_user("bob")
    event = await make_event()
    invitation_id = (await _invite(client, event.id, alice, ["bob"])).json()["invitations"][0]["id"]
    url = f"/api/v1/invitations/{invitation_id}/accept"
    await client.post(url, headers=user_headers(bob))
    again = await client.post(url, headers=user_headers(bob))
    assert again.status_code == 400
    assert again.json()["error"]["code"] == "INVALID_REQUEST"


async def test_only_recipient_answers(client, make_user, make_event):
    alice = await make_user("alice")
    await make_user("bob")
    carol = await make_user("carol")
    event = await make_event()
    invitation_id = (await _invite(client, event.id, alice, ["bob"])).json()["invitations"][0]["id"]
    response = await client.post(
        f"/api/v1/invitations/{invitation_id}/reject", headers=user_headers(carol),
    )
    assert response.status_code == 403


async def test_event_scoped_reject_checks_event(client, make_user, make_event, test_db):
    alice = await make_user("alice")
    bob = await make_user("bob")
    event = await make_event()
    other = await make_event(name="Other")
    invitation_id = (await _invite(client, event.id, alice, ["bob"])).json()["invitations"][0]["id"]

    wrong = await client.post(
        f"/api/v1/events/{other.id}/invitations/{invitation_id}/reject",
        headers=user_headers(bob),
    )
    assert wrong.status_code == 400

    ok = await client.post(
        f"/api/v1/events/{event.id}/invitations/{invitation_id}/reject",
        headers=user_headers(bob),
    )
    assert ok.json() == {"success": True}
    invitation = await test_db.get(EventInvitation, invitation_id)
    await test_db.refresh(invitation)
    assert invitation.status == "rejected"


async def test_inbox_requires_handle(client, make_user):
    newbie = await make_user(None)
    response = await client.get("/api/v1/invitations", headers=user_headers(newbie))
    assert response.status_code == 401
    assert response.json()["error"]["code"] == "SETUP_REQUIRED"


# ─── Invite links ────────────────────────────────────────────────


async def test_invite_link_resolves_to_event(client, make_user, make_event):
    alice = await make_user("alice")
    event = await make_event()
    token = (await client.get(
        f"/api/v1/events/{event.id}/share-token", headers=user_headers(alice),
    )).json()["token"]
    response = await client.get(f"/api/v1/invite/{token}")
    assert response.json() == {"eventId": event.id}


async def test_unknown_invite_link_404(client):
    response = await client.get("/api/v1/invite/does-not-exist")
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "TOKEN_NOT_FOUND"
