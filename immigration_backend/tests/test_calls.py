"""
Call invitation API tests
"""

import pytest

INVITATION_ID = "call-fb-agent-fb-client"


def _invite(client, headers, **overrides):
    body = {"toFirebaseId": "fb-client", "toUserName": "Chris Client", "callMode": "video"}
    body.update(overrides)
    return client.post("/api/calls/invite", json=body, headers=headers)


@pytest.fixture
def invitation(client, seed, auth_headers):
    """Agent rings the client."""
    res = _invite(client, auth_headers(seed.agent))
    assert res.status_code == 200
    return res.json()["data"]["invitationId"]


def _stored(realtime, invitation_id=INVITATION_ID):
    return realtime.get(["callInvitations", invitation_id])


def test_invite_creates_ringing_invitation(client, seed, auth_headers, realtime):
    res = _invite(client, auth_headers(seed.agent))

    assert res.status_code == 200
    assert res.json() == {
        "success": True,
        "data": {"invitationId": INVITATION_ID, "roomId": "fb-agent-fb-client", "status": "ringing"},
    }

    stored = _stored(realtime)
    assert stored["status"] == "ringing"
    assert stored["fromUserId"] == "fb-agent"
    assert stored["fromUserName"] == "Alex Agent"
    assert stored["toUserId"] == "fb-client"
    assert stored["callMode"] == "video"
    assert isinstance(stored["createdAt"], int)


def test_invite_notifies_recipient(client, seed, auth_headers, realtime, expo):
    _invite(client, auth_headers(seed.agent), callMode="audio")

    [push] = expo.messages
    assert push["title"] == "Incoming Audio Call"
    assert push["body"] == "Alex Agent is calling you"
    assert push["channelId"] == "calls"
    assert push["priority"] == "high"
    assert push["data"]["type"] == "INCOMING_CALL"
    assert push["data"]["invitationId"] == INVITATION_ID
    assert push["data"]["fromUserId"] == "fb-agent"

    [record] = realtime.children("notifications", seed.client)
    assert record["type"] == "INCOMING_CALL"
    assert record["actionUrl"] == "/dashboard/messages"
    assert record["roomId"] == "fb-agent-fb-client"


def test_invite_succeeds_when_push_fails(client, seed, auth_headers, realtime, expo):
    expo.fail = True

    res = _invite(client, auth_headers(seed.agent))

    assert res.status_code == 200
    assert _stored(realtime)["status"] == "ringing"


def test_invite_requires_caller_realtime_identity(client, seed, auth_headers):
    res = _invite(client, auth_headers(seed.no_rt_client))

    assert res.status_code == 404
    assert res.json()["error"] == "Caller not found or not configured"


def test_invite_unknown_recipient(client, seed, auth_headers):
    res = _invite(client, auth_headers(seed.agent), toFirebaseId="fb-nobody")
    assert res.status_code == 404


@pytest.mark.parametrize("overrides", [
    {"callMode": "hologram"},
    {"toFirebaseId": ""},
    {"toUserName": ""},
])
def test_invite_validates_body(client, seed, auth_headers, overrides):
    res = _invite(client, auth_headers(seed.agent), **overrides)

    assert res.status_code == 400
    assert res.json()["success"] is False


def test_recipient_accepts(client, seed, auth_headers, realtime, invitation):
    res = client.post(f"/api/calls/{invitation}", headers=auth_headers(seed.client))

    assert res.status_code == 200
    assert res.json()["data"] == {"invitationId": invitation, "status": "accepted"}
    assert _stored(realtime)["status"] == "accepted"
    assert "answeredAt" in _stored(realtime)


def test_accept_then_reject_is_refused_by_realtime_layer(client, seed, auth_headers, realtime, invitation):
    headers = auth_headers(seed.client)
    assert client.post(f"/api/calls/{invitation}", headers=headers).status_code == 200

    res = client.delete(f"/api/calls/{invitation}", headers=headers)

    assert res.status_code == 409
    assert res.json()["success"] is False
    assert _stored(realtime)["status"] == "accepted"


def test_caller_cannot_accept_own_call(client, seed, auth_headers, realtime, invitation):
    res = client.post(f"/api/calls/{invitation}", headers=auth_headers(seed.agent))

    assert res.status_code == 403
    assert _stored(realtime)["status"] == "ringing"


def test_outsider_cannot_end_call(client, seed, auth_headers, invitation):
    res = client.put(f"/api/calls/{invitation}", headers=auth_headers(seed.other_agent))
    assert res.status_code == 403


def test_caller_cancels_then_end_conflicts(client, seed, auth_headers, realtime, invitation):
    headers = auth_headers(seed.agent)

    res = client.patch(f"/api/calls/{invitation}", headers=headers)
    assert res.status_code == 200
    assert res.json()["data"]["status"] == "cancelled"
    assert "endedAt" in _stored(realtime)

    assert client.put(f"/api/calls/{invitation}", headers=headers).status_code == 409


def test_recipient_cannot_cancel(client, seed, auth_headers, invitation):
    res = client.patch(f"/api/calls/{invitation}", headers=auth_headers(seed.client))
    assert res.status_code == 403


def test_either_participant_ends_accepted_call(client, seed, auth_headers, realtime, invitation):
    client.post(f"/api/calls/{invitation}", headers=auth_headers(seed.client))

    res = client.put(f"/api/calls/{invitation}", headers=auth_headers(seed.agent))

    assert res.status_code == 200
    assert _stored(realtime)["status"] == "ended"


def test_reject_records_answer_time(client, seed, auth_headers, realtime, invitation):
    res = client.delete(f"/api/calls/{invitation}", headers=auth_headers(seed.client))

    assert res.status_code == 200
    assert res.json()["data"]["status"] == "rejected"
    assert "answeredAt" in _stored(realtime)


def test_missing_invitation_returns_404(client, seed, auth_headers):
    res = client.post("/api/calls/call-nope", headers=auth_headers(seed.client))
    assert res.status_code == 404


def test_action_requires_realtime_identity(client, seed, auth_headers, invitation):
    res = client.post(f"/api/calls/{invitation}", headers=auth_headers(seed.no_rt_client))

    assert res.status_code == 404
    assert res.json()["error"] == "User not found or not configured"


def test_realtime_outage_returns_502(client, seed, auth_headers, realtime, invitation):
    realtime.unreachable = True

    res = client.post(f"/api/calls/{invitation}", headers=auth_headers(seed.client))

    assert res.status_code == 502
    assert res.json()["success"] is False


def test_call_actions_require_authentication(client, seed):
    assert client.post("/api/calls/invite", json={}).status_code == 401
    assert client.put(f"/api/calls/{INVITATION_ID}").status_code == 401
