"""Integration tests exercising API endpoints via FastAPI's TestClient."""

from __future__ import annotations

from typing import Any

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

PASSWORD = "Str0ng!pass"


def signup_user(client: TestClient, name: str, email: str, phone: str) -> dict[str, Any]:
    response = client.post(
        "/api/auth/signup",
        json={"name": name, "email": email, "phone": phone, "password": PASSWORD},
    )
    assert response.status_code == 201, response.text
    return response.json()["data"]


def auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def make_account(client: TestClient, name: str, index: int) -> tuple[int, str]:
    session = signup_user(client, name, f"{name.lower()}@example.com", f"+2348100000{index:03d}")
    return session["user"]["id"], session["tokens"]["access_token"]


def test_signup_login_and_refresh_flow(client: TestClient) -> None:
    session = signup_user(client, "Alice", "alice@example.com", "+2348012345678")
    assert session["user"]["email"] == "alice@example.com"
    assert "hashed_password" not in session["user"]

    duplicate = client.post(
        "/api/auth/signup",
        json={"name": "Alice 2", "email": "alice@example.com", "phone": "+2348099999999", "password": PASSWORD},
    )
    assert duplicate.status_code == 409
    assert duplicate.json() == {"success": False, "error": "Email already registered", "code": "conflict"}

    bad_login = client.post("/api/auth/login", json={"email": "alice@example.com", "password": "nope"})
    assert bad_login.status_code == 401

    login = client.post("/api/auth/login", json={"email": "alice@example.com", "password": PASSWORD})
    assert login.status_code == 200
    tokens = login.json()["data"]["tokens"]
    assert tokens["token_type"] == "bearer"

    refreshed = client.post("/api/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert refreshed.status_code == 200
    reused = client.post("/api/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert reused.status_code == 401


def test_weak_password_is_rejected(client: TestClient) -> None:
    response = client.post(
        "/api/auth/signup",
        json={"name": "Bob", "email": "bob@example.com", "phone": "+2348012345670", "password": "password"},
    )
    assert response.status_code == 422


def test_profile_requires_token_and_updates(client: TestClient) -> None:
    assert client.get("/api/profile").status_code == 401

    _, token = make_account(client, "Carol", 1)
    response = client.put(
        "/api/profile", json={"name": "Carol D", "avatar": "https://cdn.example.com/c.png"}, headers=auth_headers(token)
    )
    assert response.status_code == 200, response.text
    assert response.json()["data"]["name"] == "Carol D"

    stats = client.get("/api/profile/stats", headers=auth_headers(token))
    assert stats.json()["data"] == {"totalMessages": 0, "totalCalls": 0, "lastActivity": None}


def test_message_endpoints(client: TestClient) -> None:
    ada_id, ada_token = make_account(client, "Ada", 2)
    grace_id, grace_token = make_account(client, "Grace", 3)

    sent = client.post(
        "/api/messages/send",
        json={"recipient_id": grace_id, "content": "Hello Grace"},
        headers=auth_headers(ada_token),
    )
    assert sent.status_code == 201, sent.text
    message_id = sent.json()["data"]["id"]

    unread = client.get("/api/messages/unread/count", headers=auth_headers(grace_token))
    assert unread.json()["data"] == {"unreadCount": 1}

    forbidden = client.put(f"/api/messages/{message_id}/read", headers=auth_headers(ada_token))
    assert forbidden.status_code == 403

    read = client.put(f"/api/messages/{message_id}/read", headers=auth_headers(grace_token))
    assert read.status_code == 200
    assert read.json()["data"]["is_read"] is True

    history = client.get(f"/api/messages/history/{ada_id}", headers=auth_headers(grace_token))
    body = history.json()
    assert body["pagination"] == {"page": 1, "limit": 20, "total": 1, "pages": 1}
    assert body["data"][0]["content"] == "Hello Grace"

    conversations = client.get("/api/messages/conversations", headers=auth_headers(ada_token))
    assert conversations.json()["data"][0]["other_user"]["id"] == grace_id

    deleted = client.delete(f"/api/messages/{message_id}", headers=auth_headers(ada_token))
    assert deleted.status_code == 200
    missing = client.get(f"/api/messages/{message_id}", headers=auth_headers(grace_token))
    assert missing.status_code == 404

    to_nobody = client.post(
        "/api/messages/send", json={"recipient_id": 9999, "content": "hi"}, headers=auth_headers(ada_token)
    )
    assert to_nobody.status_code == 404


def test_call_endpoints(client: TestClient) -> None:
    caller_id, caller_token = make_account(client, "Caller", 4)
    callee_id, callee_token = make_account(client, "Callee", 5)
    third_id, third_token = make_account(client, "Third", 6)

    created = client.post(
        "/api/calls", json={"callee_id": callee_id, "call_type": "video"}, headers=auth_headers(caller_token)
    )
    assert created.status_code == 201, created.text
    call = created.json()["data"]
    assert call["status"] == "initiated"

    busy = client.post("/api/calls", json={"callee_id": callee_id}, headers=auth_headers(third_token))
    assert busy.status_code == 409

    self_call = client.post("/api/calls", json={"callee_id": third_id}, headers=auth_headers(third_token))
    assert self_call.status_code == 400
    assert self_call.json()["error"] == "Cannot call yourself"

    active = client.get("/api/calls/active", headers=auth_headers(callee_token))
    assert active.json()["data"]["id"] == call["id"]

    relayed = client.post(
        f"/api/calls/{call['id']}/offer", json={"payload": {"sdp": "v=0"}}, headers=auth_headers(caller_token)
    )
    assert relayed.json()["data"] == {"delivered": False}
    intruder = client.post(
        f"/api/calls/{call['id']}/ice-candidate", json={"payload": "c"}, headers=auth_headers(third_token)
    )
    assert intruder.status_code == 403

    answered = client.put(f"/api/calls/{call['id']}/answer", headers=auth_headers(callee_token))
    assert answered.json()["data"]["status"] == "answered"
    ended = client.put(
        f"/api/calls/{call['id']}/end", json={"end_reason": "hangup"}, headers=auth_headers(caller_token)
    )
    assert ended.json()["data"]["end_reason"] == "hangup"

    again = client.put(f"/api/calls/{call['id']}/answer", headers=auth_headers(callee_token))
    assert again.status_code == 409
    assert again.json()["code"] == "invalid_state"

    history = client.get("/api/calls/history", params={"callType": "video"}, headers=auth_headers(caller_token))
    assert history.json()["pagination"]["total"] == 1
    stats = client.get("/api/calls/stats", headers=auth_headers(caller_token))
    assert stats.json()["data"]["callsByType"] == {"voice": 0, "video": 1}


def test_websocket_messaging_and_presence(client: TestClient) -> None:
    ada_id, ada_token = make_account(client, "Ada", 7)
    grace_id, grace_token = make_account(client, "Grace", 8)

    with client.websocket_connect(f"/ws?token={grace_token}") as grace_ws:
        with client.websocket_connect(f"/ws?token={ada_token}") as ada_ws:
            online = grace_ws.receive_json()
            assert online == {
                "event": "user_status",
                "data": {"userId": ada_id, "isOnline": True, "timestamp": online["data"]["timestamp"]},
            }

            ada_ws.send_json(
                {"event": "send_message", "data": {"recipientId": grace_id, "content": "hey"}, "ackId": 1}
            )
            ack = ada_ws.receive_json()
            assert ack["event"] == "ack" and ack["ackId"] == 1 and ack["success"] is True

            pushed = grace_ws.receive_json()
            assert pushed["event"] == "new_message"
            assert pushed["data"]["content"] == "hey"
            assert pushed["data"]["sender"]["id"] == ada_id

            grace_ws.send_json({"event": "mark_read", "data": {"messageId": pushed["data"]["id"]}, "ackId": "r"})
            assert grace_ws.receive_json()["success"] is True
            receipt = ada_ws.receive_json()
            assert receipt["event"] == "message_read"
            assert receipt["data"]["readBy"] == grace_id

            ada_ws.send_json({"event": "get_online_users", "data": {}, "ackId": 2})
            assert ada_ws.receive_json()["data"] == {"userIds": [grace_id]}

            ada_ws.send_json({"event": "start_call", "data": {"calleeId": ada_id}, "ackId": 3})
            failed = ada_ws.receive_json()
            assert failed["success"] is False
            assert failed["code"] == "invalid_argument"

        offline = grace_ws.receive_json()
        assert offline["data"] == {"userId": ada_id, "isOnline": False, "timestamp": offline["data"]["timestamp"]}


def test_websocket_call_signalling(client: TestClient) -> None:
    caller_id, caller_token = make_account(client, "Caller", 9)
    callee_id, callee_token = make_account(client, "Callee", 10)

    with client.websocket_connect(f"/ws?token={callee_token}") as callee_ws:
        with client.websocket_connect(f"/ws?token={caller_token}") as caller_ws:
            callee_ws.receive_json()  # caller came online

            caller_ws.send_json({"event": "start_call", "data": {"calleeId": callee_id, "callType": "voice"}, "ackId": 1})
            incoming = callee_ws.receive_json()
            assert incoming["event"] == "incoming_call"
            started = caller_ws.receive_json()
            assert started["data"]["status"] == "ringing"
            call_id = started["data"]["id"]

            caller_ws.send_json(
                {"event": "webrtc_offer", "data": {"callId": call_id, "offer": {"sdp": "v=0"}}, "ackId": 2}
            )
            offer = callee_ws.receive_json()
            assert offer["event"] == "webrtc_offer"
            assert offer["data"]["payload"] == {"sdp": "v=0"}
            assert caller_ws.receive_json()["data"] == {"delivered": True}

            callee_ws.send_json({"event": "answer_call", "data": {"callId": call_id}, "ackId": 3})
            assert caller_ws.receive_json()["event"] == "call_answered"
            assert callee_ws.receive_json()["data"]["status"] == "answered"

            callee_ws.send_json({"event": "end_call", "data": {"callId": call_id}, "ackId": 4})
            ended = caller_ws.receive_json()
            assert ended["event"] == "call_ended"
            assert ended["data"]["endReason"] == "completed"


def test_websocket_rejects_missing_and_bad_tokens(client: TestClient) -> None:
    with pytest.raises(WebSocketDisconnect) as missing:
        with client.websocket_connect("/ws"):
            pass
    assert missing.value.code == 1008

    with pytest.raises(WebSocketDisconnect) as forged:
        with client.websocket_connect("/ws?token=not-a-jwt"):
            pass
    assert forged.value.code == 1008


def test_typing_indicator_is_forwarded(client: TestClient) -> None:
    ada_id, ada_token = make_account(client, "Ada", 11)
    grace_id, grace_token = make_account(client, "Grace", 12)

    with client.websocket_connect(f"/ws?token={grace_token}") as grace_ws:
        with client.websocket_connect(f"/ws?token={ada_token}") as ada_ws:
            grace_ws.receive_json()  # ada came online

            ada_ws.send_json({"event": "typing_start", "data": {"recipientId": grace_id}})
            assert grace_ws.receive_json() == {"event": "user_typing", "data": {"userId": ada_id, "typing": True}}

            ada_ws.send_json({"event": "typing_stop", "data": {"recipientId": grace_id}})
            assert grace_ws.receive_json() == {"event": "user_typing", "data": {"userId": ada_id, "typing": False}}


def test_metrics_endpoint_counts_sent_messages(client: TestClient) -> None:
    from app.monitoring.metrics import messages_sent_total

    _, ada_token = make_account(client, "Ada", 13)
    grace_id, _ = make_account(client, "Grace", 14)
    before = messages_sent_total.value("api")

    sent = client.post(
        "/api/messages/send",
        json={"recipient_id": grace_id, "content": "ping"},
        headers=auth_headers(ada_token),
    )
    assert sent.status_code == 201, sent.text
    assert messages_sent_total.value("api") == before + 1

    response = client.get("/metrics")
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert "# TYPE messages_sent_total counter" in response.text
    assert 'messages_sent_total{channel="api"}' in response.text


def test_websocket_refuses_overlong_fields(client: TestClient) -> None:
    caller_id, caller_token = make_account(client, "Caller", 15)
    callee_id, callee_token = make_account(client, "Callee", 16)

    with client.websocket_connect(f"/ws?token={callee_token}") as callee_ws:
        with client.websocket_connect(f"/ws?token={caller_token}") as caller_ws:
            callee_ws.receive_json()  # caller came online

            caller_ws.send_json(
                {
                    "event": "send_message",
                    "data": {"recipientId": callee_id, "content": "file", "fileUrl": "u" * 501},
                    "ackId": 1,
                }
            )
            refused = caller_ws.receive_json()
            assert refused["ackId"] == 1
            assert refused["success"] is False and refused["code"] == "invalid_argument"

            caller_ws.send_json({"event": "start_call", "data": {"calleeId": callee_id}, "ackId": 2})
            assert callee_ws.receive_json()["event"] == "incoming_call"
            call_id = caller_ws.receive_json()["data"]["id"]

            caller_ws.send_json({"event": "end_call", "data": {"callId": call_id, "endReason": "r" * 51}, "ackId": 3})
            too_long = caller_ws.receive_json()
            assert too_long["success"] is False and too_long["code"] == "invalid_argument"

            caller_ws.send_json({"event": "end_call", "data": {"callId": call_id, "endReason": "hung up"}, "ackId": 4})
            assert callee_ws.receive_json()["event"] == "call_ended"
            ended = caller_ws.receive_json()
            assert ended["success"] is True
            assert ended["data"]["endReason"] == "hung up"
