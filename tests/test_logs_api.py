from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import OperationalError
from starlette.websockets import WebSocketDisconnect

from mindlog.core.config import settings
from mindlog.crud.log import crud_log
from mindlog.core.security import create_session_token
from mindlog.models import Log


# ====================================================
# POST /logs
# ====================================================

def test_create_log_returns_201_and_pushes_to_socket(client, user, auth_headers):
    with client.websocket_connect(f"/ws?uid={user.id}") as ws:
        response = client.post("/logs", json={"mood": 7, "sleepHours": 8}, headers=auth_headers)

        assert response.status_code == 201
        body = response.json()
        assert body["userId"] == str(user.id)
        assert body["mood"] == 7
        assert body["sleepHours"] == 8
        assert body["anxiety"] is None
        assert body["user"]["email"] == user.email

        event = ws.receive_json()
        assert event["event"] == "log:new"
        assert event["data"]["id"] == body["id"]
        assert event["data"] == body


def test_every_open_session_of_the_user_is_notified(client, user, auth_headers):
    with client.websocket_connect(f"/ws?uid={user.id}") as first, \
            client.websocket_connect(f"/ws?uid={user.id}") as second:
        log_id = client.post("/logs", json={"stress": 3}, headers=auth_headers).json()["id"]

        assert first.receive_json()["data"]["id"] == log_id
        assert second.receive_json()["data"]["id"] == log_id


def test_join_message_subscribes_socket(client, user, auth_headers):
    with client.websocket_connect("/ws") as ws:
        ws.send_json({"event": "join", "data": str(user.id)})
        assert ws.receive_json() == {"event": "join", "data": {"ok": True}}

        created = client.post("/logs", json={"mood": 2}, headers=auth_headers).json()

        assert ws.receive_json() == {"event": "log:new", "data": created}


def test_binary_frame_gets_error_and_socket_stays_open(client, user, auth_headers):
    with client.websocket_connect("/ws") as ws:
        ws.send_bytes(b"\x00\x01")
        assert ws.receive_json() == {"event": "error", "data": {"detail": "Invalid JSON"}}

        ws.send_json({"event": "join", "data": str(user.id)})
        assert ws.receive_json() == {"event": "join", "data": {"ok": True}}

        created = client.post("/logs", json={"mood": 8}, headers=auth_headers).json()

        assert ws.receive_json() == {"event": "log:new", "data": created}


def test_other_users_socket_is_not_notified(client, user, other_user, auth_headers):
    with client.websocket_connect(f"/ws?uid={other_user.id}") as ws:
        client.post("/logs", json={"mood": 2}, headers=auth_headers)

        # The join ack must be the first frame: no log:new was pushed here
        ws.send_json({"event": "join", "data": str(other_user.id)})
        assert ws.receive_json() == {"event": "join", "data": {"ok": True}}


def test_session_token_on_socket_joins_own_room(client, user, token, auth_headers):
    with client.websocket_connect(f"/ws?token={token}") as ws:
        log_id = client.post("/logs", json={"mood": 6}, headers=auth_headers).json()["id"]

        assert ws.receive_json()["data"]["id"] == log_id


def test_store_failure_returns_500_without_push(client, user, auth_headers, monkeypatch):
    def broken_create(*args, **kwargs):
        raise OperationalError("INSERT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(crud_log, "create", broken_create)

    with client.websocket_connect(f"/ws?uid={user.id}") as ws:
        response = client.post("/logs", json={"mood": 5}, headers=auth_headers)

        assert response.status_code == 500
        assert response.json() == {"detail": "Internal server error"}

        ws.send_json({"event": "join", "data": str(user.id)})
        assert ws.receive_json()["event"] == "join"


def test_validation_errors_list_every_bad_field(client, db, user, auth_headers):
    response = client.post(
        "/logs",
        json={"mood": 11, "stress": -1, "sleepHours": 25, "notes": "fine"},
        headers=auth_headers,
    )

    assert response.status_code == 422
    assert set(response.json()["fields"]) == {"mood", "stress", "sleepHours"}
    assert db.query(Log).count() == 0


@pytest.mark.parametrize(
    "payload",
    [
        {"mood": 0},
        {"anxiety": 11},
        {"sleepQuality": -1},
        {"activityMins": 1441},
        {"socialCount": 101},
        {"mood": 5.5},
        {"mood": True},
        {"stress": False},
        {"sleepHours": True},
        {"activityMins": "30"},
    ],
)
def test_out_of_range_values_are_rejected(client, db, auth_headers, payload):
    response = client.post("/logs", json=payload, headers=auth_headers)

    assert response.status_code == 422
    assert response.json()["fields"] == list(payload)
    assert db.query(Log).count() == 0


def test_long_activity_type_is_stored_whole(client, db, auth_headers):
    activity = "Hiking " * 700

    response = client.post("/logs", json={"activityType": activity}, headers=auth_headers)

    assert response.status_code == 201
    assert response.json()["activityType"] == activity
    assert db.query(Log).one().activity_type == activity


def test_boundary_values_are_accepted(client, auth_headers):
    payload = {
        "mood": 10,
        "anxiety": 0,
        "sleepHours": 24,
        "sleepQuality": 10,
        "activityMins": 1440,
        "socialCount": 100,
        "stress": 0,
        "activityType": "Walking",
        "symptoms": "Headache, Fatigue",
        "notes": "Long day",
    }

    response = client.post("/logs", json=payload, headers=auth_headers)

    assert response.status_code == 201
    body = response.json()
    for key, value in payload.items():
        assert body[key] == value


def test_empty_log_is_accepted(client, auth_headers):
    response = client.post("/logs", json={}, headers=auth_headers)

    assert response.status_code == 201
    assert response.json()["mood"] is None
    assert response.json()["date"].endswith("Z")


def test_same_day_conflict_when_enforced(client, auth_headers, monkeypatch):
    monkeypatch.setattr(settings, "ENFORCE_ONE_LOG_PER_DAY", True)

    assert client.post("/logs", json={"mood": 5}, headers=auth_headers).status_code == 201
    assert client.post("/logs", json={"mood": 6}, headers=auth_headers).status_code == 409


# ====================================================
# GET /logs
# ====================================================

def test_list_returns_only_callers_logs_newest_first(client, user, other_user, auth_headers):
    other_headers = {"Authorization": f"Bearer {create_session_token(other_user.id, other_user.email)}"}
    client.post("/logs", json={"mood": 1, "date": "2024-01-01T10:00:00Z"}, headers=auth_headers)
    client.post("/logs", json={"mood": 3, "date": "2024-01-03T10:00:00Z"}, headers=auth_headers)
    client.post("/logs", json={"mood": 2, "date": "2024-01-02T10:00:00Z"}, headers=auth_headers)
    client.post("/logs", json={"mood": 9}, headers=other_headers)

    logs = client.get("/logs", headers=auth_headers).json()

    assert [log["mood"] for log in logs] == [3, 2, 1]
    assert {log["userId"] for log in logs} == {str(user.id)}
    assert logs[0]["date"] == "2024-01-03T10:00:00Z"


# ====================================================
# GET /logs/today
# ====================================================

def test_today_flips_after_creating_a_log(client, auth_headers):
    assert client.get("/logs/today", headers=auth_headers).json() == {"hasLog": False, "log": None}

    created = client.post("/logs", json={"mood": 8}, headers=auth_headers).json()

    body = client.get("/logs/today", headers=auth_headers).json()
    assert body["hasLog"] is True
    assert body["log"]["id"] == created["id"]


def test_today_accepts_explicit_date(client, auth_headers):
    client.post("/logs", json={"mood": 4, "date": "2024-02-10T18:00:00Z"}, headers=auth_headers)

    on_day = client.get("/logs/today", params={"date": "2024-02-10T08:00:00.000Z"}, headers=auth_headers)
    next_day = client.get("/logs/today", params={"date": "2024-02-11"}, headers=auth_headers)

    assert on_day.json()["hasLog"] is True
    assert next_day.json()["hasLog"] is False


def test_today_rejects_malformed_date(client, auth_headers):
    response = client.get("/logs/today", params={"date": "yesterday-ish"}, headers=auth_headers)

    assert response.status_code == 422
    assert response.json()["fields"] == ["date"]


# ====================================================
# GET /logs/stats
# ====================================================

def test_stats_summarises_recent_logs(client, auth_headers):
    now = datetime.now(timezone.utc)
    for mood, sleep, age in ((4, 6.0, 0), (8, None, 1), (1, 2.0, 60)):
        payload = {"mood": mood, "date": (now - timedelta(days=age)).isoformat()}
        if sleep is not None:
            payload["sleepHours"] = sleep
        client.post("/logs", json=payload, headers=auth_headers)

    body = client.get("/logs/stats", params={"range": "7days"}, headers=auth_headers).json()

    assert body["range"] == "7days"
    assert body["totalLogs"] == 2
    assert body["averages"]["mood"] == 6.0
    assert body["averages"]["sleepHours"] == 6.0
    assert body["averages"]["anxiety"] is None


def test_stats_custom_range_requires_bounds(client, auth_headers):
    response = client.get("/logs/stats", params={"range": "custom", "start": "2024-01-01"}, headers=auth_headers)

    assert response.status_code == 422
    assert response.json()["fields"] == ["end"]


# ====================================================
# SOCKET HARDENING
# ====================================================

def test_bound_sockets_require_a_session_token(client, monkeypatch):
    monkeypatch.setattr(settings, "WS_BIND_TO_SESSION", True)

    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect("/ws?uid=anyone"):
            pass


def test_bound_sockets_cannot_join_foreign_rooms(client, other_user, token, monkeypatch):
    monkeypatch.setattr(settings, "WS_BIND_TO_SESSION", True)

    with client.websocket_connect(f"/ws?token={token}") as ws:
        ws.send_json({"event": "join", "data": str(other_user.id)})

        assert ws.receive_json() == {"event": "join", "data": {"ok": False}}


def test_socket_with_bad_token_is_refused(client):
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect("/ws?token=garbage"):
            pass
