import json
import uuid

import pytest
import redis

from agency_crm import events
from agency_crm.config import settings
from agency_crm.models.enums import Role

from conftest import _auth, login_as

class RecordingRedis:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.published: list[tuple[str, dict]] = []

    def publish(self, channel: str, message: str) -> int:
        if self.fail:
            raise redis.ConnectionError("redis is down")
        self.published.append((channel, json.loads(message)))
        return 1

@pytest.fixture()
def bus(monkeypatch) -> RecordingRedis:
    fake = RecordingRedis()
    monkeypatch.setattr(events, "redis_client", fake)
    monkeypatch.setattr(settings, "events_enabled", True)
    return fake

def _names(bus: RecordingRedis) -> list[str]:
    return [msg["event"] for _, msg in bus.published]

def test_disabled_events_are_not_sent(monkeypatch):
    fake = RecordingRedis()
    monkeypatch.setattr(events, "redis_client", fake)
    monkeypatch.setattr(settings, "events_enabled", False)

    assert events.publish(events.TASK_UPDATED, {"task_id": uuid.uuid4()}) is False
    assert fake.published == []

def test_publish_encodes_payload(bus):
    task_id = uuid.uuid4()
    assert events.publish(events.TASK_UPDATED, {"task_id": task_id}) is True

    [(channel, msg)] = bus.published
    assert channel == settings.events_channel
    assert msg == {"event": "task:updated", "data": {"task_id": str(task_id)}}

def test_notifications_go_to_the_user_channel(bus):
    user_id = uuid.uuid4()
    events.notify_user(user_id, type="task_assigned", title="t", message="m")

    [(channel, msg)] = bus.published
    assert channel == f"{settings.events_user_channel_prefix}{user_id}"
    assert msg["event"] == "notification"
    assert msg["data"]["type"] == "task_assigned"

def test_publish_failure_is_swallowed(monkeypatch, caplog):
    monkeypatch.setattr(events, "redis_client", RecordingRedis(fail=True))
    monkeypatch.setattr(settings, "events_enabled", True)

    assert events.publish(events.CLIENT_UPDATED, {"client_id": uuid.uuid4()}) is False
    assert "dropped event client:updated" in caplog.text

def test_task_lifecycle_emits_events(client, db_session, bus):
    jwt, _ = login_as(client, db_session, Role.team_member)
    _, other = login_as(client, db_session, Role.team_member, "other")

    r = client.post("/api/tasks", headers=_auth(jwt), json={"title": "a", "assigned_to_id": str(other.id)})
    a = r.json()["id"]
    b = client.post("/api/tasks", headers=_auth(jwt), json={"title": "b"}).json()["id"]
    assert "notification" in _names(bus)

    bus.published.clear()
    client.post(f"/api/tasks/{a}/dependencies", headers=_auth(jwt), json={"depends_on_id": b})
    assert _names(bus) == ["task:dependency_added"]

    bus.published.clear()
    client.put(f"/api/tasks/{a}/status", headers=_auth(jwt), json={"status": "in_progress"})
    names = _names(bus)
    assert "task:status_changed" in names
    assert "activity:added" in names
    assert any(ch.endswith(str(other.id)) for ch, _ in bus.published)

def test_rejected_cycle_publishes_nothing(client, db_session, bus):
    jwt, _ = login_as(client, db_session, Role.team_member)
    a = client.post("/api/tasks", headers=_auth(jwt), json={"title": "a"}).json()["id"]
    b = client.post("/api/tasks", headers=_auth(jwt), json={"title": "b"}).json()["id"]
    client.post(f"/api/tasks/{a}/dependencies", headers=_auth(jwt), json={"depends_on_id": b})

    bus.published.clear()
    r = client.post(f"/api/tasks/{b}/dependencies", headers=_auth(jwt), json={"depends_on_id": a})
    assert r.status_code == 400
    assert bus.published == []

def test_requests_succeed_while_redis_is_down(client, db_session, monkeypatch):
    monkeypatch.setattr(events, "redis_client", RecordingRedis(fail=True))
    monkeypatch.setattr(settings, "events_enabled", True)

    jwt, _ = login_as(client, db_session, Role.team_member)
    r = client.post("/api/tasks", headers=_auth(jwt), json={"title": "still works"})
    assert r.status_code == 201
