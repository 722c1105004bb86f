import uuid

import pytest

from agency_crm import events
from agency_crm.config import settings
from agency_crm.models.enums import NotificationType, Role
from agency_crm.notifications import service

from conftest import _auth, login_as, make_user
from test_events import RecordingRedis

def assign_task(client, jwt: str, assignee_id, title: str = "brief") -> dict:
    r = client.post("/api/tasks", headers=_auth(jwt), json={"title": title, "assigned_to_id": str(assignee_id)})
    assert r.status_code == 201, r.text
    return r.json()

@pytest.fixture()
def pair(client, db_session):
    boss_jwt, _ = login_as(client, db_session, Role.manager, "boss")
    member_jwt, member = login_as(client, db_session, Role.team_member, "member")
    return boss_jwt, member_jwt, member

def test_assignment_is_stored_and_counted(client, pair):
    boss_jwt, member_jwt, member = pair
    task = assign_task(client, boss_jwt, member.id)

    r = client.get("/api/notifications", headers=_auth(member_jwt))
    assert r.status_code == 200
    [n] = r.json()
    assert n["type"] == "task_assigned"
    assert n["read"] is False
    assert n["link"] == f"/tasks/{task['id']}"
    assert client.get("/api/notifications/unread-count", headers=_auth(member_jwt)).json() == {"count": 1}

    # the actor never notifies themself
    assert client.get("/api/notifications", headers=_auth(boss_jwt)).json() == []

def test_mark_read_only_touches_own_notifications(client, pair):
    boss_jwt, member_jwt, member = pair
    assign_task(client, boss_jwt, member.id)
    [n] = client.get("/api/notifications", headers=_auth(member_jwt)).json()

    assert client.put(f"/api/notifications/{n['id']}/read", headers=_auth(boss_jwt)).status_code == 404
    assert client.get("/api/notifications/unread-count", headers=_auth(member_jwt)).json()["count"] == 1

    assert client.put(f"/api/notifications/{n['id']}/read", headers=_auth(member_jwt)).status_code == 200
    [n] = client.get("/api/notifications", headers=_auth(member_jwt)).json()
    assert n["read"] is True
    assert n["read_at"] is not None
    assert client.put(f"/api/notifications/{uuid.uuid4()}/read", headers=_auth(member_jwt)).status_code == 404

def test_read_all_and_unread_filter(client, pair):
    boss_jwt, member_jwt, member = pair
    for title in ("a", "b", "c"):
        assign_task(client, boss_jwt, member.id, title)

    assert len(client.get("/api/notifications", headers=_auth(member_jwt), params={"unread_only": True}).json()) == 3
    assert client.put("/api/notifications/read-all", headers=_auth(member_jwt)).json() == {"updated": 3}
    assert client.get("/api/notifications", headers=_auth(member_jwt), params={"unread_only": True}).json() == []
    assert len(client.get("/api/notifications", headers=_auth(member_jwt)).json()) == 3

def test_preferences_default_on_and_mute(client, pair):
    boss_jwt, member_jwt, member = pair

    r = client.get("/api/notifications/preferences", headers=_auth(member_jwt))
    assert r.status_code == 200
    assert all(r.json().values())

    r = client.put("/api/notifications/preferences", headers=_auth(member_jwt), json={"task_assigned": False})
    assert r.json()["task_assigned"] is False
    assert r.json()["task_updated"] is True

    task = assign_task(client, boss_jwt, member.id)
    assert client.get("/api/notifications", headers=_auth(member_jwt)).json() == []

    client.put(f"/api/tasks/{task['id']}/status", headers=_auth(boss_jwt), json={"status": "in_progress"})
    assert [n["type"] for n in client.get("/api/notifications", headers=_auth(member_jwt)).json()] == ["task_updated"]

def test_in_app_switch_mutes_everything(db_session):
    user = make_user(db_session)
    service.update_preferences(db_session, user.id, {"in_app": False, "bogus": True})

    assert service.notify(db_session, user.id, NotificationType.expense_reviewed, "t", "m") is None
    db_session.commit()
    assert service.unread_count(db_session, user.id) == 0

def test_campaign_status_notifies_assignee(client, db_session, pair):
    boss_jwt, member_jwt, member = pair
    c = client.post("/api/clients", headers=_auth(boss_jwt), json={"name": "acme"}).json()
    camp = client.post(
        "/api/campaigns",
        headers=_auth(boss_jwt),
        json={"client_id": c["id"], "name": "launch", "assigned_to_id": str(member.id)},
    ).json()

    client.put(f"/api/campaigns/{camp['id']}/status", headers=_auth(boss_jwt), json={"status": "active"})
    [n] = client.get("/api/notifications", headers=_auth(member_jwt)).json()
    assert n["type"] == "campaign_update"
    assert "active" in n["message"]

def test_stored_notification_is_published_after_commit(client, db_session, monkeypatch, pair):
    bus = RecordingRedis()
    monkeypatch.setattr(events, "redis_client", bus)
    monkeypatch.setattr(settings, "events_enabled", True)
    boss_jwt, _, member = pair

    assign_task(client, boss_jwt, member.id)
    pushed = [(ch, msg) for ch, msg in bus.published if msg["event"] == "notification"]
    assert [ch for ch, _ in pushed] == [f"{settings.events_user_channel_prefix}{member.id}"]
    assert service.unread_count(db_session, member.id) == 1

def test_muted_notification_is_not_published(client, db_session, monkeypatch, pair):
    bus = RecordingRedis()
    monkeypatch.setattr(events, "redis_client", bus)
    monkeypatch.setattr(settings, "events_enabled", True)
    boss_jwt, member_jwt, member = pair
    client.put("/api/notifications/preferences", headers=_auth(member_jwt), json={"in_app": False})

    assign_task(client, boss_jwt, member.id)
    assert "notification" not in [msg["event"] for _, msg in bus.published]
