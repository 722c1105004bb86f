import uuid

from agency_crm.models.enums import Role
from agency_crm.invoices.service import next_invoice_number

from conftest import _auth, login_as, make_client

def new_client(client, jwt: str, name: str = "acme", **extra) -> dict:
    r = client.post("/api/clients", headers=_auth(jwt), json={"name": name, **extra})
    assert r.status_code == 201, r.text
    return r.json()

def new_campaign(client, jwt: str, client_id: str, **extra) -> dict:
    r = client.post("/api/campaigns", headers=_auth(jwt), json={"client_id": client_id, "name": "launch", **extra})
    assert r.status_code == 201, r.text
    return r.json()

# clients

def test_manager_creates_client_owned_by_self(client, db_session):
    jwt, manager = login_as(client, db_session, Role.manager)
    body = new_client(client, jwt, email="ops@acme.com")
    assert body["owner_id"] == str(manager.id)
    assert body["email"] == "ops@acme.com"

def test_team_member_cannot_create_clients(client, db_session):
    jwt, _ = login_as(client, db_session, Role.team_member)
    r = client.post("/api/clients", headers=_auth(jwt), json={"name": "x"})
    assert r.status_code == 403

def test_client_list_is_owner_scoped(client, db_session, admin):
    member_jwt, member = login_as(client, db_session, Role.team_member)
    manager_jwt, _ = login_as(client, db_session, Role.manager)

    make_client(db_session, member, "mine")
    make_client(db_session, admin, "not mine")

    names = [c["name"] for c in client.get("/api/clients", headers=_auth(member_jwt)).json()]
    assert names == ["mine"]

    names = {c["name"] for c in client.get("/api/clients", headers=_auth(manager_jwt)).json()}
    assert names == {"mine", "not mine"}

def test_client_read_boundary(client, db_session, admin):
    member_jwt, _ = login_as(client, db_session, Role.team_member)
    other = make_client(db_session, admin, "other")

    r = client.get(f"/api/clients/{other.id}", headers=_auth(member_jwt))
    assert r.status_code == 403
    r = client.get(f"/api/clients/{uuid.uuid4()}", headers=_auth(member_jwt))
    assert r.status_code == 404

def test_assigning_a_client_to_a_missing_user(client, db_session):
    jwt, _ = login_as(client, db_session, Role.manager)
    r = client.post("/api/clients", headers=_auth(jwt), json={"name": "x", "owner_id": str(uuid.uuid4())})
    assert r.status_code == 404

def test_soft_deleted_client_is_gone(client, db_session):
    jwt, _ = login_as(client, db_session, Role.manager)
    c = new_client(client, jwt)

    r = client.delete(f"/api/clients/{c['id']}", headers=_auth(jwt))
    assert r.status_code == 200
    assert client.get(f"/api/clients/{c['id']}", headers=_auth(jwt)).status_code == 404
    assert client.get("/api/clients", headers=_auth(jwt)).json() == []

# campaigns

def test_campaign_status_workflow(client, db_session):
    jwt, _ = login_as(client, db_session, Role.manager)
    c = new_client(client, jwt)
    campaign = new_campaign(client, jwt, c["id"], budget="2500.00")
    assert campaign["status"] == "planning"

    def move(status: str):
        return client.put(f"/api/campaigns/{campaign['id']}/status", headers=_auth(jwt), json={"status": status})

    r = move("paused")
    assert r.status_code == 400
    assert r.json()["error"] == "invalid_transition"

    assert move("active").status_code == 200
    assert move("paused").status_code == 200
    r = move("completed")
    assert r.status_code == 200
    assert r.json()["status"] == "completed"
    assert move("active").status_code == 400

def test_campaign_for_missing_client(client, db_session):
    jwt, _ = login_as(client, db_session, Role.manager)
    r = client.post("/api/campaigns", headers=_auth(jwt), json={"client_id": str(uuid.uuid4()), "name": "x"})
    assert r.status_code == 404

def test_team_member_reads_only_assigned_campaigns(client, db_session):
    manager_jwt, _ = login_as(client, db_session, Role.manager)
    member_jwt, member = login_as(client, db_session, Role.team_member)
    c = new_client(client, manager_jwt)
    mine = new_campaign(client, manager_jwt, c["id"], assigned_to_id=str(member.id))
    theirs = new_campaign(client, manager_jwt, c["id"])

    listed = [x["id"] for x in client.get("/api/campaigns", headers=_auth(member_jwt)).json()]
    assert listed == [mine["id"]]

    assert client.get(f"/api/campaigns/{mine['id']}", headers=_auth(member_jwt)).status_code == 200
    assert client.get(f"/api/campaigns/{theirs['id']}", headers=_auth(member_jwt)).status_code == 403

def test_campaign_gantt_only_lists_its_tasks(client, db_session):
    jwt, _ = login_as(client, db_session, Role.manager)
    c = new_client(client, jwt)
    campaign = new_campaign(client, jwt, c["id"])

    r = client.post("/api/tasks", headers=_auth(jwt), json={"title": "in", "campaign_id": campaign["id"]})
    assert r.status_code == 201
    client.post("/api/tasks", headers=_auth(jwt), json={"title": "out"})

    r = client.get("/api/tasks/gantt", headers=_auth(jwt), params={"campaign_id": campaign["id"]})
    assert r.status_code == 200
    assert [row["title"] for row in r.json()] == ["in"]

# invoices

def test_invoice_numbers_are_sequential(client, db_session):
    manager_jwt, _ = login_as(client, db_session, Role.manager)
    finance_jwt, _ = login_as(client, db_session, Role.finance)
    c = new_client(client, manager_jwt)

    numbers = []
    for subtotal in ("100.00", "250.50"):
        r = client.post("/api/invoices", headers=_auth(finance_jwt), json={"client_id": c["id"], "subtotal": subtotal})
        assert r.status_code == 201, r.text
        assert r.json()["status"] == "draft"
        numbers.append(r.json()["invoice_number"])

    prefix = numbers[0].rsplit("-", 1)[0]
    assert numbers == [f"{prefix}-0001", f"{prefix}-0002"]

def test_next_invoice_number_on_empty_year(db_session):
    assert next_invoice_number(db_session, 2031) == "INV-2031-0001"

def test_invoice_subtotal_must_be_positive(client, db_session):
    manager_jwt, _ = login_as(client, db_session, Role.manager)
    finance_jwt, _ = login_as(client, db_session, Role.finance)
    c = new_client(client, manager_jwt)
    r = client.post("/api/invoices", headers=_auth(finance_jwt), json={"client_id": c["id"], "subtotal": "0"})
    assert r.status_code == 422

def test_invoice_permissions(client, db_session):
    manager_jwt, _ = login_as(client, db_session, Role.manager)
    finance_jwt, _ = login_as(client, db_session, Role.finance)
    viewer_jwt, _ = login_as(client, db_session, Role.client_viewer)
    c = new_client(client, manager_jwt)

    r = client.post("/api/invoices", headers=_auth(manager_jwt), json={"client_id": c["id"], "subtotal": "10"})
    assert r.status_code == 403

    r = client.post("/api/invoices", headers=_auth(finance_jwt), json={"client_id": c["id"], "subtotal": "10"})
    invoice_id = r.json()["id"]

    # read permission, but not the creator
    assert client.get(f"/api/invoices/{invoice_id}", headers=_auth(viewer_jwt)).status_code == 403
    assert client.get("/api/invoices", headers=_auth(viewer_jwt)).json() == []

    r = client.put(f"/api/invoices/{invoice_id}/status", headers=_auth(finance_jwt), json={"status": "sent"})
    assert r.status_code == 200
    assert r.json()["status"] == "sent"

    r = client.delete(f"/api/invoices/{invoice_id}", headers=_auth(finance_jwt))
    assert r.status_code == 200
    assert client.get(f"/api/invoices/{invoice_id}", headers=_auth(finance_jwt)).status_code == 404

# users

def test_role_change_requires_user_management(client, db_session):
    admin_jwt, _ = login_as(client, db_session, Role.admin)
    manager_jwt, _ = login_as(client, db_session, Role.manager)
    _, target = login_as(client, db_session, Role.team_member)

    r = client.patch(f"/api/users/{target.id}/role", headers=_auth(manager_jwt), json={"role": "finance"})
    assert r.status_code == 403

    r = client.patch(f"/api/users/{target.id}/role", headers=_auth(admin_jwt), json={"role": "finance"})
    assert r.status_code == 200, r.text
    assert r.json()["role"] == "finance"

def test_me(client, db_session):
    jwt, user = login_as(client, db_session, Role.client_viewer)
    r = client.get("/api/users/me", headers=_auth(jwt))
    assert r.status_code == 200
    assert r.json()["id"] == str(user.id)
    assert r.json()["role"] == "client_viewer"

def test_campaign_update_and_delete(client, db_session):
    jwt, _ = login_as(client, db_session, Role.manager)
    c = new_client(client, jwt)
    campaign = new_campaign(client, jwt, c["id"], description="draft")

    r = client.put(f"/api/campaigns/{campaign['id']}", headers=_auth(jwt), json={"name": "renamed", "description": None})
    assert r.status_code == 200, r.text
    assert r.json()["name"] == "renamed"
    assert r.json()["description"] is None

    r = client.delete(f"/api/campaigns/{campaign['id']}", headers=_auth(jwt))
    assert r.status_code == 200
    assert client.get(f"/api/campaigns/{campaign['id']}", headers=_auth(jwt)).status_code == 404
