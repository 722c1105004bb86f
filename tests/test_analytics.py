import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from agency_crm.analytics import service
from agency_crm.models import Campaign, Invoice
from agency_crm.models.enums import CampaignStatus, InvoiceStatus, PaymentStatus, Role, TaskStatus

from conftest import _auth, login_as, make_client, make_task, make_user

UTC = timezone.utc

def _campaign(db, client, creator, **kw) -> Campaign:
    c = Campaign(client_id=client.id, name=kw.pop("name", "launch"), created_by_id=creator.id, **kw)
    db.add(c)
    db.commit()
    return c

def _invoice(db, client, creator, total, *, campaign=None, paid=False, **kw) -> Invoice:
    inv = Invoice(
        client_id=client.id,
        campaign_id=campaign.id if campaign else None,
        invoice_number=f"INV-T-{uuid.uuid4().hex[:8]}",
        subtotal=total,
        total=total,
        status=InvoiceStatus.paid if paid else InvoiceStatus.sent,
        payment_status=PaymentStatus.paid if paid else PaymentStatus.pending,
        created_by_id=creator.id,
        **kw,
    )
    db.add(inv)
    db.commit()
    return inv

@pytest.mark.parametrize("role", [Role.team_member, Role.client_viewer])
def test_roles_without_analytics_read_are_forbidden(client, db_session, role):
    jwt, _ = login_as(client, db_session, role)
    for path in ("dashboard", "campaign-roi", "task-on-time", "team-utilization"):
        assert client.get(f"/api/analytics/{path}", headers=_auth(jwt)).status_code == 403

def test_campaign_roi_counts_only_its_own_paid_invoices(db_session, admin):
    acme = make_client(db_session, admin)
    spent = _campaign(db_session, acme, admin, actual_spend=Decimal("100"))
    free = _campaign(db_session, acme, admin, name="organic")

    _invoice(db_session, acme, admin, 250, campaign=spent, paid=True)
    _invoice(db_session, acme, admin, 999, campaign=spent)
    _invoice(db_session, acme, admin, 40, campaign=free, paid=True)
    _invoice(db_session, acme, admin, 70, paid=True)

    rows = {r.campaign_id: r for r in service.campaign_roi(db_session)}
    assert rows[spent.id].revenue == Decimal("250")
    assert rows[spent.id].spend == Decimal("100")
    assert rows[spent.id].roi == 150.0
    # no spend means no meaningful roi
    assert rows[free.id].revenue == Decimal("40")
    assert rows[free.id].roi == 0.0

    assert [r.campaign_id for r in service.campaign_roi(db_session, campaign_id=free.id)] == [free.id]

def test_task_on_time_percentage(db_session, admin):
    due = datetime(2026, 5, 10, tzinfo=UTC)
    make_task(db_session, admin, status=TaskStatus.completed, due_date=due, completed_at=due - timedelta(days=1))
    make_task(db_session, admin, status=TaskStatus.completed, due_date=due, completed_at=due)
    make_task(db_session, admin, status=TaskStatus.completed, due_date=due, completed_at=due + timedelta(days=2))
    make_task(db_session, admin, status=TaskStatus.completed, completed_at=due)
    make_task(db_session, admin, status=TaskStatus.in_progress, due_date=due)

    out = service.task_on_time(db_session)
    assert out.total_completed == 4
    assert out.completed_on_time == 2
    assert out.on_time_percentage == 50.0

def test_task_on_time_with_nothing_completed(db_session):
    out = service.task_on_time(db_session)
    assert (out.total_completed, out.completed_on_time, out.on_time_percentage) == (0, 0, 0.0)

def test_team_utilization(db_session, admin):
    busy = make_user(db_session)
    make_task(db_session, admin, assigned_to_id=busy.id, actual_hours=Decimal("30"))
    make_task(db_session, admin, assigned_to_id=busy.id, actual_hours=Decimal("10"))
    make_task(db_session, admin, assigned_to_id=busy.id)

    [row] = service.team_utilization(db_session)
    assert row.user_id == busy.id
    assert row.billable_hours == Decimal("40")
    assert row.available_hours == 40
    assert row.utilization == 100.0

    start = datetime(2000, 1, 1, tzinfo=UTC)
    [row] = service.team_utilization(db_session, start=start, end=start + timedelta(days=4000 * 7))
    assert row.available_hours == 4000 * 40

def test_client_profitability_and_budget_accuracy(db_session, admin):
    acme = make_client(db_session, admin)
    _campaign(db_session, acme, admin, budget=Decimal("200"), actual_spend=Decimal("250"))
    _campaign(db_session, acme, admin, name="unbudgeted", actual_spend=Decimal("50"))
    _invoice(db_session, acme, admin, 600, paid=True)
    _invoice(db_session, acme, admin, 500)

    [p] = service.client_profitability(db_session, client_id=acme.id)
    assert p.revenue == Decimal("600")
    assert p.expenses == Decimal("300")
    assert p.profit == Decimal("300")
    assert p.profit_margin == 50.0

    [b] = service.budget_accuracy(db_session)
    assert b.variance == Decimal("50")
    assert b.variance_percentage == 25.0

def test_dashboard_is_scoped_for_finance(client, db_session, admin):
    finance_jwt, finance = login_as(client, db_session, Role.finance)
    manager_jwt, _ = login_as(client, db_session, Role.manager)
    acme = make_client(db_session, admin)
    _campaign(db_session, acme, admin, status=CampaignStatus.active)
    _campaign(db_session, acme, admin, status=CampaignStatus.planning)
    make_task(db_session, admin, status=TaskStatus.completed)
    make_task(db_session, admin)

    past = datetime(2020, 1, 1, tzinfo=UTC)
    _invoice(db_session, acme, finance, 100, paid=True)
    _invoice(db_session, acme, finance, 40, due_date=past)
    _invoice(db_session, acme, admin, 60)

    r = client.get("/api/analytics/dashboard", headers=_auth(manager_jwt))
    assert r.status_code == 200
    body = r.json()
    assert body["total_clients"] == 1
    assert body["active_campaigns"] == 1
    assert (body["total_tasks"], body["completed_tasks"]) == (2, 1)
    # managers only see invoices they created
    assert body["pending_invoices"] == 0

    body = client.get("/api/analytics/dashboard", headers=_auth(finance_jwt)).json()
    assert Decimal(body["total_revenue"]) == Decimal("100")
    assert Decimal(body["outstanding_revenue"]) == Decimal("100")
    assert body["pending_invoices"] == 2
    assert body["overdue_invoices"] == 1
    # finance is ownership-scoped on clients and campaigns
    assert body["total_clients"] == 0
    assert body["active_campaigns"] == 0

def test_analytics_routes_answer_for_finance(client, db_session):
    jwt, _ = login_as(client, db_session, Role.finance)
    for path in ("campaign-roi", "team-utilization", "client-profitability", "budget-accuracy"):
        r = client.get(f"/api/analytics/{path}", headers=_auth(jwt))
        assert r.status_code == 200, path
        assert r.json() == []
    assert client.get("/api/analytics/task-on-time", headers=_auth(jwt)).json()["total_completed"] == 0
