from __future__ import annotations

import math
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import case, func, select
from sqlalchemy.orm import Session

from agency_crm.auth.tokens import now_utc
from agency_crm.models.campaign import Campaign
from agency_crm.models.client import Client
from agency_crm.models.enums import CampaignStatus, InvoiceStatus, PaymentStatus, Resource, TaskStatus
from agency_crm.models.invoice import Invoice
from agency_crm.models.task import Task
from agency_crm.models.user import User
from agency_crm.rbac.engine import AuthorizationEngine, authz
from agency_crm.schemas.analytics import (
    BudgetAccuracyOut,
    CampaignRoiOut,
    ClientProfitabilityOut,
    DashboardOut,
    OnTimeOut,
    UtilizationOut,
)

HOURS_PER_WEEK = 40
CENTS = Decimal("0.01")

def _money(value) -> Decimal:
    # sqlite hands sums back as floats
    return Decimal(str(value or 0)).quantize(CENTS)

def _pct(part, whole) -> float:
    if not whole:
        return 0.0
    return round(float(part) / float(whole) * 100, 2)

def _in_range(col, start: datetime | None, end: datetime | None) -> list:
    out = []
    if start is not None:
        out.append(col >= start)
    if end is not None:
        out.append(col <= end)
    return out

def _paid_revenue_by(col):
    return (
        select(col.label("key"), func.sum(Invoice.total).label("revenue"))
        .where(Invoice.deleted_at.is_(None), Invoice.payment_status == PaymentStatus.paid, col.is_not(None))
        .group_by(col)
        .subquery()
    )

def campaign_roi(
    db: Session,
    start: datetime | None = None,
    end: datetime | None = None,
    client_id: uuid.UUID | None = None,
    campaign_id: uuid.UUID | None = None,
) -> list[CampaignRoiOut]:
    revenue = _paid_revenue_by(Invoice.campaign_id)
    q = (
        select(Campaign.id, Campaign.name, Campaign.actual_spend, func.coalesce(revenue.c.revenue, 0))
        .outerjoin(revenue, revenue.c.key == Campaign.id)
        .where(Campaign.deleted_at.is_(None), *_in_range(Campaign.created_at, start, end))
    )
    if client_id is not None:
        q = q.where(Campaign.client_id == client_id)
    if campaign_id is not None:
        q = q.where(Campaign.id == campaign_id)

    out = []
    for cid, name, spend, rev in db.execute(q.order_by(Campaign.created_at)).all():
        spend = _money(spend)
        rev = _money(rev)
        out.append(CampaignRoiOut(campaign_id=cid, campaign_name=name, revenue=rev, spend=spend, roi=_pct(rev - spend, spend)))
    return out

def team_utilization(
    db: Session,
    start: datetime | None = None,
    end: datetime | None = None,
    user_id: uuid.UUID | None = None,
) -> list[UtilizationOut]:
    weeks = 1
    if start is not None and end is not None:
        weeks = max(1, math.ceil((end - start).total_seconds() / (7 * 24 * 3600)))
    available = weeks * HOURS_PER_WEEK

    q = (
        select(User.id, User.name, User.email, func.sum(Task.actual_hours))
        .select_from(Task)
        .join(User, User.id == Task.assigned_to_id)
        .where(Task.deleted_at.is_(None), Task.actual_hours.is_not(None), *_in_range(Task.created_at, start, end))
        .group_by(User.id, User.name, User.email)
    )
    if user_id is not None:
        q = q.where(Task.assigned_to_id == user_id)

    out = []
    for uid, name, email, hours in db.execute(q).all():
        hours = _money(hours)
        out.append(
            UtilizationOut(
                user_id=uid,
                user_name=name or email,
                billable_hours=hours,
                available_hours=available,
                utilization=_pct(hours, available),
            )
        )
    return sorted(out, key=lambda u: u.utilization, reverse=True)

def task_on_time(db: Session, start: datetime | None = None, end: datetime | None = None) -> OnTimeOut:
    on_time = case(
        (Task.due_date.is_not(None) & Task.completed_at.is_not(None) & (Task.completed_at <= Task.due_date), 1),
        else_=0,
    )
    total, hits = db.execute(
        select(func.count(Task.id), func.coalesce(func.sum(on_time), 0)).where(
            Task.deleted_at.is_(None),
            Task.status == TaskStatus.completed,
            *_in_range(Task.completed_at, start, end),
        )
    ).one()
    return OnTimeOut(total_completed=total, completed_on_time=int(hits), on_time_percentage=_pct(hits, total))

def client_profitability(db: Session, client_id: uuid.UUID | None = None) -> list[ClientProfitabilityOut]:
    revenue = _paid_revenue_by(Invoice.client_id)
    spend = (
        select(Campaign.client_id.label("key"), func.sum(Campaign.actual_spend).label("spend"))
        .where(Campaign.deleted_at.is_(None))
        .group_by(Campaign.client_id)
        .subquery()
    )
    q = (
        select(Client.id, Client.name, func.coalesce(revenue.c.revenue, 0), func.coalesce(spend.c.spend, 0))
        .outerjoin(revenue, revenue.c.key == Client.id)
        .outerjoin(spend, spend.c.key == Client.id)
        .where(Client.deleted_at.is_(None))
    )
    if client_id is not None:
        q = q.where(Client.id == client_id)

    out = []
    for cid, name, rev, cost in db.execute(q.order_by(Client.name)).all():
        rev, cost = _money(rev), _money(cost)
        profit = rev - cost
        out.append(
            ClientProfitabilityOut(
                client_id=cid, client_name=name, revenue=rev, expenses=cost, profit=profit, profit_margin=_pct(profit, rev)
            )
        )
    return out

def budget_accuracy(db: Session, start: datetime | None = None, end: datetime | None = None) -> list[BudgetAccuracyOut]:
    q = select(Campaign.id, Campaign.name, Campaign.budget, Campaign.actual_spend).where(
        Campaign.deleted_at.is_(None), Campaign.budget.is_not(None), *_in_range(Campaign.created_at, start, end)
    )
    out = []
    for cid, name, budget, spent in db.execute(q.order_by(Campaign.created_at)).all():
        budget, spent = _money(budget), _money(spent)
        variance = spent - budget
        out.append(
            BudgetAccuracyOut(
                campaign_id=cid,
                campaign_name=name,
                budget=budget,
                actual_spend=spent,
                variance=variance,
                variance_percentage=_pct(variance, budget),
            )
        )
    return out

def dashboard(db: Session, actor: User, now: datetime | None = None, engine: AuthorizationEngine = authz) -> DashboardOut:
    """Headline counters, narrowed to the caller's own rows where their role is ownership-scoped."""
    now = now or now_utc()

    clients = select(func.count(Client.id)).where(Client.deleted_at.is_(None))
    if not engine.sees_all(actor.role, Resource.clients):
        clients = clients.where(Client.owner_id == actor.id)

    campaigns = select(func.count(Campaign.id)).where(
        Campaign.deleted_at.is_(None), Campaign.status == CampaignStatus.active
    )
    if not engine.sees_all(actor.role, Resource.campaigns):
        campaigns = campaigns.where(Campaign.assigned_to_id == actor.id)

    task_filter = [Task.deleted_at.is_(None)]
    if not engine.sees_all(actor.role, Resource.tasks):
        task_filter.append(Task.assigned_to_id == actor.id)
    total_tasks, completed_tasks = db.execute(
        select(
            func.count(Task.id),
            func.coalesce(func.sum(case((Task.status == TaskStatus.completed, 1), else_=0)), 0),
        ).where(*task_filter)
    ).one()

    inv_filter = [Invoice.deleted_at.is_(None), Invoice.status != InvoiceStatus.cancelled]
    if not engine.sees_all(actor.role, Resource.invoices):
        inv_filter.append(Invoice.created_by_id == actor.id)
    paid = Invoice.payment_status == PaymentStatus.paid
    overdue = Invoice.due_date.is_not(None) & (Invoice.due_date < now) & (Invoice.payment_status != PaymentStatus.paid)
    revenue, outstanding, pending, late = db.execute(
        select(
            func.coalesce(func.sum(case((paid, Invoice.total), else_=0)), 0),
            func.coalesce(func.sum(case((Invoice.payment_status == PaymentStatus.pending, Invoice.total), else_=0)), 0),
            func.coalesce(func.sum(case((Invoice.payment_status == PaymentStatus.pending, 1), else_=0)), 0),
            func.coalesce(func.sum(case((overdue, 1), else_=0)), 0),
        ).where(*inv_filter)
    ).one()

    return DashboardOut(
        total_clients=db.scalar(clients) or 0,
        active_campaigns=db.scalar(campaigns) or 0,
        total_tasks=total_tasks,
        completed_tasks=int(completed_tasks),
        total_revenue=_money(revenue),
        outstanding_revenue=_money(outstanding),
        pending_invoices=int(pending),
        overdue_invoices=int(late),
    )
