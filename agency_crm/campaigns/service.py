from __future__ import annotations

import logging
import uuid
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from agency_crm import events
from agency_crm.activity import publish_activity, record_activity
from agency_crm.auth.tokens import now_utc
from agency_crm.errors import NotFoundError
from agency_crm.models.campaign import Campaign
from agency_crm.models.client import Client
from agency_crm.models.enums import Action, ActivityType, CampaignStatus, NotificationType, Resource, TaskStatus
from agency_crm.models.task import Task
from agency_crm.models.user import User
from agency_crm.notifications import service as notifications
from agency_crm.rbac.engine import AuthorizationEngine, authz
from agency_crm.schemas.campaigns import (
    CampaignCreateIn,
    CampaignMetricsOut,
    CampaignOut,
    CampaignUpdateIn,
    KpiProgressOut,
)
from agency_crm.workflow import CAMPAIGN_TRANSITIONS, validate_transition

logger = logging.getLogger("agency-crm.campaigns")

def get_live_campaign(db: Session, campaign_id: uuid.UUID) -> Campaign:
    c = db.get(Campaign, campaign_id)
    if c is None or c.deleted_at is not None:
        raise NotFoundError("campaign", campaign_id)
    return c

def _emit(c: Campaign) -> None:
    events.publish(
        events.CAMPAIGN_UPDATED,
        {"campaign_id": c.id, "campaign": CampaignOut.model_validate(c).model_dump()},
    )

def list_campaigns(
    db: Session,
    actor: User,
    status: CampaignStatus | None = None,
    client_id: uuid.UUID | None = None,
    skip: int = 0,
    take: int = 50,
    engine: AuthorizationEngine = authz,
) -> tuple[list[Campaign], int]:
    q = select(Campaign).where(Campaign.deleted_at.is_(None))
    if not engine.sees_all(actor.role, Resource.campaigns):
        q = q.where(Campaign.assigned_to_id == actor.id)
    if status is not None:
        q = q.where(Campaign.status == status)
    if client_id is not None:
        q = q.where(Campaign.client_id == client_id)

    total = db.scalar(select(func.count()).select_from(q.subquery())) or 0
    rows = db.scalars(q.order_by(Campaign.created_at.desc()).offset(skip).limit(take)).all()
    return list(rows), total

def get_campaign(
    db: Session, actor: User, campaign_id: uuid.UUID, engine: AuthorizationEngine = authz
) -> Campaign:
    c = get_live_campaign(db, campaign_id)
    engine.require_resource_access(db, actor.id, Resource.campaigns, campaign_id, Action.read)
    return c

def create_campaign(db: Session, actor: User, payload: CampaignCreateIn) -> Campaign:
    client = db.get(Client, payload.client_id)
    if client is None or client.deleted_at is not None:
        raise NotFoundError("client", payload.client_id)
    if payload.assigned_to_id is not None and db.get(User, payload.assigned_to_id) is None:
        raise NotFoundError("user", payload.assigned_to_id)

    c = Campaign(
        client_id=payload.client_id,
        name=payload.name,
        type=payload.type,
        description=payload.description,
        status=CampaignStatus.planning,
        budget=payload.budget,
        actual_spend=payload.actual_spend,
        kpi_target=payload.kpi_target,
        start_date=payload.start_date,
        end_date=payload.end_date,
        created_by_id=actor.id,
        assigned_to_id=payload.assigned_to_id,
    )
    db.add(c)
    db.flush()

    a = record_activity(
        db,
        type=ActivityType.campaign_created,
        title=f"Campaign created: {c.name}",
        user_id=actor.id,
        campaign_id=c.id,
    )
    db.commit()
    db.refresh(c)

    _emit(c)
    publish_activity(a)
    return c

def update_campaign(
    db: Session,
    actor: User,
    campaign_id: uuid.UUID,
    payload: CampaignUpdateIn,
    engine: AuthorizationEngine = authz,
) -> Campaign:
    c = get_live_campaign(db, campaign_id)
    engine.require_resource_access(db, actor.id, Resource.campaigns, campaign_id, Action.update)

    fields = payload.model_fields_set
    if payload.name is not None:
        c.name = payload.name
    for name in ("type", "description", "budget", "actual_spend", "kpi_target", "start_date", "end_date"):
        if name in fields:
            setattr(c, name, getattr(payload, name))
    if "assigned_to_id" in fields:
        if payload.assigned_to_id is not None and db.get(User, payload.assigned_to_id) is None:
            raise NotFoundError("user", payload.assigned_to_id)
        c.assigned_to_id = payload.assigned_to_id

    a = record_activity(
        db,
        type=ActivityType.campaign_updated,
        title=f"Campaign updated: {c.name}",
        user_id=actor.id,
        campaign_id=c.id,
    )
    db.commit()
    db.refresh(c)

    _emit(c)
    publish_activity(a)
    return c

def update_campaign_status(
    db: Session,
    actor: User,
    campaign_id: uuid.UUID,
    new_status: CampaignStatus,
    engine: AuthorizationEngine = authz,
) -> Campaign:
    c = get_live_campaign(db, campaign_id)
    engine.require_resource_access(db, actor.id, Resource.campaigns, campaign_id, Action.update)

    new_status = CampaignStatus(new_status)
    validate_transition(CAMPAIGN_TRANSITIONS, c.status, new_status)
    old = c.status
    c.status = new_status

    a = record_activity(
        db,
        type=ActivityType.campaign_updated,
        title=f"Campaign status changed: {c.name} -> {new_status.value}",
        user_id=actor.id,
        campaign_id=c.id,
        details={"old_status": old.value, "new_status": new_status.value},
    )
    n = None
    if c.assigned_to_id is not None and c.assigned_to_id != actor.id:
        n = notifications.notify(
            db,
            c.assigned_to_id,
            NotificationType.campaign_update,
            "Campaign updated",
            f'Campaign "{c.name}" is now {new_status.value}',
            link=f"/campaigns/{c.id}",
        )
    db.commit()
    db.refresh(c)
    logger.info("campaign %s: %s -> %s by %s", c.id, old.value, new_status.value, actor.id)

    _emit(c)
    publish_activity(a)
    notifications.publish(n)
    return c

def delete_campaign(
    db: Session, actor: User, campaign_id: uuid.UUID, engine: AuthorizationEngine = authz
) -> None:
    c = get_live_campaign(db, campaign_id)
    engine.require_resource_access(db, actor.id, Resource.campaigns, campaign_id, Action.delete)

    c.deleted_at = now_utc()
    c.status = CampaignStatus.cancelled
    record_activity(
        db,
        type=ActivityType.campaign_updated,
        title=f"Campaign cancelled: {c.name}",
        user_id=actor.id,
        campaign_id=c.id,
    )
    db.commit()
    events.publish(events.CAMPAIGN_UPDATED, {"campaign_id": campaign_id, "deleted": True})

def update_kpis(
    db: Session,
    actor: User,
    campaign_id: uuid.UUID,
    kpis: dict[str, float],
    engine: AuthorizationEngine = authz,
) -> Campaign:
    c = get_live_campaign(db, campaign_id)
    engine.require_resource_access(db, actor.id, Resource.campaigns, campaign_id, Action.update)

    # reassign so the JSON column is flagged dirty
    c.kpi_actual = {**(c.kpi_actual or {}), **kpis}

    a = record_activity(
        db,
        type=ActivityType.campaign_updated,
        title=f"Campaign KPIs updated: {c.name}",
        user_id=actor.id,
        campaign_id=c.id,
        details={"kpis": kpis},
    )
    db.commit()
    db.refresh(c)

    _emit(c)
    publish_activity(a)
    return c

def campaign_metrics(
    db: Session, actor: User, campaign_id: uuid.UUID, engine: AuthorizationEngine = authz
) -> CampaignMetricsOut:
    c = get_campaign(db, actor, campaign_id, engine)

    counts = dict(
        db.execute(
            select(Task.status, func.count(Task.id))
            .where(Task.campaign_id == c.id, Task.deleted_at.is_(None))
            .group_by(Task.status)
        ).all()
    )

    budget = Decimal(c.budget or 0)
    spent = Decimal(c.actual_spend or 0)
    utilization = round(float(spent / budget * 100), 2) if budget > 0 else 0.0

    targets = c.kpi_target or {}
    actuals = c.kpi_actual or {}
    progress = {}
    for name, target in targets.items():
        actual = float(actuals.get(name, 0))
        pct = round(actual / float(target) * 100, 2) if target else 0.0
        progress[name] = KpiProgressOut(target=float(target), actual=actual, progress=pct)

    return CampaignMetricsOut(
        campaign_id=c.id,
        budget=budget,
        actual_spend=spent,
        budget_remaining=budget - spent,
        budget_utilization=utilization,
        total_tasks=sum(counts.values()),
        completed_tasks=counts.get(TaskStatus.completed, 0),
        in_progress_tasks=counts.get(TaskStatus.in_progress, 0),
        not_started_tasks=counts.get(TaskStatus.not_started, 0),
        kpi_progress=progress,
    )
