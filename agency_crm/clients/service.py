from __future__ import annotations

import logging
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from agency_crm import events
from agency_crm.activity import publish_activity, record_activity
from agency_crm.auth.tokens import now_utc
from agency_crm.errors import InsufficientPermissionsError, NotFoundError
from agency_crm.models.campaign import Campaign
from agency_crm.models.client import Client
from agency_crm.models.client_contact import ClientContact
from agency_crm.models.enums import (
    Action,
    ActivityType,
    CampaignStatus,
    InvoiceStatus,
    PaymentStatus,
    Resource,
    TaskStatus,
)
from agency_crm.models.invoice import Invoice
from agency_crm.models.task import Task
from agency_crm.models.user import User
from agency_crm.rbac.engine import AuthorizationEngine, authz
from agency_crm.schemas.clients import (
    ClientCreateIn,
    ClientMetricsOut,
    ClientUpdateIn,
    ContactCreateIn,
    ContactUpdateIn,
)

logger = logging.getLogger("agency-crm.clients")

def get_live_client(db: Session, client_id: uuid.UUID) -> Client:
    c = db.get(Client, client_id)
    if c is None or c.deleted_at is not None:
        raise NotFoundError("client", client_id)
    return c

def list_clients(
    db: Session,
    actor: User,
    search: str | None = None,
    skip: int = 0,
    take: int = 50,
    engine: AuthorizationEngine = authz,
) -> list[Client]:
    q = select(Client).where(Client.deleted_at.is_(None))
    if not engine.sees_all(actor.role, Resource.clients):
        q = q.where(Client.owner_id == actor.id)
    if search:
        q = q.where(Client.name.ilike(f"%{search.strip()}%"))
    return list(db.scalars(q.order_by(Client.created_at.desc()).offset(skip).limit(take)).all())

def get_client(db: Session, actor: User, client_id: uuid.UUID, engine: AuthorizationEngine = authz) -> Client:
    c = get_live_client(db, client_id)
    engine.require_resource_access(db, actor.id, Resource.clients, client_id, Action.read)
    return c

def create_client(
    db: Session, actor: User, payload: ClientCreateIn, engine: AuthorizationEngine = authz
) -> Client:
    owner_id = payload.owner_id or actor.id
    if owner_id != actor.id:
        # assigning someone else's book of business is a privileged move
        if not engine.sees_all(actor.role, Resource.clients):
            raise InsufficientPermissionsError("only managers may assign a client to another owner")
        if db.get(User, owner_id) is None:
            raise NotFoundError("user", owner_id)

    c = Client(
        name=payload.name,
        company=payload.company,
        email=str(payload.email) if payload.email else None,
        notes=payload.notes,
        owner_id=owner_id,
    )
    db.add(c)
    db.flush()
    a = record_activity(db, type=ActivityType.client_created, title=f"Client created: {c.name}", user_id=actor.id)
    db.commit()
    db.refresh(c)

    events.publish(events.CLIENT_UPDATED, {"client_id": c.id})
    publish_activity(a)
    return c

def update_client(
    db: Session,
    actor: User,
    client_id: uuid.UUID,
    payload: ClientUpdateIn,
    engine: AuthorizationEngine = authz,
) -> Client:
    c = get_live_client(db, client_id)
    engine.require_resource_access(db, actor.id, Resource.clients, client_id, Action.update)

    if payload.name is not None:
        c.name = payload.name
    for name in ("company", "notes"):
        if name in payload.model_fields_set:
            setattr(c, name, getattr(payload, name))
    if "email" in payload.model_fields_set:
        c.email = str(payload.email) if payload.email else None

    a = record_activity(db, type=ActivityType.client_updated, title=f"Client updated: {c.name}", user_id=actor.id)
    db.commit()
    db.refresh(c)

    events.publish(events.CLIENT_UPDATED, {"client_id": c.id})
    publish_activity(a)
    return c

def delete_client(db: Session, actor: User, client_id: uuid.UUID, engine: AuthorizationEngine = authz) -> None:
    c = get_live_client(db, client_id)
    engine.require_resource_access(db, actor.id, Resource.clients, client_id, Action.delete)

    c.deleted_at = now_utc()
    db.commit()

    events.publish(events.CLIENT_UPDATED, {"client_id": client_id, "deleted": True})

# contacts ride on the parent client's update permission

def _live_contact(db: Session, client_id: uuid.UUID, contact_id: uuid.UUID) -> ClientContact:
    ct = db.get(ClientContact, contact_id)
    if ct is None or ct.deleted_at is not None or ct.client_id != client_id:
        raise NotFoundError("contact", contact_id)
    return ct

def _clear_primary(db: Session, client_id: uuid.UUID, keep: uuid.UUID | None = None) -> None:
    q = update(ClientContact).where(
        ClientContact.client_id == client_id,
        ClientContact.deleted_at.is_(None),
        ClientContact.is_primary.is_(True),
    )
    if keep is not None:
        q = q.where(ClientContact.id != keep)
    db.execute(q.values(is_primary=False))

def list_contacts(
    db: Session, actor: User, client_id: uuid.UUID, engine: AuthorizationEngine = authz
) -> list[ClientContact]:
    get_client(db, actor, client_id, engine)
    q = (
        select(ClientContact)
        .where(ClientContact.client_id == client_id, ClientContact.deleted_at.is_(None))
        .order_by(ClientContact.is_primary.desc(), ClientContact.last_name, ClientContact.first_name)
    )
    return list(db.scalars(q).all())

def add_contact(
    db: Session,
    actor: User,
    client_id: uuid.UUID,
    payload: ContactCreateIn,
    engine: AuthorizationEngine = authz,
) -> ClientContact:
    get_live_client(db, client_id)
    engine.require_resource_access(db, actor.id, Resource.clients, client_id, Action.update)

    if payload.is_primary:
        _clear_primary(db, client_id)
    ct = ClientContact(
        client_id=client_id,
        first_name=payload.first_name,
        last_name=payload.last_name,
        email=str(payload.email) if payload.email else None,
        phone=payload.phone,
        title=payload.title,
        is_primary=payload.is_primary,
        notes=payload.notes,
    )
    db.add(ct)
    db.commit()
    db.refresh(ct)

    events.publish(events.CLIENT_UPDATED, {"client_id": client_id, "contact_id": ct.id})
    return ct

def update_contact(
    db: Session,
    actor: User,
    client_id: uuid.UUID,
    contact_id: uuid.UUID,
    payload: ContactUpdateIn,
    engine: AuthorizationEngine = authz,
) -> ClientContact:
    get_live_client(db, client_id)
    engine.require_resource_access(db, actor.id, Resource.clients, client_id, Action.update)
    ct = _live_contact(db, client_id, contact_id)

    fields = payload.model_fields_set
    for name in ("first_name", "last_name"):
        if getattr(payload, name) is not None:
            setattr(ct, name, getattr(payload, name))
    for name in ("phone", "title", "notes"):
        if name in fields:
            setattr(ct, name, getattr(payload, name))
    if "email" in fields:
        ct.email = str(payload.email) if payload.email else None
    if payload.is_primary is not None:
        if payload.is_primary:
            _clear_primary(db, client_id, keep=ct.id)
        ct.is_primary = payload.is_primary

    db.commit()
    db.refresh(ct)

    events.publish(events.CLIENT_UPDATED, {"client_id": client_id, "contact_id": ct.id})
    return ct

def delete_contact(
    db: Session,
    actor: User,
    client_id: uuid.UUID,
    contact_id: uuid.UUID,
    engine: AuthorizationEngine = authz,
) -> None:
    get_live_client(db, client_id)
    engine.require_resource_access(db, actor.id, Resource.clients, client_id, Action.update)
    ct = _live_contact(db, client_id, contact_id)

    ct.deleted_at = now_utc()
    ct.is_primary = False
    db.commit()

    events.publish(events.CLIENT_UPDATED, {"client_id": client_id, "contact_id": contact_id, "deleted": True})

def client_metrics(
    db: Session,
    actor: User,
    client_id: uuid.UUID,
    now: datetime | None = None,
    engine: AuthorizationEngine = authz,
) -> ClientMetricsOut:
    get_client(db, actor, client_id, engine)
    now = now or now_utc()

    live_invoices = select(Invoice).where(Invoice.client_id == client_id, Invoice.deleted_at.is_(None)).subquery()
    revenue = db.scalar(
        select(func.coalesce(func.sum(live_invoices.c.total), 0)).where(
            live_invoices.c.payment_status == PaymentStatus.paid
        )
    )
    total_invoices = db.scalar(select(func.count()).select_from(live_invoices)) or 0
    overdue = db.scalar(
        select(func.count()).select_from(live_invoices).where(
            live_invoices.c.due_date < now,
            live_invoices.c.payment_status != PaymentStatus.paid,
            live_invoices.c.status != InvoiceStatus.cancelled,
        )
    ) or 0

    campaign_counts = dict(
        db.execute(
            select(Campaign.status, func.count(Campaign.id))
            .where(Campaign.client_id == client_id, Campaign.deleted_at.is_(None))
            .group_by(Campaign.status)
        ).all()
    )

    task_scope = (
        select(Task.status)
        .join(Campaign, Task.campaign_id == Campaign.id)
        .where(Campaign.client_id == client_id, Campaign.deleted_at.is_(None), Task.deleted_at.is_(None))
        .subquery()
    )
    total_tasks = db.scalar(select(func.count()).select_from(task_scope)) or 0
    completed_tasks = db.scalar(
        select(func.count()).select_from(task_scope).where(task_scope.c.status == TaskStatus.completed)
    ) or 0

    return ClientMetricsOut(
        client_id=client_id,
        total_revenue=Decimal(str(revenue or 0)).quantize(Decimal("0.01")),
        active_campaigns=campaign_counts.get(CampaignStatus.active, 0),
        completed_campaigns=campaign_counts.get(CampaignStatus.completed, 0),
        total_tasks=total_tasks,
        completed_tasks=completed_tasks,
        total_invoices=total_invoices,
        overdue_invoices=overdue,
    )
