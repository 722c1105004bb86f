from __future__ import annotations

import logging
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import Integer, cast, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from agency_crm import events
from agency_crm.activity import publish_activity, record_activity
from agency_crm.auth.tokens import now_utc
from agency_crm.errors import ConflictError, InvalidRequestError, NotFoundError
from agency_crm.models.campaign import Campaign
from agency_crm.models.client import Client
from agency_crm.models.enums import (
    Action,
    ActivityType,
    InvoiceStatus,
    NotificationType,
    PaymentStatus,
    Resource,
)
from agency_crm.models.invoice import Invoice
from agency_crm.models.user import User
from agency_crm.notifications import service as notifications
from agency_crm.rbac.engine import AuthorizationEngine, authz
from agency_crm.schemas.invoices import InvoiceCreateIn, InvoiceUpdateIn
from agency_crm.workflow import INVOICE_TRANSITIONS, validate_transition

logger = logging.getLogger("agency-crm.invoices")

NUMBER_ATTEMPTS = 3

def next_invoice_number(db: Session, year: int) -> str:
    # INV-<year>-<sequence>, zero padded to 4 but free to grow past 9999
    prefix = f"INV-{year}-"
    last = db.scalar(
        select(func.max(cast(func.substr(Invoice.invoice_number, len(prefix) + 1), Integer)))
        .where(Invoice.invoice_number.startswith(prefix))
    )
    return f"{prefix}{(last or 0) + 1:04d}"

def compute_total(subtotal: Decimal, tax: Decimal, discount: Decimal) -> Decimal:
    total = Decimal(subtotal) + Decimal(tax or 0) - Decimal(discount or 0)
    if total < 0:
        raise InvalidRequestError("discount exceeds subtotal plus tax")
    return total

def get_live_invoice(db: Session, invoice_id: uuid.UUID) -> Invoice:
    inv = db.get(Invoice, invoice_id)
    if inv is None or inv.deleted_at is not None:
        raise NotFoundError("invoice", invoice_id)
    return inv

def _emit(inv: Invoice) -> None:
    events.publish(events.INVOICE_UPDATED, {"invoice_id": inv.id, "status": inv.status.value})

def _scoped(actor: User, engine: AuthorizationEngine):
    q = select(Invoice).where(Invoice.deleted_at.is_(None))
    if not engine.sees_all(actor.role, Resource.invoices):
        q = q.where(Invoice.created_by_id == actor.id)
    return q

def list_invoices(
    db: Session,
    actor: User,
    status: InvoiceStatus | None = None,
    payment_status: PaymentStatus | None = None,
    client_id: uuid.UUID | None = None,
    skip: int = 0,
    take: int = 50,
    engine: AuthorizationEngine = authz,
) -> list[Invoice]:
    q = _scoped(actor, engine)
    if status is not None:
        q = q.where(Invoice.status == status)
    if payment_status is not None:
        q = q.where(Invoice.payment_status == payment_status)
    if client_id is not None:
        q = q.where(Invoice.client_id == client_id)
    return list(db.scalars(q.order_by(Invoice.created_at.desc()).offset(skip).limit(take)).all())

def list_overdue(
    db: Session, actor: User, now: datetime | None = None, engine: AuthorizationEngine = authz
) -> list[Invoice]:
    now = now or now_utc()
    q = _scoped(actor, engine).where(
        Invoice.due_date.is_not(None),
        Invoice.due_date < now,
        Invoice.payment_status != PaymentStatus.paid,
        Invoice.status != InvoiceStatus.cancelled,
    )
    return list(db.scalars(q.order_by(Invoice.due_date)).all())

def get_invoice(db: Session, actor: User, invoice_id: uuid.UUID, engine: AuthorizationEngine = authz) -> Invoice:
    inv = get_live_invoice(db, invoice_id)
    engine.require_resource_access(db, actor.id, Resource.invoices, invoice_id, Action.read)
    return inv

def create_invoice(db: Session, actor: User, payload: InvoiceCreateIn) -> Invoice:
    client = db.get(Client, payload.client_id)
    if client is None or client.deleted_at is not None:
        raise NotFoundError("client", payload.client_id)
    if payload.campaign_id is not None:
        campaign = db.get(Campaign, payload.campaign_id)
        if campaign is None or campaign.deleted_at is not None:
            raise NotFoundError("campaign", payload.campaign_id)

    total = compute_total(payload.subtotal, payload.tax, payload.discount)

    # a concurrent create can take the same number between the read and the insert
    for attempt in range(1, NUMBER_ATTEMPTS + 1):
        inv = Invoice(
            client_id=payload.client_id,
            campaign_id=payload.campaign_id,
            invoice_number=next_invoice_number(db, now_utc().year),
            subtotal=payload.subtotal,
            tax=payload.tax,
            discount=payload.discount,
            total=total,
            status=InvoiceStatus.draft,
            payment_status=PaymentStatus.pending,
            issue_date=payload.issue_date or now_utc(),
            due_date=payload.due_date,
            notes=payload.notes,
            created_by_id=actor.id,
        )
        db.add(inv)
        try:
            db.flush()
            break
        except IntegrityError:
            db.rollback()
            logger.warning("invoice number %s taken (attempt %d)", inv.invoice_number, attempt)
    else:
        raise ConflictError("could not allocate an invoice number, retry the request")

    a = record_activity(
        db,
        type=ActivityType.invoice_created,
        title=f"Invoice created: {inv.invoice_number}",
        user_id=actor.id,
        campaign_id=inv.campaign_id,
    )
    db.commit()
    db.refresh(inv)

    _emit(inv)
    publish_activity(a)
    return inv

def update_invoice(
    db: Session,
    actor: User,
    invoice_id: uuid.UUID,
    payload: InvoiceUpdateIn,
    engine: AuthorizationEngine = authz,
) -> Invoice:
    inv = get_live_invoice(db, invoice_id)
    engine.require_resource_access(db, actor.id, Resource.invoices, invoice_id, Action.update)

    fields = payload.model_fields_set
    for name in ("subtotal", "tax", "discount"):
        if getattr(payload, name) is not None:
            setattr(inv, name, getattr(payload, name))
    inv.total = compute_total(inv.subtotal, inv.tax, inv.discount)
    for name in ("issue_date", "due_date", "notes"):
        if name in fields:
            setattr(inv, name, getattr(payload, name))

    a = record_activity(
        db,
        type=ActivityType.invoice_updated,
        title=f"Invoice updated: {inv.invoice_number}",
        user_id=actor.id,
        campaign_id=inv.campaign_id,
    )
    db.commit()
    db.refresh(inv)

    _emit(inv)
    publish_activity(a)
    return inv

def _notify_creator(db: Session, actor: User, inv: Invoice, type: NotificationType, title: str, message: str):
    if inv.created_by_id == actor.id:
        return None
    return notifications.notify(db, inv.created_by_id, type, title, message, link=f"/invoices/{inv.id}")

def update_status(
    db: Session,
    actor: User,
    invoice_id: uuid.UUID,
    new_status: InvoiceStatus,
    engine: AuthorizationEngine = authz,
) -> Invoice:
    inv = get_live_invoice(db, invoice_id)
    engine.require_resource_access(db, actor.id, Resource.invoices, invoice_id, Action.update)

    new_status = InvoiceStatus(new_status)
    if new_status == InvoiceStatus.paid:
        return _mark_paid(db, actor, inv, None)

    validate_transition(INVOICE_TRANSITIONS, inv.status, new_status)
    old = inv.status
    inv.status = new_status
    if new_status == InvoiceStatus.overdue:
        inv.payment_status = PaymentStatus.overdue

    a = record_activity(
        db,
        type=ActivityType.invoice_updated,
        title=f"Invoice {inv.invoice_number}: {old.value} -> {new_status.value}",
        user_id=actor.id,
        campaign_id=inv.campaign_id,
        details={"old_status": old.value, "new_status": new_status.value},
    )
    db.commit()
    db.refresh(inv)
    logger.info("invoice %s: %s -> %s by %s", inv.id, old.value, new_status.value, actor.id)

    _emit(inv)
    publish_activity(a)
    return inv

def send_invoice(db: Session, actor: User, invoice_id: uuid.UUID, engine: AuthorizationEngine = authz) -> Invoice:
    inv = get_live_invoice(db, invoice_id)
    engine.require_resource_access(db, actor.id, Resource.invoices, invoice_id, Action.update)

    validate_transition(INVOICE_TRANSITIONS, inv.status, InvoiceStatus.sent)
    inv.status = InvoiceStatus.sent
    if inv.issue_date is None:
        inv.issue_date = now_utc()

    a = record_activity(
        db,
        type=ActivityType.invoice_sent,
        title=f"Invoice sent: {inv.invoice_number}",
        user_id=actor.id,
        campaign_id=inv.campaign_id,
    )
    n = _notify_creator(
        db, actor, inv, NotificationType.invoice_sent,
        "Invoice sent", f"Invoice {inv.invoice_number} was sent to the client",
    )
    db.commit()
    db.refresh(inv)

    _emit(inv)
    publish_activity(a)
    notifications.publish(n)
    return inv

def _mark_paid(db: Session, actor: User, inv: Invoice, paid_date: datetime | None) -> Invoice:
    if inv.status != InvoiceStatus.paid:
        validate_transition(INVOICE_TRANSITIONS, inv.status, InvoiceStatus.paid)
    inv.status = InvoiceStatus.paid
    inv.payment_status = PaymentStatus.paid
    inv.paid_date = paid_date or inv.paid_date or now_utc()

    a = record_activity(
        db,
        type=ActivityType.payment_received,
        title=f"Payment received: {inv.invoice_number}",
        user_id=actor.id,
        campaign_id=inv.campaign_id,
        details={"total": str(inv.total)},
    )
    n = _notify_creator(
        db, actor, inv, NotificationType.payment_received,
        "Payment received", f"Invoice {inv.invoice_number} was paid",
    )
    db.commit()
    db.refresh(inv)
    logger.info("invoice %s paid by %s", inv.id, actor.id)

    _emit(inv)
    publish_activity(a)
    notifications.publish(n)
    return inv

def update_payment_status(
    db: Session,
    actor: User,
    invoice_id: uuid.UUID,
    payment_status: PaymentStatus,
    paid_date: datetime | None = None,
    engine: AuthorizationEngine = authz,
) -> Invoice:
    inv = get_live_invoice(db, invoice_id)
    engine.require_resource_access(db, actor.id, Resource.invoices, invoice_id, Action.update)

    payment_status = PaymentStatus(payment_status)
    if payment_status == PaymentStatus.paid:
        return _mark_paid(db, actor, inv, paid_date)
    if inv.status in (InvoiceStatus.paid, InvoiceStatus.cancelled):
        raise InvalidRequestError(f"invoice is {inv.status.value}; payment status is final")

    inv.payment_status = payment_status
    a = record_activity(
        db,
        type=ActivityType.invoice_updated,
        title=f"Invoice {inv.invoice_number} payment: {payment_status.value}",
        user_id=actor.id,
        campaign_id=inv.campaign_id,
    )
    db.commit()
    db.refresh(inv)

    _emit(inv)
    publish_activity(a)
    return inv

def delete_invoice(db: Session, actor: User, invoice_id: uuid.UUID, engine: AuthorizationEngine = authz) -> None:
    inv = get_live_invoice(db, invoice_id)
    engine.require_resource_access(db, actor.id, Resource.invoices, invoice_id, Action.delete)

    inv.deleted_at = now_utc()
    inv.status = InvoiceStatus.cancelled
    db.commit()

    events.publish(events.INVOICE_UPDATED, {"invoice_id": invoice_id, "deleted": True})
