from __future__ import annotations

import logging
import uuid
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from agency_crm.activity import publish_activity, record_activity
from agency_crm.auth.tokens import now_utc
from agency_crm.errors import InsufficientPermissionsError, NotFoundError
from agency_crm.models.enums import Action, ActivityType, ExpenseStatus, NotificationType, Resource
from agency_crm.models.expense import Expense
from agency_crm.models.user import User
from agency_crm.notifications import service as notifications
from agency_crm.rbac.engine import AuthorizationEngine, authz
from agency_crm.schemas.expenses import ExpenseCreateIn, ExpenseUpdateIn
from agency_crm.workflow import EXPENSE_TRANSITIONS, validate_transition

logger = logging.getLogger("agency-crm.expenses")

def get_live_expense(db: Session, expense_id: uuid.UUID) -> Expense:
    e = db.get(Expense, expense_id)
    if e is None or e.deleted_at is not None:
        raise NotFoundError("expense", expense_id)
    return e

def list_expenses(
    db: Session,
    actor: User,
    status: ExpenseStatus | None = None,
    category: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    skip: int = 0,
    take: int = 50,
    engine: AuthorizationEngine = authz,
) -> list[Expense]:
    q = select(Expense).where(Expense.deleted_at.is_(None))
    if not engine.sees_all(actor.role, Resource.expenses):
        q = q.where(Expense.created_by_id == actor.id)
    if status is not None:
        q = q.where(Expense.status == status)
    if category:
        q = q.where(Expense.category == category)
    if start is not None:
        q = q.where(Expense.expense_date >= start)
    if end is not None:
        q = q.where(Expense.expense_date <= end)
    return list(db.scalars(q.order_by(Expense.expense_date.desc()).offset(skip).limit(take)).all())

def get_expense(db: Session, actor: User, expense_id: uuid.UUID, engine: AuthorizationEngine = authz) -> Expense:
    e = get_live_expense(db, expense_id)
    engine.require_resource_access(db, actor.id, Resource.expenses, expense_id, Action.read)
    return e

def create_expense(db: Session, actor: User, payload: ExpenseCreateIn) -> Expense:
    e = Expense(
        description=payload.description,
        amount=payload.amount,
        category=payload.category,
        receipt_url=payload.receipt_url,
        expense_date=payload.expense_date or now_utc(),
        notes=payload.notes,
        status=ExpenseStatus.pending,
        created_by_id=actor.id,
    )
    db.add(e)
    db.flush()
    a = record_activity(
        db,
        type=ActivityType.expense_created,
        title=f"Expense submitted: {e.description}",
        user_id=actor.id,
        details={"amount": str(e.amount), "category": e.category},
    )
    db.commit()
    db.refresh(e)

    publish_activity(a)
    return e

def _require_edit(
    db: Session, actor: User, e: Expense, action: Action, engine: AuthorizationEngine
) -> None:
    engine.require_resource_access(db, actor.id, Resource.expenses, e.id, action)
    # past this point a non-privileged actor is the creator; reviewed expenses are frozen for them
    if e.status != ExpenseStatus.pending and not engine.sees_all(actor.role, Resource.expenses):
        raise InsufficientPermissionsError(f"expense is {e.status.value}; only pending expenses can be changed")

def update_expense(
    db: Session,
    actor: User,
    expense_id: uuid.UUID,
    payload: ExpenseUpdateIn,
    engine: AuthorizationEngine = authz,
) -> Expense:
    e = get_live_expense(db, expense_id)
    _require_edit(db, actor, e, Action.update, engine)

    fields = payload.model_fields_set
    for name in ("description", "amount", "expense_date"):
        if getattr(payload, name) is not None:
            setattr(e, name, getattr(payload, name))
    for name in ("category", "receipt_url", "notes"):
        if name in fields:
            setattr(e, name, getattr(payload, name))

    a = record_activity(
        db,
        type=ActivityType.expense_updated,
        title=f"Expense updated: {e.description}",
        user_id=actor.id,
    )
    db.commit()
    db.refresh(e)

    publish_activity(a)
    return e

def review_expense(
    db: Session,
    actor: User,
    expense_id: uuid.UUID,
    decision: ExpenseStatus,
    engine: AuthorizationEngine = authz,
) -> Expense:
    e = get_live_expense(db, expense_id)
    engine.require_resource_access(db, actor.id, Resource.expenses, expense_id, Action.update)
    if not engine.sees_all(actor.role, Resource.expenses):
        raise InsufficientPermissionsError("only finance may approve or reject expenses")

    decision = ExpenseStatus(decision)
    validate_transition(EXPENSE_TRANSITIONS, e.status, decision)
    e.status = decision
    e.approved_by_id = actor.id
    e.approved_at = now_utc()

    a = record_activity(
        db,
        type=ActivityType.expense_updated,
        title=f"Expense {decision.value}: {e.description}",
        user_id=actor.id,
        details={"new_status": decision.value},
    )
    n = None
    if e.created_by_id != actor.id:
        n = notifications.notify(
            db,
            e.created_by_id,
            NotificationType.expense_reviewed,
            f"Expense {decision.value}",
            f'Your expense "{e.description}" was {decision.value}',
            link=f"/expenses/{e.id}",
        )
    db.commit()
    db.refresh(e)
    logger.info("expense %s %s by %s", e.id, decision.value, actor.id)

    publish_activity(a)
    notifications.publish(n)
    return e

def approve_expense(db: Session, actor: User, expense_id: uuid.UUID, engine: AuthorizationEngine = authz) -> Expense:
    return review_expense(db, actor, expense_id, ExpenseStatus.approved, engine)

def reject_expense(db: Session, actor: User, expense_id: uuid.UUID, engine: AuthorizationEngine = authz) -> Expense:
    return review_expense(db, actor, expense_id, ExpenseStatus.rejected, engine)

def delete_expense(db: Session, actor: User, expense_id: uuid.UUID, engine: AuthorizationEngine = authz) -> None:
    e = get_live_expense(db, expense_id)
    _require_edit(db, actor, e, Action.delete, engine)

    e.deleted_at = now_utc()
    db.commit()
