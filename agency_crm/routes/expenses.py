import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from agency_crm.db import get_db
from agency_crm.expenses import service
from agency_crm.models.enums import Action, ExpenseStatus, Resource
from agency_crm.models.user import User
from agency_crm.rbac.deps import get_authz, require_perm
from agency_crm.rbac.engine import AuthorizationEngine
from agency_crm.schemas.expenses import ExpenseCreateIn, ExpenseOut, ExpenseUpdateIn

router = APIRouter(prefix="/api/expenses", tags=["expenses"])

@router.get("", response_model=list[ExpenseOut])
def list_expenses(
    status: ExpenseStatus | None = None,
    category: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    skip: int = Query(default=0, ge=0),
    take: int = Query(default=50, ge=1, le=200),
    user: User = Depends(require_perm(Resource.expenses, Action.read)),
    engine: AuthorizationEngine = Depends(get_authz),
    db: Session = Depends(get_db),
) -> list[ExpenseOut]:
    rows = service.list_expenses(db, user, status, category, start, end, skip, take, engine)
    return [ExpenseOut.model_validate(r) for r in rows]

@router.post("", response_model=ExpenseOut, status_code=201)
def create_expense(
    payload: ExpenseCreateIn,
    user: User = Depends(require_perm(Resource.expenses, Action.create)),
    db: Session = Depends(get_db),
) -> ExpenseOut:
    return ExpenseOut.model_validate(service.create_expense(db, user, payload))

@router.get("/{expense_id}", response_model=ExpenseOut)
def get_expense(
    expense_id: uuid.UUID,
    user: User = Depends(require_perm(Resource.expenses, Action.read)),
    engine: AuthorizationEngine = Depends(get_authz),
    db: Session = Depends(get_db),
) -> ExpenseOut:
    return ExpenseOut.model_validate(service.get_expense(db, user, expense_id, engine))

@router.put("/{expense_id}", response_model=ExpenseOut)
def update_expense(
    expense_id: uuid.UUID,
    payload: ExpenseUpdateIn,
    user: User = Depends(require_perm(Resource.expenses, Action.update)),
    engine: AuthorizationEngine = Depends(get_authz),
    db: Session = Depends(get_db),
) -> ExpenseOut:
    return ExpenseOut.model_validate(service.update_expense(db, user, expense_id, payload, engine))

@router.post("/{expense_id}/approve", response_model=ExpenseOut)
def approve_expense(
    expense_id: uuid.UUID,
    user: User = Depends(require_perm(Resource.expenses, Action.update)),
    engine: AuthorizationEngine = Depends(get_authz),
    db: Session = Depends(get_db),
) -> ExpenseOut:
    return ExpenseOut.model_validate(service.approve_expense(db, user, expense_id, engine))

@router.post("/{expense_id}/reject", response_model=ExpenseOut)
def reject_expense(
    expense_id: uuid.UUID,
    user: User = Depends(require_perm(Resource.expenses, Action.update)),
    engine: AuthorizationEngine = Depends(get_authz),
    db: Session = Depends(get_db),
) -> ExpenseOut:
    return ExpenseOut.model_validate(service.reject_expense(db, user, expense_id, engine))

@router.delete("/{expense_id}")
def delete_expense(
    expense_id: uuid.UUID,
    user: User = Depends(require_perm(Resource.expenses, Action.delete)),
    engine: AuthorizationEngine = Depends(get_authz),
    db: Session = Depends(get_db),
) -> dict:
    service.delete_expense(db, user, expense_id, engine)
    return {"deleted": True}
