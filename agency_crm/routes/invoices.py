import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from agency_crm.db import get_db
from agency_crm.invoices import service
from agency_crm.models.enums import Action, InvoiceStatus, PaymentStatus, Resource
from agency_crm.models.user import User
from agency_crm.rbac.deps import get_authz, require_perm
from agency_crm.rbac.engine import AuthorizationEngine
from agency_crm.schemas.invoices import (
    InvoiceCreateIn,
    InvoiceOut,
    InvoiceStatusIn,
    InvoiceUpdateIn,
    PaymentStatusIn,
)

router = APIRouter(prefix="/api/invoices", tags=["invoices"])

@router.get("", response_model=list[InvoiceOut])
def list_invoices(
    status: InvoiceStatus | None = None,
    payment_status: PaymentStatus | None = None,
    client_id: uuid.UUID | None = None,
    skip: int = Query(default=0, ge=0),
    take: int = Query(default=50, ge=1, le=200),
    user: User = Depends(require_perm(Resource.invoices, Action.read)),
    engine: AuthorizationEngine = Depends(get_authz),
    db: Session = Depends(get_db),
) -> list[InvoiceOut]:
    rows = service.list_invoices(db, user, status, payment_status, client_id, skip, take, engine)
    return [InvoiceOut.model_validate(r) for r in rows]

@router.get("/overdue", response_model=list[InvoiceOut])
def list_overdue(
    user: User = Depends(require_perm(Resource.invoices, Action.read)),
    engine: AuthorizationEngine = Depends(get_authz),
    db: Session = Depends(get_db),
) -> list[InvoiceOut]:
    return [InvoiceOut.model_validate(r) for r in service.list_overdue(db, user, engine=engine)]

@router.post("", response_model=InvoiceOut, status_code=201)
def create_invoice(
    payload: InvoiceCreateIn,
    user: User = Depends(require_perm(Resource.invoices, Action.create)),
    db: Session = Depends(get_db),
) -> InvoiceOut:
    return InvoiceOut.model_validate(service.create_invoice(db, user, payload))

@router.get("/{invoice_id}", response_model=InvoiceOut)
def get_invoice(
    invoice_id: uuid.UUID,
    user: User = Depends(require_perm(Resource.invoices, Action.read)),
    engine: AuthorizationEngine = Depends(get_authz),
    db: Session = Depends(get_db),
) -> InvoiceOut:
    return InvoiceOut.model_validate(service.get_invoice(db, user, invoice_id, engine))

@router.put("/{invoice_id}", response_model=InvoiceOut)
def update_invoice(
    invoice_id: uuid.UUID,
    payload: InvoiceUpdateIn,
    user: User = Depends(require_perm(Resource.invoices, Action.update)),
    engine: AuthorizationEngine = Depends(get_authz),
    db: Session = Depends(get_db),
) -> InvoiceOut:
    return InvoiceOut.model_validate(service.update_invoice(db, user, invoice_id, payload, engine))

@router.put("/{invoice_id}/status", response_model=InvoiceOut)
def update_invoice_status(
    invoice_id: uuid.UUID,
    payload: InvoiceStatusIn,
    user: User = Depends(require_perm(Resource.invoices, Action.update)),
    engine: AuthorizationEngine = Depends(get_authz),
    db: Session = Depends(get_db),
) -> InvoiceOut:
    return InvoiceOut.model_validate(service.update_status(db, user, invoice_id, payload.status, engine))

@router.post("/{invoice_id}/send", response_model=InvoiceOut)
def send_invoice(
    invoice_id: uuid.UUID,
    user: User = Depends(require_perm(Resource.invoices, Action.update)),
    engine: AuthorizationEngine = Depends(get_authz),
    db: Session = Depends(get_db),
) -> InvoiceOut:
    return InvoiceOut.model_validate(service.send_invoice(db, user, invoice_id, engine))

@router.put("/{invoice_id}/payment-status", response_model=InvoiceOut)
def update_payment_status(
    invoice_id: uuid.UUID,
    payload: PaymentStatusIn,
    user: User = Depends(require_perm(Resource.invoices, Action.update)),
    engine: AuthorizationEngine = Depends(get_authz),
    db: Session = Depends(get_db),
) -> InvoiceOut:
    inv = service.update_payment_status(db, user, invoice_id, payload.payment_status, payload.paid_date, engine)
    return InvoiceOut.model_validate(inv)

@router.delete("/{invoice_id}")
def delete_invoice(
    invoice_id: uuid.UUID,
    user: User = Depends(require_perm(Resource.invoices, Action.delete)),
    engine: AuthorizationEngine = Depends(get_authz),
    db: Session = Depends(get_db),
) -> dict:
    service.delete_invoice(db, user, invoice_id, engine)
    return {"deleted": True}
