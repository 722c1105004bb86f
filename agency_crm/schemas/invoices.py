import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from agency_crm.models.enums import InvoiceStatus, PaymentStatus

class InvoiceCreateIn(BaseModel):
    client_id: uuid.UUID
    campaign_id: uuid.UUID | None = None
    subtotal: Decimal = Field(gt=0)
    tax: Decimal = Field(default=Decimal("0"), ge=0)
    discount: Decimal = Field(default=Decimal("0"), ge=0)
    issue_date: datetime | None = None
    due_date: datetime | None = None
    notes: str | None = None

class InvoiceUpdateIn(BaseModel):
    # status moves through /status, /send and /payment-status only
    subtotal: Decimal | None = Field(default=None, gt=0)
    tax: Decimal | None = Field(default=None, ge=0)
    discount: Decimal | None = Field(default=None, ge=0)
    issue_date: datetime | None = None
    due_date: datetime | None = None
    notes: str | None = None

class InvoiceStatusIn(BaseModel):
    status: InvoiceStatus

class PaymentStatusIn(BaseModel):
    payment_status: PaymentStatus
    paid_date: datetime | None = None

class InvoiceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    client_id: uuid.UUID
    campaign_id: uuid.UUID | None
    invoice_number: str
    subtotal: Decimal
    tax: Decimal
    discount: Decimal
    total: Decimal
    status: InvoiceStatus
    payment_status: PaymentStatus
    issue_date: datetime | None
    due_date: datetime | None
    paid_date: datetime | None
    notes: str | None
    created_by_id: uuid.UUID
    created_at: datetime
