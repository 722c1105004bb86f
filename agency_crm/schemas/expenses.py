import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from agency_crm.models.enums import ExpenseStatus

class ExpenseCreateIn(BaseModel):
    description: str = Field(min_length=1, max_length=400)
    amount: Decimal = Field(gt=0)
    category: str | None = Field(default=None, max_length=100)
    receipt_url: str | None = Field(default=None, max_length=1000)
    expense_date: datetime | None = None
    notes: str | None = None

class ExpenseUpdateIn(BaseModel):
    description: str | None = Field(default=None, min_length=1, max_length=400)
    amount: Decimal | None = Field(default=None, gt=0)
    category: str | None = Field(default=None, max_length=100)
    receipt_url: str | None = Field(default=None, max_length=1000)
    expense_date: datetime | None = None
    notes: str | None = None

class ExpenseOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    description: str
    amount: Decimal
    category: str | None
    receipt_url: str | None
    expense_date: datetime
    notes: str | None
    status: ExpenseStatus
    created_by_id: uuid.UUID
    approved_by_id: uuid.UUID | None
    approved_at: datetime | None
    created_at: datetime
