import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, EmailStr, Field

class ClientCreateIn(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    company: str | None = None
    email: EmailStr | None = None
    notes: str | None = None
    # managers/admins may hand a client to someone else; defaults to the caller
    owner_id: uuid.UUID | None = None

class ClientUpdateIn(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    company: str | None = None
    email: EmailStr | None = None
    notes: str | None = None

class ClientOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    company: str | None
    email: str | None
    notes: str | None
    owner_id: uuid.UUID
    created_at: datetime

class ContactCreateIn(BaseModel):
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    email: EmailStr | None = None
    phone: str | None = Field(default=None, max_length=50)
    title: str | None = Field(default=None, max_length=100)
    is_primary: bool = False
    notes: str | None = None

class ContactUpdateIn(BaseModel):
    first_name: str | None = Field(default=None, min_length=1, max_length=100)
    last_name: str | None = Field(default=None, min_length=1, max_length=100)
    email: EmailStr | None = None
    phone: str | None = Field(default=None, max_length=50)
    title: str | None = Field(default=None, max_length=100)
    is_primary: bool | None = None
    notes: str | None = None

class ContactOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    client_id: uuid.UUID
    first_name: str
    last_name: str
    email: str | None
    phone: str | None
    title: str | None
    is_primary: bool
    notes: str | None
    created_at: datetime

class ClientMetricsOut(BaseModel):
    client_id: uuid.UUID
    total_revenue: Decimal
    active_campaigns: int
    completed_campaigns: int
    total_tasks: int
    completed_tasks: int
    total_invoices: int
    overdue_invoices: int
