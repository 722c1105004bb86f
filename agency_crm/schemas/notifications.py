import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict

from agency_crm.models.enums import NotificationType

class NotificationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    type: NotificationType
    title: str
    message: str
    link: str | None
    read: bool
    read_at: datetime | None
    created_at: datetime

class UnreadCountOut(BaseModel):
    count: int

class PreferencesIn(BaseModel):
    in_app: bool | None = None
    task_assigned: bool | None = None
    task_updated: bool | None = None
    campaign_update: bool | None = None
    invoice_sent: bool | None = None
    payment_received: bool | None = None
    expense_reviewed: bool | None = None

class PreferencesOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    in_app: bool
    task_assigned: bool
    task_updated: bool
    campaign_update: bool
    invoice_sent: bool
    payment_received: bool
    expense_reviewed: bool
