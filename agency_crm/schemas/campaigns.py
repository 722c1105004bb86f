import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from agency_crm.models.enums import CampaignStatus

class CampaignCreateIn(BaseModel):
    client_id: uuid.UUID
    name: str = Field(min_length=1, max_length=200)
    type: str | None = Field(default=None, max_length=50)
    description: str | None = None
    budget: Decimal | None = Field(default=None, ge=0)
    actual_spend: Decimal | None = Field(default=None, ge=0)
    kpi_target: dict[str, float] | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    assigned_to_id: uuid.UUID | None = None

class CampaignUpdateIn(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    type: str | None = Field(default=None, max_length=50)
    description: str | None = None
    budget: Decimal | None = Field(default=None, ge=0)
    actual_spend: Decimal | None = Field(default=None, ge=0)
    kpi_target: dict[str, float] | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    assigned_to_id: uuid.UUID | None = None

class CampaignStatusIn(BaseModel):
    status: CampaignStatus

class CampaignOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    client_id: uuid.UUID
    name: str
    type: str | None
    description: str | None
    status: CampaignStatus
    budget: Decimal | None
    actual_spend: Decimal | None
    kpi_target: dict[str, float] | None
    kpi_actual: dict[str, float] | None
    start_date: datetime | None
    end_date: datetime | None
    created_by_id: uuid.UUID
    assigned_to_id: uuid.UUID | None
    created_at: datetime

class KpiUpdateIn(BaseModel):
    # merged into kpi_actual; names not sent are left alone
    kpis: dict[str, float] = Field(min_length=1)

class KpiProgressOut(BaseModel):
    target: float
    actual: float
    progress: float

class CampaignMetricsOut(BaseModel):
    campaign_id: uuid.UUID
    budget: Decimal
    actual_spend: Decimal
    budget_remaining: Decimal
    budget_utilization: float
    total_tasks: int
    completed_tasks: int
    in_progress_tasks: int
    not_started_tasks: int
    kpi_progress: dict[str, KpiProgressOut]
