import uuid
from decimal import Decimal

from pydantic import BaseModel

class CampaignRoiOut(BaseModel):
    campaign_id: uuid.UUID
    campaign_name: str
    revenue: Decimal
    spend: Decimal
    roi: float

class UtilizationOut(BaseModel):
    user_id: uuid.UUID
    user_name: str
    billable_hours: Decimal
    available_hours: int
    utilization: float

class OnTimeOut(BaseModel):
    total_completed: int
    completed_on_time: int
    on_time_percentage: float

class ClientProfitabilityOut(BaseModel):
    client_id: uuid.UUID
    client_name: str
    revenue: Decimal
    expenses: Decimal
    profit: Decimal
    profit_margin: float

class BudgetAccuracyOut(BaseModel):
    campaign_id: uuid.UUID
    campaign_name: str
    budget: Decimal
    actual_spend: Decimal
    variance: Decimal
    variance_percentage: float

class DashboardOut(BaseModel):
    total_clients: int
    active_campaigns: int
    total_tasks: int
    completed_tasks: int
    total_revenue: Decimal
    outstanding_revenue: Decimal
    pending_invoices: int
    overdue_invoices: int
