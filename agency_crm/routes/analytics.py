import uuid
from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from agency_crm.analytics import service
from agency_crm.db import get_db
from agency_crm.models.enums import Action, Resource
from agency_crm.models.user import User
from agency_crm.rbac.deps import get_authz, require_perm
from agency_crm.rbac.engine import AuthorizationEngine
from agency_crm.schemas.analytics import (
    BudgetAccuracyOut,
    CampaignRoiOut,
    ClientProfitabilityOut,
    DashboardOut,
    OnTimeOut,
    UtilizationOut,
)

router = APIRouter(
    prefix="/api/analytics",
    tags=["analytics"],
    dependencies=[Depends(require_perm(Resource.analytics, Action.read))],
)

@router.get("/campaign-roi", response_model=list[CampaignRoiOut])
def campaign_roi(
    start: datetime | None = None,
    end: datetime | None = None,
    client_id: uuid.UUID | None = None,
    campaign_id: uuid.UUID | None = None,
    db: Session = Depends(get_db),
) -> list[CampaignRoiOut]:
    return service.campaign_roi(db, start, end, client_id, campaign_id)

@router.get("/team-utilization", response_model=list[UtilizationOut])
def team_utilization(
    start: datetime | None = None,
    end: datetime | None = None,
    user_id: uuid.UUID | None = None,
    db: Session = Depends(get_db),
) -> list[UtilizationOut]:
    return service.team_utilization(db, start, end, user_id)

@router.get("/task-on-time", response_model=OnTimeOut)
def task_on_time(
    start: datetime | None = None,
    end: datetime | None = None,
    db: Session = Depends(get_db),
) -> OnTimeOut:
    return service.task_on_time(db, start, end)

@router.get("/client-profitability", response_model=list[ClientProfitabilityOut])
def client_profitability(client_id: uuid.UUID | None = None, db: Session = Depends(get_db)) -> list[ClientProfitabilityOut]:
    return service.client_profitability(db, client_id)

@router.get("/budget-accuracy", response_model=list[BudgetAccuracyOut])
def budget_accuracy(
    start: datetime | None = None,
    end: datetime | None = None,
    db: Session = Depends(get_db),
) -> list[BudgetAccuracyOut]:
    return service.budget_accuracy(db, start, end)

@router.get("/dashboard", response_model=DashboardOut)
def dashboard(
    user: User = Depends(require_perm(Resource.analytics, Action.read)),
    engine: AuthorizationEngine = Depends(get_authz),
    db: Session = Depends(get_db),
) -> DashboardOut:
    return service.dashboard(db, user, engine=engine)
