import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from agency_crm.campaigns import service
from agency_crm.db import get_db
from agency_crm.models.enums import Action, CampaignStatus, Resource
from agency_crm.models.user import User
from agency_crm.rbac.deps import get_authz, require_perm
from agency_crm.rbac.engine import AuthorizationEngine
from agency_crm.schemas.campaigns import (
    CampaignCreateIn,
    CampaignMetricsOut,
    CampaignOut,
    CampaignStatusIn,
    CampaignUpdateIn,
    KpiUpdateIn,
)

router = APIRouter(prefix="/api/campaigns", tags=["campaigns"])

@router.get("", response_model=list[CampaignOut])
def list_campaigns(
    status: CampaignStatus | None = None,
    client_id: uuid.UUID | None = None,
    skip: int = Query(default=0, ge=0),
    take: int = Query(default=50, ge=1, le=200),
    user: User = Depends(require_perm(Resource.campaigns, Action.read)),
    engine: AuthorizationEngine = Depends(get_authz),
    db: Session = Depends(get_db),
) -> list[CampaignOut]:
    rows, _ = service.list_campaigns(db, user, status, client_id, skip, take, engine)
    return [CampaignOut.model_validate(r) for r in rows]

@router.post("", response_model=CampaignOut, status_code=201)
def create_campaign(
    payload: CampaignCreateIn,
    user: User = Depends(require_perm(Resource.campaigns, Action.create)),
    db: Session = Depends(get_db),
) -> CampaignOut:
    return CampaignOut.model_validate(service.create_campaign(db, user, payload))

@router.get("/{campaign_id}", response_model=CampaignOut)
def get_campaign(
    campaign_id: uuid.UUID,
    user: User = Depends(require_perm(Resource.campaigns, Action.read)),
    engine: AuthorizationEngine = Depends(get_authz),
    db: Session = Depends(get_db),
) -> CampaignOut:
    return CampaignOut.model_validate(service.get_campaign(db, user, campaign_id, engine))

@router.put("/{campaign_id}", response_model=CampaignOut)
def update_campaign(
    campaign_id: uuid.UUID,
    payload: CampaignUpdateIn,
    user: User = Depends(require_perm(Resource.campaigns, Action.update)),
    engine: AuthorizationEngine = Depends(get_authz),
    db: Session = Depends(get_db),
) -> CampaignOut:
    return CampaignOut.model_validate(service.update_campaign(db, user, campaign_id, payload, engine))

@router.put("/{campaign_id}/status", response_model=CampaignOut)
def update_campaign_status(
    campaign_id: uuid.UUID,
    payload: CampaignStatusIn,
    user: User = Depends(require_perm(Resource.campaigns, Action.update)),
    engine: AuthorizationEngine = Depends(get_authz),
    db: Session = Depends(get_db),
) -> CampaignOut:
    c = service.update_campaign_status(db, user, campaign_id, payload.status, engine)
    return CampaignOut.model_validate(c)

@router.put("/{campaign_id}/kpis", response_model=CampaignOut)
def update_kpis(
    campaign_id: uuid.UUID,
    payload: KpiUpdateIn,
    user: User = Depends(require_perm(Resource.campaigns, Action.update)),
    engine: AuthorizationEngine = Depends(get_authz),
    db: Session = Depends(get_db),
) -> CampaignOut:
    return CampaignOut.model_validate(service.update_kpis(db, user, campaign_id, payload.kpis, engine))

@router.get("/{campaign_id}/metrics", response_model=CampaignMetricsOut)
def campaign_metrics(
    campaign_id: uuid.UUID,
    user: User = Depends(require_perm(Resource.campaigns, Action.read)),
    engine: AuthorizationEngine = Depends(get_authz),
    db: Session = Depends(get_db),
) -> CampaignMetricsOut:
    return service.campaign_metrics(db, user, campaign_id, engine)

@router.delete("/{campaign_id}")
def delete_campaign(
    campaign_id: uuid.UUID,
    user: User = Depends(require_perm(Resource.campaigns, Action.delete)),
    engine: AuthorizationEngine = Depends(get_authz),
    db: Session = Depends(get_db),
) -> dict:
    service.delete_campaign(db, user, campaign_id, engine)
    return {"deleted": True}
