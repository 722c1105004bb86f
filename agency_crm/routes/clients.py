import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from agency_crm.clients import service
from agency_crm.db import get_db
from agency_crm.models.enums import Action, Resource
from agency_crm.models.user import User
from agency_crm.rbac.deps import get_authz, require_perm
from agency_crm.rbac.engine import AuthorizationEngine
from agency_crm.schemas.clients import (
    ClientCreateIn,
    ClientMetricsOut,
    ClientOut,
    ClientUpdateIn,
    ContactCreateIn,
    ContactOut,
    ContactUpdateIn,
)

router = APIRouter(prefix="/api/clients", tags=["clients"])

@router.get("", response_model=list[ClientOut])
def list_clients(
    search: str | None = None,
    skip: int = Query(default=0, ge=0),
    take: int = Query(default=50, ge=1, le=200),
    user: User = Depends(require_perm(Resource.clients, Action.read)),
    engine: AuthorizationEngine = Depends(get_authz),
    db: Session = Depends(get_db),
) -> list[ClientOut]:
    return [ClientOut.model_validate(r) for r in service.list_clients(db, user, search, skip, take, engine)]

@router.post("", response_model=ClientOut, status_code=201)
def create_client(
    payload: ClientCreateIn,
    user: User = Depends(require_perm(Resource.clients, Action.create)),
    engine: AuthorizationEngine = Depends(get_authz),
    db: Session = Depends(get_db),
) -> ClientOut:
    return ClientOut.model_validate(service.create_client(db, user, payload, engine))

@router.get("/{client_id}", response_model=ClientOut)
def get_client(
    client_id: uuid.UUID,
    user: User = Depends(require_perm(Resource.clients, Action.read)),
    engine: AuthorizationEngine = Depends(get_authz),
    db: Session = Depends(get_db),
) -> ClientOut:
    return ClientOut.model_validate(service.get_client(db, user, client_id, engine))

@router.put("/{client_id}", response_model=ClientOut)
def update_client(
    client_id: uuid.UUID,
    payload: ClientUpdateIn,
    user: User = Depends(require_perm(Resource.clients, Action.update)),
    engine: AuthorizationEngine = Depends(get_authz),
    db: Session = Depends(get_db),
) -> ClientOut:
    return ClientOut.model_validate(service.update_client(db, user, client_id, payload, engine))

@router.delete("/{client_id}")
def delete_client(
    client_id: uuid.UUID,
    user: User = Depends(require_perm(Resource.clients, Action.delete)),
    engine: AuthorizationEngine = Depends(get_authz),
    db: Session = Depends(get_db),
) -> dict:
    service.delete_client(db, user, client_id, engine)
    return {"deleted": True}

@router.get("/{client_id}/metrics", response_model=ClientMetricsOut)
def client_metrics(
    client_id: uuid.UUID,
    user: User = Depends(require_perm(Resource.clients, Action.read)),
    engine: AuthorizationEngine = Depends(get_authz),
    db: Session = Depends(get_db),
) -> ClientMetricsOut:
    return service.client_metrics(db, user, client_id, engine=engine)

@router.get("/{client_id}/contacts", response_model=list[ContactOut])
def list_contacts(
    client_id: uuid.UUID,
    user: User = Depends(require_perm(Resource.clients, Action.read)),
    engine: AuthorizationEngine = Depends(get_authz),
    db: Session = Depends(get_db),
) -> list[ContactOut]:
    return [ContactOut.model_validate(r) for r in service.list_contacts(db, user, client_id, engine)]

@router.post("/{client_id}/contacts", response_model=ContactOut, status_code=201)
def add_contact(
    client_id: uuid.UUID,
    payload: ContactCreateIn,
    user: User = Depends(require_perm(Resource.clients, Action.update)),
    engine: AuthorizationEngine = Depends(get_authz),
    db: Session = Depends(get_db),
) -> ContactOut:
    return ContactOut.model_validate(service.add_contact(db, user, client_id, payload, engine))

@router.put("/{client_id}/contacts/{contact_id}", response_model=ContactOut)
def update_contact(
    client_id: uuid.UUID,
    contact_id: uuid.UUID,
    payload: ContactUpdateIn,
    user: User = Depends(require_perm(Resource.clients, Action.update)),
    engine: AuthorizationEngine = Depends(get_authz),
    db: Session = Depends(get_db),
) -> ContactOut:
    ct = service.update_contact(db, user, client_id, contact_id, payload, engine)
    return ContactOut.model_validate(ct)

@router.delete("/{client_id}/contacts/{contact_id}")
def delete_contact(
    client_id: uuid.UUID,
    contact_id: uuid.UUID,
    user: User = Depends(require_perm(Resource.clients, Action.update)),
    engine: AuthorizationEngine = Depends(get_authz),
    db: Session = Depends(get_db),
) -> dict:
    service.delete_contact(db, user, client_id, contact_id, engine)
    return {"deleted": True}
