import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from agency_crm.db import get_db
from agency_crm.models.enums import Action, Resource, TaskPriority, TaskStatus
from agency_crm.models.user import User
from agency_crm.rbac.deps import get_authz, require_perm
from agency_crm.rbac.engine import AuthorizationEngine
from agency_crm.schemas.tasks import (
    DependencyIn,
    DependencyOut,
    GanttEntryOut,
    TaskCreateIn,
    TaskDetailOut,
    TaskListOut,
    TaskOut,
    TaskStatusIn,
    TaskUpdateIn,
    TimeTrackingIn,
)
from agency_crm.tasks import service
from agency_crm.tasks.service import TaskFilters

router = APIRouter(prefix="/api/tasks", tags=["tasks"])

@router.get("", response_model=TaskListOut)
def list_tasks(
    status: TaskStatus | None = None,
    priority: TaskPriority | None = None,
    campaign_id: uuid.UUID | None = None,
    assigned_to_id: uuid.UUID | None = None,
    created_by_id: uuid.UUID | None = None,
    due_from: datetime | None = None,
    due_to: datetime | None = None,
    search: str | None = None,
    skip: int = Query(default=0, ge=0),
    take: int = Query(default=50, ge=1, le=200),
    user: User = Depends(require_perm(Resource.tasks, Action.read)),
    engine: AuthorizationEngine = Depends(get_authz),
    db: Session = Depends(get_db),
) -> TaskListOut:
    filters = TaskFilters(
        status=status,
        priority=priority,
        campaign_id=campaign_id,
        assigned_to_id=assigned_to_id,
        created_by_id=created_by_id,
        due_from=due_from,
        due_to=due_to,
        search=search,
        skip=skip,
        take=take,
    )
    rows, total = service.list_tasks(db, user, filters, engine)
    return TaskListOut(tasks=[TaskOut.model_validate(r) for r in rows], total=total)

# declared before /{task_id} so "gantt" is not parsed as an id
@router.get("/gantt", response_model=list[GanttEntryOut])
def gantt(
    campaign_id: uuid.UUID | None = None,
    user: User = Depends(require_perm(Resource.tasks, Action.read)),
    db: Session = Depends(get_db),
) -> list[GanttEntryOut]:
    return [GanttEntryOut.model_validate(e) for e in service.gantt(db, campaign_id)]

@router.post("", response_model=TaskOut, status_code=201)
def create_task(
    payload: TaskCreateIn,
    user: User = Depends(require_perm(Resource.tasks, Action.create)),
    db: Session = Depends(get_db),
) -> TaskOut:
    t = service.create_task(db, user, payload)
    return TaskOut.model_validate(t)

@router.get("/{task_id}", response_model=TaskDetailOut)
def get_task(
    task_id: uuid.UUID,
    user: User = Depends(require_perm(Resource.tasks, Action.read)),
    engine: AuthorizationEngine = Depends(get_authz),
    db: Session = Depends(get_db),
) -> TaskDetailOut:
    t = service.get_task(db, user, task_id, engine)
    dependencies, dependents = service.task_edges(db, task_id)
    out = TaskDetailOut.model_validate(t)
    out.dependencies = [DependencyOut.model_validate(d) for d in dependencies]
    out.dependents = [DependencyOut.model_validate(d) for d in dependents]
    return out

@router.put("/{task_id}", response_model=TaskOut)
def update_task(
    task_id: uuid.UUID,
    payload: TaskUpdateIn,
    user: User = Depends(require_perm(Resource.tasks, Action.update)),
    engine: AuthorizationEngine = Depends(get_authz),
    db: Session = Depends(get_db),
) -> TaskOut:
    t = service.update_task(db, user, task_id, payload, engine)
    return TaskOut.model_validate(t)

@router.put("/{task_id}/status", response_model=TaskOut)
def update_status(
    task_id: uuid.UUID,
    payload: TaskStatusIn,
    user: User = Depends(require_perm(Resource.tasks, Action.update)),
    engine: AuthorizationEngine = Depends(get_authz),
    db: Session = Depends(get_db),
) -> TaskOut:
    t = service.update_status(db, user, task_id, payload.status, engine)
    return TaskOut.model_validate(t)

@router.put("/{task_id}/time-tracking", response_model=TaskOut)
def update_time_tracking(
    task_id: uuid.UUID,
    payload: TimeTrackingIn,
    user: User = Depends(require_perm(Resource.tasks, Action.update)),
    engine: AuthorizationEngine = Depends(get_authz),
    db: Session = Depends(get_db),
) -> TaskOut:
    t = service.update_time_tracking(db, user, task_id, payload.actual_hours, engine)
    return TaskOut.model_validate(t)

@router.delete("/{task_id}")
def delete_task(
    task_id: uuid.UUID,
    user: User = Depends(require_perm(Resource.tasks, Action.delete)),
    engine: AuthorizationEngine = Depends(get_authz),
    db: Session = Depends(get_db),
) -> dict:
    service.delete_task(db, user, task_id, engine)
    return {"deleted": True}

@router.post("/{task_id}/dependencies", response_model=DependencyOut, status_code=201)
def add_dependency(
    task_id: uuid.UUID,
    payload: DependencyIn,
    user: User = Depends(require_perm(Resource.tasks, Action.update)),
    engine: AuthorizationEngine = Depends(get_authz),
    db: Session = Depends(get_db),
) -> DependencyOut:
    edge = service.add_dependency(db, user, task_id, payload.depends_on_id, payload.type, engine)
    return DependencyOut.model_validate(edge)

@router.delete("/{task_id}/dependencies/{depends_on_id}")
def remove_dependency(
    task_id: uuid.UUID,
    depends_on_id: uuid.UUID,
    user: User = Depends(require_perm(Resource.tasks, Action.update)),
    engine: AuthorizationEngine = Depends(get_authz),
    db: Session = Depends(get_db),
) -> dict:
    removed = service.remove_dependency(db, user, task_id, depends_on_id, engine)
    return {"removed": removed}
