from __future__ import annotations

import logging
import uuid
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from agency_crm import events
from agency_crm.activity import publish_activity, record_activity
from agency_crm.auth.tokens import now_utc
from agency_crm.campaigns.service import get_live_campaign
from agency_crm.errors import NotFoundError
from agency_crm.models.enums import Action, ActivityType, DependencyType, NotificationType, Resource, TaskStatus
from agency_crm.models.task import Task
from agency_crm.models.task_dependency import TaskDependency
from agency_crm.models.user import User
from agency_crm.notifications import service as notifications
from agency_crm.rbac.engine import AuthorizationEngine, authz
from agency_crm.schemas.tasks import TaskCreateIn, TaskOut, TaskUpdateIn
from agency_crm.tasks import graph
from agency_crm.workflow import TASK_TRANSITIONS, validate_transition

logger = logging.getLogger("agency-crm.tasks")

@dataclass
class TaskFilters:
    status: TaskStatus | None = None
    priority: str | None = None
    campaign_id: uuid.UUID | None = None
    assigned_to_id: uuid.UUID | None = None
    created_by_id: uuid.UUID | None = None
    due_from: datetime | None = None
    due_to: datetime | None = None
    search: str | None = None
    skip: int = 0
    take: int = 50

def _require_user(db: Session, user_id: uuid.UUID) -> User:
    u = db.get(User, user_id)
    if u is None:
        raise NotFoundError("user", user_id)
    return u

def _emit_task_updated(t: Task) -> None:
    events.publish(events.TASK_UPDATED, {"task_id": t.id, "task": TaskOut.model_validate(t).model_dump()})

def list_tasks(
    db: Session,
    actor: User,
    filters: TaskFilters,
    engine: AuthorizationEngine = authz,
) -> tuple[list[Task], int]:
    # non-privileged roles only ever list what is assigned to them
    if not engine.sees_all(actor.role, Resource.tasks):
        filters.assigned_to_id = actor.id

    q = select(Task).where(Task.deleted_at.is_(None))
    if filters.status is not None:
        q = q.where(Task.status == filters.status)
    if filters.priority is not None:
        q = q.where(Task.priority == filters.priority)
    if filters.campaign_id is not None:
        q = q.where(Task.campaign_id == filters.campaign_id)
    if filters.assigned_to_id is not None:
        q = q.where(Task.assigned_to_id == filters.assigned_to_id)
    if filters.created_by_id is not None:
        q = q.where(Task.created_by_id == filters.created_by_id)
    if filters.due_from is not None:
        q = q.where(Task.due_date >= filters.due_from)
    if filters.due_to is not None:
        q = q.where(Task.due_date <= filters.due_to)
    if filters.search:
        pattern = f"%{filters.search.strip()}%"
        q = q.where(or_(Task.title.ilike(pattern), Task.description.ilike(pattern)))

    total = db.scalar(select(func.count()).select_from(q.subquery())) or 0
    rows = db.scalars(
        q.order_by(Task.due_date.asc().nulls_last(), Task.created_at.desc())
        .offset(filters.skip)
        .limit(filters.take)
    ).all()
    return list(rows), total

def get_task(db: Session, actor: User, task_id: uuid.UUID, engine: AuthorizationEngine = authz) -> Task:
    t = graph.get_live_task(db, task_id)
    engine.require_resource_access(db, actor.id, Resource.tasks, task_id, Action.read)
    return t

def task_edges(db: Session, task_id: uuid.UUID) -> tuple[list[TaskDependency], list[TaskDependency]]:
    dependencies = db.scalars(select(TaskDependency).where(TaskDependency.task_id == task_id)).all()
    dependents = db.scalars(select(TaskDependency).where(TaskDependency.depends_on_id == task_id)).all()
    return list(dependencies), list(dependents)

def create_task(db: Session, actor: User, payload: TaskCreateIn) -> Task:
    if payload.campaign_id is not None:
        get_live_campaign(db, payload.campaign_id)
    if payload.assigned_to_id is not None:
        _require_user(db, payload.assigned_to_id)

    t = Task(
        title=payload.title,
        description=payload.description,
        campaign_id=payload.campaign_id,
        status=TaskStatus.not_started,
        priority=payload.priority,
        start_date=payload.start_date,
        due_date=payload.due_date,
        estimated_hours=payload.estimated_hours,
        created_by_id=actor.id,
        assigned_to_id=payload.assigned_to_id,
    )
    db.add(t)
    db.flush()

    a = record_activity(
        db,
        type=ActivityType.task_created,
        title=f"Task created: {t.title}",
        user_id=actor.id,
        task_id=t.id,
        campaign_id=t.campaign_id,
    )
    n = None
    if t.assigned_to_id is not None and t.assigned_to_id != actor.id:
        n = notifications.notify(
            db,
            t.assigned_to_id,
            NotificationType.task_assigned,
            "New task assigned",
            f'You were assigned "{t.title}"',
            link=f"/tasks/{t.id}",
        )
    db.commit()
    db.refresh(t)

    _emit_task_updated(t)
    publish_activity(a)
    notifications.publish(n)
    return t

def update_task(
    db: Session,
    actor: User,
    task_id: uuid.UUID,
    payload: TaskUpdateIn,
    engine: AuthorizationEngine = authz,
) -> Task:
    t = graph.get_live_task(db, task_id)
    engine.require_resource_access(db, actor.id, Resource.tasks, task_id, Action.update)

    fields = payload.model_fields_set
    if payload.title is not None:
        t.title = payload.title
    if payload.priority is not None:
        t.priority = payload.priority
    for name in ("description", "start_date", "due_date", "estimated_hours"):
        if name in fields:
            setattr(t, name, getattr(payload, name))

    # explicit null clears the link
    if "assigned_to_id" in fields:
        if payload.assigned_to_id is not None:
            _require_user(db, payload.assigned_to_id)
        t.assigned_to_id = payload.assigned_to_id
    if "campaign_id" in fields:
        if payload.campaign_id is not None:
            get_live_campaign(db, payload.campaign_id)
        t.campaign_id = payload.campaign_id

    a = record_activity(
        db,
        type=ActivityType.task_updated,
        title=f"Task updated: {t.title}",
        user_id=actor.id,
        task_id=t.id,
    )
    db.commit()
    db.refresh(t)

    _emit_task_updated(t)
    publish_activity(a)
    return t

def transition_task(t: Task, new_status: TaskStatus, at: datetime | None = None) -> TaskStatus:
    """Apply a status change to a loaded task and return the previous status."""
    new_status = TaskStatus(new_status)
    validate_transition(TASK_TRANSITIONS, t.status, new_status)

    at = at or now_utc()
    old = t.status
    t.status = new_status
    if new_status == TaskStatus.completed:
        t.completed_at = at
    elif new_status == TaskStatus.in_progress and t.start_date is None:
        t.start_date = at
    return old

def update_status(
    db: Session,
    actor: User,
    task_id: uuid.UUID,
    new_status: TaskStatus,
    engine: AuthorizationEngine = authz,
) -> Task:
    t = graph.get_live_task(db, task_id)
    engine.require_resource_access(db, actor.id, Resource.tasks, task_id, Action.update)

    old = transition_task(t, new_status)
    a = record_activity(
        db,
        type=ActivityType.task_completed if t.status == TaskStatus.completed else ActivityType.task_updated,
        title=f"Task status changed: {t.title} -> {t.status.value}",
        user_id=actor.id,
        task_id=t.id,
        campaign_id=t.campaign_id,
        details={"old_status": old.value, "new_status": t.status.value},
    )
    n = None
    if t.assigned_to_id is not None and t.assigned_to_id != actor.id:
        n = notifications.notify(
            db,
            t.assigned_to_id,
            NotificationType.task_updated,
            "Task updated",
            f'Task "{t.title}" status changed to {t.status.value}',
            link=f"/tasks/{t.id}",
        )
    db.commit()
    db.refresh(t)
    logger.info("task %s: %s -> %s by %s", t.id, old.value, t.status.value, actor.id)

    events.publish(
        events.TASK_STATUS_CHANGED,
        {"task_id": t.id, "old_status": old.value, "new_status": t.status.value},
    )
    _emit_task_updated(t)
    publish_activity(a)
    notifications.publish(n)
    return t

def update_time_tracking(
    db: Session,
    actor: User,
    task_id: uuid.UUID,
    actual_hours: Decimal,
    engine: AuthorizationEngine = authz,
) -> Task:
    t = graph.get_live_task(db, task_id)
    engine.require_resource_access(db, actor.id, Resource.tasks, task_id, Action.update)

    t.actual_hours = actual_hours
    db.commit()
    db.refresh(t)
    _emit_task_updated(t)
    return t

def delete_task(db: Session, actor: User, task_id: uuid.UUID, engine: AuthorizationEngine = authz) -> None:
    t = graph.get_live_task(db, task_id)
    engine.require_resource_access(db, actor.id, Resource.tasks, task_id, Action.delete)

    # tombstone; edges go with it so the graph never points at a deleted task
    t.deleted_at = now_utc()
    t.status = TaskStatus.cancelled
    dropped = graph.detach_task(db, task_id)
    db.commit()
    logger.info("soft-deleted task %s (%d dependency edges dropped)", task_id, dropped)

    events.publish(events.TASK_UPDATED, {"task_id": task_id, "deleted": True})

def add_dependency(
    db: Session,
    actor: User,
    task_id: uuid.UUID,
    depends_on_id: uuid.UUID,
    kind: DependencyType = DependencyType.finish_to_start,
    engine: AuthorizationEngine = authz,
) -> TaskDependency:
    graph.get_live_task(db, task_id)
    engine.require_resource_access(db, actor.id, Resource.tasks, task_id, Action.update)

    edge = graph.add_dependency(db, task_id, depends_on_id, kind)
    events.publish(
        events.TASK_DEPENDENCY_ADDED,
        {"task_id": task_id, "depends_on_id": depends_on_id, "type": edge.type.value},
    )
    return edge

def remove_dependency(
    db: Session,
    actor: User,
    task_id: uuid.UUID,
    depends_on_id: uuid.UUID,
    engine: AuthorizationEngine = authz,
) -> bool:
    graph.get_live_task(db, task_id)
    engine.require_resource_access(db, actor.id, Resource.tasks, task_id, Action.update)

    removed = graph.remove_dependency(db, task_id, depends_on_id)
    if removed:
        events.publish(
            events.TASK_DEPENDENCY_REMOVED,
            {"task_id": task_id, "depends_on_id": depends_on_id},
        )
    return removed

def gantt(db: Session, campaign_id: uuid.UUID | None = None) -> Iterator[graph.ScheduleEntry]:
    if campaign_id is not None:
        get_live_campaign(db, campaign_id)
    return graph.schedule_view(db, campaign_id)
