# edges run task_id -> depends_on_id and must stay acyclic; check and insert share one locked transaction
from __future__ import annotations

import logging
import threading
import uuid
from collections import defaultdict, deque
from collections.abc import Iterable, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import delete, or_, select, text
from sqlalchemy.orm import Session

from agency_crm.config import settings
from agency_crm.errors import CircularDependencyError, NotFoundError
from agency_crm.models.enums import DependencyType, TaskStatus
from agency_crm.models.task import Task
from agency_crm.models.task_dependency import TaskDependency

logger = logging.getLogger("agency-crm.graph")

# pg_advisory_xact_lock key shared by every dependency writer
GRAPH_LOCK_KEY = 0x7461736B
_local_graph_lock = threading.Lock()

@dataclass(frozen=True)
class ScheduleEntry:
    id: uuid.UUID
    title: str
    start: datetime
    end: datetime
    percent_complete: int
    dependency_ids: tuple[uuid.UUID, ...]

def get_live_task(db: Session, task_id: uuid.UUID) -> Task:
    task = db.get(Task, task_id)
    if task is None or task.deleted_at is not None:
        raise NotFoundError("task", task_id)
    return task

def would_create_cycle(
    adjacency: Mapping[uuid.UUID, Iterable[uuid.UUID]],
    task_id: uuid.UUID,
    depends_on_id: uuid.UUID,
) -> bool:
    """True if adding ``task_id -> depends_on_id`` closes a cycle."""
    if task_id == depends_on_id:
        return True

    seen = {depends_on_id}
    queue = deque([depends_on_id])
    while queue:
        current = queue.popleft()
        for nxt in adjacency.get(current, ()):
            if nxt == task_id:
                return True
            if nxt not in seen:
                seen.add(nxt)
                queue.append(nxt)
    return False

def load_adjacency(db: Session) -> dict[uuid.UUID, list[uuid.UUID]]:
    adjacency: dict[uuid.UUID, list[uuid.UUID]] = defaultdict(list)
    rows = db.execute(select(TaskDependency.task_id, TaskDependency.depends_on_id))
    for task_id, depends_on_id in rows:
        adjacency[task_id].append(depends_on_id)
    return adjacency

@contextmanager
def graph_write_lock(db: Session) -> Iterator[None]:
    # postgres: transaction-scoped advisory lock, released on commit/rollback.
    # anything else (sqlite in dev/tests) only has one process writing.
    if db.get_bind().dialect.name == "postgresql":
        db.execute(text("SELECT pg_advisory_xact_lock(:key)"), {"key": GRAPH_LOCK_KEY})
        yield
        return

    with _local_graph_lock:
        yield

def add_dependency(
    db: Session,
    task_id: uuid.UUID,
    depends_on_id: uuid.UUID,
    kind: DependencyType = DependencyType.finish_to_start,
) -> TaskDependency:
    """Link ``task_id`` to its prerequisite and commit.

    Re-linking an existing pair only updates its kind.
    """
    kind = DependencyType(kind)
    if task_id == depends_on_id:
        raise CircularDependencyError(task_id, depends_on_id)

    with graph_write_lock(db):
        get_live_task(db, task_id)
        get_live_task(db, depends_on_id)

        # read after taking the lock so edges committed by a concurrent writer are visible
        adjacency = load_adjacency(db)
        if would_create_cycle(adjacency, task_id, depends_on_id):
            db.rollback()
            logger.info("rejected dependency %s -> %s: cycle", task_id, depends_on_id)
            raise CircularDependencyError(task_id, depends_on_id)

        edge = db.scalar(
            select(TaskDependency).where(
                TaskDependency.task_id == task_id,
                TaskDependency.depends_on_id == depends_on_id,
            )
        )
        if edge is None:
            edge = TaskDependency(task_id=task_id, depends_on_id=depends_on_id, type=kind)
            db.add(edge)
        else:
            edge.type = kind
        db.commit()

    logger.info("added dependency %s -> %s (%s)", task_id, depends_on_id, kind.value)
    return edge

def remove_dependency(db: Session, task_id: uuid.UUID, depends_on_id: uuid.UUID) -> bool:
    """Delete the edge if present. Returns whether a row was removed; a missing edge is not an error."""
    result = db.execute(
        delete(TaskDependency).where(
            TaskDependency.task_id == task_id,
            TaskDependency.depends_on_id == depends_on_id,
        )
    )
    db.commit()
    removed = (result.rowcount or 0) > 0
    if removed:
        logger.info("removed dependency %s -> %s", task_id, depends_on_id)
    return removed

def detach_task(db: Session, task_id: uuid.UUID) -> int:
    """Drop every edge touching a task. Does not commit."""
    result = db.execute(
        delete(TaskDependency).where(
            or_(TaskDependency.task_id == task_id, TaskDependency.depends_on_id == task_id)
        )
    )
    return result.rowcount or 0

def percent_complete(status: TaskStatus) -> int:
    # coarse on purpose: there is no finer progress tracking than status
    if status == TaskStatus.completed:
        return 100
    if status == TaskStatus.in_progress:
        return 50
    return 0

def schedule_view(
    db: Session,
    campaign_id: uuid.UUID | None = None,
    default_duration: timedelta | None = None,
) -> Iterator[ScheduleEntry]:
    """Yield one Gantt row per live task, optionally limited to a campaign.

    Edges whose prerequisite is missing or soft-deleted are skipped, not fatal.
    """
    if default_duration is None:
        default_duration = timedelta(days=settings.gantt_default_duration_days)

    q = select(Task).where(Task.deleted_at.is_(None))
    if campaign_id is not None:
        q = q.where(Task.campaign_id == campaign_id)
    tasks = db.scalars(q.order_by(Task.created_at, Task.id)).all()
    if not tasks:
        return

    edges = db.execute(
        select(TaskDependency.task_id, TaskDependency.depends_on_id, Task.id, Task.deleted_at)
        .outerjoin(Task, Task.id == TaskDependency.depends_on_id)
        .where(TaskDependency.task_id.in_([t.id for t in tasks]))
        .order_by(TaskDependency.created_at)
    )
    deps: dict[uuid.UUID, list[uuid.UUID]] = defaultdict(list)
    for task_id, depends_on_id, target_id, target_deleted_at in edges:
        if target_id is None or target_deleted_at is not None:
            logger.warning("skipping dangling dependency %s -> %s", task_id, depends_on_id)
            continue
        deps[task_id].append(depends_on_id)

    for t in tasks:
        start = t.start_date or t.created_at
        end = t.due_date or start + default_duration
        yield ScheduleEntry(
            id=t.id,
            title=t.title,
            start=start,
            end=end,
            percent_complete=percent_complete(t.status),
            dependency_ids=tuple(deps.get(t.id, ())),
        )
