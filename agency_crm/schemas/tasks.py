import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from agency_crm.models.enums import DependencyType, TaskPriority, TaskStatus

class TaskCreateIn(BaseModel):
    title: str = Field(min_length=1, max_length=300)
    description: str | None = None
    campaign_id: uuid.UUID | None = None
    priority: TaskPriority = TaskPriority.medium
    start_date: datetime | None = None
    due_date: datetime | None = None
    estimated_hours: Decimal | None = Field(default=None, ge=0)
    assigned_to_id: uuid.UUID | None = None

class TaskUpdateIn(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=300)
    description: str | None = None
    campaign_id: uuid.UUID | None = None
    priority: TaskPriority | None = None
    start_date: datetime | None = None
    due_date: datetime | None = None
    estimated_hours: Decimal | None = Field(default=None, ge=0)
    assigned_to_id: uuid.UUID | None = None

class TaskStatusIn(BaseModel):
    status: TaskStatus

class TimeTrackingIn(BaseModel):
    actual_hours: Decimal = Field(ge=0)

class DependencyIn(BaseModel):
    depends_on_id: uuid.UUID
    type: DependencyType = DependencyType.finish_to_start

class DependencyOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    task_id: uuid.UUID
    depends_on_id: uuid.UUID
    type: DependencyType

class TaskOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    campaign_id: uuid.UUID | None
    title: str
    description: str | None
    status: TaskStatus
    priority: TaskPriority
    start_date: datetime | None
    due_date: datetime | None
    completed_at: datetime | None
    estimated_hours: Decimal | None
    actual_hours: Decimal | None
    created_by_id: uuid.UUID
    assigned_to_id: uuid.UUID | None
    created_at: datetime

class TaskDetailOut(TaskOut):
    dependencies: list[DependencyOut] = []
    dependents: list[DependencyOut] = []

class TaskListOut(BaseModel):
    tasks: list[TaskOut]
    total: int

class GanttEntryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    title: str
    start: datetime
    end: datetime
    percent_complete: int
    dependency_ids: list[uuid.UUID]
