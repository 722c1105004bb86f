import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Enum, ForeignKey, UniqueConstraint, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from agency_crm.models.base import Base
from agency_crm.models.enums import DependencyType

class TaskDependency(Base):
    """Edge ``task_id -> depends_on_id``: the task waits on its prerequisite."""

    __tablename__ = "task_dependencies"
    __table_args__ = (
        UniqueConstraint("task_id", "depends_on_id", name="uq_task_dependency_pair"),
        CheckConstraint("task_id <> depends_on_id", name="ck_task_dependency_no_self"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    task_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("tasks.id"), index=True, nullable=False)
    depends_on_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tasks.id"), index=True, nullable=False
    )
    type: Mapped[DependencyType] = mapped_column(
        Enum(DependencyType, name="dependency_type"),
        nullable=False,
        default=DependencyType.finish_to_start,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
