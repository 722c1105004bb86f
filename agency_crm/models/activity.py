import uuid
from datetime import datetime

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from agency_crm.models.base import Base
from agency_crm.models.enums import ActivityType

class Activity(Base):
    __tablename__ = "activities"

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, primary_key=True, default=uuid.uuid4)

    type: Mapped[ActivityType] = mapped_column(sa.Enum(ActivityType, name="activity_type"), nullable=False)
    title: Mapped[str] = mapped_column(sa.String(400), nullable=False)

    user_id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, sa.ForeignKey("users.id"), index=True, nullable=False)
    task_id: Mapped[uuid.UUID | None] = mapped_column(sa.Uuid, sa.ForeignKey("tasks.id"), nullable=True)
    campaign_id: Mapped[uuid.UUID | None] = mapped_column(
        sa.Uuid, sa.ForeignKey("campaigns.id"), nullable=True
    )

    # old/new status and similar
    details: Mapped[dict | None] = mapped_column(sa.JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.func.now(),
    )
