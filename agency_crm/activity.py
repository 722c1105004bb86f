import uuid

from sqlalchemy.orm import Session

from agency_crm import events
from agency_crm.models.activity import Activity
from agency_crm.models.enums import ActivityType

def record_activity(
    db: Session,
    *,
    type: ActivityType,
    title: str,
    user_id: uuid.UUID,
    task_id: uuid.UUID | None = None,
    campaign_id: uuid.UUID | None = None,
    details: dict | None = None,
) -> Activity:
    # added to the caller's transaction; publish only after it commits
    a = Activity(
        type=type,
        title=title[:400],
        user_id=user_id,
        task_id=task_id,
        campaign_id=campaign_id,
        details=details,
    )
    db.add(a)
    return a

def publish_activity(a: Activity) -> None:
    events.publish(
        events.ACTIVITY_ADDED,
        {
            "id": a.id,
            "type": a.type.value,
            "title": a.title,
            "user_id": a.user_id,
            "task_id": a.task_id,
            "campaign_id": a.campaign_id,
            "details": a.details,
        },
    )
