import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from agency_crm.auth.deps import get_current_user
from agency_crm.db import get_db
from agency_crm.errors import NotFoundError
from agency_crm.models.user import User
from agency_crm.notifications import service
from agency_crm.schemas.notifications import NotificationOut, PreferencesIn, PreferencesOut, UnreadCountOut

# every route here acts on the caller's own inbox
router = APIRouter(prefix="/api/notifications", tags=["notifications"])

@router.get("", response_model=list[NotificationOut])
def list_notifications(
    unread_only: bool = False,
    limit: int = Query(default=50, ge=1, le=200),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[NotificationOut]:
    rows = service.list_notifications(db, user.id, unread_only, limit)
    return [NotificationOut.model_validate(r) for r in rows]

@router.get("/unread-count", response_model=UnreadCountOut)
def unread_count(user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> UnreadCountOut:
    return UnreadCountOut(count=service.unread_count(db, user.id))

@router.put("/read-all")
def mark_all_read(user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> dict:
    return {"updated": service.mark_all_read(db, user.id)}

@router.get("/preferences", response_model=PreferencesOut)
def get_preferences(user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> PreferencesOut:
    return PreferencesOut.model_validate(service.get_preferences(db, user.id))

@router.put("/preferences", response_model=PreferencesOut)
def update_preferences(
    payload: PreferencesIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> PreferencesOut:
    prefs = service.update_preferences(db, user.id, payload.model_dump(exclude_none=True))
    return PreferencesOut.model_validate(prefs)

@router.put("/{notification_id}/read")
def mark_read(
    notification_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    if not service.mark_read(db, user.id, notification_id):
        raise NotFoundError("notification", notification_id)
    return {"read": True}
