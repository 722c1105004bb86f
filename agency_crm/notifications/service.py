from __future__ import annotations

import logging
import uuid

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from agency_crm import events
from agency_crm.auth.tokens import now_utc
from agency_crm.models.enums import NotificationType
from agency_crm.models.notification import Notification, NotificationPreference

logger = logging.getLogger("agency-crm.notifications")

PREFERENCE_FIELDS = ("in_app",) + tuple(t.value for t in NotificationType)

def _defaults(user_id: uuid.UUID) -> NotificationPreference:
    return NotificationPreference(user_id=user_id, **{name: True for name in PREFERENCE_FIELDS})

def wants(db: Session, user_id: uuid.UUID, type: NotificationType) -> bool:
    prefs = db.get(NotificationPreference, user_id)
    if prefs is None:
        return True
    return prefs.in_app and getattr(prefs, NotificationType(type).value)

def notify(
    db: Session,
    user_id: uuid.UUID,
    type: NotificationType,
    title: str,
    message: str,
    link: str | None = None,
) -> Notification | None:
    # joins the caller's transaction; call publish() once it has committed
    type = NotificationType(type)
    if not wants(db, user_id, type):
        logger.debug("user %s muted %s", user_id, type.value)
        return None

    n = Notification(user_id=user_id, type=type, title=title[:200], message=message, link=link, read=False)
    db.add(n)
    return n

def publish(n: Notification | None) -> None:
    if n is None:
        return
    events.notify_user(n.user_id, type=n.type.value, title=n.title, message=n.message, link=n.link)

def list_notifications(db: Session, user_id: uuid.UUID, unread_only: bool = False, limit: int = 50) -> list[Notification]:
    q = select(Notification).where(Notification.user_id == user_id)
    if unread_only:
        q = q.where(Notification.read.is_(False))
    return list(db.scalars(q.order_by(Notification.created_at.desc(), Notification.id).limit(limit)).all())

def unread_count(db: Session, user_id: uuid.UUID) -> int:
    return db.scalar(
        select(func.count(Notification.id)).where(
            Notification.user_id == user_id, Notification.read.is_(False)
        )
    ) or 0

def mark_read(db: Session, user_id: uuid.UUID, notification_id: uuid.UUID) -> bool:
    """Marks one of the caller's notifications read; other users' ids are a no-op."""
    n = db.get(Notification, notification_id)
    if n is None or n.user_id != user_id:
        return False
    if not n.read:
        n.read = True
        n.read_at = now_utc()
        db.commit()
    return True

def mark_all_read(db: Session, user_id: uuid.UUID) -> int:
    result = db.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.read.is_(False))
        .values(read=True, read_at=now_utc())
    )
    db.commit()
    return result.rowcount or 0

def get_preferences(db: Session, user_id: uuid.UUID) -> NotificationPreference:
    prefs = db.get(NotificationPreference, user_id)
    if prefs is None:
        prefs = _defaults(user_id)
        db.add(prefs)
        db.commit()
        db.refresh(prefs)
    return prefs

def update_preferences(db: Session, user_id: uuid.UUID, changes: dict[str, bool]) -> NotificationPreference:
    prefs = db.get(NotificationPreference, user_id)
    if prefs is None:
        prefs = _defaults(user_id)
        db.add(prefs)
    for name, value in changes.items():
        if name in PREFERENCE_FIELDS and value is not None:
            setattr(prefs, name, value)
    db.commit()
    db.refresh(prefs)
    return prefs
